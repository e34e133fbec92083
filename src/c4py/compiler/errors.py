"""
c4py Compiler Error Hierarchy
=============================

This module defines the exception hierarchy for the compiler. All
exceptions inherit from CompileError, which itself inherits from the base
C4Error for consistent error handling across the package.

Exception Hierarchy
-------------------
CompileError (base for all compile errors)
├── LexicalError - bad character, unterminated or malformed literal
├── CSyntaxError - missing token or unexpected end of input
├── UndefinedSymbolError - use of an unbound identifier
├── DuplicateDefinitionError - global, parameter or local declared twice
├── InvalidLValueError - assignment/address-of/++/-- on a non-lvalue
├── CTypeError - dereference or subscript of a non-pointer
├── NotAFunctionError - call through something that is not a function
└── MissingMainError - no main() definition

The compiler is single pass with no recovery: the first error aborts the
whole compilation, so there is no error collector.

Error Message Format
--------------------
    hello.c:5: error: bad lvalue in assignment
        42 = x;
    hint: left side of assignment must be a variable or dereferenced pointer
"""

from typing import Optional

from c4py.errors import C4Error, SourceLocation


# =============================================================================
# Base Compile Exception
# =============================================================================

class CompileError(C4Error):
    """
    Base exception for all compile errors.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The actual source text at the error location
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    @property
    def line(self) -> Optional[int]:
        """Source line number of the error, if known."""
        return self.location.line if self.location else None

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

            hello.c:5: error: undefined variable 'cnt'
                cnt = cnt + 1;
            hint: declare it as a global or a local of the enclosing function
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# Lexical and Syntax Errors
# =============================================================================

class LexicalError(CompileError):
    """
    The lexer could not form a token.

    Examples:
        - Character that starts no token ('@', '$', '`')
        - String or character literal running into end of input
        - Empty or multi-character '...' literal
    """
    pass


class CSyntaxError(CompileError):
    """
    Token stream does not match the grammar.

    Examples:
        - "semicolon expected"
        - "open paren expected"
        - "unexpected end of input in expression"
    """
    pass


# =============================================================================
# Semantic Errors
# =============================================================================

class UndefinedSymbolError(CompileError):
    """Identifier used as a variable without being declared."""

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.identifier = identifier
        super().__init__(
            f"undefined variable '{identifier}'",
            location=location,
            hint="declare it as a global or a local of the enclosing function",
            source_line=source_line,
        )


class DuplicateDefinitionError(CompileError):
    """Global, parameter or local declared twice in the same scope."""

    def __init__(
        self,
        kind: str,
        identifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.kind = kind
        self.identifier = identifier
        super().__init__(
            f"duplicate {kind} definition '{identifier}'",
            location=location,
            source_line=source_line,
        )


class InvalidLValueError(CompileError):
    """
    Expression is not assignable.

    Raised by assignment, address-of, and both forms of ++/--:

        - 42 = x
        - &(a + b)
        - ++f()
    """

    def __init__(
        self,
        context: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.context = context
        super().__init__(
            f"bad lvalue in {context}",
            location=location,
            hint="operand must be a variable or dereferenced pointer",
            source_line=source_line,
        )


class CTypeError(CompileError):
    """
    Operand type does not fit the operator.

    Examples:
        - *x where x is int ("bad dereference of int")
        - i[3] where i is int ("pointer type expected, got int")
    """
    pass


class NotAFunctionError(CompileError):
    """Call through an identifier that is neither a function nor a syscall."""

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.identifier = identifier
        super().__init__(
            f"bad function call: '{identifier}' is not a function",
            location=location,
            hint="functions must be defined before they are called",
            source_line=source_line,
        )


class MissingMainError(CompileError):
    """The program defines no main() function."""

    def __init__(self, location: Optional[SourceLocation] = None):
        super().__init__(
            "main() not defined",
            location=location,
            hint="add 'int main() { ... }'",
        )
