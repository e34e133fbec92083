"""
c4py Compiler Main Module
=========================

This module provides the main compiler interface. Compilation is a single
pass over the source:

    Source → (Lex + Parse + Generate, fused) → Program

Usage
-----
Programmatic:
    >>> from c4py import compile_c, execute
    >>> program = compile_c('int main() { return 42; }')
    >>> execute(program)
    42

Command line:
    $ c4py hello.c

Top-Level Grammar
-----------------
::

    program     := declaration*
    declaration := 'enum' [name] '{' enumerator (',' enumerator)* '}' ';'
                 | type declarator (',' declarator)* ';'
                 | type declarator '(' params ')' '{' locals stmt* '}'
    type        := 'int' | 'char' | 'void'    (omitted: int)
    declarator  := '*'* identifier

Every global gets one zeroed data word. A function's symbol is bound to
its entry address before its body is compiled, so recursion works but a
call to a function defined further down the file does not.

Error Handling
--------------
The first error raises a :class:`CompileError` subclass and aborts the
compilation. There is no recovery.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from c4py.compiler.errors import CSyntaxError, DuplicateDefinitionError, MissingMainError
from c4py.compiler.statements import StatementCompiler
from c4py.compiler.symbols import SymbolClass
from c4py.compiler.tokens import Tok
from c4py.compiler.types import INT
from c4py.vm.program import Program

logger = logging.getLogger(__name__)


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        filename: Source name used in error messages
        record_lines: Record (line, code address) marks so the program can
                      be listed with source lines interleaved
    """
    filename: str = "<input>"
    record_lines: bool = True


class Compiler(StatementCompiler):
    """
    Compiles one translation unit into a Program.

    A Compiler is single use: construct it with the source, call
    :meth:`compile` once.

    Example:
        compiler = Compiler(source, CompilerOptions(filename="fib.c"))
        program = compiler.compile()
        print("\\n".join(program.disassemble()))
    """

    def __init__(self, source: str, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()
        super().__init__(source, self.options.filename)
        self.source = source
        if self.options.record_lines:
            self.lexer.on_newline = self._mark_line

    def _mark_line(self, line: int) -> None:
        self.program.line_marks.append((line, self.program.here))

    def compile(self) -> Program:
        """
        Compile the whole source.

        Returns:
            The compiled Program with its entry set to main()

        Raises:
            CompileError: On the first lexical, syntax or semantic error
        """
        logger.debug(f"Compiling {self.filename} ({len(self.source)} chars)")

        self.next()
        while self.token.kind is not Tok.EOF:
            self._declaration()

        if self.options.record_lines:
            marks = self.program.line_marks
            if not marks or marks[-1][0] != self.lexer.line:
                marks.append((self.lexer.line, self.program.here))

        main = self.symbols.lookup("main")
        if main is None or main.kind is not SymbolClass.FUNCTION:
            raise MissingMainError(self.lexer.location)
        self.program.entry = main.value

        logger.debug(
            f"Compiled {self.filename}: {len(self.program.code)} code words, "
            f"{len(self.program.data)} data bytes, {len(self.symbols)} symbols"
        )
        return self.program

    # =========================================================================
    # Declarations
    # =========================================================================

    def _declaration(self) -> None:
        """One top-level declaration, including its terminating ';' or '}'."""
        if self.token.kind is Tok.ENUM:
            self._enum_declaration()
            base = INT
        else:
            base = self._base_type()

        while self.token.kind not in (Tok.SEMI, Tok.RBRACE):
            ctype = self._pointer_levels(base)
            if self.token.kind is not Tok.ID:
                raise self.syntax_error("bad global declaration")
            symbol = self.symbols[self.token.symbol]
            self.next()

            if symbol.kind is not SymbolClass.UNBOUND:
                kind = "function" if self.token.kind is Tok.LPAREN else "global"
                raise DuplicateDefinitionError(kind, symbol.name, **self.where())

            symbol.type = ctype
            if self.token.kind is Tok.LPAREN:
                self.compile_function(symbol)
            else:
                symbol.kind = SymbolClass.GLOBAL
                symbol.value = self.program.allocate_word()
                logger.debug(f"Global {symbol.name} at {symbol.value:#x}")

            if self.token.kind is Tok.COMMA:
                self.next()
        self.next()

    def _enum_declaration(self) -> None:
        """enum [name] { A, B = 5, C } with auto-incrementing values."""
        self.next()
        if self.token.kind is not Tok.LBRACE:
            self.next()
        if self.token.kind is not Tok.LBRACE:
            return

        self.next()
        value = 0
        while self.token.kind is not Tok.RBRACE:
            if self.token.kind is not Tok.ID:
                raise self.syntax_error("bad enum identifier")
            symbol = self.symbols[self.token.symbol]
            if symbol.kind is not SymbolClass.UNBOUND:
                raise DuplicateDefinitionError("enum constant", symbol.name, **self.where())
            self.next()

            if self.token.kind is Tok.ASSIGN:
                self.next()
                negative = self.token.kind is Tok.SUB
                if negative:
                    self.next()
                if self.token.kind is not Tok.NUM:
                    raise CSyntaxError("bad enum initializer", hint="enum values must be integer constants", **self.where())
                value = -self.token.value if negative else self.token.value
                self.next()

            symbol.kind = SymbolClass.ENUM_CONST
            symbol.type = INT
            symbol.value = value
            value += 1
            if self.token.kind is Tok.COMMA:
                self.next()
            elif self.token.kind is not Tok.RBRACE:
                raise self.syntax_error("bad enum identifier")
        self.next()


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_c(
    source: str,
    filename: str = "<input>",
    options: Optional[CompilerOptions] = None,
) -> Program:
    """
    Compile c4py source code into a Program.

    Args:
        source: Source text
        filename: Source name for error messages (ignored when options
                  are given)
        options: Compiler options

    Returns:
        The compiled Program

    Raises:
        CompileError: If compilation fails

    Example:
        >>> program = compile_c('int main() { return 0; }')
        >>> program.entry
        0
    """
    if options is None:
        options = CompilerOptions(filename=filename)
    return Compiler(source, options).compile()


def compile_file(path: str, options: Optional[CompilerOptions] = None) -> Program:
    """
    Compile a source file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        CompileError: If compilation fails
    """
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    source = source_path.read_text(encoding="utf-8")
    if options is None:
        options = CompilerOptions(filename=str(path))
    return compile_c(source, options=options)
