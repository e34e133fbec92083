"""
Statement and Function Compiler
===============================

Statements compile straight to branches over the code emitted for their
expressions. Forward jumps are emitted with a placeholder operand and
backpatched once the target address is known.

Code Shapes
-----------
::

    if (c) S                 c; BZ end; S; end:
    if (c) S1 else S2        c; BZ else; S1; JMP end; else: S2; end:
    while (c) S              top: c; BZ end; S; JMP top; end:
    return e;                e; LEV
    return;                  LEV

Function Frames
---------------
A function with n parameters and k locals runs with this frame (one word
per slot, bp is the frame pointer after ENT)::

    bp + (n + 1 - i)   parameter i (pushed left to right by the caller)
    bp + 1             return address
    bp                 caller's bp
    bp - j             local j (1-based)

Parameter i is bound to slot i and local j to slot n + 1 + j, so the LEA
operand of any of them is ``frame_base - slot`` with ``frame_base = n + 1``.
"""

import logging

from c4py.compiler.errors import CSyntaxError, DuplicateDefinitionError
from c4py.compiler.expressions import ExpressionCompiler
from c4py.compiler.symbols import Symbol, SymbolClass
from c4py.compiler.tokens import Tok
from c4py.compiler.types import CHAR, INT, pointer_to
from c4py.vm.opcodes import Opcode

logger = logging.getLogger(__name__)


class StatementCompiler(ExpressionCompiler):
    """
    Adds statements and function bodies to the expression compiler.

    A function whose code ends in LEV still needs the implicit
    ``return 0`` when some jump lands on its end (``_last_label``).
    """

    # =========================================================================
    # Statements
    # =========================================================================

    def compile_stmt(self) -> None:
        """Compile one statement starting at the current token."""
        match self.token.kind:
            case Tok.IF:
                self.next()
                self._condition()
                branch = self.emit(Opcode.BZ, 0)
                self.compile_stmt()
                if self.token.kind is Tok.ELSE:
                    self._backpatch(branch, self.program.here + 2)
                    branch = self.emit(Opcode.JMP, 0)
                    self.next()
                    self.compile_stmt()
                self._backpatch(branch, self.program.here)

            case Tok.WHILE:
                self.next()
                top = self.program.here
                self._condition()
                exit_branch = self.emit(Opcode.BZ, 0)
                self.compile_stmt()
                self.emit(Opcode.JMP, top)
                self._backpatch(exit_branch, self.program.here)

            case Tok.RETURN:
                self.next()
                if self.token.kind is not Tok.SEMI:
                    self.compile_expr(Tok.ASSIGN.precedence)
                self.emit(Opcode.LEV)
                self.expect(Tok.SEMI, "semicolon expected")

            case Tok.LBRACE:
                self.next()
                while self.token.kind is not Tok.RBRACE:
                    if self.token.kind is Tok.EOF:
                        raise self.syntax_error("close brace expected")
                    self.compile_stmt()
                self.next()

            case Tok.SEMI:
                self.next()

            case _:
                self.compile_expr(Tok.ASSIGN.precedence)
                self.expect(Tok.SEMI, "semicolon expected")

    def _condition(self) -> None:
        """Parenthesized condition of if/while."""
        self.expect(Tok.LPAREN, "open paren expected")
        self.compile_expr(Tok.ASSIGN.precedence)
        self.expect(Tok.RPAREN, "close paren expected")

    # =========================================================================
    # Function Definitions
    # =========================================================================

    def _base_type(self) -> int:
        """Consume an optional int/char keyword; int when absent."""
        if self.token.kind is Tok.CHAR:
            self.next()
            return CHAR
        if self.token.kind is Tok.INT:
            self.next()
        return INT

    def _pointer_levels(self, ctype: int) -> int:
        while self.token.kind is Tok.MUL:
            self.next()
            ctype = pointer_to(ctype)
        return ctype

    def compile_function(self, symbol: Symbol) -> None:
        """
        Compile a function definition whose name has been consumed.

        The current token is the opening paren of the parameter list. On
        return the current token is the function's closing brace.
        """
        symbol.kind = SymbolClass.FUNCTION
        symbol.value = self.program.here
        self.program.functions[symbol.name] = symbol.value
        logger.debug(f"Compiling function {symbol.name} at {symbol.value}")

        self.next()
        params = 0
        while self.token.kind is not Tok.RPAREN:
            ctype = self._pointer_levels(self._base_type())
            if self.token.kind is not Tok.ID:
                raise self.syntax_error("bad parameter declaration")
            index = self.token.symbol
            if self.symbols[index].kind is SymbolClass.LOCAL:
                raise DuplicateDefinitionError(
                    "parameter", self.symbols[index].name, **self.where()
                )
            self.symbols.declare_local(index, ctype, params)
            params += 1
            self.next()
            if self.token.kind is Tok.COMMA:
                self.next()
        self.next()

        if self.token.kind is not Tok.LBRACE:
            raise self.syntax_error("bad function definition", hint="expected '{' after the parameter list")

        self.frame_base = slot = params + 1
        self.next()

        # Locals are only declared at the top of the body
        while self.token.kind in (Tok.INT, Tok.CHAR):
            base = self._base_type()
            while self.token.kind is not Tok.SEMI:
                ctype = self._pointer_levels(base)
                if self.token.kind is not Tok.ID:
                    raise self.syntax_error("bad local declaration")
                index = self.token.symbol
                if self.symbols[index].kind is SymbolClass.LOCAL:
                    raise DuplicateDefinitionError(
                        "local", self.symbols[index].name, **self.where()
                    )
                slot += 1
                self.symbols.declare_local(index, ctype, slot)
                self.next()
                if self.token.kind is Tok.COMMA:
                    self.next()
            self.next()

        self.emit(Opcode.ENT, slot - self.frame_base)
        while self.token.kind is not Tok.RBRACE:
            if self.token.kind is Tok.EOF:
                raise CSyntaxError(
                    f"unexpected end of input in function '{symbol.name}'",
                    hint="add the closing '}'",
                    **self.where(),
                )
            self.compile_stmt()

        if self.last_op() is not Opcode.LEV or self._last_label == self.program.here:
            self.emit(Opcode.IMM, 0)
            self.emit(Opcode.LEV)

        self.symbols.exit_scope()
        logger.debug(
            f"Function {symbol.name}: {params} params, "
            f"{slot - self.frame_base} locals, ends at {self.program.here}"
        )
