"""
Expression Compiler
===================

Parsing and code generation are fused: each grammar reduction emits its
stack machine instructions as soon as it is recognized. No syntax tree is
built.

The compiler object is the shared context for every recursive call: it
holds the lexer, the current token, the symbol table, the program being
emitted into, the type of the expression just compiled (``self.type``)
and the frame base of the function being compiled.

Lvalues
-------
Compiling a variable or a dereference always ends with a load (LC or LI)
of the computed address. Operators that need the address instead inspect
the last emitted instruction:

- ``&x`` removes the trailing load, leaving the address in ``a``;
- ``x = v`` rewrites the load to PSH, saving the address for the store;
- ``++x`` / ``x++`` rewrite the load to PSH and emit the load again, so
  the address stays on the stack under the loaded value.

If the last instruction is not a load, or a jump from ``||``, ``&&`` or
``?:`` lands right after it, the operand is not an lvalue. The
compiler records where every opcode starts, so an operand word that
happens to equal LC or LI is never mistaken for a load.

Precedence Climbing
-------------------
:meth:`ExpressionCompiler.compile_expr` compiles one unary/primary
expression, then keeps consuming operators whose rank is at least the
requested level, compiling each right operand at the next tighter level.
See :mod:`c4py.compiler.tokens` for the ranks.
"""

from typing import Optional

from c4py.compiler.errors import (
    CompileError,
    CSyntaxError,
    CTypeError,
    InvalidLValueError,
    NotAFunctionError,
    UndefinedSymbolError,
)
from c4py.compiler.lexer import Lexer
from c4py.compiler.symbols import SymbolClass, SymbolTable
from c4py.compiler.tokens import Tok, Token
from c4py.compiler.types import (
    CHAR,
    INT,
    PTR,
    element_size,
    pointer_to,
    size_of,
    type_name,
)
from c4py.errors import SourceLocation
from c4py.vm.opcodes import Opcode, WORD_SIZE
from c4py.vm.program import Program


# Operators that compile as: PSH, right operand, opcode. The right operand
# is parsed at the given level; the result is always an int.
SIMPLE_BINARY: dict[Tok, tuple[Tok, Opcode]] = {
    Tok.OR: (Tok.XOR, Opcode.OR),
    Tok.XOR: (Tok.AND, Opcode.XOR),
    Tok.AND: (Tok.EQ, Opcode.AND),
    Tok.EQ: (Tok.LT, Opcode.EQ),
    Tok.NE: (Tok.LT, Opcode.NE),
    Tok.LT: (Tok.SHL, Opcode.LT),
    Tok.GT: (Tok.SHL, Opcode.GT),
    Tok.LE: (Tok.SHL, Opcode.LE),
    Tok.GE: (Tok.SHL, Opcode.GE),
    Tok.SHL: (Tok.ADD, Opcode.SHL),
    Tok.SHR: (Tok.ADD, Opcode.SHR),
    Tok.MUL: (Tok.INC, Opcode.MUL),
    Tok.DIV: (Tok.INC, Opcode.DIV),
    Tok.MOD: (Tok.INC, Opcode.MOD),
}


class ExpressionCompiler:
    """
    Single-pass expression parser and code generator.

    Attributes:
        filename: Source name for error messages
        program: Program receiving code and data
        symbols: Symbol table shared with the lexer
        lexer: Pull lexer over the source
        token: The current token
        type: Type of the most recently compiled expression
        frame_base: Slot number of the frame pointer in the current
                    function (parameters count + 1); locals and parameters
                    are addressed as ``frame_base - slot`` words from bp
    """

    def __init__(self, source: str, filename: str = "<input>"):
        self.filename = filename
        self.program = Program()
        self.symbols = SymbolTable()
        self.lexer = Lexer(source, self.symbols, self.program, filename)
        self.token = Token(Tok.EOF)
        self.type = INT
        self.frame_base = 0

        # Code address of every emitted opcode, in emission order
        self._ops: list[int] = []
        # Highest address any forward jump was patched to point at
        self._last_label = -1

    # =========================================================================
    # Token Handling
    # =========================================================================

    def next(self) -> Token:
        """Advance to the next token."""
        self.token = self.lexer.advance()
        return self.token

    def expect(self, kind: Tok, message: str) -> None:
        """Consume a token of the given kind, or fail with message."""
        if self.token.kind is not kind:
            raise self.syntax_error(message)
        self.next()

    def where(self) -> dict:
        """Location keyword arguments for error constructors."""
        line = self.token.line or self.lexer.line
        return {
            "location": SourceLocation(self.filename, line),
            "source_line": self.lexer.line_text(line),
        }

    def syntax_error(self, message: str, hint: Optional[str] = None) -> CompileError:
        """Build a syntax error at the current token."""
        return CSyntaxError(message, hint=hint, **self.where())

    # =========================================================================
    # Emission
    # =========================================================================

    def emit(self, op: Opcode, operand: Optional[int] = None) -> int:
        """
        Emit one instruction.

        Returns:
            Address of the operand word (for backpatching), or of the
            opcode if the instruction has no operand
        """
        self._ops.append(self.program.here)
        address = self.program.emit(op)
        if operand is not None:
            address = self.program.emit(operand)
        return address

    def last_op(self) -> Optional[Opcode]:
        """Opcode of the most recently emitted instruction."""
        if not self._ops:
            return None
        return Opcode(self.program.code[self._ops[-1]])

    def _backpatch(self, slot: int, target: int) -> None:
        """Point the jump operand at slot to target."""
        self.program.patch(slot, target)
        self._last_label = max(self._last_label, target)

    def _trailing_load(self, context: str) -> Opcode:
        """
        The load ending the operand just compiled.

        A jump landing right after the load means the operand was a
        ``||``, ``&&`` or ``?:`` whose last branch happened to be a
        variable, which is not an lvalue.

        Raises:
            InvalidLValueError: If the operand doesn't end in its own load
        """
        load = self.last_op()
        if load is None or not load.is_load or self._last_label == self.program.here:
            raise InvalidLValueError(context, **self.where())
        return load

    def _take_lvalue(self, context: str) -> Opcode:
        """
        Turn the trailing load into PSH, keeping the address on the stack.

        Returns:
            The load that was replaced (LC or LI)
        """
        load = self._trailing_load(context)
        self.program.patch(self._ops[-1], Opcode.PSH)
        return load

    def _store(self, ctype: int) -> None:
        self.emit(Opcode.SC if ctype == CHAR else Opcode.SI)

    def _load(self, ctype: int) -> None:
        self.emit(Opcode.LC if ctype == CHAR else Opcode.LI)

    # =========================================================================
    # Expressions
    # =========================================================================

    def compile_expr(self, level: int) -> None:
        """
        Compile an expression whose operators bind at least as tightly as
        ``level``, leaving its value in the accumulator.

        Args:
            level: Minimum operator rank to consume (``Tok.ASSIGN.precedence``
                   for a full expression)
        """
        self._unary()
        while self.token.kind.precedence >= level:
            self._operator()

    def _unary(self) -> None:
        """Compile a primary expression or a prefix operator application."""
        token = self.token

        match token.kind:
            case Tok.EOF:
                raise self.syntax_error("unexpected end of input in expression")

            case Tok.NUM:
                self.emit(Opcode.IMM, token.value)
                self.next()
                self.type = INT

            case Tok.STR:
                self.emit(Opcode.IMM, token.value)
                self.next()
                while self.token.kind is Tok.STR:
                    self.next()
                self.program.align_data()
                self.type = pointer_to(CHAR)

            case Tok.SIZEOF:
                self._sizeof()

            case Tok.ID:
                self._identifier()

            case Tok.LPAREN:
                self.next()
                if self.token.kind in (Tok.INT, Tok.CHAR):
                    cast = INT if self.token.kind is Tok.INT else CHAR
                    self.next()
                    while self.token.kind is Tok.MUL:
                        self.next()
                        cast = pointer_to(cast)
                    self.expect(Tok.RPAREN, "bad cast")
                    self.compile_expr(Tok.INC.precedence)
                    self.type = cast
                else:
                    self.compile_expr(Tok.ASSIGN.precedence)
                    self.expect(Tok.RPAREN, "close paren expected")

            case Tok.MUL:
                self.next()
                self.compile_expr(Tok.INC.precedence)
                if self.type > INT:
                    self.type -= PTR
                else:
                    raise CTypeError(f"bad dereference of {type_name(self.type)}", **self.where())
                self._load(self.type)

            case Tok.AND:
                self.next()
                self.compile_expr(Tok.INC.precedence)
                self._trailing_load("address-of")
                del self.program.code[self._ops.pop():]
                self.type = pointer_to(self.type)

            case Tok.NOT:
                self.next()
                self.compile_expr(Tok.INC.precedence)
                self.emit(Opcode.PSH)
                self.emit(Opcode.IMM, 0)
                self.emit(Opcode.EQ)
                self.type = INT

            case Tok.TILDE:
                self.next()
                self.compile_expr(Tok.INC.precedence)
                self.emit(Opcode.PSH)
                self.emit(Opcode.IMM, -1)
                self.emit(Opcode.XOR)
                self.type = INT

            case Tok.ADD:
                self.next()
                self.compile_expr(Tok.INC.precedence)
                self.type = INT

            case Tok.SUB:
                self.next()
                if self.token.kind is Tok.NUM:
                    self.emit(Opcode.IMM, -self.token.value)
                    self.next()
                else:
                    self.emit(Opcode.IMM, -1)
                    self.emit(Opcode.PSH)
                    self.compile_expr(Tok.INC.precedence)
                    self.emit(Opcode.MUL)
                self.type = INT

            case Tok.INC | Tok.DEC:
                increment = token.kind is Tok.INC
                self.next()
                self.compile_expr(Tok.INC.precedence)
                load = self._take_lvalue("pre-increment" if increment else "pre-decrement")
                self.emit(load)
                self.emit(Opcode.PSH)
                self.emit(Opcode.IMM, element_size(self.type))
                self.emit(Opcode.ADD if increment else Opcode.SUB)
                self._store(self.type)

            case _:
                raise self.syntax_error(f"bad expression near '{token.kind.text}'")

    def _sizeof(self) -> None:
        """sizeof(int|char [*...]): an IMM of the storage size."""
        self.next()
        self.expect(Tok.LPAREN, "open paren expected in sizeof")
        if self.token.kind is Tok.INT:
            ctype = INT
        elif self.token.kind is Tok.CHAR:
            ctype = CHAR
        else:
            raise self.syntax_error("type expected in sizeof", hint="use sizeof(int) or sizeof(char)")
        self.next()
        while self.token.kind is Tok.MUL:
            self.next()
            ctype = pointer_to(ctype)
        self.expect(Tok.RPAREN, "close paren expected in sizeof")
        self.emit(Opcode.IMM, size_of(ctype))
        self.type = INT

    def _identifier(self) -> None:
        """Function call, enum constant, or variable load."""
        symbol = self.symbols[self.token.symbol]
        self.next()

        if self.token.kind is Tok.LPAREN:
            self.next()
            argc = 0
            while self.token.kind is not Tok.RPAREN:
                self.compile_expr(Tok.ASSIGN.precedence)
                self.emit(Opcode.PSH)
                argc += 1
                if self.token.kind is Tok.COMMA:
                    self.next()
                elif self.token.kind is not Tok.RPAREN:
                    raise self.syntax_error("close paren expected in function call")
            self.next()

            if symbol.kind is SymbolClass.SYSCALL:
                self.emit(Opcode(symbol.value))
            elif symbol.kind is SymbolClass.FUNCTION:
                self.emit(Opcode.JSR, symbol.value)
            else:
                raise NotAFunctionError(symbol.name, **self.where())
            if argc:
                self.emit(Opcode.ADJ, argc)
            self.type = symbol.type

        elif symbol.kind is SymbolClass.ENUM_CONST:
            self.emit(Opcode.IMM, symbol.value)
            self.type = INT

        else:
            if symbol.kind is SymbolClass.LOCAL:
                self.emit(Opcode.LEA, self.frame_base - symbol.value)
            elif symbol.kind is SymbolClass.GLOBAL:
                self.emit(Opcode.IMM, symbol.value)
            else:
                raise UndefinedSymbolError(symbol.name, **self.where())
            self.type = symbol.type
            self._load(self.type)

    # =========================================================================
    # Binary and Postfix Operators
    # =========================================================================

    def _operator(self) -> None:
        """Compile one binary or postfix operator and its right operand."""
        kind = self.token.kind
        left = self.type

        if kind in SIMPLE_BINARY:
            level, opcode = SIMPLE_BINARY[kind]
            self.next()
            self.emit(Opcode.PSH)
            self.compile_expr(level.precedence)
            self.emit(opcode)
            self.type = INT
            return

        match kind:
            case Tok.ASSIGN:
                self.next()
                self._take_lvalue("assignment")
                self.compile_expr(Tok.ASSIGN.precedence)
                self.type = left
                self._store(left)

            case Tok.COND:
                self.next()
                false_branch = self.emit(Opcode.BZ, 0)
                self.compile_expr(Tok.ASSIGN.precedence)
                self.expect(Tok.COLON, "conditional missing colon")
                self._backpatch(false_branch, self.program.here + 2)
                end = self.emit(Opcode.JMP, 0)
                self.compile_expr(Tok.COND.precedence)
                self._backpatch(end, self.program.here)

            case Tok.LOR:
                self.next()
                end = self.emit(Opcode.BNZ, 0)
                self.compile_expr(Tok.LAN.precedence)
                self._backpatch(end, self.program.here)
                self.type = INT

            case Tok.LAN:
                self.next()
                end = self.emit(Opcode.BZ, 0)
                self.compile_expr(Tok.OR.precedence)
                self._backpatch(end, self.program.here)
                self.type = INT

            case Tok.ADD:
                self.next()
                self.emit(Opcode.PSH)
                self.compile_expr(Tok.MUL.precedence)
                self.type = left
                if left > PTR:
                    self._scale()
                self.emit(Opcode.ADD)

            case Tok.SUB:
                self.next()
                self.emit(Opcode.PSH)
                self.compile_expr(Tok.MUL.precedence)
                if left > PTR and left == self.type:
                    # Pointer difference counts elements, not bytes
                    self.emit(Opcode.SUB)
                    self.emit(Opcode.PSH)
                    self.emit(Opcode.IMM, WORD_SIZE)
                    self.emit(Opcode.DIV)
                    self.type = INT
                else:
                    self.type = left
                    if left > PTR:
                        self._scale()
                    self.emit(Opcode.SUB)

            case Tok.INC | Tok.DEC:
                increment = kind is Tok.INC
                load = self._take_lvalue("post-increment" if increment else "post-decrement")
                self.emit(load)
                step = element_size(self.type)
                self.emit(Opcode.PSH)
                self.emit(Opcode.IMM, step)
                self.emit(Opcode.ADD if increment else Opcode.SUB)
                self._store(self.type)
                # Undo the step so the expression yields the old value
                self.emit(Opcode.PSH)
                self.emit(Opcode.IMM, step)
                self.emit(Opcode.SUB if increment else Opcode.ADD)
                self.next()

            case Tok.BRAK:
                self.next()
                self.emit(Opcode.PSH)
                self.compile_expr(Tok.ASSIGN.precedence)
                self.expect(Tok.RBRACKET, "close bracket expected")
                if left > PTR:
                    self._scale()
                elif left < PTR:
                    raise CTypeError(f"pointer type expected, got {type_name(left)}", **self.where())
                self.emit(Opcode.ADD)
                self.type = left - PTR
                self._load(self.type)

            case _:
                raise self.syntax_error(f"bad operator '{kind.text}'")

    def _scale(self) -> None:
        """Multiply the accumulator by the word size (int-element pointers)."""
        self.emit(Opcode.PSH)
        self.emit(Opcode.IMM, WORD_SIZE)
        self.emit(Opcode.MUL)
