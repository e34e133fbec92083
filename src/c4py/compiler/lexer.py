"""
c4py Lexer
==========

A pull lexer: the compiler calls :meth:`Lexer.advance` whenever it wants
the next token, and only the current token exists at any time. There is
no token list.

The lexer has two side effects besides moving its cursor:

- identifiers are interned into the symbol table as they are scanned, and
  the token carries the symbol index;
- string literal bytes are appended to the program's data segment, and
  the token carries the guest address of the first byte.

Token Categories
----------------
- Identifiers: ``[A-Za-z_][A-Za-z0-9_]*``; keywords are identifiers whose
  symbol carries a keyword token kind
- Numbers: decimal, hexadecimal (``0x``/``0X``), octal (leading ``0``)
- Strings: ``"..."`` (bytes go to the data segment)
- Characters: ``'c'`` (a NUM token with the character code)
- Operators: maximal munch over ``== != <= >= << >> && || ++ --``, then
  single characters

Skipped Input
-------------
- Whitespace
- ``// ...`` comments
- ``# ...`` lines (preprocessor directives are discarded, not interpreted)

Escape Sequences
----------------
``\\n`` is the only translated escape. Any other ``\\x`` yields ``x``
itself, so ``'\\''`` and ``"\\""`` still work.

Example Usage
-------------
>>> lexer = Lexer("x = 0x1F;", SymbolTable(), Program())
>>> lexer.advance()
Token(ID, #18, line 1)
>>> lexer.advance()
Token(ASSIGN, line 1)
>>> lexer.advance()
Token(NUM, 31, line 1)
"""

import string
from typing import Callable, Optional

from c4py.compiler.errors import LexicalError
from c4py.compiler.symbols import SymbolTable
from c4py.compiler.tokens import DOUBLE_CHAR, SINGLE_CHAR, Tok, Token
from c4py.errors import SourceLocation
from c4py.vm.program import Program


class Lexer:
    """
    Tokenizes c4py source on demand.

    Attributes:
        source: The source text being tokenized
        filename: Name of the source (for error messages)
        symbols: Symbol table identifiers are interned into
        program: Program whose data segment receives string bytes
        line: Current line number (1-indexed)
        on_newline: Optional callback, called with the number of each line
                    as the cursor moves past its end
    """

    # Characters that can start an identifier
    IDENT_START = frozenset(string.ascii_letters + "_")

    # Characters that can continue an identifier
    IDENT_CHARS = frozenset(string.ascii_letters + string.digits + "_")

    DIGITS = frozenset(string.digits)
    OCTAL_DIGITS = frozenset("01234567")
    HEX_DIGITS = frozenset(string.hexdigits)

    def __init__(
        self,
        source: str,
        symbols: SymbolTable,
        program: Program,
        filename: str = "<input>",
    ):
        self.source = source
        self.filename = filename
        self.symbols = symbols
        self.program = program
        self.line = 1
        self.on_newline: Optional[Callable[[int], None]] = None

        self._pos = 0
        self._lines = source.split("\n")

    # =========================================================================
    # Diagnostics
    # =========================================================================

    @property
    def location(self) -> SourceLocation:
        """Current position as a SourceLocation."""
        return SourceLocation(self.filename, self.line)

    def line_text(self, line: Optional[int] = None) -> str:
        """Source text of a line (the current one by default)."""
        line = self.line if line is None else line
        if 0 < line <= len(self._lines):
            return self._lines[line - 1].rstrip("\r")
        return ""

    def _error(self, message: str, hint: Optional[str] = None) -> LexicalError:
        return LexicalError(message, self.location, hint=hint, source_line=self.line_text())

    @property
    def at_end(self) -> bool:
        """True once the whole source has been consumed."""
        return self._pos >= len(self.source)

    def _newline(self) -> None:
        if self.on_newline:
            self.on_newline(self.line)
        self.line += 1

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def advance(self) -> Token:
        """
        Scan and return the next token, or an EOF token at end of input.

        Raises:
            LexicalError: On a character that starts no token, or on a
                          malformed literal
        """
        source = self.source
        length = len(source)

        while self._pos < length:
            char = source[self._pos]
            self._pos += 1

            if char == "\n":
                self._newline()
                continue

            if char in " \t\r\f\v":
                continue

            # Preprocessor line: discard up to (not including) the newline
            if char == "#":
                end = source.find("\n", self._pos)
                self._pos = length if end == -1 else end
                continue

            if char in self.IDENT_START:
                return self._scan_identifier(char)

            if char in self.DIGITS:
                return self._scan_number(char)

            if char == "/" and self._pos < length and source[self._pos] == "/":
                end = source.find("\n", self._pos)
                self._pos = length if end == -1 else end
                continue

            if char in "'\"":
                return self._scan_literal(char)

            pair = source[self._pos - 1:self._pos + 1]
            if pair in DOUBLE_CHAR:
                self._pos += 1
                return Token(DOUBLE_CHAR[pair], line=self.line)

            if char in SINGLE_CHAR:
                return Token(SINGLE_CHAR[char], line=self.line)

            raise self._error(f"unexpected character {char!r}")

        return Token(Tok.EOF, line=self.line)

    def _scan_identifier(self, first: str) -> Token:
        """
        Scan an identifier and intern it.

        The hash is accumulated per character while scanning, so the
        symbol lookup doesn't rehash the name.
        """
        start = self._pos - 1
        hash_value = ord(first)
        source = self.source
        while self._pos < len(source) and source[self._pos] in self.IDENT_CHARS:
            hash_value = (hash_value * 147 + ord(source[self._pos])) & 0xFFFFFFFF
            self._pos += 1

        name = source[start:self._pos]
        hash_value = ((hash_value << 6) + len(name)) & 0xFFFFFFFF

        index = self.symbols.find(hash_value, name)
        if index is None:
            index = self.symbols.insert(hash_value, name)
        return Token(self.symbols[index].token, symbol=index, line=self.line)

    def _scan_number(self, first: str) -> Token:
        """
        Scan a numeric literal.

        A leading 0 starts a hexadecimal (0x/0X) or octal number; any
        other digit starts a decimal number. Scanning stops at the first
        character that isn't a digit of the base.
        """
        source = self.source
        length = len(source)

        if first != "0":
            start = self._pos - 1
            while self._pos < length and source[self._pos] in self.DIGITS:
                self._pos += 1
            return Token(Tok.NUM, int(source[start:self._pos]), line=self.line)

        if self._pos < length and source[self._pos] in "xX":
            self._pos += 1
            start = self._pos
            while self._pos < length and source[self._pos] in self.HEX_DIGITS:
                self._pos += 1
            digits = source[start:self._pos]
            return Token(Tok.NUM, int(digits, 16) if digits else 0, line=self.line)

        start = self._pos
        while self._pos < length and source[self._pos] in self.OCTAL_DIGITS:
            self._pos += 1
        digits = source[start:self._pos]
        return Token(Tok.NUM, int(digits, 8) if digits else 0, line=self.line)

    def _scan_literal(self, quote: str) -> Token:
        """
        Scan a string or character literal.

        String bytes are appended to the data segment without padding;
        the expression compiler word-aligns the segment after a run of
        adjacent literals. A character literal must decode to exactly one
        character.
        """
        source = self.source
        start_line = self.line
        address = self.program.data_address()
        codes: list[int] = []

        while True:
            if self._pos >= len(source):
                raise LexicalError(
                    "unterminated string literal" if quote == '"'
                    else "unterminated character literal",
                    SourceLocation(self.filename, start_line),
                    hint=f"add closing {quote} to complete the literal",
                    source_line=self.line_text(start_line),
                )

            char = source[self._pos]
            self._pos += 1
            if char == quote:
                break
            if char == "\n":
                self._newline()
            elif char == "\\" and self._pos < len(source):
                char = source[self._pos]
                self._pos += 1
                if char == "n":
                    char = "\n"
                elif char == "\n":
                    self._newline()

            if quote == '"':
                for byte in char.encode("utf-8"):
                    self.program.append_data(byte)
            codes.append(ord(char))

        if quote == '"':
            return Token(Tok.STR, address, line=self.line)

        if len(codes) != 1:
            raise LexicalError(
                "empty character literal" if not codes
                else "multi-character character literal",
                SourceLocation(self.filename, start_line),
                hint="character literals hold exactly one character",
                source_line=self.line_text(start_line),
            )
        return Token(Tok.NUM, codes[0], line=self.line)
