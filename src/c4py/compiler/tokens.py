"""
Token Kinds
===========

One closed enumeration covers every token the lexer produces: literals,
identifiers, keywords, operators and punctuation.

Operator Precedence
-------------------
Binary and postfix operators carry an explicit precedence rank. The
expression compiler keeps consuming operators while the current token's
rank is at least the minimum level it was called with, so every
non-operator token (rank 0) ends an expression.

| Rank | Token   | Operator     | Right operand parsed at |
|------|---------|--------------|-------------------------|
| 1    | ASSIGN  | =            | ASSIGN (right assoc.)   |
| 2    | COND    | ? :          | ASSIGN / COND           |
| 3    | LOR     | ||           | LAN                     |
| 4    | LAN     | &&           | OR                      |
| 5    | OR      | |            | XOR                     |
| 6    | XOR     | ^            | AND                     |
| 7    | AND     | &            | EQ                      |
| 8-9  | EQ NE   | == !=        | LT                      |
| 10-13| LT GT LE GE | < > <= >=| SHL                     |
| 14-15| SHL SHR | << >>        | ADD                     |
| 16-17| ADD SUB | + -          | MUL                     |
| 18-20| MUL DIV MOD | * / %    | INC                     |
| 21-22| INC DEC | ++ -- (postfix) | -                    |
| 23   | BRAK    | [ ]          | ASSIGN                  |

The ordering is significant: ranks within a tier are distinct but every
comparison against a tier's lowest rank treats the tier as one level.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class Tok(Enum):
    """Token kinds produced by the lexer."""

    # === Structural ===
    EOF = auto()

    # === Literals and names ===
    NUM = auto()            # integer or character literal
    STR = auto()            # string literal (value: guest address)
    ID = auto()             # identifier (symbol: table index)

    # === Keywords ===
    CHAR = auto()           # char, void
    ELSE = auto()
    ENUM = auto()
    IF = auto()
    INT = auto()
    RETURN = auto()
    SIZEOF = auto()
    WHILE = auto()

    # === Operators (in precedence order) ===
    ASSIGN = auto()         # =
    COND = auto()           # ?
    LOR = auto()            # ||
    LAN = auto()            # &&
    OR = auto()             # |
    XOR = auto()            # ^
    AND = auto()            # &
    EQ = auto()             # ==
    NE = auto()             # !=
    LT = auto()             # <
    GT = auto()             # >
    LE = auto()             # <=
    GE = auto()             # >=
    SHL = auto()            # <<
    SHR = auto()            # >>
    ADD = auto()            # +
    SUB = auto()            # -
    MUL = auto()            # *
    DIV = auto()            # /
    MOD = auto()            # %
    INC = auto()            # ++
    DEC = auto()            # --
    BRAK = auto()           # [

    # === Punctuation ===
    SEMI = auto()           # ;
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    RBRACKET = auto()       # ]
    COMMA = auto()          # ,
    COLON = auto()          # :
    NOT = auto()            # !
    TILDE = auto()          # ~

    @property
    def precedence(self) -> int:
        """Binding rank of the operator, 0 for anything that isn't one."""
        return PRECEDENCE.get(self, 0)

    @property
    def text(self) -> str:
        """Source spelling, for error messages."""
        return SPELLING.get(self, self.name.lower())


# Operators from loosest to tightest binding.
OPERATORS: tuple[Tok, ...] = (
    Tok.ASSIGN, Tok.COND, Tok.LOR, Tok.LAN, Tok.OR, Tok.XOR, Tok.AND,
    Tok.EQ, Tok.NE, Tok.LT, Tok.GT, Tok.LE, Tok.GE, Tok.SHL, Tok.SHR,
    Tok.ADD, Tok.SUB, Tok.MUL, Tok.DIV, Tok.MOD, Tok.INC, Tok.DEC, Tok.BRAK,
)

PRECEDENCE: dict[Tok, int] = {tok: rank for rank, tok in enumerate(OPERATORS, 1)}


# =============================================================================
# Keyword Mapping
# =============================================================================

KEYWORDS: dict[str, Tok] = {
    "char": Tok.CHAR,
    "else": Tok.ELSE,
    "enum": Tok.ENUM,
    "if": Tok.IF,
    "int": Tok.INT,
    "return": Tok.RETURN,
    "sizeof": Tok.SIZEOF,
    "while": Tok.WHILE,
    "void": Tok.CHAR,       # void is compiled as char
}


# =============================================================================
# Operator Spellings
# =============================================================================

# Two-character operators, tried before the single-character table.
DOUBLE_CHAR: dict[str, Tok] = {
    "==": Tok.EQ,
    "!=": Tok.NE,
    "<=": Tok.LE,
    ">=": Tok.GE,
    "<<": Tok.SHL,
    ">>": Tok.SHR,
    "&&": Tok.LAN,
    "||": Tok.LOR,
    "++": Tok.INC,
    "--": Tok.DEC,
}

SINGLE_CHAR: dict[str, Tok] = {
    "=": Tok.ASSIGN,
    "?": Tok.COND,
    "|": Tok.OR,
    "^": Tok.XOR,
    "&": Tok.AND,
    "<": Tok.LT,
    ">": Tok.GT,
    "+": Tok.ADD,
    "-": Tok.SUB,
    "*": Tok.MUL,
    "/": Tok.DIV,
    "%": Tok.MOD,
    "[": Tok.BRAK,
    ";": Tok.SEMI,
    "{": Tok.LBRACE,
    "}": Tok.RBRACE,
    "(": Tok.LPAREN,
    ")": Tok.RPAREN,
    "]": Tok.RBRACKET,
    ",": Tok.COMMA,
    ":": Tok.COLON,
    "!": Tok.NOT,
    "~": Tok.TILDE,
}

SPELLING: dict[Tok, str] = {
    **{tok: text for text, tok in DOUBLE_CHAR.items()},
    **{tok: text for text, tok in SINGLE_CHAR.items()},
    Tok.EOF: "end of input",
    Tok.NUM: "number",
    Tok.STR: "string literal",
    Tok.ID: "identifier",
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    One lexed token.

    Tokens are transient: the compiler only ever holds the current one.

    Attributes:
        kind: The Tok classification
        value: Numeric payload (NUM value, STR guest address)
        symbol: Symbol table index for identifiers and keywords
        line: Line the token ends on
    """
    kind: Tok
    value: int = 0
    symbol: Optional[int] = None
    line: int = 0

    def __repr__(self) -> str:
        if self.kind in (Tok.NUM, Tok.STR):
            return f"Token({self.kind.name}, {self.value}, line {self.line})"
        if self.symbol is not None:
            return f"Token({self.kind.name}, #{self.symbol}, line {self.line})"
        return f"Token({self.kind.name}, line {self.line})"
