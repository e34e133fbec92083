"""
Symbol Table
============

Every distinct identifier the lexer sees (keywords, syscalls and user
names alike) gets exactly one Symbol, appended in first-seen order.
Indexes never change once assigned, so the lexer hands the compiler an
index rather than a name.

Symbol Classes
--------------
| Class      | value holds                          |
|------------|--------------------------------------|
| UNBOUND    | nothing yet (seen, not declared)     |
| KEYWORD    | nothing (token kind is in `token`)   |
| SYSCALL    | syscall opcode                       |
| GLOBAL     | absolute guest address               |
| LOCAL      | frame-relative slot number           |
| FUNCTION   | code address of the entry point      |
| ENUM_CONST | the constant                         |

Scoping
-------
There are only two scopes: globals and the body of the function being
compiled. Declaring a parameter or local saves the symbol's current
class, type and value in its ``shadow`` slot and records the index on a
scope list; :meth:`SymbolTable.exit_scope` restores every shadowed symbol
when the function body ends.

Hashing
-------
Names are hashed as ``h = h * 147 + ord(c)`` per character, then
``(h << 6) + len(name)``, wrapped to 32 bits. Lookup goes through a dict
keyed by (hash, name), so a hash match alone never identifies a symbol.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional

from c4py.compiler.tokens import KEYWORDS, Tok
from c4py.compiler.types import INT
from c4py.vm.opcodes import SYSCALLS


class SymbolClass(Enum):
    """Storage class of a symbol."""
    UNBOUND = auto()
    KEYWORD = auto()
    SYSCALL = auto()
    GLOBAL = auto()
    LOCAL = auto()
    FUNCTION = auto()
    ENUM_CONST = auto()


@dataclass(frozen=True)
class SavedAttributes:
    """Class, type and value of a symbol hidden by a local declaration."""
    kind: SymbolClass
    type: int
    value: int


@dataclass
class Symbol:
    """
    One entry of the symbol table.

    Attributes:
        name: Identifier text
        hash: Dispersion value of the name (see symbol_hash)
        token: Token kind the lexer reports for this name
        kind: Storage class
        type: Type lattice value (see c4py.compiler.types)
        value: Class-dependent payload (address, slot, opcode, constant)
        shadow: Outer attributes while a local declaration hides them
    """
    name: str
    hash: int
    token: Tok = Tok.ID
    kind: SymbolClass = SymbolClass.UNBOUND
    type: int = INT
    value: int = 0
    shadow: Optional[SavedAttributes] = None


def symbol_hash(name: str) -> int:
    """Hash a name the way the lexer does while scanning it."""
    value = 0
    for char in name:
        value = (value * 147 + ord(char)) & 0xFFFFFFFF
    return ((value << 6) + len(name)) & 0xFFFFFFFF


class SymbolTable:
    """
    Append-only table of interned identifiers.

    A fresh table already holds the keywords and the syscalls.

    Example:
        >>> table = SymbolTable()
        >>> index = table.intern("count")
        >>> table.intern("count") == index
        True
    """

    def __init__(self):
        self._symbols: list[Symbol] = []
        self._index: dict[tuple[int, str], int] = {}
        self._scope: list[int] = []

        for name, token in KEYWORDS.items():
            symbol = self[self.intern(name)]
            symbol.token = token
            symbol.kind = SymbolClass.KEYWORD

        for name, opcode in SYSCALLS.items():
            symbol = self[self.intern(name)]
            symbol.kind = SymbolClass.SYSCALL
            symbol.type = INT
            symbol.value = int(opcode)

    # =========================================================================
    # Container Protocol
    # =========================================================================

    def __len__(self) -> int:
        return len(self._symbols)

    def __getitem__(self, index: int) -> Symbol:
        return self._symbols[index]

    def __iter__(self) -> Iterator[Symbol]:
        return iter(self._symbols)

    # =========================================================================
    # Interning
    # =========================================================================

    def find(self, hash_value: int, name: str) -> Optional[int]:
        """Index of the symbol with this hash and exact name, or None."""
        return self._index.get((hash_value, name))

    def insert(self, hash_value: int, name: str) -> int:
        """Append a new unbound symbol and return its index."""
        index = len(self._symbols)
        self._symbols.append(Symbol(name=name, hash=hash_value))
        self._index[(hash_value, name)] = index
        return index

    def intern(self, name: str) -> int:
        """Find-or-insert a name; the index is stable for the table's life."""
        hash_value = symbol_hash(name)
        index = self.find(hash_value, name)
        if index is None:
            index = self.insert(hash_value, name)
        return index

    def lookup(self, name: str) -> Optional[Symbol]:
        """Symbol for a name, or None if the name was never seen."""
        index = self.find(symbol_hash(name), name)
        return None if index is None else self._symbols[index]

    # =========================================================================
    # Scoping
    # =========================================================================

    def shadow(self, index: int) -> None:
        """Save a symbol's class, type and value into its shadow slot."""
        symbol = self._symbols[index]
        symbol.shadow = SavedAttributes(symbol.kind, symbol.type, symbol.value)

    def unshadow(self, index: int) -> None:
        """Restore a symbol's attributes from its shadow slot."""
        symbol = self._symbols[index]
        if symbol.shadow is None:
            return
        symbol.kind = symbol.shadow.kind
        symbol.type = symbol.shadow.type
        symbol.value = symbol.shadow.value
        symbol.shadow = None

    def declare_local(self, index: int, ctype: int, slot: int) -> None:
        """Bind a parameter or local of the current function body."""
        self.shadow(index)
        self._scope.append(index)
        symbol = self._symbols[index]
        symbol.kind = SymbolClass.LOCAL
        symbol.type = ctype
        symbol.value = slot

    def exit_scope(self) -> None:
        """Restore every symbol shadowed since the function body began."""
        while self._scope:
            self.unshadow(self._scope.pop())

    @property
    def locals(self) -> list[Symbol]:
        """Symbols currently bound as locals, in declaration order."""
        return [self._symbols[index] for index in self._scope]
