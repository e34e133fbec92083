"""
c4py Instruction Set Definition
===============================

This module defines the instruction set of the c4py stack machine. Every
instruction is one opcode word, optionally followed by one operand word.
Code addresses are word indexes into the program's code sequence.

Machine Model
-------------
- ``a``: accumulator, holds the result of the last expression step
- ``sp``: stack pointer (byte address, grows downward, word aligned)
- ``bp``: frame pointer of the current call
- ``pc``: index of the next code word

Binary operators pop the left operand from the stack and combine it with
the accumulator: ``a = *sp++ OP a``.

Instruction Groups
------------------
1. **Operand instructions** (opcode + 1 operand word):
   LEA n   a = bp + n * WORD_SIZE
   IMM n   a = n
   JMP t   pc = t
   JSR t   push return address, pc = t
   BZ t    if a == 0: pc = t
   BNZ t   if a != 0: pc = t
   ENT n   push bp, bp = sp, sp -= n words
   ADJ n   sp += n words

2. **Frame/memory instructions** (opcode only):
   LEV     sp = bp, bp = pop, pc = pop
   LI, LC  a = *(int *)a, a = *(char *)a
   SI, SC  *(int *)pop = a, *(char *)pop = a
   PSH     push a

3. **Binary operators** (opcode only): OR XOR AND EQ NE LT GT LE GE
   SHL SHR ADD SUB MUL DIV MOD

4. **Syscalls** (opcode only, arguments on the stack, last argument on
   top): OPEN READ CLOS PRTF MALC FREE MSET MCMP EXIT
"""

from enum import IntEnum


# Size in bytes of one machine word (int and pointer width).
WORD_SIZE = 8


# =============================================================================
# Opcode Enumeration
# =============================================================================

class Opcode(IntEnum):
    """
    Stack machine opcodes.

    The numbering is significant: every opcode up to and including ADJ takes
    one operand word, and every opcode from OPEN onward is a syscall.
    """

    # === Operand instructions ===
    LEA = 0
    IMM = 1
    JMP = 2
    JSR = 3
    BZ = 4
    BNZ = 5
    ENT = 6
    ADJ = 7

    # === Frame and memory ===
    LEV = 8
    LI = 9
    LC = 10
    SI = 11
    SC = 12
    PSH = 13

    # === Binary operators ===
    OR = 14
    XOR = 15
    AND = 16
    EQ = 17
    NE = 18
    LT = 19
    GT = 20
    LE = 21
    GE = 22
    SHL = 23
    SHR = 24
    ADD = 25
    SUB = 26
    MUL = 27
    DIV = 28
    MOD = 29

    # === Syscalls ===
    OPEN = 30
    READ = 31
    CLOS = 32
    PRTF = 33
    MALC = 34
    FREE = 35
    MSET = 36
    MCMP = 37
    EXIT = 38

    @property
    def has_operand(self) -> bool:
        """True if this opcode is followed by an operand word."""
        return self <= Opcode.ADJ

    @property
    def is_syscall(self) -> bool:
        """True if this opcode bridges to a host operation."""
        return self >= Opcode.OPEN

    @property
    def is_load(self) -> bool:
        """True for LI/LC, the loads an lvalue leaves as its last instruction."""
        return self in (Opcode.LI, Opcode.LC)

    @property
    def width(self) -> int:
        """Number of code words the instruction occupies."""
        return 2 if self.has_operand else 1


# =============================================================================
# Syscall Table
# =============================================================================
# Maps the C-level name of each syscall to the opcode that performs it.
# The compiler seeds its symbol table from this table, so a call to
# printf(...) compiles to the PRTF opcode followed by ADJ.
# =============================================================================

SYSCALLS: dict[str, Opcode] = {
    "open": Opcode.OPEN,
    "read": Opcode.READ,
    "close": Opcode.CLOS,
    "printf": Opcode.PRTF,
    "malloc": Opcode.MALC,
    "free": Opcode.FREE,
    "memset": Opcode.MSET,
    "memcmp": Opcode.MCMP,
    "exit": Opcode.EXIT,
}


def decode(word: int) -> Opcode | None:
    """Return the Opcode for a code word, or None if it is not one."""
    try:
        return Opcode(word)
    except ValueError:
        return None
