"""
c4py Error Hierarchy
====================

This module defines the root of the exception hierarchy for c4py and the
runtime faults raised by the virtual machine. Compile-time errors live in
:mod:`c4py.compiler.errors` and share the same root, so callers can catch
everything with a single except clause if desired.

Exception Hierarchy
-------------------
C4Error (base)
├── CompileError (see c4py.compiler.errors)
└── C4RuntimeError - execution fault inside the virtual machine
    ├── InvalidOpcodeError - unknown opcode or PC outside the code region
    ├── MemoryAccessError - load/store outside mapped guest memory
    ├── ArithmeticFault - division or modulo by zero
    └── SyscallError - malformed or unresolvable syscall

Runtime faults carry the address of the faulting instruction. Faults raised
deep inside memory or syscall helpers don't know the PC; the interpreter
loop attaches it with :meth:`C4RuntimeError.at` before re-raising.

Error messages follow this format:
    runtime error at 17: memory access out of bounds at 0x0 (8 bytes)
"""

from dataclasses import dataclass
from typing import Optional


# =============================================================================
# Base Exception Class
# =============================================================================

class C4Error(Exception):
    """
    Base exception for all c4py errors.

    Both compilation and execution errors inherit from this class:

        try:
            status = execute(compile_c(source))
        except C4Error as e:
            print(f"Error: {e}")
    """
    pass


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    The compiler only tracks lines (the lexer is a pull lexer without a
    column cursor), so a location is a filename plus a 1-indexed line.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
    """
    filename: str
    line: int

    def __str__(self) -> str:
        """Format as 'filename:line' for error messages."""
        return f"{self.filename}:{self.line}"


# =============================================================================
# Runtime Exceptions
# =============================================================================

class C4RuntimeError(C4Error):
    """
    Base exception for faults raised while executing a program.

    Attributes:
        message: The fault description
        pc: Code address of the faulting instruction (None until attached)
    """

    def __init__(self, message: str, pc: Optional[int] = None):
        self.message = message
        self.pc = pc
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.pc is None:
            return f"runtime error: {self.message}"
        return f"runtime error at {self.pc}: {self.message}"

    def at(self, pc: int) -> "C4RuntimeError":
        """Attach the faulting instruction address and return self."""
        self.pc = pc
        self.args = (self._format_message(),)
        return self


class InvalidOpcodeError(C4RuntimeError):
    """
    Unknown opcode, or the program counter left the code region.

    Raised when a jump lands outside the program or a word that is not a
    valid opcode is fetched in opcode position.
    """

    def __init__(self, opcode: int, pc: Optional[int] = None):
        self.opcode = opcode
        super().__init__(f"unknown instruction {opcode}", pc)


class MemoryAccessError(C4RuntimeError):
    """
    Guest memory access outside the mapped address space.

    The first DATA_BASE bytes are never mapped, so dereferencing a null
    pointer lands here too.
    """

    def __init__(self, address: int, size: int = 1, pc: Optional[int] = None):
        self.address = address
        self.size = size
        super().__init__(
            f"memory access out of bounds at 0x{address:X} ({size} bytes)", pc
        )


class ArithmeticFault(C4RuntimeError):
    """Division or modulo by zero."""
    pass


class SyscallError(C4RuntimeError):
    """
    A syscall could not be performed.

    Examples:
        - printf not followed by an ADJ giving its argument count
        - free() of a pointer the heap never handed out
    """
    pass
