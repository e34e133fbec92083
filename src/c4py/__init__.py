"""
c4py - A Self-Contained C Subset Compiler and Virtual Machine
=============================================================

c4py compiles a reduced dialect of C in a single pass into code for a
small stack machine, then runs it.

Main Components
---------------
- **compiler**: lexer, symbol table and the fused parser/code generator
- **vm**: instruction set, program container, guest memory, syscall
  bridge and the interpreter loop
- **cli**: the ``c4py`` command

Quick Start
-----------
Compile and run:
    >>> import c4py
    >>> program = c4py.compile_c('''
    ... int main() {
    ...     printf("hello, world\\n");
    ...     return 0;
    ... }
    ... ''')
    >>> c4py.execute(program)
    hello, world
    0

Or use the command-line tool:
    $ c4py hello.c
    $ c4py -s hello.c        # list source with generated code
    $ c4py -d hello.c        # trace every instruction
"""

__version__ = "1.0.0"

# =============================================================================
# Public API Exports
# =============================================================================

from c4py.errors import (
    C4Error,
    SourceLocation,
    C4RuntimeError,
    InvalidOpcodeError,
    MemoryAccessError,
    ArithmeticFault,
    SyscallError,
)
from c4py.compiler import (
    CompilerOptions,
    compile_c,
    compile_file,
    CompileError,
    LexicalError,
    CSyntaxError,
    UndefinedSymbolError,
    DuplicateDefinitionError,
    InvalidLValueError,
    CTypeError,
    NotAFunctionError,
    MissingMainError,
)
from c4py.vm import Opcode, Program, VMOptions, VirtualMachine, execute

# c4py.compile(source)
compile = compile_c

__all__ = [
    "__version__",
    # Compiler
    "compile",
    "compile_c",
    "compile_file",
    "CompilerOptions",
    # VM
    "execute",
    "Opcode",
    "Program",
    "VMOptions",
    "VirtualMachine",
    # Errors
    "C4Error",
    "SourceLocation",
    "C4RuntimeError",
    "InvalidOpcodeError",
    "MemoryAccessError",
    "ArithmeticFault",
    "SyscallError",
    "CompileError",
    "LexicalError",
    "CSyntaxError",
    "UndefinedSymbolError",
    "DuplicateDefinitionError",
    "InvalidLValueError",
    "CTypeError",
    "NotAFunctionError",
    "MissingMainError",
]
