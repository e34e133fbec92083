"""
c4py Virtual Machine
====================

A stack machine with one accumulator register that runs compiled
programs.

Components
----------
- **opcodes**: the instruction set and word size
- **program**: the Program container, disassembly and source listings
- **memory**: flat guest memory (data, heap, stack) and the heap allocator
- **syscalls**: host bridge for open/read/close/printf/malloc/free/
  memset/memcmp
- **machine**: the interpreter loop

Quick Start
-----------
>>> from c4py.compiler import compile_c
>>> from c4py.vm import VirtualMachine
>>> vm = VirtualMachine(compile_c('int main() { return 6 * 7; }'))
>>> vm.run()
42
"""

from c4py.vm.opcodes import Opcode, SYSCALLS, WORD_SIZE, decode
from c4py.vm.program import DATA_BASE, Program
from c4py.vm.memory import Heap, Memory
from c4py.vm.syscalls import SyscallBridge
from c4py.vm.machine import VMOptions, VMState, VirtualMachine, execute

__all__ = [
    "Opcode",
    "SYSCALLS",
    "WORD_SIZE",
    "decode",
    "DATA_BASE",
    "Program",
    "Heap",
    "Memory",
    "SyscallBridge",
    "VMOptions",
    "VMState",
    "VirtualMachine",
    "execute",
]
