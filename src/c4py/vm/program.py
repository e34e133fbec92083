"""
Compiled Program Container
==========================

A Program is the artifact the compiler produces and the virtual machine
runs. It has two regions:

- **code**: ordered machine words. Each instruction is an opcode word,
  optionally followed by one operand word. Code addresses are indexes into
  this list and are used as jump and call targets.
- **data**: a byte buffer with string literal bytes and global variable
  words. The buffer is loaded at guest address DATA_BASE, so data offset
  ``n`` is guest address ``DATA_BASE + n``. Offsets are stable once written.

The compiler builds a Program through :meth:`emit` and friends; after
compilation the Program is treated as read-only and the VM works on its
own copy of the code.

Disassembly
-----------
>>> program.disassemble()
['0: ENT 0', '2: IMM 42', '4: LEV']
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional

from c4py.vm.opcodes import Opcode, WORD_SIZE, decode


# Guest address of the first data segment byte. Everything below it is
# unmapped, so null pointer dereferences fault.
DATA_BASE = 0x1000


@dataclass
class Program:
    """
    Code and data produced by one compilation.

    Attributes:
        code: Instruction words (opcodes and operands)
        data: Data segment bytes, loaded at DATA_BASE
        entry: Code address of main()
        functions: Name to code address of every compiled function
        line_marks: (line, code length when that line ended) pairs, used to
                    interleave source lines with their instructions
    """
    code: list[int] = field(default_factory=list)
    data: bytearray = field(default_factory=bytearray)
    entry: Optional[int] = None
    functions: dict[str, int] = field(default_factory=dict)
    line_marks: list[tuple[int, int]] = field(default_factory=list)

    # =========================================================================
    # Emission (used by the compiler)
    # =========================================================================

    def emit(self, word: int) -> int:
        """Append one code word and return its address."""
        self.code.append(int(word))
        return len(self.code) - 1

    def patch(self, address: int, word: int) -> None:
        """Overwrite a previously emitted word (jump backpatching)."""
        self.code[address] = int(word)

    @property
    def here(self) -> int:
        """Address the next emitted word will get."""
        return len(self.code)

    def append_data(self, value: int) -> None:
        """Append one byte to the data segment."""
        self.data.append(value & 0xFF)

    def align_data(self) -> None:
        """
        Pad the data segment to the next word boundary.

        Always advances by at least one byte, which leaves the NUL
        terminator after a string literal.
        """
        size = len(self.data)
        aligned = (size + WORD_SIZE) & -WORD_SIZE
        self.data.extend(bytes(aligned - size))

    def allocate_word(self) -> int:
        """Reserve one zeroed word in the data segment, return its address."""
        address = DATA_BASE + len(self.data)
        self.data.extend(bytes(WORD_SIZE))
        return address

    def data_address(self) -> int:
        """Guest address of the next data byte."""
        return DATA_BASE + len(self.data)

    # =========================================================================
    # Inspection
    # =========================================================================

    def instructions(
        self, start: int = 0, end: Optional[int] = None
    ) -> Iterator[tuple[int, Optional[Opcode], Optional[int]]]:
        """
        Walk the code region instruction by instruction.

        Yields:
            (address, opcode, operand) triples. The opcode is None for a
            word that doesn't decode; operand is None for bare opcodes.
        """
        end = len(self.code) if end is None else min(end, len(self.code))
        address = start
        while address < end:
            op = decode(self.code[address])
            if op is not None and op.has_operand and address + 1 < len(self.code):
                yield address, op, self.code[address + 1]
                address += 2
            else:
                yield address, op, None
                address += 1

    def disassemble(self, start: int = 0, end: Optional[int] = None) -> list[str]:
        """Return one 'address: MNEMONIC [operand]' line per instruction."""
        lines = []
        for address, op, operand in self.instructions(start, end):
            if op is None:
                lines.append(f"{address}: .word {self.code[address]}")
            elif operand is None:
                lines.append(f"{address}: {op.name}")
            else:
                lines.append(f"{address}: {op.name} {operand}")
        return lines

    def listing(self, source: str) -> list[str]:
        """
        Interleave source lines with the instructions emitted for them.

        Each source line is printed as '<line>: <text>', followed by the
        instructions the compiler emitted while that line was current.
        """
        output = []
        lines = source.splitlines()
        start = 0
        for line_no, end in self.line_marks:
            text = lines[line_no - 1] if 0 < line_no <= len(lines) else ""
            output.append(f"{line_no}: {text}")
            output.extend(f"    {row}" for row in self.disassemble(start, end))
            start = max(start, end)
        if start < len(self.code):
            output.extend(f"    {row}" for row in self.disassemble(start))
        return output
