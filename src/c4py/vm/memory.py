"""
Guest Memory for the c4py Virtual Machine
=========================================

One flat, byte addressed guest address space holds everything a running
program can point at:

    0x0000 - DATA_BASE-1        unmapped (null pointer faults)
    DATA_BASE - heap_base-1     data segment (strings, globals)
    heap_base - stack_base-1    malloc() heap, then argv strings
    stack_base - size-1         operand/call stack, grows downward

Words are WORD_SIZE bytes, little-endian, two's complement. Loads of a
whole word sign-extend to a Python int; stores wrap to the word width.

The heap is a first-fit free-list allocator over its region. Block sizes
are rounded up to a word so every pointer malloc() returns is word aligned.
"""

import logging
from typing import Optional

from c4py.errors import C4RuntimeError, MemoryAccessError, SyscallError
from c4py.vm.opcodes import WORD_SIZE
from c4py.vm.program import DATA_BASE

logger = logging.getLogger(__name__)


WORD_BITS = WORD_SIZE * 8
WORD_MASK = (1 << WORD_BITS) - 1
SIGN_BIT = 1 << (WORD_BITS - 1)


def to_signed(value: int) -> int:
    """Wrap an arbitrary Python int to a signed machine word."""
    value &= WORD_MASK
    return value - (1 << WORD_BITS) if value & SIGN_BIT else value


def align_up(value: int, alignment: int = WORD_SIZE) -> int:
    """Round value up to a multiple of alignment."""
    return (value + alignment - 1) & -alignment


class Memory:
    """
    Flat guest memory with bounds-checked access.

    Attributes:
        size: Total size of the address space in bytes
        stack_base: Lowest address of the stack region
    """

    def __init__(self, size: int, stack_size: int, data: bytes = b""):
        """
        Initialize memory and load the data segment.

        Args:
            size: Address space size in bytes
            stack_size: Bytes reserved at the top for the stack
            data: Data segment contents, loaded at DATA_BASE
        """
        self.size = align_up(size)
        self.stack_base = self.size - align_up(stack_size)
        heap_base = align_up(DATA_BASE + len(data))
        if heap_base >= self.stack_base:
            raise C4RuntimeError("data segment does not fit in guest memory")

        self._data = bytearray(self.size)
        self._data[DATA_BASE:DATA_BASE + len(data)] = data
        self.heap = Heap(heap_base, self.stack_base)

    # =========================================================================
    # Bounds Checking
    # =========================================================================

    def _check(self, address: int, size: int) -> None:
        if address < DATA_BASE or address + size > self.size:
            raise MemoryAccessError(address, size)

    # =========================================================================
    # Scalar Access
    # =========================================================================

    def read_word(self, address: int) -> int:
        """Read a signed word."""
        self._check(address, WORD_SIZE)
        return int.from_bytes(
            self._data[address:address + WORD_SIZE], "little", signed=True
        )

    def write_word(self, address: int, value: int) -> None:
        """Write a word, wrapping value to the word width."""
        self._check(address, WORD_SIZE)
        self._data[address:address + WORD_SIZE] = (value & WORD_MASK).to_bytes(
            WORD_SIZE, "little"
        )

    def read_char(self, address: int) -> int:
        """Read a byte, sign-extended like a C char."""
        self._check(address, 1)
        value = self._data[address]
        return value - 0x100 if value & 0x80 else value

    def write_char(self, address: int, value: int) -> None:
        """Write the low byte of value."""
        self._check(address, 1)
        self._data[address] = value & 0xFF

    # =========================================================================
    # Block Access
    # =========================================================================

    def read_bytes(self, address: int, count: int) -> bytes:
        """Read count raw bytes."""
        if count <= 0:
            return b""
        self._check(address, count)
        return bytes(self._data[address:address + count])

    def write_bytes(self, address: int, payload: bytes) -> None:
        """Write raw bytes starting at address."""
        if not payload:
            return
        self._check(address, len(payload))
        self._data[address:address + len(payload)] = payload

    def read_cstring(self, address: int) -> bytes:
        """Read a NUL-terminated string (terminator not included)."""
        self._check(address, 1)
        end = self._data.find(0, address)
        if end == -1:
            raise MemoryAccessError(address, self.size - address)
        return bytes(self._data[address:end])

    def fill(self, address: int, value: int, count: int) -> None:
        """Set count bytes to the low byte of value (memset)."""
        if count <= 0:
            return
        self._check(address, count)
        self._data[address:address + count] = bytes([value & 0xFF]) * count

    def compare(self, first: int, second: int, count: int) -> int:
        """
        Compare two byte ranges like memcmp().

        Returns the difference of the first differing pair of bytes (as
        unsigned values), or 0 if the ranges are equal.
        """
        left = self.read_bytes(first, count)
        right = self.read_bytes(second, count)
        for x, y in zip(left, right):
            if x != y:
                return x - y
        return 0


# =============================================================================
# Heap Allocator
# =============================================================================

class Heap:
    """
    First-fit allocator backing the malloc() and free() syscalls.

    Free space is kept as a sorted list of (address, size) blocks; freed
    blocks are merged with their neighbours. Live allocations are tracked
    by address so free() can reject pointers it never returned.
    """

    def __init__(self, base: int, limit: int):
        self.base = base
        self.limit = limit
        self._free: list[tuple[int, int]] = [(base, limit - base)]
        self._live: dict[int, int] = {}

    def malloc(self, size: int) -> int:
        """Allocate size bytes. Returns 0 when the heap is exhausted."""
        if size < 0:
            return 0
        size = align_up(max(size, 1))
        for index, (address, available) in enumerate(self._free):
            if available < size:
                continue
            if available == size:
                del self._free[index]
            else:
                self._free[index] = (address + size, available - size)
            self._live[address] = size
            return address

        logger.debug(f"malloc({size}) failed: heap exhausted")
        return 0

    def free(self, address: int) -> None:
        """Release a block returned by malloc(). free(0) is a no-op."""
        if address == 0:
            return
        size = self._live.pop(address, None)
        if size is None:
            raise SyscallError(f"free() of unallocated pointer 0x{address:X}")

        self._free.append((address, size))
        self._free.sort()
        merged: list[tuple[int, int]] = []
        for start, length in self._free:
            if merged and merged[-1][0] + merged[-1][1] == start:
                merged[-1] = (merged[-1][0], merged[-1][1] + length)
            else:
                merged.append((start, length))
        self._free = merged

    def allocated(self, address: int) -> Optional[int]:
        """Size of the live block at address, or None."""
        return self._live.get(address)

    @property
    def bytes_in_use(self) -> int:
        """Total bytes currently handed out."""
        return sum(self._live.values())
