"""
Syscall Bridge
==============

Host side of the syscall opcodes. A call like ``printf("%d\\n", x)``
compiles to: push each argument, execute PRTF, then ``ADJ 2``. When PRTF
runs, the arguments are still on the guest stack with the *last* argument
on top, so argument ``i`` of ``n`` lives at ``sp + (n - 1 - i) * WORD_SIZE``.

| Opcode | C call                  | Host operation           |
|--------|-------------------------|--------------------------|
| OPEN   | open(path, flags)       | os.open                  |
| READ   | read(fd, buf, n)        | os.read into guest bytes |
| CLOS   | close(fd)               | os.close                 |
| PRTF   | printf(fmt, ...)        | formatted text to stdout |
| MALC   | malloc(n)               | guest heap allocation    |
| FREE   | free(p)                 | guest heap release       |
| MSET   | memset(p, c, n)         | fill guest bytes         |
| MCMP   | memcmp(p, q, n)         | compare guest bytes      |
| EXIT   | exit(status)            | handled by the VM loop   |

Failed host file operations return -1 to the guest, as the C library
calls do; they are not faults.
"""

import logging
import os
import re
import sys
from typing import Optional, TextIO

from c4py.errors import SyscallError
from c4py.vm.memory import Memory, WORD_MASK
from c4py.vm.opcodes import Opcode, WORD_SIZE

logger = logging.getLogger(__name__)


# One printf conversion: flags, width, precision, length modifier, type.
FORMAT_SPEC = re.compile(
    r"%(?P<flags>[-+ #0]*)(?P<width>\d*)(?:\.(?P<precision>\d*))?"
    r"(?:hh|h|ll|l|z)?(?P<conv>[diouxXcsp%])"
)


def _alternate_form(match: re.Match, value: int) -> str:
    """
    Format an unsigned %o, %x or %X conversion the way C does.

    With '#', octal gets a single leading zero and hex gets 0x/0X, but
    only for nonzero values.
    """
    conv = match.group("conv")
    flags = match.group("flags")
    precision = match.group("precision")
    width = int(match.group("width") or 0)

    spec = "%" if precision is None else "%." + (precision or "0")
    digits = (spec + conv) % value
    prefix = ""
    if "#" in flags and value:
        if conv == "o":
            if not digits.startswith("0"):
                digits = "0" + digits
        else:
            prefix = "0" + conv

    if "-" in flags:
        return (prefix + digits).ljust(width)
    if "0" in flags and precision is None:
        return prefix + digits.rjust(width - len(prefix), "0")
    return (prefix + digits).rjust(width)


class SyscallBridge:
    """
    Executes syscall opcodes against guest memory and the host.

    Attributes:
        memory: Guest memory the arguments point into
        stdout: Text stream printf() writes to (defaults to sys.stdout)
    """

    def __init__(self, memory: Memory, stdout: Optional[TextIO] = None):
        self.memory = memory
        self._stdout = stdout
        # Only descriptors the guest opened may be read or closed.
        self._open_fds: set[int] = set()

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    def _arg(self, sp: int, index: int, count: int) -> int:
        """Argument `index` (0-based, left to right) of a `count`-arg call."""
        return self.memory.read_word(sp + (count - 1 - index) * WORD_SIZE)

    # =========================================================================
    # Dispatch
    # =========================================================================

    def call(self, op: Opcode, sp: int, argc: Optional[int] = None) -> int:
        """
        Perform one syscall and return the value left in the accumulator.

        Args:
            op: Syscall opcode (OPEN..MCMP)
            sp: Guest stack pointer at the time of the call
            argc: Pushed argument count, needed by PRTF only

        Raises:
            SyscallError: If the opcode is not a bridged syscall
        """
        match op:
            case Opcode.OPEN:
                return self.open(self._arg(sp, 0, 2), self._arg(sp, 1, 2))
            case Opcode.READ:
                return self.read(
                    self._arg(sp, 0, 3), self._arg(sp, 1, 3), self._arg(sp, 2, 3)
                )
            case Opcode.CLOS:
                return self.close(self._arg(sp, 0, 1))
            case Opcode.PRTF:
                if not argc:
                    raise SyscallError("printf called without a format argument")
                args = [self._arg(sp, i, argc) for i in range(argc)]
                return self.printf(args[0], args[1:])
            case Opcode.MALC:
                return self.memory.heap.malloc(self._arg(sp, 0, 1))
            case Opcode.FREE:
                self.memory.heap.free(self._arg(sp, 0, 1))
                return 0
            case Opcode.MSET:
                pointer = self._arg(sp, 0, 3)
                self.memory.fill(pointer, self._arg(sp, 1, 3), self._arg(sp, 2, 3))
                return pointer
            case Opcode.MCMP:
                return self.memory.compare(
                    self._arg(sp, 0, 3), self._arg(sp, 1, 3), self._arg(sp, 2, 3)
                )
            case _:
                raise SyscallError(f"unresolved syscall {op!r}")

    # =========================================================================
    # File Operations
    # =========================================================================

    def open(self, path_address: int, flags: int) -> int:
        """Open a host file. Returns the descriptor or -1."""
        path = self.memory.read_cstring(path_address)
        try:
            fd = os.open(path, flags)
        except OSError as e:
            logger.debug(f"open({path!r}, {flags}) failed: {e}")
            return -1
        self._open_fds.add(fd)
        return fd

    def read(self, fd: int, buffer: int, count: int) -> int:
        """Read up to count bytes into guest memory. Returns bytes read or -1."""
        if fd not in self._open_fds and fd != 0:
            return -1
        try:
            payload = os.read(fd, max(count, 0))
        except OSError as e:
            logger.debug(f"read({fd}, {count}) failed: {e}")
            return -1
        self.memory.write_bytes(buffer, payload)
        return len(payload)

    def close(self, fd: int) -> int:
        """Close a descriptor the guest opened. Returns 0 or -1."""
        if fd not in self._open_fds:
            return -1
        self._open_fds.discard(fd)
        try:
            os.close(fd)
        except OSError:
            return -1
        return 0

    def close_all(self) -> None:
        """Close every descriptor the guest left open."""
        for fd in sorted(self._open_fds):
            try:
                os.close(fd)
            except OSError:
                pass
        self._open_fds.clear()

    # =========================================================================
    # Formatted Output
    # =========================================================================

    def format(self, format_address: int, args: list[int]) -> str:
        """
        Expand a printf format string against word-sized arguments.

        Raises:
            SyscallError: If the format consumes more arguments than pushed
        """
        template = self.memory.read_cstring(format_address).decode("utf-8", errors="replace")
        remaining = iter(args)

        def convert(match: re.Match) -> str:
            conv = match.group("conv")
            if conv == "%":
                return "%"
            try:
                value = next(remaining)
            except StopIteration:
                raise SyscallError(
                    f"printf: too few arguments for format {template!r}"
                ) from None

            spec = "%" + match.group("flags") + match.group("width")
            if match.group("precision") is not None:
                spec += "." + (match.group("precision") or "0")

            match conv:
                case "d" | "i":
                    return (spec + "d") % value
                case "u":
                    return (spec + "d") % (value & WORD_MASK)
                case "o" | "x" | "X":
                    return _alternate_form(match, value & WORD_MASK)
                case "c":
                    return (spec + "c") % chr(value & 0xFF)
                case "s":
                    text = self.memory.read_cstring(value).decode("utf-8", errors="replace")
                    return (spec + "s") % text
                case _:
                    return (spec + "s") % f"0x{value & WORD_MASK:x}"

        return FORMAT_SPEC.sub(convert, template)

    def printf(self, format_address: int, args: list[int]) -> int:
        """Write formatted text to stdout. Returns the character count."""
        text = self.format(format_address, args)
        self.stdout.write(text)
        return len(text)
