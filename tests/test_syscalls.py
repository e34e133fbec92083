"""
Syscall Bridge Test Suite
=========================

Tests for printf formatting, the guest heap, memset/memcmp and host file
access, through compiled programs and through the bridge directly.
"""

import io

import pytest

from c4py.compiler import compile_c
from c4py.errors import SyscallError
from c4py.vm import DATA_BASE, Heap, Memory, SyscallBridge, execute


def run(source: str, argv=()) -> tuple[int, str]:
    """Compile and run source, returning (status, printed text)."""
    out = io.StringIO()
    status = execute(compile_c(source), argv, stdout=out)
    return status, out.getvalue()


# =============================================================================
# printf
# =============================================================================

class TestPrintf:
    """Formatted output."""

    def test_hello(self):
        """A plain string is printed as-is."""
        status, out = run('int main() { printf("hello, world\\n"); return 0; }')
        assert status == 0
        assert out == "hello, world\n"

    def test_conversions(self):
        """Integer, hex, char, string, width and flags."""
        _, out = run(
            'int main() { printf("%d %x %c %s|%5d|%-3d|%%\\n", -12, 255, 65, "ok", 42, 7); }'
        )
        assert out == "-12 ff A ok|   42|7  |%\n"

    def test_unsigned_and_octal(self):
        """%u and %o treat the word as unsigned."""
        _, out = run('int main() { printf("%u %o %X", -1, 8, 48879); }')
        assert out == "18446744073709551615 10 BEEF"

    def test_alternate_form(self):
        """'#' gives C's 010 and 0xff, and no prefix for zero."""
        _, out = run('int main() { printf("%#o %#x %#X %#o %#x", 8, 255, 255, 0, 0); }')
        assert out == "010 0xff 0XFF 0 0"

    def test_alternate_form_padding(self):
        """Width pads around the prefix; the 0 flag pads after it."""
        _, out = run('int main() { printf("[%#6o][%#-6x][%#06x]", 8, 255, 255); }')
        assert out == "[   010][0xff  ][0x00ff]"

    def test_zero_padding_and_precision(self):
        """0 flag and precision work like C."""
        _, out = run('int main() { printf("%05d %.3d", 42, 7); }')
        assert out == "00042 007"

    def test_returns_length(self):
        """printf returns the number of characters written."""
        status, _ = run('int main() { return printf("abc%d", 10); }')
        assert status == 5

    def test_too_few_arguments(self):
        """A conversion without an argument faults."""
        with pytest.raises(SyscallError):
            run('int main() { printf("%d %d", 1); }')

    def test_format_direct(self):
        """SyscallBridge.format expands against explicit arguments."""
        memory = Memory(0x10000, 0x1000, b"[%3d]\0")
        bridge = SyscallBridge(memory)
        assert bridge.format(DATA_BASE, [5]) == "[  5]"


# =============================================================================
# Heap
# =============================================================================

class TestHeap:
    """malloc and free, in the guest and on the allocator."""

    def test_malloc_and_use(self):
        """Allocated memory is usable through pointers."""
        status, _ = run(
            "int main() { int *p; p = malloc(16); *p = 7; p[1] = 8; "
            "return *p + p[1]; }"
        )
        assert status == 15

    def test_free_allows_reuse(self):
        """A freed block is handed out again."""
        status, _ = run(
            "int main() { int p, q; p = malloc(32); free(p); q = malloc(32); "
            "return p == q; }"
        )
        assert status == 1

    def test_free_null(self):
        """free(0) is a no-op."""
        status, _ = run("int main() { free(0); return 3; }")
        assert status == 3

    def test_free_invalid_pointer(self):
        """Freeing a pointer malloc never returned faults."""
        with pytest.raises(SyscallError):
            run("int main() { free(12345); return 0; }")

    def test_first_fit(self):
        """Blocks are carved from the lowest free address."""
        heap = Heap(0x2000, 0x3000)
        first = heap.malloc(10)
        second = heap.malloc(8)
        assert first == 0x2000
        assert second == 0x2010
        heap.free(first)
        assert heap.malloc(8) == 0x2000

    def test_merging(self):
        """Adjacent free blocks merge back into one."""
        heap = Heap(0x2000, 0x2040)
        blocks = [heap.malloc(16) for _ in range(4)]
        for block in blocks:
            heap.free(block)
        assert heap.malloc(64) == 0x2000

    def test_exhaustion(self):
        """malloc returns 0 when nothing fits, and for negative sizes."""
        heap = Heap(0x2000, 0x2100)
        assert heap.malloc(0x1000) == 0
        assert heap.malloc(-1) == 0

    def test_bytes_in_use(self):
        """Live allocations are accounted in aligned sizes."""
        heap = Heap(0x2000, 0x3000)
        address = heap.malloc(3)
        assert heap.allocated(address) == 8
        assert heap.bytes_in_use == 8


# =============================================================================
# memset / memcmp
# =============================================================================

class TestMemoryCalls:
    """Block fill and compare."""

    def test_memcmp_difference(self):
        """memcmp returns the first byte difference."""
        status, _ = run(
            "int main() { char *a, *b; a = malloc(8); b = malloc(8); "
            "memset(a, 65, 8); memset(b, 65, 8); b[3] = 66; "
            "return memcmp(a, b, 8); }"
        )
        assert status == -1

    def test_memcmp_equal(self):
        """Equal ranges compare as 0."""
        status, _ = run(
            'int main() { return memcmp("abc", "abc", 3); }'
        )
        assert status == 0

    def test_memset_returns_pointer(self):
        """memset returns its destination."""
        status, _ = run(
            "int main() { char *a; a = malloc(8); return memset(a, 0, 8) == a; }"
        )
        assert status == 1


# =============================================================================
# Files
# =============================================================================

class TestFiles:
    """open, read and close against host files."""

    READER = """
    int main(int argc, char **argv) {
        int fd, n;
        char *buf;
        buf = malloc(64);
        fd = open(argv[1], 0);
        if (fd < 0) return 99;
        n = read(fd, buf, 63);
        buf[n] = 0;
        printf("%s", buf);
        close(fd);
        return n;
    }
    """

    def test_read_file(self, tmp_path):
        """A file named on the command line is read into guest memory."""
        path = tmp_path / "input.txt"
        path.write_text("hello")
        status, out = run(self.READER, ["reader", str(path)])
        assert status == 5
        assert out == "hello"

    def test_open_missing_file(self, tmp_path):
        """open() of a missing file returns -1."""
        status, _ = run(self.READER, ["reader", str(tmp_path / "missing")])
        assert status == 99

    def test_close_unknown_descriptor(self):
        """close() of a descriptor the guest never opened returns -1."""
        status, _ = run("int main() { return close(1234); }")
        assert status == -1
