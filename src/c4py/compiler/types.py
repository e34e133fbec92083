"""
Type Lattice
============

Types are plain integers rather than objects:

    CHAR = 0          char
    INT  = 1          int
    CHAR + PTR = 2    char *
    INT  + PTR = 3    int *
    CHAR + 2*PTR = 4  char **
    ...

Adding PTR raises the indirection level by one, subtracting it
dereferences. Only the base type of the final pointee matters for pointer
arithmetic: stepping a ``char *`` moves one byte, stepping anything above
it (``int *``, ``char **``, ...) moves one word.
"""

from c4py.vm.opcodes import WORD_SIZE

CHAR = 0
INT = 1
PTR = 2


def pointer_to(ctype: int) -> int:
    """Type of a pointer to ctype."""
    return ctype + PTR


def size_of(ctype: int) -> int:
    """Storage size: one byte for char, one word for everything else."""
    return 1 if ctype == CHAR else WORD_SIZE


def element_size(ctype: int) -> int:
    """Step of pointer arithmetic on ctype (1 for char * and non-pointers)."""
    return WORD_SIZE if ctype > PTR else 1


def type_name(ctype: int) -> str:
    """
    C spelling of a type, for diagnostics.

    >>> type_name(INT + 2 * PTR)
    'int **'
    """
    base = "char" if ctype % PTR == CHAR else "int"
    stars = ctype // PTR
    return base + (" " + "*" * stars if stars else "")
