"""
Expression Code Generation Tests
================================

Checks the exact instruction sequences emitted for expressions, and the
compile errors for misuse of lvalues, pointers and names.

Every snippet is compiled as the body of main(), so the code under test
follows main's ENT instruction.
"""

import pytest

from c4py.compiler import compile_c
from c4py.compiler.errors import (
    CSyntaxError,
    CTypeError,
    InvalidLValueError,
    NotAFunctionError,
    UndefinedSymbolError,
)
from c4py.vm.opcodes import Opcode as Op
from c4py.vm.program import DATA_BASE


def body(statements: str, locals_: str = "", prelude: str = "") -> list[int]:
    """Compile main() and return its code after ENT n."""
    program = compile_c(f"{prelude}\nint main() {{ {locals_} {statements} }}")
    code = program.code[program.entry:]
    assert code[0] == Op.ENT
    return code[2:]


# =============================================================================
# Primary Expressions
# =============================================================================

class TestPrimary:
    """Literals, variables and sizeof."""

    def test_number(self):
        """A literal is one IMM."""
        assert body("return 42;") == [Op.IMM, 42, Op.LEV]

    def test_negative_literal(self):
        """Negation of a literal folds into the IMM."""
        assert body("return -5;") == [Op.IMM, -5, Op.LEV]

    def test_negate_variable(self):
        """Negation of a variable multiplies by -1."""
        assert body("return -a;", "int a;") == [
            Op.IMM, -1, Op.PSH, Op.LEA, -1, Op.LI, Op.MUL, Op.LEV,
        ]

    @pytest.mark.parametrize("type_name,size", [
        ("int", 8),
        ("char", 1),
        ("char *", 8),
        ("int **", 8),
    ])
    def test_sizeof(self, type_name, size):
        """sizeof is an IMM of the storage size."""
        assert body(f"return sizeof({type_name});") == [Op.IMM, size, Op.LEV]

    def test_global_load(self):
        """Globals load through their absolute data address."""
        code = body("return x;", prelude="int x;")
        assert code == [Op.IMM, DATA_BASE, Op.LI, Op.LEV]

    def test_char_global_load(self):
        """char variables load with LC."""
        code = body("return c;", prelude="char c;")
        assert code == [Op.IMM, DATA_BASE, Op.LC, Op.LEV]

    def test_enum_constant(self):
        """Enum constants are immediates."""
        code = body("return C;", prelude="enum { A, B = 5, C };")
        assert code == [Op.IMM, 6, Op.LEV]

    def test_string_literal(self):
        """A string literal is an IMM of its data address."""
        program = compile_c('int main() { printf("hi"); }')
        assert program.code[2:] == [
            Op.IMM, DATA_BASE, Op.PSH, Op.PRTF, Op.ADJ, 1, Op.IMM, 0, Op.LEV,
        ]
        assert bytes(program.data) == b"hi" + bytes(6)

    def test_adjacent_string_literals(self):
        """Adjacent literals become one NUL-terminated string."""
        program = compile_c('int main() { printf("ab" "cd"); }')
        assert program.code[2:4] == [Op.IMM, DATA_BASE]
        assert program.code[4] == Op.PSH
        assert bytes(program.data) == b"abcd" + bytes(4)


# =============================================================================
# Lvalues
# =============================================================================

class TestLValues:
    """Address-of, assignment and increments rewrite the trailing load."""

    def test_address_of_drops_load(self):
        """&x leaves the address in the accumulator."""
        code = body("return &x;", prelude="int x;")
        assert code == [Op.IMM, DATA_BASE, Op.LEV]

    def test_assignment(self):
        """x = v turns the load into PSH and stores with SI."""
        code = body("a = 5; return a;", "int a;")
        assert code == [
            Op.LEA, -1, Op.PSH, Op.IMM, 5, Op.SI,
            Op.LEA, -1, Op.LI, Op.LEV,
        ]

    def test_char_assignment(self):
        """char stores use SC."""
        code = body("c = 65;", "char c;")
        assert code[:6] == [Op.LEA, -1, Op.PSH, Op.IMM, 65, Op.SC]

    def test_pre_increment(self):
        """++x reloads through the saved address and stores."""
        code = body("++a;", "int a;")
        assert code[:9] == [
            Op.LEA, -1, Op.PSH, Op.LI, Op.PSH, Op.IMM, 1, Op.ADD, Op.SI,
        ]

    def test_post_increment_yields_old_value(self):
        """x++ stores the new value, then undoes the step in the accumulator."""
        code = body("a++;", "int a;")
        assert code[:13] == [
            Op.LEA, -1, Op.PSH, Op.LI, Op.PSH, Op.IMM, 1, Op.ADD, Op.SI,
            Op.PSH, Op.IMM, 1, Op.SUB,
        ]

    def test_int_pointer_increment_steps_a_word(self):
        """Incrementing an int * moves by the word size."""
        code = body("p++;", "int *p;")
        assert code[4:7] == [Op.PSH, Op.IMM, 8]

    def test_address_of_literal(self):
        """&42 is not an lvalue."""
        with pytest.raises(InvalidLValueError) as exc_info:
            body("return &42;")
        assert "address-of" in exc_info.value.message

    def test_operand_equal_to_load_opcode(self):
        """An IMM operand that equals the LI opcode is not a load."""
        with pytest.raises(InvalidLValueError):
            body(f"return &{int(Op.LI)};")

    def test_assign_to_literal(self):
        """42 = x is rejected."""
        with pytest.raises(InvalidLValueError) as exc_info:
            body("42 = 1;")
        assert exc_info.value.message == "bad lvalue in assignment"

    def test_increment_literal(self):
        """++3 is rejected."""
        with pytest.raises(InvalidLValueError):
            body("++3;")

    def test_post_increment_expression(self):
        """(a + 1)++ is rejected."""
        with pytest.raises(InvalidLValueError):
            body("(a + 1)++;", "int a;")

    def test_assign_to_logical_or(self):
        """(a || b) = 1 ends in b's load but is not an lvalue."""
        with pytest.raises(InvalidLValueError) as exc_info:
            body("(a || b) = 1;", "int a, b;")
        assert exc_info.value.message == "bad lvalue in assignment"

    def test_assign_to_conditional(self):
        """c ? x : y = 1 parses as (c ? x : y) = 1 and is rejected."""
        with pytest.raises(InvalidLValueError):
            body("c ? x : y = 1;", "int c, x, y;")

    def test_address_of_logical_and(self):
        """&(a && b) is rejected."""
        with pytest.raises(InvalidLValueError) as exc_info:
            body("return &(a && b);", "int a, b;")
        assert "address-of" in exc_info.value.message

    def test_increment_logical_and(self):
        """(a && b)++ is rejected."""
        with pytest.raises(InvalidLValueError):
            body("(a && b)++;", "int a, b;")

    def test_assignment_inside_conditional_branch(self):
        """c ? x : (y = 1) assigns to y only."""
        assert body("c ? x : (y = 1);", "int c, x, y;") == [
            Op.LEA, -1, Op.LI, Op.BZ, 12,
            Op.LEA, -2, Op.LI, Op.JMP, 18,
            Op.LEA, -3, Op.PSH, Op.IMM, 1, Op.SI,
            Op.IMM, 0, Op.LEV,
        ]

    def test_dereferenced_conditional_is_lvalue(self):
        """*(c ? p : q) = 1 stores through the selected pointer."""
        code = body("*(c ? p : q) = 1;", "int c, *p, *q;")
        assert code[-7:] == [Op.PSH, Op.IMM, 1, Op.SI, Op.IMM, 0, Op.LEV]


# =============================================================================
# Operators
# =============================================================================

class TestOperators:
    """Binary operators, precedence and pointer arithmetic."""

    def test_precedence(self):
        """* binds tighter than +."""
        assert body("return 1 + 2 * 3;") == [
            Op.IMM, 1, Op.PSH, Op.IMM, 2, Op.PSH, Op.IMM, 3, Op.MUL, Op.ADD,
            Op.LEV,
        ]

    def test_left_associative(self):
        """10 - 3 - 2 groups as (10 - 3) - 2."""
        assert body("return 10 - 3 - 2;") == [
            Op.IMM, 10, Op.PSH, Op.IMM, 3, Op.SUB, Op.PSH, Op.IMM, 2, Op.SUB,
            Op.LEV,
        ]

    def test_int_pointer_addition_scales(self):
        """p + 1 on an int * adds one word."""
        assert body("return p + 1;", "int *p;") == [
            Op.LEA, -1, Op.LI, Op.PSH, Op.IMM, 1,
            Op.PSH, Op.IMM, 8, Op.MUL, Op.ADD, Op.LEV,
        ]

    def test_char_pointer_addition_does_not_scale(self):
        """p + 1 on a char * adds one byte."""
        assert body("return p + 1;", "char *p;") == [
            Op.LEA, -1, Op.LI, Op.PSH, Op.IMM, 1, Op.ADD, Op.LEV,
        ]

    def test_pointer_difference(self):
        """q - p on int pointers divides by the word size."""
        assert body("return q - p;", "int *p, *q;") == [
            Op.LEA, -2, Op.LI, Op.PSH, Op.LEA, -1, Op.LI, Op.SUB,
            Op.PSH, Op.IMM, 8, Op.DIV, Op.LEV,
        ]

    def test_cast_changes_type(self):
        """(int *)0 + 1 is scaled like a pointer."""
        assert body("return (int *)0 + 1;") == [
            Op.IMM, 0, Op.PSH, Op.IMM, 1, Op.PSH, Op.IMM, 8, Op.MUL, Op.ADD,
            Op.LEV,
        ]

    def test_subscript(self):
        """p[2] scales, adds and loads."""
        assert body("return p[2];", "int *p;") == [
            Op.LEA, -1, Op.LI, Op.PSH, Op.IMM, 2,
            Op.PSH, Op.IMM, 8, Op.MUL, Op.ADD, Op.LI, Op.LEV,
        ]

    def test_logical_or_uses_bnz(self):
        """|| jumps over its right operand when the left is true."""
        code = body("return a || 1;", "int a;")
        assert code[3] == Op.BNZ
        # BNZ target is the LEV after the right operand
        assert code[4] == 2 + code.index(Op.LEV, 5)

    def test_not(self):
        """!x compares with zero."""
        assert body("return !1;") == [
            Op.IMM, 1, Op.PSH, Op.IMM, 0, Op.EQ, Op.LEV,
        ]

    def test_complement(self):
        """~x xors with -1."""
        assert body("return ~1;") == [
            Op.IMM, 1, Op.PSH, Op.IMM, -1, Op.XOR, Op.LEV,
        ]


# =============================================================================
# Errors
# =============================================================================

class TestExpressionErrors:
    """Type and name errors in expressions."""

    def test_dereference_int(self):
        """*3 is a bad dereference."""
        with pytest.raises(CTypeError) as exc_info:
            body("return *3;")
        assert exc_info.value.message == "bad dereference of int"

    def test_dereference_char_names_type(self):
        """The type error spells the offending type."""
        with pytest.raises(CTypeError) as exc_info:
            body("return *c;", "char c;")
        assert exc_info.value.message == "bad dereference of char"

    def test_subscript_int(self):
        """Subscripting an int needs a pointer."""
        with pytest.raises(CTypeError) as exc_info:
            body("return i[0];", "int i;")
        assert exc_info.value.message == "pointer type expected, got int"

    def test_undefined_variable(self):
        """Unbound names are reported by name."""
        with pytest.raises(UndefinedSymbolError) as exc_info:
            body("return y;")
        assert exc_info.value.identifier == "y"

    def test_call_of_non_function(self):
        """Calling an unbound name is not a function call."""
        with pytest.raises(NotAFunctionError):
            body("return later();")

    def test_bad_cast(self):
        """A cast needs its closing paren."""
        with pytest.raises(CSyntaxError) as exc_info:
            body("return (int 1;")
        assert exc_info.value.message == "bad cast"

    def test_unbalanced_paren(self):
        """A parenthesized expression needs its closing paren."""
        with pytest.raises(CSyntaxError) as exc_info:
            body("return (1 + 2;")
        assert exc_info.value.message == "close paren expected"

    def test_missing_colon(self):
        """?: needs its colon."""
        with pytest.raises(CSyntaxError):
            body("return 1 ? 2;")

    def test_unexpected_end_of_input(self):
        """Running out of input inside an expression is reported."""
        with pytest.raises(CSyntaxError) as exc_info:
            compile_c("int main() { return 1 +")
        assert "unexpected end of input" in exc_info.value.message

    def test_sizeof_needs_type(self):
        """sizeof takes a type name."""
        with pytest.raises(CSyntaxError):
            body("return sizeof(x);", "int x;")
