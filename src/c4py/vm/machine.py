"""
c4py Virtual Machine
====================

Fetch-decode-execute interpreter for compiled c4py programs.

The machine has four registers (pc, sp, bp, a) and runs over a private
copy of the program's code with two extra words appended: a ``PSH; EXIT``
stub. main() is entered with that stub as its return address, so
returning from main() exits with main's return value as the status.

Call Frame Layout
-----------------
After ``f(x, y)`` has executed ``JSR f`` and f's ``ENT n``::

    bp + 3 words   x            (first argument, pushed first)
    bp + 2 words   y            (last argument)
    bp + 1 word    return address
    bp             caller's bp
    bp - 1 word    first local
    ...
    bp - n words   last local   <- sp

Execution ends on the EXIT syscall (explicit or via the stub). Faults
raise a C4RuntimeError subclass carrying the faulting instruction address;
they never terminate the host process.

Example:
    >>> vm = VirtualMachine(program)
    >>> status = vm.run(["prog"])
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, TextIO

from c4py.errors import (
    ArithmeticFault,
    C4RuntimeError,
    InvalidOpcodeError,
    SyscallError,
)
from c4py.vm.memory import Memory, WORD_BITS, to_signed
from c4py.vm.opcodes import Opcode, WORD_SIZE, decode
from c4py.vm.program import Program
from c4py.vm.syscalls import SyscallBridge

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class VMOptions:
    """
    Virtual machine configuration.

    Attributes:
        memory_size: Guest address space size in bytes (default: 4 MiB)
        stack_size: Bytes reserved for the stack at the top (default: 256 KiB)
        trace: Log every executed instruction at DEBUG level
    """
    memory_size: int = 4 * 1024 * 1024
    stack_size: int = 256 * 1024
    trace: bool = False

    @classmethod
    def from_env(cls) -> "VMOptions":
        """
        Create VMOptions from environment variables.

        Environment variables (all optional):
            C4PY_MEMORY_SIZE: Address space size in bytes
            C4PY_STACK_SIZE: Stack size in bytes
            C4PY_TRACE: Enable tracing when set to 1/true/yes
        """
        options = cls()

        if memory_size := os.environ.get("C4PY_MEMORY_SIZE"):
            try:
                options.memory_size = int(memory_size, 0)
            except ValueError:
                pass  # Ignore invalid values

        if stack_size := os.environ.get("C4PY_STACK_SIZE"):
            try:
                options.stack_size = int(stack_size, 0)
            except ValueError:
                pass

        if trace := os.environ.get("C4PY_TRACE"):
            options.trace = trace.lower() in ("1", "true", "yes")

        return options


# =============================================================================
# Machine State
# =============================================================================

@dataclass
class VMState:
    """
    Register file and run status.

    Attributes:
        pc: Index of the next code word
        sp: Stack pointer (guest byte address)
        bp: Frame pointer (guest byte address)
        a: Accumulator
        cycle: Instructions executed so far
        halted: True once EXIT has run
        exit_status: Status passed to EXIT
    """
    pc: int = 0
    sp: int = 0
    bp: int = 0
    a: int = 0
    cycle: int = 0
    halted: bool = False
    exit_status: Optional[int] = None


# on_instruction(cycle, pc, opcode, operand) -> bool: return False to pause
InstructionHook = Callable[[int, int, Opcode, Optional[int]], bool]


def to_int32(value: int) -> int:
    """Wrap an exit status to a signed 32-bit integer."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


class VirtualMachine:
    """
    Interpreter for one Program.

    Each call to :meth:`run` (or :meth:`reset`) starts from a fresh guest
    memory and register state, so the same Program can be executed any
    number of times with identical results.

    Attributes:
        program: The Program being executed (never modified)
        options: VM configuration
        state: Current registers and run status
        memory: Guest memory of the current run
        on_instruction: Optional hook called before each instruction
    """

    def __init__(
        self,
        program: Program,
        options: Optional[VMOptions] = None,
        stdout: Optional[TextIO] = None,
    ):
        if program.entry is None:
            raise C4RuntimeError("program has no entry point")
        self.program = program
        self.options = options or VMOptions()
        self.stdout = stdout
        self.state = VMState()
        self.memory: Optional[Memory] = None
        self.syscalls: Optional[SyscallBridge] = None
        self.on_instruction: Optional[InstructionHook] = None

        self._code = list(program.code) + [Opcode.PSH, Opcode.EXIT]
        self._exit_stub = len(program.code)

    # ========================================
    # Register Properties
    # ========================================

    @property
    def pc(self) -> int:
        """Program counter."""
        return self.state.pc

    @property
    def sp(self) -> int:
        """Stack pointer."""
        return self.state.sp

    @property
    def bp(self) -> int:
        """Frame pointer."""
        return self.state.bp

    @property
    def a(self) -> int:
        """Accumulator."""
        return self.state.a

    # ========================================
    # Stack Operations
    # ========================================

    def _push(self, value: int) -> None:
        """Push a word (pre-decrement)."""
        sp = self.state.sp - WORD_SIZE
        if sp < self.memory.stack_base:
            raise C4RuntimeError("stack overflow")
        self.memory.write_word(sp, value)
        self.state.sp = sp

    def _pop(self) -> int:
        """Pop a word (post-increment)."""
        value = self.memory.read_word(self.state.sp)
        self.state.sp += WORD_SIZE
        return value

    # ========================================
    # Reset
    # ========================================

    def reset(self, argv: Sequence[str] = ()) -> None:
        """
        Prepare a fresh run: new memory, argv copied in, main() called.

        Stack after reset (top first): return address of the exit stub,
        argv pointer, argc.
        """
        if self.syscalls is not None:
            self.syscalls.close_all()

        self.memory = Memory(
            self.options.memory_size, self.options.stack_size, bytes(self.program.data)
        )
        self.syscalls = SyscallBridge(self.memory, self.stdout)
        self.state = VMState()
        self.state.sp = self.state.bp = self.memory.size

        argv_address = self._copy_argv(argv)
        self._push(len(argv))
        self._push(argv_address)
        self._push(self._exit_stub)
        self.state.pc = self.program.entry

        logger.debug(f"starting at {self.program.entry} with argc={len(argv)}")

    def _copy_argv(self, argv: Sequence[str]) -> int:
        """Copy argument strings into the heap; return the argv array address."""
        pointers = []
        for arg in argv:
            encoded = arg.encode("utf-8") + b"\0"
            address = self.memory.heap.malloc(len(encoded))
            if address == 0:
                raise C4RuntimeError("no memory for argv")
            self.memory.write_bytes(address, encoded)
            pointers.append(address)
        pointers.append(0)

        table = self.memory.heap.malloc(len(pointers) * WORD_SIZE)
        if table == 0:
            raise C4RuntimeError("no memory for argv")
        for index, pointer in enumerate(pointers):
            self.memory.write_word(table + index * WORD_SIZE, pointer)
        return table

    # ========================================
    # Main Execution Loop
    # ========================================

    def run(self, argv: Sequence[str] = ()) -> Optional[int]:
        """
        Reset and execute until EXIT.

        Returns:
            The exit status as a signed 32-bit int, or None if the
            instruction hook paused execution

        Raises:
            C4RuntimeError: On any execution fault
        """
        self.reset(argv)
        return self.resume()

    def resume(self) -> Optional[int]:
        """Continue executing from the current state until EXIT or a pause."""
        try:
            while not self.state.halted:
                if not self.step():
                    return None
        finally:
            if self.state.halted:
                self.syscalls.close_all()
        return to_int32(self.state.exit_status)

    def step(self) -> bool:
        """
        Execute exactly one instruction.

        Returns:
            False if the instruction hook asked to pause before executing,
            True otherwise
        """
        state = self.state
        pc = state.pc
        if not 0 <= pc < len(self._code):
            raise InvalidOpcodeError(pc, pc)

        op = decode(self._code[pc])
        if op is None:
            raise InvalidOpcodeError(self._code[pc], pc)

        operand = None
        if op.has_operand:
            if pc + 1 >= len(self._code):
                raise InvalidOpcodeError(self._code[pc], pc)
            operand = self._code[pc + 1]

        if self.on_instruction:
            if self.on_instruction(state.cycle + 1, pc, op, operand) is False:
                return False
        if self.options.trace:
            if operand is None:
                logger.debug(f"{state.cycle + 1}> {op.name}")
            else:
                logger.debug(f"{state.cycle + 1}> {op.name} {operand}")

        state.cycle += 1
        state.pc = pc + op.width
        try:
            self._execute(op, operand, pc)
        except C4RuntimeError as e:
            if e.pc is None:
                e.at(pc)
            raise
        return True

    def _execute(self, op: Opcode, operand: Optional[int], pc: int) -> None:
        """Apply one decoded instruction to the machine state."""
        state = self.state
        memory = self.memory

        match op:
            # ============================================
            # Operand Instructions
            # ============================================
            case Opcode.LEA:
                state.a = state.bp + operand * WORD_SIZE
            case Opcode.IMM:
                state.a = operand
            case Opcode.JMP:
                state.pc = operand
            case Opcode.JSR:
                self._push(state.pc)
                state.pc = operand
            case Opcode.BZ:
                if state.a == 0:
                    state.pc = operand
            case Opcode.BNZ:
                if state.a != 0:
                    state.pc = operand
            case Opcode.ENT:
                self._push(state.bp)
                state.bp = state.sp
                sp = state.sp - operand * WORD_SIZE
                if sp < memory.stack_base:
                    raise C4RuntimeError("stack overflow")
                state.sp = sp
            case Opcode.ADJ:
                state.sp += operand * WORD_SIZE

            # ============================================
            # Frame and Memory
            # ============================================
            case Opcode.LEV:
                state.sp = state.bp
                state.bp = self._pop()
                state.pc = self._pop()
            case Opcode.LI:
                state.a = memory.read_word(state.a)
            case Opcode.LC:
                state.a = memory.read_char(state.a)
            case Opcode.SI:
                memory.write_word(self._pop(), state.a)
            case Opcode.SC:
                address = self._pop()
                memory.write_char(address, state.a)
                state.a = memory.read_char(address)
            case Opcode.PSH:
                self._push(state.a)

            # ============================================
            # Syscalls
            # ============================================
            case Opcode.EXIT:
                state.exit_status = memory.read_word(state.sp)
                state.halted = True
                logger.info(f"exit({state.exit_status}) cycle = {state.cycle}")
            case Opcode.PRTF:
                state.a = self.syscalls.call(op, state.sp, self._printf_argc(pc))
            case _ if op.is_syscall:
                state.a = self.syscalls.call(op, state.sp)

            # ============================================
            # Binary Operators: a = pop OP a
            # ============================================
            case _:
                state.a = self._binary(op, self._pop(), state.a)

    def _printf_argc(self, pc: int) -> int:
        """Argument count of a PRTF, read from the ADJ that follows it."""
        following = pc + 1
        if following + 1 < len(self._code) and self._code[following] == Opcode.ADJ:
            return self._code[following + 1]
        raise SyscallError("printf must be followed by ADJ")

    @staticmethod
    def _binary(op: Opcode, left: int, right: int) -> int:
        """Evaluate a binary operator with C semantics on signed words."""
        match op:
            case Opcode.OR:
                return left | right
            case Opcode.XOR:
                return left ^ right
            case Opcode.AND:
                return left & right
            case Opcode.EQ:
                return int(left == right)
            case Opcode.NE:
                return int(left != right)
            case Opcode.LT:
                return int(left < right)
            case Opcode.GT:
                return int(left > right)
            case Opcode.LE:
                return int(left <= right)
            case Opcode.GE:
                return int(left >= right)
            case Opcode.SHL:
                return to_signed(left << (right & (WORD_BITS - 1)))
            case Opcode.SHR:
                return left >> (right & (WORD_BITS - 1))
            case Opcode.ADD:
                return to_signed(left + right)
            case Opcode.SUB:
                return to_signed(left - right)
            case Opcode.MUL:
                return to_signed(left * right)
            case Opcode.DIV | Opcode.MOD:
                if right == 0:
                    raise ArithmeticFault(
                        "division by zero" if op is Opcode.DIV else "modulo by zero"
                    )
                quotient = abs(left) // abs(right)
                if (left < 0) != (right < 0):
                    quotient = -quotient
                if op is Opcode.DIV:
                    return to_signed(quotient)
                return left - right * quotient
            case _:
                raise InvalidOpcodeError(op)


# =============================================================================
# Convenience Functions
# =============================================================================

def execute(
    program: Program,
    argv: Sequence[str] = (),
    options: Optional[VMOptions] = None,
    stdout: Optional[TextIO] = None,
) -> int:
    """
    Run a compiled program to completion.

    Args:
        program: Program produced by compile_c()
        argv: Arguments exposed to main(argc, argv); argv[0] is
              conventionally the program name
        options: VM configuration (defaults if None)
        stdout: Stream for printf() output (sys.stdout if None)

    Returns:
        The program's exit status

    Raises:
        C4RuntimeError: On any execution fault

    Example:
        >>> execute(compile_c("int main() { return 42; }"))
        42
    """
    vm = VirtualMachine(program, options, stdout)
    return vm.run(list(argv))
