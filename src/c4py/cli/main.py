"""
c4py - Compile and Run Command-Line Interface
=============================================

Compiles one source file and runs its main() in the virtual machine. The
process exits with main's return value (or the value passed to exit()).

Usage Examples
--------------
Run a program:
    $ c4py hello.c

Pass arguments to main(argc, argv):
    $ c4py echo.c one two         # argv = {"echo.c", "one", "two"}

List source lines with the code generated for each:
    $ c4py -s hello.c

Trace every executed instruction on stderr:
    $ c4py -d hello.c

Environment
-----------
C4PY_MEMORY_SIZE, C4PY_STACK_SIZE and C4PY_TRACE configure the virtual
machine (see :meth:`c4py.vm.VMOptions.from_env`).
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from c4py import __version__
from c4py.cli.errors import handle_cli_exception
from c4py.compiler import CompilerOptions, compile_c
from c4py.vm import Opcode, VMOptions, VirtualMachine


def _trace(cycle: int, pc: int, op: Opcode, operand: Optional[int]) -> bool:
    """Instruction hook printing 'cycle> OPC [operand]' to stderr."""
    if operand is None:
        click.echo(f"{cycle}> {op.name}", err=True)
    else:
        click.echo(f"{cycle}> {op.name:<4} {operand}", err=True)
    return True


# =============================================================================
# CLI Definition
# =============================================================================

@click.command(context_settings={
    "ignore_unknown_options": True,
    "allow_interspersed_args": False,
})
@click.argument(
    "source",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option(
    "-s", "--source", "list_source",
    is_flag=True,
    help="Print source lines with their generated code, then exit",
)
@click.option(
    "-d", "--debug",
    is_flag=True,
    help="Trace each executed instruction on stderr",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@click.version_option(version=__version__, prog_name="c4py")
def main(
    source: Path,
    args: tuple[str, ...],
    list_source: bool,
    debug: bool,
    verbose: bool,
) -> None:
    """
    Compile and run a c4py program.

    SOURCE is the C source file; ARGS are passed to main() after it.

    \b
    Examples:
        c4py hello.c                 # Run hello.c
        c4py -s hello.c              # Show generated code
        c4py -d hello.c              # Trace execution
        c4py echo.c a b              # main() gets argc = 3
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        text = source.read_text(encoding="utf-8")
        program = compile_c(text, options=CompilerOptions(filename=str(source)))

        if list_source:
            for line in program.listing(text):
                click.echo(line)
            return

        vm = VirtualMachine(program, VMOptions.from_env())
        if debug:
            vm.on_instruction = _trace
        status = vm.run([str(source), *args])
    except Exception as e:
        handle_cli_exception(e, verbose)

    sys.stdout.flush()
    sys.exit(status)


if __name__ == "__main__":
    main()
