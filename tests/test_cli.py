"""
CLI Test Suite
==============

Tests for the c4py command using click's CliRunner.
"""

import pytest
from click.testing import CliRunner

from c4py import __version__
from c4py.cli.errors import ExitCode
from c4py.cli.main import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def write_source(tmp_path):
    """Write a C source file and return its path as a string."""
    def write(text: str, name: str = "prog.c") -> str:
        path = tmp_path / name
        path.write_text(text)
        return str(path)
    return write


class TestRun:
    """Compiling and running programs."""

    def test_hello(self, runner, write_source):
        """Program output goes to stdout; status 0 exits 0."""
        path = write_source('int main() { printf("hello\\n"); return 0; }')
        result = runner.invoke(main, [path])
        assert result.exit_code == 0
        assert result.output == "hello\n"

    def test_exit_status(self, runner, write_source):
        """main's return value is the process exit code."""
        path = write_source("int main() { return 3; }")
        result = runner.invoke(main, [path])
        assert result.exit_code == 3

    def test_arguments(self, runner, write_source):
        """Extra arguments are passed to main after the source path."""
        path = write_source(
            'int main(int argc, char **argv) { printf("%d %s", argc, argv[1]); return 0; }'
        )
        result = runner.invoke(main, [path, "first", "second"])
        assert result.exit_code == 0
        assert result.output == "3 first"

    def test_options_after_source_go_to_program(self, runner, write_source):
        """Everything after SOURCE is argv, even strings that look like flags."""
        path = write_source(
            'int main(int argc, char **argv) { printf("%d %s %s", argc, argv[1], argv[2]); return 0; }'
        )
        result = runner.invoke(main, [path, "-d", "x"])
        assert result.exit_code == 0
        assert result.output == "3 -d x"

    def test_verbose(self, runner, write_source):
        """-v runs the program normally."""
        path = write_source("int main() { return 0; }")
        result = runner.invoke(main, ["-v", path])
        assert result.exit_code == 0


class TestModes:
    """Listing and tracing."""

    def test_source_listing(self, runner, write_source):
        """-s prints source lines and code without running."""
        path = write_source('int main()\n{\n  printf("ran");\n  return 42;\n}\n')
        result = runner.invoke(main, ["-s", path])
        assert result.exit_code == 0
        assert "4:   return 42;" in result.output
        assert "IMM 42" in result.output
        assert "ran" not in result.output.replace('printf("ran")', "")

    def test_trace(self, runner, write_source):
        """-d traces executed instructions."""
        path = write_source("int main() { return 5; }")
        result = runner.invoke(main, ["-d", path])
        assert result.exit_code == 5
        assert "1> ENT" in result.output
        assert "> EXIT" in result.output


class TestErrors:
    """Error reporting and exit codes."""

    def test_compile_error(self, runner, write_source):
        """Compile errors print file:line and exit 1."""
        path = write_source("int main() {\n  return 1\n}\n")
        result = runner.invoke(main, [path])
        assert result.exit_code == ExitCode.PROGRAM_ERROR
        assert ":3: error: semicolon expected" in result.output

    def test_runtime_error(self, runner, write_source):
        """Runtime faults print the fault and exit 1."""
        path = write_source("int main() { int z; z = 0; return 1 / z; }")
        result = runner.invoke(main, [path])
        assert result.exit_code == ExitCode.PROGRAM_ERROR
        assert "division by zero" in result.output

    def test_missing_file(self, runner, tmp_path):
        """A missing source file is a usage error."""
        result = runner.invoke(main, [str(tmp_path / "missing.c")])
        assert result.exit_code == ExitCode.INVALID_ARGS

    def test_version(self, runner):
        """--version prints the package version."""
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
