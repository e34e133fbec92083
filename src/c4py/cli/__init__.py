"""
c4py Command-Line Interface
===========================

- **c4py**: compile a source file and run it, list it (``-s``) or trace
  it (``-d``)

The tool is a Click application; exit codes are shared through
:mod:`c4py.cli.errors`.
"""

__all__ = ["main"]
