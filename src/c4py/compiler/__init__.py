"""
c4py Compiler
=============

Single-pass compiler from reduced C to stack machine code.

Lexing, parsing and code generation are interleaved: the parser pulls one
token at a time and emits instructions as it recognizes each construct.
No token list and no syntax tree are ever built.

    Source → Lexer ⇄ Expression/Statement compiler → Program

Language Subset
---------------
- Types: char, int, pointers to either (any depth); void is char
- Declarations: globals, enums, functions with parameters and locals
- Statements: if/else, while, return, blocks, expression statements
- Operators: full C precedence ladder from = to [], including ?:, ||,
  &&, prefix and postfix ++/--, casts and sizeof

Not supported:
- for, do, switch, break, continue
- struct, union, typedef, arrays declarations
- function prototypes, a real preprocessor

Usage
-----
>>> from c4py.compiler import compile_c
>>> program = compile_c('int main() { return 0; }')
>>> program.disassemble()
['0: ENT 0', '2: IMM 0', '4: LEV']
"""

from c4py.compiler.compiler import Compiler, CompilerOptions, compile_c, compile_file
from c4py.compiler.errors import (
    CompileError,
    LexicalError,
    CSyntaxError,
    UndefinedSymbolError,
    DuplicateDefinitionError,
    InvalidLValueError,
    CTypeError,
    NotAFunctionError,
    MissingMainError,
)
from c4py.compiler.lexer import Lexer
from c4py.compiler.symbols import Symbol, SymbolClass, SymbolTable
from c4py.compiler.tokens import Tok, Token

__all__ = [
    # Main API
    "Compiler",
    "CompilerOptions",
    "compile_c",
    "compile_file",
    # Errors
    "CompileError",
    "LexicalError",
    "CSyntaxError",
    "UndefinedSymbolError",
    "DuplicateDefinitionError",
    "InvalidLValueError",
    "CTypeError",
    "NotAFunctionError",
    "MissingMainError",
    # Front end
    "Lexer",
    "Symbol",
    "SymbolClass",
    "SymbolTable",
    "Tok",
    "Token",
]
