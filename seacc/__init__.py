"""Compiler for a small C-like language: preprocessor, lexer, parser, x86-64 code generator and command-line driver."""

__version__ = "0.1.0"
__all__ = ["__version__"]