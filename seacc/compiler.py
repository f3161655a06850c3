"""Compilation of one source file to assembly."""

from __future__ import annotations

import os

from .codegen import generate
from .lexer import tokenize
from .parser import parse
from .preprocessor import preprocess


def compile_source(source: str, base_dir: str = "") -> str:
    """Return the assembly for program text.

    Includes are resolved against base_dir.
    """
    expanded = preprocess(source, base_dir)
    root = parse(tokenize(expanded))
    return generate(root)


def compile_file(path: str | os.PathLike[str], out: str | os.PathLike[str]) -> None:
    """Compile the program at path and write its assembly to out."""
    path = os.fspath(path)
    with open(path, encoding="utf-8") as handle:
        source = handle.read()
    assembly = compile_source(source, os.path.dirname(path))
    with open(os.fspath(out), "w", encoding="utf-8") as handle:
        handle.write(assembly)