"""Textual expansion of #include directives."""

from __future__ import annotations

import os
import re

_INCLUDE = re.compile(r'\s*#include\s+"([^"]+)"\s*')


def _split_lines(text: str) -> list[str]:
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def _expand(source: str, base_dir: str, active: set[str]) -> str:
    out: list[str] = []
    for line in _split_lines(source):
        match = _INCLUDE.fullmatch(line)
        if not match:
            out.append(line)
            continue

        filename = match.group(1)
        full_path = os.path.join(base_dir, filename) if base_dir else filename
        try:
            full_path = os.path.realpath(full_path, strict=True)
        except OSError:
            pass

        if full_path in active:
            out.append(f"// Circular include detected: {filename}")
            continue

        try:
            with open(full_path, encoding="utf-8") as handle:
                content = handle.read()
        except OSError:
            out.append(f"// Error: Could not open file {filename}")
            continue

        active.add(full_path)
        try:
            expanded = _expand(content, os.path.dirname(full_path), active)
        finally:
            active.discard(full_path)
        out.extend(_split_lines(expanded))

    return "\n".join(out)


def preprocess(source: str, base_dir: str = "") -> str:
    """Replace each `#include "file"` line with the expanded file contents.

    Paths are resolved against base_dir; nested includes resolve against
    the including file's directory. A trailing newline is not kept.
    """
    return _expand(source, base_dir, set())