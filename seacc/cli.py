"""Command-line driver: compile, assemble and link programs."""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Sequence

from .args import ArgReader
from .compiler import compile_file

ENTRY_ASM = (
    ".section .text\n"
    "\t.global _start\n\n"
    "_start:\n"
    "\tcall main\n"
    "\tmovq %rax, %rdi\n"
    "\tmovq $60, %rax\n"
    "\tsyscall\n\n"
)

_ENTRY_NAME = "_sea_entry.c"


def _assemble(stem: str) -> None:
    subprocess.run(["as", "-64", f"{stem}.s", "-o", f"{stem}.o"], check=False)


def main(argv: Sequence[str] | None = None) -> int:
    """Compile the given files into an executable, or one bundled assembly file."""
    if argv is None:
        argv = sys.argv[1:]

    infiles: list[str] = []
    outfile = "sea.out"
    bundle = False
    build_dir = ".sea"

    for group in ArgReader(argv):
        if len(group) == 1 and not group[0].startswith("-"):
            infiles.append(group[0])
        elif len(group) == 2 and group[0].startswith("-"):
            if group[0] == "-o":
                outfile = group[1]
            elif group[0] == "-b":
                build_dir = group[1]
        elif group[0] == "--bundle":
            bundle = True

    os.makedirs(build_dir, exist_ok=True)

    stems: list[str] = []
    bundled: list[str] = []
    for infile in infiles:
        stem = f"{build_dir}/{infile.replace('/', '_')}"
        stems.append(stem)
        compile_file(infile, f"{stem}.s")

        if bundle:
            with open(f"{stem}.s", encoding="utf-8") as handle:
                bundled.append(handle.read())
        else:
            _assemble(stem)

    if bundle:
        with open(outfile, "w", encoding="utf-8") as handle:
            handle.write(ENTRY_ASM + "".join(bundled))
        return 0

    entry_stem = f"{build_dir}/{_ENTRY_NAME}"
    with open(f"{entry_stem}.s", "w", encoding="utf-8") as handle:
        handle.write(ENTRY_ASM)
    _assemble(entry_stem)
    stems.append(entry_stem)

    subprocess.run(
        ["ld", *(f"{stem}.o" for stem in stems), "-o", outfile], check=False
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())