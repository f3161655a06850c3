"""Splitting of command-line arguments into paths and flags."""

from __future__ import annotations

from collections.abc import Iterator, Sequence


class ArgReader:
    """Reads arguments one group at a time.

    A single-dash flag is grouped with the argument after it; anything
    else, including double-dash flags, stands alone.
    """

    def __init__(self, args: Sequence[str]) -> None:
        self.args = list(args)
        self._pos = 0

    def next_arg(self) -> list[str]:
        """Return the next argument group, or an empty list when done."""
        if self._pos >= len(self.args):
            return []

        group: list[str] = []
        current = self.args[self._pos]
        if current.startswith("-") and not current.startswith("--"):
            group.append(current)
            self._pos += 1
            if self._pos >= len(self.args):
                return group

        group.append(self.args[self._pos])
        self._pos += 1
        return group

    def __iter__(self) -> Iterator[list[str]]:
        while group := self.next_arg():
            yield group