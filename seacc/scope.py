"""Nested symbol scopes and tracking of live stack slots."""

from __future__ import annotations

from dataclasses import dataclass, field

from .nodes import Addr, DataType


@dataclass
class ScopeLayer:
    """Variables and claimed stack slots of one block."""

    vdefs: dict[str, Addr] = field(default_factory=dict)
    vdtypes: dict[str, DataType] = field(default_factory=dict)
    stkaddrs: set[int] = field(default_factory=set)


class Scope:
    """A stack of scope layers plus a global function table."""

    def __init__(self) -> None:
        self._layers: list[ScopeLayer] = []
        self._fns: dict[str, tuple[DataType, list[DataType]]] = {}

    def push_layer(self) -> None:
        """Open a new innermost layer."""
        self._layers.append(ScopeLayer())

    def pop_layer(self) -> ScopeLayer:
        """Close the innermost layer and return it."""
        return self._layers.pop()

    def layer_count(self) -> int:
        """Number of open layers."""
        return len(self._layers)

    def var_exists(self, name: str) -> bool:
        """Tell whether a variable is visible."""
        return any(name in layer.vdefs for layer in self._layers)

    def fn_exists(self, name: str) -> bool:
        """Tell whether a function is known."""
        return name in self._fns

    def find_var(self, name: str) -> Addr:
        """Address of the innermost variable with this name."""
        for layer in reversed(self._layers):
            if name in layer.vdefs:
                return layer.vdefs[name]
        raise KeyError(f"variable '{name}' not found")

    def find_var_dtype(self, name: str) -> DataType:
        """Type of the innermost variable with this name."""
        for layer in reversed(self._layers):
            if name in layer.vdtypes:
                return layer.vdtypes[name]
        raise KeyError(f"variable '{name}' not found")

    def find_fn(self, name: str) -> tuple[DataType, list[DataType]]:
        """Return type and argument types of a function.

        An unknown name is entered with an int return type and no arguments.
        """
        return self._fns.setdefault(name, (DataType.INT, []))

    def create_var(self, name: str, addr: Addr, dtype: DataType) -> None:
        """Define a variable in the innermost layer."""
        layer = self._layers[-1]
        layer.vdefs[name] = addr
        layer.vdtypes[name] = dtype

    def create_fn(self, name: str, ret: DataType, args: list[DataType]) -> None:
        """Record a function's signature."""
        self._fns[name] = (ret, list(args))

    def claim_stack_addr(self, addr: int) -> None:
        """Mark a stack slot as live in the innermost layer."""
        self._layers[-1].stkaddrs.add(addr)

    def release_stack_addr(self, addr: int) -> None:
        """Free a stack slot held by the innermost layer."""
        slots = self._layers[-1].stkaddrs
        if addr not in slots:
            raise KeyError(f"stack address {addr} is not claimed")
        slots.remove(addr)

    def release_lowest(self, n: int) -> None:
        """Free the n lowest stack slots held by the innermost layer."""
        slots = self._layers[-1].stkaddrs
        for _ in range(n):
            if not slots:
                raise KeyError("no claimed stack address left to release")
            slots.remove(min(slots))

    def holds_stack_addr(self, addr: int) -> bool:
        """Tell whether any layer holds a stack slot."""
        return any(addr in layer.stkaddrs for layer in self._layers)

    def top_stack_addr(self) -> int:
        """Lowest live stack slot over all layers, or 0 if none is below the frame."""
        return min((min(layer.stkaddrs) for layer in self._layers if layer.stkaddrs), default=0) if any(
            layer.stkaddrs for layer in self._layers
        ) and min(min(layer.stkaddrs) for layer in self._layers if layer.stkaddrs) < 0 else 0