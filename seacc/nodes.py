"""Syntax tree nodes, data types and operand addresses."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class NodeType(Enum):
    """Kinds of syntax tree nodes."""

    CPD = auto()
    VAL = auto()
    DEF = auto()
    FN = auto()
    VAR = auto()
    RET = auto()
    BINOP = auto()
    IF = auto()
    UNOP = auto()
    WHILE = auto()
    STR = auto()


class DataType(Enum):
    """Value types of the language."""

    INT = auto()
    VOID = auto()


class AddrType(Enum):
    """Whether an address is relative to the frame base or the instruction pointer."""

    RBP = auto()
    RIP = auto()


_DTYPES = {"int": DataType.INT, "void": DataType.VOID}
_DTYPE_SIZES = {DataType.INT: 8, DataType.VOID: 0}

_NTYPE_NAMES = {
    NodeType.CPD: "CPD",
    NodeType.VAL: "VAL",
    NodeType.DEF: "DEF",
    NodeType.FN: "FN",
    NodeType.VAR: "VAR",
    NodeType.RET: "RET",
    NodeType.BINOP: "BINOP",
    NodeType.IF: "IF",
}


def is_dtype(name: str) -> bool:
    """Tell whether a name denotes a data type."""
    return name in _DTYPES


def str_to_dtype(name: str) -> DataType:
    """Look up the data type with the given name."""
    try:
        return _DTYPES[name]
    except KeyError:
        raise ValueError(f"unknown data type '{name}'") from None


def dtype_size(dtype: DataType) -> int:
    """Size in bytes of a value of the given type."""
    return _DTYPE_SIZES[dtype]


def stack_location(offset: int) -> str:
    """Operand text for a frame-relative stack slot."""
    return f"{offset}(%rbp)"


def ntype_to_str(ntype: NodeType) -> str:
    """Return a display name for a node type."""
    return _NTYPE_NAMES.get(ntype, "UNKNOWN")


class Addr:
    """Location of a value: a frame offset, or a named global."""

    __slots__ = ("type", "rbp_addr", "rip_addr")

    def __init__(self, target: int | str = -1) -> None:
        if isinstance(target, str):
            self.type = AddrType.RIP
            self.rbp_addr = -1
            self.rip_addr = target
        else:
            self.type = AddrType.RBP
            self.rbp_addr = target
            self.rip_addr = ""

    def location(self) -> str:
        """Assembly operand text for this address."""
        if self.type is AddrType.RBP:
            return stack_location(self.rbp_addr)
        return f"{self.rip_addr}(%rip)"

    def exists(self) -> bool:
        """Tell whether this address refers to anything."""
        if self.type is AddrType.RBP:
            return self.rbp_addr != -1
        return bool(self.rip_addr)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Addr):
            return NotImplemented
        return (self.type, self.rbp_addr, self.rip_addr) == (
            other.type,
            other.rbp_addr,
            other.rip_addr,
        )

    def __hash__(self) -> int:
        return hash((self.type, self.rbp_addr, self.rip_addr))

    def __repr__(self) -> str:
        target = self.rip_addr if self.type is AddrType.RIP else self.rbp_addr
        return f"Addr({target!r})"


@dataclass(eq=False)
class Node:
    """A syntax tree node; which fields matter depends on its type."""

    type: NodeType
    dtype: DataType = DataType.VOID
    addr: Addr = field(default_factory=Addr)

    # compound
    cpd_nodes: list[Node] = field(default_factory=list)

    # integer value
    val_int: int = 0

    # definition
    def_obj: Node | None = None

    # function definition or call
    fn_name: str = ""
    fn_args: list[Node] = field(default_factory=list)
    fn_body: Node | None = None

    # variable
    var_name: str = ""

    # return
    ret_val: Node | None = None

    # binary operation
    op_l: Node | None = None
    op_r: Node | None = None
    op_type: str = ""

    # if statement
    if_cond: Node | None = None
    if_body: Node | None = None
    if_else: Node | None = None
    if_id: int = 0

    # unary operation
    unop_obj: Node | None = None
    unop_type: str = ""

    # while loop
    while_cond: Node | None = None
    while_body: Node | None = None
    while_id: int = 0

    # string literal
    str_val: str = ""
    str_id: int = 0