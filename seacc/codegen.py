"""x86-64 assembly generation from a syntax tree."""

from __future__ import annotations

import itertools
from collections.abc import Callable

from .nodes import Addr, AddrType, DataType, Node, NodeType, dtype_size, str_to_dtype
from .scope import Scope

# Shared by every generator so that global array labels stay unique.
_galloc_ids = itertools.count()

_SYSCALL_REGISTERS = ("%rax", "%rdi", "%rsi", "%rdx")

_COMPARE_TAIL = "\tmovzbl %al, %eax\n"

_MATH_OPS = {
    "+": "\taddq %rbx, %rax\n",
    "-": "\tsubq %rbx, %rax\n",
    "*": "\timulq %rbx, %rax\n",
    "/": "\tcqto\n\tidivq %rbx\n",
    "%": "\tcqto\n\tidivq %rbx\n",
    "==": "\tcmp %rbx, %rax\n\tsete %al\n" + _COMPARE_TAIL,
    "!=": "\tcmp %rbx, %rax\n\tsetne %al\n" + _COMPARE_TAIL,
    "||": "\tor %rbx, %rax\n",
    "&&": "\tand %rbx, %rax\n",
}

_EPILOGUE = "\tmovq %rbp, %rsp\n\tpop %rbp\n\tret\n"


class CodeGenerator:
    """Walks a syntax tree and emits AT&T-syntax assembly."""

    def __init__(self) -> None:
        self._text: list[str] = []
        self._data: list[str] = []
        self._rsp = 0
        self._scope = Scope()
        self._dispatch: dict[NodeType, Callable[[Node], None]] = {
            NodeType.CPD: self._gen_cpd,
            NodeType.DEF: self._gen_def,
            NodeType.RET: self._gen_ret,
            NodeType.VAL: self._gen_val,
            NodeType.BINOP: self._gen_binop,
            NodeType.UNOP: self._gen_unop,
            NodeType.VAR: lambda node: None,
            NodeType.FN: self._gen_fcall,
            NodeType.IF: self._gen_if,
            NodeType.WHILE: self._gen_while,
            NodeType.STR: lambda node: None,
        }
        self._builtins: dict[str, Callable[[Node], None]] = {
            "syscall": self._gen_syscall,
            "stalloc": self._gen_stalloc,
            "sizeof": self._gen_sizeof,
            "galloc": self._gen_galloc,
        }

    def generate(self, root: Node) -> str:
        """Return the assembly for a whole program."""
        self._text = [".section .text\n"]
        self._data = [".section .data\n"]
        self._rsp = 0
        self._scope = Scope()
        self._gen(root)
        return "".join(self._data) + "\n" + "".join(self._text)

    # -- helpers -----------------------------------------------------------

    def _emit(self, text: str) -> None:
        self._text.append(text)

    def _gen(self, node: Node) -> None:
        self._dispatch[node.type](node)

    def _cleanup_dangling(self, node: Node | None) -> None:
        """Stop tracking the stack slot of a value that nothing refers to any more."""
        if node is not None and node.addr.type is AddrType.RBP and node.addr.exists():
            self._scope.release_stack_addr(node.addr.rbp_addr)
            node.addr = Addr(-1)

    def _tighten_stack(self) -> None:
        """Move the stack pointer up to the lowest slot still in use."""
        diff = self._scope.top_stack_addr() - self._rsp
        if diff == 0:
            return
        self._rsp += diff
        self._emit(f"\t# tighten_stack\n\taddq ${diff}, %rsp\n")

    def _push(self, value: str) -> Addr:
        self._rsp -= 8
        self._scope.claim_stack_addr(self._rsp)
        self._emit(f"\tpushq {value}\n")
        return Addr(self._rsp)

    def _reserve(self) -> Addr:
        self._emit("\tsubq $8, %rsp\n")
        self._rsp -= 8
        self._scope.claim_stack_addr(self._rsp)
        return Addr(self._rsp)

    def _mov(self, src: str, dst: str) -> None:
        self._emit(f"\tmovq {src}, {dst}\n")

    def _mov_via_rax(self, src: str, dst: str) -> None:
        self._mov(src, "%rax")
        self._mov("%rax", dst)

    def _addr_of(self, node: Node) -> Addr:
        if node.type is NodeType.VAR:
            return self._scope.find_var(node.var_name)
        if node.type in (NodeType.FN, NodeType.VAL, NodeType.BINOP, NodeType.UNOP, NodeType.STR):
            return node.addr
        return Addr(-2)

    def _dtype_of(self, node: Node) -> DataType:
        if node.type is NodeType.BINOP:
            return self._dtype_of(node.op_l)
        if node.type is NodeType.UNOP:
            return self._dtype_of(node.unop_obj)
        if node.type in (NodeType.DEF, NodeType.VAL):
            return node.dtype
        if node.type is NodeType.FN:
            return self._scope.find_fn(node.fn_name)[0]
        if node.type is NodeType.VAR:
            return self._scope.find_var_dtype(node.var_name)
        raise ValueError("node has no data type")

    # -- statements --------------------------------------------------------

    def _gen_cpd(self, cpd: Node) -> None:
        self._scope.push_layer()
        for node in cpd.cpd_nodes:
            self._gen(node)
            self._cleanup_dangling(node)
            self._tighten_stack()
        self._tighten_stack()
        self._scope.pop_layer()

    def _gen_def(self, node: Node) -> None:
        target = node.def_obj
        if target.type is NodeType.FN:
            self._gen_fdef(node)
        elif self._scope.layer_count() == 1:
            self._gen_global_var(node)
        else:
            addr = self._reserve()
            self._scope.create_var(target.op_l.var_name, addr, node.dtype)
            if target.op_r is not None:
                self._gen(target)

    def _gen_fdef(self, fdef: Node) -> None:
        fn = fdef.def_obj
        self._scope.create_fn(fn.fn_name, fdef.dtype, [arg.dtype for arg in fn.fn_args])
        if fn.fn_body is None:
            return

        self._scope.push_layer()
        prev_rsp, self._rsp = self._rsp, 0

        offset = 16
        for param in fn.fn_args:
            self._scope.create_var(param.var_name, Addr(offset), param.dtype)
            offset += dtype_size(param.dtype)

        self._emit(f".global {fn.fn_name}\n{fn.fn_name}:\n")
        self._emit("\tpush %rbp\n\tmovq %rsp, %rbp\n\n")
        self._gen(fn.fn_body)
        self._emit("\n" + _EPILOGUE + "\n")

        self._rsp = prev_rsp
        self._scope.pop_layer()

    def _gen_global_var(self, node: Node) -> None:
        name = node.def_obj.op_l.var_name
        init = node.def_obj.op_r

        if init is not None:
            if init.type is NodeType.FN:
                self._gen_fcall(init)
                if init.addr.type is not AddrType.RIP or not init.addr.exists():
                    raise ValueError(f"global '{name}' can only be initialised by galloc")
                value = init.addr.rip_addr
            elif self._dtype_of(init) is DataType.INT:
                value = str(init.val_int)
            else:
                raise ValueError(f"global '{name}' cannot hold a void value")
        elif node.dtype is DataType.INT:
            value = "0"
        else:
            raise ValueError(f"global '{name}' cannot be void")

        if node.dtype is not DataType.INT:
            raise ValueError(f"global '{name}' cannot be void")
        self._data.append(f"{name}: .quad {value}\n")
        self._scope.create_var(name, Addr(name), node.dtype)

    def _gen_ret(self, ret: Node) -> None:
        if ret.ret_val is None:
            raise ValueError("return needs a value")
        self._gen(ret.ret_val)
        self._mov(self._addr_of(ret.ret_val).location(), "%rax")
        self._emit(_EPILOGUE)

    def _gen_if(self, node: Node) -> None:
        else_label = f".L_else_{node.if_id}"
        end_label = f".L_end_{node.if_id}"

        self._gen(node.if_cond)
        self._mov(self._addr_of(node.if_cond).location(), "%rax")
        self._cleanup_dangling(node.if_cond)
        self._tighten_stack()
        self._emit(f"\ttest %rax, %rax\n\tjz {else_label}\n")

        self._gen(node.if_body)
        self._cleanup_dangling(node.if_body)
        self._tighten_stack()
        self._emit(f"\tjmp {end_label}\n")

        self._emit(f"{else_label}:\n")
        if node.if_else is not None:
            self._gen(node.if_else)
        self._cleanup_dangling(node.if_else)
        self._tighten_stack()
        self._emit(f"{end_label}:\n")

    def _gen_while(self, node: Node) -> None:
        start_label = f".L_start_{node.while_id}"
        end_label = f".L_end_{node.while_id}"
        self._emit(f"{start_label}:\n")

        self._gen(node.while_cond)
        self._mov(self._addr_of(node.while_cond).location(), "%rax")
        self._cleanup_dangling(node.while_cond)
        self._tighten_stack()
        self._emit(f"\ttest %rax, %rax\n\tjz {end_label}\n")

        self._gen(node.while_body)
        self._cleanup_dangling(node.while_body)
        self._tighten_stack()
        self._emit(f"\tjmp {start_label}\n")
        self._emit(f"{end_label}:\n")

    # -- expressions -------------------------------------------------------

    def _gen_val(self, val: Node) -> None:
        if val.dtype is not DataType.INT:
            raise ValueError("a value cannot be void")
        val.addr = self._push(f"${val.val_int}")

    def _gen_binop(self, op: Node) -> None:
        math = _MATH_OPS.get(op.op_type)
        if math is None:
            if op.op_type == "=":
                self._gen_assign(op)
            return

        op.addr = self._reserve()
        self._gen(op.op_l)
        self._gen(op.op_r)
        self._mov(self._addr_of(op.op_l).location(), "%rax")
        self._mov(self._addr_of(op.op_r).location(), "%rbx")
        self._cleanup_dangling(op.op_l)
        self._cleanup_dangling(op.op_r)
        self._tighten_stack()
        self._emit(math)

        result = "%rdx" if op.op_type == "%" else "%rax"
        self._mov(result, op.addr.location())

    def _gen_assign(self, op: Node) -> None:
        self._gen(op.op_r)
        target = op.op_l

        if target.type is NodeType.VAR:
            dst = self._scope.find_var(target.var_name)
            self._mov_via_rax(self._addr_of(op.op_r).location(), dst.location())
            self._cleanup_dangling(op.op_r)
            self._tighten_stack()
        elif target.type is NodeType.UNOP and target.unop_type == "*":
            self._gen(target.unop_obj)
            self._mov(self._addr_of(target.unop_obj).location(), "%rbx")
            self._mov(self._addr_of(op.op_r).location(), "%rax")
            self._mov("%rax", "(%rbx)")
            self._cleanup_dangling(target.unop_obj)
            self._tighten_stack()

    def _gen_unop(self, op: Node) -> None:
        if op.unop_type == "*":
            self._gen_deref(op)
        elif op.unop_type == "&":
            self._gen_getptr(op)

    def _gen_getptr(self, op: Node) -> None:
        obj = op.unop_obj
        if obj.type is NodeType.VAR:
            self._emit(f"\tleaq {self._addr_of(obj).location()}, %rax\n")
            self._cleanup_dangling(obj)
            self._tighten_stack()
        elif obj.type is NodeType.UNOP and obj.unop_type == "*":
            self._gen(obj.unop_obj)
            self._mov(self._addr_of(obj.unop_obj).location(), "%rax")
        op.addr = self._push("%rax")

    def _gen_deref(self, op: Node) -> None:
        self._gen(op.unop_obj)
        self._mov(self._addr_of(op.unop_obj).location(), "%rax")
        self._cleanup_dangling(op.unop_obj)
        self._tighten_stack()
        op.addr = self._push("(%rax)")

    def _gen_fcall(self, call: Node) -> None:
        builtin = self._builtins.get(call.fn_name)
        if builtin is not None:
            builtin(call)
            return

        for arg in call.fn_args:
            self._gen(arg)
        for arg in reversed(call.fn_args):
            self._mov(self._addr_of(arg).location(), "%rax")
            self._push("%rax")

        self._emit(f"\tcall {call.fn_name}\n")

        # None of this touches %rax, which holds the call's result.
        self._scope.release_lowest(len(call.fn_args))
        for arg in call.fn_args:
            self._cleanup_dangling(arg)
        self._tighten_stack()

        call.addr = self._push("%rax")

    def _gen_syscall(self, call: Node) -> None:
        if len(call.fn_args) > len(_SYSCALL_REGISTERS):
            raise ValueError(f"syscall takes at most {len(_SYSCALL_REGISTERS)} arguments")
        for arg in call.fn_args:
            self._gen(arg)
        for arg, register in zip(call.fn_args, _SYSCALL_REGISTERS):
            self._mov(self._addr_of(arg).location(), register)

        self._emit("\tsyscall\n")

        for arg in call.fn_args:
            self._cleanup_dangling(arg)
        self._tighten_stack()

    def _array_bytes(self, call: Node) -> int:
        count = call.fn_args[0].val_int
        dtype = str_to_dtype(call.fn_args[1].var_name)
        return count * dtype_size(dtype)

    def _gen_stalloc(self, call: Node) -> None:
        size = self._array_bytes(call)
        self._emit(f"\tsubq ${size}, %rsp\n")
        self._rsp -= size
        self._scope.claim_stack_addr(self._rsp)
        self._mov("%rsp", "%rax")
        call.addr = self._push("%rax")

    def _gen_sizeof(self, call: Node) -> None:
        size = dtype_size(str_to_dtype(call.fn_args[0].var_name))
        call.addr = self._push(f"${size}")

    def _gen_galloc(self, call: Node) -> None:
        size = self._array_bytes(call)
        label = f"_galloc_array_{next(_galloc_ids)}"
        self._data.append(f"{label}: .zero {size}\n")
        call.addr = Addr(label)


def generate(root: Node) -> str:
    """Return the assembly for the program rooted at a compound node."""
    return CodeGenerator().generate(root)