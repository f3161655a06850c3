import re

import pytest

from seacc.codegen import CodeGenerator, generate
from seacc.lexer import tokenize
from seacc.parser import parse

_MASK = (1 << 64) - 1
_MEM = re.compile(r"^(-?[\w.]*)\((%\w+)\)$")
_STACK_TOP = 0x100000
_SENTINEL = -1


def _wrap(value):
    value &= _MASK
    return value - (1 << 64) if value >= 1 << 63 else value


class _Machine:
    """Just enough of an x86-64 machine to run the generated programs."""

    def __init__(self, asm):
        self.regs = dict.fromkeys(("rax", "rbx", "rcx", "rdx", "rsi", "rdi", "rsp", "rbp"), 0)
        self.mem = {}
        self.labels = {}
        self.symbols = {}
        self.code = []
        self.zf = False
        self._load(asm)

    def _load(self, asm):
        section = None
        data_ptr = 0x1000
        for raw in asm.splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or line.startswith(".global"):
                continue
            if line.startswith(".section"):
                section = line.split()[1]
                continue
            if section == ".data":
                label, directive = line.split(":", 1)
                kind, arg = directive.split()
                self.symbols[label] = data_ptr
                if kind == ".quad":
                    if arg.lstrip("-").isdigit():
                        self.mem[data_ptr] = int(arg)
                    else:
                        self.mem[data_ptr] = self.symbols[arg]
                    data_ptr += 8
                else:
                    data_ptr += int(arg)
            elif line.endswith(":"):
                self.labels[line[:-1]] = len(self.code)
            else:
                op, _, rest = line.partition(" ")
                operands = [o.strip() for o in rest.split(",")] if rest else []
                self.code.append((op, operands))

    def _address(self, operand):
        match = _MEM.match(operand)
        disp, reg = match.groups()
        if reg == "%rip":
            return self.symbols[disp]
        return (int(disp) if disp else 0) + self.regs[reg[1:]]

    def _read(self, operand):
        if operand.startswith("$"):
            return int(operand[1:])
        if operand == "%al":
            return self.regs["rax"] & 0xFF
        if operand == "%eax":
            return self.regs["rax"] & 0xFFFFFFFF
        if operand.startswith("%"):
            return self.regs[operand[1:]]
        return self.mem.get(self._address(operand), 0)

    def _write(self, operand, value):
        if operand == "%al":
            self.regs["rax"] = _wrap((self.regs["rax"] & ~0xFF) | (value & 0xFF))
        elif operand == "%eax":
            self.regs["rax"] = value & 0xFFFFFFFF
        elif operand.startswith("%"):
            self.regs[operand[1:]] = _wrap(value)
        else:
            self.mem[self._address(operand)] = _wrap(value)

    def _push(self, value):
        self.regs["rsp"] -= 8
        self.mem[self.regs["rsp"]] = value

    def _pop(self):
        value = self.mem.get(self.regs["rsp"], 0)
        self.regs["rsp"] += 8
        return value

    def run(self, entry="main", limit=2_000_000):
        self.regs["rsp"] = _STACK_TOP
        self._push(_SENTINEL)
        pc = self.labels[entry]
        for _ in range(limit):
            if pc == _SENTINEL:
                return self.regs["rax"]
            op, args = self.code[pc]
            pc += 1
            if op in ("pushq", "push"):
                self._push(self._read(args[0]))
            elif op in ("popq", "pop"):
                self._write(args[0], self._pop())
            elif op == "movq":
                self._write(args[1], self._read(args[0]))
            elif op == "leaq":
                self._write(args[1], self._address(args[0]))
            elif op == "addq":
                self._write(args[1], self._read(args[1]) + self._read(args[0]))
            elif op == "subq":
                self._write(args[1], self._read(args[1]) - self._read(args[0]))
            elif op == "imulq":
                self._write(args[1], self._read(args[1]) * self._read(args[0]))
            elif op == "cqto":
                self.regs["rdx"] = -1 if self.regs["rax"] < 0 else 0
            elif op == "idivq":
                divisor = self._read(args[0])
                dividend = self.regs["rax"]
                quotient = abs(dividend) // abs(divisor)
                if (dividend < 0) != (divisor < 0):
                    quotient = -quotient
                self.regs["rax"] = quotient
                self.regs["rdx"] = dividend - quotient * divisor
            elif op == "cmp":
                self.zf = self._read(args[1]) == self._read(args[0])
            elif op == "sete":
                self._write(args[0], int(self.zf))
            elif op == "setne":
                self._write(args[0], int(not self.zf))
            elif op == "movzbl":
                self._write(args[1], self._read(args[0]) & 0xFF)
            elif op == "or":
                self._write(args[1], self._read(args[1]) | self._read(args[0]))
            elif op == "and":
                self._write(args[1], self._read(args[1]) & self._read(args[0]))
            elif op == "test":
                self.zf = (self._read(args[0]) & self._read(args[1])) == 0
            elif op == "jz":
                if self.zf:
                    pc = self.labels[args[0]]
            elif op == "jmp":
                pc = self.labels[args[0]]
            elif op == "call":
                self._push(pc)
                pc = self.labels[args[0]]
            elif op == "ret":
                pc = self._pop()
            elif op == "syscall":
                if self.regs["rax"] == 60:
                    return self.regs["rdi"]
                raise AssertionError(f"unexpected syscall {self.regs['rax']}")
            else:
                raise AssertionError(f"unknown instruction {op}")
        raise AssertionError("program did not finish")


def _compile(source):
    return generate(parse(tokenize(source)))


def _run(source):
    machine = _Machine(_compile(source))
    result = machine.run()
    assert machine.regs["rsp"] == _STACK_TOP
    return result


ADD = """
fn main() -> int {
    let x:int=1;
    return x+2;
}
"""

ASSIGN = """
fn main() -> int {
    let x:int=5;
    let y:int=x;
    return y;
}
"""

FIB = """
fn fib(x:int) -> int {
    if (x==0 || x==1) return x;
    return fib(x-1)+fib(x-2);
}

fn main() -> int {
    return fib(9);
}
"""

GALLOC = """
let arr:int = galloc(2,int);

fn main() -> int {
    *arr = 8;
    *(arr+8)=10;
    *(arr+8) = *arr + *(arr+8)*2;
    return *(arr+8);
}
"""

GLOBAL = """
let var:int=4;

fn f(ptr:int) -> void {
    *ptr = 2**ptr;
}

fn main() -> int {
    let x:int=2;
    let y:int=&var;
    f(&*&*&*&*&*&*y);
    return x+var;
}
"""

LVALUE_PTR = """
fn f(ptr:int) -> void {
    *ptr = *ptr+*ptr;
}

fn main() -> int {
    let x:int=5;
    let y:int=&x;
    let z:int=&y;
    f(*&*&y);
    f(*z);
    return x;
}
"""

MATH = """
fn main() -> int {
    let x:int=5;
    let y:int=x+1;
    y=x+2*y+1-x+x-x+(x*2+3*1*x-5)-5-2+y+2*(y+3*y);
    return 1+y;
}
"""

MOD = """
fn main() -> int {
    return 5%2;
}
"""

PTR = """
fn f(addr: int) -> int {
    return *addr;
}

fn main() -> int {
    let x:int=5;
    let y:int=&x;
    return 1+*f(&y)+1;
}
"""

RECURSIVE = """
fn f(x:int, y:int) -> int {
    let z:int = 2*x+3*y;
    return z+5;
}

fn main() -> int {
    let x:int=5;
    let y:int=2;
    let z:int = f(f(1,y),f(x,f(1,1)));
    return z+f(1,2);
}
"""

SIZEOF = """
fn main() -> int {
    return 2*sizeof(int);
}
"""

STK_ALLOC = """
fn main() -> int {
    let arr: int = stalloc(4,int);
    *arr = 10;
    *(arr+1*8) = 20;
    *(arr+2*8) = 30;
    *(arr+3*8) = 40;
    return *(arr+2*8);
}
"""

WHILE = """
fn main() -> int {
    let x:int=0;
    let ans:int=0;
    while (x!=5) {
        ans=ans+2*x;
        x=x+1;
    }
    return ans;
}
"""

WHILE2 = """
fn main() -> int {
    let x:int=5;
    let ans:int=0;
    while (x!=7) {
        x=x+1;
        ans=ans+1;
    }
    return ans;
}
"""


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        (ADD, 3),
        (ASSIGN, 5),
        (FIB, 34),
        (GALLOC, 28),
        (GLOBAL, 10),
        (LVALUE_PTR, 20),
        (MATH, 81),
        (MOD, 1),
        (PTR, 7),
        (RECURSIVE, 179),
        (SIZEOF, 16),
        (STK_ALLOC, 30),
        (WHILE, 20),
        (WHILE2, 2),
    ],
)
def test_programs_return_expected_values(source, expected):
    assert _run(source) == expected


def test_division_truncates():
    assert _run("fn main() -> int { return 17/5; }") == 3


def test_global_only_program_exact_output():
    assert _compile("let var:int=4;") == (
        ".section .data\nvar: .quad 4\n\n.section .text\n"
    )


def test_global_without_initialiser_is_zero():
    assert "count: .quad 0\n" in _compile("let count:int;")


def test_simple_function_exact_output():
    assert _compile("fn main() -> int { return 5; }") == (
        ".section .data\n"
        "\n"
        ".section .text\n"
        ".global main\n"
        "main:\n"
        "\tpush %rbp\n"
        "\tmovq %rsp, %rbp\n"
        "\n"
        "\tpushq $5\n"
        "\tmovq -8(%rbp), %rax\n"
        "\tmovq %rbp, %rsp\n"
        "\tpop %rbp\n"
        "\tret\n"
        "\n"
        "\tmovq %rbp, %rsp\n"
        "\tpop %rbp\n"
        "\tret\n"
        "\n"
    )


def test_function_declaration_emits_nothing():
    assert _compile("fn helper(x:int) -> int;") == ".section .data\n\n.section .text\n"


def test_galloc_reserves_zeroed_data():
    asm = _compile("let arr:int = galloc(2,int);")
    label = re.search(r"^(_galloc_array_\d+): \.zero 16$", asm, re.MULTILINE).group(1)
    assert f"arr: .quad {label}\n" in asm


def test_galloc_labels_unique_across_generators():
    first = _compile("let a:int = galloc(1,int);")
    second = _compile("let a:int = galloc(1,int);")
    pattern = re.compile(r"_galloc_array_\d+")
    assert pattern.search(first).group() != pattern.search(second).group()


def test_global_address_uses_rip():
    asm = _compile("let g:int=3; fn main() -> int { let p:int=&g; return *p; }")
    assert "\tleaq g(%rip), %rax\n" in asm


def test_stalloc_subtracts_array_size():
    asm = _compile("fn main() -> int { let a:int = stalloc(3,int); return 0; }")
    assert "\tsubq $24, %rsp\n" in asm


def test_sizeof_pushes_constant():
    asm = _compile("fn main() -> int { return sizeof(int); }")
    assert "\tpushq $8\n" in asm
    assert _run("fn main() -> int { return sizeof(int); }") == 8


def test_syscall_loads_registers_in_order():
    asm = _compile("fn main() -> int { syscall(60, 7); return 0; }")
    body = asm[asm.index("main:"):]
    assert body.index("%rax\n") < body.index("%rdi\n") < body.index("\tsyscall\n")
    assert _Machine(asm).run() == 7


def test_syscall_rejects_too_many_arguments():
    with pytest.raises(ValueError):
        _compile("fn main() -> int { syscall(1, 2, 3, 4, 5); return 0; }")


def test_unknown_type_in_sizeof_raises():
    with pytest.raises(ValueError):
        _compile("fn main() -> int { return sizeof(float); }")


def test_void_global_raises():
    with pytest.raises(ValueError):
        _compile("let x:void;")


def test_undefined_variable_raises():
    with pytest.raises(KeyError):
        _compile("fn main() -> int { return missing; }")


def test_generator_can_be_reused():
    generator = CodeGenerator()
    first = generator.generate(parse(tokenize(MOD)))
    second = generator.generate(parse(tokenize(MOD)))
    assert first == second
    assert _Machine(second).run() == 1


def test_while_labels_match_jumps():
    asm = _compile(WHILE)
    start = re.search(r"^(\.L_start_\d+):$", asm, re.MULTILINE).group(1)
    assert f"\tjmp {start}\n" in asm
    end = start.replace("start", "end")
    assert f"\tjz {end}\n" in asm
    assert f"{end}:\n" in asm