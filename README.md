# seacc

`seacc` compiles a small C-like language into x86-64 assembly in AT&T syntax
for the GNU assembler. The `seacc` command can also run `as` and `ld` on the
result to produce a static Linux executable.

## The language

```
let counter:int = 4;

fn fib(x:int) -> int {
    if (x==0 || x==1) return x;
    return fib(x-1)+fib(x-2);
}

fn main() -> int {
    let x:int = fib(9);
    while (x != 40) { x = x+1; }
    return x;
}
```

- Types: `int` (8 bytes) and `void`.
- Definitions: `let name:type = expr;` and `fn name(a:int, b:int) -> type body`.
  A `let` at the top level becomes a global in the data section; its
  initialiser must be an integer literal or a `galloc` call.
- Statements: `if (...) ... else ...`, `while (...) ...`, `return expr;` and
  blocks `{ ... }`. A block needs no semicolon after it.
- Binary operators: `+ - * / % == != || && =`. `||` and `&&` are bitwise
  and do not short-circuit.
- Unary operators: `*` (dereference) and `&` (address of).
- Built-ins: `syscall(n, a, b, c)` (up to four arguments, placed in
  `%rax`, `%rdi`, `%rsi`, `%rdx`), `stalloc(count, type)` (array on the
  stack), `galloc(count, type)` (zeroed global array) and `sizeof(type)`.
- `#include "file"` lines are replaced with the named file's contents. The
  path is relative to the including file; a file that includes itself,
  directly or indirectly, is not expanded again.

The program's entry point is `main`. Its return value becomes the process
exit status.

## Installation

```
pip install .
```

To build executables, `as` and `ld` (GNU binutils) must be on `PATH`.

## Command line

```
seacc prog.c                      # assemble and link into ./sea.out
seacc a.c b.c -o prog             # several inputs, custom output name
seacc prog.c -b build             # intermediate files in ./build (default: .sea)
seacc prog.c --bundle -o prog.s   # one assembly file; no assembling or linking
```

Each input is compiled to `<build_dir>/<path with / replaced by _>.s`. A small
`_start` stub, written to `<build_dir>/_sea_entry.c.s`, calls `main` and exits
with its result. With `--bundle` the stub and every compiled file are
concatenated into the output file instead.

## Library use

```python
from seacc.compiler import compile_source, compile_file

asm = compile_source("fn main() -> int { return 5%2; }", "")
compile_file("prog.c", "prog.s")
```

The stages can also be used on their own:

```python
from seacc.preprocessor import preprocess
from seacc.lexer import tokenize
from seacc.parser import parse
from seacc.codegen import generate

tokens = tokenize(preprocess(source, base_dir))
tree = parse(tokens)
assembly = generate(tree)
```

A syntax error raises `seacc.parser.ParseError`, naming the unexpected token
and the token that was expected; its `token` attribute holds that token.
Unknown type names and integer literals above 2**31-1 raise it as well.
Referring to an undefined variable raises `KeyError`.

## What it does not do

- String literals are accepted by the parser but produce no code.
- Function calls are not checked against the function's parameters, and there
  is no type checking beyond `int` and `void`.
- The language has no comment syntax. An `#include` whose file cannot be
  opened is replaced by a `// Error: Could not open file ...` line, which is
  not valid program text.
- The command does not check whether `as` or `ld` succeeded; it always exits
  with status 0.
- There is no standard library and no optimisation.