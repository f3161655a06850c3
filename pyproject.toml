[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "seacc"
version = "0.1.0"
description = "A small compiler for a C-like language that emits x86-64 GNU assembly"
requires-python = ">=3.10"
dependencies = []
keywords = ["compiler", "assembly", "x86-64", "toy-language", "codegen"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Compilers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
seacc = "seacc.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["seacc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
