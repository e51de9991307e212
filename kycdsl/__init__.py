# kycdsl/__init__.py
# Public entry points of the KYC DSL core.

from .compiler import Instruction, compile_ast, compile_dsl
from .errors import CompileErrorKyc, DslError, ExecutionErrorKyc, SyntaxErrorKyc
from .expr import Atom, Call, Expression, render_expr
from .parser import parse
from .projector import ParsedCase, project_case, serialize_case
from .vm import ExecutionContext, execute_plan, run_plan

__version__ = "0.1.0"

__all__ = [
    "Atom", "Call", "Expression", "render_expr",
    "Instruction", "ExecutionContext", "ParsedCase",
    "parse", "compile_ast", "compile_dsl", "execute_plan", "run_plan",
    "project_case", "serialize_case",
    "DslError", "SyntaxErrorKyc", "CompileErrorKyc", "ExecutionErrorKyc",
]
