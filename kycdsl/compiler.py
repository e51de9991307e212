# kycdsl/compiler.py
# Turn a parsed kyc-case expression into the flat instruction list the VM runs.
#
# Only `kyc-case` descends into its body. Every other form becomes exactly one
# instruction whose args are the canonical text of its sub-expressions, so
# `(foo (bar 1))` yields foo("(bar 1)") and `bar` never runs on its own.

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from .errors import CompileErrorKyc
from .expr import Atom, Call, Expression, render_expr
from .parser import parse

logger = logging.getLogger(__name__)


@dataclass
class Instruction:
    name: str
    args: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "args": list(self.args)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Instruction":
        return cls(name=d["name"], args=list(d.get("args") or []))


class FormKind(Enum):
    KYC_CASE = "kyc-case"
    NATURE_PURPOSE = "nature-purpose"
    OWNERSHIP_STRUCTURE = "ownership-structure"
    DATA_DICTIONARY = "data-dictionary"
    DOCUMENT_REQUIREMENTS = "document-requirements"
    GENERIC = None

    @classmethod
    def of(cls, name: str) -> "FormKind":
        for kind in cls:
            if kind.value == name:
                return kind
        return cls.GENERIC


# ---------- emitters

def _emit_case(args: tuple, out: List[Instruction]) -> None:
    if not args:
        raise CompileErrorKyc("kyc-case requires at least a name")
    head = args[0]
    if not isinstance(head, Atom):
        raise CompileErrorKyc("kyc-case name must be an atom")
    case_id = head.text

    out.append(Instruction("init-case", [case_id]))
    for sub in args[1:]:
        _emit(sub, out)
    out.append(Instruction("finalize-case", [case_id]))


def _emit_form(call: Call, out: List[Instruction]) -> None:
    out.append(Instruction(call.name, [render_expr(a) for a in call.args]))


def _emit(expr: Expression, out: List[Instruction]) -> None:
    # Atoms are argument data, not instructions.
    if isinstance(expr, Atom):
        return
    kind = FormKind.of(expr.name)
    if kind is FormKind.KYC_CASE:
        _emit_case(expr.args, out)
    elif kind in (
        FormKind.NATURE_PURPOSE,
        FormKind.OWNERSHIP_STRUCTURE,
        FormKind.DATA_DICTIONARY,
        FormKind.DOCUMENT_REQUIREMENTS,
        FormKind.GENERIC,
    ):
        _emit_form(expr, out)
    else:  # pragma: no cover
        raise CompileErrorKyc(f"unhandled form kind: {kind}")


def compile_ast(expr: Expression) -> List[Instruction]:
    """Pre-order walk; init-case/finalize-case bracket every case body."""
    out: List[Instruction] = []
    _emit(expr, out)
    logger.debug("compiled %d instructions", len(out))
    return out


def dump_plan(instructions: List[Instruction]) -> str:
    return json.dumps([ins.to_dict() for ins in instructions], ensure_ascii=False)


def compile_dsl(source: str) -> str:
    """DSL text -> JSON plan. Raises SyntaxErrorKyc or CompileErrorKyc."""
    return dump_plan(compile_ast(parse(source)))
