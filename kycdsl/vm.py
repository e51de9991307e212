# kycdsl/vm.py
# Executes a compiled plan against a fresh ExecutionContext.
#
# Instructions run strictly in order. The first failing handler aborts the
# rest of the plan; state already applied stays in the context.

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import jsonschema

from .compiler import Instruction
from .errors import ExecutionErrorKyc

logger = logging.getLogger(__name__)

PLAN_SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "kyc-plan.schema.json"
PLAN_SCHEMA: Dict[str, Any] = json.loads(PLAN_SCHEMA_PATH.read_text(encoding="utf-8"))


@dataclass
class ExecutionContext:
    current_case: Optional[str] = None
    variables: Dict[str, str] = field(default_factory=dict)
    log: List[str] = field(default_factory=list)

    def record(self, message: str) -> None:
        self.log.append(message)

    def set_case(self, name: str) -> None:
        self.current_case = name


class OpKind(Enum):
    INIT_CASE = "init-case"
    FINALIZE_CASE = "finalize-case"
    NATURE = "nature"
    PURPOSE = "purpose"
    CLIENT_BUSINESS_UNIT = "client-business-unit"
    POLICY = "policy"
    FUNCTION = "function"
    OBLIGATION = "obligation"
    OWNER = "owner"
    BENEFICIAL_OWNER = "beneficial-owner"
    CONTROLLER = "controller"
    ATTRIBUTE = "attribute"
    KYC_TOKEN = "kyc-token"
    NATURE_PURPOSE = "nature-purpose"
    OWNERSHIP_STRUCTURE = "ownership-structure"
    DATA_DICTIONARY = "data-dictionary"
    DOCUMENT_REQUIREMENTS = "document-requirements"
    GENERIC = None

    @classmethod
    def of(cls, name: str) -> "OpKind":
        for kind in cls:
            if kind.value == name:
                return kind
        return cls.GENERIC


def _require(args: List[str], n: int, message: str) -> None:
    if len(args) < n:
        raise ExecutionErrorKyc(message)


# ---------- handlers: (args, ctx) -> confirmation

def _init_case(args: List[str], ctx: ExecutionContext) -> str:
    _require(args, 1, "init-case requires a case name")
    ctx.set_case(args[0])
    ctx.record(f"Initialized case: {args[0]}")
    return f"✓ Case '{args[0]}' initialized"


def _finalize_case(args: List[str], ctx: ExecutionContext) -> str:
    _require(args, 1, "finalize-case requires a case name")
    ctx.record(f"Finalized case: {args[0]}")
    return f"✓ Case '{args[0]}' finalized"


def _setter(op: str, variable: str, log_label: str, result_label: str) -> Callable[[List[str], ExecutionContext], str]:
    def handler(args: List[str], ctx: ExecutionContext) -> str:
        _require(args, 1, f"{op} requires a value")
        value = args[0]
        ctx.variables[variable] = value
        ctx.record(f"Set {log_label}: {value}")
        return f"✓ {result_label}: {value}"
    return handler


def _owner(args: List[str], ctx: ExecutionContext) -> str:
    _require(args, 2, "owner requires name and percentage")
    ctx.record(f"Added owner: {args[0]} ({args[1]})")
    return f"✓ Owner: {args[0]} - {args[1]}"


def _beneficial_owner(args: List[str], ctx: ExecutionContext) -> str:
    _require(args, 2, "beneficial-owner requires name and percentage")
    ctx.record(f"Added beneficial owner: {args[0]} ({args[1]})")
    return f"✓ Beneficial Owner: {args[0]} - {args[1]}"


def _controller(args: List[str], ctx: ExecutionContext) -> str:
    _require(args, 2, "controller requires name and role")
    ctx.record(f"Added controller: {args[0]} ({args[1]})")
    return f"✓ Controller: {args[0]} - {args[1]}"


def _attribute(args: List[str], ctx: ExecutionContext) -> str:
    _require(args, 1, "attribute requires a code")
    ctx.record(f"Defined attribute: {args[0]}")
    return f"✓ Attribute: {args[0]}"


def _section(log_line: str, result_fmt: str) -> Callable[[List[str], ExecutionContext], str]:
    def handler(args: List[str], ctx: ExecutionContext) -> str:
        ctx.record(log_line)
        return result_fmt.format(n=len(args))
    return handler


HANDLERS: Dict[OpKind, Callable[[List[str], ExecutionContext], str]] = {
    OpKind.INIT_CASE: _init_case,
    OpKind.FINALIZE_CASE: _finalize_case,
    OpKind.NATURE: _setter("nature", "nature", "nature", "Nature"),
    OpKind.PURPOSE: _setter("purpose", "purpose", "purpose", "Purpose"),
    OpKind.CLIENT_BUSINESS_UNIT: _setter("client-business-unit", "cbu", "CBU", "Client Business Unit"),
    OpKind.POLICY: _setter("policy", "policy", "policy", "Policy"),
    OpKind.FUNCTION: _setter("function", "function", "function", "Function"),
    OpKind.OBLIGATION: _setter("obligation", "obligation", "obligation", "Obligation"),
    OpKind.KYC_TOKEN: _setter("kyc-token", "kyc_token", "KYC token", "KYC Token"),
    OpKind.OWNER: _owner,
    OpKind.BENEFICIAL_OWNER: _beneficial_owner,
    OpKind.CONTROLLER: _controller,
    OpKind.ATTRIBUTE: _attribute,
    OpKind.NATURE_PURPOSE: _section("Processing nature-purpose section", "✓ Nature-purpose defined with {n} elements"),
    OpKind.OWNERSHIP_STRUCTURE: _section("Processing ownership structure", "✓ Ownership structure with {n} elements"),
    OpKind.DATA_DICTIONARY: _section("Processing data dictionary", "✓ Data dictionary with {n} entries"),
    OpKind.DOCUMENT_REQUIREMENTS: _section("Processing document requirements", "✓ Document requirements with {n} elements"),
}


def _generic(name: str, args: List[str], ctx: ExecutionContext) -> str:
    ctx.record(f"Executed generic instruction: {name}")
    return f"✓ {name}: {len(args)} args"


def exec_instruction(ins: Instruction, ctx: ExecutionContext) -> str:
    kind = OpKind.of(ins.name)
    if kind is OpKind.GENERIC:
        return _generic(ins.name, ins.args, ctx)
    return HANDLERS[kind](ins.args, ctx)


# ---------- plan entry points

def load_plan(plan_json: str) -> List[Instruction]:
    """Decode and schema-check a JSON plan."""
    try:
        doc = json.loads(plan_json)
    except (TypeError, ValueError, RecursionError) as exc:
        raise ExecutionErrorKyc(f"invalid plan: {exc}") from exc
    try:
        jsonschema.validate(instance=doc, schema=PLAN_SCHEMA)
    except jsonschema.ValidationError as exc:
        raise ExecutionErrorKyc(f"invalid plan: {exc.message}") from exc
    return [Instruction.from_dict(d) for d in doc]


def run_plan(
    instructions: List[Instruction],
    ctx: Optional[ExecutionContext] = None,
) -> Tuple[ExecutionContext, List[str]]:
    """Run every instruction in order. A supplied ctx keeps its partial state on failure."""
    ctx = ctx if ctx is not None else ExecutionContext()
    results: List[str] = []
    for idx, ins in enumerate(instructions):
        logger.debug("exec %d: %s %s", idx, ins.name, ins.args)
        try:
            results.append(exec_instruction(ins, ctx))
        except ExecutionErrorKyc as exc:
            exc.instruction = ins.name
            exc.index = idx
            logger.debug("abort at %d (%s): %s", idx, ins.name, exc)
            raise
    return ctx, results


def format_report(ctx: ExecutionContext, results: List[str]) -> str:
    return (
        "Execution completed successfully.\n\nResults:\n"
        + "\n".join(results)
        + "\n\nLog:\n"
        + "\n".join(ctx.log)
    )


def execute_plan(plan_json: str) -> str:
    """JSON plan -> report text. Raises ExecutionErrorKyc."""
    ctx, results = run_plan(load_plan(plan_json))
    return format_report(ctx, results)
