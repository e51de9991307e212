# kycdsl/expr.py
# Expression nodes produced by the parser.
#   Atom(text)        identifier, bare token or quoted string (quotes stripped)
#   Call(name, args)  (name arg1 arg2 ...)

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union


@dataclass(frozen=True)
class Atom:
    text: str


@dataclass(frozen=True)
class Call:
    name: str
    args: Tuple["Expression", ...] = ()


Expression = Union[Atom, Call]


def render_expr(expr: Expression) -> str:
    """Canonical text for an expression: atoms as-is, calls as '(name a b)'."""
    if isinstance(expr, Atom):
        return expr.text
    if not expr.args:
        return f"({expr.name})"
    return "(" + expr.name + " " + " ".join(render_expr(a) for a in expr.args) + ")"


def to_dict(expr: Expression) -> Dict[str, Any]:
    """JSON view used by `parse --emit-ast`."""
    if isinstance(expr, Atom):
        return {"type": "Atom", "value": expr.text}
    return {"type": "Call", "name": expr.name, "args": [to_dict(a) for a in expr.args]}


def atom_value(expr: Expression) -> str | None:
    return expr.text if isinstance(expr, Atom) else None
