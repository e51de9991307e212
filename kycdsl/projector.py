# kycdsl/projector.py
# Structured case record <-> DSL text, used by the amendment workflow.
#
# project_case reads a `kyc-case` expression into a ParsedCase; unknown forms
# are ignored. serialize_case writes the record back in a fixed field order,
# so a round trip keeps the projected fields but not the original layout.

from __future__ import annotations
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .errors import DslError
from .expr import Call, Expression, atom_value
from .parser import is_atom_text

logger = logging.getLogger(__name__)

UNKNOWN_CASE = "UNKNOWN"


@dataclass
class Owner:
    name: str
    percentage: float = 0.0


@dataclass
class BeneficialOwner:
    name: str
    percentage: float = 0.0


@dataclass
class Controller:
    name: str
    role: str = ""


@dataclass
class Ownership:
    entity_name: str = ""
    owners: List[Owner] = field(default_factory=list)
    beneficial_owners: List[BeneficialOwner] = field(default_factory=list)
    controllers: List[Controller] = field(default_factory=list)


def _entry_name(entry: Any, kind: str) -> str:
    name = entry.get("name") if isinstance(entry, dict) else None
    if not name:
        raise DslError(f"{kind} entry needs a name")
    return str(name)


def _entry_percent(entry: Dict[str, Any]) -> float:
    raw = entry.get("percentage") or 0
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise DslError(f"invalid percentage for {entry.get('name')}: {raw!r}") from exc


@dataclass
class ParsedCase:
    name: str = UNKNOWN_CASE
    nature: str = ""
    purpose: str = ""
    client_business_unit: str = ""
    policy: str = ""
    function: str = ""
    obligation: str = ""
    kyc_token: str = ""
    ownership: Optional[Ownership] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ParsedCase":
        own = d.get("ownership")
        ownership = None
        if isinstance(own, dict):
            ownership = Ownership(
                entity_name=str(own.get("entity_name") or ""),
                owners=[Owner(_entry_name(o, "owner"), _entry_percent(o)) for o in own.get("owners") or []],
                beneficial_owners=[
                    BeneficialOwner(_entry_name(o, "beneficial owner"), _entry_percent(o))
                    for o in own.get("beneficial_owners") or []
                ],
                controllers=[
                    Controller(_entry_name(c, "controller"), str(c.get("role") or ""))
                    for c in own.get("controllers") or []
                ],
            )
        return cls(
            name=str(d.get("name") or UNKNOWN_CASE),
            nature=str(d.get("nature") or ""),
            purpose=str(d.get("purpose") or ""),
            client_business_unit=str(d.get("client_business_unit") or ""),
            policy=str(d.get("policy") or ""),
            function=str(d.get("function") or ""),
            obligation=str(d.get("obligation") or ""),
            kyc_token=str(d.get("kyc_token") or ""),
            ownership=ownership,
        )


# field name on ParsedCase for each single-value form
SCALAR_FORMS = {
    "nature": "nature",
    "purpose": "purpose",
    "client-business-unit": "client_business_unit",
    "policy": "policy",
    "function": "function",
    "obligation": "obligation",
    "kyc-token": "kyc_token",
}


def parse_percent(text: str) -> float:
    try:
        return float(text.strip().rstrip("%"))
    except ValueError:
        return 0.0


def format_percent(value: float) -> str:
    if float(value).is_integer():
        return f"{int(value)}%"
    return f"{value!r}%"


def _first_atom(call: Call) -> Optional[str]:
    return atom_value(call.args[0]) if call.args else None


def _project_ownership(block: Call, ownership: Ownership) -> None:
    for node in block.args:
        if not isinstance(node, Call):
            continue
        values = [atom_value(a) for a in node.args]
        if node.name == "entity" and values and values[0] is not None:
            ownership.entity_name = values[0]
        elif node.name in ("owner", "beneficial-owner", "controller"):
            if len(values) < 2 or values[0] is None or values[1] is None:
                continue
            if node.name == "owner":
                ownership.owners.append(Owner(values[0], parse_percent(values[1])))
            elif node.name == "beneficial-owner":
                ownership.beneficial_owners.append(BeneficialOwner(values[0], parse_percent(values[1])))
            else:
                ownership.controllers.append(Controller(values[0], values[1]))


def _project_form(form: Call, case: ParsedCase) -> None:
    attr = SCALAR_FORMS.get(form.name)
    if attr is not None:
        value = _first_atom(form)
        if value is not None:
            setattr(case, attr, value)
        return
    if form.name == "nature-purpose":
        for inner in form.args:
            if isinstance(inner, Call) and inner.name in ("nature", "purpose"):
                _project_form(inner, case)
        return
    if form.name == "ownership-structure":
        if case.ownership is None:
            case.ownership = Ownership()
        _project_ownership(form, case.ownership)


def project_case(expr: Expression) -> ParsedCase:
    case = ParsedCase()
    if not isinstance(expr, Call) or expr.name != "kyc-case" or not expr.args:
        return case
    name = atom_value(expr.args[0])
    if name is not None:
        case.name = name
    for form in expr.args[1:]:
        if isinstance(form, Call):
            _project_form(form, case)
    logger.debug("projected case %s", case.name)
    return case


def _value(text: str) -> str:
    # bare when it reads back as one atom, quoted otherwise
    return text if is_atom_text(text) else f'"{text}"'


def serialize_case(case: ParsedCase) -> str:
    lines = [f"(kyc-case {_value(case.name)}"]

    if case.nature or case.purpose:
        lines.append("  (nature-purpose")
        if case.nature:
            lines.append(f'    (nature "{case.nature}")')
        if case.purpose:
            lines.append(f'    (purpose "{case.purpose}")')
        lines.append("  )")

    if case.client_business_unit:
        lines.append(f"  (client-business-unit {_value(case.client_business_unit)})")
    if case.policy:
        lines.append(f"  (policy {_value(case.policy)})")
    if case.function:
        lines.append(f"  (function {_value(case.function)})")
    if case.obligation:
        lines.append(f"  (obligation {_value(case.obligation)})")

    own = case.ownership
    if own is not None:
        lines.append("  (ownership-structure")
        if own.entity_name:
            lines.append(f"    (entity {_value(own.entity_name)})")
        for o in own.owners:
            lines.append(f"    (owner {_value(o.name)} {format_percent(o.percentage)})")
        for b in own.beneficial_owners:
            lines.append(f"    (beneficial-owner {_value(b.name)} {format_percent(b.percentage)})")
        for c in own.controllers:
            lines.append(f'    (controller {_value(c.name)} "{c.role}")')
        lines.append("  )")

    if case.kyc_token:
        lines.append(f'  (kyc-token "{case.kyc_token}")')

    return "\n".join(lines) + "\n)"
