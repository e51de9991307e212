#!/usr/bin/env python3
"""
Amendment pack loader + applier.

- Loads amendment packs (JSON) from kycdsl/packs, or from the directory
  named by KYC_DSL_AMENDMENT_DIR / the `directory` argument.
- Always loads `amendments.core.json`; extra packs are merged in order and the
  last-loaded pack wins on name conflicts.
- An amendment sets ParsedCase fields from templates such as "{policy_code}".
  `{case}` is always bound to the case name.
- Applying re-serializes the case and reports a line diff plus a sha256 of the
  new DSL text.
"""

from __future__ import annotations
import copy
import hashlib
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import DslError
from .lifecycle import Phase, TransitionError, as_phase, current_phase, validate_transition
from .parser import parse
from .projector import Ownership, ParsedCase, project_case, serialize_case

logger = logging.getLogger(__name__)

AMENDMENT_DIR = Path(__file__).resolve().parent / "packs"
AMENDMENT_DIR_ENV = "KYC_DSL_AMENDMENT_DIR"

SETTABLE_FIELDS = {
    "nature", "purpose", "client_business_unit", "policy",
    "function", "obligation", "kyc_token",
}

# ----------------------------
# Errors
# ----------------------------

class AmendmentError(DslError):
    pass

class UnknownAmendmentError(AmendmentError):
    def __init__(self, name: str):
        super().__init__(f"Unknown amendment type: {name}")
        self.name = name

# ----------------------------
# Data classes
# ----------------------------

@dataclass
class AmendmentType:
    name: str
    pack: str
    version: str
    description: str = ""
    phase: Optional[Phase] = None
    change_type: str = "generic-amendment"
    parameters: List[str] = field(default_factory=list)
    defaults: Dict[str, str] = field(default_factory=dict)
    set_fields: Dict[str, str] = field(default_factory=dict)
    ownership: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": list(self.parameters),
            "phase": self.phase.value if self.phase else None,
            "pack": self.pack,
        }

@dataclass
class AmendmentResult:
    case_name: str
    amendment: str
    old_dsl: str
    new_dsl: str
    diff: str
    change_type: str
    sha256: str
    case: ParsedCase

    def to_dict(self) -> Dict[str, Any]:
        return {
            "caseName": self.case_name,
            "amendment": self.amendment,
            "oldDsl": self.old_dsl,
            "updatedDsl": self.new_dsl,
            "diff": self.diff,
            "changeType": self.change_type,
            "sha256": self.sha256,
            "case": self.case.to_dict(),
        }

# ----------------------------
# Loader
# ----------------------------

def _pack_dirs(directory: Optional[Union[str, Path]]) -> List[Path]:
    dirs: List[Path] = []
    if directory:
        dirs.append(Path(directory))
    env_dir = os.getenv(AMENDMENT_DIR_ENV)
    if env_dir:
        dirs.append(Path(env_dir))
    dirs.append(AMENDMENT_DIR)
    return dirs

def _resolve_pack_path(name: str, directory: Optional[Union[str, Path]] = None) -> Path:
    # name "core" -> amendments.core.json
    filename = f"amendments.{name}.json"
    for d in _pack_dirs(directory):
        path = d / filename
        if path.is_file():
            return path
    raise AmendmentError(f"Amendment pack '{name}' not found ({filename})")

def _build_type(name: str, body: Dict[str, Any], pack: str, version: str) -> AmendmentType:
    set_fields = dict(body.get("set") or {})
    bad = sorted(set(set_fields) - SETTABLE_FIELDS)
    if bad:
        raise AmendmentError(f"Amendment '{name}' sets unknown fields: {', '.join(bad)}")
    phase = body.get("phase")
    return AmendmentType(
        name=name,
        pack=pack,
        version=version,
        description=str(body.get("description") or ""),
        phase=as_phase(phase) if phase else None,
        change_type=str(body.get("changeType") or "generic-amendment"),
        parameters=[str(p) for p in body.get("parameters") or []],
        defaults={str(k): str(v) for k, v in (body.get("defaults") or {}).items()},
        set_fields={k: str(v) for k, v in set_fields.items()},
        ownership=dict(body["ownership"]) if isinstance(body.get("ownership"), dict) else None,
    )

def load_amendments(
    pack_names: Optional[List[str]] = None,
    directory: Optional[Union[str, Path]] = None,
) -> Dict[str, AmendmentType]:
    merged: Dict[str, AmendmentType] = {}
    names = ["core"] + [n for n in (pack_names or []) if n and n != "core"]
    for pack_name in names:
        path = _resolve_pack_path(pack_name, directory)
        with open(path, "r", encoding="utf-8") as f:
            pack = json.load(f)
        pack_label = str(pack.get("pack") or pack_name)
        version = str(pack.get("version") or "")
        for name, body in (pack.get("amendments") or {}).items():
            if name in merged:
                logger.info("amendment %s overridden by pack %s", name, pack_label)
            merged[name] = _build_type(name, body, pack_label, version)
    logger.debug("loaded %d amendment types from %s", len(merged), names)
    return merged

# ----------------------------
# Apply
# ----------------------------

_brace_rx = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")

def _fill(template: str, values: Dict[str, str], amendment: str) -> str:
    def repl(m):
        key = m.group(1)
        if key not in values:
            raise AmendmentError(f"Amendment '{amendment}' requires parameter '{key}'")
        return values[key]
    return _brace_rx.sub(repl, template)

def generate_simple_diff(old: str, new: str) -> str:
    if old == new:
        return "No changes"
    old_lines = old.split("\n")
    new_lines = new.split("\n")
    out: List[str] = []
    for i in range(max(len(old_lines), len(new_lines))):
        o = old_lines[i].strip() if i < len(old_lines) else ""
        n = new_lines[i].strip() if i < len(new_lines) else ""
        if o == n:
            continue
        if o and not n:
            out.append(f"- {o}")
        elif n and not o:
            out.append(f"+ {n}")
        else:
            out.append(f"- {o}")
            out.append(f"+ {n}")
    if not out:
        return "Structural changes only"
    return "\n".join(out) + "\n"

def _resolve_values(kind: AmendmentType, case: ParsedCase, params: Dict[str, str]) -> Dict[str, str]:
    for required in kind.parameters:
        if not params.get(required):
            raise AmendmentError(f"Amendment '{kind.name}' requires parameter '{required}'")
    values = {"case": case.name}
    for key, template in kind.defaults.items():
        values[key] = _fill(template, values, kind.name)
    values.update({k: str(v) for k, v in params.items()})
    return values

def apply_amendment(
    source: Union[str, ParsedCase],
    name: str,
    params: Optional[Dict[str, str]] = None,
    *,
    amendments: Optional[Dict[str, AmendmentType]] = None,
    enforce_lifecycle: bool = False,
) -> AmendmentResult:
    """
    Apply amendment `name` to DSL text or a ParsedCase and return the new text.
    The input case is never mutated.
    """
    catalog = amendments if amendments is not None else load_amendments()
    kind = catalog.get(name)
    if kind is None:
        raise UnknownAmendmentError(name)

    base = project_case(parse(source)) if isinstance(source, str) else source
    old_dsl = serialize_case(base)

    if enforce_lifecycle and kind.phase is not None:
        here = current_phase(base)
        if here != kind.phase:
            validate_transition(here, kind.phase)

    case = copy.deepcopy(base)
    values = _resolve_values(kind, case, dict(params or {}))
    for attr, template in kind.set_fields.items():
        setattr(case, attr, _fill(template, values, kind.name))
    if kind.ownership is not None:
        if case.ownership is None:
            case.ownership = Ownership()
        entity = kind.ownership.get("entity_name")
        if entity:
            case.ownership.entity_name = _fill(entity, values, kind.name)

    new_dsl = serialize_case(case)
    digest = hashlib.sha256(new_dsl.encode("utf-8")).hexdigest()
    logger.info("amendment %s applied to %s", name, case.name)
    return AmendmentResult(
        case_name=case.name,
        amendment=name,
        old_dsl=old_dsl,
        new_dsl=new_dsl,
        diff=generate_simple_diff(old_dsl, new_dsl),
        change_type=kind.change_type,
        sha256=digest,
        case=case,
    )


__all__ = [
    "AmendmentError", "UnknownAmendmentError", "TransitionError",
    "AmendmentType", "AmendmentResult",
    "load_amendments", "apply_amendment", "generate_simple_diff",
]
