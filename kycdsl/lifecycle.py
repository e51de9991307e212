# kycdsl/lifecycle.py
# KYC case lifecycle: phases, allowed transitions and phase detection.

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from .errors import DslError
from .projector import ParsedCase


class TransitionError(DslError):
    pass


class Phase(str, Enum):
    CASE_CREATION = "CASE-CREATION"
    POLICY_DISCOVERY = "POLICY-DISCOVERY"
    DOCUMENT_SOLICITATION = "DOCUMENT-SOLICITATION"
    OWNERSHIP_CONTROL = "OWNERSHIP-CONTROL"
    RISK_REVIEW = "RISK-REVIEW"
    FINALIZATION = "FINALIZATION"


@dataclass
class PhaseDefinition:
    phase: Phase
    description: str
    functions: List[str] = field(default_factory=list)
    next_phases: List[Phase] = field(default_factory=list)


PHASES: Dict[Phase, PhaseDefinition] = {
    Phase.CASE_CREATION: PhaseDefinition(
        Phase.CASE_CREATION,
        "Initialize the case with nature, purpose, and client business unit",
        [],
        [Phase.POLICY_DISCOVERY],
    ),
    Phase.POLICY_DISCOVERY: PhaseDefinition(
        Phase.POLICY_DISCOVERY,
        "Discover which policies apply based on product & jurisdiction",
        ["DISCOVER-POLICIES"],
        [Phase.DOCUMENT_SOLICITATION],
    ),
    Phase.DOCUMENT_SOLICITATION: PhaseDefinition(
        Phase.DOCUMENT_SOLICITATION,
        "Request proofs (W8/W9, UBO declarations, etc.)",
        ["SOLICIT-DOCUMENTS"],
        [Phase.OWNERSHIP_CONTROL],
    ),
    Phase.OWNERSHIP_CONTROL: PhaseDefinition(
        Phase.OWNERSHIP_CONTROL,
        "Build legal & beneficial ownership graph + operational control roles",
        ["BUILD-OWNERSHIP-TREE", "VERIFY-OWNERSHIP"],
        [Phase.RISK_REVIEW],
    ),
    Phase.RISK_REVIEW: PhaseDefinition(
        Phase.RISK_REVIEW,
        "Compute KYC score; escalate or approve",
        ["ASSESS-RISK", "REGULATOR-NOTIFY"],
        # may loop back for additional documents
        [Phase.FINALIZATION, Phase.DOCUMENT_SOLICITATION],
    ),
    Phase.FINALIZATION: PhaseDefinition(
        Phase.FINALIZATION,
        "Token issuance / completion",
        [],
        [],
    ),
}


def as_phase(value: "Phase | str") -> Phase:
    try:
        return Phase(value)
    except ValueError as exc:
        raise TransitionError(f"unknown phase: {value}") from exc


def current_phase(case: ParsedCase) -> Phase:
    if case.kyc_token and case.kyc_token.lower() != "pending":
        return Phase.FINALIZATION
    fn = case.function
    if fn in ("ASSESS-RISK", "REGULATOR-NOTIFY"):
        return Phase.RISK_REVIEW
    if fn in ("BUILD-OWNERSHIP-TREE", "VERIFY-OWNERSHIP") or case.ownership is not None:
        return Phase.OWNERSHIP_CONTROL
    if fn == "SOLICIT-DOCUMENTS" or case.obligation:
        return Phase.DOCUMENT_SOLICITATION
    if fn == "DISCOVER-POLICIES" or case.policy:
        return Phase.POLICY_DISCOVERY
    return Phase.CASE_CREATION


def next_phases(phase: "Phase | str") -> List[Phase]:
    return list(PHASES[as_phase(phase)].next_phases)


def is_terminal(phase: "Phase | str") -> bool:
    return not PHASES[as_phase(phase)].next_phases


def validate_transition(current: "Phase | str", nxt: "Phase | str") -> None:
    cur, target = as_phase(current), as_phase(nxt)
    if target not in PHASES[cur].next_phases:
        raise TransitionError(f"invalid transition from {cur.value} to {target.value}")
