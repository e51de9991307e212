# kycdsl/verifier.py
# Structural checks on a projected case. Nothing here consults reference data.
# Returns {'errors': [...], 'warnings': [...]} without raising; verify_or_raise
# turns errors into a DslError.

from __future__ import annotations
from typing import Dict, List

from .errors import DslError
from .projector import ParsedCase

TOKEN_STATES = ("pending", "approved", "declined", "review")

KNOWN_FUNCTIONS = {
    "DISCOVER-POLICIES",
    "SOLICIT-DOCUMENTS",
    "EXTRACT-DATA",
    "VERIFY-OWNERSHIP",
    "BUILD-OWNERSHIP-TREE",
    "ASSESS-RISK",
    "REGULATOR-NOTIFY",
}


def verify_case(case: ParsedCase) -> Dict[str, List[str]]:
    errs: List[str] = []
    warns: List[str] = []
    where = f"case {case.name}"

    if not case.nature or not case.purpose:
        errs.append(f"{where}: missing nature or purpose section")
    if not case.client_business_unit:
        errs.append(f"{where}: missing client-business-unit section")
    if not case.kyc_token:
        errs.append(f"{where}: missing kyc-token section")
    elif case.kyc_token.lower() not in TOKEN_STATES:
        errs.append(f"{where}: invalid token state '{case.kyc_token}'")

    if case.function and case.function not in KNOWN_FUNCTIONS:
        warns.append(f"{where}: unknown function '{case.function}'")

    if case.ownership is not None:
        total = sum(o.percentage for o in case.ownership.owners)
        if total > 100:
            warns.append(f"{where}: owner percentages sum to {total:g}% (over 100%)")

    return {"errors": errs, "warnings": warns}


def verify_or_raise(case: ParsedCase) -> None:
    res = verify_case(case)
    if res["errors"]:
        raise DslError("Case verification failed:\n- " + "\n- ".join(res["errors"]))
