# kycdsl/service.py
# In-process request layer over the DSL core.
# Every method returns a plain dict response and never raises on DSL errors;
# failures come back as success/valid = False with the error message.

from __future__ import annotations
import hashlib
import logging
from typing import Any, Dict, List, Optional

from .amendments import AmendmentType, apply_amendment, load_amendments
from .compiler import compile_dsl
from .errors import CompileErrorKyc, DslError, SyntaxErrorKyc
from .grammar import grammar_info
from .parser import parse
from .projector import ParsedCase, project_case, serialize_case
from .verifier import verify_case
from .vm import execute_plan

logger = logging.getLogger(__name__)


def _issue(severity: str, message: str, code: str, line: int = 0, column: int = 0) -> Dict[str, Any]:
    return {"severity": severity, "message": message, "code": code, "line": line, "column": column}


class DslService:
    def __init__(
        self,
        *,
        amendment_packs: Optional[List[str]] = None,
        amendment_dir: Optional[str] = None,
    ):
        self._packs = list(amendment_packs or [])
        self._amendment_dir = amendment_dir

    def _catalog(self) -> Dict[str, AmendmentType]:
        return load_amendments(self._packs, self._amendment_dir)

    # ---------- execute / validate
    def execute(self, case_id: str, function_name: str) -> Dict[str, Any]:
        logger.info("execute request for case %s", case_id)
        source = f"(kyc-case {case_id} (function {function_name}))"
        try:
            report = execute_plan(compile_dsl(source))
        except DslError as exc:
            logger.warning("execute failed for %s: %s", case_id, exc)
            return {
                "success": False,
                "message": f"Execution failed: {exc}",
                "updated_dsl": "",
                "case_id": case_id,
                "new_version": 0,
            }
        return {
            "success": True,
            "message": f"Executed function '{function_name}' on case '{case_id}'",
            "updated_dsl": source,
            "report": report,
            "case_id": case_id,
            "new_version": 1,
        }

    def run(self, dsl: str) -> Dict[str, Any]:
        """Compile and execute arbitrary DSL text."""
        try:
            plan = compile_dsl(dsl)
            report = execute_plan(plan)
        except DslError as exc:
            logger.warning("run failed: %s", exc)
            return {"success": False, "message": str(exc), "kind": type(exc).__name__}
        return {"success": True, "message": "Execution completed", "plan": plan, "report": report}

    def validate(self, dsl: str = "", case_id: str = "", *, strict: bool = False) -> Dict[str, Any]:
        source = dsl if dsl else f"(kyc-case {case_id})"
        logger.info("validate request (%d chars)", len(source))
        try:
            compile_dsl(source)
        except SyntaxErrorKyc as exc:
            return {
                "valid": False,
                "errors": [str(exc)],
                "warnings": [],
                "issues": [_issue("error", str(exc), "PARSE_ERROR", exc.line, exc.column)],
            }
        except CompileErrorKyc as exc:
            return {
                "valid": False,
                "errors": [str(exc)],
                "warnings": [],
                "issues": [_issue("error", str(exc), "COMPILE_ERROR")],
            }

        res = verify_case(project_case(parse(source)))
        issues = [_issue("warning", w, "VERIFY_WARNING") for w in res["warnings"]]
        errors: List[str] = []
        warnings = list(res["warnings"])
        if strict:
            errors = list(res["errors"])
            issues = [_issue("error", e, "VERIFY_ERROR") for e in res["errors"]] + issues
        else:
            warnings = list(res["errors"]) + warnings
            issues = [_issue("warning", e, "VERIFY_ERROR") for e in res["errors"]] + issues
        return {"valid": not errors, "errors": errors, "warnings": warnings, "issues": issues}

    # ---------- projection
    def parse(self, dsl: str) -> Dict[str, Any]:
        try:
            case = project_case(parse(dsl))
        except SyntaxErrorKyc as exc:
            return {
                "success": False,
                "message": f"Parse failed: {exc}",
                "cases": [],
                "errors": [f"Parse error: {exc}"],
            }
        return {"success": True, "message": "Parse successful", "cases": [case.to_dict()], "errors": []}

    def serialize(self, case: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not case:
            return {"success": False, "dsl": "", "message": "No case provided"}
        try:
            dsl = serialize_case(ParsedCase.from_dict(case))
        except DslError as exc:
            logger.warning("serialize failed: %s", exc)
            return {"success": False, "dsl": "", "message": f"Serialization failed: {exc}"}
        return {"success": True, "dsl": dsl, "message": "Serialization successful"}

    # ---------- amendments
    def amend(
        self,
        dsl: str,
        amendment_type: str,
        params: Optional[Dict[str, str]] = None,
        *,
        enforce_lifecycle: bool = False,
    ) -> Dict[str, Any]:
        logger.info("amend request: %s", amendment_type)
        try:
            result = apply_amendment(
                dsl,
                amendment_type,
                params,
                amendments=self._catalog(),
                enforce_lifecycle=enforce_lifecycle,
            )
        except DslError as exc:
            logger.warning("amend failed: %s", exc)
            return {"success": False, "message": str(exc), "updated_dsl": "", "sha256_hash": ""}
        return {
            "success": True,
            "message": f"Applied amendment '{amendment_type}'",
            "updated_dsl": result.new_dsl,
            "diff": result.diff,
            "change_type": result.change_type,
            "sha256_hash": result.sha256,
        }

    def list_amendments(self) -> Dict[str, Any]:
        return {"amendments": [a.to_dict() for a in self._catalog().values()]}

    def get_grammar(self) -> Dict[str, Any]:
        info = grammar_info()
        info["sha256"] = hashlib.sha256(info["ebnf"].encode("utf-8")).hexdigest()
        return info
