# kycdsl/kyc_cli.py
# CLI for the KYC DSL: compile, run, parse, validate and amend case files.

from __future__ import annotations

import argparse
import datetime as _dt
import hashlib
import json
import logging
import os
import sys
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from .amendments import AMENDMENT_DIR_ENV
from .compiler import compile_dsl
from .errors import DslError
from .expr import to_dict
from .parser import parse
from .projector import project_case
from .service import DslService
from .vm import execute_plan

LOG_LEVEL_ENV = "KYC_DSL_LOG_LEVEL"

logger = logging.getLogger(__name__)


def _now_utc_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _read_source(arg: str) -> str:
    if arg == "-":
        return sys.stdin.read()
    return Path(arg).read_text(encoding="utf-8")


def _parse_params(pairs: List[str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for item in pairs:
        if "=" not in item:
            raise ValueError(f"--param expects key=value, got: {item!r}")
        k, v = item.split("=", 1)
        out[k.strip()] = v
    return out


def _base_receipt(command: str, text: str) -> Dict[str, Any]:
    h = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return {
        "engine": "kycdsl",
        "command": command,
        "source": {"hash": f"sha256:{h}"},
        "run": {"timestamp": _now_utc_iso(), "uuid": str(uuid.uuid4())},
    }


def _write_receipt(path: Optional[str], receipt: Dict[str, Any]) -> None:
    if path:
        Path(path).write_text(json.dumps(receipt, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def _configure_logging(level: Optional[str]) -> None:
    name = (level or os.getenv(LOG_LEVEL_ENV) or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="kyc", description="Compile, run and amend KYC DSL case files.")
    p.add_argument("--log-level", default=None, help=f"Logging level (default: ${LOG_LEVEL_ENV} or WARNING).")
    p.add_argument("--receipt-out", metavar="PATH", help="Write a JSON receipt to PATH.")
    sub = p.add_subparsers(dest="command", required=True)

    c = sub.add_parser("compile", help="Print the JSON instruction plan.")
    c.add_argument("source", help="DSL file path, or - for stdin.")
    c.add_argument("--pretty", action="store_true")

    r = sub.add_parser("run", help="Compile and execute; print the report.")
    r.add_argument("source", help="DSL file path, or - for stdin.")
    r.add_argument("--plan", action="store_true", help="Treat the source as an already-compiled JSON plan.")

    ps = sub.add_parser("parse", help="Print the projected case record as JSON.")
    ps.add_argument("source")
    ps.add_argument("--emit-ast", action="store_true", help="Print the raw expression tree instead.")

    v = sub.add_parser("validate", help="Compile and verify a case.")
    v.add_argument("source")
    v.add_argument("--strict", action="store_true", help="Treat verifier findings as errors.")

    a = sub.add_parser("amend", help="Apply an amendment and print the new DSL.")
    a.add_argument("source")
    a.add_argument("amendment", help="Amendment type, e.g. policy-discovery.")
    a.add_argument("--param", action="append", default=[], help="Amendment parameter key=value (repeatable).")
    a.add_argument("--pack", action="append", default=[], help="Extra amendment pack to load (repeatable).")
    a.add_argument("--amendment-dir", default=None, help=f"Directory with amendment packs (or ${AMENDMENT_DIR_ENV}).")
    a.add_argument("--enforce-lifecycle", action="store_true", help="Reject illegal lifecycle transitions.")
    a.add_argument("--out", metavar="PATH", help="Write the amended DSL to PATH.")

    am = sub.add_parser("amendments", help="List available amendment types.")
    am.add_argument("--pack", action="append", default=[])
    am.add_argument("--amendment-dir", default=None)

    sub.add_parser("grammar", help="Print the DSL grammar.")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    _configure_logging(args.log_level)

    if args.command == "grammar":
        info = DslService().get_grammar()
        print(info["ebnf"].strip())
        return 0

    if args.command == "amendments":
        svc = DslService(amendment_packs=args.pack, amendment_dir=args.amendment_dir)
        try:
            listing = svc.list_amendments()
        except DslError as e:
            print(f"kyc: {e}", file=sys.stderr)
            return 1
        for item in listing["amendments"]:
            params = ", ".join(item["parameters"]) or "-"
            print(f"{item['name']:<24} {item['phase'] or '-':<22} params: {params}  {item['description']}")
        return 0

    try:
        text = _read_source(args.source)
    except OSError as e:
        p.error(f"cannot read source: {e}")
    base = _base_receipt(args.command, text)

    try:
        if args.command == "compile":
            plan = compile_dsl(text)
            if args.pretty:
                plan = json.dumps(json.loads(plan), indent=2, ensure_ascii=False)
            print(plan)
            receipt = {**base, "status": "ok", "plan": json.loads(plan)}

        elif args.command == "run":
            plan = text if args.plan else compile_dsl(text)
            report = execute_plan(plan)
            print(report)
            receipt = {**base, "status": "ok", "report": report}

        elif args.command == "parse":
            expr = parse(text)
            payload = to_dict(expr) if args.emit_ast else project_case(expr).to_dict()
            print(json.dumps(payload, indent=2, ensure_ascii=False))
            receipt = {**base, "status": "ok", "result": payload}

        elif args.command == "validate":
            res = DslService().validate(text, strict=args.strict)
            print(json.dumps(res, indent=2, ensure_ascii=False))
            receipt = {**base, "status": "ok" if res["valid"] else "error", "verify": res}
            _write_receipt(args.receipt_out, receipt)
            return 0 if res["valid"] else 1

        elif args.command == "amend":
            try:
                params = _parse_params(args.param)
            except ValueError as e:
                p.error(str(e))
            svc = DslService(amendment_packs=args.pack, amendment_dir=args.amendment_dir)
            res = svc.amend(text, args.amendment, params, enforce_lifecycle=args.enforce_lifecycle)
            if not res["success"]:
                raise DslError(res["message"])
            print(res["updated_dsl"])
            if args.out:
                Path(args.out).write_text(res["updated_dsl"] + "\n", encoding="utf-8")
            receipt = {**base, "status": "ok", "amendment": {k: v for k, v in res.items() if k != "success"}}

        else:  # pragma: no cover - argparse restricts choices
            p.error(f"unknown command: {args.command}")

        _write_receipt(args.receipt_out, receipt)
        return 0

    except DslError as e:
        err = {**base, "status": "error", "reason": str(e), "kind": type(e).__name__}
        print(f"kyc: {e}", file=sys.stderr)
        _write_receipt(args.receipt_out, err)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
