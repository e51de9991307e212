# scripts/check_goldens.py
# Compile every cases/*.kyc and compare the plan with its cases/<file>.kyc.plan.json golden.
# Regenerate a golden with: python -m kycdsl.kyc_cli compile --pretty cases/<file>.kyc
from __future__ import annotations
import json, sys
from pathlib import Path

# Ensure project root (which contains `kycdsl/`) is on sys.path
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from kycdsl.compiler import compile_dsl  # noqa: E402
from kycdsl.errors import DslError  # noqa: E402

def canonical(obj) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

def check_case(path: Path) -> int:
    golden_path = Path(str(path) + ".plan.json")
    if not golden_path.exists():
        print(f"[ERROR] Missing golden: {golden_path}. Export via: python -m kycdsl.kyc_cli compile --pretty {path}")
        return 1
    try:
        new_plan = json.loads(compile_dsl(path.read_text(encoding="utf-8")))
    except DslError as e:
        print(f"[FAIL] {path.name} no longer compiles: {e}")
        return 2
    old_plan = json.loads(golden_path.read_text(encoding="utf-8"))
    if canonical(new_plan) == canonical(old_plan):
        print(f"[OK] {path.name} matches golden.")
        return 0
    print(f"[FAIL] Plan changed for {path.name} ({len(old_plan)} -> {len(new_plan)} instructions).")
    print(f"       Update golden: python -m kycdsl.kyc_cli compile --pretty {path}")
    return 3

def main():
    base = ROOT / "cases"
    if not base.exists():
        print("[ERROR] cases/ not found."); sys.exit(1)
    rc = 0
    for p in sorted(base.glob("*.kyc")):
        rc |= check_case(p)
    sys.exit(1 if rc else 0)

if __name__ == "__main__":
    main()
