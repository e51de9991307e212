# tests/conftest.py
# Ensure the project root (the folder that contains 'kycdsl' and 'tests') is on
# sys.path so that `from kycdsl...` imports work without an editable install.

import sys
import pathlib

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)

if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

# Sanity check: make sure 'kycdsl' is importable and looks like a package
try:
    import kycdsl  # noqa: F401
except Exception as e:
    has_pkg = (ROOT / "kycdsl" / "__init__.py").is_file()
    raise RuntimeError(
        f"Failed to import 'kycdsl' from {ROOT_STR}. "
        f"kycdsl/__init__.py exists: {has_pkg}"
    ) from e

CASES_DIR = ROOT / "cases"


@pytest.fixture
def sample_case_path() -> pathlib.Path:
    return CASES_DIR / "aviva_eu_equity.kyc"


@pytest.fixture
def sample_case_text(sample_case_path) -> str:
    return sample_case_path.read_text(encoding="utf-8")
