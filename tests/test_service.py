# tests/test_service.py
from kycdsl.service import DslService


def test_run_reports_success(sample_case_text):
    res = DslService().run(sample_case_text)
    assert res["success"] is True
    assert res["report"].startswith("Execution completed successfully.")
    assert "✓ Case 'AVIVA-EU-EQUITY-FUND' initialized" in res["report"]


def test_run_failure_is_a_response_not_an_exception():
    res = DslService().run("(kyc-case")
    assert res["success"] is False
    assert res["kind"] == "SyntaxErrorKyc"


def test_execute_builds_minimal_case():
    res = DslService().execute("CASE-9", "ASSESS-RISK")
    assert res["success"] is True
    assert res["updated_dsl"] == "(kyc-case CASE-9 (function ASSESS-RISK))"
    assert "Set function: ASSESS-RISK" in res["report"]


def test_validate_sample_is_clean(sample_case_text):
    res = DslService().validate(sample_case_text, strict=True)
    assert res == {"valid": True, "errors": [], "warnings": [], "issues": []}


def test_validate_parse_error_has_position():
    res = DslService().validate("(kyc-case X\n  (policy")
    assert res["valid"] is False
    issue = res["issues"][0]
    assert issue["code"] == "PARSE_ERROR"
    assert issue["line"] >= 1


def test_validate_strict_vs_lenient():
    svc = DslService()
    lenient = svc.validate(case_id="BARE")
    assert lenient["valid"] is True
    assert lenient["warnings"]
    assert all(i["severity"] == "warning" for i in lenient["issues"])

    strict = svc.validate(case_id="BARE", strict=True)
    assert strict["valid"] is False
    assert any(i["code"] == "VERIFY_ERROR" for i in strict["issues"])


def test_validate_compile_error():
    res = DslService().validate("(kyc-case)")
    assert res["valid"] is False
    assert res["issues"][0]["code"] == "COMPILE_ERROR"


def test_parse_and_serialize(sample_case_text):
    svc = DslService()
    parsed = svc.parse(sample_case_text)
    assert parsed["success"] is True
    case = parsed["cases"][0]
    assert case["ownership"]["owners"] == [{"name": "AVIVA-PLC", "percentage": 100.0}]

    out = svc.serialize(case)
    assert out["success"] is True
    assert svc.parse(out["dsl"])["cases"][0] == case

    assert svc.serialize({})["success"] is False
    assert svc.parse("(kyc-case")["success"] is False


def test_amend_and_list():
    svc = DslService()
    res = svc.amend("(kyc-case C)", "review")
    assert res["success"] is True
    assert '(kyc-token "review")' in res["updated_dsl"]
    assert len(res["sha256_hash"]) == 64
    assert res["change_type"] == "token-update:review"

    bad = svc.amend("(kyc-case C)", "no-such-thing")
    assert bad["success"] is False
    assert "Unknown amendment type" in bad["message"]

    names = [a["name"] for a in svc.list_amendments()["amendments"]]
    assert "policy-discovery" in names


def test_grammar():
    info = DslService().get_grammar()
    assert info["version"] == "1.2"
    assert "kyc-case" in info["ebnf"]
    assert len(info["sha256"]) == 64


def test_serialize_malformed_case_is_a_failure_response():
    svc = DslService()
    res = svc.serialize({"name": "C", "ownership": {"owners": [{"percentage": "x"}]}})
    assert res["success"] is False
    assert res["dsl"] == ""
    assert "owner entry needs a name" in res["message"]
