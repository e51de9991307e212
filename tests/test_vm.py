# tests/test_vm.py
import json

import pytest

from kycdsl.compiler import Instruction, compile_dsl
from kycdsl.errors import ExecutionErrorKyc
from kycdsl.vm import ExecutionContext, OpKind, exec_instruction, execute_plan, load_plan, run_plan


def _plan(*pairs):
    return json.dumps([{"name": n, "args": list(a)} for n, a in pairs])


def test_minimal_case_scenario():
    ctx, results = run_plan(load_plan(compile_dsl("(kyc-case TEST-CASE)")))
    assert ctx.current_case == "TEST-CASE"
    assert len(ctx.log) == 2
    report = execute_plan(compile_dsl("(kyc-case TEST-CASE)"))
    assert "✓ Case 'TEST-CASE' initialized" in report
    assert "✓ Case 'TEST-CASE' finalized" in report


def test_nature_purpose_scenario_sets_variables():
    plan = compile_dsl('(kyc-case TEST-CASE (nature "Corporate") (purpose "Investment"))')
    ctx, results = run_plan(load_plan(plan))
    assert ctx.variables == {"nature": "Corporate", "purpose": "Investment"}
    assert len(results) == 4


def test_report_format():
    report = execute_plan(_plan(("init-case", ["C"]), ("nature", ["Corporate"])))
    assert report == (
        "Execution completed successfully.\n\n"
        "Results:\n✓ Case 'C' initialized\n✓ Nature: Corporate\n\n"
        "Log:\nInitialized case: C\nSet nature: Corporate"
    )


def test_variable_names_for_setters():
    plan = _plan(
        ("client-business-unit", ["CBU-1"]),
        ("policy", ["AMLD5"]),
        ("function", ["ASSESS-RISK"]),
        ("obligation", ["OBL-1"]),
        ("kyc-token", ["approved"]),
    )
    ctx, _ = run_plan(load_plan(plan))
    assert ctx.variables == {
        "cbu": "CBU-1",
        "policy": "AMLD5",
        "function": "ASSESS-RISK",
        "obligation": "OBL-1",
        "kyc_token": "approved",
    }


def test_last_write_wins():
    ctx, _ = run_plan(load_plan(_plan(("policy", ["A"]), ("policy", ["B"]))))
    assert ctx.variables["policy"] == "B"


def test_ownership_handlers_log_without_state():
    ctx, results = run_plan(load_plan(_plan(
        ("owner", ["ACME-Corp", "45.5%"]),
        ("beneficial-owner", ["J-SMITH", "25%"]),
        ("controller", ["J-DOE", "Director"]),
        ("attribute", ["UBO_NAME"]),
    )))
    assert ctx.variables == {}
    assert results == [
        "✓ Owner: ACME-Corp - 45.5%",
        "✓ Beneficial Owner: J-SMITH - 25%",
        "✓ Controller: J-DOE - Director",
        "✓ Attribute: UBO_NAME",
    ]
    assert ctx.log[0] == "Added owner: ACME-Corp (45.5%)"


def test_section_handlers_count_elements():
    plan = compile_dsl("(kyc-case C (ownership-structure (entity E) (owner A 50%)) (data-dictionary))")
    _, results = run_plan(load_plan(plan))
    assert "✓ Ownership structure with 2 elements" in results
    assert "✓ Data dictionary with 0 entries" in results


def test_generic_instruction():
    ctx = ExecutionContext()
    out = exec_instruction(Instruction("amendment", ["policy-discovery", "x"]), ctx)
    assert out == "✓ amendment: 2 args"
    assert ctx.log == ["Executed generic instruction: amendment"]


@pytest.mark.parametrize("name", ["owner", "beneficial-owner", "controller"])
@pytest.mark.parametrize("args", [[], ["ONLY-NAME"]])
def test_two_argument_forms_require_two_args(name, args):
    with pytest.raises(ExecutionErrorKyc):
        exec_instruction(Instruction(name, args), ExecutionContext())


@pytest.mark.parametrize("name", [
    "init-case", "finalize-case", "nature", "purpose", "client-business-unit",
    "policy", "function", "obligation", "attribute", "kyc-token",
])
def test_single_argument_forms_require_one_arg(name):
    with pytest.raises(ExecutionErrorKyc):
        exec_instruction(Instruction(name, []), ExecutionContext())


@pytest.mark.parametrize("name", [
    "nature-purpose", "ownership-structure", "data-dictionary", "document-requirements", "unheard-of",
])
def test_zero_argument_forms_never_fail(name):
    exec_instruction(Instruction(name, []), ExecutionContext())


def test_failure_aborts_and_keeps_applied_state():
    plan = load_plan(_plan(
        ("init-case", ["C"]),
        ("nature", ["Corporate"]),
        ("owner", ["ONLY-NAME"]),
        ("purpose", ["never-set"]),
    ))
    ctx = ExecutionContext()
    with pytest.raises(ExecutionErrorKyc) as ex:
        run_plan(plan, ctx)
    assert ex.value.instruction == "owner"
    assert ex.value.index == 2
    assert ctx.current_case == "C"
    assert ctx.variables == {"nature": "Corporate"}
    assert "purpose" not in ctx.variables


def test_each_run_gets_a_fresh_context():
    plan = load_plan(_plan(("nature", ["X"])))
    ctx_a, _ = run_plan(plan)
    ctx_b, _ = run_plan(plan)
    assert ctx_a is not ctx_b
    ctx_a.variables["nature"] = "changed"
    assert ctx_b.variables["nature"] == "X"


@pytest.mark.parametrize("payload", [
    "invalid json",
    "",
    '{"name": "init-case", "args": []}',
    '[{"name": "init-case"}]',
    '[{"name": "init-case", "args": [1]}]',
    '[{"name": 5, "args": []}]',
    '[{"name": "x", "args": [], "extra": true}]',
])
def test_bad_plan_raises_execution_error(payload):
    with pytest.raises(ExecutionErrorKyc) as ex:
        execute_plan(payload)
    assert ex.value.instruction is None


def test_deeply_nested_plan_is_rejected():
    with pytest.raises(ExecutionErrorKyc, match="invalid plan"):
        execute_plan("[" * 100000)


def test_op_kind_lookup():
    assert OpKind.of("kyc-token") is OpKind.KYC_TOKEN
    assert OpKind.of("nope") is OpKind.GENERIC
