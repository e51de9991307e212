# tests/test_parser.py
from textwrap import dedent

import pytest

from kycdsl.errors import SyntaxErrorKyc
from kycdsl.expr import Atom, Call
from kycdsl.parser import parse


def test_parse_atom():
    assert parse("kyc-case") == Atom("kyc-case")


def test_parse_quoted_string_strips_quotes():
    assert parse('"Hello World"') == Atom("Hello World")


def test_parse_empty_string_literal():
    assert parse('(controller JANE "")') == Call("controller", (Atom("JANE"), Atom("")))


def test_parse_simple_call():
    expr = parse("(kyc-case TEST)")
    assert expr == Call("kyc-case", (Atom("TEST"),))


def test_parse_nested():
    expr = parse('(kyc-case TEST (nature "Corporate"))')
    assert isinstance(expr, Call)
    assert expr.name == "kyc-case"
    assert len(expr.args) == 2
    assert expr.args[1] == Call("nature", (Atom("Corporate"),))


def test_parse_empty_argument_list():
    assert parse("(name)") == Call("name", ())


def test_atom_characters():
    expr = parse("(owner ACME_Corp-1 45.5%)")
    assert expr.args == (Atom("ACME_Corp-1"), Atom("45.5%"))


def test_whitespace_is_insignificant():
    text = dedent("""\

        (kyc-case   CASE-1
        \t(policy    AMLD5)

          (kyc-token "pending")   )

    """)
    expr = parse(text)
    assert expr == Call("kyc-case", (
        Atom("CASE-1"),
        Call("policy", (Atom("AMLD5"),)),
        Call("kyc-token", (Atom("pending"),)),
    ))


def test_adjacent_forms_without_whitespace():
    expr = parse('(a(b)"c")')
    assert expr == Call("a", (Call("b", ()), Atom("c")))


def test_quoted_head_becomes_call_name():
    assert parse('("my form" x)') == Call("my form", (Atom("x"),))


def test_strings_keep_parens_and_newlines():
    expr = parse('(purpose "fund (A)\nline two")')
    assert expr.args[0] == Atom("fund (A)\nline two")


def test_deep_nesting():
    text = "(a " * 50 + "x" + ")" * 50
    expr = parse(text)
    depth = 0
    while isinstance(expr, Call):
        depth += 1
        expr = expr.args[0]
    assert depth == 50
    assert expr == Atom("x")


def test_nesting_past_recursion_limit_is_a_syntax_error():
    text = "(a " * 5000 + "x" + ")" * 5000
    with pytest.raises(SyntaxErrorKyc, match="nesting too deep") as ex:
        parse(text)
    assert ex.value.line == 1
    assert ex.value.column == 1


@pytest.mark.parametrize("text", [
    "",
    "   \n\t ",
    "not ( balanced",
    "(kyc-case TEST",
    '(nature "unterminated)',
    ")",
    "(kyc-case A) (kyc-case B)",
    "(kyc-case A))",
    "()",
    "(a $)",
])
def test_malformed_input_raises(text):
    with pytest.raises(SyntaxErrorKyc):
        parse(text)


def test_nested_head_is_rejected():
    # A form whose head is itself a form does not reduce to a call.
    with pytest.raises(SyntaxErrorKyc) as ex:
        parse("((nature x) y)")
    assert "head" in ex.value.reason


def test_error_carries_position():
    with pytest.raises(SyntaxErrorKyc) as ex:
        parse("(kyc-case A\n  (policy X)\n  )  junk")
    err = ex.value
    assert err.line == 3
    assert err.column == 6
    assert "trailing" in str(err)


def test_unterminated_string_points_at_opening_quote():
    with pytest.raises(SyntaxErrorKyc) as ex:
        parse('(nature "abc')
    assert ex.value.column == 9
