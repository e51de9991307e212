# kycdsl/grammar.py
# Canonical grammar text served by `DslService.get_grammar` and `kyc grammar`.

GRAMMAR_VERSION = "1.2"

GRAMMAR_EBNF = """
KYC-DSL Grammar (v1.2)

case        = "(kyc-case" IDENT form* ")"
form        = "(nature-purpose" nature purpose ")"
            | "(ownership-structure" entity owner* beneficial-owner* controller* ")"
            | "(data-dictionary" attribute* ")"
            | "(document-requirements" jurisdiction required ")"
            | "(kyc-token" STRING ")"
            | simple-form

simple-form = "(" IDENT value* ")"
value       = STRING | IDENT | PERCENT | form
IDENT       = [A-Za-z0-9_.%-]+
STRING      = '"' [^"]* '"'
PERCENT     = [0-9]+ ( "." [0-9]+ )? "%"
"""


def grammar_info() -> dict:
    return {"ebnf": GRAMMAR_EBNF, "version": GRAMMAR_VERSION}
