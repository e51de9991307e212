# kycdsl/parser.py
# Recursive-descent reader for the KYC S-expression DSL.
#
#   expr   = call | atom | string
#   call   = "(" ws head { ws expr } ws ")"
#   head   = atom | string
#   atom   = 1*( alnum | "_" | "-" | "%" | "." )
#   string = '"' *( any char except '"' ) '"'
#
# Whitespace (space, tab, CR, LF) separates tokens. The trimmed input must be
# exactly one expression.

from __future__ import annotations
import logging
from typing import List, Tuple

from .errors import SyntaxErrorKyc
from .expr import Atom, Call, Expression

logger = logging.getLogger(__name__)

WHITESPACE = " \t\r\n"
ATOM_PUNCT = "_-%."


def _is_atom_char(ch: str) -> bool:
    return ch.isalnum() or ch in ATOM_PUNCT


def is_atom_text(text: str) -> bool:
    """True when `text` reads back as a single bare atom."""
    return bool(text) and all(_is_atom_char(ch) for ch in text)


class Reader:
    def __init__(self, text: str, start: int = 0, end: int | None = None):
        self.text = text
        self.pos = start
        self.end = len(text) if end is None else end

    # ---------- helpers
    def _where(self, pos: int) -> Tuple[int, int]:
        before = self.text[:pos]
        line = before.count("\n") + 1
        column = pos - (before.rfind("\n") + 1) + 1
        return line, column

    def error(self, message: str, pos: int | None = None) -> SyntaxErrorKyc:
        at = self.pos if pos is None else pos
        line, column = self._where(at)
        return SyntaxErrorKyc(message, position=at, line=line, column=column)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < self.end else ""

    def skip_ws(self) -> None:
        while self.pos < self.end and self.text[self.pos] in WHITESPACE:
            self.pos += 1

    # ---------- productions
    def read_atom(self) -> Atom:
        start = self.pos
        while self.pos < self.end and _is_atom_char(self.text[self.pos]):
            self.pos += 1
        if self.pos == start:
            ch = self.peek()
            found = repr(ch) if ch else "end of input"
            raise self.error(f"expected atom, found {found}")
        return Atom(self.text[start:self.pos])

    def read_string(self) -> Atom:
        start = self.pos
        self.pos += 1  # opening quote
        end = self.text.find('"', self.pos, self.end)
        if end < 0:
            raise self.error("unterminated string", start)
        value = self.text[self.pos:end]
        self.pos = end + 1
        return Atom(value)

    def read_atom_or_string(self) -> Atom:
        if self.peek() == '"':
            return self.read_string()
        return self.read_atom()

    def read_call(self) -> Call:
        open_at = self.pos
        self.pos += 1  # '('
        self.skip_ws()
        if self.peek() == "(":
            raise self.error("form head must be an atom or string, not a nested form")
        if self.peek() == ")":
            raise self.error("empty form '()'")
        head = self.read_atom_or_string()
        args: List[Expression] = []
        while True:
            self.skip_ws()
            ch = self.peek()
            if ch == ")":
                self.pos += 1
                return Call(head.text, tuple(args))
            if not ch:
                raise self.error("missing closing ')'", open_at)
            args.append(self.read_expr())

    def read_expr(self) -> Expression:
        ch = self.peek()
        if ch == "(":
            return self.read_call()
        if ch == ")":
            raise self.error("unexpected ')'")
        return self.read_atom_or_string()


def parse(text: str) -> Expression:
    """Parse DSL source into a single expression or raise SyntaxErrorKyc."""
    if not isinstance(text, str):
        raise SyntaxErrorKyc("source must be text")
    start = len(text) - len(text.lstrip(WHITESPACE))
    end = len(text.rstrip(WHITESPACE))
    reader = Reader(text, start, max(start, end))
    if start >= end:
        raise reader.error("empty input")
    try:
        expr = reader.read_expr()
    except RecursionError as exc:
        raise reader.error("nesting too deep", start) from exc
    reader.skip_ws()
    if reader.pos != reader.end:
        raise reader.error("unexpected trailing input after expression")
    logger.debug("parsed %s", type(expr).__name__)
    return expr
