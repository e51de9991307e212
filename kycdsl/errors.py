# kycdsl/errors.py
# Error kinds raised by the parse -> compile -> execute pipeline.

from __future__ import annotations
from typing import Optional


class DslError(Exception):
    pass


class SyntaxErrorKyc(DslError):
    """Source text could not be reduced to exactly one expression."""

    def __init__(self, message: str, position: int = 0, line: int = 1, column: int = 1):
        super().__init__(f"{message} (line {line}, column {column})")
        self.reason = message
        self.position = position
        self.line = line
        self.column = column


class CompileErrorKyc(DslError):
    pass


class ExecutionErrorKyc(DslError):
    def __init__(self, message: str, instruction: Optional[str] = None, index: Optional[int] = None):
        super().__init__(message)
        self.instruction = instruction
        self.index = index
