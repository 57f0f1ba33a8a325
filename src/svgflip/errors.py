"""Error types raised by the svgflip pipeline."""
from __future__ import annotations

from typing import Optional


class SvgflipError(ValueError):
    """Base error with a stable code for CLI mapping."""

    code = "E_SVGFLIP"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ParseError(SvgflipError):
    """Raised when preprocessed markup is still not well-formed XML."""

    code = "E_PARSE_XML"

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        super().__init__(message)
        self.line = line
        self.column = column


class UnknownRuleError(SvgflipError):
    code = "E_UNKNOWN_RULE"


class ProbeError(Exception):
    """Raised inside the ratio probe; never escapes a rewrite rule."""


class ProbeTimeout(ProbeError):
    pass


class ProbeFailure(ProbeError):
    pass


__all__ = [
    "SvgflipError",
    "ParseError",
    "UnknownRuleError",
    "ProbeError",
    "ProbeTimeout",
    "ProbeFailure",
]
