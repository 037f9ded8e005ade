# sexql/errors.py
"""
Error types for the s-expression reader and the pattern matcher.

Hierarchy::

    SexqlError
    ├── SExprError          - invalid value construction (bad atom text)
    │   └── SExprParseError - malformed source text
    └── PatternError        - invalid pattern construction

A pattern that simply does not match a value is *not* an error: matching
returns ``None`` for that case.
"""

from __future__ import annotations

from typing import Optional


class SexqlError(Exception):
    """Base exception for all sexql errors."""
    pass


class SExprError(SexqlError):
    """Raised when an s-expression value cannot be constructed."""
    pass


class SExprParseError(SExprError):
    """Raised when source text is not a well-formed s-expression.

    The whole parse is aborted; no partially built value is returned.
    """

    def __init__(self, message: str, source: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source is not None:
            return f"{self.source}: {self.message}"
        return self.message


class PatternError(SexqlError):
    """Raised when a pattern template is ill-formed.

    Detected while the pattern is being built, never while matching.
    """
    pass
