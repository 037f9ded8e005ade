# arbos/errors.py
"""
Error types for the arbos IR framework.

Error hierarchy:
────────────────
┌─────────────────────────────────────────────────────────────────────┐
│  ArbosError (base)                                                  │
│  ├── IRError                 - bad IR construction / mutation       │
│  ├── NotFound                - lookup failures (also LookupError)   │
│  │   ├── BlockNotFoundError                                         │
│  │   └── FunctionNotFoundError                                      │
│  ├── VerificationError                                              │
│  │   ├── VerificationFailure - FAIL verdict (also AssertionError)   │
│  │   └── MalformedOracleError- the expected-shape literal is bad    │
│  └── PassError               - registry and plugin problems         │
│      ├── DuplicatePassError                                         │
│      ├── PassNotFoundError   (also NotFound)                        │
│      └── PluginLoadError                                            │
└─────────────────────────────────────────────────────────────────────┘

Error codes:
────────────
Each error class carries a code ``ARB-NNNN``:
  - 1000-1999: IR construction
  - 2000-2999: lookups
  - 3000-3999: verification
  - 4000-4999: passes and plugins

Parse and pattern errors of the query language live in :mod:`sexql.errors`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class ErrorCode:
    """Structured error code rendered as ``PREFIX-NNNN``."""

    prefix: str
    number: int
    summary: str

    def __str__(self) -> str:
        return f"{self.prefix}-{self.number:04d}"


class ArbosErrorCodes:
    """Predefined error codes."""

    # IR (1000-1999)
    IR_INVALID = ErrorCode("ARB", 1000, "invalid IR")
    IR_FROZEN = ErrorCode("ARB", 1001, "IR is read-only")
    IR_DUPLICATE_NAME = ErrorCode("ARB", 1002, "duplicate name")
    IR_BAD_INPUT = ErrorCode("ARB", 1003, "malformed IR description")

    # Lookups (2000-2999)
    NOT_FOUND = ErrorCode("ARB", 2000, "not found")
    BLOCK_NOT_FOUND = ErrorCode("ARB", 2001, "basic block not found")
    FUNCTION_NOT_FOUND = ErrorCode("ARB", 2002, "function not found")

    # Verification (3000-3999)
    VERIFICATION = ErrorCode("ARB", 3000, "verification error")
    VERIFICATION_FAILED = ErrorCode("ARB", 3001, "verification failed")
    MALFORMED_ORACLE = ErrorCode("ARB", 3002, "malformed oracle")

    # Passes (4000-4999)
    PASS_ERROR = ErrorCode("ARB", 4000, "pass error")
    DUPLICATE_PASS = ErrorCode("ARB", 4001, "duplicate pass name")
    PASS_NOT_FOUND = ErrorCode("ARB", 4002, "pass not found")
    PLUGIN_LOAD = ErrorCode("ARB", 4003, "plugin unit failed to load")


class ArbosError(Exception):
    """Base exception for all arbos errors."""

    default_code: ClassVar[ErrorCode] = ErrorCode("ARB", 9000, "internal error")

    def __init__(self, message: str, *, code: Optional[ErrorCode] = None, hint: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.hint = hint

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.hint:
            text += f" (hint: {self.hint})"
        return text


# ═══════════════════════════════════════════════════════════════════════
#  IR
# ═══════════════════════════════════════════════════════════════════════

class IRError(ArbosError):
    """Invalid IR construction, or mutation of frozen IR."""

    default_code = ArbosErrorCodes.IR_INVALID


class NotFound(ArbosError, LookupError):
    """A named entity does not exist where it was looked up."""

    default_code = ArbosErrorCodes.NOT_FOUND
    what: ClassVar[str] = "entity"

    def __init__(self, name: str, *, scope: str = "", hint: str = "") -> None:
        where = f" in {scope}" if scope else ""
        super().__init__(f"{self.what} {name!r} not found{where}", hint=hint)
        self.name = name
        self.scope = scope


class BlockNotFoundError(NotFound):
    default_code = ArbosErrorCodes.BLOCK_NOT_FOUND
    what = "basic block"


class FunctionNotFoundError(NotFound):
    default_code = ArbosErrorCodes.FUNCTION_NOT_FOUND
    what = "function"


# ═══════════════════════════════════════════════════════════════════════
#  Verification
# ═══════════════════════════════════════════════════════════════════════

class VerificationError(ArbosError):
    """Base for verification outcomes that stop a check."""

    default_code = ArbosErrorCodes.VERIFICATION


class VerificationFailure(VerificationError, AssertionError):
    """The IR does not have the expected shape (a FAIL verdict).

    Attributes
    ----------
    function : str
        Name of the function being verified.
    position : int or None
        1-based oracle entry that failed; ``None`` for whole-function checks
        such as the block-count gate.
    expected, actual :
        What the oracle asked for and what the IR has.
    """

    default_code = ArbosErrorCodes.VERIFICATION_FAILED

    def __init__(
        self,
        message: str,
        *,
        function: str = "",
        position: Optional[int] = None,
        expected: object = None,
        actual: object = None,
    ) -> None:
        super().__init__(message)
        self.function = function
        self.position = position
        self.expected = expected
        self.actual = actual


class MalformedOracleError(VerificationError):
    """The expected-shape literal cannot be decoded.

    Distinct from :class:`VerificationFailure`: a malformed oracle says
    nothing about the IR.
    """

    default_code = ArbosErrorCodes.MALFORMED_ORACLE

    def __init__(self, message: str, *, position: Optional[int] = None, entry: str = "") -> None:
        detail = message
        if position is not None:
            detail = f"entry #{position}: {message}"
        if entry:
            detail += f": {entry}"
        super().__init__(detail)
        self.position = position
        self.entry = entry


# ═══════════════════════════════════════════════════════════════════════
#  Passes
# ═══════════════════════════════════════════════════════════════════════

class PassError(ArbosError):
    """Registry misuse or an invalid pass object."""

    default_code = ArbosErrorCodes.PASS_ERROR


class DuplicatePassError(PassError):
    default_code = ArbosErrorCodes.DUPLICATE_PASS


class PassNotFoundError(PassError, NotFound):
    default_code = ArbosErrorCodes.PASS_NOT_FOUND
    what = "pass"

    def __init__(self, name: str, *, available: Sequence[str] = ()) -> None:
        hint = f"available: {', '.join(available)}" if available else ""
        NotFound.__init__(self, name, hint=hint)
        self.available: Tuple[str, ...] = tuple(available)


class PluginLoadError(PassError):
    """A plugin unit could not be imported or has no usable ``init``."""

    default_code = ArbosErrorCodes.PLUGIN_LOAD

    def __init__(self, unit: str, reason: str) -> None:
        super().__init__(f"cannot load pass unit {unit!r}: {reason}")
        self.unit = unit
        self.reason = reason
