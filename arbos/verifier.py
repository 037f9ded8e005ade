"""
arbos/verifier.py
=================

Checks a function's CFG against an expected-edges oracle.

An oracle is an s-expression literal::

    (trans
      (edge (entry) (for.cond))
      (edge (for.cond) (for.body))
      ...)

Verification of one function runs three stages and stops at the first
problem:

1. **decode**      – the literal must match ``(trans ?...entries)`` and each
                     entry ``(edge (?src) (?dest))``; anything else is a
                     :class:`MalformedOracleError` (the oracle is broken,
                     the IR is not judged).
2. **block count** – optional coarse gate on the number of blocks
                     (:class:`VerificationFailure`).
3. **edges**       – every ``src`` must name a block (else
                     :class:`BlockNotFoundError`, fatal) whose successors
                     include ``dest`` (else :class:`VerificationFailure`).

``(trans)`` with no entries passes vacuously; the block-count gate still
applies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import ClassVar, List, Optional, Tuple, Union

from sexql.errors import SexqlError
from sexql.pattern import compile_pattern
from sexql.reader import Atom, SExpr, dumps, parse

from arbos.errors import MalformedOracleError, VerificationFailure
from arbos.ir import Bundle, Function
from arbos.passes import Pass
from arbos.visitor import Visitor, walk

logger = logging.getLogger(__name__)

__all__ = [
    "ExpectedEdge",
    "decode_oracle",
    "check_block_count",
    "check_edges",
    "CfgTransVerifier",
    "CfgTransPass",
    "VerificationReport",
    "verify_cfg",
]

_TRANS = compile_pattern("(trans ?...entries)")
_EDGE = compile_pattern("(edge (?src) (?dest))")


@dataclass(frozen=True, slots=True)
class ExpectedEdge:
    """One decoded oracle entry; ``position`` is 1-based."""

    position: int
    src: str
    dest: str

    def __str__(self) -> str:
        return f"{self.src} -> {self.dest}"


def _atom_text(value: SExpr, what: str, position: int, entry: SExpr) -> str:
    if not isinstance(value, Atom):
        raise MalformedOracleError(
            f"{what} must be a block name, got a list", position=position, entry=dumps(entry)
        )
    return value.text


def decode_oracle(literal: Union[str, SExpr]) -> Tuple[ExpectedEdge, ...]:
    """Decode an oracle literal into its edges, in declaration order.

    Raises
    ------
    MalformedOracleError
        If the literal does not parse, is empty, is not a ``trans`` list,
        or holds an entry that is not ``(edge (src) (dest))``.
    """
    if isinstance(literal, str):
        try:
            value = parse(literal)
        except SexqlError as e:
            raise MalformedOracleError(f"oracle does not parse: {e}") from e
    else:
        value = literal
    if value is None:
        raise MalformedOracleError("oracle literal is empty")

    m = _TRANS.match(value)
    if m is None:
        raise MalformedOracleError(f"oracle must be a (trans entry*) list, got {dumps(value)}")

    edges: List[ExpectedEdge] = []
    for position, entry, em in _EDGE.match_each(m["entries"]):
        if em is None:
            raise MalformedOracleError(
                "expected (edge (src) (dest))", position=position, entry=dumps(entry)
            )
        edges.append(ExpectedEdge(
            position,
            _atom_text(em["src"], "src", position, entry),
            _atom_text(em["dest"], "dest", position, entry),
        ))
    return tuple(edges)


def check_block_count(function: Function, expected: int) -> None:
    actual = len(function.body)
    if actual != expected:
        raise VerificationFailure(
            f"function {function.name!r} has {actual} basic blocks, expected {expected}",
            function=function.name,
            expected=expected,
            actual=actual,
        )


def check_edges(function: Function, edges: Tuple[ExpectedEdge, ...]) -> None:
    """Assert every expected edge is in the CFG of *function*.

    A missing ``src`` block raises :class:`BlockNotFoundError` unchanged.
    """
    code = function.body
    for edge in edges:
        src = code.block_by_name(edge.src)
        succ_names = [bb.name for bb in src.next_blocks()]
        if edge.dest not in succ_names:
            raise VerificationFailure(
                f"entry #{edge.position}: {edge.dest} is not a successor of {edge.src} "
                f"in function {function.name!r} (successors: {', '.join(succ_names) or 'none'})",
                function=function.name,
                position=edge.position,
                expected=edge.dest,
                actual=tuple(succ_names),
            )
        logger.debug("%s: edge #%d %s ok", function.name, edge.position, edge)


class CfgTransVerifier(Visitor):
    """Visitor that verifies each visited function against one oracle.

    The oracle is decoded once, on the first function visited.
    *function*, when given, restricts the check to that function.
    """

    def __init__(
        self,
        expected: Union[str, SExpr],
        *,
        block_count: Optional[int] = None,
        function: Optional[str] = None,
    ) -> None:
        self.expected = expected
        self.block_count = block_count
        self.function = function
        self.checked: List[str] = []
        self._edges: Optional[Tuple[ExpectedEdge, ...]] = None

    @property
    def edges(self) -> Tuple[ExpectedEdge, ...]:
        if self._edges is None:
            self._edges = decode_oracle(self.expected)
        return self._edges

    def enter_function(self, fn: Function) -> None:
        if self.function is not None and fn.name != self.function:
            return
        edges = self.edges
        if self.block_count is not None:
            check_block_count(fn, self.block_count)
        check_edges(fn, edges)
        self.checked.append(fn.name)
        logger.info("%s: %d edge(s) verified", fn.name, len(edges))


class CfgTransPass(Pass):
    """
    Verification pass comparing CFGs with an expected-edges oracle.

    Subclasses set ``name``, ``description`` and ``expected``, and
    optionally ``block_count`` and ``function``.
    """

    name = "cfg-trans"
    description = "Verify CFG edges against an expected (trans ...) literal"

    expected: ClassVar[str] = "(trans)"
    block_count: ClassVar[Optional[int]] = None
    function: ClassVar[Optional[str]] = None

    def header(self) -> str:
        return f"{self.name}: {self.description}"

    def execute(self, bundle: Bundle) -> None:
        self.emit(self.header())
        verifier = CfgTransVerifier(
            self.expected, block_count=self.block_count, function=self.function
        )
        edges = verifier.edges
        try:
            walk(bundle, verifier)
        except VerificationFailure as e:
            self.emit(f"FAIL: {self.name}: {e.message}")
            raise
        if self.function is not None and not verifier.checked:
            # The configured function was never visited.
            bundle.function(self.function)
        self.emit(
            f"PASS: {self.name} ({len(edges)} edge(s) in "
            f"{', '.join(verifier.checked) or 'no functions'})"
        )


@dataclass
class VerificationReport:
    """Outcome of :func:`verify_cfg`.

    ``passed`` is ``False`` only for a FAIL verdict; malformed oracles and
    missing blocks are raised instead.
    """
    passed: bool
    functions: List[str] = field(default_factory=list)
    edges: Tuple[ExpectedEdge, ...] = ()
    failure: Optional[VerificationFailure] = None

    @property
    def verdict(self) -> str:
        return "PASS" if self.passed else "FAIL"

    def __str__(self) -> str:
        if self.passed:
            return f"PASS ({len(self.edges)} edge(s) in {', '.join(self.functions) or 'no functions'})"
        return f"FAIL: {self.failure.message}"


def verify_cfg(
    bundle: Bundle,
    literal: Union[str, SExpr],
    *,
    block_count: Optional[int] = None,
    function: Optional[str] = None,
) -> VerificationReport:
    """Verify *bundle* against *literal* and report the verdict.

    Usage
    -----
    >>> report = verify_cfg(bundle, "(trans (edge (a) (b)))")
    >>> report.passed
    True
    """
    verifier = CfgTransVerifier(literal, block_count=block_count, function=function)
    edges = verifier.edges
    if function is not None:
        bundle.function(function)
    try:
        walk(bundle, verifier)
    except VerificationFailure as e:
        return VerificationReport(False, list(verifier.checked), edges, e)
    return VerificationReport(True, list(verifier.checked), edges)
