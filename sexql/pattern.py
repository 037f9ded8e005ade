"""sexql/pattern.py – structural pattern matching over s-expression values.

A pattern has the shape of an s-expression whose atom positions are one of

    ``name``       literal – matches an atom with exactly this text
    ``?name``      capture – matches any value and binds it to ``name``
    ``_``          wildcard – matches any value, binds nothing
    ``?...name``   rest capture – last element of a list pattern only; binds
                   the remaining elements (possibly none) as an ``SList``

A list pattern matches a list of the same arity position by position (with
a trailing rest capture: at least the fixed arity).  There is no
backtracking and no alternation, so every match attempt terminates with
either a :class:`Match` or ``None``.

Example::

    >>> p = compile_pattern("(edge (?src) (?dest))")
    >>> m = p.match(parse("(edge (a) (b))"))
    >>> m["src"], m["dest"]
    (Atom(text='a'), Atom(text='b'))
    >>> p.match(parse("(edge (a) b)")) is None
    True

Ill-formed patterns (a capture name used twice, a rest capture that is not
last, an empty capture name) raise :class:`PatternError` when the pattern
is built.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from sexql.errors import PatternError, SexqlError
from sexql.reader import Atom, SExpr, SList, parse

__all__ = [
    "LiteralPattern",
    "CapturePattern",
    "WildcardPattern",
    "RestPattern",
    "ListPattern",
    "PatternNode",
    "Pattern",
    "Match",
    "compile_pattern",
    "pattern",
    "lit",
    "cap",
    "wildcard",
    "rest",
]


# ═══════════════════════════════════════════════════════════════════════
#  Pattern nodes
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class LiteralPattern:
    text: str


@dataclass(frozen=True, slots=True)
class CapturePattern:
    name: str


@dataclass(frozen=True, slots=True)
class WildcardPattern:
    pass


@dataclass(frozen=True, slots=True)
class RestPattern:
    name: str


@dataclass(frozen=True, slots=True)
class ListPattern:
    elements: Tuple["PatternNode", ...] = ()


PatternNode = Union[LiteralPattern, CapturePattern, WildcardPattern, RestPattern, ListPattern]

_NODE_TYPES = (LiteralPattern, CapturePattern, WildcardPattern, RestPattern, ListPattern)


def lit(text: str) -> LiteralPattern:
    """Literal node; unlike the text notation, ``lit("?x")`` matches ``?x``."""
    try:
        Atom(text)
    except SexqlError as e:
        raise PatternError(f"invalid literal {text!r}: {e}") from e
    return LiteralPattern(text)


def cap(name: str) -> CapturePattern:
    if not name:
        raise PatternError("capture name may not be empty")
    return CapturePattern(name)


def wildcard() -> WildcardPattern:
    return WildcardPattern()


def rest(name: str) -> RestPattern:
    if not name:
        raise PatternError("rest capture name may not be empty")
    return RestPattern(name)


def _atom_node(text: str) -> PatternNode:
    """Interpret one atom of pattern notation."""
    if text == "_":
        return WildcardPattern()
    if text.startswith("?..."):
        return rest(text[4:])
    if text.startswith("?"):
        return cap(text[1:])
    return lit(text)


# ═══════════════════════════════════════════════════════════════════════
#  Match result
# ═══════════════════════════════════════════════════════════════════════

class Match(Mapping):
    """Read-only capture bindings of a successful match.

    Iteration follows the order in which captures appear in the pattern.
    A ``Match`` is always truthy, even when the pattern has no captures, so
    ``if p.match(v):`` reads correctly.
    """

    __slots__ = ("_bindings",)

    def __init__(self, bindings: Dict[str, SExpr]) -> None:
        self._bindings = dict(bindings)

    def __getitem__(self, name: str) -> SExpr:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __bool__(self) -> bool:
        return True

    @property
    def bindings(self) -> Dict[str, SExpr]:
        return dict(self._bindings)

    def __repr__(self) -> str:
        return f"Match({self._bindings!r})"


# ═══════════════════════════════════════════════════════════════════════
#  Pattern
# ═══════════════════════════════════════════════════════════════════════

def _collect_captures(node: PatternNode, names: List[str], *, top: bool = False) -> None:
    if isinstance(node, (CapturePattern, RestPattern)):
        if isinstance(node, RestPattern) and top:
            raise PatternError(f"rest capture ?...{node.name} must be inside a list")
        if node.name in names:
            raise PatternError(f"capture name {node.name!r} is bound more than once")
        names.append(node.name)
    elif isinstance(node, ListPattern):
        last = len(node.elements) - 1
        for i, child in enumerate(node.elements):
            if isinstance(child, RestPattern) and i != last:
                raise PatternError(
                    f"rest capture ?...{child.name} must be the last element of its list"
                )
            _collect_captures(child, names)
    elif not isinstance(node, _NODE_TYPES):
        raise PatternError(f"not a pattern node: {node!r}")


def _match(node: PatternNode, value: SExpr, bindings: Dict[str, SExpr]) -> bool:
    if isinstance(node, LiteralPattern):
        return isinstance(value, Atom) and value.text == node.text
    if isinstance(node, CapturePattern):
        bindings[node.name] = value
        return True
    if isinstance(node, WildcardPattern):
        return True
    if isinstance(node, ListPattern):
        if not isinstance(value, SList):
            return False
        fixed = node.elements
        tail: Optional[RestPattern] = None
        if fixed and isinstance(fixed[-1], RestPattern):
            tail, fixed = fixed[-1], fixed[:-1]
        n = len(value.items)
        if n < len(fixed) or (tail is None and n != len(fixed)):
            return False
        for sub, item in zip(fixed, value.items):
            if not _match(sub, item, bindings):
                return False
        if tail is not None:
            bindings[tail.name] = SList(value.items[len(fixed):])
        return True
    # RestPattern outside a list is rejected at construction time.
    return False


def _node_text(node: PatternNode) -> str:
    if isinstance(node, LiteralPattern):
        return node.text
    if isinstance(node, CapturePattern):
        return f"?{node.name}"
    if isinstance(node, WildcardPattern):
        return "_"
    if isinstance(node, RestPattern):
        return f"?...{node.name}"
    return "(" + " ".join(_node_text(e) for e in node.elements) + ")"


class Pattern:
    """A validated pattern template.

    Parameters
    ----------
    root:
        The pattern tree.  Validated on construction.
    """

    __slots__ = ("root", "captures")

    def __init__(self, root: PatternNode) -> None:
        names: List[str] = []
        _collect_captures(root, names, top=True)
        self.root = root
        self.captures: Tuple[str, ...] = tuple(names)

    def match(self, value: Optional[SExpr]) -> Optional[Match]:
        """Match *value*; ``None`` means no match.

        ``None`` (the "no value" result of parsing empty text) never
        matches.
        """
        if value is None:
            return None
        if not isinstance(value, (Atom, SList)):
            raise TypeError(f"expected Atom or SList, got {type(value).__name__}")
        bindings: Dict[str, SExpr] = {}
        if _match(self.root, value, bindings):
            return Match(bindings)
        return None

    def matches(self, value: Optional[SExpr]) -> bool:
        return self.match(value) is not None

    def match_each(
        self, values: Iterable[SExpr]
    ) -> Iterator[Tuple[int, SExpr, Optional[Match]]]:
        """Apply this pattern to every value, numbering them from 1.

        Typically fed ``lst.args`` to check each entry of a list-of-entries
        encoding without re-parsing.
        """
        for position, value in enumerate(values, 1):
            yield position, value, self.match(value)

    def __str__(self) -> str:
        return _node_text(self.root)

    def __repr__(self) -> str:
        return f"Pattern({_node_text(self.root)!r})"


def _from_sexpr(value: SExpr) -> PatternNode:
    if isinstance(value, Atom):
        return _atom_node(value.text)
    return ListPattern(tuple(_from_sexpr(item) for item in value.items))


def compile_pattern(text: str) -> Pattern:
    """Build a :class:`Pattern` from its text notation.

    Raises
    ------
    PatternError
        If the text is not a single well-formed s-expression or the
        resulting pattern is ill-formed.
    """
    try:
        value = parse(text)
    except SexqlError as e:
        raise PatternError(f"invalid pattern text {text!r}: {e}") from e
    if value is None:
        raise PatternError("empty pattern")
    return Pattern(_from_sexpr(value))


def _element(item: Union[str, Pattern, PatternNode]) -> PatternNode:
    if isinstance(item, str):
        return _atom_node(item)
    if isinstance(item, Pattern):
        return item.root
    if isinstance(item, _NODE_TYPES):
        return item
    raise PatternError(f"cannot use {item!r} as a pattern element")


def pattern(tag: Union[str, PatternNode], *elements: Union[str, Pattern, PatternNode]) -> Pattern:
    """Build the list pattern ``(tag element...)``.

    String elements use the text notation (``"?src"`` is a capture);
    nested patterns are embedded as-is::

        pattern("edge", pattern("?src"), pattern("?dest"))   # (edge (?src) (?dest))
    """
    return Pattern(ListPattern((_element(tag),) + tuple(_element(e) for e in elements)))
