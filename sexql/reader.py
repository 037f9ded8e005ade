"""sexql/reader.py – S-expression text ⇄ value trees.

Turns s-expression source text into immutable :class:`Atom` / :class:`SList`
trees and serialises them back.

Design principles
-----------------
* **sexpdata does the tokenising** – the same reader the CASL front-end is
  built on.  Its atom conversion is overridden so every atom stays the
  exact source text: ``007``, ``nil`` and ``for.cond.1`` are all plain
  atoms, never numbers or booleans.
* **All or nothing** – unbalanced parentheses abort the whole parse with
  :class:`SExprParseError`; no partially parsed value escapes.
* **Line continuations** – a backslash immediately followed by a newline
  is removed before tokenising, so an escaped multi-line literal reads the
  same as its single-line form.
* **Frozen values** – ``@dataclass(frozen=True, slots=True)`` throughout.

Public API
----------
``parse(text) -> Optional[SExpr]``
    Zero or one top-level value; ``None`` when the text holds no value.

``parse_all(text) -> list[SExpr]`` / ``SExprReader(text)``
    Stream form: every top-level value in order.

``dumps(value) -> str`` / ``pformat(value) -> str``
    Canonical single-line and pretty multi-line serialisation.

Surface syntax
--------------
::

    value := atom | "(" value* ")"
    atom  := a maximal run of characters other than whitespace and parens

Apart from line continuations there are no comments, strings, quotes or
escapes: ``a;b``, ``"x"``, ``'x``, ``a[b`` and ``a\\`` are each one atom.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple, Union

try:
    import sexpdata
except ImportError:  # pragma: no cover – allow static analysis w/o dep
    raise ImportError(
        "The 'sexpdata' package is required for sexql parsing. "
        "Install it with:  pip install sexpdata"
    )

from sexql.errors import SExprError, SExprParseError

__all__ = [
    "Atom",
    "SList",
    "SExpr",
    "SExprReader",
    "atom",
    "slist",
    "parse",
    "parse_all",
    "parse_file",
    "dumps",
    "pformat",
    "to_data",
]


# ═══════════════════════════════════════════════════════════════════════
#  Values
# ═══════════════════════════════════════════════════════════════════════

_ATOM_INVALID = re.compile(r"[\s()]")


@dataclass(frozen=True, slots=True)
class Atom:
    """An opaque, non-empty token without whitespace or parentheses."""

    text: str

    def __post_init__(self) -> None:
        if not isinstance(self.text, str) or not self.text:
            raise SExprError(f"Atom text must be a non-empty string, got {self.text!r}")
        if _ATOM_INVALID.search(self.text):
            raise SExprError(
                f"Atom text may not contain whitespace or parentheses: {self.text!r}"
            )

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True, slots=True)
class SList:
    """An ordered list of s-expression values.

    ``items[0]`` is conventionally the *tag* and the remaining elements are
    the *arguments*.  Arguments are addressed 1-based through :meth:`arg`,
    mirroring how oracle entries are numbered in reports; plain indexing
    (``lst[i]``) is 0-based over all items.
    """

    items: Tuple["SExpr", ...] = ()

    def __post_init__(self) -> None:
        items = tuple(self.items)
        for item in items:
            if not isinstance(item, (Atom, SList)):
                raise SExprError(
                    f"SList items must be Atom or SList, got {type(item).__name__}: {item!r}"
                )
        object.__setattr__(self, "items", items)

    @property
    def tag(self) -> Optional[str]:
        """Text of the first element when it is an atom, else ``None``."""
        if self.items and isinstance(self.items[0], Atom):
            return self.items[0].text
        return None

    @property
    def args(self) -> Tuple["SExpr", ...]:
        """Elements after the tag."""
        return self.items[1:]

    @property
    def n_args(self) -> int:
        return max(len(self.items) - 1, 0)

    def arg(self, i: int) -> "SExpr":
        """Return the *i*-th argument, counting from 1."""
        if not 1 <= i <= self.n_args:
            raise IndexError(f"argument index {i} out of range 1..{self.n_args}")
        return self.items[i]

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["SExpr"]:
        return iter(self.items)

    def __getitem__(self, index: int) -> "SExpr":
        return self.items[index]

    def __str__(self) -> str:
        return dumps(self)


SExpr = Union[Atom, SList]


def atom(text: str) -> Atom:
    return Atom(text)


def slist(*items: Union[SExpr, str]) -> SList:
    """Build an :class:`SList`; plain strings become atoms.

    >>> dumps(slist("edge", slist("a"), slist("b")))
    '(edge (a) (b))'
    """
    return SList(tuple(Atom(i) if isinstance(i, str) else i for i in items))


# ═══════════════════════════════════════════════════════════════════════
#  Reading
# ═══════════════════════════════════════════════════════════════════════

_LINE_CONTINUATION = re.compile(r"\\\r?\n")
_ATOM_END = re.compile(r"[()\s]")


class _OpaqueParser(sexpdata.Parser):
    """sexpdata reader whose only syntax is parentheses and whitespace.

    sexpdata's own reader syntax (``"`` strings, ``'`` quote, ``[ ]``
    brackets, ``;`` comments and ``\\`` escapes) is switched off, so those
    characters are ordinary atom text.
    """

    def __init__(self, string: str) -> None:
        super().__init__(string, nil=None, true=None, false=None)
        self.brackets = {"(": ")"}
        self.closing_brackets = {")"}

    def parse_sexp(self, i: int) -> Tuple[int, list]:
        string = self.string
        n = len(string)
        sexp: list = []
        while i < n:
            c = string[i]
            if c.isspace():
                i += 1
            elif c == "(":
                i, sub = self.parse_sexp(i + 1)
                if i >= n or string[i] != ")":
                    raise sexpdata.ExpectClosingBracket(string[i] if i < n else None, ")")
                sexp.append(sub)
                i += 1
            elif c == ")":
                break
            else:
                i, token = self.parse_atom(i)
                sexp.append(token)
        return i, sexp

    def parse_atom(self, i: int) -> Tuple[int, Atom]:
        m = _ATOM_END.search(self.string, i)
        end = m.start() if m else len(self.string)
        return end, self.atom(self.string[i:end])

    def atom(self, token: str) -> Atom:
        return Atom(token)


def _convert(obj: Any) -> SExpr:
    """Map the parser's nested lists onto SList."""
    if isinstance(obj, list):
        return SList(tuple(_convert(x) for x in obj))
    return obj


def _read_forms(text: str, source: Optional[str]) -> List[SExpr]:
    if not isinstance(text, str):
        raise TypeError(f"expected str, got {type(text).__name__}")
    text = _LINE_CONTINUATION.sub("", text)
    try:
        raw = _OpaqueParser(text).parse()
    except Exception as e:
        raise SExprParseError(f"S-expression syntax error: {e}", source) from e
    return [_convert(form) for form in raw]


class SExprReader:
    """Read successive top-level values from one piece of text.

    The text is parsed eagerly, so a syntax error anywhere surfaces from
    the constructor rather than half-way through iteration.

    >>> r = SExprReader("(a) (b c)")
    >>> dumps(r.read()), dumps(r.read()), r.read()
    ('(a)', '(b c)', None)
    """

    def __init__(self, text: str, *, source: Optional[str] = None) -> None:
        self.source = source
        self._values = _read_forms(text, source)
        self._pos = 0

    def read(self) -> Optional[SExpr]:
        """Return the next value, or ``None`` at end of stream."""
        if self._pos >= len(self._values):
            return None
        value = self._values[self._pos]
        self._pos += 1
        return value

    def __iter__(self) -> Iterator[SExpr]:
        while True:
            value = self.read()
            if value is None:
                return
            yield value


def parse(text: str, *, source: Optional[str] = None) -> Optional[SExpr]:
    """Parse *text* holding at most one top-level value.

    Returns ``None`` for empty (or whitespace only) text.

    Raises
    ------
    SExprParseError
        On unbalanced parentheses or more than one top-level value.
    """
    forms = _read_forms(text, source)
    if not forms:
        return None
    if len(forms) > 1:
        raise SExprParseError(
            f"expected a single top-level value, found {len(forms)}", source
        )
    return forms[0]


def parse_all(text: str, *, source: Optional[str] = None) -> List[SExpr]:
    """Parse every top-level value in *text*."""
    return _read_forms(text, source)


def parse_file(path: Union[str, Path]) -> Optional[SExpr]:
    """Read a file completely, then :func:`parse` it."""
    p = Path(path)
    return parse(p.read_text(encoding="utf-8"), source=str(p))


# ═══════════════════════════════════════════════════════════════════════
#  Writing
# ═══════════════════════════════════════════════════════════════════════

def dumps(value: SExpr) -> str:
    """Canonical single-line text; ``parse(dumps(v)) == v``."""
    if isinstance(value, Atom):
        return value.text
    if isinstance(value, SList):
        return "(" + " ".join(dumps(item) for item in value.items) + ")"
    raise TypeError(f"expected Atom or SList, got {type(value).__name__}")


def pformat(value: SExpr, *, width: int = 72, indent: int = 2) -> str:
    """Pretty-print *value*, breaking lists that do not fit in *width*.

    Each argument of a broken list goes on its own line::

        (trans
          (edge (entry) (for.cond))
          (edge (for.cond) (for.body)))
    """
    return _pformat(value, 0, width, indent)


def _pformat(value: SExpr, col: int, width: int, indent: int) -> str:
    flat = dumps(value)
    if isinstance(value, Atom) or col + len(flat) <= width or len(value) < 2:
        return flat
    pad = " " * (col + indent)
    parts = ["(" + _pformat(value.items[0], col + 1, width, indent)]
    for item in value.items[1:]:
        # A backslash right before the newline would read as a continuation.
        sep = " \n" if parts[-1].endswith("\\") else "\n"
        parts.append(sep + pad + _pformat(item, col + indent, width, indent))
    return "".join(parts) + ")"


def to_data(value: SExpr) -> Union[str, list]:
    """Convert to plain Python data (atoms → str, lists → list)."""
    if isinstance(value, Atom):
        return value.text
    return [to_data(item) for item in value.items]
