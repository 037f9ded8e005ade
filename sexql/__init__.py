"""sexql — S-Expression Query Language.

A small structural query language over parenthesised atom/list text, used
to write expected graph shapes as literal test oracles.

Submodules
----------
reader
    Text → :class:`Atom` / :class:`SList` values (sexpdata underneath) and
    back (``dumps`` / ``pformat``).

pattern
    Fixed-arity structural patterns with named captures
    (``(edge (?src) (?dest))``), yielding a :class:`Match` or ``None``.

errors
    ``SExprParseError`` and ``PatternError``.

Usage
-----
::

    from sexql import parse, compile_pattern

    edge = compile_pattern("(edge (?src) (?dest))")
    m = edge.match(parse("(edge (entry) (exit))"))
    if m:
        print(m["src"], "->", m["dest"])
"""

from __future__ import annotations

from sexql.errors import PatternError, SExprError, SExprParseError, SexqlError
from sexql.pattern import Match, Pattern, compile_pattern, pattern
from sexql.reader import (
    Atom,
    SExpr,
    SExprReader,
    SList,
    atom,
    dumps,
    parse,
    parse_all,
    parse_file,
    pformat,
    slist,
)

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
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
    "Pattern",
    "Match",
    "compile_pattern",
    "pattern",
    "SexqlError",
    "SExprError",
    "SExprParseError",
    "PatternError",
]
