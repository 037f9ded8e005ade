"""arbos.printer — write a function's actual CFG as an oracle literal.

The output of :func:`cfg_oracle` is exactly what a verification pass
expects, so a regression oracle can be produced from a known-good run and
reviewed by hand::

    $ arbos oracle phi2.json --function main
    (trans
      (edge (entry) (*in_entry_to_for.cond_phi))
      ...)
"""

from __future__ import annotations

from typing import Iterable, Optional

from sexql.reader import SList, pformat, slist

from arbos.ir import Bundle, Function
from arbos.passes import Pass

__all__ = ["cfg_oracle", "format_oracle", "CfgPrinterPass"]


def cfg_oracle(function: Function) -> SList:
    """``(trans (edge (src) (dest)) ...)`` for every CFG edge of *function*.

    Edges are sorted by source name, then destination name, so the literal
    does not depend on declaration order.
    """
    pairs = sorted((src.name, dst.name) for src, dst in function.body.edges())
    return slist("trans", *(slist("edge", slist(s), slist(d)) for s, d in pairs))


def format_oracle(function: Function, *, width: int = 72) -> str:
    return pformat(cfg_oracle(function), width=width)


class CfgPrinterPass(Pass):
    """Print one oracle literal per function, preceded by a header line."""

    name = "print-cfg"
    description = "Print each function's CFG as a (trans (edge ...)) literal"

    def __init__(self, *, out=None, functions: Optional[Iterable[str]] = None) -> None:
        super().__init__(out=out)
        self.functions = tuple(functions) if functions is not None else None

    def execute(self, bundle: Bundle) -> None:
        if self.functions is None:
            targets = bundle.functions
        else:
            targets = tuple(bundle.function(name) for name in self.functions)
        for fn in targets:
            self.emit(f"; {fn.name}: {len(fn.body)} blocks, {fn.body.num_edges()} edges")
            self.emit(format_oracle(fn))
