#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
arbos/visitor.py
================

Visitor dispatch over the IR.

Passes observe the IR through visitors; the IR itself knows nothing about
any pass.  A visitor declares interest in a node kind simply by having a
hook for it:

- ``enter_<kind>(node)`` — called before the node's children
- ``leave_<kind>(node)`` — called after the node's children
- any method tagged with ``@visiting(NodeKind.X, ...)`` — an extra enter hook

where ``<kind>`` is one of ``bundle``, ``function``, ``code``,
``basic_block``, ``statement``.  Kinds without hooks are skipped, and
:func:`walk` only descends as deep as the deepest kind the visitor cares
about, so a visitor with just ``enter_function`` costs one pass over the
bundle's function list.

Provides:
- ``Visitor`` — optional base class (plain objects work too)
- ``CallbackVisitor`` — a visitor assembled from callables
- ``walk`` / ``accept`` — the traversal driver
- ``visiting`` — decorator for arbitrarily named hooks
- ``SKIP`` — returned from an enter hook to prune that node's children
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from arbos.ir import IRNode, NodeKind

__all__ = [
    "SKIP",
    "Visitor",
    "CallbackVisitor",
    "HandlerTable",
    "visiting",
    "walk",
    "accept",
    "children_of",
]


class _Action(enum.Enum):
    SKIP = "skip"


SKIP = _Action.SKIP

Hook = Callable[[Any], Any]

_ENTER = {kind: f"enter_{kind.value}" for kind in NodeKind}
_LEAVE = {kind: f"leave_{kind.value}" for kind in NodeKind}
_HOOK_NAMES = frozenset(_ENTER.values()) | frozenset(_LEAVE.values())


# ---------------------------------------------------------------------------
# Children per kind, one entry per NodeKind
# ---------------------------------------------------------------------------

_CHILDREN: Dict[NodeKind, Callable[[Any], Sequence[IRNode]]] = {
    NodeKind.BUNDLE: lambda n: n.functions,
    NodeKind.FUNCTION: lambda n: (n.body,),
    NodeKind.CODE: lambda n: n.blocks,
    NodeKind.BASIC_BLOCK: lambda n: n.statements,
    NodeKind.STATEMENT: lambda n: (),
}


def children_of(node: IRNode) -> Sequence[IRNode]:
    """Direct children of *node* in declaration order."""
    return _CHILDREN[node.kind](node)


# ---------------------------------------------------------------------------
# Decorator for method-based dispatch
# ---------------------------------------------------------------------------

def visiting(*kinds: NodeKind) -> Callable:
    """Decorator to register a method as an enter hook for *kinds*.

    Usage:
        class BlockCounter(Visitor):
            @visiting(NodeKind.BASIC_BLOCK)
            def count(self, bb):
                ...
    """
    for kind in kinds:
        if not isinstance(kind, NodeKind):
            raise TypeError(f"visiting() expects NodeKind members, got {kind!r}")

    def decorator(method: Callable) -> Callable:
        method._visiting_kinds = kinds
        return method
    return decorator


# ---------------------------------------------------------------------------
# Handler table
# ---------------------------------------------------------------------------

@dataclass
class HandlerTable:
    """The hooks one visitor object offers, keyed by node kind."""

    enter: Dict[NodeKind, List[Hook]] = field(default_factory=dict)
    leave: Dict[NodeKind, List[Hook]] = field(default_factory=dict)

    @classmethod
    def of(cls, visitor: Any) -> "HandlerTable":
        table = cls()
        for kind in NodeKind:
            hook = getattr(visitor, _ENTER[kind], None)
            if callable(hook):
                table.enter.setdefault(kind, []).append(hook)
            hook = getattr(visitor, _LEAVE[kind], None)
            if callable(hook):
                table.leave.setdefault(kind, []).append(hook)
        for name in sorted(dir(type(visitor))):
            if name in _HOOK_NAMES or name.startswith("__"):
                continue
            kinds = getattr(getattr(type(visitor), name, None), "_visiting_kinds", ())
            for kind in kinds:
                table.enter.setdefault(kind, []).append(getattr(visitor, name))
        return table

    @property
    def deepest(self) -> Optional[NodeKind]:
        """The innermost kind with any hook, or ``None`` for an empty table."""
        kinds = set(self.enter) | set(self.leave)
        if not kinds:
            return None
        return max(kinds, key=lambda k: k.depth)

    def __bool__(self) -> bool:
        return bool(self.enter or self.leave)


# ---------------------------------------------------------------------------
# Visitors
# ---------------------------------------------------------------------------

class Visitor:
    """Base class for IR visitors.

    Defines no hooks; subclasses add ``enter_X`` / ``leave_X`` for the node
    kinds they care about.  Subclassing is optional; :func:`walk` accepts
    any object.
    """

    def visit(self, root: IRNode, *, depth: Optional[NodeKind] = None) -> None:
        """Walk *root* with this visitor."""
        walk(root, self, depth=depth)


class CallbackVisitor(Visitor):
    """A visitor assembled from keyword callables.

    >>> names = []
    >>> v = CallbackVisitor(enter_function=lambda f: names.append(f.name))
    """

    def __init__(self, **hooks: Hook) -> None:
        for name, hook in hooks.items():
            if name not in _HOOK_NAMES:
                raise TypeError(
                    f"unknown visitor hook {name!r}; expected one of {sorted(_HOOK_NAMES)}"
                )
            if not callable(hook):
                raise TypeError(f"visitor hook {name!r} is not callable")
            setattr(self, name, hook)


# ---------------------------------------------------------------------------
# Traversal driver
# ---------------------------------------------------------------------------

def walk(root: IRNode, visitor: Any, *, depth: Optional[NodeKind] = None) -> None:
    """Traverse *root* top-down, invoking *visitor*'s hooks.

    Parameters
    ----------
    root:
        Any IR node; usually a :class:`~arbos.ir.Bundle`.
    visitor:
        Object offering ``enter_X`` / ``leave_X`` / ``@visiting`` hooks.
    depth:
        Deepest kind to descend to.  Defaults to the deepest kind the
        visitor has a hook for; a visitor without hooks visits nothing.

    Exceptions raised by hooks propagate unchanged and end the traversal.
    The IR is never modified.
    """
    table = HandlerTable.of(visitor)
    limit = depth if depth is not None else table.deepest
    if limit is None:
        return
    _visit(root, table, limit)


def _visit(node: IRNode, table: HandlerTable, limit: NodeKind) -> None:
    kind = node.kind
    prune = False
    for hook in table.enter.get(kind, ()):
        if hook(node) is SKIP:
            prune = True
    if not prune and kind.depth < limit.depth:
        for child in _CHILDREN[kind](node):
            _visit(child, table, limit)
    for hook in table.leave.get(kind, ()):
        hook(node)


def accept(root: IRNode, visitor: Any) -> None:
    """Classic visitor entry point: ``accept(bundle, v)``."""
    walk(root, visitor)
