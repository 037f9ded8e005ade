"""
arbos.ir
========

The abstract representation (AR) consumed by passes: a :class:`Bundle` of
:class:`Function` objects, each owning one :class:`Code` body whose
:class:`BasicBlock` nodes form a control flow graph.

Public API
----------
    NodeKind        - the closed set of node kinds
    Bundle          - top-level container of functions
    Function        - a named function with one code body
    Code            - ordered basic blocks + CFG adjacency arena
    BasicBlock      - named block of statements with successor/predecessor views
    Statement       - one opcode with operand strings
    BundleBuilder   - construction API; ``build()`` freezes the result

Typical usage::

    b = BundleBuilder("demo")
    f = b.function("main")
    f.block("entry").block("loop").block("exit")
    f.edge("entry", "loop").edge("loop", "loop").edge("loop", "exit")
    bundle = b.build()

    code = bundle.function("main").body
    loop = code.block_by_name("loop")
    print(sorted(bb.name for bb in loop.successors))   # ['exit', 'loop']

Implementation notes
--------------------
* Adjacency lives in the owning :class:`Code` body as ``uid -> {uid}``
  maps (insertion ordered), not in the blocks.  A block's ``successors``
  and ``predecessors`` are views over that arena, so the two directions are
  always updated together by :meth:`Code.add_edge`.
* ``uid`` values come from one process-wide counter, so nodes of
  independently loaded bundles never share an id.
* IR is mutable only until :meth:`Bundle.freeze` (called by the builder);
  afterwards any mutation raises :class:`IRError`.
"""

from __future__ import annotations

import enum
import itertools
import logging
from typing import (
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from arbos.errors import (
    ArbosErrorCodes,
    BlockNotFoundError,
    FunctionNotFoundError,
    IRError,
)

logger = logging.getLogger(__name__)

__all__ = [
    "NodeKind",
    "IRNode",
    "Statement",
    "BasicBlock",
    "Code",
    "Function",
    "Bundle",
    "BundleBuilder",
    "FunctionBuilder",
]


# ---------------------------------------------------------------------------
# Node kinds and ids
# ---------------------------------------------------------------------------

class NodeKind(enum.Enum):
    """Closed set of IR node kinds, outermost first."""

    BUNDLE = "bundle"
    FUNCTION = "function"
    CODE = "code"
    BASIC_BLOCK = "basic_block"
    STATEMENT = "statement"

    @property
    def depth(self) -> int:
        return _KIND_DEPTH[self]


_KIND_DEPTH: Dict[NodeKind, int] = {kind: i for i, kind in enumerate(NodeKind)}

_uids = itertools.count(1)


def _fresh_uid() -> int:
    return next(_uids)


class IRNode:
    """Common base: a uid-based identity and a class-level ``kind``."""

    __slots__ = ("uid",)

    kind: NodeKind

    def __init__(self) -> None:
        self.uid: int = _fresh_uid()

    def __hash__(self) -> int:
        return self.uid

    def __eq__(self, other) -> bool:
        if isinstance(other, IRNode):
            return self.uid == other.uid
        return NotImplemented


# ---------------------------------------------------------------------------
# Statement
# ---------------------------------------------------------------------------

class Statement(IRNode):
    """One straight-line operation inside a basic block.

    Attributes
    ----------
    opcode : str
        Operation name, e.g. ``"assign"``, ``"call"``, ``"branch"``.
    operands : tuple[str, ...]
        Operand spellings; opaque to the framework.
    block : BasicBlock or None
        Owning block, set when the statement is appended.
    """

    __slots__ = ("opcode", "operands", "block")

    kind = NodeKind.STATEMENT

    def __init__(self, opcode: str, operands: Sequence[str] = ()) -> None:
        super().__init__()
        if not opcode:
            raise IRError("statement opcode may not be empty")
        self.opcode: str = opcode
        self.operands: Tuple[str, ...] = tuple(str(o) for o in operands)
        self.block: Optional[BasicBlock] = None

    def __str__(self) -> str:
        return " ".join((self.opcode,) + self.operands)

    def __repr__(self) -> str:
        return f"Statement(uid={self.uid}, {str(self)!r})"


# ---------------------------------------------------------------------------
# BasicBlock
# ---------------------------------------------------------------------------

class BasicBlock(IRNode):
    """A named basic block.

    Attributes
    ----------
    name : str
        Name id, unique within the owning code body.
    code : Code
        Owning body; successor/predecessor views are answered by it.
    """

    __slots__ = ("name", "code", "_statements")

    kind = NodeKind.BASIC_BLOCK

    def __init__(self, name: str, code: "Code") -> None:
        super().__init__()
        self.name: str = name
        self.code: Code = code
        self._statements: List[Statement] = []

    @property
    def statements(self) -> Tuple[Statement, ...]:
        return tuple(self._statements)

    def add_statement(self, stmt: Statement) -> Statement:
        self.code._check_mutable()
        if stmt.block is not None:
            raise IRError(f"statement {stmt.uid} already belongs to block {stmt.block.name!r}")
        stmt.block = self
        self._statements.append(stmt)
        return stmt

    @property
    def successors(self) -> FrozenSet["BasicBlock"]:
        return self.code.successors(self)

    @property
    def predecessors(self) -> FrozenSet["BasicBlock"]:
        return self.code.predecessors(self)

    def next_blocks(self) -> Tuple["BasicBlock", ...]:
        """Successors in declaration order."""
        return self.code.successors_ordered(self)

    def prev_blocks(self) -> Tuple["BasicBlock", ...]:
        """Predecessors in declaration order."""
        return self.code.predecessors_ordered(self)

    @property
    def is_terminal(self) -> bool:
        return not self.code._succ[self.uid]

    def __repr__(self) -> str:
        return f"BasicBlock(uid={self.uid}, name={self.name!r}, nstmts={len(self._statements)})"


# ---------------------------------------------------------------------------
# Code
# ---------------------------------------------------------------------------

class Code(IRNode):
    """A function body: ordered blocks plus the CFG adjacency arena.

    Attributes
    ----------
    function : Function or None
        Owner, set by :class:`Function`.
    entry : BasicBlock or None
        Entry block; defaults to the first declared block.
    exit : BasicBlock or None
        Optional designated exit block.
    """

    __slots__ = (
        "function",
        "_blocks",
        "_by_name",
        "_succ",
        "_pred",
        "_entry_uid",
        "_exit_uid",
        "_frozen",
    )

    kind = NodeKind.CODE

    def __init__(self) -> None:
        super().__init__()
        self.function: Optional[Function] = None
        self._blocks: Dict[int, BasicBlock] = {}
        self._by_name: Dict[str, int] = {}
        # uid -> ordered set (dict keys) of uids
        self._succ: Dict[int, Dict[int, None]] = {}
        self._pred: Dict[int, Dict[int, None]] = {}
        self._entry_uid: Optional[int] = None
        self._exit_uid: Optional[int] = None
        self._frozen: bool = False

    # ----- mutation (construction only) ------------------------------------

    def _check_mutable(self) -> None:
        if self._frozen:
            raise IRError(
                f"code body of {self._owner_name()} is read-only",
                code=ArbosErrorCodes.IR_FROZEN,
            )

    def add_block(self, name: str) -> BasicBlock:
        """Create a block named *name* at the end of the declaration order."""
        self._check_mutable()
        if not name:
            raise IRError("basic block name may not be empty")
        if name in self._by_name:
            raise IRError(
                f"duplicate basic block {name!r} in {self._owner_name()}",
                code=ArbosErrorCodes.IR_DUPLICATE_NAME,
            )
        bb = BasicBlock(name, self)
        self._blocks[bb.uid] = bb
        self._by_name[name] = bb.uid
        self._succ[bb.uid] = {}
        self._pred[bb.uid] = {}
        return bb

    def add_edge(self, src: BasicBlock, dst: BasicBlock) -> None:
        """Add ``src -> dst``; both directions are recorded together."""
        self._check_mutable()
        for bb in (src, dst):
            if self._blocks.get(bb.uid) is not bb:
                raise IRError(f"block {bb.name!r} does not belong to {self._owner_name()}")
        self._succ[src.uid][dst.uid] = None
        self._pred[dst.uid][src.uid] = None

    def set_entry(self, block: BasicBlock) -> None:
        self._check_mutable()
        if self._blocks.get(block.uid) is not block:
            raise IRError(f"entry block {block.name!r} does not belong to {self._owner_name()}")
        self._entry_uid = block.uid

    def set_exit(self, block: BasicBlock) -> None:
        self._check_mutable()
        if self._blocks.get(block.uid) is not block:
            raise IRError(f"exit block {block.name!r} does not belong to {self._owner_name()}")
        self._exit_uid = block.uid

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ----- queries ----------------------------------------------------------

    @property
    def blocks(self) -> Tuple[BasicBlock, ...]:
        """All blocks in declaration order."""
        return tuple(self._blocks.values())

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[BasicBlock]:
        return iter(self.blocks)

    @property
    def entry(self) -> Optional[BasicBlock]:
        if self._entry_uid is not None:
            return self._blocks[self._entry_uid]
        return next(iter(self._blocks.values()), None)

    @property
    def exit(self) -> Optional[BasicBlock]:
        if self._exit_uid is None:
            return None
        return self._blocks[self._exit_uid]

    def has_block(self, name: str) -> bool:
        return name in self._by_name

    def block_by_name(self, name: str) -> BasicBlock:
        """Exact, case-sensitive lookup of a block by its name id.

        Raises
        ------
        BlockNotFoundError
            If no block of this body is called *name*.
        """
        uid = self._by_name.get(name)
        if uid is None:
            raise BlockNotFoundError(name, scope=self._owner_name())
        return self._blocks[uid]

    def _own(self, block: BasicBlock) -> int:
        if self._blocks.get(block.uid) is not block:
            raise IRError(f"block {block.name!r} does not belong to {self._owner_name()}")
        return block.uid

    def successors(self, block: BasicBlock) -> FrozenSet[BasicBlock]:
        return frozenset(self._blocks[u] for u in self._succ[self._own(block)])

    def predecessors(self, block: BasicBlock) -> FrozenSet[BasicBlock]:
        return frozenset(self._blocks[u] for u in self._pred[self._own(block)])

    def successors_ordered(self, block: BasicBlock) -> Tuple[BasicBlock, ...]:
        succ = self._succ[self._own(block)]
        return tuple(bb for uid, bb in self._blocks.items() if uid in succ)

    def predecessors_ordered(self, block: BasicBlock) -> Tuple[BasicBlock, ...]:
        pred = self._pred[self._own(block)]
        return tuple(bb for uid, bb in self._blocks.items() if uid in pred)

    def edges(self) -> Iterator[Tuple[BasicBlock, BasicBlock]]:
        """Yield ``(src, dst)`` pairs, sources in declaration order."""
        for bb in self._blocks.values():
            for dst in self.successors_ordered(bb):
                yield bb, dst

    def num_edges(self) -> int:
        return sum(len(s) for s in self._succ.values())

    def reachable_from(self, start: Optional[BasicBlock] = None) -> Set[BasicBlock]:
        """Blocks reachable from *start* (default: the entry block)."""
        start = start if start is not None else self.entry
        if start is None:
            return set()
        visited: Set[int] = set()
        worklist = [self._own(start)]
        while worklist:
            uid = worklist.pop()
            if uid in visited:
                continue
            visited.add(uid)
            worklist.extend(self._succ[uid])
        return {self._blocks[u] for u in visited}

    # ----- consistency checks -----------------------------------------------

    def check_adjacency(self) -> None:
        """Raise :class:`IRError` unless successor and predecessor maps are duals."""
        for src, dsts in self._succ.items():
            for dst in dsts:
                if src not in self._pred.get(dst, {}):
                    raise IRError(
                        f"{self._name(src)} -> {self._name(dst)} has no matching "
                        f"predecessor entry in {self._owner_name()}"
                    )
        for dst, srcs in self._pred.items():
            for src in srcs:
                if dst not in self._succ.get(src, {}):
                    raise IRError(
                        f"{self._name(dst)} lists predecessor {self._name(src)} without "
                        f"the matching successor entry in {self._owner_name()}"
                    )

    def check_closed(self) -> None:
        """Raise :class:`IRError` if a block reachable from the entry is not ours."""
        entry = self.entry
        if entry is None:
            return
        seen: Set[int] = set()
        worklist = [entry.uid]
        while worklist:
            uid = worklist.pop()
            if uid in seen:
                continue
            seen.add(uid)
            if uid not in self._blocks:
                raise IRError(f"edge leaves {self._owner_name()}: unknown block uid {uid}")
            worklist.extend(self._succ.get(uid, {}))

    # ----- helpers ----------------------------------------------------------

    def _name(self, uid: int) -> str:
        bb = self._blocks.get(uid)
        return repr(bb.name) if bb is not None else f"<uid {uid}>"

    def _owner_name(self) -> str:
        if self.function is not None:
            return f"function {self.function.name!r}"
        return f"code {self.uid}"

    def __repr__(self) -> str:
        return f"Code(uid={self.uid}, nblocks={len(self._blocks)}, nedges={self.num_edges()})"


# ---------------------------------------------------------------------------
# Function / Bundle
# ---------------------------------------------------------------------------

class Function(IRNode):
    """A named function owning exactly one code body."""

    __slots__ = ("name", "body", "bundle")

    kind = NodeKind.FUNCTION

    def __init__(self, name: str, body: Optional[Code] = None) -> None:
        super().__init__()
        if not name:
            raise IRError("function name may not be empty")
        self.name: str = name
        self.body: Code = body if body is not None else Code()
        if self.body.function is not None:
            raise IRError(f"code body {self.body.uid} already belongs to {self.body.function.name!r}")
        self.body.function = self
        self.bundle: Optional[Bundle] = None

    def __repr__(self) -> str:
        return f"Function(uid={self.uid}, name={self.name!r}, nblocks={len(self.body)})"


class Bundle(IRNode):
    """Top-level container of functions of one loaded IR unit."""

    __slots__ = ("name", "_functions", "_frozen")

    kind = NodeKind.BUNDLE

    def __init__(self, name: str = "<bundle>") -> None:
        super().__init__()
        self.name: str = name
        self._functions: Dict[str, Function] = {}
        self._frozen: bool = False

    def add_function(self, fn: Function) -> Function:
        if self._frozen:
            raise IRError(f"bundle {self.name!r} is read-only", code=ArbosErrorCodes.IR_FROZEN)
        if fn.name in self._functions:
            raise IRError(
                f"duplicate function {fn.name!r} in bundle {self.name!r}",
                code=ArbosErrorCodes.IR_DUPLICATE_NAME,
            )
        fn.bundle = self
        self._functions[fn.name] = fn
        return fn

    @property
    def functions(self) -> Tuple[Function, ...]:
        """Functions in declaration order."""
        return tuple(self._functions.values())

    def function(self, name: str) -> Function:
        fn = self._functions.get(name)
        if fn is None:
            raise FunctionNotFoundError(name, scope=f"bundle {self.name!r}")
        return fn

    def freeze(self) -> None:
        """Make the bundle and every code body read-only."""
        self._frozen = True
        for fn in self._functions.values():
            fn.body.freeze()

    @property
    def frozen(self) -> bool:
        return self._frozen

    def validate(self) -> None:
        """Run the adjacency and closure checks on every code body."""
        for fn in self._functions.values():
            fn.body.check_adjacency()
            fn.body.check_closed()

    def __repr__(self) -> str:
        return f"Bundle(uid={self.uid}, name={self.name!r}, nfunctions={len(self._functions)})"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

class FunctionBuilder:
    """Fluent construction of one function; blocks are referenced by name."""

    def __init__(self, fn: Function) -> None:
        self.fn = fn

    def block(
        self,
        name: str,
        statements: Iterable[Tuple[str, Sequence[str]]] = (),
    ) -> "FunctionBuilder":
        bb = self.fn.body.add_block(name)
        for opcode, operands in statements:
            bb.add_statement(Statement(opcode, operands))
        return self

    def blocks(self, *names: str) -> "FunctionBuilder":
        for name in names:
            self.block(name)
        return self

    def statement(self, block: str, opcode: str, *operands: str) -> "FunctionBuilder":
        self._get(block).add_statement(Statement(opcode, operands))
        return self

    def edge(self, src: str, dst: str) -> "FunctionBuilder":
        self.fn.body.add_edge(self._get(src), self._get(dst))
        return self

    def edges(self, pairs: Iterable[Tuple[str, str]]) -> "FunctionBuilder":
        for src, dst in pairs:
            self.edge(src, dst)
        return self

    def entry(self, name: str) -> "FunctionBuilder":
        self.fn.body.set_entry(self._get(name))
        return self

    def exit(self, name: str) -> "FunctionBuilder":
        self.fn.body.set_exit(self._get(name))
        return self

    def _get(self, name: str) -> BasicBlock:
        if not self.fn.body.has_block(name):
            raise IRError(f"edge or statement names unknown block {name!r} in function {self.fn.name!r}")
        return self.fn.body.block_by_name(name)


class BundleBuilder:
    """Collects functions and hands out a frozen :class:`Bundle`."""

    def __init__(self, name: str = "<bundle>") -> None:
        self._bundle = Bundle(name)
        self._built = False

    def function(self, name: str) -> FunctionBuilder:
        if self._built:
            raise IRError("bundle already built", code=ArbosErrorCodes.IR_FROZEN)
        return FunctionBuilder(self._bundle.add_function(Function(name)))

    def build(self, *, validate: bool = True) -> Bundle:
        if validate:
            self._bundle.validate()
        self._bundle.freeze()
        self._built = True
        logger.debug(
            "built bundle %r: %d function(s)", self._bundle.name, len(self._bundle.functions)
        )
        return self._bundle
