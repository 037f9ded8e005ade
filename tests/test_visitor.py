# tests/test_visitor.py
"""
Tests for visitor dispatch over the IR.
"""

import pytest

from arbos.ir import NodeKind
from arbos.visitor import (
    SKIP,
    CallbackVisitor,
    HandlerTable,
    Visitor,
    accept,
    children_of,
    visiting,
    walk,
)
from tests.conftest import make_diamond, make_two_function_bundle


class Recorder(Visitor):
    """Records function enter/leave events."""

    def __init__(self):
        self.events = []

    def enter_function(self, fn):
        self.events.append(("enter_function", fn.name))

    def leave_function(self, fn):
        self.events.append(("leave_function", fn.name))


class TestDispatch:

    def test_function_only_visitor(self):
        bundle = make_two_function_bundle()
        v = Recorder()
        walk(bundle, v)
        assert v.events == [
            ("enter_function", "f"), ("leave_function", "f"),
            ("enter_function", "g"), ("leave_function", "g"),
        ]

    def test_each_interesting_node_once(self, diamond):
        seen = []
        walk(diamond, CallbackVisitor(enter_basic_block=lambda bb: seen.append(bb.name)))
        assert seen == ["entry", "then", "else", "join"]

    def test_enter_before_children_leave_after(self, diamond):
        events = []
        v = CallbackVisitor(
            enter_function=lambda n: events.append("enter fn"),
            enter_statement=lambda n: events.append(n.opcode),
            leave_function=lambda n: events.append("leave fn"),
        )
        walk(diamond, v)
        assert events == ["enter fn", "cmp", "br", "assign", "assign", "ret", "leave fn"]

    def test_bundle_hook(self, diamond):
        names = []
        walk(diamond, CallbackVisitor(enter_bundle=lambda b: names.append(b.name)))
        assert names == ["diamond"]

    def test_walk_from_a_function(self, diamond):
        seen = []
        walk(diamond.function("main"), CallbackVisitor(enter_basic_block=lambda bb: seen.append(bb.name)))
        assert len(seen) == 4

    def test_accept_and_visit(self, diamond):
        v1, v2 = Recorder(), Recorder()
        accept(diamond, v1)
        v2.visit(diamond)
        assert v1.events == v2.events == [("enter_function", "main"), ("leave_function", "main")]

    def test_plain_object_visitor(self, diamond):
        class Plain:
            def __init__(self):
                self.count = 0

            def enter_code(self, code):
                self.count += 1

        v = Plain()
        walk(diamond, v)
        assert v.count == 1


class TestDescentDepth:

    def test_default_stops_at_deepest_interest(self, diamond, monkeypatch):
        calls = []
        import arbos.visitor as visitor_mod
        original = visitor_mod._CHILDREN[NodeKind.FUNCTION]
        monkeypatch.setitem(
            visitor_mod._CHILDREN, NodeKind.FUNCTION,
            lambda n: calls.append(n) or original(n),
        )
        walk(diamond, Recorder())
        assert calls == []

    def test_explicit_depth_limits_descent(self, diamond):
        seen = []
        v = CallbackVisitor(
            enter_function=lambda f: seen.append(f.name),
            enter_statement=lambda s: seen.append(s.opcode),
        )
        walk(diamond, v, depth=NodeKind.FUNCTION)
        assert seen == ["main"]

    def test_handler_table_deepest(self):
        assert HandlerTable.of(Recorder()).deepest is NodeKind.FUNCTION
        assert HandlerTable.of(object()).deepest is None
        table = HandlerTable.of(CallbackVisitor(leave_statement=lambda s: None))
        assert table.deepest is NodeKind.STATEMENT


class TestNoOpAndSkip:

    def test_visitor_without_hooks_is_a_noop(self, diamond):
        walk(diamond, Visitor())
        walk(diamond, object())
        assert not HandlerTable.of(Visitor())

    def test_skip_prunes_children(self):
        bundle = make_two_function_bundle()
        seen = []
        v = CallbackVisitor(
            enter_function=lambda f: SKIP if f.name == "f" else None,
            enter_basic_block=lambda bb: seen.append((bb.code.function.name, bb.name)),
        )
        walk(bundle, v)
        assert seen == [("g", "a"), ("g", "c")]

    def test_skip_still_calls_leave(self):
        bundle = make_two_function_bundle()
        left = []
        v = CallbackVisitor(
            enter_function=lambda f: SKIP,
            leave_function=lambda f: left.append(f.name),
            enter_basic_block=lambda bb: pytest.fail("pruned"),
        )
        walk(bundle, v)
        assert left == ["f", "g"]


class TestFailures:

    def test_hook_exception_propagates_and_stops(self):
        bundle = make_two_function_bundle()
        seen = []

        def boom(fn):
            seen.append(fn.name)
            raise AssertionError(f"bad {fn.name}")

        with pytest.raises(AssertionError, match="bad f"):
            walk(bundle, CallbackVisitor(enter_function=boom))
        assert seen == ["f"]

    def test_walk_does_not_mutate(self, diamond):
        before = [(s.name, d.name) for s, d in diamond.function("main").body.edges()]
        walk(diamond, CallbackVisitor(enter_basic_block=lambda bb: None))
        after = [(s.name, d.name) for s, d in diamond.function("main").body.edges()]
        assert before == after


class TestVisitingDecorator:

    def test_decorated_method_is_an_enter_hook(self, diamond):
        class Counter(Visitor):
            def __init__(self):
                self.blocks = 0
                self.statements = 0

            @visiting(NodeKind.BASIC_BLOCK)
            def count_block(self, bb):
                self.blocks += 1

            @visiting(NodeKind.STATEMENT)
            def count_statement(self, stmt):
                self.statements += 1

        c = Counter()
        walk(diamond, c)
        assert (c.blocks, c.statements) == (4, 5)

    def test_multiple_kinds(self, diamond):
        class Kinds(Visitor):
            def __init__(self):
                self.kinds = []

            @visiting(NodeKind.FUNCTION, NodeKind.CODE)
            def note(self, node):
                self.kinds.append(node.kind)

        k = Kinds()
        walk(diamond, k)
        assert k.kinds == [NodeKind.FUNCTION, NodeKind.CODE]

    def test_rejects_non_kinds(self):
        with pytest.raises(TypeError):
            visiting("function")


class TestCallbackVisitor:

    def test_unknown_hook_name(self):
        with pytest.raises(TypeError):
            CallbackVisitor(on_function=lambda f: None)

    def test_non_callable_hook(self):
        with pytest.raises(TypeError):
            CallbackVisitor(enter_function=42)


class TestChildren:

    def test_children_per_kind(self):
        bundle = make_diamond()
        fn = bundle.function("main")
        assert children_of(bundle) == (fn,)
        assert children_of(fn) == (fn.body,)
        assert [bb.name for bb in children_of(fn.body)] == ["entry", "then", "else", "join"]
        entry = fn.body.block_by_name("entry")
        assert [s.opcode for s in children_of(entry)] == ["cmp", "br"]
        assert children_of(entry.statements[0]) == ()
