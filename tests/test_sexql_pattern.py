# tests/test_sexql_pattern.py
"""
Tests for structural pattern matching over s-expression values.
"""

import pytest

from sexql.errors import PatternError
from sexql.pattern import (
    CapturePattern,
    ListPattern,
    LiteralPattern,
    Match,
    Pattern,
    RestPattern,
    WildcardPattern,
    cap,
    compile_pattern,
    lit,
    pattern,
    rest,
    wildcard,
)
from sexql.reader import Atom, SList, parse, slist


EDGE = "(edge (?src) (?dest))"


class TestCompile:

    def test_node_kinds(self):
        p = compile_pattern("(edge ?x _ ?...more)")
        assert p.root == ListPattern((
            LiteralPattern("edge"),
            CapturePattern("x"),
            WildcardPattern(),
            RestPattern("more"),
        ))

    def test_captures_in_appearance_order(self):
        assert compile_pattern("(f ?b (g ?a) ?...c)").captures == ("b", "a", "c")

    def test_str_round_trips_notation(self):
        assert str(compile_pattern(EDGE)) == EDGE
        assert repr(compile_pattern("(a _)")) == "Pattern('(a _)')"

    def test_duplicate_capture_name(self):
        with pytest.raises(PatternError, match="more than once"):
            compile_pattern("(edge (?x) (?x))")

    def test_duplicate_between_capture_and_rest(self):
        with pytest.raises(PatternError):
            compile_pattern("(f ?x ?...x)")

    def test_rest_must_be_last(self):
        with pytest.raises(PatternError, match="last element"):
            compile_pattern("(f ?...xs y)")

    def test_rest_at_top_level(self):
        with pytest.raises(PatternError):
            compile_pattern("?...xs")

    @pytest.mark.parametrize("text", ["(f ?)", "(f ?...)"])
    def test_empty_capture_name(self, text):
        with pytest.raises(PatternError):
            compile_pattern(text)

    @pytest.mark.parametrize("text", ["", "(a", "(a) (b)"])
    def test_bad_pattern_text(self, text):
        with pytest.raises(PatternError):
            compile_pattern(text)


class TestBuilders:

    def test_pattern_builder_matches_text_form(self):
        built = pattern("edge", pattern("?src"), pattern("?dest"))
        assert built.root == compile_pattern(EDGE).root

    def test_node_builders(self):
        p = pattern(lit("trans"), cap("first"), wildcard(), rest("others"))
        assert str(p) == "(trans ?first _ ?...others)"

    def test_lit_matches_question_mark_text(self):
        p = pattern("f", lit("?x"))
        assert p.captures == ()
        assert p.match(parse("(f ?x)")) is not None
        assert p.match(parse("(f y)")) is None

    def test_lit_rejects_bad_atom_text(self):
        with pytest.raises(PatternError):
            lit("a b")

    def test_cap_and_rest_reject_empty_names(self):
        with pytest.raises(PatternError):
            cap("")
        with pytest.raises(PatternError):
            rest("")

    def test_builder_rejects_unknown_elements(self):
        with pytest.raises(PatternError):
            pattern("f", 42)

    def test_builder_detects_duplicates(self):
        with pytest.raises(PatternError):
            pattern("edge", "?x", "?x")


class TestMatching:

    def test_literal_atom(self):
        p = compile_pattern("entry")
        assert p.match(Atom("entry")) is not None
        assert p.match(Atom("Entry")) is None
        assert p.match(slist("entry")) is None

    def test_capture_binds_atom_or_list(self):
        p = compile_pattern("(f ?x)")
        assert p.match(parse("(f a)"))["x"] == Atom("a")
        assert p.match(parse("(f (g h))"))["x"] == slist("g", "h")

    def test_edge_entry(self):
        m = compile_pattern(EDGE).match(parse("(edge (a) (b))"))
        assert m["src"] == Atom("a")
        assert m["dest"] == Atom("b")
        assert list(m) == ["src", "dest"]

    def test_unwrapped_dest_is_no_match(self):
        assert compile_pattern(EDGE).match(parse("(edge (a) b)")) is None

    def test_tag_mismatch_is_no_match(self):
        assert compile_pattern(EDGE).match(parse("(edgy (a) (b))")) is None

    @pytest.mark.parametrize("text", ["(edge (a))", "(edge (a) (b) (c))", "(edge)"])
    def test_arity_mismatch_is_no_match(self, text):
        assert compile_pattern(EDGE).match(parse(text)) is None

    def test_inner_arity_mismatch(self):
        assert compile_pattern(EDGE).match(parse("(edge (a x) (b))")) is None

    def test_atom_against_list_pattern(self):
        assert compile_pattern(EDGE).match(Atom("edge")) is None

    def test_wildcard_binds_nothing(self):
        m = compile_pattern("(f _ ?y)").match(parse("(f (anything) y)"))
        assert dict(m) == {"y": Atom("y")}

    def test_rest_binds_remaining_elements(self):
        m = compile_pattern("(trans ?...entries)").match(parse("(trans (a) (b))"))
        assert m["entries"] == SList((slist("a"), slist("b")))

    def test_rest_may_be_empty(self):
        m = compile_pattern("(trans ?...entries)").match(parse("(trans)"))
        assert m["entries"] == SList()

    def test_rest_requires_fixed_prefix(self):
        p = compile_pattern("(f ?a ?...rest)")
        assert p.match(parse("(f)")) is None
        assert p.match(parse("(f x)"))["rest"] == SList()

    def test_match_without_captures_is_truthy(self):
        m = compile_pattern("(trans)").match(parse("(trans)"))
        assert isinstance(m, Match)
        assert len(m) == 0
        assert m

    def test_no_value_never_matches(self):
        assert compile_pattern("_").match(None) is None

    def test_non_sexpr_is_a_type_error(self):
        with pytest.raises(TypeError):
            compile_pattern("_").match("edge")

    def test_failed_match_leaks_no_bindings(self):
        p = compile_pattern("(f ?x y)")
        assert p.match(parse("(f a z)")) is None
        assert p.match(parse("(f a y)")).bindings == {"x": Atom("a")}

    def test_matches(self):
        p = compile_pattern(EDGE)
        assert p.matches(parse("(edge (a) (b))"))
        assert not p.matches(parse("(edge a b)"))

    @pytest.mark.parametrize("text", [
        "x", "()", "(edge)", "(edge (a) (b))", "(edge (a) b)", "((edge) (a) (b))",
        "(edge (a) (b) (c))", "(edge ((a)) ((b)))",
    ])
    def test_totality(self, text):
        result = compile_pattern(EDGE).match(parse(text))
        assert result is None or isinstance(result, Match)


class TestMatchEach:

    def test_positions_are_one_based(self):
        trans = parse("(trans (edge (a) (b)) (edge (b) c) (edge (c) (d)))")
        results = list(compile_pattern(EDGE).match_each(trans.args))
        assert [pos for pos, _, _ in results] == [1, 2, 3]
        assert [m is not None for _, _, m in results] == [True, False, True]
        assert results[1][1] == trans.arg(2)

    def test_agrees_with_positional_access(self):
        trans = parse("(trans (edge (a) (b)) (edge (b) (c)))")
        p = compile_pattern(EDGE)
        for i in range(1, trans.n_args + 1):
            assert p.match(trans.arg(i)) is not None
