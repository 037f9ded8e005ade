# tests/test_sexql_reader.py
"""
Tests for the s-expression reader: text → Atom / SList values and back.
"""

import pytest

from sexql.errors import SExprError, SExprParseError, SexqlError
from sexql.reader import (
    Atom,
    SExprReader,
    SList,
    atom,
    dumps,
    parse,
    parse_all,
    parse_file,
    pformat,
    slist,
    to_data,
)
from tests.conftest import CONTINUED_LITERAL, NESTED_SEXP, SCENARIO_LITERAL


class TestValues:

    def test_atom_text(self):
        assert Atom("for.cond.1").text == "for.cond.1"
        assert str(Atom("x")) == "x"

    @pytest.mark.parametrize("text", ["", "a b", "a(b", "x)", "tab\there"])
    def test_atom_rejects_bad_text(self, text):
        with pytest.raises(SExprError):
            Atom(text)

    def test_slist_tag_and_args(self):
        lst = slist("edge", slist("a"), slist("b"))
        assert lst.tag == "edge"
        assert lst.n_args == 2
        assert lst.args == (slist("a"), slist("b"))

    def test_arg_is_one_based(self):
        lst = parse("(trans x y z)")
        assert lst.arg(1) == Atom("x")
        assert lst.arg(3) == Atom("z")
        with pytest.raises(IndexError):
            lst.arg(0)
        with pytest.raises(IndexError):
            lst.arg(4)

    def test_empty_list(self):
        lst = SList()
        assert lst.tag is None
        assert lst.n_args == 0
        assert len(lst) == 0

    def test_tag_of_list_headed_list_is_none(self):
        assert parse("((a) b)").tag is None

    def test_slist_rejects_non_values(self):
        with pytest.raises(SExprError):
            SList(("a",))

    def test_values_are_immutable(self):
        a = atom("x")
        with pytest.raises(AttributeError):
            a.text = "y"

    def test_structural_equality_and_hash(self):
        assert parse("(a (b c))") == slist("a", slist("b", "c"))
        assert hash(parse("(a b)")) == hash(slist("a", "b"))


class TestParse:

    def test_empty_input_is_no_value(self):
        assert parse("") is None
        assert parse("   \n\t ") is None

    def test_semicolon_is_atom_text(self):
        assert parse(";") == Atom(";")
        assert parse_all("; nothing here\n") == [Atom(";"), Atom("nothing"), Atom("here")]

    def test_single_atom(self):
        assert parse("entry") == Atom("entry")

    def test_scenario_literal(self):
        value = parse(SCENARIO_LITERAL)
        assert value.tag == "trans"
        edge = value.arg(1)
        assert edge == slist("edge", slist("a"), slist("b"))

    def test_nesting(self):
        value = parse(NESTED_SEXP)
        assert value.tag == "root"
        assert value.arg(1) == slist("a", "b")
        assert value.arg(2) == SList((slist("c"), Atom("d")))
        assert value.arg(3) == SList()
        assert value.arg(4) == Atom("e")

    def test_whitespace_is_insignificant(self):
        assert parse("(a\n  (b\tc)\r\n)") == parse("(a (b c))")

    def test_atoms_are_opaque(self):
        value = parse("(n 007 1.5 nil t -3)")
        assert [a.text for a in value.args] == ["007", "1.5", "nil", "t", "-3"]
        assert all(isinstance(a, Atom) for a in value.args)

    def test_block_name_characters(self):
        value = parse("(edge (*in_for.body.3_to_for.cond.4_phi) (for.cond.4))")
        assert value.arg(1)[0] == Atom("*in_for.body.3_to_for.cond.4_phi")

    @pytest.mark.parametrize("text", ["(a b", "((a)", "a)", "(a))", ")"])
    def test_unbalanced_parentheses(self, text):
        with pytest.raises(SExprParseError):
            parse(text)

    def test_parse_error_is_sexql_error(self):
        with pytest.raises(SexqlError):
            parse("(")

    def test_more_than_one_value_is_an_error(self):
        with pytest.raises(SExprParseError, match="single top-level value"):
            parse("(a) (b)")

    @pytest.mark.parametrize("name", ["a;b", 'a"b', "a[b", '"x"', "a\\", "'x", "[b]", "a]"])
    def test_reader_punctuation_is_atom_text(self, name):
        value = parse(f"(edge ({name}) (b))")
        assert value.arg(1) == slist(name)
        assert value.arg(2) == slist("b")

    def test_backslash_before_space_does_not_escape(self):
        assert parse("(a\\ b)") == slist("a\\", "b")

    def test_source_is_reported(self):
        with pytest.raises(SExprParseError) as info:
            parse("(a", source="oracle.sexp")
        assert str(info.value).startswith("oracle.sexp: ")
        assert info.value.source == "oracle.sexp"

    def test_non_string_input(self):
        with pytest.raises(TypeError):
            parse(b"(a)")


class TestLineContinuations:

    def test_continuations_do_not_change_structure(self):
        flat = parse("(trans (edge (a) (b)) (edge (b) (c)))")
        assert parse(CONTINUED_LITERAL) == flat

    def test_continuation_inside_a_token_joins_it(self):
        assert parse("(for.\\\ncond)") == slist("for.cond")

    def test_crlf_continuation(self):
        assert parse("(a\\\r\n b)") == slist("a", "b")


class TestReaderStream:

    def test_read_until_exhausted(self):
        r = SExprReader("(a) b (c d)")
        assert r.read() == slist("a")
        assert r.read() == Atom("b")
        assert r.read() == slist("c", "d")
        assert r.read() is None
        assert r.read() is None

    def test_iteration(self):
        assert list(SExprReader("(a) (b)")) == [slist("a"), slist("b")]

    def test_syntax_error_surfaces_eagerly(self):
        with pytest.raises(SExprParseError):
            SExprReader("(a) (b")

    def test_parse_all(self):
        assert parse_all("") == []
        assert len(parse_all("(a) (b) c")) == 3

    def test_parse_file(self, tmp_path):
        path = tmp_path / "oracle.sexp"
        path.write_text("\n(trans (edge (a) (b)))\n", encoding="utf-8")
        assert parse_file(path) == parse(SCENARIO_LITERAL)


class TestWriting:

    @pytest.mark.parametrize("text", [
        SCENARIO_LITERAL,
        NESTED_SEXP,
        "(trans)",
        "()",
        "atom",
        "(a (b (c (d (e)))))",
    ])
    def test_round_trip(self, text):
        value = parse(text)
        assert parse(dumps(value)) == value

    def test_dumps_is_canonical(self):
        assert dumps(parse("(a\n   (b   c) )")) == "(a (b c))"

    def test_dumps_rejects_other_types(self):
        with pytest.raises(TypeError):
            dumps(["a"])

    def test_str_of_list(self):
        assert str(parse("(a (b))")) == "(a (b))"

    def test_pformat_short_value_stays_flat(self):
        assert pformat(parse(SCENARIO_LITERAL)) == SCENARIO_LITERAL

    def test_pformat_breaks_long_lists(self):
        value = parse("(trans (edge (entry) (loop)) (edge (loop) (exit)))")
        text = pformat(value, width=30)
        assert text == "(trans\n  (edge (entry) (loop))\n  (edge (loop) (exit)))"
        assert parse(text) == value

    def test_to_data(self):
        assert to_data(parse("(a (b) c)")) == ["a", ["b"], "c"]

    @pytest.mark.parametrize("name", ["a;b", 'a"b', "a[b", '"x"', "'x", "a\\"])
    def test_round_trip_of_punctuated_atoms(self, name):
        value = SList((Atom("t"), Atom(name), slist(name)))
        assert parse(dumps(value)) == value

    def test_pformat_keeps_trailing_backslash(self):
        value = slist("trans", slist("a\\"), "b\\", slist("c"))
        text = pformat(value, width=8)
        assert "\n" in text
        assert parse(text) == value
