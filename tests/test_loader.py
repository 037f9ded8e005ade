# tests/test_loader.py
"""
Tests for reading and writing bundles as JSON.
"""

import copy
import json

import pytest

from arbos.errors import ArbosErrorCodes, IRError
from arbos.loader import bundle_from_dict, bundle_to_dict, dump_bundle, load_bundle, loads_bundle
from tests.conftest import DIAMOND_JSON, make_diamond


class TestBundleFromDict:

    def test_diamond(self):
        bundle = bundle_from_dict(DIAMOND_JSON)
        code = bundle.function("main").body
        assert bundle.name == "diamond"
        assert [bb.name for bb in code.blocks] == ["entry", "then", "else", "join"]
        assert {bb.name for bb in code.block_by_name("entry").successors} == {"then", "else"}
        assert str(code.block_by_name("entry").statements[0]) == "cmp x 0"
        assert code.entry.name == "entry"
        assert bundle.frozen

    def test_forward_references(self):
        data = {"functions": [{"name": "f", "blocks": [
            {"name": "a", "successors": ["b"]},
            {"name": "b"},
        ]}]}
        code = bundle_from_dict(data).function("f").body
        assert [bb.name for bb in code.block_by_name("a").successors] == ["b"]

    def test_defaults(self):
        bundle = bundle_from_dict({})
        assert bundle.name == "<bundle>"
        assert bundle.functions == ()

    def test_operands_become_strings(self):
        data = {"functions": [{"name": "f", "blocks": [
            {"name": "a", "statements": [{"op": "store", "operands": ["x", 0]}]},
        ]}]}
        stmt = bundle_from_dict(data).function("f").body.block_by_name("a").statements[0]
        assert stmt.operands == ("x", "0")


class TestShapeErrors:

    def _broken(self, mutate):
        data = copy.deepcopy(DIAMOND_JSON)
        mutate(data)
        with pytest.raises(IRError) as info:
            bundle_from_dict(data)
        return info.value

    def test_not_an_object(self):
        with pytest.raises(IRError):
            bundle_from_dict([])

    def test_functions_not_a_list(self):
        err = self._broken(lambda d: d.update(functions={}))
        assert "functions" in str(err)
        assert err.code == ArbosErrorCodes.IR_BAD_INPUT

    def test_missing_block_name(self):
        err = self._broken(lambda d: d["functions"][0]["blocks"][2].pop("name"))
        assert "functions[0].blocks[2].name" in str(err)

    def test_unknown_successor(self):
        err = self._broken(lambda d: d["functions"][0]["blocks"][1].update(successors=["nowhere"]))
        assert "functions[0].blocks[1].successors[0]" in str(err)
        assert "'nowhere'" in str(err)

    def test_unknown_entry(self):
        err = self._broken(lambda d: d["functions"][0].update(entry="start"))
        assert "functions[0].entry" in str(err)

    def test_bad_statement(self):
        err = self._broken(lambda d: d["functions"][0]["blocks"][0]["statements"][0].pop("op"))
        assert "statements[0].op" in str(err)

    def test_duplicate_block(self):
        err = self._broken(lambda d: d["functions"][0]["blocks"].append({"name": "join"}))
        assert err.code == ArbosErrorCodes.IR_DUPLICATE_NAME


class TestFiles:

    def test_load_bundle(self, diamond_json):
        bundle = load_bundle(diamond_json)
        assert bundle.function("main").body.num_edges() == 4

    def test_invalid_json(self):
        with pytest.raises(IRError, match="not valid JSON"):
            loads_bundle("{nope")

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_bundle(tmp_path / "absent.json")

    def test_round_trip(self, tmp_path):
        original = make_diamond()
        path = tmp_path / "out.json"
        dump_bundle(original, path)
        again = load_bundle(path)
        assert bundle_to_dict(again) == bundle_to_dict(original)
        assert json.loads(path.read_text(encoding="utf-8"))["name"] == "diamond"


class TestBundleToDict:

    def test_shape(self):
        data = bundle_to_dict(make_diamond())
        fn = data["functions"][0]
        assert fn["entry"] == "entry"
        assert fn["exit"] == "join"
        assert fn["blocks"][0]["successors"] == ["then", "else"]
        assert "successors" not in fn["blocks"][3]
        assert fn["blocks"][3]["statements"] == [{"op": "ret", "operands": ["y"]}]
