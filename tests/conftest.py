# tests/conftest.py
"""
Shared literals, IR builders and helpers for the arbos / sexql tests.
"""

import json
import re
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from arbos.ir import Bundle, BundleBuilder
from arbos.regression.cfg_trans_llvm_phi_2 import EXPECTED as PHI2_EXPECTED


# ---------------------------------------------------------------------------
# S-expression literals
# ---------------------------------------------------------------------------

SCENARIO_LITERAL = "(trans (edge (a) (b)))"
EMPTY_TRANS = "(trans)"
MALFORMED_DEST = "(trans (edge (a) b))"

NESTED_SEXP = "(root (a b) ((c) d) () e)"

CONTINUED_LITERAL = "(trans\\\n  (edge (a) (b))\\\n  (edge (b) (c)))"

DIAMOND_ORACLE = """\
(trans
  (edge (entry) (then))
  (edge (entry) (else))
  (edge (then) (join))
  (edge (else) (join)))
"""


# ---------------------------------------------------------------------------
# The phi-2 regression CFG
# ---------------------------------------------------------------------------

PHI2_EDGES: List[Tuple[str, str]] = [
    (src, dst)
    for src, dst in re.findall(r"\(edge \(([^()\s]+)\) \(([^()\s]+)\)\)", PHI2_EXPECTED)
]


def phi2_block_names() -> List[str]:
    """Every block named by the phi-2 oracle, ``entry`` first."""
    names: Dict[str, None] = {"entry": None}
    for src, dst in PHI2_EDGES:
        names[src] = None
        names[dst] = None
    return list(names)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_bundle(
    blocks: Iterable[str],
    edges: Iterable[Tuple[str, str]] = (),
    *,
    function: str = "main",
    name: str = "test",
) -> Bundle:
    """One-function bundle with the given blocks and edges."""
    b = BundleBuilder(name)
    b.function(function).blocks(*blocks).edges(edges)
    return b.build()


def make_two_function_bundle() -> Bundle:
    b = BundleBuilder("two")
    b.function("f").blocks("a", "b").edge("a", "b")
    b.function("g").blocks("a", "c").edge("a", "c")
    return b.build()


def make_diamond(function: str = "main") -> Bundle:
    b = BundleBuilder("diamond")
    (b.function(function)
        .block("entry", [("cmp", ["x", "0"]), ("br", ["then", "else"])])
        .block("then", [("assign", ["y", "1"])])
        .block("else", [("assign", ["y", "2"])])
        .block("join", [("ret", ["y"])])
        .edges([("entry", "then"), ("entry", "else"), ("then", "join"), ("else", "join")])
        .exit("join"))
    return b.build()


def make_phi2_bundle(*, drop_edge: Optional[Tuple[str, str]] = None, extra_block: bool = False) -> Bundle:
    names = phi2_block_names()
    if extra_block:
        names.append("unreachable")
    edges = [e for e in PHI2_EDGES if e != drop_edge]
    return make_bundle(names, edges, name="phi-2")


DIAMOND_JSON = {
    "name": "diamond",
    "functions": [
        {
            "name": "main",
            "entry": "entry",
            "blocks": [
                {"name": "entry",
                 "statements": [{"op": "cmp", "operands": ["x", "0"]}],
                 "successors": ["then", "else"]},
                {"name": "then", "successors": ["join"]},
                {"name": "else", "successors": ["join"]},
                {"name": "join", "statements": [{"op": "ret", "operands": ["y"]}]},
            ],
        }
    ],
}


# ---------------------------------------------------------------------------
# Plugin unit sources
# ---------------------------------------------------------------------------

UNIT_SOURCE = '''\
from arbos.verifier import CfgTransPass


class DiamondCheck(CfgTransPass):
    name = "diamond-check"
    description = "Verify the diamond CFG"
    expected = "(trans (edge (entry) (then)) (edge (then) (join)))"
    block_count = 4


def init():
    return DiamondCheck()
'''

NO_INIT_SOURCE = "X = 1\n"

BAD_INIT_SOURCE = "def init():\n    return object()\n"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def diamond():
    return make_diamond()


@pytest.fixture
def phi2_bundle():
    return make_phi2_bundle()


@pytest.fixture
def diamond_json(tmp_path):
    path = tmp_path / "diamond.json"
    path.write_text(json.dumps(DIAMOND_JSON), encoding="utf-8")
    return path


@pytest.fixture
def unit_file(tmp_path):
    path = tmp_path / "diamond_check.py"
    path.write_text(UNIT_SOURCE, encoding="utf-8")
    return path
