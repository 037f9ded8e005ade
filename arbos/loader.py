"""
arbos.loader
============

Read and write bundles as JSON, the hand-off format from a front-end.

Shape::

    {
      "name": "phi-2",
      "functions": [
        {
          "name": "main",
          "entry": "entry",                      # optional
          "exit": "for.end.37",                  # optional
          "blocks": [
            {"name": "entry",
             "statements": [{"op": "store", "operands": ["i", "0"]}],
             "successors": ["for.cond"]},
            ...
          ]
        }
      ]
    }

Blocks are declared in list order; successors may name blocks declared
later in the same function.  Shape errors raise :class:`IRError` naming the
JSON path of the offending field, e.g. ``functions[0].blocks[2].name``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from arbos.errors import ArbosErrorCodes, IRError
from arbos.ir import Bundle, BundleBuilder

logger = logging.getLogger(__name__)

__all__ = ["bundle_from_dict", "load_bundle", "loads_bundle", "bundle_to_dict", "dump_bundle"]


def _bad(path: str, message: str) -> IRError:
    return IRError(f"{path}: {message}", code=ArbosErrorCodes.IR_BAD_INPUT)


def _expect(value: Any, kind: type, path: str) -> Any:
    if not isinstance(value, kind):
        raise _bad(path, f"expected {kind.__name__}, got {type(value).__name__}")
    return value


def _name(obj: Dict[str, Any], path: str) -> str:
    name = obj.get("name")
    if not isinstance(name, str) or not name:
        raise _bad(f"{path}.name", "expected a non-empty string")
    return name


def bundle_from_dict(data: Dict[str, Any], *, validate: bool = True) -> Bundle:
    """Build a frozen :class:`Bundle` from its JSON description."""
    _expect(data, dict, "$")
    builder = BundleBuilder(str(data.get("name", "<bundle>")))
    functions = _expect(data.get("functions", []), list, "functions")

    for i, fdata in enumerate(functions):
        fpath = f"functions[{i}]"
        _expect(fdata, dict, fpath)
        fn = builder.function(_name(fdata, fpath))
        blocks = _expect(fdata.get("blocks", []), list, f"{fpath}.blocks")

        # Declare every block first so successors may refer forward.
        for j, bdata in enumerate(blocks):
            bpath = f"{fpath}.blocks[{j}]"
            _expect(bdata, dict, bpath)
            name = _name(bdata, bpath)
            stmts = []
            for k, sdata in enumerate(_expect(bdata.get("statements", []), list, f"{bpath}.statements")):
                spath = f"{bpath}.statements[{k}]"
                _expect(sdata, dict, spath)
                op = sdata.get("op")
                if not isinstance(op, str) or not op:
                    raise _bad(f"{spath}.op", "expected a non-empty string")
                operands = _expect(sdata.get("operands", []), list, f"{spath}.operands")
                stmts.append((op, [str(o) for o in operands]))
            fn.block(name, stmts)

        for j, bdata in enumerate(blocks):
            bpath = f"{fpath}.blocks[{j}]"
            for k, dst in enumerate(_expect(bdata.get("successors", []), list, f"{bpath}.successors")):
                if not isinstance(dst, str) or not fn.fn.body.has_block(dst):
                    raise _bad(f"{bpath}.successors[{k}]", f"unknown block {dst!r}")
                fn.edge(bdata["name"], dst)

        for key, setter in (("entry", fn.entry), ("exit", fn.exit)):
            if key in fdata:
                target = fdata[key]
                if not isinstance(target, str) or not fn.fn.body.has_block(target):
                    raise _bad(f"{fpath}.{key}", f"unknown block {target!r}")
                setter(target)

    return builder.build(validate=validate)


def loads_bundle(text: str, *, validate: bool = True) -> Bundle:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise IRError(f"bundle is not valid JSON: {e}", code=ArbosErrorCodes.IR_BAD_INPUT) from e
    return bundle_from_dict(data, validate=validate)


def load_bundle(path: Union[str, Path], *, validate: bool = True) -> Bundle:
    """Read a JSON bundle file.

    ``OSError`` from reading the file propagates unchanged.
    """
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    bundle = loads_bundle(text, validate=validate)
    logger.info("loaded bundle %r from %s (%d function(s))", bundle.name, p, len(bundle.functions))
    return bundle


def bundle_to_dict(bundle: Bundle) -> Dict[str, Any]:
    """Inverse of :func:`bundle_from_dict`."""
    functions: List[Dict[str, Any]] = []
    for fn in bundle.functions:
        code = fn.body
        blocks = []
        for bb in code.blocks:
            bdata: Dict[str, Any] = {"name": bb.name}
            if bb.statements:
                bdata["statements"] = [
                    {"op": s.opcode, "operands": list(s.operands)} for s in bb.statements
                ]
            succ = [s.name for s in bb.next_blocks()]
            if succ:
                bdata["successors"] = succ
            blocks.append(bdata)
        fdata: Dict[str, Any] = {"name": fn.name}
        if code.entry is not None:
            fdata["entry"] = code.entry.name
        if code.exit is not None:
            fdata["exit"] = code.exit.name
        fdata["blocks"] = blocks
        functions.append(fdata)
    return {"name": bundle.name, "functions": functions}


def dump_bundle(bundle: Bundle, path: Union[str, Path]) -> None:
    Path(path).write_text(json.dumps(bundle_to_dict(bundle), indent=2) + "\n", encoding="utf-8")
