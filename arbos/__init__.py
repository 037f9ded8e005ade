"""
arbos — a plugin-extensible pass/visitor framework over a CFG-based IR.

Subpackages / modules
---------------------
ir          Bundle → Function → Code → BasicBlock → Statement, with CFG
            adjacency kept on the Code body.
visitor     enter_/leave_ hooks per node kind, ``walk`` / ``accept``.
passes      ``Pass`` contract, plugin units (``init()``), registry, runner.
verifier    CFG-shape checks against ``(trans (edge (src) (dest)) ...)``
            oracles written in the sexql language.
loader      JSON bundles.
printer     CFG → oracle literal.
regression  Shipped regression verification units.
main        The ``arbos`` command line.

Quick start
-----------
::

    from arbos.ir import BundleBuilder
    from arbos.verifier import verify_cfg

    b = BundleBuilder("demo")
    b.function("main").blocks("a", "b").edge("a", "b")
    report = verify_cfg(b.build(), "(trans (edge (a) (b)))")
    assert report.passed
"""

__version__ = "0.1.0"
