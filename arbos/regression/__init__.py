"""Regression pass units.

Each module here is a plugin unit: it exposes ``init()`` returning a fresh
verification pass that checks the CFG of one regression program after a
front-end transformation.
"""
