#!/usr/bin/env python3
# =============================================================================
#  arbos — setup.py
#
#  Installs two packages:
#
#    sexql   the s-expression query language (reader + pattern matcher)
#    arbos   the IR, visitor, pass framework, verifier and CLI
#
#  Typical use:
#      pip install -e ".[dev]"
#      python -m pytest
# =============================================================================

from __future__ import annotations

import re
from pathlib import Path

from setuptools import setup, find_packages

# ---------------------------------------------------------------------------
#  Read version from arbos/__init__.py so we have a single source of truth.
# ---------------------------------------------------------------------------
_HERE = Path(__file__).resolve().parent


def _read_version() -> str:
    """Extract ``__version__`` from arbos/__init__.py."""
    init = _HERE / "arbos" / "__init__.py"
    text = init.read_text(encoding="utf-8")
    match = re.search(r'^__version__\s*=\s*"([^"]+)"', text, re.MULTILINE)
    if match:
        return match.group(1)
    return "0.0.0"


def _read_long_description() -> str:
    """Read README.md for the long description."""
    readme = _HERE / "README.md"
    if readme.exists():
        return readme.read_text(encoding="utf-8")
    return ""


def _read_requirements() -> list[str]:
    """Read requirements.txt if it exists."""
    req_file = _HERE / "requirements.txt"
    if req_file.exists():
        lines = req_file.read_text(encoding="utf-8").splitlines()
        return [
            ln.strip()
            for ln in lines
            if ln.strip() and not ln.strip().startswith("#")
        ]
    return []


setup(
    name="arbos",
    version=_read_version(),
    description=(
        "Plugin-extensible pass/visitor framework over a CFG-based IR, "
        "with an s-expression query language for CFG-shape oracles."
    ),
    long_description=_read_long_description(),
    long_description_content_type="text/markdown",
    license="MIT",
    author="arbos contributors",
    python_requires=">=3.10",
    packages=find_packages(
        include=[
            "arbos",
            "arbos.*",
            "sexql",
            "sexql.*",
        ],
        exclude=[
            "tests",
            "tests.*",
        ],
    ),
    install_requires=_read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "ruff>=0.4",
            "mypy>=1.10",
        ],
    },
    entry_points={
        "console_scripts": [
            "arbos=arbos.main:main",
        ],
        # Pass units: a module exposing init(), or a Pass factory.
        "arbos.passes": [
            "print-cfg=arbos.printer:CfgPrinterPass",
            "unittest-cfg-trans-llvm-phi-2=arbos.regression.cfg_trans_llvm_phi_2",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Compilers",
        "Topic :: Software Development :: Testing",
    ],
    keywords=[
        "control-flow",
        "intermediate-representation",
        "s-expression",
        "static-analysis",
        "visitor",
    ],
    zip_safe=False,
)
