"""
arbos/passes.py
═══════════════

Pass framework: the plugin contract, the registry and a runner.

Architecture
────────────

  ┌───────────────────────────────────────────────────────────┐
  │                       PassManager                         │
  │   ┌────────────┐   ┌────────────┐   ┌────────────┐        │
  │   │ print-cfg  │   │ unittest-… │   │ 3rd party  │        │
  │   └─────┬──────┘   └─────┬──────┘   └─────┬──────┘        │
  │         │ execute(bundle) — read-only IR, own output      │
  │  ┌──────▼────────────────▼────────────────▼────────────┐  │
  │  │                   PassRegistry                      │  │
  │  │   name → factory   (sealed after start-up)          │  │
  │  └──────▲────────────────▲────────────────▲────────────┘  │
  │         │ register_class │ add_unit       │ discover      │
  │     built-ins       module / .py     entry points         │
  │                     with init()      "arbos.passes"       │
  └───────────────────────────────────────────────────────────┘

Plugin unit contract
────────────────────
A unit is a Python module exposing one factory, ``init()``, that takes no
arguments and returns a new :class:`Pass`.  A host obtains passes without
knowing their concrete types::

    factory = load_unit("my_checks/cfg_check.py")
    p = factory()
    p.execute(bundle)

Passes report through their output stream only; ``execute`` returns
nothing.  A pass holds no state shared with other passes.
"""

from __future__ import annotations

import hashlib
import importlib
import importlib.util
import logging
import re
import sys
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from importlib.metadata import entry_points
from pathlib import Path
from types import ModuleType
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    TextIO,
    Tuple,
    Type,
)

from sexql.errors import SexqlError

from arbos.config import DEFAULT_ENTRY_POINT_GROUP, RunConfig
from arbos.errors import (
    ArbosError,
    DuplicatePassError,
    PassError,
    PassNotFoundError,
    PluginLoadError,
    VerificationFailure,
)
from arbos.ir import Bundle

logger = logging.getLogger(__name__)

__all__ = [
    "ENTRY_SYMBOL",
    "Pass",
    "PassFactory",
    "PassRegistry",
    "PassManager",
    "PassRun",
    "load_unit",
    "load_pass",
    "build_registry",
    "default_registry",
]

#: Name of the factory every plugin unit exposes.
ENTRY_SYMBOL: str = "init"

#: Units shipped with arbos and registered by :func:`build_registry`.
BUILTIN_UNITS: Tuple[str, ...] = (
    "arbos.regression.cfg_trans_llvm_phi_2",
)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — PASS BASE CLASS
# ═════════════════════════════════════════════════════════════════════════

class Pass(ABC):
    """
    Abstract base class for all passes.

    Subclass Contract
    ─────────────────
      - Override ``name`` and ``description``
      - Implement ``execute(bundle)``; report through ``emit()``
    """

    name: ClassVar[str] = "base-pass"
    description: ClassVar[str] = ""

    def __init__(self, *, out: Optional[TextIO] = None) -> None:
        self._out = out

    def __setattr__(self, key: str, value: Any) -> None:
        if key in ("name", "description"):
            raise AttributeError(f"pass {key} is fixed by the class")
        super().__setattr__(key, value)

    @property
    def out(self) -> TextIO:
        """Report stream; ``sys.stdout`` unless one was injected."""
        return self._out if self._out is not None else sys.stdout

    def emit(self, line: str = "") -> None:
        self.out.write(line + "\n")

    @abstractmethod
    def execute(self, bundle: Bundle) -> None:
        """Inspect *bundle*; results are observable only as output."""
        ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} '{self.name}'>"


PassFactory = Callable[[], Pass]


def _instantiate(factory: PassFactory, origin: str, expected_name: Optional[str] = None) -> Pass:
    p = factory()
    if not isinstance(p, Pass):
        raise PassError(
            f"{origin}: factory returned {type(p).__name__}, not a Pass"
        )
    if expected_name is not None and p.name != expected_name:
        raise PassError(
            f"{origin}: factory registered as {expected_name!r} built a pass named {p.name!r}"
        )
    return p


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — PLUGIN UNITS
# ═════════════════════════════════════════════════════════════════════════

def _import_unit(ref: str) -> ModuleType:
    """Import a unit given as a dotted module name or a ``.py`` path."""
    path = Path(ref)
    if ref.endswith(".py") or path.is_file():
        if not path.is_file():
            raise PluginLoadError(ref, "no such file")
        digest = hashlib.sha1(str(path.resolve()).encode("utf-8")).hexdigest()[:8]
        stem = re.sub(r"\W", "_", path.stem)
        mod_name = f"arbos_unit_{stem}_{digest}"
        spec = importlib.util.spec_from_file_location(mod_name, path)
        if spec is None or spec.loader is None:
            raise PluginLoadError(ref, "not an importable Python file")
        module = importlib.util.module_from_spec(spec)
        sys.modules[mod_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            del sys.modules[mod_name]
            raise PluginLoadError(ref, f"{type(e).__name__}: {e}") from e
        return module
    try:
        return importlib.import_module(ref)
    except Exception as e:
        raise PluginLoadError(ref, f"{type(e).__name__}: {e}") from e


def _unit_factory(target: Any, origin: str) -> PassFactory:
    if isinstance(target, ModuleType):
        factory = getattr(target, ENTRY_SYMBOL, None)
        if factory is None:
            raise PluginLoadError(origin, f"module defines no {ENTRY_SYMBOL}()")
    else:
        factory = target
    if not callable(factory):
        raise PluginLoadError(origin, f"{ENTRY_SYMBOL} is not callable")
    return factory


def load_unit(ref: str) -> PassFactory:
    """Import the unit *ref* and return its ``init`` factory."""
    module = _import_unit(ref)
    logger.debug("loaded pass unit %s from %s", ref, getattr(module, "__file__", "?"))
    return _unit_factory(module, ref)


def load_pass(ref: str) -> Pass:
    """Import the unit *ref* and build one pass from it."""
    return _instantiate(load_unit(ref), ref)


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — PASS REGISTRY
# ═════════════════════════════════════════════════════════════════════════

class PassRegistry:
    """
    Registry of available passes, keyed by pass name.

    Usage
    -----
    >>> registry = PassRegistry()
    >>> registry.register_class(CfgPrinterPass)
    >>> registry.add_unit("arbos.regression.cfg_trans_llvm_phi_2")
    >>> registry.seal()
    >>> p = registry.create("print-cfg")
    """

    def __init__(self) -> None:
        self._factories: Dict[str, PassFactory] = {}
        self._origins: Dict[str, str] = {}
        self._sealed: bool = False

    def register(self, name: str, factory: PassFactory, *, origin: str = "") -> None:
        """Register *factory* under *name*."""
        if self._sealed:
            raise PassError(f"registry is sealed; cannot register {name!r}")
        if not name:
            raise PassError("pass name may not be empty")
        if not callable(factory):
            raise PassError(f"factory for {name!r} is not callable")
        if name in self._factories:
            raise DuplicatePassError(
                f"pass {name!r} already registered from {self._origins[name] or '<unknown>'}"
            )
        self._factories[name] = factory
        self._origins[name] = origin
        logger.debug("registered pass %s (%s)", name, origin or "<direct>")

    def register_class(self, cls: Type[Pass]) -> Type[Pass]:
        """Register a :class:`Pass` subclass; usable as a decorator."""
        if not (isinstance(cls, type) and issubclass(cls, Pass)):
            raise PassError(f"{cls!r} is not a Pass subclass")
        self.register(cls.name, cls, origin=f"{cls.__module__}.{cls.__qualname__}")
        return cls

    def add_unit(self, ref: str) -> Pass:
        """Load a plugin unit, register its factory and return the pass it built."""
        factory = load_unit(ref)
        p = _instantiate(factory, ref)
        self.register(p.name, factory, origin=ref)
        return p

    def discover(self, group: str = DEFAULT_ENTRY_POINT_GROUP) -> List[str]:
        """Register passes advertised under the entry-point *group*.

        An entry point may name a unit module (its ``init`` is used) or a
        factory callable.  A name already registered with the very same
        factory is skipped, so built-ins listed as entry points do not
        collide with themselves.

        Returns the names newly registered.
        """
        added: List[str] = []
        for ep in entry_points(group=group):
            origin = f"{ep.name} = {ep.value}"
            try:
                target = ep.load()
            except Exception as e:
                raise PluginLoadError(origin, f"{type(e).__name__}: {e}") from e
            factory = _unit_factory(target, origin)
            p = _instantiate(factory, origin)
            if self._factories.get(p.name) is factory:
                logger.debug("entry point %s already registered", origin)
                continue
            self.register(p.name, factory, origin=origin)
            added.append(p.name)
        logger.info("discovered %d pass(es) in entry-point group %s", len(added), group)
        return added

    def seal(self) -> None:
        """Make the registry read-only."""
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, name: str) -> PassFactory:
        factory = self._factories.get(name)
        if factory is None:
            raise PassNotFoundError(name, available=self.names)
        return factory

    def create(self, name: str, *, out: Optional[TextIO] = None) -> Pass:
        """Build a fresh pass instance registered as *name*.

        Factories take no arguments; *out* redirects the new pass's report
        stream.
        """
        factory = self.get(name)
        p = _instantiate(factory, self._origins[name], expected_name=name)
        if out is not None:
            p._out = out
        return p

    def origin(self, name: str) -> str:
        self.get(name)
        return self._origins[name]

    @property
    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)


_DEFAULT_REGISTRY: Optional[PassRegistry] = None


def _register_builtins(registry: PassRegistry) -> None:
    from arbos.printer import CfgPrinterPass

    registry.register_class(CfgPrinterPass)
    for unit in BUILTIN_UNITS:
        registry.add_unit(unit)


def build_registry(config: Optional[RunConfig] = None) -> PassRegistry:
    """A new sealed registry holding the built-in passes.

    Built-ins are registered first, then passes advertised under the
    configured entry-point group, then any extra ``config.units``.
    """
    config = config or RunConfig()
    registry = PassRegistry()
    _register_builtins(registry)
    if config.discover_plugins:
        registry.discover(config.entry_point_group)
    for unit in config.units:
        if unit:
            registry.add_unit(unit)
    registry.seal()
    return registry


def default_registry(config: Optional[RunConfig] = None) -> PassRegistry:
    """The process-wide registry, built by :func:`build_registry` on first use.

    *config* only matters on the first call.
    """
    global _DEFAULT_REGISTRY
    if _DEFAULT_REGISTRY is None:
        _DEFAULT_REGISTRY = build_registry(config)
    return _DEFAULT_REGISTRY


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — RUNNER
# ═════════════════════════════════════════════════════════════════════════

PASS_OK = "ok"
PASS_FAILED = "failed"
PASS_ERROR = "error"


@dataclass
class PassRun:
    """
    Outcome of one pass execution.

    Attributes
    ----------
    name    : pass name
    status  : ``"ok"``, ``"failed"`` (verification FAIL) or ``"error"``
    elapsed : wall time in seconds
    error   : the exception that ended the pass, if any
    """
    name: str
    status: str
    elapsed: float = 0.0
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status == PASS_OK


class PassManager:
    """
    Runs a sequence of passes over one bundle.

    Verification failures and framework errors end a pass and are recorded
    in its :class:`PassRun`; the manager stops at the first one unless
    ``config.keep_going`` is set.  Any other exception is a bug in a pass
    and propagates.

    Usage
    -----
    >>> manager = PassManager([registry.create("print-cfg")])
    >>> runs = manager.run(bundle)
    >>> all(r.ok for r in runs)
    """

    def __init__(
        self,
        passes: Sequence[Pass] = (),
        config: Optional[RunConfig] = None,
    ) -> None:
        self.passes: List[Pass] = list(passes)
        self.config = config or RunConfig()

    def add(self, p: Pass) -> "PassManager":
        self.passes.append(p)
        return self

    def run(self, bundle: Bundle) -> List[PassRun]:
        for w in self.config.validate():
            logger.warning("RunConfig: %s", w)
        if self.config.validate_ir:
            bundle.validate()

        runs: List[PassRun] = []
        for p in self.passes:
            logger.info("running pass %s on bundle %r", p.name, bundle.name)
            t0 = time.monotonic()
            error: Optional[BaseException] = None
            status = PASS_OK
            try:
                p.execute(bundle)
            except VerificationFailure as e:
                status, error = PASS_FAILED, e
            except (ArbosError, SexqlError) as e:
                status, error = PASS_ERROR, e
            elapsed = time.monotonic() - t0
            runs.append(PassRun(p.name, status, elapsed, error))
            if error is not None:
                logger.warning("pass %s %s: %s", p.name, status, error)
                if not self.config.keep_going:
                    break
            else:
                logger.info("pass %s finished in %.3fs", p.name, elapsed)
        return runs
