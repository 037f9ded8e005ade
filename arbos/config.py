"""arbos.config — run-time knobs for hosts that execute passes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

DEFAULT_ENTRY_POINT_GROUP: str = "arbos.passes"


@dataclass
class RunConfig:
    """Tuning knobs for :class:`arbos.passes.PassManager` and the CLI."""

    keep_going: bool = False
    validate_ir: bool = True
    discover_plugins: bool = True
    entry_point_group: str = DEFAULT_ENTRY_POINT_GROUP
    units: Tuple[str, ...] = field(default_factory=tuple)

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.discover_plugins and not self.entry_point_group:
            warnings.append("discover_plugins is set but entry_point_group is empty")
        seen = set()
        for unit in self.units:
            if not unit:
                warnings.append("empty pass unit reference ignored")
            elif unit in seen:
                warnings.append(f"pass unit {unit!r} listed more than once")
            seen.add(unit)
        return warnings
