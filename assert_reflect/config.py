"""assert_reflect/config.py – tuning knobs for the reflection pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

__all__ = ["ReflectionConfig", "DEFAULT_CONFIG"]


@dataclass(frozen=True)
class ReflectionConfig:
    """Tuning knobs for locating, walking and formatting one assertion.

    Usage::

        config = ReflectionConfig(max_fragment_width=72)
        asserter = Asserter(config=config)
    """

    max_fragment_width: int = 50
    pprint_width: int = 80
    result_indent: int = 4
    arrow: str = "-->"
    locator_backtrack: int = 5
    suppress_literal_echo: bool = True
    reexecute_assignments: bool = True

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.max_fragment_width <= 0:
            warnings.append("max_fragment_width must be positive")
        if self.pprint_width <= 0:
            warnings.append("pprint_width must be positive")
        if self.result_indent < 0:
            warnings.append("result_indent must be non-negative")
        if not self.arrow.strip():
            warnings.append("arrow must not be blank")
        if self.locator_backtrack < 0:
            warnings.append("locator_backtrack must be non-negative")
        return warnings


DEFAULT_CONFIG = ReflectionConfig()
