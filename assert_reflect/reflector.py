"""assert_reflect/reflector.py – one reflection pass over a failed block.

locate → walk (capturing) → format.  Every pass builds its own namespace,
buffer and capture list, so nested and repeated assertions never share
state.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Tuple

from .capture import CaptureCollector, LexicalContext
from .config import DEFAULT_CONFIG, ReflectionConfig
from .formatter import ReportFormatter
from .locator import locate_block
from .sexp import to_sexp_text
from .walker import SyntaxWalker

__all__ = ["AssertionReflector"]

logger = logging.getLogger(__name__)


class AssertionReflector:
    """Produces the report for a block that returned *result*.

    Usage::

        reflector = AssertionReflector()
        report = reflector.reflect(block, block())

    Raises :class:`~assert_reflect.errors.ReflectionError` subclasses when
    the source cannot be located or walked; callers decide how to degrade.
    """

    def __init__(self, config: ReflectionConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        for warning in config.validate():
            logger.warning("reflection config: %s", warning)
        self.formatter = ReportFormatter(config)

    def reflect(
        self,
        block: Any,
        result: Any,
        *,
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
        call_site: Optional[Tuple[str, int]] = None,
    ) -> str:
        source, node = locate_block(
            block, call_site=call_site, backtrack=self.config.locator_backtrack
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "reflecting %s:%d %s",
                source.filename, source.first_line, to_sexp_text(node, limit=400),
            )

        collector = CaptureCollector(
            LexicalContext.from_block(block, args, kwargs), self.config
        )
        walker = SyntaxWalker(collector, source.filename, source.first_line)
        walker.reconstruct_block(node)
        return self.formatter.format(source.text, result, collector.captures)
