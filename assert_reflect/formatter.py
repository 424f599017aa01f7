"""assert_reflect/formatter.py – lays out a reflection report.

A report looks like::

    assert_(lambda: x + 1 == 3)
        --> False
             x --> 1
         x + 1 --> 2
    x + 1 == 3 --> False

with the ``-->`` arrows of the capture lines in one column.
"""

from __future__ import annotations

import re
from pprint import pformat
from typing import Any, List, Sequence

from .capture import Capture
from .config import DEFAULT_CONFIG, ReflectionConfig

__all__ = ["ReportFormatter", "wrap_fragment"]

#: Word runs keep their trailing punctuation; punctuation and whitespace runs
#: stand alone.
_TOKEN_RE = re.compile(r"\w+[^\w\s]*|[^\w\s]+|\s+")


def wrap_fragment(fragment: str, width: int) -> List[str]:
    """Greedily fill lines of at most *width* characters without splitting tokens.

    A single token longer than *width* gets a line of its own.
    """
    if len(fragment) <= width:
        return [fragment]
    lines: List[str] = []
    current = ""
    for token in _TOKEN_RE.findall(fragment):
        if current.strip() and not token.isspace() and len(current) + len(token) > width:
            lines.append(current.strip())
            current = token
        else:
            current += token
    if current.strip():
        lines.append(current.strip())
    return lines


def _longest_token(fragment: str) -> int:
    return max((len(t) for t in _TOKEN_RE.findall(fragment) if not t.isspace()), default=0)


class ReportFormatter:
    """Renders the located source, the block's result and its captures."""

    def __init__(self, config: ReflectionConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def pretty(self, value: Any) -> str:
        """``pformat`` *value*, or describe why it cannot be printed."""
        try:
            return pformat(value, width=self.config.pprint_width)
        except Exception as exc:
            return f"<unprintable {type(value).__name__}: {exc!r}>"

    @staticmethod
    def _hang(text: str, indent: int) -> str:
        return text.replace("\n", "\n" + " " * indent)

    def format(self, source: str, result: Any, captures: Sequence[Capture]) -> str:
        arrow = self.config.arrow
        lead = " " * self.config.result_indent + arrow + " "
        lines = [
            source.rstrip(),
            lead + self._hang(self.pretty(result), len(lead)),
        ]
        if not captures:
            return "\n".join(lines)

        width = min(
            max(len(capture.fragment) for capture in captures),
            self.config.max_fragment_width,
        )
        # an unbreakable token wider than the cap widens the whole column
        width = max(width, max(_longest_token(c.fragment) for c in captures))
        for capture in captures:
            *heads, last = wrap_fragment(capture.fragment, width) or [capture.fragment]
            lines.extend(head.rjust(width) for head in heads)
            value = self._hang(self.pretty(capture.value), width + len(arrow) + 1)
            lines.append(f"{last.rjust(width)} {arrow} {value}")
        return "\n".join(lines)
