# tests/conftest.py
"""
Shared fixtures and source snippets for the assert_reflect test suite.
"""

import ast
import textwrap

import pytest

from assert_reflect.capture import CaptureCollector, LexicalContext
from assert_reflect.pytest_plugin import asserter  # noqa: F401  (fixture)

# ─── Source snippets ────────────────────────────────────────────────────

DEF_BLOCK_SRC = textwrap.dedent("""\
    def check():
        expected = 4
        return total == expected
""")

MULTILINE_CALL_SRC = textwrap.dedent("""\
    value = compute(
        1,
        2,
    )
""")

CONTINUED_CALL_SRC = textwrap.dedent("""\
    result = check(first,
                   **opts)
""")

COMPOUND_SRC = textwrap.dedent("""\
    if ready:
        go()

    else:
        wait()
    after = 1
""")


# ─── Helpers ────────────────────────────────────────────────────────────

def parse_expr(src: str) -> ast.expr:
    """Parse a single expression and return its node."""
    return ast.parse(src, mode="eval").body


@pytest.fixture
def write_source(tmp_path):
    """Write *text* to a fresh module file and return its path as a string."""
    counter = {"n": 0}

    def _write(text: str) -> str:
        counter["n"] += 1
        path = tmp_path / f"snippet_{counter['n']}.py"
        path.write_text(text, encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def make_collector():
    """Build a CaptureCollector over a hand-made namespace."""

    def _make(namespace=None, local_names=(), config=None, **kwargs):
        context = LexicalContext(
            namespace=dict(namespace or {}),
            local_names=frozenset(local_names),
            **kwargs,
        )
        if config is None:
            return CaptureCollector(context)
        return CaptureCollector(context, config)

    return _make
