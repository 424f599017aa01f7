"""assert_reflect/pytest_plugin.py – pytest integration.

Registered through the ``pytest11`` entry point, so installing the package
is enough::

    def test_total(asserter):
        asserter.add_diagnostic("cart built by make_cart()")
        asserter.assert_(lambda: cart.total() == 30)

Failures raise :class:`~assert_reflect.assertions.ReflectedAssertionError`,
which pytest reports like any ``AssertionError``.
"""

from __future__ import annotations

import pytest

from .assertions import Asserter


@pytest.fixture
def asserter() -> Asserter:
    """A fresh :class:`Asserter` per test, so queued diagnostics never leak."""
    return Asserter()
