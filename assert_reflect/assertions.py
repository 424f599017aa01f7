"""
assert_reflect/assertions.py
============================

The assertion entry points.

* ``Asserter``              – owns the flunk hook, the config and the queue of
  side-channel diagnostics
* ``assert_`` / ``deny``    – module-level shortcuts using a fresh ``Asserter``
* ``reflect``               – the report for a block, without asserting
* ``ReflectiveAssertions``  – ``unittest.TestCase`` mixin (flunk = ``self.fail``)

Usage::

    from assert_reflect import assert_, deny

    assert_(lambda: total(cart) == 30)
    deny("cart must not be empty", lambda: cart.is_empty())
    assert_(lambda n: n > 0, args=(-1,))

A failing block raises :class:`ReflectedAssertionError` whose message is the
reflection report.  When reflection itself fails, the message falls back to
``<value> is not true.`` and a warning is logged.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .config import DEFAULT_CONFIG, ReflectionConfig
from .errors import ReflectionError
from .locator import caller_location
from .reflector import AssertionReflector

__all__ = [
    "CLEAR",
    "ReflectedAssertionError",
    "Asserter",
    "ReflectiveAssertions",
    "assert_",
    "deny",
    "denigh",
    "reflect",
]

logger = logging.getLogger(__name__)

Flunk = Callable[[str], Any]


class _Clear:
    def __repr__(self) -> str:
        return "CLEAR"


#: Pass to :meth:`Asserter.add_diagnostic` to empty the queue.
CLEAR = _Clear()


class ReflectedAssertionError(AssertionError):
    """A reflective assertion failed; the message is the full report."""


def _raise_assertion(message: str) -> None:
    raise ReflectedAssertionError(message)


def _unique(items: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(items))


class Asserter:
    """Evaluates assertion blocks and reports failures through *flunk*.

    Diagnostics queued with :meth:`add_diagnostic` are consumed by the next
    assertion, pass or fail.
    """

    def __init__(
        self,
        flunk: Optional[Flunk] = None,
        config: Optional[ReflectionConfig] = None,
    ) -> None:
        self.flunk: Flunk = flunk or _raise_assertion
        self.config = config or DEFAULT_CONFIG
        self.reflector = AssertionReflector(self.config)
        self.diagnostics: List[Any] = []

    def add_diagnostic(self, diagnostic: Any) -> None:
        """Queue a message for the next failure report.

        *diagnostic* may be a string, or a zero-argument callable that is
        only called if a report is built.  :data:`CLEAR` empties the queue.
        """
        if diagnostic is CLEAR:
            self.diagnostics.clear()
        else:
            self.diagnostics.append(diagnostic)

    @contextmanager
    def _draining(self) -> Iterator[List[Any]]:
        queued = list(self.diagnostics)
        try:
            yield queued
        finally:
            self.diagnostics.clear()

    # ── assertions ───────────────────────────────────────────────────────

    def assert_(
        self,
        first: Any,
        second: Any = None,
        *,
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
        diagnose: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """Fail unless the block returns a truthy value.

        ``assert_(block)``, ``assert_("diagnostic", block)`` or, without a
        block, ``assert_(value, "message")``.
        """
        return self._check(True, first, second, args, kwargs, diagnose)

    def deny(
        self,
        first: Any,
        second: Any = None,
        *,
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
        diagnose: Optional[Callable[[], Any]] = None,
    ) -> bool:
        """Fail unless the block returns a falsy value."""
        return self._check(False, first, second, args, kwargs, diagnose)

    denigh = deny

    def _check(
        self,
        expected: bool,
        first: Any,
        second: Any,
        args: Sequence[Any],
        kwargs: Optional[Mapping[str, Any]],
        diagnose: Optional[Callable[[], Any]],
    ) -> bool:
        call_site = caller_location(2, skip_modules=(__name__,))
        with self._draining() as queued:
            block, diagnostic = _split_arguments(first, second)
            if block is None:
                got = first
            else:
                got = block(*args, **(kwargs or {}))
            if bool(got) is expected:
                return True

            if block is None:
                reflection = self._plain(got, expected)
            else:
                reflection = self._reflection(block, got, expected, args, kwargs, call_site)
            self.flunk(self._report(queued, diagnostic, reflection, diagnose))
        # a flunk hook that returns has recorded the failure
        return True

    # ── reports ──────────────────────────────────────────────────────────

    def _plain(self, got: Any, expected: bool) -> str:
        return f"{self.reflector.formatter.pretty(got)} is not {'true' if expected else 'false'}."

    def _reflection(
        self,
        block: Callable[..., Any],
        got: Any,
        expected: bool,
        args: Sequence[Any],
        kwargs: Optional[Mapping[str, Any]],
        call_site: Tuple[str, int],
    ) -> str:
        try:
            return self.reflector.reflect(
                block, got, args=args, kwargs=kwargs, call_site=call_site
            )
        except ReflectionError as exc:
            logger.warning("cannot reflect assertion, reporting plainly: %s", exc)
        except Exception:
            logger.warning("reflection engine failed, reporting plainly", exc_info=True)
        return self._plain(got, expected)

    @staticmethod
    def _report(
        queued: Sequence[Any],
        diagnostic: Optional[str],
        reflection: str,
        diagnose: Optional[Callable[[], Any]],
    ) -> str:
        messages = [str(d()) if callable(d) else str(d) for d in queued]
        if diagnostic:
            messages.append(diagnostic)
        parts = _unique([m for m in messages if m])
        parts.append(reflection)
        if diagnose is not None:
            extra = str(diagnose())
            if extra:
                parts.append(extra)
        return "\n".join(parts)


def _split_arguments(first: Any, second: Any) -> Tuple[Optional[Callable[..., Any]], Optional[str]]:
    """Sort ``(block)``, ``(diagnostic, block)`` and ``(value, message)`` apart."""
    if callable(first):
        return first, second if isinstance(second, str) else None
    if isinstance(first, str) and callable(second):
        return second, first
    return None, second if isinstance(second, str) else None


# ===================================================================== #
#  unittest integration                                                  #
# ===================================================================== #

class ReflectiveAssertions:
    """Mixin for ``unittest.TestCase``; list it before ``TestCase``::

        class CartTest(ReflectiveAssertions, unittest.TestCase):
            def test_total(self):
                self.assert_(lambda: self.cart.total() == 30)
    """

    reflection_config: Optional[ReflectionConfig] = None

    @property
    def asserter(self) -> Asserter:
        asserter = self.__dict__.get("_asserter")
        if asserter is None:
            asserter = Asserter(flunk=self.fail, config=self.reflection_config)  # type: ignore[attr-defined]
            self.__dict__["_asserter"] = asserter
        return asserter

    def add_diagnostic(self, diagnostic: Any) -> None:
        self.asserter.add_diagnostic(diagnostic)

    def assert_(self, first: Any, second: Any = None, **options: Any) -> bool:
        return self.asserter.assert_(first, second, **options)

    def deny(self, first: Any, second: Any = None, **options: Any) -> bool:
        return self.asserter.deny(first, second, **options)

    denigh = deny


# ===================================================================== #
#  Module-level shortcuts                                                #
# ===================================================================== #

def assert_(first: Any, second: Any = None, **options: Any) -> bool:
    return Asserter().assert_(first, second, **options)


def deny(first: Any, second: Any = None, **options: Any) -> bool:
    return Asserter().deny(first, second, **options)


denigh = deny


def reflect(
    block: Callable[..., Any],
    *,
    args: Sequence[Any] = (),
    kwargs: Optional[Mapping[str, Any]] = None,
    config: Optional[ReflectionConfig] = None,
) -> str:
    """Call *block* and return its reflection report, pass or fail."""
    call_site = caller_location(1)
    got = block(*args, **(kwargs or {}))
    return AssertionReflector(config or DEFAULT_CONFIG).reflect(
        block, got, args=args, kwargs=kwargs, call_site=call_site
    )
