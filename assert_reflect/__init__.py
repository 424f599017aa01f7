"""assert_reflect – assertions that explain themselves.

When an assertion block fails, the package finds the block's source,
reconstructs it, re-evaluates every interesting sub-expression in the
block's own namespace and reports the values in an aligned table::

    assert_(lambda: x + 1 == 3)
        --> False
             x --> 1
         x + 1 --> 2
    x + 1 == 3 --> False

Submodules
----------
errors
    ``ReflectionError`` hierarchy with ``REFL-XXXX`` error codes.

config
    ``ReflectionConfig``: column widths, arrow, locator backtracking.

locator
    Finds the smallest parseable window of source around a block.

walker
    ``SyntaxWalker``: reconstructs source from ``ast`` trees and reports
    capturable fragments.

capture
    ``CaptureCollector``: re-evaluates fragments in the block's namespace.

formatter
    ``ReportFormatter``: the aligned report.

assertions
    ``Asserter``, ``assert_``, ``deny``, ``reflect`` and the unittest mixin.

Usage
-----
::

    from assert_reflect import assert_, deny

    assert_(lambda: total(cart) == 30)
    deny(lambda: re.search("ab", z))
"""

from __future__ import annotations

__version__: str = "0.1.0"
__all__: list[str] = [
    "__version__",
    "Asserter",
    "ReflectiveAssertions",
    "ReflectedAssertionError",
    "CLEAR",
    "assert_",
    "deny",
    "denigh",
    "reflect",
    "ReflectionConfig",
    "ReflectionError",
    "MalformedSource",
    "UnsupportedConstruct",
    "InsufficientBindings",
    "FragmentEvaluationError",
]

from .assertions import (
    CLEAR,
    Asserter,
    ReflectedAssertionError,
    ReflectiveAssertions,
    assert_,
    denigh,
    deny,
    reflect,
)
from .config import ReflectionConfig
from .errors import (
    FragmentEvaluationError,
    InsufficientBindings,
    MalformedSource,
    ReflectionError,
    UnsupportedConstruct,
)
