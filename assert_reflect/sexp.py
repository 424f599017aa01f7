"""assert_reflect/sexp.py – S-expression dumps of Python syntax trees.

Renders an ``ast`` node the way Ripper prints its trees, e.g.::

    >>> to_sexp_text(ast.parse("x + 1", mode="eval").body)
    '(BinOp (Name x) Add (Constant 1))'

The dumps only feed diagnostics: :class:`~assert_reflect.errors.UnsupportedConstruct`
messages and DEBUG logging of the tree a reflection pass is about to walk.
"""

from __future__ import annotations

import ast
from typing import Any, List

# ---------------------------------------------------------------------------
# sexpdata import
# ---------------------------------------------------------------------------
try:
    import sexpdata
    from sexpdata import Symbol
except ImportError:  # pragma: no cover – allow static analysis w/o dep
    raise ImportError(
        "The 'sexpdata' package is required for tree dumps. "
        "Install it with:  pip install sexpdata"
    )

__all__ = ["to_sexp", "to_sexp_text"]

#: Fields that only hold bookkeeping, never source structure.
_SKIPPED_FIELDS = frozenset({"ctx", "type_comment", "kind", "type_params"})


def to_sexp(node: Any) -> Any:
    """Convert *node* into nested lists of :class:`sexpdata.Symbol` and atoms.

    * ``ast.AST`` → ``[Symbol(kind), child, ...]``
    * operator singletons (``ast.Add()``) → ``Symbol("Add")``
    * lists → lists
    * ``None`` → ``Symbol("nil")``
    * ``Name``/``arg``/``alias`` leaves collapse to their identifier
    """
    if node is None:
        return Symbol("nil")
    if isinstance(node, list):
        return [to_sexp(item) for item in node]
    if isinstance(node, ast.AST):
        kind = type(node).__name__
        if not node._fields:
            return Symbol(kind)
        if isinstance(node, ast.Name):
            return [Symbol(kind), Symbol(node.id)]
        if isinstance(node, ast.arg):
            return [Symbol(kind), Symbol(node.arg)]
        form: List[Any] = [Symbol(kind)]
        for name in node._fields:
            if name in _SKIPPED_FIELDS:
                continue
            form.append(to_sexp(getattr(node, name, None)))
        return form
    if isinstance(node, bool):
        return Symbol(str(node))
    if isinstance(node, (str, int, float)):
        return node
    # bytes, complex, Ellipsis and friends
    return Symbol(repr(node))


def to_sexp_text(node: Any, limit: int = 0) -> str:
    """Dump *node* as S-expression text, truncated to *limit* characters."""
    text = sexpdata.dumps(to_sexp(node))
    if limit and len(text) > limit:
        text = text[: max(limit - 3, 0)] + "..."
    return text
