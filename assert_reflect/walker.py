#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
assert_reflect/walker.py
========================

Source reconstruction for Python syntax trees.

The walker turns an ``ast`` tree back into Python source text, one node
kind at a time, and tells a collector about every *capturable* fragment it
finishes (variable references, calls, subscripts, operators, f-strings).
The collector re-evaluates those fragments; the walker itself only writes
text.

Architecture
------------
* **ReflectionBuffer**: a ``StringIO`` emitter with an indentation level,
  so statement blocks come out as valid indented Python.
* **Dispatch**: ``visit`` looks up ``visit_<Kind>`` by the node's class
  name.  There is no silent fallback: a kind without a handler raises
  :class:`~assert_reflect.errors.UnsupportedConstruct`.
* **Precedence**: Python trees do not keep parentheses, so every node is
  assigned the precedence its position requires, and a node that binds
  looser than that is wrapped in ``( )``.  Re-parsing the output gives the
  same tree.
* **Scopes**: names bound inside the walked tree (comprehension and loop
  targets, ``except ... as`` names, match captures, nested
  ``lambda``/``def``/``class`` bindings) are kept on a stack.  A
  fragment that reads one of them cannot be re-evaluated on its own; the
  collector is told which names are off limits.

Per-walk state (string-literal mode, indentation, precedences, scopes) is
reset at the start of each top-level reconstruction.
"""

from __future__ import annotations

import ast
import math
from contextlib import contextmanager, nullcontext
from enum import IntEnum, auto
from io import StringIO
from typing import (
    AbstractSet,
    Any,
    Callable,
    ContextManager,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Set,
    Tuple,
)

from .errors import SourceLocation, UnsupportedConstruct
from .sexp import to_sexp_text

__all__ = [
    "Precedence",
    "ReflectionBuffer",
    "FragmentSink",
    "SyntaxWalker",
    "HANDLED_KINDS",
    "reconstruct",
]


# ═══════════════════════════════════════════════════════════════════════════
# OPERATOR TABLES
# ═══════════════════════════════════════════════════════════════════════════

class Precedence(IntEnum):
    """Binding strength of expression positions, loosest first."""

    NAMED_EXPR = auto()  # :=
    TUPLE = auto()       # a, b
    YIELD = auto()       # yield
    TEST = auto()        # if-else, lambda
    OR = auto()
    AND = auto()
    NOT = auto()
    CMP = auto()         # < > == in is ...
    EXPR = auto()
    BOR = EXPR           # |
    BXOR = auto()        # ^
    BAND = auto()        # &
    SHIFT = auto()       # << >>
    ARITH = auto()       # + -
    TERM = auto()        # * @ / % //
    FACTOR = auto()      # unary + - ~
    POWER = auto()       # **
    AWAIT = auto()
    ATOM = auto()

    def next(self) -> "Precedence":
        try:
            return self.__class__(self + 1)
        except ValueError:
            return self


_UNARY_OPS: Dict[str, str] = {
    "Invert": "~",
    "Not": "not",
    "UAdd": "+",
    "USub": "-",
}

_BINARY_OPS: Dict[str, str] = {
    "Add": "+",
    "Sub": "-",
    "Mult": "*",
    "MatMult": "@",
    "Div": "/",
    "Mod": "%",
    "LShift": "<<",
    "RShift": ">>",
    "BitOr": "|",
    "BitXor": "^",
    "BitAnd": "&",
    "FloorDiv": "//",
    "Pow": "**",
}

_BINARY_PRECEDENCE: Dict[str, Precedence] = {
    "+": Precedence.ARITH,
    "-": Precedence.ARITH,
    "*": Precedence.TERM,
    "@": Precedence.TERM,
    "/": Precedence.TERM,
    "%": Precedence.TERM,
    "<<": Precedence.SHIFT,
    ">>": Precedence.SHIFT,
    "|": Precedence.BOR,
    "^": Precedence.BXOR,
    "&": Precedence.BAND,
    "//": Precedence.TERM,
    "**": Precedence.POWER,
}

_RIGHT_ASSOCIATIVE = frozenset({"**"})

_COMPARE_OPS: Dict[str, str] = {
    "Eq": "==",
    "NotEq": "!=",
    "Lt": "<",
    "LtE": "<=",
    "Gt": ">",
    "GtE": ">=",
    "Is": "is",
    "IsNot": "is not",
    "In": "in",
    "NotIn": "not in",
}

_BOOL_OPS: Dict[str, Tuple[str, Precedence]] = {
    "And": ("and", Precedence.AND),
    "Or": ("or", Precedence.OR),
}

_FSTRING_ESCAPES: Dict[str, str] = {
    "\\": "\\\\",
    "{": "{{",
    "}": "}}",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

_BRACE_DISPLAYS = (ast.Dict, ast.Set, ast.DictComp, ast.SetComp)


# ═══════════════════════════════════════════════════════════════════════════
# REFLECTION BUFFER
# ═══════════════════════════════════════════════════════════════════════════

class ReflectionBuffer:
    """Accumulates reconstructed source text with indentation tracking.

    ``mark()`` / ``since()`` let callers slice out exactly the text written
    for one node.
    """

    def __init__(self, indent_str: str = "    ") -> None:
        self._buffer = StringIO()
        self._indent_str = indent_str
        self.level = 0

    def write(self, *texts: str) -> None:
        for text in texts:
            self._buffer.write(text)

    def fill(self, text: str = "") -> None:
        """Start a new line at the current indentation."""
        if self._buffer.tell():
            self._buffer.write("\n")
        self._buffer.write(self._indent_str * self.level)
        self._buffer.write(text)

    def mark(self) -> int:
        return self._buffer.tell()

    def since(self, mark: int) -> str:
        return self._buffer.getvalue()[mark:]

    @contextmanager
    def block(self) -> Iterator["ReflectionBuffer"]:
        """Write ``:`` and indent everything emitted inside."""
        self._buffer.write(":")
        self.level += 1
        try:
            yield self
        finally:
            self.level -= 1

    def getvalue(self) -> str:
        return self._buffer.getvalue()


class FragmentSink(Protocol):
    """What the walker needs from a capture collector."""

    def bind_parameters(self, names: Sequence[str]) -> None: ...

    def capture(
        self, node: ast.expr, fragment: str, unavailable: AbstractSet[str]
    ) -> None: ...

    def execute(self, statement: ast.stmt, fragment: str) -> None: ...


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def _bound_names(nodes: Iterable[Optional[ast.AST]]) -> FrozenSet[str]:
    """Every name a subtree binds: store targets, parameters, defs, imports."""
    names: Set[str] = set()
    for root in nodes:
        if root is None:
            continue
        for node in ast.walk(root):
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store):
                names.add(node.id)
            elif isinstance(node, ast.arg):
                names.add(node.arg)
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
                names.add(node.name)
            elif isinstance(node, ast.alias):
                names.add((node.asname or node.name).split(".")[0])
            elif isinstance(node, ast.ExceptHandler) and node.name:
                names.add(node.name)
            elif isinstance(node, (ast.MatchAs, ast.MatchStar)) and node.name:
                names.add(node.name)
            elif isinstance(node, ast.MatchMapping) and node.rest:
                names.add(node.rest)
    return frozenset(names)


def _leftmost(node: ast.AST) -> ast.AST:
    """The node whose text starts the reconstruction of *node*."""
    while True:
        if isinstance(node, (ast.BinOp, ast.Compare)):
            node = node.left
        elif isinstance(node, (ast.Attribute, ast.Subscript)):
            node = node.value
        elif isinstance(node, ast.Call):
            node = node.func
        elif isinstance(node, ast.BoolOp):
            node = node.values[0]
        elif isinstance(node, ast.IfExp):
            node = node.body
        else:
            return node


def _escape_segment(text: str, quote: str) -> str:
    """Escape one literal segment of an f-string delimited by *quote*."""
    out: List[str] = []
    for ch in text:
        if ch in _FSTRING_ESCAPES:
            out.append(_FSTRING_ESCAPES[ch])
        elif ch == quote:
            out.append("\\" + ch)
        elif not ch.isprintable():
            out.append(repr(ch)[1:-1])
        else:
            out.append(ch)
    return "".join(out)


def _single_quoted(literal: str) -> str:
    """Re-quote a ``repr``-produced string literal with single quotes."""
    if literal.startswith('"'):
        return "'" + literal[1:-1].replace("'", "\\'") + "'"
    if literal[:2] in ('b"', 'B"'):
        return literal[0] + "'" + literal[2:-1].replace("'", "\\'") + "'"
    return literal


# ═══════════════════════════════════════════════════════════════════════════
# SYNTAX WALKER
# ═══════════════════════════════════════════════════════════════════════════

class SyntaxWalker:
    """Reconstructs Python source from a syntax tree, reporting fragments.

    Usage::

        walker = SyntaxWalker(collector)
        text = walker.reconstruct(tree)            # any node
        body = walker.reconstruct_block(lambda_node)  # block body only
    """

    def __init__(
        self,
        collector: Optional[FragmentSink] = None,
        filename: str = "<reflection>",
        first_line: int = 1,
    ) -> None:
        self._collector = collector
        self._filename = filename
        self._first_line = first_line
        self.parameter_text = ""
        self.parameters: Tuple[str, ...] = ()
        self._reset()

    def _reset(self) -> None:
        self._buffer = ReflectionBuffer()
        self._in_string = False
        self._fstring_depth = 0
        self._except_star = False
        self._precedences: Dict[ast.AST, Precedence] = {}
        self._uncaptured: Set[ast.AST] = set()
        self._scopes: List[FrozenSet[str]] = []

    # ─────────────────────────────────────────────────────────────────────
    # Entry points
    # ─────────────────────────────────────────────────────────────────────

    def reconstruct(self, node: ast.AST) -> str:
        """Reconstruct the source of *node* (any kind)."""
        self._reset()
        self.visit(node)
        return self._buffer.getvalue()

    def reconstruct_block(
        self, node: ast.Lambda | ast.FunctionDef | ast.AsyncFunctionDef
    ) -> str:
        """Reconstruct the body of an assertion block.

        The block's parameter list is reconstructed separately into
        ``parameter_text`` and its names are handed to the collector, which
        binds them from the arguments the block was called with.
        """
        self._reset()
        self.parameter_text = SyntaxWalker().reconstruct(node.args)
        self.parameters = tuple(
            a.arg
            for a in (
                node.args.posonlyargs
                + node.args.args
                + node.args.kwonlyargs
                + [node.args.vararg, node.args.kwarg]
            )
            if a is not None
        )
        if self._collector is not None and self.parameters:
            self._collector.bind_parameters(self.parameters)

        if isinstance(node, ast.Lambda):
            self.visit(node.body)
        else:
            if getattr(node, "type_params", None):
                self._unsupported(node, "generic type parameters")
            for statement in node.body:
                self.visit(statement)
        return self._buffer.getvalue()

    def visit(self, node: ast.AST) -> None:
        """Dispatch to the ``visit_<Kind>`` handler for *node*."""
        handler: Optional[Callable[[ast.AST], None]] = getattr(
            self, "visit_" + type(node).__name__, None
        )
        if handler is None:
            self._unsupported(node)
        handler(node)

    def _unsupported(self, node: ast.AST, what: str = "") -> None:
        location = None
        if hasattr(node, "lineno"):
            location = SourceLocation(
                self._filename,
                self._first_line + node.lineno - 1,
                getattr(node, "col_offset", 0),
            )
        kind = type(node).__name__
        if what:
            kind = f"{kind} ({what})"
        raise UnsupportedConstruct(kind, to_sexp_text(node, limit=200), location)

    # ─────────────────────────────────────────────────────────────────────
    # Emission helpers
    # ─────────────────────────────────────────────────────────────────────

    def _write(self, *texts: str) -> None:
        self._buffer.write(*texts)

    def _set_precedence(self, precedence: Precedence, *nodes: ast.AST) -> None:
        for node in nodes:
            self._precedences[node] = precedence

    def _get_precedence(self, node: ast.AST) -> Precedence:
        return self._precedences.get(node, Precedence.TEST)

    @contextmanager
    def _delimit(self, start: str, end: str) -> Iterator[None]:
        self._write(start)
        yield
        self._write(end)

    def _delimit_if(self, start: str, end: str, condition: bool) -> ContextManager[None]:
        if condition:
            return self._delimit(start, end)
        return nullcontext()

    def _require_parens(self, precedence: Precedence, node: ast.AST) -> ContextManager[None]:
        return self._delimit_if("(", ")", self._get_precedence(node) > precedence)

    def _interleave(
        self, items: Iterable[ast.AST], separator: str = ", "
    ) -> None:
        for index, item in enumerate(items):
            if index:
                self._write(separator)
            self.visit(item)

    def _body(self, statements: Sequence[ast.stmt]) -> None:
        with self._buffer.block():
            for statement in statements:
                self.visit(statement)

    @contextmanager
    def _scope(self, names: AbstractSet[str]) -> Iterator[None]:
        self._scopes.append(frozenset(names))
        try:
            yield
        finally:
            self._scopes.pop()

    def _unavailable_names(self) -> FrozenSet[str]:
        if not self._scopes:
            return frozenset()
        return frozenset().union(*self._scopes)

    @contextmanager
    def _capturing(self, node: ast.expr) -> Iterator[None]:
        """Report the text written inside the block as a fragment of *node*."""
        start = self._buffer.mark()
        yield
        if self._collector is None or node in self._uncaptured:
            return
        fragment = self._buffer.since(start).strip()
        if fragment:
            self._collector.capture(node, fragment, self._unavailable_names())

    def _capturing_if(self, node: ast.expr, condition: bool) -> ContextManager[None]:
        if condition:
            return self._capturing(node)
        return nullcontext()

    def _after_assignment(self, node: ast.stmt, start: int) -> None:
        if self._collector is None or self._buffer.level or self._scopes:
            return
        self._collector.execute(node, self._buffer.since(start).strip())

    # ─────────────────────────────────────────────────────────────────────
    # Modules
    # ─────────────────────────────────────────────────────────────────────

    def visit_Module(self, node: ast.Module) -> None:
        for statement in node.body:
            self.visit(statement)

    def visit_Interactive(self, node: ast.Interactive) -> None:
        for statement in node.body:
            self.visit(statement)

    def visit_Expression(self, node: ast.Expression) -> None:
        self.visit(node.body)

    # ─────────────────────────────────────────────────────────────────────
    # Simple statements
    # ─────────────────────────────────────────────────────────────────────

    def visit_Expr(self, node: ast.Expr) -> None:
        self._buffer.fill()
        self._set_precedence(Precedence.YIELD, node.value)
        self.visit(node.value)

    def visit_Assign(self, node: ast.Assign) -> None:
        self._buffer.fill()
        start = self._buffer.mark()
        for target in node.targets:
            self._set_precedence(Precedence.TUPLE, target)
            self.visit(target)
            self._write(" = ")
        self._set_precedence(Precedence.YIELD, node.value)
        self.visit(node.value)
        self._after_assignment(node, start)

    def visit_AugAssign(self, node: ast.AugAssign) -> None:
        self._buffer.fill()
        start = self._buffer.mark()
        self.visit(node.target)
        self._write(f" {_BINARY_OPS[type(node.op).__name__]}= ")
        self._set_precedence(Precedence.YIELD, node.value)
        self.visit(node.value)
        self._after_assignment(node, start)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        self._buffer.fill()
        start = self._buffer.mark()
        with self._delimit_if("(", ")", not node.simple and isinstance(node.target, ast.Name)):
            self.visit(node.target)
        self._write(": ")
        self.visit(node.annotation)
        if node.value is not None:
            self._write(" = ")
            self._set_precedence(Precedence.YIELD, node.value)
            self.visit(node.value)
            self._after_assignment(node, start)

    def visit_Return(self, node: ast.Return) -> None:
        self._buffer.fill("return")
        if node.value is not None:
            self._write(" ")
            self.visit(node.value)

    def visit_Delete(self, node: ast.Delete) -> None:
        self._buffer.fill("del ")
        self._interleave(node.targets)

    def visit_Pass(self, node: ast.Pass) -> None:
        self._buffer.fill("pass")

    def visit_Break(self, node: ast.Break) -> None:
        self._buffer.fill("break")

    def visit_Continue(self, node: ast.Continue) -> None:
        self._buffer.fill("continue")

    def visit_Assert(self, node: ast.Assert) -> None:
        self._buffer.fill("assert ")
        self.visit(node.test)
        if node.msg is not None:
            self._write(", ")
            self.visit(node.msg)

    def visit_Raise(self, node: ast.Raise) -> None:
        self._buffer.fill("raise")
        if node.exc is not None:
            self._write(" ")
            self.visit(node.exc)
        if node.cause is not None:
            self._write(" from ")
            self.visit(node.cause)

    def visit_Global(self, node: ast.Global) -> None:
        self._buffer.fill("global " + ", ".join(node.names))

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        self._buffer.fill("nonlocal " + ", ".join(node.names))

    def visit_Import(self, node: ast.Import) -> None:
        self._buffer.fill("import ")
        self._interleave(node.names)

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        self._buffer.fill("from ")
        self._write("." * (node.level or 0))
        if node.module:
            self._write(node.module)
        self._write(" import ")
        self._interleave(node.names)

    def visit_alias(self, node: ast.alias) -> None:
        self._write(node.name)
        if node.asname:
            self._write(" as ", node.asname)

    # ─────────────────────────────────────────────────────────────────────
    # Compound statements (reconstructed, never captured)
    # ─────────────────────────────────────────────────────────────────────

    def visit_If(self, node: ast.If) -> None:
        self._buffer.fill("if ")
        self.visit(node.test)
        self._body(node.body)
        orelse = node.orelse
        while len(orelse) == 1 and isinstance(orelse[0], ast.If):
            branch = orelse[0]
            self._buffer.fill("elif ")
            self.visit(branch.test)
            self._body(branch.body)
            orelse = branch.orelse
        if orelse:
            self._buffer.fill("else")
            self._body(orelse)

    def _loop(self, keyword: str, node: ast.For | ast.AsyncFor) -> None:
        self._buffer.fill(keyword + " ")
        self._set_precedence(Precedence.TUPLE, node.target)
        self.visit(node.target)
        self._write(" in ")
        self.visit(node.iter)
        with self._scope(_bound_names([node.target])):
            self._body(node.body)
            if node.orelse:
                self._buffer.fill("else")
                self._body(node.orelse)

    def visit_For(self, node: ast.For) -> None:
        self._loop("for", node)

    def visit_AsyncFor(self, node: ast.AsyncFor) -> None:
        self._loop("async for", node)

    def visit_While(self, node: ast.While) -> None:
        self._buffer.fill("while ")
        self.visit(node.test)
        self._body(node.body)
        if node.orelse:
            self._buffer.fill("else")
            self._body(node.orelse)

    def visit_With(self, node: ast.With) -> None:
        self._buffer.fill("with ")
        self._interleave(node.items)
        self._body(node.body)

    def visit_AsyncWith(self, node: ast.AsyncWith) -> None:
        self._buffer.fill("async with ")
        self._interleave(node.items)
        self._body(node.body)

    def visit_withitem(self, node: ast.withitem) -> None:
        self.visit(node.context_expr)
        if node.optional_vars is not None:
            self._write(" as ")
            self.visit(node.optional_vars)

    def _try(self, node: ast.AST, star: bool) -> None:
        self._buffer.fill("try")
        self._body(node.body)
        was_star = self._except_star
        self._except_star = star
        try:
            for handler in node.handlers:
                self.visit(handler)
        finally:
            self._except_star = was_star
        if node.orelse:
            self._buffer.fill("else")
            self._body(node.orelse)
        if node.finalbody:
            self._buffer.fill("finally")
            self._body(node.finalbody)

    def visit_Try(self, node: ast.Try) -> None:
        self._try(node, star=False)

    def visit_TryStar(self, node: ast.AST) -> None:
        self._try(node, star=True)

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        self._buffer.fill("except*" if self._except_star else "except")
        if node.type is not None:
            self._write(" ")
            self.visit(node.type)
        if node.name:
            self._write(" as ", node.name)
        with self._scope({node.name} if node.name else set()):
            self._body(node.body)

    def _decorators(self, node: ast.FunctionDef | ast.AsyncFunctionDef | ast.ClassDef) -> None:
        for decorator in node.decorator_list:
            self._buffer.fill("@")
            self.visit(decorator)

    def _function(self, keyword: str, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        if getattr(node, "type_params", None):
            self._unsupported(node, "generic type parameters")
        self._decorators(node)
        self._buffer.fill(f"{keyword} {node.name}")
        with self._delimit("(", ")"):
            self.visit(node.args)
        if node.returns is not None:
            self._write(" -> ")
            self.visit(node.returns)
        with self._scope(_bound_names([node.args, *node.body])):
            self._body(node.body)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._function("def", node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._function("async def", node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        if getattr(node, "type_params", None):
            self._unsupported(node, "generic type parameters")
        self._decorators(node)
        self._buffer.fill("class " + node.name)
        if node.bases or node.keywords:
            with self._delimit("(", ")"):
                self._interleave([*node.bases, *node.keywords])
        with self._scope(_bound_names(node.body)):
            self._body(node.body)

    # ── match statement ───────────────────────────────────────────────────

    def visit_Match(self, node: ast.Match) -> None:
        self._buffer.fill("match ")
        self.visit(node.subject)
        with self._buffer.block():
            for case in node.cases:
                self.visit(case)

    def visit_match_case(self, node: ast.match_case) -> None:
        self._buffer.fill("case ")
        self.visit(node.pattern)
        with self._scope(_bound_names([node.pattern])):
            if node.guard is not None:
                self._write(" if ")
                self.visit(node.guard)
            self._body(node.body)

    def visit_MatchValue(self, node: ast.MatchValue) -> None:
        self.visit(node.value)

    def visit_MatchSingleton(self, node: ast.MatchSingleton) -> None:
        self._write(repr(node.value))

    def visit_MatchSequence(self, node: ast.MatchSequence) -> None:
        with self._delimit("[", "]"):
            self._interleave(node.patterns)

    def visit_MatchMapping(self, node: ast.MatchMapping) -> None:
        with self._delimit("{", "}"):
            for index, (key, pattern) in enumerate(zip(node.keys, node.patterns)):
                if index:
                    self._write(", ")
                self.visit(key)
                self._write(": ")
                self.visit(pattern)
            if node.rest:
                if node.keys:
                    self._write(", ")
                self._write("**", node.rest)

    def visit_MatchClass(self, node: ast.MatchClass) -> None:
        self._set_precedence(Precedence.ATOM, node.cls)
        self.visit(node.cls)
        with self._delimit("(", ")"):
            self._interleave(node.patterns)
            for index, (attr, pattern) in enumerate(zip(node.kwd_attrs, node.kwd_patterns)):
                if index or node.patterns:
                    self._write(", ")
                self._write(attr, "=")
                self.visit(pattern)

    def visit_MatchStar(self, node: ast.MatchStar) -> None:
        self._write("*", node.name or "_")

    def visit_MatchAs(self, node: ast.MatchAs) -> None:
        if node.pattern is None:
            self._write(node.name or "_")
            return
        with self._delimit("(", ")"):
            self.visit(node.pattern)
            self._write(" as ", node.name or "_")

    def visit_MatchOr(self, node: ast.MatchOr) -> None:
        with self._delimit("(", ")"):
            self._interleave(node.patterns, " | ")

    # ─────────────────────────────────────────────────────────────────────
    # Parameters
    # ─────────────────────────────────────────────────────────────────────

    def visit_arguments(self, node: ast.arguments) -> None:
        first = True

        def separator() -> None:
            nonlocal first
            if not first:
                self._write(", ")
            first = False

        positional = node.posonlyargs + node.args
        defaults: List[Optional[ast.expr]] = [None] * (
            len(positional) - len(node.defaults)
        ) + list(node.defaults)
        for index, (arg, default) in enumerate(zip(positional, defaults)):
            separator()
            self._parameter(arg, default)
            if index + 1 == len(node.posonlyargs):
                self._write(", /")

        if node.vararg is not None or node.kwonlyargs:
            separator()
            self._write("*")
            if node.vararg is not None:
                self.visit(node.vararg)
        for arg, default in zip(node.kwonlyargs, node.kw_defaults):
            separator()
            self._parameter(arg, default)
        if node.kwarg is not None:
            separator()
            self._write("**")
            self.visit(node.kwarg)

    def _parameter(self, arg: ast.arg, default: Optional[ast.expr]) -> None:
        self.visit(arg)
        if default is not None:
            self._write(" = " if arg.annotation is not None else "=")
            self.visit(default)

    def visit_arg(self, node: ast.arg) -> None:
        self._write(node.arg)
        if node.annotation is not None:
            self._write(": ")
            self.visit(node.annotation)

    def visit_keyword(self, node: ast.keyword) -> None:
        if node.arg is None:
            self._write("**")
            self._set_precedence(Precedence.EXPR, node.value)
        else:
            self._write(node.arg, "=")
        self.visit(node.value)

    # ─────────────────────────────────────────────────────────────────────
    # Expressions
    # ─────────────────────────────────────────────────────────────────────

    def visit_Name(self, node: ast.Name) -> None:
        with self._capturing_if(node, isinstance(node.ctx, ast.Load)):
            self._write(node.id)

    def visit_Constant(self, node: ast.Constant) -> None:
        value = node.value
        if self._in_string and isinstance(value, str):
            self._write(_escape_segment(value, self._quote()))
        elif value is Ellipsis:
            self._write("...")
        elif isinstance(value, float) and math.isinf(value):
            self._write("1e309")
        elif isinstance(value, complex) and math.isinf(value.imag):
            self._write("1e309j")
        elif isinstance(value, (str, bytes)):
            literal = repr(value)
            if self._fstring_depth:
                literal = _single_quoted(literal)
            self._write(literal)
        else:
            self._write(repr(value))

    def _quote(self) -> str:
        return "'" if self._fstring_depth else '"'

    def visit_JoinedStr(self, node: ast.JoinedStr) -> None:
        interpolated = any(isinstance(v, ast.FormattedValue) for v in node.values)
        with self._capturing_if(node, interpolated):
            quote = self._quote()
            self._write("f", quote)
            self._string_segments(node.values)
            self._write(quote)

    def _string_segments(self, values: Sequence[ast.expr]) -> None:
        was_in_string = self._in_string
        self._in_string = True
        try:
            for value in values:
                self.visit(value)
        finally:
            self._in_string = was_in_string

    def visit_FormattedValue(self, node: ast.FormattedValue) -> None:
        was_in_string = self._in_string
        self._in_string = False
        self._fstring_depth += 1
        try:
            pad = " " if isinstance(_leftmost(node.value), _BRACE_DISPLAYS) else ""
            self._write("{", pad)
            self._set_precedence(Precedence.TEST.next(), node.value)
            self.visit(node.value)
            self._write(pad)
            if node.conversion != -1:
                self._write("!", chr(node.conversion))
            if node.format_spec is not None:
                self._write(":")
                if isinstance(node.format_spec, ast.JoinedStr):
                    self._string_segments(node.format_spec.values)
                else:
                    self.visit(node.format_spec)
            self._write("}")
        finally:
            self._fstring_depth -= 1
            self._in_string = was_in_string

    def visit_Attribute(self, node: ast.Attribute) -> None:
        with self._capturing_if(node, isinstance(node.ctx, ast.Load)):
            value = node.value
            self._set_precedence(Precedence.ATOM, value)
            bare_int = isinstance(value, ast.Constant) and type(value.value) is int
            with self._delimit_if("(", ")", bare_int):
                self.visit(value)
            self._write(".", node.attr)

    def visit_Subscript(self, node: ast.Subscript) -> None:
        with self._capturing_if(node, isinstance(node.ctx, ast.Load)):
            self._set_precedence(Precedence.ATOM, node.value)
            self.visit(node.value)
            with self._delimit("[", "]"):
                index = node.slice
                if isinstance(index, ast.Tuple) and index.elts:
                    self._interleave(index.elts)
                    if len(index.elts) == 1:
                        self._write(",")
                else:
                    self.visit(index)

    def visit_Slice(self, node: ast.Slice) -> None:
        if node.lower is not None:
            self.visit(node.lower)
        self._write(":")
        if node.upper is not None:
            self.visit(node.upper)
        if node.step is not None:
            self._write(":")
            self.visit(node.step)

    def visit_Starred(self, node: ast.Starred) -> None:
        self._write("*")
        self._set_precedence(Precedence.EXPR, node.value)
        self.visit(node.value)

    def visit_Call(self, node: ast.Call) -> None:
        with self._capturing(node):
            self._set_precedence(Precedence.ATOM, node.func)
            self._uncaptured.add(node.func)
            self.visit(node.func)
            with self._delimit("(", ")"):
                sole = node.args[0] if len(node.args) == 1 and not node.keywords else None
                if isinstance(sole, ast.GeneratorExp):
                    # f(x for x in y): the call's parentheses delimit the generator
                    self._comprehension(sole, "", "", [sole.elt])
                else:
                    self._interleave([*node.args, *node.keywords])

    def visit_BinOp(self, node: ast.BinOp) -> None:
        operator = _BINARY_OPS[type(node.op).__name__]
        precedence = _BINARY_PRECEDENCE[operator]
        with self._require_parens(precedence, node), self._capturing(node):
            if operator in _RIGHT_ASSOCIATIVE:
                left, right = precedence.next(), precedence
            else:
                left, right = precedence, precedence.next()
            self._set_precedence(left, node.left)
            self.visit(node.left)
            self._write(f" {operator} ")
            self._set_precedence(right, node.right)
            self.visit(node.right)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> None:
        operator = _UNARY_OPS[type(node.op).__name__]
        precedence = Precedence.NOT if operator == "not" else Precedence.FACTOR
        with self._require_parens(precedence, node), self._capturing(node):
            self._write(operator)
            if precedence is not Precedence.FACTOR:
                self._write(" ")
            self._set_precedence(precedence, node.operand)
            self.visit(node.operand)

    def visit_BoolOp(self, node: ast.BoolOp) -> None:
        operator, precedence = _BOOL_OPS[type(node.op).__name__]
        with self._require_parens(precedence, node), self._capturing(node):
            for index, value in enumerate(node.values):
                if index:
                    self._write(f" {operator} ")
                self._set_precedence(precedence.next(), value)
                self.visit(value)

    def visit_Compare(self, node: ast.Compare) -> None:
        with self._require_parens(Precedence.CMP, node), self._capturing(node):
            self._set_precedence(Precedence.CMP.next(), node.left, *node.comparators)
            self.visit(node.left)
            for op, comparator in zip(node.ops, node.comparators):
                self._write(f" {_COMPARE_OPS[type(op).__name__]} ")
                self.visit(comparator)

    def visit_IfExp(self, node: ast.IfExp) -> None:
        with self._require_parens(Precedence.TEST, node):
            self._set_precedence(Precedence.TEST.next(), node.body, node.test)
            self.visit(node.body)
            self._write(" if ")
            self.visit(node.test)
            self._write(" else ")
            self._set_precedence(Precedence.TEST, node.orelse)
            self.visit(node.orelse)

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        with self._require_parens(Precedence.NAMED_EXPR, node):
            self._set_precedence(Precedence.ATOM, node.target)
            self.visit(node.target)
            self._write(" := ")
            self.visit(node.value)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        with self._require_parens(Precedence.TEST, node):
            self._write("lambda")
            args = node.args
            if args.posonlyargs or args.args or args.vararg or args.kwonlyargs or args.kwarg:
                self._write(" ")
                self.visit(args)
            self._write(": ")
            self._set_precedence(Precedence.TEST, node.body)
            with self._scope(_bound_names([args])):
                self.visit(node.body)

    def visit_Await(self, node: ast.Await) -> None:
        with self._require_parens(Precedence.AWAIT, node):
            self._write("await ")
            self._set_precedence(Precedence.ATOM, node.value)
            self.visit(node.value)

    def visit_Yield(self, node: ast.Yield) -> None:
        with self._require_parens(Precedence.YIELD, node):
            self._write("yield")
            if node.value is not None:
                self._write(" ")
                self._set_precedence(Precedence.YIELD, node.value)
                self.visit(node.value)

    def visit_YieldFrom(self, node: ast.YieldFrom) -> None:
        with self._require_parens(Precedence.YIELD, node):
            self._write("yield from ")
            self._set_precedence(Precedence.YIELD, node.value)
            self.visit(node.value)

    # ── displays ─────────────────────────────────────────────────────────

    def visit_Tuple(self, node: ast.Tuple) -> None:
        with self._delimit("(", ")"):
            self._interleave(node.elts)
            if len(node.elts) == 1:
                self._write(",")

    def visit_List(self, node: ast.List) -> None:
        with self._delimit("[", "]"):
            self._interleave(node.elts)

    def visit_Set(self, node: ast.Set) -> None:
        if not node.elts:
            self._write("{*()}")
            return
        with self._delimit("{", "}"):
            self._interleave(node.elts)

    def visit_Dict(self, node: ast.Dict) -> None:
        with self._delimit("{", "}"):
            for index, (key, value) in enumerate(zip(node.keys, node.values)):
                if index:
                    self._write(", ")
                if key is None:
                    self._write("**")
                    self._set_precedence(Precedence.EXPR, value)
                else:
                    self.visit(key)
                    self._write(": ")
                self.visit(value)

    # ── comprehensions ───────────────────────────────────────────────────

    def _comprehension(
        self,
        node: ast.ListComp | ast.SetComp | ast.DictComp | ast.GeneratorExp,
        start: str,
        end: str,
        elements: Sequence[ast.expr],
    ) -> None:
        targets = _bound_names([g.target for g in node.generators])
        with self._delimit(start, end):
            with self._scope(targets):
                for index, element in enumerate(elements):
                    if index:
                        self._write(": ")
                    self.visit(element)
                for generator in node.generators:
                    self.visit(generator)

    def visit_ListComp(self, node: ast.ListComp) -> None:
        with self._capturing(node):
            self._comprehension(node, "[", "]", [node.elt])

    def visit_SetComp(self, node: ast.SetComp) -> None:
        with self._capturing(node):
            self._comprehension(node, "{", "}", [node.elt])

    def visit_DictComp(self, node: ast.DictComp) -> None:
        with self._capturing(node):
            self._comprehension(node, "{", "}", [node.key, node.value])

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> None:
        self._comprehension(node, "(", ")", [node.elt])

    def visit_comprehension(self, node: ast.comprehension) -> None:
        self._write(" async for " if node.is_async else " for ")
        self._set_precedence(Precedence.TUPLE, node.target)
        self.visit(node.target)
        self._write(" in ")
        self._set_precedence(Precedence.TEST.next(), node.iter, *node.ifs)
        self.visit(node.iter)
        for condition in node.ifs:
            self._write(" if ")
            self.visit(condition)


#: Node kinds the walker can reconstruct.
HANDLED_KINDS: FrozenSet[str] = frozenset(
    name[len("visit_"):]
    for name in dir(SyntaxWalker)
    if name.startswith("visit_")
)


def reconstruct(node: ast.AST) -> str:
    """Reconstruct the source text of *node* without capturing anything."""
    return SyntaxWalker().reconstruct(node)
