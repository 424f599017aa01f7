"""
assert_reflect/capture.py
=========================

Re-evaluation of source fragments inside an assertion block's lexical
context.

* ``LexicalContext``   – the namespace a block's code can see: a copy of its
  globals, the contents of its closure cells and (once the walker reaches
  the parameter list) the arguments the block was called with
* ``Capture``          – one ``(fragment, value)`` pair
* ``CaptureCollector`` – receives fragments from the walker, evaluates them
  and keeps the captures in completion order (inner fragments first)

A fragment that needs a name bound only inside the block (a comprehension
target, a nested lambda parameter, a local not yet assigned) is dropped.
A fragment that raises anything else is kept, with a
:class:`~assert_reflect.errors.FragmentEvaluationError` as its value.
"""

from __future__ import annotations

import ast
import inspect
import logging
import re
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Set, Tuple

from .config import DEFAULT_CONFIG, ReflectionConfig
from .errors import FragmentEvaluationError, InsufficientBindings
from .locator import block_code

__all__ = [
    "Capture",
    "LexicalContext",
    "CaptureCollector",
    "free_names",
    "is_literal_echo",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Capture:
    """A fragment of reconstructed source and the value it evaluated to."""

    fragment: str
    value: Any


def free_names(node: ast.AST) -> FrozenSet[str]:
    """Names *node* reads."""
    return frozenset(
        n.id
        for n in ast.walk(node)
        if isinstance(n, ast.Name) and isinstance(n.ctx, ast.Load)
    )


# ===================================================================== #
#  Lexical context                                                       #
# ===================================================================== #

@dataclass
class LexicalContext:
    """The names visible to an assertion block, as a plain namespace.

    ``namespace`` is a copy: evaluating fragments never rebinds anything
    in the block's module.
    """

    namespace: Dict[str, Any]
    filename: str = "<reflection>"
    local_names: FrozenSet[str] = frozenset()
    block: Any = None
    args: Tuple[Any, ...] = ()
    kwargs: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_block(
        cls,
        block: Any,
        args: Sequence[Any] = (),
        kwargs: Optional[Mapping[str, Any]] = None,
    ) -> "LexicalContext":
        code = block_code(block)
        function = getattr(block, "__func__", block)
        namespace: Dict[str, Any] = dict(getattr(function, "__globals__", {}))
        for name, cell in zip(code.co_freevars, getattr(function, "__closure__", None) or ()):
            try:
                namespace[name] = cell.cell_contents
            except ValueError:
                # cell not filled yet
                continue
        return cls(
            namespace=namespace,
            filename=code.co_filename,
            local_names=frozenset(code.co_varnames) | frozenset(code.co_cellvars),
            block=block,
            args=tuple(args),
            kwargs=dict(kwargs or {}),
        )

    def bind(self, names: Sequence[str]) -> FrozenSet[str]:
        """Bind the block's parameters from the call arguments.

        Returns the names that could not be bound.
        """
        if self.block is None:
            return frozenset(names)
        target, args = self.block, self.args
        if getattr(target, "__self__", None) is not None and hasattr(target, "__func__"):
            # bound method: the signature must keep ``self``
            target, args = target.__func__, (target.__self__, *args)
        try:
            bound = inspect.signature(target).bind(*args, **self.kwargs)
        except (TypeError, ValueError) as exc:
            logger.debug("block arguments do not bind: %s", exc)
            return frozenset(names)
        bound.apply_defaults()
        missing: Set[str] = set()
        for name in names:
            if name in bound.arguments:
                self.namespace[name] = bound.arguments[name]
            else:
                missing.add(name)
        return frozenset(missing)


# ===================================================================== #
#  Literal echoes                                                        #
# ===================================================================== #

def _is_regex_compile(node: ast.AST) -> Optional[str]:
    if not isinstance(node, ast.Call) or len(node.args) != 1 or node.keywords:
        return None
    func = node.func
    if not (
        isinstance(func, ast.Attribute)
        and func.attr == "compile"
        and isinstance(func.value, ast.Name)
        and func.value.id == "re"
    ):
        return None
    pattern = node.args[0]
    if isinstance(pattern, ast.Constant) and isinstance(pattern.value, (str, bytes)):
        return pattern.value
    return None


def is_literal_echo(node: ast.AST, value: Any) -> bool:
    """True when *value* says nothing the literal *node* does not already say."""
    if isinstance(node, ast.Constant) and isinstance(node.value, (str, bytes)):
        return value == node.value
    if isinstance(node, ast.JoinedStr):
        if all(isinstance(v, ast.Constant) for v in node.values):
            return value == "".join(v.value for v in node.values)
        return False
    pattern = _is_regex_compile(node)
    if pattern is not None:
        return isinstance(value, re.Pattern) and value.pattern == pattern
    return False


def _name_targets(statement: ast.stmt) -> List[str]:
    """Target names of a plain ``a = b = value`` or ``a: T = value``."""
    if isinstance(statement, ast.Assign):
        targets = statement.targets
    elif isinstance(statement, ast.AnnAssign) and statement.value is not None:
        targets = [statement.target]
    else:
        return []
    if all(isinstance(t, ast.Name) for t in targets):
        return [t.id for t in targets]
    return []


# ===================================================================== #
#  Collector                                                             #
# ===================================================================== #

class CaptureCollector:
    """Evaluates fragments reported by the walker and keeps their values."""

    def __init__(
        self,
        context: LexicalContext,
        config: ReflectionConfig = DEFAULT_CONFIG,
    ) -> None:
        self.context = context
        self.config = config
        self.captures: List[Capture] = []
        self._unbound: Set[str] = set()
        self._values: Dict[ast.AST, Any] = {}

    # ── walker callbacks ─────────────────────────────────────────────────

    def bind_parameters(self, names: Sequence[str]) -> None:
        self._unbound |= self.context.bind(names)

    def capture(
        self,
        node: ast.expr,
        fragment: str,
        unavailable: AbstractSet[str] = frozenset(),
    ) -> None:
        try:
            value = self.evaluate(node, fragment, unavailable)
        except InsufficientBindings as exc:
            logger.debug("dropping fragment %s", exc.message)
            return
        self._values[node] = value
        self.record(node, fragment, value)

    def execute(self, statement: ast.stmt, fragment: str) -> None:
        """Re-run a top-level assignment so later fragments can see its target."""
        if not self.config.reexecute_assignments:
            return
        targets = _name_targets(statement)
        if targets and statement.value in self._values:
            # the right-hand side already ran once as a fragment
            value = self._values[statement.value]
            if isinstance(value, FragmentEvaluationError):
                logger.debug("not binding %r: %r", fragment, value.cause)
                return
            for name in targets:
                self.context.namespace[name] = value
            return
        module = ast.Module(body=[statement], type_ignores=[])
        try:
            exec(compile(module, self.context.filename, "exec"), self.context.namespace)
        except Exception as exc:
            logger.debug("re-running %r failed: %r", fragment, exc)

    # ── evaluation ───────────────────────────────────────────────────────

    def evaluate(
        self,
        node: ast.expr,
        fragment: str,
        unavailable: AbstractSet[str] = frozenset(),
    ) -> Any:
        """Evaluate *node* in the block's namespace.

        Raises :class:`InsufficientBindings` when the fragment needs a
        name that has no value outside the block; any other failure is
        returned as a :class:`FragmentEvaluationError`.
        """
        blocked = free_names(node) & (set(unavailable) | self._unbound)
        if blocked:
            raise InsufficientBindings(fragment, blocked)
        namespace = self.context.namespace
        try:
            code = compile(ast.Expression(body=node), self.context.filename, "eval")
            return eval(code, namespace)
        except NameError as exc:
            name = getattr(exc, "name", None)
            if name in self.context.local_names and name not in namespace:
                raise InsufficientBindings(fragment, [name]) from exc
            return FragmentEvaluationError(fragment, exc)
        except Exception as exc:
            return FragmentEvaluationError(fragment, exc)

    def record(self, node: ast.AST, fragment: str, value: Any) -> None:
        if self.config.suppress_literal_echo and is_literal_echo(node, value):
            return
        self.captures.append(Capture(fragment, value))
