# assert_reflect/errors.py
"""
Reflection Error Types

Error infrastructure for the reflection pipeline (locate → parse → walk →
capture → format).  Every error carries a structured :class:`ErrorCode` so
that a degraded assertion message can still say *why* the reflective
report was not produced.

Error Hierarchy:
────────────────
┌─────────────────────────────────────────────────────────────────────┐
│  ReflectionError (base)            REFL-9000                        │
│  ├── MalformedSource               REFL-1001  locate   fatal        │
│  ├── UnsupportedConstruct          REFL-2001  walk     fatal        │
│  ├── InsufficientBindings          REFL-3001  capture  recovered    │
│  └── FragmentEvaluationError       REFL-3002  capture  surfaced     │
└─────────────────────────────────────────────────────────────────────┘

"Fatal" errors abort the reflection pass; the assertion still fails, with a
plain message.  ``InsufficientBindings`` drops one fragment silently.
``FragmentEvaluationError`` is never raised out of the collector: it is
stored as the captured value so the report shows the failure itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Optional, Sequence


@unique
class ErrorPhase(Enum):
    """Pipeline phase where the error occurred."""

    LOCATE = "locate"
    WALK = "walk"
    CAPTURE = "capture"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ErrorCode:
    """A unique error code such as ``REFL-1001``."""

    prefix: str
    number: int
    phase: ErrorPhase
    fatal: bool = True

    @property
    def code(self) -> str:
        return f"{self.prefix}-{self.number:04d}"

    def __str__(self) -> str:
        return self.code


class ReflectionErrorCodes:
    """Predefined error codes."""

    MALFORMED_SOURCE = ErrorCode("REFL", 1001, ErrorPhase.LOCATE)
    UNSUPPORTED_CONSTRUCT = ErrorCode("REFL", 2001, ErrorPhase.WALK)
    INSUFFICIENT_BINDINGS = ErrorCode("REFL", 3001, ErrorPhase.CAPTURE, fatal=False)
    FRAGMENT_EVALUATION = ErrorCode("REFL", 3002, ErrorPhase.CAPTURE, fatal=False)
    INTERNAL_ERROR = ErrorCode("REFL", 9000, ErrorPhase.INTERNAL)


@dataclass(frozen=True)
class SourceLocation:
    """A position in a Python source file."""

    filename: str = "<unknown>"
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


class ReflectionError(Exception):
    """
    Base exception for all reflection errors.

    Carries an :class:`ErrorCode`, an optional :class:`SourceLocation` and
    the underlying cause, if any.
    """

    default_code: ErrorCode = ReflectionErrorCodes.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        location: Optional[SourceLocation] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.location = location
        self.cause = cause

    @property
    def fatal(self) -> bool:
        return self.code.fatal

    def __str__(self) -> str:
        where = f"{self.location}: " if self.location else ""
        return f"{where}{self.code}: {self.message}"


class MalformedSource(ReflectionError):
    """No window of source lines starting at the call site would parse."""

    default_code = ReflectionErrorCodes.MALFORMED_SOURCE

    def __init__(
        self,
        message: str,
        lines: Sequence[str] = (),
        location: Optional[SourceLocation] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, location=location, cause=cause)
        self.lines = list(lines)


class UnsupportedConstruct(ReflectionError):
    """The walker met a node kind it cannot reconstruct."""

    default_code = ReflectionErrorCodes.UNSUPPORTED_CONSTRUCT

    def __init__(
        self,
        kind: str,
        dump: str = "",
        location: Optional[SourceLocation] = None,
    ) -> None:
        message = f"cannot reflect {kind} nodes"
        if dump:
            message += f": {dump}"
        super().__init__(message, location=location)
        self.kind = kind
        self.dump = dump


class InsufficientBindings(ReflectionError):
    """A fragment needs names that only exist inside an inner scope."""

    default_code = ReflectionErrorCodes.INSUFFICIENT_BINDINGS

    def __init__(self, fragment: str, names: Sequence[str]) -> None:
        super().__init__(
            f"{fragment!r} needs unbound names: {', '.join(sorted(names))}"
        )
        self.fragment = fragment
        self.names = frozenset(names)


class FragmentEvaluationError(ReflectionError):
    """
    Re-evaluating a fragment raised.

    Instances are stored as capture values; their ``repr`` is the repr of
    the original exception, so the report reads like
    ``1 / 0 --> ZeroDivisionError('division by zero')``.
    """

    default_code = ReflectionErrorCodes.FRAGMENT_EVALUATION

    def __init__(self, fragment: str, cause: BaseException) -> None:
        super().__init__(f"{fragment!r} raised {cause!r}", cause=cause)
        self.fragment = fragment

    def __repr__(self) -> str:
        return repr(self.cause)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FragmentEvaluationError):
            return (
                self.fragment == other.fragment
                and type(self.cause) is type(other.cause)
                and self.cause.args == other.cause.args
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.fragment, type(self.cause)))


__all__ = [
    "ErrorPhase",
    "ErrorCode",
    "ReflectionErrorCodes",
    "SourceLocation",
    "ReflectionError",
    "MalformedSource",
    "UnsupportedConstruct",
    "InsufficientBindings",
    "FragmentEvaluationError",
]
