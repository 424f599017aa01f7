"""assert_reflect/locator.py – finds the source text of an assertion block.

The locator never sees a syntax tree handed to it: it reads the file the
block was compiled from and grows a window of lines, starting at the
block's line, until :func:`ast.parse` accepts it.  Then it picks the
``Lambda`` / ``def`` node that produced the block's code object.
"""

from __future__ import annotations

import ast
import linecache
import logging
import re
import sys
from dataclasses import dataclass
from types import CodeType
from typing import Any, List, Optional, Sequence, Tuple, Union

from .errors import MalformedSource, SourceLocation

__all__ = [
    "SourceSlice",
    "BlockNode",
    "caller_location",
    "block_code",
    "locate",
    "locate_block",
    "find_block_node",
]

logger = logging.getLogger(__name__)

BlockNode = Union[ast.Lambda, ast.FunctionDef, ast.AsyncFunctionDef]

_CONTINUATION_RE = re.compile(r"(else|elif|except|finally)\b")


@dataclass(frozen=True)
class SourceSlice:
    """The minimal parseable window of source lines.

    ``text`` is the window dedented by the first line's indentation, for
    display; ``indent`` is that indentation.  ``tree`` is parsed from the
    window with only its first line stripped, so columns on its first line
    are ``indent`` short of the file's columns and the rest match the file.
    """

    text: str
    tree: ast.Module
    filename: str
    first_line: int
    indent: int = 0

    @property
    def last_line(self) -> int:
        return self.first_line + self.text.count("\n") - (
            1 if self.text.endswith("\n") else 0
        )

    def absolute(self, lineno: int, col: int) -> Tuple[int, int]:
        """Map a ``(lineno, col_offset)`` of ``tree`` to file coordinates."""
        if lineno == 1:
            col += self.indent
        return self.first_line + lineno - 1, col


def caller_location(depth: int = 1, skip_modules: Sequence[str] = ()) -> Tuple[str, int]:
    """Return ``(filename, lineno)`` of the frame *depth* levels above the caller.

    Frames belonging to any module in *skip_modules* are stepped over, so a
    wrapper can report its own caller's position.
    """
    frame = sys._getframe(depth + 1)
    while frame.f_back is not None and frame.f_globals.get("__name__") in skip_modules:
        frame = frame.f_back
    return frame.f_code.co_filename, frame.f_lineno


def block_code(block: Any) -> CodeType:
    """Return the code object behind an assertion block."""
    code = getattr(block, "__code__", None)
    if code is None:
        code = getattr(getattr(block, "__func__", None), "__code__", None)
    if not isinstance(code, CodeType):
        raise MalformedSource(
            f"{type(block).__name__} object has no Python source to reflect"
        )
    return code


def _code_last_line(code: CodeType) -> int:
    last = code.co_firstlineno
    for _start, _end, line in code.co_lines():
        if line is not None and line > last:
            last = line
    return last


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def _dedent(line: str, indent: int) -> str:
    """Remove up to *indent* leading whitespace characters from *line*."""
    stripped = line.lstrip()
    return line[min(indent, len(line) - len(stripped)):] if stripped else line.lstrip(" \t")


def _parse_window(window: Sequence[str]) -> Optional[ast.Module]:
    text = window[0].lstrip() + "".join(window[1:])
    try:
        return ast.parse(text)
    except (SyntaxError, ValueError):
        return None


def _ends_statement(line: str, base: int) -> bool:
    """True when *line* starts a new statement at or left of column *base*."""
    return bool(
        line.strip()
        and _indent_of(line) <= base
        and not _CONTINUATION_RE.match(line.lstrip())
    )


def _extend(
    lines: Sequence[str], start: int, end: int, base: int
) -> Optional[Tuple[ast.Module, int]]:
    for candidate in range(end + 1, len(lines) + 1):
        tree = _parse_window(lines[start - 1:candidate])
        if tree is not None:
            return tree, candidate
        if candidate < len(lines) and _ends_statement(lines[candidate], base):
            return None
    return None


def _grow(
    lines: Sequence[str], start: int, min_end: int, filename: str
) -> Optional[SourceSlice]:
    first = lines[start - 1]
    base = _indent_of(first)
    for end in range(max(start, min_end), len(lines) + 1):
        tree = _parse_window(lines[start - 1:end])
        if tree is None:
            logger.debug("window %s:%d-%d does not parse", filename, start, end)
            continue
        # a compound statement may go on past the first point where it parses
        while end < len(lines) and not _ends_statement(lines[end], base):
            extended = _extend(lines, start, end, base)
            if extended is None:
                break
            tree, end = extended
        window = lines[start - 1:end]
        return SourceSlice(
            text=first.lstrip() + "".join(_dedent(line, base) for line in window[1:]),
            tree=tree,
            filename=filename,
            first_line=start,
            indent=base,
        )
    return None


def locate(
    filename: str,
    lineno: int,
    *,
    min_end: int = 0,
    backtrack: int = 0,
) -> SourceSlice:
    """Return the shortest parseable window of *filename* starting at *lineno*.

    Parameters
    ----------
    filename, lineno:
        The call site (1-based line).
    min_end:
        Windows ending before this line are not tried.
    backtrack:
        How many earlier start lines to retry when no window starting at
        *lineno* parses.

    Raises
    ------
    MalformedSource
        No window parses before end of file, or the source is unavailable.
    """
    where = SourceLocation(filename, lineno)
    lines = linecache.getlines(filename)
    if not lines:
        raise MalformedSource("no source available", location=where)
    if not 1 <= lineno <= len(lines):
        raise MalformedSource(
            f"line {lineno} is outside the {len(lines)}-line source", location=where
        )
    if lines[-1] and not lines[-1].endswith("\n"):
        lines = list(lines[:-1]) + [lines[-1] + "\n"]

    for start in range(lineno, max(lineno - backtrack, 1) - 1, -1):
        found = _grow(lines, start, min_end, filename)
        if found is not None:
            return found

    raise MalformedSource(
        "your assertion failed, but its source is incorrectly formatted "
        "and resists reflection",
        lines=lines[lineno - 1:],
        location=where,
    )


def _param_names(code: CodeType) -> Tuple[str, ...]:
    count = code.co_argcount + code.co_kwonlyargcount
    if code.co_flags & 0x04:  # CO_VARARGS
        count += 1
    if code.co_flags & 0x08:  # CO_VARKEYWORDS
        count += 1
    return tuple(code.co_varnames[:count])


def _node_param_names(args: ast.arguments) -> Tuple[str, ...]:
    names: List[str] = [a.arg for a in args.posonlyargs + args.args]
    names += [a.arg for a in args.kwonlyargs]
    if args.vararg is not None:
        names.append(args.vararg.arg)
    if args.kwarg is not None:
        names.append(args.kwarg.arg)
    return tuple(names)


def _node_first_line(node: BlockNode) -> int:
    if isinstance(node, ast.Lambda) or not node.decorator_list:
        return node.lineno
    return min(d.lineno for d in node.decorator_list)


def _positions(code: CodeType) -> List[Tuple[int, int]]:
    positions = getattr(code, "co_positions", None)
    if positions is None:
        return []
    return [
        (line, col)
        for line, _end_line, col, _end_col in positions()
        if line is not None and col is not None
    ]


def _span(source: SourceSlice, node: ast.AST) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    start = source.absolute(node.lineno, node.col_offset)
    end = source.absolute(node.end_lineno or node.lineno, node.end_col_offset or 0)
    return start, end


def find_block_node(source: SourceSlice, block: Any) -> BlockNode:
    """Find the node in *source* that compiled into *block*'s code object."""
    code = block_code(block)
    params = _param_names(code)
    candidates: List[BlockNode] = []
    for node in ast.walk(source.tree):
        if isinstance(node, ast.Lambda):
            if code.co_name != "<lambda>":
                continue
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            if node.name != code.co_name:
                continue
        else:
            continue
        line = source.first_line + _node_first_line(node) - 1
        if line == code.co_firstlineno and _node_param_names(node.args) == params:
            candidates.append(node)

    if not candidates:
        raise MalformedSource(
            f"no {code.co_name} with parameters ({', '.join(params)}) "
            f"at line {code.co_firstlineno}",
            lines=source.text.splitlines(True),
            location=SourceLocation(source.filename, code.co_firstlineno),
        )
    if len(candidates) == 1:
        return candidates[0]

    # several blocks share a line: the one whose span holds the most of the
    # code's instruction positions, innermost first
    positions = _positions(code)
    if positions:
        ranked = []
        for node in candidates:
            start, end = _span(source, node)
            inside = sum(1 for position in positions if start <= position <= end)
            if inside:
                ranked.append((-inside, end[0] - start[0], end[1] - start[1], id(node), node))
        if ranked:
            ranked.sort(key=lambda item: item[:4])
            return ranked[0][4]
    logger.debug(
        "%d candidate blocks at %s:%d, taking the first",
        len(candidates), source.filename, code.co_firstlineno,
    )
    return candidates[0]


def locate_block(
    block: Any,
    call_site: Optional[Tuple[str, int]] = None,
    backtrack: int = 0,
) -> Tuple[SourceSlice, BlockNode]:
    """Locate and parse the source of *block*, returning the slice and its node.

    When *call_site* is in the same file and at or above the block, the
    window starts at the call site so the report shows the whole assertion
    statement; otherwise it starts at the block's first line.
    """
    code = block_code(block)
    last_line = _code_last_line(code)
    starts = [code.co_firstlineno]
    if call_site is not None:
        filename, lineno = call_site
        if filename == code.co_filename and 0 < lineno < code.co_firstlineno:
            starts.insert(0, lineno)

    failure: Optional[MalformedSource] = None
    for start in starts:
        try:
            source = locate(
                code.co_filename, start, min_end=last_line, backtrack=backtrack
            )
            if start != code.co_firstlineno and len(source.tree.body) != 1:
                # the call site sits in some other statement, e.g. a helper
                # that received the block as an argument
                raise MalformedSource(
                    f"call site at line {start} is not one statement with the block",
                    location=SourceLocation(code.co_filename, start),
                )
            return source, find_block_node(source, block)
        except MalformedSource as exc:
            logger.debug("no block source from line %d: %s", start, exc)
            failure = exc
    assert failure is not None
    raise failure
