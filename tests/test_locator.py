# tests/test_locator.py
"""
Tests for the source locator: parseable windows, block nodes, call sites.
"""

import ast
import sys

import pytest

from assert_reflect.errors import MalformedSource, ReflectionErrorCodes
from assert_reflect.locator import (
    block_code,
    caller_location,
    find_block_node,
    locate,
    locate_block,
)
from tests.conftest import (
    COMPOUND_SRC,
    CONTINUED_CALL_SRC,
    DEF_BLOCK_SRC,
    MULTILINE_CALL_SRC,
)


class TestLocateWindow:

    def test_single_line(self, write_source):
        path = write_source("x = 1\nassert_(lambda: x == 2)\n")
        found = locate(path, 2)
        assert found.text == "assert_(lambda: x == 2)\n"
        assert found.first_line == 2
        assert found.last_line == 2

    def test_grows_until_parseable(self, write_source):
        path = write_source(MULTILINE_CALL_SRC)
        found = locate(path, 1)
        assert found.text == MULTILINE_CALL_SRC
        assert found.last_line == 4
        assert isinstance(found.tree.body[0], ast.Assign)

    def test_indented_first_line_is_stripped(self, write_source):
        path = write_source("def f():\n    return g(\n        1)\n")
        found = locate(path, 2)
        assert found.text == "return g(\n    1)\n"
        assert found.indent == 4

    @pytest.mark.parametrize("source, expected", [
        ("if x:\n    y = f(\n  1,\n\n        2)\n", "y = f(\n1,\n\n    2)\n"),
        ("if x:\n    y = [\n    1]\n", "y = [\n1]\n"),
    ], ids=["shallower_and_blank", "same_depth"])
    def test_continuation_lines_dedented(self, write_source, source, expected):
        found = locate(write_source(source), 2)
        assert found.text == expected
        assert found.absolute(2, 2) == (3, 2)

    def test_absolute_adds_indent_on_first_line_only(self, write_source):
        path = write_source("def f():\n    return g(\n        1)\n")
        found = locate(path, 2)
        assert found.absolute(1, 0) == (2, 4)
        assert found.absolute(2, 8) == (3, 8)

    def test_compound_statement_keeps_else_branch(self, write_source):
        path = write_source(COMPOUND_SRC)
        found = locate(path, 1)
        assert "wait()" in found.text
        assert "after" not in found.text

    def test_missing_final_newline(self, write_source):
        path = write_source("flag = True")
        assert locate(path, 1).text == "flag = True\n"

    def test_min_end_skips_short_windows(self, write_source):
        path = write_source(DEF_BLOCK_SRC)
        found = locate(path, 1, min_end=3)
        assert found.last_line == 3


class TestLocateFailures:

    def test_unparseable_without_backtrack(self, write_source):
        path = write_source(CONTINUED_CALL_SRC)
        with pytest.raises(MalformedSource) as info:
            locate(path, 2)
        assert info.value.code is ReflectionErrorCodes.MALFORMED_SOURCE
        assert "resists reflection" in info.value.message
        assert info.value.lines == ["               **opts)\n"]

    def test_backtrack_finds_earlier_start(self, write_source):
        path = write_source(CONTINUED_CALL_SRC)
        found = locate(path, 2, backtrack=1)
        assert found.first_line == 1
        assert found.text.startswith("result = check(first,")

    def test_no_source(self):
        with pytest.raises(MalformedSource, match="no source available"):
            locate("<nowhere>", 1)

    def test_line_out_of_range(self, write_source):
        path = write_source("a = 1\n")
        with pytest.raises(MalformedSource, match="outside"):
            locate(path, 7)

    def test_location_is_attached(self, write_source):
        path = write_source(CONTINUED_CALL_SRC)
        with pytest.raises(MalformedSource) as info:
            locate(path, 2)
        assert info.value.location.filename == path
        assert info.value.location.line == 2
        assert str(info.value).startswith(f"{path}:2: REFL-1001:")


class TestBlockCode:

    def test_function(self):
        def block():
            return True
        assert block_code(block) is block.__code__

    def test_bound_method(self):
        class Holder:
            def check(self):
                return True
        assert block_code(Holder().check) is Holder.check.__code__

    def test_builtin_has_no_source(self):
        with pytest.raises(MalformedSource, match="no Python source"):
            block_code(len)


class TestLocateBlock:

    def test_lambda_on_its_own_line(self):
        block = lambda x: x > 1  # noqa: E731
        source, node = locate_block(block)
        assert isinstance(node, ast.Lambda)
        assert [a.arg for a in node.args.args] == ["x"]
        assert source.text.startswith("block = lambda x: x > 1")

    def test_picks_lambda_by_parameters(self):
        pair = (lambda a: a + 1, lambda b: b + 2)
        _, node = locate_block(pair[1])
        assert [a.arg for a in node.args.args] == ["b"]

    @pytest.mark.skipif(sys.version_info < (3, 11), reason="needs co_positions")
    def test_picks_lambda_by_position(self):
        twins = (lambda: 1, lambda: 2)
        _, node = locate_block(twins[1])
        assert isinstance(node.body, ast.Constant)
        assert node.body.value == 2

    def test_nested_def(self):
        def check():
            expected = 4
            return expected == 4
        source, node = locate_block(check)
        assert isinstance(node, ast.FunctionDef)
        assert node.name == "check"
        assert "return expected == 4" in source.text

    def test_call_site_above_block(self):
        here = caller_location(0)
        block = (
            lambda: True
        )
        source, node = locate_block(block, call_site=(here[0], here[1] + 1))
        assert source.first_line == here[1] + 1
        assert source.text.startswith("block = (")
        assert isinstance(node, ast.Lambda)

    def test_call_site_in_other_file_is_ignored(self):
        block = lambda: True  # noqa: E731
        source, _ = locate_block(block, call_site=("elsewhere.py", 1))
        assert source.first_line == block.__code__.co_firstlineno

    def test_find_block_node_reports_missing_block(self, write_source):
        path = write_source("x = 1\n")
        source = locate(path, 1)
        with pytest.raises(MalformedSource, match="no <lambda>"):
            find_block_node(source, lambda: True)


class TestCallerLocation:

    def test_reports_current_line(self):
        filename, line = caller_location(0)
        assert filename == __file__
        assert line == sys._getframe().f_lineno - 2

    def test_skips_named_modules(self):
        def wrapper():
            return caller_location(0, skip_modules=(__name__,))
        filename, _ = wrapper()
        assert filename != __file__
