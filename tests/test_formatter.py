# tests/test_formatter.py
"""
Tests for report layout: result line, arrow alignment, soft-wrapping of long
fragments and hanging indents for multi-line values.
"""

import pytest

from assert_reflect.capture import Capture
from assert_reflect.config import ReflectionConfig
from assert_reflect.errors import FragmentEvaluationError
from assert_reflect.formatter import ReportFormatter, wrap_fragment


class Unprintable:
    def __repr__(self):
        raise ValueError("nope")


class TestResultLine:

    def test_source_and_result(self):
        report = ReportFormatter().format("assert_(lambda: x)\n\n", False, [])
        assert report == "assert_(lambda: x)\n    --> False"

    def test_multiline_result_hangs_under_value(self):
        config = ReflectionConfig(pprint_width=12)
        report = ReportFormatter(config).format("f()", [1000, 2000, 3000], [])
        lines = report.splitlines()
        assert lines[1] == "    --> [1000,"
        assert lines[2] == "         2000,"
        assert lines[3] == "         3000]"

    def test_custom_arrow_and_indent(self):
        config = ReflectionConfig(arrow="=>", result_indent=2)
        report = ReportFormatter(config).format("f()", 1, [Capture("a", 1)])
        assert report.splitlines()[1:] == ["  => 1", "a => 1"]


class TestCaptureLines:

    def test_right_aligned(self):
        captures = [
            Capture("x", 1),
            Capture("x + 1", 2),
            Capture("x + 1 == 3", False),
        ]
        report = ReportFormatter().format("assert_(lambda: x + 1 == 3)", False, captures)
        assert report.splitlines() == [
            "assert_(lambda: x + 1 == 3)",
            "    --> False",
            "         x --> 1",
            "     x + 1 --> 2",
            "x + 1 == 3 --> False",
        ]

    def test_arrows_share_a_column(self):
        captures = [Capture(name, i) for i, name in enumerate(["a", "bb", "ccc + d"])]
        lines = ReportFormatter().format("src", None, captures).splitlines()[2:]
        assert len({line.index(" --> ") for line in lines}) == 1

    def test_error_value_printed_as_exception(self):
        error = FragmentEvaluationError("1 / 0", ZeroDivisionError("division by zero"))
        report = ReportFormatter().format("src", False, [Capture("1 / 0", error)])
        assert report.splitlines()[-1] == "1 / 0 --> ZeroDivisionError('division by zero')"

    def test_unprintable_value(self):
        report = ReportFormatter().format("src", False, [Capture("obj", Unprintable())])
        assert report.splitlines()[-1] == "obj --> <unprintable Unprintable: ValueError('nope')>"

    def test_unprintable_result(self):
        report = ReportFormatter().format("src", Unprintable(), [])
        assert report.splitlines()[1] == "    --> <unprintable Unprintable: ValueError('nope')>"

    def test_multiline_value_indent(self):
        config = ReflectionConfig(pprint_width=12)
        captures = [Capture("xs", [1000, 2000, 3000])]
        lines = ReportFormatter(config).format("src", False, captures).splitlines()
        assert lines[2] == "xs --> [1000,"
        assert lines[3] == " " * (len("xs") + 4) + " 2000,"

    def test_idempotent(self):
        formatter = ReportFormatter()
        captures = [Capture("a.b", {"k": [1, 2]}), Capture("a", object)]
        first = formatter.format("assert_(lambda: a.b)", 0, captures)
        assert formatter.format("assert_(lambda: a.b)", 0, captures) == first


class TestWrapping:

    LONG = "compute_total(first_argument, second_argument, third_argument) > limit"

    def test_width_capped(self):
        captures = [Capture(self.LONG, True), Capture("limit", 5)]
        lines = ReportFormatter().format("src", False, captures).splitlines()[2:]
        arrow_lines = [line for line in lines if " --> " in line]
        assert {line.index(" --> ") for line in arrow_lines} == {50}
        assert lines[-1] == "limit".rjust(50) + " --> 5"

    def test_continuation_lines_right_aligned(self):
        captures = [Capture(self.LONG, True)]
        config = ReflectionConfig(max_fragment_width=30)
        lines = ReportFormatter(config).format("src", False, captures).splitlines()[2:]
        assert len(lines) > 1
        for line in lines[:-1]:
            assert len(line) == 30
        assert lines[-1].endswith(" --> True")

    def test_tokens_never_split(self):
        pieces = wrap_fragment(self.LONG, 20)
        assert "".join(pieces).replace(" ", "") == self.LONG.replace(" ", "")
        assert pieces[0] == "compute_total("
        assert all(len(piece) <= 20 for piece in pieces if " " in piece)

    @pytest.mark.parametrize("fragment, width, expected", [
        ("short", 10, ["short"]),
        ("alpha.beta(gamma, delta)", 10, ["alpha.", "beta(", "gamma,", "delta)"]),
        ("a + b + c", 5, ["a + b", "+ c"]),
    ], ids=["fits", "punctuation", "operators"])
    def test_wrap_fragment(self, fragment, width, expected):
        assert wrap_fragment(fragment, width) == expected

    def test_unbreakable_token_widens_column(self):
        name = "a_really_long_identifier_that_is_longer_than_fifty_chars_total"
        captures = [Capture(name, 1), Capture("x", 2), Capture(f"{name} + x", 3)]
        lines = ReportFormatter().format("src", False, captures).splitlines()[2:]
        arrow_lines = [line for line in lines if " --> " in line]
        assert {line.index(" --> ") for line in arrow_lines} == {len(name)}
        assert arrow_lines[0] == f"{name} --> 1"
        assert arrow_lines[1] == "x".rjust(len(name)) + " --> 2"
