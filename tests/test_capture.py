# tests/test_capture.py
"""
Tests for fragment re-evaluation: values, literal echoes, insufficient
bindings and evaluation errors.
"""

import ast
import re

import pytest

from assert_reflect.capture import (
    Capture,
    LexicalContext,
    free_names,
    is_literal_echo,
)
from assert_reflect.config import ReflectionConfig
from assert_reflect.errors import FragmentEvaluationError, InsufficientBindings
from assert_reflect.walker import SyntaxWalker
from tests.conftest import parse_expr


def _walk(collector, src: str):
    SyntaxWalker(collector).reconstruct(parse_expr(src))
    return collector.captures


class TestCaptureValues:

    def test_arithmetic(self, make_collector):
        captures = _walk(make_collector({"x": 2}), "x + 1 == 3")
        assert captures == [
            Capture("x", 2),
            Capture("x + 1", 3),
            Capture("x + 1 == 3", True),
        ]

    def test_every_binary_operation_is_captured(self, make_collector):
        captures = _walk(make_collector({"a": 6, "b": 4}), "a - b * 2")
        assert [c.fragment for c in captures] == ["a", "b", "b * 2", "a - b * 2"]
        assert captures[-1].value == -2

    def test_string_concatenation_is_captured(self, make_collector):
        captures = _walk(make_collector({"x": "bar"}), "'foo' + x")
        assert captures == [Capture("x", "bar"), Capture("'foo' + x", "foobar")]

    def test_builtins_available(self, make_collector):
        captures = _walk(make_collector({"xs": [1, 2]}), "len(xs)")
        assert captures[-1] == Capture("len(xs)", 2)

    def test_no_deduplication(self, make_collector):
        captures = _walk(make_collector({"x": 1}), "x + x")
        assert [c.fragment for c in captures] == ["x", "x", "x + x"]


class TestLiteralEcho:

    def test_string_literal_suppressed(self, make_collector):
        collector = make_collector()
        collector.capture(parse_expr("'foo'"), "'foo'")
        assert collector.captures == []

    def test_bytes_literal_suppressed(self, make_collector):
        collector = make_collector()
        collector.capture(parse_expr("b'foo'"), "b'foo'")
        assert collector.captures == []

    def test_regex_compile_suppressed(self, make_collector):
        captures = _walk(make_collector({"re": re}), "re.compile('ab')")
        assert "re.compile('ab')" not in [c.fragment for c in captures]

    def test_regex_with_variable_kept(self, make_collector):
        captures = _walk(make_collector({"re": re, "p": "ab"}), "re.compile(p)")
        assert captures[-1].fragment == "re.compile(p)"

    def test_suppression_can_be_disabled(self, make_collector):
        collector = make_collector(config=ReflectionConfig(suppress_literal_echo=False))
        collector.capture(parse_expr("'foo'"), "'foo'")
        assert collector.captures == [Capture("'foo'", "foo")]

    @pytest.mark.parametrize("src, value, expected", [
        ("'foo'", "foo", True),
        ("'foo'", "bar", False),
        ("f'abc'", "abc", True),
        ("f'{x}'", "abc", False),
        ("re.compile('a+')", re.compile("a+"), True),
        ("re.compile('a+')", re.compile("b+"), False),
        ("x", "x", False),
    ], ids=["str", "str_changed", "fstring_plain", "fstring_interp",
            "regex", "regex_changed", "name"])
    def test_is_literal_echo(self, src, value, expected):
        assert is_literal_echo(parse_expr(src), value) is expected


class TestInsufficientBindings:

    def test_comprehension_targets_dropped(self, make_collector):
        captures = _walk(make_collector({"xs": [1, 2], "k": 3}), "[x * k for x in xs]")
        assert [c.fragment for c in captures] == ["k", "xs", "[x * k for x in xs]"]
        assert captures[-1].value == [3, 6]

    def test_nested_lambda_parameter_dropped(self, make_collector):
        captures = _walk(make_collector({"k": 2}), "(lambda y: y + k)(1)")
        assert captures == [Capture("k", 2), Capture("(lambda y: y + k)(1)", 3)]

    def test_generator_inside_call(self, make_collector):
        captures = _walk(make_collector({"xs": [1, -2]}), "all(x > 0 for x in xs)")
        assert captures == [Capture("xs", [1, -2]), Capture("all(x > 0 for x in xs)", False)]

    def test_unbound_local_dropped(self, make_collector):
        collector = make_collector(local_names={"later"})
        assert _walk(collector, "later + 1") == []

    def test_unknown_global_is_an_error_value(self, make_collector):
        captures = _walk(make_collector(), "nowhere")
        assert len(captures) == 1
        assert isinstance(captures[0].value, FragmentEvaluationError)
        assert isinstance(captures[0].value.cause, NameError)

    def test_evaluate_raises_for_blocked_names(self, make_collector):
        collector = make_collector({"y": 1})
        with pytest.raises(InsufficientBindings) as info:
            collector.evaluate(parse_expr("y + 1"), "y + 1", {"y"})
        assert info.value.names == {"y"}
        assert info.value.fragment == "y + 1"


class TestEvaluationErrors:

    def test_error_captured_as_value(self, make_collector):
        captures = _walk(make_collector(), "1 / 0")
        assert captures == [
            Capture("1 / 0", FragmentEvaluationError("1 / 0", ZeroDivisionError("division by zero"))),
        ]
        assert repr(captures[0].value) == "ZeroDivisionError('division by zero')"

    def test_error_in_inner_fragment_does_not_stop_outer(self, make_collector):
        captures = _walk(make_collector({"d": {}}), "d['k'] or True")
        assert isinstance(captures[1].value, FragmentEvaluationError)
        assert captures[1].fragment == "d['k']"
        assert isinstance(captures[-1].value, FragmentEvaluationError)


class TestBlockBindings:

    def test_lambda_parameters_bound_from_args(self):
        block = lambda n, m=2: n > m  # noqa: E731
        context = LexicalContext.from_block(block, args=(1,))
        assert context.bind(["n", "m"]) == frozenset()
        assert context.namespace["n"] == 1
        assert context.namespace["m"] == 2

    def test_unbindable_arguments(self):
        block = lambda n: n  # noqa: E731
        context = LexicalContext.from_block(block)
        assert context.bind(["n"]) == {"n"}
        assert "n" not in context.namespace

    def test_bound_method_binds_self(self):
        class Holder:
            def check(self, n, m=2):
                return n > m

        holder = Holder()
        context = LexicalContext.from_block(holder.check, args=(1,))
        assert context.bind(["self", "n", "m"]) == frozenset()
        assert context.namespace["self"] is holder
        assert context.namespace["n"] == 1
        assert context.namespace["m"] == 2

    def test_closure_contents(self):
        def outer():
            value = 5
            return lambda: value
        context = LexicalContext.from_block(outer())
        assert context.namespace["value"] == 5

    def test_globals_are_copied(self):
        block = lambda: pytest  # noqa: E731
        context = LexicalContext.from_block(block)
        assert context.namespace["pytest"] is pytest
        assert context.namespace is not block.__globals__

    def test_local_names(self):
        def block(a):
            b = a
            return b
        context = LexicalContext.from_block(block, args=(1,))
        assert {"a", "b"} <= context.local_names
        assert context.filename == __file__


class TestStatementExecution:

    DEF_SRC = "def check():\n    y = 3\n    return y > 5\n"

    def _def_block(self):
        return ast.parse(self.DEF_SRC).body[0]

    def test_assignments_reexecuted(self, make_collector):
        collector = make_collector()
        SyntaxWalker(collector).reconstruct_block(self._def_block())
        assert collector.captures == [Capture("y", 3), Capture("y > 5", False)]
        assert collector.context.namespace["y"] == 3

    def test_reexecution_disabled(self, make_collector):
        collector = make_collector(
            local_names={"y"},
            config=ReflectionConfig(reexecute_assignments=False),
        )
        SyntaxWalker(collector).reconstruct_block(self._def_block())
        assert collector.captures == []

    def test_failed_reexecution_leaves_name_unbound(self, make_collector):
        collector = make_collector(local_names={"y"})
        node = ast.parse("def check():\n    y = missing\n    return y\n").body[0]
        SyntaxWalker(collector).reconstruct_block(node)
        assert "y" not in collector.context.namespace
        assert [c.fragment for c in collector.captures] == ["missing"]

    @pytest.mark.parametrize("statement", [
        "top = items.pop()",
        "top: int = items.pop()",
        "first = top = items.pop()",
    ], ids=["assign", "annotated", "chained"])
    def test_right_hand_side_runs_once(self, make_collector, statement):
        collector = make_collector({"items": [1, 2, 3]}, local_names={"top", "first"})
        node = ast.parse(f"def check():\n    {statement}\n    return top > 5\n").body[0]
        SyntaxWalker(collector).reconstruct_block(node)
        assert collector.captures[-3:] == [
            Capture("items.pop()", 3),
            Capture("top", 3),
            Capture("top > 5", False),
        ]
        assert collector.context.namespace["items"] == [1, 2]


class TestFreeNames:

    def test_only_loads(self):
        node = ast.parse("[a + b for b in c]", mode="eval").body
        assert free_names(node) == {"a", "b", "c"}
