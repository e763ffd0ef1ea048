"""Tests for matching, substitution, constant folding and rewriting."""

import math
import operator

import pytest
from casimir import (
    E, Literal, NamedConstant, UnaryOp, Bindings, NoMatch,
    match, substitute, rewrite, extend_bindings, lookup,
    fold_node, fold_literals, evaluate,
    nary_fold, unary_only, binary_only, special_minus, true_div,
    DEFAULT_PRELUDE, MATH_PRELUDE, NO_PRELUDE, ARITHMETIC_PRELUDE,
)
from casimir.expr import BINARY_OPS, UNARY_OPS


e = NamedConstant("e", math.e)
fn = E.fn


class TestMatch:
    """Tests for structural matching."""

    def setup_method(self):
        self.x, self.y, self.a, self.b = E.vars("x", "y", "a", "b")

    def test_variable_matches_anything(self):
        x, a, b = self.x, self.a, self.b
        assert match(x, a * b)["x"] == a * b
        assert match(x, Literal(3))["x"] == Literal(3)

    def test_repeated_variable_consistent(self):
        """x + x matches a + a."""
        x, a = self.x, self.a
        bindings = match(x + x, a + a)
        assert bindings
        assert bindings["x"] == a
        assert len(bindings) == 1

    def test_repeated_variable_inconsistent(self):
        """x + x does not match a + b."""
        x, a, b = self.x, self.a, self.b
        assert match(x + x, a + b) is NoMatch

    def test_repeated_variable_structural(self):
        """Repeated variables compare bound subtrees structurally."""
        x, a, b = self.x, self.a, self.b
        assert match(x - x, (a + 1) - (a + 1))["x"] == a + 1
        assert match(x - x, (a + 1) - (b + 1)) is NoMatch

    def test_right_nested_operand(self):
        """x + y against a + (b + 1) binds y to the whole right subtree."""
        x, y, a, b = self.x, self.y, self.a, self.b
        bindings = match(x + y, a + (b + 1))
        assert bindings["x"] == a
        assert bindings["y"] == b + 1

    def test_left_nested_operand(self):
        """x + y against (a + b) + 1 binds x to the left subtree."""
        x, y, a, b = self.x, self.y, self.a, self.b
        bindings = match(x + y, a + b + 1)
        assert bindings["x"] == a + b
        assert bindings["y"] == Literal(1)

    def test_no_regrouping(self):
        """Matching never re-associates the expression."""
        x, a = self.x, self.a
        assert match(0 + x, 0 + (a + 1))["x"] == a + 1
        assert match(0 + x, 0 + a + 1) is NoMatch

    def test_operator_must_agree(self):
        x, y, a, b = self.x, self.y, self.a, self.b
        assert match(x + y, a - b) is NoMatch
        assert match(x + y, a) is NoMatch

    def test_literal_pattern(self):
        x, a = self.x, self.a
        assert match(x * 0, a * 0)["x"] == a
        assert match(x * 0, a * 1) is NoMatch
        assert match(x * 0, a * 0.0)["x"] == a

    def test_nan_literal_pattern(self):
        """NaN in a pattern matches a NaN literal."""
        nan = Literal(float("nan"))
        assert match(nan, Literal(float("nan")))
        assert match(nan, Literal(0)) is NoMatch

    def test_named_constant_pattern(self):
        """Named constants match only themselves, not their value."""
        assert match(e, NamedConstant("e", math.e))
        assert match(e, Literal(math.e)) is NoMatch

    def test_unary(self):
        x, a = self.x, self.a
        assert match(-x, -a)["x"] == a
        assert match(-x, ~a) is NoMatch
        assert match(-x, a) is NoMatch
        assert match(-(-x), -(-(a + 1)))["x"] == a + 1

    def test_function_application(self):
        x, y, a, b = self.x, self.y, self.a, self.b
        assert match(fn("log", x), fn("log", a + 1))["x"] == a + 1
        assert match(fn("log", x), fn("exp", a)) is NoMatch
        assert match(fn("f", x), fn("f", a, b)) is NoMatch
        bindings = match(fn("f", x, y), fn("f", a, b))
        assert (bindings["x"], bindings["y"]) == (a, b)
        assert match(fn("f", x, x), fn("f", a, b)) is NoMatch

    def test_nested_repeated_variable(self):
        """Consistency holds across different depths of the pattern."""
        x, y, a, b = self.x, self.y, self.a, self.b
        assert match(x * (y / x), a * (b / a))["y"] == b
        assert match(x * (y / x), a * (b / b)) is NoMatch

    def test_with_existing_bindings(self):
        x, a, b = self.x, self.a, self.b
        assert match(x, a, Bindings([("x", a)])) == Bindings([("x", a)])
        assert match(x, a, Bindings([("x", b)])) is NoMatch
        assert match(x, a, NoMatch) is NoMatch

    def test_pattern_must_be_expression(self):
        with pytest.raises(TypeError):
            match(3, self.a)


class TestExtendBindings:
    """Tests for extend_bindings() and lookup()."""

    def setup_method(self):
        self.x, self.a, self.b = E.vars("x", "a", "b")

    def test_new_variable(self):
        bindings = extend_bindings(self.x, self.a, Bindings())
        assert bindings["x"] == self.a

    def test_same_value_returns_same_bindings(self):
        bindings = Bindings([("x", self.a)])
        assert extend_bindings(self.x, self.a, bindings) is bindings

    def test_conflict(self):
        bindings = Bindings([("x", self.a)])
        assert extend_bindings(self.x, self.b, bindings) is NoMatch

    def test_no_match_propagates(self):
        assert extend_bindings(self.x, self.a, NoMatch) is NoMatch

    def test_lookup(self):
        x, a = self.x, self.a
        y = E.var("y")
        bindings = Bindings([("x", a)])
        assert lookup(x, bindings) == a
        assert lookup(y, bindings) is y
        assert lookup(x, {"x": a}) == a


class TestSubstitute:
    """Tests for substitute()."""

    def setup_method(self):
        self.x, self.y, self.a = E.vars("x", "y", "a")

    def test_replaces_bound_variables(self):
        x, y, a = self.x, self.y, self.a
        assert substitute(x + y, Bindings([("x", a)])) == a + y

    def test_mapping_with_numbers(self):
        """A plain mapping works and numbers are wrapped, but not folded."""
        x = self.x
        assert substitute(x + 1, {x: 2}) == E.op("+", 2, 1)
        assert substitute(x + 1, {"x": 2}) == E.op("+", 2, 1)

    def test_unchanged_template_is_same_object(self):
        x = self.x
        template = x + 1
        assert substitute(template, Bindings()) is template
        assert substitute(template, NoMatch) is template

    def test_inside_functions_and_unary(self):
        x, a = self.x, self.a
        assert substitute(fn("log", -x), {x: a * 2}) == fn("log", -(a * 2))

    def test_repeated_variable(self):
        x, a = self.x, self.a
        assert substitute(x * x, {x: a + 1}) == (a + 1) * (a + 1)


class TestRewrite:
    """Tests for single-rule, post-order rewriting."""

    def setup_method(self):
        self.x, self.y, self.a, self.b = E.vars("x", "y", "a", "b")

    def test_root(self):
        x, a = self.x, self.a
        assert rewrite(a + 0, x + 0, x) == a

    def test_unchanged_is_same_object(self):
        """When nothing applies, the input object itself is returned."""
        x, a, b = self.x, self.a, self.b
        expr = (a + b) * fn("log", a)
        assert rewrite(expr, x + 0, x) is expr

    def test_children_first(self):
        """Children are rewritten before the parent is matched."""
        x, a = self.x, self.a
        assert rewrite(a + 0 + 0, x + 0, x) == a

    def test_everywhere(self):
        x, a, b = self.x, self.a, self.b
        assert rewrite((a + 0) * (b + 0), x + 0, x) == a * b

    def test_inside_function(self):
        x, a = self.x, self.a
        assert rewrite(fn("log", a * 1), x * 1, x) == fn("log", a)

    def test_replacement_not_rewritten_again(self):
        x, y, a, b = self.x, self.y, self.a, self.b
        assert rewrite(a + b, x + y, x + y + 0) == a + b + 0

    def test_folding_takes_priority(self):
        """An all-literal node is folded instead of matched."""
        x = self.x
        assert rewrite(E.op("+", 2, 1), x + 1, x) == Literal(3)

    def test_folds_nested_literals(self):
        x, a = self.x, self.a
        assert rewrite(a * E.op("+", 1, 2), x + 0, x) == a * 3

    def test_fold_then_match(self):
        """A node whose children fold to literals can then fold itself."""
        x = self.x
        expr = E.op("*", E.op("+", 1, 1), E.op("-", 5, 2))
        assert rewrite(expr, x + 0, x) == Literal(6)

    def test_no_prelude(self):
        x = self.x
        assert rewrite(E.op("+", 2, 1), x + 1, x, NO_PRELUDE) == Literal(2)

    def test_named_constants_do_not_fold(self):
        x = self.x
        expr = e + 1
        assert rewrite(expr, x + 0, x) is expr

    def test_division_by_zero_folds_to_nan(self):
        x = self.x
        result = rewrite(E.op("/", 1, 0), x + 0, x)
        assert isinstance(result, Literal)
        assert result.is_nan()


class TestFoldNode:
    """Tests for fold_node()."""

    def test_arithmetic(self):
        assert fold_node(E.op("+", 2, 3)) == Literal(5)
        assert fold_node(E.op("-", 2, 3)) == Literal(-1)
        assert fold_node(E.op("*", 2, 3)) == Literal(6)
        assert fold_node(E.op("**", 2, 3)) == Literal(8)
        assert fold_node(E.op("-", 4)) == Literal(-4)
        assert fold_node(E.op("+", 4)) == Literal(4)

    def test_exact_division_stays_int(self):
        result = fold_node(E.op("/", 6, 3))
        assert result == Literal(2)
        assert type(result.value) is int
        assert fold_node(E.op("/", 1, 2)) == Literal(0.5)

    def test_not_foldable(self):
        x = E.var("x")
        assert fold_node(x + 1) is None
        assert fold_node(Literal(1)) is None
        assert fold_node(x) is None
        assert fold_node(E.op("+", e, 1)) is None

    def test_domain_errors_become_nan(self):
        assert fold_node(E.op("/", 1, 0)).is_nan()
        assert fold_node(E.op("/", 1.0, 0.0)).is_nan()
        assert fold_node(E.op("**", 10.0, 400)).is_nan()
        assert fold_node(E.op("*", 1e308, 10)).is_nan()

    def test_complex_result_becomes_nan(self):
        assert fold_node(E.op("**", -8, 0.5)).is_nan()

    def test_comparisons_fold_to_int(self):
        result = fold_node(E.op("<", 1, 2))
        assert result == Literal(1)
        assert type(result.value) is int
        assert fold_node(E.op("==", 1, 2)) == Literal(0)
        assert fold_node(E.op(">=", 2, 2)) == Literal(1)

    def test_boolean(self):
        assert fold_node(E.op("&", 6, 3)) == Literal(2)
        assert fold_node(E.op("|", 6, 3)) == Literal(7)
        assert fold_node(UnaryOp("~", Literal(0))) == Literal(-1)
        assert fold_node(E.op("&", 1.5, 1)).is_nan()

    def test_functions_need_math_prelude(self):
        assert fold_node(fn("log", 1)) is None
        assert fold_node(fn("log", 1), MATH_PRELUDE) == Literal(0)
        assert fold_node(fn("sqrt", 4), MATH_PRELUDE) == Literal(2.0)
        assert fold_node(fn("log", 0), MATH_PRELUDE).is_nan()
        assert fold_node(fn("sqrt", -1), MATH_PRELUDE).is_nan()

    def test_wrong_arity_not_folded(self):
        assert fold_node(fn("log", 1, 2), MATH_PRELUDE) is None

    def test_custom_prelude(self):
        prelude = {"+": nary_fold(operator.add)}
        assert fold_node(E.op("+", 1, 2), prelude) == Literal(3)
        assert fold_node(E.op("*", 1, 2), prelude) is None


class TestFoldLiterals:
    """Tests for fold_literals() and evaluate()."""

    def test_folds_subtrees(self):
        x = E.var("x")
        assert fold_literals(x + E.op("+", 1, 2)) == x + 3

    def test_unchanged_is_same_object(self):
        x = E.var("x")
        expr = x + 1
        assert fold_literals(expr) is expr

    def test_named_constant_kept(self):
        expr = e * 2
        assert fold_literals(expr) is expr

    def test_evaluate(self):
        x = E.var("x")
        assert evaluate(E.op("*", E.op("+", 1, 2), 4)) == 12
        assert evaluate(5) == 5
        assert evaluate(x + 1) is None
        assert evaluate(e + 1) is None

    def test_evaluate_with_math_prelude(self):
        assert evaluate(fn("exp", 0), MATH_PRELUDE) == 1.0
        assert evaluate(fn("exp", 0)) is None


class TestPreludes:
    """Tests for the standard preludes and fold builders."""

    def test_default_prelude_covers_operators(self):
        for op in BINARY_OPS + UNARY_OPS:
            assert op in DEFAULT_PRELUDE

    def test_math_prelude_extends_default(self):
        assert set(DEFAULT_PRELUDE) < set(MATH_PRELUDE)
        assert {"log", "exp", "sqrt", "sin", "cos"} <= set(MATH_PRELUDE)

    def test_arithmetic_prelude(self):
        assert set(ARITHMETIC_PRELUDE) == {"+", "-", "*", "/", "**"}

    def test_no_prelude(self):
        assert NO_PRELUDE == {}

    def test_nary_fold(self):
        """One operand passes through, two or more fold left to right."""
        add = nary_fold(operator.add)
        assert add([5]) == 5
        assert add([1, 2]) == 3
        assert add([1, 2, 3]) == 6
        assert add([]) is None
        assert nary_fold(operator.sub)([10, 3, 2]) == 5

    def test_unary_and_binary_only(self):
        assert unary_only(abs)([-2]) == 2
        assert unary_only(abs)([1, 2]) is None
        assert binary_only(operator.pow)([2, 3]) == 8
        assert binary_only(operator.pow)([2]) is None

    def test_special_minus(self):
        minus = special_minus()
        assert minus([5]) == -5
        assert minus([5, 2]) == 3
        assert minus([1, 2, 3]) is None

    def test_true_div(self):
        div = true_div()
        assert div([7, 2]) == 3.5
        assert div([6, 3]) == 2
        assert type(div([6, 3])) is int
        assert type(div([6.0, 3])) is float
        with pytest.raises(ZeroDivisionError):
            div([1, 0])
