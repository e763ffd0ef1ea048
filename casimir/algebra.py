"""
Algebraic identities used by the default simplifier.

The order of the rules matters. The simplifier restarts from the top after
every successful rewrite, so earlier rules act as preconditions for later
ones: x / 0 must be tried before x / x, and 0 ** 0 before 0 ** x.

Division by zero always produces NaN. If x were known to be strictly
positive (negative), x / 0 could arguably be +Infinity (-Infinity), but
nothing here tracks signs.

Known inputs that do not simplify fully (no commutative normalisation):
    3 * (2 * x)
    2 * x * x * 3
    2 * x * 3 * y * 4 * z * 5 * 6
    3 + x + 4 + x
"""

from .expr import E, wrap
from .rewriter import RuleTable, RuleTableBuilder


def _algebra_rules() -> RuleTable:
    w, x, y, z = E.vars("w", "x", "y", "z")
    zero = wrap(0)
    nan = wrap(float("nan"))

    return (
        RuleTableBuilder()
        # Identities after Norvig, Paradigms of AI Programming, ch. 8
        .rule(x + 0, x, "add-zero")
        .rule(0 + x, x, "zero-add")
        .rule(x + x, 2 * x, "add-self")
        .rule(x - 0, x, "sub-zero")
        .rule(0 - x, -x, "zero-sub")
        .rule(x - x, 0, "sub-self")
        .rule(+x, x, "pos")
        .rule(-(-x), x, "neg-neg")
        .rule(x * 1, x, "mul-one")
        .rule(1 * x, x, "one-mul")
        .rule(x * 0, 0, "mul-zero")
        .rule(0 * x, 0, "zero-mul")
        .rule(x * x, x ** 2, "mul-self")
        .rule(x / 0, nan, "div-zero", "division by zero is NaN")
        .rule(0 / x, 0, "zero-div")
        .rule(x / 1, x, "div-one")
        .rule(x / x, 1, "div-self")
        .rule(zero ** 0, 1, "zero-pow-zero", "0 ** 0 is 1")
        .rule(x ** 0, 1, "pow-zero")
        .rule(0 ** x, 0, "zero-pow")
        .rule(1 ** x, 1, "one-pow")
        .rule(x ** 1, x, "pow-one")
        .rule(x ** -1, 1 / x, "pow-neg-one")
        .rule(x * (y / x), y, "mul-div-cancel")
        .rule((y / x) * x, y, "div-mul-cancel")
        .rule((y * x) / x, y, "mul-right-div-cancel")
        .rule((x * y) / x, y, "mul-left-div-cancel")
        .rule(x + -x, 0, "add-neg")
        .rule(-x + x, 0, "neg-add")
        .rule(x + y - x, y, "add-sub-cancel")
        .rule(x - y - x, -y, "sub-sub-cancel")
        .rule((x ** y) * (x ** z), x ** (y + z), "pow-product")
        .rule((x ** y) / (x ** z), x ** (y - z), "pow-quotient")
        # Rebalancing: regroup left-nested sums and products to the right so
        # the identities above can see adjacent operands. This is not real
        # associativity handling.
        .rule((w + x) + y, w + (x + y), "add-assoc")
        .rule((w * x) * y, w * (x * y), "mul-assoc")
        .build()
    )


ALGEBRA_RULES = _algebra_rules()
