"""
CASIMIR - Computer Algebra by Simplifying with Identity-Matching Rewrites

A small computer-algebra core: expression trees, structural pattern
matching, and a fixed-point simplifier driven by an ordered table of
algebraic identities plus constant folding.

Quick Start:
    from casimir import E, simplify

    x, y = E.vars("x", "y")

    simplify(x * x + x + x + 1)     # x**2 + 2*x + 1
    simplify(y * x * x)             # y*x**2
    simplify(E(5) * 20 + 30 + 7)    # 137
    simplify(x / 0)                 # NaN

Matching:
    from casimir import match

    a, b = E.vars("a", "b")
    match(x + x, a + a)             # Bindings({'x': 'a'})
    match(x + x, a + b)             # NoMatch

Custom rules:
    from casimir import RuleTableBuilder, Simplifier, ALGEBRA_RULES

    double = E.fn("double", x)
    extra = RuleTableBuilder().rule(double, 2 * x, "double").build()
    simplifier = Simplifier(ALGEBRA_RULES + extra)
    simplifier(E.fn("double", 3))   # 6

Elementary functions:
    from casimir import log, exp, e

    simplify(log(e))                # 1
    simplify(log(x) + log(y))       # log(x*y)
"""

__version__ = "0.1.0"

# Expression model
from .expr import (
    Expression,
    Literal,
    NamedConstant,
    Variable,
    UnaryOp,
    BinaryOp,
    FunctionApplication,
    Function,
    NumericType,
    E,
    wrap,
    children,
    is_constant,
    to_display_string,
    to_full_string,
)

# Core rewriter components
from .rewriter import (
    match,
    substitute,
    rewrite,
    extend_bindings,
    lookup,
    fold_node,
    fold_literals,
    evaluate,
    # Bindings classes
    Bindings,
    NoMatch,
    # Fold operation builders
    FoldHandler,
    FoldFuncsType,
    nary_fold,
    unary_only,
    binary_only,
    special_minus,
    true_div,
    # Standard preludes
    ARITHMETIC_PRELUDE,
    COMPARISON_PRELUDE,
    BOOLEAN_PRELUDE,
    DEFAULT_PRELUDE,
    MATH_PRELUDE,
    NO_PRELUDE,
    # Rule tables
    Rule,
    RuleTable,
    RuleTableBuilder,
)

# Standard rule tables
from .algebra import ALGEBRA_RULES
from .elementary import ELEMENTARY_RULES, e, pi, log, exp

# Engine
from .engine import (
    Simplifier,
    RewriteStep,
    RewriteTrace,
    RewriteLimitError,
    DEFAULT_RULES,
    DEFAULT_MAX_STEPS,
    simplify,
)

# Public API
__all__ = [
    # Version
    "__version__",
    # Expression model
    "Expression",
    "Literal",
    "NamedConstant",
    "Variable",
    "UnaryOp",
    "BinaryOp",
    "FunctionApplication",
    "Function",
    "NumericType",
    "E",
    "wrap",
    "children",
    "is_constant",
    "to_display_string",
    "to_full_string",
    # Core
    "match",
    "substitute",
    "rewrite",
    "extend_bindings",
    "lookup",
    "fold_node",
    "fold_literals",
    "evaluate",
    # Bindings
    "Bindings",
    "NoMatch",
    # Fold operation builders
    "FoldHandler",
    "FoldFuncsType",
    "nary_fold",
    "unary_only",
    "binary_only",
    "special_minus",
    "true_div",
    # Standard preludes
    "ARITHMETIC_PRELUDE",
    "COMPARISON_PRELUDE",
    "BOOLEAN_PRELUDE",
    "DEFAULT_PRELUDE",
    "MATH_PRELUDE",
    "NO_PRELUDE",
    # Rule tables
    "Rule",
    "RuleTable",
    "RuleTableBuilder",
    "ALGEBRA_RULES",
    "ELEMENTARY_RULES",
    "DEFAULT_RULES",
    # Elementary functions and constants
    "e",
    "pi",
    "log",
    "exp",
    # Engine
    "Simplifier",
    "RewriteStep",
    "RewriteTrace",
    "RewriteLimitError",
    "DEFAULT_MAX_STEPS",
    "simplify",
]
