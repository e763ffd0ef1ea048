"""
Core rewriter module for casimir.

This module provides pattern matching, substitution, constant folding and
single-rule rewriting over expression trees, plus the ordered rule tables
the simplifier runs.

Patterns are ordinary expressions: every Variable occurring in a pattern is
a free variable that binds to whatever subtree sits in its position.

    x, y = E.vars("x", "y")
    match(x + y, a + (b + 1))    # Bindings({'x': a, 'y': b + 1})
    match(x + x, a + b)          # NoMatch
"""

import math
import operator
from dataclasses import dataclass
from typing import (
    Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union,
)

from .expr import (
    Expression, Literal, NamedConstant, Variable, UnaryOp, BinaryOp,
    FunctionApplication, NumericType, wrap,
)

NAN = float("nan")


# ============================================================
# Bindings Class - Dict-like interface for match results
# ============================================================

def _binding_key(key: Union[str, Variable]) -> str:
    if isinstance(key, Variable):
        return key.name
    if isinstance(key, str):
        return key
    raise TypeError(f"Binding key must be a variable or a name, got {key!r}")


class Bindings:
    """
    Immutable, dict-like result of a successful match.

    Keys are variable names; a Variable may be used wherever a name is
    accepted. Bindings objects are truthy even when empty. Use NoMatch
    (which is falsy) to represent failed matches.

        if bindings := match(x + y, expr):
            print(bindings["x"], bindings[y])

    Examples:
        bindings = Bindings([("x", Literal(1))])
        bindings["x"]          # => Literal(1)
        bindings.get("z")      # => None
        "x" in bindings        # => True
        bindings.extend("z", Variable("a"))   # new Bindings, original unchanged
    """

    __slots__ = ('_dict',)

    def __init__(self, pairs: Iterable[Tuple[Union[str, Variable], Expression]] = ()):
        self._dict: Dict[str, Expression] = {
            _binding_key(name): value for name, value in pairs
        }

    def __bool__(self) -> bool:
        """Bindings are always truthy (use NoMatch for failed matches)."""
        return True

    def __getitem__(self, key: Union[str, Variable]) -> Expression:
        return self._dict[_binding_key(key)]

    def get(self, key: Union[str, Variable], default=None):
        """Get a bound value with optional default."""
        return self._dict.get(_binding_key(key), default)

    def __contains__(self, key) -> bool:
        if not isinstance(key, (str, Variable)):
            return False
        return _binding_key(key) in self._dict

    def extend(self, key: Union[str, Variable], value: Expression) -> "Bindings":
        """Return new bindings with one more entry."""
        extended = Bindings()
        extended._dict = {**self._dict, _binding_key(key): value}
        return extended

    def keys(self):
        return self._dict.keys()

    def values(self):
        return self._dict.values()

    def items(self):
        return self._dict.items()

    def __iter__(self):
        return iter(self._dict)

    def __len__(self) -> int:
        return len(self._dict)

    def __repr__(self) -> str:
        inner = ", ".join(f"{name!r}: {str(value)!r}" for name, value in self._dict.items())
        return f"Bindings({{{inner}}})"

    def __eq__(self, other):
        if isinstance(other, Bindings):
            return self._dict == other._dict
        return False

    __hash__ = None

    def to_dict(self) -> Dict[str, Expression]:
        """Convert to a plain dictionary."""
        return self._dict.copy()


class _NoMatch:
    """
    Singleton representing a failed pattern match.

    NoMatch is falsy, allowing natural use in conditionals:

        if bindings := match(pattern, expr):
            # matched
        else:
            # NoMatch
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoMatch"

    def __getitem__(self, key):
        raise KeyError(f"NoMatch has no binding for {key!r}")

    def get(self, key, default=None):
        return default

    def __contains__(self, key) -> bool:
        return False

    def __len__(self) -> int:
        return 0

    def __iter__(self):
        return iter([])


# Singleton instance
NoMatch = _NoMatch()

MatchResult = Union[Bindings, _NoMatch]


# FoldOp handler: receives list of numeric args, returns result or None (can't fold)
FoldHandler = Callable[[List[NumericType]], Optional[Any]]
FoldFuncsType = Dict[str, FoldHandler]


# ============================================================
# Fold Operation Builders
# ============================================================

def nary_fold(binary_op: Callable[[NumericType, NumericType], NumericType]) -> FoldHandler:
    """Create a folder for an operator that is both unary and binary.

    A single operand is returned unchanged (unary +); two or more are
    folded left to right.

    Examples:
        nary_fold(operator.add)  # +x = x, x + y
        nary_fold(operator.mul)  # x * y
    """
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if not args:
            return None
        result = args[0]
        for a in args[1:]:
            result = binary_op(result, a)
        return result
    return handler


def unary_only(f: Callable[[NumericType], Any]) -> FoldHandler:
    """Create a unary-only folder (e.g., ~, log, exp)."""
    def handler(args: List[NumericType]) -> Optional[Any]:
        if len(args) != 1:
            return None
        return f(args[0])
    return handler


def binary_only(f: Callable[[NumericType, NumericType], Any]) -> FoldHandler:
    """Create a binary-only folder (e.g., **, <, &)."""
    def handler(args: List[NumericType]) -> Optional[Any]:
        if len(args) != 2:
            return None
        return f(args[0], args[1])
    return handler


def special_minus() -> FoldHandler:
    """Handler for minus: -x negates, x - y subtracts."""
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) == 1:
            return -args[0]
        if len(args) == 2:
            return args[0] - args[1]
        return None
    return handler


def true_div() -> FoldHandler:
    """Division that keeps exact integer quotients as int (6 / 3 => 2).

    Division by zero raises here and is turned into NaN by the folder.
    """
    def handler(args: List[NumericType]) -> Optional[NumericType]:
        if len(args) != 2:
            return None
        a, b = args
        if isinstance(a, int) and isinstance(b, int) and b != 0 and a % b == 0:
            return a // b
        return a / b
    return handler


# ============================================================
# Standard Preludes for Constant Folding
# ============================================================

# Arithmetic prelude: unary +/- and the binary arithmetic operators
ARITHMETIC_PRELUDE: FoldFuncsType = {
    "+": nary_fold(operator.add),
    "-": special_minus(),
    "*": nary_fold(operator.mul),
    "/": true_div(),
    "**": binary_only(operator.pow),
}

# Comparison prelude: results fold to 1 (true) or 0 (false)
COMPARISON_PRELUDE: FoldFuncsType = {
    "==": binary_only(operator.eq),
    "<": binary_only(operator.lt),
    "<=": binary_only(operator.le),
    ">": binary_only(operator.gt),
    ">=": binary_only(operator.ge),
}

# Boolean prelude: the host's bitwise semantics on integers
BOOLEAN_PRELUDE: FoldFuncsType = {
    "&": binary_only(operator.and_),
    "|": binary_only(operator.or_),
    "~": unary_only(operator.invert),
}

# Default prelude: every operator in the expression model
DEFAULT_PRELUDE: FoldFuncsType = {
    **ARITHMETIC_PRELUDE,
    **COMPARISON_PRELUDE,
    **BOOLEAN_PRELUDE,
}

# Math prelude: also folds function applications on literal arguments
MATH_PRELUDE: FoldFuncsType = {
    **DEFAULT_PRELUDE,
    "log": unary_only(math.log),
    "exp": unary_only(math.exp),
    "sqrt": unary_only(math.sqrt),
    "sin": unary_only(math.sin),
    "cos": unary_only(math.cos),
}

# Empty prelude (no constant folding at all)
NO_PRELUDE: FoldFuncsType = {}


# ============================================================
# Constant Folding
# ============================================================

def _fold_key(node: Expression) -> Optional[str]:
    if isinstance(node, (UnaryOp, BinaryOp)):
        return node.op
    if isinstance(node, FunctionApplication):
        return node.name
    return None


def _as_literal(result: Any) -> Literal:
    """Turn a handler result into a Literal; out-of-domain results become NaN."""
    if isinstance(result, bool):
        return Literal(int(result))
    if not isinstance(result, (int, float)):
        return Literal(NAN)
    if isinstance(result, float) and math.isinf(result):
        return Literal(NAN)
    return Literal(result)


def fold_node(node: Expression, fold_funcs: Optional[FoldFuncsType] = None) -> Optional[Literal]:
    """
    Evaluate a single node whose children are all Literals.

    Named constants are never treated as literals here. Division by zero
    and other domain errors produce a NaN literal rather than raising.

    Args:
        node: The node to fold
        fold_funcs: Prelude to evaluate with (default: DEFAULT_PRELUDE)

    Returns:
        The folded Literal, or None if the node cannot be folded
    """
    if fold_funcs is None:
        fold_funcs = DEFAULT_PRELUDE
    key = _fold_key(node)
    if key is None or key not in fold_funcs:
        return None
    args = node.children()
    if not all(isinstance(arg, Literal) for arg in args):
        return None
    try:
        result = fold_funcs[key]([arg.value for arg in args])
    except (ArithmeticError, ValueError, TypeError):
        return Literal(NAN)
    if result is None:
        return None
    return _as_literal(result)


def _rebuild(expr: Expression, new_children: Tuple[Expression, ...]) -> Expression:
    """Rebuild expr from new children, or return expr itself if none changed."""
    if all(new is old for new, old in zip(new_children, expr.children())):
        return expr
    return expr.with_children(new_children)


def fold_literals(expr: Expression, fold_funcs: Optional[FoldFuncsType] = None) -> Expression:
    """
    Recursively fold every subtree that consists only of literals.

    For example (x + (1 + 2)) becomes (x + 3). Subtrees that do not change
    are returned as the same objects.
    """
    kids = expr.children()
    if not kids:
        return expr
    expr = _rebuild(expr, tuple(fold_literals(child, fold_funcs) for child in kids))
    folded = fold_node(expr, fold_funcs)
    return expr if folded is None else folded


def evaluate(expr, fold_funcs: Optional[FoldFuncsType] = None) -> Optional[NumericType]:
    """
    Return the numeric value of an expression built only from literals.

    Returns:
        The number, or None if the expression does not fold to a Literal
        (it contains a variable, a named constant or an unfoldable function)
    """
    result = fold_literals(wrap(expr), fold_funcs)
    if isinstance(result, Literal):
        return result.value
    return None


# ============================================================
# Pattern Matching
# ============================================================

def extend_bindings(variable: Variable, expr: Expression, bindings: MatchResult) -> MatchResult:
    """
    Bind variable to expr, checking consistency with an existing binding.

    Returns:
        Extended bindings, the same bindings if variable is already bound to
        an equal expression, or NoMatch on conflict
    """
    if bindings is NoMatch:
        return NoMatch

    if variable.name in bindings:
        if bindings[variable.name] == expr:
            return bindings
        return NoMatch

    return bindings.extend(variable.name, expr)


def lookup(variable: Variable, bindings: Union[MatchResult, Mapping]) -> Expression:
    """Return the expression bound to variable, or the variable itself."""
    return bindings.get(variable.name, variable)


def match(pattern: Expression, expr: Expression,
          bindings: Optional[MatchResult] = None) -> MatchResult:
    """
    Match a pattern against an expression.

    Matching is purely structural and one-directional: operator tags and
    function names must agree exactly, binary operands are matched left then
    right, and a Variable binds to any subtree. No associative or
    commutative regrouping is attempted.

    Args:
        pattern: The pattern; its Variables are free
        expr: The expression to match against
        bindings: Bindings accumulated so far (default: empty)

    Returns:
        Updated Bindings on success, NoMatch on failure
    """
    if bindings is None:
        bindings = Bindings()
    if bindings is NoMatch:
        return NoMatch

    if isinstance(pattern, Variable):
        return extend_bindings(pattern, expr, bindings)

    if isinstance(pattern, (Literal, NamedConstant)):
        return bindings if pattern == expr else NoMatch

    if isinstance(pattern, UnaryOp):
        if not isinstance(expr, UnaryOp) or expr.op != pattern.op:
            return NoMatch
        return match(pattern.operand, expr.operand, bindings)

    if isinstance(pattern, BinaryOp):
        if not isinstance(expr, BinaryOp) or expr.op != pattern.op:
            return NoMatch
        left = match(pattern.left, expr.left, bindings)
        return match(pattern.right, expr.right, left)

    if isinstance(pattern, FunctionApplication):
        if (not isinstance(expr, FunctionApplication)
                or expr.name != pattern.name
                or len(expr.args) != len(pattern.args)):
            return NoMatch
        for pattern_arg, expr_arg in zip(pattern.args, expr.args):
            bindings = match(pattern_arg, expr_arg, bindings)
            if bindings is NoMatch:
                break
        return bindings

    raise TypeError(f"Pattern must be an Expression, got {pattern!r}")


# ============================================================
# Substitution
# ============================================================

def _as_bindings(bindings: Union[MatchResult, Mapping]) -> MatchResult:
    if isinstance(bindings, (Bindings, _NoMatch)):
        return bindings
    return Bindings((name, wrap(value)) for name, value in bindings.items())


def substitute(template: Expression, bindings: Union[MatchResult, Mapping]) -> Expression:
    """
    Replace the variables of template by their bound expressions.

    Variables without a binding are left in place. Besides match results,
    any mapping from Variable (or name) to expression or number is accepted:

        substitute(x + 1, {x: 2})    # 2 + 1

    Args:
        template: The expression to instantiate
        bindings: Bindings, NoMatch, or a mapping

    Returns:
        The instantiated expression (template itself if nothing was bound)
    """
    bindings = _as_bindings(bindings)

    def loop(node: Expression) -> Expression:
        if isinstance(node, Variable):
            return lookup(node, bindings)
        kids = node.children()
        if not kids:
            return node
        return _rebuild(node, tuple(loop(child) for child in kids))

    return loop(wrap(template))


# ============================================================
# Rewriting
# ============================================================

def rewrite(
    expr: Expression,
    pattern: Expression,
    replacement: Expression,
    fold_funcs: Optional[FoldFuncsType] = None,
) -> Expression:
    """
    Apply one rule everywhere in expr, children first.

    At each composite node the children are rewritten, then the node is
    constant-folded if all of its children are literals; folding takes
    priority over matching at that node. Otherwise the pattern is tried and,
    on success, the instantiated replacement takes the node's place. The
    replacement is not rewritten again in the same call.

    Args:
        expr: Expression to rewrite
        pattern: Rule left-hand side
        replacement: Rule right-hand side
        fold_funcs: Prelude used for folding (default: DEFAULT_PRELUDE)

    Returns:
        The rewritten expression; expr itself when nothing changed
    """
    if fold_funcs is None:
        fold_funcs = DEFAULT_PRELUDE

    kids = expr.children()
    if kids:
        expr = _rebuild(
            expr,
            tuple(rewrite(child, pattern, replacement, fold_funcs) for child in kids),
        )
        folded = fold_node(expr, fold_funcs)
        if folded is not None:
            return folded

    bindings = match(pattern, expr)
    if bindings:
        return substitute(replacement, bindings)
    return expr


# ============================================================
# Rules and Rule Tables
# ============================================================

@dataclass(frozen=True)
class Rule:
    """A rewrite rule: pattern => replacement, with an optional name."""

    pattern: Expression
    replacement: Expression
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "pattern", wrap(self.pattern))
        object.__setattr__(self, "replacement", wrap(self.replacement))

    @property
    def label(self) -> str:
        return self.name or "<anonymous>"

    def __str__(self) -> str:
        head = f"@{self.name}" if self.name else "@<anonymous>"
        if self.description:
            head += f" \"{self.description}\""
        return f"{head}: {self.pattern} => {self.replacement}"


class RuleTable:
    """
    An immutable, ordered sequence of rules.

    Order matters: the simplifier tries rules from the top and the first one
    that changes the expression wins. Tables combine with +, which appends:

        table = ALGEBRA_RULES + ELEMENTARY_RULES

    Rules can be looked up by index or by name:

        table[0]            # first rule
        table["add-zero"]   # rule named add-zero
        "add-zero" in table
    """

    __slots__ = ("_rules", "_names")

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: Tuple[Rule, ...] = tuple(rules)
        for rule in self._rules:
            if not isinstance(rule, Rule):
                raise TypeError(f"RuleTable entries must be Rule objects, got {rule!r}")
        self._names: Dict[str, int] = {}
        for idx, rule in enumerate(self._rules):
            if rule.name:
                self._names[rule.name] = idx

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __getitem__(self, key: Union[int, str]) -> Rule:
        if isinstance(key, str):
            if key not in self._names:
                raise KeyError(f"No rule named '{key}'")
            return self._rules[self._names[key]]
        return self._rules[key]

    def __contains__(self, name) -> bool:
        return name in self._names

    def __add__(self, other: "RuleTable") -> "RuleTable":
        if not isinstance(other, RuleTable):
            return NotImplemented
        return RuleTable(self._rules + other._rules)

    def __eq__(self, other):
        if isinstance(other, RuleTable):
            return self._rules == other._rules
        return False

    __hash__ = None

    def names(self) -> List[str]:
        """Names of the named rules, in table order."""
        return [rule.name for rule in self._rules if rule.name]

    def list_rules(self) -> List[str]:
        """Human-readable listing, one line per rule."""
        return [f"[{idx}] {rule}" for idx, rule in enumerate(self._rules)]

    def __repr__(self) -> str:
        return f"RuleTable({len(self._rules)} rules)"


class RuleTableBuilder:
    """
    Collects rules in call order, then freezes them into a RuleTable.

    Example:
        x = Variable("x")
        table = (RuleTableBuilder()
                 .rule(x + 0, x, "add-zero")
                 .rule(x * 1, x, "mul-one")
                 .build())

    build() takes a snapshot; rules added afterwards only show up in tables
    built later.
    """

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: List[Rule] = list(rules)

    def rule(self, pattern, replacement, name: Optional[str] = None,
             description: Optional[str] = None) -> "RuleTableBuilder":
        """Append a single rule."""
        self._rules.append(Rule(pattern, replacement, name, description))
        return self

    def extend(self, rules: Iterable[Rule]) -> "RuleTableBuilder":
        """Append every rule of another table, keeping its order."""
        for rule in rules:
            if not isinstance(rule, Rule):
                raise TypeError(f"Expected a Rule, got {rule!r}")
            self._rules.append(rule)
        return self

    def build(self) -> RuleTable:
        return RuleTable(self._rules)

    def __len__(self) -> int:
        return len(self._rules)
