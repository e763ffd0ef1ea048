"""
Expression trees for casimir.

CASIMIR - Computer Algebra by Simplifying with Identity-Matching Rewrites

Every node is an immutable value. Equality is structural, so two separately
built trees with the same shape compare equal and hash alike, and subtrees
may be shared freely between parents.

Node kinds:
    Literal(value)                    - a number, e.g. 2 or 0.5
    NamedConstant(name, value)        - a named number such as e or pi
    Variable(name)                    - a symbol, e.g. x
    UnaryOp(op, operand)              - op is one of + - ~
    BinaryOp(op, left, right)         - op is one of + - * / ** == < <= > >= & |
    FunctionApplication(name, args)   - e.g. log(x)

Building expressions:
    from casimir import E

    x, y = E.vars("x", "y")
    expr = x * x + 2 * y       # numbers are lifted with wrap()
    expr = E.op("+", x, 1)     # explicit constructor
    E.fn("log", x)             # function application
"""

import math
from dataclasses import dataclass
from typing import Callable, Sequence, Tuple, Union

NumericType = Union[int, float]

UNARY_OPS = ("+", "-", "~")
ARITHMETIC_OPS = ("+", "-", "*", "/", "**")
COMPARISON_OPS = ("==", "<", "<=", ">", ">=")
BOOLEAN_OPS = ("&", "|")
BINARY_OPS = ARITHMETIC_OPS + COMPARISON_OPS + BOOLEAN_OPS

# Higher binds tighter; only the ordering is meaningful.
ATOM_PRECEDENCE = 100
UNARY_PRECEDENCE = 70
BINARY_PRECEDENCE = {
    "**": 80,
    "*": 60, "/": 60,
    "+": 50, "-": 50,
    "&": 40,
    "|": 30,
    "<": 20, "<=": 20, ">": 20, ">=": 20,
    "==": 10,
}

# Operators rendered without surrounding spaces: 2*x, x**2
TIGHT_OPS = ("*", "**")


def _format_number(value: NumericType) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
    return str(value)


def _check_name(kind: str, name) -> None:
    if not isinstance(name, str):
        raise TypeError(f"{kind} name must be a string, got {name!r}")
    if not name:
        raise ValueError(f"{kind} name must not be empty")


def _binary_method(op: str, reflected: bool = False) -> Callable:
    """Build an operator method that lifts a raw number with wrap()."""
    def method(self, other):
        if not isinstance(other, (Expression, int, float)):
            return NotImplemented
        other = wrap(other)
        if reflected:
            return BinaryOp(op, other, self)
        return BinaryOp(op, self, other)
    return method


def _unary_method(op: str) -> Callable:
    def method(self):
        return UnaryOp(op, self)
    return method


class Expression:
    """
    Base class of all expression nodes.

    Subclasses provide children(), with_children() and the two renderings.
    The operator methods build new trees; they never mutate an existing one.
    Because == is structural equality, an equality *expression* is built
    with eq():

        (x + 1).eq(y)    # BinaryOp("==", x + 1, y)
    """

    __add__ = _binary_method("+")
    __radd__ = _binary_method("+", reflected=True)
    __sub__ = _binary_method("-")
    __rsub__ = _binary_method("-", reflected=True)
    __mul__ = _binary_method("*")
    __rmul__ = _binary_method("*", reflected=True)
    __truediv__ = _binary_method("/")
    __rtruediv__ = _binary_method("/", reflected=True)
    __pow__ = _binary_method("**")
    __rpow__ = _binary_method("**", reflected=True)
    __and__ = _binary_method("&")
    __rand__ = _binary_method("&", reflected=True)
    __or__ = _binary_method("|")
    __ror__ = _binary_method("|", reflected=True)
    __lt__ = _binary_method("<")
    __le__ = _binary_method("<=")
    __gt__ = _binary_method(">")
    __ge__ = _binary_method(">=")
    __neg__ = _unary_method("-")
    __pos__ = _unary_method("+")
    __invert__ = _unary_method("~")

    def eq(self, other) -> "BinaryOp":
        """Build the equality expression self == other."""
        return BinaryOp("==", self, wrap(other))

    @property
    def precedence(self) -> int:
        """Binding strength used only to decide where parentheses go."""
        return ATOM_PRECEDENCE

    def children(self) -> Tuple["Expression", ...]:
        """Direct subexpressions, left to right."""
        return ()

    def with_children(self, children: Sequence["Expression"]) -> "Expression":
        """Return a node of the same shape with the given children."""
        return self

    def is_constant(self) -> bool:
        """True when no Variable occurs anywhere in this tree."""
        return all(child.is_constant() for child in self.children())

    def to_display_string(self) -> str:
        raise NotImplementedError

    def to_full_string(self) -> str:
        return self.to_display_string()

    def __str__(self) -> str:
        return self.to_display_string()


@dataclass(frozen=True, eq=False)
class Literal(Expression):
    """An anonymous number (e.g. 1 or 4.2). NaN literals compare equal."""

    value: NumericType

    def __post_init__(self):
        if isinstance(self.value, bool):
            object.__setattr__(self, "value", int(self.value))
        elif not isinstance(self.value, (int, float)):
            raise TypeError(f"Literal value must be a number, got {self.value!r}")

    def is_nan(self) -> bool:
        return isinstance(self.value, float) and math.isnan(self.value)

    def __eq__(self, other):
        if not isinstance(other, Literal):
            return NotImplemented
        if self.is_nan() or other.is_nan():
            return self.is_nan() and other.is_nan()
        return self.value == other.value

    def __hash__(self):
        if self.is_nan():
            return hash((Literal, "nan"))
        return hash((Literal, self.value))

    @property
    def precedence(self) -> int:
        # A negative number is displayed with a leading minus sign.
        if self.value < 0:
            return UNARY_PRECEDENCE
        return ATOM_PRECEDENCE

    def is_constant(self) -> bool:
        return True

    def to_display_string(self) -> str:
        return _format_number(self.value)


@dataclass(frozen=True)
class NamedConstant(Expression):
    """
    A named number such as e or pi.

    The value is known, but constant folding never replaces a named constant
    with a Literal; only an explicit rule (e.g. log(e) => 1) consumes it.
    """

    name: str
    value: NumericType

    def __post_init__(self):
        _check_name("NamedConstant", self.name)
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise TypeError(f"NamedConstant value must be a number, got {self.value!r}")

    def is_constant(self) -> bool:
        return True

    def to_display_string(self) -> str:
        return self.name


@dataclass(frozen=True)
class Variable(Expression):
    """A symbol. In a rule pattern every Variable is a free variable."""

    name: str

    def __post_init__(self):
        _check_name("Variable", self.name)

    def is_constant(self) -> bool:
        return False

    def to_display_string(self) -> str:
        return self.name


@dataclass(frozen=True)
class UnaryOp(Expression):
    """Unary identity (+), negation (-) or logical not (~)."""

    op: str
    operand: Expression

    def __post_init__(self):
        if self.op not in UNARY_OPS:
            raise ValueError(f"Unknown unary operator: {self.op!r}")
        if not isinstance(self.operand, Expression):
            raise TypeError(f"Operand must be an Expression, got {self.operand!r}")

    @property
    def precedence(self) -> int:
        return UNARY_PRECEDENCE

    def children(self) -> Tuple[Expression, ...]:
        return (self.operand,)

    def with_children(self, children: Sequence[Expression]) -> "UnaryOp":
        (operand,) = children
        return UnaryOp(self.op, operand)

    def to_display_string(self) -> str:
        text = self.operand.to_display_string()
        if self.op == "+":
            return text
        if self.operand.precedence < self.precedence:
            text = f"({text})"
        return f"{self.op}{text}"

    def to_full_string(self) -> str:
        return f"{self.op}({self.operand.to_full_string()})"


@dataclass(frozen=True)
class BinaryOp(Expression):
    """Arithmetic, comparison or boolean operator applied to two operands."""

    op: str
    left: Expression
    right: Expression

    def __post_init__(self):
        if self.op not in BINARY_OPS:
            raise ValueError(f"Unknown binary operator: {self.op!r}")
        for operand in (self.left, self.right):
            if not isinstance(operand, Expression):
                raise TypeError(f"Operand must be an Expression, got {operand!r}")

    @property
    def precedence(self) -> int:
        return BINARY_PRECEDENCE[self.op]

    def children(self) -> Tuple[Expression, ...]:
        return (self.left, self.right)

    def with_children(self, children: Sequence[Expression]) -> "BinaryOp":
        left, right = children
        return BinaryOp(self.op, left, right)

    def to_display_string(self) -> str:
        parts = []
        for child in self.children():
            text = child.to_display_string()
            if child.precedence < self.precedence:
                text = f"({text})"
            parts.append(text)
        separator = self.op if self.op in TIGHT_OPS else f" {self.op} "
        return separator.join(parts)

    def to_full_string(self) -> str:
        return f"({self.left.to_full_string()} {self.op} {self.right.to_full_string()})"


@dataclass(frozen=True)
class FunctionApplication(Expression):
    """A named function applied to one or more arguments, e.g. log(x)."""

    name: str
    args: Tuple[Expression, ...]

    def __post_init__(self):
        _check_name("Function", self.name)
        args = tuple(self.args)
        if not args:
            raise ValueError(f"Function {self.name!r} must have at least one argument")
        for arg in args:
            if not isinstance(arg, Expression):
                raise TypeError(f"Argument must be an Expression, got {arg!r}")
        object.__setattr__(self, "args", args)

    def children(self) -> Tuple[Expression, ...]:
        return self.args

    def with_children(self, children: Sequence[Expression]) -> "FunctionApplication":
        return FunctionApplication(self.name, tuple(children))

    def to_display_string(self) -> str:
        inner = ", ".join(arg.to_display_string() for arg in self.args)
        return f"{self.name}({inner})"

    def to_full_string(self) -> str:
        inner = ", ".join(arg.to_full_string() for arg in self.args)
        return f"{self.name}({inner})"


@dataclass(frozen=True)
class Function:
    """
    A function symbol. Calling it builds a FunctionApplication.

    Example:
        log = Function("log")
        log(x)      # FunctionApplication("log", (x,))
        log(1)      # arguments are lifted with wrap()
    """

    name: str

    def __post_init__(self):
        _check_name("Function", self.name)

    def __call__(self, *args) -> FunctionApplication:
        return FunctionApplication(self.name, tuple(wrap(arg) for arg in args))

    def __str__(self) -> str:
        return self.name


def wrap(value) -> Expression:
    """
    Lift a raw number into a Literal; an Expression is returned unchanged.

    Raises:
        TypeError: If value is neither a number nor an Expression
    """
    if isinstance(value, Expression):
        return value
    if isinstance(value, (int, float)):
        return Literal(value)
    raise TypeError(f"{value!r} is not a number or a symbolic expression")


def children(expr: Expression) -> Tuple[Expression, ...]:
    """Direct subexpressions of expr, left to right."""
    return wrap(expr).children()


def is_constant(expr: Expression) -> bool:
    return wrap(expr).is_constant()


def to_display_string(expr: Expression) -> str:
    """Render with the fewest parentheses the precedence table allows."""
    return wrap(expr).to_display_string()


def to_full_string(expr: Expression) -> str:
    """Render with every composite node parenthesised."""
    return wrap(expr).to_full_string()


# ============================================================
# Expression Builder
# ============================================================

class _ExprBuilder:
    """
    Expression builder for casimir.

    Examples:
        from casimir import E

        E(2)                        # Literal(2)
        x, y = E.vars("x", "y")
        E.op("+", x, E.op("*", 2, y))
        E.op("-", x)                # unary negation
        E.fn("log", x)
        E.named("e", 2.718281828459045)
    """

    def __call__(self, value) -> Expression:
        """Wrap a number (or pass an Expression through)."""
        return wrap(value)

    def var(self, name: str) -> Variable:
        return Variable(name)

    def vars(self, *names: str) -> Tuple[Variable, ...]:
        """
        Create multiple variables for unpacking.

        Example:
            x, y, z = E.vars("x", "y", "z")
        """
        return tuple(Variable(name) for name in names)

    def const(self, value: NumericType) -> Literal:
        return Literal(value)

    def named(self, name: str, value: NumericType) -> NamedConstant:
        return NamedConstant(name, value)

    def op(self, op: str, *operands) -> Expression:
        """
        Build an operator node; one operand gives a UnaryOp, two a BinaryOp.

        Raises:
            ValueError: If the operator is unknown or the arity is not 1 or 2
        """
        wrapped = [wrap(operand) for operand in operands]
        if len(wrapped) == 1:
            return UnaryOp(op, wrapped[0])
        if len(wrapped) == 2:
            return BinaryOp(op, wrapped[0], wrapped[1])
        raise ValueError(f"Operator {op!r} takes one or two operands, got {len(wrapped)}")

    def fn(self, name: str, *args) -> FunctionApplication:
        return Function(name)(*args)

    def __repr__(self) -> str:
        return "E (expression builder)"


# Singleton instance
E = _ExprBuilder()
