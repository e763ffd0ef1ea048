"""
Simplifier engine for casimir.

The simplifier owns an ordered rule table and rewrites an expression to a
fixed point:

    1. Try each rule in table order with rewrite(). The first rule that
       changes the expression wins, and the scan restarts from the top.
    2. If no rule fires, fold every literal-only subtree.
    3. If that changes nothing either, the expression is the result.

Restarting from the top lets foundational identities such as x - x => 0
fire again on structure produced by later rules.

Example:
    from casimir import E, simplify

    x = E.var("x")
    simplify(x * x + x + x + 1)          # x**2 + 2*x + 1

    result, trace = simplify(x + 0, trace=True)
    print(trace.format("rules"))         # add-zero

Tables are immutable, so a Simplifier can be shared between threads. There
is no termination guarantee for arbitrary tables; max_steps bounds the
number of rewrites and RewriteLimitError reports when it is exceeded.
"""

import logging
from collections import Counter
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from .algebra import ALGEBRA_RULES
from .elementary import ELEMENTARY_RULES
from .expr import Expression, wrap
from .rewriter import (
    Bindings, DEFAULT_PRELUDE, FoldFuncsType, FoldHandler, MatchResult, Rule,
    RuleTable, fold_literals, match as _match, rewrite, substitute,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 1000

DEFAULT_RULES = ALGEBRA_RULES + ELEMENTARY_RULES


class RewriteLimitError(RuntimeError):
    """Raised when simplification does not reach a fixed point in time.

    Attributes:
        expression: The last expression reached before giving up
        steps: Number of rewrite steps performed
    """

    def __init__(self, message: str, expression: Optional[Expression] = None,
                 steps: int = 0):
        super().__init__(message)
        self.expression = expression
        self.steps = steps


class RewriteStep:
    """A single step in a rewriting trace.

    Constant folding passes have rule_index -1 and no rule.
    """

    def __init__(self, rule_index: int, rule: Optional[Rule],
                 before: Expression, after: Expression):
        self.rule_index = rule_index
        self.rule = rule
        self.before = before
        self.after = after

    @property
    def name(self) -> str:
        if self.rule is None:
            return "fold"
        return self.rule.name or f"rule[{self.rule_index}]"

    def __repr__(self) -> str:
        return f"{self.name}: {self.before} → {self.after}"

    def to_dict(self) -> Dict:
        """Convert step to dictionary for serialization."""
        return {
            "rule_index": self.rule_index,
            "rule_name": self.name,
            "description": self.rule.description if self.rule else None,
            "before": str(self.before),
            "after": str(self.after),
        }


class RewriteTrace:
    """
    The sequence of steps one simplify() call took, from initial to final.

    format() renders it in one of TRACE_STYLES:

        verbose   numbered steps with rule descriptions (same as repr)
        compact   "x*1 + 0 --[add-zero, mul-one]--> x"
        rules     "add-zero -> mul-one"
        chain     each intermediate expression on its own line

    to_dict() gives a JSON-serialisable form with every expression rendered
    as a string.
    """

    TRACE_STYLES = ("verbose", "compact", "rules", "chain")

    def __init__(self, initial: Optional[Expression] = None):
        self.steps: List[RewriteStep] = []
        self.initial: Optional[Expression] = initial
        self.final: Optional[Expression] = None

    def add_step(self, step: RewriteStep):
        self.steps.append(step)

    def format(self, style: str = "verbose") -> str:
        """
        Render the trace.

        Raises:
            ValueError: If style is not one of TRACE_STYLES
        """
        if style not in self.TRACE_STYLES:
            raise ValueError(f"Unknown trace style: {style}. "
                             f"Valid options: {', '.join(self.TRACE_STYLES)}")
        return getattr(self, f"_format_{style}")()

    def _format_verbose(self) -> str:
        lines = [f"Initial: {self.initial}"]
        for number, step in enumerate(self.steps, 1):
            note = ""
            if step.rule is not None and step.rule.description:
                note = f" ({step.rule.description})"
            lines.append(f"  {number}. {step!r}{note}")
        lines.append(f"Final: {self.final}")
        return "\n".join(lines)

    def _format_compact(self) -> str:
        return f"{self.initial} --[{', '.join(self.rules_applied())}]--> {self.final}"

    def _format_rules(self) -> str:
        return " -> ".join(self.rules_applied()) or "(no rules applied)"

    def _format_chain(self) -> str:
        lines = [str(self.initial)]
        for step in self.steps:
            lines += [f"  --({step.name})-->", str(step.after)]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self._format_verbose()

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[RewriteStep]:
        return iter(self.steps)

    def __bool__(self) -> bool:
        """False when simplification changed nothing."""
        return bool(self.steps)

    def to_dict(self) -> Dict:
        return {
            "initial": str(self.initial),
            "final": str(self.final),
            "steps": [step.to_dict() for step in self.steps],
            "step_count": len(self.steps),
        }

    def rules_applied(self) -> List[str]:
        """Step names in order; folding passes appear as "fold"."""
        return [step.name for step in self.steps]

    def rule_counts(self) -> Dict[str, int]:
        return dict(Counter(self.rules_applied()))

    def summary(self) -> str:
        if not self.steps:
            return "No rewriting performed"
        counts = Counter(self.rules_applied())
        top, uses = counts.most_common(1)[0]
        return (f"{len(self.steps)} steps using {len(counts)} unique rules. "
                f"Most used: {top} ({uses}x)")


def _as_table(rules) -> RuleTable:
    if isinstance(rules, RuleTable):
        return rules
    return RuleTable(rule if isinstance(rule, Rule) else Rule(*rule) for rule in rules)


def _check_max_steps(max_steps: int) -> int:
    if isinstance(max_steps, bool) or not isinstance(max_steps, int) or max_steps < 1:
        raise ValueError(f"max_steps must be a positive integer, got {max_steps!r}")
    return max_steps


class Simplifier:
    """
    Rewrites expressions to a fixed point with an ordered rule table.

    Example:
        from casimir import Simplifier, ALGEBRA_RULES, NO_PRELUDE

        # Default table (algebra + elementary functions)
        simplifier = Simplifier()
        simplifier(x + 0)                        # x

        # Custom table appended after the algebra rules
        simplifier = Simplifier(ALGEBRA_RULES).with_rules(my_rules)

        # No constant folding at all
        Simplifier(fold_funcs=NO_PRELUDE)
    """

    def __init__(self, rules: Union[RuleTable, Iterable, None] = None,
                 fold_funcs: Optional[FoldFuncsType] = None,
                 max_steps: int = DEFAULT_MAX_STEPS):
        """
        Initialize a Simplifier.

        Args:
            rules: RuleTable, or an iterable of Rule objects or
                (pattern, replacement) pairs. Default: DEFAULT_RULES.
            fold_funcs: Prelude for constant folding. Default: DEFAULT_PRELUDE.
                Pass NO_PRELUDE to disable folding.
            max_steps: Maximum number of rewrites per simplify() call.
        """
        self._rules = DEFAULT_RULES if rules is None else _as_table(rules)
        self._fold_funcs: FoldFuncsType = dict(
            DEFAULT_PRELUDE if fold_funcs is None else fold_funcs
        )
        self._max_steps = _check_max_steps(max_steps)

    @property
    def rules(self) -> RuleTable:
        return self._rules

    @property
    def fold_funcs(self) -> Mapping[str, FoldHandler]:
        """Read-only view of this simplifier's prelude."""
        return MappingProxyType(self._fold_funcs)

    @property
    def max_steps(self) -> int:
        return self._max_steps

    def with_rules(self, rules) -> "Simplifier":
        """Return a new simplifier whose table has rules appended."""
        return Simplifier(self._rules + _as_table(rules),
                          fold_funcs=self._fold_funcs,
                          max_steps=self._max_steps)

    def match(self, pattern, expr) -> MatchResult:
        """
        Match a pattern against an expression at the root.

        Example:
            if bindings := simplifier.match(x + y, expr):
                print(bindings["x"], bindings["y"])
        """
        return _match(wrap(pattern), wrap(expr))

    def apply_once(self, expr) -> Tuple[Expression, Optional[Rule]]:
        """
        Apply at most one rule at the root of the expression.

        Tries each rule in order and returns after the first match. Does not
        recurse into subexpressions and does not fold constants.

        Returns:
            Tuple of (result, rule); rule is None if nothing matched
        """
        expr = wrap(expr)
        for rule in self._rules:
            bindings = _match(rule.pattern, expr)
            if bindings:
                return substitute(rule.replacement, bindings), rule
        return expr, None

    def rules_matching(self, expr) -> List[Tuple[Rule, Bindings]]:
        """
        Find all rules whose pattern matches at the root of expr.

        Useful for understanding why an expression isn't simplifying.
        """
        expr = wrap(expr)
        matching = []
        for rule in self._rules:
            bindings = _match(rule.pattern, expr)
            if bindings:
                matching.append((rule, bindings))
        return matching

    def _next_step(self, current: Expression) -> Optional[RewriteStep]:
        """Find the first rewrite that changes current, or None at a fixed point."""
        for index, rule in enumerate(self._rules):
            candidate = rewrite(current, rule.pattern, rule.replacement, self._fold_funcs)
            if candidate is not current and candidate != current:
                logger.debug("%s: %s -> %s", rule.label, current, candidate)
                return RewriteStep(index, rule, current, candidate)

        folded = fold_literals(current, self._fold_funcs)
        if folded is not current and folded != current:
            logger.debug("fold: %s -> %s", current, folded)
            return RewriteStep(-1, None, current, folded)
        return None

    def simplify(self, expr, trace: bool = False, max_steps: Optional[int] = None):
        """
        Simplify an expression to a fixed point.

        Args:
            expr: Expression (or raw number) to simplify
            trace: If True, return (result, trace) tuple
            max_steps: Override the rewrite ceiling for this call

        Returns:
            Simplified expression, or (expression, trace) if trace=True

        Raises:
            RewriteLimitError: If no fixed point is reached within max_steps
                rewrites, or the expression is too deep to traverse
        """
        limit = self._max_steps if max_steps is None else _check_max_steps(max_steps)
        current = wrap(expr)
        trace_obj = RewriteTrace(current) if trace else None
        steps = 0

        try:
            while True:
                step = self._next_step(current)
                if step is None:
                    break
                if steps == limit:
                    logger.warning("No fixed point after %d steps: %s", steps, current)
                    raise RewriteLimitError(
                        f"No fixed point reached after {steps} rewrite steps",
                        expression=current, steps=steps)
                steps += 1
                if trace_obj is not None:
                    trace_obj.add_step(step)
                current = step.after
        except RecursionError as exc:
            logger.warning("Expression too deep to simplify after %d steps", steps)
            raise RewriteLimitError(
                f"Expression too deep to simplify (after {steps} rewrite steps)",
                expression=current, steps=steps) from exc

        if trace_obj is not None:
            trace_obj.final = current
            return current, trace_obj
        return current

    def __call__(self, expr, **kwargs):
        """Shorthand for simplify()."""
        return self.simplify(expr, **kwargs)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"Simplifier({len(self._rules)} rules)"


_default_simplifier = Simplifier(DEFAULT_RULES)


def simplify(expr, trace: bool = False, max_steps: Optional[int] = None):
    """Simplify with the default rule table (algebra + elementary functions)."""
    return _default_simplifier.simplify(expr, trace=trace, max_steps=max_steps)
