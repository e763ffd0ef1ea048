"""
Elementary constants and functions: e, pi, log and exp.

Importing this module does not change any existing rule table; the
identities below are exposed as ELEMENTARY_RULES and appended to the
algebra rules to form the default table in casimir.engine.
"""

import math

from .expr import E, Function, NamedConstant, wrap
from .rewriter import RuleTable, RuleTableBuilder

e = NamedConstant("e", math.e)
pi = NamedConstant("pi", math.pi)

log = Function("log")
exp = Function("exp")


def _elementary_rules() -> RuleTable:
    x, y = E.vars("x", "y")
    nan = wrap(float("nan"))

    return (
        RuleTableBuilder()
        .rule(log(1), 0, "log-one")
        .rule(log(0), nan, "log-zero")
        .rule(log(e), 1, "log-e")
        .rule(log(exp(x)), x, "log-exp")
        .rule(exp(log(x)), x, "exp-log")
        .rule(log(x) + log(y), log(x * y), "log-sum")
        .rule(log(x) - log(y), log(x / y), "log-difference")
        .build()
    )


ELEMENTARY_RULES = _elementary_rules()
