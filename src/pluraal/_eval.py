"""Recursive evaluator for Pluraal expressions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ._errors import (
    CyclicReferenceError,
    EvaluationDepthError,
    NoCaseMatchedError,
    NoRuleMatchedError,
    TypeMismatchError,
    VariableNotFoundError,
)
from ._expr import FiniteBranch, IfThenElse, Literal, LiteralKind, Reference, RuleChain

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._expr import Branch, Expression

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 256
"""Deepest nesting of sub-expressions and reference hops allowed in one evaluation."""

OTHERWISE = "otherwise"


@dataclass(frozen=True, slots=True)
class BranchDecision:
    """The arm selected when a branch node was evaluated.

    Attributes:
        branch: The branch node, compared by identity.
        selected: ``"then"``, ``"else"``, ``"rules[i]"``, ``"cases[i]"`` or ``"otherwise"``.

    """

    branch: Branch
    selected: str


@dataclass(slots=True)
class EvaluationTrace:
    """Records which arm of each branch node an evaluation took."""

    decisions: list[BranchDecision] = field(default_factory=list)

    def record(self, branch: Branch, selected: str) -> None:
        self.decisions.append(BranchDecision(branch=branch, selected=selected))

    def selection_for(self, branch: Branch) -> str | None:
        """Get the arm most recently taken by this exact node, or None if it was never reached."""
        for decision in reversed(self.decisions):
            if decision.branch is branch:
                return decision.selected
        return None


def structurally_equal(left: Expression, right: Expression) -> bool:
    """Compare two reduced expressions for finite-branch case matching.

    Literals match on kind and exact value, references on name alone. Branches
    never match anything.
    """
    match left, right:
        case Literal(), Literal():
            return left == right
        case Reference(name=left_name), Reference(name=right_name):
            return left_name == right_name
        case _:
            return False


def _require_bool(value: Expression, what: str) -> bool:
    if isinstance(value, Literal) and value.kind is LiteralKind.BOOL:
        return bool(value.value)
    msg = f"{what} must evaluate to a boolean, got {value}"
    raise TypeMismatchError(msg)


class _Evaluator:
    def __init__(
        self,
        context: Mapping[str, Expression],
        max_depth: int,
        trace: EvaluationTrace | None,
    ) -> None:
        self._context = context
        self._max_depth = max_depth
        self._trace = trace

    def _record(self, branch: Branch, selected: str) -> None:
        if self._trace is not None:
            self._trace.record(branch, selected)

    def reduce(self, expr: Expression, depth: int, resolving: tuple[str, ...]) -> Expression:
        if depth > self._max_depth:
            raise EvaluationDepthError(self._max_depth)
        depth += 1

        match expr:
            case Literal():
                return expr
            case Reference(name):
                return self._resolve(name, depth, resolving)
            case IfThenElse(condition, then, else_):
                selected = _require_bool(self.reduce(condition, depth, resolving), "If condition")
                self._record(expr, "then" if selected else "else")
                return self.reduce(then if selected else else_, depth, resolving)
            case RuleChain(rules, otherwise):
                for index, rule in enumerate(rules):
                    if _require_bool(self.reduce(rule.when, depth, resolving), f"Rule {index} condition"):
                        self._record(expr, f"rules[{index}]")
                        return self.reduce(rule.then, depth, resolving)
                if otherwise is None:
                    raise NoRuleMatchedError
                self._record(expr, OTHERWISE)
                return self.reduce(otherwise, depth, resolving)
            case FiniteBranch(branch_on, cases, otherwise):
                switch = self.reduce(branch_on, depth, resolving)
                for index, (key, value) in enumerate(cases):
                    if structurally_equal(self.reduce(key, depth, resolving), switch):
                        self._record(expr, f"cases[{index}]")
                        return self.reduce(value, depth, resolving)
                if otherwise is None:
                    raise NoCaseMatchedError(switch)
                self._record(expr, OTHERWISE)
                return self.reduce(otherwise, depth, resolving)
            case _:
                msg = f"Unknown expression type: {type(expr).__name__}"
                raise TypeError(msg)

    def _resolve(self, name: str, depth: int, resolving: tuple[str, ...]) -> Expression:
        if name in resolving:
            raise CyclicReferenceError((*resolving[resolving.index(name) :], name))
        try:
            bound = self._context[name]
        except KeyError:
            raise VariableNotFoundError(name) from None
        logger.debug("Resolving %s", name)
        return self.reduce(bound, depth, (*resolving, name))


def evaluate(
    context: Mapping[str, Expression],
    expr: Expression,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    trace: EvaluationTrace | None = None,
) -> Expression:
    """Reduce an expression against a context.

    References are resolved lazily at lookup time, so a name may be bound to
    another reference or to an unreduced branch.

    Args:
        context: Mapping from name to bound expression.
        expr: The expression to reduce.
        max_depth: Limit on nesting and reference hops.
        trace: If given, receives the arm selected by every branch evaluated.

    Returns:
        The reduced expression, a Literal for any well-formed context.

    Raises:
        VariableNotFoundError: A referenced name is not in the context.
        TypeMismatchError: A condition does not reduce to a boolean.
        NoRuleMatchedError: No rule of a rule chain matched and there is no fallback.
        NoCaseMatchedError: No case of a finite branch matched and there is no fallback.
        CyclicReferenceError: A name is reached again while it is being resolved.
        EvaluationDepthError: The expression nests deeper than ``max_depth``.

    """
    return _Evaluator(context, max_depth, trace).reduce(expr, 0, ())
