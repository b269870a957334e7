"""Scope evaluation: input validation, ordered calculations, output projection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import TYPE_CHECKING

from ._errors import CalculationError, EvaluationError, InputError
from ._eval import DEFAULT_MAX_DEPTH, evaluate
from ._expr import Literal, referenced_names

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._eval import EvaluationTrace
    from ._expr import Expression, Scope

logger = logging.getLogger(__name__)


class ScopeStage(StrEnum):
    """Stages of scope evaluation, in the order they run."""

    VALIDATING = auto()
    CALCULATING = auto()
    EXTRACTING = auto()
    DONE = auto()


def validate_inputs(
    context: Mapping[str, Expression],
    scope: Scope,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> None:
    """Check that every declared input is present and reduces to a literal of its type.

    Inputs are checked in declaration order and the first violation is raised.

    Raises:
        InputError: An input is missing, not a literal, or of the wrong kind.
        EvaluationError: Reducing an input's bound value failed.

    """
    for inp in scope.inputs:
        if inp.name not in context:
            raise InputError(inp.name, f"Required input not found: {inp.name}")
        value = evaluate(context, context[inp.name], max_depth=max_depth)
        if not isinstance(value, Literal):
            raise InputError(inp.name, f"Input {inp.name} must be a literal value")
        if value.kind is not inp.type:
            raise InputError(inp.name, f"Input {inp.name} has incorrect type")
        logger.debug("Input %s = %s", inp.name, value)


def evaluate_scope(
    context: Mapping[str, Expression],
    scope: Scope,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
    trace: EvaluationTrace | None = None,
) -> dict[str, Expression]:
    """Evaluate a scope against a context of input values.

    Calculations run in declaration order. Each one sees the inputs and every
    earlier calculation, and its reduced value is bound under its name before
    the next one runs. A calculation sharing an input's name replaces that
    input from then on.

    Args:
        context: Input values by name. Not modified.
        scope: The scope to evaluate.
        max_depth: Limit on nesting and reference hops per expression.
        trace: If given, receives the arm selected by every branch evaluated.

    Returns:
        The requested outputs that resolve in the final context. Outputs that
        name nothing are left out. Calculations are published reduced; an
        input is published as the caller bound it, so an input bound to a
        reference comes back as that reference.

    Raises:
        InputError: Input validation failed.
        CalculationError: A calculation failed; the inner error is its ``cause``.

    """
    logger.debug("Scope stage: %s", ScopeStage.VALIDATING)
    validate_inputs(context, scope, max_depth=max_depth)

    logger.debug("Scope stage: %s", ScopeStage.CALCULATING)
    working: dict[str, Expression] = dict(context)
    for calc in scope.calculations:
        try:
            value = evaluate(working, calc.expression, max_depth=max_depth, trace=trace)
        except EvaluationError as e:
            raise CalculationError(calc.name, e) from e
        logger.debug("Calculated %s = %s", calc.name, value)
        working[calc.name] = value

    logger.debug("Scope stage: %s", ScopeStage.EXTRACTING)
    results = {name: working[name] for name in sorted(scope.outputs) if name in working}
    skipped = scope.outputs - results.keys()
    if skipped:
        logger.debug("Outputs with no value: %s", ", ".join(sorted(skipped)))

    logger.debug("Scope stage: %s", ScopeStage.DONE)
    return results


@dataclass(frozen=True, slots=True)
class ScopeWarning:
    """A problem found by static inspection of a scope.

    Attributes:
        name: The input, calculation or output the warning is about.
        message: Human-readable description.

    """

    name: str
    message: str


def check_scope(scope: Scope) -> list[ScopeWarning]:
    """Inspect a scope without evaluating it.

    Reports references that cannot resolve when calculations run in order,
    outputs that name no input or calculation, and calculations that shadow
    an input.
    """
    warnings: list[ScopeWarning] = []
    visible = set(scope.input_names)

    for calc in scope.calculations:
        if calc.name in scope.input_names:
            warnings.append(ScopeWarning(calc.name, f"Calculation {calc.name} shadows an input of the same name"))
        for name in sorted(referenced_names(calc.expression) - visible):
            if name in scope.calculation_names:
                message = f"Calculation {calc.name} references {name}, which is calculated later"
            else:
                message = f"Calculation {calc.name} references unknown name {name}"
            warnings.append(ScopeWarning(calc.name, message))
        visible.add(calc.name)

    warnings.extend(
        ScopeWarning(name, f"Output {name} is neither an input nor a calculation")
        for name in sorted(scope.outputs - visible)
    )
    return warnings
