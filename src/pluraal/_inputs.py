"""Building evaluation contexts from user-supplied values."""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

from ._codec import decode_expression
from ._errors import InputParseError
from ._expr import Literal, LiteralKind

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._expr import Expression, Scope

logger = logging.getLogger(__name__)


def parse_raw_input(name: str, raw: str, kind: LiteralKind) -> Literal:
    """Read a raw string as a literal of the declared kind.

    Strings pass through unchanged. Numbers are decimal or exponent notation,
    surrounding whitespace allowed; digit-group underscores and non-finite
    values are rejected. Booleans accept ``true``/``false`` in any case.

    Raises:
        InputParseError: The string is not a valid value of that kind.

    """
    match kind:
        case LiteralKind.STRING:
            return Literal(raw)
        case LiteralKind.NUMBER:
            if "_" in raw:
                raise InputParseError(name, raw, kind)
            try:
                number = float(raw)
            except ValueError:
                raise InputParseError(name, raw, kind) from None
            if not math.isfinite(number):
                raise InputParseError(name, raw, kind)
            return Literal(number)
        case LiteralKind.BOOL:
            lowered = raw.strip().lower()
            if lowered == "true":
                return Literal(True)  # noqa: FBT003
            if lowered == "false":
                return Literal(False)  # noqa: FBT003
            raise InputParseError(name, raw, kind)


def context_from_raw(scope: Scope, raw_values: Mapping[str, str]) -> dict[str, Expression]:
    """Parse raw strings into a context, using each input's declared type.

    Names the scope does not declare as inputs are kept as string literals.
    """
    declared = {inp.name: inp.type for inp in scope.inputs}
    context: dict[str, Expression] = {}
    for name, raw in raw_values.items():
        kind = declared.get(name)
        if kind is None:
            logger.debug("%s is not a declared input, keeping it as a string", name)
            context[name] = Literal(raw)
        else:
            context[name] = parse_raw_input(name, raw, kind)
    return context


def context_from_values(values: Mapping[str, Any]) -> dict[str, Expression]:
    """Build a context from already-typed values, such as a parsed TOML or JSON file.

    Scalars become literals; objects are decoded as full expressions, so an
    input file may bind a name to a reference or a branch.

    Raises:
        DecodeError: A value has no valid expression shape.

    """
    return {name: decode_expression(value, f"$.{name}") for name, value in values.items()}
