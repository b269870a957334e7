"""Exception hierarchy for decoding and evaluating Pluraal documents."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ._expr import LiteralKind


class PluraalError(Exception):
    """Base class for every error raised by pluraal."""


class DecodeError(PluraalError):
    """A JSON value does not have the shape of a Pluraal expression or scope."""

    def __init__(self, message: str, path: str = "$") -> None:
        self.message = message
        self.path = path
        super().__init__(f"{message} (at {path})")


class EvaluationError(PluraalError):
    """Base class for failures while reducing an expression."""


class VariableNotFoundError(EvaluationError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Variable not found: {name}")


class TypeMismatchError(EvaluationError):
    """A reduced value has the wrong kind for the position it is used in."""


class NoRuleMatchedError(EvaluationError):
    def __init__(self) -> None:
        super().__init__("No rule matched and no otherwise branch was given")


class NoCaseMatchedError(EvaluationError):
    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"No case matched {value} and no otherwise branch was given")


class CyclicReferenceError(EvaluationError):
    """A reference resolves, directly or through other references, to itself."""

    def __init__(self, chain: tuple[str, ...]) -> None:
        self.chain = chain
        super().__init__(f"Cyclic reference: {' -> '.join(chain)}")


class EvaluationDepthError(EvaluationError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Maximum evaluation depth of {limit} exceeded")


class ScopeError(EvaluationError):
    """Failure while evaluating a scope.

    Attributes:
        stage: The pipeline stage the scope was in when it failed
            (``"validating"`` or ``"calculating"``).

    """

    stage: str = ""


class InputError(ScopeError):
    stage = "validating"

    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(message)


class CalculationError(ScopeError):
    stage = "calculating"

    def __init__(self, name: str, cause: PluraalError) -> None:
        self.name = name
        self.cause = cause
        super().__init__(f"Error calculating calculation {name}: {cause}")


class InputParseError(PluraalError):
    """A raw input string cannot be read as the declared input type."""

    def __init__(self, name: str, raw: str, input_type: LiteralKind) -> None:
        self.name = name
        self.raw = raw
        self.input_type = input_type
        super().__init__(f"Cannot parse {raw!r} as {input_type} for input {name}")
