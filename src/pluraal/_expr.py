"""Expression and scope data model.

Every node is an immutable, slotted dataclass. The model holds structure
only; reduction lives in ``_eval`` and the JSON mapping in ``_codec``.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class LiteralKind(StrEnum):
    """The kind of a literal value, also used as the declared type of an input."""

    STRING = "string"
    NUMBER = "number"
    BOOL = "bool"


@dataclass(frozen=True, slots=True, eq=False)
class Literal:
    """A self-evaluating string, number or boolean.

    Integers are stored as floats. Equality compares the kind as well as the
    value, so ``Literal(True) != Literal(1.0)``.
    """

    value: str | float | bool

    def __post_init__(self) -> None:
        value = self.value
        if isinstance(value, bool | str | float):
            return
        if isinstance(value, int):
            object.__setattr__(self, "value", float(value))
            return
        msg = f"Literal value must be a string, number or boolean. Got: {type(value).__name__}"
        raise TypeError(msg)

    @property
    def kind(self) -> LiteralKind:
        match self.value:
            case bool():
                return LiteralKind.BOOL
            case str():
                return LiteralKind.STRING
            case _:
                return LiteralKind.NUMBER

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Literal):
            return NotImplemented
        return self.kind is other.kind and self.value == other.value

    def __hash__(self) -> int:
        return hash((self.kind, self.value))

    def __str__(self) -> str:
        match self.value:
            case bool(b):
                return "true" if b else "false"
            case str(s):
                return f'"{s}"'
            case float(f) if f.is_integer():
                return str(int(f))
            case _:
                return str(self.value)


@dataclass(frozen=True, slots=True)
class Reference:
    """A named lookup into the evaluation context."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class IfThenElse:
    condition: Expression
    then: Expression
    else_: Expression


@dataclass(frozen=True, slots=True)
class Rule:
    when: Expression
    then: Expression


@dataclass(frozen=True, slots=True)
class RuleChain:
    """Ordered rules, first match wins, with an optional fallback."""

    rules: tuple[Rule, ...]
    otherwise: Expression | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", tuple(self.rules))


@dataclass(frozen=True, slots=True)
class FiniteBranch:
    """Dispatch on a value, matching keys in declaration order."""

    branch_on: Expression
    cases: tuple[tuple[Expression, Expression], ...]
    otherwise: Expression | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "cases", tuple((key, value) for key, value in self.cases))


Branch: TypeAlias = IfThenElse | RuleChain | FiniteBranch
Expression: TypeAlias = Literal | Reference | Branch

BRANCH_TYPES = (IfThenElse, RuleChain, FiniteBranch)


def iter_children(expr: Expression) -> Iterator[Expression]:
    """Yield the direct sub-expressions of a node in declaration order."""
    match expr:
        case IfThenElse(condition, then, else_):
            yield from (condition, then, else_)
        case RuleChain(rules, otherwise):
            for rule in rules:
                yield rule.when
                yield rule.then
            if otherwise is not None:
                yield otherwise
        case FiniteBranch(branch_on, cases, otherwise):
            yield branch_on
            for key, value in cases:
                yield key
                yield value
            if otherwise is not None:
                yield otherwise
        case Literal() | Reference():
            return


def referenced_names(expr: Expression) -> set[str]:
    """Collect every name referenced anywhere inside an expression."""
    if isinstance(expr, Reference):
        return {expr.name}
    names: set[str] = set()
    for child in iter_children(expr):
        names |= referenced_names(child)
    return names


@dataclass(frozen=True, slots=True)
class Input:
    """A required, type-constrained entry of the evaluation context."""

    name: str
    type: LiteralKind


@dataclass(frozen=True, slots=True)
class Calculation:
    name: str
    expression: Expression


def _check_unique(names: Iterable[str], what: str) -> None:
    duplicates = sorted(name for name, count in Counter(names).items() if count > 1)
    if duplicates:
        msg = f"Duplicate {what} name(s): {', '.join(duplicates)}"
        raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class Scope:
    """Typed inputs, ordered calculations and the set of published outputs.

    Attributes:
        inputs: Declared inputs, names unique.
        calculations: Calculations in evaluation order, names unique. A
            calculation may reuse an input's name.
        outputs: Names to publish from the final context.

    """

    inputs: tuple[Input, ...] = ()
    calculations: tuple[Calculation, ...] = ()
    outputs: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "calculations", tuple(self.calculations))
        object.__setattr__(self, "outputs", frozenset(self.outputs))
        _check_unique(self.input_names, "input")
        _check_unique(self.calculation_names, "calculation")

    @property
    def input_names(self) -> list[str]:
        return [inp.name for inp in self.inputs]

    @property
    def calculation_names(self) -> list[str]:
        return [calc.name for calc in self.calculations]

    def get_input(self, name: str) -> Input:
        """Get a declared input by name.

        Raises:
            KeyError: If no input has the given name.

        """
        for inp in self.inputs:
            if inp.name == name:
                return inp
        raise KeyError(name)

    def get_calculation(self, name: str) -> Calculation:
        """Get a calculation by name.

        Raises:
            KeyError: If no calculation has the given name.

        """
        for calc in self.calculations:
            if calc.name == name:
                return calc
        raise KeyError(name)

    def references(self) -> set[str]:
        """All names referenced by any calculation."""
        names: set[str] = set()
        for calc in self.calculations:
            names |= referenced_names(calc.expression)
        return names
