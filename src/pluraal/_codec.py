"""Canonical JSON encoding of expressions and scopes.

Shapes:

- literal: a bare JSON string, number or boolean
- reference: ``{"ref": name}``
- branch: ``{"type": "branch", "value": {...}}`` where the value is one of
  ``{"if", "then", "else"}``, ``{"rules": [{"when", "then"}, ...], "otherwise"?}``
  or ``{"branchOn", "when": [[key, value], ...], "otherwise"?}``
- scope: ``{"inputs": {name: type}, "calculations": {name: expr}, "outputs": [name, ...]}``

Decoding tries each shape in a fixed order and takes the first that applies.
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ._errors import DecodeError
from ._eval import DEFAULT_MAX_DEPTH
from ._expr import (
    Calculation,
    FiniteBranch,
    IfThenElse,
    Input,
    Literal,
    LiteralKind,
    Reference,
    Rule,
    RuleChain,
    Scope,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from ._expr import Branch, Expression

logger = logging.getLogger(__name__)

# Largest float whose integer value survives a trip through a JSON integer.
_MAX_EXACT_INT = 2**53


# =============================================================================
# Encoding
# =============================================================================


def _encode_literal(literal: Literal) -> str | float | int | bool:
    value = literal.value
    if isinstance(value, float) and value.is_integer() and abs(value) <= _MAX_EXACT_INT:
        return int(value)
    return value


def _encode_branch(branch: Branch) -> dict[str, Any]:
    match branch:
        case IfThenElse(condition, then, else_):
            return {
                "if": _encode_expression(condition),
                "then": _encode_expression(then),
                "else": _encode_expression(else_),
            }
        case RuleChain(rules, otherwise):
            body: dict[str, Any] = {
                "rules": [{"when": _encode_expression(r.when), "then": _encode_expression(r.then)} for r in rules],
            }
        case FiniteBranch(branch_on, cases, otherwise):
            body = {
                "branchOn": _encode_expression(branch_on),
                "when": [[_encode_expression(key), _encode_expression(value)] for key, value in cases],
            }
    if otherwise is not None:
        body["otherwise"] = _encode_expression(otherwise)
    return body


def encode_expression(expr: Expression) -> Any:
    """Encode an expression as a JSON-compatible value.

    Raises:
        ValueError: The tree nests too deeply to encode.

    """
    try:
        return _encode_expression(expr)
    except RecursionError:
        msg = "Expression nests too deeply to encode"
        raise ValueError(msg) from None


def _encode_expression(expr: Expression) -> Any:
    match expr:
        case Literal():
            return _encode_literal(expr)
        case Reference(name):
            return {"ref": name}
        case IfThenElse() | RuleChain() | FiniteBranch():
            return {"type": "branch", "value": _encode_branch(expr)}
        case _:
            msg = f"Unsupported expression type: {type(expr).__name__}"
            raise TypeError(msg)


def encode_scope(scope: Scope) -> dict[str, Any]:
    """Encode a scope as a JSON-compatible dict.

    Inputs and calculations become objects keyed by name, outputs a sorted list.
    """
    return {
        "inputs": {inp.name: str(inp.type) for inp in scope.inputs},
        "calculations": {calc.name: encode_expression(calc.expression) for calc in scope.calculations},
        "outputs": sorted(scope.outputs),
    }


# =============================================================================
# Decoding
# =============================================================================


def _field(obj: dict[str, Any], key: str, path: str) -> Any:
    if key not in obj:
        msg = f"Missing required field '{key}'"
        raise DecodeError(msg, path)
    return obj[key]


def _optional_expression(obj: dict[str, Any], key: str, path: str, depth: int) -> Expression | None:
    if key not in obj:
        return None
    return _decode_expression(obj[key], f"{path}.{key}", depth)


def _decode_literal(value: Any, path: str, depth: int) -> Literal | None:  # noqa: ARG001
    if isinstance(value, bool | str):
        return Literal(value)
    if isinstance(value, int | float):
        try:
            number = float(value)
        except OverflowError:
            msg = "Number literal is out of range"
            raise DecodeError(msg, path) from None
        if not math.isfinite(number):
            msg = f"Number literal must be finite. Got: {value}"
            raise DecodeError(msg, path)
        return Literal(number)
    return None


def _decode_reference(value: Any, path: str, depth: int) -> Reference | None:  # noqa: ARG001
    if not isinstance(value, dict) or "ref" not in value:
        return None
    name = value["ref"]
    if not isinstance(name, str):
        msg = f"Reference name must be a string. Got: {json.dumps(name)}"
        raise DecodeError(msg, f"{path}.ref")
    return Reference(name)


def _decode_if_then_else(body: dict[str, Any], path: str, depth: int) -> IfThenElse | None:
    if "if" not in body:
        return None
    return IfThenElse(
        condition=_decode_expression(body["if"], f"{path}.if", depth),
        then=_decode_expression(_field(body, "then", path), f"{path}.then", depth),
        else_=_decode_expression(_field(body, "else", path), f"{path}.else", depth),
    )


def _decode_rule(value: Any, path: str, depth: int) -> Rule:
    if not isinstance(value, dict):
        msg = "Rule must be an object with 'when' and 'then'"
        raise DecodeError(msg, path)
    return Rule(
        when=_decode_expression(_field(value, "when", path), f"{path}.when", depth),
        then=_decode_expression(_field(value, "then", path), f"{path}.then", depth),
    )


def _decode_rule_chain(body: dict[str, Any], path: str, depth: int) -> RuleChain | None:
    if "rules" not in body:
        return None
    rules = body["rules"]
    if not isinstance(rules, list):
        msg = "'rules' must be a list"
        raise DecodeError(msg, f"{path}.rules")
    return RuleChain(
        rules=tuple(_decode_rule(rule, f"{path}.rules[{i}]", depth) for i, rule in enumerate(rules)),
        otherwise=_optional_expression(body, "otherwise", path, depth),
    )


def _decode_case(value: Any, path: str, depth: int) -> tuple[Expression, Expression]:
    if not isinstance(value, list) or len(value) != 2:  # noqa: PLR2004
        msg = "Case must be a [key, value] pair"
        raise DecodeError(msg, path)
    key, result = value
    return _decode_expression(key, f"{path}[0]", depth), _decode_expression(result, f"{path}[1]", depth)


def _decode_finite_branch(body: dict[str, Any], path: str, depth: int) -> FiniteBranch | None:
    if "branchOn" not in body:
        return None
    cases = _field(body, "when", path)
    if not isinstance(cases, list):
        msg = "'when' must be a list of [key, value] pairs"
        raise DecodeError(msg, f"{path}.when")
    return FiniteBranch(
        branch_on=_decode_expression(body["branchOn"], f"{path}.branchOn", depth),
        cases=tuple(_decode_case(case, f"{path}.when[{i}]", depth) for i, case in enumerate(cases)),
        otherwise=_optional_expression(body, "otherwise", path, depth),
    )


_BRANCH_DECODERS: tuple[Callable[[dict[str, Any], str, int], Branch | None], ...] = (
    _decode_if_then_else,
    _decode_rule_chain,
    _decode_finite_branch,
)


def _decode_branch(value: Any, path: str, depth: int) -> Branch | None:
    if not isinstance(value, dict) or "type" not in value:
        return None
    if value["type"] != "branch":
        msg = f"Unknown expression type: {json.dumps(value['type'])}"
        raise DecodeError(msg, f"{path}.type")
    body = _field(value, "value", path)
    body_path = f"{path}.value"
    if not isinstance(body, dict):
        msg = "Branch value must be an object"
        raise DecodeError(msg, body_path)
    for decoder in _BRANCH_DECODERS:
        branch = decoder(body, body_path, depth)
        if branch is not None:
            return branch
    msg = "Branch must have one of the fields 'if', 'rules' or 'branchOn'"
    raise DecodeError(msg, body_path)


_EXPRESSION_DECODERS: tuple[Callable[[Any, str, int], Expression | None], ...] = (
    _decode_literal,
    _decode_reference,
    _decode_branch,
)


def _decode_expression(value: Any, path: str, depth: int) -> Expression:
    if depth > DEFAULT_MAX_DEPTH:
        msg = f"Expression nests deeper than {DEFAULT_MAX_DEPTH}"
        raise DecodeError(msg, path)
    for decoder in _EXPRESSION_DECODERS:
        expr = decoder(value, path, depth + 1)
        if expr is not None:
            return expr
    msg = "Expected a string, number, boolean, {\"ref\": ...} or {\"type\": \"branch\", ...}"
    raise DecodeError(msg, path)


def decode_expression(value: Any, path: str = "$") -> Expression:
    """Decode a JSON-compatible value into an expression.

    Args:
        value: Parsed JSON.
        path: Location of ``value`` in the enclosing document, used in errors.

    Raises:
        DecodeError: The value has no valid expression shape, or nests deeper
            than the evaluator would follow.

    """
    try:
        return _decode_expression(value, path, 0)
    except RecursionError:
        msg = "Expression nests too deeply to decode"
        raise DecodeError(msg, path) from None


class ScopeDocument(BaseModel):
    """Top-level layout of a scope document. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    inputs: dict[str, LiteralKind] = Field(description="Input names mapped to their declared type")
    calculations: dict[str, Any] = Field(description="Calculation names mapped to expressions")
    outputs: list[str] = Field(description="Names to publish from the evaluated scope")


def _validation_error_to_decode_error(error: ValidationError) -> DecodeError:
    first = error.errors()[0]
    path = "$" + "".join(f"[{part}]" if isinstance(part, int) else f".{part}" for part in first["loc"])
    if first["type"] == "enum":
        allowed = ", ".join(f"'{kind}'" for kind in LiteralKind)
        msg = f"Unknown input type {json.dumps(first['input'])}, expected one of {allowed}"
    elif first["type"] == "missing":
        msg = f"Missing required field '{first['loc'][-1]}'"
    else:
        msg = first["msg"]
    return DecodeError(msg, path)


def decode_scope(value: Any) -> Scope:
    """Decode a JSON-compatible value into a scope.

    Raises:
        DecodeError: The document or one of its expressions is malformed.

    """
    try:
        document = ScopeDocument.model_validate(value)
    except ValidationError as e:
        raise _validation_error_to_decode_error(e) from e

    return Scope(
        inputs=tuple(Input(name=name, type=kind) for name, kind in document.inputs.items()),
        calculations=tuple(
            Calculation(name=name, expression=decode_expression(raw, f"$.calculations.{name}"))
            for name, raw in document.calculations.items()
        ),
        outputs=frozenset(document.outputs),
    )


def scope_json_schema() -> dict[str, Any]:
    """JSON schema of the top-level scope document."""
    return ScopeDocument.model_json_schema()


# =============================================================================
# Text and file helpers
# =============================================================================


def _loads_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        msg = f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})"
        raise DecodeError(msg) from e
    except RecursionError:
        msg = "Invalid JSON: document nests too deeply"
        raise DecodeError(msg) from None


def loads_expression(text: str) -> Expression:
    return decode_expression(_loads_json(text))


def dumps_expression(expr: Expression, indent: int | None = None) -> str:
    return json.dumps(encode_expression(expr), indent=indent)


def loads_scope(text: str) -> Scope:
    return decode_scope(_loads_json(text))


def dumps_scope(scope: Scope, indent: int | None = 2) -> str:
    return json.dumps(encode_scope(scope), indent=indent)


def load_scope(path: Path | str) -> Scope:
    """Read and decode a scope document from a JSON file."""
    path = Path(path)
    scope = loads_scope(path.read_text(encoding="utf-8"))
    logger.debug("Loaded scope from %s", path)
    return scope


def dump_scope(scope: Scope, path: Path | str, indent: int | None = 2) -> None:
    path = Path(path)
    path.write_text(dumps_scope(scope, indent=indent) + "\n", encoding="utf-8")
    logger.debug("Wrote scope to %s", path)
