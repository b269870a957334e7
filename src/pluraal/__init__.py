"""Declarative expression language with a JSON syntax."""

__all__ = [
    "DEFAULT_MAX_DEPTH",
    "BranchDecision",
    "Calculation",
    "CalculationError",
    "CyclicReferenceError",
    "DecodeError",
    "EvaluationDepthError",
    "EvaluationError",
    "EvaluationTrace",
    "Expression",
    "FiniteBranch",
    "IfThenElse",
    "Input",
    "InputError",
    "InputParseError",
    "Literal",
    "LiteralKind",
    "NoCaseMatchedError",
    "NoRuleMatchedError",
    "PluraalError",
    "Reference",
    "Rule",
    "RuleChain",
    "Scope",
    "ScopeDocument",
    "ScopeError",
    "ScopeStage",
    "ScopeWarning",
    "TypeMismatchError",
    "VariableNotFoundError",
    "check_scope",
    "context_from_raw",
    "context_from_values",
    "decode_expression",
    "decode_scope",
    "dump_scope",
    "dumps_expression",
    "dumps_scope",
    "encode_expression",
    "encode_scope",
    "evaluate",
    "evaluate_scope",
    "load_scope",
    "loads_expression",
    "loads_scope",
    "parse_raw_input",
    "scope_json_schema",
    "structurally_equal",
    "validate_inputs",
]

from ._codec import (
    ScopeDocument,
    decode_expression,
    decode_scope,
    dump_scope,
    dumps_expression,
    dumps_scope,
    encode_expression,
    encode_scope,
    load_scope,
    loads_expression,
    loads_scope,
    scope_json_schema,
)
from ._errors import (
    CalculationError,
    CyclicReferenceError,
    DecodeError,
    EvaluationDepthError,
    EvaluationError,
    InputError,
    InputParseError,
    NoCaseMatchedError,
    NoRuleMatchedError,
    PluraalError,
    ScopeError,
    TypeMismatchError,
    VariableNotFoundError,
)
from ._eval import DEFAULT_MAX_DEPTH, BranchDecision, EvaluationTrace, evaluate, structurally_equal
from ._expr import (
    Calculation,
    Expression,
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
from ._inputs import context_from_raw, context_from_values, parse_raw_input
from ._scope import ScopeStage, ScopeWarning, check_scope, evaluate_scope, validate_inputs
