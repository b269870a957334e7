"""Tests for scope evaluation and static checks."""

import pytest

from pluraal._errors import (
    CalculationError,
    CyclicReferenceError,
    InputError,
    NoRuleMatchedError,
    VariableNotFoundError,
)
from pluraal._eval import EvaluationTrace
from pluraal._expr import (
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
from pluraal._scope import ScopeStage, check_scope, evaluate_scope, validate_inputs


@pytest.fixture
def number_scope() -> Scope:
    return Scope(inputs=(Input("x", LiteralKind.NUMBER),), outputs=frozenset({"x"}))


class TestInputValidation:
    """Tests for the input validation stage."""

    def test_missing_input(self, number_scope: Scope) -> None:
        with pytest.raises(InputError, match="^Required input not found: x$") as exc_info:
            evaluate_scope({}, number_scope)
        assert exc_info.value.stage == ScopeStage.VALIDATING

    def test_wrong_type(self, number_scope: Scope) -> None:
        with pytest.raises(InputError, match="^Input x has incorrect type$"):
            evaluate_scope({"x": Literal("not a number")}, number_scope)

    def test_bool_is_not_a_number(self, number_scope: Scope) -> None:
        with pytest.raises(InputError, match="incorrect type"):
            evaluate_scope({"x": Literal(True)}, number_scope)

    def test_input_bound_to_reference_is_checked_but_kept(self, number_scope: Scope) -> None:
        context = {"x": Reference("y"), "y": Literal(4)}
        assert evaluate_scope(context, number_scope) == {"x": Reference("y")}

    def test_input_resolution_errors_propagate(self, number_scope: Scope) -> None:
        with pytest.raises(VariableNotFoundError):
            evaluate_scope({"x": Reference("nowhere")}, number_scope)

    def test_fails_on_first_violation_in_declaration_order(self) -> None:
        scope = Scope(
            inputs=(
                Input("b", LiteralKind.STRING),
                Input("a", LiteralKind.NUMBER),
            ),
        )
        with pytest.raises(InputError, match="Required input not found: b"):
            validate_inputs({}, scope)
        with pytest.raises(InputError, match="Input a has incorrect type"):
            validate_inputs({"b": Literal("ok"), "a": Literal("bad")}, scope)

    def test_valid_inputs_pass(self) -> None:
        scope = Scope(
            inputs=(
                Input("s", LiteralKind.STRING),
                Input("n", LiteralKind.NUMBER),
                Input("b", LiteralKind.BOOL),
            ),
        )
        validate_inputs({"s": Literal("x"), "n": Literal(1), "b": Literal(False)}, scope)

    def test_input_not_reducing_to_literal(self, number_scope: Scope, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("pluraal._scope.evaluate", lambda context, expr, **kwargs: Reference("x"))
        with pytest.raises(InputError, match="^Input x must be a literal value$"):
            evaluate_scope({"x": Literal(1)}, number_scope)


class TestCalculations:
    """Tests for the ordered calculation stage."""

    def test_pass_through_input(self) -> None:
        scope = Scope(inputs=(Input("age", LiteralKind.NUMBER),), outputs=frozenset({"age"}))
        assert evaluate_scope({"age": Literal(30)}, scope) == {"age": Literal(30)}

    def test_chaining(self) -> None:
        scope = Scope(
            inputs=(Input("base", LiteralKind.NUMBER),),
            calculations=(
                Calculation("doubled", Reference("base")),
                Calculation("final", Reference("doubled")),
            ),
            outputs=frozenset({"final"}),
        )
        assert evaluate_scope({"base": Literal(7)}, scope) == {"final": Literal(7)}

    def test_calculation_values_are_reduced(self) -> None:
        scope = Scope(
            inputs=(Input("flag", LiteralKind.BOOL),),
            calculations=(Calculation("choice", IfThenElse(Reference("flag"), Literal("a"), Literal("b"))),),
            outputs=frozenset({"choice"}),
        )
        assert evaluate_scope({"flag": Literal(False)}, scope) == {"choice": Literal("b")}

    def test_forward_reference_fails(self) -> None:
        scope = Scope(
            calculations=(
                Calculation("first", Reference("second")),
                Calculation("second", Literal(1)),
            ),
            outputs=frozenset({"first"}),
        )
        with pytest.raises(CalculationError) as exc_info:
            evaluate_scope({}, scope)
        error = exc_info.value
        assert str(error) == "Error calculating calculation first: Variable not found: second"
        assert error.name == "first"
        assert isinstance(error.cause, VariableNotFoundError)
        assert error.__cause__ is error.cause
        assert error.stage == ScopeStage.CALCULATING

    def test_first_failing_calculation_stops_evaluation(self) -> None:
        scope = Scope(
            calculations=(
                Calculation("bad", RuleChain(rules=(Rule(Literal(False), Literal(1)),))),
                Calculation("worse", Reference("missing")),
            ),
        )
        with pytest.raises(CalculationError, match="calculation bad") as exc_info:
            evaluate_scope({}, scope)
        assert isinstance(exc_info.value.cause, NoRuleMatchedError)

    def test_cycle_in_context_is_reported(self) -> None:
        scope = Scope(calculations=(Calculation("c", Reference("a")),))
        with pytest.raises(CalculationError) as exc_info:
            evaluate_scope({"a": Reference("b"), "b": Reference("a")}, scope)
        assert isinstance(exc_info.value.cause, CyclicReferenceError)

    def test_calculation_shadows_input(self) -> None:
        scope = Scope(
            inputs=(Input("x", LiteralKind.NUMBER),),
            calculations=(
                Calculation("before", Reference("x")),
                Calculation("x", Literal(100)),
                Calculation("after", Reference("x")),
            ),
            outputs=frozenset({"before", "after", "x"}),
        )
        results = evaluate_scope({"x": Literal(1)}, scope)
        assert results == {"before": Literal(1), "after": Literal(100), "x": Literal(100)}

    def test_context_is_not_modified(self) -> None:
        scope = Scope(
            inputs=(Input("x", LiteralKind.NUMBER),),
            calculations=(Calculation("y", Reference("x")),),
        )
        context = {"x": Literal(1)}
        evaluate_scope(context, scope)
        assert context == {"x": Literal(1)}

    def test_trace_records_calculation_branches(self) -> None:
        branch = FiniteBranch(
            branch_on=Reference("color"),
            cases=((Literal("red"), Literal("stop")), (Literal("green"), Literal("go"))),
        )
        scope = Scope(
            inputs=(Input("color", LiteralKind.STRING),),
            calculations=(Calculation("signal", branch),),
            outputs=frozenset({"signal"}),
        )
        trace = EvaluationTrace()
        assert evaluate_scope({"color": Literal("green")}, scope, trace=trace) == {"signal": Literal("go")}
        assert trace.selection_for(branch) == "cases[1]"


class TestOutputs:
    """Tests for output projection."""

    def test_unresolved_outputs_are_omitted(self) -> None:
        scope = Scope(
            inputs=(Input("x", LiteralKind.NUMBER),),
            outputs=frozenset({"x", "nothing"}),
        )
        assert evaluate_scope({"x": Literal(2)}, scope) == {"x": Literal(2)}

    def test_only_requested_names_are_returned(self) -> None:
        scope = Scope(
            inputs=(Input("x", LiteralKind.NUMBER),),
            calculations=(Calculation("y", Literal("hidden")),),
            outputs=frozenset(),
        )
        assert evaluate_scope({"x": Literal(2), "extra": Literal(3)}, scope) == {}

    def test_undeclared_context_entries_can_be_published(self) -> None:
        scope = Scope(outputs=frozenset({"extra"}))
        assert evaluate_scope({"extra": Literal(3)}, scope) == {"extra": Literal(3)}


class TestCheckScope:
    """Tests for static scope inspection."""

    def test_clean_scope(self) -> None:
        scope = Scope(
            inputs=(Input("x", LiteralKind.NUMBER),),
            calculations=(Calculation("y", Reference("x")),),
            outputs=frozenset({"x", "y"}),
        )
        assert check_scope(scope) == []

    def test_reports_problems(self) -> None:
        scope = Scope(
            inputs=(Input("x", LiteralKind.NUMBER),),
            calculations=(
                Calculation("early", Reference("late")),
                Calculation("late", Reference("unknown")),
                Calculation("x", Literal(1)),
            ),
            outputs=frozenset({"ghost"}),
        )
        messages = [warning.message for warning in check_scope(scope)]
        assert messages == [
            "Calculation early references late, which is calculated later",
            "Calculation late references unknown name unknown",
            "Calculation x shadows an input of the same name",
            "Output ghost is neither an input nor a calculation",
        ]
