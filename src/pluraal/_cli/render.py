"""Rich rendering of scopes, expressions and evaluation results.

Presentation only: nothing here evaluates or decodes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from pluraal._eval import OTHERWISE
from pluraal._expr import FiniteBranch, IfThenElse, Literal, Reference, RuleChain

if TYPE_CHECKING:
    from collections.abc import Mapping

    from rich.console import Console

    from pluraal._eval import EvaluationTrace
    from pluraal._expr import Expression, Scope
    from pluraal._scope import ScopeWarning


def format_expression(expr: Expression) -> str:
    """One-line description of an expression node, with Rich markup."""
    match expr:
        case Literal():
            return f"[cyan]{escape(str(expr))}[/cyan]"
        case Reference(name):
            return f"[magenta]@{escape(name)}[/magenta]"
        case IfThenElse():
            return "[bold]if[/bold]"
        case RuleChain(rules):
            return f"[bold]rules[/bold] [dim]({len(rules)})[/dim]"
        case FiniteBranch(_, cases):
            return f"[bold]branch on[/bold] [dim]({len(cases)} cases)[/dim]"
        case _:
            return escape(repr(expr))


def _arms(expr: Expression) -> list[tuple[str, list[tuple[str, Expression]]]]:
    """Split a branch into labelled arms, each a list of labelled sub-expressions."""
    match expr:
        case IfThenElse(condition, then, else_):
            return [("if", [("", condition)]), ("then", [("", then)]), ("else", [("", else_)])]
        case RuleChain(rules, otherwise):
            arms = [(f"rules[{i}]", [("when", rule.when), ("then", rule.then)]) for i, rule in enumerate(rules)]
        case FiniteBranch(branch_on, cases, otherwise):
            arms = [("branchOn", [("", branch_on)])]
            arms.extend((f"cases[{i}]", [("key", key), ("value", value)]) for i, (key, value) in enumerate(cases))
        case _:
            return []
    if otherwise is not None:
        arms.append((OTHERWISE, [("", otherwise)]))
    return arms


def _is_condition_arm(label: str) -> bool:
    return label in {"if", "branchOn"}


def _add_expression(
    parent: Tree,
    label: str,
    expr: Expression,
    trace: EvaluationTrace | None,
    *,
    dimmed: bool,
) -> None:
    prefix = f"{escape(label)}: " if label else ""
    text = f"{prefix}{format_expression(expr)}"
    node = parent.add(f"[dim]{text}[/dim]" if dimmed else text)

    selected = None
    if trace is not None and isinstance(expr, IfThenElse | RuleChain | FiniteBranch):
        selected = trace.selection_for(expr)

    for arm_label, parts in _arms(expr):
        arm_dimmed = dimmed or (selected is not None and arm_label != selected and not _is_condition_arm(arm_label))
        if selected == arm_label and not dimmed:
            arm_node = node.add(f"[bold green]✓ {escape(arm_label)}[/bold green]")
        elif arm_dimmed:
            arm_node = node.add(f"[dim]{escape(arm_label)}[/dim]")
        else:
            arm_node = node.add(escape(arm_label))
        for part_label, part in parts:
            _add_expression(arm_node, part_label, part, trace, dimmed=arm_dimmed)


def expression_tree(expr: Expression, trace: EvaluationTrace | None = None, label: str = "expression") -> Tree:
    """Build a Rich tree for an expression.

    When a trace is given, the arm each branch took is marked and the arms it
    skipped are dimmed.
    """
    tree = Tree(f"[bold]{escape(label)}[/bold]")
    _add_expression(tree, "", expr, trace, dimmed=False)
    return tree


def scope_tree(scope: Scope, trace: EvaluationTrace | None = None) -> Tree:
    """Build a Rich tree showing a scope's inputs, calculations and outputs."""
    tree = Tree("[bold]Scope[/bold]")

    inputs = tree.add(f"[bold cyan]Inputs[/bold cyan] [dim]({len(scope.inputs)})[/dim]")
    for inp in scope.inputs:
        inputs.add(f"{escape(inp.name)}: [yellow]{inp.type}[/yellow]")

    calculations = tree.add(f"[bold cyan]Calculations[/bold cyan] [dim]({len(scope.calculations)})[/dim]")
    for calc in scope.calculations:
        _add_expression(calculations, calc.name, calc.expression, trace, dimmed=False)

    outputs = tree.add(f"[bold cyan]Outputs[/bold cyan] [dim]({len(scope.outputs)})[/dim]")
    for name in sorted(scope.outputs):
        outputs.add(escape(name))

    return tree


def render_results(results: Mapping[str, Expression], console: Console) -> None:
    """Render evaluation results as a Rich table."""
    if not results:
        console.print("[dim]No outputs resolved[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Output", style="bold")
    table.add_column("Value")

    for name, value in results.items():
        table.add_row(escape(name), format_expression(value))

    console.print(table)


def render_warnings(warnings: list[ScopeWarning], console: Console) -> None:
    for warning in warnings:
        console.print(f"  [yellow]•[/yellow] {escape(warning.message)}")
