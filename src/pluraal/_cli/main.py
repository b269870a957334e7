import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from pluraal._codec import load_scope, loads_expression, scope_json_schema
from pluraal._errors import PluraalError
from pluraal._eval import EvaluationTrace, evaluate
from pluraal._inputs import context_from_raw, context_from_values
from pluraal._io import export_results, load_input_values, results_to_dict
from pluraal._scope import check_scope, evaluate_scope

from .config import ConfigError, PluraalConfig, get_config
from .render import expression_tree, format_expression, render_results, render_warnings, scope_tree

if TYPE_CHECKING:
    from pluraal._expr import Expression, Scope

app = typer.Typer()

logger = logging.getLogger(__name__)
# Console for stderr (info/errors)
err_console = Console(stderr=True)
# Console for stdout (results)
out_console = Console()


@app.callback()
def callback(
    *,
    verbose: bool = typer.Option(default=False, help="Enable verbose output"),
) -> None:
    """Pluraal CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO

    # Configure rich logging handler to output to stderr
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=err_console,
                show_time=False,
                show_path=verbose,
                rich_tracebacks=True,
            ),
        ],
    )


def _fail(error: Exception) -> NoReturn:
    err_console.print(f"[red]✗ {escape(str(error))}[/red]")
    raise typer.Exit(code=1)


def _load_config() -> PluraalConfig:
    try:
        return get_config()
    except ConfigError as e:
        _fail(e)


def _resolve_path(given: Path | None, configured: Path | None, what: str) -> Path | None:
    if given is not None:
        return given
    if configured is not None:
        logger.debug(f"Using {what} from pyproject.toml: {configured}")
    return configured


def _load_scope(scope_path: Path | None, config: PluraalConfig) -> "Scope":
    path = _resolve_path(scope_path, config.scope, "scope")
    if path is None:
        _fail(ValueError("No scope file given and no [tool.pluraal].scope configured"))
    try:
        return load_scope(path)
    except (OSError, PluraalError) as e:
        _fail(e)


def _parse_assignments(assignments: list[str]) -> dict[str, str]:
    raw_values: dict[str, str] = {}
    for assignment in assignments:
        name, sep, value = assignment.partition("=")
        if not sep or not name.strip():
            msg = f"Expected NAME=VALUE, got {assignment!r}"
            raise typer.BadParameter(msg, param_hint="--set")
        raw_values[name.strip()] = value
    return raw_values


def _build_context(
    scope: "Scope | None",
    inputs_path: Path | None,
    assignments: list[str],
) -> dict[str, "Expression"]:
    """Merge values from an input file with ``--set`` values; ``--set`` wins."""
    context: dict[str, "Expression"] = {}
    if inputs_path is not None:
        err_console.print(f"[cyan]Loading inputs from:[/cyan] {inputs_path}")
        context.update(context_from_values(load_input_values(inputs_path)))

    raw_values = _parse_assignments(assignments)
    if scope is not None:
        context.update(context_from_raw(scope, raw_values))
    else:
        context.update({name: loads_expression(value) for name, value in raw_values.items()})
    return context


ScopeArgument = Annotated[
    Path | None,
    typer.Argument(help="Path to the scope JSON document (defaults to [tool.pluraal].scope)"),
]
InputsOption = Annotated[
    Path | None,
    typer.Option("-i", "--inputs", help="Path to a TOML or JSON file of input values"),
]
SetOption = Annotated[
    list[str] | None,
    typer.Option("--set", help="Input value as NAME=VALUE, parsed by the input's declared type"),
]
MaxDepthOption = Annotated[
    int | None,
    typer.Option("--max-depth", min=1, help="Maximum evaluation depth"),
]


@app.command("eval")
def eval_(  # noqa: PLR0913
    scope_path: ScopeArgument = None,
    *,
    inputs: InputsOption = None,
    set_: SetOption = None,
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Export results to a TOML or JSON file"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print results as JSON on stdout"),
    ] = False,
    max_depth: MaxDepthOption = None,
) -> None:
    """Evaluate a scope and print its outputs."""
    config = _load_config()
    scope = _load_scope(scope_path, config)

    try:
        context = _build_context(scope, _resolve_path(inputs, config.inputs, "inputs"), set_ or [])
        results = evaluate_scope(context, scope, max_depth=max_depth or config.max_depth)
    except (OSError, PluraalError) as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps(results_to_dict(results), indent=2))
    else:
        render_results(results, out_console)

    output_path = _resolve_path(output, config.output, "output")
    if output_path is not None:
        err_console.print(f"[cyan]Exporting results to:[/cyan] {output_path}")
        output_path.parent.mkdir(parents=True, exist_ok=True)
        export_results(results, output_path)


@app.command()
def check(scope_path: ScopeArgument = None) -> None:
    """Decode a scope and report structural problems without evaluating it."""
    config = _load_config()
    scope = _load_scope(scope_path, config)

    summary = (
        f"{len(scope.inputs)} input(s), {len(scope.calculations)} calculation(s), {len(scope.outputs)} output(s)"
    )
    err_console.print(Panel(summary, title="[bold]Scope[/bold]", border_style="cyan"))

    warnings = check_scope(scope)
    if warnings:
        err_console.print(f"[yellow]⚠ {len(warnings)} warning(s):[/yellow]")
        render_warnings(warnings, err_console)
        raise typer.Exit(code=1)

    err_console.print("[green]✓ Scope is valid[/green]")


@app.command()
def show(
    scope_path: ScopeArgument = None,
    *,
    inputs: InputsOption = None,
    set_: SetOption = None,
    max_depth: MaxDepthOption = None,
) -> None:
    """Render a scope as a tree, highlighting taken branches when inputs are given."""
    config = _load_config()
    scope = _load_scope(scope_path, config)
    inputs_path = _resolve_path(inputs, config.inputs, "inputs")

    if inputs_path is None and not set_:
        out_console.print(scope_tree(scope))
        return

    trace = EvaluationTrace()
    try:
        context = _build_context(scope, inputs_path, set_ or [])
        results = evaluate_scope(context, scope, max_depth=max_depth or config.max_depth, trace=trace)
    except (OSError, PluraalError) as e:
        out_console.print(scope_tree(scope, trace))
        _fail(e)

    out_console.print(scope_tree(scope, trace))
    render_results(results, out_console)


@app.command("expr")
def expr_(
    expression: Annotated[str, typer.Argument(help="Expression as inline JSON")],
    *,
    set_: SetOption = None,
    max_depth: MaxDepthOption = None,
    tree: Annotated[bool, typer.Option("--tree", help="Show the expression tree with taken branches")] = False,
) -> None:
    """Evaluate a single expression.

    With no scope to declare input types, ``--set`` values are read as JSON,
    so strings need quoting: ``--set 'color="green"'``.
    """
    config = _load_config()
    trace = EvaluationTrace()
    try:
        parsed = loads_expression(expression)
        context = _build_context(None, None, set_ or [])
        value = evaluate(context, parsed, max_depth=max_depth or config.max_depth, trace=trace)
    except PluraalError as e:
        _fail(e)

    if tree:
        out_console.print(expression_tree(parsed, trace))
    out_console.print(format_expression(value))


@app.command()
def schema(
    *,
    output: Annotated[
        Path | None,
        typer.Option("-o", "--output", help="Path to output JSON schema file"),
    ] = None,
    indent: Annotated[
        int,
        typer.Option("--indent", help="JSON indentation spaces"),
    ] = 2,
) -> None:
    """Generate the JSON schema of a scope document."""
    json_schema = scope_json_schema()

    if output is None:
        typer.echo(json.dumps(json_schema, indent=indent))
        return

    err_console.print(f"[cyan]Writing schema to:[/cyan] {output}")
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w") as f:
        json.dump(json_schema, f, indent=indent)
    err_console.print("[green]✓ Schema generation complete[/green]")


def main() -> None:
    app()
