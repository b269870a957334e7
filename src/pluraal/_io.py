from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

import tomli_w

from ._codec import encode_expression
from ._errors import DecodeError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ._expr import Expression

logger = logging.getLogger(__name__)


def load_input_values(input_path: Path | str) -> dict[str, Any]:
    """Load input values from a TOML or JSON file.

    Files ending in ``.json`` are read as JSON, anything else as TOML. The
    top level must be a table/object mapping input names to values.

    Raises:
        DecodeError: The file cannot be parsed or its top level is not a mapping.

    """
    input_path = Path(input_path)
    try:
        if input_path.suffix == ".json":
            contents = json.loads(input_path.read_text(encoding="utf-8"))
        else:
            with input_path.open("rb") as f:
                contents = tomllib.load(f)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as e:
        msg = f"Cannot parse input file {input_path}: {e}"
        raise DecodeError(msg) from e

    if not isinstance(contents, dict):
        msg = f"Input file {input_path} must contain a mapping of input names to values"
        raise DecodeError(msg)

    logger.debug(f"Loaded {len(contents)} input value(s) from {input_path}")
    return contents


def results_to_dict(results: Mapping[str, Expression]) -> dict[str, Any]:
    """Convert evaluation results to plain values using the JSON encoding."""
    return {name: encode_expression(value) for name, value in results.items()}


def export_results_to_toml(results: Mapping[str, Expression], output_path: Path | str) -> None:
    output_path = Path(output_path)
    with output_path.open("wb") as f:
        tomli_w.dump(results_to_dict(results), f)
    logger.debug(f"Exported results to {output_path}")


def export_results_to_json(results: Mapping[str, Expression], output_path: Path | str) -> None:
    output_path = Path(output_path)
    output_path.write_text(json.dumps(results_to_dict(results), indent=2) + "\n", encoding="utf-8")
    logger.debug(f"Exported results to {output_path}")


def export_results(results: Mapping[str, Expression], output_path: Path | str) -> None:
    """Export results as JSON or TOML depending on the file extension."""
    if Path(output_path).suffix == ".json":
        export_results_to_json(results, output_path)
    else:
        export_results_to_toml(results, output_path)
