"""Configuration loading from pyproject.toml."""

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pluraal._eval import DEFAULT_MAX_DEPTH


class ConfigError(Exception):
    """Error in pluraal configuration."""


@dataclass(slots=True, frozen=True)
class PluraalConfig:
    """Configuration loaded from the ``[tool.pluraal]`` table of pyproject.toml.

    All relative paths are resolved from the project root (directory containing pyproject.toml).
    """

    scope: Path | None = None
    inputs: Path | None = None
    output: Path | None = None
    max_depth: int = DEFAULT_MAX_DEPTH
    project_root: Path | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Find pyproject.toml by walking up from start_dir.

    Args:
        start_dir: Starting directory. Defaults to current working directory.

    Returns:
        Path to pyproject.toml if found, None otherwise.

    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        candidate = current / "pyproject.toml"
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            # Reached filesystem root
            return None
        current = parent


def _parse_path(section: dict[str, object], key: str, project_root: Path) -> Path | None:
    if key not in section:
        return None
    value = section[key]
    if not isinstance(value, str):
        msg = f"Invalid [tool.pluraal].{key}: expected string path"
        raise ConfigError(msg)
    path = Path(value)
    if not path.is_absolute():
        path = project_root / path
    return path


def _parse_max_depth(section: dict[str, object]) -> int:
    value = section.get("max-depth", DEFAULT_MAX_DEPTH)
    # bool is an int subclass
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        msg = f"Invalid [tool.pluraal].max-depth: expected a positive integer, got {value!r}"
        raise ConfigError(msg)
    return value


def load_config(pyproject_path: Path) -> PluraalConfig:
    """Load and validate [tool.pluraal] config from pyproject.toml.

    Args:
        pyproject_path: Path to pyproject.toml

    Returns:
        Parsed PluraalConfig

    Raises:
        ConfigError: If the configuration is invalid

    """
    project_root = pyproject_path.parent

    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("pluraal", {})
    if not section:
        return PluraalConfig(project_root=project_root)

    if not isinstance(section, dict):
        msg = "Invalid [tool.pluraal] configuration: expected a table"
        raise ConfigError(msg)

    return PluraalConfig(
        scope=_parse_path(section, "scope", project_root),
        inputs=_parse_path(section, "inputs", project_root),
        output=_parse_path(section, "output", project_root),
        max_depth=_parse_max_depth(section),
        project_root=project_root,
    )


def get_config() -> PluraalConfig:
    """Get config from pyproject.toml in current directory or parents.

    Returns:
        PluraalConfig (may be empty if no pyproject.toml or no [tool.pluraal] section)

    """
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return PluraalConfig()
    return load_config(pyproject_path)
