"""TOML configuration file utilities.

Reading uses tomllib (stdlib, Python >=3.11). PromptTrail never writes its
config file; hosts own that.
"""

from __future__ import annotations

from pathlib import Path

CONFIG_FILE_NAME = "prompttrail.toml"
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def find_config() -> Path | None:
    """Search for prompttrail.toml in standard locations.

    Search order:
    1. Current working directory
    2. ~/.config/prompttrail/prompttrail.toml
    3. Project root (where the prompttrail package lives)

    Returns None if not found.
    """
    cwd = Path.cwd() / CONFIG_FILE_NAME
    if cwd.is_file():
        return cwd

    xdg = Path.home() / ".config" / "prompttrail" / CONFIG_FILE_NAME
    if xdg.is_file():
        return xdg

    project = _PROJECT_ROOT / CONFIG_FILE_NAME
    if project.is_file():
        return project

    return None


def load_config(path: Path) -> dict:
    """Load and parse a prompttrail.toml file."""
    import tomllib

    with open(path, "rb") as f:
        return tomllib.load(f)


def get_section(data: dict, name: str) -> dict:
    """Return the table *name* from parsed TOML, or {} when absent or not a table."""
    section = data.get(name)
    return dict(section) if isinstance(section, dict) else {}
