"""
Klipper Host Update Helper
Copyright (C) 2024 klipper-updates contributors

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

"""
Configuration helpers shared by the orchestrator and lifecycle modules.

Every module keeps its settings in an index.json next to its code. Loading
never fails hard: a missing or broken file falls back to the defaults the
caller provides.
"""

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from .index import log_message

ROOT_CONFIG_DEFAULTS = {
    "debug": False,
    "paths": {
        "backup_dir": "{home}/kiauh-backups",
        "app_updates_file": "{home}/.kiauh-updates.json"
    }
}


def load_json_config(config_path, defaults: Dict[str, Any]) -> Dict[str, Any]:
    """
    Load a JSON configuration file.

    Args:
        config_path: Path to the index.json file
        defaults: Configuration returned when the file cannot be read

    Returns:
        dict: Parsed configuration or a copy of the defaults
    """
    try:
        with open(config_path, 'r') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        log_message(f"Failed to load config {config_path}: {e}", "WARNING")
        return copy.deepcopy(defaults)


def load_root_config() -> Dict[str, Any]:
    """Load the helper-wide index.json sitting at the package root."""
    root_config_path = os.path.join(os.path.dirname(__file__), "..", "index.json")
    return load_json_config(root_config_path, ROOT_CONFIG_DEFAULTS)


def get_module_debug_mode() -> bool:
    return load_root_config().get("debug", False)


def resolve_home(home: Optional[str] = None) -> str:
    """Home directory the helper manages; defaults to the invoking user's."""
    if home:
        return str(Path(home).expanduser())
    return str(Path.home())


def format_path(path_template: str, **values) -> str:
    """
    Format a path template such as "{home}/SwierVision".
    Args:
        path_template: Template with {placeholders}
        values: Placeholder substitutions
    Returns:
        str: Formatted path
    """
    return path_template.format(**values)


def get_root_paths(home: Optional[str] = None) -> Dict[str, str]:
    """Return the root config's paths section with {home} resolved."""
    home = resolve_home(home)
    paths = load_root_config().get("paths", ROOT_CONFIG_DEFAULTS["paths"])
    return {key: format_path(value, home=home) for key, value in paths.items()}
