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

import os
import re
import subprocess
from pathlib import Path
from typing import List

from .index import log_message, status_msg, ok_msg, print_error

DEFAULT_SYSTEMD_DIR = "/etc/systemd/system"


def privileged(cmd: List[str]) -> List[str]:
    """Prefix a command with sudo unless we already run as root."""
    if os.geteuid() == 0:
        return list(cmd)
    return ["sudo"] + list(cmd)


def systemctl(*args) -> bool:
    """Execute a systemctl command, logging stderr on failure."""
    cmd = privileged(["systemctl"] + list(args))
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            log_message(f"systemctl {' '.join(args)} failed: {result.stderr.strip()}", "ERROR")
            return False
        return True
    except OSError as e:
        log_message(f"systemctl {' '.join(args)} error: {e}", "ERROR")
        return False


def find_service_units(service: str, systemd_dir: str = DEFAULT_SYSTEMD_DIR,
                       allow_instances: bool = True) -> List[str]:
    """
    Find unit files for a service in the systemd directory.

    Multi-instance hosts name their units "<service>-<instance>.service";
    those are matched too unless allow_instances is False.

    Returns:
        list: Sorted absolute paths of the matching unit files
    """
    unit_dir = Path(systemd_dir)
    if not unit_dir.is_dir():
        return []

    suffix = r"(-[0-9a-zA-Z]+)?" if allow_instances else ""
    pattern = re.compile(rf"^{re.escape(service)}{suffix}\.service$")
    return sorted(str(p) for p in unit_dir.iterdir() if p.is_file() and pattern.match(p.name))


def do_action_service(action: str, service: str, systemd_dir: str = DEFAULT_SYSTEMD_DIR) -> bool:
    """
    Run a systemctl action against every unit of a service.

    Args:
        action: systemctl verb (start, stop, restart, enable, disable)
        service: Service base name, e.g. "moonraker"
        systemd_dir: Directory holding the unit files

    Returns:
        bool: True if every matching unit accepted the action
    """
    units = find_service_units(service, systemd_dir)
    if not units:
        log_message(f"No {service} service units found in {systemd_dir}", "DEBUG")
        return True

    success = True
    for unit_path in units:
        unit = os.path.basename(unit_path)
        status_msg(f"{action.capitalize()} {unit} ...")
        if systemctl(action, unit):
            ok_msg(f"{action.capitalize()} {unit} successful!")
        else:
            print_error(f"{action.capitalize()} {unit} failed!")
            success = False
    return success


def daemon_reload() -> bool:
    """Reload unit files and clear failed unit state."""
    reloaded = systemctl("daemon-reload")
    reset = systemctl("reset-failed")
    return reloaded and reset
