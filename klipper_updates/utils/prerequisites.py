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

import re
import subprocess
from typing import List, Optional, Sequence, Tuple

from .index import log_message, status_msg, ok_msg, print_error
from .systemd import privileged


def get_python3_version(python_bin: str = "python3") -> Optional[Tuple[int, int]]:
    """Return (major, minor) of the system interpreter, or None."""
    try:
        result = subprocess.run([python_bin, "--version"], capture_output=True, text=True, check=False)
    except OSError as e:
        log_message(f"Failed to run {python_bin}: {e}", "ERROR")
        return None

    # Python 3.4 and older print the version on stderr
    output = (result.stdout or result.stderr).strip()
    match = re.search(r"Python (\d+)\.(\d+)", output)
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def python3_check(min_version: Sequence[int] = (3, 7), python_bin: str = "python3") -> bool:
    """True if the system python3 is at least min_version."""
    version = get_python3_version(python_bin)
    if version is None:
        return False
    return version >= tuple(min_version)


def is_package_installed(package: str) -> bool:
    try:
        result = subprocess.run(
            ["dpkg-query", "-f", "${Status}", "-W", package],
            capture_output=True, text=True, check=False
        )
    except OSError:
        return False
    return result.returncode == 0 and "install ok installed" in result.stdout


def dependency_check(packages: List[str]) -> bool:
    """
    Ensure the given system packages are installed, installing missing ones with apt.

    Returns:
        bool: True if every package is present afterwards
    """
    status_msg("Checking for the following dependencies:")
    for package in packages:
        log_message(f"  ● {package}")

    missing = [p for p in packages if not is_package_installed(p)]
    if not missing:
        ok_msg("Dependencies already met!")
        return True

    status_msg(f"Installing the following dependencies: {' '.join(missing)}")
    try:
        subprocess.run(privileged(["apt-get", "update", "--allow-releaseinfo-change"]),
                       capture_output=True, text=True, check=True)
        subprocess.run(privileged(["apt-get", "install", "-y"] + missing),
                       capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as e:
        print_error(f"Installing dependencies failed: {(e.stderr or '').strip()}")
        return False
    except OSError as e:
        print_error(f"Installing dependencies failed: {e}")
        return False

    ok_msg("Dependencies installed!")
    return True
