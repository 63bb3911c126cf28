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

import hashlib
import logging
import os
from typing import Optional

logger = logging.getLogger("klipper_updates")


def log_message(message, level="INFO"):
    """
    Log a message through the shared helper logger.
    Args:
        message (str): The message to log.
        level (str): Log level (e.g., 'INFO', 'ERROR').
    """
    if level == "ERROR":
        logger.error(message)
    elif level == "WARNING":
        logger.warning(message)
    elif level == "DEBUG":
        logger.debug(message)
    else:
        logger.info(message)


# --- Console message helpers used by every lifecycle module ---
def status_msg(message):
    log_message(f"###### {message}")


def ok_msg(message):
    log_message(f"[✓ OK] {message}")


def print_error(message):
    log_message(f"[✗ ERROR] {message}", "ERROR")


def print_confirm(message):
    line = "=" * (len(message) + 4)
    log_message(line)
    log_message(f"  {message}")
    log_message(line)


def calculate_file_sha256(file_path) -> Optional[str]:
    """Calculate SHA256 hash of a file, or None if it does not exist."""
    try:
        if not os.path.exists(file_path):
            return None

        hash_sha256 = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                hash_sha256.update(chunk)
        return hash_sha256.hexdigest()
    except OSError as e:
        log_message(f"Failed to calculate SHA256 for {file_path}: {e}", "ERROR")
        return None
