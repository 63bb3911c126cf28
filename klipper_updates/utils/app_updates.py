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
Registry of applications with updates available.

Status checks add an application here when their local and remote versions
differ; the host menu reads it to offer "update all".
"""

import json
import os
from typing import List

from .index import log_message


class ApplicationUpdates:
    """JSON-backed list of application names with pending updates."""

    def __init__(self, registry_file: str):
        self.registry_file = registry_file

    def get(self) -> List[str]:
        if not os.path.exists(self.registry_file):
            return []
        try:
            with open(self.registry_file, 'r') as f:
                data = json.load(f)
            return list(data.get("application_updates_available", []))
        except (OSError, ValueError, AttributeError) as e:
            log_message(f"Failed to read update registry {self.registry_file}: {e}", "WARNING")
            return []

    def _save(self, applications: List[str]) -> None:
        parent = os.path.dirname(self.registry_file)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(self.registry_file, 'w') as f:
            json.dump({"application_updates_available": applications}, f, indent=4)

    def add(self, application: str) -> bool:
        """
        Add an application to the registry.

        Returns:
            bool: True if it was newly added
        """
        applications = self.get()
        if application in applications:
            return False
        applications.append(application)
        self._save(applications)
        log_message(f"Update available for {application}", "DEBUG")
        return True

    def clear(self) -> None:
        self._save([])


def add_to_application_updates(application: str, registry_file: str) -> bool:
    return ApplicationUpdates(registry_file).add(application)
