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
Utilities for the update helper.

This module provides common utilities used by the lifecycle modules.
"""

from .index import log_message, status_msg, ok_msg, print_error, print_confirm, calculate_file_sha256
from .pipeline import Step, StepResult, PipelineResult, PipelineError, run_pipeline
from .state_manager import StateManager, StateManagerError, backup_config_dir, backup_before_update
from .app_updates import ApplicationUpdates, add_to_application_updates
from .systemd import do_action_service, daemon_reload, find_service_units
from .prerequisites import python3_check, dependency_check

__all__ = [
    'log_message',
    'status_msg',
    'ok_msg',
    'print_error',
    'print_confirm',
    'calculate_file_sha256',
    'Step',
    'StepResult',
    'PipelineResult',
    'PipelineError',
    'run_pipeline',
    'StateManager',
    'StateManagerError',
    'backup_config_dir',
    'backup_before_update',
    'ApplicationUpdates',
    'add_to_application_updates',
    'do_action_service',
    'daemon_reload',
    'find_service_units',
    'python3_check',
    'dependency_check'
]
