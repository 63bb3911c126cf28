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
State Manager for the update helper

Simple single-backup-per-name state management. Each backup name (a module,
or the printer config directory) gets exactly one slot that is clobbered on
every backup. No timelines, no cleanup needed.

Usage:
    from klipper_updates.utils.state_manager import StateManager

    state_manager = StateManager("/home/pi/kiauh-backups")

    # Create backup (clobbers any existing backup for this name)
    state_manager.backup_module_state("swiervision", files=["/home/pi/SwierVision"])

    # Restore if needed
    state_manager.restore_module_state("swiervision")
"""

import hashlib
import json
import os
import shutil
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from .index import log_message, status_msg, ok_msg


class StateManagerError(Exception):
    """Custom exception for state manager operation failures."""
    pass


@dataclass
class ModuleBackupInfo:
    """Information about a module's backup state."""
    module_name: str
    timestamp: int
    description: str
    backup_dir: str
    files: List[str]
    checksum: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ModuleBackupInfo':
        return cls(**data)


class StateManager:
    """
    Single-backup-per-name state management.

    Creating a new backup clobbers the previous backup with the same name.
    """

    def __init__(self, backup_dir: str):
        self.backup_root = Path(backup_dir)
        self.backup_root.mkdir(parents=True, exist_ok=True)
        self.index_file = self.backup_root / "module_backups.json"

    def _get_module_backup_dir(self, module_name: str) -> Path:
        return self.backup_root / f"{module_name}_backup"

    def _calculate_checksum(self, path: Path) -> str:
        """Calculate SHA-256 checksum over all files below a directory."""
        sha256_hash = hashlib.sha256()

        for root, dirs, files in os.walk(path):
            # Sort for consistent ordering
            dirs.sort()
            files.sort()

            for file in files:
                full_path = os.path.join(root, file)
                sha256_hash.update(os.path.relpath(full_path, path).encode())
                try:
                    with open(full_path, 'rb') as f:
                        for chunk in iter(lambda: f.read(4096), b""):
                            sha256_hash.update(chunk)
                except OSError:
                    # Sockets, broken symlinks and the like
                    continue

        return sha256_hash.hexdigest()

    def _load_module_index(self) -> Dict[str, ModuleBackupInfo]:
        if not self.index_file.exists():
            return {}

        try:
            with open(self.index_file, 'r') as f:
                data = json.load(f)
            return {
                module_name: ModuleBackupInfo.from_dict(backup_data)
                for module_name, backup_data in data.items()
            }
        except (OSError, ValueError, TypeError) as e:
            log_message(f"Failed to load module backup index: {e}", "WARNING")
            return {}

    def _save_module_index(self, module_backups: Dict[str, ModuleBackupInfo]) -> None:
        data = {
            module_name: backup.to_dict()
            for module_name, backup in module_backups.items()
        }
        try:
            with open(self.index_file, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise StateManagerError(f"Failed to save module backup index: {e}") from e

    @staticmethod
    def _backup_target(files_dir: Path, file_path: str) -> Path:
        # Mirror absolute paths below the backup's files/ directory
        return files_dir / str(Path(file_path)).lstrip('/')

    def _backup_files(self, module_backup_dir: Path, files: List[str]) -> int:
        files_dir = module_backup_dir / "files"
        files_dir.mkdir(parents=True, exist_ok=True)

        success_count = 0
        for file_path in files:
            source = Path(file_path)
            if not source.exists():
                log_message(f"Source file not found, skipping: {file_path}", "WARNING")
                continue

            backup_target = self._backup_target(files_dir, file_path)
            backup_target.parent.mkdir(parents=True, exist_ok=True)

            try:
                if source.is_dir():
                    shutil.copytree(source, backup_target, symlinks=True)
                else:
                    shutil.copy2(source, backup_target)
            except (OSError, shutil.Error) as e:
                log_message(f"Failed to backup {file_path}: {e}", "WARNING")
                continue

            success_count += 1
            log_message(f"Backed up: {file_path}", "DEBUG")

        return success_count

    def backup_module_state(self, module_name: str, description: str = "",
                            files: Optional[List[str]] = None) -> bool:
        """
        Create a backup of the given paths under module_name.
        Clobbers any existing backup with the same name.

        Args:
            module_name: Name of the backup slot
            description: Description of the backup
            files: List of file/directory paths to backup

        Returns:
            bool: True if at least one path was backed up
        """
        files = [str(f) for f in (files or [])]
        if not files:
            log_message(f"No backup data specified for {module_name}", "WARNING")
            return False

        module_backup_dir = self._get_module_backup_dir(module_name)

        try:
            if module_backup_dir.exists():
                shutil.rmtree(module_backup_dir)
                log_message(f"Clobbered previous backup for {module_name}", "DEBUG")
            module_backup_dir.mkdir(parents=True, exist_ok=True)

            if self._backup_files(module_backup_dir, files) == 0:
                raise StateManagerError(f"Nothing could be backed up for {module_name}")

            timestamp = int(time.time())
            backup_info = ModuleBackupInfo(
                module_name=module_name,
                timestamp=timestamp,
                description=description or f"backup_{timestamp}",
                backup_dir=str(module_backup_dir),
                files=files,
                checksum=self._calculate_checksum(module_backup_dir)
            )

            module_backups = self._load_module_index()
            module_backups[module_name] = backup_info
            self._save_module_index(module_backups)

            log_message(f"Successfully created backup for {module_name} ({len(files)} paths)")
            return True

        except (OSError, StateManagerError) as e:
            log_message(f"Failed to create backup for {module_name}: {e}", "ERROR")
            if module_backup_dir.exists():
                shutil.rmtree(module_backup_dir, ignore_errors=True)
            return False

    def restore_module_state(self, module_name: str) -> bool:
        """
        Restore every path recorded in a backup.

        Returns:
            bool: True if all recorded paths were restored
        """
        backup_info = self._load_module_index().get(module_name)
        if backup_info is None:
            log_message(f"No backup found for: {module_name}", "ERROR")
            return False

        files_dir = Path(backup_info.backup_dir) / "files"
        if not files_dir.exists():
            log_message(f"Backup directory not found: {files_dir}", "ERROR")
            return False

        log_message(f"Restoring state: {module_name}")
        success = True
        for file_path in backup_info.files:
            target = Path(file_path)
            backup_source = self._backup_target(files_dir, file_path)
            if not backup_source.exists():
                log_message(f"Backup file not found, skipping: {file_path}", "WARNING")
                success = False
                continue

            try:
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                elif target.exists() or target.is_symlink():
                    target.unlink()

                target.parent.mkdir(parents=True, exist_ok=True)
                if backup_source.is_dir():
                    shutil.copytree(backup_source, target, symlinks=True)
                else:
                    shutil.copy2(backup_source, target)
                log_message(f"Restored: {file_path}", "DEBUG")
            except (OSError, shutil.Error) as e:
                log_message(f"Failed to restore {file_path}: {e}", "WARNING")
                success = False

        return success

    def has_backup(self, module_name: str) -> bool:
        backup_info = self._load_module_index().get(module_name)
        return backup_info is not None and Path(backup_info.backup_dir).exists()

    def get_backup_info(self, module_name: str) -> Optional[ModuleBackupInfo]:
        return self._load_module_index().get(module_name)


def backup_config_dir(config_dir: str, backup_dir: str) -> bool:
    """
    Back up the whole printer configuration directory.

    A missing config directory is not an error: there is nothing to lose.
    """
    if not os.path.isdir(config_dir):
        log_message(f"No config directory at {config_dir}, skipping backup", "WARNING")
        return True

    status_msg(f"Creating backup of {config_dir} ...")
    state_manager = StateManager(backup_dir)
    if not state_manager.backup_module_state(
        module_name="config_dir",
        description="pre_install_config_backup",
        files=[config_dir]
    ):
        return False
    ok_msg("Backup complete!")
    return True


def backup_before_update(name: str, paths: List[str], backup_dir: str, enabled: bool = True) -> bool:
    """
    Back up an application's paths before it is updated.

    Args:
        name: Application name used as backup slot
        paths: Paths to include; missing ones are skipped
        backup_dir: Root directory of the backups
        enabled: The helper's "backup before update" setting

    Returns:
        bool: True if the backup was made or is disabled
    """
    if not enabled:
        log_message(f"Backup before update disabled, skipping {name}", "DEBUG")
        return True

    existing = [p for p in paths if os.path.exists(p)]
    if not existing:
        log_message(f"No {name} files found for backup", "WARNING")
        return True

    status_msg(f"Creating backup of {name} before update ...")
    state_manager = StateManager(backup_dir)
    if not state_manager.backup_module_state(
        module_name=name,
        description=f"pre_update_{name}",
        files=existing
    ):
        return False
    ok_msg(f"Backup of {name} complete!")
    return True
