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
import shutil
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from klipper_updates.utils.index import (
    log_message, status_msg, ok_msg, print_error, print_confirm, calculate_file_sha256
)
from klipper_updates.utils.config import load_json_config, resolve_home, format_path, get_root_paths
from klipper_updates.utils.pipeline import Step, StepResult, PipelineResult, PipelineError, run_pipeline
from klipper_updates.utils.systemd import (
    DEFAULT_SYSTEMD_DIR, privileged, do_action_service, daemon_reload, find_service_units
)
from klipper_updates.utils.git_operations import GitOperations, check_repository_reachable, is_git_repository
from klipper_updates.utils.prerequisites import python3_check, dependency_check
from klipper_updates.utils.state_manager import backup_config_dir, backup_before_update
from klipper_updates.utils.app_updates import add_to_application_updates

MODULE_DEFAULTS = {
    "metadata": {
        "schema_version": "1.0.0",
        "module_name": "swiervision"
    },
    "config": {
        "directories": {
            "install_dir": "{home}/SwierVision",
            "env_dir": "{home}/.SwierVision-env",
            "config_dir": "{home}/klipper_config",
            "systemd_dir": DEFAULT_SYSTEMD_DIR,
            "log_file": "/tmp/SwierVision.log"
        },
        "repository": {
            "url": "https://github.com/SYNCRAFT-GITHUB/SwierVision.git",
            "remote": "origin",
            "branch": "master"
        },
        "installation": {
            "requirements_file": "scripts/SwierVision-requirements.txt",
            "install_script": "scripts/SwierVision-install.sh",
            "dependencies": ["wget", "curl", "unzip", "dfu-util"],
            "min_python": [3, 7]
        },
        "services": {
            "service_name": "SwierVision",
            "moonraker_service": "moonraker",
            "moonraker_config": "moonraker.conf"
        },
        "backup": {
            "backup_before_update": False
        }
    }
}


# Load module configuration from index.json
def load_module_config():
    """
    Load configuration from the module's index.json file.
    Returns:
        dict: Configuration data or default values if loading fails
    """
    config_path = os.path.join(os.path.dirname(__file__), "index.json")
    return load_json_config(config_path, MODULE_DEFAULTS)


# Global configuration
MODULE_CONFIG = load_module_config()

MODULE_NAME = MODULE_CONFIG["metadata"]["module_name"]


class InstallStatus(str, Enum):
    INSTALLED = "Installed!"
    NOT_INSTALLED = "Not installed!"
    INCOMPLETE = "Incomplete!"


@dataclass
class SwierVisionConfig:
    """Every path and name the SwierVision operations touch."""
    home: str
    install_dir: str
    env_dir: str
    config_dir: str
    systemd_dir: str
    log_file: str
    repo_url: str
    remote: str = "origin"
    branch: str = "master"
    requirements_file: str = "scripts/SwierVision-requirements.txt"
    install_script: str = "scripts/SwierVision-install.sh"
    service_name: str = "SwierVision"
    moonraker_service: str = "moonraker"
    moonraker_config: str = "moonraker.conf"
    dependencies: List[str] = field(default_factory=list)
    min_python: tuple = (3, 7)
    backup_dir: str = ""
    app_updates_file: str = ""
    backup_before_update: bool = False

    @classmethod
    def from_module_config(cls, module_config: Optional[Dict[str, Any]] = None,
                           home: Optional[str] = None, **overrides) -> 'SwierVisionConfig':
        """
        Build a config from the module's index.json structure.

        Args:
            module_config: Parsed index.json; defaults to MODULE_CONFIG
            home: Home directory substituted for {home}
            overrides: Field values that win over the file, None values are ignored

        Returns:
            SwierVisionConfig: Resolved configuration
        """
        module_config = module_config or MODULE_CONFIG
        config = module_config["config"]
        home = resolve_home(home)

        directories = {
            key: format_path(value, home=home)
            for key, value in config["directories"].items()
        }
        repository = config["repository"]
        installation = config["installation"]
        services = config["services"]
        root_paths = get_root_paths(home)

        values = dict(
            home=home,
            install_dir=directories["install_dir"],
            env_dir=directories["env_dir"],
            config_dir=directories["config_dir"],
            systemd_dir=directories.get("systemd_dir", DEFAULT_SYSTEMD_DIR),
            log_file=directories["log_file"],
            repo_url=repository["url"],
            remote=repository.get("remote", "origin"),
            branch=repository.get("branch", "master"),
            requirements_file=installation["requirements_file"],
            install_script=installation["install_script"],
            dependencies=list(installation.get("dependencies", [])),
            min_python=tuple(installation.get("min_python", (3, 7))),
            service_name=services["service_name"],
            moonraker_service=services.get("moonraker_service", "moonraker"),
            moonraker_config=services.get("moonraker_config", "moonraker.conf"),
            backup_dir=root_paths["backup_dir"],
            app_updates_file=root_paths["app_updates_file"],
            backup_before_update=config.get("backup", {}).get("backup_before_update", False)
        )
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @property
    def service_file(self) -> str:
        return os.path.join(self.systemd_dir, f"{self.service_name}.service")

    @property
    def log_symlink(self) -> str:
        return os.path.join(self.config_dir, os.path.basename(self.log_file))

    @property
    def requirements_path(self) -> str:
        return os.path.join(self.install_dir, self.requirements_file)

    @property
    def install_script_path(self) -> str:
        return os.path.join(self.install_dir, self.install_script)

    @property
    def env_python(self) -> str:
        return os.path.join(self.env_dir, "bin", "python")

    @property
    def env_pip(self) -> str:
        return os.path.join(self.env_dir, "bin", "pip")


@dataclass
class VersionInfo:
    local: Optional[str]
    remote: Optional[str]
    update_available: bool


def get_swiervision_config(home: Optional[str] = None, **overrides) -> SwierVisionConfig:
    return SwierVisionConfig.from_module_config(MODULE_CONFIG, home=home, **overrides)


def git_for(cfg: SwierVisionConfig) -> GitOperations:
    return GitOperations(cfg.install_dir, remote=cfg.remote, branch=cfg.branch)


def _remove_file(path: str) -> None:
    """Delete a file, escalating with sudo when it is not ours to delete."""
    try:
        os.remove(path)
    except PermissionError:
        subprocess.run(privileged(["rm", "-f", path]), capture_output=True, text=True, check=True)


# --- Install ---
def install_swiervision(cfg: SwierVisionConfig) -> PipelineResult:
    """
    Install SwierVision from scratch, replacing any existing checkout.

    Steps: python version gate, config backup, system dependencies, origin
    reachability, clone, vendor install script, update manager registration,
    service restart. The first five after the gate are fatal on failure.
    """
    steps = [
        Step("python3_check", lambda: _check_python(cfg)),
        Step("backup_config_dir", lambda: _backup_config(cfg), fatal=False),
        Step("dependency_check", lambda: _check_dependencies(cfg)),
        Step("check_origin", lambda: _check_origin(cfg)),
        Step("remove_existing", lambda: _remove_existing_checkout(cfg)),
        Step("clone", lambda: _clone(cfg)),
        Step("install_script", lambda: _run_install_script(cfg)),
        Step("patch_update_manager", lambda: _patch_step(cfg), fatal=False),
        Step("restart_service", lambda: _service_step(cfg, "restart"), fatal=False),
    ]
    return run_pipeline("install", steps)


def _check_python(cfg: SwierVisionConfig) -> StepResult:
    if python3_check(cfg.min_python):
        return StepResult.ok("python3_check")
    required = ".".join(str(part) for part in cfg.min_python)
    error = f"Versioncheck failed! Python {required} or newer required! Please upgrade Python."
    print_error(error)
    return StepResult.failed("python3_check", error)


def _backup_config(cfg: SwierVisionConfig) -> StepResult:
    if backup_config_dir(cfg.config_dir, cfg.backup_dir):
        return StepResult.ok("backup_config_dir")
    return StepResult.failed("backup_config_dir", f"Backup of {cfg.config_dir} failed")


def _check_dependencies(cfg: SwierVisionConfig) -> StepResult:
    if not cfg.dependencies or dependency_check(cfg.dependencies):
        return StepResult.ok("dependency_check")
    return StepResult.failed("dependency_check", "Installing system dependencies failed")


def _check_origin(cfg: SwierVisionConfig) -> StepResult:
    if check_repository_reachable(cfg.repo_url):
        return StepResult.ok("check_origin")
    error = f"Repository {cfg.repo_url} is not reachable, leaving existing installation untouched"
    print_error(error)
    return StepResult.failed("check_origin", error)


def _remove_existing_checkout(cfg: SwierVisionConfig) -> StepResult:
    if os.path.isdir(cfg.install_dir):
        try:
            shutil.rmtree(cfg.install_dir)
        except OSError as e:
            raise PipelineError(f"Could not remove {cfg.install_dir}: {e}") from e
        log_message(f"Removed existing {cfg.install_dir}", "DEBUG")
    return StepResult.ok("remove_existing")


def _clone(cfg: SwierVisionConfig) -> StepResult:
    status_msg(f"Cloning SwierVision from {cfg.repo_url} ...")
    os.makedirs(os.path.dirname(cfg.install_dir) or ".", exist_ok=True)
    if not git_for(cfg).clone(cfg.repo_url):
        error = f"Cloning SwierVision from {cfg.repo_url} failed!"
        print_error(error)
        return StepResult.failed("clone", error)
    return StepResult.ok("clone")


def _run_install_script(cfg: SwierVisionConfig) -> StepResult:
    status_msg("Installing SwierVision ...")
    script = cfg.install_script_path
    if not os.path.isfile(script):
        error = f"Install script not found: {script}"
        print_error(error)
        return StepResult.failed("install_script", error)

    # The vendor script prompts for sudo, keep the terminal attached
    try:
        result = subprocess.run([script], cwd=cfg.home)
    except OSError as e:
        raise PipelineError(f"SwierVision installation failed! {e}") from e

    if result.returncode != 0:
        error = "SwierVision installation failed!"
        print_error(error)
        return StepResult.failed("install_script", error, returncode=result.returncode)

    ok_msg("SwierVision successfully installed!")
    return StepResult.ok("install_script")


def _patch_step(cfg: SwierVisionConfig) -> StepResult:
    patched = patch_swiervision_update_manager(cfg)
    return StepResult.ok("patch_update_manager", patched_files=patched)


def _service_step(cfg: SwierVisionConfig, action: str) -> StepResult:
    name = f"{action}_service"
    if do_action_service(action, cfg.service_name, cfg.systemd_dir):
        return StepResult.ok(name)
    return StepResult.failed(name, f"Could not {action} {cfg.service_name}")


# --- Remove ---
def remove_swiervision(cfg: SwierVisionConfig) -> PipelineResult:
    """
    Remove every SwierVision artifact that exists. Missing ones are skipped.
    """
    steps = [
        Step("remove_install_dir", lambda: _remove_dir(cfg.install_dir, "SwierVision directory"), fatal=False),
        Step("remove_env_dir", lambda: _remove_dir(cfg.env_dir, "SwierVision VENV directory"), fatal=False),
        Step("remove_service", lambda: _remove_service(cfg), fatal=False),
        Step("remove_log_file", lambda: _remove_log(cfg.log_file, "SwierVision log file"), fatal=False),
        Step("remove_log_symlink", lambda: _remove_log(cfg.log_symlink, "SwierVision log symlink"), fatal=False),
    ]
    result = run_pipeline("remove", steps)
    if result.success:
        print_confirm("SwierVision successfully removed!")
    return result


def _remove_dir(path: str, label: str) -> Optional[StepResult]:
    if not os.path.isdir(path):
        return None
    status_msg(f"Removing {label} ...")
    try:
        if os.path.islink(path):
            os.remove(path)
        else:
            shutil.rmtree(path)
    except OSError as e:
        return StepResult.failed(f"remove {path}", f"Removing {path} failed: {e}")
    ok_msg("Directory removed!")
    return StepResult.ok(f"remove {path}", removed=path)


def _remove_service(cfg: SwierVisionConfig) -> Optional[StepResult]:
    if not os.path.exists(cfg.service_file):
        return None

    status_msg("Removing SwierVision service ...")
    do_action_service("stop", cfg.service_name, cfg.systemd_dir)
    do_action_service("disable", cfg.service_name, cfg.systemd_dir)
    try:
        _remove_file(cfg.service_file)
    except (OSError, subprocess.CalledProcessError) as e:
        return StepResult.failed("remove_service", f"Removing {cfg.service_file} failed: {e}")

    daemon_reload()
    ok_msg("SwierVision Service removed!")
    return StepResult.ok("remove_service", removed=cfg.service_file)


def _remove_log(path: str, label: str) -> Optional[StepResult]:
    # lexists so a dangling log symlink is removed as well
    if not os.path.lexists(path):
        return None
    status_msg(f"Removing {label} ...")
    try:
        _remove_file(path)
    except (OSError, subprocess.CalledProcessError) as e:
        return StepResult.failed(f"remove {path}", f"Removing {path} failed: {e}")
    ok_msg("File removed!")
    return StepResult.ok(f"remove {path}", removed=path)


# --- Update ---
def update_swiervision(cfg: SwierVisionConfig) -> PipelineResult:
    """
    Pull the tracked branch and reinstall Python requirements if they changed.

    The service is stopped first and always started again at the end, even
    when an earlier step failed.
    """
    old_checksum = calculate_file_sha256(cfg.requirements_path)

    steps = [
        Step("stop_service", lambda: _service_step(cfg, "stop"), fatal=False),
        Step("backup_before_update", lambda: _backup_before_update(cfg)),
        Step("pull", lambda: _pull(cfg)),
        Step("checkout", lambda: _checkout(cfg)),
        Step("requirements", lambda: _reinstall_requirements_if_changed(cfg, old_checksum)),
    ]
    result = run_pipeline("update", steps)
    if result.success:
        ok_msg("Update complete!")

    start = _service_step(cfg, "start")
    result.steps.append(start)
    if not start.success:
        result.success = False
    return result


def _backup_before_update(cfg: SwierVisionConfig) -> StepResult:
    if backup_before_update(MODULE_NAME, [cfg.install_dir], cfg.backup_dir, cfg.backup_before_update):
        return StepResult.ok("backup_before_update")
    return StepResult.failed("backup_before_update", "Backup before update failed")


def _pull(cfg: SwierVisionConfig) -> StepResult:
    if not git_for(cfg).pull():
        print_error("Fetching SwierVision failed!")
        return StepResult.failed("pull", f"git pull {cfg.remote} {cfg.branch} failed")
    ok_msg("Fetch successful!")
    return StepResult.ok("pull")


def _checkout(cfg: SwierVisionConfig) -> StepResult:
    if not git_for(cfg).checkout(force=True):
        print_error("Checkout failed!")
        return StepResult.failed("checkout", f"git checkout -f {cfg.branch} failed")
    ok_msg("Checkout successful!")
    return StepResult.ok("checkout")


def _reinstall_requirements_if_changed(cfg: SwierVisionConfig, old_checksum: Optional[str]) -> StepResult:
    new_checksum = calculate_file_sha256(cfg.requirements_path)
    if new_checksum is None or new_checksum == old_checksum:
        return StepResult.ok("requirements", reinstalled=False)

    status_msg("New dependencies detected...")
    try:
        result = subprocess.run(
            [cfg.env_pip, "install", "-r", cfg.requirements_path],
            capture_output=True, text=True
        )
    except OSError as e:
        raise PipelineError(f"Running {cfg.env_pip} failed: {e}") from e

    if result.returncode != 0:
        print_error("Installing dependencies failed!")
        return StepResult.failed("requirements", result.stderr.strip(), reinstalled=False)

    ok_msg("Dependencies have been installed!")
    return StepResult.ok("requirements", reinstalled=True)


# --- Status ---
def swiervision_systemd(cfg: SwierVisionConfig) -> List[str]:
    return find_service_units(cfg.service_name, cfg.systemd_dir, allow_instances=False)


def get_swiervision_status(cfg: SwierVisionConfig) -> InstallStatus:
    """
    Derive the install status from which SwierVision paths exist.

    The unit file only counts against the status: when it is found it drops
    out of the checked list, when it is missing the list can never be complete.
    """
    data = [cfg.service_file, cfg.install_dir, cfg.env_dir]
    if swiervision_systemd(cfg):
        data = data[1:]

    found = sum(1 for path in data if os.path.exists(path))
    if found == len(data):
        return InstallStatus.INSTALLED
    if found == 0:
        return InstallStatus.NOT_INSTALLED
    return InstallStatus.INCOMPLETE


def get_local_swiervision_commit(cfg: SwierVisionConfig) -> Optional[str]:
    return git_for(cfg).describe("HEAD")


def get_remote_swiervision_commit(cfg: SwierVisionConfig) -> Optional[str]:
    if not is_git_repository(cfg.install_dir):
        return None
    git = git_for(cfg)
    git.fetch()
    return git.describe(f"{cfg.remote}/{cfg.branch}")


def compare_swiervision_versions(cfg: SwierVisionConfig) -> VersionInfo:
    """
    Compare the local checkout with the remote branch.

    A difference registers swiervision in the application-updates registry.
    """
    local_ver = get_local_swiervision_commit(cfg)
    remote_ver = get_remote_swiervision_commit(cfg)
    update_available = local_ver != remote_ver

    if update_available:
        add_to_application_updates(MODULE_NAME, cfg.app_updates_file)

    return VersionInfo(local=local_ver, remote=remote_ver, update_available=update_available)


def format_versions(info: VersionInfo) -> str:
    local_ver = info.local or ""
    remote_ver = info.remote or ""
    return f" {local_ver:<14}| {remote_ver:<13}"


# --- Update manager registration ---
def update_manager_header_pattern(cfg: SwierVisionConfig):
    return re.compile(rf"^\[update_manager {re.escape(cfg.service_name)}\]\s*$", re.MULTILINE)


def render_update_manager_section(cfg: SwierVisionConfig) -> str:
    return (
        "\n"
        f"[update_manager {cfg.service_name}]\n"
        "type: git_repo\n"
        f"path: {cfg.install_dir}\n"
        f"origin: {cfg.repo_url}\n"
        f"env: {cfg.env_python}\n"
        f"requirements: {cfg.requirements_file}\n"
        f"install_script: {cfg.install_script}\n"
    )


def find_moonraker_configs(cfg: SwierVisionConfig) -> List[str]:
    if not os.path.isdir(cfg.config_dir):
        return []
    return sorted(str(p) for p in Path(cfg.config_dir).rglob(cfg.moonraker_config) if p.is_file())


def patch_swiervision_update_manager(cfg: SwierVisionConfig) -> List[str]:
    """
    Register SwierVision with Moonraker's update manager.

    Appends the update manager section to every moonraker.conf below the
    config directory that does not have it yet, then restarts Moonraker once
    if anything changed.

    Returns:
        list: Config files that were patched
    """
    header = update_manager_header_pattern(cfg)
    section = render_update_manager_section(cfg)
    patched = []

    for conf in find_moonraker_configs(cfg):
        # Bytes the locale cannot decode are carried through untouched
        try:
            with open(conf, 'r', encoding="utf-8", errors="surrogateescape") as f:
                content = f.read()
            if header.search(content):
                continue

            status_msg(f"Adding SwierVision to update manager in file: {conf}")
            with open(conf, 'a', encoding="utf-8", errors="surrogateescape") as f:
                if content and not content.endswith("\n"):
                    f.write("\n")
                f.write(section)
        except OSError as e:
            print_error(f"Could not patch {conf}: {e}")
            continue
        patched.append(conf)

    if patched:
        do_action_service("restart", cfg.moonraker_service, cfg.systemd_dir)

    return patched


def main(args=None, cfg: Optional[SwierVisionConfig] = None):
    """
    Main entry point for the SwierVision module.
    Args:
        args: List of arguments (supports '--install', '--remove', '--update',
              '--status', '--versions', '--patch', '--config')
        cfg: Resolved configuration; built from index.json when omitted
    Returns:
        dict: Status and results of the operation
    """
    if args is None:
        args = []
    if cfg is None:
        cfg = get_swiervision_config()

    action = args[0] if args else "--status"

    if action == "--config":
        log_message("Current SwierVision module configuration:")
        log_message(f"  Install dir: {cfg.install_dir}")
        log_message(f"  Env dir: {cfg.env_dir}")
        log_message(f"  Config dir: {cfg.config_dir}")
        log_message(f"  Service file: {cfg.service_file}")
        log_message(f"  Repository: {cfg.repo_url} ({cfg.branch})")
        return {"success": True, "config": MODULE_CONFIG}

    if action == "--status":
        status = get_swiervision_status(cfg)
        log_message(f"SwierVision: {status.value}")
        return {"success": True, "status": status.value}

    if action == "--versions":
        info = compare_swiervision_versions(cfg)
        log_message(f"SwierVision versions:{format_versions(info)}")
        return {
            "success": True,
            "local": info.local,
            "remote": info.remote,
            "update_available": info.update_available
        }

    if action == "--patch":
        patched = patch_swiervision_update_manager(cfg)
        return {"success": True, "patched_files": patched}

    operations = {
        "--install": install_swiervision,
        "--remove": remove_swiervision,
        "--update": update_swiervision,
    }
    if action not in operations:
        log_message(f"Unknown SwierVision action: {action}", "ERROR")
        return {"success": False, "error": f"Unknown action {action}"}

    log_message(f"Starting SwierVision {action.lstrip('-')}...")
    return operations[action](cfg).to_dict()


if __name__ == "__main__":
    main()
