"""
Pytest fixtures for the update helper tests.
"""

import logging
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from klipper_updates.modules.swiervision import index as sv  # noqa: E402


@pytest.fixture
def cfg(tmp_path) -> sv.SwierVisionConfig:
    """A SwierVision config rooted entirely below tmp_path."""
    home = tmp_path / "home"
    systemd_dir = tmp_path / "systemd"
    home.mkdir()
    systemd_dir.mkdir()
    return sv.SwierVisionConfig(
        home=str(home),
        install_dir=str(home / "SwierVision"),
        env_dir=str(home / ".SwierVision-env"),
        config_dir=str(home / "klipper_config"),
        systemd_dir=str(systemd_dir),
        log_file=str(tmp_path / "SwierVision.log"),
        repo_url="https://github.com/SYNCRAFT-GITHUB/SwierVision.git",
        dependencies=["wget", "curl", "unzip", "dfu-util"],
        backup_dir=str(tmp_path / "backups"),
        app_updates_file=str(tmp_path / "kiauh-updates.json"),
    )


@pytest.fixture
def service_calls(monkeypatch) -> List[Dict[str, Any]]:
    """Record do_action_service calls instead of talking to systemd."""
    calls = []

    def fake_do_action_service(action, service, systemd_dir=None):
        calls.append({"action": action, "service": service})
        return True

    monkeypatch.setattr(sv, "do_action_service", fake_do_action_service)
    monkeypatch.setattr(sv, "daemon_reload", lambda: True)
    return calls


@pytest.fixture
def completed():
    """Factory for fake subprocess results."""
    def make(returncode=0, stdout="", stderr="") -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)
    return make


@pytest.fixture(autouse=True)
def drop_cli_log_handlers():
    """The CLI installs a stdout handler on the root logger; take it off again."""
    yield
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if type(handler) is logging.StreamHandler:
            root_logger.removeHandler(handler)
