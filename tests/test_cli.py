"""
Tests for the orchestrator command line.
"""

import sys

import pytest

from klipper_updates import index as cli


@pytest.fixture
def dirs(tmp_path):
    home = tmp_path / "home"
    systemd_dir = tmp_path / "systemd"
    home.mkdir()
    systemd_dir.mkdir()
    return ["--home", str(home), "--systemd-dir", str(systemd_dir)]


class TestCli:

    def test_status_of_empty_host(self, dirs):
        result = cli.run(["status"] + dirs)
        assert result == {"success": True, "status": "Not installed!"}

    def test_overrides_reach_module(self, dirs, tmp_path, monkeypatch):
        seen = {}

        def fake_main(args, cfg=None):
            seen["args"] = args
            seen["cfg"] = cfg
            return {"success": True}

        monkeypatch.setattr(cli.swiervision, "main", fake_main)
        cli.run(["remove", "--config-dir", str(tmp_path / "printer_data")] + dirs)

        assert seen["args"] == ["--remove"]
        assert seen["cfg"].install_dir == str(tmp_path / "home" / "SwierVision")
        assert seen["cfg"].config_dir == str(tmp_path / "printer_data")
        assert seen["cfg"].service_file == str(tmp_path / "systemd" / "SwierVision.service")

    def test_updates_lists_registry(self, dirs, tmp_path):
        result = cli.run(["updates"] + dirs)
        assert result == {"success": True, "application_updates_available": []}

    def test_failure_exits_nonzero(self, dirs, monkeypatch):
        monkeypatch.setattr(cli.swiervision, "main", lambda args, cfg=None: {"success": False, "error": "clone"})
        monkeypatch.setattr(sys, "argv", ["klipper-updates", "install"] + dirs)

        with pytest.raises(SystemExit) as exc:
            cli.main()
        assert exc.value.code == 1

    def test_success_exits_zero(self, dirs, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["klipper-updates", "status"] + dirs)

        with pytest.raises(SystemExit) as exc:
            cli.main()
        assert exc.value.code == 0

    def test_unknown_action_rejected(self):
        with pytest.raises(SystemExit):
            cli.run(["reinstall"])
