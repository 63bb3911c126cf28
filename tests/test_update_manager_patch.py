"""
Tests for registering SwierVision with Moonraker's update manager.
"""

import os

from klipper_updates.modules.swiervision import index as sv


def write_conf(path, content):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        f.write(content)
    return path


def read(path):
    with open(path) as f:
        return f.read()


def expected_section(cfg):
    return (
        "\n"
        "[update_manager SwierVision]\n"
        "type: git_repo\n"
        f"path: {cfg.home}/SwierVision\n"
        "origin: https://github.com/SYNCRAFT-GITHUB/SwierVision.git\n"
        f"env: {cfg.home}/.SwierVision-env/bin/python\n"
        "requirements: scripts/SwierVision-requirements.txt\n"
        "install_script: scripts/SwierVision-install.sh\n"
    )


class TestPatchUpdateManager:

    def test_appends_section_after_missing_trailing_newline(self, cfg, service_calls):
        conf = write_conf(os.path.join(cfg.config_dir, "moonraker.conf"), "[server]\nhost: 0.0.0.0")

        patched = sv.patch_swiervision_update_manager(cfg)

        assert patched == [conf]
        assert read(conf) == "[server]\nhost: 0.0.0.0\n" + expected_section(cfg)
        assert read(conf).count("[update_manager SwierVision]") == 1

    def test_keeps_existing_trailing_newline(self, cfg, service_calls):
        conf = write_conf(os.path.join(cfg.config_dir, "moonraker.conf"), "[server]\n")

        sv.patch_swiervision_update_manager(cfg)

        assert read(conf) == "[server]\n" + expected_section(cfg)

    def test_second_run_changes_nothing(self, cfg, service_calls):
        conf = write_conf(os.path.join(cfg.config_dir, "moonraker.conf"), "[server]\n")
        sv.patch_swiervision_update_manager(cfg)
        first = read(conf)

        patched = sv.patch_swiervision_update_manager(cfg)

        assert patched == []
        assert read(conf) == first
        assert read(conf).count("[update_manager SwierVision]") == 1

    def test_restarts_moonraker_once_when_patched(self, cfg, service_calls):
        write_conf(os.path.join(cfg.config_dir, "printer_1", "moonraker.conf"), "[server]\n")
        write_conf(os.path.join(cfg.config_dir, "printer_2", "moonraker.conf"), "[server]\n")

        patched = sv.patch_swiervision_update_manager(cfg)

        assert len(patched) == 2
        assert service_calls == [{"action": "restart", "service": "moonraker"}]

    def test_no_restart_when_already_registered(self, cfg, service_calls):
        write_conf(os.path.join(cfg.config_dir, "moonraker.conf"),
                   "[server]\n\n[update_manager SwierVision]   \ntype: git_repo\n")

        assert sv.patch_swiervision_update_manager(cfg) == []
        assert service_calls == []

    def test_header_must_start_the_line(self, cfg, service_calls):
        conf = write_conf(os.path.join(cfg.config_dir, "moonraker.conf"),
                          "# [update_manager SwierVision]\n")

        assert sv.patch_swiervision_update_manager(cfg) == [conf]

    def test_other_config_files_untouched(self, cfg, service_calls):
        printer_cfg = write_conf(os.path.join(cfg.config_dir, "printer.cfg"), "[printer]\n")

        assert sv.patch_swiervision_update_manager(cfg) == []
        assert read(printer_cfg) == "[printer]\n"

    def test_missing_config_dir_is_noop(self, cfg, service_calls):
        assert not os.path.exists(cfg.config_dir)
        assert sv.patch_swiervision_update_manager(cfg) == []

    def test_non_utf8_config_is_patched_byte_for_byte(self, cfg, service_calls):
        conf = os.path.join(cfg.config_dir, "moonraker.conf")
        os.makedirs(cfg.config_dir)
        original = b"[server]\n# temp \xb0C\n"
        with open(conf, "wb") as f:
            f.write(original)

        patched = sv.patch_swiervision_update_manager(cfg)

        assert patched == [conf]
        with open(conf, "rb") as f:
            assert f.read() == original + expected_section(cfg).encode("utf-8")

    def test_unreadable_config_is_skipped(self, cfg, service_calls, monkeypatch):
        locked = write_conf(os.path.join(cfg.config_dir, "printer_1", "moonraker.conf"), "[server]\n")
        other = write_conf(os.path.join(cfg.config_dir, "printer_2", "moonraker.conf"), "[server]\n")

        def guarded_open(path, *args, **kwargs):
            if path == locked:
                raise PermissionError(13, "Permission denied", path)
            return open(path, *args, **kwargs)

        monkeypatch.setattr(sv, "open", guarded_open, raising=False)

        patched = sv.patch_swiervision_update_manager(cfg)

        assert patched == [other]
        assert service_calls == [{"action": "restart", "service": "moonraker"}]
