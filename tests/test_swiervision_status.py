"""
Tests for SwierVision install status and version reporting.
"""

import itertools
import json
import os

import pytest

from klipper_updates.modules.swiervision import index as sv


def make_paths(cfg, service, install_dir, env_dir):
    if service:
        with open(cfg.service_file, "w") as f:
            f.write("[Unit]\n")
    if install_dir:
        os.makedirs(cfg.install_dir)
    if env_dir:
        os.makedirs(cfg.env_dir)


class TestInstallStatus:

    @pytest.mark.parametrize("service,install_dir,env_dir", list(itertools.product([True, False], repeat=3)))
    def test_always_one_of_three_states(self, cfg, service, install_dir, env_dir):
        make_paths(cfg, service, install_dir, env_dir)
        status = sv.get_swiervision_status(cfg)
        assert status in (sv.InstallStatus.INSTALLED, sv.InstallStatus.NOT_INSTALLED, sv.InstallStatus.INCOMPLETE)

    def test_everything_present_is_installed(self, cfg):
        make_paths(cfg, True, True, True)
        assert sv.get_swiervision_status(cfg) == sv.InstallStatus.INSTALLED

    def test_nothing_present_is_not_installed(self, cfg):
        assert sv.get_swiervision_status(cfg) == sv.InstallStatus.NOT_INSTALLED

    def test_service_only_counts_as_not_installed(self, cfg):
        # A found unit drops out of the checked paths
        make_paths(cfg, True, False, False)
        assert sv.get_swiervision_status(cfg) == sv.InstallStatus.NOT_INSTALLED

    def test_missing_service_is_incomplete(self, cfg):
        make_paths(cfg, False, True, True)
        assert sv.get_swiervision_status(cfg) == sv.InstallStatus.INCOMPLETE

    def test_missing_env_is_incomplete(self, cfg):
        make_paths(cfg, True, True, False)
        assert sv.get_swiervision_status(cfg) == sv.InstallStatus.INCOMPLETE

    def test_status_values_match_menu_text(self):
        assert sv.InstallStatus.INSTALLED.value == "Installed!"
        assert sv.InstallStatus.NOT_INSTALLED.value == "Not installed!"
        assert sv.InstallStatus.INCOMPLETE.value == "Incomplete!"


class TestVersions:

    @pytest.fixture
    def checkout(self, cfg, monkeypatch):
        os.makedirs(os.path.join(cfg.install_dir, ".git"))
        monkeypatch.setattr(sv.GitOperations, "fetch", lambda self: True)

    def fake_describe(self, monkeypatch, local, remote):
        def describe(git, ref="HEAD"):
            return local if ref == "HEAD" else remote
        monkeypatch.setattr(sv.GitOperations, "describe", describe)

    def test_no_checkout_reports_nothing(self, cfg):
        assert sv.get_local_swiervision_commit(cfg) is None
        assert sv.get_remote_swiervision_commit(cfg) is None

    def test_equal_versions_do_not_register_update(self, cfg, checkout, monkeypatch):
        self.fake_describe(monkeypatch, "v1.0-3", "v1.0-3")

        info = sv.compare_swiervision_versions(cfg)

        assert info.update_available is False
        assert not os.path.exists(cfg.app_updates_file)

    def test_different_versions_register_update(self, cfg, checkout, monkeypatch):
        self.fake_describe(monkeypatch, "v1.0-3", "v1.0-7")

        info = sv.compare_swiervision_versions(cfg)

        assert info.update_available is True
        assert info.local == "v1.0-3"
        assert info.remote == "v1.0-7"
        with open(cfg.app_updates_file) as f:
            assert json.load(f)["application_updates_available"] == ["swiervision"]

    def test_remote_describes_tracked_branch(self, cfg, checkout, monkeypatch):
        refs = []

        def describe(git, ref="HEAD"):
            refs.append(ref)
            return "v1.0-3"

        monkeypatch.setattr(sv.GitOperations, "describe", describe)
        sv.get_remote_swiervision_commit(cfg)
        assert refs == ["origin/master"]

    def test_format_versions_pads_columns(self):
        info = sv.VersionInfo(local="v1.0-3", remote="v1.0-7", update_available=True)
        assert sv.format_versions(info) == " v1.0-3        | v1.0-7       "
