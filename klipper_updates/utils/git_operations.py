"""
Klipper Host Update Helper
Copyright (C) 2024 klipper-updates contributors

Git Operations

Handles the git repository operations used by lifecycle modules:
- Origin reachability checks before destructive steps
- Repository cloning
- Pulling and force checkout of the tracked branch
- Version strings via git describe
"""

import os
import subprocess
from typing import Optional

import requests

from .index import log_message


def is_git_repository(repo_path) -> bool:
    return os.path.isdir(repo_path) and os.path.isdir(os.path.join(repo_path, ".git"))


def check_repository_reachable(repo_url: str, timeout: int = 10) -> bool:
    """
    Check that an HTTP(S) git origin answers before we delete anything.

    Non-HTTP origins (ssh, local paths) are not probed and count as reachable.

    Args:
        repo_url: Git origin URL
        timeout: Request timeout in seconds

    Returns:
        bool: True if the origin is reachable
    """
    if not repo_url.startswith(("http://", "https://")):
        return True

    probe_url = f"{repo_url.rstrip('/')}/info/refs?service=git-upload-pack"
    try:
        response = requests.get(probe_url, timeout=timeout)
        if response.status_code == 200:
            log_message(f"[GIT] ✓ Origin reachable: {repo_url}", "DEBUG")
            return True
        log_message(f"[GIT] Origin {repo_url} answered HTTP {response.status_code}", "ERROR")
        return False
    except requests.exceptions.Timeout:
        log_message(f"[GIT] Origin {repo_url} timed out", "ERROR")
        return False
    except requests.exceptions.RequestException as e:
        log_message(f"[GIT] Origin {repo_url} unreachable: {e}", "ERROR")
        return False


class GitOperations:
    """Runs git commands against one working copy."""

    def __init__(self, repo_path, remote: str = "origin", branch: str = "master"):
        self.repo_path = str(repo_path)
        self.remote = remote
        self.branch = branch

    def _run(self, args, cwd=None) -> subprocess.CompletedProcess:
        cmd = ["git"] + list(args)
        log_message(f"[GIT] Running: {' '.join(cmd)}", "DEBUG")
        return subprocess.run(
            cmd,
            cwd=cwd if cwd is not None else self.repo_path,
            capture_output=True,
            text=True
        )

    def clone(self, repo_url: str) -> bool:
        """
        Clone repo_url into the working copy path.

        Returns:
            bool: True if the clone succeeded
        """
        parent = os.path.dirname(self.repo_path) or "."
        try:
            result = self._run(["clone", repo_url, self.repo_path], cwd=parent)
        except OSError as e:
            log_message(f"[GIT] Clone failed with exception: {e}", "ERROR")
            return False

        if result.returncode != 0:
            log_message(f"[GIT] Clone failed: {result.stderr.strip()}", "ERROR")
            return False
        return True

    def fetch(self) -> bool:
        result = self._run(["fetch", self.remote, "-q"])
        if result.returncode != 0:
            log_message(f"[GIT] Fetch failed: {result.stderr.strip()}", "WARNING")
            return False
        return True

    def pull(self) -> bool:
        result = self._run(["pull", self.remote, self.branch, "-q"])
        if result.returncode != 0:
            log_message(f"[GIT] Pull failed: {result.stderr.strip()}", "ERROR")
            return False
        return True

    def checkout(self, force: bool = True) -> bool:
        args = ["checkout", "-f", self.branch] if force else ["checkout", self.branch]
        result = self._run(args)
        if result.returncode != 0:
            log_message(f"[GIT] Checkout failed: {result.stderr.strip()}", "ERROR")
            return False
        return True

    def describe(self, ref: str = "HEAD") -> Optional[str]:
        """
        Describe ref as "<tag>-<commits>", dropping the "-g<hash>" suffix.

        Returns:
            Optional[str]: Version string, or None if this is not a checkout
        """
        if not is_git_repository(self.repo_path):
            return None

        result = self._run(["describe", ref, "--always", "--tags"])
        if result.returncode != 0:
            log_message(f"[GIT] Describe {ref} failed: {result.stderr.strip()}", "WARNING")
            return None
        return truncate_describe(result.stdout.strip())


def truncate_describe(description: str) -> str:
    """Keep the first two dash-separated fields: "v1.2-5-gabc" -> "v1.2-5"."""
    return "-".join(description.split("-")[:2])
