#!/usr/bin/env python3
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

import argparse
import json
import logging
import os
import sys

from klipper_updates.utils.index import log_message
from klipper_updates.utils.app_updates import ApplicationUpdates
from klipper_updates.utils.config import get_module_debug_mode
from klipper_updates.modules import swiervision

ACTIONS = {
    "install": "--install",
    "remove": "--remove",
    "update": "--update",
    "status": "--status",
    "versions": "--versions",
    "patch": "--patch",
    "config": "--config",
}


def setup_global_update_logging(debug: bool = False):
    """
    Log to stdout only; the calling menu owns any file redirection.
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    unified_format = logging.Formatter('[%(asctime)s] [%(levelname)s] %(message)s',
                                       datefmt='%Y-%m-%d %H:%M:%S')
    console_handler.setFormatter(unified_format)
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)
    root_logger.addHandler(console_handler)
    log_message(f"Command: {' '.join(sys.argv)}", "DEBUG")
    log_message(f"Working Directory: {os.getcwd()}", "DEBUG")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Klipper host update helper: SwierVision lifecycle")
    parser.add_argument("action", choices=sorted(ACTIONS) + ["updates"],
                        help="Operation to run ('updates' lists applications with pending updates)")
    parser.add_argument("--home", default=None,
                        help="Home directory holding the installation (default: current user's)")
    parser.add_argument("--config-dir", default=None,
                        help="Printer configuration directory holding moonraker.conf")
    parser.add_argument("--systemd-dir", default=None,
                        help="Directory holding systemd unit files")
    parser.add_argument("--json", action="store_true",
                        help="Print the result as JSON")
    parser.add_argument("--debug", action="store_true",
                        help="Enable debug logging")
    return parser


def run(argv=None) -> dict:
    """Parse arguments and run one action. Returns the result dict."""
    args = build_parser().parse_args(argv)
    setup_global_update_logging(args.debug or get_module_debug_mode())

    cfg = swiervision.get_swiervision_config(
        home=args.home,
        config_dir=args.config_dir,
        systemd_dir=args.systemd_dir
    )

    if args.action == "updates":
        applications = ApplicationUpdates(cfg.app_updates_file).get()
        log_message(f"Applications with updates: {', '.join(applications) or 'none'}")
        result = {"success": True, "application_updates_available": applications}
    else:
        result = swiervision.main([ACTIONS[args.action]], cfg=cfg)

    if args.json:
        print(json.dumps(result, indent=2, default=str))
    return result


def main():
    try:
        result = run()
    except KeyboardInterrupt:
        log_message("Interrupted by user", "WARNING")
        sys.exit(130)

    if not result.get("success", False):
        log_message(f"Operation failed: {result.get('error', 'unknown error')}", "ERROR")
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
