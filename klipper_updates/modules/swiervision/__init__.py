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
SwierVision Lifecycle Module

Installs, updates, removes and reports on the SwierVision touch-screen
interface, and registers it with Moonraker's update manager.
Implements a main(args) entrypoint for orchestrated runs.
"""

from .index import (
    main,
    SwierVisionConfig,
    InstallStatus,
    VersionInfo,
    get_swiervision_config,
    install_swiervision,
    remove_swiervision,
    update_swiervision,
    get_swiervision_status,
    compare_swiervision_versions,
    patch_swiervision_update_manager
)

# This allows the module to be run directly
if __name__ == "__main__":
    import sys
    main(sys.argv[1:] if len(sys.argv) > 1 else [])
