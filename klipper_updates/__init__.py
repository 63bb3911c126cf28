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
Klipper host update helper: lifecycle management for printer host add-ons.
"""

from .utils.index import log_message

__version__ = "1.0.0"

__all__ = [
    'log_message',
    '__version__'
]
