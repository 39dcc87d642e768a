# GPSDrag - GPS-based acceleration run timer
# Copyright (C) 2024 GPSDrag Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Localization strings for GPSDrag.
English dictionary for run status and user-facing messages.
"""

# Run status shown next to the live telemetry
STATUS = {
    'idle': "idle",
    'requesting_gps': "arming - requesting GPS",
    'waiting_accuracy': "arming - waiting GPS accuracy",
    'waiting_throttle': "armed - waiting throttle",
    'running': "running",
    'finished': "finish - run complete",
    'stopped': "stopped",
}

# Error messages
ERRORS = {
    'file_not_found': "File not found: {file_path}",
    'only_nmea_supported': "Only NMEA format is supported",
    'no_samples': "No usable position fixes in {file_path}",
    'invalid_config': "Invalid run configuration: {reason}",
}

# Warnings - critical problems
WARNINGS = {
    'low_gps_frequency': "Low GPS update rate: {freq:.1f} Hz (below {threshold} Hz), split times are coarse",
    'gps_validity': "GPS fix lost for {ratio:.0%} of the log, results may be distorted",
    'log_issue': "Log integrity problem: {count} gaps in GPS data",
    'no_lock': "GPS accuracy never reached {threshold:.0f} m, the start position was never fixed",
    'not_started': "No launch detected after the GPS lock",
}

# Cautions - less critical remarks
CAUTIONS = {
    'gps_frequency': "GPS rate ({freq:.1f} Hz) may cause small timing inaccuracies",
    'gps_validity': "Periods with invalid GPS fixes detected",
    'log_issue': "{count} gaps in GPS data detected",
    'not_finished': "Run did not reach its finish condition ({mode})",
    'heading_rejected': "{ratio:.0%} of segments ({count}) were dropped by the heading filter",
    'reconstructed_speed': "Speed was rebuilt from positions for {ratio:.0%} of samples",
}
