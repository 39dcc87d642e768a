#!/usr/bin/env python3
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
Spherical-Earth geometry between GPS fixes.
Distances feed run accumulation and speed reconstruction, bearings feed the
heading gate only.
"""
import math

try:
    from .. import config
except ImportError:
    import config


def haversine_distance_m(lat1, lon1, lat2, lon2, radius_m=None):
    """
    Great-circle distance between two coordinates using the haversine formula.

    Args:
        lat1: Latitude of first point (degrees)
        lon1: Longitude of first point (degrees)
        lat2: Latitude of second point (degrees)
        lon2: Longitude of second point (degrees)
        radius_m: sphere radius (default: config.EARTH_RADIUS_M)

    Returns:
        float: distance in meters (0 for identical points)
    """
    if radius_m is None:
        radius_m = getattr(config, 'EARTH_RADIUS_M', 6371000.0)

    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat_rad = math.radians(lat2 - lat1)
    dlon_rad = math.radians(lon2 - lon1)

    sin_dlat = math.sin(dlat_rad / 2)
    sin_dlon = math.sin(dlon_rad / 2)
    h = sin_dlat * sin_dlat + math.cos(lat1_rad) * math.cos(lat2_rad) * sin_dlon * sin_dlon
    # Float error can push h a hair above 1 for antipodal points
    h = min(max(h, 0.0), 1.0)

    return radius_m * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def calculate_bearing_from_coords(lat1, lon1, lat2, lon2):
    """
    Initial bearing from point 1 to point 2.

    Convention: navigation bearing (direction of travel TO)
    - 0° = North
    - 90° = East
    - 180° = South
    - 270° = West

    Returns:
        float: Bearing in degrees, normalized to [0, 360)
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlon_rad = math.radians(lon2 - lon1)

    y = math.sin(dlon_rad) * math.cos(lat2_rad)
    x = (math.cos(lat1_rad) * math.sin(lat2_rad) -
         math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(dlon_rad))

    bearing_deg = (math.degrees(math.atan2(y, x)) + 360) % 360
    # (-tiny + 360) % 360 rounds to 360.0 in floating point
    if bearing_deg >= 360.0:
        bearing_deg = 0.0
    return bearing_deg


def angle_difference_deg(a, b):
    """Minimal absolute difference between two bearings, in [0, 180]."""
    return abs(((b - a + 540) % 360) - 180)
