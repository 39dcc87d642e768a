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

"""Tests for spherical distance, bearing and angle difference."""
import math
import os
import sys

import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.geo import haversine_distance_m, calculate_bearing_from_coords, angle_difference_deg
from synthetic import north_of

COORDINATE_PAIRS = [
    (52.0, 13.0, 52.001, 13.002),
    (-33.86, 151.2, -33.87, 151.21),
    (0.0, 179.9999, 0.0, -179.9999),
    (40.0, -74.0, 41.0, -73.0),
]


def test_identical_points_have_zero_distance():
    assert haversine_distance_m(52.0, 13.0, 52.0, 13.0) == 0.0


@pytest.mark.parametrize("lat1,lon1,lat2,lon2", COORDINATE_PAIRS)
def test_distance_is_symmetric(lat1, lon1, lat2, lon2):
    forward = haversine_distance_m(lat1, lon1, lat2, lon2)
    backward = haversine_distance_m(lat2, lon2, lat1, lon1)
    assert forward >= 0
    assert forward == pytest.approx(backward, rel=1e-12)


def test_one_degree_of_latitude():
    expected = 6371000.0 * math.pi / 180
    assert haversine_distance_m(10.0, 20.0, 11.0, 20.0) == pytest.approx(expected, rel=1e-9)


def test_custom_radius_scales_distance():
    default = haversine_distance_m(10.0, 20.0, 11.0, 20.0)
    doubled = haversine_distance_m(10.0, 20.0, 11.0, 20.0, radius_m=2 * 6371000.0)
    assert doubled == pytest.approx(2 * default)


def test_antipodal_points_do_not_fail():
    distance = haversine_distance_m(0.0, 0.0, 0.0, 180.0)
    assert distance == pytest.approx(math.pi * 6371000.0, rel=1e-9)


def test_synthetic_track_lengths_are_exact():
    assert haversine_distance_m(north_of(0.0), 13.0, north_of(7.0), 13.0) == pytest.approx(7.0, abs=1e-6)


@pytest.mark.parametrize("lat2,lon2,expected", [
    (1.0, 0.0, 0.0),     # north
    (0.0, 1.0, 90.0),    # east
    (-1.0, 0.0, 180.0),  # south
    (0.0, -1.0, 270.0),  # west
])
def test_cardinal_bearings(lat2, lon2, expected):
    assert calculate_bearing_from_coords(0.0, 0.0, lat2, lon2) == pytest.approx(expected, abs=1e-9)


@pytest.mark.parametrize("lat1,lon1,lat2,lon2", COORDINATE_PAIRS)
def test_bearing_range(lat1, lon1, lat2, lon2):
    for bearing in (calculate_bearing_from_coords(lat1, lon1, lat2, lon2),
                    calculate_bearing_from_coords(lat2, lon2, lat1, lon1)):
        assert 0.0 <= bearing < 360.0


def test_bearing_of_zero_length_segment_is_defined():
    assert calculate_bearing_from_coords(52.0, 13.0, 52.0, 13.0) == 0.0


@pytest.mark.parametrize("a,b,expected", [
    (0.0, 0.0, 0.0),
    (350.0, 10.0, 20.0),
    (10.0, 350.0, 20.0),
    (0.0, 180.0, 180.0),
    (180.0, 0.0, 180.0),
    (90.0, 270.0, 180.0),
    (45.0, 70.0, 25.0),
])
def test_angle_difference(a, b, expected):
    assert angle_difference_deg(a, b) == pytest.approx(expected)


def test_angle_difference_range_and_symmetry():
    for a in range(0, 360, 15):
        for b in range(0, 360, 15):
            difference = angle_difference_deg(a, b)
            assert 0.0 <= difference <= 180.0
            assert difference == pytest.approx(angle_difference_deg(b, a))
