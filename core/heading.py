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
Heading gate: drops the distance of a segment whose bearing swings too far
from the previous one, so back-and-forth GPS jitter does not inflate the
accumulated distance.
"""
import logging
from dataclasses import dataclass
from typing import Optional

try:
    from .. import config
except ImportError:
    import config

from .geo import haversine_distance_m, calculate_bearing_from_coords, angle_difference_deg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeadingDecision:
    """Verdict for one segment between consecutive positions."""
    raw_distance_m: float            # haversine length of the segment
    bearing_deg: float               # bearing of the segment
    deviation_deg: Optional[float]   # change vs. previous bearing, None on bootstrap
    accepted: bool

    @property
    def distance_m(self):
        """Distance the segment contributes: raw length if accepted, else 0."""
        return self.raw_distance_m if self.accepted else 0.0


class HeadingGate:
    """Remembers the last bearing and judges each new segment against it."""

    def __init__(self, max_deviation_deg=None):
        if max_deviation_deg is None:
            max_deviation_deg = getattr(config, 'HEADING_MAX_DEG', 25.0)
        self.max_deviation_deg = max_deviation_deg
        self.last_bearing_deg = None
        self.evaluated_count = 0
        self.rejected_count = 0

    def reset(self):
        self.last_bearing_deg = None
        self.evaluated_count = 0
        self.rejected_count = 0

    def evaluate(self, previous, current):
        """
        Judge the segment from previous to current.

        The bearing memory moves to the new bearing even when the segment is
        rejected: a rejection only zeroes this segment's distance.

        Args:
            previous: (latitude, longitude) of the previous position
            current: (latitude, longitude) of the current position

        Returns:
            HeadingDecision
        """
        raw_distance_m = haversine_distance_m(previous[0], previous[1], current[0], current[1])
        bearing_deg = calculate_bearing_from_coords(previous[0], previous[1], current[0], current[1])

        if self.last_bearing_deg is None:
            deviation_deg = None
            accepted = True
        else:
            deviation_deg = angle_difference_deg(self.last_bearing_deg, bearing_deg)
            accepted = deviation_deg <= self.max_deviation_deg

        self.last_bearing_deg = bearing_deg
        self.evaluated_count += 1
        if not accepted:
            self.rejected_count += 1
            logger.debug(f"Rejected {raw_distance_m:.2f} m segment: heading changed {deviation_deg:.1f}°")

        return HeadingDecision(raw_distance_m, bearing_deg, deviation_deg, accepted)
