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
Online speed filtering module.
Turns one raw (possibly absent) speed reading plus the position delta into a
single trustworthy speed per sample: delta reconstruction, ghost-speed floor,
scalar Kalman filter and exponential low-pass.
"""
import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Optional

try:
    from .. import config
except ImportError:
    import config

from .structures import KMH_TO_MS, MS_TO_S

logger = logging.getLogger(__name__)


class ScalarKalman:
    """
    One-dimensional Kalman filter with a constant-value model.

    Process noise is added once per update regardless of the time step, so
    the filter's behaviour depends on sample order only.
    """

    def __init__(self, q=None, r=None, initial_covariance=None):
        if q is None:
            q = getattr(config, 'KALMAN_Q', 0.1)
        if r is None:
            r = getattr(config, 'KALMAN_R', 2.0)
        if initial_covariance is None:
            initial_covariance = getattr(config, 'KALMAN_INITIAL_COVARIANCE', 1.0)
        self.q = q
        self.r = r
        self.initial_covariance = initial_covariance
        self.x = 0.0
        self.p = initial_covariance

    def predict(self):
        # Covariance grows by the process noise
        self.p = self.p + self.q

    def update(self, z):
        """Predict, then correct the estimate with measurement z. Returns the new estimate."""
        self.predict()
        k = self.p / (self.p + self.r)  # Kalman gain
        self.x = self.x + k * (z - self.x)
        self.p = (1 - k) * self.p
        return self.x

    def reset(self, value=0.0):
        self.x = value
        self.p = self.initial_covariance


def low_pass(previous, current, alpha):
    """Exponential smoothing: alpha weights the newest value."""
    return alpha * current + (1 - alpha) * previous


def rebuild_speed_from_delta(distance_m, dt_ms):
    """
    Speed implied by moving distance_m in dt_ms.

    Returns:
        float: speed in km/h, 0 for a non-positive time step
    """
    if dt_ms <= 0:
        return 0.0
    return distance_m / (dt_ms / MS_TO_S) * KMH_TO_MS


@dataclass(frozen=True)
class SpeedEstimate:
    """Result of one SpeedEstimator.update call."""
    measured_kmh: Optional[float]   # after reconstruction and ghost floor, None if absent
    smoothed_kmh: float             # value surfaced as "current speed"
    reconstructed: bool = False


class SpeedEstimator:
    """
    Per-sample speed filter.

    Owns the filter state: Kalman estimate, last emitted smoothed speed and
    a short rolling buffer of (timestamp_ms, smoothed_kmh) pairs used by the
    start and range-mode heuristics of the run state machine.
    """

    def __init__(self, run_config):
        self.config = run_config
        self.kalman = ScalarKalman(
            q=run_config.kalman_q,
            r=run_config.kalman_r,
            initial_covariance=run_config.kalman_initial_covariance,
        )
        self.recent = deque()
        self.last_smoothed_kmh = None
        self.last_timestamp_ms = None
        self.reconstructed_count = 0
        self.sample_count = 0

    def reset(self):
        """Back to the neutral state used at arm/reset."""
        self.kalman.reset(0.0)
        self.recent.clear()
        self.last_smoothed_kmh = None
        self.last_timestamp_ms = None
        self.reconstructed_count = 0
        self.sample_count = 0

    def update(self, sample, segment=None):
        """
        Filter one sample.

        Args:
            sample: PositionSample; a NaN, infinite or negative reported
                speed counts as absent
            segment: HeadingDecision for the segment from the previous
                position to this one, or None when there is no previous position

        Returns:
            SpeedEstimate
        """
        cfg = self.config
        now = sample.timestamp_ms
        dt_ms = now - self.last_timestamp_ms if self.last_timestamp_ms is not None else 0.0

        measured_kmh = None
        reported = sample.reported_speed_mps
        if reported is not None and math.isfinite(reported) and reported >= 0:
            measured_kmh = reported * KMH_TO_MS
        elif reported is not None:
            logger.debug(f"Invalid reported speed {reported!r} at {now:.0f} ms treated as absent")

        reconstructed = False
        unreliable = measured_kmh is None or measured_kmh < cfg.rebuild_min_reported_kmh
        if (unreliable and segment is not None and segment.accepted
                and 0 < dt_ms <= cfg.rebuild_max_dt_ms):
            measured_kmh = rebuild_speed_from_delta(segment.distance_m, dt_ms)
            reconstructed = True
            self.reconstructed_count += 1
            logger.debug(f"Rebuilt speed {measured_kmh:.2f} km/h from {segment.distance_m:.2f} m in {dt_ms:.0f} ms")

        # Ghost speed: jitter at a standstill must never register as motion
        if measured_kmh is not None and measured_kmh < cfg.ghost_threshold_kmh:
            measured_kmh = 0.0

        if measured_kmh is not None:
            filtered_kmh = self.kalman.update(measured_kmh / KMH_TO_MS) * KMH_TO_MS
        else:
            filtered_kmh = self.last_smoothed_kmh if self.last_smoothed_kmh is not None else 0.0

        previous = self.last_smoothed_kmh if self.last_smoothed_kmh is not None else filtered_kmh
        smoothed_kmh = low_pass(previous, filtered_kmh, cfg.smoothing_alpha)

        self.last_smoothed_kmh = smoothed_kmh
        self.last_timestamp_ms = now
        self.sample_count += 1
        self.recent.append((now, smoothed_kmh))
        self._prune(now)

        return SpeedEstimate(measured_kmh, smoothed_kmh, reconstructed)

    def _prune(self, now):
        horizon = self.config.sample_buffer_ms
        while self.recent and now - self.recent[0][0] > horizon:
            self.recent.popleft()

    def restart_window(self, timestamp_ms, speed_kmh):
        """Drop the buffer down to a single sample (used when a run starts)."""
        self.recent.clear()
        self.recent.append((timestamp_ms, speed_kmh))

    def window_speeds(self, now, span_ms):
        """Smoothed speeds of buffered samples no older than span_ms."""
        return [speed for t, speed in self.recent if now - t <= span_ms]

    def trailing_speeds(self, count):
        """Smoothed speeds of the last `count` buffered samples."""
        return [speed for _, speed in list(self.recent)[-count:]]
