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
Run configuration.

Defaults come from the module-level constants in config.py. A RunConfig is
validated once, when it is built: no sample-time recovery makes sense for a
misconfigured filter, so invalid values raise ConfigError immediately.
"""
import math
from dataclasses import dataclass, field
from typing import List

try:
    from .. import config
except ImportError:
    import config


class ConfigError(ValueError):
    """Raised when run configuration values are out of range."""


def _default(name, fallback):
    return getattr(config, name, fallback)


def _is_finite_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


@dataclass
class RunConfig:
    """Named options for one run timer, with defaults from config.py."""
    ghost_threshold_kmh: float = field(default_factory=lambda: _default('GHOST_THRESHOLD_KMH', 2.5))
    start_threshold_kmh: float = field(default_factory=lambda: _default('START_THRESHOLD_KMH', 3.0))
    start_window_ms: float = field(default_factory=lambda: _default('START_WINDOW_MS', 450))
    smoothing_alpha: float = field(default_factory=lambda: _default('SPEED_SMOOTH_ALPHA', 0.25))
    kalman_q: float = field(default_factory=lambda: _default('KALMAN_Q', 0.1))
    kalman_r: float = field(default_factory=lambda: _default('KALMAN_R', 2.0))
    kalman_initial_covariance: float = field(
        default_factory=lambda: _default('KALMAN_INITIAL_COVARIANCE', 1.0))
    max_heading_deg: float = field(default_factory=lambda: _default('HEADING_MAX_DEG', 25.0))
    rebuild_max_dt_ms: float = field(default_factory=lambda: _default('REBUILD_SPEED_MAX_DT_MS', 1200))
    rebuild_min_reported_kmh: float = field(
        default_factory=lambda: _default('REBUILD_MIN_REPORTED_KMH', 0.5))
    sample_buffer_ms: float = field(default_factory=lambda: _default('SAMPLE_BUFFER_MS', 3000))
    lock_accuracy_m: float = field(default_factory=lambda: _default('LOCK_ACCURACY_M', 50.0))
    rollout_m: float = field(default_factory=lambda: _default('ROLLOUT_M', 0.3048))
    rollout_enabled: bool = field(default_factory=lambda: _default('ROLLOUT_ENABLED', False))
    milestones_m: List[float] = field(
        default_factory=lambda: list(_default('MILESTONES_M', [20, 100, 201, 402])))
    mode: str = field(default_factory=lambda: _default('DEFAULT_MODE', '402'))
    range_mode_samples: int = field(default_factory=lambda: _default('RANGE_MODE_SAMPLES', 10))

    def __post_init__(self):
        self.milestones_m = list(self.milestones_m)
        self.validate()
        self.milestones_m = sorted(self.milestones_m)

    @property
    def rollout_offset_m(self):
        """Distance subtracted from milestone and finish thresholds."""
        return self.rollout_m if self.rollout_enabled else 0.0

    @property
    def final_milestone_m(self):
        return self.milestones_m[-1]

    def validate(self):
        """
        Check every option and raise ConfigError on the first bad one.

        Raises:
            ConfigError: value out of its allowed range
        """
        numeric = (
            'ghost_threshold_kmh', 'start_threshold_kmh', 'start_window_ms', 'smoothing_alpha',
            'kalman_q', 'kalman_r', 'kalman_initial_covariance', 'max_heading_deg',
            'rebuild_max_dt_ms', 'rebuild_min_reported_kmh', 'sample_buffer_ms',
            'lock_accuracy_m', 'rollout_m', 'range_mode_samples',
        )
        for name in numeric:
            value = getattr(self, name)
            if not _is_finite_number(value):
                raise ConfigError(f"{name} must be a finite number, got {value!r}")

        non_negative = (
            'ghost_threshold_kmh', 'start_threshold_kmh', 'start_window_ms', 'kalman_q',
            'max_heading_deg', 'rebuild_max_dt_ms', 'rebuild_min_reported_kmh',
            'sample_buffer_ms', 'lock_accuracy_m', 'rollout_m',
        )
        for name in non_negative:
            value = getattr(self, name)
            if value < 0:
                raise ConfigError(f"{name} must be a non-negative number, got {value!r}")

        if not isinstance(self.rollout_enabled, bool):
            raise ConfigError(f"rollout_enabled must be True or False, got {self.rollout_enabled!r}")

        if not 0 < self.smoothing_alpha <= 1:
            raise ConfigError(f"smoothing_alpha must be in (0, 1], got {self.smoothing_alpha!r}")
        if self.kalman_r <= 0:
            raise ConfigError(f"kalman_r must be positive, got {self.kalman_r!r}")
        if self.kalman_initial_covariance < 0:
            raise ConfigError(
                f"kalman_initial_covariance must be non-negative, got {self.kalman_initial_covariance!r}")
        if self.max_heading_deg > 180:
            raise ConfigError(f"max_heading_deg must be at most 180, got {self.max_heading_deg!r}")
        if self.start_window_ms > self.sample_buffer_ms:
            raise ConfigError("start_window_ms must not exceed sample_buffer_ms")
        if not self.milestones_m or any(not _is_finite_number(m) or m <= 0 for m in self.milestones_m):
            raise ConfigError(f"milestones_m must be non-empty and positive, got {self.milestones_m!r}")
        if len(set(self.milestones_m)) != len(self.milestones_m):
            raise ConfigError(f"milestones_m must not repeat, got {self.milestones_m!r}")
        if self.rollout_offset_m >= min(self.milestones_m):
            raise ConfigError("rollout_m must be shorter than the first milestone")
        if int(self.range_mode_samples) < 1:
            raise ConfigError(f"range_mode_samples must be at least 1, got {self.range_mode_samples!r}")

        test_modes = _default('TEST_MODES', ['201', '402', '0-100', '0-140', '60-100'])
        if self.mode not in test_modes:
            raise ConfigError(f"Unknown test mode {self.mode!r}, expected one of {', '.join(test_modes)}")
