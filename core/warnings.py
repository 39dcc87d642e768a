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
Warning and notification generation module.
Single point for all replay diagnostics: feed quality and run outcome.
"""

import logging

# Import config for threshold values
try:
    from .. import config
    from ..locales.strings import WARNINGS, CAUTIONS
except ImportError:
    import config
    from locales.strings import WARNINGS, CAUTIONS

logger = logging.getLogger(__name__)


def compute_warnings(replay_stats=None, gps_frequency=None, quality=None):
    """
    Unified function for computing all warnings.

    Args:
        replay_stats: dict describing the replay {
            'mode': str, 'locked': bool, 'started': bool, 'finished': bool,
            'runs_started': int,
            'samples': int, 'reconstructed': int,
            'segments': int, 'rejected_segments': int,
            'lock_accuracy_m': float
        }
        gps_frequency: float, GPS frequency in Hz
        quality: dict from parsers.nmea_handler.extract_position_samples

    Returns:
        tuple: (warnings: dict, cautions: dict)
    """
    warnings = {}
    cautions = {}

    # 1. Feed rate
    _check_gps_frequency(gps_frequency, warnings, cautions)

    # 2. Log integrity
    _check_feed_quality(quality, warnings, cautions)

    # 3. Run outcome
    _check_run_outcome(replay_stats, warnings, cautions)

    # 4. Filter activity
    _check_filter_activity(replay_stats, cautions)

    if warnings or cautions:
        logger.debug(f"Diagnostics: warnings {sorted(warnings)}, cautions {sorted(cautions)}")

    return warnings, cautions


def _check_gps_frequency(gps_frequency, warnings, cautions):
    """Check GPS frequency."""
    if not gps_frequency:
        return

    rounded = round(gps_frequency)
    low_freq = getattr(config, 'LOW_GPS_FREQUENCY_HZ', 5.0)
    medium_freq = getattr(config, 'MEDIUM_GPS_FREQUENCY_HZ', 10.0)

    if rounded < low_freq:
        warnings["gps_frequency"] = WARNINGS['low_gps_frequency'].format(
            freq=gps_frequency, threshold=low_freq
        )
    elif rounded < medium_freq:
        cautions["gps_frequency"] = CAUTIONS['gps_frequency'].format(freq=gps_frequency)


def _check_feed_quality(quality, warnings, cautions):
    """Check void fixes and gaps in the log."""
    if not quality:
        return

    invalid_ratio = quality.get("invalid_ratio", 0)
    if invalid_ratio > getattr(config, 'INVALID_FIX_WARNING_RATIO', 0.1):
        warnings["gps_validity"] = WARNINGS['gps_validity'].format(ratio=invalid_ratio)
    elif invalid_ratio > getattr(config, 'INVALID_FIX_CAUTION_RATIO', 0.05):
        cautions["gps_validity"] = CAUTIONS['gps_validity']

    gaps = quality.get("gaps") or []
    if gaps:
        gap_count = len(gaps)
        if gap_count > getattr(config, 'GAP_WARNING_COUNT', 50):
            warnings["log_issue"] = WARNINGS['log_issue'].format(count=gap_count)
        else:
            cautions["log_issue"] = CAUTIONS['log_issue'].format(count=gap_count)


def _check_run_outcome(replay_stats, warnings, cautions):
    """Check that the replay locked, launched and finished."""
    if not replay_stats:
        return

    if not replay_stats.get("locked"):
        threshold = replay_stats.get("lock_accuracy_m", getattr(config, 'LOCK_ACCURACY_M', 50.0))
        warnings["no_lock"] = WARNINGS['no_lock'].format(threshold=threshold)
    elif not replay_stats.get("started"):
        warnings["not_started"] = WARNINGS['not_started']
    elif not replay_stats.get("finished"):
        cautions["not_finished"] = CAUTIONS['not_finished'].format(mode=replay_stats.get("mode", ""))


def _check_filter_activity(replay_stats, cautions):
    """Check how often the heading gate and speed reconstruction kicked in."""
    if not replay_stats:
        return

    segments = replay_stats.get("segments", 0)
    rejected = replay_stats.get("rejected_segments", 0)
    if segments > 0:
        ratio = rejected / segments
        if ratio > getattr(config, 'HEADING_REJECT_CAUTION_RATIO', 0.2):
            cautions["heading_rejected"] = CAUTIONS['heading_rejected'].format(ratio=ratio, count=rejected)

    samples = replay_stats.get("samples", 0)
    reconstructed = replay_stats.get("reconstructed", 0)
    if samples > 0:
        ratio = reconstructed / samples
        if ratio > getattr(config, 'RECONSTRUCTED_CAUTION_RATIO', 0.3):
            cautions["reconstructed_speed"] = CAUTIONS['reconstructed_speed'].format(ratio=ratio)
