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
NMEA file handler - turns a recorded NMEA log into an ordered stream of
PositionSample objects that can be replayed through the run state machine.
"""
import logging
import math
import os
import sys
from datetime import date, datetime, timedelta, timezone

import numpy as np
import pynmea2

# Add parent directory to path for config import
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

import config
from core.structures import PositionSample

logger = logging.getLogger('nmea_handler')

DAY_MS = 24 * 3600 * 1000
EPOCH_SENTENCES = ('RMC', 'GGA', 'GST')


def convert_nmea_to_milliseconds(msg, day=None):
    """
    Returns message time in milliseconds from epoch.

    Args:
        msg: parsed sentence with a ``timestamp`` field
        day: date to combine with the time of day (default: the sentence's
            own ``datestamp``, else 1970-01-01)

    Returns:
        int or None when the sentence has no time
    """
    timestamp = getattr(msg, 'timestamp', None)
    if timestamp is None:
        return None
    if day is None:
        day = getattr(msg, 'datestamp', None) or date(1970, 1, 1)
    dt = datetime.combine(day, timestamp)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(round(dt.timestamp() * 1000))


def _time_of_day_ms(timestamp):
    return ((timestamp.hour * 60 + timestamp.minute) * 60 + timestamp.second) * 1000 \
        + timestamp.microsecond // 1000


def _read_epochs(file_path):
    """
    Group RMC/GGA/GST sentences by (day, time of day), keeping log order.

    The day index starts at 0 and advances when the time of day jumps back
    by more than half a day, or when an RMC date moves past the current day.
    Dates are counted from the first RMC datestamp when the log has one.

    Returns:
        tuple: (epochs dict, ordered list of epoch keys, date of day 0 or None)
    """
    epochs = {}
    order = []
    day_index = 0
    base_date = None
    last_time_ms = None

    with open(file_path, 'r') as f:
        for line_number, line in enumerate(f, start=1):
            stripped = line.strip()
            if not stripped.startswith('$'):
                continue
            try:
                msg = pynmea2.parse(stripped)
            except pynmea2.ParseError as e:
                logger.debug(f"Line {line_number}: NMEA parse error - {e}")
                continue

            sentence = getattr(msg, 'sentence_type', None)
            if sentence not in EPOCH_SENTENCES:
                continue
            timestamp = getattr(msg, 'timestamp', None)
            if timestamp is None:
                logger.debug(f"Line {line_number}: {sentence} without time skipped")
                continue

            time_ms = _time_of_day_ms(timestamp)
            if last_time_ms is not None and last_time_ms - time_ms > DAY_MS // 2:
                day_index += 1
                logger.debug(f"Line {line_number}: time of day wrapped, day {day_index}")
            last_time_ms = time_ms

            datestamp = getattr(msg, 'datestamp', None) if sentence == 'RMC' else None
            if datestamp:
                if base_date is None:
                    base_date = datestamp - timedelta(days=day_index)
                else:
                    day_index = max(day_index, (datestamp - base_date).days)

            key = (day_index, timestamp)
            epoch = epochs.get(key)
            if epoch is None:
                epoch = epochs[key] = {}
                order.append(key)
            epoch[sentence.lower()] = msg

    return epochs, order, base_date


def _parse_hdop(gga):
    if gga is None or getattr(gga, 'horizontal_dil', None) in (None, ''):
        return None
    try:
        hdop = float(gga.horizontal_dil)
    except ValueError:
        return None
    return hdop if hdop > 0 else None


def estimate_accuracy_m(gga=None, gst=None):
    """
    Horizontal accuracy of one epoch in meters.

    GST latitude/longitude standard deviations are used when present,
    otherwise HDOP scaled by the user equivalent range error.
    """
    if gst is not None:
        std_lat = getattr(gst, 'std_dev_latitude', None)
        std_lon = getattr(gst, 'std_dev_longitude', None)
        if std_lat is not None and std_lon is not None:
            return math.hypot(std_lat, std_lon)

    uere = getattr(config, 'NMEA_UERE_M', 5.0)
    hdop = _parse_hdop(gga)
    if hdop is None:
        hdop = getattr(config, 'HDOP_FALLBACK_VALUE', 0.7)
    return hdop * uere


def _has_position(msg):
    return msg.lat not in (None, '') and msg.lon not in (None, '')


def extract_position_samples(file_path):
    """
    Extracts position samples from an NMEA file.

    RMC sentences give position, speed over ground and validity. GGA and GST
    sentences of the same epoch contribute HDOP and error estimates. An epoch
    with a valid GGA fix but no RMC becomes a sample without reported speed.

    Args:
        file_path: path to NMEA file

    Returns:
        tuple: (samples, gps_frequency, first_timestamp_ms, quality) where
            samples is a list of PositionSample with timestamps relative to
            the first fix and quality is a dict {
                'total_fixes': int,
                'invalid_fixes': int,
                'missing_speed': int,
                'invalid_ratio': float,
                'gaps': list of gap dicts (see find_gaps)
            }

    Raises:
        ValueError: the file holds no usable fix
    """
    epochs, order, base_date = _read_epochs(file_path)
    if not order:
        raise ValueError(f"No RMC, GGA or GST sentence found in file {file_path}")

    knots_to_mps = getattr(config, 'KNOTS_TO_MPS', 0.514444)
    day_zero = base_date or date(1970, 1, 1)

    samples = []
    absolute_ms = []
    total = invalid = missing_speed = 0

    for key in order:
        epoch = epochs[key]
        rmc = epoch.get('rmc')
        gga = epoch.get('gga')

        if rmc is not None:
            total += 1
            if getattr(rmc, 'status', 'A') == 'V' or not _has_position(rmc):
                invalid += 1
                continue
            fix = rmc
            if rmc.spd_over_grnd is None or rmc.spd_over_grnd == '':
                missing_speed += 1
                speed_mps = None
            else:
                speed_mps = float(rmc.spd_over_grnd) * knots_to_mps
        elif gga is not None:
            total += 1
            gps_qual = getattr(gga, 'gps_qual', None)
            if not gps_qual or not _has_position(gga):
                invalid += 1
                continue
            fix = gga
            missing_speed += 1
            speed_mps = None
        else:
            continue

        day_index, _ = key
        timestamp_ms = convert_nmea_to_milliseconds(fix, day_zero + timedelta(days=day_index))

        accuracy_m = estimate_accuracy_m(gga, epoch.get('gst'))
        absolute_ms.append(timestamp_ms)
        samples.append((fix.latitude, fix.longitude, accuracy_m, speed_mps, timestamp_ms))

    if not samples:
        raise ValueError(f"No valid position fix found in file {file_path}")

    first_timestamp_ms = absolute_ms[0]
    position_samples = [
        PositionSample(lat, lon, accuracy_m, speed_mps, float(abs_ms - first_timestamp_ms))
        for lat, lon, accuracy_m, speed_mps, abs_ms in samples
    ]

    gap_threshold = getattr(config, 'GAP_THRESHOLD', 0.5)
    quality = {
        'total_fixes': total,
        'invalid_fixes': invalid,
        'missing_speed': missing_speed,
        'invalid_ratio': invalid / total if total else 0.0,
        'gaps': find_gaps(absolute_ms, gap_threshold),
    }
    gps_frequency = calculate_gps_frequency(absolute_ms)

    logger.debug(f"{len(position_samples)} samples from {file_path} at {gps_frequency} Hz")
    return position_samples, gps_frequency, first_timestamp_ms, quality


def calculate_gps_frequency(timestamp_milliseconds):
    """
    Calculates GPS frequency in Hz from timestamps in milliseconds.
    Intervals that are non-positive or longer than MAX_VALID_INTERVAL_MS are ignored.
    """
    if len(timestamp_milliseconds) < 2:
        return 0

    max_interval = getattr(config, 'MAX_VALID_INTERVAL_MS', 5000)
    intervals = np.diff(np.asarray(timestamp_milliseconds, dtype=float))
    valid_intervals = intervals[(intervals > 0) & (intervals < max_interval)]
    if len(valid_intervals) == 0:
        return 0

    average_interval = float(np.mean(valid_intervals))
    return round(1000 / average_interval, 2)


def find_gaps(timestamp_milliseconds, threshold_s=None):
    """
    Finds pauses in the feed longer than threshold_s.

    Returns:
        list of dicts {'index': i, 'start_ms': t, 'duration': seconds}, where
        index is the position of the sample right after the gap
    """
    if threshold_s is None:
        threshold_s = getattr(config, 'GAP_THRESHOLD', 0.5)
    if len(timestamp_milliseconds) < 2:
        return []

    times = np.asarray(timestamp_milliseconds, dtype=float)
    durations = np.diff(times) / 1000.0
    gap_indices = np.nonzero(durations > threshold_s)[0]

    return [
        {
            'index': int(i) + 1,
            'start_ms': float(times[i]),
            'duration': float(durations[i]),
        }
        for i in gap_indices
    ]
