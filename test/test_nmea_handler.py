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
Tests for the NMEA replay feed.

Logs are generated on the fly with valid checksums by the builders in
synthetic.py.
"""
import os
import sys
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pynmea2
import pytest

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from parsers.nmea_handler import (
    calculate_gps_frequency,
    convert_nmea_to_milliseconds,
    estimate_accuracy_m,
    extract_position_samples,
    find_gaps,
)
from synthetic import gga, gst, nmea_log, north_of, rmc
import config

LOG_START = datetime(2026, 6, 17, 12, 0, tzinfo=timezone.utc)
LOG_START_MS = int(LOG_START.timestamp() * 1000)


def test_extract_rmc_and_gga(tmp_path):
    lines = []
    for i in range(3):
        lines.append(rmc(i * 100, i * 1.5))
        lines.append(gga(i * 100, i * 1.5))
    samples, gps_frequency, first_timestamp_ms, quality = extract_position_samples(nmea_log(tmp_path, lines))

    assert len(samples) == 3
    assert [s.timestamp_ms for s in samples] == [0.0, 100.0, 200.0]
    assert first_timestamp_ms == LOG_START_MS
    assert gps_frequency == 10.0
    for i, sample in enumerate(samples):
        assert sample.latitude == pytest.approx(north_of(i * 1.5), abs=1e-7)
        assert sample.longitude == pytest.approx(13.0)
        assert sample.reported_speed_mps == pytest.approx(10.0 * config.KNOTS_TO_MPS)
        assert sample.horizontal_accuracy_m == pytest.approx(0.8 * config.NMEA_UERE_M)
    assert quality['total_fixes'] == 3
    assert quality['invalid_fixes'] == 0
    assert quality['missing_speed'] == 0
    assert quality['invalid_ratio'] == 0.0
    assert quality['gaps'] == []


def test_gst_error_estimate_wins_over_hdop(tmp_path):
    lines = [rmc(0), gga(0), gst(0, 3.0, 4.0), rmc(100), gga(100)]
    samples, _, _, _ = extract_position_samples(nmea_log(tmp_path, lines))
    assert samples[0].horizontal_accuracy_m == pytest.approx(5.0)
    assert samples[1].horizontal_accuracy_m == pytest.approx(4.0)


def test_accuracy_falls_back_without_gga(tmp_path):
    samples, _, _, _ = extract_position_samples(nmea_log(tmp_path, [rmc(0), rmc(100)]))
    expected = config.HDOP_FALLBACK_VALUE * config.NMEA_UERE_M
    assert all(s.horizontal_accuracy_m == pytest.approx(expected) for s in samples)


def test_estimate_accuracy_m():
    assert estimate_accuracy_m() == pytest.approx(config.HDOP_FALLBACK_VALUE * config.NMEA_UERE_M)
    assert estimate_accuracy_m(gga=SimpleNamespace(horizontal_dil='2.0')) == pytest.approx(
        2.0 * config.NMEA_UERE_M)
    assert estimate_accuracy_m(gga=SimpleNamespace(horizontal_dil='')) == pytest.approx(
        config.HDOP_FALLBACK_VALUE * config.NMEA_UERE_M)
    assert estimate_accuracy_m(gst=SimpleNamespace(std_dev_latitude=6.0, std_dev_longitude=8.0)) == 10.0


def test_void_fixes_are_skipped_and_counted(tmp_path):
    lines = [rmc(0), rmc(100, status='V'), rmc(200)]
    samples, _, _, quality = extract_position_samples(nmea_log(tmp_path, lines))
    assert [s.timestamp_ms for s in samples] == [0.0, 200.0]
    assert quality['total_fixes'] == 3
    assert quality['invalid_fixes'] == 1
    assert quality['invalid_ratio'] == pytest.approx(1 / 3)


def test_missing_speed_is_kept_as_none(tmp_path):
    lines = [rmc(0), rmc(100, 1.0, speed_knots=None)]
    samples, _, _, quality = extract_position_samples(nmea_log(tmp_path, lines))
    assert samples[1].reported_speed_mps is None
    assert quality['missing_speed'] == 1


def test_gga_only_epochs(tmp_path):
    lines = [rmc(0), gga(100, 1.0), gga(200, 2.0, quality=0), rmc(300, 3.0)]
    samples, _, _, quality = extract_position_samples(nmea_log(tmp_path, lines))
    assert [s.timestamp_ms for s in samples] == [0.0, 100.0, 300.0]
    assert samples[1].reported_speed_mps is None
    assert quality['invalid_fixes'] == 1
    assert quality['missing_speed'] == 1


def test_corrupt_lines_are_skipped(tmp_path):
    good = rmc(100)
    body, checksum = good[1:].split('*')
    broken = f"${body}*{(int(checksum, 16) + 1) % 256:02X}"
    lines = [rmc(0), "not an nmea line", broken, rmc(200)]
    samples, _, _, _ = extract_position_samples(nmea_log(tmp_path, lines))
    assert [s.timestamp_ms for s in samples] == [0.0, 200.0]


def test_midnight_wrap(tmp_path):
    lines = [gga(0, time_str='235959.90'), gga(0, 1.0, time_str='000000.00')]
    samples, _, _, _ = extract_position_samples(nmea_log(tmp_path, lines))
    assert [s.timestamp_ms for s in samples] == [0.0, 100.0]


def test_midnight_wrap_with_rmc_dates(tmp_path):
    # 23:59:59.90 on 2026-06-17, then 00:00:00.00 on 2026-06-18
    lines = [rmc(12 * 3600 * 1000 - 100), rmc(12 * 3600 * 1000, 1.0, date_str='180626')]
    samples, _, first_timestamp_ms, _ = extract_position_samples(nmea_log(tmp_path, lines))
    assert [s.timestamp_ms for s in samples] == [0.0, 100.0]
    assert first_timestamp_ms == LOG_START_MS + 12 * 3600 * 1000 - 100


def test_same_time_of_day_on_later_days_is_kept_apart(tmp_path):
    times = ['120000.00', '235959.90', '000000.00', '120000.00']
    lines = [gga(0, i * 1.0, time_str=t) for i, t in enumerate(times)]
    samples, _, _, quality = extract_position_samples(nmea_log(tmp_path, lines))
    assert [s.timestamp_ms for s in samples] == [0.0, 43199900.0, 43200000.0, 86400000.0]
    assert quality['total_fixes'] == 4


def test_rmc_date_change_starts_a_new_day(tmp_path):
    lines = [rmc(0), rmc(0, 1.0, date_str='180626')]
    samples, _, _, _ = extract_position_samples(nmea_log(tmp_path, lines))
    assert [s.timestamp_ms for s in samples] == [0.0, 86400000.0]


def test_gaps_are_reported(tmp_path):
    lines = [rmc(t) for t in (0, 100, 200, 1200, 1300)]
    _, _, _, quality = extract_position_samples(nmea_log(tmp_path, lines))
    assert len(quality['gaps']) == 1
    gap = quality['gaps'][0]
    assert gap['index'] == 3
    assert gap['duration'] == pytest.approx(1.0)


def test_empty_file_raises(tmp_path):
    with pytest.raises(ValueError):
        extract_position_samples(nmea_log(tmp_path, []))


def test_file_without_valid_fix_raises(tmp_path):
    lines = [rmc(0, status='V'), rmc(100, status='V')]
    with pytest.raises(ValueError):
        extract_position_samples(nmea_log(tmp_path, lines))


def test_convert_nmea_to_milliseconds():
    msg = pynmea2.parse(rmc(0))
    assert convert_nmea_to_milliseconds(msg) == LOG_START_MS
    assert convert_nmea_to_milliseconds(msg, date(2026, 6, 18)) == LOG_START_MS + 24 * 3600 * 1000
    assert convert_nmea_to_milliseconds(SimpleNamespace()) is None


def test_calculate_gps_frequency():
    assert calculate_gps_frequency([0, 100, 200, 300]) == 10.0
    assert calculate_gps_frequency([0, 200, 400]) == 5.0
    assert calculate_gps_frequency([0]) == 0
    assert calculate_gps_frequency([0, 10000]) == 0


def test_find_gaps():
    assert find_gaps([0, 100, 200]) == []
    gaps = find_gaps([0, 100, 400, 500], threshold_s=0.2)
    assert gaps == [{'index': 2, 'start_ms': 100.0, 'duration': pytest.approx(0.3)}]
