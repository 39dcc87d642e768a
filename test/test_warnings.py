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

"""Tests for replay diagnostics."""
import logging
import os
import sys

# Add parent directory to path for imports
PARENT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if PARENT_DIR not in sys.path:
    sys.path.insert(0, PARENT_DIR)

from core.warnings import compute_warnings


def clean_stats(**overrides):
    stats = {
        'mode': '402',
        'locked': True,
        'started': True,
        'finished': True,
        'samples': 100,
        'reconstructed': 0,
        'segments': 99,
        'rejected_segments': 0,
        'lock_accuracy_m': 50.0,
    }
    stats.update(overrides)
    return stats


def test_clean_replay_has_no_remarks():
    quality = {'invalid_ratio': 0.0, 'gaps': []}
    assert compute_warnings(clean_stats(), 10.0, quality) == ({}, {})


def test_nothing_to_check():
    assert compute_warnings() == ({}, {})


def test_gps_frequency():
    warnings, _ = compute_warnings(gps_frequency=1.0)
    assert 'gps_frequency' in warnings
    _, cautions = compute_warnings(gps_frequency=5.0)
    assert 'gps_frequency' in cautions
    assert compute_warnings(gps_frequency=20.0) == ({}, {})


def test_invalid_fixes():
    warnings, _ = compute_warnings(quality={'invalid_ratio': 0.25, 'gaps': []})
    assert 'gps_validity' in warnings
    _, cautions = compute_warnings(quality={'invalid_ratio': 0.07, 'gaps': []})
    assert 'gps_validity' in cautions


def test_gaps():
    gap = {'index': 1, 'start_ms': 0.0, 'duration': 1.0}
    _, cautions = compute_warnings(quality={'invalid_ratio': 0.0, 'gaps': [gap] * 3})
    assert cautions['log_issue'].startswith('3 ')
    warnings, _ = compute_warnings(quality={'invalid_ratio': 0.0, 'gaps': [gap] * 51})
    assert 'log_issue' in warnings


def test_run_outcome():
    warnings, _ = compute_warnings(clean_stats(locked=False, started=False, finished=False))
    assert 'no_lock' in warnings
    assert '50 m' in warnings['no_lock']

    warnings, _ = compute_warnings(clean_stats(started=False, finished=False))
    assert 'not_started' in warnings

    warnings, cautions = compute_warnings(clean_stats(finished=False, mode='0-100'))
    assert warnings == {}
    assert '0-100' in cautions['not_finished']


def test_filter_activity():
    _, cautions = compute_warnings(clean_stats(rejected_segments=30))
    assert 'heading_rejected' in cautions
    _, cautions = compute_warnings(clean_stats(reconstructed=40))
    assert 'reconstructed_speed' in cautions
    _, cautions = compute_warnings(clean_stats(rejected_segments=5, reconstructed=5))
    assert cautions == {}


def test_remarks_are_logged(caplog):
    with caplog.at_level(logging.DEBUG, logger='core.warnings'):
        compute_warnings(clean_stats(finished=False), 4.0)
    assert "gps_frequency" in caplog.text
    assert "not_finished" in caplog.text
