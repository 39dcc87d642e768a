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
Configuration file for GPSDrag.
Contains default constants for the sample fusion pipeline and run timing.

Note: these are defaults only. A run is configured through
core.settings.RunConfig, which reads these values and validates overrides.
"""

# Geodesy
EARTH_RADIUS_M = 6371000.0  # Spherical Earth approximation for haversine, m

# ============================================================
# Speed Estimation
# ============================================================

# Ghost speed suppression
GHOST_THRESHOLD_KMH = 2.5   # Measured speed below this is clamped to exactly 0

# Scalar Kalman filter (speed in m/s)
KALMAN_Q = 0.1                    # Process noise - higher = more responsive to changes
KALMAN_R = 2.0                    # Measurement noise - higher = more smoothing
KALMAN_INITIAL_COVARIANCE = 1.0   # Error covariance after reset

# Exponential low-pass applied after the Kalman filter
SPEED_SMOOTH_ALPHA = 0.25   # Weight of the newest value (0 < alpha <= 1)

# Speed reconstruction from position deltas
REBUILD_SPEED_MAX_DT_MS = 1200    # Max gap between samples for reconstruction, ms
REBUILD_MIN_REPORTED_KMH = 0.5    # Reported speed below this counts as missing

# Rolling (time, speed) buffer
SAMPLE_BUFFER_MS = 3000     # Samples older than this are pruned, ms

# ============================================================
# Heading Gate
# ============================================================
HEADING_MAX_DEG = 25.0      # Max bearing change before a segment's distance is dropped

# ============================================================
# Run Lifecycle
# ============================================================
LOCK_ACCURACY_M = 50.0      # Horizontal accuracy required to fix the start position, m
START_THRESHOLD_KMH = 3.0   # Smoothed speed required for start detection
START_WINDOW_MS = 450       # Trailing window that must stay above START_THRESHOLD_KMH, ms

# Rollout (one foot head start, drag strip convention)
ROLLOUT_M = 0.3048
ROLLOUT_ENABLED = False

# Milestone distances, m
MILESTONES_M = [20, 100, 201, 402]

# Test modes and their finish targets
DEFAULT_MODE = '402'
TEST_MODES = ['201', '402', '0-100', '0-140', '60-100']
MODE_DISTANCE_TARGETS_M = {'201': 201, '402': 402}
MODE_SPEED_TARGETS_KMH = {'0-100': 100.0, '0-140': 140.0}
RANGE_MODE_LOW_KMH = 60.0    # 60-100 mode lower bound
RANGE_MODE_HIGH_KMH = 100.0  # 60-100 mode upper bound
RANGE_MODE_SAMPLES = 10      # Trailing buffer samples inspected by the 60-100 mode

# ============================================================
# NMEA Replay
# ============================================================
KNOTS_TO_MPS = 0.514444        # Speed over ground conversion
NMEA_UERE_M = 5.0              # User equivalent range error: accuracy = HDOP * UERE
HDOP_FALLBACK_VALUE = 0.7      # Default HDOP when a fix carries none
GAP_THRESHOLD = 0.5            # Threshold for detecting gaps in data (seconds)
MAX_VALID_INTERVAL_MS = 5000   # Intervals above this are ignored for rate estimation

# ============================================================
# Session Diagnostics
# ============================================================
LOW_GPS_FREQUENCY_HZ = 5.0       # Low GPS frequency warning (Hz)
MEDIUM_GPS_FREQUENCY_HZ = 10.0   # Medium GPS frequency caution (Hz)
GAP_WARNING_COUNT = 50           # More gaps than this is a warning instead of a caution
INVALID_FIX_WARNING_RATIO = 0.1  # Void RMC fixes ratio for a warning
INVALID_FIX_CAUTION_RATIO = 0.05 # Void RMC fixes ratio for a caution
HEADING_REJECT_CAUTION_RATIO = 0.2   # Rejected segments ratio for a caution
RECONSTRUCTED_CAUTION_RATIO = 0.3    # Reconstructed speeds ratio for a caution
