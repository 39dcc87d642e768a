#!/usr/bin/env python3
# GPSDrag - GPS-based acceleration run timer
# Copyright (C) 2024 GPSDrag Contributors
#
# Shared data-structure definitions and unit constants used across the
# sample pipeline. Centralising these keeps the data flow between the
# estimator, the heading gate and the run state machine easy to follow.

"""
Core data types used in the GPSDrag pipeline.

Position sample (``PositionSample``)
------------------------------------
Produced by the position feed (``parsers.nmea_handler.extract_position_samples``
for recorded logs) and consumed by ``core.run_state.RunStateMachine``::

    PositionSample(
        latitude,               # degrees
        longitude,              # degrees
        horizontal_accuracy_m,  # reported horizontal accuracy, metres
        reported_speed_mps,     # speed over ground in m/s, or None when absent
        timestamp_ms,           # monotonic timestamp, milliseconds
    )

Milestone map
-------------
``{distance_m: MilestoneMark or None}`` ordered by distance. A mark is
written once, on the first sample whose cumulative distance crosses the
(rollout-adjusted) threshold.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

# Unit conversion constants
KMH_TO_MS = 3.6  # km/h to m/s conversion factor (divide km/h by it)
MS_TO_S = 1000.0  # milliseconds to seconds conversion factor


class RunPhase(Enum):
    """Lifecycle phase of a run."""
    IDLE = 'idle'
    ARMED = 'armed'
    RUNNING = 'running'
    FINISHED = 'finished'


@dataclass(frozen=True)
class PositionSample:
    """One fix from the positioning receiver."""
    latitude: float
    longitude: float
    horizontal_accuracy_m: float
    reported_speed_mps: Optional[float]
    timestamp_ms: float

    @property
    def position(self):
        return self.latitude, self.longitude


@dataclass(frozen=True)
class MilestoneMark:
    """Elapsed time and smoothed speed captured when a milestone was crossed."""
    elapsed_s: float
    speed_kmh: float


@dataclass(frozen=True)
class Telemetry:
    """Read-only live values for display. Consuming it never affects the run."""
    phase: RunPhase
    status: str
    speed_kmh: float
    distance_m: float
    elapsed_s: float
    peak_kmh: float
    average_kmh: float
    accuracy_m: Optional[float]
    timestamp_ms: Optional[float]


@dataclass(frozen=True)
class RunRecord:
    """Immutable snapshot of a finished run, handed to the history collaborator."""
    mode: str
    date_created: datetime
    peak_kmh: float
    distance_m: float
    rollout_enabled: bool
    marks: Mapping[float, Optional[MilestoneMark]] = field(default_factory=dict)

    def __post_init__(self):
        # Detach from the caller's dict so the record cannot change afterwards
        object.__setattr__(self, 'marks', MappingProxyType(dict(self.marks)))

    def split_time(self, milestone_m):
        mark = self.marks.get(milestone_m)
        return mark.elapsed_s if mark else None

    def split_speed(self, milestone_m):
        mark = self.marks.get(milestone_m)
        return mark.speed_kmh if mark else None

    def to_dict(self):
        """
        Flatten the record for JSON output.

        Besides the nested ``marks`` mapping, every milestone gets a ``d<M>``
        (elapsed seconds) and ``s<M>`` (speed km/h) column, which is the row
        shape history and export consumers work with.

        Returns:
            dict: JSON-serialisable record
        """
        result = {
            'mode': self.mode,
            'date': self.date_created.isoformat(),
            'peak_kmh': self.peak_kmh,
            'distance_m': self.distance_m,
            'rollout': self.rollout_enabled,
            'marks': {},
        }
        for milestone_m, mark in self.marks.items():
            label = _milestone_label(milestone_m)
            result['marks'][label] = (
                {'time_s': mark.elapsed_s, 'speed_kmh': mark.speed_kmh} if mark else None
            )
            result[f'd{label}'] = mark.elapsed_s if mark else None
            result[f's{label}'] = mark.speed_kmh if mark else None
        return result


def _milestone_label(milestone_m):
    """20.0 -> '20', 60.5 -> '60.5'"""
    return f"{milestone_m:g}"
