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
Run lifecycle state machine.

Idle -> Armed (waiting for GPS lock, then for throttle) -> Running -> Finished.
Every sample goes through the heading gate and the speed estimator; while
Running, the gated distance is accumulated and milestones are captured. A
finished run is frozen until the next arm().

One RunStateMachine holds exactly one live run. It is not thread-safe:
submit_sample() and the commands must be called from a single thread (or
through a single-writer queue) so the Kalman filter and milestone capture see
samples in arrival order.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

try:
    from .. import config
    from ..locales.strings import STATUS
except ImportError:
    import config
    from locales.strings import STATUS

from .filters import SpeedEstimator
from .heading import HeadingGate
from .record import build_run_record
from .settings import RunConfig
from .structures import KMH_TO_MS, MS_TO_S, MilestoneMark, RunPhase, Telemetry

logger = logging.getLogger(__name__)


@dataclass
class RunState:
    """Mutable accumulators of the live run."""
    phase: RunPhase = RunPhase.IDLE
    speed_kmh: float = 0.0
    distance_m: float = 0.0
    start_ms: Optional[float] = None
    elapsed_s: float = 0.0
    peak_kmh: float = 0.0
    average_kmh: float = 0.0
    accuracy_m: Optional[float] = None
    timestamp_ms: Optional[float] = None
    start_position: Optional[Tuple[float, float]] = None
    last_position: Optional[Tuple[float, float]] = None
    marks: Dict[float, Optional[MilestoneMark]] = field(default_factory=dict)


class RunStateMachine:
    """
    Sample fusion pipeline and run lifecycle for one acceleration test.

    Args:
        run_config: RunConfig (default: RunConfig() built from config.py)
        on_update: optional callable(Telemetry), called after every processed
            sample and every command
        on_finish: optional callable(RunRecord), called once per finished run
        clock: optional callable returning the datetime stamped on records
    """

    def __init__(self, run_config=None, on_update=None, on_finish=None, clock=None):
        self.config = run_config if run_config is not None else RunConfig()
        self.estimator = SpeedEstimator(self.config)
        self.heading_gate = HeadingGate(self.config.max_heading_deg)
        self.state = self._fresh_state()
        self.status = STATUS['idle']
        self.last_record = None
        self._on_update = on_update
        self._on_finish = on_finish
        self._clock = clock

    @property
    def phase(self):
        return self.state.phase

    @property
    def wants_feed(self):
        """True while positions are needed (Armed or Running)."""
        return self.state.phase in (RunPhase.ARMED, RunPhase.RUNNING)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def arm(self):
        """Start waiting for a launch. Arming an armed or running timer disarms it."""
        if self.state.phase in (RunPhase.ARMED, RunPhase.RUNNING):
            self._clear()
            self.status = STATUS['idle']
            logger.info("Disarmed")
        else:
            self._clear()
            self.state.phase = RunPhase.ARMED
            self.status = STATUS['requesting_gps']
            logger.info(f"Armed for mode {self.config.mode}")
        self._notify()

    def stop(self):
        """Release the feed; the last values stay visible."""
        self.state.phase = RunPhase.IDLE
        self.status = STATUS['stopped']
        logger.info("Stopped")
        self._notify()

    def reset(self):
        """Back to Idle with every accumulator and milestone cleared."""
        self._clear()
        self.status = STATUS['idle']
        logger.info("Reset")
        self._notify()

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def submit_sample(self, sample):
        """
        Process one position fix.

        Args:
            sample: PositionSample

        Returns:
            Telemetry after the sample, or None when the run is finished and
            the sample was ignored
        """
        state = self.state
        if state.phase is RunPhase.FINISHED:
            logger.debug(f"Run finished, sample at {sample.timestamp_ms} ms ignored")
            return None

        state.accuracy_m = sample.horizontal_accuracy_m
        state.timestamp_ms = sample.timestamp_ms
        position = sample.position

        # While armed without a lock the position and heading memory stay untouched
        tracking = state.phase is RunPhase.IDLE or state.start_position is not None
        segment = None
        if tracking and state.last_position is not None:
            segment = self.heading_gate.evaluate(state.last_position, position)

        estimate = self.estimator.update(sample, segment)
        state.speed_kmh = estimate.smoothed_kmh

        if (state.phase in (RunPhase.ARMED, RunPhase.RUNNING)
                and estimate.measured_kmh is not None
                and estimate.measured_kmh > state.peak_kmh):
            state.peak_kmh = estimate.measured_kmh

        if state.phase is RunPhase.IDLE:
            state.last_position = position
        elif state.start_position is None:
            self._wait_for_lock(sample)
        elif state.phase is RunPhase.ARMED:
            self._wait_for_launch(sample, estimate)
            state.last_position = position
        else:
            self._advance(sample, estimate, segment)
            state.last_position = position

        return self._notify()

    def _wait_for_lock(self, sample):
        state = self.state
        if sample.horizontal_accuracy_m <= self.config.lock_accuracy_m:
            state.start_position = sample.position
            state.last_position = sample.position
            self.heading_gate.reset()
            self.status = STATUS['waiting_throttle']
            logger.info(f"GPS lock at {sample.horizontal_accuracy_m:.1f} m accuracy")
        else:
            self.status = STATUS['waiting_accuracy']
            logger.debug(f"Waiting for GPS accuracy: {sample.horizontal_accuracy_m:.1f} m")

    def _wait_for_launch(self, sample, estimate):
        cfg = self.config
        now = sample.timestamp_ms
        recent = self.estimator.window_speeds(now, cfg.start_window_ms)
        ready = bool(recent) and all(speed >= cfg.start_threshold_kmh for speed in recent)

        if not ready:
            self.status = STATUS['waiting_throttle']
            return

        state = self.state
        state.phase = RunPhase.RUNNING
        state.start_ms = now
        state.distance_m = 0.0
        state.elapsed_s = 0.0
        state.average_kmh = 0.0
        state.peak_kmh = estimate.smoothed_kmh
        state.marks = {m: None for m in cfg.milestones_m}
        self.estimator.restart_window(now, estimate.smoothed_kmh)
        self.status = STATUS['running']
        logger.info(f"Launch detected at {now:.0f} ms ({estimate.smoothed_kmh:.1f} km/h)")

    def _advance(self, sample, estimate, segment):
        cfg = self.config
        state = self.state
        now = sample.timestamp_ms

        if segment is not None:
            state.distance_m += segment.distance_m
        state.elapsed_s = (now - state.start_ms) / MS_TO_S
        state.average_kmh = (state.distance_m / state.elapsed_s * KMH_TO_MS
                             if state.elapsed_s > 0 else 0.0)

        offset = cfg.rollout_offset_m
        for milestone_m in cfg.milestones_m:
            if state.marks.get(milestone_m) is None and state.distance_m >= milestone_m - offset:
                state.marks[milestone_m] = MilestoneMark(state.elapsed_s, estimate.smoothed_kmh)
                logger.info(f"{milestone_m} m in {state.elapsed_s:.3f} s at {estimate.smoothed_kmh:.1f} km/h")

        reason = self._finish_reason()
        if reason:
            self._finish(reason)

    def _finish_reason(self):
        """Name of the satisfied finish condition, or None."""
        cfg = self.config
        state = self.state
        offset = cfg.rollout_offset_m

        if state.marks.get(cfg.final_milestone_m) is not None:
            return f"{cfg.final_milestone_m} m milestone"

        mode = cfg.mode
        distance_targets = getattr(config, 'MODE_DISTANCE_TARGETS_M', {'201': 201, '402': 402})
        speed_targets = getattr(config, 'MODE_SPEED_TARGETS_KMH', {'0-100': 100.0, '0-140': 140.0})

        if mode in distance_targets and state.distance_m >= distance_targets[mode] - offset:
            return f"mode {mode} distance"
        if mode in speed_targets and state.peak_kmh >= speed_targets[mode]:
            return f"mode {mode} peak speed"
        if mode == '60-100':
            low = getattr(config, 'RANGE_MODE_LOW_KMH', 60.0)
            high = getattr(config, 'RANGE_MODE_HIGH_KMH', 100.0)
            speeds = self.estimator.trailing_speeds(int(cfg.range_mode_samples))
            # Order is not enforced: one sample at each bound is enough
            if any(s >= low for s in speeds) and any(s >= high for s in speeds):
                return f"mode {mode} speed range"
        return None

    def _finish(self, reason):
        state = self.state
        state.phase = RunPhase.FINISHED
        self.status = STATUS['finished']
        created_at = self._clock() if self._clock else None
        record = build_run_record(state, self.config, created_at)
        self.last_record = record
        logger.info(f"Run finished ({reason}): {state.distance_m:.2f} m in {state.elapsed_s:.3f} s, "
                    f"peak {state.peak_kmh:.1f} km/h")
        if self._on_finish is not None:
            self._on_finish(record)

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def telemetry(self):
        """Read-only snapshot of the live values."""
        state = self.state
        return Telemetry(
            phase=state.phase,
            status=self.status,
            speed_kmh=state.speed_kmh,
            distance_m=state.distance_m,
            elapsed_s=state.elapsed_s,
            peak_kmh=state.peak_kmh,
            average_kmh=state.average_kmh,
            accuracy_m=state.accuracy_m,
            timestamp_ms=state.timestamp_ms,
        )

    def _notify(self):
        snapshot = self.telemetry()
        if self._on_update is not None:
            self._on_update(snapshot)
        return snapshot

    def _fresh_state(self):
        return RunState(marks={m: None for m in self.config.milestones_m})

    def _clear(self):
        self.state = self._fresh_state()
        self.estimator.reset()
        self.heading_gate.reset()
