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

"""Freezes a finished run into an immutable RunRecord."""
from datetime import datetime, timezone

from .structures import RunRecord


def build_run_record(state, run_config, created_at=None):
    """
    Build the record of a finished run.

    Args:
        state: RunState at the moment the run finished
        run_config: RunConfig the run was timed with
        created_at: creation time (default: now, UTC)

    Returns:
        RunRecord
    """
    if created_at is None:
        created_at = datetime.now(timezone.utc)

    return RunRecord(
        mode=run_config.mode,
        date_created=created_at,
        peak_kmh=state.peak_kmh,
        distance_m=state.distance_m,
        rollout_enabled=run_config.rollout_enabled,
        marks={m: state.marks.get(m) for m in run_config.milestones_m},
    )


def best_marks(records):
    """
    Quickest time per milestone over several records.

    Returns:
        dict: {milestone_m: MilestoneMark}, only milestones reached at least once
    """
    best = {}
    for record in records:
        for milestone_m, mark in record.marks.items():
            if mark is None:
                continue
            current = best.get(milestone_m)
            if current is None or mark.elapsed_s < current.elapsed_s:
                best[milestone_m] = mark
    return best
