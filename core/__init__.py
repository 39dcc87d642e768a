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

"""Sample fusion pipeline and run lifecycle."""

from .run_state import RunState, RunStateMachine
from .settings import ConfigError, RunConfig
from .structures import MilestoneMark, PositionSample, RunPhase, RunRecord, Telemetry

__all__ = [
    'RunState',
    'RunStateMachine',
    'ConfigError',
    'RunConfig',
    'MilestoneMark',
    'PositionSample',
    'RunPhase',
    'RunRecord',
    'Telemetry',
]
