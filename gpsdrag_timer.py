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
GPSDrag CLI entry point.

Replays a recorded NMEA log through the run timer and prints the timed runs
as JSON.
"""
import json
import os
import sys
import argparse
import logging

# Add script directory to path for imports
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
if SCRIPT_DIR not in sys.path:
    sys.path.insert(0, SCRIPT_DIR)

from core.record import best_marks
from core.run_state import RunStateMachine
from core.settings import ConfigError, RunConfig
from core.structures import RunPhase
from core.warnings import compute_warnings
from parsers.nmea_handler import extract_position_samples
import config
from locales.strings import ERRORS

# Configure logging (basicConfig is sufficient, no need for duplicate handler)
logging.basicConfig(
    level=logging.ERROR,
    format='%(levelname)s: %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger('gpsdrag_timer')


def format_duration_ms(duration_ms):
    """Format duration from milliseconds to mm:ss.mmm string."""
    if duration_ms is None:
        return ""
    total_ms = int(round(duration_ms))
    minutes, rest_ms = divmod(total_ms, 60000)
    seconds, milliseconds = divmod(rest_ms, 1000)
    return f"{minutes:02d}:{seconds:02d}.{milliseconds:03d}"


def _collect_counters(machine, stats):
    """Add the filter counters of the current run to the replay totals."""
    stats['samples'] += machine.estimator.sample_count
    stats['reconstructed'] += machine.estimator.reconstructed_count
    stats['segments'] += machine.heading_gate.evaluated_count
    stats['rejected_segments'] += machine.heading_gate.rejected_count


def replay_samples(samples, run_config, rearm=False, clock=None):
    """
    Feed recorded samples through a freshly armed RunStateMachine.

    The feed stops as soon as the machine no longer wants positions, unless
    rearm is set: then a finished run is followed by a new arm() and the
    replay continues, so one log can yield several runs.

    Args:
        samples: list of PositionSample in arrival order
        run_config: RunConfig
        rearm: arm again after every finished run
        clock: optional datetime factory for record timestamps

    Returns:
        dict: {'records': [RunRecord], 'telemetry': Telemetry, 'stats': dict}
    """
    records = []
    stats = {
        'mode': run_config.mode,
        'locked': False,
        'started': False,
        'finished': False,
        'runs_started': 0,
        'samples': 0,
        'reconstructed': 0,
        'segments': 0,
        'rejected_segments': 0,
        'lock_accuracy_m': run_config.lock_accuracy_m,
    }

    machine = RunStateMachine(run_config, on_finish=records.append, clock=clock)
    machine.arm()
    telemetry = machine.telemetry()

    for sample in samples:
        if not machine.wants_feed:
            if not (rearm and machine.phase is RunPhase.FINISHED):
                break
            _collect_counters(machine, stats)
            machine.arm()

        was_armed = machine.phase is RunPhase.ARMED
        telemetry = machine.submit_sample(sample)
        if machine.state.start_position is not None:
            stats['locked'] = True
        if was_armed and machine.phase in (RunPhase.RUNNING, RunPhase.FINISHED):
            stats['runs_started'] += 1
            stats['started'] = True

    _collect_counters(machine, stats)
    # A run cut off by the end of the log leaves the replay unfinished
    stats['finished'] = bool(records) and len(records) == stats['runs_started']
    logger.debug(f"Replay done: {len(records)} run(s), stats {stats}")

    return {'records': records, 'telemetry': telemetry, 'stats': stats}


def telemetry_to_dict(telemetry):
    return {
        "phase": telemetry.phase.value,
        "status": telemetry.status,
        "speed_kmh": round(telemetry.speed_kmh, 2),
        "distance_m": round(telemetry.distance_m, 2),
        "elapsed_s": round(telemetry.elapsed_s, 3),
        "peak_kmh": round(telemetry.peak_kmh, 2),
        "average_kmh": round(telemetry.average_kmh, 2),
        "accuracy_m": telemetry.accuracy_m,
    }


def format_json_response(run_config, replay, gps_frequency=None, session_duration_ms=None,
                         warnings_dict=None, cautions_dict=None):
    """
    Format JSON response for CLI output.

    Args:
        run_config: RunConfig used for the replay
        replay: result of replay_samples
        gps_frequency: GPS frequency
        session_duration_ms: log duration in ms
        warnings_dict: warnings
        cautions_dict: cautions

    Returns:
        dict with JSON response
    """
    records = replay['records']
    best = best_marks(records)

    response = {
        "success": True,
        "mode": run_config.mode,
        "rollout": run_config.rollout_enabled,
        "runs": [record.to_dict() for record in records],
        "best": {
            f"{milestone_m:g}": {"time_s": mark.elapsed_s, "speed_kmh": mark.speed_kmh}
            for milestone_m, mark in sorted(best.items())
        },
        "telemetry": telemetry_to_dict(replay['telemetry']),
        "session_info": {
            "samples": replay['stats']['samples'],
        },
    }

    if gps_frequency is not None:
        response["gps_frequency"] = gps_frequency

    if session_duration_ms is not None:
        response["session_info"]["duration_ms"] = session_duration_ms
        response["session_info"]["duration_formatted"] = format_duration_ms(session_duration_ms)

    if warnings_dict:
        response["warning"] = warnings_dict

    if cautions_dict:
        response["caution"] = cautions_dict

    return response


def _print_error(message):
    error_response = {
        "success": False,
        "error": message
    }
    print(json.dumps(error_response, ensure_ascii=False, indent=2))
    sys.exit(1)


def build_parser():
    test_modes = getattr(config, 'TEST_MODES', ['201', '402', '0-100', '0-140', '60-100'])
    parser = argparse.ArgumentParser(description='Acceleration run timing from NMEA data')
    parser.add_argument('nmea_file', help='Path to NMEA file')
    parser.add_argument('--mode', choices=test_modes, default=getattr(config, 'DEFAULT_MODE', '402'),
                        help='Test mode deciding when a run finishes')
    parser.add_argument('--rollout', action='store_true', help='Apply the one foot rollout to milestones')
    parser.add_argument('--lock-accuracy', dest='lock_accuracy', type=float, default=None,
                        help='Horizontal accuracy in m required before the start position is fixed')
    parser.add_argument('--milestones', default=None,
                        help='Comma-separated milestone distances in m (default: 20,100,201,402)')
    parser.add_argument('--rearm', action='store_true', help='Arm again after every finished run')
    parser.add_argument('--file_type', help='File type (nmea)', default="nmea")
    parser.add_argument('--verbose', action='store_true', help='Log pipeline decisions to stderr')
    return parser


def build_run_config(args):
    """RunConfig from parsed CLI arguments. Raises ConfigError on bad values."""
    overrides = {'mode': args.mode, 'rollout_enabled': args.rollout}
    if args.lock_accuracy is not None:
        overrides['lock_accuracy_m'] = args.lock_accuracy
    if args.milestones:
        try:
            overrides['milestones_m'] = [float(m) for m in args.milestones.split(',') if m.strip()]
        except ValueError:
            raise ConfigError(f"milestones must be numbers, got {args.milestones!r}")
    return RunConfig(**overrides)


def main():
    """CLI entry point."""
    args = build_parser().parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if not os.path.exists(args.nmea_file):
            _print_error(ERRORS['file_not_found'].format(file_path=args.nmea_file))

        if args.file_type.lower() != "nmea":
            raise ValueError(ERRORS['only_nmea_supported'])

        try:
            run_config = build_run_config(args)
        except ConfigError as e:
            _print_error(ERRORS['invalid_config'].format(reason=e))

        samples, gps_frequency, first_timestamp_ms, quality = extract_position_samples(args.nmea_file)
        if not samples:
            _print_error(ERRORS['no_samples'].format(file_path=args.nmea_file))

        replay = replay_samples(samples, run_config, rearm=args.rearm)

        warnings_dict, cautions_dict = compute_warnings(
            replay['stats'],
            gps_frequency,
            quality,
        )

        response = format_json_response(
            run_config,
            replay,
            gps_frequency,
            samples[-1].timestamp_ms - samples[0].timestamp_ms,
            warnings_dict,
            cautions_dict,
        )

        print(json.dumps(response, ensure_ascii=False, indent=2))

    except Exception as e:
        logger.error(f"Replay failed: {e}", exc_info=args.verbose)
        _print_error(f"Error: {str(e)}")


if __name__ == "__main__":
    main()
