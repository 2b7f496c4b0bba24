# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Command-line interface for ephemeris prolongation.

Usage:
    # Integrate the massive bodies of a system for one day
    orbis -i system.json -o trajectories.json --until 86400

    # Same, discarding the first half day and logging degree adaptation
    orbis -i system.json -o trajectories.json --until 86400 --forget-before 43200 -v
"""
import argparse
import logging
import sys

from orbis.adapters import JsonSystemReader, JsonTrajectoryWriter
from orbis.domain.ephemeris import Ephemeris


def run(
    input_path: str,
    output_path: str,
    until: float,
    forget_before: float | None = None,
) -> Ephemeris:
    """
    Prolong the ephemeris of a system file and write its trajectories.

    Returns:
        The prolonged ephemeris.
    """
    if forget_before is not None and forget_before > until:
        raise ValueError(
            f"forget_before {forget_before} is after until {until}: "
            f"nothing would be left to write"
        )

    reader = JsonSystemReader()
    writer = JsonTrajectoryWriter()

    ephemeris = reader.build_ephemeris(reader.read_system(input_path))
    ephemeris.prolong(until)
    if forget_before is not None:
        ephemeris.forget_before(forget_before)

    trajectories = {}
    for index, body in enumerate(ephemeris.bodies):
        name = body.name or f"body-{index}"
        if name in trajectories:
            raise ValueError(f"Duplicate body name '{name}'")
        trajectories[name] = ephemeris.trajectory(body)
    writer.write_trajectories(trajectories, output_path)
    return ephemeris


def main():
    parser = argparse.ArgumentParser(
        description="Integrate a system of massive bodies into Chebyshev trajectories"
    )
    parser.add_argument(
        '--input', '-i', required=True,
        help="Path to the system definition JSON"
    )
    parser.add_argument(
        '--output', '-o', required=True,
        help="Path to write the trajectories JSON"
    )
    parser.add_argument(
        '--until', '-t', type=float, required=True,
        help="Time (seconds) the trajectories must cover"
    )
    parser.add_argument(
        '--forget-before', type=float, default=None,
        help="Drop the trajectories before this time (seconds)"
    )
    parser.add_argument(
        '--verbose', '-v', action='store_true', default=False,
        help="Log integration and fitting details"
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        ephemeris = run(
            input_path=args.input,
            output_path=args.output,
            until=args.until,
            forget_before=args.forget_before,
        )
        print(
            f"Wrote {args.output} with {len(ephemeris.bodies)} bodies "
            f"covering [{ephemeris.t_min()}, {ephemeris.t_max()}] s."
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, RuntimeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
