#!/usr/bin/env python3
"""
ACC Leaderboard - Imports ACC server result files and prints leaderboards

Usage:
    python leaderboard_app.py scan --results /path/to/server/results
    python leaderboard_app.py watch
    python leaderboard_app.py leaderboard --track monza --track spa
    python leaderboard_app.py driver S76561198000000000
    python leaderboard_app.py stats

Settings come from the environment (DATABASE_URL, RESULTS_PATH,
RESULTS_TIMEZONE, ...); command line options win.
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from acc_leaderboard.analysis import DriverLapHistory, LeaderboardAggregator, format_duration
from acc_leaderboard.config import Settings, load_settings
from acc_leaderboard.database import db_manager, initialize_database
from acc_leaderboard.errors import InvalidIdentifier
from acc_leaderboard.importers import DirectoryWatcher, ResultImporter, player_id_to_driver_id


def _marked(value, css_class: str) -> str:
    """Plain-text stand-in for the purple / green highlight"""
    marker = {'purple': '*', 'green': '+'}.get(css_class, ' ')
    return f"{value}{marker}"


def _build_watcher(settings: Settings) -> DirectoryWatcher:
    importer = ResultImporter(db=db_manager, tz=settings.tzinfo())
    return DirectoryWatcher(
        settings.results_path,
        importer,
        poll_interval=settings.poll_interval,
        debounce=settings.debounce_seconds
    )


def cmd_scan(settings: Settings, args) -> int:
    watcher = _build_watcher(settings)
    summary = watcher.scan_once()

    print("=" * 60)
    print("IMPORT SUMMARY")
    print("=" * 60)
    print(f"Imported: {len(summary.imported)}")
    print(f"Skipped:  {len(summary.skipped)}")
    print(f"Failed:   {len(summary.failed)}")
    for filename, error in summary.failed.items():
        print(f"   {filename}: {error}")
    print("=" * 60)
    return 1 if summary.failed else 0


def cmd_watch(settings: Settings, args) -> int:
    watcher = _build_watcher(settings)

    print("=" * 60)
    print("ACC LEADERBOARD - WATCHING RESULTS")
    print("=" * 60)
    print(f"Results directory: {settings.results_path}")
    print(f"Database: {settings.database_url}")
    print("=" * 60)
    print("Press Ctrl+C to stop\n")

    watcher.scan_once()
    watcher.start()
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        watcher.stop()
    return 0


def cmd_leaderboard(settings: Settings, args) -> int:
    aggregator = LeaderboardAggregator(db=db_manager, cache_ttl_seconds=settings.cache_ttl_seconds)
    boards = aggregator.get_leaderboard(args.track)
    if not boards:
        print("No laps stored yet")
        return 0

    for board in boards.values():
        print("=" * 60)
        print(f"{board.display_name}  (optimal {format_duration(board.optimal_time_ms)})")
        print("=" * 60)
        for row in board.rows:
            gap = format_duration(row.gap_ms) if row.gap_ms is not None else ''
            interval = format_duration(row.interval_ms) if row.interval_ms is not None else ''
            splits = ' '.join(_marked(s.formatted, s.css_class) for s in row.splits)
            print(f"{row.position:>3}. {row.name:<32} {row.flag_code.upper():<3}"
                  f"{_marked(row.lap_time.formatted, row.lap_time.css_class):>10} "
                  f"{_marked(row.optimal_time.formatted, row.optimal_time.css_class):>10} "
                  f"{gap:>8} {interval:>8}  {splits}  {row.car_name}"
                  f"  {row.valid_laps}/{row.total_laps}")
        print()
    return 0


def cmd_driver(settings: Settings, args) -> int:
    try:
        driver_id = player_id_to_driver_id(args.driver_id) if args.driver_id.startswith('S') \
            else int(args.driver_id)
    except (InvalidIdentifier, ValueError):
        print(f"Invalid driver id: {args.driver_id}")
        return 2

    history = DriverLapHistory(db=db_manager).get_driver_laps(driver_id)
    if history is None:
        print(f"Driver {args.driver_id} not found")
        return 1

    print("=" * 60)
    print(f"{history.name} [{history.country}]  laps: {history.valid_laps} valid / {history.total_laps} total")
    print("=" * 60)
    for track in history.tracks:
        print(f"\n{track.display_name}")
        for lap in track.laps:
            splits = ' '.join(_marked(s.formatted, s.css_class) for s in lap.splits)
            print(f"  {lap.session_timestamp:%Y-%m-%d %H:%M} {lap.session_type_name:<11}"
                  f"{_marked(lap.lap_time.formatted, lap.lap_time.css_class):>10}  {splits}"
                  f"  {lap.car_name}{'' if lap.valid else '  (invalid)'}")
    return 0


def cmd_stats(settings: Settings, args) -> int:
    stats = db_manager.get_statistics()
    print("=" * 60)
    print("DATABASE STATISTICS")
    print("=" * 60)
    for table, count in stats.items():
        print(f"{table:<12} {count}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Import ACC server results and show leaderboards'
    )
    parser.add_argument(
        '--db',
        help='SQLAlchemy database URL (default: $DATABASE_URL or sqlite:///acc_results.db)'
    )
    parser.add_argument(
        '--results',
        help='Server results directory (default: $RESULTS_PATH or ./results)'
    )
    parser.add_argument(
        '--timezone',
        help='Time zone of the result file names, e.g. Europe/Amsterdam (default: local)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Debug logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('scan', help='Import the results directory once')
    subparsers.add_parser('watch', help='Import, then keep following the results directory')

    leaderboard = subparsers.add_parser('leaderboard', help='Print the per-track leaderboards')
    leaderboard.add_argument(
        '-t', '--track',
        action='append',
        help='Only this track id (repeatable)'
    )

    driver = subparsers.add_parser('driver', help="Print a driver's lap history")
    driver.add_argument('driver_id', help='Player id (S7656...) or its numeric part')

    subparsers.add_parser('stats', help='Print table row counts')
    return parser


COMMANDS = {
    'scan': cmd_scan,
    'watch': cmd_watch,
    'leaderboard': cmd_leaderboard,
    'driver': cmd_driver,
    'stats': cmd_stats,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = load_settings().with_overrides(
        database_url=args.db,
        results_path=args.results,
        timezone=args.timezone,
        log_level='DEBUG' if args.verbose else None
    )

    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s %(levelname)-7s %(name)s: %(message)s'
    )

    initialize_database(settings.database_url)
    try:
        return COMMANDS[args.command](settings, args)
    finally:
        db_manager.close()


if __name__ == "__main__":
    sys.exit(main())
