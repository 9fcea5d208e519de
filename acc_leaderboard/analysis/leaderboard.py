"""
Leaderboard Aggregator

Per-track standings over everything stored: each driver's fastest valid
lap, their synthetic optimal lap, the gaps between drivers and the sector
highlighting (purple = best on the track, green = driver's own best).

Features:
- Personal best lap per driver and track (ties: earliest session, then lap id)
- Personal best sector vector and optimal lap
- Track best sector vector (element-wise minimum over drivers)
- Gap to the leader and interval to the car ahead
- Valid / total lap counts
- Results cached for a fixed time

Usage:
    from acc_leaderboard.analysis import LeaderboardAggregator

    aggregator = LeaderboardAggregator(cache_ttl_seconds=60)
    for track, board in aggregator.get_leaderboard().items():
        print(board.display_name, board.rows[0].name)
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import zip_longest
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from ..database.db_manager import DatabaseManager, db_manager as default_db_manager
from ..database.models import SessionModel, CarModel, DriverModel, LapModel, SplitModel
from .formatting import (
    TimeWithClass,
    car_model_name,
    driver_display_name,
    flag_for_nationality,
    highlight,
    highlight_splits,
    track_display_name,
)

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 60.0

LAP_COLUMNS = ['lap_id', 'track', 'timestamp', 'driver_id', 'time_ms', 'valid']
SPLIT_COLUMNS = ['lap_id', 'sector', 'time_ms']


@dataclass
class LeaderboardRow:
    """One driver's standing on one track"""
    position: int
    driver_id: int
    first_name: str
    last_name: str
    short_name: str
    nationality: Optional[int]
    flag_code: str
    country: str
    car_model: int
    car_name: str
    ballast_kg: Optional[int]
    session_timestamp: datetime  # UTC
    lap_id: int
    lap_time: TimeWithClass
    optimal_time: TimeWithClass
    gap_ms: Optional[int]       # to the first row
    interval_ms: Optional[int]  # to the previous row
    splits: List[TimeWithClass]
    best_splits: List[TimeWithClass]
    valid_laps: int
    total_laps: int

    @property
    def name(self) -> str:
        return driver_display_name(self.first_name, self.last_name, self.short_name)

    @property
    def player_id(self) -> str:
        return f"S{self.driver_id}"


@dataclass
class TrackLeaderboard:
    """All rows of one track, fastest first"""
    track: str
    display_name: str
    latest_timestamp: datetime  # UTC, most recent lap on the track
    best_splits: List[int]
    rows: List[LeaderboardRow] = field(default_factory=list)

    @property
    def optimal_time_ms(self) -> int:
        """Sum of the track best sectors"""
        return sum(self.best_splits)

    @property
    def fastest_lap_ms(self) -> Optional[int]:
        return self.rows[0].lap_time.time_ms if self.rows else None


def fold_best_splits(vectors: Iterable[List[int]]) -> List[int]:
    """
    Element-wise minimum of sector vectors of any length

    Sectors only some vectors have are carried forward unchanged.
    """
    best: List[int] = []
    for vector in vectors:
        best = [
            b if a is None else a if b is None else min(a, b)
            for a, b in zip_longest(best, vector)
        ]
    return best


def optimal_lap_time(lap_time_ms: int, lap_splits: List[int], best_splits: List[int]) -> int:
    """
    Sum of the personal best sectors

    When the fastest lap holds every personal best sector its own time is
    used: the recorded lap time and the sum of its splits can differ by a
    millisecond of rounding.
    """
    if lap_splits == best_splits:
        return lap_time_ms
    return sum(best_splits)


def _as_utc(timestamp) -> datetime:
    if isinstance(timestamp, pd.Timestamp):
        timestamp = timestamp.to_pydatetime()
    return timestamp.replace(tzinfo=timezone.utc)


class LeaderboardAggregator:
    """
    Leaderboard statistics over all stored sessions

    The result of a computation is reused for `cache_ttl_seconds`; new
    imports show up once it expires or after `invalidate()`.
    """

    def __init__(self,
                 db: Optional[DatabaseManager] = None,
                 cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
                 clock: Callable[[], float] = time.monotonic):
        self.db = db or default_db_manager
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock

        self._lock = threading.Lock()
        self._cache: Optional[Dict[str, TrackLeaderboard]] = None
        self._cached_at = 0.0

    def invalidate(self):
        with self._lock:
            self._cache = None

    def get_leaderboard(self, tracks: Optional[Iterable[str]] = None) -> Dict[str, TrackLeaderboard]:
        """
        Leaderboards keyed by track id, most recently driven track first

        Args:
            tracks: only these track ids (default: all)
        """
        with self._lock:
            now = self._clock()
            if self._cache is None or now - self._cached_at >= self.cache_ttl_seconds:
                self._cache = self._compute()
                self._cached_at = now
            boards = self._cache

        if tracks is None:
            return dict(boards)
        wanted = set(tracks)
        return {track: board for track, board in boards.items() if track in wanted}

    # === Loading ===

    def _load(self) -> Tuple[Dict[int, dict], pd.DataFrame, pd.DataFrame]:
        """
        Returns:
            (lap records keyed by lap id, laps frame, valid-lap splits frame)
        """
        with self.db.get_session() as session:
            rows = session.query(
                LapModel.id.label('lap_id'),
                SessionModel.track,
                SessionModel.timestamp,
                LapModel.driver_id,
                LapModel.time_ms,
                LapModel.valid,
                CarModel.model.label('car_model'),
                CarModel.ballast_kg,
                DriverModel.first_name,
                DriverModel.last_name,
                DriverModel.short_name,
                DriverModel.nationality
            ).join(SessionModel, LapModel.session_id == SessionModel.id)\
             .join(CarModel, LapModel.car_id == CarModel.id)\
             .join(DriverModel, LapModel.driver_id == DriverModel.id)\
             .all()

            split_rows = session.query(SplitModel.lap_id, SplitModel.sector, SplitModel.time_ms)\
                                .join(LapModel, SplitModel.lap_id == LapModel.id)\
                                .filter(LapModel.valid.is_(True))\
                                .all()

        records = {row.lap_id: row._asdict() for row in rows}
        laps = pd.DataFrame(
            [{column: record[column] for column in LAP_COLUMNS} for record in records.values()],
            columns=LAP_COLUMNS
        )
        splits = pd.DataFrame([tuple(row) for row in split_rows], columns=SPLIT_COLUMNS).astype('int64')
        return records, laps, splits

    # === Computation ===

    def _compute(self) -> Dict[str, TrackLeaderboard]:
        records, laps, splits = self._load()
        if laps.empty:
            logger.debug("[Leaderboard] No laps stored")
            return {}

        laps['valid'] = laps['valid'].astype(bool)
        valid = laps[laps['valid']]

        # Lap counts per (track, driver)
        counts = laps.groupby(['track', 'driver_id'])['valid'].agg(['sum', 'size']).to_dict('index')

        # Most recent activity per track
        latest = laps.groupby('track')['timestamp'].max().to_dict()

        # Splits of every valid lap, keyed by lap id, in sector order
        splits = splits.sort_values(['lap_id', 'sector'])
        lap_splits: Dict[int, List[int]] = {
            int(lap_id): [int(t) for t in group['time_ms']]
            for lap_id, group in splits.groupby('lap_id', sort=False)
        }

        # Personal best sector vectors per (track, driver)
        owners = splits.merge(valid[['lap_id', 'track', 'driver_id']], on='lap_id')
        sector_minimums = owners.groupby(['track', 'driver_id', 'sector'])['time_ms'].min()
        personal_best_splits: Dict[Tuple[str, int], List[int]] = {}
        for (track, driver_id, _), time_ms in sector_minimums.items():
            personal_best_splits.setdefault((track, int(driver_id)), []).append(int(time_ms))

        # Personal best lap per (track, driver)
        best_laps = valid.sort_values(['time_ms', 'timestamp', 'lap_id'], kind='stable')\
                         .drop_duplicates(['track', 'driver_id'], keep='first')

        boards = []
        for track, track_laps in best_laps.groupby('track'):
            ordered = track_laps.sort_values(['time_ms', 'timestamp', 'driver_id'], kind='stable')
            lap_ids = [int(lap_id) for lap_id in ordered['lap_id']]
            boards.append(self._build_track(
                track, lap_ids, records, lap_splits, personal_best_splits, counts, latest[track]
            ))

        boards.sort(key=lambda board: board.latest_timestamp, reverse=True)
        logger.debug("[Leaderboard] Computed %d tracks from %d laps", len(boards), len(laps))
        return {board.track: board for board in boards}

    def _build_track(self,
                     track: str,
                     lap_ids: List[int],
                     records: Dict[int, dict],
                     lap_splits: Dict[int, List[int]],
                     personal_best_splits: Dict[Tuple[str, int], List[int]],
                     counts: Dict[Tuple[str, int], dict],
                     latest) -> TrackLeaderboard:
        track_best_splits = fold_best_splits(
            personal_best_splits.get((track, records[lap_id]['driver_id']), []) for lap_id in lap_ids
        )

        optimal_times = []
        for lap_id in lap_ids:
            record = records[lap_id]
            optimal_times.append(optimal_lap_time(
                record['time_ms'],
                lap_splits.get(lap_id, []),
                personal_best_splits.get((track, record['driver_id']), [])
            ))

        fastest_lap = records[lap_ids[0]]['time_ms']
        fastest_optimal = min(optimal_times)

        rows = []
        previous = None
        for position, (lap_id, optimal) in enumerate(zip(lap_ids, optimal_times), start=1):
            record = records[lap_id]
            time_ms = record['time_ms']
            own_splits = lap_splits.get(lap_id, [])
            own_best = personal_best_splits.get((track, record['driver_id']), [])
            flag_code, country = flag_for_nationality(record['nationality'])
            lap_count = counts.get((track, record['driver_id']), {'sum': 0, 'size': 0})

            rows.append(LeaderboardRow(
                position=position,
                driver_id=record['driver_id'],
                first_name=record['first_name'] or '',
                last_name=record['last_name'] or '',
                short_name=record['short_name'] or '',
                nationality=record['nationality'],
                flag_code=flag_code,
                country=country,
                car_model=record['car_model'],
                car_name=car_model_name(record['car_model']),
                ballast_kg=record['ballast_kg'],
                session_timestamp=_as_utc(record['timestamp']),
                lap_id=lap_id,
                lap_time=TimeWithClass(time_ms, highlight(time_ms, fastest_lap, time_ms)),
                optimal_time=TimeWithClass(optimal, highlight(optimal, fastest_optimal, optimal)),
                gap_ms=None if previous is None else time_ms - fastest_lap,
                interval_ms=None if previous is None else time_ms - previous,
                splits=highlight_splits(own_splits, track_best_splits, own_best),
                best_splits=highlight_splits(own_best, track_best_splits, own_best),
                valid_laps=int(lap_count['sum']),
                total_laps=int(lap_count['size'])
            ))
            previous = time_ms

        return TrackLeaderboard(
            track=track,
            display_name=track_display_name(track),
            latest_timestamp=_as_utc(latest),
            best_splits=track_best_splits,
            rows=rows
        )

