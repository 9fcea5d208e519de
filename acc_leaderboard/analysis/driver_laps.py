"""
Driver Lap History

Every lap one driver has driven, grouped per track, with the same purple /
green highlighting as the leaderboard: a lap time is purple when it is the
track's fastest valid lap and green when it is the driver's own fastest;
sector times are compared against the track and personal best sectors.

Usage:
    history = DriverLapHistory().get_driver_laps(76561198000000000)
    for track in history.tracks:
        print(track.display_name, len(track.laps))
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import joinedload, selectinload

from ..database.db_manager import DatabaseManager, db_manager as default_db_manager
from ..database.models import SessionModel, DriverModel, LapModel, SplitModel
from .formatting import (
    TimeWithClass,
    car_model_name,
    driver_display_name,
    flag_for_nationality,
    highlight,
    highlight_splits,
    session_type_name,
    track_display_name,
)
from .leaderboard import fold_best_splits

logger = logging.getLogger(__name__)


@dataclass
class DriverLap:
    lap_id: int
    session_type: str
    session_type_name: str
    session_timestamp: datetime  # UTC
    car_model: int
    car_name: str
    ballast_kg: Optional[int]
    valid: bool
    lap_time: TimeWithClass
    splits: List[TimeWithClass]


@dataclass
class TrackLaps:
    track: str
    display_name: str
    latest_timestamp: datetime
    laps: List[DriverLap] = field(default_factory=list)


@dataclass
class DriverHistory:
    driver_id: int
    first_name: str
    last_name: str
    short_name: str
    nickname: Optional[str]
    nationality: Optional[int]
    flag_code: str
    country: str
    valid_laps: int
    total_laps: int
    tracks: List[TrackLaps] = field(default_factory=list)  # most recently driven first

    @property
    def name(self) -> str:
        return driver_display_name(self.first_name, self.last_name, self.short_name)


class DriverLapHistory:
    """Read side for a single driver's laps"""

    def __init__(self, db: Optional[DatabaseManager] = None):
        self.db = db or default_db_manager

    def get_driver_laps(self, driver_id: int) -> Optional[DriverHistory]:
        """
        Lap history of one driver

        Returns:
            None if the driver is not known
        """
        with self.db.get_session() as session:
            driver = session.get(DriverModel, driver_id)
            if driver is None:
                logger.debug("[Leaderboard] Unknown driver %d", driver_id)
                return None

            laps = session.query(LapModel)\
                          .join(SessionModel, LapModel.session_id == SessionModel.id)\
                          .options(joinedload(LapModel.session),
                                   joinedload(LapModel.car),
                                   selectinload(LapModel.splits))\
                          .filter(LapModel.driver_id == driver_id)\
                          .order_by(SessionModel.track, SessionModel.timestamp, LapModel.id)\
                          .all()

            tracks = sorted({lap.session.track for lap in laps})
            track_fastest = self._track_fastest_laps(session, tracks)
            sector_bests = self._sector_bests(session, tracks)

            laps_by_track: Dict[str, List[LapModel]] = {}
            for lap in laps:
                laps_by_track.setdefault(lap.session.track, []).append(lap)

            track_laps = [
                self._build_track(track, track_laps, driver_id, track_fastest, sector_bests)
                for track, track_laps in laps_by_track.items()
            ]

            flag_code, country = flag_for_nationality(driver.nationality)
            history = DriverHistory(
                driver_id=driver.id,
                first_name=driver.first_name or '',
                last_name=driver.last_name or '',
                short_name=driver.short_name or '',
                nickname=driver.nickname,
                nationality=driver.nationality,
                flag_code=flag_code,
                country=country,
                valid_laps=sum(1 for lap in laps if lap.valid),
                total_laps=len(laps)
            )

        history.tracks = sorted(track_laps, key=lambda t: t.latest_timestamp, reverse=True)
        return history

    def _track_fastest_laps(self, session, tracks: List[str]) -> Dict[str, int]:
        """Fastest valid lap time per track"""
        rows = session.query(SessionModel.track, func.min(LapModel.time_ms))\
                      .join(LapModel, LapModel.session_id == SessionModel.id)\
                      .filter(LapModel.valid.is_(True), SessionModel.track.in_(tracks))\
                      .group_by(SessionModel.track)
        return {track: time_ms for track, time_ms in rows}

    def _sector_bests(self, session, tracks: List[str]) -> Dict[Tuple[str, int], List[int]]:
        """Best valid sector vector per (track, driver)"""
        rows = session.query(SessionModel.track, LapModel.driver_id, SplitModel.sector,
                             func.min(SplitModel.time_ms))\
                      .join(LapModel, SplitModel.lap_id == LapModel.id)\
                      .join(SessionModel, LapModel.session_id == SessionModel.id)\
                      .filter(LapModel.valid.is_(True), SessionModel.track.in_(tracks))\
                      .group_by(SessionModel.track, LapModel.driver_id, SplitModel.sector)\
                      .order_by(SessionModel.track, LapModel.driver_id, SplitModel.sector)

        bests: Dict[Tuple[str, int], List[int]] = {}
        for track, driver_id, _, time_ms in rows:
            bests.setdefault((track, driver_id), []).append(time_ms)
        return bests

    def _build_track(self,
                     track: str,
                     laps: List[LapModel],
                     driver_id: int,
                     track_fastest: Dict[str, int],
                     sector_bests: Dict[Tuple[str, int], List[int]]) -> TrackLaps:
        track_best_splits = fold_best_splits(
            splits for (t, _), splits in sector_bests.items() if t == track
        )
        own_best_splits = sector_bests.get((track, driver_id), [])
        own_fastest = min((lap.time_ms for lap in laps if lap.valid), default=None)

        driver_laps = []
        for lap in laps:
            split_times = [split.time_ms for split in lap.splits]

            # No valid lap on this track: nothing to compare against
            if own_fastest is None:
                lap_time = TimeWithClass(lap.time_ms)
                splits = [TimeWithClass(t) for t in split_times]
            else:
                lap_time = TimeWithClass(lap.time_ms,
                                         highlight(lap.time_ms, track_fastest.get(track), own_fastest))
                splits = highlight_splits(split_times, track_best_splits, own_best_splits)

            driver_laps.append(DriverLap(
                lap_id=lap.id,
                session_type=lap.session.session_type,
                session_type_name=session_type_name(lap.session.session_type),
                session_timestamp=lap.session.timestamp.replace(tzinfo=timezone.utc),
                car_model=lap.car.model,
                car_name=car_model_name(lap.car.model),
                ballast_kg=lap.car.ballast_kg,
                valid=lap.valid,
                lap_time=lap_time,
                splits=splits
            ))

        return TrackLaps(
            track=track,
            display_name=track_display_name(track),
            latest_timestamp=max(lap.session_timestamp for lap in driver_laps),
            laps=driver_laps
        )

