"""
Result Importer for ACC Server Files

Imports session result files and entry lists into the database. One file
is one transaction: supersession, session, cars, drivers, laps, splits and
the known-file marker are committed together or not at all, so a failed
file stays unmarked and is retried on the next scan.

Files must be imported in ascending file name (= timestamp) order: the
supersession check only looks at older generations of a session.
"""

import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from ..database.db_manager import DatabaseManager, db_manager as default_db_manager
from ..database.models import (
    SessionModel, CarModel, DriverModel, LapModel, SplitModel, KnownFileModel
)
from ..errors import MissingReference, PersistenceError, ResultsError
from .encoding import bytes_to_json_text
from .result_parser import (
    EntryList,
    FileKind,
    SessionResults,
    classify_filename,
    filename_to_timestamp,
    parse_entry_list,
    parse_session_results,
)
from .supersession import SupersessionResolver

logger = logging.getLogger(__name__)


class ImportOutcome(Enum):
    IMPORTED = 'imported'
    SKIPPED_KNOWN = 'skipped_known'
    SKIPPED_NAME = 'skipped_name'


@dataclass
class ImportSummary:
    """Result of a directory scan"""
    imported: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)  # file name -> error

    def record(self, filename: str, outcome: ImportOutcome):
        if outcome is ImportOutcome.IMPORTED:
            self.imported.append(filename)
        else:
            self.skipped.append(filename)


@dataclass
class _DriverRecord:
    first_name: str
    last_name: str
    short_name: str
    nickname: Optional[str] = None
    nationality: Optional[int] = None


class ResultImporter:
    """
    Import ACC server result files

    Usage:
        importer = ResultImporter(tz=ZoneInfo('Europe/Amsterdam'))

        importer.import_file('results/231014_201502_R.json')
        summary = importer.import_directory('results/')
    """

    def __init__(self,
                 db: Optional[DatabaseManager] = None,
                 tz: Optional[tzinfo] = None,
                 resolver: Optional[SupersessionResolver] = None):
        """
        Args:
            db: database to write to (default: the global manager)
            tz: zone of the timestamps in result file names
                (default: the system local zone)
            resolver: supersession resolver
        """
        self.db = db or default_db_manager
        self.tz = tz
        self.resolver = resolver or SupersessionResolver()

    def is_known(self, filename: str) -> bool:
        """Whether a file with this name was already imported"""
        try:
            with self.db.get_session() as session:
                return session.get(KnownFileModel, filename) is not None
        except SQLAlchemyError as e:
            raise PersistenceError(f"Known file lookup failed for {filename}: {e}") from e

    def import_file(self, path: Union[str, Path]) -> ImportOutcome:
        """
        Import one file

        Raises:
            ResultsError: the file could not be imported; nothing was written
        """
        path = Path(path)
        filename = path.name

        kind = classify_filename(filename)
        if kind is None:
            logger.debug("[Importer] Skipping file: %s (wrong filename format)", filename)
            return ImportOutcome.SKIPPED_NAME

        if self.is_known(filename):
            logger.info("[Importer] Skipping file: %s (already in database)", filename)
            return ImportOutcome.SKIPPED_KNOWN

        json_text = bytes_to_json_text(path.read_bytes())

        if kind is FileKind.SESSION_RESULTS:
            logger.info("[Importer] Processing results file: %s", filename)
            self.add_session_results(parse_session_results(json_text), filename)
        else:
            logger.info("[Importer] Processing entrylist file: %s", filename)
            self.add_entry_list(parse_entry_list(json_text), filename)

        return ImportOutcome.IMPORTED

    def add_session_results(self, results: SessionResults, filename: str) -> int:
        """
        Store a parsed session results file in one transaction

        Returns:
            id of the new session
        """
        timestamp = filename_to_timestamp(filename, self.tz).replace(tzinfo=None)

        try:
            with self.db.get_session() as session:
                deleted = self.resolver.resolve(session, results, timestamp)

                session_model = SessionModel(
                    track=results.track_name,
                    session_type=results.session_type,
                    timestamp=timestamp,
                    server_name=results.server_name,
                    wet=results.is_wet
                )
                session.add(session_model)

                # Snag all of the driver info from the leaderboard lines;
                # laps refer to drivers by (car id, index in the car's driver list)
                drivers: Dict[int, _DriverRecord] = {}
                seat_to_driver: Dict[Tuple[int, int], int] = {}
                cars_by_race_number: Dict[int, CarModel] = {}
                car_id_to_car: Dict[int, CarModel] = {}

                for line in results.session_result.leader_board_lines:
                    car = line.car
                    for index, driver in enumerate(car.drivers):
                        driver_id = driver.driver_id
                        drivers[driver_id] = _DriverRecord(
                            first_name=driver.first_name,
                            last_name=driver.last_name,
                            short_name=driver.short_name
                        )
                        seat_to_driver[(car.car_id, index)] = driver_id

                    car_model = cars_by_race_number.get(car.race_number)
                    if car_model is None:
                        car_model = CarModel(race_number=car.race_number)
                        session_model.cars.append(car_model)
                        cars_by_race_number[car.race_number] = car_model
                    # Same race number twice: the later line replaces the earlier one
                    car_model.model = car.car_model
                    car_model.cup_category = car.cup_category
                    car_model.car_group = car.car_group
                    car_model.team_name = car.team_name
                    car_model.ballast_kg = car.ballast_kg
                    car_id_to_car[car.car_id] = car_model

                driver_models = {
                    driver_id: self._upsert_driver(session, driver_id, record)
                    for driver_id, record in drivers.items()
                }
                session.flush()

                for lap in results.laps:
                    driver_id = seat_to_driver.get((lap.car_id, lap.driver_index))
                    if driver_id is None:
                        raise MissingReference(
                            f"No player ID found for car {lap.car_id} driver {lap.driver_index} in {filename}"
                        )
                    lap_model = LapModel(
                        session=session_model,
                        car=car_id_to_car[lap.car_id],
                        driver=driver_models[driver_id],
                        time_ms=lap.laptime,
                        valid=lap.is_valid_for_best
                    )
                    lap_model.splits = [
                        SplitModel(sector=sector, time_ms=time_ms)
                        for sector, time_ms in enumerate(lap.splits, start=1)
                    ]
                    session.add(lap_model)
                session.flush()
                session_id = session_model.id

                session.add(KnownFileModel(path=filename))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store {filename}: {e}") from e

        logger.info("[Importer] Imported session %d from %s (%d laps, %d drivers, %d superseded)",
                    session_id, filename, len(results.laps), len(drivers), len(deleted))
        return session_id

    def add_entry_list(self, entry_list: EntryList, filename: str) -> int:
        """
        Refresh driver names, nicknames and nationalities from a roster

        Returns:
            number of drivers upserted
        """
        drivers: Dict[int, _DriverRecord] = {}
        for entry in entry_list.entries:
            for driver in entry.drivers:
                drivers[driver.driver_id] = _DriverRecord(
                    first_name=driver.first_name,
                    last_name=driver.last_name,
                    short_name=driver.short_name,
                    nickname=driver.nick_name,
                    nationality=driver.nationality
                )

        try:
            with self.db.get_session() as session:
                for driver_id, record in drivers.items():
                    self._upsert_driver(session, driver_id, record)
                session.add(KnownFileModel(path=filename))
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store {filename}: {e}") from e

        logger.info("[Importer] Updated %d drivers from %s", len(drivers), filename)
        return len(drivers)

    def _upsert_driver(self, session, driver_id: int, record: _DriverRecord) -> DriverModel:
        """Insert a driver or refresh its fields; absent optional fields are kept"""
        driver = session.get(DriverModel, driver_id)
        if driver is None:
            driver = DriverModel(id=driver_id)
            session.add(driver)

        driver.first_name = record.first_name
        driver.last_name = record.last_name
        driver.short_name = record.short_name
        if record.nickname is not None:
            driver.nickname = record.nickname
        if record.nationality is not None:
            driver.nationality = record.nationality
        return driver

    def import_directory(self, directory: Union[str, Path]) -> ImportSummary:
        """
        Import every file of a directory, oldest file name first

        A file that fails is logged and left for the next scan; the scan
        itself always runs to the end.
        """
        dir_path = Path(directory)
        if not dir_path.is_dir():
            raise FileNotFoundError(f"Directory not found: {directory}")

        files = sorted(p for p in dir_path.iterdir() if p.is_file())
        logger.info("[Importer] Found %d files in %s", len(files), dir_path)

        summary = self.import_files(files)
        logger.info("[Importer] All files in %s processed (%d imported, %d skipped, %d failed)",
                    dir_path, len(summary.imported), len(summary.skipped), len(summary.failed))
        return summary

    def import_files(self, paths: Iterable[Union[str, Path]]) -> ImportSummary:
        """Import files in the given order, logging and counting failures"""
        summary = ImportSummary()
        for path in map(Path, paths):
            try:
                summary.record(path.name, self.import_file(path))
            except PersistenceError as e:
                logger.error("[Importer] Error importing %s: %s", path.name, e)
                summary.failed[path.name] = str(e)
            except (ResultsError, OSError) as e:
                logger.warning("[Importer] Failed to import %s: %s", path.name, e)
                summary.failed[path.name] = str(e)
        return summary
