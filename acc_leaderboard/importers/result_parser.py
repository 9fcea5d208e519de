"""
Result Parser

Decodes the canonical JSON produced by the encoding normalizer into typed
records and resolves the pieces of information carried by file names.

File names the server writes:
    231014_201502_R.json        session results (P/FP, Q or R)
    231014_201502_1Q.json       session results with a session index digit
    entrylist.json              roster (driver names, nicknames, nationality)

Usage:
    kind = classify_filename(path.name)
    if kind is FileKind.SESSION_RESULTS:
        results = parse_session_results(bytes_to_json_text(path.read_bytes()))
"""

import re
from datetime import datetime, timezone, tzinfo
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import InvalidIdentifier, MalformedJson, TimestampParseError
from .encoding import bytes_to_json_text

PLAYER_ID_PREFIX = 'S'
TIMESTAMP_FORMAT = '%y%m%d_%H%M%S'
TIMESTAMP_LENGTH = 13

RESULTS_FILENAME_RE = re.compile(r'^\d{6}_\d{6}_(?P<index>\d?)(?P<type>FP|P|Q|R)\.json$')
ENTRY_LIST_SUFFIX = 'entrylist.json'


class FileKind(Enum):
    SESSION_RESULTS = 'session_results'
    ENTRY_LIST = 'entry_list'


class _VendorModel(BaseModel):
    """camelCase vendor fields, unknown fields ignored"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')


class ResultDriver(_VendorModel):
    first_name: str = ''
    last_name: str = ''
    short_name: str = ''
    player_id: str

    @property
    def driver_id(self) -> int:
        return player_id_to_driver_id(self.player_id)


class ResultCar(_VendorModel):
    car_id: int
    race_number: int
    car_model: int
    cup_category: int = 0
    car_group: str = ''
    team_name: str = ''
    ballast_kg: Optional[int] = None
    drivers: List[ResultDriver] = Field(default_factory=list)


class LeaderBoardLine(_VendorModel):
    car: ResultCar


class SessionResult(_VendorModel):
    is_wet_session: bool = False
    leader_board_lines: List[LeaderBoardLine] = Field(default_factory=list)


class ResultLap(_VendorModel):
    car_id: int
    driver_index: int
    laptime: int  # ms
    is_valid_for_best: bool
    splits: List[int] = Field(default_factory=list)  # ms, sector order


class SessionResults(_VendorModel):
    """Contents of a `<timestamp>_<type>.json` session results file"""
    session_type: str
    track_name: str
    server_name: str = ''
    session_result: SessionResult
    laps: List[ResultLap] = Field(default_factory=list)

    @property
    def is_wet(self) -> bool:
        return self.session_result.is_wet_session

    @property
    def identity_key(self) -> tuple:
        """Sessions sharing this key are generations of one logical session"""
        return (self.track_name, self.session_type, self.server_name, self.is_wet)


class EntryListDriver(_VendorModel):
    first_name: str = ''
    last_name: str = ''
    short_name: str = ''
    nick_name: Optional[str] = None
    player_id: str = Field(alias='playerID')
    nationality: Optional[int] = None

    @property
    def driver_id(self) -> int:
        return player_id_to_driver_id(self.player_id)


class Entry(_VendorModel):
    drivers: List[EntryListDriver] = Field(default_factory=list)


class EntryList(_VendorModel):
    """Contents of an `entrylist.json` roster file"""
    entries: List[Entry] = Field(default_factory=list)


def classify_filename(filename: str) -> Optional[FileKind]:
    """Route a file by name; None means the file is not ours to import"""
    if RESULTS_FILENAME_RE.match(filename):
        return FileKind.SESSION_RESULTS
    if filename.endswith(ENTRY_LIST_SUFFIX):
        return FileKind.ENTRY_LIST
    return None


def player_id_to_driver_id(player_id: str) -> int:
    """
    Strip the 'S' prefix of a server player id ("S76561198000000000")

    Raises:
        InvalidIdentifier: prefix missing or the rest is not decimal digits
    """
    if not player_id.startswith(PLAYER_ID_PREFIX):
        raise InvalidIdentifier(f"Invalid player ID: {player_id!r}")
    digits = player_id[len(PLAYER_ID_PREFIX):]
    if not digits.isascii() or not digits.isdigit():
        raise InvalidIdentifier(f"Invalid player ID: {player_id!r}")
    return int(digits)


def filename_to_timestamp(filename: str, tz: Optional[tzinfo] = None) -> datetime:
    """
    Session start from the `YYMMDD_HHMMSS` file name prefix, as aware UTC

    The prefix is wall-clock time in `tz`, or in the system local zone when
    `tz` is None. A wall-clock time that occurs twice (DST fall-back)
    resolves to the earlier instant; one that never occurs (DST
    spring-forward gap) is rejected.

    Raises:
        TimestampParseError
    """
    token = filename[:TIMESTAMP_LENGTH]
    try:
        naive = datetime.strptime(token, TIMESTAMP_FORMAT)
    except ValueError as e:
        raise TimestampParseError(f"Failed to parse datetime from filename {filename!r}: {e}") from e

    # tz None keeps it naive: astimezone then applies the system zone rules
    local = naive.replace(tzinfo=tz, fold=0)
    as_utc = local.astimezone(timezone.utc)
    if as_utc.astimezone(tz).replace(tzinfo=None) != naive:
        raise TimestampParseError(f"{token} does not exist in time zone {tz or 'local'}")
    return as_utc


def parse_session_results(json_text: str) -> SessionResults:
    try:
        return SessionResults.model_validate_json(json_text)
    except ValidationError as e:
        raise MalformedJson(f"Not a session results document: {e}") from e


def parse_entry_list(json_text: str) -> EntryList:
    try:
        return EntryList.model_validate_json(json_text)
    except ValidationError as e:
        raise MalformedJson(f"Not an entry list document: {e}") from e


def read_result_file(path: Union[str, Path]) -> Union[SessionResults, EntryList]:
    """Read, normalize and parse a result or entry list file by its name"""
    path = Path(path)
    kind = classify_filename(path.name)
    if kind is None:
        raise ValueError(f"Not a result file: {path.name}")

    json_text = bytes_to_json_text(path.read_bytes())
    if kind is FileKind.SESSION_RESULTS:
        return parse_session_results(json_text)
    return parse_entry_list(json_text)
