"""
Tests for file classification, identifiers, timestamps and document parsing
"""

import json
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from acc_leaderboard.errors import InvalidIdentifier, MalformedJson, TimestampParseError
from acc_leaderboard.importers.result_parser import (
    EntryList,
    FileKind,
    SessionResults,
    classify_filename,
    filename_to_timestamp,
    parse_entry_list,
    parse_session_results,
    player_id_to_driver_id,
    read_result_file,
)

from helpers import make_car, make_driver, make_entry_list, make_lap, make_results, write_result

AMSTERDAM = ZoneInfo('Europe/Amsterdam')


class TestClassifyFilename:

    @pytest.mark.parametrize('filename', [
        '231014_201502_R.json',
        '231014_201502_Q.json',
        '231014_201502_FP.json',
        '231014_201502_1Q.json',
    ])
    def test_session_results(self, filename):
        assert classify_filename(filename) is FileKind.SESSION_RESULTS

    def test_entry_list(self):
        assert classify_filename('entrylist.json') is FileKind.ENTRY_LIST

    @pytest.mark.parametrize('filename', [
        'settings.json',
        'event.json',
        '231014_201502_X.json',
        '231014_201502_R.json.tmp',
        '2310_201502_R.json',
    ])
    def test_not_ours(self, filename):
        assert classify_filename(filename) is None


class TestPlayerId:

    def test_strips_prefix(self):
        assert player_id_to_driver_id('S76561198000000001') == 76561198000000001

    @pytest.mark.parametrize('player_id', ['76561198000000001', 'S', 'S123a', 's123', 'S-12'])
    def test_rejects_malformed(self, player_id):
        with pytest.raises(InvalidIdentifier):
            player_id_to_driver_id(player_id)


class TestFilenameToTimestamp:

    def test_utc(self):
        assert filename_to_timestamp('231014_201502_R.json', timezone.utc) == \
            datetime(2023, 10, 14, 20, 15, 2, tzinfo=timezone.utc)

    def test_local_zone_converted_to_utc(self):
        assert filename_to_timestamp('230701_120000_Q.json', AMSTERDAM) == \
            datetime(2023, 7, 1, 10, 0, tzinfo=timezone.utc)

    def test_ambiguous_time_takes_earliest_instant(self):
        """02:30 happens twice on the night summer time ends"""
        assert filename_to_timestamp('231029_023000_R.json', AMSTERDAM) == \
            datetime(2023, 10, 29, 0, 30, tzinfo=timezone.utc)

    def test_nonexistent_time_rejected(self):
        """02:30 never happens on the night summer time starts"""
        with pytest.raises(TimestampParseError):
            filename_to_timestamp('230326_023000_R.json', AMSTERDAM)

    def test_unparseable(self):
        with pytest.raises(TimestampParseError):
            filename_to_timestamp('231399_201502_R.json', timezone.utc)


class TestParseSessionResults:

    def _document(self, **kwargs):
        car = make_car(1001, 7, [make_driver('S42', 'Lewis', 'Driver', 'DRI')],
                       car_model=30, ballast_kg=None)
        return make_results([car], [make_lap(1001, [30000, 40000, 50000])], **kwargs)

    def test_fields(self):
        results = parse_session_results(json.dumps(self._document(track='spa', wet=True)))

        assert isinstance(results, SessionResults)
        assert results.track_name == 'spa'
        assert results.session_type == 'R'
        assert results.is_wet is True
        assert results.identity_key == ('spa', 'R', 'Test Server', True)

        car = results.session_result.leader_board_lines[0].car
        assert car.race_number == 7
        assert car.car_model == 30
        assert car.ballast_kg is None
        assert car.drivers[0].driver_id == 42

        lap = results.laps[0]
        assert lap.laptime == 120000
        assert lap.is_valid_for_best is True
        assert lap.splits == [30000, 40000, 50000]

    def test_unknown_fields_ignored(self):
        document = self._document()
        document['someFutureField'] = {'x': 1}
        assert parse_session_results(json.dumps(document)).track_name == 'monza'

    def test_missing_required_field(self):
        document = self._document()
        del document['trackName']
        with pytest.raises(MalformedJson):
            parse_session_results(json.dumps(document))

    def test_wrong_shape(self):
        with pytest.raises(MalformedJson):
            parse_session_results('[1, 2, 3]')


class TestParseEntryList:

    def test_fields(self):
        driver = make_driver('S77', 'Ayrton', 'Example', 'EXA')
        driver['playerID'] = driver.pop('playerId')
        driver['nickName'] = 'Magic'
        driver['nationality'] = 17

        entry_list = parse_entry_list(json.dumps(make_entry_list([driver])))

        assert isinstance(entry_list, EntryList)
        parsed = entry_list.entries[0].drivers[0]
        assert parsed.driver_id == 77
        assert parsed.nick_name == 'Magic'
        assert parsed.nationality == 17

    def test_optional_fields_absent(self):
        driver = {'firstName': 'A', 'lastName': 'B', 'shortName': 'AB', 'playerID': 'S5'}
        parsed = parse_entry_list(json.dumps(make_entry_list([driver]))).entries[0].drivers[0]
        assert parsed.nick_name is None
        assert parsed.nationality is None


def test_read_result_file(tmp_path):
    document = make_results([make_car(1, 1, [make_driver()])], [make_lap(1, [1000, 2000])])
    path = write_result(tmp_path, '231014_201502_R.json', document)

    results = read_result_file(path)

    assert isinstance(results, SessionResults)
    assert len(results.laps) == 1
