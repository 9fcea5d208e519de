"""
Tests for the polling directory watcher
"""

import time

import pytest

from acc_leaderboard.importers import DirectoryWatcher

from helpers import single_driver_results, write_result


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def watcher(importer, results_dir, clock):
    return DirectoryWatcher(results_dir, importer, poll_interval=0.01, debounce=1.0, clock=clock)


class TestPoll:

    def test_file_imported_once_stable(self, db, watcher, results_dir, clock):
        write_result(results_dir, '231014_200000_R.json', single_driver_results([[1000, 2000]]))

        assert watcher.poll() == []
        clock.now = 0.5
        assert watcher.poll() == []
        assert db.get_statistics()['sessions'] == 0

        clock.now = 1.0
        assert watcher.poll() == ['231014_200000_R.json']
        assert db.get_statistics()['sessions'] == 1

        clock.now = 5.0
        assert watcher.poll() == []

    def test_change_restarts_debounce(self, db, watcher, results_dir, clock):
        write_result(results_dir, '231014_200000_R.json', single_driver_results([[1000, 2000]]))
        watcher.poll()

        clock.now = 0.8
        write_result(results_dir, '231014_200000_R.json', single_driver_results([[1000, 2000], [1100, 2100]]))
        assert watcher.poll() == []

        clock.now = 1.5
        assert watcher.poll() == []

        clock.now = 1.9
        assert watcher.poll() == ['231014_200000_R.json']
        assert db.get_statistics()['laps'] == 2

    def test_ready_files_in_name_order(self, db, watcher, results_dir, clock):
        write_result(results_dir, '231014_201000_R.json', single_driver_results([[1000, 2000], [1100, 2100]]))
        write_result(results_dir, '231014_200000_R.json', single_driver_results([[1000, 2000]]))
        watcher.poll()

        clock.now = 2.0
        assert watcher.poll() == ['231014_200000_R.json', '231014_201000_R.json']
        # the older generation was imported first and then superseded
        assert db.get_statistics()['sessions'] == 1

    def test_unrelated_files_ignored(self, watcher, results_dir, clock):
        (results_dir / 'notes.txt').write_text('hello')
        watcher.poll()

        clock.now = 2.0
        assert watcher.poll() == []

    def test_scan_once_marks_existing_files(self, db, watcher, results_dir, clock):
        write_result(results_dir, '231014_200000_R.json', single_driver_results([[1000, 2000]]))

        summary = watcher.scan_once()

        assert summary.imported == ['231014_200000_R.json']
        watcher.poll()
        clock.now = 2.0
        assert watcher.poll() == []

    def test_missing_directory_polls_empty(self, importer, tmp_path, clock):
        watcher = DirectoryWatcher(tmp_path / 'later', importer, debounce=0, clock=clock)
        assert watcher.poll() == []


class TestBackgroundThread:

    def test_start_and_stop(self, db, importer, results_dir):
        watcher = DirectoryWatcher(results_dir, importer, poll_interval=0.01, debounce=0)
        watcher.start()
        try:
            write_result(results_dir, '231014_200000_R.json', single_driver_results([[1000, 2000]]))

            deadline = time.monotonic() + 10
            while db.get_statistics()['known_files'] == 0 and time.monotonic() < deadline:
                time.sleep(0.05)
        finally:
            watcher.stop()

        assert db.get_statistics()['sessions'] == 1
        assert watcher.running is False
        assert not watcher.worker_thread.is_alive()
