"""
Shared fixtures: a fresh SQLite database per test and an importer on it
"""

from datetime import timezone

import pytest

from acc_leaderboard.database.db_manager import DatabaseManager
from acc_leaderboard.importers import ResultImporter


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager()
    manager.initialize(f"sqlite:///{tmp_path / 'results.db'}")
    yield manager
    manager.close()


@pytest.fixture
def importer(db):
    return ResultImporter(db=db, tz=timezone.utc)


@pytest.fixture
def results_dir(tmp_path):
    directory = tmp_path / 'results'
    directory.mkdir()
    return directory
