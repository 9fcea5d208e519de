"""
Tests for the database manager
"""

import pytest
from sqlalchemy import inspect

from acc_leaderboard.database import (
    DriverModel,
    db_manager,
    get_db_session,
    initialize_database,
)
from acc_leaderboard.database.db_manager import DatabaseManager


class TestDatabaseManager:
    """Schema creation and the session context manager"""

    def test_creates_all_tables(self, db):
        tables = set(inspect(db.engine).get_table_names())
        assert tables == {'sessions', 'cars', 'drivers', 'laps', 'splits', 'known_files'}

    def test_composite_indices(self, db):
        inspector = inspect(db.engine)
        assert {'idx_sessions_identity'} <= {ix['name'] for ix in inspector.get_indexes('sessions')}
        assert {'idx_laps_session_driver'} <= {ix['name'] for ix in inspector.get_indexes('laps')}

    def test_several_databases_in_one_process(self, tmp_path):
        for i in range(3):
            manager = DatabaseManager()
            manager.initialize(f"sqlite:///{tmp_path / f'db{i}.db'}")
            assert manager.get_statistics()['sessions'] == 0
            manager.close()

    def test_reinitialize_after_close(self, tmp_path):
        manager = DatabaseManager()
        url = f"sqlite:///{tmp_path / 'again.db'}"
        manager.initialize(url)
        manager.close()
        manager.initialize(url)
        try:
            assert manager.is_initialized
            assert manager.get_statistics()['known_files'] == 0
        finally:
            manager.close()

    def test_foreign_keys_enabled(self, db):
        with db.engine.connect() as conn:
            assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1

    def test_commit_on_success(self, db):
        with db.get_session() as session:
            session.add(DriverModel(id=1, first_name='A', last_name='B', short_name='AB'))

        with db.get_session() as session:
            assert session.get(DriverModel, 1).short_name == 'AB'

    def test_rollback_on_error(self, db):
        with pytest.raises(RuntimeError):
            with db.get_session() as session:
                session.add(DriverModel(id=1, first_name='A', last_name='B', short_name='AB'))
                session.flush()
                raise RuntimeError("boom")

        assert db.get_statistics()['drivers'] == 0

    def test_uninitialized(self):
        manager = DatabaseManager()
        assert manager.get_statistics() == {}
        with pytest.raises(RuntimeError):
            with manager.get_session():
                pass


def test_global_manager(tmp_path):
    initialize_database(f"sqlite:///{tmp_path / 'nested' / 'global.db'}")
    try:
        assert db_manager.is_initialized
        with get_db_session() as session:
            session.add(DriverModel(id=7, first_name='G', last_name='L', short_name='GLO'))
        assert db_manager.get_statistics()['drivers'] == 1
    finally:
        db_manager.close()
    assert not db_manager.is_initialized
