"""
ACC Result Database Layer
Provides persistent storage for ingested sessions, laps and sector splits.
"""

from .db_manager import DatabaseManager, db_manager, initialize_database, get_db_session
from .models import (
    Base,
    SessionModel,
    CarModel,
    DriverModel,
    LapModel,
    SplitModel,
    KnownFileModel
)

__all__ = [
    'DatabaseManager',
    'db_manager',
    'initialize_database',
    'get_db_session',
    'Base',
    'SessionModel',
    'CarModel',
    'DriverModel',
    'LapModel',
    'SplitModel',
    'KnownFileModel'
]

__version__ = '1.0.0'
