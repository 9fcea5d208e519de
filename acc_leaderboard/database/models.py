"""
SQLAlchemy ORM Models for ACC Result Storage

Defines 6 tables for storing ingested server results:
1. sessions - One row per ingested result file
2. cars - Leaderboard car entries of a session
3. drivers - Global driver identities (upserted)
4. laps - Lap-by-lap data
5. splits - Sector times of a lap
6. known_files - Files whose import fully committed

Schema Version: 1.0
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Boolean, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class SessionModel(Base):
    """
    Session metadata - Top-level entity for each ingested result file

    Tracks:
    - Track and session type (P/Q/R)
    - Server name and wet flag (with track and type: the supersession key)
    - Start timestamp (naive UTC, from the file name)

    Relationships:
    - One-to-many with cars and laps (deleted with the session)
    """
    __tablename__ = 'sessions'
    __table_args__ = (
        # supersession lookup: same identity key, latest earlier timestamp
        Index('idx_sessions_identity', 'track', 'session_type', 'server_name', 'wet', 'timestamp'),
    )

    # Primary Key
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Session Identification
    track = Column(String(100), nullable=False, index=True)
    session_type = Column(String(10), nullable=False)  # P/Q/R
    timestamp = Column(DateTime, nullable=False, index=True)  # UTC
    server_name = Column(String(255), nullable=False)
    wet = Column(Boolean, nullable=False, default=False)

    # Relationships
    cars = relationship("CarModel", back_populates="session", cascade="all, delete-orphan")
    laps = relationship("LapModel", back_populates="session", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Session(id={self.id}, track='{self.track}', type='{self.session_type}', date='{self.timestamp}')>"


class CarModel(Base):
    """
    Car entry of a session leaderboard

    Identity within a session is the race number.
    """
    __tablename__ = 'cars'
    __table_args__ = (
        UniqueConstraint('session_id', 'race_number', name='uq_cars_session_race_number'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Integer, ForeignKey('sessions.id', ondelete='CASCADE'), nullable=False, index=True)

    race_number = Column(Integer, nullable=False)
    model = Column(Integer, nullable=False)  # car model id, see lookups.CAR_MODEL_ID_TO_NAME
    cup_category = Column(Integer)
    car_group = Column(String(20))  # GT3/GT4/GT2/CUP/ST/CHL/TCX
    team_name = Column(String(255))
    ballast_kg = Column(Integer)

    session = relationship("SessionModel", back_populates="cars")
    laps = relationship("LapModel", back_populates="car")

    def __repr__(self):
        return f"<Car(#{self.race_number}, model={self.model}, session={self.session_id})>"


class DriverModel(Base):
    """
    Driver identity - global across sessions

    The primary key is the numeric part of the server's player id
    ("S76561198000000000" -> 76561198000000000). Name and nationality
    fields are refreshed whenever the driver shows up in a new file.
    """
    __tablename__ = 'drivers'

    id = Column(Integer, primary_key=True, autoincrement=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    short_name = Column(String(10))
    nickname = Column(String(100))
    nationality = Column(Integer)  # see lookups.NATIONALITY_TO_COUNTRY

    laps = relationship("LapModel", back_populates="driver")

    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.first_name} {self.last_name}')>"


class LapModel(Base):
    """
    One completed lap of one driver in one car

    Granularity: One record per driver per lap
    """
    __tablename__ = 'laps'
    __table_args__ = (
        Index('idx_laps_session_driver', 'session_id', 'driver_id'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Foreign Keys
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey('sessions.id', ondelete='CASCADE'), nullable=False, index=True)
    car_id = Column(Integer, ForeignKey('cars.id', ondelete='CASCADE'), nullable=False)

    time_ms = Column(Integer, nullable=False)
    valid = Column(Boolean, nullable=False, default=True)  # isValidForBest

    # Relationships
    session = relationship("SessionModel", back_populates="laps")
    car = relationship("CarModel", back_populates="laps")
    driver = relationship("DriverModel", back_populates="laps")
    splits = relationship("SplitModel", back_populates="lap", cascade="all, delete-orphan",
                          order_by="SplitModel.sector")

    def __repr__(self):
        return f"<Lap(driver={self.driver_id}, time={self.time_ms}ms, valid={self.valid})>"


class SplitModel(Base):
    """Sector time of a lap (sector is 1-based and contiguous)"""
    __tablename__ = 'splits'
    __table_args__ = (
        UniqueConstraint('lap_id', 'sector', name='uq_splits_lap_sector'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    lap_id = Column(Integer, ForeignKey('laps.id', ondelete='CASCADE'), nullable=False, index=True)
    sector = Column(Integer, nullable=False)
    time_ms = Column(Integer, nullable=False)

    lap = relationship("LapModel", back_populates="splits")

    def __repr__(self):
        return f"<Split(lap={self.lap_id}, sector={self.sector}, time={self.time_ms}ms)>"


class KnownFileModel(Base):
    """Idempotency marker, written last in a file's import transaction"""
    __tablename__ = 'known_files'

    path = Column(String(512), primary_key=True)

    def __repr__(self):
        return f"<KnownFile('{self.path}')>"


# === Database Schema Version ===
SCHEMA_VERSION = "1.0"
