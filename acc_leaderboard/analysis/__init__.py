"""
ACC Leaderboard Analysis Module

Read side over the stored results.

Analytics Modules:
- LeaderboardAggregator: per-track fastest laps, optimal laps, gaps, sector highlighting
- DriverLapHistory: every lap of one driver, grouped per track

Usage:
    from acc_leaderboard.analysis import LeaderboardAggregator, DriverLapHistory

    boards = LeaderboardAggregator().get_leaderboard()
    history = DriverLapHistory().get_driver_laps(76561198000000000)
"""

from .formatting import (
    TimeWithClass,
    format_duration,
    track_display_name,
    session_type_name,
    car_model_name,
    flag_for_nationality,
)
from .leaderboard import LeaderboardAggregator, TrackLeaderboard, LeaderboardRow
from .driver_laps import DriverLapHistory, DriverHistory, TrackLaps, DriverLap

__all__ = [
    'TimeWithClass',
    'format_duration',
    'track_display_name',
    'session_type_name',
    'car_model_name',
    'flag_for_nationality',
    'LeaderboardAggregator',
    'TrackLeaderboard',
    'LeaderboardRow',
    'DriverLapHistory',
    'DriverHistory',
    'TrackLaps',
    'DriverLap',
]
