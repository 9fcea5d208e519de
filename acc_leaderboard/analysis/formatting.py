"""
Display helpers shared by the leaderboard and the driver lap history.

Usage:
    format_duration(83456)             # '1:23.456'
    track_display_name('monza_2019')   # 'Monza 2019'
    flag_for_nationality(2)            # ('de', 'Germany')
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..lookups import (
    CAR_MODEL_ID_TO_NAME,
    NATIONALITY_TO_COUNTRY,
    NATIONALITY_TO_ISO,
    SESSION_TYPE_NAMES,
)

PURPLE = 'purple'  # best on the track
GREEN = 'green'    # driver's own best

UNKNOWN_FLAG = ('xx', 'Unknown')


@dataclass
class TimeWithClass:
    """A time in ms with its highlight class ('', 'green' or 'purple')"""
    time_ms: int
    css_class: str = ''

    @property
    def formatted(self) -> str:
        return format_duration(self.time_ms)


def highlight(time_ms: int, track_best: Optional[int], personal_best: Optional[int]) -> str:
    """Purple beats green; no class when neither best is matched"""
    if track_best is not None and time_ms == track_best:
        return PURPLE
    if personal_best is not None and time_ms == personal_best:
        return GREEN
    return ''


def highlight_splits(splits: List[int],
                     track_best: List[int],
                     personal_best: List[int]) -> List[TimeWithClass]:
    """Highlight sector times position by position; missing bests leave no class"""
    return [
        TimeWithClass(t, highlight(t, _at(track_best, i), _at(personal_best, i)))
        for i, t in enumerate(splits)
    ]


def _at(values: List[int], index: int) -> Optional[int]:
    return values[index] if index < len(values) else None


def format_duration(ms: int) -> str:
    """'S.mmm' under a minute, 'M:SS.mmm' from a minute up"""
    seconds, milliseconds = divmod(int(ms), 1000)
    minutes, seconds = divmod(seconds, 60)
    if minutes == 0:
        return f"{seconds}.{milliseconds:03d}"
    return f"{minutes}:{seconds:02d}.{milliseconds:03d}"


def track_display_name(track: str) -> str:
    words = track.replace('_', ' ').split()
    return ' '.join(word[:1].upper() + word[1:] for word in words)


def session_type_name(session_type: str) -> str:
    return SESSION_TYPE_NAMES.get(session_type, session_type)


def car_model_name(model_id: Optional[int]) -> str:
    return CAR_MODEL_ID_TO_NAME.get(model_id, 'Unknown')


def flag_for_nationality(nationality: Optional[int]) -> Tuple[str, str]:
    """(ISO flag code, country name) for a server nationality id"""
    if nationality is None or nationality not in NATIONALITY_TO_ISO:
        return UNKNOWN_FLAG
    return NATIONALITY_TO_ISO[nationality], NATIONALITY_TO_COUNTRY.get(nationality, 'Unknown')


def driver_display_name(first_name: str, last_name: str, short_name: str) -> str:
    return f"{first_name} {last_name} ({short_name})"
