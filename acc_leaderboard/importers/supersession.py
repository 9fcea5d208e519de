"""
Supersession Resolver

Servers re-export a running session every time it grows, each export with
a later timestamp in its file name. Importing them all naively would list
the same laps several times. Before a new session is stored, every older
generation of it whose laps are all contained in the new export is
deleted.

A lap is identified by its ordered tuple of sector times: row ids are not
stable across exports.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..database.models import SessionModel, LapModel, SplitModel
from .result_parser import SessionResults

logger = logging.getLogger(__name__)

Fingerprint = Tuple[int, ...]


def incoming_fingerprints(results: SessionResults) -> FrozenSet[Fingerprint]:
    return frozenset(tuple(lap.splits) for lap in results.laps if lap.splits)


class SupersessionResolver:
    """
    Deletes stored sessions made redundant by an incoming export

    Usage:
        resolver = SupersessionResolver()
        with db.get_session() as session:
            deleted_ids = resolver.resolve(session, results, timestamp)
            ...  # insert the new session in the same transaction
    """

    def find_previous_session(self,
                              session: Session,
                              results: SessionResults,
                              timestamp: datetime) -> Optional[SessionModel]:
        """Most recent stored session with the same identity key, strictly older"""
        return session.query(SessionModel)\
                      .filter(SessionModel.track == results.track_name,
                              SessionModel.session_type == results.session_type,
                              SessionModel.server_name == results.server_name,
                              SessionModel.wet == results.is_wet,
                              SessionModel.timestamp < timestamp)\
                      .order_by(SessionModel.timestamp.desc(), SessionModel.id.desc())\
                      .first()

    def stored_fingerprints(self, session: Session, session_id: int) -> FrozenSet[Fingerprint]:
        """Sector-time tuples of the laps of a stored session that have splits"""
        splits_by_lap: Dict[int, List[int]] = {}

        rows = session.query(SplitModel.lap_id, SplitModel.time_ms)\
                      .join(LapModel, SplitModel.lap_id == LapModel.id)\
                      .filter(LapModel.session_id == session_id)\
                      .order_by(SplitModel.lap_id, SplitModel.sector)
        for lap_id, time_ms in rows:
            splits_by_lap.setdefault(lap_id, []).append(time_ms)

        return frozenset(tuple(splits) for splits in splits_by_lap.values())

    def resolve(self,
                session: Session,
                results: SessionResults,
                timestamp: datetime) -> List[int]:
        """
        Walk back through older generations, deleting each one the incoming
        session fully contains

        Args:
            session: open ORM session of the import transaction
            results: parsed incoming session
            timestamp: incoming session start (naive UTC)

        Returns:
            ids of the deleted sessions, newest first
        """
        current = incoming_fingerprints(results)
        deleted = []

        previous = self.find_previous_session(session, results, timestamp)
        while previous is not None:
            if not self.stored_fingerprints(session, previous.id) <= current:
                logger.debug("[Supersession] Session %d has laps missing from the new export, keeping it",
                             previous.id)
                break

            logger.warning("[Supersession] Session is superset of previous session %d (%s %s), deleting previous",
                           previous.id, previous.track, previous.session_type)
            deleted.append(previous.id)
            session.delete(previous)
            session.flush()

            previous = self.find_previous_session(session, results, timestamp)

        return deleted
