"""Best-record value type and the two record store adapters.

Both stores are keyed per user: every read and write touches exactly one
user's record.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError

log = logging.getLogger(__name__)


# Bounds of the user_record columns
MAX_USER_ID_LENGTH = 64
MAX_RECORD_VALUE = 2 ** 31 - 1


class RecordStoreError(Exception):
    """A record store could not be read."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BestRecord:
    user_id: str
    best_score: int = 0
    best_streak: int = 0
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if self.best_score < 0 or self.best_streak < 0:
            raise ValueError('best_score and best_streak must be non-negative')

    def merge(self, score: int, streak: int, updated_at: Optional[datetime] = None) -> 'BestRecord':
        """Field-wise max-merge; never lowers a value."""
        return replace(
            self,
            best_score=max(self.best_score, int(score or 0)),
            best_streak=max(self.best_streak, int(streak or 0)),
            updated_at=updated_at or utcnow(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'best_score': self.best_score,
            'best_streak': self.best_streak,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BestRecord':
        stamp = data.get('updated_at')
        return cls(
            user_id=str(data['user_id']),
            best_score=int(data.get('best_score') or 0),
            best_streak=int(data.get('best_streak') or 0),
            updated_at=datetime.fromisoformat(stamp) if stamp else None,
        )


class RecordStore(Protocol):
    def get(self, user_id: str) -> Optional[BestRecord]: ...

    def put(self, user_id: str, record: BestRecord) -> bool: ...


class LeaderboardStore(RecordStore, Protocol):
    def top_by_score(self, n: int) -> List[Tuple[str, int]]: ...

    def top_by_streak(self, n: int) -> List[Tuple[str, int]]: ...


class LocalRecordCache:
    """Process-local record cache.

    With a ``directory`` each user's record is persisted as its own JSON
    file; without one the cache lives in memory only.
    """

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory
        self._records: Dict[str, BestRecord] = {}
        self._lock = threading.Lock()
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _path(self, user_id: str) -> str:
        return os.path.join(self.directory, quote(user_id, safe='') + '.json')

    def get(self, user_id: str) -> Optional[BestRecord]:
        with self._lock:
            record = self._records.get(user_id)
            if record is not None or not self.directory:
                return record
            path = self._path(user_id)
            if not os.path.exists(path):
                return None
            try:
                with open(path, encoding='utf-8') as fh:
                    record = BestRecord.from_dict(json.load(fh))
            except (OSError, ValueError, KeyError) as exc:
                raise RecordStoreError(f"local record for {user_id!r} unreadable: {exc}") from exc
            self._records[user_id] = record
            return record

    def put(self, user_id: str, record: BestRecord) -> bool:
        with self._lock:
            self._records[user_id] = record
            if not self.directory:
                return True
            tmp_path = self._path(user_id) + '.tmp'
            try:
                with open(tmp_path, 'w', encoding='utf-8') as fh:
                    json.dump(record.to_dict(), fh)
                os.replace(tmp_path, self._path(user_id))
            except OSError as exc:
                log.warning(f"[local-write-failed] user={user_id} error={exc}")
                return False
            return True


class SqlRecordStore:
    """Remote authoritative store backed by the ``user_record`` table.

    Must be used inside an application context.
    """

    def __init__(self, db):
        self.db = db

    def _row(self, user_id: str):
        from streakquiz.models import UserRecord
        return self.db.session.get(UserRecord, user_id)

    def get(self, user_id: str) -> Optional[BestRecord]:
        try:
            row = self._row(user_id)
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise RecordStoreError(f"remote read failed for {user_id!r}: {exc}") from exc
        if row is None:
            return None
        return BestRecord(
            user_id=row.user_id,
            best_score=row.best_score,
            best_streak=row.best_streak,
            updated_at=row.updated_at,
        )

    def put(self, user_id: str, record: BestRecord) -> bool:
        from streakquiz.models import UserRecord
        try:
            row = self._row(user_id)
            if row is None:
                row = UserRecord(user_id=user_id)
            row.best_score = record.best_score
            row.best_streak = record.best_streak
            row.updated_at = record.updated_at or utcnow()
            self.db.session.add(row)
            self.db.session.commit()
        except (SQLAlchemyError, OverflowError, ValueError) as exc:
            self.db.session.rollback()
            log.warning(f"[remote-write-failed] user={user_id} error={exc}")
            return False
        return True

    def _top(self, column, n: int) -> List[Tuple[str, int]]:
        from streakquiz.models import UserRecord
        try:
            rows = (
                UserRecord.query
                .order_by(column.desc(), UserRecord.user_id.asc())
                .limit(max(0, int(n)))
                .all()
            )
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise RecordStoreError(f"leaderboard query failed: {exc}") from exc
        return [(row.user_id, getattr(row, column.key)) for row in rows]

    def top_by_score(self, n: int) -> List[Tuple[str, int]]:
        from streakquiz.models import UserRecord
        return self._top(UserRecord.best_score, n)

    def top_by_streak(self, n: int) -> List[Tuple[str, int]]:
        from streakquiz.models import UserRecord
        return self._top(UserRecord.best_streak, n)
