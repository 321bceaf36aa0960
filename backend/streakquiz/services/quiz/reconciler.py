"""Merge run results into a user's best record across both stores.

The merge is a field-wise max, so applying the same (or a smaller) result
again never lowers anything and write order does not matter.

The remote read-then-write is not atomic: another device writing the same
user between our read and our write can be overwritten with a lower value.
The next reconciliation for that user restores the maximum, because the
local cache and every later run feed back into the merge.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .records import BestRecord, LeaderboardStore, RecordStore, RecordStoreError, utcnow

log = logging.getLogger(__name__)


class RecordReconciler:
    def __init__(self, local: RecordStore, remote: RecordStore, clock: Optional[Callable] = None):
        self.local = local
        self.remote = remote
        self.clock = clock or utcnow

    def _read(self, store: RecordStore, name: str, user_id: str):
        try:
            return store.get(user_id), True
        except RecordStoreError as exc:
            log.warning(f"[{name}-read-failed] user={user_id} error={exc}")
            return None, False

    def reconcile(self, user_id: str, run_score: int, run_best_streak: int) -> BestRecord:
        """Fold a finished run into the best record and write both stores.

        Store failures are logged and never raised. When the remote read
        fails the remote write is skipped, since a blind write could lower
        the remote value.
        """
        if not user_id:
            raise ValueError('user_id is required')
        now = self.clock()
        remote, remote_ok = self._read(self.remote, 'remote', user_id)
        local, _ = self._read(self.local, 'local', user_id)

        merged = BestRecord(user_id=user_id)
        for known in (remote, local):
            if known is not None:
                merged = merged.merge(known.best_score, known.best_streak, now)
        merged = merged.merge(run_score, run_best_streak, now)

        if remote_ok:
            if not self.remote.put(user_id, merged):
                log.warning(f"[remote-stale] user={user_id} best_score={merged.best_score} best_streak={merged.best_streak}")
        else:
            log.warning(f"[remote-stale] user={user_id} skipped write after failed read")

        if not self.local.put(user_id, merged):
            log.warning(f"[local-stale] user={user_id}")

        log.info(
            f"[reconciled] user={user_id} run_score={run_score} run_streak={run_best_streak} "
            f"best_score={merged.best_score} best_streak={merged.best_streak}"
        )
        return merged


def leaderboard(store: LeaderboardStore, limit: int) -> Dict[str, List[Dict[str, Any]]]:
    """Top users by best score and, separately, by best streak.

    Ties are broken by user id so the ordering is deterministic.
    """
    return {
        'by_score': [{'user_id': uid, 'best_score': value} for uid, value in store.top_by_score(limit)],
        'by_streak': [{'user_id': uid, 'best_streak': value} for uid, value in store.top_by_streak(limit)],
    }
