"""
Attendance ledger.

Tracks, per Discord user, when they last attended a session, how many
sessions they have attended, and the attendance times inside the fairness
period. Selection records chosen users here after each finalize. The ledger
can also stand in as a fairness provider when Hyra is not configured: the
score is the number of sessions attended within the period (a rolling week
by default, mirroring Hyra's weekly counts).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from shared.logging.logger import get_logger
from shared.storage.state_publisher import StatePublisher

log = get_logger("shared.attendance_store")

DEFAULT_PERIOD = timedelta(days=7)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _stamp(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _parse_stamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class AttendanceStore:
    def __init__(
        self,
        path: Optional[Path | str] = None,
        *,
        period: timedelta = DEFAULT_PERIOD,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._publisher: Optional[StatePublisher] = None
        self._name: Optional[str] = None
        if path:
            path = Path(path)
            self._publisher = StatePublisher(base_dir=path.parent)
            self._name = path.name

        self._period = period
        self._clock = clock
        self._users: Dict[str, Dict[str, Any]] = {}

    # ------------------------------------------------------------------

    def load(self) -> None:
        """
        Load the ledger from disk. Missing or malformed files start empty.
        """
        if not self._publisher:
            return

        raw = self._publisher.load(self._name)
        users = raw.get("users") if isinstance(raw, dict) else None
        if not isinstance(users, dict):
            self._users = {}
            return

        self._users = {
            str(user_id): dict(entry)
            for user_id, entry in users.items()
            if isinstance(entry, dict)
        }
        log.info(f"Attendance ledger loaded ({len(self._users)} users)")

    def save(self) -> None:
        if not self._publisher:
            return
        self._publisher.publish(self._name, {"users": self._users})

    # ------------------------------------------------------------------

    def _recent(self, entry: Mapping[str, Any], since: datetime) -> List[datetime]:
        stamps = entry.get("recent")
        if not isinstance(stamps, list):
            return []
        parsed = (_parse_stamp(s) for s in stamps)
        return [s for s in parsed if s is not None and s > since]

    def record_attendance(
        self,
        user_ids: Iterable[str],
        meta: Optional[Mapping[str, Any]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Bump attended count and last-attended time for each user.

        Attendance times older than the fairness period are pruned.
        Returns the number of users recorded.
        """
        now = now or self._clock()
        stamp = _stamp(now)
        since = now - self._period
        recorded = 0

        for user_id in user_ids:
            if not user_id:
                continue
            entry = self._users.setdefault(str(user_id), {})
            entry["last_attended_at"] = stamp
            entry["attended_count"] = int(entry.get("attended_count", 0)) + 1
            entry["last_session"] = dict(meta or {})
            recent = self._recent(entry, since)
            entry["recent"] = [_stamp(s) for s in recent] + [stamp]
            recorded += 1

        if recorded:
            self.save()

        return recorded

    def get_attended_count(self, user_id) -> int:
        entry = self._users.get(str(user_id))
        return int(entry.get("attended_count", 0)) if entry else 0

    def get_last_attended_at(self, user_id) -> Optional[str]:
        entry = self._users.get(str(user_id))
        return entry.get("last_attended_at") if entry else None

    def get_period_count(self, user_id) -> int:
        entry = self._users.get(str(user_id))
        if not entry:
            return 0
        return len(self._recent(entry, self._clock() - self._period))

    # ------------------------------------------------------------------
    # FAIRNESS PROVIDER (LOCAL FALLBACK)
    # ------------------------------------------------------------------

    async def fetch_fairness_scores(self) -> Dict[str, int]:
        since = self._clock() - self._period
        return {
            user_id: len(self._recent(entry, since))
            for user_id, entry in self._users.items()
        }
