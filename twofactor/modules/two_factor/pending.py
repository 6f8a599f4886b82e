from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from twofactor.core.utils.time import Clock, system_clock

DEFAULT_PENDING_SETUP_TTL_SECONDS = 10 * 60


@dataclass(frozen=True, slots=True)
class PendingSetup:
    user_id: str
    secret: str
    backup_codes: tuple[str, ...]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class PendingSetupStore:
    """In-process holding area for enrollments that have not been confirmed yet.

    Entries live for ``ttl_seconds`` and are dropped lazily on read and
    proactively by :meth:`purge_expired`. Nothing here survives a restart; a
    user whose setup is lost simply starts over.
    """

    def __init__(self, *, ttl_seconds: int = DEFAULT_PENDING_SETUP_TTL_SECONDS, clock: Clock = system_clock) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, PendingSetup] = {}
        self._lock = Lock()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def put(self, user_id: str, secret: str, backup_codes: list[str] | tuple[str, ...]) -> PendingSetup:
        entry = PendingSetup(
            user_id=user_id,
            secret=secret,
            backup_codes=tuple(backup_codes),
            expires_at=self._clock() + self._ttl_seconds,
        )
        with self._lock:
            self._entries[user_id] = entry
        return entry

    def get(self, user_id: str) -> PendingSetup | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is None:
                return None
            if entry.is_expired(now):
                del self._entries[user_id]
                return None
            return entry

    def remove(self, user_id: str, *, entry: PendingSetup | None = None) -> bool:
        """Drop the pending setup for ``user_id``.

        With ``entry`` given, only that exact entry is dropped, so a setup that
        replaced it in the meantime is left alone.
        """
        with self._lock:
            current = self._entries.get(user_id)
            if current is None:
                return False
            if entry is not None and current is not entry:
                return False
            del self._entries[user_id]
            return True

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [user_id for user_id, entry in self._entries.items() if entry.is_expired(now)]
            for user_id in expired:
                del self._entries[user_id]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
