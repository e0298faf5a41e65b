from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Dict, Optional

from models.schemas import Profession, SessionContext
from settings import SETTINGS


class SessionStore(ABC):
    @abstractmethod
    async def get_or_create(self, key: str) -> SessionContext:
        raise NotImplementedError

    @abstractmethod
    async def get(self, key: str) -> Optional[SessionContext]:
        raise NotImplementedError

    @abstractmethod
    async def merge_facts(
        self,
        key: str,
        profession: Profession | str | None = None,
        region: str | None = None,
    ) -> SessionContext:
        """Overwrite only the fields given a non-null value; never clears a known fact."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Process-local session map bounded by a TTL and a least-recently-used cap."""

    def __init__(
        self,
        ttl_seconds: int | None = None,
        max_entries: int | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self.ttl_seconds = SETTINGS.session_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.max_entries = SETTINGS.session_max_entries if max_entries is None else max_entries
        self._clock = clock
        self._sessions: "OrderedDict[str, SessionContext]" = OrderedDict()
        self._touch: Dict[str, datetime] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _expire_if_needed(self, key: str) -> None:
        last_touch = self._touch.get(key)
        if last_touch and self.ttl_seconds > 0 and self._clock() - last_touch > timedelta(seconds=self.ttl_seconds):
            self._sessions.pop(key, None)
            self._touch.pop(key, None)

    def _mark_used(self, key: str) -> None:
        self._sessions.move_to_end(key)
        self._touch[key] = self._clock()

    def _evict_overflow(self) -> None:
        while self.max_entries > 0 and len(self._sessions) > self.max_entries:
            oldest, _ = self._sessions.popitem(last=False)
            self._touch.pop(oldest, None)

    def _get_or_create_locked(self, key: str) -> SessionContext:
        self._expire_if_needed(key)
        if key not in self._sessions:
            self._sessions[key] = SessionContext(session_key=key)
        self._mark_used(key)
        self._evict_overflow()
        return self._sessions[key]

    async def get_or_create(self, key: str) -> SessionContext:
        with self._lock:
            return self._get_or_create_locked(key)

    async def get(self, key: str) -> Optional[SessionContext]:
        with self._lock:
            self._expire_if_needed(key)
            ctx = self._sessions.get(key)
            if ctx is not None:
                self._mark_used(key)
            return ctx

    async def merge_facts(
        self,
        key: str,
        profession: Profession | str | None = None,
        region: str | None = None,
    ) -> SessionContext:
        with self._lock:
            ctx = self._get_or_create_locked(key)
            changed = False
            if profession is not None:
                ctx.profession = Profession(profession)
                changed = True
            if region:
                ctx.region = region.upper()
                changed = True
            if changed:
                ctx.updated_at = self._clock()
            return ctx

    async def delete(self, key: str) -> None:
        with self._lock:
            self._sessions.pop(key, None)
            self._touch.pop(key, None)
