"""
Live set of connected dashboard observers.

An Observer wraps one push connection (any object with async ``send_text``
and ``close``; in production a FastAPI WebSocket). The ObserverRegistry owns
the authoritative membership; other components only hold observers for the
duration of a single broadcast.
"""
import asyncio
import enum
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, List, Union

log = logging.getLogger(__name__)


class ObserverState(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class Observer:
    def __init__(self, connection: Any):
        self.connection = connection
        self.state = ObserverState.OPEN
        # single writer per outbound stream
        self.lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"<Observer {id(self.connection):#x} {self.state.value}>"

    @property
    def is_open(self) -> bool:
        return self.state is ObserverState.OPEN

    def mark_closed(self) -> None:
        # terminal: there is no way back to OPEN
        self.state = ObserverState.CLOSED

    async def send_text(self, text: str) -> None:
        async with self.lock:
            await self.send_locked(text)

    async def send_locked(self, text: str) -> None:
        """Send while the caller already holds ``self.lock``."""
        if not self.is_open:
            raise ConnectionError("observer is closed")
        await self.connection.send_text(text)

    async def close(self, code: int = 1000) -> None:
        self.mark_closed()
        try:
            await self.connection.close(code=code)
        except Exception:
            # transport may already be gone
            log.debug("close failed for %r", self, exc_info=True)


class ObserverRegistry:
    def __init__(self):
        self._observers: Dict[int, Observer] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(observer: Observer) -> int:
        return id(observer.connection)

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)

    def __contains__(self, observer: Observer) -> bool:
        with self._lock:
            return self._observers.get(self._key(observer)) is observer

    def register(self, observer: Observer) -> bool:
        """Add an observer. Returns False if its connection is already registered."""
        with self._lock:
            key = self._key(observer)
            if key in self._observers:
                return False
            self._observers[key] = observer
            return True

    def unregister(self, observer: Observer) -> bool:
        """Remove an observer whatever its state. Returns False if it was not registered."""
        with self._lock:
            key = self._key(observer)
            if self._observers.get(key) is not observer:
                return False
            del self._observers[key]
            return True

    def live(self) -> List[Observer]:
        """Snapshot of the currently OPEN observers."""
        with self._lock:
            return [o for o in self._observers.values() if o.is_open]

    async def for_each_live(self, fn: Callable[[Observer], Union[None, Awaitable[None]]],
                            concurrent: bool = False) -> int:
        """
        Call ``fn`` once per live observer, awaiting it if it returns a coroutine.
        Iterates a snapshot, so membership may change while ``fn`` runs; observers
        closed in the meantime are skipped. With ``concurrent`` the coroutines are
        gathered instead of awaited one by one, so ``fn`` must not raise.
        Returns the number of visits.
        """
        visited = 0
        pending = []
        for observer in self.live():
            if not observer.is_open:
                continue
            visited += 1
            result = fn(observer)
            if not asyncio.iscoroutine(result):
                continue
            if concurrent:
                pending.append(result)
            else:
                await result
        if pending:
            await asyncio.gather(*pending)
        return visited

    async def close_all(self, code: int = 1001) -> int:
        with self._lock:
            observers = list(self._observers.values())
            self._observers.clear()
        for observer in observers:
            await observer.close(code=code)
        if observers:
            log.info("closed %d observer(s)", len(observers))
        return len(observers)
