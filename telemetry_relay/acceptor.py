# telemetry_relay/acceptor.py
import logging
from typing import Any, Optional

from telemetry_relay import metrics
from telemetry_relay.hub import encode, system_message
from telemetry_relay.registry import Observer, ObserverRegistry

log = logging.getLogger(__name__)

DEFAULT_GREETING = "Connected to Mission Control Backend"


class ConnectionAcceptor:
    def __init__(self, registry: ObserverRegistry, greeting: str = DEFAULT_GREETING):
        self.registry = registry
        self.greeting = greeting

    async def on_connect(self, connection: Any) -> Optional[Observer]:
        """
        Complete the handshake, register the connection and greet it.
        Returns the registered Observer, or None if the greeting could not be sent.
        """
        accept = getattr(connection, "accept", None)
        if accept is not None:
            await accept()

        observer = Observer(connection)
        # hold the send lock across register + greeting so no TELEMETRY can overtake it
        async with observer.lock:
            self.registry.register(observer)
            metrics.increment("observers_connected")
            try:
                await observer.send_locked(encode(system_message(self.greeting)))
            except Exception as exc:
                log.warning("greeting to %r failed: %s", observer, exc)
                greeted = False
            else:
                greeted = True

        if not greeted:
            self._release(observer)
            await observer.close(code=1011)
            return None

        log.info("Client connected to Mission Control (%d registered)", len(self.registry))
        return observer

    def on_close(self, observer: Observer) -> None:
        if self._release(observer):
            log.info("Client disconnected (%d registered)", len(self.registry))

    def on_error(self, observer: Observer, exc: BaseException) -> None:
        log.error("WebSocket error on %r: %s", observer, exc)
        self._release(observer)

    def _release(self, observer: Observer) -> bool:
        # safe after the hub already dropped this observer
        observer.mark_closed()
        removed = self.registry.unregister(observer)
        if removed:
            metrics.increment("observers_disconnected")
        return removed

    async def shutdown(self) -> int:
        closed = await self.registry.close_all(code=1001)
        if closed:
            metrics.increment("observers_disconnected", closed)
        return closed
