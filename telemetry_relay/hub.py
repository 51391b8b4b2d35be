# telemetry_relay/hub.py
import asyncio
import json
import logging
from typing import Any, Dict, Optional

from telemetry_relay import metrics
from telemetry_relay.envelope import Envelope
from telemetry_relay.registry import Observer, ObserverRegistry
from telemetry_relay.utils import utc_now_iso

log = logging.getLogger(__name__)

MESSAGE_SYSTEM = "SYSTEM"
MESSAGE_TELEMETRY = "TELEMETRY"


def system_message(text: str, timestamp: Optional[str] = None) -> Dict[str, Any]:
    return {"type": MESSAGE_SYSTEM, "message": text, "timestamp": timestamp or utc_now_iso()}


def telemetry_message(envelope: Envelope) -> Dict[str, Any]:
    return {"type": MESSAGE_TELEMETRY, "payload": envelope.to_dict()}


def encode(message: Dict[str, Any]) -> str:
    # strict JSON only: dashboards decode frames with JSON.parse
    return json.dumps(message, default=str, allow_nan=False)


class BroadcastHub:
    def __init__(self, registry: ObserverRegistry, send_timeout: Optional[float] = None):
        self.registry = registry
        # None or 0 => wait as long as the transport does
        self.send_timeout = send_timeout or None

    async def broadcast(self, envelope: Envelope) -> int:
        """
        Send one TELEMETRY message to every live observer.
        Best-effort: an observer whose send fails is closed and dropped from the
        registry, the rest still get the message. Returns how many sends succeeded.
        """
        text = encode(telemetry_message(envelope))
        delivered = 0

        async def deliver(observer: Observer):
            nonlocal delivered
            try:
                await self._send(observer, text)
            except Exception as exc:
                await self._drop(observer, exc)
            else:
                delivered += 1

        attempted = await self.registry.for_each_live(deliver, concurrent=True)
        metrics.increment("broadcasts")
        metrics.increment("messages_delivered", delivered)
        log.debug("broadcast from %s: %d/%d delivered", envelope.agent_id, delivered, attempted)
        return delivered

    async def _send(self, observer: Observer, text: str):
        if self.send_timeout is None:
            await observer.send_text(text)
        else:
            await asyncio.wait_for(observer.send_text(text), timeout=self.send_timeout)

    async def _drop(self, observer: Observer, exc: BaseException):
        metrics.increment("delivery_failures")
        log.warning("delivery to %r failed (%s: %s); removing observer", observer, type(exc).__name__, exc)
        observer.mark_closed()
        if self.registry.unregister(observer):
            metrics.increment("observers_disconnected")
        await observer.close(code=1011)
