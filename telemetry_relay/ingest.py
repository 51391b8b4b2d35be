"""
Ingest endpoint: raw agent submission -> normalized envelope -> broadcast.

handle_ingest never raises for bad input; it returns an ErrorResult the HTTP
layer turns into a 400. Only successful submissions reach the hub.
"""
import enum
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Union

from telemetry_relay import metrics, state
from telemetry_relay.envelope import ValidationError, normalize
from telemetry_relay.hub import BroadcastHub

log = logging.getLogger(__name__)

INVALID_JSON = "Invalid JSON"
INVALID_SCHEMA = "Invalid schema: agentId and status are required."

# deeper bodies are refused before the normalizer copies them
MAX_DEPTH = 64


def _reject_constant(name: str):
    # NaN / Infinity / -Infinity are not JSON; browsers' JSON.parse refuses them
    raise ValueError(f"non-standard JSON constant {name}")


def _finite_float(text: str) -> float:
    # 1e400 would otherwise decode to inf and poison the outbound frame
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number out of range: {text}")
    return value


def _depth(value: Any) -> int:
    deepest = 0
    stack = [(value, 1)]
    while stack:
        node, level = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        deepest = max(deepest, level)
        stack.extend((child, level + 1) for child in children)
    return deepest


def parse_body(raw_body: Union[bytes, str]) -> Any:
    """Decode a strict-JSON body; raises ValueError for anything a browser would not parse."""
    if isinstance(raw_body, (bytes, bytearray)):
        raw_body = raw_body.decode("utf-8")
    record = json.loads(raw_body, parse_constant=_reject_constant, parse_float=_finite_float)
    if _depth(record) > MAX_DEPTH:
        raise ValueError(f"body nested deeper than {MAX_DEPTH} levels")
    return record


class ErrorKind(str, enum.Enum):
    MALFORMED_PAYLOAD = "MalformedPayload"
    SCHEMA_VIOLATION = "SchemaViolation"


@dataclass(frozen=True)
class AckResult:
    delivered_count: int
    status_code: int = 200

    def to_dict(self) -> Dict[str, Any]:
        return {"status": "ok", "broadcast_count": self.delivered_count}


@dataclass(frozen=True)
class ErrorResult:
    kind: ErrorKind
    detail: str = ""
    status_code: int = 400

    @property
    def message(self) -> str:
        return INVALID_JSON if self.kind is ErrorKind.MALFORMED_PAYLOAD else INVALID_SCHEMA

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


IngestResult = Union[AckResult, ErrorResult]


class IngestEndpoint:
    def __init__(self, hub: BroadcastHub):
        self.hub = hub

    async def handle_ingest(self, raw_body: Union[bytes, str]) -> IngestResult:
        metrics.increment("telemetry_received")
        try:
            record = parse_body(raw_body)
        except (ValueError, RecursionError) as exc:
            metrics.increment("telemetry_rejected")
            log.warning("rejected telemetry: unparseable body (%s)", exc)
            return ErrorResult(ErrorKind.MALFORMED_PAYLOAD, detail=str(exc))

        try:
            envelope = normalize(record)
        except ValidationError as exc:
            metrics.increment("telemetry_rejected")
            log.warning("rejected telemetry: %s", exc.detail)
            return ErrorResult(ErrorKind.SCHEMA_VIOLATION, detail=exc.detail)

        delivered = await self.hub.broadcast(envelope)
        state.update_last_seen(envelope.agent_id, envelope.status, envelope.timestamp)
        log.info("Telemetry received from %s (%s), delivered to %d observer(s)",
                 envelope.agent_id, envelope.status, delivered)
        return AckResult(delivered)
