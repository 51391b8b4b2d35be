"""
Normalizer for agent telemetry submissions.

Function:
- normalize(raw) -> Envelope, raising ValidationError when the record is unusable.

Canonical envelope fields:
    - agentId (str, required, non-empty)
    - status (str, required, non-empty; open set: online/idle/working/error/offline/...)
    - timestamp (ISO-8601 str; server time at receipt when missing)
    - metrics (optional mapping name -> number, passed through)
    - logs (optional list of str, passed through)
Any other top-level fields are carried along untouched.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from telemetry_relay.utils import utc_now_iso

REQUIRED_FIELDS = ("agentId", "status")
OPTIONAL_FIELDS = ("metrics", "logs")
KNOWN_FIELDS = REQUIRED_FIELDS + ("timestamp",) + OPTIONAL_FIELDS

_MISSING = object()


class ValidationError(ValueError):
    """Raised when a submission lacks a usable agentId or status."""

    def __init__(self, detail: str, field_name: Optional[str] = None):
        super().__init__(detail)
        self.detail = detail
        self.field_name = field_name


@dataclass(frozen=True)
class Envelope:
    agent_id: str
    status: str
    timestamp: Any
    metrics: Any = _MISSING
    logs: Any = _MISSING
    extra: Dict[str, Any] = field(default_factory=dict)

    def has_metrics(self) -> bool:
        return self.metrics is not _MISSING

    def has_logs(self) -> bool:
        return self.logs is not _MISSING

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation; a fresh structure on every call."""
        out: Dict[str, Any] = {
            "agentId": self.agent_id,
            "status": self.status,
            "timestamp": self.timestamp,
        }
        if self.has_metrics():
            out["metrics"] = copy.deepcopy(self.metrics)
        if self.has_logs():
            out["logs"] = copy.deepcopy(self.logs)
        for key, value in self.extra.items():
            out[key] = copy.deepcopy(value)
        return out


def _require_text(raw: Mapping[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None or value == "":
        raise ValidationError(f"{key} is required", field_name=key)
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string, got {type(value).__name__}", field_name=key)
    return value


def normalize(raw: Any) -> Envelope:
    """
    Validate and complete a decoded submission.

    The caller's record is never mutated and nothing in the returned
    Envelope aliases its nested containers.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError(f"expected an object, got {type(raw).__name__}")

    agent_id = _require_text(raw, "agentId")
    status = _require_text(raw, "status")

    # garbage-in timestamps are preserved; only absent/empty ones are filled
    timestamp = raw.get("timestamp")
    if timestamp is None or timestamp == "":
        timestamp = utc_now_iso()

    optional = {}
    for key in OPTIONAL_FIELDS:
        if key in raw:
            optional[key] = copy.deepcopy(raw[key])

    extra = {k: copy.deepcopy(v) for k, v in raw.items() if k not in KNOWN_FIELDS}

    return Envelope(agent_id=agent_id, status=status, timestamp=timestamp, extra=extra, **optional)
