"""
Simple thread-safe in-memory counters for the relay.
Counters:
- telemetry_received
- telemetry_rejected
- broadcasts
- messages_delivered
- delivery_failures
- observers_connected
- observers_disconnected

Provides increment(counter, n=1), snapshot() and reset().
"""
import threading
from typing import Dict

COUNTERS = (
    "telemetry_received",
    "telemetry_rejected",
    "broadcasts",
    "messages_delivered",
    "delivery_failures",
    "observers_connected",
    "observers_disconnected",
)

_lock = threading.Lock()
_counters: Dict[str, int] = {name: 0 for name in COUNTERS}


def increment(name: str, n: int = 1) -> None:
    with _lock:
        if name not in _counters:
            _counters[name] = 0
        _counters[name] += int(n)


def snapshot() -> Dict[str, int]:
    with _lock:
        return dict(_counters)


def reset() -> None:
    with _lock:
        _counters.clear()
        _counters.update({name: 0 for name in COUNTERS})
