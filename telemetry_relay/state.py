"""
Shared in-memory state for healthcheck and monitoring.
"""

import threading
from typing import Any, Dict, Optional

_lock = threading.Lock()

_last_seen: Dict[str, Dict[str, Any]] = {}
_start_time_ms: Optional[int] = None


def set_start_time(ts: int):
    global _start_time_ms
    with _lock:
        _start_time_ms = ts


def get_start_time() -> Optional[int]:
    with _lock:
        return _start_time_ms


def update_last_seen(agent_id: str, status: str, timestamp: Any):
    with _lock:
        _last_seen[agent_id] = {"status": status, "timestamp": timestamp}


def get_last_seen() -> Dict[str, Dict[str, Any]]:
    with _lock:
        return {agent: dict(seen) for agent, seen in _last_seen.items()}


def reset():
    global _start_time_ms
    with _lock:
        _last_seen.clear()
        _start_time_ms = None
