#!/usr/bin/env python3
"""
Heartbeat agent: pushes telemetry records to a relay's ingest endpoint.

Useful for smoke-testing a dashboard without a real fleet:
    telemetry-agent --agent-id Agent-01 --status working --metric cpu=50 --log start
"""
import argparse
import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import aiohttp

from telemetry_relay.logging_setup import setup_logging
from telemetry_relay.utils import backoff_sleep, utc_now_iso

LOG = logging.getLogger("telemetry_relay.agent")
DEFAULT_URL = "http://localhost:8080/telemetry"


def metric_pair(s: str):
    name, sep, value = s.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Expected name=value, got {s!r}")
    try:
        return name.strip(), float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Metric value is not a number: {s!r}")


def build_record(agent_id: str, status: str, metrics: Optional[Dict[str, float]] = None,
                 logs: Optional[List[str]] = None, timestamp: Optional[str] = None) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "agentId": agent_id,
        "status": status,
        "timestamp": timestamp or utc_now_iso(),
    }
    if metrics:
        record["metrics"] = dict(metrics)
    if logs:
        record["logs"] = list(logs)
    return record


async def post_telemetry(session: aiohttp.ClientSession, url: str, record: Dict[str, Any]) -> Dict[str, Any]:
    """POST one record; returns the relay's JSON reply, raises on non-2xx."""
    async with session.post(url, json=record) as resp:
        body = await resp.json(content_type=None)
        if resp.status >= 400:
            raise RuntimeError(f"relay rejected telemetry ({resp.status}): {body}")
        return body


async def run_agent(url: str, agent_id: str, status: str = "online", interval: float = 5.0,
                    count: Optional[int] = None, metrics: Optional[Dict[str, float]] = None,
                    logs: Optional[List[str]] = None, session: Optional[aiohttp.ClientSession] = None) -> int:
    """
    Send a heartbeat every ``interval`` seconds, ``count`` times (forever if None).
    Failed posts are logged and followed by a backoff; there is no resend.
    Returns the number of acknowledged heartbeats.
    """
    started = time.monotonic()
    acked = 0
    failures = 0
    sent = 0
    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=10))
    try:
        while count is None or sent < count:
            beat_metrics = dict(metrics or {})
            beat_metrics.setdefault("uptime", round(time.monotonic() - started, 3))
            record = build_record(agent_id, status, metrics=beat_metrics, logs=logs)
            sent += 1
            try:
                reply = await post_telemetry(session, url, record)
            except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError, ValueError) as exc:
                LOG.warning("heartbeat %d failed: %s", sent, exc)
                if count is None or sent < count:
                    await backoff_sleep(failures, base=interval or 1.0, cap=60.0)
                failures += 1
                continue
            failures = 0
            acked += 1
            LOG.info("heartbeat %d acknowledged, broadcast to %s observer(s)", sent, reply.get("broadcast_count"))
            if count is None or sent < count:
                await asyncio.sleep(interval)
    finally:
        if own_session:
            await session.close()
    return acked


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="telemetry-agent", description="Push heartbeat telemetry to a relay")
    p.add_argument("--url", default=DEFAULT_URL, help=f"Ingest URL (default {DEFAULT_URL})")
    p.add_argument("--agent-id", required=True, help="Agent identifier")
    p.add_argument("--status", default="online", help="Status label (online, idle, working, error, offline, ...)")
    p.add_argument("--interval", type=float, default=5.0, help="Seconds between heartbeats")
    p.add_argument("--count", type=int, default=None, help="Stop after this many heartbeats")
    p.add_argument("--metric", type=metric_pair, action="append", default=[], help="Metric as name=value (repeatable)")
    p.add_argument("--log", action="append", default=[], help="Log line to attach (repeatable)")
    p.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    return p


def main(argv: Optional[List[str]] = None):
    ns = build_parser().parse_args(argv)
    setup_logging("telemetry_relay.agent", level=ns.log_level)
    try:
        asyncio.run(run_agent(ns.url, ns.agent_id, status=ns.status, interval=ns.interval,
                              count=ns.count, metrics=dict(ns.metric), logs=ns.log))
    except KeyboardInterrupt:
        LOG.info("Keyboard interrupt - exiting")


if __name__ == "__main__":
    main()
