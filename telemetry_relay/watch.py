#!/usr/bin/env python3
"""
Terminal observer for the relay's push channel.

- single_session: one websocket connection lifecycle (connect, receive until closed)
- run_with_reconnect: Reconnector calls single_session repeatedly with backoff
"""
import argparse
import asyncio
import json
import logging
import signal
from typing import Any, Callable, List, Optional

import aiohttp

from telemetry_relay.logging_setup import setup_logging
from telemetry_relay.reconnect import Reconnector
from telemetry_relay.utils import pretty

LOG = logging.getLogger("telemetry_relay.watch")
DEFAULT_WS = "ws://localhost:8080/"


def print_message(message: Any) -> None:
    print(pretty(message))


def decode(data: str) -> Any:
    try:
        return json.loads(data)
    except ValueError:
        LOG.debug("non-JSON frame received")
        return data


async def single_session(endpoint: str, on_message: Callable[[Any], None] = print_message) -> int:
    """
    Run one push-channel session: connect and hand every message to ``on_message``.
    Returns the number of messages seen when the server closes the connection.
    """
    LOG.info("single_session: connecting to %s", endpoint)
    seen = 0
    timeout = aiohttp.ClientTimeout(total=None, sock_connect=30, sock_read=None)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.ws_connect(endpoint) as ws:
            LOG.info("single_session: connected")
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    seen += 1
                    on_message(decode(msg.data))

                elif msg.type == aiohttp.WSMsgType.BINARY:
                    LOG.debug("Binary message received (%d bytes)", len(msg.data))

                elif msg.type == aiohttp.WSMsgType.CLOSE:
                    LOG.warning("Websocket closed by server: %s", msg)
                    break

                elif msg.type == aiohttp.WSMsgType.ERROR:
                    LOG.error("Websocket error: %s", msg)
                    break

    LOG.info("single_session: connection ended after %d message(s)", seen)
    return seen


async def run_with_reconnect(endpoint: str = DEFAULT_WS, reconnector: Optional[Reconnector] = None,
                             on_message: Callable[[Any], None] = print_message):
    reconn = reconnector or Reconnector(logger=LOG, base=1.0, cap=30.0, max_attempts=None)

    async def factory():
        await single_session(endpoint, on_message=on_message)

    await reconn.run(factory)
    return reconn


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="telemetry-watch", description="Print messages pushed by a telemetry relay")
    p.add_argument("url", nargs="?", default=DEFAULT_WS, help=f"Push channel URL (default {DEFAULT_WS})")
    p.add_argument("--max-attempts", type=int, default=None, help="Give up after this many consecutive failures")
    p.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")
    return p


async def _amain(ns: argparse.Namespace):
    reconn = Reconnector(logger=LOG, max_attempts=ns.max_attempts)
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    def _on_signal():
        LOG.info("Signal received, shutting down...")
        reconn.stop()
        task.cancel()

    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _on_signal)
    except NotImplementedError:
        LOG.warning("Signal handlers not supported on this platform")

    try:
        await run_with_reconnect(ns.url, reconnector=reconn)
    except asyncio.CancelledError:
        LOG.info("watch: cancelled")


def main(argv: Optional[List[str]] = None):
    ns = build_parser().parse_args(argv)
    setup_logging("telemetry_relay.watch", level=ns.log_level)
    try:
        asyncio.run(_amain(ns))
    except KeyboardInterrupt:
        LOG.info("Keyboard interrupt - exiting")


if __name__ == "__main__":
    main()
