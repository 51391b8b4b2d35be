"""
Reconnector utility.

Usage:
    reconn = Reconnector(logger=LOG, base=1.0, cap=30.0, max_attempts=None)
    await reconn.run(lambda: watch_once(...))
Where watch_once is a coroutine factory that holds one push-channel session
and returns when it ends (normally or due to error). Reconnector retries with
exponential backoff + jitter until stopped or out of attempts.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from telemetry_relay.utils import backoff_delay


class Reconnector:
    def __init__(self, logger: Optional[logging.Logger] = None, base: float = 1.0, cap: float = 30.0,
                 max_attempts: Optional[int] = None, settle: float = 0.2):
        self.log = logger or logging.getLogger("telemetry_relay.reconnect")
        self.base = float(base)
        self.cap = float(cap)
        self.max_attempts = max_attempts  # None => infinite
        self.settle = settle
        self.sessions = 0
        self._stop = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self):
        self._stop.set()

    async def _pause(self, delay: float):
        # wake early if stop() is called mid-sleep
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def run(self, session_factory: Callable[[], Awaitable[None]]):
        failures = 0
        while not self.stopped:
            self.sessions += 1
            try:
                self.log.info("Reconnector: starting session %d", self.sessions)
                await session_factory()
            except asyncio.CancelledError:
                self.log.info("Reconnector: cancelled, exiting")
                raise
            except Exception as exc:
                failures += 1
                self.log.warning("Session failed: %s", exc)
                if self.max_attempts is not None and failures >= self.max_attempts:
                    self.log.error("Reconnector: max attempts reached (%d). Giving up.", self.max_attempts)
                    break
                delay = backoff_delay(failures - 1, base=self.base, cap=self.cap)
                self.log.info("Backoff: sleeping %.2f s (failures=%d)", delay, failures)
                await self._pause(delay)
                continue

            # clean end resets the failure streak; brief pause avoids a hot loop
            self.log.info("Session ended normally; reconnecting.")
            failures = 0
            await self._pause(self.settle)
        self.log.info("Reconnector stopped.")
