import json

import pytest

from telemetry_relay import metrics, state


class FakeConnection:
    """Stands in for a FastAPI WebSocket on the server side."""

    def __init__(self, fail_after=None):
        self.sent = []
        self.accepted = False
        self.closed_with = None
        # number of successful sends before every send raises
        self.fail_after = fail_after

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail_after is not None and len(self.sent) >= self.fail_after:
            raise RuntimeError("socket is closed")
        self.sent.append(text)

    async def close(self, code=1000):
        self.closed_with = code

    def messages(self):
        return [json.loads(t) for t in self.sent]

    def break_(self):
        self.fail_after = len(self.sent)


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture(autouse=True)
def _fresh_counters():
    metrics.reset()
    state.reset()
    yield
    metrics.reset()
    state.reset()
