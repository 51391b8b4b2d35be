import json

import pytest

from telemetry_relay import metrics, state
from telemetry_relay.hub import BroadcastHub
from telemetry_relay.ingest import AckResult, ErrorKind, ErrorResult, IngestEndpoint
from telemetry_relay.registry import Observer, ObserverRegistry


@pytest.fixture
def wired(make_connection):
    registry = ObserverRegistry()
    conns = [make_connection(), make_connection()]
    for c in conns:
        registry.register(Observer(c))
    return IngestEndpoint(BroadcastHub(registry)), conns


@pytest.mark.asyncio
async def test_valid_submission_is_broadcast(wired):
    ingest, conns = wired
    body = b'{"agentId":"Agent-01","status":"working","metrics":{"cpu":50},"logs":["start"]}'

    result = await ingest.handle_ingest(body)

    assert isinstance(result, AckResult)
    assert result.status_code == 200
    assert result.to_dict() == {"status": "ok", "broadcast_count": 2}
    for c in conns:
        (msg,) = c.messages()
        assert msg["type"] == "TELEMETRY"
        payload = msg["payload"]
        assert payload["agentId"] == "Agent-01"
        assert payload["status"] == "working"
        assert payload["metrics"] == {"cpu": 50}
        assert payload["logs"] == ["start"]
        assert isinstance(payload["timestamp"], str) and payload["timestamp"]
    assert state.get_last_seen()["Agent-01"]["status"] == "working"


@pytest.mark.asyncio
async def test_str_body_accepted(wired):
    ingest, _ = wired
    result = await ingest.handle_ingest('{"agentId":"x","status":"idle"}')
    assert isinstance(result, AckResult)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"not json",
        b'{"agentId":',
        b"\xff\xfe\x00",
        "{'agentId': 'a'}",
        b'{"agentId":"a","status":"x","metrics":{"cpu":NaN}}',
        b'{"agentId":"a","status":"x","metrics":{"cpu":Infinity}}',
        b'{"agentId":"a","status":"x","logs":[-Infinity]}',
        b'{"agentId":"a","status":"x","metrics":{"mem":1e400}}',
        b'{"agentId":"a","status":"x","metrics":' + b"[" * 600 + b"]" * 600 + b"}",
        b'{"agentId":"a","status":"x","metrics":' + b"[" * 5000 + b"]" * 5000 + b"}",
    ],
)
async def test_malformed_body(wired, body):
    ingest, conns = wired
    result = await ingest.handle_ingest(body)

    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.MALFORMED_PAYLOAD
    assert result.status_code == 400
    assert result.to_dict() == {"error": "Invalid JSON"}
    assert all(c.sent == [] for c in conns)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "record",
    [
        {"status": "working"},
        {"agentId": "Agent-01"},
        {"agentId": "", "status": "working"},
        {"agentId": "Agent-01", "status": ""},
        [],
        None,
    ],
)
async def test_schema_violation(wired, record):
    ingest, conns = wired
    result = await ingest.handle_ingest(json.dumps(record))

    assert isinstance(result, ErrorResult)
    assert result.kind is ErrorKind.SCHEMA_VIOLATION
    assert result.detail
    assert result.to_dict() == {"error": "Invalid schema: agentId and status are required."}
    assert all(c.sent == [] for c in conns)
    assert metrics.snapshot()["broadcasts"] == 0


@pytest.mark.asyncio
async def test_endpoint_survives_bad_input(wired):
    ingest, conns = wired
    for body in (b"nope", b'{"status":"x"}', b"[1,2]"):
        await ingest.handle_ingest(body)

    result = await ingest.handle_ingest(b'{"agentId":"a","status":"online"}')
    assert result.to_dict() == {"status": "ok", "broadcast_count": 2}
    snap = metrics.snapshot()
    assert snap["telemetry_received"] == 4
    assert snap["telemetry_rejected"] == 3


@pytest.mark.asyncio
async def test_delivered_count_excludes_failed_observers(make_connection):
    registry = ObserverRegistry()
    good, bad = make_connection(), make_connection()
    bad.break_()
    registry.register(Observer(good))
    registry.register(Observer(bad))
    ingest = IngestEndpoint(BroadcastHub(registry))

    result = await ingest.handle_ingest(b'{"agentId":"a","status":"online"}')

    assert result.to_dict() == {"status": "ok", "broadcast_count": 1}
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_per_agent_order_preserved(wired):
    ingest, conns = wired
    for i in range(5):
        await ingest.handle_ingest(json.dumps({"agentId": "a", "status": f"s{i}"}))
    for c in conns:
        assert [m["payload"]["status"] for m in c.messages()] == [f"s{i}" for i in range(5)]


@pytest.mark.asyncio
async def test_moderately_nested_metrics_pass_through(wired):
    ingest, conns = wired
    nested = {"a": [[{"b": [1, 2]}]]}
    result = await ingest.handle_ingest(json.dumps({"agentId": "a", "status": "x", "metrics": nested}))

    assert isinstance(result, AckResult)
    for c in conns:
        assert c.messages()[0]["payload"]["metrics"] == nested


@pytest.mark.asyncio
async def test_frames_are_strict_json(wired):
    ingest, conns = wired
    await ingest.handle_ingest(b'{"agentId":"a","status":"x","metrics":{"cpu":1e308}}')
    for c in conns:
        text = c.sent[0]
        assert "NaN" not in text and "Infinity" not in text
        json.loads(text, parse_constant=lambda name: pytest.fail(f"non-JSON constant {name}"))
