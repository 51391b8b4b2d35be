import copy
from datetime import datetime

import pytest

from telemetry_relay.envelope import Envelope, ValidationError, normalize

SAMPLE = {
    "agentId": "Agent-01",
    "status": "working",
    "timestamp": "2026-10-17T08:00:00.000Z",
    "metrics": {"cpu": 50, "memory": 512, "uptime": 3600},
    "logs": ["start", "step 1"],
}


def test_normalize_basic_fields():
    env = normalize(SAMPLE)
    assert isinstance(env, Envelope)
    assert env.agent_id == "Agent-01"
    assert env.status == "working"
    assert env.timestamp == "2026-10-17T08:00:00.000Z"
    assert env.to_dict() == SAMPLE


def test_missing_timestamp_is_server_assigned():
    env = normalize({"agentId": "Agent-01", "status": "idle"})
    assert env.timestamp.endswith("Z")
    # parses as an ISO-8601 instant
    datetime.fromisoformat(env.timestamp.replace("Z", "+00:00"))


@pytest.mark.parametrize("ts", [None, ""])
def test_empty_timestamp_is_server_assigned(ts):
    env = normalize({"agentId": "a", "status": "idle", "timestamp": ts})
    assert env.timestamp not in (None, "")


def test_garbage_timestamp_is_preserved():
    env = normalize({"agentId": "a", "status": "idle", "timestamp": "yesterday-ish"})
    assert env.timestamp == "yesterday-ish"
    env = normalize({"agentId": "a", "status": "idle", "timestamp": 1765041581000})
    assert env.timestamp == 1765041581000


def test_status_is_open_ended():
    env = normalize({"agentId": "a", "status": "rebooting"})
    assert env.status == "rebooting"


@pytest.mark.parametrize(
    "raw",
    [
        {"status": "working"},
        {"agentId": "", "status": "working"},
        {"agentId": None, "status": "working"},
        {"agentId": "Agent-01"},
        {"agentId": "Agent-01", "status": ""},
        {"agentId": 7, "status": "working"},
        {"agentId": "Agent-01", "status": ["working"]},
    ],
)
def test_missing_or_empty_required_fields_rejected(raw):
    with pytest.raises(ValidationError):
        normalize(raw)


@pytest.mark.parametrize("raw", [None, [], ["agentId"], "Agent-01", 42])
def test_non_object_rejected(raw):
    with pytest.raises(ValidationError) as exc_info:
        normalize(raw)
    assert "expected an object" in exc_info.value.detail


def test_validation_error_names_field():
    with pytest.raises(ValidationError) as exc_info:
        normalize({"agentId": "a"})
    assert exc_info.value.field_name == "status"


def test_absent_optionals_are_omitted():
    out = normalize({"agentId": "a", "status": "online"}).to_dict()
    assert "metrics" not in out
    assert "logs" not in out


def test_extra_fields_are_carried():
    out = normalize({"agentId": "a", "status": "online", "region": "eu-west", "tags": ["x"]}).to_dict()
    assert out["region"] == "eu-west"
    assert out["tags"] == ["x"]


def test_caller_record_is_not_mutated_or_aliased():
    raw = copy.deepcopy(SAMPLE)
    del raw["timestamp"]
    before = copy.deepcopy(raw)

    env = normalize(raw)
    assert raw == before
    assert "timestamp" not in raw

    raw["metrics"]["cpu"] = 99
    raw["logs"].append("late")
    out = env.to_dict()
    assert out["metrics"]["cpu"] == 50
    assert out["logs"] == ["start", "step 1"]


def test_envelope_is_immutable():
    env = normalize(SAMPLE)
    with pytest.raises(AttributeError):
        env.status = "offline"
    env.to_dict()["metrics"]["cpu"] = 0
    assert env.to_dict()["metrics"]["cpu"] == 50
