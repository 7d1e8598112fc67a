# test_ingestion.py
"""
Tests for the session correlation store and frame ingestion.

How to run:
    pytest -q test_ingestion.py
"""

import json

import pytest

from server.ingestion import TelemetryIngestor
from server.risk_scorer import RiskScorer
from server.session_store import SessionCorrelationStore, SessionRecord


@pytest.fixture
def store():
    return SessionCorrelationStore()


@pytest.fixture
def ingestor(store):
    return TelemetryIngestor(RiskScorer(), store, clock=lambda: 1700000000.0)


def frame(message_type, **payload):
    return json.dumps({"type": message_type, "payload": payload})


# ----------------------------------------------------------------------
# Session correlation store
# ----------------------------------------------------------------------

class TestSessionStore:
    def test_create_and_get(self, store):
        record = SessionRecord(start_time=1.0, source_address="10.0.0.1", user_agent="ua")
        store.create("tok", record)
        assert store.get("tok") == record
        assert "tok" in store
        assert len(store) == 1

    def test_repeated_token_overwrites(self, store):
        store.create("tok", SessionRecord(1.0, "10.0.0.1", "first"))
        store.create("tok", SessionRecord(2.0, "10.0.0.2", "second"))
        assert len(store) == 1
        assert store.get("tok").user_agent == "second"
        assert store.get("tok").start_time == 2.0

    def test_unknown_token(self, store):
        assert store.get("missing") is None
        assert "missing" not in store

    def test_clear(self, store):
        store.create("a", SessionRecord(1.0, "h", "ua"))
        store.create("b", SessionRecord(1.0, "h", "ua"))
        store.clear()
        assert len(store) == 0


# ----------------------------------------------------------------------
# Ingestion
# ----------------------------------------------------------------------

class TestIngestor:
    def test_behavior_report_yields_risk_update(self, ingestor):
        reply = ingestor.handle(
            frame("BEHAVIOR_REPORT", typingSpeed=600, mouseJitter=0.9, sessionToken="t")
        )
        assert reply == {
            "type": "RISK_UPDATE",
            "payload": {"riskScore": 70, "reason": "Anomalous interaction detected"},
        }

    def test_report_without_payload_scores_zero(self, ingestor):
        reply = ingestor.handle(json.dumps({"type": "BEHAVIOR_REPORT"}))
        assert reply["payload"] == {"riskScore": 0, "reason": "Normal"}

    def test_report_missing_jitter(self, ingestor):
        reply = ingestor.handle(frame("BEHAVIOR_REPORT", typingSpeed=750))
        assert reply["payload"] == {"riskScore": 30, "reason": "Normal"}

    def test_session_init_records_metadata(self, ingestor, store):
        reply = ingestor.handle(frame("SESSION_INIT", token="abc"), "192.168.1.5", "Mozilla/5.0")
        assert reply is None
        assert store.get("abc") == SessionRecord(
            start_time=1700000000.0, source_address="192.168.1.5", user_agent="Mozilla/5.0"
        )

    def test_repeated_session_init_does_not_grow_store(self, ingestor, store):
        for agent in ["one", "two", "three"]:
            ingestor.handle(frame("SESSION_INIT", token="same"), "h", agent)
        assert len(store) == 1
        assert store.get("same").user_agent == "three"

    def test_session_init_does_not_score(self, ingestor):
        assert ingestor.handle(frame("SESSION_INIT", token="x")) is None

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2, 3]",
            json.dumps({"type": "HEARTBEAT", "payload": {}}),
            json.dumps({"type": "RISK_UPDATE", "payload": {"riskScore": 1, "reason": "x"}}),
            json.dumps({"payload": {"typingSpeed": 900}}),
            json.dumps({"type": ["BEHAVIOR_REPORT"]}),
            b"\xff\xfe",
            "[" * 100000 + "]" * 100000,
        ],
    )
    def test_unrecognized_or_unparseable_frames_are_ignored(self, ingestor, store, raw):
        assert ingestor.handle(raw) is None
        assert len(store) == 0

    def test_accepts_bytes_frames(self, ingestor):
        reply = ingestor.handle(frame("BEHAVIOR_REPORT", mouseJitter=1.5).encode())
        assert reply["payload"]["riskScore"] == 40

    def test_oversized_integer_field_reads_as_zero(self, ingestor):
        raw = '{"type": "BEHAVIOR_REPORT", "payload": {"typingSpeed": ' + "9" * 400 + ', "mouseJitter": 0.9}}'
        reply = ingestor.handle(raw)
        assert reply["payload"] == {"riskScore": 40, "reason": "Normal"}
