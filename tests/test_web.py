"""Tests for the Flask JSON API."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "web"))

from app import app  # noqa: E402
from encounters import encounter_store  # noqa: E402

TRANSCRIPT = [
    {"speaker": "patient", "text": "Hi doctor, I'm here about my headaches."},
    {"speaker": "provider", "text": "Hello, my name is Dr. Lee. Tell me more?"},
]


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


class TestRubricSets:

    def test_lists_sets(self, client):
        data = client.get("/api/rubric-sets").get_json()
        assert data["default"] == "start_heart"
        assert {rs["key"] for rs in data["rubric_sets"]} == {"start_heart", "sps"}


class TestScore:

    def test_local(self, client):
        resp = client.post("/api/score", json={
            "transcript": TRANSCRIPT, "patient": {"name": "Maria Lopez"},
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["source"] == "local"
        assert set(data["rubric_results"]) == {"start", "heart", "care", "wow"}
        assert data["rubric_results"]["start"]["criterion_breakdown"][0]["was_detected"]

    def test_fallback_mode(self, client):
        data = client.post("/api/score", json={
            "transcript": TRANSCRIPT, "rubric_set": "sps", "mode": "fallback",
        }).get_json()
        assert data["source"] == "fallback"

    def test_grading_text(self, client):
        data = client.post("/api/score", json={
            "transcript": TRANSCRIPT,
            "rubric_set": "sps",
            "grading_text": "HistoryGathering: 5 | Evidence: x | Feedback: y",
        }).get_json()
        assert data["source"] == "external"
        assert data["rubric_results"]["history_gathering"]["score"] == 5

    def test_no_provider_turns(self, client):
        data = client.post("/api/score", json={"transcript": TRANSCRIPT[:1]}).get_json()
        assert data["source"] == "no_data"
        assert data["total_score"] == 0

    @pytest.mark.parametrize("payload", [
        {"transcript": "not a list"},
        {"transcript": [{"speaker": "robot", "text": "beep"}]},
        {"transcript": [{"text": "no speaker"}]},
        {"transcript": TRANSCRIPT, "rubric_set": "nope"},
        {"transcript": TRANSCRIPT, "mode": "telepathy"},
        {"transcript": TRANSCRIPT, "patient": "Maria"},
    ])
    def test_bad_payloads(self, client, payload):
        resp = client.post("/api/score", json=payload)
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_non_json_body(self, client):
        resp = client.post("/api/score", data="hello", content_type="text/plain")
        assert resp.status_code == 400


class TestParse:

    def test_parse(self, client):
        data = client.post("/api/parse", json={"text": "", "rubric_set": "sps"}).get_json()
        assert data["source"] == "external"
        assert data["total_score"] == 60

    def test_text_must_be_string(self, client):
        resp = client.post("/api/parse", json={"text": 42})
        assert resp.status_code == 400


class TestRespond:

    def test_conversation(self, client):
        first = client.post("/api/respond", json={
            "message": "Good morning.",
            "patient": {"name": "Maria", "chief_complaint": "headaches"},
        }).get_json()
        assert first["content"].startswith("I need help with headaches.")
        encounter_id = first["encounter_id"]

        second = client.post("/api/respond", json={
            "encounter_id": encounter_id, "message": "Goodbye, take care.",
        }).get_json()
        assert second["turn_count"] == 2
        assert second["should_end"] is True
        assert encounter_store.get(encounter_id) is None

    def test_unknown_encounter(self, client):
        resp = client.post("/api/respond", json={"encounter_id": "missing", "message": "Hi"})
        assert resp.status_code == 404

    def test_empty_message(self, client):
        resp = client.post("/api/respond", json={"message": "  "})
        assert resp.status_code == 400

    def test_end_encounter(self, client):
        first = client.post("/api/respond", json={"message": "Hello."}).get_json()
        resp = client.delete(f"/api/encounters/{first['encounter_id']}")
        assert resp.get_json()["ended"] is True
        assert client.delete(f"/api/encounters/{first['encounter_id']}").status_code == 404
