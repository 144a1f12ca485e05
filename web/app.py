"""Encounter Scorer: Flask JSON API."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

from flask import Flask, jsonify, request

# Add scripts/ to sys.path for scorer imports
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, os.path.join(REPO_ROOT, "scripts"))

import config as scorer_config
from encounters import encounter_store
from rubric_sets import RUBRIC_SETS
from scoring import ScoringEngine
from transcript import PatientProfile, Transcript

logger = logging.getLogger("encounter_scorer.web")

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = 5 * 1024 * 1024  # 5 MB request limit

# One engine per built-in rubric set; engines are stateless and thread-safe
ENGINES = {key: ScoringEngine(rubric_set) for key, rubric_set in RUBRIC_SETS.items()}


class BadRequest(ValueError):
    """Invalid request payload; reported to the client as HTTP 400."""


@app.errorhandler(BadRequest)
def _bad_request(exc: BadRequest):
    return jsonify({"error": str(exc)}), 400


def _payload() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object.")
    return data


def _engine(data: dict[str, Any]) -> ScoringEngine:
    key = data.get("rubric_set") or scorer_config.DEFAULT_RUBRIC_SET
    if key not in ENGINES:
        raise BadRequest(
            f"Unknown rubric set '{key}'. Available: {', '.join(sorted(ENGINES))}"
        )
    return ENGINES[key]


def _profile(data: dict[str, Any]) -> PatientProfile:
    patient = data.get("patient") or {}
    if not isinstance(patient, dict):
        raise BadRequest("'patient' must be an object.")
    try:
        return PatientProfile.from_dict(patient)
    except (TypeError, ValueError) as exc:
        raise BadRequest(f"Invalid patient: {exc}") from exc


def _transcript(data: dict[str, Any]) -> Transcript:
    turns = data.get("transcript")
    if not isinstance(turns, list):
        raise BadRequest("'transcript' must be a list of {speaker, text} objects.")
    try:
        return Transcript.from_pairs(
            (turn["speaker"], turn.get("text") or "") for turn in turns
        )
    except (KeyError, TypeError, AttributeError, ValueError) as exc:
        raise BadRequest(f"Invalid transcript: {exc}") from exc


# -----------------------------------------------------------------------
# Scoring
# -----------------------------------------------------------------------

@app.route("/api/rubric-sets")
def api_rubric_sets():
    return jsonify({
        "default": scorer_config.DEFAULT_RUBRIC_SET,
        "rubric_sets": [rs.summary() for rs in RUBRIC_SETS.values()],
    })


@app.route("/api/score", methods=["POST"])
def api_score():
    """Score a transcript locally, from supplied grading text, or by fallback."""
    data = _payload()
    engine = _engine(data)
    profile = _profile(data)
    transcript = _transcript(data)
    mode = data.get("mode", "local")

    if "grading_text" in data:
        grading_text = data["grading_text"]
        if grading_text is not None and not isinstance(grading_text, str):
            raise BadRequest("'grading_text' must be a string.")
        report = engine.grade(transcript, profile, grading_text)
    elif mode == "fallback":
        report = engine.fallback(transcript, profile)
    elif mode == "local":
        report = engine.score(transcript, profile)
    else:
        raise BadRequest("'mode' must be 'local' or 'fallback'.")

    logger.info(
        "Scored %d turns with %s (%s): %d",
        len(transcript), engine.rubric_set.key, report.source, report.total_score,
    )
    return jsonify(report.to_dict())


@app.route("/api/parse", methods=["POST"])
def api_parse():
    """Parse an external grading report."""
    data = _payload()
    text = data.get("text")
    if text is not None and not isinstance(text, str):
        raise BadRequest("'text' must be a string.")
    report = _engine(data).parse(text, _profile(data))
    return jsonify(report.to_dict())


# -----------------------------------------------------------------------
# Scripted patient
# -----------------------------------------------------------------------

@app.route("/api/respond", methods=["POST"])
def api_respond():
    """Reply as the scripted patient.

    Without ``encounter_id`` a new encounter is started from ``patient``.
    """
    data = _payload()
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        raise BadRequest("'message' must be a non-empty string.")

    encounter_id = data.get("encounter_id")
    if not encounter_id:
        encounter_id = encounter_store.start(_profile(data))

    context = encounter_store.get(encounter_id)
    reply = encounter_store.reply(encounter_id, message)
    if reply is None or context is None:
        return jsonify({"error": f"Encounter '{encounter_id}' not found or expired."}), 404

    return jsonify({
        "encounter_id": encounter_id,
        "content": reply.content,
        "should_end": reply.should_end,
        "turn_count": context.turn_count,
        "trust_level": context.trust_level,
    })


@app.route("/api/encounters/<encounter_id>", methods=["DELETE"])
def api_end_encounter(encounter_id):
    if not encounter_store.end(encounter_id):
        return jsonify({"error": f"Encounter '{encounter_id}' not found or expired."}), 404
    return jsonify({"encounter_id": encounter_id, "ended": True})
