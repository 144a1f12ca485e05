"""Shared fixtures for the scorer tests."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "scripts"))

from transcript import PatientProfile, Transcript


SCENARIO_B_MESSAGE = (
    "Hello, my name is Dr. Lee. Tell me more about your headaches "
    "— how long have you had them?"
)


@pytest.fixture
def profile():
    return PatientProfile(
        name="Maria Lopez",
        emotional_state="anxious",
        case_id="HA-01",
        age=45,
        gender="female",
        chief_complaint="recurring headaches",
        symptoms=("throbbing headache", "nausea", "light sensitivity", "neck stiffness"),
        timeline="started six months ago",
        severity="8 out of 10",
        treatments=("ibuprofen", "sleep"),
        fears=("a brain tumor",),
    )


@pytest.fixture
def scenario_b():
    return Transcript.from_pairs([
        ("patient", "Hi doctor, I'm here about my headaches."),
        ("provider", SCENARIO_B_MESSAGE),
    ])


@pytest.fixture
def full_encounter():
    return Transcript.from_pairs([
        ("provider", "Good morning Maria, my name is Dr. Lee and I'm the doctor "
                     "who will be seeing you today. We're going to talk about "
                     "what brought you in."),
        ("patient", "I've had terrible headaches."),
        ("provider", "I'm sorry you've been dealing with that, it sounds difficult. "
                     "Tell me more about your headaches. When did they start?"),
        ("patient", "About six months ago."),
        ("provider", "I understand you must be worried. What makes it worse, "
                     "and are you taking any medication or have any allergies?"),
        ("patient", "Ibuprofen. No allergies."),
        ("provider", "It could be a migraine, but we will rule out other causes "
                     "because your symptoms changed. I will order some blood work "
                     "and an MRI. Does that make sense? What questions do you have?"),
        ("patient", "No, that makes sense."),
        ("provider", "Thank you for sharing all of this with me. Please call us or "
                     "go to the emergency room if you notice any weakness, and "
                     "we'll schedule a follow up appointment next week."),
    ])
