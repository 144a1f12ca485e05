"""Tests for the transcript model and patient profile."""

import pytest

from transcript import PatientProfile, Speaker, Transcript, Turn


class TestSpeaker:

    @pytest.mark.parametrize("label", ["provider", "Student", " DOCTOR ", "user"])
    def test_provider_labels(self, label):
        assert Speaker.parse(label) is Speaker.PROVIDER

    @pytest.mark.parametrize("label", ["patient", "SP", "assistant"])
    def test_patient_labels(self, label):
        assert Speaker.parse(label) is Speaker.PATIENT

    def test_unknown_label_rejected(self):
        with pytest.raises(ValueError):
            Speaker.parse("narrator")


class TestTranscript:

    def test_from_pairs_numbers_turns(self):
        t = Transcript.from_pairs([("patient", "Hi"), ("student", "Hello")])
        assert [turn.sequence_index for turn in t.turns] == [0, 1]
        assert t.turns[1].speaker is Speaker.PROVIDER

    def test_indices_must_increase(self):
        with pytest.raises(ValueError):
            Transcript((
                Turn(Speaker.PATIENT, "a", 2),
                Turn(Speaker.PROVIDER, "b", 2),
            ))

    def test_by_speaker(self, scenario_b):
        assert len(scenario_b.provider_turns) == 1
        assert len(scenario_b.patient_turns) == 1

    def test_appended_returns_new_transcript(self, scenario_b):
        longer = scenario_b.appended(Speaker.PROVIDER, "Thank you.")
        assert len(longer) == 3
        assert len(scenario_b) == 2
        assert longer.turns[-1].sequence_index == 2

    def test_render(self):
        t = Transcript.from_pairs([("provider", "Hello"), ("patient", "Hi")])
        assert t.render() == "Student: Hello\n\nPatient: Hi"


class TestPatientProfile:

    def test_summary(self, profile):
        assert profile.summary == "Maria Lopez, 45yo female, presenting with recurring headaches"

    def test_summary_without_name(self):
        assert PatientProfile(chief_complaint="cough").summary == ""

    def test_first_name(self, profile):
        assert profile.first_name == "maria"

    def test_from_dict(self):
        p = PatientProfile.from_dict({
            "name": "Sam Hill",
            "age": "61",
            "symptoms": "cough; fever ;",
            "red_flags": ["hemoptysis"],
            "unknown": "ignored",
            "diagnosis": None,
        })
        assert p.age == 61
        assert p.symptoms == ("cough", "fever")
        assert p.red_flags == ("hemoptysis",)
        assert p.diagnosis == ""
