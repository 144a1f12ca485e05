"""Transcript model: speaker-tagged turns and the patient being interviewed.

A transcript is supplied once, fully materialized, at scoring time.  Both
classes are immutable so a single transcript can be scored from several
threads without copying.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class Speaker(str, Enum):
    PATIENT = "patient"
    PROVIDER = "provider"

    @classmethod
    def parse(cls, value: str) -> "Speaker":
        """Map a free-form role label onto a speaker.

        Accepts the labels used in exported chat logs ("Student", "Doctor",
        "SP", ...) as well as the canonical values.
        """
        label = str(value).strip().lower()
        if label in _PROVIDER_LABELS:
            return cls.PROVIDER
        if label in _PATIENT_LABELS:
            return cls.PATIENT
        raise ValueError(f"Unknown speaker label: {value!r}")


_PROVIDER_LABELS = {"provider", "student", "doctor", "clinician", "trainee", "user"}
_PATIENT_LABELS = {"patient", "sp", "standardized patient", "assistant"}


@dataclass(frozen=True)
class Turn:
    speaker: Speaker
    text: str
    sequence_index: int


@dataclass(frozen=True)
class Transcript:
    """Ordered dialogue between a simulated patient and a trainee provider."""

    turns: tuple[Turn, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "turns", tuple(self.turns))
        previous: Optional[int] = None
        for turn in self.turns:
            if previous is not None and turn.sequence_index <= previous:
                raise ValueError(
                    "Turn sequence indices must be strictly increasing "
                    f"(got {turn.sequence_index} after {previous})"
                )
            previous = turn.sequence_index

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, str]]) -> "Transcript":
        """Build a transcript from ``(speaker, text)`` pairs, numbering from 0."""
        return cls(tuple(
            Turn(Speaker.parse(speaker), str(text), index)
            for index, (speaker, text) in enumerate(pairs)
        ))

    def appended(self, speaker: Speaker, text: str) -> "Transcript":
        """Return a new transcript with one more turn at the end."""
        next_index = self.turns[-1].sequence_index + 1 if self.turns else 0
        return Transcript(self.turns + (Turn(speaker, text, next_index),))

    def by(self, speaker: Speaker) -> list[Turn]:
        return [t for t in self.turns if t.speaker == speaker]

    @property
    def provider_turns(self) -> list[Turn]:
        return self.by(Speaker.PROVIDER)

    @property
    def patient_turns(self) -> list[Turn]:
        return self.by(Speaker.PATIENT)

    def render(self, provider_label: str = "Student", patient_label: str = "Patient") -> str:
        """Render the transcript as ``Label: text`` paragraphs for a prompt."""
        labels = {Speaker.PROVIDER: provider_label, Speaker.PATIENT: patient_label}
        return "\n\n".join(f"{labels[t.speaker]}: {t.text}" for t in self.turns)

    def __len__(self) -> int:
        return len(self.turns)


@dataclass(frozen=True)
class PatientProfile:
    """The simulated patient an encounter is about.

    Only ``name`` and ``emotional_state`` influence local scoring.  The case
    fields feed the report header and the external grading prompt; the
    history fields feed the scripted responder.
    """

    name: str = ""
    emotional_state: str = ""
    case_id: str = ""
    age: Optional[int] = None
    gender: str = ""
    chief_complaint: str = ""
    diagnosis: str = ""
    accepted_differentials: tuple[str, ...] = ()
    red_flags: tuple[str, ...] = ()
    symptoms: tuple[str, ...] = ()
    timeline: str = ""
    severity: str = ""
    treatments: tuple[str, ...] = ()
    fears: tuple[str, ...] = ()

    @property
    def first_name(self) -> str:
        parts = self.name.lower().split()
        return parts[0] if parts else ""

    @property
    def summary(self) -> str:
        """One-line case summary, e.g. ``Maria Lopez, 45yo female, presenting with ...``."""
        if not self.name:
            return ""
        parts = [self.name]
        demographics = " ".join(
            p for p in (f"{self.age}yo" if self.age is not None else "", self.gender) if p
        )
        if demographics:
            parts.append(demographics)
        summary = ", ".join(parts)
        if self.chief_complaint:
            summary += f", presenting with {self.chief_complaint}"
        return summary

    @classmethod
    def from_dict(cls, data: dict) -> "PatientProfile":
        """Build a profile from a JSON-style mapping, ignoring unknown keys."""
        known = {}
        for key, value in data.items():
            if key not in cls.__dataclass_fields__ or value is None:
                continue
            if key in _TUPLE_FIELDS:
                if isinstance(value, str):
                    value = [v.strip() for v in value.split(";") if v.strip()]
                value = tuple(str(v) for v in value)
            elif key == "age":
                value = int(value)
            else:
                value = str(value)
            known[key] = value
        return cls(**known)


_TUPLE_FIELDS = {
    "accepted_differentials", "red_flags", "symptoms", "treatments", "fears",
}
