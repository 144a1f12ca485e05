"""Feature extractors: pure detectors over a transcript's text.

Every detector is declared as data (a :class:`Detector` row) and interpreted
by :func:`extract_features`, which evaluates each row exactly once per scoring
run and returns a :class:`FeatureSet`.  Rubric criteria refer to detectors by
name, so a signal shared by several rubrics (e.g. "thanks") is only computed
once.

All functions here are deterministic and never raise on empty input: an empty
transcript yields ``False`` / ``0`` for every detector.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence

from transcript import PatientProfile, Speaker, Transcript, Turn

logger = logging.getLogger("encounter_scorer.features")

# Detector kinds
PATTERN = "pattern"          # any phrase / regex match in the scoped text
COUNT = "count"              # number of matches >= threshold
MEAN_LENGTH = "mean_length"  # mean turn length (chars) > threshold
TURN_COUNT = "turn_count"    # number of turns >= threshold
PATIENT_NAME = "patient_name"
EMOTION = "emotion"          # patient's emotional state or an emotion word

DETECTOR_KINDS = (PATTERN, COUNT, MEAN_LENGTH, TURN_COUNT, PATIENT_NAME, EMOTION)

# Scopes
ALL = "all"
FIRST = "first"
LAST = "last"
LAST_N = "last_n"

SCOPES = (ALL, FIRST, LAST, LAST_N)

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'"})


@dataclass(frozen=True)
class Detector:
    """One row of the detector table.

    ``phrases`` are literal, word-bounded alternatives; ``regex`` is used
    verbatim instead when given.  ``scope`` restricts the text to the first,
    last, or last ``window`` turns of ``speaker``.
    """

    name: str
    kind: str = PATTERN
    phrases: tuple[str, ...] = ()
    regex: str = ""
    scope: str = ALL
    window: int = 1
    threshold: float = 0
    speaker: Speaker = Speaker.PROVIDER

    def __post_init__(self) -> None:
        object.__setattr__(self, "phrases", tuple(self.phrases))
        if not isinstance(self.speaker, Speaker):
            object.__setattr__(self, "speaker", Speaker.parse(self.speaker))

    @property
    def pattern(self) -> str:
        if self.regex:
            return self.regex
        return phrase_pattern(self.phrases)


class FeatureError(RuntimeError):
    """Raised when a rubric reads a feature whose detector failed."""


@dataclass(frozen=True)
class Feature:
    name: str
    detected: bool
    value: float = 0
    match: str = ""
    error: str = ""


class FeatureSet(Mapping[str, Feature]):
    """Read-only mapping of detector name to its computed :class:`Feature`."""

    def __init__(self, features: Iterable[Feature] = ()) -> None:
        self._features = {f.name: f for f in features}

    def __getitem__(self, name: str) -> Feature:
        return self._features[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._features)

    def __len__(self) -> int:
        return len(self._features)

    def _get(self, name: str) -> Feature:
        feature = self._features[name]
        if feature.error:
            raise FeatureError(f"Detector '{name}' failed: {feature.error}")
        return feature

    def detected(self, name: str) -> bool:
        return self._get(name).detected

    def value(self, name: str) -> float:
        return self._get(name).value

    def match(self, name: str) -> str:
        """Text that triggered the detector, or ``""``."""
        return self._get(name).match


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def normalize(text: str) -> str:
    """Lower-case *text* and fold typographic apostrophes to ``'``."""
    if not text:
        return ""
    return str(text).translate(_APOSTROPHES).lower()


def phrase_pattern(phrases: Sequence[str]) -> str:
    """Build a word-bounded alternation from literal phrases.

    Order is preserved: with overlapping phrases the earlier one wins, which
    matters for counting detectors.
    """
    if not phrases:
        return r"(?!x)x"  # matches nothing
    alternatives = "|".join(re.escape(normalize(p)) for p in phrases)
    return rf"\b(?:{alternatives})\b"


def first_match(text: str, pattern: str) -> Optional[str]:
    """First match of *pattern* in *text*, or ``None`` when there is none.

    A pattern with a capturing group reports its first group, so a detector
    can name the cue word rather than the whole matched span.
    """
    if not text:
        return None
    m = re.search(pattern, text, re.IGNORECASE)
    if m is None:
        return None
    if m.re.groups and m.group(1) is not None:
        return m.group(1).strip()
    return m.group(0).strip()


def count_matches(text: str, pattern: str) -> int:
    if not text:
        return 0
    return sum(1 for _ in re.finditer(pattern, text, re.IGNORECASE))


def mean_turn_length(turns: Sequence[Turn]) -> float:
    """Mean length in characters of the raw turn texts (0.0 when empty)."""
    if not turns:
        return 0.0
    return sum(len(t.text) for t in turns) / len(turns)


def mentions_first_name(text: str, first_name: str) -> bool:
    """Whether *first_name* appears anywhere in *text*.

    An empty name never counts as mentioned.
    """
    name = normalize(first_name).strip()
    if not name or not text:
        return False
    return name in normalize(text)


def emotion_pattern(emotional_state: str, words: Sequence[str]) -> str:
    """Pattern for the patient's emotional state or any of the emotion *words*."""
    candidates = list(words)
    state = normalize(emotional_state).strip()
    if state:
        candidates.insert(0, state)
    return phrase_pattern(candidates)


def scoped_turns(
    transcript: Transcript, speaker: Speaker, scope: str = ALL, window: int = 1,
) -> list[Turn]:
    turns = transcript.by(speaker)
    if not turns:
        return []
    if scope == FIRST:
        return turns[:1]
    if scope == LAST:
        return turns[-1:]
    if scope == LAST_N:
        return turns[-max(window, 1):]
    return turns


def scoped_text(
    transcript: Transcript, speaker: Speaker, scope: str = ALL, window: int = 1,
) -> str:
    """Normalized text of the scoped turns, joined with single spaces."""
    return " ".join(
        normalize(t.text) for t in scoped_turns(transcript, speaker, scope, window)
    )


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------

def evaluate_detector(
    detector: Detector,
    transcript: Transcript,
    profile: Optional[PatientProfile] = None,
) -> Feature:
    """Compute a single detector's feature."""
    profile = profile or PatientProfile()
    turns = scoped_turns(transcript, detector.speaker, detector.scope, detector.window)
    text = " ".join(normalize(t.text) for t in turns)

    if detector.kind == PATTERN:
        match = first_match(text, detector.pattern)
        return _presence(detector.name, match)
    if detector.kind == COUNT:
        n = count_matches(text, detector.pattern)
        match = first_match(text, detector.pattern) if n else None
        return Feature(detector.name, n >= detector.threshold and n > 0, n, match or "")
    if detector.kind == MEAN_LENGTH:
        mean = mean_turn_length(turns)
        return Feature(detector.name, mean > detector.threshold, mean)
    if detector.kind == TURN_COUNT:
        n = len(turns)
        return Feature(detector.name, n >= detector.threshold and n > 0, n)
    if detector.kind == PATIENT_NAME:
        name = profile.first_name
        return _presence(detector.name, name if mentions_first_name(text, name) else None)
    if detector.kind == EMOTION:
        pattern = emotion_pattern(profile.emotional_state, detector.phrases)
        return _presence(detector.name, first_match(text, pattern))
    raise ValueError(f"Unknown detector kind: {detector.kind!r}")


def _presence(name: str, match: Optional[str]) -> Feature:
    found = match is not None
    return Feature(name, found, 1 if found else 0, match or "")


def extract_features(
    transcript: Transcript,
    detectors: Iterable[Detector],
    profile: Optional[PatientProfile] = None,
) -> FeatureSet:
    """Evaluate every detector once and collect the results.

    A detector that raises is recorded as failed rather than aborting the
    run; only rubrics that read it are affected (see :class:`FeatureError`).
    """
    features = []
    for detector in detectors:
        try:
            features.append(evaluate_detector(detector, transcript, profile))
        except Exception as exc:
            logger.exception("Detector '%s' failed.", detector.name)
            features.append(Feature(detector.name, False, 0, error=str(exc) or type(exc).__name__))
    return FeatureSet(features)
