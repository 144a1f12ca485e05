"""Rubric configuration: the declarative criterion table the engine interprets.

A :class:`RubricSet` bundles the detectors it needs, its rubrics (each an
ordered list of :class:`Criterion` rows made of point-weighted
:class:`Signal` s) and the score bands used for the overall assessment.
Everything is plain data so new rubric variants can be added, or loaded from
JSON, without touching evaluator control flow.

Configuration mistakes are programmer errors and are rejected when the set
is constructed (:class:`ConfigurationError`).
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional

import config
from features import COUNT, DETECTOR_KINDS, PATTERN, SCOPES, Detector

logger = logging.getLogger("encounter_scorer.rubrics")

# Where an undetected signal's advice is reported
IMPROVEMENT = "improvement"
MISSED_OPPORTUNITY = "missed_opportunity"

ANY = "any"
ALL = "all"


class ConfigurationError(ValueError):
    """Raised when a rubric set is internally inconsistent."""


@dataclass(frozen=True)
class Signal:
    """An independently scored sub-condition of a criterion.

    The signal is detected when any of ``features`` fired.  ``found`` and
    ``missing`` are rationale texts and may reference ``{value}``, the first
    feature's numeric value, and ``{match}``, the text that triggered the
    first detected feature.
    """

    features: tuple[str, ...]
    points: int
    found: str
    missing: str
    strength: str = ""
    advice: str = ""
    advice_kind: str = IMPROVEMENT

    def __post_init__(self) -> None:
        features = self.features
        if isinstance(features, str):
            features = (features,)
        object.__setattr__(self, "features", tuple(features))


@dataclass(frozen=True)
class Escalation:
    """Alternate rationale used when a criterion is missed with a distressed patient."""

    rationale: str
    advice: str
    states: frozenset[str] = config.DISTRESS_STATES

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "states", frozenset(s.lower() for s in self.states)
        )

    def applies_to(self, emotional_state: str) -> bool:
        return emotional_state.strip().lower() in self.states


@dataclass(frozen=True)
class Criterion:
    label: str
    max_points: int
    signals: tuple[Signal, ...]
    detected_when: str = ANY
    escalation: Optional[Escalation] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "signals", tuple(self.signals))


@dataclass(frozen=True)
class RubricConfig:
    """One scoring category.

    ``label`` is the token used in external grading reports
    (``<label>: <score> | Evidence: ... | Feedback: ...``); ``default_score``
    is what the parser substitutes when that line is missing.
    """

    key: str
    label: str
    name: str
    max_points: int
    weight_percent: float
    criteria: tuple[Criterion, ...]
    default_score: int = 0
    description: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "criteria", tuple(self.criteria))


@dataclass(frozen=True)
class ScoreBand:
    minimum: int
    assessment: str


@dataclass(frozen=True)
class RubricSet:
    key: str
    title: str
    rubrics: tuple[RubricConfig, ...]
    detectors: tuple[Detector, ...]
    score_bands: tuple[ScoreBand, ...]
    no_data_assessment: str = config.NO_DATA_ASSESSMENT
    _rubric_index: dict[str, RubricConfig] = field(
        default_factory=dict, init=False, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "rubrics", tuple(self.rubrics))
        object.__setattr__(self, "detectors", tuple(self.detectors))
        object.__setattr__(self, "score_bands", tuple(self.score_bands))
        validate_rubric_set(self)
        object.__setattr__(self, "_rubric_index", {r.key: r for r in self.rubrics})

    def rubric(self, key: str) -> RubricConfig:
        return self._rubric_index[key]

    @property
    def keys(self) -> list[str]:
        return [r.key for r in self.rubrics]

    @property
    def scale(self) -> int:
        """Largest per-rubric point range, used when prompting an external grader."""
        return max(r.max_points for r in self.rubrics)

    def assessment_for(self, total_score: int) -> str:
        """Overall assessment of the first band whose minimum *total_score* reaches."""
        for band in self.score_bands:
            if total_score >= band.minimum:
                return band.assessment
        return self.score_bands[-1].assessment

    def summary(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "title": self.title,
            "rubrics": [
                {
                    "key": r.key,
                    "label": r.label,
                    "name": r.name,
                    "max_points": r.max_points,
                    "weight_percent": r.weight_percent,
                    "criteria": [c.label for c in r.criteria],
                }
                for r in self.rubrics
            ],
        }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_rubric_set(rubric_set: RubricSet) -> None:
    """Raise :class:`ConfigurationError` describing the first inconsistency found."""
    problems = _find_problems(rubric_set)
    if problems:
        raise ConfigurationError(
            f"Invalid rubric set '{rubric_set.key}': " + "; ".join(problems)
        )


def _find_problems(rubric_set: RubricSet) -> list[str]:
    problems: list[str] = []

    if not rubric_set.rubrics:
        return ["no rubrics defined"]

    detector_names = [d.name for d in rubric_set.detectors]
    if len(set(detector_names)) != len(detector_names):
        problems.append("duplicate detector names")
    for d in rubric_set.detectors:
        if d.kind not in DETECTOR_KINDS:
            problems.append(f"detector '{d.name}' has unknown kind '{d.kind}'")
        if d.scope not in SCOPES:
            problems.append(f"detector '{d.name}' has unknown scope '{d.scope}'")
        if d.kind in (PATTERN, COUNT):
            try:
                re.compile(d.pattern)
            except re.error as exc:
                problems.append(f"detector '{d.name}' has an invalid pattern: {exc}")
    known = set(detector_names)

    keys = [r.key for r in rubric_set.rubrics]
    labels = [r.label.lower() for r in rubric_set.rubrics]
    if len(set(keys)) != len(keys) or len(set(labels)) != len(labels):
        problems.append("duplicate rubric keys or labels")

    total_weight = sum(r.weight_percent for r in rubric_set.rubrics)
    if not math.isclose(total_weight, 100.0):
        problems.append(f"weights sum to {total_weight:g}, expected 100")

    for rubric in rubric_set.rubrics:
        if rubric.max_points <= 0:
            problems.append(f"{rubric.key}: max_points must be positive")
        if rubric.weight_percent < 0:
            problems.append(f"{rubric.key}: negative weight")
        if not 0 <= rubric.default_score <= rubric.max_points:
            problems.append(f"{rubric.key}: default_score out of range")
        criteria_points = sum(c.max_points for c in rubric.criteria)
        if criteria_points != rubric.max_points:
            problems.append(
                f"{rubric.key}: criteria points sum to {criteria_points}, "
                f"expected {rubric.max_points}"
            )
        for criterion in rubric.criteria:
            where = f"{rubric.key}/{criterion.label}"
            if not criterion.signals:
                problems.append(f"{where}: no signals")
            signal_points = sum(s.points for s in criterion.signals)
            if signal_points != criterion.max_points:
                problems.append(
                    f"{where}: signal points sum to {signal_points}, "
                    f"expected {criterion.max_points}"
                )
            if criterion.detected_when not in (ANY, ALL):
                problems.append(f"{where}: detected_when must be 'any' or 'all'")
            for signal in criterion.signals:
                if not signal.features:
                    problems.append(f"{where}: signal without features")
                for name in signal.features:
                    if name not in known:
                        problems.append(f"{where}: unknown detector '{name}'")
                if signal.advice_kind not in (IMPROVEMENT, MISSED_OPPORTUNITY):
                    problems.append(f"{where}: unknown advice kind '{signal.advice_kind}'")

    if not rubric_set.score_bands:
        problems.append("no score bands defined")
    else:
        minimums = [b.minimum for b in rubric_set.score_bands]
        if minimums != sorted(minimums, reverse=True) or len(set(minimums)) != len(minimums):
            problems.append("score bands must be ordered by strictly decreasing minimum")
        if minimums[-1] > 0:
            problems.append("lowest score band must start at 0")

    return problems


# ---------------------------------------------------------------------------
# Loading from JSON
# ---------------------------------------------------------------------------

def rubric_set_from_dict(data: dict[str, Any]) -> RubricSet:
    """Build a :class:`RubricSet` from its JSON representation.

    Layout mirrors the dataclasses: ``detectors`` and ``rubrics`` lists,
    ``score_bands`` as ``[[minimum, text], ...]``, criteria with ``signals``
    and an optional ``escalation``.
    """
    try:
        detectors = tuple(Detector(**d) for d in data.get("detectors", []))
        rubrics = tuple(_rubric_from_dict(r) for r in data["rubrics"])
        bands = tuple(ScoreBand(int(m), str(t)) for m, t in data["score_bands"])
        return RubricSet(
            key=data["key"],
            title=data.get("title", data["key"]),
            rubrics=rubrics,
            detectors=detectors,
            score_bands=bands,
            no_data_assessment=data.get("no_data_assessment", config.NO_DATA_ASSESSMENT),
        )
    except (KeyError, TypeError) as exc:
        raise ConfigurationError(f"Malformed rubric set definition: {exc}") from exc


def _rubric_from_dict(data: dict[str, Any]) -> RubricConfig:
    criteria = []
    for c in data["criteria"]:
        escalation = None
        if c.get("escalation"):
            e = c["escalation"]
            escalation = Escalation(
                rationale=e["rationale"],
                advice=e.get("advice", ""),
                states=frozenset(e.get("states", config.DISTRESS_STATES)),
            )
        criteria.append(Criterion(
            label=c["label"],
            max_points=int(c["max_points"]),
            signals=tuple(Signal(**s) for s in c["signals"]),
            detected_when=c.get("detected_when", ANY),
            escalation=escalation,
        ))
    return RubricConfig(
        key=data["key"],
        label=data.get("label", data["key"]),
        name=data.get("name", data["key"]),
        max_points=int(data["max_points"]),
        weight_percent=float(data["weight_percent"]),
        criteria=tuple(criteria),
        default_score=int(data.get("default_score", 0)),
        description=data.get("description", ""),
    )


def load_rubric_set(path: str) -> RubricSet:
    """Load a rubric set from a JSON file, exiting on unreadable files."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read rubric file '%s': %s", path, exc)
        raise SystemExit(1)
    return rubric_set_from_dict(data)
