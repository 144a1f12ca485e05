"""Local scoring engine: transcript -> features -> rubric evaluators -> report.

The engine is configured with a :class:`~rubrics.RubricSet` and holds no
other state, so one instance can score many transcripts concurrently.  Every
run builds its own :class:`~features.FeatureSet`; nothing is cached between
runs.

Three entry points produce the same :class:`~report.ScoreReport` shape:

* :meth:`ScoringEngine.score`: deterministic local text analysis.
* :meth:`ScoringEngine.parse`: recover a report from external grading text.
* :meth:`ScoringEngine.fallback`: turn-count-only report.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

import config
from fallback import generate_fallback_report
from features import FeatureSet, extract_features
from report import (
    LOCAL,
    NO_DATA,
    CriterionScore,
    RubricOutcome,
    RubricResult,
    ScoreReport,
    aggregate,
)
from report_parser import parse_grading_report
from rubric_sets import get_rubric_set
from rubrics import ALL, IMPROVEMENT, Criterion, RubricConfig, RubricSet, Signal
from transcript import PatientProfile, Transcript

logger = logging.getLogger("encounter_scorer.scoring")


# ---------------------------------------------------------------------------
# Criterion / rubric evaluation
# ---------------------------------------------------------------------------

def _signal_detected(signal: Signal, features: FeatureSet) -> bool:
    return any(features.detected(name) for name in signal.features)


def _signal_text(template: str, signal: Signal, features: FeatureSet) -> str:
    match = next(
        (features.match(name) for name in signal.features if features.detected(name)),
        "",
    )
    return template.format(value=features.value(signal.features[0]), match=match)


def evaluate_criterion(
    criterion: Criterion,
    features: FeatureSet,
    profile: PatientProfile,
) -> tuple[CriterionScore, list[str], list[str], list[str], list[str]]:
    """Score one criterion.

    Returns ``(score, evidence, strengths, improvements, missed)``.  Points
    are additive per signal, so a criterion can be partially earned.
    """
    earned = 0
    parts: list[str] = []
    hits: list[bool] = []
    evidence: list[str] = []
    strengths: list[str] = []
    improvements: list[str] = []
    missed: list[str] = []

    for signal in criterion.signals:
        hit = _signal_detected(signal, features)
        hits.append(hit)
        if hit:
            earned += signal.points
            text = _signal_text(signal.found, signal, features)
            evidence.append(text)
            if signal.strength:
                strengths.append(signal.strength)
        else:
            text = _signal_text(signal.missing, signal, features)
            if signal.advice:
                target = improvements if signal.advice_kind == IMPROVEMENT else missed
                target.append(signal.advice)
        if len(criterion.signals) > 1:
            text = f"{text} ({signal.points if hit else 0}/{signal.points} pts)"
        parts.append(text)

    detected = all(hits) if criterion.detected_when == ALL else any(hits)
    rationale = " | ".join(parts)

    escalation = criterion.escalation
    if not detected and escalation and escalation.applies_to(profile.emotional_state):
        rationale = escalation.rationale
        if escalation.advice:
            improvements.append(escalation.advice)

    score = CriterionScore(
        label=criterion.label,
        earned_points=earned,
        max_points=criterion.max_points,
        rationale=rationale,
        was_detected=detected,
    )
    return score, evidence, strengths, improvements, missed


def evaluate_rubric(
    rubric: RubricConfig,
    features: FeatureSet,
    profile: PatientProfile,
) -> RubricOutcome:
    """Apply a rubric's criterion checklist to a precomputed feature set."""
    breakdown: list[CriterionScore] = []
    evidence: list[str] = []
    strengths: list[str] = []
    improvements: list[str] = []
    missed: list[str] = []

    for criterion in rubric.criteria:
        score, ev, st, im, mi = evaluate_criterion(criterion, features, profile)
        breakdown.append(score)
        evidence.extend(ev)
        strengths.extend(st)
        improvements.extend(im)
        missed.extend(mi)

    total = sum(c.earned_points for c in breakdown)
    feedback = "; ".join(f"{c.label}: {c.rationale}" for c in breakdown)
    result = RubricResult(
        category=rubric.key,
        name=rubric.name,
        score=total,
        max_points=rubric.max_points,
        weight_percent=rubric.weight_percent,
        evidence_items=tuple(evidence),
        feedback_text=feedback,
        criterion_breakdown=tuple(breakdown),
    )
    return RubricOutcome(result, tuple(strengths), tuple(improvements), tuple(missed))


def _zeroed_outcome(rubric: RubricConfig, message: str) -> RubricOutcome:
    breakdown = tuple(
        CriterionScore(c.label, 0, c.max_points, message, False)
        for c in rubric.criteria
    )
    result = RubricResult(
        category=rubric.key,
        name=rubric.name,
        score=0,
        max_points=rubric.max_points,
        weight_percent=rubric.weight_percent,
        evidence_items=(),
        feedback_text=message,
        criterion_breakdown=breakdown,
    )
    return RubricOutcome(result)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class ScoringEngine:
    """Score encounters against one rubric set.

    *rubric_set* may be a :class:`RubricSet` or the key of a built-in set.
    """

    def __init__(self, rubric_set: RubricSet | str = config.DEFAULT_RUBRIC_SET):
        if isinstance(rubric_set, str):
            rubric_set = get_rubric_set(rubric_set)
        self.rubric_set = rubric_set

    def score(
        self, transcript: Transcript, profile: Optional[PatientProfile] = None,
    ) -> ScoreReport:
        """Deterministic local analysis of *transcript*."""
        profile = profile or PatientProfile()

        if not transcript.provider_turns:
            return self.no_data_report(profile)

        features = extract_features(transcript, self.rubric_set.detectors, profile)
        outcomes = []
        for rubric in self.rubric_set.rubrics:
            try:
                outcomes.append(evaluate_rubric(rubric, features, profile))
            except Exception:
                logger.exception(
                    "Evaluation of rubric '%s' failed; substituting default result.",
                    rubric.key,
                )
                outcomes.append(
                    _zeroed_outcome(rubric, config.EVALUATION_ERROR_FEEDBACK)
                )

        report = aggregate(self.rubric_set, outcomes, LOCAL, profile)
        pending = report.improvements + report.missed_opportunities
        focus = pending[0] if pending else config.LOCAL_DEFAULT_FOCUS
        return replace(report, suggested_focus=focus)

    def no_data_report(self, profile: Optional[PatientProfile] = None) -> ScoreReport:
        """Degenerate report for a transcript without provider turns."""
        outcomes = [
            _zeroed_outcome(rubric, config.NO_DATA_MESSAGE)
            for rubric in self.rubric_set.rubrics
        ]
        return aggregate(
            self.rubric_set,
            outcomes,
            NO_DATA,
            profile,
            strengths=[],
            improvements=[config.NO_DATA_MESSAGE],
            missed_opportunities=[],
            overall_assessment=self.rubric_set.no_data_assessment,
        )

    def parse(self, text: object, profile: Optional[PatientProfile] = None) -> ScoreReport:
        """Recover a report from external grading text (never raises)."""
        return parse_grading_report(text, self.rubric_set, profile)

    def fallback(
        self, transcript: Transcript, profile: Optional[PatientProfile] = None,
    ) -> ScoreReport:
        """Turn-count-only report for when no external grading is available."""
        return generate_fallback_report(transcript, self.rubric_set, profile)

    def grade(
        self,
        transcript: Transcript,
        profile: Optional[PatientProfile] = None,
        grading_text: Optional[str] = None,
    ) -> ScoreReport:
        """Parse *grading_text* when present, otherwise degrade to the fallback."""
        if grading_text and grading_text.strip():
            return self.parse(grading_text, profile)
        logger.info("No external grading text available; using fallback scoring.")
        return self.fallback(transcript, profile)


def score_transcript(
    transcript: Transcript,
    profile: Optional[PatientProfile] = None,
    rubric_set: RubricSet | str = config.DEFAULT_RUBRIC_SET,
) -> ScoreReport:
    """Convenience wrapper around :meth:`ScoringEngine.score`."""
    return ScoringEngine(rubric_set).score(transcript, profile)
