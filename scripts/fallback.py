"""Turn-count-only report used when no external grading text is available.

No text is analysed: every rubric receives the same level, derived from the
number of provider turns, and the same generic feedback.  The uniform content
is what distinguishes a fallback report from a local analysis.
"""

from __future__ import annotations

import logging
from fractions import Fraction
from typing import Optional

import config
from report import FALLBACK, RubricOutcome, RubricResult, ScoreReport, aggregate
from rubrics import RubricConfig, RubricSet
from transcript import PatientProfile, Transcript

logger = logging.getLogger("encounter_scorer.fallback")


def fallback_level(provider_turns: int) -> int:
    """``floor(turns / 2) + 1`` clamped to ``1..FALLBACK_LEVELS``."""
    return max(1, min(config.FALLBACK_LEVELS, provider_turns // 2 + 1))


def _scaled(level: int, rubric: RubricConfig) -> int | float:
    points = Fraction(level * rubric.max_points, config.FALLBACK_LEVELS)
    if points.denominator == 1:
        return int(points)
    return float(points)


def generate_fallback_report(
    transcript: Transcript,
    rubric_set: RubricSet,
    profile: Optional[PatientProfile] = None,
) -> ScoreReport:
    level = fallback_level(len(transcript.provider_turns))
    logger.info(
        "Fallback scoring: %d provider turns -> level %d/%d.",
        len(transcript.provider_turns), level, config.FALLBACK_LEVELS,
    )

    outcomes = [
        RubricOutcome(RubricResult.single(
            rubric, _scaled(level, rubric), config.FALLBACK_FEEDBACK, detected=True,
        ))
        for rubric in rubric_set.rubrics
    ]
    return aggregate(
        rubric_set,
        outcomes,
        FALLBACK,
        profile,
        strengths=config.FALLBACK_STRENGTHS,
        improvements=config.FALLBACK_IMPROVEMENTS,
        missed_opportunities=config.FALLBACK_MISSED,
        feedback_note=config.FALLBACK_FEEDBACK_NOTE,
        suggested_focus=config.FALLBACK_SUGGESTED_FOCUS,
    )
