"""Score report types and the aggregator shared by every scoring path.

The local analyzer, the external-report parser and the fallback generator all
produce the same :class:`ScoreReport` through :func:`aggregate`, so the total
is always recomputed with one formula::

    total = round_half_up(sum(score / max_points * weight_percent))

Rounding happens once, on the exact (rational) sum.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Iterable, Optional, Sequence

from rubrics import RubricConfig, RubricSet
from transcript import PatientProfile

# Report sources
LOCAL = "local"
EXTERNAL = "external"
FALLBACK = "fallback"
NO_DATA = "no_data"


@dataclass(frozen=True)
class CriterionScore:
    label: str
    earned_points: float
    max_points: int
    rationale: str
    was_detected: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "earned_points": self.earned_points,
            "max_points": self.max_points,
            "rationale": self.rationale,
            "was_detected": self.was_detected,
        }


@dataclass(frozen=True)
class RubricResult:
    category: str
    name: str
    score: float
    max_points: int
    weight_percent: float
    evidence_items: tuple[str, ...] = ()
    feedback_text: str = ""
    criterion_breakdown: tuple[CriterionScore, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "evidence_items", tuple(self.evidence_items))
        object.__setattr__(self, "criterion_breakdown", tuple(self.criterion_breakdown))

    @classmethod
    def single(
        cls,
        rubric: RubricConfig,
        score: float,
        feedback: str,
        evidence: Sequence[str] = (),
        detected: bool = False,
    ) -> "RubricResult":
        """A result whose breakdown is one line covering the whole rubric.

        Used by the parser and the fallback generator, which only know a
        category-level score.
        """
        return cls(
            category=rubric.key,
            name=rubric.name,
            score=score,
            max_points=rubric.max_points,
            weight_percent=rubric.weight_percent,
            evidence_items=tuple(evidence),
            feedback_text=feedback,
            criterion_breakdown=(
                CriterionScore(rubric.name, score, rubric.max_points, feedback, detected),
            ),
        )

    @property
    def contribution(self) -> Fraction:
        """Exact weighted contribution of this rubric to the total."""
        if not self.max_points:
            return Fraction(0)
        return Fraction(self.score) / self.max_points * Fraction(self.weight_percent)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "name": self.name,
            "score": self.score,
            "max_points": self.max_points,
            "weight_percent": self.weight_percent,
            "evidence_items": list(self.evidence_items),
            "feedback_text": self.feedback_text,
            "criterion_breakdown": [c.to_dict() for c in self.criterion_breakdown],
        }


@dataclass(frozen=True)
class QuotedEvidence:
    quote: str
    rubric: str
    explanation: str

    def to_dict(self) -> dict[str, str]:
        return {"quote": self.quote, "rubric": self.rubric, "explanation": self.explanation}


@dataclass(frozen=True)
class RubricOutcome:
    """A rubric result plus the report-level bullets it contributes."""

    result: RubricResult
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    missed_opportunities: tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoreReport:
    rubric_set: str
    source: str
    rubric_results: dict[str, RubricResult]
    total_score: int
    strengths: tuple[str, ...] = ()
    improvements: tuple[str, ...] = ()
    missed_opportunities: tuple[str, ...] = ()
    overall_assessment: str = ""
    feedback_note: str = ""
    suggested_focus: str = ""
    quoted_evidence: tuple[QuotedEvidence, ...] = ()
    case_id: str = ""
    patient_summary: str = ""
    ground_truth_diagnosis: str = ""
    accepted_differentials: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "rubric_set": self.rubric_set,
            "source": self.source,
            "case_id": self.case_id,
            "patient_summary": self.patient_summary,
            "ground_truth_diagnosis": self.ground_truth_diagnosis,
            "accepted_differentials": list(self.accepted_differentials),
            "total_score": self.total_score,
            "rubric_results": {k: r.to_dict() for k, r in self.rubric_results.items()},
            "strengths": list(self.strengths),
            "improvements": list(self.improvements),
            "missed_opportunities": list(self.missed_opportunities),
            "overall_assessment": self.overall_assessment,
            "feedback_note": self.feedback_note,
            "suggested_focus": self.suggested_focus,
            "quoted_evidence": [q.to_dict() for q in self.quoted_evidence],
        }

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def round_half_up(value: Fraction | float) -> int:
    return math.floor(Fraction(value) + Fraction(1, 2))


def weighted_total(results: Iterable[RubricResult]) -> int:
    """Round the exact weighted sum once and clamp it to 0..100."""
    total = sum((r.contribution for r in results), Fraction(0))
    return max(0, min(100, round_half_up(total)))


def aggregate(
    rubric_set: RubricSet,
    outcomes: Sequence[RubricOutcome],
    source: str,
    profile: Optional[PatientProfile] = None,
    *,
    strengths: Optional[Sequence[str]] = None,
    improvements: Optional[Sequence[str]] = None,
    missed_opportunities: Optional[Sequence[str]] = None,
    overall_assessment: Optional[str] = None,
    feedback_note: str = "",
    suggested_focus: str = "",
    quoted_evidence: Sequence[QuotedEvidence] = (),
) -> ScoreReport:
    """Combine per-rubric outcomes into a :class:`ScoreReport`.

    *outcomes* must follow the rubric set's order; bullet lists are
    concatenated in that order unless explicit report-level lists are given
    (the parser supplies its own bullet sections).
    """
    results = {o.result.category: o.result for o in outcomes}
    total = weighted_total(results.values())

    if strengths is None:
        strengths = [s for o in outcomes for s in o.strengths]
    if improvements is None:
        improvements = [s for o in outcomes for s in o.improvements]
    if missed_opportunities is None:
        missed_opportunities = [s for o in outcomes for s in o.missed_opportunities]
    if overall_assessment is None:
        overall_assessment = rubric_set.assessment_for(total)

    profile = profile or PatientProfile()
    return ScoreReport(
        rubric_set=rubric_set.key,
        source=source,
        rubric_results=results,
        total_score=total,
        strengths=tuple(strengths),
        improvements=tuple(improvements),
        missed_opportunities=tuple(missed_opportunities),
        overall_assessment=overall_assessment,
        feedback_note=feedback_note,
        suggested_focus=suggested_focus,
        quoted_evidence=tuple(quoted_evidence),
        case_id=profile.case_id,
        patient_summary=profile.summary,
        ground_truth_diagnosis=profile.diagnosis,
        accepted_differentials=tuple(profile.accepted_differentials),
    )
