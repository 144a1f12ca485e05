"""Recover a :class:`~report.ScoreReport` from free-text grading output.

The external grader is asked for this layout (see ``config.GRADING_PROMPT``)::

    RUBRIC SCORES:
    HistoryGathering: 4 | Evidence: "quote"; "quote" | Feedback: text
    ...
    STRENGTHS:
    - bullet
    IMPROVEMENTS:
    - bullet
    MISSED OPPORTUNITIES:
    - bullet
    FEEDBACK NOTE (max 250 words):
    free text
    SUGGESTED FOCUS:
    free text
    ---

Nothing about that layout is trusted.  Each field is scanned independently and
falls back to a fixed default, so a partial or garbled report still yields a
complete ScoreReport.  The total is always recomputed from the parsed rubric
scores; any total written in the text is ignored.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import config
from report import EXTERNAL, QuotedEvidence, RubricOutcome, RubricResult, ScoreReport, aggregate
from rubrics import RubricConfig, RubricSet
from transcript import PatientProfile

logger = logging.getLogger("encounter_scorer.parser")

# A header line such as "IMPROVEMENTS:" or "FEEDBACK NOTE (max 250 words):"
_HEADER_LINE = re.compile(r"\n[ \t]*[A-Z][A-Z /&]*(?:\([^)\n]*\))?[ \t]*:")

# Remainder of a header after its marker, e.g. " (max 250 words):"
_HEADER_TAIL = re.compile(r"[ \t]*(?:\([^)\n]*\))?[ \t]*:?")

_BULLET = re.compile(r"^[ \t]*[-–][ \t]*(.*)$")


def _coerce_text(text: object) -> str:
    if text is None:
        return ""
    if isinstance(text, (bytes, bytearray)):
        return bytes(text).decode("utf-8", errors="replace")
    return str(text)


def _rubric_line_pattern(rubric: RubricConfig) -> re.Pattern[str]:
    names = {re.escape(rubric.label), re.escape(rubric.name)}
    alternatives = "|".join(sorted(names, key=len, reverse=True))
    return re.compile(
        rf"^[ \t*#-]*(?:{alternatives})[ \t*]*:[ \t*]*([0-9]{{1,3}})[ \t]*(?:/[ \t]*[0-9]+[ \t]*)?"
        r"\|[ \t]*Evidence[ \t]*:[ \t]*([^|\n]*)\|[ \t]*Feedback[ \t]*:[ \t]*([^\n]*)",
        re.IGNORECASE | re.MULTILINE,
    )


def _split_quotes(evidence: str) -> list[str]:
    quotes = []
    for part in evidence.split(";"):
        quote = part.strip().strip("\"'“”").strip()
        if quote and quote.lower() not in ("none", "n/a", "-"):
            quotes.append(quote)
    return quotes


def parse_rubric_line(text: str, rubric: RubricConfig) -> Optional[RubricResult]:
    """Parse the score line for *rubric*, or ``None`` if absent or malformed.

    A score above the rubric's ``max_points`` counts as malformed.
    """
    match = _rubric_line_pattern(rubric).search(text)
    if not match:
        return None
    score = int(match.group(1))
    if score > rubric.max_points:
        logger.warning(
            "Score %d for '%s' exceeds %d; using default.",
            score, rubric.label, rubric.max_points,
        )
        return None
    feedback = match.group(3).strip() or config.PARSER_DEFAULT_FEEDBACK
    evidence = _split_quotes(match.group(2))
    return RubricResult.single(rubric, score, feedback, evidence, detected=True)


def default_rubric_result(rubric: RubricConfig) -> RubricResult:
    return RubricResult.single(
        rubric, rubric.default_score, config.PARSER_DEFAULT_FEEDBACK,
    )


def extract_bullets(text: str, header: str) -> list[str]:
    """Dash-prefixed lines under *header*, or one generic bullet.

    The section runs from the first occurrence of *header* to the next
    all-caps header line, scanning at most ``PARSER_SECTION_WINDOW``
    characters.
    """
    start = text.find(header)
    if start == -1:
        return [config.PARSER_DEFAULT_BULLET]
    body = text[start + len(header):start + len(header) + config.PARSER_SECTION_WINDOW]
    next_header = _HEADER_LINE.search(body)
    if next_header:
        body = body[:next_header.start()]

    bullets = []
    for line in body.splitlines():
        match = _BULLET.match(line)
        if match:
            item = match.group(1).strip()
            if item and item.strip("-") and not item.startswith("["):
                bullets.append(item)
    return bullets or [config.PARSER_DEFAULT_BULLET]


def extract_section(text: str, start_marker: str, end_marker: str, default: str) -> str:
    """Trimmed text between two markers, capped when the end marker is absent."""
    start = text.find(start_marker)
    if start == -1:
        return default
    rest = text[start + len(start_marker):]
    tail = _HEADER_TAIL.match(rest)
    if tail:
        rest = rest[tail.end():]
    end = rest.find(end_marker)
    if end == -1:
        rest = rest[:config.PARSER_SECTION_WINDOW]
    else:
        rest = rest[:end]
    return rest.strip() or default


def parse_grading_report(
    text: object,
    rubric_set: RubricSet,
    profile: Optional[PatientProfile] = None,
) -> ScoreReport:
    """Parse external grading *text* into a ScoreReport.  Never raises."""
    text = _coerce_text(text)

    outcomes = []
    quoted = []
    for rubric in rubric_set.rubrics:
        result = parse_rubric_line(text, rubric)
        if result is None:
            logger.debug("No score line for '%s'; using default.", rubric.label)
            result = default_rubric_result(rubric)
        for quote in result.evidence_items:
            quoted.append(QuotedEvidence(quote, rubric.name, result.feedback_text))
        outcomes.append(RubricOutcome(result))

    return aggregate(
        rubric_set,
        outcomes,
        EXTERNAL,
        profile,
        strengths=extract_bullets(text, "STRENGTHS:"),
        improvements=extract_bullets(text, "IMPROVEMENTS:"),
        missed_opportunities=extract_bullets(text, "MISSED OPPORTUNITIES:"),
        feedback_note=extract_section(
            text, "FEEDBACK NOTE", "SUGGESTED FOCUS:", config.PARSER_DEFAULT_FEEDBACK_NOTE,
        ),
        suggested_focus=extract_section(
            text, "SUGGESTED FOCUS:", "---", config.PARSER_DEFAULT_SUGGESTED_FOCUS,
        ),
        quoted_evidence=quoted,
    )
