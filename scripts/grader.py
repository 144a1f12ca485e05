"""Encounter Scorer - batch scoring of simulated patient encounters.

Reads conversation transcripts (one row per turn) and optional patient cases
from Excel/CSV files, scores every encounter, and writes one result row per
encounter back to Excel/CSV.

Three modes are available:

* ``local``    - deterministic text analysis, no network access.
* ``llm``      - an external model writes a grading report which is parsed;
                 encounters whose report cannot be fetched fall back to
                 turn-count scoring.
* ``fallback`` - turn-count scoring only.

Supports multiple LLM providers: OpenAI, Anthropic (Claude), and Google (Gemini).
"""

from __future__ import annotations

import argparse
import datetime
import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import pandas as pd

import config
from providers import SUPPORTED_PROVIDERS, LLMCaller, MissingAPIKeyError, create_caller, resolve_model
from report import ScoreReport
from rubric_sets import RUBRIC_SETS, get_rubric_set
from rubrics import ConfigurationError, RubricSet, load_rubric_set
from scoring import ScoringEngine
from transcript import PatientProfile, Transcript

logger = logging.getLogger("encounter_scorer")

MODES = ("local", "llm", "fallback")

TRANSCRIPT_COLUMNS = ["encounter_id", "speaker", "text"]

# Case file column -> PatientProfile field
CASE_COLUMNS = {
    "patient_name": "name",
    "name": "name",
    "emotional_state": "emotional_state",
    "case_id": "case_id",
    "age": "age",
    "gender": "gender",
    "chief_complaint": "chief_complaint",
    "diagnosis": "diagnosis",
    "accepted_differentials": "accepted_differentials",
    "red_flags": "red_flags",
    "symptoms": "symptoms",
    "timeline": "timeline",
    "severity": "severity",
    "treatments": "treatments",
    "fears": "fears",
}

# ---------------------------------------------------------------------------
# Data loading
# ---------------------------------------------------------------------------

def _read_table_safe(path: str, label: str) -> pd.DataFrame:
    """Read an Excel or CSV file with user-friendly error handling.

    *label* is a human-readable name for the file (e.g. "transcripts",
    "cases") used in error messages.
    """
    try:
        if path.lower().endswith(".csv"):
            return pd.read_csv(path)
        return pd.read_excel(path)
    except Exception as exc:
        logger.error("Failed to read %s file '%s': %s", label, path, exc)
        raise SystemExit(1)


def load_transcripts(df: pd.DataFrame) -> dict[str, Transcript]:
    """Group turn rows into one transcript per encounter.

    Encounters keep their order of first appearance; turns keep row order
    unless a ``turn`` column is present.  Rows with empty text are skipped.
    """
    transcripts: dict[str, Transcript] = {}
    for encounter_id, group in df.groupby("encounter_id", sort=False):
        rows = group[group["text"].notna()]
        if "turn" in rows.columns:
            rows = rows.sort_values("turn", kind="stable")
        try:
            transcripts[str(encounter_id)] = Transcript.from_pairs(
                zip(rows["speaker"], rows["text"])
            )
        except ValueError as exc:
            logger.error("Encounter '%s': %s", encounter_id, exc)
            raise SystemExit(1)
    return transcripts


def load_profiles(df: pd.DataFrame) -> dict[str, PatientProfile]:
    """Build a patient profile per ``encounter_id`` from a cases table."""
    profiles: dict[str, PatientProfile] = {}
    for _, row in df.iterrows():
        data = {
            field: row[column]
            for column, field in CASE_COLUMNS.items()
            if column in df.columns and pd.notna(row[column])
        }
        try:
            profiles[str(row["encounter_id"])] = PatientProfile.from_dict(data)
        except ValueError as exc:
            logger.error("Invalid case row for encounter '%s': %s", row["encounter_id"], exc)
            raise SystemExit(1)
    return profiles


# ---------------------------------------------------------------------------
# Interaction logging (to file)
# ---------------------------------------------------------------------------
_log_lock = threading.Lock()


def log_interaction(
    log_file: str,
    messages: list[dict[str, str]],
    response: str,
) -> None:
    """Append an LLM interaction to the log file.

    Thread-safe via ``_log_lock``.  Failures are logged as warnings but do
    not interrupt scoring.
    """
    try:
        with _log_lock, open(log_file, "a", encoding="utf-8") as log:
            log.write("----- Interaction -----\n")
            for message in messages:
                log.write(f"{message['role']}: {message['content']}\n")
            log.write(f"Response: {response}\n")
            log.write("-----------------------\n\n")
    except OSError as exc:
        logger.warning("Could not write to log file '%s': %s", log_file, exc)


# ---------------------------------------------------------------------------
# LLM API wrapper
# ---------------------------------------------------------------------------

def call_llm(
    caller: LLMCaller,
    messages: list[dict[str, str]],
    temperature: float,
    top_p: float,
) -> str:
    """Call the LLM with retry logic.

    Retries up to ``config.MAX_RETRIES`` times with exponential back-off on
    transient failures (rate-limits, network errors, server errors).
    """
    delay = config.RETRY_DELAY
    for attempt in range(1, config.MAX_RETRIES + 1):
        try:
            return caller(messages, temperature, top_p)
        except Exception as exc:
            if attempt == config.MAX_RETRIES:
                logger.error("API call failed after %d attempts: %s", attempt, exc)
                raise
            logger.warning(
                "API call failed (attempt %d/%d): %s", attempt, config.MAX_RETRIES, exc,
            )
            logger.info("Retrying in %ds...", delay)
            time.sleep(delay)
            delay *= 2
    raise RuntimeError("config.MAX_RETRIES must be at least 1")


# ---------------------------------------------------------------------------
# Grading prompt
# ---------------------------------------------------------------------------

def _case_block(profile: PatientProfile) -> str:
    lines = []
    if profile.summary:
        lines.append(f"Patient: {profile.summary}")
    if profile.emotional_state:
        lines.append(f"Emotional state: {profile.emotional_state}")
    if profile.diagnosis:
        lines.append(f"Diagnosis: {profile.diagnosis}")
    if profile.accepted_differentials:
        lines.append("Accepted differentials: " + ", ".join(profile.accepted_differentials))
    if profile.red_flags:
        lines.append("Critical red flags: " + ", ".join(profile.red_flags))
    return "\n".join(lines) or "No case details provided."


def build_grading_prompt(
    transcript: Transcript,
    profile: PatientProfile,
    rubric_set: RubricSet,
) -> list[dict[str, str]]:
    """Messages asking the external grader for the parseable report layout."""
    rubric_block = "\n".join(
        f"{i}. {r.label} ({r.weight_percent:g}%, 0-{r.max_points}): "
        + (r.description or ", ".join(c.label for c in r.criteria))
        for i, r in enumerate(rubric_set.rubrics, start=1)
    )
    format_block = "\n".join(
        f"{r.label}: [0-{r.max_points}] | Evidence: [quote]; [quote] | Feedback: [one sentence]"
        for r in rubric_set.rubrics
    )
    prompt = config.GRADING_PROMPT.format(
        case_block=_case_block(profile),
        transcript=transcript.render(),
        scale=rubric_set.scale,
        rubric_block=rubric_block,
        format_block=format_block,
    )
    return [
        {"role": "system", "content": config.GRADING_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def fetch_grading_text(
    caller: LLMCaller,
    messages: list[dict[str, str]],
    log_file: Optional[str],
    temperature: float,
    top_p: float,
) -> Optional[str]:
    """Fetch a grading report, or ``None`` when every attempt failed."""
    try:
        text = call_llm(caller, messages, temperature, top_p)
    except Exception as exc:
        logger.warning("No grading report available (%s); falling back.", exc)
        return None
    if log_file:
        log_interaction(log_file, messages, text)
    return text


# ---------------------------------------------------------------------------
# Grading
# ---------------------------------------------------------------------------

def grade_encounter(
    engine: ScoringEngine,
    transcript: Transcript,
    profile: PatientProfile,
    mode: str = "local",
    caller: Optional[LLMCaller] = None,
    log_file: Optional[str] = None,
    temperature: float = config.TEMPERATURE,
    top_p: float = config.TOP_P,
) -> ScoreReport:
    """Score one encounter in the requested *mode*."""
    if mode == "fallback":
        return engine.fallback(transcript, profile)
    if mode == "llm":
        if not transcript.provider_turns:
            return engine.no_data_report(profile)
        grading_text = None
        if caller is not None:
            messages = build_grading_prompt(transcript, profile, engine.rubric_set)
            grading_text = fetch_grading_text(caller, messages, log_file, temperature, top_p)
        return engine.grade(transcript, profile, grading_text)
    return engine.score(transcript, profile)


def report_to_row(encounter_id: str, report: ScoreReport) -> dict[str, object]:
    """Flatten a report into one spreadsheet row."""
    row: dict[str, object] = {
        "encounter_id": encounter_id,
        "case_id": report.case_id,
        "source": report.source,
        "total_score": report.total_score,
    }
    for key, result in report.rubric_results.items():
        row[f"{key}_score"] = result.score
        row[f"{key}_feedback"] = result.feedback_text
    row["overall_assessment"] = report.overall_assessment
    row["strengths"] = "\n".join(report.strengths)
    row["improvements"] = "\n".join(report.improvements)
    row["missed_opportunities"] = "\n".join(report.missed_opportunities)
    row["report_json"] = report.to_json()
    return row


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def validate_input_columns(df: pd.DataFrame, columns: list[str]) -> list[str]:
    """Return the names of any expected columns missing from *df*."""
    return [c for c in columns if c not in df.columns]


def validate_files_exist(*paths: str) -> None:
    """Raise ``SystemExit`` if any of the given file paths do not exist."""
    for path in paths:
        if not os.path.isfile(path):
            logger.error("Input file not found: '%s'", path)
            raise SystemExit(1)


def validate_output_directory(output_path: str) -> None:
    """Raise ``SystemExit`` if the output directory does not exist."""
    output_dir = os.path.dirname(output_path)
    if output_dir and not os.path.isdir(output_dir):
        logger.error(
            "Output directory does not exist: '%s'. "
            "Please create it before running the scorer.",
            output_dir,
        )
        raise SystemExit(1)


def _save_results(df: pd.DataFrame, output_file: str) -> None:
    """Write the results to Excel or CSV with error handling."""
    try:
        if output_file.lower().endswith(".csv"):
            df.to_csv(output_file, index=False)
        else:
            df.to_excel(output_file, index=False)
    except Exception as exc:
        logger.error(
            "Failed to write results to '%s': %s. Scored data may be lost.",
            output_file,
            exc,
        )
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# Main processing loop
# ---------------------------------------------------------------------------

def score_transcripts(
    engine: ScoringEngine,
    transcripts: dict[str, Transcript],
    profiles: dict[str, PatientProfile],
    mode: str = "local",
    caller: Optional[LLMCaller] = None,
    log_file: Optional[str] = None,
    temperature: float = config.TEMPERATURE,
    top_p: float = config.TOP_P,
    max_workers: int = 1,
) -> pd.DataFrame:
    """Score every encounter and return one row per encounter, in input order.

    The engine holds no mutable state, so encounters are scored concurrently
    when *max_workers* > 1.
    """
    total = len(transcripts)

    def work(index: int, encounter_id: str) -> dict[str, object]:
        current_time = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        logger.info(
            "%s - Scoring encounter %s (%d/%d)...",
            current_time, encounter_id, index + 1, total,
        )
        profile = profiles.get(encounter_id, PatientProfile())
        report = grade_encounter(
            engine, transcripts[encounter_id], profile, mode, caller,
            log_file, temperature, top_p,
        )
        return report_to_row(encounter_id, report)

    ids = list(transcripts)
    if max_workers <= 1 or total <= 1:
        rows = [work(i, eid) for i, eid in enumerate(ids)]
    else:
        logger.info("Parallel mode: scoring up to %d encounters concurrently.", max_workers)
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            rows = list(pool.map(work, range(total), ids))
    return pd.DataFrame(rows)


def process_transcripts_file(
    engine: ScoringEngine,
    transcripts_file: str,
    output_file: str,
    cases_file: Optional[str] = None,
    mode: str = "local",
    caller: Optional[LLMCaller] = None,
    temperature: float = config.TEMPERATURE,
    top_p: float = config.TOP_P,
    max_workers: int = 1,
) -> None:
    """Score every encounter in *transcripts_file* and write the results."""
    df = _read_table_safe(transcripts_file, "transcripts")

    missing = validate_input_columns(df, TRANSCRIPT_COLUMNS)
    if missing:
        logger.error(
            "The following expected columns are missing from '%s': %s\n"
            "Expected columns: %s",
            transcripts_file,
            ", ".join(missing),
            ", ".join(TRANSCRIPT_COLUMNS),
        )
        raise SystemExit(1)

    if df.empty:
        logger.warning(
            "Transcripts file '%s' contains no data rows. Nothing to score.",
            transcripts_file,
        )
        return

    profiles: dict[str, PatientProfile] = {}
    if cases_file:
        cases_df = _read_table_safe(cases_file, "cases")
        if validate_input_columns(cases_df, ["encounter_id"]):
            logger.error("Cases file '%s' has no 'encounter_id' column.", cases_file)
            raise SystemExit(1)
        profiles = load_profiles(cases_df)

    transcripts = load_transcripts(df)
    log_file = os.path.splitext(output_file)[0] + ".log" if mode == "llm" else None

    results = score_transcripts(
        engine, transcripts, profiles, mode, caller, log_file,
        temperature, top_p, max_workers,
    )
    _save_results(results, output_file)

    logger.info("Scoring completed. Results saved to %s.", output_file)
    if log_file:
        logger.info("LLM interactions logged to %s.", log_file)


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main() -> None:
    parser = argparse.ArgumentParser(
        description="Score simulated patient encounters from an Excel/CSV "
        "transcript file against communication and clinical rubrics.",
    )
    parser.add_argument(
        "--transcripts",
        type=str,
        default=config.DEFAULT_TRANSCRIPTS_PATH,
        help="Path to the transcripts file, one row per turn (default: %(default)s)",
    )
    parser.add_argument(
        "--cases",
        type=str,
        default=None,
        help="Optional path to a cases file with one row per encounter_id",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=config.DEFAULT_OUTPUT_PATH,
        help="Path to save the results file, .xlsx or .csv (default: %(default)s)",
    )
    parser.add_argument(
        "--mode",
        type=str,
        default="local",
        choices=MODES,
        help="Scoring path (default: %(default)s)",
    )
    parser.add_argument(
        "--rubric-set",
        type=str,
        default=config.DEFAULT_RUBRIC_SET,
        choices=sorted(RUBRIC_SETS),
        help="Built-in rubric set (default: %(default)s)",
    )
    parser.add_argument(
        "--rubric-file",
        type=str,
        default=None,
        help="JSON rubric set definition; overrides --rubric-set",
    )
    parser.add_argument(
        "--temperature",
        type=float,
        default=config.TEMPERATURE,
        help="Temperature setting for the model, 0.0-2.0 (default: %(default)s)",
    )
    parser.add_argument(
        "--top_p",
        type=float,
        default=config.TOP_P,
        help="Top-p (nucleus sampling) setting, 0.0-1.0 (default: %(default)s)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=config.MAX_WORKERS,
        help=(
            "Number of encounters to score in parallel. "
            "Set to 1 for sequential processing (default: %(default)s)"
        ),
    )
    parser.add_argument(
        "--provider",
        type=str,
        default=config.PROVIDER,
        choices=SUPPORTED_PROVIDERS,
        help="LLM provider for --mode llm (default: %(default)s)",
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help=(
            "Model name to use. If not specified, uses config.py MODEL or "
            "the provider's default model."
        ),
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    max_temp = 1.0 if args.provider == "anthropic" else 2.0
    if not 0.0 <= args.temperature <= max_temp:
        logger.error(
            "Invalid --temperature value: %.2f. Must be between 0.0 and %.1f"
            " for %s.",
            args.temperature, max_temp, args.provider,
        )
        raise SystemExit(1)

    if not 0.0 <= args.top_p <= 1.0:
        logger.error(
            "Invalid --top_p value: %.2f. Must be between 0.0 and 1.0.",
            args.top_p,
        )
        raise SystemExit(1)

    input_files = [args.transcripts] + ([args.cases] if args.cases else [])
    if args.rubric_file:
        input_files.append(args.rubric_file)
    validate_files_exist(*input_files)
    validate_output_directory(args.output)

    for path in input_files:
        if os.path.abspath(path) == os.path.abspath(args.output):
            logger.error(
                "The input file '%s' and --output resolve to the same path. "
                "This would overwrite the input data. "
                "Please specify a different output path.",
                path,
            )
            raise SystemExit(1)

    try:
        rubric_set = (
            load_rubric_set(args.rubric_file) if args.rubric_file
            else get_rubric_set(args.rubric_set)
        )
    except ConfigurationError as exc:
        logger.error("%s", exc)
        raise SystemExit(1)
    engine = ScoringEngine(rubric_set)
    logger.info("Rubric set: %s | Mode: %s", rubric_set.key, args.mode)

    caller = None
    if args.mode == "llm":
        try:
            caller = create_caller(args.provider, args.model)
        except (ValueError, MissingAPIKeyError) as exc:
            logger.error("%s", exc)
            raise SystemExit(1)
        logger.info(
            "Provider: %s | Model: %s",
            args.provider, resolve_model(args.provider, args.model),
        )

    process_transcripts_file(
        engine,
        args.transcripts,
        args.output,
        cases_file=args.cases,
        mode=args.mode,
        caller=caller,
        temperature=args.temperature,
        top_p=args.top_p,
        max_workers=args.workers,
    )


if __name__ == "__main__":
    main()
