# Encounter Scorer Configuration File

# ---------------------------------------------------------------------------
# LLM Provider & Model
# ---------------------------------------------------------------------------

# Provider: "openai", "anthropic", or "google"
PROVIDER = "openai"

# Model used to produce external grading reports (--mode llm).
# If switching providers via --provider without specifying --model,
# the default model for that provider is used (see DEFAULT_MODELS below).
MODEL = "gpt-4o"

# Default model per provider (used when --provider is set without --model)
DEFAULT_MODELS = {
    "openai":    "gpt-4o",
    "anthropic": "claude-sonnet-4-6",
    "google":    "gemini-2.5-flash",
}

# Maximum output tokens for a grading report
MAX_TOKENS = 2500

# ---------------------------------------------------------------------------
# API Keys
# ---------------------------------------------------------------------------
# Each provider checks its environment variable first, then a key file in
# the scripts/ directory.
#
#   OpenAI:    OPENAI_API_KEY    or  openai_api_key.txt
#   Anthropic: ANTHROPIC_API_KEY or  anthropic_api_key.txt
#   Google:    GOOGLE_API_KEY    or  google_api_key.txt

# Default Temperature & Top-P (configurable via CLI flags --temperature and --top_p)
TEMPERATURE = 0.3
TOP_P = 1.0

# Concurrency: max number of encounters graded in parallel by the CLI.
MAX_WORKERS = 4

# API retry settings
MAX_RETRIES = 3
RETRY_DELAY = 2  # seconds (doubles on each retry)

# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

# Rubric set used when none is given: "start_heart" or "sps"
DEFAULT_RUBRIC_SET = "start_heart"

# Mean provider message length (characters) that counts as "thorough".
# The comparison is strict: exactly this length is not thorough.
THOROUGH_LENGTH_THRESHOLD = 100

# Number of second-person words that counts as personalized language.
PERSONALIZATION_THRESHOLD = 5

# How many trailing provider turns count as "the end of the conversation".
CLOSING_WINDOW = 2

# Emotional states where a missing apology is called out in feedback.
DISTRESS_STATES = frozenset({"angry", "frustrated"})

# Fallback scoring: level = floor(provider_turns / 2) + 1, clamped to
# [1, FALLBACK_LEVELS], then scaled to each rubric's max points.
FALLBACK_LEVELS = 5
FALLBACK_FEEDBACK = "Good attempt. Continue practicing systematic history taking."
FALLBACK_STRENGTHS = ["Engaged with the patient", "Asked relevant questions"]
FALLBACK_IMPROVEMENTS = [
    "Continue developing systematic approach",
    "Practice OLDCARTS framework",
]
FALLBACK_MISSED = ["Could explore red flags more thoroughly"]
FALLBACK_FEEDBACK_NOTE = (
    "You demonstrated engagement with the patient. Continue practicing "
    "structured history taking and clinical reasoning."
)
FALLBACK_SUGGESTED_FOCUS = "Practice OLDCARTS framework and recognizing red flags"

# Degenerate report (no provider turns)
NO_DATA_MESSAGE = "No provider messages to analyze"
NO_DATA_ASSESSMENT = (
    "Unable to assess communication skills without provider responses."
)

# Substituted when a rubric evaluator fails unexpectedly
EVALUATION_ERROR_FEEDBACK = "Assessment unavailable for this category"

# Suggested focus for a local report with nothing left to improve
LOCAL_DEFAULT_FOCUS = "Keep applying these communication skills consistently."

# ---------------------------------------------------------------------------
# External grading report parsing
# ---------------------------------------------------------------------------

PARSER_DEFAULT_FEEDBACK = "Assessment in progress"
PARSER_DEFAULT_BULLET = "Continue developing skills in this area"
PARSER_DEFAULT_FEEDBACK_NOTE = "Good effort on this case."
PARSER_DEFAULT_SUGGESTED_FOCUS = "Continue practicing systematic history taking."
PARSER_SECTION_WINDOW = 500  # characters scanned when no end marker is found

# ---------------------------------------------------------------------------
# Grading prompt (external grading report)
# ---------------------------------------------------------------------------

GRADING_SYSTEM_PROMPT = (
    "You are an expert clinical educator evaluating a medical student's "
    "patient encounter. Provide detailed, constructive feedback with specific "
    "evidence from the conversation."
)

# Filled by grader.build_grading_prompt().  {rubric_block} lists the rubric
# categories with their weights; {format_block} the one-line score format.
GRADING_PROMPT = """You are evaluating a medical student's clinical encounter with a standardized patient.

CASE GROUND TRUTH:
{case_block}

CONVERSATION TRANSCRIPT:
{transcript}

SCORING RUBRICS (Each scored 0-{scale}):
{rubric_block}

Provide your evaluation in this exact format:

RUBRIC SCORES:
{format_block}

STRENGTHS:
- [bullet point]
- [bullet point]

IMPROVEMENTS:
- [bullet point]
- [bullet point]

MISSED OPPORTUNITIES:
- [bullet point]
- [bullet point]

FEEDBACK NOTE (max 250 words):
[Concise constructive feedback]

SUGGESTED FOCUS:
[What to practice next]
---"""

# ---------------------------------------------------------------------------
# Scripted patient responder
# ---------------------------------------------------------------------------

# Conversation ends after this many provider turns
MAX_SCRIPTED_TURNS = 7

# File Paths (Users can set defaults here)
DEFAULT_TRANSCRIPTS_PATH = "transcripts.xlsx"
DEFAULT_OUTPUT_PATH = "results.xlsx"
