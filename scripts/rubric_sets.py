"""Built-in rubric sets.

``start_heart``
    Communication frameworks S.T.A.R.T., H.E.A.R.T., C.A.R.E. and WOW, each
    worth 25 points for a 100-point total.

``sps``
    Standardized-patient clinical encounter: seven categories scored 0-5 and
    weighted 20/20/20/15/15/5/5.
"""

from __future__ import annotations

import config
from features import (
    COUNT,
    EMOTION,
    FIRST,
    LAST,
    LAST_N,
    MEAN_LENGTH,
    PATIENT_NAME,
    TURN_COUNT,
    Detector,
)
from rubrics import (
    MISSED_OPPORTUNITY,
    Criterion,
    Escalation,
    RubricConfig,
    RubricSet,
    ScoreBand,
    Signal,
)

# ---------------------------------------------------------------------------
# Detectors shared by both sets
# ---------------------------------------------------------------------------

COMMON_DETECTORS = (
    Detector("greeting_first", phrases=(
        "hi", "hello", "good morning", "good afternoon", "good evening",
    ), scope=FIRST),
    Detector("name_intro_first", phrases=("my name is", "i'm", "i am"), scope=FIRST),
    Detector("role", phrases=(
        "doctor", "nurse", "provider", "physician", "practitioner",
    )),
    Detector("expectation", phrases=(
        "here to help", "here to discuss", "today we'll", "we're going to",
    )),
    Detector("active_listening", phrases=(
        "tell me more", "go on", "i hear you", "i'm listening", "help me understand",
    )),
    # reports the question word nearest the question mark
    Detector("open_question", regex=r".*\b(how|what|when|tell me|describe|explain)\b[^?\n]*\?"),
    Detector("empathy_words", phrases=(
        "understand", "hear you", "sounds", "must be", "difficult",
        "challenging", "frustrating",
    )),
    Detector("patient_name", kind=PATIENT_NAME),
    Detector("thanks", phrases=("thank you", "thanks", "appreciate")),
    Detector("empathy_phrases", phrases=(
        "i understand", "i can imagine", "that must be", "sounds difficult",
        "i hear that", "that's understandable",
    )),
    Detector("emotion_naming", kind=EMOTION, phrases=(
        "frustrated", "worried", "concerned", "anxious",
    )),
    Detector("action_plan", phrases=(
        "we will", "i will", "next steps", "plan", "let's", "going to",
        "schedule", "prescribe", "refer",
    )),
    Detector("closing_thanks", phrases=(
        "thank you", "thanks", "appreciate you", "grateful",
    ), scope=LAST_N, window=config.CLOSING_WINDOW),
    Detector("questions", kind=COUNT, regex=r"\?", threshold=2),
    Detector("invites_questions", phrases=(
        "feel free to ask", "any questions", "don't hesitate", "happy to answer",
    )),
    Detector("next_steps_last", phrases=(
        "next", "follow up", "will contact", "schedule", "appointment",
        "come back", "call", "reach out",
    ), scope=LAST),
)


# ---------------------------------------------------------------------------
# S.T.A.R.T. / H.E.A.R.T. / C.A.R.E. / WOW
# ---------------------------------------------------------------------------

_START_HEART_DETECTORS = COMMON_DETECTORS + (
    Detector("reflection", phrases=(
        "so what i'm hearing", "it sounds like", "if i understand", "let me make sure",
    )),
    Detector("clarifying", phrases=(
        "can you clarify", "help me understand", "tell me more about",
    )),
    Detector("apology", phrases=("i'm sorry", "apologize", "regret", "unfortunate")),
    Detector("ownership", phrases=(
        "we should have", "i should have", "that wasn't", "we could have done better",
    )),
    Detector("explanation", phrases=(
        "because", "the reason", "this means", "what this means is", "here's why",
    )),
    Detector("compassion", phrases=(
        "understand", "care", "here to help", "support", "with you", "concern",
        "important to me",
    )),
    Detector("accountability", phrases=(
        "i will", "we will", "i'll make sure", "follow up", "i'll",
        "responsibility", "ensure",
    )),
    Detector("respectful_language", kind=COUNT, phrases=(
        "please", "thank you", "appreciate", "respect", "understand",
    ), threshold=2),
    Detector("checks_understanding", phrases=(
        "make sense", "understand", "questions", "concerns", "unclear", "clear",
    )),
    Detector("thorough_detail", phrases=(
        "let me explain", "important to know", "what this means", "because",
        "specifically",
    )),
    Detector("thorough_length", kind=MEAN_LENGTH,
             threshold=config.THOROUGH_LENGTH_THRESHOLD),
    Detector("personal_touches", kind=COUNT, phrases=(
        "your", "you're", "you've", "your situation", "for you", "with you",
    ), threshold=config.PERSONALIZATION_THRESHOLD),
    Detector("understanding_check", phrases=(
        "make sense", "questions", "concerns", "understand", "unclear",
        "what questions do you have",
    )),
    Detector("summary", phrases=(
        "so", "to summarize", "in summary", "what we've discussed", "plan is",
    )),
)

START = RubricConfig(
    key="start",
    label="START",
    name="S.T.A.R.T.",
    max_points=25,
    weight_percent=25,
    default_score=15,
    description="Smile, Tell, Active listening, Rapport, Thank",
    criteria=(
        Criterion("Smile & Greet warmly", 5, (
            Signal("greeting_first", 5,
                   found='Used a warm greeting ("{match}") in opening statement',
                   missing='No greeting found. Start with "Hello" or "Good morning" to establish warmth',
                   strength="Greeted the patient warmly",
                   advice="Start with a warm greeting"),
        )),
        Criterion("Tell name, role, and what to expect", 5, (
            Signal("name_intro_first", 3,
                   found='Introduced name ("{match}")',
                   missing="Missing name introduction",
                   strength="Introduced yourself to the patient",
                   advice="Introduce yourself by name and role"),
            Signal(("role", "expectation"), 2,
                   found='Explained role/expectations ("{match}")',
                   missing="Missing role clarification",
                   advice="Explaining your role or what to expect from the visit",
                   advice_kind=MISSED_OPPORTUNITY),
        ), detected_when="all"),
        Criterion("Active listening", 5, (
            Signal("active_listening", 3,
                   found='Used active listening phrases ("{match}")',
                   missing='Missing phrases like "tell me more"',
                   strength="Demonstrated active listening"),
            Signal("open_question", 2,
                   found='Asked open-ended questions ("{match}...?")',
                   missing="No open-ended questions found",
                   strength="Asked open-ended questions",
                   advice="Use open-ended questions to encourage the patient to share"),
        )),
        Criterion("Rapport building", 5, (
            Signal("empathy_words", 3,
                   found='Expressed empathy ("{match}")',
                   missing="No empathetic language detected",
                   strength="Showed empathy and understanding",
                   advice="Express empathy for the patient's situation"),
            Signal("patient_name", 2,
                   found="Used patient's name ({match})",
                   missing="Did not use patient's name",
                   strength="Used the patient's name personally",
                   advice="Using the patient's name to build rapport",
                   advice_kind=MISSED_OPPORTUNITY),
        )),
        Criterion("Thank the patient", 5, (
            Signal("thanks", 5,
                   found='Expressed gratitude or appreciation to the patient ("{match}")',
                   missing='No "thank you" or appreciation expressed. Patients value being thanked for their time',
                   strength="Expressed gratitude to the patient",
                   advice="Thank the patient for sharing their concerns"),
        )),
    ),
)

HEART = RubricConfig(
    key="heart",
    label="HEART",
    name="H.E.A.R.T.",
    max_points=25,
    weight_percent=25,
    default_score=15,
    description="Hear, Empathize, Apologize, Respond, Thank",
    criteria=(
        Criterion("H - Hear the story", 5, (
            Signal("reflection", 3,
                   found='Reflected understanding ("{match}")',
                   missing="No reflective statements",
                   strength="Reflected back patient's concerns",
                   advice="Reflect back what you're hearing to confirm understanding"),
            Signal("clarifying", 2,
                   found='Asked clarifying questions ("{match}")',
                   missing="No clarifying questions",
                   advice="Asking clarifying questions to fully understand concerns",
                   advice_kind=MISSED_OPPORTUNITY),
        )),
        Criterion("E - Empathize", 5, (
            Signal("empathy_phrases", 3,
                   found='Used empathetic phrases ("{match}")',
                   missing='Missing empathy language like "I understand"',
                   strength="Used empathetic language",
                   advice='Use phrases that show empathy (e.g., "I understand," "That must be difficult")'),
            Signal("emotion_naming", 2,
                   found='Named emotions ("{match}")',
                   missing="Did not acknowledge patient emotions",
                   strength="Named or acknowledged the patient's emotions (S.A.V.E. technique)"),
        )),
        Criterion("A - Apologize", 5, (
            Signal(("apology", "ownership"), 5,
                   found='Offered appropriate apology or acknowledgment of difficult experience ("{match}")',
                   missing="No apology needed for this patient's emotional state, but always appropriate",
                   strength="Apologized appropriately for patient's experience"),
        ), escalation=Escalation(
            rationale="Patient is frustrated/angry - an apology would validate their experience",
            advice="Apologize for the patient's difficult experience when appropriate",
        )),
        Criterion("R - Respond with a plan", 5, (
            Signal("action_plan", 3,
                   found='Outlined action plan/next steps ("{match}")',
                   missing="No clear action plan provided",
                   strength="Provided clear action plan and next steps",
                   advice="Clearly outline next steps and action items"),
            Signal("explanation", 2,
                   found='Explained reasoning ("{match}")',
                   missing='Did not explain "why" behind recommendations',
                   strength="Explained reasoning behind recommendations"),
        )),
        Criterion("T - Thank the patient", 5, (
            Signal("closing_thanks", 5,
                   found='Thanked patient at end of conversation ("{match}") - creates positive closure',
                   missing="Did not thank patient at end - always end encounters with gratitude",
                   strength="Thanked patient at conversation end",
                   advice="End the conversation by thanking the patient"),
        )),
    ),
)

CARE = RubricConfig(
    key="care",
    label="CARE",
    name="C.A.R.E.",
    max_points=25,
    weight_percent=25,
    default_score=15,
    description="Compassion, Accountability, Respect, Excellence",
    criteria=(
        Criterion("C - Compassion", 6, (
            Signal("compassion", 6,
                   found='Expressed genuine care and support for patient wellbeing ("{match}")',
                   missing="Missing compassionate language like \"I care\" or \"I'm here to help\"",
                   strength="Demonstrated compassion throughout conversation",
                   advice="Show more compassion by expressing genuine care for patient's wellbeing"),
        )),
        Criterion("A - Accountability", 6, (
            Signal("accountability", 6,
                   found='Took ownership by committing to specific actions ("{match}")',
                   missing='Did not commit to actions - use "I will" to show accountability',
                   strength="Took accountability for patient care and follow-through",
                   advice="Take ownership by committing to specific actions"),
        )),
        Criterion("R - Respect", 7, (
            Signal("respectful_language", 4,
                   found='Used respectful language ({value:.0f} instances, e.g. "{match}")',
                   missing="Limited respectful language ({value:.0f} instances)",
                   strength="Used respectful language consistently",
                   advice="Use more respectful, courteous language"),
            Signal("questions", 3,
                   found="Asked questions to respect autonomy ({value:.0f} questions)",
                   missing="Few questions asked ({value:.0f} questions)",
                   strength="Asked for patient input and preferences",
                   advice="Asking more questions to respect patient autonomy",
                   advice_kind=MISSED_OPPORTUNITY),
        )),
        Criterion("E - Excellence", 6, (
            Signal("checks_understanding", 3,
                   found='Checked understanding ("{match}")',
                   missing="Did not verify patient understanding",
                   strength="Checked for patient understanding",
                   advice='Check patient understanding by asking "What questions do you have?"'),
            Signal("thorough_detail", 3,
                   found='Thorough explanations ("{match}")',
                   missing="Limited detail in explanations",
                   strength="Provided thorough explanations"),
        )),
    ),
)

WOW = RubricConfig(
    key="wow",
    label="WOW",
    name="WOW",
    max_points=25,
    weight_percent=25,
    default_score=15,
    description="Thoroughness, personal touches, understanding, closure",
    criteria=(
        Criterion("Thorough explanations", 6, (
            Signal("thorough_length", 6,
                   found="Average message length {value:.0f} chars - detailed responses",
                   missing="Average message length {value:.0f} chars - aim for more than 100 for thorough explanations",
                   strength="Provided thorough, detailed responses",
                   advice="Provide more thorough explanations to ensure clarity"),
        )),
        Criterion("Personal touches", 6, (
            Signal("personal_touches", 6,
                   found='Used personalized language {value:.0f} times (e.g. "{match}")',
                   missing='Only {value:.0f} personalized words - use "your" and "you" more to connect',
                   strength="Personalized communication for the patient",
                   advice="Use more personalized language to connect with patient"),
        )),
        Criterion("Check understanding", 7, (
            Signal("understanding_check", 4,
                   found='Asked if things make sense ("{match}")',
                   missing="Did not check understanding",
                   strength="Checked for understanding (WOW micro-skill)",
                   advice='Ask "What questions do you have?" to check understanding'),
            Signal("invites_questions", 3,
                   found='Encouraged questions ("{match}")',
                   missing="Did not invite questions",
                   strength="Encouraged patient to ask questions"),
        )),
        Criterion("Closure & next steps", 6, (
            Signal("next_steps_last", 3,
                   found='Outlined next steps ("{match}")',
                   missing="No follow-up plan mentioned",
                   strength="Clearly outlined next steps",
                   advice="Clearly state next steps and follow-up plan"),
            Signal("summary", 3,
                   found='Summarized conversation ("{match}")',
                   missing="No summary provided",
                   strength="Summarized key points for patient",
                   advice="Summarizing the conversation and care plan",
                   advice_kind=MISSED_OPPORTUNITY),
        )),
    ),
)

START_HEART = RubricSet(
    key="start_heart",
    title="Patient communication (S.T.A.R.T. / H.E.A.R.T. / C.A.R.E. / WOW)",
    rubrics=(START, HEART, CARE, WOW),
    detectors=_START_HEART_DETECTORS,
    score_bands=(
        ScoreBand(90, (
            "Excellent communication! You demonstrated strong mastery of "
            "S.T.A.R.T., H.E.A.R.T., C.A.R.E., and WOW frameworks. Your approach "
            "was patient-centered, empathetic, and thorough. The patient would "
            "likely feel heard, understood, and confident in their care plan."
        )),
        ScoreBand(75, (
            "Good communication overall. You applied several key principles from "
            "the frameworks effectively. With some refinement in areas like "
            "empathy expression or checking understanding, you could achieve "
            "excellent patient interactions. The patient would likely feel "
            "generally satisfied with the encounter."
        )),
        ScoreBand(60, (
            "Your communication needs improvement. While you covered some basics, "
            "you missed opportunities to build rapport, demonstrate empathy, and "
            "ensure patient understanding. Focus on using the S.T.A.R.T. and "
            "H.E.A.R.T. frameworks more consistently to improve patient experience."
        )),
        ScoreBand(0, (
            "Significant improvement needed. The patient likely left feeling "
            "unheard or confused. Review the S.T.A.R.T., H.E.A.R.T., C.A.R.E., and "
            "WOW frameworks carefully and practice incorporating greeting, empathy, "
            "active listening, and clear explanations into every patient interaction."
        )),
    ),
)


# ---------------------------------------------------------------------------
# Standardized patient encounter (7 weighted categories)
# ---------------------------------------------------------------------------

_SPS_DETECTORS = COMMON_DETECTORS + (
    Detector("onset_timeline", phrases=(
        "when did", "how long", "start", "started", "began", "onset",
    )),
    Detector("character_severity", phrases=(
        "scale", "rate", "describe", "feel like", "how bad", "severity", "sharp", "dull",
    )),
    Detector("medications", phrases=(
        "medication", "medications", "medicine", "taking anything", "pills",
        "prescriptions", "over the counter",
    )),
    Detector("allergies", phrases=("allergy", "allergies", "allergic")),
    Detector("background_history", phrases=(
        "medical history", "medical conditions", "surgery", "surgeries",
        "family history", "anyone in your family", "smoke", "alcohol", "drink",
        "drugs", "live with", "work",
    )),
    Detector("clarifying_questions", phrases=(
        "help me understand", "tell me more about", "can you clarify",
        "what do you mean", "can you describe",
    )),
    Detector("modifying_factors", phrases=(
        "worse", "better", "relieve", "trigger", "anything help", "makes it",
    )),
    Detector("associated_symptoms", phrases=(
        "any other symptoms", "anything else", "nausea", "vomiting", "fever",
        "dizziness", "shortness of breath", "weight loss",
    )),
    Detector("question_volume", kind=COUNT, regex=r"\?", threshold=5),
    Detector("differential", phrases=(
        "could be", "might be", "possible", "possibly", "likely", "diagnosis",
        "differential", "rule out", "concerned about", "consistent with",
    )),
    Detector("workup", phrases=(
        "test", "tests", "blood work", "labs", "imaging", "mri", "x-ray",
        "ct scan", "ultrasound", "ecg", "ekg", "examine", "exam",
    )),
    Detector("red_flag_screen", phrases=(
        "worst", "sudden", "weakness", "numbness", "vision", "chest pain",
        "shortness of breath", "fever", "blood", "fainted", "passed out",
        "confusion", "suicidal", "hurt yourself",
    )),
    Detector("safety_net", phrases=(
        "emergency", "911", "er", "come back", "right away", "immediately",
        "urgent", "if it gets worse", "if anything changes",
    )),
    Detector("follow_up", phrases=(
        "follow up", "follow-up", "appointment", "see you", "check in",
        "call", "results",
    )),
    Detector("enough_turns", kind=TURN_COUNT, threshold=4),
)

_SPS_BANDS = (
    ScoreBand(90, (
        "Outstanding encounter. History, reasoning and safety screening were "
        "thorough and the patient was engaged with empathy and a clear plan."
    )),
    ScoreBand(75, (
        "Solid encounter. Most key history elements and next steps were covered; "
        "tighten the differential and red-flag screening to reach excellence."
    )),
    ScoreBand(60, (
        "Developing encounter. Several core history elements or safety checks "
        "were missed. Practice a systematic OLDCARTS approach and close with a "
        "clear plan."
    )),
    ScoreBand(0, (
        "Significant gaps in this encounter. Focus on structured history taking, "
        "red-flag screening and explaining your reasoning to the patient."
    )),
)

SPS = RubricSet(
    key="sps",
    title="Standardized patient encounter",
    detectors=_SPS_DETECTORS,
    score_bands=_SPS_BANDS,
    rubrics=(
        RubricConfig(
            key="history_gathering",
            label="HistoryGathering",
            name="History Gathering",
            max_points=5,
            weight_percent=20,
            default_score=3,
            description="OLDCARTS, medications, allergies, PMH/PSH/FH/SH",
            criteria=(
                Criterion("Onset and timeline", 1, (
                    Signal("onset_timeline", 1,
                           found='Asked about onset and timeline ("{match}")',
                           missing="Did not establish onset or timeline",
                           strength="Established the timeline of symptoms",
                           advice="Ask when symptoms started and how they have progressed"),
                )),
                Criterion("Character and severity", 1, (
                    Signal("character_severity", 1,
                           found='Explored character and severity ("{match}")',
                           missing="Did not characterize the symptom or its severity",
                           advice="Characterize the symptom and ask for a severity rating"),
                )),
                Criterion("Medications", 1, (
                    Signal("medications", 1,
                           found='Asked about medications ("{match}")',
                           missing="No medication history taken",
                           advice="Review current medications"),
                )),
                Criterion("Allergies", 1, (
                    Signal("allergies", 1,
                           found='Asked about allergies ("{match}")',
                           missing="No allergy history taken",
                           advice="Ask about allergies",
                           advice_kind=MISSED_OPPORTUNITY),
                )),
                Criterion("Past, family and social history", 1, (
                    Signal("background_history", 1,
                           found='Explored past, family or social history ("{match}")',
                           missing="Did not explore past, family or social history",
                           strength="Explored the patient's background history",
                           advice="Cover past medical, family and social history"),
                )),
            ),
        ),
        RubricConfig(
            key="clinical_reasoning",
            label="ClinicalReasoning",
            name="Clinical Reasoning",
            max_points=5,
            weight_percent=20,
            default_score=3,
            description="Questions building toward a diagnosis",
            criteria=(
                Criterion("Focused follow-up", 2, (
                    Signal("clarifying_questions", 2,
                           found='Asked focused follow-up questions ("{match}")',
                           missing="No focused follow-up questions",
                           strength="Followed up on the patient's answers",
                           advice="Follow up on key answers to narrow the differential"),
                )),
                Criterion("Modifying and associated factors", 2, (
                    Signal("modifying_factors", 1,
                           found='Asked about aggravating/relieving factors ("{match}")',
                           missing="No aggravating/relieving factors explored"),
                    Signal("associated_symptoms", 1,
                           found='Screened associated symptoms ("{match}")',
                           missing="No associated symptoms explored",
                           advice="Screening for associated symptoms",
                           advice_kind=MISSED_OPPORTUNITY),
                )),
                Criterion("Breadth of questioning", 1, (
                    Signal("question_volume", 1,
                           found="Asked {value:.0f} questions",
                           missing="Only {value:.0f} questions asked",
                           advice="Ask more questions before settling on a diagnosis"),
                )),
            ),
        ),
        RubricConfig(
            key="diagnosis_assessment",
            label="DiagnosisAssessment",
            name="Diagnosis/Assessment",
            max_points=5,
            weight_percent=20,
            default_score=3,
            description="Differential and diagnostic next steps",
            criteria=(
                Criterion("Differential discussed", 3, (
                    Signal("differential", 3,
                           found='Discussed possible diagnoses ("{match}")',
                           missing="No diagnosis or differential articulated",
                           strength="Shared a working differential with the patient",
                           advice="Articulate a working diagnosis or differential"),
                )),
                Criterion("Diagnostic next steps", 2, (
                    Signal("workup", 2,
                           found='Discussed diagnostic work-up ("{match}")',
                           missing="No diagnostic work-up discussed",
                           advice="Discuss which tests or exams come next"),
                )),
            ),
        ),
        RubricConfig(
            key="communication_empathy",
            label="CommunicationEmpathy",
            name="Communication & Empathy",
            max_points=5,
            weight_percent=15,
            default_score=3,
            description="Empathy, active listening, rapport",
            criteria=(
                Criterion("Empathy", 2, (
                    Signal("empathy_phrases", 2,
                           found='Used empathetic phrases ("{match}")',
                           missing='Missing empathy language like "I understand"',
                           strength="Used empathetic language",
                           advice="Acknowledge the patient's feelings explicitly"),
                )),
                Criterion("Active listening", 1, (
                    Signal(("active_listening", "open_question"), 1,
                           found='Listened actively with open questions ("{match}")',
                           missing="No active listening phrases or open questions",
                           advice="Use open-ended questions and invite the patient to elaborate"),
                )),
                Criterion("Rapport", 2, (
                    Signal("greeting_first", 1,
                           found='Opened with a greeting ("{match}")',
                           missing="No greeting in the opening message",
                           advice="Opening with a warm greeting",
                           advice_kind=MISSED_OPPORTUNITY),
                    Signal("patient_name", 1,
                           found="Used patient's name ({match})",
                           missing="Did not use patient's name",
                           advice="Using the patient's name to build rapport",
                           advice_kind=MISSED_OPPORTUNITY),
                )),
            ),
        ),
        RubricConfig(
            key="safety_red_flags",
            label="SafetyRedFlags",
            name="Safety & Red Flags",
            max_points=5,
            weight_percent=15,
            default_score=3,
            description="Red-flag screening and urgent concerns",
            criteria=(
                Criterion("Red-flag screening", 3, (
                    Signal("red_flag_screen", 3,
                           found='Screened for red-flag symptoms ("{match}")',
                           missing="No red-flag symptoms screened",
                           strength="Screened for red flags",
                           advice="Screen explicitly for red-flag symptoms"),
                )),
                Criterion("Safety netting", 2, (
                    Signal("safety_net", 2,
                           found='Gave return/emergency precautions ("{match}")',
                           missing="No return or emergency precautions given",
                           advice="Tell the patient when to seek urgent care"),
                )),
            ),
        ),
        RubricConfig(
            key="counseling_next_steps",
            label="CounselingNextSteps",
            name="Counseling & Next Steps",
            max_points=5,
            weight_percent=5,
            default_score=3,
            description="Plan, follow-up, counseling",
            criteria=(
                Criterion("Plan explained", 3, (
                    Signal("action_plan", 3,
                           found='Explained the plan ("{match}")',
                           missing="No plan explained",
                           strength="Explained a clear plan",
                           advice="Explain the plan in plain language"),
                )),
                Criterion("Follow-up", 2, (
                    Signal("follow_up", 2,
                           found='Arranged follow-up ("{match}")',
                           missing="No follow-up discussed",
                           advice="Arranging follow-up",
                           advice_kind=MISSED_OPPORTUNITY),
                )),
            ),
        ),
        RubricConfig(
            key="time_management",
            label="TimeManagement",
            name="Time Management",
            max_points=5,
            weight_percent=5,
            default_score=3,
            description="Efficient coverage and closure",
            criteria=(
                Criterion("Covered essentials", 3, (
                    Signal("enough_turns", 3,
                           found="Covered the encounter in {value:.0f} exchanges",
                           missing="Only {value:.0f} exchanges - encounter ended early",
                           advice="Use the encounter time to cover the essential elements"),
                )),
                Criterion("Closed the encounter", 2, (
                    Signal(("closing_thanks", "invites_questions"), 2,
                           found='Closed the encounter deliberately ("{match}")',
                           missing="Encounter ended without a deliberate close",
                           advice="Closing the encounter by inviting questions and thanking the patient",
                           advice_kind=MISSED_OPPORTUNITY),
                )),
            ),
        ),
    ),
)


RUBRIC_SETS = {rs.key: rs for rs in (START_HEART, SPS)}


def get_rubric_set(key: str) -> RubricSet:
    try:
        return RUBRIC_SETS[key]
    except KeyError:
        raise KeyError(
            f"Unknown rubric set '{key}'. Available: {', '.join(RUBRIC_SETS)}"
        ) from None
