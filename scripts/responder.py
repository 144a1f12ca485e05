"""Rule-based standardized-patient replies for offline practice.

Replies are drawn from the patient's profile (symptoms, timeline, severity,
treatments, fears) by matching the provider's message against a fixed list of
topic patterns.  All per-encounter state lives in an :class:`EncounterContext`
owned by the caller; create one per encounter and drop it when the encounter
ends.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

import config
from transcript import PatientProfile

_NAME = re.compile(
    r"\b(?:i'?m|i am)\s+dr\.?\s+(\w+)|\bmy name is\s+(?:dr\.?\s+)?(\w+)",
    re.IGNORECASE,
)
_GOODBYE = re.compile(r"\b(?:goodbye|take care|see you)\b", re.IGNORECASE)
_TRUST = re.compile(r"understand|sorry|difficult|must be hard", re.IGNORECASE)

_GREETING = re.compile(r"\b(?:hello|introduce|sit down|mind if)\b", re.IGNORECASE)
_SYMPTOMS = re.compile(
    r"tell me|describe|symptoms?|what.*happening|what.*wrong|what.*going on",
    re.IGNORECASE,
)
_TIMELINE = re.compile(r"how long|when.*start|when.*began|timeline", re.IGNORECASE)
_SEVERITY = re.compile(r"\bscale\b|\brate\b|how bad|severity|intense", re.IGNORECASE)
_TREATMENT = re.compile(r"what.*tried|treatment|medication|what.*done", re.IGNORECASE)
_COST = re.compile(r"insurance|\bcost|afford|\bpay\b|coverage|denial|appeal", re.IGNORECASE)
_EMOTION = re.compile(r"worried|scared|concern|feeling|coping", re.IGNORECASE)
_PLAN = re.compile(r"\bplan\b|\bnext\b|we'll|going to|let's", re.IGNORECASE)
_PERMISSION = re.compile(r"is it okay|do you mind|can i|may i", re.IGNORECASE)

SYMPTOMS_EXHAUSTED = "Like I mentioned, those are the main symptoms affecting me."

FALLBACK_REPLIES = {
    "anxious": "I'm sorry, I'm just really worried. Could you say that again?",
    "calm": "I'm not sure I understand. Could you explain?",
    "distressed": "This is all so overwhelming. What does that mean?",
    "worried": "I'm concerned about what this could be. Can you help me understand?",
    "frustrated": "I just want to know what's wrong. Can you tell me?",
    "scared": "I'm frightened. What should I do?",
    "embarrassed": "I'm sorry, could you repeat that?",
}
DEFAULT_FALLBACK_REPLY = "Could you explain that differently?"


@dataclass
class EncounterContext:
    """Mutable state of one scripted encounter."""

    profile: PatientProfile
    discussed: set[str] = field(default_factory=set)
    provider_name: str = ""
    trust_level: int = 0
    turn_count: int = 0


@dataclass(frozen=True)
class PatientReply:
    content: str
    should_end: bool


def should_end(provider_message: str, turn_count: int,
               max_turns: int = config.MAX_SCRIPTED_TURNS) -> bool:
    """Whether the encounter is over after this provider message."""
    return turn_count >= max_turns or _GOODBYE.search(provider_message or "") is not None


def fallback_reply(emotional_state: str) -> str:
    """Generic reply for when no scripted or generated reply is available."""
    return FALLBACK_REPLIES.get((emotional_state or "").strip().lower(), DEFAULT_FALLBACK_REPLY)


def capture_provider_name(message: str) -> Optional[str]:
    match = _NAME.search(message or "")
    if not match:
        return None
    return match.group(1) or match.group(2)


def _is_distressed(profile: PatientProfile) -> bool:
    return profile.emotional_state.strip().lower() in config.DISTRESS_STATES


def _first_time(context: EncounterContext, topic: str) -> bool:
    if topic in context.discussed:
        return False
    context.discussed.add(topic)
    return True


def _sentence(text: str) -> str:
    text = text.strip()
    if text and text[-1] not in ".!?":
        text += "."
    return text[:1].upper() + text[1:]


def _opening(context: EncounterContext) -> str:
    profile = context.profile
    complaint = profile.chief_complaint or "a health problem"
    reply = f"I need help with {complaint}."
    if profile.timeline:
        reply += " " + _sentence(profile.timeline)
    if _is_distressed(profile):
        reply = "Look, I really need help. " + reply
    return reply


def _symptoms(context: EncounterContext) -> str:
    symptoms = context.profile.symptoms
    if _first_time(context, "symptoms"):
        if not symptoms:
            return "It's hard to describe. I just don't feel right."
        shown = symptoms[:3]
        context.discussed.update(shown)
        return f"I have {', '.join(shown)}. It's been really difficult to manage."
    for symptom in symptoms:
        if symptom not in context.discussed:
            context.discussed.add(symptom)
            return f"I also have {symptom}. That's been concerning too."
    return SYMPTOMS_EXHAUSTED


def _reply_for(context: EncounterContext, message: str) -> str:
    profile = context.profile

    if context.turn_count == 1 and not context.discussed:
        context.discussed.add("opening")
        return _opening(context)

    if _GREETING.search(message):
        lowered = message.lower()
        if "introduce" in lowered:
            if _is_distressed(profile):
                return "Go ahead, but I really need help today. I've been dealing with this too long."
            return "Please do. Thank you for taking the time."
        if "sit" in lowered:
            return "Yes, please sit. Thank you for asking."
        if context.provider_name:
            return f"Hello Dr. {context.provider_name}. Thank you for seeing me."
        return "Hello. Thank you for seeing me about this."

    if _SYMPTOMS.search(message):
        return _symptoms(context)

    if _TIMELINE.search(message):
        timeline = profile.timeline or "a few weeks now"
        if _first_time(context, "timeline"):
            return _sentence(timeline)
        return f"As I said, {timeline.rstrip('.')}."

    if _SEVERITY.search(message):
        if _first_time(context, "severity"):
            return _sentence(profile.severity or "it's pretty bad most days")
        return "It's still at that same severity level - hasn't improved at all."

    if _TREATMENT.search(message):
        if _first_time(context, "treatments"):
            if not profile.treatments:
                return "I haven't really tried anything yet."
            return f"I've tried {' and '.join(profile.treatments[:2])}, but nothing has really helped."
        return "I've tried everything I mentioned. Nothing seems to work."

    if _COST.search(message):
        if _first_time(context, "cost"):
            return "I'm worried about what all of this is going to cost. Will my insurance cover it?"
        return "I just need to know what my options are."

    if _EMOTION.search(message):
        if _first_time(context, "emotions"):
            fear = profile.fears[0] if profile.fears else "what this might be"
            return f"My biggest fear is {fear}. It keeps me up at night."
        return "I'm just exhausted from dealing with this. I need it to get better."

    if _PLAN.search(message):
        if re.search(r"medication", message, re.IGNORECASE):
            return "I'm willing to try something else, but what if it doesn't work like the others?"
        return "What do you think we should do? I'm open to suggestions but I really need something that will work."

    if _PERMISSION.search(message):
        return "Sure, that's fine. Whatever helps figure this out."

    if _first_time(context, "followup"):
        return "What do you think is causing my symptoms?"

    if _is_distressed(profile):
        return "So what's the actual plan here? I need real solutions."
    return "What else do you need to know?"


def respond(context: EncounterContext, provider_message: str) -> PatientReply:
    """Produce the patient's reply to *provider_message* and advance *context*."""
    message = provider_message or ""
    context.turn_count += 1

    name = capture_provider_name(message)
    if name:
        context.provider_name = name

    content = _reply_for(context, message)

    if _TRUST.search(message):
        context.trust_level += 1

    return PatientReply(content, should_end(message, context.turn_count))
