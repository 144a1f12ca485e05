"""In-memory store of scripted encounters served by the web API."""

from __future__ import annotations

import threading
import uuid
from typing import Optional

from responder import EncounterContext, PatientReply, respond
from transcript import PatientProfile


class EncounterStore:
    """Thread-safe map of encounter id to :class:`EncounterContext`.

    Each encounter expires *ttl_seconds* after it was started, and is removed
    as soon as the patient reply signals the end of the conversation.
    """

    def __init__(self, ttl_seconds: int = 1800):
        self._contexts: dict[str, EncounterContext] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds

    def start(self, profile: PatientProfile) -> str:
        encounter_id = uuid.uuid4().hex[:8]
        with self._lock:
            self._contexts[encounter_id] = EncounterContext(profile)
            self._locks[encounter_id] = threading.Lock()
        timer = threading.Timer(self._ttl, self.end, args=[encounter_id])
        timer.daemon = True
        timer.start()
        return encounter_id

    def get(self, encounter_id: str) -> Optional[EncounterContext]:
        with self._lock:
            return self._contexts.get(encounter_id)

    def reply(self, encounter_id: str, message: str) -> Optional[PatientReply]:
        """Advance the encounter by one provider message, or ``None`` if unknown."""
        with self._lock:
            context = self._contexts.get(encounter_id)
            lock = self._locks.get(encounter_id)
        if context is None or lock is None:
            return None
        with lock:
            result = respond(context, message)
        if result.should_end:
            self.end(encounter_id)
        return result

    def end(self, encounter_id: str) -> bool:
        with self._lock:
            self._locks.pop(encounter_id, None)
            return self._contexts.pop(encounter_id, None) is not None


encounter_store = EncounterStore()
