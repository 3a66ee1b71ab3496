"""
Lesson Telemetry

Best-effort recording of lesson events (phase transitions, hints, steps,
comprehension checks) and generator interactions. System prompts are
stored once, keyed by their sha256 hash, and interactions reference the
hash. Recording never blocks or fails a turn: every error is logged and
swallowed.
"""

import hashlib
import json
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, Field

from writewise.models.generation import GeneratorResult

logger = logging.getLogger("writewise.telemetry")


class LessonEvent(BaseModel):
    """Single lesson event."""

    timestamp: datetime = Field(default_factory=datetime.utcnow)
    child_id: str
    session_id: str
    lesson_id: str
    event_type: str
    phase: Optional[str] = None
    event_data: Dict[str, Any] = Field(default_factory=dict)


class LLMInteraction(BaseModel):
    """One generator call with its prompt hash, reply, and usage."""

    timestamp: datetime = Field(default_factory=datetime.utcnow)
    session_id: Optional[str] = None
    child_id: Optional[str] = None
    lesson_id: Optional[str] = None
    request_type: str
    system_prompt_hash: str
    turn_number: Optional[int] = None
    user_message: Optional[str] = None
    raw_response: str = ""
    stripped_response: Optional[str] = None
    markers_detected: Dict[str, Any] = Field(default_factory=dict)
    provider: Optional[str] = None
    model: Optional[str] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    latency_ms: Optional[int] = None
    error: Optional[str] = None


def hash_system_prompt(system_prompt: str) -> str:
    return hashlib.sha256(system_prompt.encode("utf-8")).hexdigest()


class TelemetryStore:
    """In-memory storage for lesson telemetry, thread-safe."""

    def __init__(self, max_records_per_session: int = 500):
        self._events: Dict[str, List[LessonEvent]] = {}
        self._interactions: Dict[str, List[LLMInteraction]] = {}
        self._prompts: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._max_records = max_records_per_session

    def _append(self, table: Dict[str, list], key: str, record: BaseModel) -> None:
        records = table.setdefault(key, [])
        records.append(record)
        if len(records) > self._max_records:
            table[key] = records[-self._max_records:]

    def add_event(self, event: LessonEvent) -> None:
        with self._lock:
            self._append(self._events, event.session_id, event)

    def add_interaction(self, interaction: LLMInteraction, system_prompt: str) -> None:
        with self._lock:
            self._prompts.setdefault(interaction.system_prompt_hash, system_prompt)
            self._append(self._interactions, interaction.session_id or "", interaction)

    def get_events(self, session_id: str, event_type: Optional[str] = None) -> List[LessonEvent]:
        with self._lock:
            events = list(self._events.get(session_id, []))
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events

    def get_interactions(self, session_id: Optional[str] = None) -> List[LLMInteraction]:
        with self._lock:
            return list(self._interactions.get(session_id or "", []))

    def get_prompt(self, prompt_hash: str) -> Optional[str]:
        with self._lock:
            return self._prompts.get(prompt_hash)

    def clear_session(self, session_id: str) -> None:
        with self._lock:
            self._events.pop(session_id, None)
            self._interactions.pop(session_id, None)

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "session_count": len(set(self._events) | set(self._interactions)),
                "total_events": sum(len(v) for v in self._events.values()),
                "total_interactions": sum(len(v) for v in self._interactions.values()),
                "distinct_prompts": len(self._prompts),
            }


_telemetry_store: Optional[TelemetryStore] = None


def get_telemetry_store() -> TelemetryStore:
    global _telemetry_store
    if _telemetry_store is None:
        _telemetry_store = TelemetryStore()
    return _telemetry_store


class EventLogger:
    """Fire-and-forget front end for the telemetry store.

    An optional `sink` receives every record as well (e.g. a queue feeding
    an external store). Failures anywhere are logged, never raised.
    """

    def __init__(
        self,
        store: Optional[TelemetryStore] = None,
        sink: Optional[Callable[[BaseModel], None]] = None,
    ):
        self.store = store or get_telemetry_store()
        self.sink = sink

    def log_lesson_event(
        self,
        child_id: str,
        session_id: str,
        lesson_id: str,
        event_type: str,
        phase: Optional[str] = None,
        event_data: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            event = LessonEvent(
                child_id=child_id,
                session_id=session_id,
                lesson_id=lesson_id,
                event_type=event_type,
                phase=phase,
                event_data=event_data or {},
            )
            self.store.add_event(event)
            if self.sink:
                self.sink(event)
        except Exception as e:
            logger.error(json.dumps({
                "step": "TELEMETRY",
                "status": "lesson_event_failed",
                "event_type": event_type,
                "error": str(e),
            }))

    def log_llm_interaction(
        self,
        request_type: str,
        system_prompt: str,
        raw_response: str = "",
        llm_result: Optional[GeneratorResult] = None,
        session_id: Optional[str] = None,
        child_id: Optional[str] = None,
        lesson_id: Optional[str] = None,
        turn_number: Optional[int] = None,
        user_message: Optional[str] = None,
        stripped_response: Optional[str] = None,
        markers_detected: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        try:
            interaction = LLMInteraction(
                session_id=session_id,
                child_id=child_id,
                lesson_id=lesson_id,
                request_type=request_type,
                system_prompt_hash=hash_system_prompt(system_prompt),
                turn_number=turn_number,
                user_message=user_message,
                raw_response=raw_response,
                stripped_response=stripped_response,
                markers_detected=markers_detected or {},
                provider=llm_result.provider if llm_result else None,
                model=llm_result.model if llm_result else None,
                input_tokens=llm_result.input_tokens if llm_result else None,
                output_tokens=llm_result.output_tokens if llm_result else None,
                latency_ms=llm_result.latency_ms if llm_result else None,
                error=error,
            )
            self.store.add_interaction(interaction, system_prompt)
            if self.sink:
                self.sink(interaction)
        except Exception as e:
            logger.error(json.dumps({
                "step": "TELEMETRY",
                "status": "llm_interaction_failed",
                "request_type": request_type,
                "error": str(e),
            }))
