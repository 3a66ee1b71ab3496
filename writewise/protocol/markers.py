"""
Marker Protocol Codec

The coach model annotates its replies with bracketed control markers:

    [ANSWER_TYPE: choice|multiselect|poll|order|highlight]
    [OPTIONS: first | second | third]
    [PASSAGE: "text to highlight, may span lines"]
    [STEP: N]
    [COMPREHENSION_CHECK: passed|failed]   (legacy: [COMPREHENSION_CHECK_PASSED])
    [HINT_GIVEN]
    [PHASE_TRANSITION: guided|assessment]
    [INSTRUCTION_COMPLETE] [GUIDED_COMPLETE] [GUIDED_STAGE: N]

plus any other upper-case backend marker. `tokenize` turns a reply into
typed MarkerEvents; stripping and signal extraction both work off those
events. Every marker is removed from the learner-facing text except
[STEP: N], which the client renders and is kept verbatim.
"""

import json
import logging
import re
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from writewise.exceptions import ProtocolParseError
from writewise.models.messages import AnswerMeta
from writewise.models.session_state import Phase

logger = logging.getLogger("writewise.protocol")


class MarkerKind(str, Enum):
    ANSWER_TYPE = "answer_type"
    OPTIONS = "options"
    PASSAGE = "passage"
    STEP = "step"
    COMPREHENSION_CHECK = "comprehension_check"
    HINT_GIVEN = "hint_given"
    PHASE_TRANSITION = "phase_transition"
    INSTRUCTION_COMPLETE = "instruction_complete"
    GUIDED_COMPLETE = "guided_complete"
    GUIDED_STAGE = "guided_stage"
    OTHER = "other"


_KNOWN_MARKERS: dict[str, MarkerKind] = {
    "ANSWER_TYPE": MarkerKind.ANSWER_TYPE,
    "OPTIONS": MarkerKind.OPTIONS,
    "PASSAGE": MarkerKind.PASSAGE,
    "STEP": MarkerKind.STEP,
    "COMPREHENSION_CHECK": MarkerKind.COMPREHENSION_CHECK,
    "COMPREHENSION_CHECK_PASSED": MarkerKind.COMPREHENSION_CHECK,
    "HINT_GIVEN": MarkerKind.HINT_GIVEN,
    "PHASE_TRANSITION": MarkerKind.PHASE_TRANSITION,
    "INSTRUCTION_COMPLETE": MarkerKind.INSTRUCTION_COMPLETE,
    "GUIDED_COMPLETE": MarkerKind.GUIDED_COMPLETE,
    "GUIDED_STAGE": MarkerKind.GUIDED_STAGE,
}

ANSWER_TYPES = ("choice", "multiselect", "poll", "order", "highlight")
COMPREHENSION_RESULTS = ("passed", "failed")

# Kinds the learner-facing text keeps
_VISIBLE_KINDS = frozenset({MarkerKind.STEP})

# A well-formed passage: body runs to the first quote followed by "]" and
# may hold brackets of its own. It may not run into another known marker,
# so an unterminated quote cannot swallow the rest of the reply.
_PASSAGE_RE = re.compile(
    r'\[\s*PASSAGE\s*:\s*"(?P<body>(?:(?!\[\s*(?:'
    + "|".join(sorted(_KNOWN_MARKERS, key=len, reverse=True))
    + r')\b).)*?)"\s*\]',
    re.IGNORECASE | re.DOTALL,
)
_MARKER_RE = re.compile(
    r"\[\s*(?P<name>[A-Za-z][A-Za-z0-9_]*)\s*(?::(?P<payload>[^\]]*))?\]"
)


class MarkerEvent(BaseModel):
    """One control marker found in a reply."""

    model_config = ConfigDict(frozen=True)

    kind: MarkerKind
    name: str = Field(description="Marker name as written, upper-cased")
    raw: str = Field(description="Exact marker text including brackets")
    start: int
    end: int
    value: Any = Field(default=None, description="Decoded payload, None when absent or malformed")
    error: Optional[str] = Field(default=None, description="Why the payload could not be decoded")

    @property
    def is_malformed(self) -> bool:
        return self.error is not None


class CoachSignals(BaseModel):
    """Machine-actionable signals carried by one coach reply."""

    answer_type: Optional[str] = None
    options: Optional[tuple[str, ...]] = None
    passage: Optional[str] = None
    step: Optional[int] = None
    comprehension_check: Optional[str] = None
    hint_given: bool = False
    phase_transition: Optional[Phase] = None
    instruction_complete: bool = False
    guided_complete: bool = False
    guided_stage: Optional[int] = None

    @property
    def comprehension_passed(self) -> bool:
        return self.comprehension_check == "passed"

    def answer_meta(self) -> Optional[AnswerMeta]:
        """Interactive answer metadata, or None when no answer type was signalled."""
        if self.answer_type is None:
            return None
        return AnswerMeta(answer_type=self.answer_type, options=self.options, passage=self.passage)

    def detected(self) -> dict[str, Any]:
        """Non-default signals, for telemetry."""
        return self.model_dump(mode="json", exclude_defaults=True)


class ParsedReply(BaseModel):
    display_text: str
    signals: CoachSignals
    events: list[MarkerEvent] = Field(default_factory=list)
    anomalies: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Payload decoders
# ---------------------------------------------------------------------------

def _strip_one_quote_layer(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value


def _decode_answer_type(payload: Optional[str]) -> str:
    value = (payload or "").strip().lower()
    if value not in ANSWER_TYPES:
        raise ValueError(f"unknown answer type {value!r}")
    return value


def _decode_options(payload: Optional[str]) -> tuple[str, ...]:
    options = tuple(
        _strip_one_quote_layer(segment.strip())
        for segment in (payload or "").split("|")
    )
    options = tuple(opt for opt in options if opt)
    if not options:
        raise ValueError("no options listed")
    return options


def _decode_passage(payload: Optional[str]) -> str:
    text = payload or ""
    first = text.find('"')
    last = text.rfind('"')
    if first == -1 or last == first:
        raise ValueError("passage is not enclosed in quotes")
    return text[first + 1:last]


def _decode_int(payload: Optional[str], low: Optional[int] = None, high: Optional[int] = None) -> int:
    value = int((payload or "").strip())
    if low is not None and high is not None and not low <= value <= high:
        raise ValueError(f"{value} outside {low}..{high}")
    return value


def _decode_comprehension(name: str, payload: Optional[str]) -> str:
    if name == "COMPREHENSION_CHECK_PASSED":
        return "passed"
    value = (payload or "").strip().lower()
    if value not in COMPREHENSION_RESULTS:
        raise ValueError(f"unknown comprehension result {value!r}")
    return value


def _decode_phase(payload: Optional[str]) -> Phase:
    return Phase((payload or "").strip().lower())


def _decode(kind: MarkerKind, name: str, payload: Optional[str]) -> Any:
    if kind is MarkerKind.ANSWER_TYPE:
        return _decode_answer_type(payload)
    if kind is MarkerKind.OPTIONS:
        return _decode_options(payload)
    if kind is MarkerKind.PASSAGE:
        return _decode_passage(payload)
    if kind is MarkerKind.STEP:
        # Range is enforced where the step is applied; any integer step stays visible
        return _decode_int(payload)
    if kind is MarkerKind.GUIDED_STAGE:
        return _decode_int(payload, 1, 3)
    if kind is MarkerKind.COMPREHENSION_CHECK:
        return _decode_comprehension(name, payload)
    if kind is MarkerKind.PHASE_TRANSITION:
        return _decode_phase(payload)
    if kind is MarkerKind.OTHER:
        return payload.strip() if payload is not None else None
    return True


def _classify(name: str, payload: Optional[str]) -> Optional[MarkerKind]:
    upper = name.upper()
    if upper in _KNOWN_MARKERS:
        return _KNOWN_MARKERS[upper]
    # Unknown backend markers are upper-case tags; ordinary bracketed prose is left alone
    if name == upper and len(name) >= 3 and ("_" in name or payload is not None):
        return MarkerKind.OTHER
    return None


def _make_event(match: re.Match, name: str, kind: MarkerKind, payload: Optional[str]) -> MarkerEvent:
    value = None
    error = None
    try:
        value = _decode(kind, name, payload)
    except ValueError as e:
        parse_error = ProtocolParseError(name, str(e))
        error = parse_error.message
        logger.warning(json.dumps({
            "step": "MARKER_PARSE",
            "status": "anomaly",
            "marker": name,
            "raw": match.group(0)[:200],
            "error": error,
        }))
    return MarkerEvent(
        kind=kind,
        name=name,
        raw=match.group(0),
        start=match.start(),
        end=match.end(),
        value=value,
        error=error,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def tokenize(text: str) -> list[MarkerEvent]:
    """Find every control marker in `text`, in order of appearance."""
    events: list[MarkerEvent] = []
    passage_spans: list[tuple[int, int]] = []

    for match in _PASSAGE_RE.finditer(text):
        passage_spans.append(match.span())
        events.append(MarkerEvent(
            kind=MarkerKind.PASSAGE,
            name="PASSAGE",
            raw=match.group(0),
            start=match.start(),
            end=match.end(),
            value=match.group("body"),
        ))

    for match in _MARKER_RE.finditer(text):
        if any(start <= match.start() < end for start, end in passage_spans):
            continue
        name = match.group("name").upper()
        payload = match.group("payload")
        kind = _classify(match.group("name"), payload)
        if kind is None:
            continue
        events.append(_make_event(match, name, kind, payload))

    events.sort(key=lambda e: e.start)
    return events


def strip_control_markers(text: str, events: Optional[list[MarkerEvent]] = None) -> str:
    """Remove every control marker except an integer [STEP: N], which is kept as written."""
    if events is None:
        events = tokenize(text)

    pieces: list[str] = []
    cursor = 0
    for event in events:
        if event.kind in _VISIBLE_KINDS and not event.is_malformed:
            continue
        pieces.append(text[cursor:event.start])
        cursor = event.end
        while cursor < len(text) and text[cursor].isspace():
            cursor += 1
    pieces.append(text[cursor:])
    return "".join(pieces).strip()


def extract_signals(text: str, events: Optional[list[MarkerEvent]] = None) -> CoachSignals:
    """Decode signals; the first occurrence of each kind wins, later ones are ignored."""
    if events is None:
        events = tokenize(text)

    first: dict[MarkerKind, MarkerEvent] = {}
    for event in events:
        if event.kind is MarkerKind.OTHER:
            continue
        first.setdefault(event.kind, event)

    def value_of(kind: MarkerKind) -> Any:
        event = first.get(kind)
        if event is None or event.is_malformed:
            return None
        return event.value

    return CoachSignals(
        answer_type=value_of(MarkerKind.ANSWER_TYPE),
        options=value_of(MarkerKind.OPTIONS),
        passage=value_of(MarkerKind.PASSAGE),
        step=value_of(MarkerKind.STEP),
        comprehension_check=value_of(MarkerKind.COMPREHENSION_CHECK),
        hint_given=MarkerKind.HINT_GIVEN in first,
        phase_transition=value_of(MarkerKind.PHASE_TRANSITION),
        instruction_complete=MarkerKind.INSTRUCTION_COMPLETE in first,
        guided_complete=MarkerKind.GUIDED_COMPLETE in first,
        guided_stage=value_of(MarkerKind.GUIDED_STAGE),
    )


def parse_reply(text: str) -> ParsedReply:
    """Split a raw coach reply into learner-facing text and control signals."""
    events = tokenize(text)
    return ParsedReply(
        display_text=strip_control_markers(text, events),
        signals=extract_signals(text, events),
        events=events,
        anomalies=[e.error for e in events if e.is_malformed],
    )
