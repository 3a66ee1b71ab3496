"""Inline control-marker protocol spoken by the coach model."""
from writewise.protocol.markers import (
    CoachSignals,
    MarkerEvent,
    MarkerKind,
    ParsedReply,
    extract_signals,
    parse_reply,
    strip_control_markers,
    tokenize,
)
