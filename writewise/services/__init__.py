"""Coach services: generation, validation, scoring, placement, sessions, telemetry."""
