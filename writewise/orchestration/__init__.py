"""Turn orchestration and the session phase state machine."""
from writewise.orchestration.state_machine import PhaseStateMachine, StateEvent, TransitionOutcome
from writewise.orchestration.orchestrator import CoachOrchestrator, TurnResult
