"""
Prompt Builder

Assembles the coach system prompt from the core persona, the tier insert,
the phase instructions, the session context, and (while assessing or giving
feedback) the rubric. Pure: identical inputs always give the identical
prompt, so a resumed session rebuilds exactly what it had before.
"""

from typing import Optional
from pydantic import BaseModel, Field

from writewise.models.lesson import Lesson, Tier
from writewise.models.session_state import Phase, PhaseState, SessionState
from writewise.prompts.coach_prompts import (
    CORE_SYSTEM_PROMPT,
    PHASE_PROMPTS,
    PHASE_STATE_TEMPLATE,
    RUBRIC_SECTION_TEMPLATE,
    SESSION_CONTEXT_TEMPLATE,
    TIER_INSERTS,
)
from writewise.prompts.templates import format_numbered_list


SECTION_SEPARATOR = "\n\n---\n\n"

_RUBRIC_PHASES = (Phase.ASSESSMENT, Phase.FEEDBACK)


class PromptContext(BaseModel):
    """Everything the coach prompt depends on."""

    tier: Tier
    phase: Phase
    lesson_title: str
    learning_objectives: list[str] = Field(default_factory=list)
    lesson_id: Optional[str] = None
    student_name: Optional[str] = None
    student_age: Optional[int] = None
    phase_state: Optional[PhaseState] = None
    rubric_summary: Optional[str] = None


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _format_phase_state(phase: Phase, state: PhaseState) -> str:
    step_line = ""
    if phase == Phase.INSTRUCTION:
        step_line = f"\n- Phase 1 current step: {state.phase1_step or 1}"
    elif phase == Phase.GUIDED and state.guided_stage is not None:
        step_line = f"\n- Guided practice stage: {state.guided_stage}"

    return PHASE_STATE_TEMPLATE.render(
        instruction_completed=_flag(state.instruction_completed),
        comprehension_check_passed=_flag(state.comprehension_check_passed),
        step_line=step_line,
        guided_attempts=state.guided_attempts,
        hints_given=state.hints_given,
        guided_complete=_flag(state.guided_complete),
        revisions_used=state.revisions_used,
    )


def _format_session_context(context: PromptContext) -> str:
    lesson_label = context.lesson_title
    if context.lesson_id:
        lesson_label = f"{context.lesson_id} - {context.lesson_title}"

    section = SESSION_CONTEXT_TEMPLATE.render(
        lesson_label=lesson_label,
        phase_label=context.phase.value.upper(),
        objectives=format_numbered_list(context.learning_objectives),
    )

    if context.student_name:
        if context.student_age:
            who = f"{context.student_name} (age {context.student_age}, Tier {context.tier})"
        else:
            who = f"{context.student_name} (Tier {context.tier})"
        section = f"Student: {who}\n{section}"

    if context.phase_state is not None:
        section += "\n\n" + _format_phase_state(context.phase, context.phase_state)

    return section


def build_prompt(context: PromptContext) -> str:
    """Build the full system prompt for one coach turn."""
    parts = [
        CORE_SYSTEM_PROMPT,
        TIER_INSERTS[context.tier],
        PHASE_PROMPTS[context.phase.value],
        _format_session_context(context),
    ]

    if context.phase in _RUBRIC_PHASES and context.rubric_summary:
        parts.append(RUBRIC_SECTION_TEMPLATE.render(rubric_summary=context.rubric_summary))

    return SECTION_SEPARATOR.join(parts)


def build_prompt_from_session(
    session: SessionState,
    lesson: Lesson,
    student_name: Optional[str] = None,
    student_age: Optional[int] = None,
    rubric_summary: Optional[str] = None,
) -> str:
    """Build the prompt from persisted session fields only."""
    return build_prompt(PromptContext(
        tier=lesson.tier,
        phase=session.phase,
        lesson_id=session.lesson_id,
        lesson_title=lesson.title,
        learning_objectives=list(lesson.learning_objectives),
        student_name=student_name,
        student_age=student_age,
        phase_state=session.phase_state,
        rubric_summary=rubric_summary,
    ))
