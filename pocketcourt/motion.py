"""
Pre-trial motion exchange state machine.

The exchange always runs defense motion -> prosecution rebuttal -> judge ruling.
The player's role only decides whether the player or opposing counsel files
each step.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Union

from .errors import PhaseError, TurnViolation
from .references import validate
from .registry import DocketRegistry
from .schemas import (
    Actor, EvidenceItem, EvidenceStatusUpdate, MotionRuling, MotionRulingLocked,
    MotionSubmission, RebuttalSubmission, Role, SubmissionPhase, ValidationRecord,
)

logger = logging.getLogger(__name__)

MotionState = Union[MotionSubmission, RebuttalSubmission, MotionRulingLocked]


def new_motion_state() -> MotionSubmission:
    return MotionSubmission()


def expected_role(state: MotionState) -> Optional[Role]:
    if isinstance(state, MotionSubmission):
        return state.motion_by
    if isinstance(state, RebuttalSubmission):
        return state.rebuttal_by
    return None


def submission_phase(state: MotionState) -> SubmissionPhase:
    return SubmissionPhase.MOTION if isinstance(state, MotionSubmission) else SubmissionPhase.REBUTTAL


def _file_text(state: MotionState, text: str) -> MotionState:
    if isinstance(state, MotionSubmission):
        return RebuttalSubmission(motion_text=text)
    if isinstance(state, RebuttalSubmission):
        return RebuttalSubmission(motion_text=state.motion_text, rebuttal_text=text)
    raise PhaseError("Motion exchange is locked.", context={"phase": state.phase.value})


def _record(state: MotionState, role: Role, text: str, registry: DocketRegistry,
            now: Optional[datetime]) -> ValidationRecord:
    return validate(text, registry, submission_phase(state), Actor(role.value), now=now)


def submit(
    state: MotionState,
    player_role: Role,
    text: str,
    registry: DocketRegistry,
    now: Optional[datetime] = None,
) -> tuple[MotionState, Optional[ValidationRecord]]:
    """
    File the player's text for the current step.

    Raises TurnViolation when the step belongs to the other side; the state is
    returned untouched for blank text.
    """
    trimmed = (text or "").strip()
    role = expected_role(state)
    if role is None:
        raise PhaseError("Motion exchange is locked.", context={"phase": state.phase.value})
    if not trimmed:
        return state, None
    if role != player_role:
        raise TurnViolation(
            f"{player_role.value} attempted to file during {state.phase.value}",
            context={"expected_role": role.value, "player_role": player_role.value},
        )

    record = _record(state, role, trimmed, registry, now)
    logger.info("Player filed %s (%s)", submission_phase(state).value, record.classification.value)
    return _file_text(state, trimmed), record


def apply_drafted_text(
    state: MotionState,
    player_role: Role,
    text: str,
    registry: DocketRegistry,
    now: Optional[datetime] = None,
) -> tuple[MotionState, ValidationRecord]:
    """Store opposing counsel's draft for the step owned by the non-player side."""
    role = expected_role(state)
    if role is None:
        raise PhaseError("Motion exchange is locked.", context={"phase": state.phase.value})
    if role == player_role:
        raise TurnViolation(
            "Opposing counsel cannot file the player's submission",
            context={"expected_role": role.value},
        )
    record = _record(state, role, text, registry, now)
    logger.info("Opposing counsel filed %s (%s)", submission_phase(state).value, record.classification.value)
    return _file_text(state, text), record


def ready_for_ruling(state: MotionState) -> bool:
    return (
        isinstance(state, RebuttalSubmission)
        and bool(state.motion_text.strip())
        and bool(state.rebuttal_text.strip())
    )


def lock_with_ruling(state: RebuttalSubmission, ruling: MotionRuling) -> MotionRulingLocked:
    return MotionRulingLocked(
        motion_text=state.motion_text,
        rebuttal_text=state.rebuttal_text,
        ruling=ruling,
    )


def apply_evidence_updates(
    evidence: Iterable[EvidenceItem],
    updates: Iterable[EvidenceStatusUpdate],
) -> tuple[EvidenceItem, ...]:
    """Apply admissibility changes; unknown evidence ids are ignored."""
    evidence = tuple(evidence)
    update_map = {update.id: update.status for update in updates}
    if not update_map:
        return evidence
    result = []
    for item in evidence:
        status = update_map.get(item.id)
        if status is None or status == item.status:
            result.append(item)
        else:
            logger.info("Evidence %s is now %s", item.id, status.value)
            result.append(item.model_copy(update={"status": status}))
    return tuple(result)
