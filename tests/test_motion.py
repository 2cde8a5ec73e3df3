from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter, ValidationError

from pocketcourt import motion
from pocketcourt.agents import parse_case_response
from pocketcourt.errors import PhaseError, TurnViolation
from pocketcourt.registry import build_registry
from pocketcourt.schemas import (
    Actor, EvidenceStatus, EvidenceStatusUpdate, MotionExchangeState, MotionRuling, MotionRulingLocked,
    MotionSubmission, RebuttalSubmission, Role, RulingOutcome, SubmissionPhase,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def registry(case_payload):
    return build_registry(parse_case_response(case_payload))


def test_prosecution_cannot_file_the_motion(registry):
    state = motion.new_motion_state()
    with pytest.raises(TurnViolation):
        motion.submit(state, Role.PROSECUTION, "I move first.", registry, now=NOW)
    assert state.motion_text == ""
    assert isinstance(state, MotionSubmission)


def test_defense_motion_advances_to_rebuttal(registry):
    state, record = motion.submit(motion.new_motion_state(), Role.DEFENSE, "  Suppress Evidence 1. ",
                                  registry, now=NOW)
    assert isinstance(state, RebuttalSubmission)
    assert state.motion_text == "Suppress Evidence 1."
    assert state.rebuttal_text == ""
    assert record.phase == SubmissionPhase.MOTION
    assert record.submitted_by == Actor.DEFENSE


def test_blank_submission_is_ignored(registry):
    state = motion.new_motion_state()
    assert motion.submit(state, Role.DEFENSE, "   ", registry) == (state, None)


def test_drafted_rebuttal_replaces_field(registry):
    state = RebuttalSubmission(motion_text="Motion", rebuttal_text="old draft")
    state, record = motion.apply_drafted_text(state, Role.DEFENSE, "Witness 1 saw it.", registry, now=NOW)
    assert state.rebuttal_text == "Witness 1 saw it."
    assert record.submitted_by == Actor.PROSECUTION
    assert motion.ready_for_ruling(state)


def test_opposing_counsel_cannot_take_players_step(registry):
    with pytest.raises(TurnViolation):
        motion.apply_drafted_text(motion.new_motion_state(), Role.DEFENSE, "text", registry)


def test_ruling_needs_both_texts():
    assert not motion.ready_for_ruling(motion.new_motion_state())
    assert not motion.ready_for_ruling(RebuttalSubmission(motion_text="Motion"))


def test_locked_exchange_rejects_more_filings(registry):
    ruling = MotionRuling(ruling=RulingOutcome.DENIED, outcome_text="Denied.")
    locked = motion.lock_with_ruling(RebuttalSubmission(motion_text="M", rebuttal_text="R"), ruling)
    assert locked.locked
    assert motion.expected_role(locked) is None
    with pytest.raises(PhaseError):
        motion.submit(locked, Role.DEFENSE, "More", registry)


def test_locked_variant_requires_ruling():
    with pytest.raises(ValidationError):
        MotionRulingLocked(motion_text="M", rebuttal_text="R")


def test_motion_roles_are_fixed():
    with pytest.raises(ValidationError):
        MotionSubmission(motion_by=Role.PROSECUTION)


def test_exchange_union_dispatches_on_phase():
    adapter = TypeAdapter(MotionExchangeState)
    state = adapter.validate_python({"phase": "rebuttal_submission", "motion_text": "M"})
    assert isinstance(state, RebuttalSubmission)
    with pytest.raises(ValidationError):
        adapter.validate_python({"phase": "rebuttal_submission"})


def test_evidence_updates_ignore_unknown_ids(case_payload):
    evidence = parse_case_response(case_payload).evidence
    updated = motion.apply_evidence_updates(evidence, [
        EvidenceStatusUpdate(id=2, status=EvidenceStatus.SUPPRESSED),
        EvidenceStatusUpdate(id=42, status=EvidenceStatus.SUPPRESSED),
    ])
    assert [item.status for item in updated] == [EvidenceStatus.ADMISSIBLE, EvidenceStatus.SUPPRESSED]
    assert [item.id for item in updated] == [1, 2]
