from datetime import datetime, timezone

import pytest

from pocketcourt.agents import parse_case_response, parse_verdict_response
from pocketcourt.registry import build_registry
from pocketcourt.schemas import Compliance, EvidenceStatus, EvidenceStatusUpdate, TrialState
from pocketcourt.motion import apply_evidence_updates
from pocketcourt.verdict import REJECTION_REASON, review_verdict, verdict_text

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def registry(case_payload):
    case = parse_case_response(case_payload)
    evidence = apply_evidence_updates(case.evidence, [EvidenceStatusUpdate(id=2, status=EvidenceStatus.SUPPRESSED)])
    return build_registry(case.model_copy(update={"evidence": evidence}))


def _verdict(final_ruling, opinion="The court has considered the argument.", reasoning=""):
    payload = {
        "final_ruling": final_ruling,
        "judge_opinion": opinion,
        "jury_reasoning": reasoning,
        "final_weighted_score": 72,
    }
    return payload, parse_verdict_response(payload)


def test_verdict_text_joins_ruling_opinion_and_reasoning():
    _, verdict = _verdict("Guilty", "Opinion.", "Reasoning.")
    assert verdict_text(verdict) == "Guilty Opinion. Reasoning."


def test_verdict_citing_suppressed_evidence_is_rejected(registry):
    payload, verdict = _verdict("guilty based on Evidence 2")
    review = review_verdict(TrialState(), payload, verdict, registry, argument_text="My argument", now=NOW)

    assert not review.accepted
    assert review.validation.classification == Compliance.NON_COMPLIANT
    assert review.trial.locked is False
    assert review.trial.verdict is None
    assert review.trial.text == "My argument"
    assert len(review.trial.rejected_verdicts) == 1
    rejection = review.trial.rejected_verdicts[0]
    assert rejection.reason == REJECTION_REASON
    assert rejection.payload == payload
    assert rejection.validation.references.evidence.inadmissible == (2,)


def test_rejections_accumulate_then_clean_verdict_commits(registry):
    trial = TrialState()
    for ruling in ("Guilty per Fact 9", "Guilty per Evidence 2 and Fact 1"):
        payload, verdict = _verdict(ruling)
        trial = review_verdict(trial, payload, verdict, registry, now=NOW).trial
    assert len(trial.rejected_verdicts) == 2

    payload, verdict = _verdict("Not Guilty", "Fact 1 does not place the cat at the scene.")
    review = review_verdict(trial, payload, verdict, registry, now=NOW)
    assert review.accepted
    assert review.trial.locked
    assert review.trial.verdict == verdict
    assert len(review.trial.rejected_verdicts) == 2
