from pocketcourt.agents import parse_case_response
from pocketcourt.disposition import derive_from_motion, derive_from_verdict
from pocketcourt.export import render_docket
from pocketcourt.schemas import (
    DocketState, EvidenceStatus, EvidenceStatusUpdate, GamePhase, MotionRuling, MotionRulingLocked,
    RulingOutcome, TrialState, VerdictResult,
)
from pocketcourt.motion import apply_evidence_updates


def _locked(ruling, outcome_text):
    return MotionRulingLocked(
        motion_text="Dismiss for lack of evidence.",
        rebuttal_text="Fact 2 places Pickles at the pantry.",
        ruling=MotionRuling(ruling=ruling, outcome_text=outcome_text),
    )


def test_empty_state_exports_nothing():
    assert render_docket(DocketState()) == ""


def test_motion_dismissal_stops_export(bench_case_payload):
    motion = _locked(RulingOutcome.GRANTED, "Case dismissed with prejudice.")
    state = DocketState(
        phase=GamePhase.ENDED,
        case=parse_case_response(bench_case_payload),
        motion=motion,
        disposition=derive_from_motion(motion),
        counsel_notes="We got the motion; we can press the advantage.",
    )
    text = render_docket(state)
    assert text.startswith("DOCKET: State v. Pickles\nJUDGE: Judge Moody\nCHARGE: Grand theft tuna\n")
    assert "1. The tuna vanished at noon." in text
    assert 'Defense Motion:\n"Dismiss for lack of evidence."' in text
    assert 'Prosecution Rebuttal:\n"Fact 2 places Pickles at the pantry."' in text
    assert 'RULING: GRANTED - "Case dismissed with prejudice."' in text
    assert "FINAL DISPOSITION: Dismissed (Pre-Trial Motion Granted)" in text
    assert "COUNSEL NOTES" not in text
    assert "VERDICT" not in text
    assert text.endswith("\n") and not text.endswith("\n\n")


def test_verdict_export(bench_case_payload):
    case = parse_case_response(bench_case_payload)
    case = case.model_copy(update={"evidence": apply_evidence_updates(
        case.evidence, [EvidenceStatusUpdate(id=2, status=EvidenceStatus.SUPPRESSED)])})
    verdict = VerdictResult(
        judge_opinion="The State did not carry its burden.",
        final_ruling="Not Guilty",
        final_weighted_score=87.6,
    )
    state = DocketState(
        phase=GamePhase.ENDED,
        case=case,
        motion=_locked(RulingOutcome.PARTIALLY_GRANTED, "Evidence 2 is suppressed."),
        trial=TrialState(text="Fact 1 proves nothing.", verdict=verdict, locked=True),
        disposition=derive_from_verdict(verdict),
        counsel_notes="We can breathe after that verdict.",
    )
    text = render_docket(state)
    assert "2. Empty tuna can [SUPPRESSED]" in text
    assert "COUNSEL NOTES:\nWe can breathe after that verdict." in text
    assert 'ARGUMENT:\n"Fact 1 proves nothing."' in text
    assert "VERDICT: Not Guilty (Score: 88)" in text
    assert 'OPINION: "The State did not carry its burden."' in text
    assert text.index("COUNSEL NOTES") < text.index("ARGUMENT") < text.index("FINAL DISPOSITION: Not Guilty")
