"""
Disposition resolver: maps ruling and verdict text to a canonical outcome.
Once a terminal disposition is on the docket nothing replaces it.
"""

import re
from typing import Optional, Union

from .schemas import (
    DispositionRecord, DispositionSource, FinalDisposition, RulingOutcome,
    TERMINAL_DISPOSITIONS, VerdictResult,
)

_NEGATED_DISMISSAL = re.compile(r"\b(?:not|no)\s+dismiss(?:ed|al)?\b")

DISMISSAL_TYPES = frozenset({
    FinalDisposition.DISMISSED,
    FinalDisposition.DISMISSED_WITH_PREJUDICE,
    FinalDisposition.DISMISSED_WITHOUT_PREJUDICE,
})

MERIT_RELEASE_TYPES = DISMISSAL_TYPES | {FinalDisposition.NOT_GUILTY}


def classify_disposition_text(text: Optional[str]) -> Optional[FinalDisposition]:
    if not text:
        return None
    normalized = text.lower()

    if "dismiss" in normalized and not _NEGATED_DISMISSAL.search(normalized):
        if "without prejudice" in normalized:
            return FinalDisposition.DISMISSED_WITHOUT_PREJUDICE
        if "with prejudice" in normalized:
            return FinalDisposition.DISMISSED_WITH_PREJUDICE
        return FinalDisposition.DISMISSED

    if "hung" in normalized and "jury" in normalized:
        return FinalDisposition.MISTRIAL_HUNG_JURY
    if "mistrial" in normalized:
        return FinalDisposition.MISTRIAL_CONDUCT
    if "not guilty" in normalized or "acquit" in normalized:
        return FinalDisposition.NOT_GUILTY
    if any(word in normalized for word in ("guilty", "liable", "convict")):
        return FinalDisposition.GUILTY
    return None


def disposition_label(kind: FinalDisposition, source: DispositionSource) -> str:
    if kind in DISMISSAL_TYPES:
        return "Dismissed (Pre-Trial Motion Granted)" if source == DispositionSource.MOTION else "Dismissed"
    return {
        FinalDisposition.MISTRIAL_HUNG_JURY: "Mistrial (Hung Jury)",
        FinalDisposition.MISTRIAL_CONDUCT: "Mistrial (Conduct)",
        FinalDisposition.NOT_GUILTY: "Not Guilty",
        FinalDisposition.GUILTY: "Guilty",
    }.get(kind, "Final Disposition")


def _disposition_type(disposition) -> Optional[FinalDisposition]:
    if disposition is None:
        return None
    if isinstance(disposition, DispositionRecord):
        return disposition.type
    try:
        return FinalDisposition(disposition)
    except ValueError:
        return None


def is_terminal(disposition: Union[DispositionRecord, str, None]) -> bool:
    return _disposition_type(disposition) in TERMINAL_DISPOSITIONS


def guard(current: Optional[DispositionRecord], next_record: Optional[DispositionRecord]):
    """Keep `current` once it is terminal, whatever `next_record` is."""
    return current if is_terminal(current) else next_record


def derive_from_motion(motion) -> Optional[DispositionRecord]:
    """Only a granted (or partially granted) dismissal ends the case pre-trial."""
    ruling = getattr(motion, "ruling", None)
    if ruling is None:
        return None
    if ruling.ruling not in (RulingOutcome.GRANTED, RulingOutcome.PARTIALLY_GRANTED):
        return None
    outcome_text = (ruling.outcome_text or "").strip()
    kind = classify_disposition_text(outcome_text)
    if kind not in DISMISSAL_TYPES:
        return None
    return DispositionRecord(
        type=kind,
        source=DispositionSource.MOTION,
        summary=disposition_label(kind, DispositionSource.MOTION),
        details=f'RULING: {ruling.ruling.value} - "{outcome_text}"',
    )


def derive_from_verdict(verdict: Optional[VerdictResult]) -> Optional[DispositionRecord]:
    final_ruling = (verdict.final_ruling if verdict else "").strip()
    kind = classify_disposition_text(final_ruling)
    if kind is None:
        return None

    details = []
    if verdict.jury_verdict and verdict.jury_verdict != "N/A":
        details.append(f"JURY VERDICT: {verdict.jury_verdict}")
        if verdict.jury_reasoning:
            details.append(f'JURY REASONING: "{verdict.jury_reasoning}"')
    if verdict.judge_opinion:
        details.append(f'JUDGE OPINION: "{verdict.judge_opinion}"')

    return DispositionRecord(
        type=kind,
        source=DispositionSource.VERDICT,
        summary=final_ruling,
        details="\n".join(details),
    )


def is_merit_release(disposition) -> bool:
    return _disposition_type(disposition) in MERIT_RELEASE_TYPES
