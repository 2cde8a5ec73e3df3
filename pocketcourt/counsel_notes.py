"""
Counsel notes: one or two in-character sentences from the player's own bench
after voir dire, the motion ruling and the verdict.
"""

import re
from typing import Iterable, Optional

from .disposition import classify_disposition_text
from .schemas import FinalDisposition, Juror, MotionRuling, Role, VerdictResult

MAX_COUNSEL_NOTES_LENGTH = 160

_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")

DEFENSE_WINS = frozenset({
    FinalDisposition.NOT_GUILTY,
    FinalDisposition.DISMISSED,
    FinalDisposition.DISMISSED_WITH_PREJUDICE,
    FinalDisposition.DISMISSED_WITHOUT_PREJUDICE,
})


def normalize_counsel_notes(text: Optional[str]) -> str:
    if not text:
        return ""
    cleaned = " ".join(text.split())
    if not cleaned:
        return ""
    limited = " ".join(_SENTENCE_BREAK.split(cleaned)[:2]).strip()
    if len(limited) <= MAX_COUNSEL_NOTES_LENGTH:
        return limited
    return limited[:MAX_COUNSEL_NOTES_LENGTH - 3].rstrip() + "..."


def fallback_note(role: Role, motion_outcome: Optional[str] = None,
                  verdict_outcome: Optional[str] = None) -> str:
    return normalize_counsel_notes(
        f"We are the {role.value}; motion {motion_outcome or 'pending'}, "
        f"verdict {verdict_outcome or 'pending'}."
    )


def jury_note(seated_jurors: Iterable[Juror], role: Role) -> str:
    hints = []
    for juror in seated_jurors:
        hint = (juror.bias_hint or "").rstrip(".").strip()
        if hint and hint not in hints:
            hints.append(hint)
    if hints:
        return normalize_counsel_notes(f"We are reading a jury: {'; '.join(hints[:2])}.")
    return normalize_counsel_notes(f"We are the {role.value} and calibrating to this panel.")


_MOTION_REACTIONS = {
    # (outcome, player filed the motion)
    ("granted", True): "We got the motion; we can press the advantage.",
    ("granted", False): "We need to blunt their granted motion and keep our theme steady.",
    ("denied", True): "We lost the motion; we need to sharpen the story.",
    ("denied", False): "We dodged their motion; momentum feels steadier now.",
    ("partially granted", True): "We got a split ruling; we adjust around the gaps.",
    ("partially granted", False): "We split the motion; we adjust around the edges.",
}


def motion_note(ruling: Optional[MotionRuling], role: Role, motion_by: Role = Role.DEFENSE) -> str:
    if ruling is None:
        return fallback_note(role, "pending")
    outcome = ruling.ruling.value.lower()
    reaction = _MOTION_REACTIONS.get((outcome, motion_by == role))
    return normalize_counsel_notes(reaction) if reaction else fallback_note(role, outcome)


def verdict_note(verdict: Optional[VerdictResult], role: Role) -> str:
    if verdict is None or not verdict.final_ruling:
        return fallback_note(role, verdict_outcome="pending")
    kind = classify_disposition_text(verdict.final_ruling)
    if kind is None or kind not in DEFENSE_WINS | {FinalDisposition.GUILTY}:
        return fallback_note(role, verdict_outcome=verdict.final_ruling)

    defense_won = kind in DEFENSE_WINS
    if role == Role.DEFENSE:
        if defense_won:
            return normalize_counsel_notes("We can breathe after that verdict; the room heard our themes.")
        return normalize_counsel_notes("We absorb the verdict and take notes for the next fight.")
    if defense_won:
        return normalize_counsel_notes("We take the verdict in stride and log the gaps to fix.")
    return normalize_counsel_notes("We feel the verdict land our way; the narrative held.")
