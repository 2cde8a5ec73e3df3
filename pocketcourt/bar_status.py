"""
Bar status summary for the player's sanctions and reinstatement state.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from .schemas import (
    PublicDefenderStatus, ReinstatementStatus, SanctionsState, SanctionsStateName,
)

SANCTIONS_LABELS = {
    SanctionsStateName.CLEAN: "Clean Record",
    SanctionsStateName.WARNED: "Warning Issued",
    SanctionsStateName.SANCTIONED: "Sanctioned",
    SanctionsStateName.PUBLIC_DEFENDER: "Public Defender Assignment",
    SanctionsStateName.RECENTLY_REINSTATED: "Reinstated (Grace Period)",
}

SANCTIONS_REASONS = {
    SanctionsStateName.CLEAN: "No active sanctions on record.",
    SanctionsStateName.WARNED: "A warning is currently on file.",
    SanctionsStateName.SANCTIONED: "An active sanction is on file.",
    SanctionsStateName.PUBLIC_DEFENDER: "Public defender assignment is active.",
    SanctionsStateName.RECENTLY_REINSTATED: "Reinstatement grace period is active.",
}

UNKNOWN_LABEL = "Status Unknown"


@dataclass
class StatusTimer:
    key: str
    label: str
    ends_at: datetime
    remaining_seconds: float
    remaining_label: str


@dataclass
class StatusTransition:
    state: SanctionsStateName
    label: str
    at: datetime
    remaining_seconds: float
    remaining_label: str


@dataclass
class BarStatus:
    state: Optional[SanctionsStateName]
    level: Optional[int]
    label: str
    reason: str
    timers: list[StatusTimer] = field(default_factory=list)
    next_transition: Optional[StatusTransition] = None


def state_label(state: Optional[SanctionsStateName]) -> str:
    return SANCTIONS_LABELS.get(state, UNKNOWN_LABEL)


def format_remaining(seconds: float) -> str:
    """Whole minutes rounded up: "45m", "1h 5m"."""
    total_minutes = max(0, math.ceil(seconds / 60))
    hours, minutes = divmod(total_minutes, 60)
    if hours <= 0:
        return f"{minutes}m"
    return f"{hours}h {minutes}m"


def _timer(key: str, label: str, ends_at: Optional[datetime], now: datetime) -> Optional[StatusTimer]:
    if ends_at is None or ends_at <= now:
        return None
    remaining = (ends_at - now).total_seconds()
    return StatusTimer(key, label, ends_at, remaining, format_remaining(remaining))


def _transition(state: SanctionsStateName, ends_at: Optional[datetime],
                now: datetime) -> Optional[StatusTransition]:
    if ends_at is None or ends_at <= now:
        return None
    remaining = (ends_at - now).total_seconds()
    return StatusTransition(state, state_label(state), ends_at, remaining, format_remaining(remaining))


def build_bar_status(
    sanctions: Optional[SanctionsState],
    pd_status: Optional[PublicDefenderStatus] = None,
    reinstatement: Optional[ReinstatementStatus] = None,
    now: Optional[datetime] = None,
) -> BarStatus:
    now = now or datetime.now(timezone.utc)
    state = sanctions.state if sanctions else None
    expires_at = sanctions.expires_at if sanctions else None

    reinstatement_ends = None
    if reinstatement is not None:
        reinstatement_ends = reinstatement.until
    elif sanctions is not None:
        reinstatement_ends = sanctions.recently_reinstated_until

    if pd_status is not None:
        pd_ends = pd_status.expires_at
    else:
        pd_ends = expires_at if state == SanctionsStateName.PUBLIC_DEFENDER else None

    timers = []
    if state == SanctionsStateName.WARNED:
        timers.append(_timer("warning", "Warning expires", expires_at, now))
    if state == SanctionsStateName.SANCTIONED:
        timers.append(_timer("sanction", "Sanction expires", expires_at, now))
    if state == SanctionsStateName.PUBLIC_DEFENDER or pd_status is not None:
        timers.append(_timer("public_defender", "Public defender ends", pd_ends, now))
    if state == SanctionsStateName.RECENTLY_REINSTATED or reinstatement_ends is not None:
        timers.append(_timer("reinstatement", "Reinstatement grace ends", reinstatement_ends, now))

    next_transition = None
    if state in (SanctionsStateName.WARNED, SanctionsStateName.SANCTIONED):
        next_transition = _transition(SanctionsStateName.CLEAN, expires_at, now)
    elif state == SanctionsStateName.PUBLIC_DEFENDER:
        next_transition = _transition(SanctionsStateName.RECENTLY_REINSTATED, pd_ends, now)
    elif state == SanctionsStateName.RECENTLY_REINSTATED:
        next_transition = _transition(SanctionsStateName.CLEAN, reinstatement_ends, now)

    return BarStatus(
        state=state,
        level=sanctions.level if sanctions else None,
        label=state_label(state),
        reason=SANCTIONS_REASONS.get(state, "Status unknown."),
        timers=[t for t in timers if t is not None],
        next_transition=next_transition,
    )
