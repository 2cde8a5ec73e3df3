"""
Jury selection: strike validation and juror status tracking.

Juror ids are trusted from the generated docket and validated, never
renumbered. Numeric strings ("3") are accepted and normalised to ints.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .schemas import Juror, JurorStatus, JuryState

logger = logging.getLogger(__name__)

MAX_PLAYER_STRIKES = 2


@dataclass(frozen=True)
class SubsetCheck:
    valid: bool
    reason: Optional[str] = None  # "duplicate" | "unknown"
    offending_id: Any = None


def normalize_juror_id(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    return None


def normalize_juror_ids(values: Iterable) -> list:
    """Normalise ids, keeping un-normalisable entries as-is so validation can report them."""
    result = []
    for value in values:
        normalized = normalize_juror_id(value)
        result.append(value if normalized is None else normalized)
    return result


def validate_subset(pool_ids: Iterable, ids: Iterable) -> SubsetCheck:
    pool = set(pool_ids)
    seen = set()
    for juror_id in ids:
        if juror_id in seen:
            return SubsetCheck(valid=False, reason="duplicate", offending_id=juror_id)
        seen.add(juror_id)
    for juror_id in ids:
        if juror_id not in pool:
            return SubsetCheck(valid=False, reason="unknown", offending_id=juror_id)
    return SubsetCheck(valid=True)


def initial_jury_state(jurors: Iterable[Juror], is_jury_trial: bool) -> JuryState:
    if not is_jury_trial:
        return JuryState(skipped=True)
    pool = tuple(
        juror.model_copy(update={"status_history": juror.status_history or (juror.status,)})
        for juror in jurors
    )
    return JuryState(pool=pool)


def update_juror_status(juror: Juror, next_status: JurorStatus) -> Juror:
    if juror.status == next_status:
        return juror
    history = juror.status_history
    if not history or history[-1] != next_status:
        history = history + (next_status,)
    return juror.model_copy(update={"status": next_status, "status_history": history})


def toggle_strike(jury: JuryState, juror_id: int) -> JuryState:
    """Add or remove a player strike, holding at most two."""
    current = jury.my_strikes
    if juror_id in current:
        return jury.model_copy(update={"my_strikes": tuple(i for i in current if i != juror_id)})
    if len(current) >= MAX_PLAYER_STRIKES:
        return jury
    return jury.model_copy(update={"my_strikes": current + (juror_id,)})


def seat_jury(
    jury: JuryState,
    player_strikes: Iterable[int],
    opponent_strikes: Iterable[int],
    seated_ids: Iterable[int],
    comment: str = "",
) -> JuryState:
    player_strikes = tuple(player_strikes)
    opponent_strikes = tuple(opponent_strikes)
    seated_ids = tuple(seated_ids)
    player_set, opponent_set, seated_set = set(player_strikes), set(opponent_strikes), set(seated_ids)

    pool = []
    for juror in jury.pool:
        if juror.id in seated_set:
            status = JurorStatus.SEATED
        elif juror.id in player_set:
            status = JurorStatus.STRUCK_BY_PLAYER
        elif juror.id in opponent_set:
            status = JurorStatus.STRUCK_BY_OPPONENT
        else:
            status = JurorStatus.ELIGIBLE
        pool.append(update_juror_status(juror, status))

    logger.info("Jury seated: %s (player struck %s, opponent struck %s)",
                list(seated_ids), list(player_strikes), list(opponent_strikes))
    return jury.model_copy(update={
        "pool": tuple(pool),
        "my_strikes": player_strikes,
        "opponent_strikes": opponent_strikes,
        "seated_ids": seated_ids,
        "comment": comment,
        "invalid_strike": False,
        "locked": True,
    })


def flag_invalid_strike(jury: JuryState, player_strikes: Iterable[int]) -> JuryState:
    return jury.model_copy(update={"my_strikes": tuple(player_strikes), "invalid_strike": True})
