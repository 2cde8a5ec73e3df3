"""
Sanctions Lifecycle Engine
Persistent, per-player conduct state derived from the append-only log of
docketed sanction entries.

    CLEAN -> WARNED -> SANCTIONED -> PUBLIC_DEFENDER -> RECENTLY_REINSTATED -> CLEAN

Derivation is a pure fold over log entries newer than `last_misconduct_at`,
with wall-clock expiry applied before every entry and once more at `now`.
`SanctionsService` wraps the fold with the player's stored state and a single
wake timer for the nearest upcoming expiry.
"""

import logging
import re
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional

from .config import SanctionsTimers
from .disposition import is_merit_release
from .schemas import (
    PROCEDURAL_TRIGGERS, PublicDefenderStatus, ReinstatementStatus, SanctionEntryPayload,
    SanctionEntryState, SanctionRecord, SanctionsState, SanctionsStateName,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMERS = SanctionsTimers()

# Losing is not misconduct.
DENY_LIST_PHRASES = (
    "losing on the merits",
    "lost on the merits",
    "loss on the merits",
    "adverse ruling on the merits",
    "unfavorable verdict",
    "no sanction",
    "no misconduct",
)

_LEVEL_PATTERN = re.compile(r"\blevel\s*(\d+)\b", re.IGNORECASE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def initial_state(now: datetime) -> SanctionsState:
    return SanctionsState(state=SanctionsStateName.CLEAN, started_at=now)


# ============================================================
# TRIGGER CLASSIFICATION
# ============================================================

def is_denied(record: SanctionRecord) -> bool:
    text = record.docket_text.lower()
    return any(phrase in text for phrase in DENY_LIST_PHRASES)


def is_trigger(record: SanctionRecord) -> bool:
    return not is_denied(record)


def explicit_level(text: str) -> Optional[int]:
    levels = [int(match.group(1)) for match in _LEVEL_PATTERN.finditer(text or "")]
    return max(levels) if levels else None


def recent_procedural_count(
    log: Iterable[SanctionRecord],
    at: datetime,
    timers: SanctionsTimers = DEFAULT_TIMERS,
) -> int:
    """Procedural-violation triggers inside the recidivism window ending at `at`."""
    window_start = at - timers.recidivism_window
    return sum(
        1 for record in log
        if record.trigger in PROCEDURAL_TRIGGERS
        and is_trigger(record)
        and window_start <= record.timestamp <= at
    )


def is_severe(record: SanctionRecord, procedural_in_window: int = 0) -> bool:
    text = record.docket_text.lower()
    if "misconduct" in text and ("mistrial" in text or "dismiss" in text):
        return True
    level = explicit_level(text)
    if level is not None and level >= 2:
        return True
    return procedural_in_window >= 2


def is_sanction_grade(record: SanctionRecord, procedural_in_window: int = 0) -> bool:
    return record.state == SanctionEntryState.SANCTIONED or is_severe(record, procedural_in_window)


# ============================================================
# TRANSITIONS
# ============================================================

def _duration(name: SanctionsStateName, timers: SanctionsTimers):
    return {
        SanctionsStateName.WARNED: timers.warning_duration,
        SanctionsStateName.SANCTIONED: timers.sanction_duration,
        SanctionsStateName.PUBLIC_DEFENDER: timers.public_defender_duration,
        SanctionsStateName.RECENTLY_REINSTATED: timers.reinstatement_grace,
    }.get(name)


def _enter(state: SanctionsState, name: SanctionsStateName, at: datetime,
           timers: SanctionsTimers, **extra) -> SanctionsState:
    duration = _duration(name, timers)
    expires_at = at + duration if duration is not None else None
    update = {
        "state": name,
        "started_at": at,
        "expires_at": expires_at,
        "recently_reinstated_until": (
            expires_at if name == SanctionsStateName.RECENTLY_REINSTATED else None
        ),
    }
    update.update(extra)
    return state.model_copy(update=update)


def apply_expiry(state: SanctionsState, now: datetime,
                 timers: SanctionsTimers = DEFAULT_TIMERS) -> SanctionsState:
    """Walk every expiry boundary up to `now`, then apply the cooldown reset."""
    while state.expires_at is not None and state.expires_at <= now:
        boundary = state.expires_at
        if state.state == SanctionsStateName.PUBLIC_DEFENDER:
            state = _enter(state, SanctionsStateName.RECENTLY_REINSTATED, boundary, timers)
        else:
            state = _enter(state, SanctionsStateName.CLEAN, boundary, timers)

    if (
        state.recidivism_count
        and state.last_misconduct_at is not None
        and now - state.last_misconduct_at >= timers.cooldown_reset
    ):
        state = state.model_copy(update={"recidivism_count": 0})
    return state


def apply_trigger(
    state: SanctionsState,
    record: SanctionRecord,
    procedural_in_window: int = 0,
    timers: SanctionsTimers = DEFAULT_TIMERS,
) -> SanctionsState:
    at = record.timestamp
    last = state.last_misconduct_at
    if last is not None and at - last <= timers.recidivism_window:
        count = state.recidivism_count + 1
    else:
        count = 1
    escalate = is_severe(record, procedural_in_window) or count > 1

    current = state.state
    if current == SanctionsStateName.CLEAN:
        if is_sanction_grade(record, procedural_in_window):
            target = SanctionsStateName.SANCTIONED
        else:
            target = SanctionsStateName.WARNED
    elif current == SanctionsStateName.WARNED:
        target = SanctionsStateName.SANCTIONED if escalate else SanctionsStateName.WARNED
    elif current == SanctionsStateName.SANCTIONED:
        target = SanctionsStateName.PUBLIC_DEFENDER if escalate else SanctionsStateName.SANCTIONED
    else:
        # Public defender restarts; reinstatement grace has zero tolerance.
        target = SanctionsStateName.PUBLIC_DEFENDER

    if target != current:
        logger.info("Sanctions %s -> %s (%s)", current.value, target.value, record.trigger.value)
    return _enter(state, target, at, timers, last_misconduct_at=at, recidivism_count=count)


def evaluate(
    state: Optional[SanctionsState],
    log: Iterable[SanctionRecord],
    now: datetime,
    timers: SanctionsTimers = DEFAULT_TIMERS,
) -> SanctionsState:
    """Fold unseen log entries into `state` and expire it up to `now`."""
    log = list(log)
    state = state or initial_state(min([now] + [r.timestamp for r in log]))
    since = state.last_misconduct_at

    pending = sorted(
        (r for r in log if since is None or r.timestamp > since),
        key=lambda r: (r.timestamp, r.id),
    )
    for record in pending:
        state = apply_expiry(state, record.timestamp, timers)
        if not is_trigger(record):
            continue
        procedural = recent_procedural_count(log, record.timestamp, timers)
        state = apply_trigger(state, record, procedural, timers)
    return apply_expiry(state, now, timers)


def apply_merit_release(
    state: SanctionsState,
    disposition,
    now: datetime,
    timers: SanctionsTimers = DEFAULT_TIMERS,
) -> SanctionsState:
    """A not-guilty or dismissal result ends a public defender assignment early."""
    state = apply_expiry(state, now, timers)
    if state.state == SanctionsStateName.PUBLIC_DEFENDER and is_merit_release(disposition):
        logger.info("Merit release: public defender assignment ends early")
        return _enter(state, SanctionsStateName.RECENTLY_REINSTATED, now, timers)
    return state


def pd_status(state: Optional[SanctionsState]) -> Optional[PublicDefenderStatus]:
    if state is None or state.state != SanctionsStateName.PUBLIC_DEFENDER:
        return None
    return PublicDefenderStatus(started_at=state.started_at, expires_at=state.expires_at)


def reinstatement_status(state: Optional[SanctionsState]) -> Optional[ReinstatementStatus]:
    if state is None or state.recently_reinstated_until is None:
        return None
    return ReinstatementStatus(until=state.recently_reinstated_until)


def records_from_entries(
    entries: Iterable[SanctionEntryPayload],
    now: datetime,
) -> list[SanctionRecord]:
    return [
        SanctionRecord(
            id=f"sanction-{uuid.uuid4().hex[:12]}",
            state=entry.state,
            trigger=entry.trigger,
            docket_text=entry.docket_text,
            visibility=entry.visibility,
            timestamp=now,
        )
        for entry in entries
    ]


# ============================================================
# EXPIRY SCHEDULER
# ============================================================

class ExpiryScheduler:
    """Single wake timer, always pointed at the nearest upcoming expiry."""

    def __init__(
        self,
        on_wake: Callable[[], None],
        clock: Callable[[], datetime] = utcnow,
        timer_factory=threading.Timer,
    ):
        self._on_wake = on_wake
        self._clock = clock
        self._timer_factory = timer_factory
        self._timer = None
        self._scheduled_for: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def scheduled_for(self) -> Optional[datetime]:
        return self._scheduled_for

    def schedule(self, at: Optional[datetime]) -> None:
        with self._lock:
            self._cancel_locked()
            if at is None:
                return
            delay = max(0.0, (at - self._clock()).total_seconds())
            timer = self._timer_factory(delay, lambda: self._fire(timer))
            timer.daemon = True
            self._timer = timer
            self._scheduled_for = at
            timer.start()

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._scheduled_for = None

    def _fire(self, timer) -> None:
        with self._lock:
            # A newer schedule() may have replaced this timer before it took the lock.
            if self._timer is timer:
                self._timer = None
                self._scheduled_for = None
        self._on_wake()


# ============================================================
# SERVICE
# ============================================================

class SanctionsService:
    """
    Owns one player's sanctions state and conduct log.

    `on_change(state, log)` is called after every change so the profile can
    be persisted.
    """

    def __init__(
        self,
        state: Optional[SanctionsState] = None,
        log: Iterable[SanctionRecord] = (),
        timers: Optional[SanctionsTimers] = None,
        clock: Callable[[], datetime] = utcnow,
        on_change: Optional[Callable[[SanctionsState, tuple], None]] = None,
        timer_factory=threading.Timer,
    ):
        self.timers = timers or SanctionsTimers()
        self._clock = clock
        self._log: tuple[SanctionRecord, ...] = tuple(log)
        self._state = state or initial_state(clock())
        self._on_change = on_change
        self._lock = threading.RLock()
        self.scheduler = ExpiryScheduler(self.refresh, clock=clock, timer_factory=timer_factory)

    @property
    def log(self) -> tuple[SanctionRecord, ...]:
        return self._log

    def current(self) -> SanctionsState:
        return self.refresh()

    def refresh(self) -> SanctionsState:
        with self._lock:
            derived = evaluate(self._state, self._log, self._clock(), self.timers)
            return self._replace(derived)

    def record(self, entries: Iterable[SanctionRecord]) -> SanctionsState:
        with self._lock:
            entries = self._after_last_misconduct(entries)
            if entries:
                self._log = self._log + entries
                logger.info("Docketed %d conduct entr%s", len(entries), "y" if len(entries) == 1 else "ies")
            derived = evaluate(self._state, self._log, self._clock(), self.timers)
            return self._replace(derived, force=bool(entries))

    def merit_release(self, disposition) -> SanctionsState:
        with self._lock:
            current = evaluate(self._state, self._log, self._clock(), self.timers)
            released = apply_merit_release(current, disposition, self._clock(), self.timers)
            return self._replace(released)

    def close(self) -> None:
        self.scheduler.cancel()

    def _after_last_misconduct(self, entries: Iterable[SanctionRecord]) -> tuple[SanctionRecord, ...]:
        # The fold only reads entries strictly newer than last_misconduct_at.
        floor = self._state.last_misconduct_at
        for record in self._log:
            floor = record.timestamp if floor is None else max(floor, record.timestamp)
        ordered = []
        for record in sorted(entries, key=lambda r: r.timestamp):
            if floor is not None and record.timestamp <= floor:
                record = record.model_copy(update={"timestamp": floor + timedelta(microseconds=1)})
            floor = record.timestamp
            ordered.append(record)
        return tuple(ordered)

    def _replace(self, state: SanctionsState, force: bool = False) -> SanctionsState:
        changed = state != self._state
        self._state = state
        if changed or force or self.scheduler.scheduled_for != state.expires_at:
            self.scheduler.schedule(state.expires_at)
        if (changed or force) and self._on_change is not None:
            self._on_change(state, self._log)
        return state
