"""
Pocket Court Session Orchestrator
Drives one docket through voir dire, the pre-trial motion exchange, trial
argument and verdict, and keeps the player's sanctions record current.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from . import jury as jury_ops
from . import motion as motion_ops
from .agents import (
    LlmClient, parse_case_response, parse_jury_response, parse_motion_response,
    parse_motion_text_response, parse_verdict_response,
)
from .bar_status import BarStatus, build_bar_status
from .config import GameConfig, SanctionsTimers
from .counsel_notes import jury_note, motion_note, verdict_note
from .disposition import derive_from_motion, derive_from_verdict, guard, is_merit_release, is_terminal
from .errors import ActionPending, ComplianceRejection, DocketError, IdConflict, PhaseError
from .export import render_docket
from .persistence import ProfileStore
from .prompts import (
    generator_prompt, jury_strike_prompt, motion_ruling_prompt, opposing_counsel_prompt, verdict_prompt,
)
from .references import redact, summarize_noncompliance, validate
from .registry import build_registry
from .sanctions import SanctionsService, pd_status, records_from_entries, reinstatement_status, utcnow
from .schemas import (
    PHASE_DISPLAY, Actor, DocketState, GamePhase, MotionSubmission, PlayerAchievement, PlayerProfile,
    RunHistoryEntry, SanctionRecord, SanctionsDelta, SanctionsState, SanctionsStateName, SubmissionPhase,
    ValidationRecord,
)
from .verdict import review_verdict

logger = logging.getLogger(__name__)


class DocketSession:
    """
    One player's case session.

    Every public action either completes and replaces `state` whole, or raises
    a DocketError after recording its user-facing text in `error`.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        store: Optional[ProfileStore] = None,
        config: Optional[GameConfig] = None,
        timers: Optional[SanctionsTimers] = None,
        clock: Callable[[], datetime] = utcnow,
        timer_factory=threading.Timer,
    ):
        self.client = client or LlmClient()
        self.store = store or ProfileStore(clock=clock)
        self.config = config or GameConfig()
        self._clock = clock

        self.state = DocketState(player_role=self.config.role)
        self.error: Optional[str] = None
        self.run_id: Optional[str] = None
        self.run_started_at: Optional[datetime] = None
        self._run_sanctions_before: Optional[SanctionsState] = None
        self._run_sanction_count = 0

        self._pending: set = set()
        self._pending_lock = threading.Lock()
        self._profile_lock = threading.RLock()

        self.event_handlers: Dict[str, List[Callable]] = {
            "phase_change": [],
            "validation": [],
            "verdict_rejected": [],
            "disposition": [],
            "sanctions_change": [],
            "error": [],
        }

        self.profile: PlayerProfile = self.store.load_profile()
        self.sanctions = SanctionsService(
            state=self.profile.sanctions,
            log=self.profile.conduct_log,
            timers=timers,
            clock=clock,
            on_change=self._on_sanctions_change,
            timer_factory=timer_factory,
        )
        self.sanctions.refresh()

    # ============================================================
    # EVENTS
    # ============================================================

    def on(self, event: str, handler: Callable) -> None:
        """Register an event handler."""
        if event in self.event_handlers:
            self.event_handlers[event].append(handler)

    def _emit(self, event: str, data: Any) -> None:
        for handler in self.event_handlers.get(event, []):
            handler(data)

    # ============================================================
    # STATE PLUMBING
    # ============================================================

    def _set_state(self, **update) -> DocketState:
        previous = self.state.phase
        if "disposition" in update:
            update["disposition"] = guard(self.state.disposition, update["disposition"])
        self.state = self.state.model_copy(update=update)
        if self.state.phase != previous:
            logger.info("Phase %s -> %s", previous.value, self.state.phase.value)
            self._emit("phase_change", self.state.phase)
        return self.state

    def _append_validation(self, record: ValidationRecord) -> None:
        self._set_state(validation_history=self.state.validation_history + (record,))
        self._emit("validation", record)

    @contextmanager
    def _in_flight(self, action: str):
        """Allow one pending model call per phase action."""
        with self._pending_lock:
            if action in self._pending:
                raise ActionPending(f"{action} request already pending", context={"action": action})
            self._pending.add(action)
        try:
            yield
        finally:
            with self._pending_lock:
                self._pending.discard(action)

    @contextmanager
    def _action(self, name: str):
        """Clear the last error, run the action and record any DocketError it raises."""
        self.error = None
        try:
            yield
        except DocketError as e:
            self.error = e.user_message
            logger.warning("%s failed [%s]: %s", name, e.code, e)
            self._emit("error", e)
            raise

    def is_pending(self, action: str) -> bool:
        with self._pending_lock:
            return action in self._pending

    def _require_phase(self, *phases: GamePhase) -> None:
        if is_terminal(self.state.disposition):
            raise PhaseError(
                "Case already has a final disposition",
                user_message="This case is closed.",
                context={"disposition": self.state.disposition.type.value},
            )
        if self.state.phase not in phases:
            raise PhaseError(
                f"{self.state.phase.value} does not accept this action",
                context={"phase": self.state.phase.value, "expected": [p.value for p in phases]},
            )

    def _registry(self, state: Optional[DocketState] = None):
        state = state or self.state
        return build_registry(state.case, state.motion)

    @property
    def phase_display(self) -> str:
        return PHASE_DISPLAY[self.state.phase]

    # ============================================================
    # SETUP
    # ============================================================

    def generate_case(
        self,
        role=None,
        difficulty: Optional[str] = None,
        jurisdiction: Optional[str] = None,
        court_type: Optional[str] = None,
    ) -> DocketState:
        with self._action("setup"):
            if self.state.phase not in (GamePhase.SETUP, GamePhase.ENDED):
                raise PhaseError("A case is already in progress; reset first",
                                 context={"phase": self.state.phase.value})
            config = GameConfig.normalized(difficulty, jurisdiction, court_type, role)
            sanctions = self.sanctions.current()
            if sanctions.state == SanctionsStateName.PUBLIC_DEFENDER:
                logger.info("Public defender assignment active: forcing defense role")
                config = config.with_public_defender_assignment()

            with self._in_flight("setup"):
                payload = self.client.request_json(
                    generator_prompt(config.difficulty, config.jurisdiction, config.role,
                                     config.court_type, config.case_type),
                    "Generate",
                    "case",
                )
                case = parse_case_response(payload, case_type=config.case_type)

            self.config = config
            jury = jury_ops.initial_jury_state(case.jurors, case.is_jury_trial)
            self.state = DocketState(player_role=config.role)
            self._set_state(
                phase=GamePhase.JURY_SELECTION if case.is_jury_trial else GamePhase.PRETRIAL,
                case=case,
                jury=jury,
                motion=None if case.is_jury_trial else motion_ops.new_motion_state(),
            )
            self._start_run(sanctions)
            logger.info("Docketed %r (%s trial, %s)", case.title,
                        "jury" if case.is_jury_trial else "bench", case.case_type.value)
            return self.state

    def reset(self) -> DocketState:
        self.error = None
        self.run_id = None
        self.run_started_at = None
        self._set_state(phase=GamePhase.SETUP)
        self.state = DocketState(player_role=self.config.role)
        return self.state

    # ============================================================
    # VOIR DIRE
    # ============================================================

    def toggle_strike(self, juror_id) -> DocketState:
        with self._action("jury"):
            self._require_phase(GamePhase.JURY_SELECTION)
            normalized = jury_ops.normalize_juror_id(juror_id)
            pool_ids = {juror.id for juror in self.state.jury.pool}
            if normalized not in pool_ids:
                raise IdConflict(f"Juror {juror_id!r} is not on the docket", reason="unknown",
                                 offending_id=juror_id)
            return self._set_state(jury=jury_ops.toggle_strike(self.state.jury, normalized))

    def submit_strikes(self, strikes: Optional[Iterable] = None) -> DocketState:
        with self._action("jury"):
            self._require_phase(GamePhase.JURY_SELECTION)
            case = self.state.case
            strikes = jury_ops.normalize_juror_ids(self.state.jury.my_strikes if strikes is None else strikes)
            docket_ids = [juror.id for juror in case.jurors]

            own = jury_ops.validate_subset(docket_ids, strikes)
            if not own.valid or len(strikes) > jury_ops.MAX_PLAYER_STRIKES:
                raise IdConflict("Player strikes are not a valid docket subset",
                                 reason=own.reason or "too_many", offending_id=own.offending_id,
                                 user_message="Choose up to two distinct jurors from the pool.")

            with self._in_flight("jury"):
                payload = self.client.request_json(
                    jury_strike_prompt(case, strikes, self.state.player_role), "Strike", "jury",
                )
                result = parse_jury_response(payload)

            for label, ids in (("opponent_strikes", result.opponent_strikes),
                               ("seated_juror_ids", result.seated_juror_ids)):
                check = jury_ops.validate_subset(docket_ids, ids)
                if not check.valid:
                    self._set_state(jury=jury_ops.flag_invalid_strike(self.state.jury, strikes))
                    raise IdConflict(
                        f"{label} has {check.reason} juror id {check.offending_id!r}",
                        reason=check.reason,
                        offending_id=check.offending_id,
                        context={"field": label},
                    )

            seated = jury_ops.seat_jury(
                self.state.jury, strikes, result.opponent_strikes, result.seated_juror_ids,
                result.judge_comment,
            )
            return self._set_state(
                phase=GamePhase.PRETRIAL,
                jury=seated,
                motion=motion_ops.new_motion_state(),
                counsel_notes=jury_note(seated.seated_jurors, self.state.player_role),
            )

    # ============================================================
    # PRE-TRIAL MOTION EXCHANGE
    # ============================================================

    def submit_motion_step(self, text: str) -> DocketState:
        with self._action("motion"):
            self._require_phase(GamePhase.PRETRIAL)
            motion, record = motion_ops.submit(
                self.state.motion, self.state.player_role, text, self._registry(), now=self._clock(),
            )
            if record is None:
                return self.state
            self._set_state(motion=motion)
            self._append_validation(record)
            return self.state

    def trigger_ai_motion(self) -> DocketState:
        """Have opposing counsel draft the step the player does not own."""
        with self._action("motion"):
            self._require_phase(GamePhase.PRETRIAL)
            expected = motion_ops.expected_role(self.state.motion)
            if expected is None or expected == self.state.player_role:
                return self.state

            with self._in_flight("motion"):
                drafting_motion = isinstance(self.state.motion, MotionSubmission)
                payload = self.client.request_json(
                    opposing_counsel_prompt(self.state.case, self.config.difficulty, expected,
                                            self.state.motion.motion_text),
                    "Draft motion" if drafting_motion else "Draft rebuttal",
                    "motion_text",
                )
                text = parse_motion_text_response(payload)

            motion, record = motion_ops.apply_drafted_text(
                self.state.motion, self.state.player_role, text, self._registry(), now=self._clock(),
            )
            self._set_state(motion=motion)
            self._append_validation(record)
            return self.state

    def request_motion_ruling(self) -> DocketState:
        with self._action("ruling"):
            if self.state.motion is not None and self.state.motion.locked:
                return self.state
            self._require_phase(GamePhase.PRETRIAL)
            motion = self.state.motion
            if not motion_ops.ready_for_ruling(motion):
                raise PhaseError("Motion and rebuttal must both be filed before a ruling",
                                 user_message="Both the motion and the rebuttal must be filed first.")

            registry = self._registry()
            now = self._clock()
            motion_check = validate(motion.motion_text, registry, SubmissionPhase.MOTION, Actor.DEFENSE, now)
            rebuttal_check = validate(motion.rebuttal_text, registry, SubmissionPhase.REBUTTAL,
                                      Actor.PROSECUTION, now)

            with self._in_flight("motion"):
                payload = self.client.request_json(
                    motion_ruling_prompt(
                        self.state.case,
                        redact(motion.motion_text, motion_check),
                        redact(motion.rebuttal_text, rebuttal_check),
                        self.config.difficulty,
                        self.state.player_role,
                        {
                            "motion": summarize_noncompliance(motion_check),
                            "rebuttal": summarize_noncompliance(rebuttal_check),
                        },
                    ),
                    "Motion ruling",
                    "motion",
                )
                ruling = parse_motion_response(payload)

            locked = motion_ops.lock_with_ruling(self.state.motion, ruling)
            case = self.state.case.model_copy(update={
                "evidence": motion_ops.apply_evidence_updates(self.state.case.evidence,
                                                              ruling.evidence_status_updates),
            })
            disposition = guard(self.state.disposition, derive_from_motion(locked))
            logger.info("Motion %s: %s", ruling.ruling.value, ruling.outcome_text)

            self._set_state(
                phase=GamePhase.ENDED if is_terminal(disposition) else GamePhase.TRIAL,
                case=case,
                motion=locked,
                disposition=disposition,
                counsel_notes=motion_note(ruling, self.state.player_role, locked.motion_by),
            )
            self._record_sanctions(ruling.sanctions)
            if is_terminal(disposition):
                self._close_case(score=ruling.score)
            return self.state

    # ============================================================
    # TRIAL & VERDICT
    # ============================================================

    def submit_argument(self, text: str) -> DocketState:
        with self._action("verdict"):
            self._require_phase(GamePhase.TRIAL, GamePhase.VERDICT)
            if self.state.trial.locked:
                raise PhaseError("Verdict already committed")

            with self._in_flight("verdict"):
                registry = self._registry()
                argument_record = validate(text, registry, SubmissionPhase.ARGUMENT,
                                           Actor(self.state.player_role.value), self._clock())
                self._set_state(
                    phase=GamePhase.VERDICT,
                    trial=self.state.trial.model_copy(update={"text": text}),
                )
                self._append_validation(argument_record)

                payload = self.client.request_json(
                    verdict_prompt(
                        self.state.case,
                        self.state.motion.ruling,
                        [] if self.state.jury.skipped else self.state.jury.seated_jurors,
                        redact(text, argument_record),
                        self.config.difficulty,
                        summarize_noncompliance(argument_record),
                    ),
                    "Verdict",
                    "verdict",
                )
                verdict = parse_verdict_response(payload)

            review = review_verdict(self.state.trial, payload, verdict, registry,
                                    argument_text=text, now=self._clock())
            self._set_state(trial=review.trial)
            self._append_validation(review.validation)

            if not review.accepted:
                self._emit("verdict_rejected", review.trial.rejected_verdicts[-1])
                raise ComplianceRejection(
                    "Verdict referenced off-docket or inadmissible material",
                    context={"classification": review.validation.classification.value,
                             "noncompliance": summarize_noncompliance(review.validation)},
                )

            logger.info("Verdict committed: %s", verdict.final_ruling)
            self._set_state(
                phase=GamePhase.ENDED,
                disposition=derive_from_verdict(verdict),
                counsel_notes=verdict_note(verdict, self.state.player_role),
            )
            self._record_sanctions(verdict.sanctions)
            self._close_case(score=verdict.final_weighted_score, achievement=verdict.achievement_title)
            return self.state

    # ============================================================
    # SANCTIONS & PROFILE
    # ============================================================

    def _record_sanctions(self, entries) -> None:
        records: List[SanctionRecord] = records_from_entries(entries, self._clock())
        if records:
            self._run_sanction_count += len(records)
            self.sanctions.record(records)
        if self.state.disposition is not None and is_merit_release(self.state.disposition):
            self.sanctions.merit_release(self.state.disposition)

    def _on_sanctions_change(self, state: SanctionsState, log) -> None:
        with self._profile_lock:
            self.profile = self.store.save_profile(self.profile.model_copy(update={
                "sanctions": state,
                "pd_status": pd_status(state),
                "reinstatement": reinstatement_status(state),
                "conduct_log": list(log),
            }))
        self._emit("sanctions_change", state)

    def bar_status(self) -> BarStatus:
        state = self.sanctions.current()
        return build_bar_status(state, pd_status(state), reinstatement_status(state), now=self._clock())

    def _start_run(self, sanctions: SanctionsState) -> None:
        self.run_id = f"run-{uuid.uuid4().hex[:12]}"
        self.run_started_at = self._clock()
        self._run_sanctions_before = sanctions
        self._run_sanction_count = 0
        self.store.record_run(self._run_entry())

    def _run_entry(self, **update) -> RunHistoryEntry:
        case = self.state.case
        entry = RunHistoryEntry(
            id=self.run_id,
            started_at=self.run_started_at,
            jurisdiction=self.config.jurisdiction,
            difficulty=self.config.difficulty,
            court_type=self.config.court_type,
            player_role=self.config.role,
            case_title=case.title if case else None,
            judge_name=case.judge.name if case else None,
        )
        return entry.model_copy(update=update)

    def _close_case(self, score: Optional[float] = None, achievement: Optional[str] = None) -> None:
        disposition = self.state.disposition
        self._emit("disposition", disposition)
        if self.run_id is None:
            return
        now = self._clock()
        after = self.sanctions.current()

        with self._profile_lock:
            stats = self.profile.stats.model_copy(update={
                "runs_completed": self.profile.stats.runs_completed + 1,
                "verdicts_finalized": self.profile.stats.verdicts_finalized + (1 if self.state.trial.locked else 0),
                "sanctions_incurred": self.profile.stats.sanctions_incurred + self._run_sanction_count,
            })
            achievements = list(self.profile.achievements)
            if achievement:
                achievements.append(PlayerAchievement(title=achievement, awarded_at=now, run_id=self.run_id))
            self.profile = self.store.save_profile(
                self.profile.model_copy(update={"stats": stats, "achievements": achievements})
            )

        self.store.record_run(self._run_entry(
            ended_at=now,
            outcome=disposition.type if disposition else None,
            score=score,
            achievement_id=achievement,
            sanction_delta=SanctionsDelta(before=self._run_sanctions_before, after=after),
        ))
        logger.info("Run %s closed: %s", self.run_id, disposition.summary if disposition else "no disposition")

    # ============================================================
    # OUTPUT
    # ============================================================

    def snapshot(self) -> DocketState:
        return self.state

    def export_text(self) -> str:
        return render_docket(self.state)

    def close(self) -> None:
        self.sanctions.close()
