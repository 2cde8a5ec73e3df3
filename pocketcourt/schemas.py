"""
Pydantic schema for the Pocket Court living docket
Cases, jurors, motion exchange, verdicts, validation records and sanctions
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


# ============================================================
# ENUMS
# ============================================================

class Role(str, Enum):
    DEFENSE = "defense"
    PROSECUTION = "prosecution"


class Actor(str, Enum):
    DEFENSE = "defense"
    PROSECUTION = "prosecution"
    JUDGE = "judge"


class GamePhase(str, Enum):
    SETUP = "setup"
    JURY_SELECTION = "jury_selection"
    PRETRIAL = "pretrial"
    TRIAL = "trial"
    VERDICT = "verdict"
    ENDED = "ended"


PHASE_DISPLAY = {
    GamePhase.SETUP: "Docket Setup",
    GamePhase.JURY_SELECTION: "Voir Dire",
    GamePhase.PRETRIAL: "Pre-Trial Motions",
    GamePhase.TRIAL: "Trial Argument",
    GamePhase.VERDICT: "Verdict",
    GamePhase.ENDED: "Case Closed",
}


class CaseType(str, Enum):
    STANDARD = "standard"
    PUBLIC_DEFENDER = "public_defender"


class EvidenceStatus(str, Enum):
    ADMISSIBLE = "admissible"
    SUPPRESSED = "suppressed"


class JurorStatus(str, Enum):
    ELIGIBLE = "eligible"
    STRUCK_BY_PLAYER = "struck_by_player"
    STRUCK_BY_OPPONENT = "struck_by_opponent"
    SEATED = "seated"


class MotionPhase(str, Enum):
    MOTION_SUBMISSION = "motion_submission"
    REBUTTAL_SUBMISSION = "rebuttal_submission"
    MOTION_RULING_LOCKED = "motion_ruling_locked"


class RulingOutcome(str, Enum):
    GRANTED = "GRANTED"
    DENIED = "DENIED"
    PARTIALLY_GRANTED = "PARTIALLY GRANTED"


class SubmissionPhase(str, Enum):
    MOTION = "motion"
    REBUTTAL = "rebuttal"
    ARGUMENT = "argument"
    VERDICT = "verdict"


class Compliance(str, Enum):
    COMPLIANT = "compliant"
    PARTIALLY_COMPLIANT = "partially_compliant"
    NON_COMPLIANT = "non_compliant"


class FinalDisposition(str, Enum):
    GUILTY = "guilty"
    NOT_GUILTY = "not_guilty"
    MISTRIAL_HUNG_JURY = "mistrial_hung_jury"
    MISTRIAL_CONDUCT = "mistrial_conduct"
    DISMISSED = "dismissed"
    DISMISSED_WITH_PREJUDICE = "dismissed_with_prejudice"
    DISMISSED_WITHOUT_PREJUDICE = "dismissed_without_prejudice"


TERMINAL_DISPOSITIONS = frozenset(FinalDisposition)


class DispositionSource(str, Enum):
    MOTION = "motion"
    VERDICT = "verdict"


class SanctionsStateName(str, Enum):
    CLEAN = "clean"
    WARNED = "warned"
    SANCTIONED = "sanctioned"
    PUBLIC_DEFENDER = "public_defender"
    RECENTLY_REINSTATED = "recently_reinstated"


SANCTION_LEVELS = {
    SanctionsStateName.CLEAN: 0,
    SanctionsStateName.WARNED: 1,
    SanctionsStateName.SANCTIONED: 2,
    SanctionsStateName.PUBLIC_DEFENDER: 3,
    SanctionsStateName.RECENTLY_REINSTATED: 1,
}


class SanctionEntryState(str, Enum):
    NOTICED = "noticed"
    WARNED = "warned"
    SANCTIONED = "sanctioned"


class SanctionTrigger(str, Enum):
    CONTEMPT = "contempt"
    DECORUM_VIOLATION = "decorum_violation"
    EVIDENCE_VIOLATION = "evidence_violation"
    MISREPRESENTATION = "misrepresentation"
    DISCOVERY_VIOLATION = "discovery_violation"
    DEADLINE_VIOLATION = "deadline_violation"
    OTHER = "other"


PROCEDURAL_TRIGGERS = frozenset({
    SanctionTrigger.DECORUM_VIOLATION,
    SanctionTrigger.EVIDENCE_VIOLATION,
    SanctionTrigger.DISCOVERY_VIOLATION,
    SanctionTrigger.DEADLINE_VIOLATION,
})


class SanctionVisibility(str, Enum):
    PUBLIC = "public"
    SEALED = "sealed"
    INTERNAL = "internal"


# ============================================================
# 1. CASE DOCKET
# ============================================================

class JudgeProfile(BaseModel):
    name: str
    philosophy: str = ""
    background: str = ""
    bias: str = ""


class OpposingCounsel(BaseModel):
    name: str
    age_range: Optional[str] = None
    bio: str = ""
    style_tells: str = ""
    current_posture: str = ""


class Witness(BaseModel):
    name: str
    role: str = ""
    statement: str = ""


class EvidenceItem(BaseModel):
    """A docketed exhibit. Only `status` may change after creation."""
    model_config = ConfigDict(frozen=True)

    id: int
    text: str
    status: EvidenceStatus = EvidenceStatus.ADMISSIBLE


class Juror(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., gt=0, description="Fixed at creation, never reassigned")
    name: str
    age: Optional[int] = None
    job: str = ""
    bias_hint: str = ""
    hidden_bias: str = ""
    status: JurorStatus = JurorStatus.ELIGIBLE
    status_history: tuple[JurorStatus, ...] = (JurorStatus.ELIGIBLE,)


class CaseDocket(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    defendant: str = ""
    charge: str = ""
    is_jury_trial: bool
    judge: JudgeProfile
    jurors: tuple[Juror, ...] = ()
    facts: tuple[str, ...] = ()
    witnesses: tuple[Witness, ...] = ()
    evidence: tuple[EvidenceItem, ...] = ()
    opposing_counsel: Optional[OpposingCounsel] = None
    case_type: CaseType = CaseType.STANDARD


# ============================================================
# 2. JURY SELECTION
# ============================================================

class JuryState(BaseModel):
    model_config = ConfigDict(frozen=True)

    skipped: bool = False
    pool: tuple[Juror, ...] = ()
    my_strikes: tuple[int, ...] = ()
    opponent_strikes: tuple[int, ...] = ()
    seated_ids: tuple[int, ...] = ()
    comment: str = ""
    invalid_strike: bool = False
    locked: bool = False

    @property
    def seated_jurors(self) -> list[Juror]:
        return [j for j in self.pool if j.status == JurorStatus.SEATED]


# ============================================================
# 3. MOTION EXCHANGE (tagged union on `phase`)
# ============================================================

class EvidenceStatusUpdate(BaseModel):
    id: int
    status: EvidenceStatus


class MotionRulingIssue(BaseModel):
    id: str
    label: str
    disposition: RulingOutcome
    reasoning: str = ""
    affected_evidence_ids: list[int] = Field(default_factory=list, alias="affectedEvidenceIds")

    model_config = ConfigDict(populate_by_name=True)


class MotionRulingBreakdown(BaseModel):
    issues: list[MotionRulingIssue] = Field(default_factory=list)
    docket_entries: list[str] = Field(default_factory=list)


class SanctionEntryPayload(BaseModel):
    """Sanction acknowledgment as emitted by the judge model."""
    state: SanctionEntryState = SanctionEntryState.NOTICED
    trigger: SanctionTrigger = SanctionTrigger.OTHER
    docket_text: str
    visibility: SanctionVisibility = SanctionVisibility.PUBLIC


class MotionRuling(BaseModel):
    model_config = ConfigDict(frozen=True)

    ruling: RulingOutcome
    outcome_text: str
    score: float = 0
    evidence_status_updates: tuple[EvidenceStatusUpdate, ...] = ()
    breakdown: Optional[MotionRulingBreakdown] = None
    sanctions: tuple[SanctionEntryPayload, ...] = ()


class _MotionExchangeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    motion_by: Literal[Role.DEFENSE] = Role.DEFENSE
    rebuttal_by: Literal[Role.PROSECUTION] = Role.PROSECUTION


class MotionSubmission(_MotionExchangeBase):
    phase: Literal[MotionPhase.MOTION_SUBMISSION] = MotionPhase.MOTION_SUBMISSION
    motion_text: Literal[""] = ""
    rebuttal_text: Literal[""] = ""
    ruling: None = None
    locked: Literal[False] = False


class RebuttalSubmission(_MotionExchangeBase):
    phase: Literal[MotionPhase.REBUTTAL_SUBMISSION] = MotionPhase.REBUTTAL_SUBMISSION
    motion_text: str = Field(..., min_length=1)
    rebuttal_text: str = ""
    ruling: None = None
    locked: Literal[False] = False


class MotionRulingLocked(_MotionExchangeBase):
    phase: Literal[MotionPhase.MOTION_RULING_LOCKED] = MotionPhase.MOTION_RULING_LOCKED
    motion_text: str = Field(..., min_length=1)
    rebuttal_text: str = Field(..., min_length=1)
    ruling: MotionRuling
    locked: Literal[True] = True


MotionExchangeState = Annotated[
    Union[MotionSubmission, RebuttalSubmission, MotionRulingLocked],
    Field(discriminator="phase"),
]


# ============================================================
# 4. VALIDATION RECORDS
# ============================================================

class ReferenceBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    found: tuple[int, ...] = ()
    missing: tuple[int, ...] = ()
    inadmissible: tuple[int, ...] = ()


class References(BaseModel):
    model_config = ConfigDict(frozen=True)

    facts: ReferenceBucket = ReferenceBucket()
    evidence: ReferenceBucket = ReferenceBucket()
    witnesses: ReferenceBucket = ReferenceBucket()
    jurors: ReferenceBucket = ReferenceBucket()
    rulings: ReferenceBucket = ReferenceBucket()

    def buckets(self) -> dict[str, ReferenceBucket]:
        return {
            "facts": self.facts,
            "evidence": self.evidence,
            "witnesses": self.witnesses,
            "jurors": self.jurors,
            "rulings": self.rulings,
        }


class ValidationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    phase: SubmissionPhase
    submitted_by: Actor
    text: str
    references: References
    classification: Compliance
    timestamp: datetime


# ============================================================
# 5. TRIAL & VERDICT
# ============================================================

class VerdictResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    jury_verdict: str = "N/A"
    jury_reasoning: str = ""
    jury_score: float = 0
    judge_score: float = 0
    judge_opinion: str
    final_ruling: str
    is_jnov: bool = False
    final_weighted_score: float
    overflow_reason_code: Optional[str] = None
    overflow_explanation: Optional[str] = None
    achievement_title: Optional[str] = None
    sanctions: tuple[SanctionEntryPayload, ...] = ()


class VerdictRejection(BaseModel):
    model_config = ConfigDict(frozen=True)

    payload: dict[str, Any]
    reason: str
    validation: ValidationRecord
    timestamp: datetime


class TrialState(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    verdict: Optional[VerdictResult] = None
    rejected_verdicts: tuple[VerdictRejection, ...] = ()
    locked: bool = False


# ============================================================
# 6. DISPOSITION
# ============================================================

class DispositionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: FinalDisposition
    source: DispositionSource
    summary: str
    details: str = ""


# ============================================================
# 7. SANCTIONS
# ============================================================

class SanctionRecord(BaseModel):
    """One docketed conduct acknowledgment. The log of these is append-only."""
    model_config = ConfigDict(frozen=True)

    id: str
    state: SanctionEntryState = SanctionEntryState.NOTICED
    trigger: SanctionTrigger = SanctionTrigger.OTHER
    docket_text: str = ""
    visibility: SanctionVisibility = SanctionVisibility.PUBLIC
    timestamp: datetime


class SanctionsState(BaseModel):
    """
    Persisted per-player conduct state.
    `level` is computed from `state`; any supplied value is ignored.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    state: SanctionsStateName = SanctionsStateName.CLEAN
    started_at: datetime
    expires_at: Optional[datetime] = None
    last_misconduct_at: Optional[datetime] = None
    recidivism_count: int = 0
    recently_reinstated_until: Optional[datetime] = None

    @computed_field
    @property
    def level(self) -> int:
        return SANCTION_LEVELS[self.state]


class PublicDefenderStatus(BaseModel):
    started_at: datetime
    expires_at: Optional[datetime] = None


class ReinstatementStatus(BaseModel):
    until: datetime


# ============================================================
# 8. PROFILE & RUN HISTORY
# ============================================================

class PlayerStats(BaseModel):
    runs_completed: int = 0
    verdicts_finalized: int = 0
    sanctions_incurred: int = 0


class PlayerAchievement(BaseModel):
    title: str
    awarded_at: datetime
    run_id: Optional[str] = None


class PlayerProfile(BaseModel):
    schema_version: int
    created_at: datetime
    updated_at: datetime
    sanctions: Optional[SanctionsState] = None
    pd_status: Optional[PublicDefenderStatus] = None
    reinstatement: Optional[ReinstatementStatus] = None
    stats: PlayerStats = Field(default_factory=PlayerStats)
    achievements: list[PlayerAchievement] = Field(default_factory=list)
    conduct_log: list[SanctionRecord] = Field(default_factory=list)


class SanctionsDelta(BaseModel):
    before: Optional[SanctionsState] = None
    after: Optional[SanctionsState] = None


class RunHistoryEntry(BaseModel):
    id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    jurisdiction: str
    difficulty: str
    court_type: str
    player_role: Role
    case_title: Optional[str] = None
    judge_name: Optional[str] = None
    outcome: Optional[FinalDisposition] = None
    score: Optional[float] = None
    achievement_id: Optional[str] = None
    sanction_delta: Optional[SanctionsDelta] = None


class RunHistory(BaseModel):
    schema_version: int
    created_at: datetime
    updated_at: datetime
    runs: list[RunHistoryEntry] = Field(default_factory=list)


# ============================================================
# 9. SESSION SNAPSHOT
# ============================================================

class DocketState(BaseModel):
    """Everything one case session knows, replaced whole on every change."""
    model_config = ConfigDict(frozen=True)

    phase: GamePhase = GamePhase.SETUP
    player_role: Role = Role.DEFENSE
    case: Optional[CaseDocket] = None
    jury: Optional[JuryState] = None
    motion: Optional[MotionExchangeState] = None
    trial: TrialState = TrialState()
    validation_history: tuple[ValidationRecord, ...] = ()
    disposition: Optional[DispositionRecord] = None
    counsel_notes: str = ""
