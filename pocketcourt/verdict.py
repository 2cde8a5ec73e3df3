"""
Verdict admissibility guard.

A verdict is committed only when the combined ruling, opinion and jury
reasoning reference nothing off-docket or suppressed. Rejections pile up on
the trial record and the phase stays open for another attempt.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from .references import validate
from .registry import DocketRegistry
from .schemas import (
    Actor, Compliance, SubmissionPhase, TrialState, ValidationRecord,
    VerdictRejection, VerdictResult,
)

logger = logging.getLogger(__name__)

REJECTION_REASON = "Verdict referenced off-docket or inadmissible material."


@dataclass(frozen=True)
class VerdictReview:
    trial: TrialState
    validation: ValidationRecord
    accepted: bool


def verdict_text(verdict: VerdictResult) -> str:
    parts = [verdict.final_ruling, verdict.judge_opinion, verdict.jury_reasoning]
    return " ".join(part for part in parts if part)


def review_verdict(
    trial: TrialState,
    payload: dict[str, Any],
    verdict: VerdictResult,
    registry: DocketRegistry,
    argument_text: str = "",
    now: Optional[datetime] = None,
) -> VerdictReview:
    now = now or datetime.now(timezone.utc)
    validation = validate(
        verdict_text(verdict), registry, SubmissionPhase.VERDICT, Actor.JUDGE, now=now,
    )

    if validation.classification == Compliance.COMPLIANT:
        committed = trial.model_copy(update={
            "text": argument_text,
            "verdict": verdict,
            "locked": True,
        })
        return VerdictReview(trial=committed, validation=validation, accepted=True)

    logger.warning("Rejected %s verdict: %s", validation.classification.value, verdict.final_ruling)
    rejection = VerdictRejection(
        payload=payload,
        reason=REJECTION_REASON,
        validation=validation,
        timestamp=now,
    )
    rejected = trial.model_copy(update={
        "text": argument_text,
        "locked": False,
        "rejected_verdicts": trial.rejected_verdicts + (rejection,),
    })
    return VerdictReview(trial=rejected, validation=validation, accepted=False)
