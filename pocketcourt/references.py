"""
Reference Validator & Redactor
Finds docket mentions ("fact #2", "Evidence 3", "juror 7") in model text,
resolves them against the registry and redacts anything off-docket.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from .registry import DocketRegistry
from .schemas import (
    Actor, Compliance, ReferenceBucket, References, SubmissionPhase, ValidationRecord,
)

REDACTION_MARKER = "[redacted off-docket reference]"

DOCKET_REFERENCE_PATTERN = re.compile(
    r"\b(fact|facts|evidence|witness|witnesses|juror|jurors|ruling|rulings)\s*#?\s*(\d+)\b",
    re.IGNORECASE,
)

ENTITY_KEYS = ("facts", "evidence", "witnesses", "jurors", "rulings")


def _entity_key(word: str) -> str:
    word = word.lower()
    if word.startswith("fact"):
        return "facts"
    if word.startswith("evidence"):
        return "evidence"
    if word.startswith("witness"):
        return "witnesses"
    if word.startswith("juror"):
        return "jurors"
    return "rulings"


def parse_references(text: Optional[str]) -> dict[str, list[int]]:
    """Return sorted, de-duplicated ids per entity mentioned in `text`."""
    found = {key: set() for key in ENTITY_KEYS}
    if not text:
        return {key: [] for key in ENTITY_KEYS}
    for match in DOCKET_REFERENCE_PATTERN.finditer(text):
        found[_entity_key(match.group(1))].add(int(match.group(2)))
    return {key: sorted(ids) for key, ids in found.items()}


def resolve_references(text: Optional[str], registry: DocketRegistry) -> References:
    mentioned = parse_references(text)
    lookups = {
        "facts": registry.facts,
        "witnesses": registry.witnesses,
        "jurors": registry.jurors,
        "rulings": registry.rulings,
    }

    buckets = {}
    for key, lookup in lookups.items():
        ids = mentioned[key]
        buckets[key] = ReferenceBucket(
            found=tuple(i for i in ids if i in lookup),
            missing=tuple(i for i in ids if i not in lookup),
        )

    evidence_ids = mentioned["evidence"]
    buckets["evidence"] = ReferenceBucket(
        found=tuple(i for i in evidence_ids if registry.is_admissible(i)),
        missing=tuple(i for i in evidence_ids if i not in registry.evidence),
        inadmissible=tuple(
            i for i in evidence_ids if i in registry.evidence and not registry.is_admissible(i)
        ),
    )
    return References(**buckets)


def classify(references: References) -> Compliance:
    buckets = references.buckets().values()
    total = sum(len(b.found) + len(b.missing) + len(b.inadmissible) for b in buckets)
    clean = sum(len(b.found) for b in buckets)

    if total == 0 or clean == total:
        return Compliance.COMPLIANT
    if clean == 0:
        return Compliance.NON_COMPLIANT
    return Compliance.PARTIALLY_COMPLIANT


def validate(
    text: str,
    registry: DocketRegistry,
    phase: SubmissionPhase = SubmissionPhase.ARGUMENT,
    submitted_by: Actor = Actor.JUDGE,
    now: Optional[datetime] = None,
) -> ValidationRecord:
    now = now or datetime.now(timezone.utc)
    references = resolve_references(text, registry)
    phase = SubmissionPhase(phase)
    submitted_by = Actor(submitted_by)
    return ValidationRecord(
        id=f"{phase.value}-{submitted_by.value}-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:8]}",
        phase=phase,
        submitted_by=submitted_by,
        text=text or "",
        references=references,
        classification=classify(references),
        timestamp=now,
    )


def _invalid_pairs(validation: ValidationRecord) -> set[tuple[str, int]]:
    pairs = set()
    for key, bucket in validation.references.buckets().items():
        for ref_id in bucket.missing + bucket.inadmissible:
            pairs.add((key, ref_id))
    return pairs


def redact(text: Optional[str], validation: ValidationRecord) -> str:
    """Replace every missing or inadmissible reference span with the redaction marker."""
    if not text:
        return ""
    invalid = _invalid_pairs(validation)
    if not invalid:
        return text

    def _replace(match):
        key = (_entity_key(match.group(1)), int(match.group(2)))
        return REDACTION_MARKER if key in invalid else match.group(0)

    return DOCKET_REFERENCE_PATTERN.sub(_replace, text)


def summarize_noncompliance(validation: ValidationRecord) -> dict:
    buckets = validation.references.buckets()
    missing = {key: list(bucket.missing) for key, bucket in buckets.items()}
    inadmissible = list(validation.references.evidence.inadmissible)
    return {
        "classification": validation.classification.value,
        "missing": missing,
        "inadmissible_evidence": inadmissible,
        "totals": {
            "missing": sum(len(ids) for ids in missing.values()),
            "inadmissible": len(inadmissible),
        },
    }
