"""
Docket registry: id lookups built from the current case and motion state.
Rebuilt on every validation so admissibility changes are seen immediately.
"""

from dataclasses import dataclass, field
from typing import Optional

from .schemas import CaseDocket, EvidenceStatus


@dataclass(frozen=True)
class DocketRegistry:
    facts: frozenset = field(default_factory=frozenset)
    evidence: dict = field(default_factory=dict)  # id -> EvidenceStatus
    witnesses: frozenset = field(default_factory=frozenset)
    jurors: frozenset = field(default_factory=frozenset)
    rulings: frozenset = field(default_factory=frozenset)

    def is_admissible(self, evidence_id: int) -> bool:
        return self.evidence.get(evidence_id) == EvidenceStatus.ADMISSIBLE


def build_registry(case: Optional[CaseDocket], motion=None) -> DocketRegistry:
    if case is None:
        return DocketRegistry()

    facts = frozenset(
        index for index, fact in enumerate(case.facts, start=1)
        if isinstance(fact, str) and fact.strip()
    )
    evidence = {item.id: item.status for item in case.evidence}
    witnesses = frozenset(range(1, len(case.witnesses) + 1))
    jurors = frozenset(juror.id for juror in case.jurors)
    rulings = frozenset({1}) if getattr(motion, "ruling", None) is not None else frozenset()

    return DocketRegistry(
        facts=facts,
        evidence=evidence,
        witnesses=witnesses,
        jurors=jurors,
        rulings=rulings,
    )
