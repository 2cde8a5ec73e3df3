"""
System prompts for the Pocket Court judge, opposing counsel and jury.
Every prompt asks for a single JSON object; the parsers in agents.py
enforce the contract.
"""

import json
from typing import Iterable, Optional

from .schemas import CaseDocket, CaseType, Juror, MotionRuling, Role

TONES = {
    "silly": "wacky, humorous, and absurd. Think cartoons.",
    "normal": "mundane, everyday disputes. Traffic, small contracts.",
    "nuance": "complex, serious, morally ambiguous crimes.",
}

DOCKET_RULES = """DOCKET RULES:
- Cite facts, evidence, witnesses and jurors only by their docket numbers (e.g. "Fact 2", "Evidence 1").
- Never invent docket numbers that are not listed.
- Suppressed evidence does not exist for argument or decision.
"""

GENERATOR_SYSTEM_PROMPT = """You are a creative legal scenario generator. Player is **{role}**.
Jurisdiction: {jurisdiction}. Court: {court_type}.
Narrative tone should be {tone}
{public_defender}
1. DETERMINE TRIAL TYPE:
- If case is minor/mundane -> is_jury_trial = false (Bench Trial).
- If case is crime/tort/public interest -> is_jury_trial = true.

2. JURY POOL (Generate 8 regardless, used only if jury trial):
- Unique positive integer id, name, age, job, and a HIDDEN BIAS.

Return ONLY valid JSON:
{{
  "title": "Case Name",
  "defendant": "Name",
  "charge": "Charge",
  "is_jury_trial": true,
  "judge": {{"name": "Name", "philosophy": "Style", "background": "History", "bias": "Bias"}},
  "jurors": [
    {{"id": 1, "name": "Name", "age": 30, "job": "Job", "bias_hint": "Public description", "hidden_bias": "Secret bias"}}
  ],
  "facts": ["Fact 1", "Fact 2", "Fact 3"],
  "witnesses": [{{"name": "Name", "role": "Role", "statement": "Statement"}}],
  "evidence": ["Item 1", "Item 2"],
  "opposing_counsel": {{"name": "Name", "age_range": "40s", "bio": "Bio", "style_tells": "Tells", "current_posture": "Posture"}}
}}
"""

PUBLIC_DEFENDER_NOTE = (
    "The player is serving a PUBLIC DEFENDER assignment: generate an "
    "under-resourced, court-appointed defense case.\n"
)

JURY_STRIKE_SYSTEM_PROMPT = """Phase: VOIR DIRE. Case: {title}.
Juror pool: {pool}
Player ({role}) struck IDs: {player_strikes}.

As AI {opponent}, strike 2 jurors who hurt YOUR case.
Use only ids from the juror pool. Never strike or seat an id twice.

Return ONLY valid JSON:
{{
  "opponent_strikes": [1, 2],
  "opponent_reasoning": "Why the AI struck these jurors.",
  "seated_juror_ids": [3, 4, 5, 6],
  "judge_comment": "Judge's brief comment on the final jury."
}}
"""

OPPOSING_COUNSEL_SYSTEM_PROMPT = """You are {counsel}, counsel for the {side}.
Case: {case}
Difficulty: {difficulty}.
{task}
{rules}
Return ONLY valid JSON:
{{"text": "Your filing, 2-5 sentences."}}
"""

MOTION_RULING_SYSTEM_PROMPT = """Judge {judge} ruling on a Pre-Trial Motion.
Judge bias: {bias}. Difficulty: {difficulty}. Player role: {role}.
Case: {case}

Defense motion: "{motion}"
Prosecution rebuttal: "{rebuttal}"
Non-compliant references already redacted: {noncompliance}
{rules}
You may suppress or re-admit evidence by id. Docket any attorney misconduct
as a sanction entry; losing on the merits is not misconduct.

Return ONLY valid JSON:
{{
  "ruling": "GRANTED" | "DENIED" | "PARTIALLY GRANTED",
  "outcome_text": "Explanation.",
  "score": 0,
  "evidence_status_updates": [{{"id": 1, "status": "admissible" | "suppressed"}}],
  "breakdown": {{"issues": [{{"id": "issue-1", "label": "Issue", "disposition": "GRANTED", "reasoning": "Why", "affectedEvidenceIds": [1]}}], "docket_entries": ["Entry"]}},
  "sanctions": [{{"state": "noticed" | "warned" | "sanctioned", "trigger": "contempt" | "decorum_violation" | "evidence_violation" | "misrepresentation" | "discovery_violation" | "deadline_violation" | "other", "docket_text": "Entry", "visibility": "public"}}]
}}
"""

VERDICT_SYSTEM_PROMPT = """Phase: VERDICT. Type: {trial_type}.
Case (admissible evidence only): {case}
Motion Result: {motion}
Jury: {jury}
Argument: "{argument}"
Non-compliant references already redacted: {noncompliance}
{rules}
1. JUDGE SCORE (0-100) based on Difficulty {difficulty}.
{jury_step}3. LEGENDARY CHECK (>100 score).

Return ONLY valid JSON:
{{
  "jury_verdict": "Guilty/Not Guilty/Hung/N/A",
  "jury_reasoning": "Reasoning...",
  "jury_score": 0,
  "judge_score": 0,
  "judge_opinion": "Opinion...",
  "final_ruling": "Outcome",
  "is_jnov": false,
  "final_weighted_score": 0,
  "achievement_title": null,
  "sanctions": []
}}
"""

JURY_DELIBERATION_STEP = "2. JURY DELIBERATION: Do biases align? Vote Guilty/Not Guilty. A split vote is Hung.\n"


def docket_case(case: Optional[CaseDocket], admissible_only: bool = False) -> dict:
    """Case payload sent to the model; evidence keeps its docket id."""
    if case is None:
        return {}
    evidence = [
        {"id": item.id, "text": item.text, "status": item.status.value}
        for item in case.evidence
        if not admissible_only or item.status.value == "admissible"
    ]
    return {
        "title": case.title,
        "defendant": case.defendant,
        "charge": case.charge,
        "is_jury_trial": case.is_jury_trial,
        "judge": case.judge.model_dump(),
        "jurors": [juror.model_dump(mode="json", exclude={"status_history"}) for juror in case.jurors],
        "facts": {str(i): fact for i, fact in enumerate(case.facts, start=1)},
        "witnesses": {str(i): w.model_dump() for i, w in enumerate(case.witnesses, start=1)},
        "evidence": evidence,
        "opposing_counsel": case.opposing_counsel.model_dump() if case.opposing_counsel else None,
    }


def _dumps(value) -> str:
    return json.dumps(value, ensure_ascii=False)


def generator_prompt(difficulty: str, jurisdiction: str, role: Role, court_type: str = "standard",
                     case_type: CaseType = CaseType.STANDARD) -> str:
    return GENERATOR_SYSTEM_PROMPT.format(
        role=role.value.upper(),
        jurisdiction=jurisdiction,
        court_type=court_type,
        tone=TONES.get(difficulty, TONES["normal"]),
        public_defender=PUBLIC_DEFENDER_NOTE if case_type == CaseType.PUBLIC_DEFENDER else "",
    )


def jury_strike_prompt(case: CaseDocket, player_strikes: Iterable[int], role: Role) -> str:
    opponent = "Prosecutor" if role == Role.DEFENSE else "Defense Attorney"
    pool = [{"id": j.id, "name": j.name, "job": j.job, "bias_hint": j.bias_hint} for j in case.jurors]
    return JURY_STRIKE_SYSTEM_PROMPT.format(
        title=case.title,
        pool=_dumps(pool),
        role=role.value,
        player_strikes=_dumps(list(player_strikes)),
        opponent=opponent,
    )


def opposing_counsel_prompt(case: CaseDocket, difficulty: str, side: Role, motion_text: str = "") -> str:
    counsel = case.opposing_counsel.name if case.opposing_counsel else "Opposing Counsel"
    if side == Role.DEFENSE:
        task = "Draft the defense's pre-trial motion."
    else:
        task = f'Draft the prosecution\'s rebuttal to this defense motion: "{motion_text}"'
    return OPPOSING_COUNSEL_SYSTEM_PROMPT.format(
        counsel=counsel,
        side=side.value,
        case=_dumps(docket_case(case)),
        difficulty=difficulty,
        task=task,
        rules=DOCKET_RULES,
    )


def motion_ruling_prompt(case: CaseDocket, motion_text: str, rebuttal_text: str, difficulty: str,
                         role: Role, noncompliance: Optional[dict] = None) -> str:
    return MOTION_RULING_SYSTEM_PROMPT.format(
        judge=case.judge.name,
        bias=case.judge.bias or "none stated",
        difficulty=difficulty,
        role=role.value,
        case=_dumps(docket_case(case)),
        motion=motion_text,
        rebuttal=rebuttal_text,
        noncompliance=_dumps(noncompliance or {}),
        rules=DOCKET_RULES,
    )


def verdict_prompt(case: CaseDocket, ruling: Optional[MotionRuling], seated_jurors: Iterable[Juror],
                   argument: str, difficulty: str, noncompliance: Optional[dict] = None) -> str:
    motion = f"{ruling.ruling.value} ({ruling.score})" if ruling else "No ruling"
    jury = [j.model_dump(mode="json", exclude={"status_history"}) for j in seated_jurors]
    return VERDICT_SYSTEM_PROMPT.format(
        trial_type="JURY" if case.is_jury_trial else "BENCH",
        case=_dumps(docket_case(case, admissible_only=True)),
        motion=motion,
        jury=_dumps(jury),
        argument=argument,
        noncompliance=_dumps(noncompliance or {}),
        rules=DOCKET_RULES,
        difficulty=difficulty,
        jury_step=JURY_DELIBERATION_STEP if case.is_jury_trial else "",
    )
