"""
Plain-text docket export.
Sections follow case order; nothing after a motion that ended the case is written.
"""

from .disposition import is_terminal
from .schemas import DispositionSource, DocketState, EvidenceStatus, Role


def _role_label(role: Role) -> str:
    return "Prosecution" if role == Role.PROSECUTION else "Defense"


def _disposition_block(state: DocketState) -> str:
    disposition = state.disposition
    block = f"FINAL DISPOSITION: {disposition.summary}\n"
    if disposition.details:
        block += f"{disposition.details}\n"
    return block + "\n"


def render_docket(state: DocketState) -> str:
    case = state.case
    if case is None:
        return ""

    out = f"DOCKET: {case.title}\nJUDGE: {case.judge.name}\n"
    if case.charge:
        out += f"CHARGE: {case.charge}\n"
    out += "\n"

    out += "FACTS:\n" + "".join(f"{i}. {fact}\n" for i, fact in enumerate(case.facts, start=1)) + "\n"

    if case.evidence:
        out += "EVIDENCE:\n"
        for item in case.evidence:
            marker = " [SUPPRESSED]" if item.status == EvidenceStatus.SUPPRESSED else ""
            out += f"{item.id}. {item.text}{marker}\n"
        out += "\n"

    jury = state.jury
    if jury is not None and not jury.skipped and jury.locked:
        out += f"JURY SEATED ({len(jury.seated_jurors)}):\n{jury.comment}\n\n"

    motion = state.motion
    if motion is not None:
        if motion.motion_text:
            out += f'{_role_label(motion.motion_by)} Motion:\n"{motion.motion_text}"\n\n'
        if motion.rebuttal_text:
            out += f'{_role_label(motion.rebuttal_by)} Rebuttal:\n"{motion.rebuttal_text}"\n\n'
        if motion.ruling is not None:
            out += f'RULING: {motion.ruling.ruling.value} - "{motion.ruling.outcome_text}"\n\n'

    if is_terminal(state.disposition) and state.disposition.source == DispositionSource.MOTION:
        return (out + _disposition_block(state)).rstrip() + "\n"

    if state.counsel_notes.strip():
        out += f"COUNSEL NOTES:\n{state.counsel_notes.strip()}\n\n"

    trial = state.trial
    if trial.locked and trial.verdict is not None:
        verdict = trial.verdict
        out += f'ARGUMENT:\n"{trial.text}"\n\n'
        out += f"VERDICT: {verdict.final_ruling} (Score: {round(verdict.final_weighted_score)})\n"
        out += f'OPINION: "{verdict.judge_opinion}"\n\n'

    if state.disposition is not None:
        out += _disposition_block(state)

    return out.rstrip() + "\n"
