"""
Model client and response parsers for the Pocket Court agents.

The judge, opposing counsel and jury all speak through one JSON endpoint.
Parsers validate every payload before the session touches any state.
"""

import json
import logging
import time
from typing import Any, Callable, Iterable, Optional

from openai import OpenAI
from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import LlmSettings
from .errors import ConfigError, PayloadValidationError
from .jury import normalize_juror_id
from .schemas import CaseDocket, MotionRuling, VerdictResult
from .transport import call_with_retry

logger = logging.getLogger(__name__)

INCOMPLETE_MESSAGES = {
    "case": "The AI returned an incomplete case. Please try again.",
    "jury": "The AI returned an incomplete jury response. Please try again.",
    "motion": "The AI returned an incomplete motion ruling. Please try again.",
    "motion_text": "The AI returned an incomplete filing. Please try again.",
    "verdict": "The AI returned an incomplete verdict. Please try again.",
}


# ============================================================
# CLIENT
# ============================================================

class LlmClient:
    """Chat-completions client that always asks for a single JSON object."""

    def __init__(
        self,
        settings: Optional[LlmSettings] = None,
        client: Optional[Any] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or LlmSettings.from_env()
        self._client = client
        self._sleep = sleep
        self._clock = clock

    @property
    def client(self):
        if self._client is None:
            if not self.settings.api_key:
                raise ConfigError("Missing OpenAI API key.")
            self._client = OpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                max_retries=0,
            )
        return self._client

    def request_json(self, system_prompt: str, user_prompt: str, response_label: str = "response") -> dict:
        client = self.client

        def _create(remaining: float):
            return client.chat.completions.create(
                model=self.settings.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.settings.temperature,
                response_format={"type": "json_object"},
                timeout=min(self.settings.timeout, remaining),
            )

        logger.info("Requesting %s from %s", response_label, self.settings.model)
        response = call_with_retry(
            _create,
            retries=self.settings.retries,
            initial_backoff=self.settings.initial_backoff,
            max_elapsed=self.settings.max_elapsed,
            sleep=self._sleep,
            clock=self._clock,
        )
        return parse_json_text(_response_text(response, response_label), response_label)


def _response_text(response, response_label: str) -> str:
    try:
        text = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        text = None
    if not isinstance(text, str):
        raise PayloadValidationError(
            f"Missing text content in {response_label} response.",
            context={"response_label": response_label},
        )
    return text


def parse_json_text(text: str, response_label: str = "response") -> dict:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise PayloadValidationError(
            f"Failed to parse {response_label} JSON.",
            user_message="The AI returned malformed data. Please try again.",
            context={"response_label": response_label, "text": text},
        ) from e
    if not isinstance(payload, dict):
        raise PayloadValidationError(
            f"{response_label} response is not an object.",
            user_message=INCOMPLETE_MESSAGES.get(response_label),
            context={"response_label": response_label},
        )
    return payload


# ============================================================
# PARSERS
# ============================================================

def _invalid(message: str, label: str, **context) -> PayloadValidationError:
    return PayloadValidationError(
        message,
        user_message=INCOMPLETE_MESSAGES.get(label),
        context={"response_label": label, **context},
    )


def _require_object(payload, label: str) -> dict:
    if not isinstance(payload, dict):
        raise _invalid(f"{label} response is not an object.", label)
    return payload


def _require_text(payload: dict, key: str, label: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise _invalid(f"Expected {key} to be a non-empty string.", label, field=key, value=value)
    return value


def _validate(model, data: dict, label: str):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise _invalid(f"Invalid {label} payload: {e.error_count()} error(s)", label,
                       errors=e.errors(include_url=False)) from e


def _normalize_evidence(raw, label: str) -> list[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise _invalid("Expected evidence to be an array.", label, field="evidence")
    evidence = []
    seen = set()
    for index, item in enumerate(raw):
        if isinstance(item, str):
            entry = {"id": index + 1, "text": item}
        elif isinstance(item, dict):
            entry = dict(item)
            entry.setdefault("id", index + 1)
        else:
            raise _invalid(f"Unreadable evidence[{index}].", label, field=f"evidence[{index}]")
        if not str(entry.get("text", "")).strip():
            continue
        evidence_id = normalize_juror_id(entry["id"])
        if evidence_id is None or evidence_id <= 0:
            raise _invalid(f"Expected evidence[{index}].id to be a positive integer.", label,
                           field=f"evidence[{index}].id", value=entry["id"])
        if evidence_id in seen:
            raise _invalid(f"Duplicate evidence id {evidence_id}.", label, field="evidence", value=evidence_id)
        seen.add(evidence_id)
        entry["id"] = evidence_id
        evidence.append(entry)
    return evidence


def _normalize_jurors(raw, label: str) -> list[dict]:
    jurors = []
    seen = set()
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise _invalid(f"Unreadable jurors[{index}].", label, field=f"jurors[{index}]")
        juror_id = normalize_juror_id(item.get("id"))
        if juror_id is None or juror_id <= 0:
            raise _invalid(f"Expected jurors[{index}].id to be a positive integer.", label,
                           field=f"jurors[{index}].id", value=item.get("id"))
        if juror_id in seen:
            raise _invalid(f"Duplicate juror id {juror_id}.", label, field="jurors", value=juror_id)
        seen.add(juror_id)
        jurors.append({**item, "id": juror_id})
    return jurors


def parse_case_response(payload, case_type=None) -> CaseDocket:
    payload = _require_object(payload, "case")
    _require_text(payload, "title", "case")
    if not isinstance(payload.get("facts"), list):
        raise _invalid("Expected facts to be an array.", "case", field="facts")
    if not isinstance(payload.get("is_jury_trial"), bool):
        raise _invalid("Expected is_jury_trial to be a boolean.", "case", field="is_jury_trial")
    judge = payload.get("judge")
    if not isinstance(judge, dict):
        raise _invalid("Missing judge in case response.", "case", field="judge")
    _require_text(judge, "name", "case")

    jurors = payload.get("jurors")
    if payload["is_jury_trial"] and not isinstance(jurors, list):
        raise _invalid("Expected jurors to be an array.", "case", field="jurors")

    data = {
        **payload,
        "facts": [fact for fact in payload["facts"] if isinstance(fact, str)],
        "jurors": _normalize_jurors(jurors if isinstance(jurors, list) else [], "case"),
        "evidence": _normalize_evidence(payload.get("evidence"), "case"),
    }
    if not isinstance(data.get("opposing_counsel"), dict):
        data["opposing_counsel"] = None
    if case_type is not None:
        data["case_type"] = case_type
    return _validate(CaseDocket, data, "case")


class JuryStrikeResponse(BaseModel):
    opponent_strikes: list[int]
    seated_juror_ids: list[int]
    judge_comment: str = Field(..., min_length=1)
    opponent_reasoning: str = ""

    @field_validator("opponent_strikes", "seated_juror_ids", mode="before")
    @classmethod
    def _juror_ids(cls, value):
        if not isinstance(value, list):
            raise ValueError("expected an array of juror ids")
        ids = []
        for item in value:
            juror_id = normalize_juror_id(item)
            if juror_id is None:
                raise ValueError(f"juror id {item!r} is not numeric")
            ids.append(juror_id)
        return ids


def parse_jury_response(payload) -> JuryStrikeResponse:
    payload = _require_object(payload, "jury")
    _require_text(payload, "judge_comment", "jury")
    return _validate(JuryStrikeResponse, payload, "jury")


def parse_motion_text_response(payload) -> str:
    payload = _require_object(payload, "motion_text")
    return _require_text(payload, "text", "motion_text").strip()


def normalize_ruling(value) -> Optional[str]:
    """'granted', 'Partially_Granted' -> canonical ruling strings."""
    if not isinstance(value, str):
        return None
    return " ".join(value.replace("_", " ").replace("-", " ").upper().split())


def _normalize_status_updates(raw: Iterable) -> list:
    updates = []
    for update in raw or []:
        if isinstance(update, dict):
            update = dict(update)
            if isinstance(update.get("status"), str):
                update["status"] = update["status"].strip().lower()
            evidence_id = normalize_juror_id(update.get("id"))
            if evidence_id is not None:
                update["id"] = evidence_id
        updates.append(update)
    return updates


def parse_motion_response(payload) -> MotionRuling:
    payload = _require_object(payload, "motion")
    _require_text(payload, "ruling", "motion")
    _require_text(payload, "outcome_text", "motion")
    data = {
        **payload,
        "ruling": normalize_ruling(payload["ruling"]),
        "evidence_status_updates": _normalize_status_updates(payload.get("evidence_status_updates")),
        "sanctions": payload.get("sanctions") or [],
    }
    if data.get("score") is None:
        data.pop("score", None)
    return _validate(MotionRuling, data, "motion")


def parse_verdict_response(payload) -> VerdictResult:
    payload = _require_object(payload, "verdict")
    _require_text(payload, "final_ruling", "verdict")
    _require_text(payload, "judge_opinion", "verdict")
    score = payload.get("final_weighted_score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise _invalid("Expected final_weighted_score to be a number.", "verdict",
                       field="final_weighted_score", value=score)
    data = {key: value for key, value in payload.items() if value is not None}
    data["sanctions"] = payload.get("sanctions") or []
    return _validate(VerdictResult, data, "verdict")
