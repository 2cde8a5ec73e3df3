import json
from types import SimpleNamespace

import pytest

from pocketcourt.agents import (
    LlmClient, normalize_ruling, parse_case_response, parse_jury_response, parse_motion_response,
    parse_motion_text_response, parse_verdict_response,
)
from pocketcourt.config import LlmSettings
from pocketcourt.errors import ConfigError, PayloadValidationError, TransportError
from pocketcourt.jury import initial_jury_state
from pocketcourt.schemas import CaseType, EvidenceStatus, RulingOutcome


class FakeCompletions:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(*outcomes):
    completions = FakeCompletions(*outcomes)
    sleeps = []
    openai_client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    llm = LlmClient(settings=LlmSettings(api_key="test-key", model="test-model"),
                    client=openai_client, sleep=sleeps.append)
    return llm, completions, sleeps


# ============================================================
# CLIENT
# ============================================================

def test_request_json_asks_for_json_object():
    llm, completions, _ = _client(json.dumps({"text": "Motion to suppress."}))
    payload = llm.request_json("system", "user", "motion_text")
    assert payload == {"text": "Motion to suppress."}
    call = completions.calls[0]
    assert call["response_format"] == {"type": "json_object"}
    assert call["model"] == "test-model"
    assert [m["role"] for m in call["messages"]] == ["system", "user"]


def test_malformed_json_is_a_payload_error():
    llm, _, _ = _client("not json at all")
    with pytest.raises(PayloadValidationError) as info:
        llm.request_json("system", "user", "verdict")
    assert info.value.user_message == "The AI returned malformed data. Please try again."


def test_json_array_is_rejected():
    llm, _, _ = _client("[1, 2]")
    with pytest.raises(PayloadValidationError):
        llm.request_json("system", "user", "jury")


def test_transient_failures_are_retried():
    llm, completions, sleeps = _client(TransportError("busy", reason="server", status_code=503), '{"ok": true}')
    assert llm.request_json("system", "user") == {"ok": True}
    assert len(completions.calls) == 2
    assert sleeps == [1.0]


def test_attempt_timeout_is_capped_by_the_overall_budget():
    now = [0.0]
    completions = FakeCompletions(TimeoutError("read timed out"), '{"ok": true}')

    def sleep(seconds):
        now[0] += seconds

    original_create = completions.create

    def slow_create(**kwargs):
        now[0] += 5.0
        return original_create(**kwargs)

    completions.create = slow_create
    llm = LlmClient(
        settings=LlmSettings(api_key="test-key", timeout=30.0, max_elapsed=12.0),
        client=SimpleNamespace(chat=SimpleNamespace(completions=completions)),
        sleep=sleep,
        clock=lambda: now[0],
    )
    assert llm.request_json("system", "user") == {"ok": True}
    assert [call["timeout"] for call in completions.calls] == [12.0, 6.0]


def test_missing_api_key_is_a_config_error():
    llm = LlmClient(settings=LlmSettings(api_key=""))
    with pytest.raises(ConfigError):
        llm.request_json("system", "user")


def test_settings_read_api_key_from_env(monkeypatch):
    monkeypatch.setenv("openai", "sk-from-env")
    monkeypatch.setenv("POCKETCOURT_LLM_BASE_URL", "ftp://nope")
    settings = LlmSettings.from_env()
    assert settings.api_key == "sk-from-env"
    assert settings.base_url is None
    assert settings.warnings


# ============================================================
# CASE
# ============================================================

def test_case_payload_parses(case_payload):
    case = parse_case_response(case_payload, case_type=CaseType.PUBLIC_DEFENDER)
    assert case.title == "State v. Pickles"
    assert [item.id for item in case.evidence] == [1, 2]
    assert all(item.status == EvidenceStatus.ADMISSIBLE for item in case.evidence)
    assert [juror.id for juror in case.jurors] == list(range(1, 9))
    assert case.case_type == CaseType.PUBLIC_DEFENDER


def test_case_juror_ids_are_normalised(case_payload):
    case_payload["jurors"][0]["id"] = "1"
    case_payload["jurors"][1]["id"] = 2.0
    case = parse_case_response(case_payload)
    assert case.jurors[0].id == 1
    assert case.jurors[1].id == 2


@pytest.mark.parametrize("bad_id", ["abc", 0, -3, None, True])
def test_case_rejects_unusable_juror_ids(case_payload, bad_id):
    case_payload["jurors"][0]["id"] = bad_id
    with pytest.raises(PayloadValidationError, match="positive integer"):
        parse_case_response(case_payload)


def test_case_rejects_duplicate_juror_ids(case_payload):
    case_payload["jurors"][1]["id"] = 1
    with pytest.raises(PayloadValidationError, match="Duplicate juror id 1"):
        parse_case_response(case_payload)


def test_jury_trial_needs_jurors(case_payload):
    del case_payload["jurors"]
    with pytest.raises(PayloadValidationError):
        parse_case_response(case_payload)


def test_bench_trial_keeps_listed_jurors(bench_case_payload):
    case = parse_case_response(bench_case_payload)
    assert not case.is_jury_trial
    assert [juror.id for juror in case.jurors] == list(range(1, 9))
    assert initial_jury_state(case.jurors, case.is_jury_trial).skipped


def test_bench_trial_without_jurors(bench_case_payload):
    del bench_case_payload["jurors"]
    case = parse_case_response(bench_case_payload)
    assert case.jurors == ()


def test_case_requires_judge_name(case_payload):
    case_payload["judge"] = {"philosophy": "Strict"}
    with pytest.raises(PayloadValidationError) as info:
        parse_case_response(case_payload)
    assert info.value.user_message == "The AI returned an incomplete case. Please try again."


def test_blank_evidence_is_dropped(case_payload):
    case_payload["evidence"] = ["Paw print", "   ", "Tuna can"]
    case = parse_case_response(case_payload)
    assert [(item.id, item.text) for item in case.evidence] == [(1, "Paw print"), (3, "Tuna can")]


# ============================================================
# JURY / MOTION / VERDICT
# ============================================================

def test_jury_response_normalises_ids():
    response = parse_jury_response({
        "opponent_strikes": ["1", 7.0],
        "seated_juror_ids": [3, "4"],
        "judge_comment": "Jury is seated.",
    })
    assert response.opponent_strikes == [1, 7]
    assert response.seated_juror_ids == [3, 4]


def test_jury_response_rejects_non_numeric_ids():
    with pytest.raises(PayloadValidationError):
        parse_jury_response({"opponent_strikes": ["one"], "seated_juror_ids": [], "judge_comment": "Ok."})


def test_motion_text_is_stripped():
    assert parse_motion_text_response({"text": "  We oppose.  "}) == "We oppose."
    with pytest.raises(PayloadValidationError):
        parse_motion_text_response({"text": ""})


@pytest.mark.parametrize("raw, expected", [
    ("granted", "GRANTED"),
    ("Partially_Granted", "PARTIALLY GRANTED"),
    ("partially-granted", "PARTIALLY GRANTED"),
    (3, None),
])
def test_normalize_ruling(raw, expected):
    assert normalize_ruling(raw) == expected


def test_motion_response_normalises_ruling_and_statuses():
    ruling = parse_motion_response({
        "ruling": "partially_granted",
        "outcome_text": "Evidence 2 is suppressed.",
        "score": None,
        "evidence_status_updates": [{"id": "2", "status": "Suppressed"}],
    })
    assert ruling.ruling == RulingOutcome.PARTIALLY_GRANTED
    assert ruling.evidence_status_updates[0].id == 2
    assert ruling.evidence_status_updates[0].status == EvidenceStatus.SUPPRESSED
    assert ruling.sanctions == ()
    assert ruling.score == 0


def test_motion_response_rejects_unknown_ruling():
    with pytest.raises(PayloadValidationError):
        parse_motion_response({"ruling": "maybe", "outcome_text": "Thinking."})


def test_verdict_requires_numeric_score():
    payload = {"final_ruling": "Guilty", "judge_opinion": "Clear.", "final_weighted_score": "80"}
    with pytest.raises(PayloadValidationError):
        parse_verdict_response(payload)
    payload["final_weighted_score"] = True
    with pytest.raises(PayloadValidationError):
        parse_verdict_response(payload)


def test_verdict_drops_null_fields():
    verdict = parse_verdict_response({
        "final_ruling": "Not Guilty",
        "judge_opinion": "Reasonable doubt remains.",
        "final_weighted_score": 88.5,
        "jury_verdict": None,
        "achievement_title": "Cat Whisperer",
    })
    assert verdict.jury_verdict == "N/A"
    assert verdict.final_weighted_score == 88.5
    assert verdict.achievement_title == "Cat Whisperer"
