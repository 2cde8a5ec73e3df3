"""
Shared fixtures: a scripted model client, a settable clock, inert expiry
timers and a sample docket payload.
"""

import copy
from datetime import datetime, timedelta, timezone

import pytest

from pocketcourt.game_engine import DocketSession
from pocketcourt.persistence import ProfileStore

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeLlmClient:
    """Returns queued payloads per response label; queued exceptions are raised."""

    def __init__(self):
        self.responses = {}
        self.calls = []
        self.on_request = None

    def queue(self, label, *payloads):
        self.responses.setdefault(label, []).extend(payloads)

    def request_json(self, system_prompt, user_prompt, response_label="response"):
        self.calls.append((response_label, system_prompt, user_prompt))
        if self.on_request is not None:
            self.on_request(response_label)
        queued = self.responses.get(response_label)
        if not queued:
            raise AssertionError(f"no scripted response for {response_label!r}")
        payload = queued.pop(0)
        if isinstance(payload, BaseException):
            raise payload
        return copy.deepcopy(payload)

    def labels(self):
        return [call[0] for call in self.calls]


class FixedClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


class TimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.timers if t.started and not t.cancelled]


def build_case_payload(is_jury_trial=True):
    hints = ["Loves cats", "Distrusts police", "Works nights", "Retired judge",
             "Fishmonger", "Dog owner", "Student", "Accountant"]
    return {
        "title": "State v. Pickles",
        "defendant": "Pickles the Cat",
        "charge": "Grand theft tuna",
        "is_jury_trial": is_jury_trial,
        "judge": {
            "name": "Judge Moody",
            "philosophy": "Strict textualist",
            "background": "Former night court clerk",
            "bias": "Allergic to cats",
        },
        "jurors": [
            {"id": i, "name": f"Juror {i}", "age": 30 + i, "job": "Baker",
             "bias_hint": hints[i - 1], "hidden_bias": "Secretly hungry"}
            for i in range(1, 9)
        ],
        "facts": [
            "The tuna vanished at noon.",
            "Pickles was seen near the pantry.",
            "A receipt for catnip was found.",
        ],
        "witnesses": [
            {"name": "Mrs. Whiskers", "role": "Neighbor", "statement": "I heard purring."},
            {"name": "Officer Paws", "role": "Arresting officer", "statement": "The suspect fled."},
        ],
        "evidence": ["Paw print on the pantry door", "Empty tuna can"],
        "opposing_counsel": {
            "name": "Rex Barker",
            "age_range": "50s",
            "bio": "Career prosecutor",
            "style_tells": "Growls when losing",
            "current_posture": "Confident",
        },
    }


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def fake_client():
    return FakeLlmClient()


@pytest.fixture
def timer_factory():
    return TimerFactory()


@pytest.fixture
def store(tmp_path, clock):
    return ProfileStore(tmp_path / "profile", clock=clock)


@pytest.fixture
def case_payload():
    return build_case_payload()


@pytest.fixture
def bench_case_payload():
    return build_case_payload(is_jury_trial=False)


@pytest.fixture
def make_session(fake_client, store, clock, timer_factory):
    sessions = []

    def _make():
        session = DocketSession(
            client=fake_client,
            store=store,
            clock=clock,
            timer_factory=timer_factory,
        )
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()
