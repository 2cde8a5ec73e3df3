"""
Configuration for Pocket Court
Environment-driven model settings, game setup defaults and sanctions timers
"""

import logging
import os
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

from .schemas import CaseType, Role

load_dotenv()

logger = logging.getLogger(__name__)


DEFAULT_DIFFICULTY = "normal"
CANONICAL_DIFFICULTIES = ["silly", "normal", "nuance"]
DIFFICULTY_ALIASES = {"regular": DEFAULT_DIFFICULTY}

COURT_TYPES = ["standard", "nightCourt", "supremeCourt"]
COURT_TYPE_ALIASES = {
    "municipal night court": "nightCourt",
    "night court": "nightCourt",
    "supreme court": "supremeCourt",
}

JURISDICTIONS = ["USA", "Canada", "Fictional", "Municipal Night Court"]

DEFAULT_LLM_MODEL = "gpt-4o"


def normalize_difficulty(value) -> str:
    if not isinstance(value, str):
        return DEFAULT_DIFFICULTY
    normalized = value.strip().lower()
    if normalized in DIFFICULTY_ALIASES:
        return DIFFICULTY_ALIASES[normalized]
    if normalized in CANONICAL_DIFFICULTIES:
        return normalized
    return DEFAULT_DIFFICULTY


def normalize_court_type(value) -> str:
    if not isinstance(value, str):
        return "standard"
    normalized = value.strip().lower()
    if normalized in COURT_TYPE_ALIASES:
        return COURT_TYPE_ALIASES[normalized]
    if value in COURT_TYPES:
        return value
    return "standard"


def normalize_jurisdiction(value) -> str:
    return value if value in JURISDICTIONS else "USA"


def normalize_role(value) -> Role:
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        return Role.DEFENSE


@dataclass
class GameConfig:
    """Setup choices for one run."""
    difficulty: str = "silly"
    jurisdiction: str = "Fictional"
    court_type: str = "nightCourt"
    role: Role = Role.DEFENSE
    case_type: CaseType = CaseType.STANDARD

    @classmethod
    def normalized(
        cls,
        difficulty: Optional[str] = None,
        jurisdiction: Optional[str] = None,
        court_type: Optional[str] = None,
        role=None,
        case_type=None,
    ) -> "GameConfig":
        defaults = cls()
        return cls(
            difficulty=normalize_difficulty(difficulty) if difficulty is not None else defaults.difficulty,
            jurisdiction=normalize_jurisdiction(jurisdiction) if jurisdiction is not None else defaults.jurisdiction,
            court_type=normalize_court_type(court_type) if court_type is not None else defaults.court_type,
            role=normalize_role(role) if role is not None else defaults.role,
            case_type=CaseType(case_type) if case_type in set(CaseType) else defaults.case_type,
        )

    def with_public_defender_assignment(self) -> "GameConfig":
        return replace(self, role=Role.DEFENSE, case_type=CaseType.PUBLIC_DEFENDER)


@dataclass
class SanctionsTimers:
    recidivism_window: timedelta = timedelta(minutes=30)
    cooldown_reset: timedelta = timedelta(hours=2)
    warning_duration: timedelta = timedelta(minutes=20)
    sanction_duration: timedelta = timedelta(minutes=45)
    public_defender_duration: timedelta = timedelta(hours=1)
    reinstatement_grace: timedelta = timedelta(minutes=20)


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", key, raw, default)
        return default


@dataclass
class LlmSettings:
    """Model connection settings resolved from the environment."""
    api_key: str = ""
    model: str = DEFAULT_LLM_MODEL
    base_url: Optional[str] = None
    timeout: float = 30.0
    retries: int = 3
    initial_backoff: float = 1.0
    max_elapsed: float = 90.0
    temperature: float = 0.7
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "LlmSettings":
        warnings = []
        base_url = (os.getenv("POCKETCOURT_LLM_BASE_URL") or "").strip() or None
        if base_url and not base_url.startswith(("http://", "https://")):
            warnings.append(f'Invalid endpoint override "{base_url}". Falling back to the provider default.')
            base_url = None
        for warning in warnings:
            logger.warning(warning)
        return cls(
            api_key=os.getenv("openai") or os.getenv("OPENAI_API_KEY") or "",
            model=(os.getenv("POCKETCOURT_LLM_MODEL") or "").strip() or DEFAULT_LLM_MODEL,
            base_url=base_url,
            timeout=_env_float("POCKETCOURT_LLM_TIMEOUT", 30.0),
            retries=int(_env_float("POCKETCOURT_LLM_RETRIES", 3)),
            max_elapsed=_env_float("POCKETCOURT_LLM_MAX_ELAPSED", 90.0),
            warnings=warnings,
        )


def data_dir() -> str:
    return os.getenv("POCKETCOURT_DATA_DIR") or os.path.join(os.path.expanduser("~"), ".pocketcourt")
