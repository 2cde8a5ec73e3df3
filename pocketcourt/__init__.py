"""
Pocket Court
Turn-based courtroom docket engine with a persistent sanctions record
"""

from .config import GameConfig, LlmSettings, SanctionsTimers
from .errors import (
    ActionPending, ComplianceRejection, ConfigError, DocketError, IdConflict,
    PayloadValidationError, PhaseError, TransportError, TurnViolation,
)
from .game_engine import DocketSession

__version__ = "0.1.0"
