"""
Versioned JSON store for the player profile and run history.

Corrupt files and schema mismatches reset to defaults. A profile that does not
exist yet is seeded from the legacy sanctions file when one is present.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from pydantic import ValidationError

from .config import data_dir
from .schemas import PlayerProfile, RunHistory, RunHistoryEntry, SanctionsState

logger = logging.getLogger(__name__)

PROFILE_SCHEMA_VERSION = 1
RUN_HISTORY_SCHEMA_VERSION = 2
MAX_RUN_HISTORY = 50

PROFILE_FILENAME = f"profile.v{PROFILE_SCHEMA_VERSION}.json"
RUN_HISTORY_FILENAME = f"run_history.v{RUN_HISTORY_SCHEMA_VERSION}.json"
LEGACY_SANCTIONS_FILENAME = "sanctions_state.json"


class _Unreadable(Exception):
    pass


def default_profile(now: datetime) -> PlayerProfile:
    return PlayerProfile(schema_version=PROFILE_SCHEMA_VERSION, created_at=now, updated_at=now)


def default_run_history(now: datetime) -> RunHistory:
    return RunHistory(schema_version=RUN_HISTORY_SCHEMA_VERSION, created_at=now, updated_at=now)


class ProfileStore:
    """Profile and run history files under one directory."""

    def __init__(
        self,
        directory: Union[str, Path, None] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        max_runs: int = MAX_RUN_HISTORY,
    ):
        self.directory = Path(directory or data_dir())
        self._clock = clock
        self.max_runs = max_runs

    @property
    def profile_path(self) -> Path:
        return self.directory / PROFILE_FILENAME

    @property
    def run_history_path(self) -> Path:
        return self.directory / RUN_HISTORY_FILENAME

    @property
    def legacy_sanctions_path(self) -> Path:
        return self.directory / LEGACY_SANCTIONS_FILENAME

    # ------------------------------------------------------------
    # Raw file access
    # ------------------------------------------------------------

    def _read(self, path: Path, label: str) -> Optional[dict]:
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Failed to parse stored %s: %s", label, e)
            raise _Unreadable(label) from e
        if not isinstance(data, dict):
            logger.warning("Stored %s is not an object.", label)
            raise _Unreadable(label)
        return data

    def _write(self, path: Path, payload: dict) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    # ------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------

    def _reset_profile(self, sanctions: Optional[SanctionsState] = None) -> PlayerProfile:
        profile = default_profile(self._clock())
        if sanctions is not None:
            profile = profile.model_copy(update={"sanctions": sanctions})
        self._write(self.profile_path, profile.model_dump(mode="json"))
        return profile

    def load_profile(self) -> PlayerProfile:
        try:
            stored = self._read(self.profile_path, "player profile")
        except _Unreadable:
            return self._reset_profile()

        if stored is not None:
            if stored.get("schema_version") != PROFILE_SCHEMA_VERSION:
                logger.warning("Stored player profile schema mismatch. Resetting to defaults.")
                return self._reset_profile()
            try:
                return PlayerProfile.model_validate(stored)
            except ValidationError as e:
                logger.warning("Stored player profile is invalid (%d errors). Resetting to defaults.",
                               e.error_count())
                return self._reset_profile()

        return self._migrate_legacy_sanctions()

    def _migrate_legacy_sanctions(self) -> PlayerProfile:
        try:
            legacy = self._read(self.legacy_sanctions_path, "legacy sanctions state")
        except _Unreadable:
            return self._reset_profile()
        if legacy is None:
            return self._reset_profile()
        try:
            sanctions = SanctionsState.model_validate(legacy)
        except ValidationError:
            logger.warning("Legacy sanctions state is invalid. Starting a fresh profile.")
            return self._reset_profile()
        logger.info("Migrated legacy sanctions state (%s) into the player profile", sanctions.state.value)
        return self._reset_profile(sanctions)

    def save_profile(self, profile: PlayerProfile) -> PlayerProfile:
        saved = profile.model_copy(update={
            "schema_version": PROFILE_SCHEMA_VERSION,
            "updated_at": self._clock(),
        })
        self._write(self.profile_path, saved.model_dump(mode="json"))
        return saved

    # ------------------------------------------------------------
    # Run history
    # ------------------------------------------------------------

    def _reset_run_history(self) -> RunHistory:
        history = default_run_history(self._clock())
        self._write(self.run_history_path, history.model_dump(mode="json"))
        return history

    def load_run_history(self) -> RunHistory:
        try:
            stored = self._read(self.run_history_path, "run history")
        except _Unreadable:
            return self._reset_run_history()
        if stored is None:
            return self._reset_run_history()
        if stored.get("schema_version") != RUN_HISTORY_SCHEMA_VERSION:
            logger.warning("Stored run history schema mismatch. Resetting to defaults.")
            return self._reset_run_history()
        try:
            return RunHistory.model_validate(stored)
        except ValidationError as e:
            logger.warning("Stored run history is invalid (%d errors). Resetting to defaults.", e.error_count())
            return self._reset_run_history()

    def save_run_history(self, history: RunHistory) -> RunHistory:
        saved = history.model_copy(update={
            "schema_version": RUN_HISTORY_SCHEMA_VERSION,
            "runs": list(history.runs)[:self.max_runs],
            "updated_at": self._clock(),
        })
        self._write(self.run_history_path, saved.model_dump(mode="json"))
        return saved

    def record_run(self, entry: RunHistoryEntry) -> RunHistory:
        """Insert or replace a run by id, newest first."""
        history = self.load_run_history()
        runs = [entry] + [run for run in history.runs if run.id != entry.id]
        return self.save_run_history(history.model_copy(update={"runs": runs}))
