import json
from datetime import timedelta

from pocketcourt.persistence import (
    PROFILE_SCHEMA_VERSION, RUN_HISTORY_SCHEMA_VERSION, ProfileStore,
)
from pocketcourt.schemas import (
    PlayerStats, Role, RunHistoryEntry, SanctionsState, SanctionsStateName,
)


def _run(run_id, started_at):
    return RunHistoryEntry(
        id=run_id,
        started_at=started_at,
        jurisdiction="Fictional",
        difficulty="silly",
        court_type="nightCourt",
        player_role=Role.DEFENSE,
    )


def test_fresh_store_writes_defaults(store, clock):
    profile = store.load_profile()
    assert profile.schema_version == PROFILE_SCHEMA_VERSION
    assert profile.created_at == clock()
    assert profile.sanctions is None
    assert profile.stats == PlayerStats()
    assert store.profile_path.exists()
    assert json.loads(store.profile_path.read_text())["schema_version"] == PROFILE_SCHEMA_VERSION


def test_profile_roundtrip_stamps_updated_at(store, clock):
    profile = store.load_profile()
    clock.advance(minutes=5)
    saved = store.save_profile(profile.model_copy(update={"stats": PlayerStats(runs_completed=3)}))
    assert saved.updated_at == clock()
    loaded = store.load_profile()
    assert loaded.stats.runs_completed == 3
    assert loaded.created_at == profile.created_at


def test_schema_mismatch_resets_profile(store):
    store.directory.mkdir(parents=True)
    store.profile_path.write_text(json.dumps({
        "schema_version": 99,
        "created_at": "2020-01-01T00:00:00Z",
        "updated_at": "2020-01-01T00:00:00Z",
        "stats": {"runs_completed": 12},
    }))
    profile = store.load_profile()
    assert profile.schema_version == PROFILE_SCHEMA_VERSION
    assert profile.stats.runs_completed == 0


def test_corrupt_profile_resets(store):
    store.directory.mkdir(parents=True)
    store.profile_path.write_text("{not json")
    profile = store.load_profile()
    assert profile.stats.runs_completed == 0
    assert json.loads(store.profile_path.read_text())["schema_version"] == PROFILE_SCHEMA_VERSION


def test_invalid_profile_content_resets(store):
    store.directory.mkdir(parents=True)
    store.profile_path.write_text(json.dumps({"schema_version": PROFILE_SCHEMA_VERSION, "created_at": "yesterday"}))
    assert store.load_profile().stats.runs_completed == 0


def test_legacy_sanctions_migrate_into_new_profile(store, clock):
    store.directory.mkdir(parents=True)
    store.legacy_sanctions_path.write_text(json.dumps({
        "state": "public_defender",
        "level": 3,
        "started_at": clock().isoformat(),
        "expires_at": (clock() + timedelta(hours=1)).isoformat(),
        "recidivism_count": 2,
    }))
    profile = store.load_profile()
    assert profile.sanctions.state == SanctionsStateName.PUBLIC_DEFENDER
    assert profile.sanctions.recidivism_count == 2
    assert store.profile_path.exists()


def test_stored_level_is_recomputed(store, clock):
    profile = store.load_profile()
    store.save_profile(profile.model_copy(update={
        "sanctions": SanctionsState(state=SanctionsStateName.WARNED, started_at=clock()),
    }))
    raw = json.loads(store.profile_path.read_text())
    raw["sanctions"]["level"] = 3
    store.profile_path.write_text(json.dumps(raw))
    assert store.load_profile().sanctions.level == 1


def test_run_history_defaults(store):
    history = store.load_run_history()
    assert history.schema_version == RUN_HISTORY_SCHEMA_VERSION
    assert history.runs == []
    assert store.run_history_path.exists()


def test_record_run_upserts_newest_first(store, clock):
    store.record_run(_run("run-a", clock()))
    store.record_run(_run("run-b", clock()))
    finished = _run("run-a", clock()).model_copy(update={"score": 80})
    history = store.record_run(finished)
    assert [run.id for run in history.runs] == ["run-a", "run-b"]
    assert history.runs[0].score == 80
    assert [run.id for run in store.load_run_history().runs] == ["run-a", "run-b"]


def test_run_history_is_capped(tmp_path, clock):
    store = ProfileStore(tmp_path / "capped", clock=clock, max_runs=3)
    for i in range(5):
        store.record_run(_run(f"run-{i}", clock()))
    assert [run.id for run in store.load_run_history().runs] == ["run-4", "run-3", "run-2"]
