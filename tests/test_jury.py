from pocketcourt.agents import parse_case_response
from pocketcourt.jury import (
    flag_invalid_strike, initial_jury_state, normalize_juror_id, normalize_juror_ids, seat_jury,
    toggle_strike, update_juror_status, validate_subset,
)
from pocketcourt.schemas import Juror, JurorStatus


def test_subset_rejects_duplicates():
    check = validate_subset({1, 2, 3}, [1, 1])
    assert not check.valid
    assert check.reason == "duplicate"
    assert check.offending_id == 1


def test_subset_rejects_unknown_ids():
    check = validate_subset({1, 2, 3}, [99])
    assert not check.valid
    assert check.reason == "unknown"
    assert check.offending_id == 99


def test_subset_accepts_distinct_pool_ids():
    assert validate_subset({1, 2, 3}, [1, 2]).valid
    assert validate_subset({1, 2, 3}, []).valid


def test_normalize_juror_id():
    assert normalize_juror_id(3) == 3
    assert normalize_juror_id(" 4 ") == 4
    assert normalize_juror_id(5.0) == 5
    assert normalize_juror_id("four") is None
    assert normalize_juror_id(True) is None
    assert normalize_juror_id(None) is None


def test_normalize_keeps_unreadable_ids_for_reporting():
    ids = normalize_juror_ids(["1", 2, "x"])
    assert ids == [1, 2, "x"]
    check = validate_subset({1, 2}, ids)
    assert check.reason == "unknown" and check.offending_id == "x"


def test_bench_trial_skips_jury():
    assert initial_jury_state([], is_jury_trial=False).skipped


def test_toggle_strike_holds_at_most_two():
    jury = initial_jury_state([], is_jury_trial=True)
    jury = toggle_strike(jury, 2)
    jury = toggle_strike(jury, 5)
    jury = toggle_strike(jury, 7)
    assert jury.my_strikes == (2, 5)
    jury = toggle_strike(jury, 2)
    assert jury.my_strikes == (5,)


def test_status_history_collapses_repeats():
    juror = Juror(id=1, name="A")
    juror = update_juror_status(juror, JurorStatus.SEATED)
    juror = update_juror_status(juror, JurorStatus.SEATED)
    assert juror.status_history == (JurorStatus.ELIGIBLE, JurorStatus.SEATED)


def test_seating_scenario(case_payload):
    case = parse_case_response(case_payload)
    jury = initial_jury_state(case.jurors, is_jury_trial=True)
    assert [j.id for j in jury.pool] == list(range(1, 9))

    seated = seat_jury(jury, [2, 5], [1, 7], [3, 4, 6, 8], "A fine panel.")

    by_id = {juror.id: juror for juror in seated.pool}
    assert seated.locked
    assert by_id[2].status == JurorStatus.STRUCK_BY_PLAYER
    assert by_id[5].status == JurorStatus.STRUCK_BY_PLAYER
    assert by_id[1].status == JurorStatus.STRUCK_BY_OPPONENT
    assert by_id[3].status == JurorStatus.SEATED
    assert by_id[3].status_history == (JurorStatus.ELIGIBLE, JurorStatus.SEATED)
    assert [j.id for j in seated.seated_jurors] == [3, 4, 6, 8]
    assert seated.comment == "A fine panel."


def test_flag_invalid_strike_keeps_player_selection():
    jury = flag_invalid_strike(initial_jury_state([], is_jury_trial=True), [2, 5])
    assert jury.invalid_strike
    assert jury.my_strikes == (2, 5)
    assert not jury.locked
