"""Preview/confirm import workflow end to end against SQLite storage."""

from datetime import date

import pytest

from wodlog.catalog import find_movement, find_wod
from wodlog.errors import ImportCommitError
from wodlog.ingest import confirm_import_impl, determine_workout_type, preview_import_impl
from wodlog.models import WOD, Movement, PerformanceRow
from wodlog.storage import Storage


def _two_row_export(wodify_csv, line) -> str:
    return wodify_csv(
        line(),
        line(component_type="Metcon", component_name="Fran", result_type="Time", result="5:30"),
    )


def test_preview_back_squat_and_fran(storage, wodify_csv, line) -> None:
    preview = preview_import_impl(_two_row_export(wodify_csv, line), 7, catalog=storage)
    assert preview.total_rows == 2
    assert preview.valid_rows == 2 and preview.invalid_rows == 0
    assert preview.unique_workout_dates == 1
    assert preview.user_workouts_to_create == 1
    assert preview.performances_to_create == 2
    assert preview.new_movements == ["Back Squat"]
    assert preview.new_wods == ["Fran"]
    assert preview.movements_to_create == 1 and preview.wods_to_create == 1
    summary = preview.workout_summary[0]
    assert summary.date == "2024-01-05"
    assert summary.movement_count == 1 and summary.wod_count == 1
    assert summary.component_types == ["Weightlifting", "Metcon"]
    assert summary.has_prs is False


def test_preview_excludes_existing_catalog_entries(storage, wodify_csv, line) -> None:
    storage.create_movement(Movement(name="back squat", is_standard=True))
    storage.create_wod(WOD(name="FRAN", is_standard=True))
    preview = preview_import_impl(_two_row_export(wodify_csv, line), 7, catalog=storage)
    assert preview.new_movements == [] and preview.new_wods == []
    assert preview.movements_to_create == 0 and preview.wods_to_create == 0


def test_preview_writes_nothing(storage, wodify_csv, line) -> None:
    preview_import_impl(_two_row_export(wodify_csv, line), 7, catalog=storage)
    assert storage.search_movements("Back Squat", 10) == []
    assert storage.search_wods("Fran", 10) == []
    assert storage.get_workouts_for_user(7) == []


def test_confirm_back_squat_and_fran(storage, wodify_csv, line) -> None:
    result = confirm_import_impl(_two_row_export(wodify_csv, line), 7, catalog=storage)
    assert result.workouts_created == 1
    assert result.movements_created == 1
    assert result.wods_created == 1
    assert result.performances_created == 2
    assert result.prs_flagged == 0

    workouts = storage.get_workouts_for_user(7)
    assert len(workouts) == 1
    w = workouts[0]
    assert w["workout_date"] == "2024-01-05"
    assert w["workout_name"] == "Workout 2024-01-05"
    assert w["workout_type"] == "metcon"  # 1 vs 1 tie -> metcon
    (squat,) = w["movements"]
    assert squat["movement_name"] == "Back Squat"
    assert (squat["sets"], squat["reps"], squat["weight"]) == (1, 5, 135.0)
    assert squat["order_index"] == 0
    (fran,) = w["wods"]
    assert fran["wod_name"] == "Fran"
    assert fran["time_seconds"] == 330
    assert fran["score_type"] == "Time (HH:MM:SS)"
    assert fran["score_value"] == "05:30"
    assert fran["order_index"] == 1


def test_confirm_reuses_catalog_on_reimport(storage, wodify_csv, line) -> None:
    content = _two_row_export(wodify_csv, line)
    confirm_import_impl(content, 7, catalog=storage)
    preview = preview_import_impl(content, 7, catalog=storage)
    assert preview.new_movements == [] and preview.new_wods == []
    again = confirm_import_impl(content, 7, catalog=storage)
    assert again.movements_created == 0 and again.wods_created == 0
    assert again.workouts_created == 1
    assert len(storage.search_movements("Back Squat", 10)) == 1


def test_preview_counts_match_confirm_creations(storage, wodify_csv, line) -> None:
    storage.create_movement(Movement(name="Deadlift"))
    content = wodify_csv(
        line(),
        line(component_name="deadlift"),
        line(date="01/06/2024", component_name="Strict Press"),
        line(date="01/06/2024", component_type="Metcon", component_name="Helen", result_type="Time", result="11:02"),
        line(date="01/07/2024", component_type="Metcon", component_name="helen", result_type="Time", result="10:40"),
    )
    preview = preview_import_impl(content, 1, catalog=storage)
    result = confirm_import_impl(content, 1, catalog=storage)
    assert preview.movements_to_create == result.movements_created == 2
    assert preview.wods_to_create == result.wods_created == 1
    assert preview.performances_to_create == result.performances_created == 5
    assert preview.unique_workout_dates == result.workouts_created == 3


def test_short_line_counts_as_invalid_row(storage, wodify_csv, line) -> None:
    content = wodify_csv(line(), "Jane Doe,CrossFit Box,01/05/2024", line(component_name="Deadlift"))
    preview = preview_import_impl(content, 1, catalog=storage)
    assert preview.invalid_rows == 1
    assert preview.valid_rows == 2
    assert preview.total_rows == preview.valid_rows + preview.invalid_rows
    assert preview.errors[0].row == 2
    result = confirm_import_impl(content, 1, catalog=storage)
    assert result.performances_created == 2


def test_header_mismatch_preview_and_confirm(storage) -> None:
    content = "Date,Name\n01/05/2024,Back Squat\n"
    preview = preview_import_impl(content, 1, catalog=storage)
    assert preview.total_rows == 1 and preview.invalid_rows == 1 and preview.valid_rows == 0
    assert preview.workout_summary == []
    result = confirm_import_impl(content, 1, catalog=storage)
    assert result.workouts_created == 0 and result.performances_created == 0


def test_prs_and_workout_order(storage, wodify_csv, line) -> None:
    content = wodify_csv(
        line(date="01/06/2024", component_name="Clean", is_pr="TRUE"),
        line(date="01/05/2024", component_type="Gymnastics", component_name="Handstand Push-up",
             result_type="Max reps", result="3 x 8"),
        line(date="01/06/2024", component_name="Jerk", is_pr="TRUE"),
    )
    preview = preview_import_impl(content, 2, catalog=storage)
    assert [s.date for s in preview.workout_summary] == ["2024-01-05", "2024-01-06"]
    assert [s.has_prs for s in preview.workout_summary] == [False, True]

    result = confirm_import_impl(content, 2, catalog=storage)
    assert result.prs_flagged == 2
    workouts = storage.get_workouts_for_user(2)
    assert [w["workout_type"] for w in workouts] == ["gymnastics", "strength"]
    assert [m["movement_name"] for m in workouts[1]["movements"]] == ["Clean", "Jerk"]
    assert all(m["is_pr"] for m in workouts[1]["movements"])
    hspu = workouts[0]["movements"][0]
    assert (hspu["sets"], hspu["reps"]) == (3, 8)
    assert find_movement(storage, "Handstand Push-up").type == "gymnastics"


def test_unparsed_result_is_kept_in_notes(storage, wodify_csv, line) -> None:
    content = wodify_csv(
        line(component_type="Metcon", component_name="Murph", result_type="Pass/Fail", result="Pass",
             comment="with vest"),
    )
    confirm_import_impl(content, 4, catalog=storage)
    (wod_perf,) = storage.get_workouts_for_user(4)[0]["wods"]
    assert wod_perf["notes"] == "Pass/Fail: Pass. with vest"
    assert wod_perf["score_type"] == "Time (HH:MM:SS)"
    assert wod_perf["score_value"] is None


def _perf(component_type: str) -> PerformanceRow:
    return PerformanceRow(date="01/05/2024", component_type=component_type, component_name="x")


@pytest.mark.parametrize(
    "types, expected",
    [
        ([], "metcon"),
        (["Metcon"], "metcon"),
        (["Weightlifting", "Weightlifting", "Metcon"], "strength"),
        (["Gymnastics", "Cardio", "Weightlifting"], "gymnastics"),
        (["Weightlifting", "Metcon"], "metcon"),
        (["Metcon", "Weightlifting"], "metcon"),
        (["Gymnastics", "Weightlifting"], "strength"),
    ],
)
def test_determine_workout_type(types: list, expected: str) -> None:
    assert determine_workout_type([_perf(t) for t in types]) == expected


class _FailingWodStorage(Storage):
    """Storage whose WOD-performance insert always fails."""

    def create_user_workout_wod(self, record):
        raise RuntimeError("disk full")


def test_confirm_failure_rolls_back_only_the_failing_workout(tmp_path, wodify_csv, line) -> None:
    storage = _FailingWodStorage(tmp_path / "fail.db")
    content = wodify_csv(
        line(date="01/05/2024"),
        line(date="01/06/2024", component_name="Deadlift"),
        line(date="01/06/2024", component_type="Metcon", component_name="Fran", result_type="Time", result="5:30"),
        line(date="01/07/2024", component_name="Clean"),
    )
    with pytest.raises(ImportCommitError) as exc_info:
        confirm_import_impl(content, 9, catalog=storage)
    err = exc_info.value
    assert err.date == date(2024, 1, 6)
    assert "2024-01-06" in str(err)
    assert isinstance(err.__cause__, RuntimeError)
    assert err.result.workouts_created == 1
    assert err.result.movements_created == 1

    workouts = storage.get_workouts_for_user(9)
    assert [w["workout_date"] for w in workouts] == ["2024-01-05"]
    assert find_movement(storage, "Back Squat") is not None
    assert find_movement(storage, "Deadlift") is None
    assert find_wod(storage, "Fran") is None
    assert find_movement(storage, "Clean") is None
    storage.close()


def test_confirm_accepts_bytes(storage, wodify_csv, line) -> None:
    result = confirm_import_impl(_two_row_export(wodify_csv, line).encode("utf-8"), 7, catalog=storage)
    assert result.performances_created == 2


def test_reimport_finds_existing_name_among_many_similar(storage, wodify_csv, line) -> None:
    for name in ("Air", "Back", "Box", "Front", "Goblet", "Hack", "Jump", "Overhead", "Pause", "Pistol"):
        storage.create_movement(Movement(name=f"{name} Squat", is_standard=True))
    content = wodify_csv(line(component_name="Squat"))
    first = confirm_import_impl(content, 4, catalog=storage)
    assert first.movements_created == 1

    preview = preview_import_impl(content, 4, catalog=storage)
    assert preview.new_movements == []
    again = confirm_import_impl(content, 4, catalog=storage)
    assert again.movements_created == 0 and again.workouts_created == 1


def test_out_of_range_result_does_not_abort_confirm(storage, wodify_csv, line) -> None:
    content = wodify_csv(
        line(),
        line(date="01/06/2024", component_type="Metcon", component_name="Fran",
             result_type="Time", result="99999999999999999999"),
    )
    preview = preview_import_impl(content, 5, catalog=storage)
    assert preview.invalid_rows == 0
    result = confirm_import_impl(content, 5, catalog=storage)
    assert result.workouts_created == 2 and result.performances_created == 2
    fran = storage.get_workouts_for_user(5)[1]["wods"][0]
    assert fran["time_seconds"] is None
    assert fran["notes"].startswith("Time: 99999999999999999999")


def test_preview_ignores_rows_with_unparseable_dates(storage, wodify_csv, line) -> None:
    content = wodify_csv(
        line(),
        line(date="1/5/2024", component_name="Deadlift"),
        line(date="2024-01-05", component_type="Metcon", component_name="Grace", result_type="Time", result="3:10"),
    )
    preview = preview_import_impl(content, 6, catalog=storage)
    assert preview.new_movements == ["Back Squat"]
    assert preview.new_wods == []
    result = confirm_import_impl(content, 6, catalog=storage)
    assert result.movements_created == preview.movements_to_create
    assert result.wods_created == preview.wods_to_create == 0
