"""Wodify import workflow: parse the CSV export, group by date, preview, confirm.

preview_import_impl is read-only. confirm_import_impl re-parses the same input from scratch
(no state is carried between the two calls) and writes one user workout per date.
"""

from __future__ import annotations

import csv
import io
import logging
from collections import Counter

from .catalog import Catalog, analyze_new_entities, get_or_create_movement, get_or_create_wod
from .errors import ImportCommitError, InputReadError
from .models import (
    BOOL_COLUMNS,
    METCON,
    WEIGHTLIFTING,
    WODIFY_COLUMNS,
    GroupedWorkout,
    ImportPreview,
    ImportResult,
    ImportRowError,
    PerformanceRow,
    UserWorkout,
    UserWorkoutMovement,
    UserWorkoutWOD,
    WorkoutSummary,
)
from .normalize import determine_wod_score_type, format_score_value, parse_date, parse_result

logger = logging.getLogger(__name__)

EXPECTED_COLUMNS = len(WODIFY_COLUMNS)
_DATE_INDEX = WODIFY_COLUMNS.index("date")

# Highest priority first; also breaks ties in determine_workout_type.
WORKOUT_TYPE_PRIORITY = ("metcon", "strength", "gymnastics")


def _decode(content: str | bytes) -> str:
    if isinstance(content, (bytes, bytearray)):
        try:
            content = bytes(content).decode("utf-8")
        except UnicodeDecodeError as e:
            raise InputReadError(f"Failed to read input: not valid UTF-8 ({e})") from e
    return content.lstrip("\ufeff")


def _parse_bool(value: str) -> bool:
    return (value or "").strip().upper() == "TRUE"


def parse_csv(content: str | bytes) -> tuple[list[PerformanceRow], list[ImportRowError]]:
    """
    Parse a Wodify performance export (19 columns, header required).
    Returns (rows, errors). Row numbers are 1-based over data records; the header is row 0.
    Bad rows are reported and skipped; rows without a date are skipped silently.
    Raises InputReadError only when the input cannot be decoded.
    """
    text = _decode(content)
    reader = csv.reader(io.StringIO(text, newline=""), skipinitialspace=True, strict=False)
    rows: list[PerformanceRow] = []
    errors: list[ImportRowError] = []

    try:
        header = next((rec for rec in reader if rec), None)
    except csv.Error as e:
        errors.append(ImportRowError(row=0, message=f"Failed to read header: {e}"))
        return rows, errors
    if header is None:
        errors.append(ImportRowError(row=0, message="Failed to read header: input is empty"))
        return rows, errors
    if len(header) != EXPECTED_COLUMNS:
        errors.append(ImportRowError(
            row=0,
            message=f"Invalid header: expected {EXPECTED_COLUMNS} columns, got {len(header)}",
        ))
        return rows, errors

    row_num = 0
    while True:
        try:
            record = next(reader)
        except StopIteration:
            break
        except csv.Error as e:
            row_num += 1
            errors.append(ImportRowError(row=row_num, message=f"Failed to parse row: {e}"))
            continue
        if not record:
            continue  # blank physical line
        row_num += 1
        record = [f.lstrip() for f in record]

        if len(record) != EXPECTED_COLUMNS:
            errors.append(ImportRowError(
                row=row_num,
                message=f"Failed to parse row: expected {EXPECTED_COLUMNS} columns, got {len(record)}",
            ))
            continue
        # Separator lines in the export carry no date
        if not record[_DATE_INDEX].strip():
            continue

        data: dict = {}
        for col, value in zip(WODIFY_COLUMNS, record):
            data[col] = _parse_bool(value) if col in BOOL_COLUMNS else value
        row = PerformanceRow(**data)

        if not row.component_type.strip() or not row.component_name.strip():
            missing = "component_type" if not row.component_type.strip() else "component_name"
            errors.append(ImportRowError(
                row=row_num,
                field=missing,
                value=getattr(row, missing),
                message="Missing component type or name",
            ))
            continue
        rows.append(row)

    return rows, errors


def group_by_date(rows: list[PerformanceRow]) -> list[GroupedWorkout]:
    """One GroupedWorkout per calendar date, ascending. Rows keep export order; unparseable dates are dropped."""
    by_date: dict = {}
    for row in rows:
        try:
            day = parse_date(row.date)
        except ValueError:
            logger.warning("dropping row %r: unparseable date %r", row.component_name, row.date)
            continue
        by_date.setdefault(day, []).append(row)
    return [GroupedWorkout(date=day, performances=perfs) for day, perfs in sorted(by_date.items())]


def create_workout_summary(grouped: list[GroupedWorkout]) -> list[WorkoutSummary]:
    summary: list[WorkoutSummary] = []
    for workout in grouped:
        types: dict[str, None] = {}
        movement_count = wod_count = 0
        has_prs = False
        for perf in workout.performances:
            if perf.is_metcon:
                wod_count += 1
            else:
                movement_count += 1
            has_prs = has_prs or perf.is_personal_record
            types.setdefault(perf.component_type, None)
        summary.append(WorkoutSummary(
            date=workout.date.isoformat(),
            movement_count=movement_count,
            wod_count=wod_count,
            has_prs=has_prs,
            component_types=list(types),
        ))
    return summary


def _workout_kind(component_type: str) -> str:
    if component_type == METCON:
        return "metcon"
    if component_type == WEIGHTLIFTING:
        return "strength"
    return "gymnastics"


def determine_workout_type(performances: list[PerformanceRow]) -> str:
    """Plurality of metcon/strength/gymnastics rows; ties go to the earlier entry of WORKOUT_TYPE_PRIORITY."""
    counts = Counter(_workout_kind(p.component_type) for p in performances)
    if not counts:
        return WORKOUT_TYPE_PRIORITY[0]
    return max(WORKOUT_TYPE_PRIORITY, key=lambda kind: counts[kind])


def preview_import_impl(content: str | bytes, user_id: int, catalog: Catalog) -> ImportPreview:
    """Parse, group and reconcile without writing anything."""
    rows, errors = parse_csv(content)
    grouped = group_by_date(rows)
    new_movements, new_wods = analyze_new_entities([p for w in grouped for p in w.performances], catalog)
    logger.info(
        "preview for user %s: %d rows, %d errors, %d dates, %d new movements, %d new wods",
        user_id, len(rows), len(errors), len(grouped), len(new_movements), len(new_wods),
    )
    return ImportPreview(
        total_rows=len(rows) + len(errors),
        valid_rows=len(rows),
        invalid_rows=len(errors),
        unique_workout_dates=len(grouped),
        movements_to_create=len(new_movements),
        wods_to_create=len(new_wods),
        user_workouts_to_create=len(grouped),
        performances_to_create=len(rows),
        errors=errors,
        workout_summary=create_workout_summary(grouped),
        new_movements=new_movements,
        new_wods=new_wods,
    )


def confirm_import_impl(content: str | bytes, user_id: int, catalog: Catalog) -> ImportResult:
    """
    Import every dated group as one user workout. Each workout (its get-or-creates included)
    is written in a single catalog transaction. On the first failure that workout is rolled back
    and ImportCommitError is raised; workouts for earlier dates stay committed.
    """
    rows, errors = parse_csv(content)
    if errors:
        logger.warning("confirm for user %s: skipping %d invalid rows", user_id, len(errors))
    grouped = group_by_date(rows)

    result = ImportResult()
    for workout in grouped:
        workout_result = ImportResult()
        try:
            with catalog.transaction():
                _import_workout(catalog, workout, user_id, workout_result)
        except Exception as e:
            logger.warning("import for user %s aborted at %s: %s", user_id, workout.date.isoformat(), e)
            raise ImportCommitError(
                f"failed to import workout for {workout.date.isoformat()}: {e}",
                date=workout.date,
                result=result,
            ) from e
        result.merge(workout_result)

    logger.info(
        "confirm for user %s: %d workouts, %d movements, %d wods, %d performances, %d PRs",
        user_id, result.workouts_created, result.movements_created, result.wods_created,
        result.performances_created, result.prs_flagged,
    )
    return result


def _import_workout(catalog: Catalog, workout: GroupedWorkout, user_id: int, result: ImportResult) -> None:
    user_workout = catalog.create_user_workout(UserWorkout(
        user_id=user_id,
        workout_date=workout.date,
        workout_name=f"Workout {workout.date.isoformat()}",
        workout_type=determine_workout_type(workout.performances),
    ))
    result.workouts_created += 1

    for order_index, perf in enumerate(workout.performances):
        if perf.is_metcon:
            _import_wod_performance(catalog, user_workout.id, user_id, perf, order_index, result)
        else:
            _import_movement_performance(catalog, user_workout.id, user_id, perf, order_index, result)
        if perf.is_personal_record:
            result.prs_flagged += 1


def _import_movement_performance(
    catalog: Catalog,
    user_workout_id: int,
    user_id: int,
    perf: PerformanceRow,
    order_index: int,
    result: ImportResult,
) -> None:
    movement, created = get_or_create_movement(catalog, perf, user_id)
    if created:
        result.movements_created += 1

    parsed = parse_result(perf.performance_result_type, perf.fully_formatted_result, perf.comment)
    parsed.is_pr = perf.is_personal_record

    catalog.create_user_workout_movement(UserWorkoutMovement(
        user_workout_id=user_workout_id,
        movement_id=movement.id,
        sets=parsed.sets,
        reps=parsed.reps,
        weight=parsed.weight,
        time_seconds=parsed.time_seconds,
        distance=parsed.distance,
        calories=parsed.calories,
        notes=parsed.notes,
        is_pr=parsed.is_pr,
        order_index=order_index,
    ))
    result.performances_created += 1


def _import_wod_performance(
    catalog: Catalog,
    user_workout_id: int,
    user_id: int,
    perf: PerformanceRow,
    order_index: int,
    result: ImportResult,
) -> None:
    wod, created = get_or_create_wod(catalog, perf, user_id)
    if created:
        result.wods_created += 1

    parsed = parse_result(perf.performance_result_type, perf.fully_formatted_result, perf.comment)
    parsed.is_pr = perf.is_personal_record
    score_type = determine_wod_score_type(perf.performance_result_type)

    catalog.create_user_workout_wod(UserWorkoutWOD(
        user_workout_id=user_workout_id,
        wod_id=wod.id,
        score_type=score_type,
        score_value=format_score_value(parsed, score_type),
        time_seconds=parsed.time_seconds,
        rounds=parsed.rounds,
        reps=parsed.reps,
        weight=parsed.weight,
        calories=parsed.calories,
        notes=parsed.notes,
        is_pr=parsed.is_pr,
        order_index=order_index,
    ))
    result.performances_created += 1
