"""Pydantic models for wodlog: export rows, parsed results, import preview/result, catalog entities."""

from __future__ import annotations

from datetime import date as Date
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Wodify export ---

WODIFY_COLUMNS: tuple[str, ...] = (
    "customer_name",
    "location_name",
    "date",  # MM/DD/YYYY
    "program_name",
    "class_name",
    "component_type",  # Weightlifting, Gymnastics, Metcon, ...
    "component_id",
    "component_name",
    "component_description",
    "performance_result_type",  # Weight, Time, AMRAP - Rounds and Reps, ...
    "rep_scheme",
    "fully_formatted_result",
    "from_weightlifting_total",
    "from_variable_set",
    "is_rx",
    "is_rx_plus",
    "is_personal_record",
    "personal_record_description",
    "comment",
)

BOOL_COLUMNS = frozenset({
    "from_weightlifting_total",
    "from_variable_set",
    "is_rx",
    "is_rx_plus",
    "is_personal_record",
})

METCON = "Metcon"
WEIGHTLIFTING = "Weightlifting"


class PerformanceRow(BaseModel):
    """One data line of a Wodify performance export."""
    model_config = ConfigDict(frozen=True)

    customer_name: str = ""
    location_name: str = ""
    date: str
    program_name: str = ""
    class_name: str = ""
    component_type: str
    component_id: str = ""
    component_name: str
    component_description: str = ""
    performance_result_type: str = ""
    rep_scheme: str = ""
    fully_formatted_result: str = ""
    from_weightlifting_total: bool = False
    from_variable_set: bool = False
    is_rx: bool = False
    is_rx_plus: bool = False
    is_personal_record: bool = False
    personal_record_description: str = ""
    comment: str = ""

    @property
    def is_metcon(self) -> bool:
        return self.component_type == METCON


class ParsedPerformanceResult(BaseModel):
    # weightlifting
    sets: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    # metcons
    time_seconds: Optional[int] = None
    rounds: Optional[int] = None
    calories: Optional[int] = None
    distance: Optional[float] = None

    notes: str = ""
    is_pr: bool = False

    def has_measure(self) -> bool:
        return any(
            v is not None
            for v in (self.sets, self.reps, self.weight, self.time_seconds,
                      self.rounds, self.calories, self.distance)
        )


class GroupedWorkout(BaseModel):
    """Rows sharing a calendar date, in export order."""
    date: Date
    performances: list[PerformanceRow] = Field(default_factory=list)


# --- Import output ---

class ImportRowError(BaseModel):
    row: int  # 1-based data line; 0 = header / whole file
    field: Optional[str] = None
    value: Optional[str] = None
    message: str


class WorkoutSummary(BaseModel):
    date: str  # YYYY-MM-DD
    movement_count: int = 0
    wod_count: int = 0
    has_prs: bool = False
    component_types: list[str] = Field(default_factory=list)
    existing_workout_id: Optional[int] = None
    is_update: bool = False


class ImportPreview(BaseModel):
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    unique_workout_dates: int = 0
    movements_to_create: int = 0
    wods_to_create: int = 0
    user_workouts_to_create: int = 0
    user_workouts_to_update: int = 0
    performances_to_create: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)
    workout_summary: list[WorkoutSummary] = Field(default_factory=list)
    new_movements: list[str] = Field(default_factory=list)
    new_wods: list[str] = Field(default_factory=list)


class ImportResult(BaseModel):
    workouts_created: int = 0
    workouts_updated: int = 0
    movements_created: int = 0
    wods_created: int = 0
    performances_created: int = 0
    performances_updated: int = 0
    prs_flagged: int = 0

    def merge(self, other: "ImportResult") -> None:
        for name in type(self).model_fields:
            setattr(self, name, getattr(self, name) + getattr(other, name))


# --- Catalog entities (owned by storage) ---

MovementType = Literal["weightlifting", "gymnastics", "cardio", "bodyweight"]
ScoreType = Literal["Time (HH:MM:SS)", "Rounds+Reps", "Max Weight"]
WorkoutType = Literal["metcon", "strength", "gymnastics"]


class Movement(BaseModel):
    id: Optional[int] = None
    name: str
    description: str = ""
    type: MovementType = "bodyweight"
    is_standard: bool = False
    created_by: Optional[int] = None


class WOD(BaseModel):
    id: Optional[int] = None
    name: str
    source: str = ""
    type: str = ""
    regime: str = ""
    score_type: str = ""
    description: str = ""
    url: Optional[str] = None
    notes: Optional[str] = None
    is_standard: bool = False
    created_by: Optional[int] = None


class UserWorkout(BaseModel):
    """One logged session: a user's workout on a date."""
    id: Optional[int] = None
    user_id: int
    workout_date: Date
    workout_name: Optional[str] = None
    workout_type: Optional[WorkoutType] = None
    notes: Optional[str] = None


class UserWorkoutMovement(BaseModel):
    id: Optional[int] = None
    user_workout_id: int
    movement_id: int
    sets: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    time_seconds: Optional[int] = None
    distance: Optional[float] = None
    calories: Optional[int] = None
    notes: str = ""
    is_pr: bool = False
    order_index: int = 0


class UserWorkoutWOD(BaseModel):
    id: Optional[int] = None
    user_workout_id: int
    wod_id: int
    score_type: Optional[str] = None
    score_value: Optional[str] = None
    time_seconds: Optional[int] = None
    rounds: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    calories: Optional[int] = None
    notes: str = ""
    is_pr: bool = False
    order_index: int = 0


# --- Tool inputs ---

class ImportInput(BaseModel):
    user_id: int
    content: str
    content_encoding: Literal["text", "base64"] = "text"


class SearchCatalogInput(BaseModel):
    query: str
    kind: Literal["movement", "wod"] = "movement"
    limit: Optional[int] = 20
