"""Catalog reconciliation: which movements/WODs in an export already exist, and get-or-create at import time.

Preview (analyze_new_entities) and confirm (get_or_create_*) share find_movement/find_wod and
both see only the rows that group into a dated workout. A Catalog whose search matches names
with the same casefold() equality as names_match reports as new the names confirm will create.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Iterable, Optional, Protocol

from .models import (
    WOD,
    Movement,
    PerformanceRow,
    UserWorkout,
    UserWorkoutMovement,
    UserWorkoutWOD,
)
from .normalize import determine_movement_type, determine_wod_score_type

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10

IMPORT_SOURCE = "Wodify Import"
IMPORT_WOD_TYPE = "Self-created"
IMPORT_WOD_REGIME = "AMRAP"


class Catalog(Protocol):
    """What the import pipeline needs from storage (see storage.Storage).

    search_* must put a case-insensitive exact match ahead of other hits, or the capped
    lookup in find_movement/find_wod can miss an existing entry.
    """

    def search_movements(self, query: str, limit: int) -> list[Movement]: ...

    def create_movement(self, movement: Movement) -> Movement: ...

    def search_wods(self, query: str, limit: int) -> list[WOD]: ...

    def create_wod(self, wod: WOD) -> WOD: ...

    def create_user_workout(self, workout: UserWorkout) -> UserWorkout: ...

    def create_user_workout_movement(self, record: UserWorkoutMovement) -> UserWorkoutMovement: ...

    def create_user_workout_wod(self, record: UserWorkoutWOD) -> UserWorkoutWOD: ...

    def transaction(self) -> AbstractContextManager: ...


def names_match(a: str, b: str) -> bool:
    return (a or "").casefold() == (b or "").casefold()


def find_movement(catalog: Catalog, name: str) -> Optional[Movement]:
    """Bounded name search, then case-insensitive exact compare."""
    for m in catalog.search_movements(name, SEARCH_LIMIT):
        if names_match(m.name, name):
            return m
    return None


def find_wod(catalog: Catalog, name: str) -> Optional[WOD]:
    for w in catalog.search_wods(name, SEARCH_LIMIT):
        if names_match(w.name, name):
            return w
    return None


def _distinct(names: Iterable[str]) -> list[str]:
    """First spelling of each name, compared like names_match."""
    seen: dict[str, str] = {}
    for n in names:
        seen.setdefault(n.casefold(), n)
    return list(seen.values())


def analyze_new_entities(rows: list[PerformanceRow], catalog: Catalog) -> tuple[list[str], list[str]]:
    """
    Return (new_movement_names, new_wod_names), each sorted and deduplicated.
    Metcon rows are WOD candidates; every other component type is a movement candidate.
    """
    movement_names = _distinct(r.component_name for r in rows if not r.is_metcon)
    wod_names = _distinct(r.component_name for r in rows if r.is_metcon)

    new_movements = [n for n in movement_names if find_movement(catalog, n) is None]
    new_wods = [n for n in wod_names if find_wod(catalog, n) is None]
    return sorted(new_movements), sorted(new_wods)


def get_or_create_movement(catalog: Catalog, row: PerformanceRow, user_id: int) -> tuple[Movement, bool]:
    """Return (movement, created). Run inside catalog.transaction() so search and insert are atomic."""
    existing = find_movement(catalog, row.component_name)
    if existing is not None:
        return existing, False
    movement = catalog.create_movement(Movement(
        name=row.component_name,
        type=determine_movement_type(row.component_type),
        description=row.component_description,
        is_standard=False,
        created_by=user_id,
    ))
    logger.debug("created movement %r (id=%s)", movement.name, movement.id)
    return movement, True


def get_or_create_wod(catalog: Catalog, row: PerformanceRow, user_id: int) -> tuple[WOD, bool]:
    existing = find_wod(catalog, row.component_name)
    if existing is not None:
        return existing, False
    wod = catalog.create_wod(WOD(
        name=row.component_name,
        source=IMPORT_SOURCE,
        type=IMPORT_WOD_TYPE,
        regime=IMPORT_WOD_REGIME,
        score_type=determine_wod_score_type(row.performance_result_type),
        description=row.component_description,
        is_standard=False,
        created_by=user_id,
    ))
    logger.debug("created wod %r (id=%s)", wod.name, wod.id)
    return wod, True
