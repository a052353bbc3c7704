"""SQLite storage layer for the movement/WOD catalog and imported user workouts."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .models import (
    WOD,
    Movement,
    UserWorkout,
    UserWorkoutMovement,
    UserWorkoutWOD,
)

logger = logging.getLogger(__name__)


def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict:
    return {col[0]: row[i] for i, col in enumerate(cursor.description)}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


def _like_pattern(query: str) -> str:
    """'%query%' with LIKE wildcards in the query escaped (ESCAPE '\\')."""
    q = (query or "").strip().casefold()
    q = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{q}%"


class Storage:
    """SQLite-backed catalog and workout storage for wodlog.

    Autocommit connection; writes outside transaction() commit on their own,
    writes inside it commit or roll back together.
    """

    def __init__(self, db_path: str | Path = "wodlog.db", timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._conn: Optional[sqlite3.Connection] = None
        self._in_transaction = False

    def connect(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), timeout=self.timeout, isolation_level=None)
            self._conn.row_factory = _dict_factory
            self._conn.create_function("casefold", 1, _casefold, deterministic=True)
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._ensure_schema()
        return self._conn

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_schema(self) -> None:
        conn = self.connect()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS movements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                description TEXT,
                type TEXT NOT NULL,
                is_standard INTEGER NOT NULL DEFAULT 0,
                created_by INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS wods (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                source TEXT,
                type TEXT,
                regime TEXT,
                score_type TEXT,
                description TEXT,
                url TEXT,
                notes TEXT,
                is_standard INTEGER NOT NULL DEFAULT 0,
                created_by INTEGER,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS user_workouts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                workout_name TEXT,
                workout_date TEXT NOT NULL,
                workout_type TEXT,
                notes TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            CREATE TABLE IF NOT EXISTS user_workout_movements (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_workout_id INTEGER NOT NULL,
                movement_id INTEGER NOT NULL,
                sets INTEGER,
                reps INTEGER,
                weight REAL,
                time_seconds INTEGER,
                distance REAL,
                calories INTEGER,
                notes TEXT,
                is_pr INTEGER NOT NULL DEFAULT 0,
                order_index INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (user_workout_id) REFERENCES user_workouts(id) ON DELETE CASCADE,
                FOREIGN KEY (movement_id) REFERENCES movements(id) ON DELETE RESTRICT
            );
            CREATE TABLE IF NOT EXISTS user_workout_wods (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_workout_id INTEGER NOT NULL,
                wod_id INTEGER NOT NULL,
                score_type TEXT,
                score_value TEXT,
                time_seconds INTEGER,
                rounds INTEGER,
                reps INTEGER,
                weight REAL,
                calories INTEGER,
                notes TEXT,
                is_pr INTEGER NOT NULL DEFAULT 0,
                order_index INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (user_workout_id) REFERENCES user_workouts(id) ON DELETE CASCADE,
                FOREIGN KEY (wod_id) REFERENCES wods(id) ON DELETE RESTRICT
            );
            CREATE INDEX IF NOT EXISTS idx_movements_name ON movements(name);
            CREATE INDEX IF NOT EXISTS idx_wods_name ON wods(name);
            CREATE INDEX IF NOT EXISTS idx_user_workouts_user_date ON user_workouts(user_id, workout_date DESC);
            CREATE INDEX IF NOT EXISTS idx_uwm_user_workout_id ON user_workout_movements(user_workout_id);
            CREATE INDEX IF NOT EXISTS idx_uww_user_workout_id ON user_workout_wods(user_workout_id);
        """)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """BEGIN IMMEDIATE ... COMMIT, ROLLBACK on any exception. Nested calls join the outer transaction."""
        conn = self.connect()
        if self._in_transaction:
            yield conn
            return
        conn.execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            logger.warning("transaction rolled back")
            raise
        else:
            conn.execute("COMMIT")
        finally:
            self._in_transaction = False

    # --- Catalog ---

    def search_movements(self, query: str, limit: int = 20) -> list[Movement]:
        conn = self.connect()
        rows = conn.execute(
            """
            SELECT id, name, description, type, is_standard, created_by FROM movements
            WHERE casefold(name) LIKE ? ESCAPE '\\'
            ORDER BY casefold(name) = ? DESC, is_standard DESC, name
            LIMIT ?
            """,
            (_like_pattern(query), (query or "").strip().casefold(), limit),
        ).fetchall()
        return [Movement(**{**r, "description": r["description"] or "", "is_standard": bool(r["is_standard"])}) for r in rows]

    def create_movement(self, movement: Movement) -> Movement:
        now = _now()
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO movements (name, description, type, is_standard, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (movement.name, movement.description, movement.type, int(movement.is_standard),
                 movement.created_by, now, now),
            )
        return movement.model_copy(update={"id": cur.lastrowid})

    def search_wods(self, query: str, limit: int = 20) -> list[WOD]:
        conn = self.connect()
        rows = conn.execute(
            """
            SELECT id, name, source, type, regime, score_type, description, url, notes, is_standard, created_by
            FROM wods
            WHERE casefold(name) LIKE ? ESCAPE '\\'
            ORDER BY casefold(name) = ? DESC, is_standard DESC, name
            LIMIT ?
            """,
            (_like_pattern(query), (query or "").strip().casefold(), limit),
        ).fetchall()
        out = []
        for r in rows:
            for col in ("source", "type", "regime", "score_type", "description"):
                r[col] = r[col] or ""
            r["is_standard"] = bool(r["is_standard"])
            out.append(WOD(**r))
        return out

    def create_wod(self, wod: WOD) -> WOD:
        now = _now()
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO wods (name, source, type, regime, score_type, description, url, notes,
                                  is_standard, created_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (wod.name, wod.source, wod.type, wod.regime, wod.score_type, wod.description, wod.url,
                 wod.notes, int(wod.is_standard), wod.created_by, now, now),
            )
        return wod.model_copy(update={"id": cur.lastrowid})

    # --- User workouts ---

    def create_user_workout(self, workout: UserWorkout) -> UserWorkout:
        now = _now()
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO user_workouts (user_id, workout_name, workout_date, workout_type, notes,
                                           created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (workout.user_id, workout.workout_name, workout.workout_date.isoformat(),
                 workout.workout_type, workout.notes, now, now),
            )
        return workout.model_copy(update={"id": cur.lastrowid})

    def create_user_workout_movement(self, record: UserWorkoutMovement) -> UserWorkoutMovement:
        now = _now()
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO user_workout_movements (user_workout_id, movement_id, sets, reps, weight,
                    time_seconds, distance, calories, notes, is_pr, order_index, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (record.user_workout_id, record.movement_id, record.sets, record.reps, record.weight,
                 record.time_seconds, record.distance, record.calories, record.notes,
                 int(record.is_pr), record.order_index, now, now),
            )
        return record.model_copy(update={"id": cur.lastrowid})

    def create_user_workout_wod(self, record: UserWorkoutWOD) -> UserWorkoutWOD:
        now = _now()
        with self.transaction() as conn:
            cur = conn.execute(
                """
                INSERT INTO user_workout_wods (user_workout_id, wod_id, score_type, score_value,
                    time_seconds, rounds, reps, weight, calories, notes, is_pr, order_index,
                    created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (record.user_workout_id, record.wod_id, record.score_type, record.score_value,
                 record.time_seconds, record.rounds, record.reps, record.weight, record.calories,
                 record.notes, int(record.is_pr), record.order_index, now, now),
            )
        return record.model_copy(update={"id": cur.lastrowid})

    def get_workouts_for_user(self, user_id: int) -> list[dict]:
        """Return the user's workouts in date order, each with 'movements' and 'wods' lists by order_index."""
        conn = self.connect()
        workouts = conn.execute(
            """
            SELECT id, user_id, workout_name, workout_date, workout_type, notes
            FROM user_workouts WHERE user_id = ?
            ORDER BY workout_date, id
            """,
            (user_id,),
        ).fetchall()
        for w in workouts:
            w["movements"] = conn.execute(
                """
                SELECT m.name AS movement_name, uwm.sets, uwm.reps, uwm.weight, uwm.time_seconds,
                       uwm.distance, uwm.calories, uwm.notes, uwm.is_pr, uwm.order_index
                FROM user_workout_movements uwm JOIN movements m ON m.id = uwm.movement_id
                WHERE uwm.user_workout_id = ?
                ORDER BY uwm.order_index
                """,
                (w["id"],),
            ).fetchall()
            w["wods"] = conn.execute(
                """
                SELECT w.name AS wod_name, uww.score_type, uww.score_value, uww.time_seconds,
                       uww.rounds, uww.reps, uww.weight, uww.calories, uww.notes, uww.is_pr,
                       uww.order_index
                FROM user_workout_wods uww JOIN wods w ON w.id = uww.wod_id
                WHERE uww.user_workout_id = ?
                ORDER BY uww.order_index
                """,
                (w["id"],),
            ).fetchall()
            for rec in w["movements"] + w["wods"]:
                rec["is_pr"] = bool(rec["is_pr"])
        return workouts
