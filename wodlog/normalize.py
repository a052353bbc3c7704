"""Normalization: Wodify result strings -> numeric measures, dates, type mapping, score display."""

from __future__ import annotations

import math
import re
from datetime import date as Date
from datetime import datetime
from typing import Callable, Optional

from .models import ParsedPerformanceResult

SCORE_TIME = "Time (HH:MM:SS)"
SCORE_ROUNDS_REPS = "Rounds+Reps"
SCORE_MAX_WEIGHT = "Max Weight"

DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y")
_RE_DATE = re.compile(r"\d{2}/\d{2}/(?:\d{4}|\d{2})")

# Largest value an INTEGER column holds.
MAX_INT = 2**63 - 1

# --- Result grammars ---

_RE_SETS_REPS_WEIGHT = re.compile(r"(\d+)\s*x\s*(\d+)\s*@\s*(\d+(?:\.\d+)?)\s*(?:lbs?|#)", re.IGNORECASE)
_RE_WEIGHT = re.compile(r"(\d+(?:\.\d+)?)\s*(?:lbs?|#)", re.IGNORECASE)
_RE_COMMENT_WEIGHT = re.compile(r"[@']?(\d+)\s*#")
_RE_ROUNDS_PLUS_REPS = re.compile(r"(\d+)\s*\+\s*(\d+)")
_RE_SETS_X_REPS = re.compile(r"(\d+)\s*x\s*(\d+)", re.IGNORECASE)
_RE_REPS = re.compile(r"(\d+)\s*reps?", re.IGNORECASE)
_RE_ROUNDS = re.compile(r"(\d+)\s*rounds?", re.IGNORECASE)
_RE_CALORIES = re.compile(r"(\d+)\s*(?:calories|calorie|cals?)", re.IGNORECASE)
_RE_DISTANCE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:meters?|m)\b", re.IGNORECASE)
_RE_TOTAL_REPS = re.compile(r"(\d+)\s*total\s*reps?", re.IGNORECASE)


def _to_int(value: str | None) -> Optional[int]:
    """Integer capture, or None when it doesn't parse or won't fit a signed 64-bit column."""
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    if abs(n) > MAX_INT:
        return None
    return n


def _to_float(value: str | None) -> Optional[float]:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f):
        return None
    return f


def _parse_weight(s: str, comment: str, out: ParsedPerformanceResult) -> None:
    """'3 x 10 @ 85 lbs' -> sets/reps/weight; '135#' -> weight; else look for '75#' in the comment."""
    m = _RE_SETS_REPS_WEIGHT.search(s)
    if m:
        out.sets = _to_int(m.group(1))
        out.reps = _to_int(m.group(2))
        out.weight = _to_float(m.group(3))
        return
    m = _RE_WEIGHT.search(s)
    if m:
        out.weight = _to_float(m.group(1))
        return
    if comment:
        m = _RE_COMMENT_WEIGHT.search(comment)
        if m:
            out.weight = _to_float(m.group(1))


def _parse_time(s: str, comment: str, out: ParsedPerformanceResult) -> None:
    """'5:30' (MM:SS), '1:02:03' (HH:MM:SS) or a bare number of seconds."""
    parts = [p.strip() for p in s.split(":")]
    total: Optional[int]
    if len(parts) == 2:
        minutes, seconds = _to_int(parts[0]), _to_int(parts[1])
        total = None if minutes is None or seconds is None else minutes * 60 + seconds
    elif len(parts) == 3:
        hours, minutes, seconds = (_to_int(p) for p in parts)
        if hours is None or minutes is None or seconds is None:
            total = None
        else:
            total = hours * 3600 + minutes * 60 + seconds
    else:
        total = _to_int(s)
    if total is not None and 0 < total <= MAX_INT:
        out.time_seconds = total


def _parse_rounds_reps(s: str, comment: str, out: ParsedPerformanceResult) -> None:
    m = _RE_ROUNDS_PLUS_REPS.search(s)
    if m:
        out.rounds = _to_int(m.group(1))
        out.reps = _to_int(m.group(2))


def _parse_reps(s: str, comment: str, out: ParsedPerformanceResult) -> None:
    """'3 x 8' -> sets/reps, '50 Reps' -> reps."""
    m = _RE_SETS_X_REPS.search(s)
    if m:
        out.sets = _to_int(m.group(1))
        out.reps = _to_int(m.group(2))
        return
    m = _RE_REPS.search(s)
    if m:
        out.reps = _to_int(m.group(1))


def _parse_rounds(s: str, comment: str, out: ParsedPerformanceResult) -> None:
    m = _RE_ROUNDS.search(s)
    if m:
        out.rounds = _to_int(m.group(1))


def _parse_calories(s: str, comment: str, out: ParsedPerformanceResult) -> None:
    m = _RE_CALORIES.search(s)
    if m:
        out.calories = _to_int(m.group(1))


def _parse_distance(s: str, comment: str, out: ParsedPerformanceResult) -> None:
    m = _RE_DISTANCE.search(s)
    if m:
        out.distance = _to_float(m.group(1))


def _parse_each_round(s: str, comment: str, out: ParsedPerformanceResult) -> None:
    m = _RE_TOTAL_REPS.search(s)
    if m:
        out.reps = _to_int(m.group(1))


_GRAMMARS: dict[str, Callable[[str, str, ParsedPerformanceResult], None]] = {
    "Weight": _parse_weight,
    "Time": _parse_time,
    "AMRAP - Rounds and Reps": _parse_rounds_reps,
    "AMRAP - Reps": _parse_reps,
    "AMRAP - Rounds": _parse_rounds,
    "Max reps": _parse_reps,
    "Calories": _parse_calories,
    "Distance": _parse_distance,
    "Each Round": _parse_each_round,
}


def parse_result(result_type: str, result_string: str, comment: str = "") -> ParsedPerformanceResult:
    """
    Parse a Wodify FullyFormattedResult according to its PerformanceResultType.
    Never raises. Unknown types, or grammars that find nothing, keep the raw text in notes.
    """
    result_type = (result_type or "").strip()
    s = (result_string or "").strip()
    comment = comment or ""
    out = ParsedPerformanceResult(notes=comment)
    grammar = _GRAMMARS.get(result_type)
    if grammar is not None:
        grammar(s, comment, out)
    if not out.has_measure():
        out.notes = f"{result_type}: {s}. {comment}"
    return out


# --- Dates & type mapping ---

def parse_date(value: str) -> Date:
    """Parse a Wodify date (MM/DD/YYYY, then MM/DD/YY). Month and day need two digits. Raises ValueError."""
    s = (value or "").strip()
    if not _RE_DATE.fullmatch(s):
        raise ValueError(f"invalid date format: {value}")
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid date format: {value}")


def determine_movement_type(component_type: str) -> str:
    t = (component_type or "").strip().lower()
    if t in ("weightlifting", "gymnastics", "cardio"):
        return t
    return "bodyweight"


def determine_wod_score_type(result_type: str) -> str:
    if result_type == "Time":
        return SCORE_TIME
    if result_type in ("AMRAP - Rounds and Reps", "AMRAP - Rounds", "AMRAP - Reps"):
        return SCORE_ROUNDS_REPS
    if result_type == "Weight":
        return SCORE_MAX_WEIGHT
    return SCORE_TIME


# --- Score display ---

def format_time(seconds: int) -> str:
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_score_value(parsed: ParsedPerformanceResult, score_type: str) -> Optional[str]:
    """Canonical display string for a WOD score; None when the relevant measure is missing."""
    if score_type == SCORE_TIME:
        if parsed.time_seconds is not None:
            return format_time(parsed.time_seconds)
    elif score_type == SCORE_ROUNDS_REPS:
        if parsed.rounds is not None and parsed.reps is not None:
            return f"{parsed.rounds} rounds + {parsed.reps} reps"
        if parsed.rounds is not None:
            return f"{parsed.rounds} rounds"
        if parsed.reps is not None:
            return f"{parsed.reps} reps"
    elif score_type == SCORE_MAX_WEIGHT:
        if parsed.weight is not None:
            return f"{parsed.weight:.0f} lbs"
    return None
