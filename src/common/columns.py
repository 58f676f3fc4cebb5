# ABOUTME: Resolves loosely-named CSV columns through static alias tables.
# ABOUTME: Detects date-bracketed meeting columns and validates required fields per table.

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

USER_ID_ALIASES = ("user_id", "userid", "uid", "user")
FIRST_NAME_ALIASES = ("first_name", "firstname", "first")
LAST_NAME_ALIASES = ("last_name", "lastname", "last")
TOTAL_ALIASES = ("total", "score", "points")
STEP_ID_ALIASES = ("step_id", "stepid", "step", "task_id")
STRUCTURE_STEP_ID_ALIASES = ("step_id", "stepid", "step")
STATUS_ALIASES = ("status", "result")
TIMESTAMP_ALIASES = ("timestamp", "time", "submission_time", "created_at")
MODULE_ID_ALIASES = ("module_id", "moduleid")
MODULE_POSITION_ALIASES = ("module_position", "moduleposition")
LESSON_ID_ALIASES = ("lesson_id", "lessonid", "lesson")

# Required alias groups per source table; the first alias names the group.
FILE_VALIDATION: Dict[str, Tuple[Tuple[str, ...], ...]] = {
    "grade_book": (USER_ID_ALIASES, TOTAL_ALIASES),
    "learners": (USER_ID_ALIASES, FIRST_NAME_ALIASES, LAST_NAME_ALIASES),
    "submissions": (USER_ID_ALIASES, STEP_ID_ALIASES, STATUS_ALIASES),
    "structure": (STRUCTURE_STEP_ID_ALIASES, MODULE_ID_ALIASES),
    "meetings": (USER_ID_ALIASES,),
}

MEETING_COLUMN_PATTERN = re.compile(r"^\[(\d{2})\.(\d{2})\.(\d{4})\]")

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ColumnValidation:
    valid: bool
    missing: List[str]


def normalize_column_name(name: str) -> str:
    return _WHITESPACE.sub("_", str(name).strip().lower())


def find_column(row: Mapping[str, object], aliases: Iterable[str]) -> Optional[str]:
    """
    Return the first key of ``row`` whose normalized name is one of ``aliases``.

    Keys are visited in row order, so the column layout of the source file
    decides which key wins when several aliases are present. ``None`` means
    the field is absent; callers treat that as an empty value.
    """

    accepted = set(aliases)
    for key in row.keys():
        if normalize_column_name(key) in accepted:
            return key
    return None


def get_field(row: Mapping[str, object], aliases: Iterable[str]) -> Optional[object]:
    key = find_column(row, aliases)
    if key is None:
        return None
    return row[key]


def validate_required_columns(
    rows: Sequence[Mapping[str, object]], required: Sequence[Sequence[str]]
) -> ColumnValidation:
    """Check the first row of a table against groups of accepted aliases."""

    if not rows:
        return ColumnValidation(valid=False, missing=[group[0] for group in required])

    first_row = rows[0]
    missing = []
    for group in required:
        normalized = [normalize_column_name(alias) for alias in group]
        if find_column(first_row, normalized) is None:
            missing.append(group[0])
    return ColumnValidation(valid=not missing, missing=missing)


def validate_table(rows: Sequence[Mapping[str, object]], table: str) -> ColumnValidation:
    if table not in FILE_VALIDATION:
        raise ValueError(f"Unknown table '{table}'. Expected one of: {', '.join(sorted(FILE_VALIDATION))}.")
    return validate_required_columns(rows, FILE_VALIDATION[table])


def parse_meeting_date(column: str) -> Optional[date]:
    match = MEETING_COLUMN_PATTERN.match(str(column))
    if not match:
        return None
    day, month, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_meeting_columns(rows: Iterable[Mapping[str, object]]) -> List[Tuple[str, date]]:
    """
    Collect ``[DD.MM.YYYY] ...`` columns across all rows, in first-seen order.

    Columns whose bracket is not a real calendar date are ignored.
    """

    columns: List[Tuple[str, date]] = []
    seen = set()
    for row in rows:
        for key in row.keys():
            if key in seen:
                continue
            seen.add(key)
            meeting_date = parse_meeting_date(key)
            if meeting_date is not None:
                columns.append((key, meeting_date))
    return columns
