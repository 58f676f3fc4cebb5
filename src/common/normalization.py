# ABOUTME: Converts raw CSV rows into typed records in a single coercion pass.
# ABOUTME: Shared by every processor so identity, numbers, booleans, and timestamps agree.

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from .columns import (
    FIRST_NAME_ALIASES,
    LAST_NAME_ALIASES,
    LESSON_ID_ALIASES,
    MODULE_ID_ALIASES,
    MODULE_POSITION_ALIASES,
    STATUS_ALIASES,
    STEP_ID_ALIASES,
    STRUCTURE_STEP_ID_ALIASES,
    TIMESTAMP_ALIASES,
    TOTAL_ALIASES,
    USER_ID_ALIASES,
    get_field,
    parse_meeting_columns,
)
from .schemas import GradeRecord, LearnerRecord, MeetingAttendance, StructureRecord, SubmissionRecord

logger = logging.getLogger(__name__)

Row = Mapping[str, object]

TRUTHY_VALUES = {"true", "1", "yes"}
# Epoch values above this are milliseconds rather than seconds.
MILLISECONDS_THRESHOLD = 10_000_000_000
# Words pandas resolves against the current clock rather than the cell.
RELATIVE_DATE_WORDS = {"now", "today", "tomorrow", "yesterday"}


def to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def to_number(value: object) -> float:
    """Coerce a cell to float; anything non-numeric becomes 0."""

    if value is None or isinstance(value, bool):
        return float(bool(value))
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def to_bool(value: object) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in TRUTHY_VALUES


def parse_timestamp(value: object) -> Optional[datetime]:
    """
    Parse a submission timestamp into a tz-aware UTC datetime.

    Numbers (or numeric strings) are epoch values, in milliseconds when they
    exceed ``MILLISECONDS_THRESHOLD`` and in seconds otherwise. Other strings
    are parsed as calendar datetimes; naive values are taken as UTC.
    Returns ``None`` when nothing usable can be extracted.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        ts = pd.Timestamp(value)
        ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
        return ts.to_pydatetime()

    text = to_text(value)
    if not text or text.lower() in RELATIVE_DATE_WORDS:
        return None

    try:
        epoch = float(text)
    except ValueError:
        epoch = None

    try:
        if epoch is not None:
            if math.isnan(epoch) or math.isinf(epoch) or epoch <= 0:
                return None
            unit = "ms" if epoch > MILLISECONDS_THRESHOLD else "s"
            ts = pd.to_datetime(epoch, unit=unit, utc=True, errors="coerce")
        else:
            ts = pd.to_datetime(text, utc=True, errors="coerce")
    except (ValueError, OverflowError):
        return None

    if ts is None or pd.isna(ts):
        return None
    return ts.to_pydatetime()


def normalize_user_id(value: object) -> str:
    return to_text(value).lower()


def normalize_exclusions(user_ids: Iterable[object]) -> FrozenSet[str]:
    return frozenset(key for key in (normalize_user_id(uid) for uid in user_ids) if key)


def extract_user_id(row: Row) -> Optional[str]:
    user_id = to_text(get_field(row, USER_ID_ALIASES))
    return user_id or None


class LearnerIndex:
    """
    Maps every spelling of a learner id to one canonical id.

    The first trimmed, original-cased spelling registered for a normalized id
    becomes the canonical key. Excluded learners resolve to ``None``.
    """

    def __init__(self, excluded_user_ids: Iterable[object] = ()) -> None:
        self.excluded = normalize_exclusions(excluded_user_ids)
        self._canonical: Dict[str, str] = {}

    def resolve(self, user_id: Optional[str]) -> Optional[str]:
        key = normalize_user_id(user_id)
        if not key or key in self.excluded:
            return None
        return self._canonical.setdefault(key, to_text(user_id))


def normalize_learners(rows: Iterable[Row]) -> List[LearnerRecord]:
    records: List[LearnerRecord] = []
    skipped = 0
    for row in rows:
        user_id = extract_user_id(row)
        if user_id is None:
            skipped += 1
            continue
        first = to_text(get_field(row, FIRST_NAME_ALIASES))
        last = to_text(get_field(row, LAST_NAME_ALIASES))
        name = f"{first} {last}".strip() or "NA"
        records.append(LearnerRecord(user_id=user_id, name=name))
    if skipped:
        logger.debug("Skipped %d roster rows without a user id", skipped)
    return records


def normalize_grades(rows: Iterable[Row]) -> List[GradeRecord]:
    records: List[GradeRecord] = []
    for row in rows:
        user_id = extract_user_id(row)
        if user_id is None:
            continue
        records.append(GradeRecord(user_id=user_id, total=to_number(get_field(row, TOTAL_ALIASES))))
    return records


def normalize_submissions(rows: Iterable[Row]) -> List[SubmissionRecord]:
    records: List[SubmissionRecord] = []
    skipped = 0
    for row in rows:
        user_id = extract_user_id(row)
        if user_id is None:
            skipped += 1
            continue
        status = to_text(get_field(row, STATUS_ALIASES)).lower()
        records.append(
            SubmissionRecord(
                user_id=user_id,
                step_id=to_text(get_field(row, STEP_ID_ALIASES)),
                status=status,
                correct=status == "correct",
                timestamp=parse_timestamp(get_field(row, TIMESTAMP_ALIASES)),
            )
        )
    if skipped:
        logger.debug("Skipped %d submission rows without a user id", skipped)
    return records


def normalize_meetings(rows: Sequence[Row]) -> List[MeetingAttendance]:
    """Read date-bracketed attendance columns; undated columns are ignored."""

    columns = parse_meeting_columns(rows)
    records: List[MeetingAttendance] = []
    for row in rows:
        user_id = extract_user_id(row)
        if user_id is None:
            continue
        attended = tuple((meeting_date, to_bool(row.get(column))) for column, meeting_date in columns)
        records.append(MeetingAttendance(user_id=user_id, attended=attended))
    return records


def normalize_structure(rows: Iterable[Row]) -> List[StructureRecord]:
    records: List[StructureRecord] = []
    for row in rows:
        step_id = to_text(get_field(row, STRUCTURE_STEP_ID_ALIASES))
        module_id = int(to_number(get_field(row, MODULE_ID_ALIASES)))
        if not step_id or not module_id:
            continue
        records.append(
            StructureRecord(
                step_id=step_id,
                module_id=module_id,
                module_position=int(to_number(get_field(row, MODULE_POSITION_ALIASES))),
                lesson_id=int(to_number(get_field(row, LESSON_ID_ALIASES))),
            )
        )
    return records
