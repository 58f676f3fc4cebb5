# ABOUTME: Builds each learner's cumulative daily-activity curve on the unit square.
# ABOUTME: Extracts quartile timings, a frontload index, Bezier control points, and an easing label.

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

import numpy as np

from src.common.normalization import (
    LearnerIndex,
    normalize_grades,
    normalize_learners,
    normalize_meetings,
    normalize_submissions,
)
from src.common.schemas import DynamicSeriesRow, DynamicSummaryRow

from .performance import total_percentage

logger = logging.getLogger(__name__)

Row = Mapping[str, object]

EASE_OUT = "ease-out"
EASE_IN = "ease-in"
LINEAR = "linear"
EASE_IN_OUT = "ease-in-out"
EASE = "ease"
NO_ACTIVITY = "no-activity"

EASING_LABELS = (EASE_OUT, EASE_IN, LINEAR, EASE_IN_OUT, EASE, NO_ACTIVITY)

CORRECT_WEIGHT = 1.0
INCORRECT_WEIGHT = 0.25


class EasingThresholds:
    FRONTLOAD = 0.10
    LINEAR_SPREAD = 0.10
    LINEAR_MIDPOINT = 0.05
    EARLY_QUARTER = 0.4
    LATE_QUARTER = 0.6


@dataclass(frozen=True)
class DynamicResult:
    summary: List[DynamicSummaryRow]
    series: List[DynamicSeriesRow]


def find_quartile(x_norm: np.ndarray, y_norm: np.ndarray, q: float) -> float:
    """Smallest x at which the curve first reaches ``q``; 1.0 when it never does."""

    hits = np.flatnonzero(np.asarray(y_norm) >= q)
    if hits.size == 0:
        return 1.0
    return float(np.asarray(x_norm)[hits[0]])


def classify_easing(t25: float, t50: float, t75: float, frontload_index: float) -> str:
    # Front-loaded curves are labelled "ease-out" and back-loaded ones "ease-in".
    if frontload_index > EasingThresholds.FRONTLOAD:
        return EASE_OUT
    if frontload_index < -EasingThresholds.FRONTLOAD:
        return EASE_IN
    if abs((t75 - t25) - 0.5) < EasingThresholds.LINEAR_SPREAD:
        return LINEAR
    if abs(t50 - 0.5) < EasingThresholds.LINEAR_MIDPOINT:
        return LINEAR
    if t25 < EasingThresholds.EARLY_QUARTER and t75 > EasingThresholds.LATE_QUARTER:
        return EASE_IN_OUT
    return EASE


def _no_activity(user_id: str, name: str, total: float, total_pct: float, first_day: Optional[date]):
    series = DynamicSeriesRow(
        user_id=user_id,
        date_iso=first_day.isoformat() if first_day else None,
        day_index=0,
        x_norm=0.0,
        activity_platform=0.0,
        activity_meetings=0.0,
        activity_total=0.0,
        cum_activity=0.0,
        y_norm=0.0,
    )
    summary = DynamicSummaryRow(
        user_id=user_id,
        name=name,
        bezier_p1x=0.0,
        bezier_p1y=0.0,
        bezier_p2x=1.0,
        bezier_p2y=1.0,
        t25=1.0,
        t50=1.0,
        t75=1.0,
        frontload_index=-0.5,
        easing_label=NO_ACTIVITY,
        total=total,
        total_pct=total_pct,
    )
    return summary, series


def process_dynamics(
    grades: Sequence[Row],
    learners: Sequence[Row],
    submissions: Sequence[Row],
    meetings: Optional[Sequence[Row]] = None,
    excluded_user_ids: Iterable[str] = (),
    include_meetings: bool = True,
    alpha: float = 1.0,
    beta: float = 1.5,
) -> DynamicResult:
    """
    Summarize how each learner's activity accumulates over their active period.

    Platform activity is the per-day sum of submission weights (1.0 correct,
    0.25 otherwise); meeting activity is 1 for any day with attended meetings.
    Each day contributes ``alpha * platform + beta * meeting``. The learner set
    matches ``process_performance``: roster, grades, and submissions.
    """

    index = LearnerIndex(excluded_user_ids)
    members: Dict[str, None] = {}

    names: Dict[str, str] = {}
    for record in normalize_learners(learners):
        user_id = index.resolve(record.user_id)
        if user_id is None:
            continue
        names[user_id] = record.name
        members.setdefault(user_id)

    totals: Dict[str, float] = {}
    max_total = 0.0
    for record in normalize_grades(grades):
        user_id = index.resolve(record.user_id)
        if user_id is None:
            continue
        totals[user_id] = record.total
        max_total = max(max_total, record.total)
        members.setdefault(user_id)

    platform: Dict[str, Dict[date, float]] = defaultdict(lambda: defaultdict(float))
    undated = 0
    for record in normalize_submissions(submissions):
        user_id = index.resolve(record.user_id)
        if user_id is None:
            continue
        members.setdefault(user_id)
        if record.timestamp is None:
            undated += 1
            continue
        weight = CORRECT_WEIGHT if record.correct else INCORRECT_WEIGHT
        platform[user_id][record.timestamp.date()] += weight
    if undated:
        logger.debug("Ignored %d submissions without a parseable timestamp", undated)

    meeting_days: Dict[str, Set[date]] = defaultdict(set)
    if meetings and include_meetings:
        for record in normalize_meetings(meetings):
            user_id = index.resolve(record.user_id)
            if user_id is None:
                continue
            meeting_days[user_id].update(day for day, present in record.attended if present)

    summary_rows: List[DynamicSummaryRow] = []
    series_rows: List[DynamicSeriesRow] = []
    for user_id in members:
        name = names.get(user_id, "NA")
        total = totals.get(user_id, 0.0)
        total_pct = total_percentage(total, max_total)

        user_platform = platform.get(user_id, {})
        user_meetings = meeting_days.get(user_id, set())
        days = sorted(set(user_platform) | user_meetings)

        plat = np.array([alpha * user_platform.get(day, 0.0) for day in days], dtype=float)
        meet = np.array([beta * (1.0 if day in user_meetings else 0.0) for day in days], dtype=float)
        daily = plat + meet
        cumulative = np.cumsum(daily)

        if not days or cumulative[-1] <= 0:
            summary, series = _no_activity(user_id, name, total, total_pct, days[0] if days else None)
            summary_rows.append(summary)
            series_rows.append(series)
            continue

        day_index = np.array([(day - days[0]).days for day in days])
        span_days = max(1, int(day_index[-1]))
        x_norm = day_index / span_days
        y_norm = cumulative / cumulative[-1]

        for i, day in enumerate(days):
            series_rows.append(
                DynamicSeriesRow(
                    user_id=user_id,
                    date_iso=day.isoformat(),
                    day_index=int(day_index[i]),
                    x_norm=round(float(x_norm[i]), 6),
                    activity_platform=round(float(plat[i]), 6),
                    activity_meetings=round(float(meet[i]), 6),
                    activity_total=round(float(daily[i]), 6),
                    cum_activity=round(float(cumulative[i]), 6),
                    y_norm=round(float(y_norm[i]), 6),
                )
            )

        t25 = find_quartile(x_norm, y_norm, 0.25)
        t50 = find_quartile(x_norm, y_norm, 0.50)
        t75 = find_quartile(x_norm, y_norm, 0.75)
        frontload_index = 0.5 - t50

        summary_rows.append(
            DynamicSummaryRow(
                user_id=user_id,
                name=name,
                bezier_p1x=round(t25, 4),
                bezier_p1y=0.25,
                bezier_p2x=round(t75, 4),
                bezier_p2y=0.75,
                t25=round(t25, 4),
                t50=round(t50, 4),
                t75=round(t75, 4),
                frontload_index=round(frontload_index, 4),
                easing_label=classify_easing(t25, t50, t75, frontload_index),
                total=total,
                total_pct=total_pct,
            )
        )

    logger.debug("Built activity curves for %d learners (%d series points)", len(summary_rows), len(series_rows))
    return DynamicResult(summary=summary_rows, series=series_rows)
