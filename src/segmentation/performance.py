# ABOUTME: Aggregates grades, submissions, and meeting attendance into one row per learner.
# ABOUTME: Assigns each learner a performance segment through a fixed decision tree.

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from src.common.normalization import (
    LearnerIndex,
    normalize_grades,
    normalize_learners,
    normalize_meetings,
    normalize_submissions,
)
from src.common.schemas import PerformanceRow

logger = logging.getLogger(__name__)

Row = Mapping[str, object]

LEADER_ENGAGED = "Leader engaged"
LEADER_EFFICIENT = "Leader efficient"
BALANCED_ENGAGED = "Balanced + engaged"
LOW_SOCIALLY_ACTIVE = "Low engagement but socially active"
HARDWORKING_STRUGGLING = "Hardworking but struggling"
LOW_ENGAGEMENT = "Low engagement"
BALANCED_MIDDLE = "Balanced middle"

SEGMENT_LABELS = (
    LEADER_ENGAGED,
    LEADER_EFFICIENT,
    BALANCED_ENGAGED,
    LOW_SOCIALLY_ACTIVE,
    HARDWORKING_STRUGGLING,
    LOW_ENGAGEMENT,
    BALANCED_MIDDLE,
)


class SegmentThresholds:
    LEADER_PCT = 80
    LOW_PCT = 30
    LEADER_MEETINGS_PCT = 70
    BALANCED_MEETINGS_PCT = 60
    LOW_MEETINGS_PCT = 50
    EFFICIENT_PERSISTENCE = 3
    STRUGGLING_PERSISTENCE = 5
    LOW_SUBMISSIONS = 20


@dataclass
class _SubmissionStats:
    submissions: int = 0
    correct: int = 0
    steps: Set[str] = field(default_factory=set)


def classify_segment(
    total_pct: float,
    persistence: float,
    submissions: int,
    meetings_attended_pct: float,
    use_meetings: bool,
) -> str:
    """Evaluate the segment rules top to bottom; the first matching rule wins."""

    leader = total_pct >= SegmentThresholds.LEADER_PCT
    low = total_pct < SegmentThresholds.LOW_PCT
    balanced = not leader and not low

    if use_meetings:
        if leader and meetings_attended_pct >= SegmentThresholds.LEADER_MEETINGS_PCT:
            return LEADER_ENGAGED
        if leader and persistence <= SegmentThresholds.EFFICIENT_PERSISTENCE:
            return LEADER_EFFICIENT
        if balanced and meetings_attended_pct >= SegmentThresholds.BALANCED_MEETINGS_PCT:
            return BALANCED_ENGAGED
        if low and meetings_attended_pct >= SegmentThresholds.LOW_MEETINGS_PCT:
            return LOW_SOCIALLY_ACTIVE
    elif leader and persistence <= SegmentThresholds.EFFICIENT_PERSISTENCE:
        return LEADER_EFFICIENT

    if low and persistence >= SegmentThresholds.STRUGGLING_PERSISTENCE:
        return HARDWORKING_STRUGGLING
    if low and submissions < SegmentThresholds.LOW_SUBMISSIONS:
        return LOW_ENGAGEMENT
    return BALANCED_MIDDLE


def total_percentage(total: float, max_total: float) -> float:
    return round(total / max_total * 100, 1) if max_total > 0 else 0.0


def process_performance(
    grades: Sequence[Row],
    learners: Sequence[Row],
    submissions: Sequence[Row],
    meetings: Optional[Sequence[Row]] = None,
    excluded_user_ids: Iterable[str] = (),
    use_meetings: bool = True,
) -> List[PerformanceRow]:
    """
    Build one PerformanceRow per learner found in the roster, grades, or submissions.

    Steps:
    - Map names from the roster and totals from the grade book, tracking the
      highest total for percentage normalization.
    - Count submissions, distinct steps, and correct answers per learner.
    - When meetings are supplied and enabled, count truthy date-bracketed
      attendance columns per learner.
    - Derive rates, classify the segment, and sort by total_pct descending.
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

    stats: Dict[str, _SubmissionStats] = {}
    for record in normalize_submissions(submissions):
        user_id = index.resolve(record.user_id)
        if user_id is None:
            continue
        entry = stats.setdefault(user_id, _SubmissionStats())
        entry.submissions += 1
        entry.steps.add(record.step_id)
        entry.correct += int(record.correct)
        members.setdefault(user_id)

    attendance: Dict[str, int] = {}
    meeting_count = 0
    if meetings and use_meetings:
        for record in normalize_meetings(meetings):
            user_id = index.resolve(record.user_id)
            if user_id is None:
                continue
            attendance[user_id] = record.attended_count
            meeting_count = len(record.attended)

    rows: List[PerformanceRow] = []
    for user_id in members:
        total = totals.get(user_id, 0.0)
        total_pct = total_percentage(total, max_total)

        entry = stats.get(user_id) or _SubmissionStats()
        unique_steps = len(entry.steps)
        success_rate = round(entry.correct / entry.submissions * 100, 1) if entry.submissions else 0.0
        persistence = round(entry.submissions / unique_steps, 2) if unique_steps else 0.0
        efficiency = round(entry.correct / unique_steps, 2) if unique_steps else 0.0

        meetings_attended = attendance.get(user_id, 0)
        meetings_pct = round(meetings_attended / meeting_count * 100, 1) if meeting_count else 0.0

        rows.append(
            PerformanceRow(
                user_id=user_id,
                name=names.get(user_id, "NA"),
                total=total,
                total_pct=total_pct,
                submissions=entry.submissions,
                unique_steps=unique_steps,
                success_rate=success_rate,
                persistence=persistence,
                efficiency=efficiency,
                simple_segment=classify_segment(
                    total_pct=total_pct,
                    persistence=persistence,
                    submissions=entry.submissions,
                    meetings_attended_pct=meetings_pct,
                    use_meetings=use_meetings,
                ),
                meetings_attended=meetings_attended,
                meetings_attended_pct=meetings_pct,
            )
        )

    rows.sort(key=lambda row: row.total_pct, reverse=True)
    logger.debug("Segmented %d learners (%d excluded ids)", len(rows), len(index.excluded))
    return rows


def segment_distribution(rows: Iterable[PerformanceRow]) -> Dict[str, int]:
    """Count learners per segment, listing segments in decision-tree order."""

    counts = Counter(row.simple_segment for row in rows)
    return {label: counts[label] for label in SEGMENT_LABELS if counts[label]}
