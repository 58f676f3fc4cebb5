# ABOUTME: Groups one learner's submission attempts by curriculum module.
# ABOUTME: Averages per-learner module statistics into a group view.

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

import numpy as np

from src.common.normalization import (
    normalize_meetings,
    normalize_structure,
    normalize_submissions,
    normalize_user_id,
)
from src.common.schemas import GroupModuleStats, ModuleStats

logger = logging.getLogger(__name__)

Row = Mapping[str, object]
ModuleNames = Mapping[Union[int, str], str]


@dataclass
class _ModuleTally:
    module_position: int
    attempted: Set[str] = field(default_factory=set)
    completed: Set[str] = field(default_factory=set)
    total_attempts: int = 0
    correct_attempts: int = 0
    timestamps: List[datetime] = field(default_factory=list)


def module_display_name(module_id: int, module_names: ModuleNames) -> str:
    return module_names.get(module_id) or module_names.get(str(module_id)) or f"Module {module_id}"


def process_module_analytics(
    user_id: str,
    submissions: Sequence[Row],
    structure: Sequence[Row],
    module_names: ModuleNames,
    meetings: Optional[Sequence[Row]] = None,
) -> List[ModuleStats]:
    """
    Compute per-module completion and success statistics for one learner.

    Module membership comes from the structure table, so ``total_steps`` counts
    every step of the module whether or not the learner attempted it.
    Submissions on steps missing from the structure are ignored. Attended
    meetings count toward a module when their date falls inside the module's
    first-to-last activity dates (inclusive); overlapping module windows can
    therefore count the same meeting more than once.
    """

    step_to_module: Dict[str, Tuple[int, int]] = {}
    module_steps: Dict[int, Set[str]] = defaultdict(set)
    for record in normalize_structure(structure):
        step_to_module[record.step_id] = (record.module_id, record.module_position)
        module_steps[record.module_id].add(record.step_id)

    target = normalize_user_id(user_id)
    tallies: Dict[int, _ModuleTally] = {}
    unmapped = 0
    for record in normalize_submissions(submissions):
        if normalize_user_id(record.user_id) != target or not record.step_id:
            continue
        module = step_to_module.get(record.step_id)
        if module is None:
            unmapped += 1
            continue
        module_id, module_position = module
        tally = tallies.setdefault(module_id, _ModuleTally(module_position=module_position))
        tally.attempted.add(record.step_id)
        tally.total_attempts += 1
        if record.timestamp is not None and record.timestamp.timestamp() > 0:
            tally.timestamps.append(record.timestamp)
        if record.correct:
            tally.correct_attempts += 1
            tally.completed.add(record.step_id)
    if unmapped:
        logger.debug("Ignored %d submissions of %s on steps outside the course structure", unmapped, user_id)

    attended_dates = []
    if meetings:
        attendance = next(
            (record for record in normalize_meetings(meetings) if normalize_user_id(record.user_id) == target),
            None,
        )
        if attendance is not None:
            attended_dates = [day for day, present in attendance.attended if present]

    results: List[ModuleStats] = []
    for module_id, tally in tallies.items():
        total_steps = len(module_steps.get(module_id, ()))
        attempted_steps = len(tally.attempted)
        completed_steps = len(tally.completed)

        success_rate = tally.correct_attempts / tally.total_attempts * 100 if tally.total_attempts else 0.0
        completion_rate = completed_steps / total_steps * 100 if total_steps else 0.0
        avg_attempts = tally.total_attempts / attempted_steps if attempted_steps else 0.0

        first_date = last_date = None
        meetings_attended = 0
        if tally.timestamps:
            first_date = min(tally.timestamps).date()
            last_date = max(tally.timestamps).date()
            meetings_attended = sum(1 for day in attended_dates if first_date <= day <= last_date)

        results.append(
            ModuleStats(
                module_id=module_id,
                module_name=module_display_name(module_id, module_names),
                module_position=tally.module_position,
                total_steps=total_steps,
                attempted_steps=attempted_steps,
                completed_steps=completed_steps,
                total_attempts=tally.total_attempts,
                correct_attempts=tally.correct_attempts,
                success_rate=round(success_rate, 1),
                completion_rate=round(completion_rate, 1),
                avg_attempts_per_step=round(avg_attempts, 1),
                meetings_attended=meetings_attended,
                first_activity_date=first_date.isoformat() if first_date else None,
                last_activity_date=last_date.isoformat() if last_date else None,
            )
        )

    results.sort(key=lambda stats: stats.module_position)
    return results


def aggregate_group_module_stats(per_learner: Iterable[Sequence[ModuleStats]]) -> List[GroupModuleStats]:
    """
    Average per-learner module statistics across a group.

    Each module is averaged over the learners who attempted it.
    """

    grouped: Dict[int, List[ModuleStats]] = defaultdict(list)
    for learner_stats in per_learner:
        for stats in learner_stats:
            grouped[stats.module_id].append(stats)

    results: List[GroupModuleStats] = []
    for module_id, entries in grouped.items():
        first = entries[0]
        results.append(
            GroupModuleStats(
                module_id=module_id,
                module_name=first.module_name,
                module_position=first.module_position,
                total_steps=first.total_steps,
                students=len(entries),
                avg_completion_rate=_mean(e.completion_rate for e in entries),
                avg_success_rate=_mean(e.success_rate for e in entries),
                avg_attempts_per_step=_mean(e.avg_attempts_per_step for e in entries),
                avg_completed_steps=_mean(e.completed_steps for e in entries),
                avg_meetings_attended=_mean(e.meetings_attended for e in entries),
            )
        )

    results.sort(key=lambda stats: stats.module_position)
    return results


def process_group_module_analytics(
    user_ids: Iterable[str],
    submissions: Sequence[Row],
    structure: Sequence[Row],
    module_names: ModuleNames,
    meetings: Optional[Sequence[Row]] = None,
) -> List[GroupModuleStats]:
    per_learner = [
        process_module_analytics(user_id, submissions, structure, module_names, meetings) for user_id in user_ids
    ]
    return aggregate_group_module_stats(per_learner)


def _mean(values: Iterable[float]) -> float:
    return round(float(np.mean(list(values))), 1)
