# ABOUTME: Defines canonical data structures shared by the segmentation processors.
# ABOUTME: Centralizes typed input records and the per-learner/per-module result rows.

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class LearnerRecord:
    """Roster row after normalization."""

    user_id: str
    name: str


@dataclass(frozen=True)
class GradeRecord:
    user_id: str
    total: float


@dataclass(frozen=True)
class SubmissionRecord:
    """Canonical submission attempt produced by the normalization pass."""

    user_id: str
    step_id: str
    status: str
    correct: bool
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class MeetingAttendance:
    """One learner's attendance flags, one entry per dated meeting column."""

    user_id: str
    attended: Tuple[Tuple[date, bool], ...]

    @property
    def attended_count(self) -> int:
        return sum(1 for _, present in self.attended if present)


@dataclass(frozen=True)
class StructureRecord:
    step_id: str
    module_id: int
    module_position: int
    lesson_id: int = 0


@dataclass(frozen=True)
class PerformanceRow:
    """Per-learner performance metrics and segment label."""

    user_id: str
    name: str
    total: float
    total_pct: float
    submissions: int
    unique_steps: int
    success_rate: float
    persistence: float
    efficiency: float
    simple_segment: str
    meetings_attended: int
    meetings_attended_pct: float


@dataclass(frozen=True)
class DynamicSummaryRow:
    """Shape descriptors of a learner's cumulative-activity curve."""

    user_id: str
    name: str
    bezier_p1x: float
    bezier_p1y: float
    bezier_p2x: float
    bezier_p2y: float
    t25: float
    t50: float
    t75: float
    frontload_index: float
    easing_label: str
    total: float
    total_pct: float


@dataclass(frozen=True)
class DynamicSeriesRow:
    user_id: str
    date_iso: Optional[str]
    day_index: int
    x_norm: float
    activity_platform: float
    activity_meetings: float
    activity_total: float
    cum_activity: float
    y_norm: float


@dataclass(frozen=True)
class ModuleStats:
    """Submission statistics for one learner within one curriculum module."""

    module_id: int
    module_name: str
    module_position: int
    total_steps: int
    attempted_steps: int
    completed_steps: int
    total_attempts: int
    correct_attempts: int
    success_rate: float
    completion_rate: float
    avg_attempts_per_step: float
    meetings_attended: int
    first_activity_date: Optional[str] = None
    last_activity_date: Optional[str] = None


@dataclass(frozen=True)
class GroupModuleStats:
    """Module statistics averaged over the learners who attempted the module."""

    module_id: int
    module_name: str
    module_position: int
    total_steps: int
    students: int
    avg_completion_rate: float
    avg_success_rate: float
    avg_attempts_per_step: float
    avg_completed_steps: float
    avg_meetings_attended: float
