# ABOUTME: Tests DataFrame conversion and parquet export of processor results.
# ABOUTME: Ensures fixed column order and that empty results keep their schema.

import pandas as pd

from src.segmentation.easing import process_dynamics
from src.segmentation.export import (
    dynamics_to_frames,
    export_results,
    modules_to_frame,
    performance_to_frame,
)
from src.segmentation.performance import process_performance

GRADES = [{"user_id": "a", "total": 10}, {"user_id": "b", "total": 4}]
LEARNERS = [{"user_id": "a", "first_name": "Ann", "last_name": "Bo"}]
SUBMISSIONS = [
    {"user_id": "a", "step_id": "s1", "status": "correct", "timestamp": "2024-01-01"},
    {"user_id": "a", "step_id": "s2", "status": "wrong", "timestamp": "2024-01-04"},
]


def test_performance_to_frame_keeps_field_order():
    rows = process_performance(GRADES, LEARNERS, SUBMISSIONS)
    frame = performance_to_frame(rows)

    assert list(frame.columns)[:4] == ["user_id", "name", "total", "total_pct"]
    assert frame["user_id"].tolist() == ["a", "b"]
    assert frame.set_index("user_id").loc["a", "simple_segment"] == "Leader efficient"


def test_empty_results_keep_columns():
    frame = modules_to_frame([])
    assert frame.empty
    assert "completion_rate" in frame.columns

    frames = dynamics_to_frames(process_dynamics([], [], []))
    assert frames["summary"].empty
    assert "easing_label" in frames["summary"].columns
    assert "y_norm" in frames["series"].columns


def test_export_results_writes_parquet(tmp_path):
    performance = process_performance(GRADES, LEARNERS, SUBMISSIONS)
    dynamics = process_dynamics(GRADES, LEARNERS, SUBMISSIONS)

    written = export_results(tmp_path / "out", performance=performance, dynamics=dynamics)

    assert set(written) == {"performance", "dynamic_summary", "dynamic_series"}
    summary = pd.read_parquet(written["dynamic_summary"])
    assert summary.set_index("user_id").loc["b", "easing_label"] == "no-activity"
    series = pd.read_parquet(written["dynamic_series"])
    assert series[series["user_id"] == "a"]["y_norm"].iloc[-1] == 1.0
