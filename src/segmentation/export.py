# ABOUTME: Converts processor results into pandas DataFrames with stable column order.
# ABOUTME: Writes parquet outputs consumed by persistence and report-assembly collaborators.

from dataclasses import asdict, fields
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

import pandas as pd

from src.common.schemas import (
    DynamicSeriesRow,
    DynamicSummaryRow,
    GroupModuleStats,
    ModuleStats,
    PerformanceRow,
)

from .easing import DynamicResult


def _columns(record_type) -> list:
    return [f.name for f in fields(record_type)]


def records_to_frame(records: Iterable, record_type) -> pd.DataFrame:
    rows = [asdict(record) for record in records]
    if not rows:
        return pd.DataFrame(columns=_columns(record_type))
    return pd.DataFrame(rows, columns=_columns(record_type))


def performance_to_frame(rows: Sequence[PerformanceRow]) -> pd.DataFrame:
    return records_to_frame(rows, PerformanceRow)


def dynamics_to_frames(result: DynamicResult) -> Dict[str, pd.DataFrame]:
    return {
        "summary": records_to_frame(result.summary, DynamicSummaryRow),
        "series": records_to_frame(result.series, DynamicSeriesRow),
    }


def modules_to_frame(stats: Sequence[ModuleStats]) -> pd.DataFrame:
    return records_to_frame(stats, ModuleStats)


def group_modules_to_frame(stats: Sequence[GroupModuleStats]) -> pd.DataFrame:
    return records_to_frame(stats, GroupModuleStats)


def export_results(
    output_dir: Path,
    performance: Optional[Sequence[PerformanceRow]] = None,
    dynamics: Optional[DynamicResult] = None,
) -> Dict[str, Path]:
    """
    Write the available result tables as parquet files under ``output_dir``.

    Returns a mapping of table name to written path.
    """

    output_dir.mkdir(parents=True, exist_ok=True)
    frames: Dict[str, pd.DataFrame] = {}
    if performance is not None:
        frames["performance"] = performance_to_frame(performance)
    if dynamics is not None:
        dynamic_frames = dynamics_to_frames(dynamics)
        frames["dynamic_summary"] = dynamic_frames["summary"]
        frames["dynamic_series"] = dynamic_frames["series"]

    written: Dict[str, Path] = {}
    for name, frame in frames.items():
        path = output_dir / f"{name}.parquet"
        frame.to_parquet(path, index=False, engine="pyarrow")
        written[name] = path
    return written
