# ABOUTME: Makes the shared common package importable across processors.
# ABOUTME: Re-exports schema types, column resolution, and configuration for convenience.

from .schemas import (
    DynamicSeriesRow,
    DynamicSummaryRow,
    GroupModuleStats,
    ModuleStats,
    PerformanceRow,
)
from .columns import find_column, normalize_column_name, validate_required_columns
from .config import SegmentationConfig, load_config

__all__ = [
    "DynamicSeriesRow",
    "DynamicSummaryRow",
    "GroupModuleStats",
    "ModuleStats",
    "PerformanceRow",
    "find_column",
    "normalize_column_name",
    "validate_required_columns",
    "SegmentationConfig",
    "load_config",
]
