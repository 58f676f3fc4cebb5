# ABOUTME: Exposes the learner segmentation processors.
# ABOUTME: Groups performance segmentation, activity easing, module analytics, and exporters.

from .performance import classify_segment, process_performance, segment_distribution
from .easing import DynamicResult, classify_easing, find_quartile, process_dynamics
from .modules import aggregate_group_module_stats, process_group_module_analytics, process_module_analytics
from .export import export_results

__all__ = [
    "classify_segment",
    "process_performance",
    "segment_distribution",
    "DynamicResult",
    "classify_easing",
    "find_quartile",
    "process_dynamics",
    "aggregate_group_module_stats",
    "process_group_module_analytics",
    "process_module_analytics",
    "export_results",
]
