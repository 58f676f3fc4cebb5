# ABOUTME: Holds the immutable settings shared by the segmentation processors.
# ABOUTME: Loads them from YAML so CLI runs are reproducible.

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Iterable, Mapping, Tuple

import yaml


@dataclass(frozen=True)
class SegmentationConfig:
    """Switches and weights for one processing run."""

    use_meetings: bool = True
    include_meetings: bool = True
    alpha: float = 1.0
    beta: float = 1.5
    excluded_user_ids: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.alpha < 0 or self.beta < 0:
            raise ValueError(f"Activity weights must be non-negative (alpha={self.alpha}, beta={self.beta}).")

    def with_exclusions(self, user_ids: Iterable[str]) -> "SegmentationConfig":
        merged = tuple(dict.fromkeys([*self.excluded_user_ids, *user_ids]))
        return replace(self, excluded_user_ids=merged)


def config_from_mapping(raw: Mapping[str, object]) -> SegmentationConfig:
    known = {f.name for f in fields(SegmentationConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown segmentation settings: {', '.join(unknown)}.")

    values = dict(raw)
    if "excluded_user_ids" in values:
        excluded = values["excluded_user_ids"] or ()
        if isinstance(excluded, (str, int, float)):
            excluded = [excluded]
        values["excluded_user_ids"] = tuple(str(uid) for uid in excluded)
    for key in ("alpha", "beta"):
        if key in values:
            values[key] = float(values[key])
    return SegmentationConfig(**values)


def load_config(config_path: Path) -> SegmentationConfig:
    """Read a YAML file with an optional top-level ``segmentation:`` section."""

    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}

    section = cfg.get("segmentation", cfg)
    return config_from_mapping(section or {})
