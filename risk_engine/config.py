"""
Policy constants for the risk-scoring engine.

All tunable numbers live on ``EngineConfig`` so a deployment can
override them from a plain mapping (parsed JSON, environment-derived
dict, ...) while the defaults reproduce the reference behaviour.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Any, Mapping


@dataclass(frozen=True)
class EngineConfig:
    """Configuration shared by every engine component."""

    # Fusion
    anomaly_weight: float = 0.4
    behavioral_weight: float = 0.3
    classifier_weight: float = 0.3
    decision_threshold: int = 70

    # Anomaly detector
    anomaly_flag_threshold: int = 70
    anomaly_percentile: float = 90.0
    explained_variance: float = 0.9
    min_threshold: float = 1e-9

    # Feature extraction
    velocity_window_hours: int = 24
    extended_windows: tuple[int, ...] = (1, 3, 6, 12, 24, 72)
    zscore_window: int = 10
    round_divisors: tuple[int, ...] = (1, 5, 10)
    absent_hours_sentinel: float = 87600.0  # ten years

    # Behavioral profiler
    unfamiliar_hour_penalty: int = 20
    unfamiliar_merchant_penalty: int = 15
    unfamiliar_category_penalty: int = 10
    unusual_amount_penalty: int = 25
    amount_multiplier: float = 2.0

    # Classifier
    n_estimators: int = 100
    max_depth: int = 10
    random_state: int = 42

    def __post_init__(self) -> None:
        weights = (self.anomaly_weight, self.behavioral_weight, self.classifier_weight)
        if any(w < 0 for w in weights):
            raise ValueError(f"Fusion weights must be non-negative, got {weights}")
        if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
            raise ValueError(f"Fusion weights must sum to 1.0, got {sum(weights)}")
        if not 0 < self.anomaly_percentile <= 100:
            raise ValueError("anomaly_percentile must be in (0, 100]")
        if not 0 < self.explained_variance <= 1:
            raise ValueError("explained_variance must be in (0, 1]")
        if not self.extended_windows:
            raise ValueError("extended_windows must not be empty")
        if self.velocity_window_hours <= 0 or min(self.extended_windows) <= 0:
            raise ValueError("Velocity windows must be positive")
        if self.zscore_window <= 0:
            raise ValueError("zscore_window must be positive")
        if not math.isfinite(self.absent_hours_sentinel):
            raise ValueError("absent_hours_sentinel must be finite")

    @classmethod
    def from_dict(cls, values: Mapping[str, Any]) -> "EngineConfig":
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")
        kwargs = dict(values)
        for key in ("extended_windows", "round_divisors"):
            if key in kwargs:
                kwargs[key] = tuple(kwargs[key])
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_CONFIG = EngineConfig()
