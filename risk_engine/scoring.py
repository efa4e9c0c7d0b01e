"""
Score arithmetic shared by the scorers and the orchestrator.
"""

from __future__ import annotations

import math
from typing import Optional

from risk_engine.config import DEFAULT_CONFIG, EngineConfig

MIN_SCORE = 0
MAX_SCORE = 100


def to_score(value: float) -> int:
    """Round half-up and clamp to the integer range [0, 100]."""
    if math.isnan(value):
        return MIN_SCORE
    if math.isinf(value):
        return MAX_SCORE if value > 0 else MIN_SCORE
    return max(MIN_SCORE, min(int(math.floor(value + 0.5)), MAX_SCORE))


def fuse_scores(
    anomaly_score: float,
    behavioral_score: float,
    classifier_score: float,
    config: Optional[EngineConfig] = None,
) -> tuple[int, bool]:
    """Weighted fusion of the three component scores.

    Returns:
        ``(suspicion_score, is_anomaly)`` where ``is_anomaly`` is
        ``suspicion_score > decision_threshold``.
    """
    cfg = config or DEFAULT_CONFIG
    combined = to_score(
        cfg.anomaly_weight * anomaly_score
        + cfg.behavioral_weight * behavioral_score
        + cfg.classifier_weight * classifier_score
    )
    return combined, combined > cfg.decision_threshold
