"""
Error taxonomy for the risk-scoring engine.

Every engine error derives from ``RiskEngineError`` so the calling
layer can treat "score unavailable" uniformly, while still mixing in
the matching built-in exception for callers that catch those.
"""

from __future__ import annotations

from typing import Sequence


class RiskEngineError(Exception):
    """Base class for all risk engine errors."""


class ModelNotTrainedError(RiskEngineError, RuntimeError):
    """A model was queried before any training call succeeded."""

    def __init__(self, component: str) -> None:
        super().__init__(f"{component} not trained. Call train() first.")
        self.component = component


class DegenerateTrainingSetError(RiskEngineError, ValueError):
    """Training data is empty or has zero variance across all samples."""


class FeatureSchemaMismatchError(RiskEngineError, ValueError):
    """A feature vector's names or order differ from the training schema."""

    def __init__(self, expected: Sequence[str], actual: Sequence[str]) -> None:
        self.expected = tuple(expected)
        self.actual = tuple(actual)
        missing = [n for n in self.expected if n not in self.actual]
        extra = [n for n in self.actual if n not in self.expected]
        detail = []
        if missing:
            detail.append(f"missing={missing}")
        if extra:
            detail.append(f"unexpected={extra}")
        if not detail:
            detail.append("same features in a different order")
        super().__init__(
            "Feature schema does not match training schema: " + ", ".join(detail)
        )
