"""
Unsupervised anomaly detection over the base feature schema.

A linear reconstruction model (standardize, project onto the leading
principal components, project back) learns the "normal" manifold of
the whole corpus.  A transaction's reconstruction error, relative to
a high percentile of the training errors, becomes its anomaly score.

The detector is trained in batch only.  Each training call builds a
complete snapshot and installs it with a single assignment, so a
concurrent ``detect_anomaly`` sees either the old or the new model.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import numpy as np
import pandas as pd
from loguru import logger
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from risk_engine.config import DEFAULT_CONFIG, EngineConfig
from risk_engine.errors import DegenerateTrainingSetError, ModelNotTrainedError
from risk_engine.features import FeatureExtractor, FeatureVector, vector_to_array
from risk_engine.scoring import to_score
from risk_engine.transaction import Transaction, group_by_holder


@dataclass(frozen=True)
class AnomalyResult:
    """Outcome of scoring one transaction."""

    score: int
    is_anomaly: bool
    error: float
    features: FeatureVector

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "score": self.score,
            "is_anomaly": self.is_anomaly,
            "error": round(self.error, 6),
            "features": dict(self.features),
        }


@dataclass(frozen=True)
class _TrainedAnomalyModel:
    scaler: StandardScaler
    pca: PCA
    threshold: float
    feature_names: tuple[str, ...]
    n_samples: int


class AnomalyDetector:
    """Corpus-wide reconstruction-error anomaly detector.

    State machine: untrained -> trained.  Querying an untrained
    detector raises ``ModelNotTrainedError``.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        extractor: Optional[FeatureExtractor] = None,
    ) -> None:
        """
        Args:
            config: Engine configuration.
            extractor: Feature extractor; built from ``config`` if omitted.
        """
        self._config = config or DEFAULT_CONFIG
        self._extractor = extractor or FeatureExtractor(self._config)
        self._model: Optional[_TrainedAnomalyModel] = None
        self._train_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def train(self, transactions: Sequence[Transaction]) -> float:
        """Fit the reconstruction model and derive the outlier threshold.

        Each transaction is featurized against the strictly earlier
        transactions of its own account.

        Args:
            transactions: The full historical corpus.

        Returns:
            The derived error threshold.

        Raises:
            DegenerateTrainingSetError: If ``transactions`` is empty or
                every feature is constant across the corpus.  The
                previously installed model (if any) is left in place.
        """
        if not transactions:
            raise DegenerateTrainingSetError(
                "Cannot train anomaly detector on an empty transaction set"
            )

        frame = self._training_frame(transactions)
        X = frame.to_numpy(dtype=np.float64)
        if not np.isfinite(X).all():
            raise DegenerateTrainingSetError("Training features contain non-finite values")
        if np.all(np.ptp(X, axis=0) == 0):
            raise DegenerateTrainingSetError(
                f"All {X.shape[1]} features have zero variance across "
                f"{X.shape[0]} transactions"
            )

        with self._train_lock:
            scaler = StandardScaler()
            Z = scaler.fit_transform(X)
            pca = PCA(
                n_components=self._n_components(),
                svd_solver="full",
                random_state=self._config.random_state,
            )
            pca.fit(Z)
            errors = _reconstruction_errors(pca, Z)
            threshold = max(
                float(np.percentile(errors, self._config.anomaly_percentile)),
                self._config.min_threshold,
            )
            self._model = _TrainedAnomalyModel(
                scaler=scaler,
                pca=pca,
                threshold=threshold,
                feature_names=tuple(frame.columns),
                n_samples=X.shape[0],
            )

        logger.info(
            f"Anomaly detector trained on {X.shape[0]:,} transactions "
            f"({pca.n_components_} of {X.shape[1]} components, "
            f"threshold={threshold:.6f})"
        )
        return threshold

    def detect_anomaly(
        self,
        transaction: Transaction,
        historical_transactions: Iterable[Transaction],
    ) -> AnomalyResult:
        """Score a transaction against the learned normal manifold.

        Returns:
            ``AnomalyResult`` with ``score = min(round(error / threshold
            * 100), 100)`` and ``is_anomaly = score > 70`` (configurable).

        Raises:
            ModelNotTrainedError: If no training call has succeeded.
        """
        features = self._extractor.extract(transaction, historical_transactions)
        return self.score_features(features)

    def score_features(self, features: FeatureVector) -> AnomalyResult:
        """Score a precomputed base feature vector.

        Raises:
            ModelNotTrainedError: If no training call has succeeded.
            FeatureSchemaMismatchError: If ``features`` does not match
                the training schema.
        """
        model = self._model
        if model is None:
            raise ModelNotTrainedError("AnomalyDetector")

        X = vector_to_array(features, model.feature_names)
        Z = model.scaler.transform(X)
        error = float(_reconstruction_errors(model.pca, Z)[0])
        score = to_score(error / model.threshold * 100)
        logger.debug(f"Anomaly error={error:.6f} score={score}")
        return AnomalyResult(
            score=score,
            is_anomaly=score > self._config.anomaly_flag_threshold,
            error=error,
            features=features,
        )

    @property
    def is_trained(self) -> bool:
        """Whether a trained model is installed."""
        return self._model is not None

    @property
    def threshold(self) -> Optional[float]:
        """Training error threshold, or ``None`` if untrained."""
        model = self._model
        return model.threshold if model else None

    @property
    def feature_names(self) -> tuple[str, ...]:
        """Feature schema the installed model was trained with."""
        model = self._model
        return model.feature_names if model else ()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _training_frame(self, transactions: Sequence[Transaction]) -> pd.DataFrame:
        frames = [
            self._extractor.extract_frame(holder_txns)
            for holder_txns in group_by_holder(transactions).values()
        ]
        return pd.concat(frames)

    def _n_components(self) -> Optional[float]:
        variance = self._config.explained_variance
        return None if variance >= 1.0 else variance


def _reconstruction_errors(pca: PCA, Z: np.ndarray) -> np.ndarray:
    """Per-row mean squared reconstruction error."""
    reconstructed = pca.inverse_transform(pca.transform(Z))
    return np.mean((Z - reconstructed) ** 2, axis=1)
