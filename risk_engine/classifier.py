"""
Per-holder supervised fraud classifier.

Each account holder gets a Random Forest trained on that holder's own
labeled history over the extended feature schema.  Feedback retrains
the forest from scratch on the history plus the newly labeled
transaction, so batch and feedback-driven training always agree.
Retraining is O(n) per feedback event; this is a known scaling limit
that is acceptable for per-holder volumes.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Hashable, Iterable, Optional, Sequence

import numpy as np
from loguru import logger
from sklearn.ensemble import RandomForestClassifier

from risk_engine.config import DEFAULT_CONFIG, EngineConfig
from risk_engine.features import FeatureExtractor, vector_to_array
from risk_engine.scoring import to_score
from risk_engine.transaction import Transaction


@dataclass(frozen=True)
class _TrainedForest:
    forest: RandomForestClassifier
    feature_names: tuple[str, ...]
    positive_index: Optional[int]
    n_samples: int
    n_positive: int


class HolderClassifier:
    """Random Forest fraud classifier for a single account holder.

    ``predict`` returns 0 until a non-empty training call succeeds.
    """

    def __init__(
        self,
        holder_id: Hashable,
        config: Optional[EngineConfig] = None,
        extractor: Optional[FeatureExtractor] = None,
    ) -> None:
        """
        Args:
            holder_id: Account holder this classifier belongs to.
            config: Engine configuration (forest size, depth, seed).
            extractor: Feature extractor; built from ``config`` if omitted.
        """
        self._holder_id = holder_id
        self._config = config or DEFAULT_CONFIG
        self._extractor = extractor or FeatureExtractor(self._config)
        self._model: Optional[_TrainedForest] = None
        self._train_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def train(
        self,
        transactions: Sequence[Transaction],
        labels: Sequence[bool],
    ) -> None:
        """Fit the forest on labeled transactions.

        Each transaction is featurized against the strictly earlier
        members of ``transactions`` only.  An empty list is a no-op.

        Args:
            transactions: The holder's labeled transactions.
            labels: ``labels[i]`` is True if ``transactions[i]`` was fraud.

        Raises:
            ValueError: If ``labels`` and ``transactions`` differ in length.
        """
        if len(transactions) != len(labels):
            raise ValueError(
                f"Got {len(labels)} labels for {len(transactions)} transactions"
            )
        if not transactions:
            logger.debug(f"No transactions for holder {self._holder_id}; skipping training")
            return

        # extract_frame orders rows by a stable timestamp sort; match it.
        order = sorted(range(len(transactions)), key=lambda i: transactions[i].timestamp)
        y = np.array([bool(labels[i]) for i in order])
        frame = self._extractor.extract_frame(transactions, extended=True)
        X = frame.to_numpy(dtype=np.float64)

        forest = RandomForestClassifier(
            n_estimators=self._config.n_estimators,
            max_depth=self._config.max_depth,
            class_weight="balanced",
            random_state=self._config.random_state,
        )
        with self._train_lock:
            forest.fit(X, y)
            classes = list(forest.classes_)
            positive_index = classes.index(True) if True in classes else None
            n_positive = int(y.sum())
            if positive_index is None:
                logger.warning(
                    f"Holder {self._holder_id} has no fraud labels in "
                    f"{len(y)} transactions; classifier will score 0"
                )
            self._model = _TrainedForest(
                forest=forest,
                feature_names=tuple(frame.columns),
                positive_index=positive_index,
                n_samples=len(y),
                n_positive=n_positive,
            )

        logger.info(
            f"Classifier for holder {self._holder_id} trained on "
            f"{len(y)} transactions ({n_positive} flagged)"
        )

    def predict(
        self,
        transaction: Transaction,
        historical_transactions: Iterable[Transaction],
    ) -> int:
        """Fraud probability as an integer score in ``[0, 100]``.

        Returns 0 if the classifier has not been trained yet.

        Raises:
            FeatureSchemaMismatchError: If the extractor's schema changed
                since training.
        """
        model = self._model
        if model is None:
            return 0

        features = self._extractor.extract_extended(transaction, historical_transactions)
        X = vector_to_array(features, model.feature_names)
        if model.positive_index is None:
            return 0
        probability = float(model.forest.predict_proba(X)[0, model.positive_index])
        return to_score(probability * 100)

    def update_model(
        self,
        transaction: Transaction,
        is_actually_fraud: bool,
        historical_transactions: Iterable[Transaction],
    ) -> None:
        """Incorporate one labeled example by retraining from scratch.

        History labels come from each transaction's ``is_flagged``; a
        history entry with the same id as ``transaction`` is replaced.
        """
        history = [t for t in historical_transactions if t.id != transaction.id]
        labels = [t.is_flagged for t in history] + [bool(is_actually_fraud)]
        self.train(history + [transaction], labels)

    @property
    def holder_id(self) -> Hashable:
        return self._holder_id

    @property
    def is_trained(self) -> bool:
        """Whether a trained forest is installed."""
        return self._model is not None

    @property
    def n_samples(self) -> int:
        """Number of transactions in the last successful training call."""
        model = self._model
        return model.n_samples if model else 0

    @property
    def feature_importances(self) -> dict[str, float]:
        """Feature importances, most important first."""
        model = self._model
        if model is None:
            return {}
        return dict(
            sorted(
                zip(model.feature_names, model.forest.feature_importances_.tolist()),
                key=lambda x: x[1],
                reverse=True,
            )
        )
