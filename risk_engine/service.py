"""
Fraud detection service: orchestrates the three scorers.

Owns one corpus-wide ``AnomalyDetector``, one ``BehavioralProfiler``
holding every holder's profile and a ``ClassifierRegistry`` mapping
holders to their ``HolderClassifier``.  Produces a fused suspicion
score per transaction and accepts reviewer feedback.

The service only returns decisions.  Alert delivery and persistence
of the mutated transaction fields belong to the caller.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Hashable, Iterable, Mapping, Optional, Sequence

from loguru import logger

from risk_engine.anomaly import AnomalyDetector
from risk_engine.classifier import HolderClassifier
from risk_engine.config import DEFAULT_CONFIG, EngineConfig
from risk_engine.features import FeatureExtractor, FeatureVector
from risk_engine.profiler import BehavioralProfiler
from risk_engine.scoring import fuse_scores
from risk_engine.transaction import Transaction, group_by_holder


@dataclass
class SuspicionAssessment:
    """Risk decision for one transaction."""

    transaction_id: Hashable
    holder_id: Hashable
    suspicious_score: int
    is_anomaly: bool
    anomaly_score: int
    behavioral_score: int
    classifier_score: int
    features: FeatureVector
    contributing_factors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Serialize using the storage layer's field names."""
        return {
            "transactionId": self.transaction_id,
            "suspiciousScore": self.suspicious_score,
            "isAnomaly": self.is_anomaly,
            "anomalyScore": self.anomaly_score,
            "behavioralScore": self.behavioral_score,
            "classifierScore": self.classifier_score,
            "features": dict(self.features),
            "contributingFactors": list(self.contributing_factors),
        }


class ClassifierRegistry:
    """Holder id -> classifier map with one lock per holder.

    Scoring and feedback for the same holder serialize on that holder's
    lock; different holders proceed independently.
    """

    def __init__(self) -> None:
        self._classifiers: dict[Hashable, HolderClassifier] = {}
        self._locks: dict[Hashable, threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, holder_id: Hashable) -> Optional[HolderClassifier]:
        with self._guard:
            return self._classifiers.get(holder_id)

    def install(self, holder_id: Hashable, classifier: HolderClassifier) -> None:
        """Install (or replace) the holder's classifier."""
        with self._guard:
            self._classifiers[holder_id] = classifier

    def lock_for(self, holder_id: Hashable) -> threading.RLock:
        """The mutual-exclusion lock guarding one holder's state."""
        with self._guard:
            lock = self._locks.get(holder_id)
            if lock is None:
                lock = self._locks[holder_id] = threading.RLock()
            return lock

    def holders(self) -> list[Hashable]:
        with self._guard:
            return list(self._classifiers)

    def __contains__(self, holder_id: Hashable) -> bool:
        with self._guard:
            return holder_id in self._classifiers

    def __len__(self) -> int:
        with self._guard:
            return len(self._classifiers)


class FraudDetectionService:
    """Combines anomaly, behavioral and classifier scores.

    Typical lifecycle::

        service = FraudDetectionService()
        service.initialize(all_transactions)          # once, at startup
        assessment = service.analyze_transaction(txn, holder, history)
        service.update_models(txn, holder, True, history)   # feedback
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        anomaly_detector: Optional[AnomalyDetector] = None,
        profiler: Optional[BehavioralProfiler] = None,
        registry: Optional[ClassifierRegistry] = None,
        extractor: Optional[FeatureExtractor] = None,
    ) -> None:
        """
        Args:
            config: Engine configuration; defaults reproduce the
                0.4 / 0.3 / 0.3 fusion with a decision threshold of 70.
            anomaly_detector: Shared detector (may already be trained).
            profiler: Shared behavioral profiler.
            registry: Holder classifier registry.
            extractor: Feature extractor shared with new classifiers.
        """
        self._config = config or DEFAULT_CONFIG
        self._extractor = extractor or FeatureExtractor(self._config)
        self._anomaly_detector = anomaly_detector or AnomalyDetector(
            self._config, self._extractor
        )
        self._profiler = profiler or BehavioralProfiler(self._config)
        self._registry = registry if registry is not None else ClassifierRegistry()
        self._initialized = False
        self._init_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def initialize(self, historical_transactions: Sequence[Transaction]) -> bool:
        """Bulk bootstrap from the full historical corpus.

        Trains the anomaly detector, then builds a profile and trains a
        classifier (labels from ``is_flagged``) for every holder.
        Profiles and classifiers are installed only after every holder
        trained successfully.  Idempotent: later calls are no-ops.

        Returns:
            True if this call performed the bootstrap.

        Raises:
            DegenerateTrainingSetError: If the corpus cannot train the
                anomaly detector.  The service stays uninitialized and
                the call may be retried.
        """
        with self._init_lock:
            if self._initialized:
                logger.info("Fraud detection service already initialized")
                return False

            self._anomaly_detector.train(historical_transactions)

            groups = group_by_holder(historical_transactions)
            classifiers: dict[Hashable, HolderClassifier] = {}
            for holder_id, transactions in groups.items():
                classifier = self._new_classifier(holder_id)
                classifier.train(transactions, [t.is_flagged for t in transactions])
                classifiers[holder_id] = classifier

            for holder_id, transactions in groups.items():
                with self._registry.lock_for(holder_id):
                    self._profiler.update_profile(holder_id, transactions)
                    self._registry.install(holder_id, classifiers[holder_id])

            self._initialized = True

        logger.info(
            f"Fraud detection service initialized: {len(historical_transactions):,} "
            f"transactions, {len(groups):,} holders"
        )
        return True

    def analyze_transaction(
        self,
        transaction: Transaction,
        holder_id: Hashable,
        historical_transactions: Iterable[Transaction],
    ) -> SuspicionAssessment:
        """Score one transaction.

        A holder without a classifier gets one trained inline on
        ``historical_transactions`` (labels from ``is_flagged``); it is
        installed only once training has finished.

        Args:
            transaction: Candidate transaction.
            holder_id: Owning account holder.
            historical_transactions: The holder's transactions.

        Returns:
            ``SuspicionAssessment`` with the fused score and components.

        Raises:
            ModelNotTrainedError: If the anomaly detector is untrained.
        """
        history = list(historical_transactions)
        anomaly = self._anomaly_detector.detect_anomaly(transaction, history)

        with self._registry.lock_for(holder_id):
            behavioral_score = self._profiler.analyze_transaction(holder_id, transaction)
            factors = self._profiler.explain(holder_id, transaction)

            classifier = self._registry.get(holder_id)
            if classifier is None:
                classifier = self._new_classifier(holder_id)
                classifier.train(history, [t.is_flagged for t in history])
                self._registry.install(holder_id, classifier)
            classifier_score = classifier.predict(transaction, history)

        suspicion, is_anomaly = fuse_scores(
            anomaly.score, behavioral_score, classifier_score, self._config
        )

        if anomaly.is_anomaly:
            factors.append(f"Statistical outlier (anomaly score {anomaly.score})")
        if classifier_score >= 50:
            factors.append(
                f"Resembles previously flagged activity (classifier score {classifier_score})"
            )

        logger.debug(
            f"Transaction {transaction.id} holder={holder_id}: "
            f"anomaly={anomaly.score} behavioral={behavioral_score} "
            f"classifier={classifier_score} -> {suspicion}"
        )
        return SuspicionAssessment(
            transaction_id=transaction.id,
            holder_id=holder_id,
            suspicious_score=suspicion,
            is_anomaly=is_anomaly,
            anomaly_score=anomaly.score,
            behavioral_score=behavioral_score,
            classifier_score=classifier_score,
            features=anomaly.features,
            contributing_factors=factors,
        )

    def analyze_batch(
        self,
        transactions: Iterable[Transaction],
        histories: Mapping[Hashable, Sequence[Transaction]],
    ) -> dict[Hashable, SuspicionAssessment]:
        """Score many transactions, each against its holder's history.

        Args:
            transactions: Candidates; the holder is ``account_id``.
            histories: Holder id -> that holder's transactions.

        Returns:
            Transaction id -> assessment.
        """
        results: dict[Hashable, SuspicionAssessment] = {}
        for txn in transactions:
            history = histories.get(txn.account_id, ())
            results[txn.id] = self.analyze_transaction(txn, txn.account_id, history)
        return results

    def update_models(
        self,
        transaction: Transaction,
        holder_id: Hashable,
        is_actually_fraud: bool,
        historical_transactions: Iterable[Transaction],
    ) -> None:
        """Apply reviewer feedback for one transaction.

        Rebuilds the holder's profile including ``transaction`` and, if
        the holder has a classifier, retrains it with the new label.
        The anomaly detector is batch-only and is not touched.
        """
        history = [t for t in historical_transactions if t.id != transaction.id]
        with self._registry.lock_for(holder_id):
            self._profiler.update_profile(holder_id, history + [transaction])
            classifier = self._registry.get(holder_id)
            if classifier is not None:
                classifier.update_model(transaction, is_actually_fraud, history)

        logger.info(
            f"Feedback applied for transaction {transaction.id} "
            f"(holder={holder_id}, fraud={bool(is_actually_fraud)})"
        )

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def anomaly_detector(self) -> AnomalyDetector:
        return self._anomaly_detector

    @property
    def profiler(self) -> BehavioralProfiler:
        return self._profiler

    @property
    def registry(self) -> ClassifierRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _new_classifier(self, holder_id: Hashable) -> HolderClassifier:
        return HolderClassifier(holder_id, self._config, self._extractor)
