"""
Transaction Risk Engine
=======================

Scores financial transactions per account holder with a bounded
suspicion score (0-100), fusing three independent signals:

- corpus-wide reconstruction-error anomaly detection,
- per-holder behavioral profile deviation,
- a per-holder Random Forest trained on reviewer-labeled history.

The engine is a pure in-process component: it returns decisions and
accepts feedback; persistence and alert delivery belong to the caller.
"""

__version__ = "1.0.0"

from risk_engine.config import EngineConfig
from risk_engine.errors import (
    DegenerateTrainingSetError,
    FeatureSchemaMismatchError,
    ModelNotTrainedError,
    RiskEngineError,
)
from risk_engine.transaction import ReviewStatus, Transaction, group_by_holder
from risk_engine.features import FeatureExtractor, FeatureVector
from risk_engine.anomaly import AnomalyDetector, AnomalyResult
from risk_engine.profiler import BehavioralProfile, BehavioralProfiler
from risk_engine.classifier import HolderClassifier
from risk_engine.scoring import fuse_scores
from risk_engine.service import (
    ClassifierRegistry,
    FraudDetectionService,
    SuspicionAssessment,
)
from risk_engine.alert_system import Alert, AlertSeverity, AlertStatus, AlertSystem
from risk_engine.data_loader import load_transactions

__all__ = [
    "EngineConfig",
    "RiskEngineError",
    "ModelNotTrainedError",
    "DegenerateTrainingSetError",
    "FeatureSchemaMismatchError",
    "Transaction",
    "ReviewStatus",
    "group_by_holder",
    "FeatureExtractor",
    "FeatureVector",
    "AnomalyDetector",
    "AnomalyResult",
    "BehavioralProfile",
    "BehavioralProfiler",
    "HolderClassifier",
    "fuse_scores",
    "ClassifierRegistry",
    "FraudDetectionService",
    "SuspicionAssessment",
    "Alert",
    "AlertSeverity",
    "AlertStatus",
    "AlertSystem",
    "load_transactions",
]
