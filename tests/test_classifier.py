"""Tests for the per-holder HolderClassifier."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from risk_engine.config import EngineConfig
from risk_engine.errors import FeatureSchemaMismatchError
from risk_engine.features import FeatureExtractor
from risk_engine.classifier import HolderClassifier
from risk_engine.transaction import Transaction

START = datetime(2024, 1, 1)


def _txn(tid, when, amount, merchant="FreshMart", category="Groceries", flagged=False):
    return Transaction(
        id=tid,
        account_id=7,
        amount=Decimal(amount),
        merchant=merchant,
        category=category,
        timestamp=when,
        is_flagged=flagged,
    )


def _make_history(with_fraud: bool = True) -> list[Transaction]:
    """30 daytime grocery purchases, every sixth one replaced by a night-time
    electronics purchase flagged as fraud."""
    txns = []
    for i in range(30):
        when = START + timedelta(days=i, hours=10 + i % 8)
        if with_fraud and i % 6 == 5:
            txns.append(
                _txn(
                    i,
                    START + timedelta(days=i, hours=2),
                    f"{600 + i * 10}.00",
                    merchant="GadgetHub",
                    category="Electronics",
                    flagged=True,
                )
            )
        else:
            txns.append(_txn(i, when, f"{35 + (i * 7) % 25}.40"))
    return txns


def _labels(txns):
    return [t.is_flagged for t in txns]


# ── Untrained behaviour ──────────────────────────────────────────────


def test_untrained_predicts_zero():
    clf = HolderClassifier(7)
    candidate = _txn(100, START + timedelta(days=40, hours=2), "999.00")
    assert clf.is_trained is False
    assert clf.predict(candidate, _make_history()) == 0


def test_empty_training_is_noop():
    clf = HolderClassifier(7)
    clf.train([], [])
    assert clf.is_trained is False
    assert clf.n_samples == 0
    assert clf.predict(_txn(1, START, "10.00"), []) == 0


def test_label_length_mismatch():
    clf = HolderClassifier(7)
    txns = _make_history()
    with pytest.raises(ValueError, match="labels"):
        clf.train(txns, _labels(txns)[:-1])


def test_single_class_scores_zero():
    clf = HolderClassifier(7)
    txns = _make_history(with_fraud=False)
    clf.train(txns, _labels(txns))
    assert clf.is_trained is True
    candidate = _txn(
        100, START + timedelta(days=40, hours=3), "950.00", "GadgetHub", "Electronics"
    )
    assert clf.predict(candidate, txns) == 0


# ── Trained behaviour ────────────────────────────────────────────────


def test_fraud_like_scores_higher_than_normal():
    clf = HolderClassifier(7)
    txns = _make_history()
    clf.train(txns, _labels(txns))

    later = START + timedelta(days=40)
    fraud_like = _txn(100, later + timedelta(hours=2), "720.00", "GadgetHub", "Electronics")
    normal = _txn(101, later + timedelta(hours=13), "42.40")

    fraud_score = clf.predict(fraud_like, txns)
    normal_score = clf.predict(normal, txns)
    assert 0 <= normal_score < fraud_score <= 100
    assert fraud_score >= 50


def test_training_is_order_independent():
    txns = _make_history()
    forward = HolderClassifier(7)
    forward.train(txns, _labels(txns))
    backward = HolderClassifier(7)
    backward.train(list(reversed(txns)), list(reversed(_labels(txns))))

    candidate = _txn(100, START + timedelta(days=40, hours=2), "700.00", "GadgetHub", "Electronics")
    assert forward.predict(candidate, txns) == backward.predict(candidate, txns)


def test_feature_importances_cover_extended_schema():
    clf = HolderClassifier(7)
    txns = _make_history()
    clf.train(txns, _labels(txns))
    importances = clf.feature_importances
    assert set(importances) == set(FeatureExtractor().feature_names(extended=True))
    assert sum(importances.values()) == pytest.approx(1.0)


def test_schema_change_after_training_raises():
    clf = HolderClassifier(7)
    txns = _make_history()
    clf.train(txns, _labels(txns))
    clf._extractor = FeatureExtractor(EngineConfig(extended_windows=(2, 4)))
    with pytest.raises(FeatureSchemaMismatchError):
        clf.predict(_txn(100, START + timedelta(days=40), "10.00"), txns)


# ── Feedback ─────────────────────────────────────────────────────────


def test_update_model_adds_labeled_example():
    clf = HolderClassifier(7)
    history = _make_history(with_fraud=False)
    clf.train(history, _labels(history))

    confirmed = _txn(
        100, START + timedelta(days=31, hours=2), "880.00", "GadgetHub", "Electronics"
    )
    clf.update_model(confirmed, True, history)
    assert clf.n_samples == len(history) + 1

    candidate = _txn(
        101, START + timedelta(days=32, hours=2), "860.00", "GadgetHub", "Electronics"
    )
    assert clf.predict(candidate, history + [confirmed]) > 0


def test_update_model_replaces_same_id_in_history():
    clf = HolderClassifier(7)
    history = _make_history(with_fraud=False)
    relabeled = history[-1]
    clf.update_model(relabeled, True, history)
    assert clf.n_samples == len(history)
