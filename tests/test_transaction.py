"""Tests for the Transaction record and grouping helpers."""

from datetime import datetime
from decimal import Decimal

import pytest

from risk_engine.service import SuspicionAssessment
from risk_engine.transaction import (
    ReviewStatus,
    Transaction,
    group_by_holder,
    to_decimal,
)


def _txn(tid=1, holder=1, when=datetime(2024, 3, 1, 12, 0), amount="-42.10"):
    return Transaction(
        id=tid,
        account_id=holder,
        amount=amount,
        merchant="FreshMart",
        category="Groceries",
        timestamp=when,
    )


# ── Construction ─────────────────────────────────────────────────────


def test_amount_coerced_to_decimal():
    txn = _txn(amount="-42.10")
    assert txn.amount == Decimal("-42.10")
    assert txn.absolute_amount == Decimal("42.10")


def test_float_amount_has_no_binary_artifacts():
    assert to_decimal(0.1) == Decimal("0.1")


def test_string_timestamp_is_parsed():
    txn = _txn(when="2024-03-01T12:30:00")
    assert txn.timestamp == datetime(2024, 3, 1, 12, 30)


def test_defaults():
    txn = _txn()
    assert txn.suspicious_score == 0
    assert txn.is_flagged is False
    assert txn.review_status is ReviewStatus.PENDING
    assert txn.is_spending is True


# ── Immutability ─────────────────────────────────────────────────────


def test_identity_fields_are_immutable():
    txn = _txn()
    with pytest.raises(AttributeError, match="immutable"):
        txn.amount = Decimal("1.00")
    with pytest.raises(AttributeError, match="immutable"):
        txn.merchant = "Elsewhere"


def test_review_fields_are_mutable():
    txn = _txn()
    txn.is_flagged = True
    txn.suspicious_score = 88
    txn.set_review_status("blocked")
    assert txn.is_flagged is True
    assert txn.suspicious_score == 88
    assert txn.review_status is ReviewStatus.BLOCKED


def test_invalid_review_status_raises():
    with pytest.raises(ValueError):
        _txn().set_review_status("escalated")


def test_apply_assessment():
    txn = _txn()
    assessment = SuspicionAssessment(
        transaction_id=txn.id,
        holder_id=txn.account_id,
        suspicious_score=83,
        is_anomaly=True,
        anomaly_score=100,
        behavioral_score=70,
        classifier_score=60,
        features={},
    )
    txn.apply_assessment(assessment)
    assert txn.suspicious_score == 83
    assert txn.is_flagged is True


def test_equality_by_id_and_holder():
    assert _txn(tid=1, amount="5") == _txn(tid=1, amount="9")
    assert _txn(tid=1, holder=1) != _txn(tid=1, holder=2)
    assert len({_txn(tid=1), _txn(tid=1), _txn(tid=2)}) == 2


# ── Records ──────────────────────────────────────────────────────────


def test_from_record_accepts_camel_case():
    record = {
        "id": "t-9",
        "accountId": 7,
        "amount": "-12.50",
        "merchant": "CareRx",
        "category": "Pharmacy",
        "transactionDate": "2024-02-10 08:15:00",
        "isFlagged": "true",
        "reviewStatus": "approved",
    }
    txn = Transaction.from_record(record)
    assert txn.account_id == 7
    assert txn.amount == Decimal("-12.50")
    assert txn.timestamp == datetime(2024, 2, 10, 8, 15)
    assert txn.is_flagged is True
    assert txn.review_status is ReviewStatus.APPROVED


def test_from_record_missing_fields():
    with pytest.raises(ValueError, match="missing fields"):
        Transaction.from_record({"id": 1, "amount": "3.00"})


def test_to_dict_round_trips_through_from_record():
    txn = _txn()
    rebuilt = Transaction.from_record(txn.to_dict())
    assert rebuilt == txn
    assert rebuilt.amount == txn.amount
    assert rebuilt.timestamp == txn.timestamp


# ── Grouping ─────────────────────────────────────────────────────────


def test_group_by_holder_sorts_each_group():
    txns = [
        _txn(tid=3, holder=1, when=datetime(2024, 3, 3)),
        _txn(tid=1, holder=2, when=datetime(2024, 3, 1)),
        _txn(tid=2, holder=1, when=datetime(2024, 3, 2)),
    ]
    groups = group_by_holder(txns)
    assert set(groups) == {1, 2}
    assert [t.id for t in groups[1]] == [2, 3]
    assert [t.id for t in groups[2]] == [1]
