"""Tests for the AlertSystem."""

from datetime import datetime
from decimal import Decimal

import pytest

from risk_engine.alert_system import AlertSeverity, AlertStatus, AlertSystem
from risk_engine.service import SuspicionAssessment
from risk_engine.transaction import Transaction


def _txn(tid="t1", amount="-450.00"):
    return Transaction(
        id=tid,
        account_id=3,
        amount=Decimal(amount),
        merchant="NewTech Store",
        category="Technology",
        timestamp=datetime(2024, 3, 11, 3, 0),
    )


def _assessment(tid="t1", score=85, flagged=True):
    return SuspicionAssessment(
        transaction_id=tid,
        holder_id=3,
        suspicious_score=score,
        is_anomaly=flagged,
        anomaly_score=100,
        behavioral_score=70,
        classifier_score=score,
        features={},
        contributing_factors=["Unusual hour (03:00)", "New merchant: NewTech Store"],
    )


# ── Alert creation ─────────────────────────────────────────────────


def test_unflagged_assessment_creates_no_alert():
    system = AlertSystem()
    assert system.process(_txn(), _assessment(score=61, flagged=False)) is None
    assert system.total_alerts == 0


def test_alert_contents():
    system = AlertSystem()
    alert = system.process(_txn(), _assessment(score=85))
    assert alert.alert_id == "ALT-000001"
    assert alert.holder_id == 3
    assert alert.transaction_id == "t1"
    assert alert.title == "Suspicious Transaction Detected"
    assert "NewTech Store" in alert.description
    assert "85/100" in alert.description
    assert alert.severity == AlertSeverity.MEDIUM
    assert alert.status == AlertStatus.OPEN


def test_high_severity():
    system = AlertSystem()
    alert = system.process(_txn(), _assessment(score=93))
    assert alert.severity == AlertSeverity.HIGH


def test_alert_ids_increment():
    system = AlertSystem()
    first = system.process(_txn("a"), _assessment("a"))
    second = system.process(_txn("b"), _assessment("b"))
    assert (first.alert_id, second.alert_id) == ("ALT-000001", "ALT-000002")


# ── Review workflow ────────────────────────────────────────────────


def test_confirm_and_dismiss_return_labels():
    system = AlertSystem()
    a = system.process(_txn("a"), _assessment("a"))
    b = system.process(_txn("b"), _assessment("b"))
    assert system.confirm(a.alert_id, notes="card was stolen") is True
    assert system.dismiss(b.alert_id) is False
    assert system.get_alert(a.alert_id).status == AlertStatus.CONFIRMED_FRAUD
    assert system.get_alert(a.alert_id).reviewer_notes == "card was stolen"
    assert system.get_open_alerts() == []


def test_false_positive_rate():
    system = AlertSystem()
    assert system.get_false_positive_rate() == 0.0
    ids = [system.process(_txn(t), _assessment(t)).alert_id for t in "abcd"]
    system.confirm(ids[0])
    system.dismiss(ids[1])
    system.dismiss(ids[2])
    assert system.get_false_positive_rate() == pytest.approx(2 / 3)
    assert len(system.get_open_alerts()) == 1


def test_resolve_unknown_alert():
    with pytest.raises(KeyError):
        AlertSystem().confirm("ALT-999999")


# ── Reporting ──────────────────────────────────────────────────────


def test_report_empty():
    assert AlertSystem().generate_report() == "No alerts generated."


def test_report_contents():
    system = AlertSystem()
    system.process(_txn(), _assessment(score=95))
    report = system.generate_report()
    assert "Total Alerts: 1" in report
    assert "False Positive Rate" in report
    assert "Unusual hour" in report


def test_to_dataframe():
    system = AlertSystem()
    assert system.to_dataframe().empty
    system.process(_txn(), _assessment())
    df = system.to_dataframe()
    assert len(df) == 1
    assert df.loc[0, "severity"] == "medium"
