"""
Alert records for flagged transactions and reviewer feedback tracking.

The engine never delivers alerts itself.  ``AlertSystem`` turns
assessments with ``is_anomaly`` set into alert records for the caller
to persist and notify on, and tracks reviewer resolutions so the false
positive rate can be reported and the labels fed back into
``FraudDetectionService.update_models``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Hashable, Optional

import pandas as pd

from risk_engine.service import SuspicionAssessment
from risk_engine.transaction import Transaction


class AlertSeverity(str, Enum):
    """Alert urgency shown to the account holder."""

    MEDIUM = "medium"
    HIGH = "high"


class AlertStatus(str, Enum):
    """Lifecycle status of an alert."""

    OPEN = "open"
    CONFIRMED_FRAUD = "confirmed_fraud"
    FALSE_POSITIVE = "false_positive"


@dataclass
class Alert:
    """A suspicious-transaction alert built from an assessment."""

    alert_id: str
    holder_id: Hashable
    transaction_id: Hashable
    severity: AlertSeverity
    suspicious_score: int
    title: str
    description: str
    contributing_factors: list[str]
    created_at: str
    alert_type: str = "suspicious_transaction"
    status: AlertStatus = AlertStatus.OPEN
    reviewer_notes: str = ""

    def to_dict(self) -> dict:
        """Serialize to dictionary."""
        return {
            "alert_id": self.alert_id,
            "holder_id": self.holder_id,
            "transaction_id": self.transaction_id,
            "alert_type": self.alert_type,
            "severity": self.severity.value,
            "suspicious_score": self.suspicious_score,
            "title": self.title,
            "description": self.description,
            "contributing_factors": self.contributing_factors,
            "created_at": self.created_at,
            "status": self.status.value,
            "reviewer_notes": self.reviewer_notes,
        }


class AlertSystem:
    """Builds alerts for anomalous assessments and tracks their outcome."""

    def __init__(self, high_severity_score: int = 90) -> None:
        """
        Args:
            high_severity_score: Minimum suspicion score for a HIGH alert.
        """
        self._high_severity_score = high_severity_score
        self._alerts: dict[str, Alert] = {}
        self._alert_counter: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def process(
        self, transaction: Transaction, assessment: SuspicionAssessment
    ) -> Optional[Alert]:
        """Create an alert if the assessment was flagged.

        Returns:
            The new ``Alert``, or ``None`` when ``is_anomaly`` is false.
        """
        if not assessment.is_anomaly:
            return None
        alert = self._create_alert(transaction, assessment)
        self._alerts[alert.alert_id] = alert
        return alert

    def confirm(self, alert_id: str, notes: str = "") -> bool:
        """Reviewer confirmed fraud.  Returns the label for feedback."""
        self._resolve(alert_id, AlertStatus.CONFIRMED_FRAUD, notes)
        return True

    def dismiss(self, alert_id: str, notes: str = "") -> bool:
        """Reviewer refuted the alert.  Returns the label for feedback."""
        self._resolve(alert_id, AlertStatus.FALSE_POSITIVE, notes)
        return False

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        return self._alerts.get(alert_id)

    def get_open_alerts(self) -> list[Alert]:
        """Return all alerts awaiting review."""
        return [a for a in self._alerts.values() if a.status == AlertStatus.OPEN]

    def get_false_positive_rate(self) -> float:
        """False positive rate over resolved alerts, ``0.0`` if none."""
        resolved = [
            a for a in self._alerts.values() if a.status != AlertStatus.OPEN
        ]
        if not resolved:
            return 0.0
        fp_count = sum(1 for a in resolved if a.status == AlertStatus.FALSE_POSITIVE)
        return fp_count / len(resolved)

    def generate_report(self) -> str:
        """Generate a text summary of all alerts."""
        if not self._alerts:
            return "No alerts generated."

        alerts = list(self._alerts.values())
        lines: list[str] = [
            "Suspicious Transaction Alert Report",
            "=" * 60,
            f"Generated: {datetime.now(timezone.utc).isoformat()}",
            f"Total Alerts: {len(alerts)}",
            "",
            "Status Breakdown:",
        ]
        for status in AlertStatus:
            count = sum(1 for a in alerts if a.status == status)
            lines.append(f"  {status.value:20s} {count:>5d}")

        lines.append("")
        lines.append("Severity Breakdown:")
        for severity in AlertSeverity:
            count = sum(1 for a in alerts if a.severity == severity)
            lines.append(f"  {severity.value:20s} {count:>5d}")

        lines.append("")
        lines.append(f"False Positive Rate: {self.get_false_positive_rate():.2%}")

        lines.append("")
        lines.append("Top 10 Highest-Risk Alerts:")
        lines.append("-" * 60)
        top = sorted(alerts, key=lambda a: a.suspicious_score, reverse=True)[:10]
        for alert in top:
            lines.append(
                f"  [{alert.alert_id}] {alert.transaction_id} "
                f"| score={alert.suspicious_score:3d} "
                f"| severity={alert.severity.value} "
                f"| status={alert.status.value}"
            )
            if alert.contributing_factors:
                lines.append(f"    Factors: {'; '.join(alert.contributing_factors[:3])}")

        return "\n".join(lines)

    def to_dataframe(self) -> pd.DataFrame:
        """Export all alerts as a DataFrame."""
        if not self._alerts:
            return pd.DataFrame()
        return pd.DataFrame([a.to_dict() for a in self._alerts.values()])

    @property
    def total_alerts(self) -> int:
        return len(self._alerts)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _create_alert(
        self, transaction: Transaction, assessment: SuspicionAssessment
    ) -> Alert:
        self._alert_counter += 1
        score = assessment.suspicious_score
        severity = (
            AlertSeverity.HIGH
            if score >= self._high_severity_score
            else AlertSeverity.MEDIUM
        )
        return Alert(
            alert_id=f"ALT-{self._alert_counter:06d}",
            holder_id=assessment.holder_id,
            transaction_id=transaction.id,
            severity=severity,
            suspicious_score=score,
            title="Suspicious Transaction Detected",
            description=(
                f"Transaction of {transaction.amount} at {transaction.merchant} "
                f"has been flagged as suspicious with a risk score of {score}/100."
            ),
            contributing_factors=list(assessment.contributing_factors),
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    def _resolve(self, alert_id: str, status: AlertStatus, notes: str) -> None:
        alert = self._alerts.get(alert_id)
        if alert is None:
            raise KeyError(f"Unknown alert: {alert_id}")
        alert.status = status
        if notes:
            alert.reviewer_notes = notes
