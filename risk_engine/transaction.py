"""
Transaction record consumed by every engine component.

Amounts are kept as ``Decimal`` so averages and the 2x-average
comparison do not drift the way binary floats do.  Only the three
review fields may change after construction.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Hashable, Iterable, Mapping, Optional

import pandas as pd

if TYPE_CHECKING:
    from risk_engine.service import SuspicionAssessment


class ReviewStatus(str, Enum):
    """Reviewer decision on a transaction."""

    PENDING = "pending"
    APPROVED = "approved"
    BLOCKED = "blocked"


_MUTABLE_FIELDS = frozenset({"suspicious_score", "is_flagged", "review_status"})

# Original (camelCase) column names accepted by ``from_record``.
_RECORD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ("id", "transaction_id", "transactionId"),
    "account_id": ("account_id", "accountId"),
    "amount": ("amount",),
    "merchant": ("merchant",),
    "category": ("category",),
    "timestamp": ("timestamp", "transaction_date", "transactionDate"),
    "is_spending": ("is_spending", "isSpending"),
    "suspicious_score": ("suspicious_score", "suspiciousScore"),
    "is_flagged": ("is_flagged", "isFlagged"),
    "review_status": ("review_status", "reviewStatus"),
    "description": ("description",),
    "created_at": ("created_at", "createdAt"),
}


def to_decimal(value: Any) -> Decimal:
    """Coerce a monetary value to ``Decimal`` without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


@dataclass(eq=False)
class Transaction:
    """A single financial transaction belonging to one account."""

    id: Hashable
    account_id: Hashable
    amount: Decimal
    merchant: str
    category: str
    timestamp: datetime
    is_spending: bool = True
    suspicious_score: int = 0
    is_flagged: bool = False
    review_status: ReviewStatus = ReviewStatus.PENDING
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if not isinstance(self.timestamp, datetime):
            object.__setattr__(
                self, "timestamp", pd.Timestamp(self.timestamp).to_pydatetime()
            )
        object.__setattr__(self, "review_status", ReviewStatus(self.review_status))

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.__dict__ and name not in _MUTABLE_FIELDS:
            raise AttributeError(f"Transaction.{name} is immutable")
        object.__setattr__(self, name, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return (self.id, self.account_id) == (other.id, other.account_id)

    def __hash__(self) -> int:
        return hash((self.id, self.account_id))

    @property
    def absolute_amount(self) -> Decimal:
        """Unsigned amount used by every scorer."""
        return abs(self.amount)

    # ------------------------------------------------------------------
    # Mutation of review fields
    # ------------------------------------------------------------------

    def apply_assessment(self, assessment: "SuspicionAssessment") -> None:
        """Record the engine's decision on this transaction."""
        self.suspicious_score = int(assessment.suspicious_score)
        self.is_flagged = bool(assessment.is_anomaly)

    def set_review_status(self, status: ReviewStatus | str) -> None:
        """Record a reviewer decision.

        Raises:
            ValueError: If ``status`` is not a known review status.
        """
        self.review_status = ReviewStatus(status)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Transaction":
        """Build a transaction from a dict / CSV row.

        Accepts snake_case keys or the storage layer's camelCase names.

        Raises:
            ValueError: If a required field is missing.
        """
        kwargs: dict[str, Any] = {}
        for name, aliases in _RECORD_ALIASES.items():
            for alias in aliases:
                if alias in record and not _is_missing(record[alias]):
                    kwargs[name] = record[alias]
                    break

        required = ("id", "account_id", "amount", "merchant", "category", "timestamp")
        missing = [name for name in required if name not in kwargs]
        if missing:
            raise ValueError(f"Transaction record missing fields: {missing}")

        for flag in ("is_spending", "is_flagged"):
            if flag in kwargs:
                kwargs[flag] = _to_bool(kwargs[flag])
        if "suspicious_score" in kwargs:
            kwargs["suspicious_score"] = int(kwargs["suspicious_score"])
        if "created_at" in kwargs:
            kwargs["created_at"] = pd.Timestamp(kwargs["created_at"]).to_pydatetime()
        kwargs["merchant"] = str(kwargs["merchant"])
        kwargs["category"] = str(kwargs["category"])
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a flat dictionary."""
        return {
            "id": self.id,
            "account_id": self.account_id,
            "amount": str(self.amount),
            "merchant": self.merchant,
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
            "is_spending": self.is_spending,
            "suspicious_score": self.suspicious_score,
            "is_flagged": self.is_flagged,
            "review_status": self.review_status.value,
            "description": self.description,
        }


def sort_by_time(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Return transactions ordered by timestamp (stable for ties)."""
    return sorted(transactions, key=lambda t: t.timestamp)


def group_by_holder(
    transactions: Iterable[Transaction],
) -> dict[Hashable, list[Transaction]]:
    """Partition transactions by account holder, each group time-ordered."""
    groups: dict[Hashable, list[Transaction]] = defaultdict(list)
    for txn in transactions:
        groups[txn.account_id].append(txn)
    return {holder: sort_by_time(txns) for holder, txns in groups.items()}


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "t", "yes", "y"}
    return bool(value)
