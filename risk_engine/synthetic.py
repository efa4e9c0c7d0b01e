"""
Synthetic transaction data generator.

Produces per-holder transaction histories with stable habits (hours,
merchants, categories, amounts) and a controlled share of flagged
transactions that break those habits in known ways.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import numpy as np
import pandas as pd

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MERCHANTS: dict[str, list[str]] = {
    "Groceries": ["FreshMart", "Green Grocer", "Corner Market"],
    "Pharmacy": ["CareRx", "HealthPlus Pharmacy"],
    "Utilities": ["City Power", "Metro Water"],
    "Restaurants": ["Main Street Diner", "Golden Wok", "Cafe Rosa"],
    "Gas": ["QuickFuel", "Highway Gas"],
    "Entertainment": ["Cinema Plaza", "StreamBox"],
}

FRAUD_MERCHANTS: dict[str, list[str]] = {
    "Technology": ["GadgetHub Online", "TechDeals Direct"],
    "Gift Cards": ["eGift Express", "CardVault"],
    "Wire Transfer": ["GlobalWire", "FastSend Intl"],
}

# Amount distributions by category (mean, std)
AMOUNT_PROFILES: dict[str, tuple[float, float]] = {
    "Groceries": (60.0, 20.0),
    "Pharmacy": (35.0, 15.0),
    "Utilities": (120.0, 30.0),
    "Restaurants": (30.0, 12.0),
    "Gas": (45.0, 10.0),
    "Entertainment": (25.0, 10.0),
    "Technology": (600.0, 250.0),
    "Gift Cards": (400.0, 150.0),
    "Wire Transfer": (1500.0, 700.0),
}

FRAUD_PATTERNS = ["high_amount", "unusual_time", "new_category", "rapid_fire"]


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

def generate_transactions(
    n_holders: int = 50,
    transactions_per_holder: int = 60,
    fraud_rate: float = 0.03,
    seed: int = 42,
    start_date: str = "2024-01-01",
    days: int = 90,
) -> pd.DataFrame:
    """Generate a synthetic transaction dataset.

    Args:
        n_holders: Number of account holders.
        transactions_per_holder: Transactions generated per holder.
        fraud_rate: Proportion of flagged (fraudulent) transactions.
        seed: Random seed for reproducibility.
        start_date: First day of the generated period.
        days: Length of the period in days.

    Returns:
        DataFrame in the engine's CSV schema, sorted by timestamp.
    """
    rng = np.random.default_rng(seed)
    start = datetime.strptime(start_date, "%Y-%m-%d")
    records: list[dict] = []

    for holder in range(1, n_holders + 1):
        categories = rng.choice(
            list(MERCHANTS), size=int(rng.integers(2, 5)), replace=False
        ).tolist()
        active_hours = sorted(
            rng.choice(range(8, 21), size=int(rng.integers(4, 9)), replace=False).tolist()
        )

        offsets = np.sort(rng.uniform(0, days, size=transactions_per_holder))
        for offset in offsets:
            day = start + timedelta(days=float(offset))
            is_fraud = rng.random() < fraud_rate
            if is_fraud:
                category, merchant, amount, hour = _fraud_attributes(
                    rng, categories, active_hours
                )
            else:
                category = str(rng.choice(categories))
                merchant = str(rng.choice(MERCHANTS[category]))
                mean_amt, std_amt = AMOUNT_PROFILES[category]
                amount = max(1.0, rng.normal(mean_amt, std_amt))
                hour = int(rng.choice(active_hours))

            ts = day.replace(hour=hour, minute=int(rng.integers(0, 60)), second=0, microsecond=0)
            records.append({
                "account_id": holder,
                "amount": f"{-amount:.2f}",
                "merchant": merchant,
                "category": category,
                "timestamp": ts.isoformat(),
                "is_spending": True,
                "is_flagged": bool(is_fraud),
            })

    df = pd.DataFrame(records)
    df = df.sort_values("timestamp", kind="stable").reset_index(drop=True)
    df.insert(0, "id", range(1, len(df) + 1))
    return df


def _fraud_attributes(
    rng: np.random.Generator,
    categories: list[str],
    active_hours: list[int],
) -> tuple[str, str, float, int]:
    """Return (category, merchant, amount, hour) for one fraud pattern."""
    pattern = rng.choice(FRAUD_PATTERNS)

    if pattern == "high_amount":
        # Familiar category, several times the usual amount
        category = str(rng.choice(categories))
        merchant = str(rng.choice(MERCHANTS[category]))
        mean_amt, _ = AMOUNT_PROFILES[category]
        amount = mean_amt * float(rng.uniform(4, 10))
        hour = int(rng.choice(active_hours))
    elif pattern == "unusual_time":
        category = str(rng.choice(list(FRAUD_MERCHANTS)))
        merchant = str(rng.choice(FRAUD_MERCHANTS[category]))
        mean_amt, std_amt = AMOUNT_PROFILES[category]
        amount = max(50.0, rng.normal(mean_amt, std_amt))
        hour = int(rng.integers(1, 5))
    elif pattern == "new_category":
        category = str(rng.choice(list(FRAUD_MERCHANTS)))
        merchant = str(rng.choice(FRAUD_MERCHANTS[category]))
        mean_amt, std_amt = AMOUNT_PROFILES[category]
        amount = max(50.0, rng.normal(mean_amt, std_amt))
        hour = int(rng.choice(active_hours))
    else:
        # Small card-testing charges at an unfamiliar merchant
        category = "Gift Cards"
        merchant = str(rng.choice(FRAUD_MERCHANTS[category]))
        amount = float(rng.uniform(1, 20))
        hour = int(rng.integers(0, 24))

    return category, merchant, float(amount), hour
