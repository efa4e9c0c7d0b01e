"""
Command-line interface for the risk-scoring engine.

Provides subcommands for generating synthetic data and replaying a
transaction file through the engine.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Hashable, Optional, Sequence

from risk_engine.alert_system import AlertSystem
from risk_engine.config import EngineConfig
from risk_engine.data_loader import load_transactions, split_chronologically
from risk_engine.service import FraudDetectionService, SuspicionAssessment
from risk_engine.synthetic import generate_transactions
from risk_engine.transaction import ReviewStatus, Transaction, group_by_holder


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="risk-engine",
        description="Transaction risk-scoring engine",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- generate ---
    gen_parser = subparsers.add_parser("generate", help="Generate synthetic transaction data")
    gen_parser.add_argument(
        "--holders",
        type=int,
        default=50,
        help="Number of account holders (default: 50)",
    )
    gen_parser.add_argument(
        "--per-holder",
        type=int,
        default=60,
        help="Transactions per holder (default: 60)",
    )
    gen_parser.add_argument(
        "--fraud-rate",
        type=float,
        default=0.03,
        help="Fraud rate (default: 0.03)",
    )
    gen_parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed (default: 42)",
    )
    gen_parser.add_argument(
        "--output",
        type=str,
        default="data/transactions.csv",
        help="Output CSV path",
    )

    # --- score ---
    score_parser = subparsers.add_parser(
        "score", help="Bootstrap on early transactions and replay the rest"
    )
    score_parser.add_argument(
        "--data",
        type=str,
        required=True,
        help="Path to transactions CSV",
    )
    score_parser.add_argument(
        "--bootstrap-fraction",
        type=float,
        default=0.7,
        help="Share of transactions (by time) used to initialize (default: 0.7)",
    )
    score_parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="JSON file overriding engine configuration",
    )
    score_parser.add_argument(
        "--feedback",
        action="store_true",
        help="Feed the ground-truth label back after each alert",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        if args.command == "generate":
            return _cmd_generate(args)
        elif args.command == "score":
            return _cmd_score(args)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    return 0


def load_config(path: Optional[str]) -> EngineConfig:
    """Read an ``EngineConfig`` from a JSON file, or return the defaults."""
    if path is None:
        return EngineConfig()
    with open(path, encoding="utf-8") as f:
        return EngineConfig.from_dict(json.load(f))


def replay(
    service: FraudDetectionService,
    bootstrap: Sequence[Transaction],
    replay_set: Sequence[Transaction],
    alert_system: AlertSystem,
    feedback: bool = False,
) -> list[SuspicionAssessment]:
    """Score ``replay_set`` in order, growing each holder's history.

    ``is_flagged`` on replayed transactions is treated as ground truth
    for feedback and then overwritten with the engine's decision (or the
    reviewer's label when feedback is enabled).
    """
    histories: dict[Hashable, list[Transaction]] = {
        holder: list(txns) for holder, txns in group_by_holder(bootstrap).items()
    }
    assessments: list[SuspicionAssessment] = []

    for txn in replay_set:
        truth = txn.is_flagged
        history = histories.setdefault(txn.account_id, [])
        assessment = service.analyze_transaction(txn, txn.account_id, history)
        txn.apply_assessment(assessment)
        assessments.append(assessment)

        alert = alert_system.process(txn, assessment)
        if alert is not None and feedback:
            label = (
                alert_system.confirm(alert.alert_id)
                if truth
                else alert_system.dismiss(alert.alert_id)
            )
            txn.is_flagged = label
            txn.set_review_status(ReviewStatus.BLOCKED if label else ReviewStatus.APPROVED)
            service.update_models(txn, txn.account_id, label, history)

        history.append(txn)

    return assessments


def _cmd_generate(args: argparse.Namespace) -> int:
    """Generate synthetic transaction data."""
    print(
        f"Generating {args.holders * args.per_holder:,} transactions "
        f"for {args.holders} holders (fraud rate: {args.fraud_rate:.1%})..."
    )
    df = generate_transactions(
        n_holders=args.holders,
        transactions_per_holder=args.per_holder,
        fraud_rate=args.fraud_rate,
        seed=args.seed,
    )

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)
    print(f"Saved to {output_path}")
    print(
        f"  Total: {len(df):,} | Flagged: {df['is_flagged'].sum():,} "
        f"({df['is_flagged'].mean():.1%})"
    )
    return 0


def _cmd_score(args: argparse.Namespace) -> int:
    """Bootstrap the engine and replay the remaining transactions."""
    config = load_config(args.config)

    print(f"Loading transactions from {args.data}...")
    transactions = load_transactions(args.data)
    truth = {t.id: t.is_flagged for t in transactions}
    bootstrap, replay_set = split_chronologically(transactions, args.bootstrap_fraction)
    print(f"  {len(bootstrap):,} bootstrap | {len(replay_set):,} to score")

    print("Initializing engine...")
    service = FraudDetectionService(config)
    service.initialize(bootstrap)

    alert_system = AlertSystem()
    assessments = replay(service, bootstrap, replay_set, alert_system, args.feedback)

    flagged = [a for a in assessments if a.is_anomaly]
    hits = sum(1 for a in flagged if truth.get(a.transaction_id))
    actual = sum(1 for t in replay_set if truth.get(t.id))
    print(f"\nScored {len(assessments):,} transactions")
    print(f"Flagged: {len(flagged):,} ({hits:,} confirmed fraud of {actual:,} actual)")
    if assessments:
        mean = sum(a.suspicious_score for a in assessments) / len(assessments)
        print(f"Mean suspicion score: {mean:.1f}")

    if alert_system.total_alerts:
        print(f"\n{alert_system.generate_report()}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
