"""
Transaction Risk Engine: End-to-End Demo
=========================================

Runs the complete pipeline: data generation, bulk bootstrap, replay
scoring with reviewer feedback, and alert reporting.

Usage:
    python main.py
    python main.py --data data/transactions.csv
    python main.py --holders 100 --feedback
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from risk_engine.alert_system import AlertSystem
from risk_engine.cli import replay
from risk_engine.data_loader import (
    load_transactions,
    split_chronologically,
    transactions_from_frame,
    transactions_to_frame,
)
from risk_engine.service import FraudDetectionService
from risk_engine.synthetic import generate_transactions


def _divider(title: str) -> None:
    """Print a section divider."""
    width = 60
    print(f"\n{'=' * width}")
    print(f"  {title}")
    print(f"{'=' * width}\n")


def run_pipeline(
    data_path: str | None = None,
    n_holders: int = 50,
    fraud_rate: float = 0.03,
    feedback: bool = False,
    output_dir: str = "output",
) -> None:
    """Execute the full risk-scoring pipeline.

    Args:
        data_path: Path to existing CSV. If ``None``, synthetic data
            is generated on the fly.
        n_holders: Number of synthetic account holders.
        fraud_rate: Target fraud rate for synthetic data.
        feedback: Feed ground-truth labels back after each alert.
        output_dir: Directory for all output artifacts.
    """
    output = Path(output_dir)
    output.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # 1. Data Loading / Generation
    # ------------------------------------------------------------------
    _divider("1. DATA LOADING")

    if data_path and Path(data_path).exists():
        transactions = load_transactions(data_path)
        print(f"Loaded {len(transactions):,} transactions from {data_path}")
    else:
        print(f"Generating transactions for {n_holders} holders...")
        df = generate_transactions(n_holders=n_holders, fraud_rate=fraud_rate)
        gen_path = output / "generated_transactions.csv"
        df.to_csv(gen_path, index=False)
        print(f"Saved generated data to {gen_path}")
        transactions = transactions_from_frame(df)

    truth = {t.id: t.is_flagged for t in transactions}
    fraud_count = sum(truth.values())
    print(f"  Total transactions: {len(transactions):,}")
    print(f"  Flagged:            {fraud_count:,} ({fraud_count / len(transactions):.1%})")

    # ------------------------------------------------------------------
    # 2. Bootstrap
    # ------------------------------------------------------------------
    _divider("2. BOOTSTRAP")

    bootstrap, replay_set = split_chronologically(transactions, 0.7)
    service = FraudDetectionService()
    service.initialize(bootstrap)

    detector = service.anomaly_detector
    print(f"  Bootstrap transactions: {len(bootstrap):,}")
    print(f"  Anomaly threshold:      {detector.threshold:.6f}")
    print(f"  Feature schema:         {len(detector.feature_names)} features")
    print(f"  Holder profiles:        {len(service.profiler):,}")
    print(f"  Holder classifiers:     {len(service.registry):,}")

    # ------------------------------------------------------------------
    # 3. Replay Scoring
    # ------------------------------------------------------------------
    _divider("3. REPLAY SCORING")

    alert_system = AlertSystem()
    assessments = replay(service, bootstrap, replay_set, alert_system, feedback)

    print(f"  Scored {len(assessments):,} transactions:\n")
    for a in sorted(assessments, key=lambda x: x.suspicious_score, reverse=True)[:10]:
        marker = "!!" if a.is_anomaly else "  "
        print(
            f"  {marker} {a.transaction_id} "
            f"| score={a.suspicious_score:3d} "
            f"| A={a.anomaly_score:3d} B={a.behavioral_score:3d} C={a.classifier_score:3d} "
            f"| {', '.join(a.contributing_factors[:2])}"
        )

    flagged = [a for a in assessments if a.is_anomaly]
    hits = sum(1 for a in flagged if truth.get(a.transaction_id))
    print(f"\n  Flagged: {len(flagged):,} ({hits:,} actually fraud)")

    scored_path = output / "scored_transactions.csv"
    transactions_to_frame(replay_set).to_csv(scored_path, index=False)
    print(f"  Scored transactions saved to {scored_path}")

    # ------------------------------------------------------------------
    # 4. Alert System
    # ------------------------------------------------------------------
    _divider("4. ALERT SYSTEM")

    print(f"  Total alerts generated: {alert_system.total_alerts}")
    print(f"\n{alert_system.generate_report()}")

    _divider("PIPELINE COMPLETE")
    print(f"  All artifacts saved to: {output.resolve()}/")


def main() -> int:
    """Parse arguments and run the pipeline."""
    parser = argparse.ArgumentParser(
        description="Transaction Risk Engine: End-to-End Demo",
    )
    parser.add_argument(
        "--data",
        type=str,
        default=None,
        help="Path to transaction CSV (generates synthetic data if omitted)",
    )
    parser.add_argument(
        "--holders",
        type=int,
        default=50,
        help="Number of synthetic account holders (default: 50)",
    )
    parser.add_argument(
        "--fraud-rate",
        type=float,
        default=0.03,
        help="Synthetic fraud rate (default: 0.03)",
    )
    parser.add_argument(
        "--feedback",
        action="store_true",
        help="Feed ground-truth labels back after each alert",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="output",
        help="Output directory (default: output)",
    )

    args = parser.parse_args()

    try:
        run_pipeline(
            data_path=args.data,
            n_holders=args.holders,
            fraud_rate=args.fraud_rate,
            feedback=args.feedback,
            output_dir=args.output,
        )
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except Exception as exc:
        print(f"\nFatal error: {exc}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
