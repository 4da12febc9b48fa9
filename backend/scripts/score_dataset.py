#!/usr/bin/env python3
"""
Attrition Risk - Batch scoring

Loads an HR CSV export, trains the classifier (unless --rules-only), prints
the feature importance ranking and writes the high-risk export.

Usage:
    python scripts/score_dataset.py data/hr_employees.csv \
        --epochs 80 \
        --batch-size 16 \
        --output high_risk.csv
"""

import argparse
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from attrition_risk.core.exceptions import DataLoadError, TrainingError
from attrition_risk.core.logging_config import setup_logging
from attrition_risk.schemas.training import TrainingConfig, TrainingProgress
from attrition_risk.services.attrition_prediction_service import AttritionPredictionService


def _print_progress(progress: TrainingProgress) -> None:
    if progress.latest is None or progress.epoch % 10 and progress.epoch != progress.total_epochs:
        return
    latest = progress.latest
    line = f"  Epoch {progress.epoch}/{progress.total_epochs} ({progress.percent}%) loss={latest.loss:.4f} acc={latest.accuracy:.3f}"
    if latest.val_accuracy is not None:
        line += f" val_acc={latest.val_accuracy:.3f}"
    print(line)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Train and score an HR attrition dataset")
    parser.add_argument("dataset", help="Path to CSV file with an Attrition column")
    parser.add_argument("--epochs", type=int, help="Training epochs")
    parser.add_argument("--batch-size", type=int, help="Mini-batch size")
    parser.add_argument("--validation-split", type=float, help="Held-out fraction for monitoring")
    parser.add_argument("--threshold", type=float, help="Risk threshold for the high-risk export")
    parser.add_argument("--output", default="high_risk_employees.csv", help="Export file path")
    parser.add_argument("--save-model", action="store_true", help="Persist the trained model to MODELS_DIR")
    parser.add_argument("--rules-only", action="store_true", help="Skip training, use rule-based scoring")
    args = parser.parse_args(argv)

    setup_logging(log_level="INFO")
    service = AttritionPredictionService()

    try:
        store = service.load_csv(args.dataset)
    except DataLoadError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    summary = store.summary()
    print(f"Loaded {summary.total_rows} employees ({summary.trainable_rows} trainable, {summary.skipped_rows} skipped)")

    if not args.rules_only:
        overrides = {
            "epochs": args.epochs,
            "batch_size": args.batch_size,
            "validation_split": args.validation_split,
            "risk_threshold": args.threshold,
        }
        config = TrainingConfig(**{k: v for k, v in overrides.items() if v is not None})
        try:
            model = service.train(config, progress_callback=_print_progress)
        except TrainingError as e:
            print(f"Training failed, using rule-based scoring: {e}", file=sys.stderr)
        else:
            metrics = ", ".join(f"{k}={v:.3f}" for k, v in model.metrics.items())
            print(f"Model {model.model_id} trained: {metrics}")
            if args.save_model:
                print(f"Saved model to {service.save_model()}")

    print("\nFeature importance:")
    for name, weight in service.feature_importance:
        print(f"  {name:<26} {weight * 100:5.1f}%")

    with open(args.output, "w", newline="") as f:
        service.export_high_risk_csv(destination=f, threshold=args.threshold)
    print(f"\nHigh-risk export written to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
