#!/usr/bin/env python3
"""
Titanic survival - train a random forest and explain it.

Steps:
1. Load and split the imputed Titanic table
2. Cross-validated grid search + final fit
3. Explain the example passenger (break-down, Shapley-style, TreeSHAP)
4. Explain the model (permutation importance, partial dependence)
5. Write every artifact as CSV plus run.json

Usage:
    python scripts/explain_titanic.py --data data/titanic_imputed.csv
    python scripts/explain_titanic.py --data titanic.csv --folds 5 --shap-b 50
    python scripts/explain_titanic.py --profile-vars age fare --group class
    python scripts/explain_titanic.py --interaction gender class
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from titanic_xai.core.logging import run_context, setup_logging
from titanic_xai.core.settings import settings
from titanic_xai.ml.dataset import example_passenger
from titanic_xai.services.explain_service import ExplainService
from titanic_xai.services.training_service import TrainingService, TrainRequest

logger = logging.getLogger("explain_titanic")


def run(args: argparse.Namespace) -> dict:
    """Train, explain and save; returns the run summary."""
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    with run_context() as run_id:
        # === 1-2. Data preparation and model selection ===
        train_request = TrainRequest.from_settings(
            settings,
            data_path=args.data,
            model_type=args.model_type,
            n_folds=args.folds,
            random_state=args.seed,
            save_model=args.save_model,
        )
        train_output = TrainingService().train(train_request)
        logger.info(f"Trained: {train_output!r}")

        # === 3-4. Explanations ===
        service = ExplainService()
        explain_request = service.default_request(
            shap_b=args.shap_b,
            permutation_repeats=args.permutation_repeats,
            profile_variables=args.profile_vars,
            profile_groups=args.group,
            interaction=tuple(args.interaction) if args.interaction else None,
            random_state=args.seed,
        )
        explainer = service.build_explainer(train_output, explain_request)
        report = service.explain(explainer, example_passenger(), explain_request)

        # === 5. Save artifacts ===
        report.save(out_dir)

        summary = {
            "run_id": run_id,
            "training": train_output.result.model_dump(mode="json"),
            "explanation": report.summary(),
        }
        with open(out_dir / "run.json", "w") as f:
            json.dump(summary, f, indent=2, default=str)

    return summary


def main():
    parser = argparse.ArgumentParser(description="Titanic random forest explanations")
    parser.add_argument(
        "--data",
        default=settings.DATA_PATH,
        help=f"Imputed Titanic CSV (default: {settings.DATA_PATH})",
    )
    parser.add_argument(
        "--out",
        default="./output",
        help="Directory for CSV artifacts and run.json (default: ./output)",
    )
    parser.add_argument(
        "--model-type",
        default=settings.DEFAULT_MODEL_TYPE,
        choices=["random_forest", "logistic"],
        help=f"Model family (default: {settings.DEFAULT_MODEL_TYPE})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=settings.RANDOM_STATE,
        help=f"Master seed for split, folds and explanations (default: {settings.RANDOM_STATE})",
    )
    parser.add_argument(
        "--folds",
        type=int,
        default=settings.N_FOLDS,
        help=f"Cross-validation folds (default: {settings.N_FOLDS})",
    )
    parser.add_argument(
        "--shap-b",
        type=int,
        default=settings.SHAP_B,
        help=f"Random orders averaged for Shapley-style attribution (default: {settings.SHAP_B})",
    )
    parser.add_argument(
        "--permutation-repeats",
        type=int,
        default=settings.PERMUTATION_REPEATS,
        help=f"Shuffle repetitions for permutation importance (default: {settings.PERMUTATION_REPEATS})",
    )
    parser.add_argument(
        "--profile-vars",
        nargs="+",
        default=None,
        help="Features to profile (default: all)",
    )
    parser.add_argument(
        "--group",
        default=None,
        help="Categorical feature to group profiles by (e.g. class)",
    )
    parser.add_argument(
        "--interaction",
        nargs=2,
        metavar=("VAR_X", "VAR_Y"),
        default=None,
        help="Two features for a joint partial-dependence profile (e.g. gender class)",
    )
    parser.add_argument(
        "--save-model",
        action="store_true",
        help=f"Persist the fitted model under {settings.ARTIFACTS_PATH}",
    )
    args = parser.parse_args()

    setup_logging()
    summary = run(args)

    print(json.dumps(
        {
            "best_params": summary["training"]["search_best_params"],
            "test_metrics": summary["training"]["metrics"],
            "prediction": summary["explanation"].get("prediction"),
        },
        indent=2,
    ))
    sys.exit(0)


if __name__ == "__main__":
    main()
