"""
Classification Metrics

Scores (higher is better):
- AUC, accuracy, F1, precision, recall

Losses (lower is better) for permutation importance:
- one_minus_auc, cross_entropy, one_minus_accuracy
"""

from typing import Callable

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    f1_score,
    log_loss,
    precision_score,
    recall_score,
    roc_auc_score,
)

LossFunction = Callable[[np.ndarray, np.ndarray], float]


def calculate_classification_metrics(
    y_true: np.ndarray,
    y_prob: np.ndarray,
    threshold: float = 0.5,
) -> dict[str, float | None]:
    """
    Calculate classification metrics.

    Args:
        y_true: True labels (0/1)
        y_prob: Predicted probabilities for class 1
        threshold: Cut-off turning probabilities into labels

    Returns:
        Dict with accuracy, precision, recall, f1, auc
    """
    y_true = np.asarray(y_true).astype(int)
    y_prob = np.asarray(y_prob, dtype=float)
    y_pred = (y_prob >= threshold).astype(int)

    metrics = {
        "accuracy": round(accuracy_score(y_true, y_pred), 4),
        "precision": round(precision_score(y_true, y_pred, zero_division=0), 4),
        "recall": round(recall_score(y_true, y_pred, zero_division=0), 4),
        "f1": round(f1_score(y_true, y_pred, zero_division=0), 4),
    }

    # AUC only if both classes present
    if len(set(y_true)) > 1:
        metrics["auc"] = round(roc_auc_score(y_true, y_prob), 4)
    else:
        metrics["auc"] = None

    return metrics


def score_roc_auc(y_true: np.ndarray, y_prob: np.ndarray) -> float:
    return float(roc_auc_score(np.asarray(y_true).astype(int), y_prob))


def score_accuracy(y_true: np.ndarray, y_prob: np.ndarray) -> float:
    return float(accuracy_score(np.asarray(y_true).astype(int), (np.asarray(y_prob) >= 0.5).astype(int)))


SCORERS: dict[str, Callable[[np.ndarray, np.ndarray], float]] = {
    "roc_auc": score_roc_auc,
    "accuracy": score_accuracy,
}


def loss_one_minus_auc(y_true: np.ndarray, y_prob: np.ndarray) -> float:
    return 1.0 - score_roc_auc(y_true, y_prob)


def loss_cross_entropy(y_true: np.ndarray, y_prob: np.ndarray) -> float:
    return float(log_loss(np.asarray(y_true).astype(int), y_prob, labels=[0, 1]))


def loss_one_minus_accuracy(y_true: np.ndarray, y_prob: np.ndarray) -> float:
    return 1.0 - score_accuracy(y_true, y_prob)


LOSS_FUNCTIONS: dict[str, LossFunction] = {
    "one_minus_auc": loss_one_minus_auc,
    "cross_entropy": loss_cross_entropy,
    "one_minus_accuracy": loss_one_minus_accuracy,
}


def get_scorer(name: str) -> Callable[[np.ndarray, np.ndarray], float]:
    if name not in SCORERS:
        raise ValueError(f"Unknown metric: {name}. Available: {list(SCORERS)}")
    return SCORERS[name]


def get_loss_function(name: str) -> LossFunction:
    if name not in LOSS_FUNCTIONS:
        raise ValueError(f"Unknown loss function: {name}. Available: {list(LOSS_FUNCTIONS)}")
    return LOSS_FUNCTIONS[name]
