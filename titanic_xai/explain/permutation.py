"""
Permutation Feature Importance

Importance of a feature = how much the loss grows when only that
feature's column is shuffled, breaking its link with the label and with
the other features. Each column is shuffled on its own, so effects that
exist only through interactions of several features are not isolated.

Reported rows:
- _full_model_: loss with true feature values
- one row per feature
- _baseline_: loss with the label shuffled (a model with no signal)
"""

import logging
from typing import Literal

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from titanic_xai.ml.metrics import get_loss_function
from .explainer import Explainer

logger = logging.getLogger(__name__)

FULL_MODEL = "_full_model_"
BASELINE = "_baseline_"

ImportanceType = Literal["raw", "difference", "ratio"]


def _one_repeat(
    explainer: Explainer,
    variables: list[str],
    loss_name: str,
    seed: np.random.SeedSequence,
    n_samples: int | None,
) -> dict[str, float]:
    """Losses for one independent repetition (own rows sample and shuffles)."""
    rng = np.random.default_rng(seed)
    loss = get_loss_function(loss_name)

    data = explainer.data
    y = explainer.y
    if n_samples is not None and n_samples < len(data):
        rows = np.sort(rng.choice(len(data), size=n_samples, replace=False))
        data = data.iloc[rows]
        y = y[rows]

    losses = {FULL_MODEL: loss(y, explainer.predict(data))}
    for variable in variables:
        shuffled = data.copy()
        shuffled[variable] = shuffled[variable].values[rng.permutation(len(shuffled))]
        losses[variable] = loss(y, explainer.predict(shuffled))
    losses[BASELINE] = loss(y[rng.permutation(len(y))], explainer.predict(data))
    return losses


class PermutationImportanceResult:
    """
    Permutation importance table.

    Attributes:
        table: variable, dropout_loss (mean over repeats), dropout_loss_std,
            importance (per `type`), importance_std; _full_model_ first,
            features by importance descending, _baseline_ last
        permutations: long table (permutation, variable, dropout_loss)
    """

    def __init__(
        self,
        permutations: pd.DataFrame,
        loss_function: str,
        importance_type: ImportanceType,
        B: int,
        label: str,
    ):
        self.permutations = permutations
        self.loss_function = loss_function
        self.type = importance_type
        self.B = B
        self.label = label

        wide = permutations.pivot(index="permutation", columns="variable", values="dropout_loss")
        full = wide[FULL_MODEL]
        if importance_type == "raw":
            importance = wide
        elif importance_type == "difference":
            importance = wide.sub(full, axis=0)
        elif importance_type == "ratio":
            importance = wide.div(full, axis=0)
        else:
            raise ValueError(f"Unknown importance type: {importance_type}")

        table = pd.DataFrame({
            "dropout_loss": wide.mean(),
            "dropout_loss_std": wide.std(ddof=1).fillna(0.0) if B > 1 else 0.0,
            "importance": importance.mean(),
            "importance_std": importance.std(ddof=1).fillna(0.0) if B > 1 else 0.0,
        })
        features = table.drop(index=[FULL_MODEL, BASELINE]).sort_values(
            "importance", ascending=False, kind="stable"
        )
        table = pd.concat([table.loc[[FULL_MODEL]], features, table.loc[[BASELINE]]])
        table.index.name = "variable"
        table = table.reset_index()
        table["label"] = label
        self.table = table

    @property
    def importance(self) -> pd.Series:
        """Per-feature importance (without _full_model_ / _baseline_)."""
        features = self.table[~self.table["variable"].isin([FULL_MODEL, BASELINE])]
        return pd.Series(features["importance"].to_numpy(), index=features["variable"])

    def __repr__(self) -> str:
        top = self.importance.index[0] if len(self.importance) else None
        return (
            f"PermutationImportanceResult(loss={self.loss_function}, type={self.type}, "
            f"B={self.B}, top={top!r})"
        )


def permutation_importance(
    explainer: Explainer,
    loss_function: str = "one_minus_auc",
    B: int = 10,
    importance_type: ImportanceType = "difference",
    n_samples: int | None = None,
    variables: list[str] | None = None,
    random_state: int = 1313,
    n_jobs: int = 1,
) -> PermutationImportanceResult:
    """
    Permutation importance over B independent repetitions.

    Args:
        explainer: Explainer wrapping the frozen model
        loss_function: one_minus_auc | cross_entropy | one_minus_accuracy
        B: Number of repetitions averaged (explicit; no hidden default)
        importance_type: raw loss, difference to full model, or ratio
        n_samples: Rows sampled per repetition; None uses all rows
        variables: Features to permute; None means all
        random_state: Master seed; repetition b uses child seed b
        n_jobs: joblib workers for the repetitions (threads)
    """
    if B < 1:
        raise ValueError(f"B must be >= 1, got {B}")
    if importance_type not in ("raw", "difference", "ratio"):
        raise ValueError(f"Unknown importance type: {importance_type}")
    get_loss_function(loss_function)

    variables = variables or explainer.feature_names
    unknown = [v for v in variables if v not in explainer.feature_names]
    if unknown:
        raise ValueError(f"Unknown variables: {unknown}")

    seeds = np.random.SeedSequence(random_state).spawn(B)
    repeats = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_one_repeat)(explainer, variables, loss_function, seed, n_samples)
        for seed in seeds
    )

    permutations = pd.DataFrame([
        {"permutation": b, "variable": variable, "dropout_loss": float(value)}
        for b, losses in enumerate(repeats)
        for variable, value in losses.items()
    ])

    result = PermutationImportanceResult(
        permutations=permutations,
        loss_function=loss_function,
        importance_type=importance_type,
        B=B,
        label=explainer.label,
    )
    logger.info(f"Permutation importance: {result!r}")
    return result
