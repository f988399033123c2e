"""
Averaged (Shapley-style) Attribution

Repeats the break-down path B times with independently shuffled
feature orders and averages each feature's contribution. Every path
ends at the model prediction, so the averaged contributions do too.

Each path draws its order from its own child seed of the master seed,
so results are identical whether the paths run sequentially or in
parallel.
"""

import logging

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .break_down import DEFAULT_TOLERANCE, check_additivity, format_value, sequential_contributions
from .explainer import Explainer

logger = logging.getLogger(__name__)


def path_orders(features: list[str], B: int, random_state: int) -> list[list[str]]:
    """B random feature orders, one child seed per path."""
    children = np.random.SeedSequence(random_state).spawn(B)
    orders = []
    for child in children:
        rng = np.random.default_rng(child)
        orders.append([features[i] for i in rng.permutation(len(features))])
    return orders


class ShapResult:
    """
    Averaged attribution of one prediction.

    Attributes:
        table: one row per feature with mean, std, min, max contribution,
            sorted by |mean| descending
        paths: long table (path, position, variable_name, contribution)
        contributions: Series of mean contributions indexed by feature
    """
    
    def __init__(
        self,
        observation: pd.DataFrame,
        paths: pd.DataFrame,
        baseline: float,
        prediction: float,
        B: int,
        label: str,
    ):
        self.paths = paths
        self.baseline = baseline
        self.prediction = prediction
        self.B = B
        self.label = label
        
        stats = paths.groupby("variable_name", sort=False)["contribution"].agg(
            ["mean", "std", "min", "max"]
        )
        stats["std"] = stats["std"].fillna(0.0)
        stats = stats.reindex(stats["mean"].abs().sort_values(ascending=False, kind="stable").index)
        
        table = stats.reset_index().rename(columns={"mean": "contribution"})
        table["variable_value"] = [
            format_value(observation[f].iloc[0]) for f in table["variable_name"]
        ]
        table["variable"] = table["variable_name"] + " = " + table["variable_value"]
        table["sign"] = np.sign(table["contribution"]).astype(int)
        table["label"] = label
        self.table = table[
            ["variable", "variable_name", "variable_value", "contribution",
             "std", "min", "max", "sign", "label"]
        ]
        self.contributions = pd.Series(
            table["contribution"].to_numpy(), index=table["variable_name"], name="contribution"
        )
    
    def __repr__(self) -> str:
        return (
            f"ShapResult(B={self.B}, baseline={self.baseline:.4f}, "
            f"prediction={self.prediction:.4f})"
        )


def shap_attribution(
    explainer: Explainer,
    observation: pd.DataFrame | pd.Series | dict,
    B: int = 25,
    random_state: int = 1313,
    n_jobs: int = 1,
    tolerance: float = DEFAULT_TOLERANCE,
) -> ShapResult:
    """
    Average break-down contributions over B random feature orders.

    Args:
        explainer: Explainer wrapping the frozen model
        observation: One row with every reference feature
        B: Number of random orders; more paths, lower variance, more compute
        random_state: Master seed for the orders
        n_jobs: joblib workers for the paths (threads)
        tolerance: Allowed additivity error per path and for the mean

    Raises:
        AdditivityError: if any path or the average misses the prediction
    """
    if B < 1:
        raise ValueError(f"B must be >= 1, got {B}")

    obs = explainer.prepare_observation(observation)
    prediction = float(explainer.predict(obs)[0])
    orders = path_orders(explainer.feature_names, B, random_state)

    results = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(sequential_contributions)(explainer, obs, order) for order in orders
    )

    records = []
    for path, (order, (contributions, _)) in enumerate(zip(orders, results)):
        check_additivity(prediction, explainer.baseline, contributions, tolerance)
        for position, (feature, contribution) in enumerate(zip(order, contributions)):
            records.append({
                "path": path,
                "position": position,
                "variable_name": feature,
                "contribution": float(contribution),
            })
    paths = pd.DataFrame(records)

    result = ShapResult(
        observation=obs,
        paths=paths,
        baseline=explainer.baseline,
        prediction=prediction,
        B=B,
        label=explainer.label,
    )
    check_additivity(prediction, explainer.baseline, result.contributions, tolerance)

    logger.info(f"Shapley-style attribution over B={B} paths, prediction={prediction:.4f}")
    return result
