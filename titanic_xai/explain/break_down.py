"""
Break-down Attribution

Explains one prediction as a path from the baseline (mean prediction
over the reference table) to the observation's prediction. Features
are fixed to the observation's values one at a time; each feature's
contribution is the shift in the mean prediction at its step.

For a non-additive model the contribution of a feature depends on the
position it is introduced at. That is a property of the method; use
shapley.shap_attribution to average over orderings.
"""

import logging
from typing import Sequence

import numpy as np
import pandas as pd

from titanic_xai.core.errors import AdditivityError
from .explainer import Explainer, set_column

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 1e-6


def format_value(value) -> str:
    if isinstance(value, (float, np.floating)):
        return f"{value:g}"
    return str(value)


def _stacked_predictions(explainer: Explainer, frames: list[pd.DataFrame]) -> np.ndarray:
    """Predict several same-sized frames in one call; returns (len(frames), n_rows)."""
    stacked = pd.concat(frames, ignore_index=True)
    return explainer.predict(stacked).reshape(len(frames), -1)


def single_feature_effects(explainer: Explainer, observation: pd.DataFrame) -> pd.Series:
    """
    Mean-prediction shift when only one feature is set to the observation's value.

    Returns:
        Series indexed by feature name
    """
    data = explainer.data
    frames = []
    for feature in explainer.feature_names:
        frame = data.copy()
        set_column(frame, feature, observation[feature].iloc[0])
        frames.append(frame)
    means = _stacked_predictions(explainer, frames).mean(axis=1)
    return pd.Series(means - explainer.baseline, index=explainer.feature_names)


def greedy_order(explainer: Explainer, observation: pd.DataFrame) -> list[str]:
    """Features by decreasing |single-feature effect| (column order on ties)."""
    effects = single_feature_effects(explainer, observation)
    magnitude = effects.abs()
    position = {f: i for i, f in enumerate(explainer.feature_names)}
    return sorted(explainer.feature_names, key=lambda f: (-magnitude[f], position[f]))


def sequential_contributions(
    explainer: Explainer,
    observation: pd.DataFrame,
    order: Sequence[str],
) -> tuple[np.ndarray, float]:
    """
    Fix features in `order` one by one and record each mean-prediction shift.

    Returns:
        (contributions aligned with order, mean prediction after the last step)
    """
    data = explainer.data
    frames = []
    current = data.copy()
    for feature in order:
        set_column(current, feature, observation[feature].iloc[0])
        frames.append(current.copy())
    means = _stacked_predictions(explainer, frames).mean(axis=1)
    steps = np.concatenate([[explainer.baseline], means])
    return np.diff(steps), float(means[-1])


def check_additivity(prediction: float, baseline: float, contributions, tolerance: float) -> None:
    """Raise AdditivityError if baseline + sum(contributions) != prediction."""
    total = float(baseline + np.sum(contributions))
    if abs(total - prediction) > tolerance:
        raise AdditivityError(expected=prediction, actual=total, tolerance=tolerance)


class BreakDownResult:
    """
    Ordered break-down of one prediction.

    Attributes:
        table: intercept row, one row per feature in order, prediction row;
            columns variable, variable_name, variable_value, contribution,
            cumulative, sign
        contributions: Series of contributions indexed by feature (in order)
        baseline, prediction: endpoints of the path
        order: feature order used
    """
    
    def __init__(
        self,
        observation: pd.DataFrame,
        order: list[str],
        contributions: np.ndarray,
        baseline: float,
        prediction: float,
        label: str,
    ):
        self.order = order
        self.baseline = baseline
        self.prediction = prediction
        self.label = label
        self.contributions = pd.Series(contributions, index=order, name="contribution")
        
        rows = [{
            "variable": "intercept",
            "variable_name": "intercept",
            "variable_value": "",
            "contribution": baseline,
            "cumulative": baseline,
        }]
        cumulative = baseline
        for feature, contribution in zip(order, contributions):
            cumulative += contribution
            value = format_value(observation[feature].iloc[0])
            rows.append({
                "variable": f"{feature} = {value}",
                "variable_name": feature,
                "variable_value": value,
                "contribution": float(contribution),
                "cumulative": cumulative,
            })
        rows.append({
            "variable": "prediction",
            "variable_name": "",
            "variable_value": "",
            "contribution": prediction,
            "cumulative": prediction,
        })
        
        table = pd.DataFrame(rows)
        table["sign"] = np.sign(table["contribution"]).astype(int)
        table.loc[table["variable"].isin(["intercept", "prediction"]), "sign"] = 0
        table["label"] = label
        self.table = table
    
    def __repr__(self) -> str:
        return (
            f"BreakDownResult(baseline={self.baseline:.4f}, "
            f"prediction={self.prediction:.4f}, features={len(self.order)})"
        )


def break_down(
    explainer: Explainer,
    observation: pd.DataFrame | pd.Series | dict,
    order: Sequence[str] | None = None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> BreakDownResult:
    """
    Break-down attribution for exactly one observation.

    Args:
        explainer: Explainer wrapping the frozen model
        observation: One row with every reference feature
        order: Feature order; greedy by single-feature effect if None
        tolerance: Allowed |baseline + sum(contributions) - prediction|

    Returns:
        BreakDownResult

    Raises:
        AdditivityError: if the path does not end at the model prediction
    """
    obs = explainer.prepare_observation(observation)

    if order is None:
        order = greedy_order(explainer, obs)
    else:
        order = list(order)
        if sorted(order) != sorted(explainer.feature_names):
            raise ValueError(
                f"order must be a permutation of {explainer.feature_names}, got {order}"
            )

    contributions, _ = sequential_contributions(explainer, obs, order)
    prediction = float(explainer.predict(obs)[0])
    check_additivity(prediction, explainer.baseline, contributions, tolerance)

    logger.info(
        f"Break-down: baseline={explainer.baseline:.4f} -> prediction={prediction:.4f}, "
        f"order={order}"
    )

    return BreakDownResult(
        observation=obs,
        order=order,
        contributions=contributions,
        baseline=explainer.baseline,
        prediction=prediction,
        label=explainer.label,
    )
