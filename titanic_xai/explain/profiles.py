"""
Partial Dependence Profiles

For each grid value of a feature, every reference row gets that value,
the model predicts, and the predictions are averaged. The per-row
predictions are the individual conditional expectation (ICE) curves.

- numeric features: quantile or uniform grid over the observed range
- categorical features: every observed level
- optional grouping feature: one aggregate curve per group level

Each aggregate point carries `support`, the number of reference rows of
that group whose own value falls on the grid point (same level, or the
grid point's bin for numeric features). Points with zero support are
model extrapolation and are flagged `low_support`.

ICE curves may be sub-sampled for display; aggregates always use every
reference row.
"""

import logging
from typing import Any, Literal

import numpy as np
import pandas as pd
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from .explainer import Explainer, set_column

logger = logging.getLogger(__name__)

ALL_GROUP = "_all_"

GridType = Literal["quantiles", "uniform"]


def is_numeric_feature(series: pd.Series) -> bool:
    return is_numeric_dtype(series) and not is_bool_dtype(series)


def feature_grid(
    series: pd.Series,
    grid_points: int = 101,
    grid_type: GridType = "quantiles",
) -> list[Any]:
    """
    Ordered grid of values for one feature.

    Numeric: unique quantiles (or evenly spaced points) between min and max.
    Categorical: observed levels, in category order when the dtype has one.
    """
    if is_numeric_feature(series):
        values = series.to_numpy(dtype=float)
        if grid_type == "quantiles":
            points = np.quantile(values, np.linspace(0.0, 1.0, grid_points))
        elif grid_type == "uniform":
            points = np.linspace(values.min(), values.max(), grid_points)
        else:
            raise ValueError(f"Unknown grid type: {grid_type}")
        return [float(v) for v in np.unique(points)]

    observed = set(series.unique())
    if isinstance(series.dtype, pd.CategoricalDtype):
        return [level for level in series.dtype.categories if level in observed]
    return sorted(observed, key=str)


def grid_bins(series: pd.Series, grid: list[Any]) -> np.ndarray:
    """
    Grid position of each row's own value, -1 where it matches no point.

    Numeric bins are split at midpoints between neighbouring grid points
    and closed at the first and last point.
    """
    if is_numeric_feature(series):
        values = series.to_numpy(dtype=float)
        points = np.asarray(grid, dtype=float)
        midpoints = (points[1:] + points[:-1]) / 2
        bins = np.searchsorted(midpoints, values, side="right")
        outside = (values < points[0]) | (values > points[-1])
        bins[outside] = -1
        return bins

    position = {level: i for i, level in enumerate(grid)}
    return np.array([position.get(v, -1) for v in series], dtype=int)


def _predict_over_grid(explainer: Explainer, variable: str, grid: list[Any]) -> np.ndarray:
    """ICE matrix: (n_rows, len(grid)) predictions."""
    data = explainer.data
    ice = np.empty((len(data), len(grid)))
    for j, value in enumerate(grid):
        frame = data.copy()
        set_column(frame, variable, value)
        ice[:, j] = explainer.predict(frame)
    return ice


class ProfileResult:
    """
    Partial-dependence profiles for one or more features.

    Attributes:
        aggregated: variable, group, value, mean_prediction, support,
            low_support (one row per variable x group x grid value)
        individual: obs_id, variable, group, value, prediction (every row)
        display_ids: observation ids chosen for drawing ICE curves
    """

    def __init__(
        self,
        aggregated: pd.DataFrame,
        individual: pd.DataFrame,
        display_ids: pd.Index,
        groups: str | None,
        label: str,
    ):
        self.aggregated = aggregated
        self.individual = individual
        self.display_ids = display_ids
        self.groups = groups
        self.label = label

    @property
    def low_support(self) -> pd.DataFrame:
        """Aggregate points with no supporting observations."""
        return self.aggregated[self.aggregated["low_support"]]

    def individual_for_display(self) -> pd.DataFrame:
        """ICE rows of the display sub-sample only."""
        return self.individual[self.individual["obs_id"].isin(self.display_ids)]

    def profile(self, variable: str, group: Any = ALL_GROUP) -> pd.DataFrame:
        """Aggregate curve of one variable (and group)."""
        mask = (self.aggregated["variable"] == variable) & (self.aggregated["group"] == group)
        return self.aggregated[mask]

    def __repr__(self) -> str:
        return (
            f"ProfileResult(variables={self.aggregated['variable'].unique().tolist()}, "
            f"groups={self.groups!r}, low_support_points={int(self.aggregated['low_support'].sum())})"
        )


def partial_dependence(
    explainer: Explainer,
    variables: list[str] | None = None,
    groups: str | None = None,
    grid_points: int = 101,
    grid_type: GridType = "quantiles",
    ice_max_curves: int = 100,
    random_state: int = 1313,
) -> ProfileResult:
    """
    Partial-dependence (and ICE) profiles.

    Args:
        explainer: Explainer wrapping the frozen model
        variables: Features to profile; None means all
        groups: Optional categorical feature; one curve per level
        grid_points: Grid size for numeric features
        grid_type: quantiles | uniform
        ice_max_curves: ICE curves kept for display (aggregates use all rows)
        random_state: Seed for the display sub-sample
    """
    data = explainer.data
    variables = variables or explainer.feature_names
    unknown = [v for v in variables + ([groups] if groups else []) if v not in data.columns]
    if unknown:
        raise ValueError(f"Unknown variables: {unknown}")

    if groups is not None:
        if is_numeric_feature(data[groups]):
            raise ValueError(f"Grouping feature '{groups}' must be categorical")
        group_values = data[groups].astype(object).to_numpy()
        group_levels = feature_grid(data[groups])
    else:
        group_values = np.full(len(data), ALL_GROUP, dtype=object)
        group_levels = [ALL_GROUP]

    aggregated_parts = []
    individual_parts = []

    for variable in variables:
        grid = feature_grid(data[variable], grid_points=grid_points, grid_type=grid_type)
        ice = _predict_over_grid(explainer, variable, grid)
        bins = grid_bins(data[variable], grid)

        for group in group_levels:
            mask = group_values == group
            n_group = int(mask.sum())
            support = np.bincount(bins[mask & (bins >= 0)], minlength=len(grid))
            mean_prediction = ice[mask].mean(axis=0) if n_group else np.full(len(grid), np.nan)
            aggregated_parts.append(pd.DataFrame({
                "variable": variable,
                "group": group,
                "value": pd.Series(grid, dtype=object),
                "mean_prediction": mean_prediction,
                "support": support,
                "low_support": support == 0,
            }))

        individual_parts.append(pd.DataFrame({
            "obs_id": np.repeat(data.index.to_numpy(), len(grid)),
            "variable": variable,
            "group": np.repeat(group_values, len(grid)),
            "value": pd.Series(grid * len(data), dtype=object),
            "prediction": ice.ravel(),
        }))

    aggregated = pd.concat(aggregated_parts, ignore_index=True)
    individual = pd.concat(individual_parts, ignore_index=True)
    aggregated["label"] = explainer.label

    if len(data) > ice_max_curves:
        rng = np.random.default_rng(random_state)
        chosen = np.sort(rng.choice(len(data), size=ice_max_curves, replace=False))
        display_ids = data.index[chosen]
    else:
        display_ids = data.index

    n_low = int(aggregated["low_support"].sum())
    if n_low:
        combos = (
            aggregated.loc[aggregated["low_support"], ["variable", "group"]]
            .drop_duplicates()
            .itertuples(index=False)
        )
        logger.warning(
            f"{n_low} profile points have no supporting observations "
            f"(model extrapolation) in {[tuple(c) for c in combos][:10]}"
        )

    logger.info(
        f"Partial dependence: variables={variables}, groups={groups!r}, "
        f"rows={len(data)}, ICE display={len(display_ids)}"
    )

    return ProfileResult(
        aggregated=aggregated,
        individual=individual,
        display_ids=display_ids,
        groups=groups,
        label=explainer.label,
    )


def interaction_profile(
    explainer: Explainer,
    variable_x: str,
    variable_y: str,
    grid_points: int = 21,
    grid_type: GridType = "quantiles",
) -> pd.DataFrame:
    """
    Two-feature partial dependence over the product of both grids.

    Returns:
        DataFrame with value_x, value_y, mean_prediction, support, low_support
    """
    data = explainer.data
    for variable in (variable_x, variable_y):
        if variable not in data.columns:
            raise ValueError(f"Unknown variable: {variable}")
    if variable_x == variable_y:
        raise ValueError("interaction_profile needs two different variables")

    grid_x = feature_grid(data[variable_x], grid_points=grid_points, grid_type=grid_type)
    grid_y = feature_grid(data[variable_y], grid_points=grid_points, grid_type=grid_type)
    bins_x = grid_bins(data[variable_x], grid_x)
    bins_y = grid_bins(data[variable_y], grid_y)
    both = (bins_x >= 0) & (bins_y >= 0)
    support = np.zeros((len(grid_x), len(grid_y)), dtype=int)
    np.add.at(support, (bins_x[both], bins_y[both]), 1)

    records = []
    for i, value_x in enumerate(grid_x):
        for j, value_y in enumerate(grid_y):
            frame = data.copy()
            set_column(frame, variable_x, value_x)
            set_column(frame, variable_y, value_y)
            records.append({
                "value_x": value_x,
                "value_y": value_y,
                "mean_prediction": float(explainer.predict(frame).mean()),
                "support": int(support[i, j]),
                "low_support": bool(support[i, j] == 0),
            })

    result = pd.DataFrame(records)
    result.insert(0, "variable_y", variable_y)
    result.insert(0, "variable_x", variable_x)
    result["label"] = explainer.label
    return result
