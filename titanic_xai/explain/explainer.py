"""
Explainer

Binds a frozen model to its reference data behind one capability:
"probability of the positive class for each row". Every explanation
routine talks to the model only through Explainer.predict.
"""

import logging
from typing import Any, Callable, Protocol, runtime_checkable

import numpy as np
import pandas as pd

from titanic_xai.core.errors import ExplainerValidationError

logger = logging.getLogger(__name__)

PredictFunction = Callable[[Any, pd.DataFrame], np.ndarray]


@runtime_checkable
class SupportsPredictProba(Protocol):
    """Anything with a scikit-learn style predict_proba."""

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        ...


def positive_class_proba(model: SupportsPredictProba, X: pd.DataFrame) -> np.ndarray:
    """Default predict function: the column of predict_proba for label 1."""
    proba = np.asarray(model.predict_proba(X), dtype=float)
    if proba.ndim == 1:
        return proba

    classes = getattr(model, "classes_", None)
    if classes is not None and 1 in list(classes):
        return proba[:, list(classes).index(1)]
    return proba[:, -1]


def set_column(df: pd.DataFrame, column: str, value: Any) -> None:
    """Overwrite a column with one value, keeping its dtype (in place)."""
    dtype = df[column].dtype
    df[column] = pd.Series([value] * len(df), index=df.index).astype(dtype)


class Explainer:
    """
    Read-only wrapper of {model, reference features, labels, predict function}.

    Validated once at construction:
    - feature rows == label length, labels are 0/1
    - the model has predict_proba (or a predict_function is supplied)
    - predictions on the reference data are finite, one per row, in [0, 1]

    The reference frame and labels are copied; callers never get a handle
    to the stored objects.
    """

    def __init__(
        self,
        model: Any,
        data: pd.DataFrame,
        y: pd.Series | np.ndarray,
        label: str | None = None,
        predict_function: PredictFunction | None = None,
    ):
        if not isinstance(data, pd.DataFrame):
            raise ExplainerValidationError(
                f"data must be a pandas DataFrame, got {type(data).__name__}"
            )
        if len(data) == 0:
            raise ExplainerValidationError("data has no rows")

        y_arr = np.asarray(y)
        if y_arr.ndim != 1 or len(y_arr) != len(data):
            raise ExplainerValidationError(
                f"data has {len(data)} rows but y has {y_arr.shape[0] if y_arr.ndim else 0} values"
            )
        try:
            y_num = y_arr.astype(int)
        except (TypeError, ValueError) as e:
            raise ExplainerValidationError(f"y must be numeric 0/1: {e}") from e
        if not set(np.unique(y_num)) <= {0, 1}:
            raise ExplainerValidationError(
                f"y must contain only 0/1, found {sorted(set(np.unique(y_num)))}"
            )

        if predict_function is None:
            if not isinstance(model, SupportsPredictProba):
                raise ExplainerValidationError(
                    f"{type(model).__name__} has no predict_proba; pass a predict_function"
                )
            predict_function = positive_class_proba

        self._model = model
        self._data = data.copy()
        self._y = y_num.copy()
        self._y.setflags(write=False)
        self._predict_function = predict_function
        self.label = label or getattr(model, "model_type", type(model).__name__)

        self._reference_predictions = self.predict(self._data)
        self._reference_predictions.setflags(write=False)

        logger.info(
            f"Explainer '{self.label}': {len(self._data)} rows, "
            f"{len(self.feature_names)} features, "
            f"mean prediction={self.baseline:.4f}"
        )

    # ----- read-only views -----

    @property
    def model(self) -> Any:
        return self._model

    @property
    def data(self) -> pd.DataFrame:
        """A fresh copy of the reference feature table."""
        return self._data.copy()

    @property
    def y(self) -> np.ndarray:
        return self._y

    @property
    def feature_names(self) -> list[str]:
        return list(self._data.columns)

    @property
    def n_rows(self) -> int:
        return len(self._data)

    @property
    def reference_predictions(self) -> np.ndarray:
        return self._reference_predictions

    @property
    def baseline(self) -> float:
        """Mean predicted probability over the reference table."""
        return float(np.mean(self._reference_predictions))

    # ----- prediction -----

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """
        Positive-class probability for each row of X.

        Raises:
            ExplainerValidationError: wrong shape, non-finite values or
                values outside [0, 1]
        """
        pred = np.asarray(self._predict_function(self._model, X), dtype=float)
        if pred.ndim != 1 or len(pred) != len(X):
            raise ExplainerValidationError(
                f"predict function returned shape {pred.shape} for {len(X)} rows"
            )
        if not np.all(np.isfinite(pred)):
            raise ExplainerValidationError("predict function returned non-finite values")
        if pred.min() < 0.0 or pred.max() > 1.0:
            raise ExplainerValidationError(
                f"predict function returned values outside [0, 1]: "
                f"min={pred.min():.4f}, max={pred.max():.4f}"
            )
        return pred

    def prepare_observation(self, observation: pd.DataFrame | pd.Series | dict) -> pd.DataFrame:
        """
        Align one observation to the reference columns and dtypes.

        Raises:
            ValueError: not exactly one row, missing columns, or a
                categorical value outside the known levels
        """
        if isinstance(observation, dict):
            observation = pd.DataFrame([observation])
        elif isinstance(observation, pd.Series):
            observation = observation.to_frame().T

        if len(observation) != 1:
            raise ValueError(f"Expected exactly one observation, got {len(observation)} rows")

        missing = [c for c in self._data.columns if c not in observation.columns]
        if missing:
            raise ValueError(f"Observation is missing features: {missing}")

        obs = observation[self._data.columns].copy()
        for col, dtype in self._data.dtypes.items():
            if isinstance(dtype, pd.CategoricalDtype):
                unknown = obs[col].notna() & ~obs[col].isin(dtype.categories)
                if unknown.any():
                    raise ValueError(f"Unknown value for '{col}': {obs[col].iloc[0]!r}")
            obs[col] = obs[col].astype(dtype)
        return obs

    def __repr__(self) -> str:
        return (
            f"Explainer(label={self.label!r}, rows={self.n_rows}, "
            f"features={len(self.feature_names)})"
        )
