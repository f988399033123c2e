"""
Exact TreeSHAP for the random forest.

Cross-check for the sampled attribution in shapley.py: with the
explainer's reference table as background, TreeSHAP's expected value is
the same baseline and its values are exact Shapley values of the forest.
Capping the background with max_background samples the reference table,
and the expected value is then the mean over that sample only.
"""

import logging

import numpy as np
import pandas as pd
import shap

from titanic_xai.ml.models import RandomForestModel
from .explainer import Explainer

logger = logging.getLogger(__name__)


class TreeShapResult:
    """TreeSHAP values of one observation, indexed by original feature name."""

    def __init__(self, values: pd.Series, expected_value: float, prediction: float, label: str):
        self.values = values
        self.expected_value = expected_value
        self.prediction = prediction
        self.label = label
        self.additivity_gap = abs(expected_value + float(values.sum()) - prediction)

        order = values.abs().sort_values(ascending=False, kind="stable").index
        self.table = pd.DataFrame({
            "variable_name": order,
            "contribution": values[order].to_numpy(),
            "label": label,
        })

    def __repr__(self) -> str:
        return (
            f"TreeShapResult(expected_value={self.expected_value:.4f}, "
            f"prediction={self.prediction:.4f}, gap={self.additivity_gap:.2e})"
        )


class TreeShapExplainer:
    """
    shap.TreeExplainer over the fitted forest of an Explainer.

    Args:
        explainer: Explainer whose model is a fitted RandomForestModel
        max_background: Cap on background rows (sampled with random_state);
            None uses the full reference table
    """

    def __init__(
        self,
        explainer: Explainer,
        max_background: int | None = None,
        random_state: int = 1313,
    ):
        model = explainer.model
        if not isinstance(model, RandomForestModel):
            raise ValueError(
                f"TreeSHAP needs a RandomForestModel, got {type(model).__name__}"
            )

        background = explainer.data
        if max_background is not None and len(background) > max_background:
            background = background.sample(max_background, random_state=random_state)

        self.explainer = explainer
        self.model = model
        encoded = model.transform_features(background)
        # Independent masker keeps every background row (its default caps at 100)
        self._tree_explainer = shap.TreeExplainer(
            model.model.named_steps["clf"],
            data=shap.maskers.Independent(encoded, max_samples=len(encoded)),
            feature_perturbation="interventional",
            model_output="raw",
        )
        positive = list(model.classes_).index(1)
        self._positive = positive
        self.expected_value = float(np.ravel(self._tree_explainer.expected_value)[positive])

    def explain(self, observation: pd.DataFrame | pd.Series | dict) -> TreeShapResult:
        """TreeSHAP values for one observation."""
        obs = self.explainer.prepare_observation(observation)
        encoded = self.model.transform_features(obs)

        shap_values = self._tree_explainer.shap_values(encoded)

        # Older shap returns one array per class, newer (rows, features, classes)
        if isinstance(shap_values, list):
            values = np.asarray(shap_values[self._positive])[0]
        elif np.ndim(shap_values) == 3:
            values = np.asarray(shap_values)[0, :, self._positive]
        else:
            values = np.asarray(shap_values)[0]

        prediction = float(self.explainer.predict(obs)[0])
        result = TreeShapResult(
            values=pd.Series(values, index=encoded.columns).reindex(self.explainer.feature_names),
            expected_value=self.expected_value,
            prediction=prediction,
            label=self.explainer.label,
        )
        logger.info(f"TreeSHAP: {result!r}")
        return result
