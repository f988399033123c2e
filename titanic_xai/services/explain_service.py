"""
Explain Service

Wraps a frozen fitted model in an Explainer and produces:
- Local explanations for one observation (break-down, averaged break-down,
  optional TreeSHAP cross-check)
- Global explanations (permutation importance, partial-dependence profiles)

No artifact is computed from anything but the explainer's reference table
and the model it was built with.
"""

import json
import logging
from pathlib import Path
from typing import Any, Literal

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from titanic_xai.core.logging import Timer
from titanic_xai.core.settings import Settings, settings as default_settings
from titanic_xai.explain import (
    BreakDownResult,
    Explainer,
    PermutationImportanceResult,
    ProfileResult,
    ShapResult,
    TreeShapExplainer,
    TreeShapResult,
    break_down,
    interaction_profile,
    partial_dependence,
    permutation_importance,
    shap_attribution,
)
from titanic_xai.ml.models import RandomForestModel
from titanic_xai.services.training_service import TrainOutput

logger = logging.getLogger(__name__)


class ExplainRequest(BaseModel):
    """Request for explaining a fitted model."""

    model_config = ConfigDict(extra="forbid")

    # Reference table the explainer is built on
    reference: Literal["train", "test"] = "train"

    # Local explanations
    shap_b: int = Field(default=25, ge=1)
    tree_shap: bool = True
    tree_shap_max_background: int | None = Field(default=None, ge=1)

    # Permutation importance
    permutation_repeats: int = Field(default=10, ge=1)
    permutation_loss: Literal["one_minus_auc", "cross_entropy", "one_minus_accuracy"] = "one_minus_auc"
    permutation_type: Literal["raw", "difference", "ratio"] = "difference"

    # Profiles
    profile_variables: list[str] | None = None
    profile_groups: str | None = None
    profile_grid_points: int = Field(default=101, ge=2)
    profile_grid_type: Literal["quantiles", "uniform"] = "quantiles"
    ice_max_curves: int = Field(default=100, ge=1)

    # Optional two-variable profile
    interaction: tuple[str, str] | None = None
    interaction_grid_points: int = Field(default=21, ge=2)

    tolerance: float = Field(default=1e-6, gt=0.0)
    random_state: int = 1313
    n_jobs: int = 1

    @classmethod
    def from_settings(cls, config: Settings, **overrides: Any) -> "ExplainRequest":
        """Request populated from settings, with explicit overrides."""
        values = {
            "shap_b": config.SHAP_B,
            "permutation_repeats": config.PERMUTATION_REPEATS,
            "permutation_loss": config.PERMUTATION_LOSS,
            "permutation_type": config.PERMUTATION_TYPE,
            "profile_grid_points": config.PROFILE_GRID_POINTS,
            "profile_grid_type": config.PROFILE_GRID_TYPE,
            "ice_max_curves": config.ICE_MAX_CURVES,
            "tolerance": config.ADDITIVITY_TOLERANCE,
            "random_state": config.RANDOM_STATE,
        }
        values.update(overrides)
        return cls(**values)


class LocalExplanation:
    """Explanations of one observation."""

    def __init__(
        self,
        break_down: BreakDownResult,
        shap: ShapResult,
        tree_shap: TreeShapResult | None = None,
    ):
        self.break_down = break_down
        self.shap = shap
        self.tree_shap = tree_shap

    @property
    def prediction(self) -> float:
        return self.break_down.prediction


class GlobalExplanation:
    """Explanations of the model as a whole."""

    def __init__(
        self,
        importance: PermutationImportanceResult,
        profiles: ProfileResult,
        interaction: pd.DataFrame | None = None,
    ):
        self.importance = importance
        self.profiles = profiles
        self.interaction = interaction


class ExplanationReport:
    """
    Every explanation artifact of one run.

    Usage:
        report.save("out/")  # one CSV per table + summary.json
    """

    def __init__(
        self,
        baseline: float,
        label: str,
        local: LocalExplanation | None = None,
        global_: GlobalExplanation | None = None,
    ):
        self.baseline = baseline
        self.label = label
        self.local = local
        self.global_ = global_

    def to_frames(self) -> dict[str, pd.DataFrame]:
        """All artifacts as named tables."""
        frames: dict[str, pd.DataFrame] = {}
        if self.local is not None:
            frames["break_down"] = self.local.break_down.table
            frames["shap"] = self.local.shap.table
            frames["shap_paths"] = self.local.shap.paths
            if self.local.tree_shap is not None:
                frames["tree_shap"] = self.local.tree_shap.table
        if self.global_ is not None:
            frames["permutation_importance"] = self.global_.importance.table
            frames["permutation_repeats"] = self.global_.importance.permutations
            frames["partial_dependence"] = self.global_.profiles.aggregated
            frames["ice"] = self.global_.profiles.individual_for_display()
            if self.global_.interaction is not None:
                frames["interaction_profile"] = self.global_.interaction
        return frames

    def summary(self) -> dict[str, Any]:
        summary: dict[str, Any] = {"label": self.label, "baseline": self.baseline}
        if self.local is not None:
            summary["prediction"] = self.local.prediction
            summary["break_down_order"] = self.local.break_down.order
            summary["shap_b"] = self.local.shap.B
            if self.local.tree_shap is not None:
                summary["tree_shap_additivity_gap"] = self.local.tree_shap.additivity_gap
        if self.global_ is not None:
            summary["importance"] = self.global_.importance.importance.to_dict()
            summary["low_support_points"] = int(len(self.global_.profiles.low_support))
        return summary

    def save(self, directory: str | Path) -> list[Path]:
        """Write every table as CSV and the summary as JSON."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        written = []
        for name, frame in self.to_frames().items():
            path = directory / f"{name}.csv"
            frame.to_csv(path, index=False)
            written.append(path)

        summary_path = directory / "summary.json"
        with open(summary_path, "w") as f:
            json.dump(self.summary(), f, indent=2, default=str)
        written.append(summary_path)

        logger.info(f"Saved {len(written)} explanation artifacts to {directory}")
        return written


class ExplainService:
    """
    Service for explaining a trained model.

    Usage:
        service = ExplainService()
        explainer = service.build_explainer(train_output)
        report = service.explain(explainer, example_passenger())
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings

    def default_request(self, **overrides: Any) -> ExplainRequest:
        return ExplainRequest.from_settings(self.config, **overrides)

    def build_explainer(
        self,
        train_output: TrainOutput,
        request: ExplainRequest | None = None,
    ) -> Explainer:
        """Explainer over the frozen model and the requested reference partition."""
        request = request or self.default_request()
        dataset = train_output.dataset
        if request.reference == "train":
            data, y = dataset.X_train, dataset.y_train
        else:
            data, y = dataset.X_test, dataset.y_test
        return Explainer(train_output.model, data, y, label=train_output.result.model_type)

    def explain_observation(
        self,
        explainer: Explainer,
        observation: pd.DataFrame | pd.Series | dict,
        request: ExplainRequest | None = None,
    ) -> LocalExplanation:
        """Break-down, averaged break-down and (for forests) TreeSHAP."""
        request = request or self.default_request()

        with Timer("Break-down", logger):
            bd = break_down(explainer, observation, tolerance=request.tolerance)

        with Timer(f"Shapley-style attribution (B={request.shap_b})", logger):
            shap = shap_attribution(
                explainer,
                observation,
                B=request.shap_b,
                random_state=request.random_state,
                n_jobs=request.n_jobs,
                tolerance=request.tolerance,
            )

        tree = None
        if request.tree_shap and isinstance(explainer.model, RandomForestModel):
            with Timer("TreeSHAP", logger):
                tree = TreeShapExplainer(
                    explainer,
                    max_background=request.tree_shap_max_background,
                    random_state=request.random_state,
                ).explain(observation)

        return LocalExplanation(break_down=bd, shap=shap, tree_shap=tree)

    def explain_model(
        self,
        explainer: Explainer,
        request: ExplainRequest | None = None,
    ) -> GlobalExplanation:
        """Permutation importance, partial-dependence profiles and the optional interaction profile."""
        request = request or self.default_request()

        with Timer(f"Permutation importance (B={request.permutation_repeats})", logger):
            importance = permutation_importance(
                explainer,
                loss_function=request.permutation_loss,
                B=request.permutation_repeats,
                importance_type=request.permutation_type,
                random_state=request.random_state,
                n_jobs=request.n_jobs,
            )

        with Timer("Partial dependence", logger):
            profiles = partial_dependence(
                explainer,
                variables=request.profile_variables,
                groups=request.profile_groups,
                grid_points=request.profile_grid_points,
                grid_type=request.profile_grid_type,
                ice_max_curves=request.ice_max_curves,
                random_state=request.random_state,
            )

        interaction = None
        if request.interaction is not None:
            variable_x, variable_y = request.interaction
            with Timer(f"Interaction profile ({variable_x} x {variable_y})", logger):
                interaction = interaction_profile(
                    explainer,
                    variable_x,
                    variable_y,
                    grid_points=request.interaction_grid_points,
                    grid_type=request.profile_grid_type,
                )

        return GlobalExplanation(importance=importance, profiles=profiles, interaction=interaction)

    def explain(
        self,
        explainer: Explainer,
        observation: pd.DataFrame | pd.Series | dict | None = None,
        request: ExplainRequest | None = None,
    ) -> ExplanationReport:
        """Full report; local explanations only when an observation is given."""
        request = request or self.default_request()
        local = None
        if observation is not None:
            local = self.explain_observation(explainer, observation, request)
        global_ = self.explain_model(explainer, request)
        return ExplanationReport(
            baseline=explainer.baseline,
            label=explainer.label,
            local=local,
            global_=global_,
        )
