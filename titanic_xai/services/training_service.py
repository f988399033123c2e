"""
Training Service

Encapsulates the model-selection workflow:
1. Build dataset (DatasetBuilder): stratified split + fold plan
2. Cross-validated grid search (GridSearch)
3. Final fit on the whole training partition
4. Evaluate on the held-out partition
5. Save artifacts (optional)

Errors (including StratificationError) propagate to the caller.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from titanic_xai.core.experiment import collect_run_metadata
from titanic_xai.core.logging import Timer, log_with_context
from titanic_xai.core.settings import Settings, settings as default_settings
from titanic_xai.ml.dataset import DatasetBuilder, DatasetConfig, DatasetOutput, SplitConfig
from titanic_xai.ml.hyperparam import GridSearch, SearchConfig, SearchResult
from titanic_xai.ml.metrics import calculate_classification_metrics
from titanic_xai.ml.models import BaseModel as Model, get_model

logger = logging.getLogger(__name__)


class TrainRequest(BaseModel):
    """Request for selecting and fitting a model."""

    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    # Data
    data_path: str | None = None
    target_column: str = "survived"

    # Split
    test_size: float = Field(default=0.25, gt=0.0, lt=1.0)
    n_folds: int = Field(default=10, ge=2, le=50)

    # Model
    model_type: Literal["random_forest", "logistic"] = "random_forest"
    model_params: dict[str, Any] = Field(default_factory=dict)
    n_estimators: int = Field(default=500, ge=1)

    # Hyperparameter search
    search_mode: Literal["none", "grid"] = "grid"
    search_metric: Literal["roc_auc", "accuracy"] = "roc_auc"
    grid_levels: int = Field(default=3, ge=1, le=20)
    n_jobs: int = -1

    # Reproducibility
    random_state: int = 1313

    # Options
    save_model: bool = False
    model_name: str | None = None

    @classmethod
    def from_settings(cls, config: Settings, **overrides: Any) -> "TrainRequest":
        """Request populated from settings, with explicit overrides."""
        values = {
            "data_path": config.DATA_PATH,
            "target_column": config.TARGET_COLUMN,
            "test_size": config.TEST_SIZE,
            "n_folds": config.N_FOLDS,
            "model_type": config.DEFAULT_MODEL_TYPE,
            "n_estimators": config.N_ESTIMATORS,
            "search_metric": config.SEARCH_METRIC,
            "grid_levels": config.GRID_LEVELS,
            "n_jobs": config.SEARCH_N_JOBS,
            "random_state": config.RANDOM_STATE,
        }
        values.update(overrides)
        return cls(**values)


class TrainResult(BaseModel):
    """Result of training."""

    model_config = ConfigDict(protected_namespaces=())

    # Model info
    model_id: str | None = None
    model_type: str
    model_path: str | None = None
    params: dict[str, Any] = {}

    # Data info
    feature_names: list[str] = []
    train_samples: int = 0
    test_samples: int = 0
    n_folds: int = 0
    train_label_rate: float = 0.0
    test_label_rate: float = 0.0

    # Hyperparameter search info
    search_mode: str = "grid"
    search_candidates: int = 0
    search_best_params: dict[str, Any] = {}
    search_best_score: float | None = None
    search_time_seconds: float = 0.0

    # Held-out metrics
    metrics: dict[str, float | None] = {}

    # Reproducibility
    run_metadata: dict[str, Any] = {}

    # Timing
    training_time_seconds: float = 0.0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class TrainOutput:
    """
    Container for training output (not Pydantic - holds the fitted model).

    Attributes:
        model: the frozen fitted model
        dataset: partitions and fold plan it was selected/fitted on
        search: SearchResult of the model selection
        result: TrainResult summary
    """

    def __init__(
        self,
        model: Model,
        dataset: DatasetOutput,
        search: SearchResult,
        result: TrainResult,
    ):
        self.model = model
        self.dataset = dataset
        self.search = search
        self.result = result

    def __repr__(self) -> str:
        return (
            f"TrainOutput(model_type={self.result.model_type!r}, "
            f"best_params={self.result.search_best_params}, "
            f"test_auc={self.result.metrics.get('auc')})"
        )


class TrainingService:
    """
    Service for selecting and fitting the model.

    Usage:
        service = TrainingService()
        output = service.train(TrainRequest(data_path="data/titanic_imputed.csv"))
        output.model  # frozen, fitted on the full training partition
    """

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings
        self.artifacts_path = Path(self.config.ARTIFACTS_PATH)

    def train(self, request: TrainRequest, frame: pd.DataFrame | None = None) -> TrainOutput:
        """
        Run data preparation, model selection and the final fit.

        Args:
            request: Training request
            frame: Raw Titanic frame; read from request.data_path if None
        """
        start_time = time.time()
        logger.info(
            f"Training {request.model_type}: folds={request.n_folds}, "
            f"search={request.search_mode}, seed={request.random_state}"
        )

        # 1. Build dataset
        with Timer("Data preparation", logger):
            dataset = DatasetBuilder(
                DatasetConfig(
                    data_path=request.data_path,
                    target_column=request.target_column,
                    split_config=SplitConfig(
                        test_size=request.test_size,
                        n_folds=request.n_folds,
                    ),
                    random_state=request.random_state,
                ),
                frame=frame,
            ).build()

        # 2. Model selection
        with Timer("Hyperparameter search", logger):
            search = GridSearch(
                model_type=request.model_type,
                X=dataset.X_train,
                y=dataset.y_train,
                folds=dataset.folds,
                base_params=self._base_params(request, for_search=True),
            )
            search_result = search.run(SearchConfig(
                mode=request.search_mode,
                metric=request.search_metric,
                levels=request.grid_levels,
                n_jobs=request.n_jobs,
            ))

        # 3. Final fit on the whole training partition
        with Timer("Final fit", logger):
            params = {**self._base_params(request, for_search=False), **search_result.best_params}
            model = get_model(request.model_type, **params)
            model.fit(dataset.X_train, dataset.y_train)

        # 4. Held-out evaluation
        positive = list(model.classes_).index(1)
        metrics = calculate_classification_metrics(
            dataset.y_test, model.predict_proba(dataset.X_test)[:, positive]
        )
        log_with_context(logger, logging.INFO, f"Held-out metrics: {metrics}", **metrics)

        model.set_metadata(
            categorical_features=dataset.metadata.categorical_features,
            train_samples=dataset.metadata.train_samples,
            test_samples=dataset.metadata.test_samples,
            data_hash=dataset.metadata.data_hash,
            random_state=request.random_state,
            metrics=metrics,
        )

        # 5. Save model
        model_id = None
        model_path = None
        if request.save_model:
            model_id = self._generate_model_id(request)
            model_path = self.artifacts_path / model_id
            model.save(model_path)
            logger.info(f"Model saved to: {model_path}")

        result = TrainResult(
            model_id=model_id,
            model_type=request.model_type,
            model_path=str(model_path) if model_path else None,
            params=params,
            feature_names=dataset.metadata.feature_names,
            train_samples=dataset.metadata.train_samples,
            test_samples=dataset.metadata.test_samples,
            n_folds=dataset.metadata.n_folds,
            train_label_rate=dataset.metadata.train_label_rate,
            test_label_rate=dataset.metadata.test_label_rate,
            search_mode=request.search_mode,
            search_candidates=search_result.n_candidates,
            search_best_params=search_result.best_params,
            search_best_score=search_result.best_score,
            search_time_seconds=search_result.total_time_seconds,
            metrics=metrics,
            run_metadata={
                **collect_run_metadata(request.model_dump(mode="json")),
                "data_hash": dataset.metadata.data_hash,
            },
            training_time_seconds=time.time() - start_time,
        )

        return TrainOutput(model=model, dataset=dataset, search=search_result, result=result)

    def _base_params(self, request: TrainRequest, for_search: bool) -> dict[str, Any]:
        """
        Fixed (non-tuned) params. During the search each fold task fits a
        single-threaded forest; parallelism is across tasks instead.
        """
        params: dict[str, Any] = {"random_state": request.random_state}
        if request.model_type == "random_forest":
            params["n_estimators"] = request.n_estimators
            params["n_jobs"] = 1 if for_search else -1
        params.update(request.model_params)
        return params

    def _generate_model_id(self, request: TrainRequest) -> str:
        """Generate a unique model ID."""
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        name = request.model_name or request.model_type
        return f"{name}_seed{request.random_state}_{timestamp}"
