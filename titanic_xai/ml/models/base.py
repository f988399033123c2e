"""
Base Model Interface

Defines the interface that all ML models must implement.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
import json

import numpy as np
import pandas as pd
import joblib
from pydantic import BaseModel as PydanticModel, Field
from sklearn.pipeline import Pipeline


class ModelMetadata(PydanticModel):
    """Metadata for a trained model."""

    model_type: str
    model_name: str
    version: int = 1
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Training info
    feature_names: list[str] = []
    categorical_features: list[str] = []
    train_samples: int = 0
    test_samples: int = 0
    data_hash: str | None = None
    random_state: int | None = None

    # Hyperparameters
    params: dict[str, Any] = {}

    # Metrics
    metrics: dict[str, float | None] = {}


class BaseModel(ABC):
    """
    Abstract base class for all ML models.

    Subclasses build a scikit-learn Pipeline; this class provides:
    - fit(X, y) -> self (once; a fitted model is frozen)
    - predict(X) -> array
    - predict_proba(X) -> array
    - save(path) -> None
    - load(path) -> cls
    """

    model_type: str = "base"

    def __init__(self, **params):
        self.params = params
        self.model: Pipeline = self.build_pipeline()
        self.metadata = None
        self.is_fitted = False
        self.feature_names: list[str] = []

    @abstractmethod
    def build_pipeline(self) -> Pipeline:
        """Build the unfitted preprocessing + estimator pipeline from self.params."""
        pass

    def fit(self, X: pd.DataFrame, y: pd.Series) -> "BaseModel":
        """
        Fit the model to training data.

        Args:
            X: Feature matrix
            y: Target vector (0/1, categorical or numeric)

        Returns:
            self

        Raises:
            RuntimeError: if the model is already fitted
        """
        if self.is_fitted:
            raise RuntimeError(
                f"{self.model_type} model is already fitted; create a new instance"
            )
        self.model.fit(X, y)
        self.feature_names = list(X.columns)
        self.is_fitted = True
        return self

    def _check_fitted(self) -> None:
        if not self.is_fitted:
            raise ValueError("Model not fitted")

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Predict class labels."""
        self._check_fitted()
        return self.model.predict(X)

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """
        Predict class probabilities.

        Returns:
            Probability array (n_samples, n_classes), columns in classes_ order
        """
        self._check_fitted()
        return self.model.predict_proba(X)

    @property
    def classes_(self) -> np.ndarray:
        self._check_fitted()
        return self.model.classes_

    def save(self, path: str | Path) -> None:
        """
        Save model to disk.

        Args:
            path: Directory to save model
        """
        self._check_fitted()
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)

        joblib.dump(self.model, path / "model.joblib")

        if self.metadata:
            with open(path / "metadata.json", "w") as f:
                json.dump(
                    self.metadata.model_dump(mode="json"), f, indent=2, default=str
                )

        with open(path / "params.json", "w") as f:
            json.dump(
                {"params": self.params, "feature_names": self.feature_names},
                f,
                indent=2,
            )

    @classmethod
    def load(cls, path: str | Path) -> "BaseModel":
        """
        Load model from disk.

        Args:
            path: Directory containing saved model

        Returns:
            Loaded (fitted) model instance
        """
        path = Path(path)

        with open(path / "params.json", "r") as f:
            saved = json.load(f)

        instance = cls(**saved["params"])
        instance.model = joblib.load(path / "model.joblib")
        instance.feature_names = saved.get("feature_names", [])
        instance.is_fitted = True

        metadata_path = path / "metadata.json"
        if metadata_path.exists():
            with open(metadata_path, "r") as f:
                instance.metadata = ModelMetadata(**json.load(f))

        return instance

    def set_metadata(
        self,
        categorical_features: list[str],
        train_samples: int,
        test_samples: int,
        data_hash: str | None = None,
        random_state: int | None = None,
        metrics: dict[str, float | None] | None = None,
    ) -> None:
        """Set model metadata after training."""
        self.metadata = ModelMetadata(
            model_type=self.model_type,
            model_name=f"{self.model_type}_v1",
            feature_names=self.feature_names,
            categorical_features=categorical_features,
            train_samples=train_samples,
            test_samples=test_samples,
            data_hash=data_hash,
            random_state=random_state,
            params=self.params,
            metrics=metrics or {},
        )
