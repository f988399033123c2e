"""
Dataset Schemas

Defines configuration and result structures for dataset building.
"""

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from titanic_xai.ml.split import FoldPlan


class SplitConfig(BaseModel):
    """Configuration for the stratified train/test split and fold plan."""
    
    model_config = ConfigDict(extra="forbid")
    
    test_size: float = Field(default=0.25, gt=0.0, lt=1.0)
    n_folds: int = Field(default=10, ge=2, le=50)


class DatasetConfig(BaseModel):
    """Full configuration for dataset building."""
    
    model_config = ConfigDict(extra="forbid")
    
    data_path: str | None = None
    target_column: str = "survived"
    split_config: SplitConfig = Field(default_factory=SplitConfig)
    random_state: int = 1313


class DatasetResult(BaseModel):
    """Metadata of a built dataset."""
    
    config: DatasetConfig
    total_samples: int
    train_samples: int
    test_samples: int
    n_folds: int
    feature_names: list[str]
    categorical_features: list[str]
    
    # Positive label rate per partition
    label_rate: float
    train_label_rate: float
    test_label_rate: float
    
    data_hash: str


class DatasetOutput:
    """
    Container for dataset output (not Pydantic - holds DataFrames).
    
    Attributes:
        X_train, y_train: Training partition
        X_test, y_test: Held-out partition
        folds: Stratified k-fold plan over the training partition
        metadata: DatasetResult with all metadata
    """
    
    def __init__(
        self,
        X_train: pd.DataFrame,
        y_train: pd.Series,
        X_test: pd.DataFrame,
        y_test: pd.Series,
        folds: FoldPlan,
        metadata: DatasetResult,
    ):
        self.X_train = X_train
        self.y_train = y_train
        self.X_test = X_test
        self.y_test = y_test
        self.folds = folds
        self.metadata = metadata
    
    def __repr__(self) -> str:
        return (
            f"DatasetOutput("
            f"train={len(self.X_train)}, "
            f"test={len(self.X_test)}, "
            f"folds={self.folds.n_folds}, "
            f"features={len(self.X_train.columns)})"
        )
