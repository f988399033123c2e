"""
DatasetBuilder

Builds the training/held-out partitions and the resampling plan:
- Load (CSV or in-memory frame) and type the imputed Titanic table
- Stratified train/test split
- Stratified k-fold plan over the training partition
"""

import logging

import numpy as np
import pandas as pd

from titanic_xai.core.experiment import compute_data_hash
from titanic_xai.ml.dataset.schemas import (
    DatasetConfig,
    DatasetOutput,
    DatasetResult,
)
from titanic_xai.ml.dataset.titanic import FEATURES, load_titanic, prepare_titanic
from titanic_xai.ml.split import stratified_folds, stratified_split

logger = logging.getLogger(__name__)


class DatasetBuilder:
    """
    Builds ML-ready partitions from the Titanic table.

    Usage:
        config = DatasetConfig(data_path="data/titanic_imputed.csv")
        output = DatasetBuilder(config).build()

        # Or from a frame already in memory
        output = DatasetBuilder(config, frame=df).build()
    """

    def __init__(self, config: DatasetConfig, frame: pd.DataFrame | None = None):
        if frame is None and config.data_path is None:
            raise ValueError("Either config.data_path or frame must be given")
        self.config = config
        self.frame = frame

    def build(self) -> DatasetOutput:
        """
        Build the complete dataset.

        Returns:
            DatasetOutput with X_train, y_train, X_test, y_test, folds, metadata
        """
        target = self.config.target_column
        split = self.config.split_config
        seed = self.config.random_state

        # 1. Load and type
        if self.frame is not None:
            df = prepare_titanic(self.frame, target=target)
        else:
            df = load_titanic(self.config.data_path, target=target)

        X = df[FEATURES]
        y = df[target]

        # 2. Stratified train/test split
        X_train, X_test, y_train, y_test = stratified_split(
            X, y, test_size=split.test_size, random_state=seed
        )

        # 3. Fold plan over the training partition
        folds = stratified_folds(y_train, n_folds=split.n_folds, random_state=seed)

        metadata = DatasetResult(
            config=self.config,
            total_samples=len(df),
            train_samples=len(X_train),
            test_samples=len(X_test),
            n_folds=folds.n_folds,
            feature_names=list(FEATURES),
            categorical_features=X.select_dtypes(include="category").columns.tolist(),
            label_rate=_positive_rate(y),
            train_label_rate=_positive_rate(y_train),
            test_label_rate=_positive_rate(y_test),
            data_hash=compute_data_hash(df),
        )

        logger.info(
            f"Dataset built: train={len(X_train)}, test={len(X_test)}, "
            f"survival rate total={metadata.label_rate:.3f} "
            f"train={metadata.train_label_rate:.3f} test={metadata.test_label_rate:.3f}"
        )

        return DatasetOutput(
            X_train=X_train,
            y_train=y_train,
            X_test=X_test,
            y_test=y_test,
            folds=folds,
            metadata=metadata,
        )


def _positive_rate(y: pd.Series) -> float:
    return float(np.mean(np.asarray(y).astype(int) == 1))
