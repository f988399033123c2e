"""
Stratified Split & Resampling

Both the train/test split and the k-fold plan preserve the label
proportions. A stratum that is too small raises StratificationError;
the fold count is never reduced to make it fit.
"""

import logging
import math
from typing import Iterator

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, train_test_split

from titanic_xai.core.errors import StratificationError

logger = logging.getLogger(__name__)


def _label_counts(y: pd.Series) -> pd.Series:
    return pd.Series(np.asarray(y)).value_counts()


def stratified_split(
    X: pd.DataFrame,
    y: pd.Series,
    test_size: float = 0.25,
    random_state: int = 1313,
) -> tuple[pd.DataFrame, pd.DataFrame, pd.Series, pd.Series]:
    """
    Split rows into disjoint train/test partitions with matching label rates.

    Returns:
        X_train, X_test, y_train, y_test (original index labels kept)

    Raises:
        StratificationError: if a label value cannot be placed in both
            partitions
    """
    if not 0.0 < test_size < 1.0:
        raise ValueError(f"test_size must be in (0, 1), got {test_size}")
    if len(X) != len(y):
        raise ValueError(f"X has {len(X)} rows but y has {len(y)}")

    counts = _label_counts(y)
    n_classes = len(counts)
    n_test = math.ceil(test_size * len(y))
    n_train = len(y) - n_test

    if counts.min() < 2:
        raise StratificationError(
            f"Label {counts.idxmin()!r} has {counts.min()} row(s); "
            "at least 2 are needed to appear in both train and test"
        )
    if n_test < n_classes or n_train < n_classes:
        raise StratificationError(
            f"test_size={test_size} leaves train={n_train}, test={n_test} rows "
            f"for {n_classes} label values"
        )

    X_train, X_test, y_train, y_test = train_test_split(
        X,
        y,
        test_size=test_size,
        stratify=np.asarray(y),
        random_state=random_state,
        shuffle=True,
    )

    logger.info(
        f"Stratified split: train={len(X_train)}, test={len(X_test)}, "
        f"seed={random_state}"
    )
    return X_train, X_test, y_train, y_test


class FoldPlan:
    """
    A set of k disjoint validation folds over the training partition.

    Indices are positional (for .iloc). Every training row is a validation
    member in exactly one fold and a training member in the other k-1.
    """

    def __init__(self, folds: list[tuple[np.ndarray, np.ndarray]], n_rows: int, random_state: int):
        self._folds = [
            (np.asarray(train_idx, dtype=int), np.asarray(val_idx, dtype=int))
            for train_idx, val_idx in folds
        ]
        for train_idx, val_idx in self._folds:
            train_idx.setflags(write=False)
            val_idx.setflags(write=False)
        self.n_rows = n_rows
        self.random_state = random_state

    def __len__(self) -> int:
        return len(self._folds)

    def __iter__(self) -> Iterator[tuple[np.ndarray, np.ndarray]]:
        return iter(self._folds)

    def __getitem__(self, i: int) -> tuple[np.ndarray, np.ndarray]:
        return self._folds[i]

    @property
    def n_folds(self) -> int:
        return len(self._folds)

    def validation_counts(self) -> np.ndarray:
        """How many times each row is used for validation."""
        counts = np.zeros(self.n_rows, dtype=int)
        for _, val_idx in self._folds:
            counts[val_idx] += 1
        return counts

    def training_counts(self) -> np.ndarray:
        """How many times each row is used for training."""
        counts = np.zeros(self.n_rows, dtype=int)
        for train_idx, _ in self._folds:
            counts[train_idx] += 1
        return counts

    def __repr__(self) -> str:
        return f"FoldPlan(n_folds={self.n_folds}, n_rows={self.n_rows})"


def stratified_folds(
    y: pd.Series,
    n_folds: int = 10,
    random_state: int = 1313,
) -> FoldPlan:
    """
    Build a stratified k-fold resampling plan.

    Raises:
        StratificationError: if any label value has fewer rows than n_folds
    """
    if n_folds < 2:
        raise ValueError(f"n_folds must be >= 2, got {n_folds}")

    counts = _label_counts(y)
    if counts.min() < n_folds:
        raise StratificationError(
            f"Label {counts.idxmin()!r} has only {counts.min()} row(s), "
            f"fewer than n_folds={n_folds}"
        )

    y_arr = np.asarray(y)
    cv = StratifiedKFold(n_splits=n_folds, shuffle=True, random_state=random_state)
    folds = list(cv.split(np.zeros(len(y_arr)), y_arr))

    logger.info(f"Built {n_folds}-fold stratified plan over {len(y_arr)} rows")
    return FoldPlan(folds, n_rows=len(y_arr), random_state=random_state)
