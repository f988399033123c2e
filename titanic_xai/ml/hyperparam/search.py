"""
Hyperparameter Search Engine

Supports:
- none: No search, evaluate the base params only
- grid: Regular grid, every candidate scored on every fold

Every (candidate, fold) evaluation is independent: it receives its own
copy of the fold rows, builds its own model and returns one score.
The only shared step is the final gather of scores per candidate.
"""

import itertools
import logging
import time
from typing import Any, Literal

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from pydantic import BaseModel, ConfigDict, Field

from titanic_xai.ml.metrics import get_scorer
from titanic_xai.ml.models import ModelFactory
from titanic_xai.ml.split import FoldPlan
from .spaces import generate_grid, get_search_space

logger = logging.getLogger(__name__)


class SearchConfig(BaseModel):
    """Configuration for hyperparameter search."""
    
    model_config = ConfigDict(extra="forbid")
    
    mode: Literal["none", "grid"] = "grid"
    metric: Literal["roc_auc", "accuracy"] = "roc_auc"
    levels: int = Field(default=3, ge=1, le=20)
    n_jobs: int = -1


class CandidateResult(BaseModel):
    """Cross-validated result of one grid candidate."""
    
    candidate_index: int
    params: dict[str, Any]
    fold_scores: list[float]
    mean_score: float
    std_score: float


class SearchResult(BaseModel):
    """
    Result of hyperparameter search.

    The winner is the candidate with the highest mean fold score; ties go
    to the candidate that comes first in grid order.
    """
    
    best_index: int
    best_params: dict[str, Any]
    best_score: float
    n_candidates: int
    n_folds: int
    total_time_seconds: float
    candidates: list[CandidateResult] = []
    
    # Search config used
    mode: str
    metric: str


def select_best(mean_scores: list[float] | np.ndarray) -> int:
    """Index of the maximum mean score, first occurrence on ties."""
    scores = np.asarray(mean_scores, dtype=float)
    if scores.size == 0:
        raise ValueError("No candidates to select from")
    if np.isnan(scores).any():
        raise ValueError(f"Candidate scores contain NaN: {scores.tolist()}")
    return int(np.argmax(scores))


def _evaluate_fold(
    model_type: str,
    params: dict[str, Any],
    X_fit: pd.DataFrame,
    y_fit: pd.Series,
    X_val: pd.DataFrame,
    y_val: pd.Series,
    metric: str,
) -> float:
    """Train on the fold's training rows and score its validation rows."""
    model = ModelFactory.create(model_type, **params)
    model.fit(X_fit, y_fit)
    positive = list(model.classes_).index(1)
    proba = model.predict_proba(X_val)[:, positive]
    return get_scorer(metric)(y_val, proba)


class GridSearch:
    """
    Cross-validated grid search engine.
    
    Usage:
        search = GridSearch(
            model_type="random_forest",
            X=X_train, y=y_train,
            folds=stratified_folds(y_train, n_folds=10),
            base_params={"n_estimators": 500, "n_jobs": 1},
        )
        result = search.run(SearchConfig(mode="grid", levels=3))
        best_params = result.best_params
    """
    
    def __init__(
        self,
        model_type: str,
        X: pd.DataFrame,
        y: pd.Series,
        folds: FoldPlan,
        base_params: dict[str, Any] | None = None,
        search_space: dict[str, tuple] | None = None,
    ):
        if len(X) != folds.n_rows:
            raise ValueError(
                f"Fold plan covers {folds.n_rows} rows but X has {len(X)}"
            )
        self.model_type = model_type
        self.X = X
        self.y = y
        self.folds = folds
        self.base_params = base_params or {}
        self.search_space = search_space or get_search_space(model_type)

        accepted = ModelFactory.accepted_params(model_type)
        unknown = sorted((set(self.base_params) | set(self.search_space)) - set(accepted))
        if unknown:
            raise ValueError(f"{model_type} does not accept {unknown}")
    
    def candidates(self, config: SearchConfig) -> list[dict[str, Any]]:
        """Candidate parameter settings in grid order."""
        if config.mode == "none":
            return [{}]
        elif config.mode == "grid":
            return generate_grid(self.search_space, levels=config.levels)
        else:
            raise ValueError(f"Unknown search mode: {config.mode}")
    
    def run(self, config: SearchConfig) -> SearchResult:
        """
        Run hyperparameter search.
        
        Args:
            config: Search configuration
            
        Returns:
            SearchResult with best params and every candidate's fold scores
        """
        start_time = time.time()
        grid = self.candidates(config)
        n_folds = self.folds.n_folds
        
        logger.info(
            f"{config.mode} search: {len(grid)} candidates x {n_folds} folds, "
            f"metric={config.metric}, n_jobs={config.n_jobs}"
        )
        
        tasks = list(itertools.product(range(len(grid)), range(n_folds)))
        scores = Parallel(n_jobs=config.n_jobs)(
            delayed(_evaluate_fold)(
                self.model_type,
                {**self.base_params, **grid[c]},
                self.X.iloc[self.folds[f][0]],
                self.y.iloc[self.folds[f][0]],
                self.X.iloc[self.folds[f][1]],
                self.y.iloc[self.folds[f][1]],
                config.metric,
            )
            for c, f in tasks
        )
        
        # Gather: one row per candidate, one column per fold
        score_matrix = np.empty((len(grid), n_folds))
        for (c, f), score in zip(tasks, scores):
            score_matrix[c, f] = score
        
        means = score_matrix.mean(axis=1)
        best_index = select_best(means)
        
        candidates = []
        for c, params in enumerate(grid):
            candidates.append(CandidateResult(
                candidate_index=c,
                params=params,
                fold_scores=score_matrix[c].tolist(),
                mean_score=float(means[c]),
                std_score=float(score_matrix[c].std()),
            ))
            logger.debug(f"Candidate {c} {params}: {config.metric}={means[c]:.4f}")
        
        logger.info(
            f"Search complete: best {config.metric}={means[best_index]:.4f}, "
            f"params={grid[best_index]}"
        )
        
        return SearchResult(
            best_index=best_index,
            best_params=grid[best_index],
            best_score=float(means[best_index]),
            n_candidates=len(grid),
            n_folds=n_folds,
            total_time_seconds=time.time() - start_time,
            candidates=candidates,
            mode=config.mode,
            metric=config.metric,
        )
