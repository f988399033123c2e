"""
Contract tests for model selection.

Tests:
- Regular grid order and values
- Winner has the best mean score; ties go to the first candidate
- Search is deterministic and independent of n_jobs
- Final model is frozen and persists
"""

import numpy as np
import pytest

from titanic_xai.ml.hyperparam import (
    SEARCH_SPACES,
    GridSearch,
    SearchConfig,
    generate_grid,
    select_best,
)
from titanic_xai.ml.hyperparam.spaces import param_values
from titanic_xai.ml.models import ModelFactory, RandomForestModel, get_model, load_model
from titanic_xai.ml.split import stratified_folds

SMALL_FOREST = {"n_estimators": 10, "n_jobs": 1, "random_state": 1313}


@pytest.fixture(scope="module")
def small_search(titanic_split):
    X_train, _, y_train, _ = titanic_split
    folds = stratified_folds(y_train, n_folds=3, random_state=1313)
    return GridSearch(
        model_type="random_forest",
        X=X_train,
        y=y_train,
        folds=folds,
        base_params=SMALL_FOREST,
    )


class TestGrid:
    """Regular grid construction."""

    def test_random_forest_grid(self):
        """3 levels per range, last parameter varying fastest."""
        grid = generate_grid(SEARCH_SPACES["random_forest"], levels=3)
        assert len(grid) == 9
        assert grid[0] == {"max_features": 1, "min_samples_leaf": 2}
        assert grid[1] == {"max_features": 1, "min_samples_leaf": 21}
        assert sorted({g["max_features"] for g in grid}) == [1, 4, 7]
        assert sorted({g["min_samples_leaf"] for g in grid}) == [2, 21, 40]

    def test_int_values_deduplicated(self):
        assert param_values(("int", 1, 2), levels=5) == [1, 2]

    def test_log_float_values(self):
        values = param_values(("log_float", 0.01, 100.0), levels=5)
        assert values == pytest.approx([0.01, 0.1, 1.0, 10.0, 100.0])

    def test_invalid_levels_raises(self):
        with pytest.raises(ValueError):
            generate_grid(SEARCH_SPACES["random_forest"], levels=0)


class TestSelectBest:
    """Winner selection."""

    def test_max_wins(self):
        assert select_best([0.7, 0.9, 0.8]) == 1

    def test_tie_goes_to_first_in_grid_order(self):
        assert select_best([0.8, 0.9, 0.9, 0.9]) == 1

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            select_best([])

    def test_nan_raises(self):
        with pytest.raises(ValueError):
            select_best([0.8, np.nan])


class TestGridSearch:
    """Cross-validated grid search."""

    def test_best_is_maximum(self, small_search):
        result = small_search.run(SearchConfig(mode="grid", levels=2, n_jobs=1))
        means = [c.mean_score for c in result.candidates]

        assert result.n_candidates == 4
        assert result.n_folds == 3
        assert result.best_score == max(means)
        assert all(result.best_score >= m for m in means)
        assert result.best_params == result.candidates[result.best_index].params

    def test_every_candidate_scored_on_every_fold(self, small_search):
        result = small_search.run(SearchConfig(mode="grid", levels=2, n_jobs=1))
        for candidate in result.candidates:
            assert len(candidate.fold_scores) == 3
            assert all(0.0 <= s <= 1.0 for s in candidate.fold_scores)

    def test_parallel_matches_sequential(self, small_search):
        """Same seeds give identical fold scores for any n_jobs."""
        sequential = small_search.run(SearchConfig(mode="grid", levels=2, n_jobs=1))
        parallel = small_search.run(SearchConfig(mode="grid", levels=2, n_jobs=2))

        assert sequential.best_index == parallel.best_index
        for a, b in zip(sequential.candidates, parallel.candidates):
            assert a.fold_scores == b.fold_scores

    def test_mode_none_single_candidate(self, small_search):
        result = small_search.run(SearchConfig(mode="none", n_jobs=1))
        assert result.n_candidates == 1
        assert result.best_params == {}

    def test_accuracy_metric(self, small_search):
        result = small_search.run(SearchConfig(mode="grid", levels=1, metric="accuracy", n_jobs=1))
        assert result.metric == "accuracy"
        assert 0.0 <= result.best_score <= 1.0

    def test_fold_plan_must_match_rows(self, titanic_split):
        X_train, _, y_train, _ = titanic_split
        folds = stratified_folds(y_train.iloc[:100], n_folds=3)
        with pytest.raises(ValueError):
            GridSearch("random_forest", X_train, y_train, folds)

    def test_search_space_checked_against_model(self, titanic_split):
        X_train, _, y_train, _ = titanic_split
        folds = stratified_folds(y_train, n_folds=3)
        with pytest.raises(ValueError, match="does not accept"):
            GridSearch("logistic", X_train, y_train, folds, search_space={"max_features": ("int", 1, 7)})

    def test_unknown_metric_rejected(self):
        with pytest.raises(ValueError):
            SearchConfig(metric="f2")


class TestModels:
    """Model wrappers and persistence."""

    def test_factory_lists_models(self):
        assert set(ModelFactory.list_models()) >= {"random_forest", "logistic"}

    def test_unknown_model_raises(self):
        with pytest.raises(ValueError):
            get_model("xgboost")

    def test_unknown_param_raises(self):
        with pytest.raises(ValueError, match="does not accept"):
            get_model("random_forest", max_depth=3)

    def test_accepted_params(self):
        assert ModelFactory.accepted_params("logistic") == ["C", "max_iter", "random_state"]

    def test_fitted_model_is_frozen(self, titanic_split):
        X_train, _, y_train, _ = titanic_split
        model = get_model("random_forest", **SMALL_FOREST).fit(X_train, y_train)
        with pytest.raises(RuntimeError):
            model.fit(X_train, y_train)

    def test_ordinal_encoding_keeps_feature_names(self, fitted_forest, titanic_split):
        X_train, _, _, _ = titanic_split
        encoded = fitted_forest.transform_features(X_train.head())
        assert sorted(encoded.columns) == sorted(X_train.columns)
        assert set(fitted_forest.get_feature_importance()) == set(X_train.columns)

    def test_save_load_roundtrip(self, fitted_forest, titanic_split, tmp_path):
        """A loaded model predicts exactly what the saved one did."""
        _, X_test, _, _ = titanic_split
        fitted_forest.set_metadata(
            categorical_features=["gender", "class", "embarked"],
            train_samples=450,
            test_samples=150,
            random_state=1313,
        )
        fitted_forest.save(tmp_path / "rf")

        loaded = load_model("random_forest", tmp_path / "rf")
        assert isinstance(loaded, RandomForestModel)
        assert loaded.feature_names == fitted_forest.feature_names
        assert loaded.metadata.random_state == 1313
        np.testing.assert_array_equal(
            loaded.predict_proba(X_test), fitted_forest.predict_proba(X_test)
        )

    def test_unfitted_predict_raises(self, titanic_split):
        _, X_test, _, _ = titanic_split
        with pytest.raises(ValueError):
            get_model("logistic").predict_proba(X_test)
