"""
Contract tests for global explanations.

Tests:
- Permutation importance: unused features score zero, dominant feature
  ranks first, reproducible, raw/difference/ratio consistent
- Partial dependence: flat for unused features, categorical levels,
  zero-support points flagged, aggregate uses every row
"""

import numpy as np
import pytest

from titanic_xai.explain import interaction_profile, partial_dependence, permutation_importance
from titanic_xai.explain.explainer import set_column
from titanic_xai.explain.permutation import BASELINE, FULL_MODEL
from titanic_xai.explain.profiles import ALL_GROUP, feature_grid, grid_bins


class TestPermutationImportance:
    """Permutation importance contract."""

    def test_unused_feature_has_zero_importance(self, stub_explainer):
        """The stub ignores fare, so shuffling it changes nothing."""
        result = permutation_importance(stub_explainer, B=3)
        assert result.importance["fare"] == pytest.approx(0.0, abs=1e-12)
        assert result.importance["embarked"] == pytest.approx(0.0, abs=1e-12)

    def test_dominant_feature_ranks_first(self, stub_explainer):
        result = permutation_importance(stub_explainer, B=5)
        assert result.importance.index[0] == "gender"
        assert result.importance["gender"] > 0.0

    def test_table_layout(self, stub_explainer):
        table = permutation_importance(stub_explainer, B=2).table
        assert table["variable"].iloc[0] == FULL_MODEL
        assert table["variable"].iloc[-1] == BASELINE
        assert len(table) == len(stub_explainer.feature_names) + 2
        assert (table["label"] == "stub").all()

    def test_reproducible(self, stub_explainer):
        a = permutation_importance(stub_explainer, B=3, random_state=7)
        b = permutation_importance(stub_explainer, B=3, random_state=7, n_jobs=2)
        np.testing.assert_allclose(a.table["dropout_loss"], b.table["dropout_loss"])

    def test_repeats_recorded(self, stub_explainer):
        result = permutation_importance(stub_explainer, B=4)
        assert set(result.permutations["permutation"]) == {0, 1, 2, 3}

    def test_single_repeat(self, stub_explainer):
        result = permutation_importance(stub_explainer, B=1)
        assert (result.table["importance_std"] == 0.0).all()

    def test_importance_types_consistent(self, stub_explainer):
        raw = permutation_importance(stub_explainer, B=3, importance_type="raw")
        diff = permutation_importance(stub_explainer, B=3, importance_type="difference")
        ratio = permutation_importance(stub_explainer, B=3, importance_type="ratio")

        full = raw.table.set_index("variable").loc[FULL_MODEL, "dropout_loss"]
        assert diff.importance["gender"] == pytest.approx(raw.importance["gender"] - full)
        assert ratio.importance["fare"] == pytest.approx(1.0)

    def test_row_subsample(self, forest_explainer):
        result = permutation_importance(forest_explainer, B=2, n_samples=100)
        assert result.importance.notna().all()

    def test_selected_variables(self, stub_explainer):
        result = permutation_importance(stub_explainer, B=2, variables=["gender", "age"])
        assert set(result.importance.index) == {"gender", "age"}

    def test_invalid_arguments(self, stub_explainer):
        with pytest.raises(ValueError):
            permutation_importance(stub_explainer, B=0)
        with pytest.raises(ValueError):
            permutation_importance(stub_explainer, loss_function="hinge")
        with pytest.raises(ValueError):
            permutation_importance(stub_explainer, importance_type="log")
        with pytest.raises(ValueError):
            permutation_importance(stub_explainer, variables=["deck"])


class TestPartialDependence:
    """Partial-dependence and ICE contract."""

    def test_unused_feature_profile_is_flat(self, stub_explainer):
        result = partial_dependence(stub_explainer, variables=["fare"], grid_points=21)
        curve = result.profile("fare")["mean_prediction"].to_numpy()
        assert np.ptp(curve) == pytest.approx(0.0, abs=1e-12)

    def test_categorical_grid_is_observed_levels(self, stub_explainer):
        result = partial_dependence(stub_explainer, variables=["class"])
        values = result.profile("class")["value"].tolist()
        assert values == feature_grid(stub_explainer.data["class"])
        assert values[:3] == ["1st", "2nd", "3rd"]

    def test_numeric_grid_spans_range(self, stub_explainer):
        age = stub_explainer.data["age"]
        grid = feature_grid(age, grid_points=11, grid_type="uniform")
        assert grid[0] == pytest.approx(age.min())
        assert grid[-1] == pytest.approx(age.max())
        assert len(grid) == 11

    def test_aggregate_uses_every_row(self, stub_explainer):
        """Display sub-sampling of ICE curves never touches the aggregate."""
        result = partial_dependence(stub_explainer, variables=["age"], grid_points=5, ice_max_curves=20)

        assert len(result.display_ids) == 20
        assert result.individual_for_display()["obs_id"].nunique() == 20
        assert result.individual["obs_id"].nunique() == stub_explainer.n_rows

        profile = result.profile("age")
        frame = stub_explainer.data
        set_column(frame, "age", profile["value"].iloc[0])
        expected = stub_explainer.predict(frame).mean()
        assert profile["mean_prediction"].iloc[0] == pytest.approx(expected)

    def test_zero_support_flagged(self, stub_explainer):
        """Crew rows are all male: (female, crew) has no observations."""
        result = partial_dependence(stub_explainer, variables=["gender"], groups="class")

        crew = result.profile("gender", group="deck crew").set_index("value")
        assert crew.loc["female", "support"] == 0
        assert bool(crew.loc["female", "low_support"])
        assert not bool(crew.loc["male", "low_support"])
        assert not np.isnan(crew.loc["female", "mean_prediction"])
        assert len(result.low_support) > 0

    def test_ungrouped_support_counts_rows(self, stub_explainer):
        result = partial_dependence(stub_explainer, variables=["gender"])
        profile = result.profile("gender", group=ALL_GROUP)
        assert profile["support"].sum() == stub_explainer.n_rows
        assert not profile["low_support"].any()

    def test_numeric_group_rejected(self, stub_explainer):
        with pytest.raises(ValueError):
            partial_dependence(stub_explainer, variables=["gender"], groups="age")

    def test_unknown_variable_rejected(self, stub_explainer):
        with pytest.raises(ValueError):
            partial_dependence(stub_explainer, variables=["deck"])

    def test_grid_bins(self, stub_explainer):
        age = stub_explainer.data["age"]
        grid = feature_grid(age, grid_points=5)
        bins = grid_bins(age, grid)
        assert bins.min() >= 0
        assert bins.max() == len(grid) - 1


class TestInteractionProfile:
    """Two-variable partial dependence."""

    def test_product_grid(self, stub_explainer):
        result = interaction_profile(stub_explainer, "gender", "class")
        n_gender = len(feature_grid(stub_explainer.data["gender"]))
        n_class = len(feature_grid(stub_explainer.data["class"]))

        assert len(result) == n_gender * n_class
        female_crew = result[(result["value_x"] == "female") & (result["value_y"] == "deck crew")]
        assert bool(female_crew["low_support"].iloc[0])

    def test_same_variable_rejected(self, stub_explainer):
        with pytest.raises(ValueError):
            interaction_profile(stub_explainer, "age", "age")
