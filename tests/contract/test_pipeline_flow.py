"""
Contract tests for the end-to-end pipeline.

Tests:
- Training service: search, final fit on the full training partition,
  held-out metrics, artifacts
- Explain service: report tables and files
- Settings defaults and environment overrides
- Run id propagation in logs
"""

import json
import logging

import pytest

from titanic_xai.core.logging import (
    StructuredFormatter,
    log_with_context,
    run_context,
    run_id_ctx,
)
from titanic_xai.core.settings import Settings
from titanic_xai.ml.models import load_model
from titanic_xai.services.explain_service import ExplainRequest, ExplainService
from titanic_xai.services.training_service import TrainingService, TrainRequest


@pytest.fixture(scope="module")
def train_output(titanic_raw):
    request = TrainRequest(
        n_folds=3,
        n_estimators=15,
        grid_levels=2,
        n_jobs=1,
        random_state=1313,
    )
    return TrainingService().train(request, frame=titanic_raw)


@pytest.fixture(scope="module")
def small_explain_request():
    return ExplainRequest(
        shap_b=5,
        permutation_repeats=2,
        profile_variables=["age", "gender"],
        profile_groups="class",
        profile_grid_points=11,
        ice_max_curves=10,
        tree_shap_max_background=50,
    )


class TestTrainingService:
    """Training service contract."""

    def test_final_model_fit_on_full_training_partition(self, train_output):
        result = train_output.result
        assert train_output.model.is_fitted
        assert result.train_samples == len(train_output.dataset.X_train)
        assert train_output.model.metadata.train_samples == result.train_samples

    def test_best_params_applied(self, train_output):
        result = train_output.result
        assert result.search_candidates == 4
        for key, value in result.search_best_params.items():
            assert train_output.model.params[key] == value
        assert train_output.model.params["n_estimators"] == 15

    def test_held_out_metrics(self, train_output):
        metrics = train_output.result.metrics
        assert set(metrics) >= {"accuracy", "auc", "f1"}
        assert 0.5 < metrics["auc"] <= 1.0

    def test_held_out_metrics_logged_with_context(self, titanic_raw, caplog):
        request = TrainRequest(n_folds=3, n_estimators=5, search_mode="none", n_jobs=1)
        with caplog.at_level(logging.INFO, logger="titanic_xai"):
            TrainingService().train(request, frame=titanic_raw)

        records = [r for r in caplog.records if r.getMessage().startswith("Held-out metrics")]
        assert len(records) == 1
        assert "auc" in records[0].extra_data

    def test_run_metadata(self, train_output):
        metadata = train_output.result.run_metadata
        assert metadata["data_hash"] == train_output.dataset.metadata.data_hash
        assert "config_hash" in metadata

    def test_save_model(self, titanic_raw, tmp_path):
        service = TrainingService(Settings(ARTIFACTS_PATH=str(tmp_path)))
        request = TrainRequest(
            n_folds=3, n_estimators=5, search_mode="none", n_jobs=1, save_model=True
        )
        output = service.train(request, frame=titanic_raw)

        assert output.result.model_path is not None
        loaded = load_model("random_forest", output.result.model_path)
        assert loaded.feature_names == output.model.feature_names

    def test_request_from_settings(self):
        request = TrainRequest.from_settings(Settings(), n_folds=5)
        assert request.n_folds == 5
        assert request.random_state == 1313
        assert request.model_type == "random_forest"

    def test_extra_request_fields_rejected(self):
        with pytest.raises(ValueError):
            TrainRequest(learning_rate=0.1)

    def test_stratification_error_propagates(self, titanic_raw):
        tiny = titanic_raw.head(20)
        with pytest.raises(ValueError):
            TrainingService().train(TrainRequest(n_folds=15, n_jobs=1), frame=tiny)


class TestExplainService:
    """Explain service contract."""

    def test_full_report(self, train_output, small_explain_request, passenger, tmp_path):
        service = ExplainService()
        explainer = service.build_explainer(train_output, small_explain_request)
        report = service.explain(explainer, passenger, small_explain_request)

        frames = report.to_frames()
        assert set(frames) >= {
            "break_down", "shap", "shap_paths", "tree_shap",
            "permutation_importance", "partial_dependence", "ice",
        }
        assert report.local.prediction == pytest.approx(explainer.predict(passenger)[0])

        written = report.save(tmp_path)
        assert (tmp_path / "break_down.csv").exists()
        assert (tmp_path / "summary.json").exists()
        assert len(written) == len(frames) + 1

        with open(tmp_path / "summary.json") as f:
            summary = json.load(f)
        assert summary["shap_b"] == 5
        assert summary["low_support_points"] > 0

    def test_explainer_on_held_out_partition(self, train_output):
        service = ExplainService()
        explainer = service.build_explainer(train_output, ExplainRequest(reference="test"))
        assert explainer.n_rows == len(train_output.dataset.X_test)

    def test_global_only_report(self, train_output, small_explain_request):
        service = ExplainService()
        explainer = service.build_explainer(train_output, small_explain_request)
        report = service.explain(explainer, request=small_explain_request)
        assert report.local is None
        assert "break_down" not in report.to_frames()
        assert "interaction_profile" not in report.to_frames()

    def test_interaction_profile_in_report(self, train_output, small_explain_request, tmp_path):
        """A requested variable pair adds a joint profile table to the report."""
        request = small_explain_request.model_copy(
            update={"interaction": ("gender", "class"), "interaction_grid_points": 5}
        )
        service = ExplainService()
        explainer = service.build_explainer(train_output, request)
        report = service.explain(explainer, request=request)

        table = report.to_frames()["interaction_profile"]
        assert set(table["variable_x"]) == {"gender"}
        assert set(table["variable_y"]) == {"class"}
        female_crew = table[(table["value_x"] == "female") & (table["value_y"] == "deck crew")]
        assert bool(female_crew["low_support"].iloc[0])

        report.save(tmp_path)
        assert (tmp_path / "interaction_profile.csv").exists()

    def test_default_background_is_full_reference(self):
        assert ExplainRequest().tree_shap_max_background is None


class TestSettings:
    """Settings defaults and overrides."""

    def test_defaults(self):
        config = Settings()
        assert config.RANDOM_STATE == 1313
        assert config.N_FOLDS == 10
        assert config.SHAP_B == 25
        assert config.TEST_SIZE == 0.25

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SHAP_B", "50")
        monkeypatch.setenv("N_FOLDS", "5")
        config = Settings()
        assert config.SHAP_B == 50
        assert config.N_FOLDS == 5

    def test_invalid_value_rejected(self, monkeypatch):
        monkeypatch.setenv("TEST_SIZE", "1.5")
        with pytest.raises(ValueError):
            Settings()

    def test_public_settings(self):
        public = Settings().get_public_settings()
        assert public["shap_b"] == 25


class TestLogging:
    """Run id propagation."""

    def test_run_context_binds_run_id(self):
        with run_context("abc123") as run_id:
            assert run_id == "abc123"
            assert run_id_ctx.get() == "abc123"
        assert run_id_ctx.get() == "-"

    def test_structured_formatter_includes_run_id(self):
        record = logging.LogRecord("titanic_xai", logging.INFO, __file__, 1, "hello", None, None)
        with run_context("run42"):
            payload = json.loads(StructuredFormatter().format(record))
        assert payload["run_id"] == "run42"
        assert payload["message"] == "hello"

    def test_log_with_context_fields_in_json(self, caplog):
        """Keyword context is attached to the record and rendered as JSON fields."""
        logger = logging.getLogger("titanic_xai.tests")
        with caplog.at_level(logging.INFO, logger="titanic_xai.tests"):
            log_with_context(logger, logging.INFO, "metrics", auc=0.9, accuracy=0.8)

        record = caplog.records[-1]
        assert record.extra_data == {"auc": 0.9, "accuracy": 0.8}
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["auc"] == 0.9
        assert payload["message"] == "metrics"
