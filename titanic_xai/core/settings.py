"""
Titanic XAI Settings - Pydantic Settings with .env support

All configuration is loaded from environment variables.
Use .env file for local development.
"""

from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Pipeline settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # ===== Environment =====
    ENV: Literal["dev", "prod", "test"] = "dev"
    DEBUG: bool = False
    
    # ===== Data =====
    DATA_PATH: str = "./data/titanic_imputed.csv"
    TARGET_COLUMN: str = "survived"
    ARTIFACTS_PATH: str = "./artifacts"
    
    # ===== Reproducibility =====
    RANDOM_STATE: int = 1313
    
    # ===== Split / Resampling =====
    TEST_SIZE: float = Field(default=0.25, gt=0.0, lt=1.0)
    N_FOLDS: int = Field(default=10, ge=2)
    
    # ===== Model Selection =====
    DEFAULT_MODEL_TYPE: Literal["random_forest", "logistic"] = "random_forest"
    N_ESTIMATORS: int = Field(default=500, ge=1)
    GRID_LEVELS: int = Field(default=3, ge=1)
    SEARCH_METRIC: Literal["roc_auc", "accuracy"] = "roc_auc"
    SEARCH_N_JOBS: int = -1
    
    # ===== Explanations =====
    SHAP_B: int = Field(default=25, ge=1)
    PERMUTATION_REPEATS: int = Field(default=10, ge=1)
    PERMUTATION_LOSS: Literal["one_minus_auc", "cross_entropy", "one_minus_accuracy"] = "one_minus_auc"
    PERMUTATION_TYPE: Literal["raw", "difference", "ratio"] = "difference"
    PROFILE_GRID_POINTS: int = Field(default=101, ge=2)
    PROFILE_GRID_TYPE: Literal["quantiles", "uniform"] = "quantiles"
    ICE_MAX_CURVES: int = Field(default=100, ge=1)
    ADDITIVITY_TOLERANCE: float = Field(default=1e-6, gt=0.0)
    
    # ===== Logging =====
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "text"
    
    # ===== Helper Methods =====
    
    def get_public_settings(self) -> dict:
        """Get settings that describe a run (recorded next to artifacts)."""
        return {
            "env": self.ENV,
            "random_state": self.RANDOM_STATE,
            "test_size": self.TEST_SIZE,
            "n_folds": self.N_FOLDS,
            "model_type": self.DEFAULT_MODEL_TYPE,
            "n_estimators": self.N_ESTIMATORS,
            "grid_levels": self.GRID_LEVELS,
            "search_metric": self.SEARCH_METRIC,
            "shap_b": self.SHAP_B,
            "permutation_repeats": self.PERMUTATION_REPEATS,
            "permutation_loss": self.PERMUTATION_LOSS,
            "permutation_type": self.PERMUTATION_TYPE,
            "profile_grid_points": self.PROFILE_GRID_POINTS,
            "profile_grid_type": self.PROFILE_GRID_TYPE,
        }


# Global settings instance
settings = Settings()
