"""
ML Models module.

Supports 2 model types:
- random_forest: Random Forest (the explained model)
- logistic: Logistic Regression

All models implement unified interface:
- fit(X, y) -> self
- predict(X) -> array
- predict_proba(X) -> array
- save(path) -> None
- load(path) -> cls
"""

from .base import BaseModel, ModelMetadata
from .factory import ModelFactory, get_model, load_model
from .sklearn_models import LogisticModel, RandomForestModel

__all__ = [
    "BaseModel",
    "ModelMetadata",
    "ModelFactory",
    "get_model",
    "load_model",
    "LogisticModel",
    "RandomForestModel",
]
