"""
Model Factory

Maps model type names to model classes. Parameter names are checked
against the model constructor before anything is built.
"""

import inspect
import logging
from typing import Type

from .base import BaseModel
from .sklearn_models import LogisticModel, RandomForestModel

logger = logging.getLogger(__name__)


class ModelFactory:
    """
    Registry of model classes by type name.

    Usage:
        model = ModelFactory.create("random_forest", max_features=2, min_samples_leaf=5)
        ModelFactory.accepted_params("logistic")  # ['C', 'max_iter', 'random_state']
    """

    _models: dict[str, Type[BaseModel]] = {}

    @classmethod
    def register(cls, model_class: Type[BaseModel]) -> Type[BaseModel]:
        """Register a model class under its `model_type` (usable as a decorator)."""
        cls._models[model_class.model_type] = model_class
        logger.debug(f"Registered {model_class.__name__} as '{model_class.model_type}'")
        return model_class

    @classmethod
    def get_class(cls, model_type: str) -> Type[BaseModel]:
        """
        Raises:
            ValueError: unknown model type
        """
        try:
            return cls._models[model_type]
        except KeyError:
            raise ValueError(
                f"Unknown model type: {model_type}. Available: {sorted(cls._models)}"
            ) from None

    @classmethod
    def accepted_params(cls, model_type: str) -> list[str]:
        """Constructor parameters of a model type."""
        signature = inspect.signature(cls.get_class(model_type).__init__)
        return [name for name in signature.parameters if name != "self"]

    @classmethod
    def create(cls, model_type: str, **params) -> BaseModel:
        """
        Build an unfitted model.

        Raises:
            ValueError: unknown model type or unknown parameter names
        """
        accepted = cls.accepted_params(model_type)
        unknown = sorted(set(params) - set(accepted))
        if unknown:
            raise ValueError(
                f"{model_type} does not accept {unknown}; valid parameters: {accepted}"
            )
        return cls.get_class(model_type)(**params)

    @classmethod
    def list_models(cls) -> list[str]:
        return sorted(cls._models)


ModelFactory.register(RandomForestModel)
ModelFactory.register(LogisticModel)


def get_model(model_type: str, **params) -> BaseModel:
    """Shorthand for ModelFactory.create."""
    return ModelFactory.create(model_type, **params)


def load_model(model_type: str, path) -> BaseModel:
    """Load a saved model of the given type."""
    return ModelFactory.get_class(model_type).load(path)
