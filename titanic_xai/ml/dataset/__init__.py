"""Dataset building module."""

from .builder import DatasetBuilder
from .schemas import (
    DatasetConfig,
    DatasetOutput,
    DatasetResult,
    SplitConfig,
)
from .titanic import (
    CATEGORICAL_FEATURES,
    FEATURES,
    NUMERIC_FEATURES,
    example_passenger,
    load_titanic,
    prepare_titanic,
)

__all__ = [
    "DatasetBuilder",
    "DatasetConfig",
    "DatasetOutput",
    "DatasetResult",
    "SplitConfig",
    "CATEGORICAL_FEATURES",
    "FEATURES",
    "NUMERIC_FEATURES",
    "example_passenger",
    "load_titanic",
    "prepare_titanic",
]
