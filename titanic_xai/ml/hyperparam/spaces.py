"""
Search Spaces for Hyperparameter Optimization

Defines parameter ranges for each model type and expands them into a
regular grid.
"""

import itertools
from typing import Any

import numpy as np

# Search space definitions
# Format: {param_name: (type, *args)}
# Types: int, float, log_float, categorical

SEARCH_SPACES: dict[str, dict[str, tuple]] = {
    "random_forest": {
        # Features tried per split (of the 7 Titanic features)
        "max_features": ("int", 1, 7),
        "min_samples_leaf": ("int", 2, 40),
    },
    "logistic": {
        "C": ("log_float", 0.01, 100.0),
    },
}


def get_search_space(model_type: str) -> dict[str, tuple]:
    """
    Get the search space for a model type.
    
    Args:
        model_type: One of random_forest, logistic
        
    Returns:
        Dict mapping param names to (type, *args) tuples
    """
    if model_type not in SEARCH_SPACES:
        raise ValueError(f"No search space defined for: {model_type}")
    return SEARCH_SPACES[model_type]


def param_values(param_def: tuple, levels: int) -> list[Any]:
    """
    Evenly spaced values for one parameter range.

    Integer ranges are rounded and de-duplicated, so a narrow range can
    yield fewer than `levels` values. A single level takes the midpoint.
    """
    param_type = param_def[0]
    args = param_def[1:]

    if param_type == "categorical":
        return list(args[0])

    low, high = args
    if levels == 1:
        points = np.array([(low + high) / 2]) if param_type != "log_float" else np.array([np.sqrt(low * high)])
    elif param_type == "log_float":
        points = np.geomspace(low, high, levels)
    else:
        points = np.linspace(low, high, levels)

    if param_type == "int":
        values = []
        for v in np.rint(points).astype(int):
            if int(v) not in values:
                values.append(int(v))
        return values
    if param_type in ("float", "log_float"):
        return [float(v) for v in points]

    raise ValueError(f"Unknown param type: {param_type}")


def generate_grid(space: dict[str, tuple], levels: int = 3) -> list[dict[str, Any]]:
    """
    Generate a regular grid of parameter combinations.

    Order is deterministic: itertools.product over the space's keys in
    definition order, so the last parameter varies fastest.
    """
    if levels < 1:
        raise ValueError(f"levels must be >= 1, got {levels}")

    keys = list(space.keys())
    values = [param_values(space[k], levels) for k in keys]

    return [dict(zip(keys, combo)) for combo in itertools.product(*values)]
