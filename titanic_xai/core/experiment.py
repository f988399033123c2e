"""
Reproducibility Metadata

Captures what is needed to reproduce a run bit-for-bit:
- Data hash
- Config hash (including every seed)
- Environment info
"""

import hashlib
import importlib.metadata
import json
import logging
import sys
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

TRACKED_PACKAGES = [
    "numpy",
    "pandas",
    "scikit-learn",
    "joblib",
    "shap",
    "pydantic",
]


def compute_data_hash(df: pd.DataFrame) -> str:
    """
    Compute a hash of a data frame's full content.

    Row order, column order and dtypes all change the hash.
    """
    hasher = hashlib.sha256()
    hasher.update(f"shape:{df.shape}".encode())
    hasher.update(f"cols:{df.columns.tolist()}".encode())
    hasher.update(f"dtypes:{[str(t) for t in df.dtypes]}".encode())
    row_hashes = pd.util.hash_pandas_object(df, index=True).values
    hasher.update(row_hashes.tobytes())
    return hasher.hexdigest()[:16]


def compute_config_hash(config: dict[str, Any]) -> str:
    """Compute a hash of a run config (keys sorted for stability)."""
    config_str = json.dumps(config, sort_keys=True, default=str)
    return hashlib.sha256(config_str.encode()).hexdigest()[:16]


def get_environment_info() -> dict[str, Any]:
    """Get Python version and key package versions."""
    result = {
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "packages": {},
    }

    for pkg in TRACKED_PACKAGES:
        try:
            result["packages"][pkg] = importlib.metadata.version(pkg)
        except importlib.metadata.PackageNotFoundError:
            logger.debug(f"Package not installed: {pkg}")

    return result


def collect_run_metadata(
    config: dict[str, Any],
    df: pd.DataFrame | None = None,
) -> dict[str, Any]:
    """
    Collect all reproducibility metadata in one call.

    Returns:
        Dict with config_hash, python_version, packages and (if df is
        given) data_hash
    """
    env_info = get_environment_info()

    metadata = {
        "config_hash": compute_config_hash(config),
        "python_version": env_info["python_version"],
        "packages": env_info["packages"],
    }

    if df is not None:
        metadata["data_hash"] = compute_data_hash(df)

    return metadata
