"""
Titanic Dataset Schema

The imputed Titanic passenger/crew table. Missing values are filled
upstream; this module only validates and types the columns.
"""

import logging
from pathlib import Path

import pandas as pd

logger = logging.getLogger(__name__)

TARGET = "survived"

GENDER_LEVELS = ["female", "male"]
CLASS_LEVELS = [
    "1st",
    "2nd",
    "3rd",
    "deck crew",
    "engineering crew",
    "restaurant staff",
    "victualling crew",
]
EMBARKED_LEVELS = ["Belfast", "Cherbourg", "Queenstown", "Southampton"]

CATEGORICAL_FEATURES: dict[str, list[str]] = {
    "gender": GENDER_LEVELS,
    "class": CLASS_LEVELS,
    "embarked": EMBARKED_LEVELS,
}
NUMERIC_FEATURES = ["age", "fare", "sibsp", "parch"]

# Column order of the source table
FEATURES = ["gender", "age", "class", "embarked", "fare", "sibsp", "parch"]


def prepare_titanic(df: pd.DataFrame, target: str = TARGET) -> pd.DataFrame:
    """
    Validate and type a raw Titanic frame.

    - categorical columns get a fixed-level `category` dtype
    - numeric columns become float
    - the label becomes a Categorical with categories [0, 1]

    Raises:
        ValueError: missing columns, missing values or unknown levels
    """
    required = FEATURES + [target]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Titanic data is missing columns: {missing}")

    df = df[required].copy()

    na_counts = df.isna().sum()
    if na_counts.any():
        raise ValueError(
            "Titanic data must be imputed before loading; missing values in "
            f"{na_counts[na_counts > 0].to_dict()}"
        )

    for col, levels in CATEGORICAL_FEATURES.items():
        values = df[col].astype(str)
        unknown = values[~values.isin(levels)].unique().tolist()
        if unknown:
            raise ValueError(f"Unknown levels in '{col}': {unknown}")
        df[col] = values.astype(pd.CategoricalDtype(levels))

    for col in NUMERIC_FEATURES:
        df[col] = pd.to_numeric(df[col]).astype(float)

    labels = pd.to_numeric(df[target])
    bad = sorted(set(labels.unique()) - {0, 1})
    if bad:
        raise ValueError(f"Label '{target}' must be 0/1, found {bad}")
    df[target] = pd.Categorical(labels.astype(int), categories=[0, 1])

    return df


def load_titanic(path: str | Path, target: str = TARGET) -> pd.DataFrame:
    """Load the imputed Titanic CSV and type its columns."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Titanic data not found: {path}")

    df = pd.read_csv(path)
    logger.info(f"Loaded {len(df)} rows from {path}")
    return prepare_titanic(df, target=target)


def example_passenger() -> pd.DataFrame:
    """
    One-row frame for a 16 year old girl travelling 3rd class from
    Southampton on a 7.13 ticket, alone.
    """
    row = pd.DataFrame(
        {
            "gender": ["female"],
            "age": [16.0],
            "class": ["3rd"],
            "embarked": ["Southampton"],
            "fare": [7.13],
            "sibsp": [0.0],
            "parch": [0.0],
        },
        index=["example"],
    )
    for col, levels in CATEGORICAL_FEATURES.items():
        row[col] = row[col].astype(pd.CategoricalDtype(levels))
    return row
