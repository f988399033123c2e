"""
Shared fixtures for contract tests.

The data is synthetic but Titanic-shaped: same columns, levels and dtypes,
with survival driven by gender, class and age. Crew rows are all male, so
(female, crew) combinations have no support.
"""

import numpy as np
import pandas as pd
import pytest

from titanic_xai.explain import Explainer
from titanic_xai.ml.dataset import FEATURES, example_passenger, prepare_titanic
from titanic_xai.ml.dataset.titanic import CLASS_LEVELS, EMBARKED_LEVELS
from titanic_xai.ml.models import RandomForestModel
from titanic_xai.ml.split import stratified_split

CLASS_EFFECT = {
    "1st": 1.2,
    "2nd": 0.4,
    "3rd": -0.6,
    "deck crew": -0.8,
    "engineering crew": -1.0,
    "restaurant staff": -1.2,
    "victualling crew": -0.9,
}
CLASS_FARE = {"1st": 60.0, "2nd": 20.0, "3rd": 8.0}


def make_titanic_frame(n: int = 600, seed: int = 0) -> pd.DataFrame:
    """Synthetic imputed Titanic table with a known survival mechanism."""
    rng = np.random.default_rng(seed)

    cls = rng.choice(CLASS_LEVELS, size=n, p=[0.15, 0.15, 0.35, 0.05, 0.12, 0.03, 0.15])
    crew = ~np.isin(cls, ["1st", "2nd", "3rd"])
    gender = np.where(crew, "male", rng.choice(["female", "male"], size=n, p=[0.45, 0.55]))
    age = np.round(rng.uniform(1.0, 70.0, size=n), 1)
    fare = np.array([CLASS_FARE.get(c, 0.0) for c in cls]) * rng.uniform(0.7, 1.3, size=n)
    embarked = rng.choice(EMBARKED_LEVELS, size=n, p=[0.05, 0.2, 0.1, 0.65])
    sibsp = np.minimum(rng.poisson(0.5, size=n), 5)
    parch = np.minimum(rng.poisson(0.4, size=n), 5)

    logit = (
        -1.0
        + 2.5 * (gender == "female")
        + np.array([CLASS_EFFECT[c] for c in cls])
        - 0.02 * (age - 30.0)
    )
    survived = (rng.random(n) < 1.0 / (1.0 + np.exp(-logit))).astype(int)

    return pd.DataFrame({
        "gender": gender,
        "age": age,
        "class": cls,
        "embarked": embarked,
        "fare": np.round(fare, 2),
        "sibsp": sibsp,
        "parch": parch,
        "survived": survived,
    })


class StubSurvivalModel:
    """
    Fixed-formula model with a gender x age interaction.

    Uses gender, class and age only; fare, embarked, sibsp and parch have
    no effect on its output.
    """

    classes_ = np.array([0, 1])

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        female = np.asarray(X["gender"] == "female", dtype=float)
        first = np.asarray(X["class"] == "1st", dtype=float)
        child = np.asarray(X["age"] < 18, dtype=float)
        age = np.asarray(X["age"], dtype=float)
        logit = -1.0 + 2.0 * female + 1.5 * first - 0.03 * (age - 30.0) + 1.0 * female * child
        p = 1.0 / (1.0 + np.exp(-logit))
        return np.column_stack([1.0 - p, p])


@pytest.fixture(scope="session")
def titanic_raw():
    """Raw (untyped) synthetic frame, as read from CSV."""
    return make_titanic_frame()


@pytest.fixture(scope="session")
def titanic_df(titanic_raw):
    """Typed synthetic frame."""
    return prepare_titanic(titanic_raw)


@pytest.fixture(scope="session")
def titanic_split(titanic_df):
    """X_train, X_test, y_train, y_test."""
    return stratified_split(titanic_df[FEATURES], titanic_df["survived"], test_size=0.25, random_state=1313)


@pytest.fixture(scope="session")
def fitted_forest(titanic_split):
    """Small random forest fitted on the training partition."""
    X_train, _, y_train, _ = titanic_split
    model = RandomForestModel(
        n_estimators=30, max_features=3, min_samples_leaf=5, random_state=1313, n_jobs=1
    )
    return model.fit(X_train, y_train)


@pytest.fixture(scope="session")
def forest_explainer(fitted_forest, titanic_split):
    X_train, _, y_train, _ = titanic_split
    return Explainer(fitted_forest, X_train, y_train, label="random_forest")


@pytest.fixture(scope="session")
def stub_explainer(titanic_split):
    X_train, _, y_train, _ = titanic_split
    return Explainer(StubSurvivalModel(), X_train, y_train, label="stub")


@pytest.fixture
def passenger():
    """The 16 year old 3rd class girl from Southampton."""
    return example_passenger()
