"""
Scikit-learn Model Implementations

Provides RandomForest and LogisticRegression wrappers. Categorical
columns (pandas `category` dtype) are encoded inside the pipeline, so
both models take the raw Titanic feature frame.
"""

import pandas as pd
from sklearn.compose import ColumnTransformer, make_column_selector
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder, OrdinalEncoder, StandardScaler

from .base import BaseModel

select_categorical = make_column_selector(dtype_include="category")
select_numeric = make_column_selector(dtype_include="number")


class RandomForestModel(BaseModel):
    """
    Random Forest with ordinal-encoded categoricals.

    Ordinal encoding keeps one column per original feature, so
    `max_features` is the number of original features tried per split.
    """
    
    model_type = "random_forest"
    
    def __init__(
        self,
        n_estimators: int = 500,
        max_features: int = 3,
        min_samples_leaf: int = 1,
        random_state: int = 1313,
        n_jobs: int = -1,
    ):
        super().__init__(
            n_estimators=n_estimators,
            max_features=max_features,
            min_samples_leaf=min_samples_leaf,
            random_state=random_state,
            n_jobs=n_jobs,
        )
    
    def build_pipeline(self) -> Pipeline:
        encoder = ColumnTransformer(
            [(
                "cat",
                OrdinalEncoder(handle_unknown="use_encoded_value", unknown_value=-1),
                select_categorical,
            )],
            remainder="passthrough",
            verbose_feature_names_out=False,
        )
        return Pipeline([
            ("encoder", encoder),
            ("clf", RandomForestClassifier(
                n_estimators=self.params["n_estimators"],
                max_features=self.params["max_features"],
                min_samples_leaf=self.params["min_samples_leaf"],
                random_state=self.params["random_state"],
                n_jobs=self.params["n_jobs"],
            )),
        ])
    
    def transform_features(self, X: pd.DataFrame) -> pd.DataFrame:
        """Encoded feature frame as seen by the forest (original column names)."""
        self._check_fitted()
        encoder = self.model.named_steps["encoder"]
        return pd.DataFrame(
            encoder.transform(X),
            columns=encoder.get_feature_names_out(),
            index=X.index,
        )
    
    def get_feature_importance(self) -> dict[str, float]:
        """Impurity-based importance from the trained forest."""
        self._check_fitted()
        encoder = self.model.named_steps["encoder"]
        clf = self.model.named_steps["clf"]
        
        return dict(sorted(
            zip(encoder.get_feature_names_out(), clf.feature_importances_),
            key=lambda x: x[1],
            reverse=True
        ))


class LogisticModel(BaseModel):
    """Logistic Regression with one-hot categoricals and scaled numerics."""
    
    model_type = "logistic"
    
    def __init__(
        self,
        C: float = 1.0,
        max_iter: int = 1000,
        random_state: int = 1313,
    ):
        super().__init__(C=C, max_iter=max_iter, random_state=random_state)
    
    def build_pipeline(self) -> Pipeline:
        preprocess = ColumnTransformer([
            ("cat", OneHotEncoder(handle_unknown="ignore"), select_categorical),
            ("num", StandardScaler(), select_numeric),
        ])
        return Pipeline([
            ("preprocess", preprocess),
            ("clf", LogisticRegression(
                C=self.params["C"],
                max_iter=self.params["max_iter"],
                random_state=self.params["random_state"],
            )),
        ])
