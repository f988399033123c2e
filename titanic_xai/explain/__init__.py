"""
Model-agnostic explanations.

Local (one observation):
- break_down: ordered sequential attribution
- shap_attribution: break-down averaged over random orders
- TreeShapExplainer: exact TreeSHAP cross-check for the forest

Global (the model):
- permutation_importance
- partial_dependence / interaction_profile
"""

from .break_down import BreakDownResult, break_down
from .explainer import Explainer, SupportsPredictProba, positive_class_proba
from .permutation import PermutationImportanceResult, permutation_importance
from .profiles import ProfileResult, interaction_profile, partial_dependence
from .shapley import ShapResult, shap_attribution
from .tree_shap import TreeShapExplainer, TreeShapResult

__all__ = [
    "BreakDownResult",
    "break_down",
    "Explainer",
    "SupportsPredictProba",
    "positive_class_proba",
    "PermutationImportanceResult",
    "permutation_importance",
    "ProfileResult",
    "interaction_profile",
    "partial_dependence",
    "ShapResult",
    "shap_attribution",
    "TreeShapExplainer",
    "TreeShapResult",
]
