"""
Hyperparameter Search Module

Supports:
- none: No search, use provided params
- grid: Cross-validated regular grid search
"""

from .search import CandidateResult, GridSearch, SearchConfig, SearchResult, select_best
from .spaces import SEARCH_SPACES, generate_grid, get_search_space

__all__ = [
    "CandidateResult",
    "GridSearch",
    "SearchConfig",
    "SearchResult",
    "select_best",
    "SEARCH_SPACES",
    "generate_grid",
    "get_search_space",
]
