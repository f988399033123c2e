"""
Titanic XAI

Trains a random-forest survival classifier on the imputed Titanic data and
explains it with model-agnostic methods:
- break-down and averaged (Shapley-style) attributions for one passenger
- permutation importance and partial-dependence profiles for the model
"""

__version__ = "0.1.0"
