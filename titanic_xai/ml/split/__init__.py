"""Stratified splitting and resampling."""

from .stratified import FoldPlan, stratified_folds, stratified_split

__all__ = ["FoldPlan", "stratified_folds", "stratified_split"]
