"""Counterfactual forecasting of NYC subway fare revenue lost to COVID-19."""

__version__ = "0.1.0"
