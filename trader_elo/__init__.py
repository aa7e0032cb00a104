"""Trader ELO - explainable 0-100 trader scoring engine."""

__version__ = "1.0.0"
