"""Pricers combining products, models and numerical engines."""

from quantcore.pricers.mc_pricer import McPricer

__all__ = ["McPricer"]
