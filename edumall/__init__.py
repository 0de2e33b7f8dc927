"""Edumall storefront cart and checkout engine."""

__version__ = "1.0.0"
