"""Utility modules for the tradeflow package."""

from .retry import ExponentialBackoff

__all__ = [
    "ExponentialBackoff",
]
