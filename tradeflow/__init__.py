"""Real-time order-flow analysis for tape prints."""

__version__ = "0.1.0"
