"""CheckGate — host and cluster resource monitoring core."""

__version__ = "1.0.0"
