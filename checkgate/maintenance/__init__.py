from .retention import RetentionManager

__all__ = ["RetentionManager"]
