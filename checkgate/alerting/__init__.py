from .notifier import AlertNotifier

__all__ = ["AlertNotifier"]
