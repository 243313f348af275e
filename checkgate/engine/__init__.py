from .alert_evaluator import AlertEvaluator, evaluate
from .monitoring_service import MonitoringService
from .summarizer import Summarizer

__all__ = ["AlertEvaluator", "MonitoringService", "Summarizer", "evaluate"]
