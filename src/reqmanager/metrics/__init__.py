from reqmanager.metrics.collector import MetricsCollector

__all__ = ["MetricsCollector"]
