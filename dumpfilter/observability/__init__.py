from .metrics import MetricsObserver

__all__ = ["MetricsObserver"]
