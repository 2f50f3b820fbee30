"""
API endpoints package.

- /metrics - Prometheus metrics for the reporter
"""
from .metrics import router as metrics_router

__all__ = ["metrics_router"]
