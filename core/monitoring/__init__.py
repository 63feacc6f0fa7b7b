"""
Monitoring components for SimuTrade
"""

from .prometheus_metrics import PrometheusMetricsCollector

__all__ = ["PrometheusMetricsCollector"]
