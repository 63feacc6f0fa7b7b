"""
Prometheus metrics for the paper-trading ledger
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from typing import Optional


class PrometheusMetricsCollector:
    """Order, quote and portfolio metrics exposed on /metrics"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        # Business metrics
        self.orders_executed = Counter(
            'simutrade_orders_total',
            'Orders processed by outcome (filled or rejection kind)',
            ['side', 'order_type', 'outcome'],
            registry=self.registry
        )
        self.trade_notional = Counter(
            'simutrade_trade_notional_total',
            'Cumulative filled notional',
            ['side'],
            registry=self.registry
        )
        self.cash_balance = Gauge(
            'simutrade_cash_balance',
            'Cash balance after the last applied execution',
            registry=self.registry
        )

        # Market data metrics
        self.quote_fetches = Counter(
            'simutrade_quote_fetches_total',
            'Quote fetches by source and outcome',
            ['source', 'outcome'],
            registry=self.registry
        )
        self.quote_latency = Histogram(
            'simutrade_quote_latency_seconds',
            'Upstream quote fetch latency',
            ['source'],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry
        )

        # Error metrics
        self.errors_total = Counter(
            'simutrade_errors_total',
            'Server-side errors by component',
            ['component', 'error_type'],
            registry=self.registry
        )

    def record_order(self, side: str, order_type: str, outcome: str):
        """Record one order outcome"""
        self.orders_executed.labels(side=side or "unknown", order_type=order_type, outcome=outcome).inc()

    def record_fill(self, side: str, notional: float, cash_after: float):
        self.trade_notional.labels(side=side).inc(notional)
        self.cash_balance.set(cash_after)

    def record_quote_fetch(self, source: str, outcome: str, duration_seconds: Optional[float] = None):
        self.quote_fetches.labels(source=source, outcome=outcome).inc()
        if duration_seconds is not None:
            self.quote_latency.labels(source=source).observe(duration_seconds)

    def record_error(self, component: str, error_type: str):
        self.errors_total.labels(component=component, error_type=error_type).inc()
