"""
Prometheus metrics for the ledger
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram


class LedgerMetrics:
    """Trade and quote-feed collectors on one registry"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        # Business metrics
        self.trades_executed = Counter(
            'ledger_trades_executed_total',
            'Total trades executed',
            ['side'],
            registry=self.registry
        )

        self.trade_failures = Counter(
            'ledger_trade_failures_total',
            'Total trade requests rejected, by failure kind',
            ['kind'],
            registry=self.registry
        )

        self.trade_replays = Counter(
            'ledger_trade_replays_total',
            'Trade requests answered from an earlier execution with the same client order id',
            registry=self.registry
        )

        # Latency metrics
        self.trade_latency = Histogram(
            'ledger_trade_latency_seconds',
            'Time spent executing a trade, including quote lookup',
            ['side'],
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            registry=self.registry
        )

        # Market data metrics
        self.quote_updates = Counter(
            'ledger_quote_updates_total',
            'Quote refresh attempts per symbol',
            ['status'],
            registry=self.registry
        )

        self.quotes_available = Gauge(
            'ledger_quotes_available',
            'Symbols that currently have a usable price',
            registry=self.registry
        )

    def record_trade(self, side: str, duration_seconds: float) -> None:
        self.trades_executed.labels(side=side).inc()
        self.trade_latency.labels(side=side).observe(duration_seconds)

    def record_failure(self, kind: str) -> None:
        self.trade_failures.labels(kind=kind).inc()

    def record_replay(self) -> None:
        self.trade_replays.inc()

    def record_quote_update(self, success: bool) -> None:
        self.quote_updates.labels(status="success" if success else "error").inc()

    def set_quotes_available(self, count: int) -> None:
        self.quotes_available.set(count)
