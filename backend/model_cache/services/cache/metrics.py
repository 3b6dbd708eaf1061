"""
Cache Metrics

Prometheus counters for cache lookups, kept in a private registry so
several managers can live in one process.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, generate_latest

HIT = "hit"
NEGATIVE_HIT = "negative_hit"
MISS = "miss"
FALLBACK = "fallback"


class CacheMetrics:
    """Lookup outcome and store query counters per connection name."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.lookups = Counter(
            "model_cache_lookups_total",
            "Cache lookups by outcome",
            ["connection", "outcome"],
            registry=self.registry,
        )
        self.store_queries = Counter(
            "model_cache_store_queries_total",
            "Queries sent to the record store",
            ["connection"],
            registry=self.registry,
        )

    def record_lookup(self, connection: str, outcome: str, count: int = 1) -> None:
        if count:
            self.lookups.labels(connection=connection, outcome=outcome).inc(count)

    def record_store_query(self, connection: str) -> None:
        self.store_queries.labels(connection=connection).inc()

    def lookup_count(self, connection: str, outcome: str) -> float:
        value = self.registry.get_sample_value(
            "model_cache_lookups_total",
            {"connection": connection, "outcome": outcome},
        )
        return value or 0.0

    def export(self) -> str:
        """Render metrics in Prometheus text format."""
        return generate_latest(self.registry).decode("utf-8")
