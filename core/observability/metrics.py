"""
Metrics Collection for the Sync Layer

Collects and exposes in-process metrics for:
- Cache reads (hits, misses, coalesced reads, fetches, fetch failures)
- Invalidations per entity kind
- Remote writes (started, succeeded, failed) per kind and operation
- Fetch and write durations (average, p95)
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class CacheMetrics:
    """Metrics for cache reads."""
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    fetches: int = 0
    fetch_failures: int = 0
    invalidations: int = 0

    # By entity kind
    by_kind: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: {
        "hits": 0, "misses": 0, "coalesced": 0, "fetches": 0, "fetch_failures": 0, "invalidations": 0,
    }))


@dataclass
class MutationMetrics:
    """Metrics for remote writes."""
    started: int = 0
    succeeded: int = 0
    failed: int = 0

    # By "<kind>.<operation>"
    by_operation: Dict[str, Dict[str, int]] = field(default_factory=lambda: defaultdict(lambda: {
        "started": 0, "succeeded": 0, "failed": 0,
    }))


@dataclass
class TimingMetrics:
    """Duration samples."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    # By stage ("fetch.batches", "write.sales.create", ...)
    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for cache reads and remote writes.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_cache_miss("batches")
        metrics.record_mutation_succeeded("batches", "update", duration_ms=85)

    Caches and coordinators accept their own collector, so tests can
    observe an isolated instance instead of the process default.
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.cache = CacheMetrics()
        self.mutations = MutationMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get the process-default instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Cache Metrics
    # =========================================================================

    def _count_cache(self, kind: str, name: str):
        with self._lock:
            setattr(self.cache, name, getattr(self.cache, name) + 1)
            self.cache.by_kind[kind][name] += 1

    def record_cache_hit(self, kind: str):
        self._count_cache(kind, "hits")

    def record_cache_miss(self, kind: str):
        self._count_cache(kind, "misses")

    def record_cache_coalesced(self, kind: str):
        """Record a read that joined a fetch already in flight."""
        self._count_cache(kind, "coalesced")

    def record_fetch_started(self, kind: str):
        self._count_cache(kind, "fetches")

    def record_fetch_completed(self, kind: str, duration_ms: float):
        with self._lock:
            self.timings.add_sample(duration_ms, f"fetch.{kind}")

    def record_fetch_failed(self, kind: str):
        self._count_cache(kind, "fetch_failures")

    def record_invalidation(self, kind: str, count: int = 1):
        """Record keys marked invalid."""
        with self._lock:
            self.cache.invalidations += count
            self.cache.by_kind[kind]["invalidations"] += count

    # =========================================================================
    # Mutation Metrics
    # =========================================================================

    def record_mutation_started(self, kind: str, operation: str):
        with self._lock:
            self.mutations.started += 1
            self.mutations.by_operation[f"{kind}.{operation}"]["started"] += 1

    def record_mutation_succeeded(self, kind: str, operation: str, duration_ms: float = None):
        with self._lock:
            self.mutations.succeeded += 1
            self.mutations.by_operation[f"{kind}.{operation}"]["succeeded"] += 1

            if duration_ms:
                self.timings.add_sample(duration_ms, f"write.{kind}.{operation}")

    def record_mutation_failed(self, kind: str, operation: str):
        with self._lock:
            self.mutations.failed += 1
            self.mutations.by_operation[f"{kind}.{operation}"]["failed"] += 1

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "cache": {
                    "hits": self.cache.hits,
                    "misses": self.cache.misses,
                    "coalesced": self.cache.coalesced,
                    "fetches": self.cache.fetches,
                    "fetch_failures": self.cache.fetch_failures,
                    "invalidations": self.cache.invalidations,
                    "by_kind": {k: dict(v) for k, v in self.cache.by_kind.items()},
                },
                "mutations": {
                    "started": self.mutations.started,
                    "succeeded": self.mutations.succeeded,
                    "failed": self.mutations.failed,
                    "by_operation": {k: dict(v) for k, v in self.mutations.by_operation.items()},
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


def get_metrics() -> MetricsCollector:
    """Get the process-default metrics collector."""
    return MetricsCollector.instance()
