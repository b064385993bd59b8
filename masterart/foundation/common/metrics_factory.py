from __future__ import annotations

"""Utilities for idempotent Prometheus metric registration.

Modules create their metrics through these helpers so that re-importing a
module (as test suites do) returns the already registered collector instead
of tripping over duplicate registration. A registry-aware reset helper lets
tests zero every metric without touching Prometheus internals themselves.
"""

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Dict, Tuple, TypeVar

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    REGISTRY as global_registry,
)
from prometheus_client.metrics import MetricWrapperBase

__all__ = [
    "get_or_create_counter",
    "get_or_create_gauge",
    "get_metric_value",
    "reset_metrics",
]

MetricT = TypeVar("MetricT", bound=MetricWrapperBase)
RegistryKey = Tuple[CollectorRegistry, str]

_METRIC_CACHE: Dict[RegistryKey, MetricWrapperBase] = {}
_RESET_CALLBACKS: Dict[RegistryKey, Callable[[], None]] = {}


def get_or_create_counter(
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None = None,
    *,
    registry: CollectorRegistry | None = None,
) -> Counter:
    """Return an existing counter or register a new one."""

    reg = registry or global_registry
    metric = _get_or_create_metric(Counter, name, documentation, labelnames, registry=reg)
    _register_reset(metric, reg, name)
    return metric


def get_or_create_gauge(
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None = None,
    *,
    registry: CollectorRegistry | None = None,
) -> Gauge:
    """Return an existing gauge or register a new one."""

    reg = registry or global_registry
    metric = _get_or_create_metric(Gauge, name, documentation, labelnames, registry=reg)
    _register_reset(metric, reg, name)
    return metric


def reset_metrics(
    names: Iterable[str] | None = None,
    *,
    registry: CollectorRegistry | None = None,
) -> None:
    """Reset registered metrics for ``names`` (all of them when ``None``)."""

    reg = registry or global_registry
    if names is None:
        keys = [key for key in _RESET_CALLBACKS if key[0] is reg]
    else:
        requested = set(names)
        keys = [key for key in _RESET_CALLBACKS if key[0] is reg and key[1] in requested]
    for key in keys:
        _RESET_CALLBACKS[key]()


def get_metric_value(
    metric: MetricWrapperBase, labels: Mapping[str, str] | None = None
) -> float:
    """Return the most recent sample value for ``metric``.

    When ``labels`` are provided the matching labelled sample is returned,
    otherwise the first unlabelled sample is used. Counter ``_created``
    samples are skipped.
    """

    for family in metric.collect():
        for sample in family.samples:
            if sample.name.endswith("_created"):
                continue
            if labels is None and sample.labels:
                continue
            if labels is not None and sample.labels != dict(labels):
                continue
            return float(sample.value)
    return 0.0


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_or_create_metric(
    metric_cls: type[MetricT],
    name: str,
    documentation: str,
    labelnames: Sequence[str] | None,
    *,
    registry: CollectorRegistry,
) -> MetricT:
    labels = tuple(labelnames or ())
    cache_key = (registry, name)
    cached = _METRIC_CACHE.get(cache_key)
    if cached is not None:
        if isinstance(cached, metric_cls) and _labels_match(cached, labels):
            return cached  # type: ignore[return-value]
        registry.unregister(cached)
        _METRIC_CACHE.pop(cache_key, None)

    metric = metric_cls(name, documentation, labels, registry=registry)
    _METRIC_CACHE[cache_key] = metric
    return metric


def _register_reset(metric: MetricWrapperBase, registry: CollectorRegistry, name: str) -> None:
    def _reset() -> None:
        if tuple(getattr(metric, "_labelnames", ())):
            metric.clear()
        elif isinstance(metric, Counter):
            metric._value.set(0)  # type: ignore[attr-defined]
        elif isinstance(metric, Gauge):
            metric.set(0)

    _RESET_CALLBACKS[(registry, name)] = _reset


def _labels_match(metric: MetricWrapperBase, expected: Sequence[str]) -> bool:
    current = tuple(getattr(metric, "_labelnames", ()))
    return current == tuple(expected)
