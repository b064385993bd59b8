from __future__ import annotations

"""Prometheus metrics for gateway fetching and composition passes."""

from masterart.foundation.common.metrics_factory import (
    get_or_create_counter,
    get_or_create_gauge,
    reset_metrics as _reset_registered_metrics,
)

gateway_attempts_total = get_or_create_counter(
    "masterart_gateway_attempts_total",
    "Content gateway attempts by domain and outcome",
    ["domain", "outcome"],
)

gateway_breaker_open = get_or_create_gauge(
    "masterart_gateway_breaker_open",
    "Whether the circuit breaker for a gateway domain is open (1) or closed (0)",
    ["domain"],
)

image_cache_hits_total = get_or_create_counter(
    "masterart_image_cache_hits_total",
    "Image loads served without network access",
)

image_cache_entries = get_or_create_gauge(
    "masterart_image_cache_entries",
    "Number of images held in the session cache",
)

layers_rendered_total = get_or_create_counter(
    "masterart_layers_rendered_total",
    "Layers placed into a composition",
)

layers_skipped_total = get_or_create_counter(
    "masterart_layers_skipped_total",
    "Layers omitted from a composition",
    ["reason"],
)

render_passes_total = get_or_create_counter(
    "masterart_render_passes_total",
    "Render passes by final outcome",
    ["outcome"],
)


def observe_gateway_attempt(domain: str, outcome: str) -> None:
    gateway_attempts_total.labels(domain=domain, outcome=outcome).inc()


def set_breaker_state(domain: str, is_open: bool) -> None:
    gateway_breaker_open.labels(domain=domain).set(1 if is_open else 0)


def reset_metrics() -> None:
    """Zero every metric defined in this module."""
    _reset_registered_metrics(
        [
            "masterart_gateway_attempts_total",
            "masterart_gateway_breaker_open",
            "masterart_image_cache_hits_total",
            "masterart_image_cache_entries",
            "masterart_layers_rendered_total",
            "masterart_layers_skipped_total",
            "masterart_render_passes_total",
        ]
    )


__all__ = [
    "gateway_attempts_total",
    "gateway_breaker_open",
    "image_cache_entries",
    "image_cache_hits_total",
    "layers_rendered_total",
    "layers_skipped_total",
    "observe_gateway_attempt",
    "render_passes_total",
    "reset_metrics",
    "set_breaker_state",
]
