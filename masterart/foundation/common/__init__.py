from .circuit_breaker import AsyncCircuitBreaker, CircuitOpenError
from .fsm import FSMError, Machine, State, TransitionError
from .metrics_factory import (
    get_metric_value,
    get_or_create_counter,
    get_or_create_gauge,
    reset_metrics,
)

__all__ = [
    "AsyncCircuitBreaker",
    "CircuitOpenError",
    "FSMError",
    "Machine",
    "State",
    "TransitionError",
    "get_metric_value",
    "get_or_create_counter",
    "get_or_create_gauge",
    "reset_metrics",
]
