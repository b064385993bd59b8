from __future__ import annotations

"""Asynchronous circuit breaker used to park misbehaving gateways."""

from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class CircuitOpenError(RuntimeError):
    """Raised when a call is attempted through an open circuit."""


class AsyncCircuitBreaker:
    """Simple circuit breaker for async callables.

    The circuit opens after ``max_failures`` consecutive failures and stays
    open until :meth:`reset` is called. There is no half-open probing; a
    gateway that failed repeatedly is skipped for the rest of the session.
    """

    def __init__(
        self,
        max_failures: int = 3,
        *,
        on_open: Callable[[], None] | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._max_failures = max(1, int(max_failures))
        self._on_open = on_open
        self._on_close = on_close
        self._failures = 0
        self._open = False

    # --- internal helpers -------------------------------------------------
    def _record_failure(self) -> None:
        self._failures += 1
        if self._failures >= self._max_failures and not self._open:
            self._open = True
            if self._on_open:
                self._on_open()

    # --- public API -------------------------------------------------------
    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def failures(self) -> int:
        return self._failures

    def reset(self) -> None:
        """Manually close the circuit and clear failure count."""
        was_open = self._open
        self._open = False
        self._failures = 0
        if was_open and self._on_close:
            self._on_close()

    def __call__(
        self, func: Callable[..., Awaitable[T]]
    ) -> Callable[..., Awaitable[T]]:
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            if self.is_open:
                raise CircuitOpenError("circuit open")
            try:
                result = await func(*args, **kwargs)
            except Exception:
                self._record_failure()
                raise
            else:
                if self._failures:
                    self._failures = 0
                return result
        return wrapper


__all__ = ["AsyncCircuitBreaker", "CircuitOpenError"]
