from __future__ import annotations

from typing import Any, Dict, Mapping


class FSMError(Exception):
    """Base exception for FSM-related errors."""


class TransitionError(FSMError):
    """Raised when an event is not valid for the current state."""


class State:
    """Lightweight state wrapper exposing the state name as ``.value``."""

    __slots__ = ("value",)

    def __init__(self, value: str) -> None:
        self.value = value

    def __eq__(self, other: object) -> bool:
        if isinstance(other, State):
            return self.value == other.value
        if isinstance(other, str):
            return self.value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        return f"State({self.value!r})"


class Machine:
    """Minimal FSM engine driven by a dictionary definition.

    The machine is defined by a dictionary with the following structure:
    {
      "id": "render",
      "initial": "idle",
      "states": {
        "idle": {"on": {"START": "fetching_metadata"}},
        "fetching_metadata": {"on": {"METADATA_READY": "building_layers"}},
        ...
        "done": {}
      }
    }

    A ``"*"`` entry under ``states`` lists transitions accepted from every
    state.
    """

    def __init__(self, definition: Mapping[str, Any]) -> None:
        self.id = str(definition.get("id", "machine"))
        self._initial = str(definition.get("initial"))
        states: Dict[str, Dict[str, Any]] = dict(definition.get("states", {}))
        self._wildcard: Dict[str, str] = dict(states.pop("*", {}).get("on", {}))
        self._states = states
        if self._initial not in self._states:
            raise ValueError("initial state must be defined in states")
        for target in self._wildcard.values():
            if target not in self._states:
                raise ValueError(f"unknown wildcard target state: {target}")
        self.initial_state = State(self._initial)

    @property
    def states(self) -> tuple[str, ...]:
        return tuple(self._states)

    def state_from(self, name: str) -> State:
        if name not in self._states:
            raise ValueError(f"unknown state: {name}")
        return State(name)

    def can_transition(self, state: State, event: str) -> bool:
        on = self._states.get(state.value, {}).get("on", {})
        return event in on or event in self._wildcard

    def transition(self, state: State, event: str) -> State:
        current = state.value
        config = self._states.get(current)
        if config is None:
            raise ValueError(f"unknown state: {current}")
        on = config.get("on", {})
        next_state = on.get(event) or self._wildcard.get(event)
        if next_state is None:
            raise TransitionError(f"invalid event {event!r} for state {current!r}")
        if next_state not in self._states:
            # treat as terminal with no transitions
            self._states[next_state] = {}
        return State(next_state)


__all__ = ["FSMError", "Machine", "State", "TransitionError"]
