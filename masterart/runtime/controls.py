"""Control value resolution.

A transform input is either a literal number or a :class:`ControlRef` naming a
lever on a control token. References resolve through three layers, the first
hit winning:

1. local preview overrides,
2. recorded defaults (on-chain lever values, then unminted defaults),
3. ``0``.

Keys are absolute: ``"{master_token_id + control_token_id}-{lever_id}"``. The
same convention applies to overrides and to the unminted defaults stored in
the master document.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from .metadata import ControlRef, MasterMetadata

Number = Union[int, float]


def control_key(master_token_id: int, ref: ControlRef) -> str:
    return ref.key(master_token_id)


def coerce_ref(value: Any) -> Optional[Union[Number, ControlRef]]:
    """Interpret a raw transform value as a literal or a control reference.

    Returns ``None`` for values that are neither.
    """

    if isinstance(value, ControlRef):
        return value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value) if any(c in value for c in ".eE") else int(value)
        except ValueError:
            return None
    if isinstance(value, Mapping):
        try:
            return ControlRef.model_validate(value)
        except ValueError:
            return None
    return None


def resolve(
    master_token_id: int,
    defaults: Mapping[str, Number],
    overrides: Mapping[str, Number],
    ref: Union[Number, ControlRef],
) -> Number:
    """Return the effective number for ``ref``. Never raises."""

    if not isinstance(ref, ControlRef):
        return ref
    key = ref.key(master_token_id)
    if key in overrides:
        return overrides[key]
    if key in defaults:
        return defaults[key]
    return 0


@dataclass(frozen=True)
class ControlDefaults:
    """Recorded lever values; on-chain values shadow unminted ones."""

    onchain: Mapping[str, Number] = field(default_factory=dict)
    unminted: Mapping[str, Number] = field(default_factory=dict)

    @classmethod
    def from_metadata(cls, metadata: MasterMetadata) -> "ControlDefaults":
        return cls(onchain=dict(metadata.control_token_values), unminted=metadata.unminted_values)

    def merged(self) -> dict[str, Number]:
        values: dict[str, Number] = dict(self.unminted)
        values.update(self.onchain)
        return values


class ControlValueResolver:
    """Callable binding a master id, its defaults and the current overrides."""

    def __init__(
        self,
        master_token_id: int,
        defaults: ControlDefaults | Mapping[str, Number] | None = None,
        overrides: Mapping[str, Number] | None = None,
    ) -> None:
        self.master_token_id = int(master_token_id)
        if isinstance(defaults, ControlDefaults):
            self._defaults = defaults.merged()
        else:
            self._defaults = dict(defaults or {})
        self._overrides = dict(overrides or {})

    def __call__(self, ref: Union[Number, ControlRef]) -> Number:
        return resolve(self.master_token_id, self._defaults, self._overrides, ref)

    @property
    def overrides(self) -> dict[str, Number]:
        return dict(self._overrides)

    @property
    def defaults(self) -> dict[str, Number]:
        return dict(self._defaults)

    def key_for(self, ref: ControlRef) -> str:
        return ref.key(self.master_token_id)

    def values_for(self, refs: Iterable[ControlRef]) -> dict[str, Number]:
        """Effective value per absolute key for every ref in ``refs``."""
        return {ref.key(self.master_token_id): self(ref) for ref in refs}

    def with_overrides(self, overrides: Mapping[str, Number] | None) -> "ControlValueResolver":
        return ControlValueResolver(self.master_token_id, self._defaults, overrides)


__all__ = [
    "ControlDefaults",
    "ControlValueResolver",
    "Number",
    "coerce_ref",
    "control_key",
    "resolve",
]
