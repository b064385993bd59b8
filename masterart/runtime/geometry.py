"""Per-layer geometry recorded during a render pass.

Interactive features (drag-to-reposition, layer inspectors) query this table
instead of reading state back from rendered output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Mapping, Optional, Tuple

from .controls import Number


@dataclass(frozen=True)
class Box:
    """Screen-space rectangle in pixels."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.left + self.width / 2, self.top + self.height / 2

    def translated(self, dx: float, dy: float) -> "Box":
        return Box(self.left + dx, self.top + dy, self.width, self.height)


@dataclass(frozen=True)
class LayerGeometry:
    layer_id: str
    box: Box
    anchor_id: Optional[str] = None
    relative: bool = False
    controls: Mapping[str, Number] = field(default_factory=dict)
    position_keys: Tuple[Optional[str], Optional[str]] = (None, None)
    scale_ratio: float = 1.0


class GeometryTable:
    """Mapping of layer id to the geometry of the last published pass."""

    def __init__(self) -> None:
        self._entries: Dict[str, LayerGeometry] = {}

    def record(self, geometry: LayerGeometry) -> None:
        self._entries[geometry.layer_id] = geometry

    def get(self, layer_id: str) -> Optional[LayerGeometry]:
        return self._entries.get(layer_id)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, layer_id: object) -> bool:
        return layer_id in self._entries

    def __iter__(self) -> Iterator[LayerGeometry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def drag_overrides(self, layer_id: str, dx: float, dy: float) -> Dict[str, Number]:
        """Override values that move ``layer_id`` by ``(dx, dy)`` screen pixels.

        Only axes whose position is driven by a control reference can move;
        literal axes are left out of the result. Raises ``KeyError`` for a
        layer that was not rendered.
        """

        geometry = self._entries.get(layer_id)
        if geometry is None:
            raise KeyError(layer_id)
        ratio = geometry.scale_ratio or 1.0
        overrides: Dict[str, Number] = {}
        for key, delta in zip(geometry.position_keys, (dx, dy)):
            if key is None:
                continue
            current = geometry.controls.get(key, 0)
            overrides[key] = _round(current + delta / ratio)
        return overrides


def _round(value: float) -> Number:
    # levers hold integers; keep ints when the move lands on a whole pixel
    rounded = round(value)
    return int(rounded) if abs(value - rounded) < 1e-9 else value


__all__ = ["Box", "GeometryTable", "LayerGeometry"]
