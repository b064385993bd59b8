"""Interpreter for the fixed transform vocabulary of layer metadata.

Supported properties (every numeric input may be a literal or a control
reference):

``fixed-position``     ``{x, y}`` centre of the layer in canvas pixels
``relative-position``  ``{x, y}`` centre offset from the anchor's centre
``fixed-rotation``     degrees, clockwise
``scale``              ``{x, y}`` or a single value, percent of natural size
``visible``            zero hides the layer
``mirror``             ``{x, y}`` or a single value, non-zero flips the axis
``color.alpha``        opacity in percent

Anything else is ignored. A layer without a position keeps its top-left
corner on its origin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .controls import Number, coerce_ref
from .metadata import ControlRef

logger = logging.getLogger(__name__)

FIXED_POSITION = "fixed-position"
RELATIVE_POSITION = "relative-position"
FIXED_ROTATION = "fixed-rotation"
SCALE = "scale"
VISIBLE = "visible"
MIRROR = "mirror"
COLOR = "color"

KNOWN_PROPERTIES = frozenset(
    {FIXED_POSITION, RELATIVE_POSITION, FIXED_ROTATION, SCALE, VISIBLE, MIRROR, COLOR}
)

LEGACY_LAYOUT_VERSION = 1

Value = Union[Number, ControlRef]
ResolveFn = Callable[[Value], Number]
OffsetConvention = Callable[[float, float, float, float], Tuple[float, float]]


@dataclass(frozen=True)
class PositionSpec:
    relative: bool
    x: Optional[Value] = None
    y: Optional[Value] = None


@dataclass(frozen=True)
class TransformSpec:
    """Parsed, still unresolved transform of one layer."""

    position: Optional[PositionSpec] = None
    rotation: Optional[Value] = None
    scale_x: Optional[Value] = None
    scale_y: Optional[Value] = None
    visible: Optional[Value] = None
    mirror_x: Optional[Value] = None
    mirror_y: Optional[Value] = None
    alpha: Optional[Value] = None

    @classmethod
    def from_properties(cls, props: Optional[Mapping[str, Any]]) -> "TransformSpec":
        if not isinstance(props, Mapping):
            return cls()

        unknown = sorted(str(key) for key in props if key not in KNOWN_PROPERTIES)
        if unknown:
            logger.debug("Ignoring unsupported transform properties: %s", unknown)

        position: Optional[PositionSpec] = None
        relative = props.get(RELATIVE_POSITION)
        fixed = props.get(FIXED_POSITION)
        if isinstance(relative, Mapping):
            position = PositionSpec(True, coerce_ref(relative.get("x")), coerce_ref(relative.get("y")))
        elif isinstance(fixed, Mapping):
            position = PositionSpec(False, coerce_ref(fixed.get("x")), coerce_ref(fixed.get("y")))

        scale_x, scale_y = _axis_pair(props.get(SCALE))
        mirror_x, mirror_y = _axis_pair(props.get(MIRROR))
        color = props.get(COLOR)
        alpha = coerce_ref(color.get("alpha")) if isinstance(color, Mapping) else None

        return cls(
            position=position,
            rotation=coerce_ref(props.get(FIXED_ROTATION)),
            scale_x=scale_x,
            scale_y=scale_y,
            visible=coerce_ref(props.get(VISIBLE)),
            mirror_x=mirror_x,
            mirror_y=mirror_y,
            alpha=alpha,
        )

    def control_refs(self) -> list[ControlRef]:
        """Every control reference used by this transform, in field order."""

        candidates = []
        if self.position is not None:
            candidates.extend([self.position.x, self.position.y])
        candidates.extend(
            [
                self.rotation,
                self.scale_x,
                self.scale_y,
                self.visible,
                self.mirror_x,
                self.mirror_y,
                self.alpha,
            ]
        )
        refs: list[ControlRef] = []
        for value in candidates:
            if isinstance(value, ControlRef) and value not in refs:
                refs.append(value)
        return refs

    def position_refs(self) -> Tuple[Optional[ControlRef], Optional[ControlRef]]:
        if self.position is None:
            return None, None
        x = self.position.x if isinstance(self.position.x, ControlRef) else None
        y = self.position.y if isinstance(self.position.y, ControlRef) else None
        return x, y


@dataclass(frozen=True)
class ConcreteTransform:
    """Resolved transform in natural pixel space, before scale-to-fit.

    ``left_offset``/``top_offset`` locate the layer's top-left corner,
    measured from the canvas origin or, when ``relative`` is set, from the
    anchor's centre.
    """

    left_offset: float = 0.0
    top_offset: float = 0.0
    width: float = 0.0
    height: float = 0.0
    relative: bool = False
    rotation: float = 0.0
    opacity: float = 1.0
    mirror_x: bool = False
    mirror_y: bool = False
    visible: bool = True


def _centered_offsets(x: float, y: float, width: float, height: float) -> Tuple[float, float]:
    return x - width / 2, y - height / 2


OFFSET_CONVENTIONS: Dict[int, OffsetConvention] = {
    LEGACY_LAYOUT_VERSION: _centered_offsets,
}


def effective_layout_version(version: Any, fallback: int = LEGACY_LAYOUT_VERSION) -> int:
    """Return the layout version whose offset convention will be applied.

    Unknown versions use ``fallback``, which itself falls back to the legacy
    convention when no convention is registered for it.
    """

    if fallback not in OFFSET_CONVENTIONS:
        fallback = LEGACY_LAYOUT_VERSION
    try:
        requested = int(version)
    except (TypeError, ValueError):
        requested = fallback
    if requested in OFFSET_CONVENTIONS:
        return requested
    logger.warning(
        "Layout version %s has no offset convention; using version %s",
        version,
        fallback,
    )
    return fallback


def resolve_transform(
    spec: Union[TransformSpec, Mapping[str, Any], None],
    layout_version: int,
    resolve_fn: ResolveFn,
    *,
    size: Tuple[float, float] = (0.0, 0.0),
) -> ConcreteTransform:
    """Resolve ``spec`` against control values for an image of ``size``."""

    if not isinstance(spec, TransformSpec):
        spec = TransformSpec.from_properties(spec if isinstance(spec, Mapping) else None)

    convention = OFFSET_CONVENTIONS.get(layout_version)
    if convention is None:
        convention = OFFSET_CONVENTIONS[effective_layout_version(layout_version)]

    natural_width, natural_height = (float(size[0]), float(size[1]))
    scale_x = max(0.0, _number(spec.scale_x, resolve_fn, 100.0)) / 100.0
    scale_y = max(0.0, _number(spec.scale_y, resolve_fn, 100.0)) / 100.0
    width = natural_width * scale_x
    height = natural_height * scale_y

    left = top = 0.0
    relative = False
    if spec.position is not None:
        x = _number(spec.position.x, resolve_fn, 0.0)
        y = _number(spec.position.y, resolve_fn, 0.0)
        left, top = convention(x, y, width, height)
        relative = spec.position.relative

    opacity = _number(spec.alpha, resolve_fn, 100.0) / 100.0

    return ConcreteTransform(
        left_offset=left,
        top_offset=top,
        width=width,
        height=height,
        relative=relative,
        rotation=_number(spec.rotation, resolve_fn, 0.0),
        opacity=min(1.0, max(0.0, opacity)),
        mirror_x=bool(_number(spec.mirror_x, resolve_fn, 0.0)),
        mirror_y=bool(_number(spec.mirror_y, resolve_fn, 0.0)),
        visible=bool(_number(spec.visible, resolve_fn, 1.0)),
    )


def _axis_pair(raw: Any) -> Tuple[Optional[Value], Optional[Value]]:
    if isinstance(raw, Mapping) and ("x" in raw or "y" in raw):
        return coerce_ref(raw.get("x")), coerce_ref(raw.get("y"))
    value = coerce_ref(raw)
    return value, value


def _number(value: Optional[Value], resolve_fn: ResolveFn, default: float) -> float:
    if value is None:
        return default
    try:
        return float(resolve_fn(value))
    except (TypeError, ValueError):
        logger.debug("Unresolvable transform value %r; using %s", value, default)
        return default


__all__ = [
    "ConcreteTransform",
    "KNOWN_PROPERTIES",
    "LEGACY_LAYOUT_VERSION",
    "OFFSET_CONVENTIONS",
    "PositionSpec",
    "TransformSpec",
    "effective_layout_version",
    "resolve_transform",
]
