from __future__ import annotations

"""Turn ``layout.layers`` entries into build-ready layer descriptors."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .controls import ControlValueResolver
from .metadata import LayoutLayer, MasterMetadata
from .transforms import TransformSpec
from .validator import LayerValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayerDescriptor:
    """One layer as it will be built in the current pass.

    ``active_state_uri`` and ``transformation_properties`` already reflect
    the selected state when the layer is control-driven, which is why the
    descriptor list is rebuilt whenever effective control values change.
    """

    id: str
    active_state_uri: str
    anchor_id: Optional[str] = None
    transformation_properties: Mapping[str, Any] = field(default_factory=dict)
    state_index: Optional[int] = None
    label: Optional[str] = None

    @property
    def transform(self) -> TransformSpec:
        return TransformSpec.from_properties(self.transformation_properties)


def select_state(layer: LayoutLayer, resolver: ControlValueResolver) -> Optional[int]:
    """Index of the active state option, or ``None`` for single-image layers."""

    states = layer.states
    if states is None or not states.options:
        return None
    raw = resolver(states.ref)
    try:
        index = int(raw)
    except (TypeError, ValueError):
        index = 0
    if not 0 <= index < len(states.options):
        logger.warning(
            "Layer %s state value %s out of range for %d option(s); using option 0",
            layer.id,
            raw,
            len(states.options),
        )
        index = 0
    return index


def describe_layer(layer: LayoutLayer, resolver: ControlValueResolver) -> Optional[LayerDescriptor]:
    """Build the descriptor for ``layer`` or ``None`` when it has no image."""

    properties: Dict[str, Any] = layer.transformation_properties()
    uri = layer.uri
    index = select_state(layer, resolver)
    if index is not None and layer.states is not None:
        option = layer.states.options[index]
        uri = option.uri
        properties.update(option.transformation_properties())

    if not uri:
        logger.warning("Layer %s has no image source; skipping", layer.id)
        return None

    return LayerDescriptor(
        id=layer.id,
        active_state_uri=uri,
        anchor_id=layer.anchor,
        transformation_properties=properties,
        state_index=index,
        label=layer.label,
    )


def build_layer_descriptors(
    layers: Sequence[LayoutLayer],
    resolver: ControlValueResolver,
    *,
    validator: LayerValidator | None = None,
) -> List[LayerDescriptor]:
    """Validate anchor order and resolve every layer's active state.

    Raises :class:`~masterart.runtime.exceptions.MetadataInvalid` on
    forward, self or duplicate references.
    """

    validator = validator or LayerValidator()
    report = validator.ensure_valid([_LayoutView(layer) for layer in layers])
    for warning in report.warnings:
        logger.warning(warning)

    descriptors: List[LayerDescriptor] = []
    for layer in layers:
        descriptor = describe_layer(layer, resolver)
        if descriptor is not None:
            descriptors.append(descriptor)
    return descriptors


def descriptors_for(metadata: MasterMetadata, resolver: ControlValueResolver) -> List[LayerDescriptor]:
    return build_layer_descriptors(metadata.layout.layers, resolver)


@dataclass(frozen=True)
class _LayoutView:
    layer: LayoutLayer

    @property
    def id(self) -> str:
        return self.layer.id

    @property
    def anchor_id(self) -> Optional[str]:
        return self.layer.anchor


__all__ = [
    "LayerDescriptor",
    "build_layer_descriptors",
    "describe_layer",
    "descriptors_for",
    "select_state",
]
