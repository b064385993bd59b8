"""Composition runtime: control values, transforms, fetching and passes."""

from __future__ import annotations

from .composer import (
    CompositionResult,
    LayerComposer,
    LayerProgress,
    RenderedLayer,
    compose_layers,
    compute_scale_ratio,
)
from .controls import ControlDefaults, ControlValueResolver, resolve
from .exceptions import (
    FetchError,
    LayerBuildFailed,
    LayerFetchFailed,
    MasterArtError,
    MetadataInvalid,
    MetadataUnavailable,
    MissingAnchor,
    StaleGeneration,
)
from .fetcher import ImageCache, ImageHandle, LayerFetcher
from .layers import LayerDescriptor, build_layer_descriptors
from .metadata import ControlRef, MasterMetadata
from .resolver import MetadataResolver, ResolvedMaster
from .session import RenderOutcome, RenderSession, RenderState
from .transforms import ConcreteTransform, TransformSpec, resolve_transform

__all__ = [
    "CompositionResult",
    "ConcreteTransform",
    "ControlDefaults",
    "ControlRef",
    "ControlValueResolver",
    "FetchError",
    "ImageCache",
    "ImageHandle",
    "LayerBuildFailed",
    "LayerComposer",
    "LayerDescriptor",
    "LayerFetchFailed",
    "LayerFetcher",
    "LayerProgress",
    "MasterArtError",
    "MasterMetadata",
    "MetadataInvalid",
    "MetadataResolver",
    "MetadataUnavailable",
    "MissingAnchor",
    "RenderOutcome",
    "RenderSession",
    "RenderState",
    "RenderedLayer",
    "ResolvedMaster",
    "StaleGeneration",
    "TransformSpec",
    "build_layer_descriptors",
    "compose_layers",
    "compute_scale_ratio",
    "resolve",
    "resolve_transform",
]
