from __future__ import annotations

"""Ordered, anchor-aware assembly of a master's layer stack."""

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from . import metrics
from .controls import ControlValueResolver
from .exceptions import (
    FetchError,
    LayerBuildFailed,
    LayerFetchFailed,
    MasterArtError,
    MissingAnchor,
    StaleGeneration,
)
from .fetcher import ImageHandle, LayerFetcher, describe_failure
from .geometry import Box, LayerGeometry
from .layers import LayerDescriptor
from .transforms import LEGACY_LAYOUT_VERSION, effective_layout_version, resolve_transform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderedLayer:
    """A placed layer in screen space for one render pass."""

    id: str
    uri: str
    image: ImageHandle = field(repr=False)
    box: Box
    anchor_id: Optional[str] = None
    rotation: float = 0.0
    opacity: float = 1.0
    mirror_x: bool = False
    mirror_y: bool = False
    visible: bool = True
    state_index: Optional[int] = None

    @property
    def natural_width(self) -> int:
        return self.image.width

    @property
    def natural_height(self) -> int:
        return self.image.height

    @property
    def domain(self) -> Optional[str]:
        return self.image.domain


@dataclass(frozen=True)
class LayerProgress:
    index: int
    total: int
    layer_id: str
    uri: str
    domain: str

    @property
    def message(self) -> str:
        return f"Loading {self.uri} from {self.domain}"


@dataclass
class CompositionResult:
    """Output of one pass plus the notices of layers that degraded."""

    layers: List[RenderedLayer] = field(default_factory=list)
    failures: List[MasterArtError] = field(default_factory=list)
    geometry: List[LayerGeometry] = field(default_factory=list)

    @property
    def ids(self) -> List[str]:
        return [layer.id for layer in self.layers]


ProgressListener = Callable[[LayerProgress], None]


def compute_scale_ratio(
    canvas_width: float, canvas_height: float, viewport_width: float, viewport_height: float
) -> float:
    """Uniform ratio fitting the master canvas inside the viewport."""

    if canvas_width <= 0 or canvas_height <= 0:
        raise ValueError(f"invalid canvas size {canvas_width}x{canvas_height}")
    if viewport_width <= 0 or viewport_height <= 0:
        raise ValueError(f"invalid viewport size {viewport_width}x{viewport_height}")
    return min(viewport_width / canvas_width, viewport_height / canvas_height)


class LayerComposer:
    """Build layers in declared order while their images load concurrently.

    ``is_current`` is consulted after every suspension point; once it returns
    ``False`` the pass stops with :class:`StaleGeneration`, outstanding loads
    are cancelled and nothing further is appended.
    """

    def __init__(
        self,
        fetcher: LayerFetcher,
        *,
        on_progress: ProgressListener | None = None,
        is_current: Callable[[], bool] | None = None,
        generation: int = 0,
        cached_images: Mapping[str, ImageHandle] | None = None,
        fallback_layout_version: int = LEGACY_LAYOUT_VERSION,
    ) -> None:
        self._fetcher = fetcher
        self._on_progress = on_progress
        self._is_current = is_current or (lambda: True)
        self._generation = generation
        self._cached_images = dict(cached_images or {})
        self._fallback_layout_version = fallback_layout_version

    async def compose(
        self,
        descriptors: Sequence[LayerDescriptor],
        resolver: ControlValueResolver,
        layout_version: int,
        scale_ratio: float,
    ) -> CompositionResult:
        version = effective_layout_version(layout_version, self._fallback_layout_version)
        total = len(descriptors)
        tasks = [
            asyncio.create_task(
                self._fetcher.load_image(
                    descriptor.active_state_uri,
                    partial(self._report, index, total, descriptor),
                    self._cached_images.get(descriptor.id),
                )
            )
            for index, descriptor in enumerate(descriptors, start=1)
        ]

        result = CompositionResult()
        built: Dict[str, RenderedLayer] = {}
        try:
            for descriptor, task in zip(descriptors, tasks):
                self._ensure_current()
                try:
                    handle = await task
                except FetchError as exc:
                    self._ensure_current()
                    self._skip(result, LayerFetchFailed(descriptor.id, exc), "fetch")
                    continue
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    self._ensure_current()
                    logger.exception("Unexpected failure loading layer %s", descriptor.id)
                    cause = FetchError(
                        descriptor.active_state_uri, [("", describe_failure(exc))]
                    )
                    self._skip(result, LayerFetchFailed(descriptor.id, cause), "fetch")
                    continue
                self._ensure_current()

                try:
                    layer, geometry = self._build(
                        descriptor, handle, built, resolver, version, scale_ratio, result
                    )
                except (ArithmeticError, TypeError, ValueError) as exc:
                    self._skip(result, LayerBuildFailed(descriptor.id, str(exc)), "build")
                    continue

                built[layer.id] = layer
                result.layers.append(layer)
                result.geometry.append(geometry)
                metrics.layers_rendered_total.inc()
        finally:
            _discard(tasks)

        logger.info(
            "Composed %d of %d layer(s) (generation %d)",
            len(result.layers),
            total,
            self._generation,
        )
        return result

    def _build(
        self,
        descriptor: LayerDescriptor,
        handle: ImageHandle,
        built: Mapping[str, RenderedLayer],
        resolver: ControlValueResolver,
        version: int,
        scale_ratio: float,
        result: CompositionResult,
    ) -> Tuple[RenderedLayer, LayerGeometry]:
        if not handle.is_valid:
            raise ValueError(f"image {handle.uri!r} has no usable size")

        spec = descriptor.transform
        transform = resolve_transform(spec, version, resolver, size=handle.size)

        origin_x = origin_y = 0.0
        anchor_id = descriptor.anchor_id
        if anchor_id is not None:
            anchor = built.get(anchor_id)
            if anchor is None:
                notice = MissingAnchor(descriptor.id, anchor_id)
                logger.warning(str(notice))
                result.failures.append(notice)
                metrics.layers_skipped_total.labels(reason="anchor").inc()
                anchor_id = None
            elif transform.relative:
                origin_x, origin_y = anchor.box.center

        box = Box(
            left=origin_x + transform.left_offset * scale_ratio,
            top=origin_y + transform.top_offset * scale_ratio,
            width=transform.width * scale_ratio,
            height=transform.height * scale_ratio,
        )
        layer = RenderedLayer(
            id=descriptor.id,
            uri=descriptor.active_state_uri,
            image=handle,
            box=box,
            anchor_id=anchor_id,
            rotation=transform.rotation,
            opacity=transform.opacity,
            mirror_x=transform.mirror_x,
            mirror_y=transform.mirror_y,
            visible=transform.visible,
            state_index=descriptor.state_index,
        )
        ref_x, ref_y = spec.position_refs()
        geometry = LayerGeometry(
            layer_id=descriptor.id,
            box=box,
            anchor_id=anchor_id,
            relative=transform.relative,
            controls=resolver.values_for(spec.control_refs()),
            position_keys=(
                resolver.key_for(ref_x) if ref_x is not None else None,
                resolver.key_for(ref_y) if ref_y is not None else None,
            ),
            scale_ratio=scale_ratio,
        )
        return layer, geometry

    def _ensure_current(self) -> None:
        if not self._is_current():
            raise StaleGeneration(self._generation)

    def _skip(self, result: CompositionResult, failure: MasterArtError, reason: str) -> None:
        logger.warning("Skipping layer: %s", failure)
        result.failures.append(failure)
        metrics.layers_skipped_total.labels(reason=reason).inc()

    def _report(self, index: int, total: int, descriptor: LayerDescriptor, domain: str) -> None:
        if self._on_progress is None or not self._is_current():
            return
        self._on_progress(
            LayerProgress(
                index=index,
                total=total,
                layer_id=descriptor.id,
                uri=descriptor.active_state_uri,
                domain=domain,
            )
        )


async def compose_layers(
    descriptors: Sequence[LayerDescriptor],
    resolver: ControlValueResolver,
    layout_version: int,
    scale_ratio: float,
    *,
    fetcher: LayerFetcher,
    on_progress: ProgressListener | None = None,
) -> List[RenderedLayer]:
    """Compose ``descriptors`` and return only the rendered layers."""

    composer = LayerComposer(fetcher, on_progress=on_progress)
    result = await composer.compose(descriptors, resolver, layout_version, scale_ratio)
    return result.layers


def _discard(tasks: Sequence[asyncio.Task[ImageHandle]]) -> None:
    for task in tasks:
        if not task.done():
            task.cancel()
        elif not task.cancelled():
            task.exception()


__all__ = [
    "CompositionResult",
    "LayerComposer",
    "LayerProgress",
    "ProgressListener",
    "RenderedLayer",
    "compose_layers",
    "compute_scale_ratio",
]
