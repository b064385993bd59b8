from __future__ import annotations

"""Generation-guarded render passes over one master at a time."""

import enum
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Dict, List, Mapping, Optional, Tuple

from masterart.foundation.common import Machine
from masterart.foundation.config import UnifiedConfig
from masterart.foundation.configuration import get_unified_config

from . import metrics
from .composer import (
    CompositionResult,
    LayerComposer,
    ProgressListener,
    RenderedLayer,
    compute_scale_ratio,
)
from .controls import ControlDefaults, ControlValueResolver, Number
from .exceptions import FetchError, MasterArtError, MetadataUnavailable, StaleGeneration
from .fetcher import LayerFetcher, ProgressCallback
from .geometry import GeometryTable
from .layers import descriptors_for
from .metadata import MasterMetadata
from .resolver import MetadataResolver, ResolvedMaster

logger = logging.getLogger(__name__)


class RenderState(str, enum.Enum):
    IDLE = "idle"
    FETCHING_METADATA = "fetching_metadata"
    BUILDING_LAYERS = "building_layers"
    DONE = "done"
    ERROR = "error"


RENDER_MACHINE = {
    "id": "render",
    "initial": RenderState.IDLE.value,
    "states": {
        "*": {"on": {"START": RenderState.FETCHING_METADATA.value}},
        RenderState.IDLE.value: {},
        RenderState.FETCHING_METADATA.value: {
            "on": {
                "METADATA_READY": RenderState.BUILDING_LAYERS.value,
                "FAIL": RenderState.ERROR.value,
            }
        },
        RenderState.BUILDING_LAYERS.value: {
            "on": {
                "COMPLETE": RenderState.DONE.value,
                "FAIL": RenderState.ERROR.value,
            }
        },
        RenderState.DONE.value: {},
        RenderState.ERROR.value: {},
    },
}


@dataclass(frozen=True)
class RenderOutcome:
    """Published result of the latest successful pass."""

    generation: int
    master_token_id: int
    metadata: MasterMetadata = field(repr=False)
    canvas_size: Tuple[int, int]
    scale_ratio: float
    layers: List[RenderedLayer] = field(default_factory=list)
    failures: List[MasterArtError] = field(default_factory=list)
    collector: Optional[str] = None

    @property
    def layer_ids(self) -> List[str]:
        return [layer.id for layer in self.layers]


class RenderSession:
    """Drives render passes and keeps the only mutable state of a viewer.

    Every call to :meth:`render`, :meth:`render_document` or :meth:`rerender`
    starts a new generation. A pass that finishes after a newer one started
    returns ``None`` and leaves the published outcome untouched.
    """

    def __init__(
        self,
        fetcher: LayerFetcher,
        *,
        resolver: MetadataResolver | None = None,
        config: UnifiedConfig | None = None,
        on_progress: ProgressListener | None = None,
        on_metadata_progress: ProgressCallback | None = None,
    ) -> None:
        self._config = config or get_unified_config()
        self._fetcher = fetcher
        self._resolver = resolver
        self._on_progress = on_progress
        self._on_metadata_progress = on_metadata_progress
        self._machine = Machine(RENDER_MACHINE)
        self._state = self._machine.initial_state
        self._generation = 0
        self._metadata: Dict[Tuple[Optional[str], int], ResolvedMaster] = {}
        self._overrides: Dict[str, Number] = {}
        self._token: Optional[Tuple[Optional[str], int]] = None
        self._outcome: Optional[RenderOutcome] = None
        self._geometry = GeometryTable()
        self._error: Optional[Exception] = None

    # --- observers ------------------------------------------------------
    @property
    def state(self) -> RenderState:
        return RenderState(self._state.value)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def outcome(self) -> Optional[RenderOutcome]:
        return self._outcome

    @property
    def layers(self) -> List[RenderedLayer]:
        return list(self._outcome.layers) if self._outcome is not None else []

    @property
    def geometry(self) -> GeometryTable:
        return self._geometry

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    @property
    def overrides(self) -> Dict[str, Number]:
        return dict(self._overrides)

    def invalidate(self) -> int:
        """Supersede any pass in flight without starting a new one."""
        self._generation += 1
        return self._generation

    # --- overrides --------------------------------------------------------
    def set_override(self, key: str, value: Number) -> None:
        self._overrides[key] = value

    def clear_overrides(self) -> None:
        self._overrides.clear()

    def drag_overrides(self, layer_id: str, dx: float, dy: float) -> Dict[str, Number]:
        """Override values moving ``layer_id`` by a screen drag of ``(dx, dy)``."""
        return self._geometry.drag_overrides(layer_id, dx, dy)

    def apply_drag(self, layer_id: str, dx: float, dy: float) -> Dict[str, Number]:
        changed = self.drag_overrides(layer_id, dx, dy)
        self._overrides.update(changed)
        return changed

    # --- passes -----------------------------------------------------------
    async def render(
        self,
        token_address: Optional[str],
        token_id: int,
        *,
        overrides: Mapping[str, Number] | None = None,
        viewport: Tuple[int, int] | None = None,
    ) -> Optional[RenderOutcome]:
        """Render a master token; raises :class:`MetadataUnavailable` when fatal."""

        token = (token_address.lower() if token_address else None, int(token_id))
        if token != self._token and overrides is None:
            self._overrides.clear()
        self._token = token
        if overrides is not None:
            self._overrides = dict(overrides)

        generation = self._begin()
        try:
            resolved = await self._metadata_for(token)
        except MetadataUnavailable as exc:
            return self._fail(generation, exc)
        if not self._is_current(generation):
            return self._discard(generation)
        return await self._build(generation, resolved, int(token_id), viewport)

    async def render_document(
        self,
        metadata: MasterMetadata,
        master_token_id: int,
        *,
        overrides: Mapping[str, Number] | None = None,
        viewport: Tuple[int, int] | None = None,
    ) -> Optional[RenderOutcome]:
        """Render an already parsed master document."""

        token = (None, int(master_token_id))
        if token != self._token and overrides is None:
            self._overrides.clear()
        self._metadata[token] = ResolvedMaster(metadata=metadata)
        self._token = token
        if overrides is not None:
            self._overrides = dict(overrides)
        generation = self._begin()
        return await self._build(
            generation, self._metadata[token], int(master_token_id), viewport
        )

    async def rerender(
        self,
        *,
        overrides: Mapping[str, Number] | None = None,
        viewport: Tuple[int, int] | None = None,
    ) -> Optional[RenderOutcome]:
        """Render the current token again, typically after overrides changed."""

        if self._token is None:
            raise RuntimeError("nothing has been rendered yet")
        address, token_id = self._token
        if overrides is not None:
            self._overrides = dict(overrides)
        return await self.render(address, token_id, viewport=viewport, overrides=self._overrides)

    # --- internals ----------------------------------------------------------
    def _begin(self) -> int:
        self._generation += 1
        self._state = self._machine.transition(self._state, "START")
        self._error = None
        logger.debug("Starting render generation %d", self._generation)
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _advance(self, generation: int, event: str) -> None:
        if self._is_current(generation):
            self._state = self._machine.transition(self._state, event)

    async def _metadata_for(self, token: Tuple[Optional[str], int]) -> ResolvedMaster:
        cached = self._metadata.get(token)
        if cached is not None:
            return cached
        if self._resolver is None:
            raise MetadataUnavailable("no metadata resolver configured")
        address, token_id = token
        resolved = await self._resolver.resolve_master(
            address, token_id, self._on_metadata_progress
        )
        self._metadata[token] = resolved
        return resolved

    async def _canvas_size(self, metadata: MasterMetadata) -> Tuple[int, int]:
        try:
            handle = await self._fetcher.load_image(metadata.image, self._on_metadata_progress)
        except FetchError as exc:
            raise MetadataUnavailable(f"master image unavailable: {exc}") from exc
        return handle.size

    async def _build(
        self,
        generation: int,
        resolved: ResolvedMaster,
        master_token_id: int,
        viewport: Tuple[int, int] | None,
    ) -> Optional[RenderOutcome]:
        metadata = resolved.metadata
        self._advance(generation, "METADATA_READY")
        width, height = viewport or (
            self._config.render.viewport_width,
            self._config.render.viewport_height,
        )
        resolver = ControlValueResolver(
            master_token_id, ControlDefaults.from_metadata(metadata), self._overrides
        )
        try:
            descriptors = descriptors_for(metadata, resolver)
            canvas = await self._canvas_size(metadata)
            if not self._is_current(generation):
                return self._discard(generation)
            ratio = compute_scale_ratio(canvas[0], canvas[1], width, height)
            composer = LayerComposer(
                self._fetcher,
                on_progress=self._on_progress,
                is_current=partial(self._is_current, generation),
                generation=generation,
                cached_images={layer.id: layer.image for layer in self.layers},
                fallback_layout_version=self._config.render.default_layout_version,
            )
            result = await composer.compose(descriptors, resolver, metadata.layout_version, ratio)
        except StaleGeneration:
            return self._discard(generation)
        except MetadataUnavailable as exc:
            return self._fail(generation, exc)
        except ValueError as exc:
            return self._fail(generation, MetadataUnavailable(str(exc)))
        except Exception as exc:
            logger.exception("Render generation %d aborted", generation)
            return self._fail(generation, exc)

        if not self._is_current(generation):
            return self._discard(generation)
        return self._publish(generation, master_token_id, resolved, canvas, ratio, result)

    def _publish(
        self,
        generation: int,
        master_token_id: int,
        resolved: ResolvedMaster,
        canvas: Tuple[int, int],
        ratio: float,
        result: CompositionResult,
    ) -> RenderOutcome:
        outcome = RenderOutcome(
            generation=generation,
            master_token_id=master_token_id,
            metadata=resolved.metadata,
            canvas_size=canvas,
            scale_ratio=ratio,
            layers=list(result.layers),
            failures=list(result.failures),
            collector=resolved.collector,
        )
        self._outcome = outcome
        self._geometry.clear()
        for entry in result.geometry:
            self._geometry.record(entry)
        self._advance(generation, "COMPLETE")
        metrics.render_passes_total.labels(outcome="done").inc()
        return outcome

    def _fail(self, generation: int, exc: Exception) -> None:
        if not self._is_current(generation):
            self._discard(generation)
            return None
        self._error = exc
        self._advance(generation, "FAIL")
        metrics.render_passes_total.labels(outcome="error").inc()
        logger.error("Render generation %d failed: %s", generation, exc)
        raise exc

    def _discard(self, generation: int) -> None:
        logger.debug(
            "Discarding render generation %d (current %d)", generation, self._generation
        )
        metrics.render_passes_total.labels(outcome="stale").inc()
        return None


__all__ = ["RENDER_MACHINE", "RenderOutcome", "RenderSession", "RenderState"]
