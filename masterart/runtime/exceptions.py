"""Exception types raised while resolving and composing master artworks."""

from __future__ import annotations

from typing import Sequence

__all__ = [
    "MasterArtError",
    "MetadataUnavailable",
    "MetadataInvalid",
    "FetchError",
    "LayerFetchFailed",
    "LayerBuildFailed",
    "MissingAnchor",
    "StaleGeneration",
]


class MasterArtError(Exception):
    """Base class for all composition errors."""


class MetadataUnavailable(MasterArtError):
    """Raised when the master document cannot be obtained or parsed.

    Fatal to a render pass: nothing can be drawn without it.
    """


class MetadataInvalid(MetadataUnavailable):
    """Raised when the layer list cannot be built in a single ordered pass."""

    def __init__(self, errors: Sequence[str]) -> None:
        self.errors = list(errors)
        detail = "; ".join(self.errors) if self.errors else "invalid layer layout"
        super().__init__(detail)


class FetchError(MasterArtError):
    """Raised once every gateway failed to deliver ``uri``."""

    def __init__(self, uri: str, attempts: Sequence[tuple[str, str]] = ()) -> None:
        self.uri = uri
        self.attempts = list(attempts)
        if self.attempts:
            tried = ", ".join(f"{domain} ({reason})" for domain, reason in self.attempts)
            detail = f"unable to load {uri!r}; tried {tried}"
        else:
            detail = f"unable to load {uri!r}"
        super().__init__(detail)


class LayerFetchFailed(FetchError):
    """A single layer's image could not be loaded; the layer is omitted."""

    def __init__(self, layer_id: str, cause: FetchError) -> None:
        self.layer_id = layer_id
        super().__init__(cause.uri, cause.attempts)


class LayerBuildFailed(MasterArtError):
    """A layer's image loaded but the layer could not be placed."""

    def __init__(self, layer_id: str, reason: str) -> None:
        self.layer_id = layer_id
        self.reason = reason
        super().__init__(f"layer {layer_id!r} could not be built: {reason}")


class MissingAnchor(MasterArtError):
    """The anchor of a layer is absent from the output; placed from the origin."""

    def __init__(self, layer_id: str, anchor_id: str) -> None:
        self.layer_id = layer_id
        self.anchor_id = anchor_id
        super().__init__(
            f"anchor {anchor_id!r} of layer {layer_id!r} was not rendered; "
            "placing layer relative to the canvas origin"
        )


class StaleGeneration(MasterArtError):
    """Raised inside a render pass that was superseded by a newer one."""

    def __init__(self, generation: int, current: int | None = None) -> None:
        self.generation = generation
        self.current = current
        super().__init__(f"render generation {generation} superseded by {current}")
