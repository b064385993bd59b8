from __future__ import annotations

"""Typed view of a master artwork's metadata document."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .exceptions import MetadataUnavailable

logger = logging.getLogger(__name__)

# Keys of a layer (or state option) entry that are structural rather than
# transformation properties.
STRUCTURAL_LAYER_KEYS = frozenset(
    {"id", "anchor", "anchorId", "uri", "states", "label", "transformationProperties"}
)


class ControlRef(BaseModel):
    """Reference to a lever on a control token, relative to the master id."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    control_token_id: int = Field(
        validation_alias=AliasChoices("token-id", "controlTokenId", "control_token_id"),
        serialization_alias="token-id",
    )
    lever_id: int = Field(
        validation_alias=AliasChoices("lever-id", "leverId", "lever_id"),
        serialization_alias="lever-id",
    )

    def key(self, master_token_id: int) -> str:
        """Absolute lookup key ``"{master + control}-{lever}"``."""
        return f"{int(master_token_id) + self.control_token_id}-{self.lever_id}"


ControlInput = Union[int, float, ControlRef]


class StateOption(BaseModel):
    """One selectable state of a layer; carries its own image and transforms."""

    model_config = ConfigDict(extra="allow", frozen=True)

    uri: str
    label: Optional[str] = None

    def transformation_properties(self) -> Dict[str, Any]:
        return _transformation_properties(self.model_extra or {})


class LayerStates(BaseModel):
    """Control-driven choice between several images for one layer."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    control_token_id: int = Field(
        validation_alias=AliasChoices("token-id", "controlTokenId", "control_token_id"),
    )
    lever_id: int = Field(
        validation_alias=AliasChoices("lever-id", "leverId", "lever_id"),
    )
    options: List[StateOption] = Field(default_factory=list)

    @property
    def ref(self) -> ControlRef:
        return ControlRef(control_token_id=self.control_token_id, lever_id=self.lever_id)


class LayoutLayer(BaseModel):
    """A layer entry exactly as it appears in ``layout.layers``."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: str
    anchor: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("anchor", "anchorId")
    )
    uri: Optional[str] = None
    label: Optional[str] = None
    states: Optional[LayerStates] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("anchor", mode="before")
    @classmethod
    def _blank_anchor(cls, value: Any) -> Any:
        if value in ("", None):
            return None
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    def transformation_properties(self) -> Dict[str, Any]:
        return _transformation_properties(self.model_extra or {})


class Layout(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int = 1
    layers: List[LayoutLayer] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def _default_version(cls, value: Any) -> Any:
        # Documents written before layout versioning carry no version or 0.
        if value in (None, "", 0):
            return 1
        return value


class AsyncAttributes(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    artists: List[str] = Field(default_factory=list)
    unminted_token_values: Dict[str, float] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("unminted-token-values", "unmintedTokenValues"),
    )


class MasterMetadata(BaseModel):
    """Master document: canvas image, ordered layers and control defaults.

    ``control_token_values`` holds the on-chain lever values recorded for
    the master's control tokens, keyed by absolute ``"{token}-{lever}"``
    keys. The chain reader fills it in; documents read from storage leave it
    empty.
    """

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    image: str
    layout: Layout
    attributes: Any = Field(default_factory=list)
    async_attributes: Optional[AsyncAttributes] = Field(
        default=None,
        validation_alias=AliasChoices("async-attributes", "asyncAttributes"),
    )
    control_token_values: Dict[str, float] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("control-token-values", "controlTokenValues"),
    )

    @classmethod
    def from_document(cls, data: Any) -> "MasterMetadata":
        """Parse a decoded JSON document, raising :class:`MetadataUnavailable`."""

        if not isinstance(data, Mapping):
            raise MetadataUnavailable("master metadata must be a JSON object")
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            logger.error("Malformed master metadata: %s", exc)
            raise MetadataUnavailable(f"malformed master metadata: {exc.error_count()} error(s)") from exc

    @property
    def layout_version(self) -> int:
        return self.layout.version

    @property
    def unminted_values(self) -> Dict[str, float]:
        if self.async_attributes is None:
            return {}
        return dict(self.async_attributes.unminted_token_values)

    @property
    def artists(self) -> List[str]:
        if self.async_attributes is None:
            return []
        return list(self.async_attributes.artists)

    def with_control_values(self, values: Mapping[str, float]) -> "MasterMetadata":
        return self.model_copy(update={"control_token_values": dict(values)})


def _transformation_properties(extra: Mapping[str, Any]) -> Dict[str, Any]:
    props: Dict[str, Any] = {}
    nested = extra.get("transformationProperties")
    if isinstance(nested, Mapping):
        props.update(nested)
    for key, value in extra.items():
        if key in STRUCTURAL_LAYER_KEYS:
            continue
        props[key] = value
    return props


__all__ = [
    "AsyncAttributes",
    "ControlInput",
    "ControlRef",
    "LayerStates",
    "Layout",
    "LayoutLayer",
    "MasterMetadata",
    "StateOption",
]
