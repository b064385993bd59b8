"""Anchor dependency validation for a master's layer list."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol, Sequence

from .exceptions import MetadataInvalid


class AnchoredLayer(Protocol):
    @property
    def id(self) -> str: ...

    @property
    def anchor_id(self) -> Optional[str]: ...


@dataclass
class ValidationResult:
    """Result of layer validation."""

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class LayerValidator:
    """Checks that layers can be built in declared order.

    Declared order doubles as z-order and as the build order, so every anchor
    must name a layer listed earlier. Forward and self references (and hence
    cycles) are errors; anchors naming no layer at all only warn, the layer
    is then placed as if unanchored.
    """

    def validate_layers(self, layers: Sequence[AnchoredLayer]) -> ValidationResult:
        result = ValidationResult(valid=True)

        all_ids = [layer.id for layer in layers]
        seen: set[str] = set()
        duplicates: list[str] = []
        for layer_id in all_ids:
            if layer_id in seen and layer_id not in duplicates:
                duplicates.append(layer_id)
            seen.add(layer_id)
        if duplicates:
            result.valid = False
            result.errors.append(f"Duplicate layer ids found: {duplicates}")
            return result

        known = set(all_ids)
        built: set[str] = set()
        for layer in layers:
            anchor = layer.anchor_id
            if anchor is not None:
                if anchor == layer.id:
                    result.valid = False
                    result.errors.append(f"Layer '{layer.id}' is anchored to itself")
                elif anchor not in known:
                    result.warnings.append(
                        f"Layer '{layer.id}' references unknown anchor '{anchor}'"
                    )
                elif anchor not in built:
                    result.valid = False
                    result.errors.append(
                        f"Layer '{layer.id}' references anchor '{anchor}' "
                        "which is declared after it"
                    )
            built.add(layer.id)

        return result

    def ensure_valid(self, layers: Sequence[AnchoredLayer]) -> ValidationResult:
        """Validate and raise :class:`MetadataInvalid` on any error."""

        result = self.validate_layers(layers)
        if result.valid:
            return result
        errors = list(result.errors)
        if len({layer.id for layer in layers}) == len(layers):
            try:
                self.build_order(layers)
            except MetadataInvalid as exc:
                errors.extend(exc.errors)
        raise MetadataInvalid(errors)

    def build_order(self, layers: Iterable[AnchoredLayer]) -> List[str]:
        """Order layer ids so every anchor precedes its dependents.

        Used to report cycles; rendering always follows declared order.
        """
        pending = list(layers)
        known = {layer.id for layer in pending}
        ordered: List[str] = []
        placed: set[str] = set()

        while pending:
            ready = [
                layer
                for layer in pending
                if layer.anchor_id is None
                or layer.anchor_id not in known
                or layer.anchor_id in placed
            ]
            if not ready:
                cycle = sorted(layer.id for layer in pending)
                raise MetadataInvalid([f"Circular anchor dependency between layers {cycle}"])
            for layer in ready:
                ordered.append(layer.id)
                placed.add(layer.id)
            pending = [layer for layer in pending if layer.id not in placed]

        return ordered


__all__ = ["AnchoredLayer", "LayerValidator", "ValidationResult"]
