from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

from masterart.foundation.config import UnifiedConfig
from masterart.runtime.composer import LayerProgress, RenderedLayer
from masterart.runtime.exceptions import MetadataUnavailable
from masterart.runtime.fetcher import LayerFetcher
from masterart.runtime.metadata import MasterMetadata
from masterart.runtime.resolver import MetadataResolver
from masterart.runtime.session import RenderOutcome, RenderSession

from .common import add_config_arguments, parse_override, parse_viewport, resolve_config

logger = logging.getLogger(__name__)


def cmd_layers(argv: List[str]) -> int:
    """Compose a master document and list its rendered layers."""
    parser = argparse.ArgumentParser(
        prog="masterart layers",
        description="Compose a master document and list its rendered layers",
    )
    parser.add_argument("metadata", help="Metadata JSON file or content URI (ipfs://, https://)")
    parser.add_argument(
        "--master-token-id", "-t", type=int, default=0, help="Master token id used for control keys"
    )
    parser.add_argument(
        "--override",
        "-o",
        action="append",
        type=parse_override,
        default=[],
        metavar="KEY=VALUE",
        help="Preview value for an absolute control key (repeatable)",
    )
    parser.add_argument("--viewport", type=parse_viewport, help="Viewport size as WIDTHxHEIGHT")
    add_config_arguments(parser)
    parser.add_argument("--json", action="store_true", help="Output the layer stack as JSON")

    args = parser.parse_args(argv)
    cfg = resolve_config(args)
    try:
        outcome = asyncio.run(_compose(args, cfg))
    except MetadataUnavailable as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if outcome is None:
        print("Error: render pass was superseded", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(outcome_payload(outcome), indent=2))
    else:
        _print_outcome(outcome)
    for failure in outcome.failures:
        print(f"skipped: {failure}", file=sys.stderr)
    return 0


async def _compose(args: argparse.Namespace, cfg: UnifiedConfig) -> RenderOutcome | None:
    async with LayerFetcher(config=cfg) as fetcher:
        resolver = MetadataResolver(None, fetcher)
        metadata = await load_metadata(args.metadata, resolver)
        session = RenderSession(fetcher, resolver=resolver, config=cfg, on_progress=_log_progress)
        return await session.render_document(
            metadata,
            args.master_token_id,
            overrides=dict(args.override),
            viewport=args.viewport,
        )


async def load_metadata(source: str, resolver: MetadataResolver) -> MasterMetadata:
    """Read a metadata document from a local file or through the gateways."""

    path = Path(source)
    if path.is_file():
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise MetadataUnavailable(f"cannot read {source}: {exc}") from exc
        return MasterMetadata.from_document(document)
    return await resolver.resolve_uri(source)


def _log_progress(progress: LayerProgress) -> None:
    logger.info("[%d/%d] %s", progress.index, progress.total, progress.message)


def layer_payload(layer: RenderedLayer) -> Dict[str, Any]:
    return {
        "id": layer.id,
        "uri": layer.uri,
        "anchor": layer.anchor_id,
        "left": layer.box.left,
        "top": layer.box.top,
        "width": layer.box.width,
        "height": layer.box.height,
        "natural_width": layer.natural_width,
        "natural_height": layer.natural_height,
        "rotation": layer.rotation,
        "opacity": layer.opacity,
        "mirror": [layer.mirror_x, layer.mirror_y],
        "visible": layer.visible,
        "domain": layer.domain,
    }


def outcome_payload(outcome: RenderOutcome) -> Dict[str, Any]:
    return {
        "name": outcome.metadata.name,
        "collector": outcome.collector,
        "canvas": list(outcome.canvas_size),
        "scale_ratio": outcome.scale_ratio,
        "layers": [layer_payload(layer) for layer in outcome.layers],
        "failures": [str(failure) for failure in outcome.failures],
    }


def _print_outcome(outcome: RenderOutcome) -> None:
    width, height = outcome.canvas_size
    title = outcome.metadata.name or "master"
    print(f"{title}: canvas {width}x{height}, scale {outcome.scale_ratio:.4f}")
    print(f"{'#':>3}  {'id':<20} {'left':>9} {'top':>9} {'width':>9} {'height':>9}  uri")
    for index, layer in enumerate(outcome.layers, start=1):
        box = layer.box
        print(
            f"{index:>3}  {layer.id:<20} {box.left:>9.1f} {box.top:>9.1f} "
            f"{box.width:>9.1f} {box.height:>9.1f}  {layer.uri}"
        )
