from __future__ import annotations

import io
import struct
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

import httpx
from PIL import Image

from masterart.foundation.config import GatewayConfig, NetworkConfig, UnifiedConfig
from masterart.runtime.fetcher import LayerFetcher


def png_bytes(width: int, height: int, color: tuple[int, int, int, int] = (255, 0, 0, 255)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def png_header_bytes(width: int, height: int) -> bytes:
    """A PNG that declares ``width`` x ``height`` but carries no pixel data."""

    def chunk(kind: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(kind + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)

    header = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", header) + chunk(b"IDAT", b"") + chunk(b"IEND", b"")


@dataclass
class ContentServer:
    """MockTransport handler serving ``/ipfs/<path>`` content per domain.

    ``content`` maps an ipfs path to bytes or a JSON-able object. Domains in
    ``down`` answer 502 for everything; ``missing`` paths answer 404 on every
    domain.
    """

    content: Dict[str, Any] = field(default_factory=dict)
    down: set[str] = field(default_factory=set)
    missing: set[str] = field(default_factory=set)
    requests: List[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        host = request.url.host
        if host in self.down:
            return httpx.Response(502, request=request)
        path = request.url.path
        if path.startswith("/ipfs/"):
            path = path[len("/ipfs/"):]
        if path in self.missing or path not in self.content:
            return httpx.Response(404, request=request)
        body = self.content[path]
        if isinstance(body, bytes):
            return httpx.Response(200, content=body, request=request)
        return httpx.Response(200, json=body, request=request)

    def hosts(self) -> List[str]:
        return [request.url.host for request in self.requests]

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


def make_config(
    gateways: tuple[str, ...] = ("gw-a.test", "gw-b.test"),
    *,
    custom: str | None = None,
    max_failures: int = 3,
    network: Mapping[str, Any] | None = None,
) -> UnifiedConfig:
    return UnifiedConfig(
        network=NetworkConfig(**dict(network or {})),
        gateways=GatewayConfig(
            gateways=list(gateways),
            custom=custom,
            timeout_seconds=5.0,
            max_failures=max_failures,
        ),
    )


def make_fetcher(server: ContentServer, config: UnifiedConfig | None = None) -> LayerFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return LayerFetcher(config=config or make_config(), client=client)


def master_document(layers: List[Dict[str, Any]], **extra: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "name": "Test Master",
        "image": "ipfs://master",
        "layout": {"version": 1, "layers": layers},
    }
    doc.update(extra)
    return doc
