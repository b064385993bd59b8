from __future__ import annotations

"""Gateway-fallback retrieval of layer images and metadata documents."""

import asyncio
import io
import json
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

import httpx
from PIL import Image

from masterart.foundation.common import AsyncCircuitBreaker
from masterart.foundation.config import GatewayConfig, NetworkConfig, UnifiedConfig
from masterart.foundation.configuration import get_unified_config

from . import metrics
from .exceptions import FetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class ImageHandle:
    """Downloaded image bytes plus the natural pixel size Pillow reported."""

    uri: str
    data: bytes = field(repr=False)
    width: int
    height: int
    format: Optional[str] = None
    domain: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return bool(self.data) and self.width > 0 and self.height > 0

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height


@dataclass(frozen=True)
class ContentLocation:
    """Where a content URI can be fetched from.

    ``ipfs_path`` is set for content-addressed URIs, which any gateway can
    serve; ``url``/``origin`` keep a plain HTTP source and its host.
    """

    ipfs_path: Optional[str] = None
    url: Optional[str] = None
    origin: Optional[str] = None


def parse_content_uri(uri: str) -> ContentLocation:
    text = (uri or "").strip()
    if not text:
        raise ValueError("empty content uri")
    lower = text.lower()
    if lower.startswith("ipfs://"):
        path = text[len("ipfs://"):]
        if path.lower().startswith("ipfs/"):
            path = path[len("ipfs/"):]
        return ContentLocation(ipfs_path=path.lstrip("/"))
    if lower.startswith(("http://", "https://")):
        parsed = httpx.URL(text)
        if "/ipfs/" in parsed.path:
            path = parsed.path.split("/ipfs/", 1)[1]
            return ContentLocation(ipfs_path=path, url=text, origin=parsed.host)
        return ContentLocation(url=text, origin=parsed.host)
    if text.startswith("/ipfs/"):
        return ContentLocation(ipfs_path=text[len("/ipfs/"):])
    return ContentLocation(ipfs_path=text.lstrip("/"))


def decode_image(data: bytes) -> Tuple[int, int, Optional[str]]:
    """Return ``(width, height, format)``.

    Raises ``OSError`` when the bytes are not an image and ``ValueError`` when
    the declared size is beyond Pillow's decompression bomb limit.
    """

    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
            return int(width), int(height), img.format
    except Image.DecompressionBombError as exc:
        raise ValueError(str(exc)) from exc


class ImageCache:
    """Append-only URI to :class:`ImageHandle` map shared across passes.

    Content behind a URI is treated as immutable, so entries are never
    replaced or evicted within a session.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, ImageHandle] = {}

    def get(self, uri: str) -> Optional[ImageHandle]:
        return self._entries.get(uri)

    def put(self, handle: ImageHandle) -> ImageHandle:
        existing = self._entries.setdefault(handle.uri, handle)
        metrics.image_cache_entries.set(len(self._entries))
        return existing

    def __contains__(self, uri: object) -> bool:
        return uri in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def uris(self) -> List[str]:
        return list(self._entries)


class LayerFetcher:
    """Fetch content through an ordered list of gateways.

    Each gateway domain has its own circuit breaker; a domain that failed
    ``max_failures`` times in a row is skipped for the rest of the session
    unless every candidate is parked, in which case all are tried again.
    """

    def __init__(
        self,
        *,
        config: UnifiedConfig | None = None,
        gateways: GatewayConfig | None = None,
        network: NetworkConfig | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        cache: ImageCache | None = None,
    ) -> None:
        cfg = config or get_unified_config()
        self._gateways = gateways or cfg.gateways
        self._network = network or cfg.network
        self._timeout = float(timeout if timeout is not None else cfg.attempt_timeout)
        self._client = client
        self._owns_client = client is None
        self.cache = cache if cache is not None else ImageCache()
        self._breakers: Dict[str, AsyncCircuitBreaker] = {}
        self._inflight: Dict[str, asyncio.Task[ImageHandle]] = {}

    @property
    def network(self) -> NetworkConfig:
        return self._network

    @property
    def domains(self) -> List[str]:
        return self._gateways.ordered_domains(self._network)

    @property
    def timeout(self) -> float:
        return self._timeout

    async def __aenter__(self) -> "LayerFetcher":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
            self._owns_client = True
        return self._client

    def breaker(self, domain: str) -> AsyncCircuitBreaker:
        breaker = self._breakers.get(domain)
        if breaker is None:
            breaker = AsyncCircuitBreaker(
                self._gateways.max_failures,
                on_open=lambda: metrics.set_breaker_state(domain, True),
                on_close=lambda: metrics.set_breaker_state(domain, False),
            )
            self._breakers[domain] = breaker
        return breaker

    def candidate_urls(self, uri: str) -> List[Tuple[str, str]]:
        """``(domain, url)`` pairs in attempt order for ``uri``."""

        location = parse_content_uri(uri)
        if location.ipfs_path is None:
            assert location.url is not None
            return [(location.origin or "", location.url)]

        candidates: List[Tuple[str, str]] = []
        if location.url and location.origin:
            candidates.append((location.origin, location.url))
        for domain in self.domains:
            if domain == location.origin:
                continue
            candidates.append((domain, f"https://{domain}/ipfs/{location.ipfs_path}"))
        return candidates

    # --- retrieval ----------------------------------------------------------
    async def load_image(
        self,
        uri: str,
        on_progress: ProgressCallback | None = None,
        cached_handle: ImageHandle | None = None,
    ) -> ImageHandle:
        """Return the image behind ``uri``.

        A valid ``cached_handle`` for the same URI, or a session cache entry,
        is returned without touching the network. Concurrent loads of one URI
        share a single download.
        """

        if cached_handle is not None and cached_handle.is_valid and cached_handle.uri == uri:
            metrics.image_cache_hits_total.inc()
            return cached_handle
        cached = self.cache.get(uri)
        if cached is not None:
            metrics.image_cache_hits_total.inc()
            return cached

        task = self._inflight.get(uri)
        if task is None:
            task = asyncio.create_task(self._download_image(uri, on_progress))
            self._inflight[uri] = task
            task.add_done_callback(partial(self._finish_download, uri))
        return await asyncio.shield(task)

    async def fetch_json(self, uri: str, on_progress: ProgressCallback | None = None) -> Any:
        """Fetch and decode a JSON document through the gateway list."""
        payload, _ = await self._fetch(uri, on_progress, json.loads)
        return payload

    async def _download_image(self, uri: str, on_progress: ProgressCallback | None) -> ImageHandle:
        (data, (width, height, fmt)), domain = await self._fetch(
            uri, on_progress, lambda content: (content, decode_image(content))
        )
        handle = ImageHandle(uri=uri, data=data, width=width, height=height, format=fmt, domain=domain)
        return self.cache.put(handle)

    def _finish_download(self, uri: str, task: asyncio.Task[ImageHandle]) -> None:
        if self._inflight.get(uri) is task:
            del self._inflight[uri]
        if not task.cancelled():
            # retrieve so an unawaited failure is not reported as lost
            task.exception()

    async def _fetch(
        self,
        uri: str,
        on_progress: ProgressCallback | None,
        decode: Callable[[bytes], T],
    ) -> Tuple[T, str]:
        try:
            candidates = self.candidate_urls(uri)
        except (ValueError, httpx.InvalidURL) as exc:
            raise FetchError(uri, [("", str(exc))]) from exc

        active = [c for c in candidates if not self.breaker(c[0]).is_open] or candidates
        attempts: List[Tuple[str, str]] = []
        for domain, url in active:
            _notify(on_progress, domain)
            breaker = self.breaker(domain)
            attempt = partial(self._attempt, url, decode)
            try:
                if breaker.is_open:
                    payload = await attempt()
                else:
                    payload = await breaker(attempt)()
            except (httpx.HTTPError, asyncio.TimeoutError, OSError, ValueError) as exc:
                reason = describe_failure(exc)
                attempts.append((domain, reason))
                metrics.observe_gateway_attempt(domain, "failure")
                logger.info("Gateway %s failed for %s: %s", domain, uri, reason)
                continue
            if breaker.is_open:
                breaker.reset()
            metrics.observe_gateway_attempt(domain, "success")
            return payload, domain

        logger.warning("All gateways failed for %s", uri)
        raise FetchError(uri, attempts)

    async def _attempt(self, url: str, decode: Callable[[bytes], T]) -> T:
        client = self._get_client()
        resp = await asyncio.wait_for(client.get(url, timeout=self._timeout), self._timeout)
        resp.raise_for_status()
        return decode(resp.content)


def _notify(callback: ProgressCallback | None, domain: str) -> None:
    if callback is None:
        return
    try:
        callback(domain)
    except Exception:
        logger.exception("Progress callback failed for %s", domain)


def describe_failure(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return "timeout"
    message = str(exc).strip()
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


__all__ = [
    "ContentLocation",
    "ImageCache",
    "ImageHandle",
    "LayerFetcher",
    "ProgressCallback",
    "decode_image",
    "describe_failure",
    "parse_content_uri",
]
