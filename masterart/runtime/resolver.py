from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from masterart.foundation.config import NetworkConfig

from .chain import TokenURIReader, candidate_contracts
from .exceptions import FetchError, MetadataUnavailable
from .fetcher import LayerFetcher, ProgressCallback
from .metadata import MasterMetadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedMaster:
    """A master document plus where it was found on chain and who holds it."""

    metadata: MasterMetadata = field(repr=False)
    contract: Optional[str] = None
    token_uri: Optional[str] = None
    collector: Optional[str] = None


class MetadataResolver:
    """Turn a master token into its parsed metadata document.

    The token URI comes from ``reader``; the document is fetched through the
    same gateway fallback as layer images. Layer tokens are not masters and
    are rejected. Every failure surfaces as :class:`MetadataUnavailable`.
    """

    def __init__(
        self,
        reader: TokenURIReader | None,
        fetcher: LayerFetcher,
        *,
        network: NetworkConfig | None = None,
    ) -> None:
        self._reader = reader
        self._fetcher = fetcher
        self._network = network or fetcher.network

    @property
    def network(self) -> NetworkConfig:
        return self._network

    async def resolve(
        self,
        token_address: Optional[str],
        token_id: int,
        on_progress: ProgressCallback | None = None,
    ) -> MasterMetadata:
        resolved = await self.resolve_master(token_address, token_id, on_progress)
        return resolved.metadata

    async def resolve_master(
        self,
        token_address: Optional[str],
        token_id: int,
        on_progress: ProgressCallback | None = None,
    ) -> ResolvedMaster:
        if self._reader is None:
            raise MetadataUnavailable("no chain reader configured")
        contracts = candidate_contracts(self._network, token_id, token_address)
        if not contracts:
            raise MetadataUnavailable(
                f"no contract configured for token {token_id} on {self._network.mode}"
            )

        problems: List[str] = []
        for contract in contracts:
            try:
                uri = await self._reader.token_uri(contract, token_id)
                if not uri:
                    problems.append(f"{contract}: empty token uri")
                    continue
                collector = await self._reader.owner_of(contract, token_id)
            except Exception as exc:
                logger.info("Token %s not readable from %s: %s", token_id, contract, exc)
                problems.append(f"{contract}: {exc}")
                continue

            if await self._is_layer_token(contract, token_id):
                logger.info("Token %s on %s is a layer token", token_id, contract)
                problems.append(f"{contract}: token {token_id} is a layer token")
                continue

            metadata = await self.resolve_uri(uri, on_progress)
            try:
                values = await self._reader.control_token_values(contract, token_id)
            except Exception:
                logger.warning(
                    "Could not read control values for token %s; using recorded defaults",
                    token_id,
                    exc_info=True,
                )
                values = {}
            if values:
                metadata = metadata.with_control_values(values)
            return ResolvedMaster(
                metadata=metadata, contract=contract, token_uri=uri, collector=collector
            )

        raise MetadataUnavailable(f"token {token_id} unavailable: {'; '.join(problems)}")

    async def resolve_uri(
        self, uri: str, on_progress: ProgressCallback | None = None
    ) -> MasterMetadata:
        try:
            document = await self._fetcher.fetch_json(uri, on_progress)
        except FetchError as exc:
            raise MetadataUnavailable(str(exc)) from exc
        return MasterMetadata.from_document(document)

    async def _is_layer_token(self, contract: str, token_id: int) -> bool:
        assert self._reader is not None
        try:
            levers = await self._reader.control_token(contract, token_id)
        except Exception:
            # masters have no control token data; contracts revert for them
            return False
        return bool(levers)


__all__ = ["MetadataResolver", "ResolvedMaster"]
