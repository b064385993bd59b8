"""Token URI lookup against the master art contracts."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from masterart.foundation.config import NetworkConfig

from .controls import Number

TokenKey = Tuple[str, int]


class TokenURIReader(Protocol):
    """Chain access used by the metadata resolver.

    Implementations raise any exception for tokens the contract does not
    know; the resolver treats every failure the same way.
    ``control_token`` returns the lever data of a layer token and ``None``
    for anything else.
    """

    async def token_uri(self, contract_address: str, token_id: int) -> str: ...

    async def owner_of(self, contract_address: str, token_id: int) -> str: ...

    async def control_token(
        self, contract_address: str, token_id: int
    ) -> Optional[Sequence[Number]]: ...

    async def control_token_values(
        self, contract_address: str, token_id: int
    ) -> Mapping[str, Number]: ...


def candidate_contracts(
    network: NetworkConfig, token_id: int, token_address: Optional[str] = None
) -> List[str]:
    """Contracts to query for ``token_id``, newest first.

    An explicit ``token_address`` is used on its own. Otherwise the v2
    contract is tried before the v1 contract, which only minted ids up to
    ``network.v1_max_token_id``.
    """

    if token_address:
        return [token_address]
    contracts: List[str] = []
    if network.v2_contract_address:
        contracts.append(network.v2_contract_address)
    if network.v1_contract_address and int(token_id) <= network.v1_max_token_id:
        contracts.append(network.v1_contract_address)
    return contracts


def _keyed(mapping: Mapping[TokenKey, object] | None) -> Dict[TokenKey, object]:
    return {
        (address.lower(), int(token_id)): value
        for (address, token_id), value in (mapping or {}).items()
    }


class StaticTokenURIReader:
    """In-memory reader for previews and tests."""

    def __init__(
        self,
        uris: Mapping[TokenKey, str] | None = None,
        control_values: Mapping[TokenKey, Mapping[str, Number]] | None = None,
        *,
        owners: Mapping[TokenKey, str] | None = None,
        control_tokens: Mapping[TokenKey, Sequence[Number]] | None = None,
    ) -> None:
        self._uris = _keyed(uris)
        self._values = _keyed(control_values)
        self._owners = _keyed(owners)
        self._control_tokens = _keyed(control_tokens)

    def _lookup(self, table: Dict[TokenKey, object], contract_address: str, token_id: int) -> object:
        try:
            return table[(contract_address.lower(), int(token_id))]
        except KeyError:
            raise LookupError(f"token {token_id} does not exist on {contract_address}") from None

    async def token_uri(self, contract_address: str, token_id: int) -> str:
        return str(self._lookup(self._uris, contract_address, token_id))

    async def owner_of(self, contract_address: str, token_id: int) -> str:
        return str(self._lookup(self._owners, contract_address, token_id))

    async def control_token(
        self, contract_address: str, token_id: int
    ) -> Optional[Sequence[Number]]:
        levers = self._control_tokens.get((contract_address.lower(), int(token_id)))
        return list(levers) if levers is not None else None

    async def control_token_values(
        self, contract_address: str, token_id: int
    ) -> Mapping[str, Number]:
        return dict(self._values.get((contract_address.lower(), int(token_id)), {}))


__all__ = ["StaticTokenURIReader", "TokenKey", "TokenURIReader", "candidate_contracts"]
