import pytest

from masterart.foundation.config import NetworkConfig
from masterart.runtime.chain import StaticTokenURIReader, candidate_contracts
from masterart.runtime.exceptions import MetadataUnavailable
from masterart.runtime.resolver import MetadataResolver

from tests.masterart.helpers import ContentServer, make_config, make_fetcher, master_document

V1 = "0xV1"
V2 = "0xV2"
NETWORK = {"v1_contract_address": V1, "v2_contract_address": V2}
COLLECTOR = "0xC011EC70R"


def _resolver(server, reader):
    fetcher = make_fetcher(server, make_config(network=NETWORK))
    return MetadataResolver(reader, fetcher)


def _reader(uris, **kwargs):
    owners = kwargs.pop("owners", {key: COLLECTOR for key in uris})
    return StaticTokenURIReader(uris, owners=owners, **kwargs)


def test_candidate_contracts_prefer_v2():
    network = NetworkConfig(**NETWORK)
    assert candidate_contracts(network, 10) == [V2, V1]
    assert candidate_contracts(network, 347) == [V2, V1]
    assert candidate_contracts(network, 348) == [V2]
    assert candidate_contracts(network, 10, "0xother") == ["0xother"]
    assert candidate_contracts(NetworkConfig(), 1) == []


@pytest.mark.asyncio
async def test_resolve_falls_back_to_v1_contract():
    server = ContentServer(content={"meta": master_document([{"id": "bg", "uri": "ipfs://bg"}])})
    reader = _reader({(V1, 10): "ipfs://meta"})

    metadata = await _resolver(server, reader).resolve(None, 10)

    assert metadata.name == "Test Master"
    assert [layer.id for layer in metadata.layout.layers] == ["bg"]


@pytest.mark.asyncio
async def test_resolve_master_carries_collector_and_contract():
    server = ContentServer(content={"meta": master_document([])})
    reader = _reader({(V1, 10): "ipfs://meta"}, owners={(V1, 10): COLLECTOR})

    resolved = await _resolver(server, reader).resolve_master(None, 10)

    assert resolved.collector == COLLECTOR
    assert resolved.contract == V1
    assert resolved.token_uri == "ipfs://meta"
    assert resolved.metadata.name == "Test Master"


@pytest.mark.asyncio
async def test_token_without_owner_is_unavailable():
    server = ContentServer(content={"meta": master_document([])})
    reader = _reader({(V2, 5): "ipfs://meta"}, owners={})

    with pytest.raises(MetadataUnavailable, match="does not exist"):
        await _resolver(server, reader).resolve(V2, 5)
    assert server.requests == []


@pytest.mark.asyncio
async def test_layer_token_is_not_a_master():
    server = ContentServer(content={"meta": master_document([])})
    reader = _reader({(V2, 6): "ipfs://meta"}, control_tokens={(V2, 6): [0, 10, 0]})

    with pytest.raises(MetadataUnavailable, match="layer token"):
        await _resolver(server, reader).resolve(V2, 6)
    assert server.requests == []


@pytest.mark.asyncio
async def test_layer_token_on_v2_falls_back_to_v1_master():
    server = ContentServer(content={"v1meta": master_document([])})
    reader = _reader(
        {(V2, 10): "ipfs://layer", (V1, 10): "ipfs://v1meta"},
        control_tokens={(V2, 10): [0, 1, 0]},
    )

    resolved = await _resolver(server, reader).resolve_master(None, 10)

    assert resolved.contract == V1
    assert server.paths() == ["/ipfs/v1meta"]


@pytest.mark.asyncio
async def test_resolve_attaches_onchain_control_values():
    server = ContentServer(content={"meta": master_document([])})
    reader = _reader(
        {(V2, 400): "ipfs://meta"},
        control_values={(V2, 400): {"401-0": 7}},
    )

    metadata = await _resolver(server, reader).resolve(None, 400)

    assert metadata.control_token_values == {"401-0": 7}


@pytest.mark.asyncio
async def test_unknown_token_is_unavailable():
    reader = _reader({})
    with pytest.raises(MetadataUnavailable, match="token 5 unavailable"):
        await _resolver(ContentServer(), reader).resolve(None, 5)


@pytest.mark.asyncio
async def test_unreachable_document_is_unavailable():
    reader = _reader({(V2, 5): "ipfs://gone"})
    with pytest.raises(MetadataUnavailable, match="unable to load"):
        await _resolver(ContentServer(), reader).resolve(V2, 5)


@pytest.mark.asyncio
async def test_malformed_document_is_unavailable():
    server = ContentServer(content={"meta": {"layout": "nope"}})
    reader = _reader({(V2, 5): "ipfs://meta"})
    with pytest.raises(MetadataUnavailable):
        await _resolver(server, reader).resolve(V2, 5)


@pytest.mark.asyncio
async def test_missing_reader_is_unavailable():
    with pytest.raises(MetadataUnavailable):
        await _resolver(ContentServer(), None).resolve(V2, 5)
