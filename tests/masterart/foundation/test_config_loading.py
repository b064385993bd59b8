import json
import logging
from pathlib import Path

import pytest
import yaml

from masterart.foundation.config import (
    DEFAULT_GATEWAYS,
    GatewayConfig,
    NetworkConfig,
    UnifiedConfig,
    config_from_mapping,
    find_config_file,
    load_config,
    normalize_domain,
)
from masterart.foundation.configuration import (
    get_runtime_config,
    get_runtime_config_path,
    get_unified_config,
    reset_runtime_config_cache,
    runtime_config_override,
)


def test_load_config_yaml(tmp_path: Path) -> None:
    data = {
        "network": {"mode": "sepolia", "v2_contract_address": "0xabc"},
        "gateways": {"gateways": ["a.test", "b.test"], "custom": "https://mine.test/", "max_failures": 2},
        "render": {"viewport_width": 800},
    }
    config_file = tmp_path / "masterart.yml"
    config_file.write_text(yaml.safe_dump(data))

    config = load_config(str(config_file))

    assert config.network.mode == "testnet"
    assert not config.network.is_mainnet
    assert config.network.v2_contract_address == "0xabc"
    assert config.gateways.ordered_domains(config.network) == ["mine.test", "a.test", "b.test"]
    assert config.gateways.max_failures == 2
    assert config.render.viewport_width == 800
    assert config.render.viewport_height == 1080
    assert config.present_sections == frozenset({"network", "gateways", "render"})


def test_load_config_json(tmp_path: Path) -> None:
    config_file = tmp_path / "cfg.json"
    config_file.write_text(json.dumps({"test": {"test_mode": True}}))
    config = load_config(str(config_file))
    assert config.test.test_mode is True
    assert config.attempt_timeout == 1.0


def test_defaults_when_empty(tmp_path: Path) -> None:
    config_file = tmp_path / "empty.yml"
    config_file.write_text("{}")
    config = load_config(str(config_file))
    assert isinstance(config, UnifiedConfig)
    assert config.network.mode == "mainnet"
    assert config.network.v1_max_token_id == 347
    assert config.gateways.ordered_domains() == list(DEFAULT_GATEWAYS)
    assert config.attempt_timeout == 20.0
    assert config.present_sections == frozenset()


def test_missing_file() -> None:
    with pytest.raises(FileNotFoundError):
        load_config("missing.yml")


def test_malformed_top_level(tmp_path: Path) -> None:
    config_file = tmp_path / "bad.yml"
    config_file.write_text("- 1")
    with pytest.raises(TypeError):
        load_config(str(config_file))


def test_yaml_error(tmp_path: Path, caplog) -> None:
    config_file = tmp_path / "bad.yml"
    config_file.write_text(":\n  -")
    with caplog.at_level(logging.ERROR):
        with pytest.raises(ValueError, match="Failed to parse configuration file"):
            load_config(str(config_file))


def test_section_must_be_mapping() -> None:
    with pytest.raises(TypeError):
        config_from_mapping({"gateways": ["a.test"]})


def test_unknown_network_mode_rejected() -> None:
    with pytest.raises(ValueError):
        NetworkConfig(mode="moon")


def test_deprecated_aliases(caplog) -> None:
    with caplog.at_level(logging.WARNING):
        config = config_from_mapping(
            {
                "network": {"active_network": "goerli"},
                "gateways": {"ipfs_gateway": "custom.test", "timeout": 3},
            }
        )
    assert config.network.mode == "testnet"
    assert config.gateways.custom == "custom.test"
    assert config.gateways.timeout_seconds == 3
    assert "deprecated" in caplog.text


def test_testnet_gateways_used_off_mainnet() -> None:
    gateways = GatewayConfig(gateways=["main.test"], testnet_gateways=["test.test", "test.test"])
    assert gateways.ordered_domains(NetworkConfig(mode="mainnet")) == ["main.test"]
    assert gateways.ordered_domains(NetworkConfig(mode="testnet")) == ["test.test"]


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("ipfs.io", "ipfs.io"),
        ("https://ipfs.io/", "ipfs.io"),
        ("http://gw.test/ipfs/", "gw.test"),
        ("  dweb.link ", "dweb.link"),
    ],
)
def test_normalize_domain(raw, expected) -> None:
    assert normalize_domain(raw) == expected


def test_find_config_file(tmp_path: Path) -> None:
    assert find_config_file(tmp_path) is None
    (tmp_path / "masterart.yaml").write_text("{}")
    assert find_config_file(tmp_path) == str(tmp_path / "masterart.yaml")


def test_runtime_config_discovered_and_cached(configure_masterart) -> None:
    cfg_path = Path(configure_masterart({"render": {"viewport_width": 640}}))

    first = get_runtime_config()
    assert first is not None
    assert first.render.viewport_width == 640
    assert get_runtime_config() is first
    assert Path(get_runtime_config_path()).name == "masterart.yml"

    cfg_path.write_text(yaml.safe_dump({"render": {"viewport_width": 320}}))
    assert get_unified_config().render.viewport_width == 640
    assert get_unified_config(reload=True).render.viewport_width == 320


def test_runtime_config_defaults_without_file(tmp_path: Path, monkeypatch) -> None:
    reset_runtime_config_cache()
    monkeypatch.chdir(tmp_path)
    with runtime_config_override(None):
        assert get_runtime_config() is None
        assert get_runtime_config_path() is None
        assert get_unified_config().network.mode == "mainnet"


def test_runtime_config_override_context() -> None:
    custom = UnifiedConfig(network=NetworkConfig(mode="testnet"))
    outer = get_unified_config()
    with runtime_config_override(custom):
        assert get_unified_config() is custom
        assert get_runtime_config_path() is None
    assert get_unified_config() is outer
