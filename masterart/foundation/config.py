from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, FrozenSet, Mapping

import yaml  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)


MAINNET = "mainnet"
TESTNET = "testnet"
NETWORK_MODES: tuple[str, ...] = (MAINNET, TESTNET)

DEFAULT_GATEWAYS: tuple[str, ...] = (
    "ipfs.io",
    "gateway.pinata.cloud",
    "dweb.link",
    "nftstorage.link",
)

_GATEWAY_ALIASES: dict[str, str] = {
    "ipfs_gateway": "custom",
    "ipfs_gateway_url": "custom",
    "domains": "gateways",
    "timeout": "timeout_seconds",
}

_NETWORK_ALIASES: dict[str, str] = {
    "active_network": "mode",
    "chain": "mode",
}


@dataclass
class NetworkConfig:
    """Chain selection and the contracts masters are read from."""

    mode: str = MAINNET
    v1_contract_address: str | None = None
    v2_contract_address: str | None = None
    v1_max_token_id: int = 347

    def __post_init__(self) -> None:
        mode = str(self.mode).strip().lower()
        if mode in {"goerli", "sepolia", "test"}:
            mode = TESTNET
        if mode not in NETWORK_MODES:
            raise ValueError(f"unknown network mode: {self.mode!r}")
        self.mode = mode

    @property
    def is_mainnet(self) -> bool:
        return self.mode == MAINNET


@dataclass
class GatewayConfig:
    """Ordered content gateways used by the metadata resolver and fetcher."""

    gateways: list[str] = field(default_factory=lambda: list(DEFAULT_GATEWAYS))
    testnet_gateways: list[str] | None = None
    custom: str | None = None
    timeout_seconds: float = 20.0
    max_failures: int = 3

    def ordered_domains(self, network: NetworkConfig | None = None) -> list[str]:
        """Return gateway domains in attempt order for ``network``."""

        base = self.gateways
        if network is not None and not network.is_mainnet and self.testnet_gateways:
            base = self.testnet_gateways
        domains: list[str] = []
        if self.custom:
            domains.append(normalize_domain(self.custom))
        for domain in base:
            normalized = normalize_domain(domain)
            if normalized and normalized not in domains:
                domains.append(normalized)
        return domains


@dataclass
class RenderConfig:
    """Defaults applied when a render request omits them."""

    viewport_width: int = 1920
    viewport_height: int = 1080
    default_layout_version: int = 1


@dataclass
class TestConfig:
    """Runtime toggles for tests and deterministic runs."""

    test_mode: bool = False
    timeout_seconds_test: float = 1.0


CONFIG_SECTION_NAMES: tuple[str, ...] = (
    "network",
    "gateways",
    "render",
    "test",
)


@dataclass
class UnifiedConfig:
    """Configuration aggregating network, gateway and render settings."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    gateways: GatewayConfig = field(default_factory=GatewayConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    test: TestConfig = field(default_factory=TestConfig)
    present_sections: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def attempt_timeout(self) -> float:
        if self.test.test_mode:
            return float(self.test.timeout_seconds_test)
        return float(self.gateways.timeout_seconds)


def normalize_domain(value: str) -> str:
    """Strip scheme, path and trailing slashes from a gateway entry."""

    text = str(value).strip()
    for prefix in ("https://", "http://"):
        if text.lower().startswith(prefix):
            text = text[len(prefix):]
            break
    return text.split("/", 1)[0].strip()


def find_config_file(cwd: Path | None = None) -> str | None:
    """Return the first discoverable configuration file in ``cwd``."""

    base = Path.cwd() if cwd is None else cwd

    for name in ("masterart.yml", "masterart.yaml"):
        candidate = base / name
        if candidate.is_file():
            return str(candidate)
    return None


def _read_config_mapping(path: str) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            try:
                data = yaml.safe_load(fh) or {}
            except yaml.YAMLError as exc:
                logger.error("Failed to parse configuration file %s: %s", path, exc)
                raise ValueError(f"Failed to parse configuration file {path}") from exc
    except (FileNotFoundError, OSError) as exc:
        logger.error("Unable to open configuration file %s: %s", path, exc)
        raise

    if not isinstance(data, dict):
        raise TypeError("Unified config must be a mapping")
    return data


def _extract_sections(data: Mapping[str, Any]) -> tuple[dict[str, dict[str, Any]], FrozenSet[str]]:
    present_sections: FrozenSet[str] = frozenset(
        section
        for section in CONFIG_SECTION_NAMES
        if section in data and isinstance(data.get(section), dict)
    )

    sections: dict[str, dict[str, Any]] = {}
    for section_name in CONFIG_SECTION_NAMES:
        raw_section = data.get(section_name, {})
        if raw_section is None:
            raw_section = {}
        if not isinstance(raw_section, dict):
            raise TypeError(f"{section_name} section must be a mapping")
        sections[section_name] = dict(raw_section)
    return sections, present_sections


def _apply_aliases(section: Mapping[str, Any], aliases: Mapping[str, str], *, logger_prefix: str) -> dict[str, Any]:
    normalized = dict(section)
    for alias, canonical in aliases.items():
        if canonical in normalized:
            continue
        if alias in normalized:
            logger.warning(
                "%s: key '%s' is deprecated; use '%s' instead",
                logger_prefix,
                alias,
                canonical,
            )
            normalized[canonical] = normalized.pop(alias)
    return normalized


def config_from_mapping(data: Mapping[str, Any]) -> UnifiedConfig:
    """Build :class:`UnifiedConfig` from an already parsed mapping."""

    sections, present_sections = _extract_sections(data)
    network_data = _apply_aliases(sections["network"], _NETWORK_ALIASES, logger_prefix="network")
    gateway_data = _apply_aliases(sections["gateways"], _GATEWAY_ALIASES, logger_prefix="gateways")

    return UnifiedConfig(
        network=NetworkConfig(**network_data),
        gateways=GatewayConfig(**gateway_data),
        render=RenderConfig(**sections["render"]),
        test=TestConfig(**sections["test"]),
        present_sections=present_sections,
    )


def load_config(path: str) -> UnifiedConfig:
    """Parse YAML/JSON and populate :class:`UnifiedConfig`."""
    return config_from_mapping(_read_config_mapping(path))


__all__ = [
    "CONFIG_SECTION_NAMES",
    "DEFAULT_GATEWAYS",
    "GatewayConfig",
    "MAINNET",
    "NETWORK_MODES",
    "NetworkConfig",
    "RenderConfig",
    "TESTNET",
    "TestConfig",
    "UnifiedConfig",
    "config_from_mapping",
    "find_config_file",
    "load_config",
    "normalize_domain",
]
