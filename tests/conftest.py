"""Test configuration and shared fixtures."""

from contextlib import ExitStack

import pytest
import yaml

from masterart.foundation import configuration


@pytest.fixture
def configure_masterart(tmp_path, monkeypatch):
    """Write ``masterart.yml`` into a temp cwd and drop cached configuration."""

    with ExitStack() as stack:

        def _apply(data: dict, *, filename: str = "masterart.yml") -> str:
            cfg_path = tmp_path / filename
            cfg_path.write_text(yaml.safe_dump(data))
            monkeypatch.chdir(tmp_path)
            stack.enter_context(configuration.runtime_config_override(None))
            configuration.reset_runtime_config_cache()
            return str(cfg_path)

        try:
            yield _apply
        finally:
            configuration.reset_runtime_config_cache()
