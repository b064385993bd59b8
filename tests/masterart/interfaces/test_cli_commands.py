import argparse
import json

import httpx
import pytest

from masterart.interfaces.cli import main
from masterart.interfaces.cli.common import parse_override, parse_viewport

from tests.masterart.helpers import ContentServer, master_document, png_bytes


@pytest.fixture
def content_server(monkeypatch):
    server = ContentServer(
        content={
            "master": png_bytes(1000, 500),
            "bg": png_bytes(1000, 500),
            "dot": png_bytes(20, 20),
        }
    )
    real_client = httpx.AsyncClient

    def _client(*args, **kwargs):
        return real_client(transport=httpx.MockTransport(server), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", _client)
    return server


@pytest.fixture
def metadata_file(tmp_path):
    doc = master_document(
        [
            {"id": "bg", "uri": "ipfs://bg", "fixed-position": {"x": 500, "y": 250}},
            {
                "id": "dot",
                "uri": "ipfs://dot",
                "anchor": "bg",
                "relative-position": {"x": {"token-id": 1, "lever-id": 0}, "y": 0},
            },
            {"id": "lost", "uri": "ipfs://lost"},
        ]
    )
    path = tmp_path / "master.json"
    path.write_text(json.dumps(doc))
    return path


def test_help_and_unknown_command(capsys):
    assert main([]) == 0
    assert "layers" in capsys.readouterr().out
    assert main(["bogus"]) == 2
    assert "Unknown command" in capsys.readouterr().err


def test_version(capsys):
    assert main(["version"]) == 0
    assert capsys.readouterr().out.startswith("masterart version")


def test_layers_json_output(content_server, metadata_file, capsys):
    code = main(
        [
            "layers",
            str(metadata_file),
            "--master-token-id",
            "5",
            "--override",
            "6-0=40",
            "--viewport",
            "500x500",
            "--gateway",
            "gw.test",
            "--json",
        ]
    )

    captured = capsys.readouterr()
    assert code == 0
    payload = json.loads(captured.out)
    assert payload["canvas"] == [1000, 500]
    assert payload["scale_ratio"] == 0.5
    assert payload["collector"] is None
    assert [layer["id"] for layer in payload["layers"]] == ["bg", "dot"]
    dot = payload["layers"][1]
    assert dot["left"] == pytest.approx(265)
    assert dot["anchor"] == "bg"
    assert dot["domain"] == "gw.test"
    assert "skipped:" in captured.err
    assert set(content_server.hosts()) >= {"gw.test"}


def test_layers_table_output(content_server, metadata_file, capsys):
    assert main(["layers", str(metadata_file), "--viewport", "1000x500"]) == 0
    out = capsys.readouterr().out
    assert "canvas 1000x500" in out
    assert "ipfs://dot" in out


def test_layers_unavailable_metadata(content_server, capsys):
    assert main(["layers", "ipfs://nothing-here"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_config_command_shows_ordered_gateways(capsys):
    assert main(["config", "--gateway", "https://mine.test", "--network", "testnet"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["network"]["mode"] == "testnet"
    assert payload["gateways"]["ordered"][0] == "mine.test"


def test_argument_parsers():
    assert parse_viewport("640x480") == (640, 480)
    assert parse_override("12-1=3") == ("12-1", 3)
    assert parse_override("12-1=2.5") == ("12-1", 2.5)
    with pytest.raises(argparse.ArgumentTypeError):
        parse_viewport("640")
    with pytest.raises(argparse.ArgumentTypeError):
        parse_override("12-1")
    with pytest.raises(SystemExit):
        main(["layers", "x.json", "--viewport", "wide"])
