from pathlib import Path

import pytest

from studio_sync.server.config import StudioConfig
from studio_sync.server.constants import ServerConstants


def test_defaults(monkeypatch):
    monkeypatch.delenv(ServerConstants.REMOTE_ADDRESS_ENV, raising=False)
    config = StudioConfig(file_path="asyncapi.yaml")

    assert config.file_path == Path("asyncapi.yaml").absolute()
    assert config.port == 3210
    assert config.remote is False
    assert config.remote_address == "https://studio.asyncapi.com"
    assert config.static_dir is None


def test_none_port_falls_back_to_default():
    assert StudioConfig(file_path="asyncapi.yaml", port=None).port == 3210


@pytest.mark.parametrize("port", [-1, 65536, 70000])
def test_out_of_range_port_is_rejected(port):
    with pytest.raises(ValueError, match="Port must be between 0 and 65535"):
        StudioConfig(file_path="asyncapi.yaml", port=port)


def test_port_bounds_are_accepted():
    assert StudioConfig(file_path="asyncapi.yaml", port=0).port == 0
    assert StudioConfig(file_path="asyncapi.yaml", port=65535).port == 65535


def test_remote_address_from_environment(monkeypatch):
    monkeypatch.setenv(ServerConstants.REMOTE_ADDRESS_ENV, "https://studio.internal")

    assert StudioConfig(file_path="asyncapi.yaml").remote_address == "https://studio.internal"
    explicit = StudioConfig(file_path="asyncapi.yaml", remote_address="https://other")
    assert explicit.remote_address == "https://other"


def test_local_studio_url():
    config = StudioConfig(file_path="asyncapi.yaml")

    assert config.studio_url() == "http://localhost:3210?liveServer=3210"
    assert config.studio_url(4567) == "http://localhost:4567?liveServer=4567"


def test_remote_studio_url():
    config = StudioConfig(file_path="asyncapi.yaml", remote=True, remote_address="https://studio.example.com")

    assert config.studio_url() == "https://studio.example.com?liveServer=3210"
