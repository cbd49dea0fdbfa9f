import asyncio
import json
import logging

import pytest
from unittest.mock import MagicMock

from studio_sync.errors import FileError
from studio_sync.server.constants import WatchEventKind
from studio_sync.server.file_gateway import FileGateway
from studio_sync.server.services.sync_service import (
    ConnectionClosed,
    ConnectionOpened,
    MessageReceived,
    SyncService,
)
from studio_sync.server.watcher import WatchEvent


def update(code):
    return json.dumps({"type": "file:update", "code": code})


@pytest.fixture
def service(spec_file):
    return SyncService(spec_file)


@pytest.mark.asyncio
async def test_new_connection_receives_current_content(service, make_client):
    client = make_client()

    await service.on_connection_opened(client)
    await service.registry.drain()

    assert client.messages() == [{"type": "file:loaded", "code": "asyncapi: 2.0.0"}]


@pytest.mark.asyncio
async def test_change_is_broadcast_to_every_client(service, spec_file, make_client):
    clients = [make_client() for _ in range(3)]
    for client in clients:
        await service.on_connection_opened(client)

    spec_file.write_text("asyncapi: 2.1.0")
    await service.on_file_event(WatchEvent(WatchEventKind.CHANGED, spec_file))
    await service.registry.drain()

    for client in clients:
        changed = [m for m in client.messages() if m["type"] == "file:changed"]
        assert changed == [{"type": "file:changed", "code": "asyncapi: 2.1.0"}]


@pytest.mark.asyncio
async def test_added_event_reads_file(service, spec_file, make_client):
    client = make_client()
    await service.on_connection_opened(client)

    await service.on_file_event(WatchEvent(WatchEventKind.ADDED, spec_file))
    await service.registry.drain()

    assert client.messages()[-1] == {"type": "file:changed", "code": "asyncapi: 2.0.0"}


@pytest.mark.asyncio
async def test_removed_event_broadcasts_configured_path_without_reading(spec_file, make_client):
    gateway = MagicMock(spec=FileGateway)
    gateway.read.return_value = "asyncapi: 2.0.0"
    service = SyncService(spec_file, gateway=gateway)
    client = make_client()
    await service.on_connection_opened(client)
    gateway.read.reset_mock()

    await service.on_file_event(WatchEvent(WatchEventKind.REMOVED, spec_file.parent / "elsewhere.yaml"))
    await service.registry.drain()

    gateway.read.assert_not_called()
    assert client.messages()[-1] == {"type": "file:deleted", "filePath": str(spec_file)}


@pytest.mark.asyncio
async def test_read_failure_emits_nothing(service, spec_file, make_client):
    client = make_client()
    await service.on_connection_opened(client)
    spec_file.unlink()

    await service.on_file_event(WatchEvent(WatchEventKind.CHANGED, spec_file))
    await service.registry.drain()

    assert client.types() == ["file:loaded"]
    assert service.stats["read_errors"] == 1


@pytest.mark.asyncio
async def test_read_failure_on_connect_still_registers(spec_file, make_client):
    gateway = MagicMock(spec=FileGateway)
    gateway.read.side_effect = FileError(spec_file, "read", OSError("EIO"))
    service = SyncService(spec_file, gateway=gateway)
    client = make_client()

    await service.on_connection_opened(client)
    await service.registry.drain()

    assert client in service.registry
    assert client.sent == []


@pytest.mark.asyncio
async def test_pending_history_drains_before_initial_load(service, spec_file, make_client):
    """
    Changes made before anyone connected are delivered in order, followed by
    the content at connect time.
    """
    spec_file.write_text("v1")
    await service.on_file_event(WatchEvent(WatchEventKind.CHANGED, spec_file))
    spec_file.write_text("v2")
    await service.on_file_event(WatchEvent(WatchEventKind.CHANGED, spec_file))
    assert service.broadcaster.get_pending_count() == 2

    client = make_client()
    await service.on_connection_opened(client)
    await service.registry.drain()

    assert client.messages() == [
        {"type": "file:changed", "code": "v1"},
        {"type": "file:changed", "code": "v2"},
        {"type": "file:loaded", "code": "v2"},
    ]


@pytest.mark.asyncio
async def test_update_writes_file(service, spec_file, make_client):
    client = make_client()
    await service.on_connection_opened(client)

    await service.on_client_message(client, update("asyncapi: 2.2.0"))

    assert spec_file.read_text() == "asyncapi: 2.2.0"
    assert service.stats["writes"] == 1


@pytest.mark.asyncio
async def test_update_write_failure_is_absorbed(spec_file, make_client):
    gateway = MagicMock(spec=FileGateway)
    gateway.read.return_value = "asyncapi: 2.0.0"
    gateway.write.return_value = False
    service = SyncService(spec_file, gateway=gateway)
    client = make_client()
    await service.on_connection_opened(client)

    await service.on_client_message(client, update("asyncapi: 2.2.0"))
    await service.registry.drain()

    gateway.write.assert_called_once_with(service.file_path, "asyncapi: 2.2.0")
    assert service.stats["write_errors"] == 1
    assert client in service.registry
    assert client.types() == ["file:loaded"]


@pytest.mark.asyncio
async def test_malformed_frame_is_logged_and_ignored(service, spec_file, make_client, caplog):
    client = make_client()
    other = make_client()
    await service.on_connection_opened(client)
    await service.on_connection_opened(other)

    with caplog.at_level(logging.ERROR):
        await service.on_client_message(client, "this is not json")

    assert "Live Server: An invalid event has been received" in caplog.text
    assert "this is not json" in caplog.text
    assert client in service.registry
    assert other in service.registry
    assert spec_file.read_text() == "asyncapi: 2.0.0"
    assert service.stats["protocol_errors"] == 1


@pytest.mark.asyncio
async def test_update_with_bad_code_is_not_written(service, spec_file, make_client):
    client = make_client()
    await service.on_connection_opened(client)

    await service.on_client_message(client, json.dumps({"type": "file:update", "code": 42}))
    await service.on_client_message(client, json.dumps({"type": "file:update"}))

    assert spec_file.read_text() == "asyncapi: 2.0.0"
    assert service.stats["protocol_errors"] == 2


@pytest.mark.asyncio
async def test_unknown_type_is_logged_as_warning(service, spec_file, make_client, caplog):
    client = make_client()
    await service.on_connection_opened(client)

    with caplog.at_level(logging.WARNING):
        await service.on_client_message(client, json.dumps({"type": "file:rename", "to": "x.yaml"}))
        await service.on_client_message(client, json.dumps({"type": "file:changed", "code": "x"}))

    assert "Live Server: An unknown event has been received" in caplog.text
    assert spec_file.read_text() == "asyncapi: 2.0.0"
    assert service.stats["unknown_events"] == 2
    assert client in service.registry


@pytest.mark.asyncio
async def test_closed_connection_stops_receiving(service, spec_file, make_client):
    leaving = make_client()
    staying = make_client()
    await service.on_connection_opened(leaving)
    await service.on_connection_opened(staying)
    await service.registry.drain()

    await service.on_connection_closed(leaving)
    spec_file.write_text("asyncapi: 2.1.0")
    await service.on_file_event(WatchEvent(WatchEventKind.CHANGED, spec_file))
    await service.registry.drain()

    assert "file:changed" not in leaving.types()
    assert staying.types()[-1] == "file:changed"
    assert service.registry.get_client_count() == 1


@pytest.mark.asyncio
async def test_dispatch_loop_processes_events_in_order(service, spec_file, make_client):
    client = make_client()
    runner = asyncio.create_task(service.run())
    try:
        service.submit(ConnectionOpened(client))
        service.submit(MessageReceived(client, update("asyncapi: 2.2.0")))
        service.submit(WatchEvent(WatchEventKind.CHANGED, spec_file))
        await asyncio.wait_for(service.join(), timeout=2)
        await service.registry.drain()

        assert spec_file.read_text() == "asyncapi: 2.2.0"
        assert client.messages() == [
            {"type": "file:loaded", "code": "asyncapi: 2.0.0"},
            {"type": "file:changed", "code": "asyncapi: 2.2.0"},
        ]

        service.submit(ConnectionClosed(client))
        await asyncio.wait_for(service.join(), timeout=2)
    finally:
        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner

    assert service.registry.get_client_count() == 0
    assert service.get_stats()["events_processed"] == 4


@pytest.mark.asyncio
async def test_dispatch_loop_survives_handler_errors(service, make_client, caplog):
    runner = asyncio.create_task(service.run())
    service.on_connection_opened = MagicMock(side_effect=RuntimeError("boom"))
    try:
        service.submit(ConnectionOpened(make_client()))
        service.submit(object())
        await asyncio.wait_for(service.join(), timeout=2)
    finally:
        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner

    assert "Error handling ConnectionOpened" in caplog.text
    assert service.stats["events_processed"] == 2


@pytest.mark.asyncio
async def test_live_sync_scenario(service, spec_file, make_client):
    client_a = make_client()
    await service.on_connection_opened(client_a)
    await service.registry.drain()
    assert client_a.messages() == [{"type": "file:loaded", "code": "asyncapi: 2.0.0"}]

    spec_file.write_text("asyncapi: 2.1.0")
    await service.on_file_event(WatchEvent(WatchEventKind.CHANGED, spec_file))
    await service.registry.drain()
    assert client_a.messages()[-1] == {"type": "file:changed", "code": "asyncapi: 2.1.0"}

    client_b = make_client()
    await service.on_connection_opened(client_b)
    await service.registry.drain()
    assert client_b.messages()[0] == {"type": "file:loaded", "code": "asyncapi: 2.1.0"}

    await service.on_client_message(client_a, update("asyncapi: 2.2.0"))
    assert spec_file.read_text() == "asyncapi: 2.2.0"
