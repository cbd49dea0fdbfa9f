import json

import pytest


class FakeWebSocket:
    """Stand-in for a server-side WebSocket connection."""

    def __init__(self, port: int = 50000, fail: bool = False):
        self.remote_address = ("127.0.0.1", port)
        self.fail = fail
        self.sent = []
        self.closed = False

    async def send(self, message):
        if self.fail:
            raise ConnectionError("connection reset by peer")
        self.sent.append(message)

    async def close(self):
        self.closed = True

    def messages(self):
        return [json.loads(m) for m in self.sent]

    def types(self):
        return [m["type"] for m in self.messages()]


@pytest.fixture
def make_client():
    counter = iter(range(50000, 60000))

    def factory(fail: bool = False) -> FakeWebSocket:
        return FakeWebSocket(port=next(counter), fail=fail)

    return factory


@pytest.fixture
def spec_file(tmp_path):
    path = tmp_path / "asyncapi.yaml"
    path.write_text("asyncapi: 2.0.0")
    return path
