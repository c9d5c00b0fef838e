"""pytest 공통 fixture.

사용법:
    cd backend
    uv run pytest test
"""

import pytest

from fakes import FAST, NO_DEVICES, FakeNetwork, Recorder, settle, wait_until
from modules.meeting import MeetingSettings, RoomRegistry
from modules.signaling import InMemoryChannel, SignalingHub, SignalingRelay
from modules.webrtc import ConnectionConfig, LocalMedia, MeetingClient


@pytest.fixture
def settings():
    return MeetingSettings()


@pytest.fixture
def registry(settings):
    return RoomRegistry(settings=settings)


@pytest.fixture
def relay(registry):
    relay = SignalingRelay(registry)
    registry.add_listener(relay)
    return relay


@pytest.fixture
def hub(registry, relay, settings):
    return SignalingHub(registry, relay, settings=settings)


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
async def connect_raw(hub):
    """메시지만 기록하는 raw 시그널링 연결을 만듭니다."""
    recorders = []

    async def _connect(name: str = "raw") -> Recorder:
        client_side, server_side = InMemoryChannel.pair(name, f"server-{name}")
        recorder = Recorder(client_side)
        await hub.serve_channel(server_side)
        await wait_until(lambda: recorder.id is not None)
        recorders.append(recorder)
        return recorder

    yield _connect

    for recorder in recorders:
        await recorder.channel.close()
    await settle()


@pytest.fixture
async def connect_client(hub, network):
    """FakePeerConnection을 사용하는 MeetingClient를 만듭니다."""
    clients = []

    async def _connect(name: str, config: ConnectionConfig = FAST) -> MeetingClient:
        client_side, server_side = InMemoryChannel.pair(name, f"server-{name}")
        client = MeetingClient(
            client_side,
            name,
            local_media=LocalMedia(NO_DEVICES),
            pc_factory=network.factory,
            config=config,
        )
        await hub.serve_channel(server_side)
        await client.wait_connected(timeout=2)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        if not client.channel.closed:
            await client.close()
    await settle()
