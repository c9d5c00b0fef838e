"""메시지 채널 테스트.

InMemoryChannel 순서/종료 처리와 websockets 기반 WebSocketChannel을
로컬 서버로 검증합니다.

사용법:
    cd backend
    uv run pytest test/test_channels.py
"""

import json

import pytest
import websockets

from fakes import settle, wait_until
from modules.signaling import ChannelClosedError, InMemoryChannel, WebSocketChannel


async def test_in_memory_pair_preserves_order():
    a, b = InMemoryChannel.pair("a", "b")
    received = []

    async def on_message(message):
        received.append(message["data"]["n"])

    b.on_message(on_message)
    for n in range(20):
        await a.send({"type": "tick", "data": {"n": n}})
    await b.drain()

    assert received == list(range(20))


async def test_in_memory_handler_can_reply():
    a, b = InMemoryChannel.pair("a", "b")
    replies = []

    async def echo(message):
        await b.send({"type": "echo", "data": message})

    async def collect(message):
        replies.append(message)

    b.on_message(echo)
    a.on_message(collect)
    await a.send({"type": "ping", "data": {}})
    await wait_until(lambda: replies)

    assert replies == [{"type": "echo", "data": {"type": "ping", "data": {}}}]


async def test_in_memory_close_notifies_peer_once():
    a, b = InMemoryChannel.pair("a", "b")
    closed = []

    async def on_close():
        closed.append("b")

    b.on_close(on_close)
    await a.close()
    await a.close()
    await wait_until(lambda: closed)
    await settle()

    assert closed == ["b"]
    assert b.closed
    with pytest.raises(ChannelClosedError):
        await a.send({"type": "late", "data": {}})
    with pytest.raises(ChannelClosedError):
        await b.send({"type": "late", "data": {}})


async def test_in_memory_handler_error_keeps_pump_running():
    a, b = InMemoryChannel.pair("a", "b")
    received = []

    async def on_message(message):
        if message["type"] == "boom":
            raise RuntimeError("handler failure")
        received.append(message["type"])

    b.on_message(on_message)
    await a.send({"type": "boom", "data": {}})
    await a.send({"type": "after", "data": {}})
    await b.drain()

    assert received == ["after"]


async def test_websocket_channel_round_trip():
    async def handler(ws):
        await ws.send(json.dumps({"type": "connected", "data": {"id": "server"}}))
        async for raw in ws:
            message = json.loads(raw)
            if message["type"] == "bye":
                break
            await ws.send("not json")
            await ws.send(json.dumps({"type": "echo", "data": message}))

    async with websockets.serve(handler, "127.0.0.1", 0) as server:
        port = server.sockets[0].getsockname()[1]
        channel = WebSocketChannel(f"ws://127.0.0.1:{port}")
        received = []
        closed = []

        async def on_message(message):
            received.append(message)

        async def on_close():
            closed.append(True)

        channel.on_message(on_message)
        channel.on_close(on_close)
        await channel.connect()

        await channel.send({"type": "ping", "data": {"n": 1}})
        await wait_until(lambda: len(received) == 2)

        assert received[0] == {"type": "connected", "data": {"id": "server"}}
        assert received[1] == {"type": "echo", "data": {"type": "ping", "data": {"n": 1}}}

        # 서버가 연결을 닫으면 종료 핸들러 호출
        await channel.send({"type": "bye", "data": {}})
        await wait_until(lambda: closed)

        assert channel.closed
        with pytest.raises(ChannelClosedError):
            await channel.send({"type": "late", "data": {}})
        await channel.close()
        assert closed == [True]
