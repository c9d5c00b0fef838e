"""양방향 메시지 채널 추상화.

시그널링 릴레이(서버)와 피어 세션 매니저(클라이언트)는 구체적인 전송 계층
대신 MessageChannel 인터페이스(send / on_message / close)에 의존합니다.
같은 코드가 실제 WebSocket과 테스트용 메모리 채널 위에서 그대로 동작합니다.

Classes:
    MessageChannel: 채널 인터페이스
    InMemoryChannel: 같은 프로세스 안에서 연결되는 채널 쌍
    WebSocketServerChannel: FastAPI(Starlette) WebSocket 서버 측 채널
    WebSocketChannel: websockets 라이브러리 기반 클라이언트 채널

Ordering:
    모든 구현은 한 채널에서 보낸 메시지를 보낸 순서대로 상대편에 전달합니다.
    send()는 채널별 asyncio.Lock으로 직렬화됩니다.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional, Tuple

from .envelope import Event, make_message

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict], Awaitable[None]]
CloseHandler = Callable[[], Awaitable[None]]


class ChannelClosedError(ConnectionError):
    """닫힌 채널로 전송을 시도함."""


class MessageChannel(ABC):
    """양방향 JSON 메시지 채널 인터페이스."""

    def __init__(self, name: str = ""):
        self.name = name
        self._message_handler: Optional[MessageHandler] = None
        self._close_handler: Optional[CloseHandler] = None
        self._close_fired = False
        self._closed = False
        self._send_lock = asyncio.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def on_message(self, handler: MessageHandler) -> None:
        """수신 메시지 핸들러를 등록합니다. 핸들러는 순차적으로 호출됩니다."""
        self._message_handler = handler

    def on_close(self, handler: CloseHandler) -> None:
        """채널 종료 핸들러를 등록합니다. 한 번만 호출됩니다."""
        self._close_handler = handler

    async def _dispatch(self, message: Any) -> None:
        if not isinstance(message, dict):
            logger.warning(f"[Channel {self.name}] dict가 아닌 메시지 무시: {type(message).__name__}")
            return
        if self._message_handler is None:
            logger.debug(f"[Channel {self.name}] 핸들러 없음, 메시지 무시: {message.get('type')}")
            return
        await self._message_handler(message)

    async def _fire_close(self) -> None:
        if self._close_fired:
            return
        self._close_fired = True
        if self._close_handler is not None:
            try:
                await self._close_handler()
            except Exception as e:
                logger.error(f"[Channel {self.name}] 종료 핸들러 오류: {e}", exc_info=True)

    @abstractmethod
    async def send(self, message: dict) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class InMemoryChannel(MessageChannel):
    """같은 이벤트 루프 안에서 연결된 채널 쌍의 한쪽.

    send()는 상대편 수신 큐에 메시지를 넣고 즉시 반환합니다. 상대편은 자신의
    펌프 태스크에서 메시지를 하나씩 핸들러로 전달하므로, 핸들러 안에서 다시
    send()를 호출해도 교착 상태가 생기지 않습니다. 메시지는 JSON 왕복 변환을
    거쳐 실제 전송 계층과 같은 형태로 전달됩니다.

    Examples:
        >>> client, server = InMemoryChannel.pair("client", "server")
        >>> server.on_message(handle)
        >>> await client.send({"type": "join-meeting", "data": {...}})
    """

    _CLOSE = object()

    def __init__(self, name: str = ""):
        super().__init__(name)
        self.peer: Optional["InMemoryChannel"] = None
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._pump: Optional[asyncio.Task] = None

    @classmethod
    def pair(cls, a_name: str = "a", b_name: str = "b") -> Tuple["InMemoryChannel", "InMemoryChannel"]:
        a, b = cls(a_name), cls(b_name)
        a.peer, b.peer = b, a
        return a, b

    def on_message(self, handler: MessageHandler) -> None:
        super().on_message(handler)
        self._ensure_pump()

    def on_close(self, handler: CloseHandler) -> None:
        super().on_close(handler)
        self._ensure_pump()

    def _ensure_pump(self) -> None:
        if self._pump is None or self._pump.done():
            self._pump = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            item = await self._inbox.get()
            try:
                if item is self._CLOSE:
                    self._closed = True
                    await self._fire_close()
                    return
                await self._dispatch(item)
            except Exception as e:
                logger.error(f"[Channel {self.name}] 메시지 처리 중 오류: {e}", exc_info=True)
            finally:
                self._inbox.task_done()
            if self._closed:
                return

    async def send(self, message: dict) -> None:
        if self._closed or self.peer is None or self.peer.closed:
            raise ChannelClosedError(f"channel {self.name} is closed")
        async with self._send_lock:
            self.peer._inbox.put_nowait(json.loads(json.dumps(message)))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.peer is not None and not self.peer.closed:
            self.peer._inbox.put_nowait(self._CLOSE)
        if self._pump is not None and not self._pump.done() and self._pump is not asyncio.current_task():
            self._pump.cancel()
        await self._fire_close()

    async def drain(self) -> None:
        """수신 큐에 쌓인 메시지가 모두 처리될 때까지 기다립니다."""
        await self._inbox.join()

    @property
    def pending(self) -> int:
        return self._inbox.qsize()


class WebSocketServerChannel(MessageChannel):
    """FastAPI WebSocket을 감싸는 서버 측 채널.

    serve()가 수신 루프를 돌며 메시지를 핸들러로 전달합니다. 연결이 끊기면
    WebSocketDisconnect가 호출자에게 그대로 전파됩니다.
    """

    def __init__(self, websocket, name: str = ""):
        super().__init__(name)
        self.websocket = websocket

    async def send(self, message: dict) -> None:
        if self._closed:
            raise ChannelClosedError(f"channel {self.name} is closed")
        async with self._send_lock:
            await self.websocket.send_json(message)

    async def serve(self) -> None:
        """연결이 끊길 때까지 메시지를 수신해 핸들러로 전달합니다."""
        try:
            while True:
                raw = await self.websocket.receive_text()
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning(f"[Channel {self.name}] JSON이 아닌 메시지 수신")
                    await self.send(make_message(Event.ERROR, {
                        "code": "bad-request",
                        "message": "Message must be JSON",
                    }))
                    continue
                if not isinstance(message, dict):
                    logger.warning(f"[Channel {self.name}] 객체가 아닌 JSON 메시지 수신: {type(message).__name__}")
                    await self.send(make_message(Event.ERROR, {
                        "code": "bad-request",
                        "message": "Message must be a JSON object",
                    }))
                    continue
                try:
                    await self._dispatch(message)
                except ChannelClosedError:
                    raise
                except Exception as e:
                    logger.error(f"[Channel {self.name}] 메시지 처리 중 오류: {e}", exc_info=True)
        finally:
            self._closed = True
            await self._fire_close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.websocket.close()
        except RuntimeError:
            # already closed by the client
            pass
        await self._fire_close()


class WebSocketChannel(MessageChannel):
    """websockets 라이브러리 기반 클라이언트 채널.

    Examples:
        >>> channel = WebSocketChannel("ws://localhost:8000/ws")
        >>> await channel.connect()
        >>> channel.on_message(handle)
    """

    def __init__(self, url: str, name: str = "client"):
        super().__init__(name)
        self.url = url
        self._ws = None
        self._reader: Optional[asyncio.Task] = None

    async def connect(self) -> None:
        import websockets

        self._ws = await websockets.connect(self.url)
        self._reader = asyncio.create_task(self._read_loop())
        logger.info(f"[Channel {self.name}] 연결됨: {self.url}")

    async def _read_loop(self) -> None:
        from websockets.exceptions import ConnectionClosed

        try:
            async for raw in self._ws:
                try:
                    message = json.loads(raw)
                except json.JSONDecodeError:
                    logger.warning(f"[Channel {self.name}] JSON이 아닌 메시지 무시")
                    continue
                try:
                    await self._dispatch(message)
                except Exception as e:
                    logger.error(f"[Channel {self.name}] 메시지 처리 중 오류: {e}", exc_info=True)
        except ConnectionClosed as e:
            logger.info(f"[Channel {self.name}] 연결 종료: {e}")
        finally:
            self._closed = True
            await self._fire_close()

    async def send(self, message: dict) -> None:
        if self._ws is None or self._closed:
            raise ChannelClosedError(f"channel {self.name} is closed")
        async with self._send_lock:
            await self._ws.send(json.dumps(message))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._ws is not None:
            await self._ws.close()
        if self._reader is not None:
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        await self._fire_close()
