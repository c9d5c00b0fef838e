"""시그널링 모듈.

Classes:
    SignalingRelay: 연결 ID → 채널 라우팅, 레지스트리 이벤트 팬아웃
    SignalingHub: 연결별 메시지 처리 (join/leave/signal/screen-share)
    SignalingEnvelope: offer/answer/ICE candidate 시그널
    MessageChannel 및 구현체: InMemoryChannel, WebSocketServerChannel, WebSocketChannel
"""

from .channel import (
    ChannelClosedError,
    InMemoryChannel,
    MessageChannel,
    WebSocketChannel,
    WebSocketServerChannel,
)
from .envelope import EnvelopeError, Event, SignalKind, SignalingEnvelope, make_message
from .hub import SignalingHub
from .relay import SignalingRelay

__all__ = [
    "ChannelClosedError",
    "InMemoryChannel",
    "MessageChannel",
    "WebSocketChannel",
    "WebSocketServerChannel",
    "EnvelopeError",
    "Event",
    "SignalKind",
    "SignalingEnvelope",
    "make_message",
    "SignalingHub",
    "SignalingRelay",
]
