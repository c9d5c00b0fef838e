"""Backend modules package.

이 패키지는 WebRTC 기반 화상 회의 시스템의 핵심 모듈을 포함합니다.

Modules:
    meeting: 룸 레지스트리 (미팅 코드, 참가자 입장/퇴장)
    signaling: 시그널링 릴레이, 메시지 채널, WebSocket 이벤트 처리
    webrtc: 참가자 측 피어 세션 매니저 및 협상 (aiortc)
    shared: 공통 DTO와 예외

NOTE: webrtc 모듈은 aiortc를 로드하므로 여기서 import하지 않습니다.
    필요한 곳에서 `from modules.webrtc import MeetingClient`처럼 직접 import합니다.
"""

from .meeting import (
    RoomRegistry,
    RegistryListener,
    InMemoryRoomStore,
    MemberRole,
    get_meeting_settings,
)
from .signaling import (
    SignalingHub,
    SignalingRelay,
    SignalingEnvelope,
    InMemoryChannel,
    WebSocketServerChannel,
)
from .shared import MeetingError

__all__ = [
    # Meeting
    "RoomRegistry",
    "RegistryListener",
    "InMemoryRoomStore",
    "MemberRole",
    "get_meeting_settings",
    # Signaling
    "SignalingHub",
    "SignalingRelay",
    "SignalingEnvelope",
    "InMemoryChannel",
    "WebSocketServerChannel",
    # Shared
    "MeetingError",
]
