"""공유 의존성 모듈.

라우터들이 공통으로 사용하는 레지스트리/릴레이/허브 인스턴스를 제공합니다.
인스턴스는 app.py의 create_app()에서 init_dependencies()로 설정됩니다.
"""

import logging
from typing import Optional

from modules.meeting import RoomRegistry
from modules.signaling import SignalingHub, SignalingRelay

logger = logging.getLogger(__name__)

# 글로벌 인스턴스 참조 (app.py에서 설정됨)
_registry: Optional[RoomRegistry] = None
_relay: Optional[SignalingRelay] = None
_hub: Optional[SignalingHub] = None


def init_dependencies(registry: RoomRegistry, relay: SignalingRelay, hub: SignalingHub) -> None:
    """라우터가 사용할 인스턴스를 설정합니다.

    Args:
        registry: 룸 레지스트리
        relay: 시그널링 릴레이 (레지스트리 리스너로 등록된 상태)
        hub: 연결별 시그널링 메시지 처리기
    """
    global _registry, _relay, _hub
    _registry = registry
    _relay = relay
    _hub = hub
    logger.info("라우터 의존성 초기화 완료")


def get_room_registry() -> RoomRegistry:
    if _registry is None:
        raise RuntimeError("RoomRegistry is not initialized")
    return _registry


def get_signaling_relay() -> SignalingRelay:
    if _relay is None:
        raise RuntimeError("SignalingRelay is not initialized")
    return _relay


def get_signaling_hub() -> SignalingHub:
    if _hub is None:
        raise RuntimeError("SignalingHub is not initialized")
    return _hub
