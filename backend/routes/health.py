"""Health Check API 라우터.

서비스 상태와 미팅/연결 통계 엔드포인트를 제공합니다.
"""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from modules.meeting import RoomRegistry
from modules.signaling import SignalingRelay
from .deps import get_room_registry, get_signaling_relay

router = APIRouter(prefix="/api", tags=["health"])

_started_at = time.monotonic()


@router.get("/health")
async def health_check(relay: SignalingRelay = Depends(get_signaling_relay)):
    """서비스 상태를 확인합니다.

    Returns:
        dict: status, timestamp, uptime(초), activeConnections
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "activeConnections": relay.connection_count,
    }


@router.get("/stats")
async def stats(
    registry: RoomRegistry = Depends(get_room_registry),
    relay: SignalingRelay = Depends(get_signaling_relay),
):
    """미팅 및 WebSocket 연결 통계를 반환합니다."""
    return {
        **registry.stats(),
        "socketConnections": relay.connection_count,
    }
