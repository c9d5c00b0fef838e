"""WebRTC 시그널링 WebSocket 라우터.

WebRTC 시그널링을 위한 WebSocket 엔드포인트를 제공합니다.
미팅 입장/퇴장, offer/answer/ICE candidate 전달, 화면 공유 상태 알림을
SignalingHub에 위임합니다.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from modules.signaling import WebSocketServerChannel
from .deps import get_signaling_hub

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebRTC 시그널링을 위한 WebSocket 엔드포인트.

    클라이언트와의 WebSocket 연결을 통해 실시간 시그널링 메시지를 주고받습니다.
    연결 직후 connected{id} 메시지로 연결 ID를 알려줍니다.

    처리하는 메시지 타입:
        - join-meeting: 미팅 입장 (code, name, isHost, userId?)
        - webrtc-signal: offer/answer/ICE candidate 전달 (to, signal)
        - leave-meeting: 미팅 퇴장
        - screen-share: 화면 공유 상태 (isSharing)

    Note:
        - 연결이 어떻게 끊기든 finally에서 퇴장 처리(user-left 알림)를 수행
        - 형식이 잘못된 메시지는 error{code: "bad-request"}로 응답하고 연결 유지

    Args:
        websocket: FastAPI WebSocket 연결 객체
    """
    hub = get_signaling_hub()
    await websocket.accept()

    channel = WebSocketServerChannel(websocket)
    connection_id = await hub.attach(channel)

    async def on_message(message: dict) -> None:
        await hub.handle_message(connection_id, message)

    channel.on_message(on_message)

    try:
        await channel.serve()
    except WebSocketDisconnect:
        logger.info(f"[Signaling] 피어 {connection_id[:8]} 연결 끊김")
    except Exception as e:
        logger.error(f"[Signaling] 피어 {connection_id[:8]} WebSocket 오류: {e}", exc_info=True)
    finally:
        await hub.detach(connection_id)
