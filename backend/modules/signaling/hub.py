"""시그널링 허브 모듈.

클라이언트 연결 하나의 수명(연결 → 메시지 처리 → 종료)을 관리합니다.
WebSocket 라우터와 테스트용 메모리 채널이 같은 허브를 사용합니다.

처리하는 메시지 타입:
    - join-meeting: 미팅 입장 (code, name, isHost, userId?)
    - webrtc-signal: offer/answer/ICE candidate 전달 (from은 서버가 기록)
    - leave-meeting: 미팅 퇴장
    - screen-share: 화면 공유 상태 알림
"""

import logging
import uuid
from typing import Optional

from ..meeting.config import MeetingSettings, meeting_settings
from ..meeting.models import MemberRole
from ..meeting.registry import RoomRegistry
from ..shared.errors import MeetingError
from .channel import MessageChannel
from .envelope import EnvelopeError, Event, SignalingEnvelope, make_message
from .relay import SignalingRelay

logger = logging.getLogger(__name__)

BAD_REQUEST = "bad-request"
NOT_IN_MEETING = "not-in-meeting"
SCREEN_SHARE_DISABLED = "screen-share-disabled"


class SignalingHub:
    """연결별 시그널링 메시지를 레지스트리/릴레이 호출로 변환하는 클래스.

    Attributes:
        registry (RoomRegistry): 룸 레지스트리
        relay (SignalingRelay): 시그널 라우터 (레지스트리 리스너로 등록됨)
    """

    def __init__(self, registry: RoomRegistry, relay: SignalingRelay, settings: Optional[MeetingSettings] = None):
        self.registry = registry
        self.relay = relay
        self.settings = settings or meeting_settings

    async def attach(self, channel: MessageChannel, connection_id: Optional[str] = None) -> str:
        """새 연결을 등록하고 connected 이벤트로 연결 ID를 알립니다.

        Returns:
            str: 발급된 연결 ID
        """
        connection_id = connection_id or str(uuid.uuid4())
        channel.name = channel.name or connection_id[:8]
        self.relay.register(connection_id, channel)
        await self.relay.send_to(connection_id, make_message(Event.CONNECTED, {"id": connection_id}))
        logger.info(f"[Signaling] 피어 {connection_id[:8]} 연결됨")
        return connection_id

    async def detach(self, connection_id: str) -> None:
        """연결 종료를 처리합니다.

        룸에 남아 있으면 비정상 종료로 간주해 퇴장 처리(user-left 알림)한 뒤
        채널 등록을 해제합니다. 이미 leave-meeting으로 나간 연결이면 알림 없음.
        """
        member = await self.registry.handle_disconnect(connection_id)
        if member is not None:
            logger.info(f"[Signaling] 피어 {connection_id[:8]} 연결 끊김으로 퇴장 처리")
        self.relay.unregister(connection_id)

    async def serve_channel(self, channel: MessageChannel, connection_id: Optional[str] = None) -> str:
        """메시지 핸들러와 종료 핸들러를 채널에 연결합니다.

        on_message/on_close 콜백 방식의 채널(메모리 채널 등)에서 사용합니다.
        """
        connection_id = await self.attach(channel, connection_id)

        async def on_message(message: dict) -> None:
            await self.handle_message(connection_id, message)

        async def on_close() -> None:
            await self.detach(connection_id)

        channel.on_message(on_message)
        channel.on_close(on_close)
        return connection_id

    async def send_error(self, connection_id: str, code: str, message: str) -> None:
        await self.relay.send_to(connection_id, make_message(Event.ERROR, {"code": code, "message": message}))

    async def handle_message(self, connection_id: str, message: dict) -> None:
        """수신 메시지 하나를 처리합니다.

        형식이 잘못된 메시지에는 error{code: "bad-request"}로 응답하고 연결은
        유지합니다.
        """
        message_type = message.get("type")
        data = message.get("data") or {}
        if not isinstance(data, dict):
            await self.send_error(connection_id, BAD_REQUEST, "Message data must be an object")
            return

        if message_type == Event.JOIN_MEETING.value:
            await self._handle_join_meeting(connection_id, data)

        elif message_type == Event.WEBRTC_SIGNAL.value:
            await self._handle_signal(connection_id, data)

        elif message_type == Event.LEAVE_MEETING.value:
            await self._handle_leave_meeting(connection_id)

        elif message_type == Event.SCREEN_SHARE.value:
            await self._handle_screen_share(connection_id, data)

        else:
            logger.warning(f"[Signaling] 알 수 없는 메시지 타입: {message_type}")
            await self.send_error(connection_id, BAD_REQUEST, f"Unknown message type: {message_type}")

    async def _handle_join_meeting(self, connection_id: str, data: dict) -> None:
        """미팅 입장 처리.

        성공하면 레지스트리 리스너(릴레이)가 existing-participants와
        user-joined를 전송합니다. 실패하면 error 메시지로 응답합니다.
        """
        code = data.get("code")
        name = data.get("name")
        if not isinstance(code, str) or not code or not isinstance(name, str) or not name.strip():
            await self.send_error(connection_id, BAD_REQUEST, "code and name are required")
            return

        user_id = data.get("userId")
        if user_id is not None and not isinstance(user_id, str):
            await self.send_error(connection_id, BAD_REQUEST, "userId must be a string")
            return
        user_id = user_id or None

        is_host = bool(data.get("isHost", False))
        role = MemberRole.HOST if is_host else MemberRole.PARTICIPANT

        try:
            result = await self.registry.join(
                code,
                connection_id,
                name.strip(),
                role,
                user_id=user_id,
                create_if_missing=is_host and self.settings.AUTO_CREATE_ON_HOST_JOIN,
            )
        except MeetingError as e:
            logger.info(f"[Signaling] 피어 {connection_id[:8]} 입장 실패: {e.code} ({e.message})")
            await self.send_error(connection_id, e.code, e.message)
            return

        if not result.is_new:
            # already in this room: resend the roster only
            await self.relay.send_to(connection_id, make_message(Event.EXISTING_PARTICIPANTS, {
                "code": result.room.code,
                "participants": [m.to_event() for m in result.existing_members],
            }))

    async def _handle_signal(self, connection_id: str, data: dict) -> None:
        """WebRTC 시그널 전달. 발신자(from)는 연결 ID로 덮어씁니다."""
        if self.registry.get_member_room(connection_id) is None:
            await self.send_error(connection_id, NOT_IN_MEETING, "Not in a meeting")
            return

        try:
            envelope = SignalingEnvelope.from_data(data, sender_id=connection_id)
        except EnvelopeError as e:
            logger.warning(f"[Signaling] 피어 {connection_id[:8]}의 잘못된 시그널: {e}")
            await self.send_error(connection_id, BAD_REQUEST, str(e))
            return

        await self.relay.route(envelope)

    async def _handle_leave_meeting(self, connection_id: str) -> None:
        code = self.registry.get_member_room(connection_id)
        if code is None:
            return
        try:
            await self.registry.leave(code, connection_id)
        except MeetingError as e:
            await self.send_error(connection_id, e.code, e.message)

    async def _handle_screen_share(self, connection_id: str, data: dict) -> None:
        """화면 공유 상태를 룸의 다른 참가자에게 알립니다."""
        code = self.registry.get_member_room(connection_id)
        if code is None:
            await self.send_error(connection_id, NOT_IN_MEETING, "Not in a meeting")
            return

        room = self.registry.get_room(code)
        is_sharing = bool(data.get("isSharing", False))
        if is_sharing and not room.settings.allow_screen_share:
            await self.send_error(connection_id, SCREEN_SHARE_DISABLED, "Screen sharing is disabled")
            return

        member = room.find_active(connection_id)
        await self.relay.broadcast_to_room(
            code,
            Event.SCREEN_SHARE_STATUS,
            {
                "id": connection_id,
                "name": member.display_name if member else None,
                "isSharing": is_sharing,
            },
            exclude=[connection_id],
        )
