"""회의 참가 클라이언트 모듈.

시그널링 채널(MessageChannel)과 PeerSessionManager를 연결해 회의 참가자 한
명의 전체 흐름(연결 → 입장 → 협상 → 퇴장)을 구성합니다.

Examples:
    실제 서버에 접속:
        >>> channel = WebSocketChannel("ws://localhost:8000/ws")
        >>> await channel.connect()
        >>> client = MeetingClient(channel, "Kim")
        >>> await client.join("ABC-123-XYZ")
        >>> client.toggle_video()
        >>> await client.leave()
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional

from ..shared.errors import (
    InvalidMeetingCodeError,
    MeetingError,
    NotHostError,
    RoomEndedError,
    RoomFullError,
    RoomNotFoundError,
)
from ..signaling.channel import MessageChannel
from ..signaling.envelope import EnvelopeError, Event, SignalingEnvelope, make_message
from .config import ConnectionConfig, connection_config
from .media import LocalMedia
from .peer_manager import PeerSessionManager, invoke_callback
from .session import RemoteParticipant

logger = logging.getLogger(__name__)

# error.code -> exception raised from join()
_JOIN_ERRORS = {
    cls.code: cls
    for cls in (InvalidMeetingCodeError, RoomNotFoundError, RoomEndedError, RoomFullError, NotHostError)
}


class MeetingClient:
    """시그널링 이벤트를 피어 세션 매니저 호출로 변환하는 회의 참가자.

    Attributes:
        channel (MessageChannel): 시그널링 서버 채널
        display_name (str): 표시 이름
        member_id (Optional[str]): 서버가 발급한 연결 ID
        meeting_code (Optional[str]): 현재 입장한 미팅 코드
        manager (PeerSessionManager): 피어 연결 관리자
        meeting_ended (Optional[dict]): meeting-ended 이벤트 데이터

    Callbacks:
        on_error_callback(code, message): 입장 외 서버 error 이벤트
        on_meeting_ended_callback(data): 호스트가 미팅 종료
        on_screen_share_status_callback(member_id, is_sharing): 원격 화면 공유 상태
    """

    def __init__(
        self,
        channel: MessageChannel,
        display_name: str,
        local_media: Optional[LocalMedia] = None,
        pc_factory: Optional[Callable[[], Any]] = None,
        config: ConnectionConfig = connection_config,
    ):
        self.channel = channel
        self.display_name = display_name
        self.member_id: Optional[str] = None
        self.meeting_code: Optional[str] = None
        self.is_host = False
        self.meeting_ended: Optional[dict] = None

        self.manager = PeerSessionManager(self._send, local_media=local_media, pc_factory=pc_factory, config=config)
        self.manager.on_screen_share_callback = self._on_local_screen_share

        self.on_error_callback = None
        self.on_meeting_ended_callback = None
        self.on_screen_share_status_callback = None

        self._connected = asyncio.Event()
        self._join_future: Optional[asyncio.Future] = None

        channel.on_message(self._on_message)
        channel.on_close(self._on_close)

    @property
    def participants(self) -> List[RemoteParticipant]:
        return self.manager.participants

    @property
    def in_meeting(self) -> bool:
        return self.meeting_code is not None

    async def _send(self, message: dict) -> None:
        await self.channel.send(message)

    async def wait_connected(self, timeout: float = 10.0) -> str:
        """connected 이벤트로 연결 ID를 받을 때까지 기다립니다."""
        await asyncio.wait_for(self._connected.wait(), timeout)
        return self.member_id

    async def join(self, code: str, is_host: bool = False, user_id: Optional[str] = None,
                   timeout: float = 10.0) -> List[RemoteParticipant]:
        """미팅에 입장합니다.

        로컬 미디어를 먼저 열고(실패해도 플레이스홀더로 계속) join-meeting을
        보낸 뒤 existing-participants를 기다립니다. 입장한 쪽은 offer를 보내지
        않습니다.

        Returns:
            List[RemoteParticipant]: 기존 참가자 목록

        Raises:
            RoomNotFoundError, RoomEndedError, RoomFullError, InvalidMeetingCodeError:
                서버가 입장을 거부한 경우 (피어 연결은 생성되지 않음)
            asyncio.TimeoutError: 제한 시간 안에 응답이 없는 경우
            ConnectionError: 응답 전에 시그널링 채널이 닫힌 경우

        Note:
            어떤 이유로든 입장에 실패하면 먼저 연 로컬 미디어를 해제합니다.
        """
        await self.wait_connected(timeout)
        self.manager.start_media()

        loop = asyncio.get_running_loop()
        self._join_future = loop.create_future()
        data = {"code": code, "name": self.display_name, "isHost": is_host}
        if user_id:
            data["userId"] = user_id

        try:
            await self._send(make_message(Event.JOIN_MEETING, data))
            room_code = await asyncio.wait_for(self._join_future, timeout)
        except (Exception, asyncio.CancelledError) as e:
            # rejected, timed out or disconnected: release media opened above
            logger.info(f"[WebRTC] 미팅 입장 실패: {type(e).__name__}")
            await self.manager.close()
            raise
        finally:
            self._join_future = None

        self.meeting_code = room_code
        self.is_host = is_host
        self.meeting_ended = None
        logger.info(f"[WebRTC] 미팅 '{room_code}' 입장 완료 (기존 참가자 {self.manager.participant_count}명)")
        return self.manager.participants

    async def leave(self) -> None:
        """미팅에서 퇴장합니다.

        모든 피어 연결과 로컬 미디어를 먼저 정리한 뒤 leave-meeting을 보냅니다.
        """
        if not self.in_meeting:
            return
        await self.manager.close()
        code, self.meeting_code = self.meeting_code, None
        if not self.channel.closed:
            await self._send(make_message(Event.LEAVE_MEETING))
        logger.info(f"[WebRTC] 미팅 '{code}' 퇴장")

    async def close(self) -> None:
        await self.leave()
        await self.channel.close()

    def toggle_video(self, enabled: Optional[bool] = None) -> bool:
        return self.manager.toggle_local_track("video", enabled)

    def toggle_audio(self, enabled: Optional[bool] = None) -> bool:
        return self.manager.toggle_local_track("audio", enabled)

    async def start_screen_share(self, track) -> int:
        return await self.manager.replace_outbound_video(track)

    async def stop_screen_share(self) -> int:
        return await self.manager.replace_outbound_video(None)

    def send_chat(self, payload: Any, member_id: Optional[str] = None) -> int:
        return self.manager.send_data(member_id, payload)

    async def _on_local_screen_share(self, is_sharing: bool) -> None:
        if self.in_meeting and not self.channel.closed:
            await self._send(make_message(Event.SCREEN_SHARE, {"isSharing": is_sharing}))

    # ------------------------------------------------------------------
    # signaling events
    # ------------------------------------------------------------------

    async def _on_message(self, message: dict) -> None:
        message_type = message.get("type")
        data: Dict[str, Any] = message.get("data") or {}

        if message_type == Event.CONNECTED.value:
            self.member_id = data.get("id")
            self.manager.local_id = self.member_id
            self._connected.set()
            logger.info(f"[WebRTC] 시그널링 서버 연결: {self.member_id}")

        elif message_type == Event.EXISTING_PARTICIPANTS.value:
            await self.manager.set_roster(data.get("participants") or [])
            if self._join_future is not None and not self._join_future.done():
                self._join_future.set_result(data.get("code"))

        elif message_type == Event.USER_JOINED.value:
            await self.manager.on_member_joined(data)

        elif message_type == Event.USER_LEFT.value:
            await self.manager.on_member_left(data.get("id"))

        elif message_type == Event.WEBRTC_SIGNAL.value:
            try:
                envelope = SignalingEnvelope.from_data(data)
            except EnvelopeError as e:
                logger.warning(f"[WebRTC] 잘못된 시그널 무시: {e}")
                return
            await self.manager.handle_signal(envelope)

        elif message_type == Event.SCREEN_SHARE_STATUS.value:
            participant = self.manager.roster.get(data.get("id"))
            if participant is not None:
                participant.screen_sharing = bool(data.get("isSharing"))
            await invoke_callback(self.on_screen_share_status_callback, data.get("id"), bool(data.get("isSharing")))

        elif message_type == Event.MEETING_ENDED.value:
            logger.info(f"[WebRTC] 호스트가 미팅 종료: {data.get('endedBy')}")
            await self.manager.close()
            self.meeting_code = None
            self.meeting_ended = data
            await invoke_callback(self.on_meeting_ended_callback, data)

        elif message_type == Event.ERROR.value:
            code = data.get("code", "error")
            text = data.get("message", "")
            if self._join_future is not None and not self._join_future.done():
                error_cls = _JOIN_ERRORS.get(code, MeetingError)
                self._join_future.set_exception(error_cls(text or None))
                return
            logger.warning(f"[WebRTC] 서버 오류: {code} ({text})")
            await invoke_callback(self.on_error_callback, code, text)

        else:
            logger.debug(f"[WebRTC] 처리하지 않는 메시지 타입: {message_type}")

    async def _on_close(self) -> None:
        """시그널링 채널이 끊기면 모든 피어 연결을 정리합니다."""
        logger.info("[WebRTC] 시그널링 채널 종료")
        if self._join_future is not None and not self._join_future.done():
            self._join_future.set_exception(ConnectionError("signaling channel closed"))
        if self.in_meeting:
            await self.manager.close()
            self.meeting_code = None
