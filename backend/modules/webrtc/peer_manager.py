"""WebRTC 피어 세션 관리 모듈.

이 모듈은 회의 참가자 한 명(로컬) 입장에서 다른 참가자들과의 WebRTC 연결을
관리합니다. 메시 구조로, 원격 참가자마다 RTCPeerConnection이 정확히 하나씩
존재합니다.

주요 기능:
    - 원격 참가자 로스터 관리 (existing-participants / user-joined / user-left)
    - 피어 연결 생성 및 offer/answer/ICE 협상 (Negotiator에 위임)
    - 협상 타임아웃, 전송 실패 시 정리
    - 로컬 카메라/마이크 음소거 (재협상 없음, 데이터 채널로 상태 전파)
    - 화면 공유 (RTCRtpSender.replaceTrack)
    - "chat" 데이터 채널 메시지 송수신

Architecture:
    - Mesh: 각 클라이언트가 다른 모든 참가자와 1:1 연결
    - sessions: Dict[str, PeerSession] - 원격 ID → 연결 상태
    - roster: Dict[str, RemoteParticipant] - 원격 ID → 표시 정보
    - 로스터 추가/삭제는 await 없이 한 번에 수행되어 중간 상태가 보이지 않음

WebRTC Flow:
    1. 먼저 입장한 쪽이 user-joined 수신 → 연결 생성, 트랙 추가, offer 전송
    2. 새로 입장한 쪽이 offer 수신 → 연결 생성, answer 전송
    3. ICE candidate는 양방향으로 생기는 즉시 전송
    4. user-left / 전송 실패 / 타임아웃 → 연결 종료, 로스터에서 제거

Examples:
    기본 사용법:
        >>> manager = PeerSessionManager(channel.send)
        >>> manager.local_id = "my-connection-id"
        >>> manager.start_media()
        >>> await manager.set_roster(existing_participants)
        >>> await manager.on_member_joined({"id": "peer-2", "name": "Kim", "isHost": False})
        >>> await manager.handle_signal(envelope)
        >>> await manager.close()

See Also:
    negotiation.py: offer/answer/ICE 처리
    aiortc Documentation: https://aiortc.readthedocs.io/
"""
import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union

from aiortc import MediaStreamTrack, RTCPeerConnection
from aiortc.contrib.media import MediaRelay

from ..shared.errors import (
    MediaAccessError,
    NegotiationTimeoutError,
    PeerError,
    TransportFailure,
    UnknownPeerError,
)
from ..signaling.envelope import SignalingEnvelope, SignalKind
from .config import ConnectionConfig, connection_config, ice_config
from .media import LocalMedia
from .negotiation import Negotiator
from .session import NegotiationRole, PeerSession, RemoteParticipant

logger = logging.getLogger(__name__)

STATE_UPDATE = "state-update"

# data-channel state key -> RemoteParticipant attribute
_STATE_FIELDS = {
    "video": "video_enabled",
    "audio": "audio_enabled",
    "screen": "screen_sharing",
}


async def invoke_callback(callback, *args) -> None:
    """UI 콜백을 호출합니다. 콜백 예외는 로그만 남깁니다."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.error(f"[WebRTC] 콜백 처리 중 오류: {e}", exc_info=True)


def default_peer_connection() -> RTCPeerConnection:
    return RTCPeerConnection(configuration=ice_config.rtc_configuration())


class PeerSessionManager:
    """로컬 참가자의 모든 원격 피어 연결을 관리하는 클래스.

    Attributes:
        local_id (Optional[str]): 로컬 연결 ID (connected 이벤트로 설정)
        local_media (LocalMedia): 로컬 카메라/마이크
        sessions (Dict[str, PeerSession]): 원격 ID → 피어 세션
        roster (Dict[str, RemoteParticipant]): 원격 ID → 참가자 정보
        early_candidates (Dict[str, List[dict]]): 연결 생성 전 도착한 ICE candidate
        screen_track (Optional[MediaStreamTrack]): 공유 중인 화면 트랙
        relay (MediaRelay): 로컬 트랙을 연결마다 독립된 구독 트랙으로 나눠주는 릴레이
        offer_timers (Dict[str, asyncio.TimerHandle]): offer를 기다리는 기존 참가자별 타임아웃

    Callbacks:
        on_roster_changed_callback(participants): 로스터 변경
        on_remote_track_callback(member_id, track): 원격 미디어 트랙 수신
        on_peer_failed_callback(member_id, error): 타임아웃/전송 실패
        on_data_message_callback(member_id, payload): 데이터 채널 메시지 (state-update 제외)
        on_notice_callback(message): 사용자 알림 (미디어 접근 실패 등)
        on_screen_share_callback(is_sharing): 로컬 화면 공유 상태 변경

    Note:
        - 같은 원격 피어에 대한 연결은 항상 하나 (중복 offer는 GlareError로 거부)
        - 같은 로컬 트랙을 여러 sender가 직접 recv()하면 프레임이 나뉘므로
          항상 relay.subscribe()로 받은 트랙을 addTrack/replaceTrack에 넘김
        - 한 피어의 오류는 로그만 남기고 다른 피어에 영향을 주지 않음
    """

    def __init__(
        self,
        send_message: Callable[[dict], Awaitable[None]],
        local_media: Optional[LocalMedia] = None,
        pc_factory: Optional[Callable[[], Any]] = None,
        config: ConnectionConfig = connection_config,
    ):
        """PeerSessionManager 초기화.

        Args:
            send_message: 시그널링 서버로 메시지를 보내는 코루틴 함수
            local_media: 로컬 미디어 (기본값: 환경변수 장치 설정의 LocalMedia)
            pc_factory: RTCPeerConnection 생성 함수 (테스트에서 교체)
            config: 연결 설정 (협상 타임아웃 등)
        """
        self.send_message = send_message
        self.local_id: Optional[str] = None
        self.local_media = local_media or LocalMedia()
        self.pc_factory = pc_factory or default_peer_connection
        self.config = config
        self.negotiator = Negotiator(self._send_signal)

        # remote member_id -> PeerSession
        self.sessions: Dict[str, PeerSession] = {}

        # remote member_id -> RemoteParticipant
        self.roster: Dict[str, RemoteParticipant] = {}

        # remote member_id -> candidates received before the connection existed
        self.early_candidates: Dict[str, List[dict]] = {}

        self.screen_track: Optional[MediaStreamTrack] = None

        # one source track, one subscription per peer connection
        self.relay = MediaRelay()

        # remote member_id -> timer waiting for that member's offer
        self.offer_timers: Dict[str, asyncio.TimerHandle] = {}

        self.on_roster_changed_callback = None
        self.on_remote_track_callback = None
        self.on_peer_failed_callback = None
        self.on_data_message_callback = None
        self.on_notice_callback = None
        self.on_screen_share_callback = None

        # background tasks to prevent garbage collection
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fire(self, callback, *args) -> None:
        await invoke_callback(callback, *args)

    async def _fire_roster_changed(self) -> None:
        await self._fire(self.on_roster_changed_callback, self.participants)

    async def _send_signal(self, to: str, kind: SignalKind, payload: Dict[str, Any]) -> None:
        envelope = SignalingEnvelope(to=to, from_=self.local_id or "", kind=kind, payload=payload)
        await self.send_message(envelope.to_message())

    def _outbound_tracks(self) -> List[Tuple[MediaStreamTrack, MediaStreamTrack]]:
        """새 연결에 붙일 (원본, relay 구독) 트랙 쌍 목록."""
        sources = []
        if self.local_media.audio is not None:
            sources.append(self.local_media.audio)
        video = self.screen_track or self.local_media.video
        if video is not None:
            sources.append(video)
        return [(source, self.relay.subscribe(source)) for source in sources]

    @property
    def participants(self) -> List[RemoteParticipant]:
        return list(self.roster.values())

    @property
    def participant_count(self) -> int:
        return len(self.roster)

    def get_session(self, member_id: str) -> Optional[PeerSession]:
        return self.sessions.get(member_id)

    # ------------------------------------------------------------------
    # local media
    # ------------------------------------------------------------------

    def start_media(self) -> Optional[MediaAccessError]:
        """로컬 카메라/마이크를 엽니다.

        장치 접근에 실패해도 플레이스홀더 트랙으로 계속 진행하며, 실패 내용은
        notice 콜백으로 알립니다. 입장을 막지 않습니다.
        """
        if self.local_media.tracks():
            return None
        error = self.local_media.open()
        if error is not None:
            self._spawn(self._fire(self.on_notice_callback, error.message))
        return error

    # ------------------------------------------------------------------
    # peer connection lifecycle
    # ------------------------------------------------------------------

    def _create_session(self, member_id: str, role: NegotiationRole) -> PeerSession:
        self._cancel_offer_timer(member_id)
        pc = self.pc_factory()
        session = PeerSession(remote_id=member_id, role=role, pc=pc)
        self.sessions[member_id] = session
        self._wire_events(session)

        early = self.early_candidates.pop(member_id, [])
        if early:
            session.pending_candidates.extend(early)
            logger.info(f"[WebRTC] 피어 {member_id[:8]} 선도착 ICE candidate {len(early)}개 인계")

        loop = asyncio.get_running_loop()
        session.timeout_handle = loop.call_later(self.config.NEGOTIATION_TIMEOUT, self._on_negotiation_timeout, session)
        logger.info(f"[WebRTC] 피어 연결 생성: peer={member_id[:8]}, role={role.value}")
        return session

    def _wire_events(self, session: PeerSession) -> None:
        pc = session.pc
        member_id = session.remote_id

        @pc.on("icecandidate")
        async def on_ice_candidate(candidate):
            """로컬 ICE candidate를 즉시 원격 피어로 전송."""
            try:
                await self.negotiator.send_local_candidate(session, candidate)
            except Exception as e:
                logger.error(f"[WebRTC] 피어 {member_id[:8]} ICE candidate 전송 실패: {e}")

        @pc.on("connectionstatechange")
        async def on_connection_state_change():
            """연결 상태 변경 감시. failed/disconnected면 전송 실패로 정리."""
            logger.info(f"[WebRTC] 피어 {member_id[:8]} 연결 상태: {pc.connectionState}")
            if pc.connectionState in ("failed", "disconnected") and self.sessions.get(member_id) is session:
                await self.on_transport_failure(member_id)

        @pc.on("track")
        def on_track(track):
            logger.info(f"[WebRTC] 피어 {member_id[:8]} {track.kind} 트랙 수신")
            session.remote_tracks.append(track)
            self._spawn(self._fire(self.on_remote_track_callback, member_id, track))

        @pc.on("datachannel")
        def on_datachannel(channel):
            logger.info(f"[WebRTC] 피어 {member_id[:8]} 데이터 채널 수신: {channel.label}")
            self._wire_data_channel(session, channel)

    def _wire_data_channel(self, session: PeerSession, channel) -> None:
        session.data_channel = channel

        @channel.on("open")
        def on_open():
            self._send_local_state(session)

        @channel.on("message")
        def on_message(message):
            self._handle_data_message(session.remote_id, message)

        # the answering side receives the channel already open
        if channel.readyState == "open":
            self._send_local_state(session)

    def _send_local_state(self, session: PeerSession) -> None:
        audio, video = self.local_media.audio, self.local_media.video
        session.send_data({
            "type": STATE_UPDATE,
            "data": {
                "audio": audio.enabled if audio is not None else False,
                "video": video.enabled if video is not None else False,
                "screen": self.screen_track is not None,
            },
        })

    def _handle_data_message(self, member_id: str, message: Union[str, bytes]) -> None:
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        try:
            payload = json.loads(message)
        except ValueError:
            logger.warning(f"[WebRTC] 피어 {member_id[:8]} JSON이 아닌 데이터 채널 메시지 무시")
            return

        if isinstance(payload, dict) and payload.get("type") == STATE_UPDATE:
            participant = self.roster.get(member_id)
            data = payload.get("data") or {}
            if participant is None or not isinstance(data, dict):
                return
            for key, attr in _STATE_FIELDS.items():
                if key in data:
                    setattr(participant, attr, bool(data[key]))
            logger.debug(f"[WebRTC] 피어 {member_id[:8]} 상태 업데이트: {data}")
            self._spawn(self._fire_roster_changed())
            return

        self._spawn(self._fire(self.on_data_message_callback, member_id, payload))

    def _on_negotiation_timeout(self, session: PeerSession) -> None:
        member_id = session.remote_id
        session.timeout_handle = None
        if self.sessions.get(member_id) is not session or session.is_connected:
            return
        logger.warning(f"[WebRTC] 피어 {member_id[:8]} 협상 타임아웃 ({self.config.NEGOTIATION_TIMEOUT}초, "
                       f"상태: {session.state.value})")
        self._spawn(self._remove_peer(member_id, NegotiationTimeoutError(member_id)))

    def _arm_offer_timer(self, member_id: str) -> None:
        self._cancel_offer_timer(member_id)
        loop = asyncio.get_running_loop()
        self.offer_timers[member_id] = loop.call_later(
            self.config.NEGOTIATION_TIMEOUT, self._on_offer_timeout, member_id
        )

    def _cancel_offer_timer(self, member_id: str) -> None:
        handle = self.offer_timers.pop(member_id, None)
        if handle is not None:
            handle.cancel()

    def _on_offer_timeout(self, member_id: str) -> None:
        """기존 참가자의 offer가 제한 시간 안에 오지 않음 (연결 생성 전)."""
        self.offer_timers.pop(member_id, None)
        if member_id in self.sessions or member_id not in self.roster:
            return
        logger.warning(f"[WebRTC] 피어 {member_id[:8]} offer 대기 타임아웃 ({self.config.NEGOTIATION_TIMEOUT}초)")
        self._spawn(self._remove_peer(member_id, NegotiationTimeoutError(member_id)))

    def _after_negotiation(self, session: PeerSession) -> None:
        if session.is_connected:
            session.cancel_timeout()

    async def _remove_peer(self, member_id: str, error: Optional[PeerError] = None) -> bool:
        """피어 연결을 닫고 로스터에서 제거합니다.

        퇴장, 전송 실패, 협상 타임아웃이 모두 이 경로를 거칩니다.

        Returns:
            bool: 제거할 연결/로스터 항목이 있었으면 True
        """
        self._cancel_offer_timer(member_id)
        session = self.sessions.pop(member_id, None)
        participant = self.roster.pop(member_id, None)
        self.early_candidates.pop(member_id, None)
        if session is None and participant is None:
            return False

        if session is not None:
            try:
                await session.close()
            except Exception as e:
                logger.error(f"[WebRTC] 피어 {member_id[:8]} 연결 종료 중 오류: {e}")

        logger.info(f"[WebRTC] 피어 {member_id[:8]} 연결 종료 (남은 참가자 {len(self.roster)}명)")
        await self._fire_roster_changed()

        if error is not None:
            logger.warning(f"[WebRTC] 피어 {member_id[:8]} 연결 실패: {error.message}")
            await self._fire(self.on_peer_failed_callback, member_id, error)
        return True

    # ------------------------------------------------------------------
    # roster / signaling events
    # ------------------------------------------------------------------

    async def set_roster(self, members: List[Union[dict, RemoteParticipant]]) -> None:
        """existing-participants로 받은 기존 참가자 목록을 설정합니다.

        새로 입장한 쪽은 offer를 보내지 않고 기존 참가자들의 offer를 기다립니다.
        협상 타임아웃 안에 offer가 오지 않은 참가자는 NegotiationTimeoutError로
        로스터에서 제거됩니다.
        """
        roster = {}
        for member in members:
            participant = member if isinstance(member, RemoteParticipant) else RemoteParticipant.from_event(member)
            if participant.member_id != self.local_id:
                roster[participant.member_id] = participant

        for member_id in list(self.offer_timers):
            self._cancel_offer_timer(member_id)
        self.roster = roster
        for member_id in roster:
            if member_id not in self.sessions:
                self._arm_offer_timer(member_id)
        logger.info(f"[WebRTC] 로스터 설정: 기존 참가자 {len(roster)}명 (offer 대기)")
        await self._fire_roster_changed()

    async def on_member_joined(self, member: Union[dict, RemoteParticipant]) -> Optional[PeerSession]:
        """새 참가자에게 연결을 만들고 offer를 보냅니다.

        로컬이 먼저 입장해 있던 쪽이므로 항상 offerer입니다. 같은 ID의 이전
        연결이 남아 있으면 닫고 새로 만듭니다 (재입장).

        Args:
            member: {id, name, isHost} 또는 RemoteParticipant

        Returns:
            Optional[PeerSession]: 생성된 세션. 로컬 자신이면 None
        """
        participant = member if isinstance(member, RemoteParticipant) else RemoteParticipant.from_event(member)
        member_id = participant.member_id
        if member_id == self.local_id:
            return None

        stale = self.sessions.pop(member_id, None)
        if stale is not None:
            logger.info(f"[WebRTC] 피어 {member_id[:8]} 재입장, 이전 연결 종료")
            await stale.close()

        self.roster[member_id] = participant
        self.early_candidates.pop(member_id, None)

        session = self._create_session(member_id, NegotiationRole.OFFERER)
        channel = session.pc.createDataChannel(self.config.DATA_CHANNEL_LABEL, ordered=True)
        self._wire_data_channel(session, channel)
        await self._fire_roster_changed()

        try:
            await self.negotiator.start_offer(session, self._outbound_tracks())
        except Exception as e:
            logger.error(f"[WebRTC] 피어 {member_id[:8]} offer 생성 실패: {e}", exc_info=True)
            await self._remove_peer(member_id, PeerError(member_id, f"Failed to create offer: {e}"))
            return None
        return session

    async def on_offer_received(self, from_id: str, sdp: str) -> PeerSession:
        """원격 offer를 받아 answer를 보냅니다.

        Raises:
            GlareError: 이미 연결이 있는 피어에서 온 offer
            UnknownPeerError: 로스터에 없는 피어에서 온 offer
        """
        session = self.sessions.get(from_id)
        if session is None:
            if from_id not in self.roster:
                raise UnknownPeerError(from_id, f"Offer from unknown peer {from_id}")
            session = self._create_session(from_id, NegotiationRole.ANSWERER)

        await self.negotiator.accept_offer(session, sdp, self._outbound_tracks())
        self._after_negotiation(session)
        return session

    async def on_answer_received(self, from_id: str, sdp: str) -> PeerSession:
        """원격 answer를 적용합니다.

        Raises:
            UnknownPeerError: 해당 피어 연결이 없는 경우
        """
        session = self.sessions.get(from_id)
        if session is None:
            raise UnknownPeerError(from_id)
        await self.negotiator.accept_answer(session, sdp)
        self._after_negotiation(session)
        return session

    async def on_ice_candidate(self, from_id: str, candidate: Dict[str, Any]) -> bool:
        """원격 ICE candidate를 적용하거나 버퍼링합니다.

        연결이 아직 없는 로스터 멤버의 candidate는 연결 생성 시 넘겨주기 위해
        보관합니다.

        Returns:
            bool: 즉시 적용했으면 True, 버퍼링했으면 False

        Raises:
            UnknownPeerError: 연결도 없고 로스터에도 없는 피어
        """
        session = self.sessions.get(from_id)
        if session is None:
            if from_id not in self.roster:
                raise UnknownPeerError(from_id)
            self.early_candidates.setdefault(from_id, []).append(candidate)
            logger.debug(f"[WebRTC] 피어 {from_id[:8]} 연결 생성 전 ICE candidate 보관")
            return False
        return await self.negotiator.add_remote_candidate(session, candidate)

    async def on_member_left(self, member_id: str) -> bool:
        """퇴장한 참가자의 연결을 닫고 로스터에서 제거합니다."""
        return await self._remove_peer(member_id)

    async def on_transport_failure(self, member_id: str) -> bool:
        """ICE/전송 실패한 피어를 퇴장과 같은 경로로 정리하고 알립니다."""
        return await self._remove_peer(member_id, TransportFailure(member_id))

    async def handle_signal(self, envelope: SignalingEnvelope) -> None:
        """webrtc-signal 하나를 종류별로 처리합니다.

        피어 단위 오류는 로그만 남기고 다른 피어 처리에 영향을 주지 않습니다.
        """
        try:
            if envelope.kind is SignalKind.OFFER:
                await self.on_offer_received(envelope.from_, envelope.sdp)
            elif envelope.kind is SignalKind.ANSWER:
                await self.on_answer_received(envelope.from_, envelope.sdp)
            elif envelope.kind is SignalKind.ICE_CANDIDATE:
                await self.on_ice_candidate(envelope.from_, envelope.candidate)
        except PeerError as e:
            logger.warning(f"[WebRTC] {envelope.kind.value} 처리 거부 ({e.code}): {e.message}")
        except Exception as e:
            logger.error(f"[WebRTC] 피어 {envelope.from_[:8]} {envelope.kind.value} 처리 중 오류: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # local controls
    # ------------------------------------------------------------------

    def _broadcast_state(self, data: Dict[str, bool]) -> int:
        sent = 0
        for session in list(self.sessions.values()):
            if session.send_data({"type": STATE_UPDATE, "data": data}):
                sent += 1
        return sent

    def toggle_local_track(self, kind: str, enabled: Optional[bool] = None) -> bool:
        """로컬 카메라/마이크를 켜거나 끕니다.

        트랙 교체가 아니라 enabled 플래그만 바꾸므로 재협상하지 않습니다.
        변경된 상태는 열린 모든 데이터 채널로 state-update 메시지로 전파됩니다.

        Args:
            kind: "audio" 또는 "video"
            enabled: 지정하면 해당 값으로 설정, None이면 반전

        Returns:
            bool: 변경 후 enabled 값
        """
        track = self.local_media.track(kind)
        if track is None:
            raise MediaAccessError(f"Local {kind} track is not available")

        track.enabled = (not track.enabled) if enabled is None else enabled
        sent = self._broadcast_state({kind: track.enabled})
        logger.info(f"[WebRTC] 로컬 {kind} {'켜짐' if track.enabled else '꺼짐'} ({sent}개 피어에 전파)")
        return track.enabled

    async def replace_outbound_video(self, source: Optional[MediaStreamTrack]) -> int:
        """모든 연결의 송신 비디오 트랙을 교체합니다 (화면 공유).

        Args:
            source: 화면 공유 트랙. None이면 카메라 트랙으로 복원

        Returns:
            int: 트랙을 교체한 연결 수

        Note:
            - 공유 트랙의 "ended" 이벤트(공유 중지)에서도 카메라로 복원
            - 재협상하지 않음
        """
        previous = self.screen_track
        if source is not None and source is previous:
            return 0

        if source is None:
            self.screen_track = None
            target = self.local_media.video
        else:
            self.screen_track = source
            target = source

            @source.on("ended")
            def on_ended():
                if self.screen_track is source:
                    logger.info("[WebRTC] 화면 공유 트랙 종료, 카메라로 복원")
                    self._spawn(self.replace_outbound_video(None))

        replaced = 0
        for session in list(self.sessions.values()):
            if "video" not in session.senders or session.is_closed:
                continue
            try:
                outbound = self.relay.subscribe(target) if target is not None else None
                if session.replace_video(target, outbound):
                    replaced += 1
            except Exception as e:
                logger.error(f"[WebRTC] 피어 {session.remote_id[:8]} 비디오 트랙 교체 실패: {e}")

        if previous is not None and previous is not source and previous.readyState != "ended":
            previous.stop()

        is_sharing = self.screen_track is not None
        self._broadcast_state({"screen": is_sharing})
        logger.info(f"[WebRTC] 화면 공유 {'시작' if is_sharing else '종료'} ({replaced}개 연결)")
        await self._fire(self.on_screen_share_callback, is_sharing)
        return replaced

    def send_data(self, member_id: Optional[str], payload: Any) -> int:
        """데이터 채널로 임의 JSON 메시지를 보냅니다 (채팅/파일 등).

        Args:
            member_id: 수신 피어 ID. None이면 모든 피어
            payload: JSON 직렬화 가능한 값

        Returns:
            int: 전송한 채널 수
        """
        if member_id is not None:
            session = self.sessions.get(member_id)
            if session is None:
                raise UnknownPeerError(member_id)
            return 1 if session.send_data(payload) else 0
        return sum(1 for session in list(self.sessions.values()) if session.send_data(payload))

    async def close(self) -> None:
        """모든 피어 연결을 닫고 로컬 미디어를 해제합니다.

        퇴장 시 leave-meeting 전송 전에 호출됩니다.
        """
        sessions = list(self.sessions.values())
        self.sessions.clear()
        for session in sessions:
            try:
                await session.close()
            except Exception as e:
                logger.error(f"[WebRTC] 피어 {session.remote_id[:8]} 연결 종료 중 오류: {e}")

        for member_id in list(self.offer_timers):
            self._cancel_offer_timer(member_id)
        had_roster = bool(self.roster)
        self.roster = {}
        self.early_candidates.clear()

        if self.screen_track is not None:
            screen, self.screen_track = self.screen_track, None
            screen.stop()
        self.local_media.close()

        for task in list(self._tasks):
            if task is not asyncio.current_task() and not task.done():
                task.cancel()

        logger.info(f"[WebRTC] 모든 피어 연결 종료 ({len(sessions)}개)")
        if had_roster:
            await self._fire_roster_changed()
