"""피어 세션 데이터 클래스.

Classes:
    PeerState: 원격 피어별 협상 상태
    NegotiationRole: offerer / answerer
    RemoteParticipant: 로컬 로스터에 표시되는 원격 참가자
    PeerSession: 원격 피어 하나에 대한 RTCPeerConnection과 부가 상태

State machine:
    NEW -> OFFER_SENT -> CONNECTED      (offerer: offer 전송 후 answer 수신)
    NEW -> ANSWERING -> CONNECTED       (answerer: offer 수신 후 answer 전송)
    CONNECTED -> CLOSED                 (전송 실패, 원격 퇴장)
    any -> CLOSED                       (로컬 세션 종료)
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class PeerState(str, Enum):
    NEW = "new"
    OFFER_SENT = "offer-sent"
    ANSWERING = "answering"
    CONNECTED = "connected"
    CLOSED = "closed"


class NegotiationRole(str, Enum):
    OFFERER = "offerer"
    ANSWERER = "answerer"


_TRANSITIONS = {
    PeerState.NEW: {PeerState.OFFER_SENT, PeerState.ANSWERING, PeerState.CLOSED},
    PeerState.OFFER_SENT: {PeerState.CONNECTED, PeerState.CLOSED},
    PeerState.ANSWERING: {PeerState.CONNECTED, PeerState.CLOSED},
    PeerState.CONNECTED: {PeerState.CLOSED},
    PeerState.CLOSED: set(),
}


@dataclass
class RemoteParticipant:
    """로컬 로스터의 원격 참가자.

    Attributes:
        member_id (str): 원격 연결 ID
        display_name (str): 표시 이름
        is_host (bool): 호스트 여부
        video_enabled (bool): 원격 카메라 켜짐 여부 (state-update로 갱신)
        audio_enabled (bool): 원격 마이크 켜짐 여부 (state-update로 갱신)
        screen_sharing (bool): 원격 화면 공유 여부
    """
    member_id: str
    display_name: str
    is_host: bool = False
    video_enabled: bool = True
    audio_enabled: bool = True
    screen_sharing: bool = False

    @classmethod
    def from_event(cls, data: Dict[str, Any]) -> "RemoteParticipant":
        """{id, name, isHost} 이벤트 데이터로부터 생성합니다."""
        return cls(
            member_id=data["id"],
            display_name=data.get("name") or data["id"][:8],
            is_host=bool(data.get("isHost", False)),
        )


@dataclass
class PeerSession:
    """원격 피어 하나와의 연결 상태.

    Attributes:
        remote_id (str): 원격 연결 ID
        role (NegotiationRole): 이 쌍에서의 로컬 역할
        pc: RTCPeerConnection (테스트에서는 호환 객체)
        state (PeerState): 협상 상태
        senders (Dict[str, Any]): kind → RTCRtpSender
        sources (Dict[str, Any]): kind → 송신 중인 로컬 원본 트랙 (카메라/마이크/화면)
        outbound (Dict[str, Any]): kind → 이 연결 전용 MediaRelay 구독 트랙
        data_channel: "chat" RTCDataChannel (열리기 전에는 None일 수 있음)
        pending_candidates (List[dict]): remote description 설정 전 수신한 ICE candidate
        remote_tracks (List[Any]): 수신한 원격 미디어 트랙
    """
    remote_id: str
    role: NegotiationRole
    pc: Any
    state: PeerState = PeerState.NEW
    senders: Dict[str, Any] = field(default_factory=dict)
    sources: Dict[str, Any] = field(default_factory=dict)
    outbound: Dict[str, Any] = field(default_factory=dict)
    data_channel: Any = None
    pending_candidates: List[dict] = field(default_factory=list)
    remote_tracks: List[Any] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    timeout_handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_closed(self) -> bool:
        return self.state is PeerState.CLOSED

    @property
    def is_connected(self) -> bool:
        return self.state is PeerState.CONNECTED

    @property
    def has_remote_description(self) -> bool:
        return self.pc.remoteDescription is not None

    def transition(self, new_state: PeerState) -> bool:
        """상태를 전이합니다. 허용되지 않는 전이는 무시하고 False를 반환합니다."""
        if new_state not in _TRANSITIONS[self.state]:
            logger.warning(f"[WebRTC] 피어 {self.remote_id[:8]} 잘못된 상태 전이 무시: "
                           f"{self.state.value} -> {new_state.value}")
            return False
        logger.debug(f"[WebRTC] 피어 {self.remote_id[:8]} 상태: {self.state.value} -> {new_state.value}")
        self.state = new_state
        return True

    def attach_tracks(self, tracks) -> None:
        """(원본, 구독) 트랙 쌍을 연결에 추가하고 sender를 kind별로 기록합니다."""
        for source, outbound in tracks:
            self.sources[source.kind] = source
            self.outbound[source.kind] = outbound
            self.senders[source.kind] = self.pc.addTrack(outbound)

    def replace_video(self, source, outbound) -> bool:
        """비디오 sender의 트랙을 교체하고 이전 구독 트랙을 중지합니다.

        Returns:
            bool: 비디오 sender가 있어 교체했으면 True
        """
        sender = self.senders.get("video")
        if sender is None or self.is_closed:
            return False
        previous = self.outbound.get("video")
        sender.replaceTrack(outbound)
        self.sources["video"] = source
        self.outbound["video"] = outbound
        if previous is not None and previous is not outbound:
            previous.stop()
        return True

    def cancel_timeout(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None

    def send_data(self, payload: Dict[str, Any]) -> bool:
        """데이터 채널이 열려 있으면 JSON 메시지를 보냅니다."""
        channel = self.data_channel
        if channel is None or channel.readyState != "open":
            return False
        channel.send(json.dumps(payload))
        return True

    async def close(self) -> None:
        self.cancel_timeout()
        if self.state is not PeerState.CLOSED:
            self.transition(PeerState.CLOSED)
        await self.pc.close()
        # relay subscriptions only; local sources belong to the manager
        for track in self.outbound.values():
            track.stop()
        self.outbound.clear()
