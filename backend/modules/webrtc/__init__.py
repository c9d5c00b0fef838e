"""WebRTC 모듈.

회의 참가자(클라이언트) 측 피어 연결 관리, 협상, 로컬 미디어 기능을 제공합니다.

Classes:
    MeetingClient: 시그널링 채널 + 피어 세션 매니저를 묶은 회의 참가자
    PeerSessionManager: 원격 참가자별 RTCPeerConnection 관리
    Negotiator: offer/answer/ICE 협상
    PeerSession, PeerState, NegotiationRole, RemoteParticipant: 세션 데이터 클래스
    LocalMedia: 카메라/마이크 (플레이스홀더 fallback)
    ToggleableTrack, BlackVideoTrack: 로컬 미디어 트랙

Config:
    ice_config: ICE 서버 설정
    connection_config: WebRTC 연결 설정
    media_config: 로컬 미디어 장치 설정
"""

from .tracks import ToggleableTrack, BlackVideoTrack
from .media import LocalMedia
from .session import PeerSession, PeerState, NegotiationRole, RemoteParticipant
from .negotiation import Negotiator, candidate_from_dict, candidate_to_dict
from .peer_manager import PeerSessionManager, STATE_UPDATE
from .client import MeetingClient
from .config import (
    ice_config,
    connection_config,
    media_config,
    ICEServerConfig,
    ConnectionConfig,
    MediaConfig,
)

__all__ = [
    # Classes
    "ToggleableTrack",
    "BlackVideoTrack",
    "LocalMedia",
    "PeerSession",
    "PeerState",
    "NegotiationRole",
    "RemoteParticipant",
    "Negotiator",
    "candidate_from_dict",
    "candidate_to_dict",
    "PeerSessionManager",
    "STATE_UPDATE",
    "MeetingClient",
    # Config
    "ice_config",
    "connection_config",
    "media_config",
    "ICEServerConfig",
    "ConnectionConfig",
    "MediaConfig",
]
