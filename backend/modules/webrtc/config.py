"""WebRTC 모듈 설정.

TURN/STUN 서버, 협상 타임아웃, 로컬 미디어 장치 등 WebRTC 관련 상수와
환경변수 기반 설정.
"""

import os
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional

# 환경변수 로드 (상위에서 이미 로드됨)
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


# ============================================================
# ICE Server 설정
# ============================================================

@dataclass(frozen=True)
class ICEServerConfig:
    """ICE 서버 설정."""

    # TURN 서버
    TURN_SERVER_URL: Optional[str] = os.getenv("TURN_SERVER_URL")
    TURN_USERNAME: Optional[str] = os.getenv("TURN_USERNAME")
    TURN_CREDENTIAL: Optional[str] = os.getenv("TURN_CREDENTIAL")

    # STUN 서버
    STUN_SERVER_URL: Optional[str] = os.getenv("STUN_SERVER_URL")

    # 기본 공개 STUN 서버 (fallback)
    DEFAULT_STUN_SERVERS: tuple = (
        "stun:stun.l.google.com:19302",
        "stun:stun1.l.google.com:19302",
    )

    @property
    def has_turn_server(self) -> bool:
        """TURN 서버 설정 완료 여부."""
        return all([self.TURN_SERVER_URL, self.TURN_USERNAME, self.TURN_CREDENTIAL])

    def as_dicts(self) -> List[dict]:
        """브라우저 RTCPeerConnection 설정 형식의 ICE 서버 목록.

        /api/turn-credentials 응답에 사용됩니다.

        Returns:
            List[dict]: [{"urls": ..., "username"?: ..., "credential"?: ...}]
        """
        servers = []
        if self.STUN_SERVER_URL:
            servers.append({"urls": self.STUN_SERVER_URL})
        for stun_url in self.DEFAULT_STUN_SERVERS:
            servers.append({"urls": stun_url})
        if self.has_turn_server:
            servers.append({
                "urls": self.TURN_SERVER_URL,
                "username": self.TURN_USERNAME,
                "credential": self.TURN_CREDENTIAL,
            })
        return servers

    def rtc_configuration(self):
        """aiortc RTCConfiguration을 생성합니다.

        Note:
            aiortc는 iceTransportPolicy를 지원하지 않으므로 TURN(우선)과
            STUN(fallback)을 함께 설정합니다.
        """
        from aiortc import RTCConfiguration, RTCIceServer

        ice_servers = [
            RTCIceServer(urls=[server["urls"]], username=server.get("username"), credential=server.get("credential"))
            for server in self.as_dicts()
        ]
        return RTCConfiguration(iceServers=ice_servers)


# ============================================================
# WebRTC 연결 설정
# ============================================================

@dataclass(frozen=True)
class ConnectionConfig:
    """WebRTC 연결 관련 설정."""

    # CONNECTED까지의 협상 타임아웃 (초)
    NEGOTIATION_TIMEOUT: float = float(os.getenv("WEBRTC_NEGOTIATION_TIMEOUT", "30"))

    # 보조 데이터 채널 라벨
    DATA_CHANNEL_LABEL: str = "chat"

    # 오디오 프레임 크기 (samples)
    AUDIO_FRAME_SIZE: int = 960  # 20ms @ 48kHz

    # 오디오 샘플레이트 (Hz)
    AUDIO_SAMPLE_RATE: int = 48000

    # 플레이스홀더 비디오 해상도
    VIDEO_WIDTH: int = 640
    VIDEO_HEIGHT: int = 480


# ============================================================
# 로컬 미디어 장치 설정
# ============================================================

@dataclass(frozen=True)
class MediaConfig:
    """카메라/마이크 장치 설정.

    aiortc.contrib.media.MediaPlayer에 전달되는 장치 경로와 포맷입니다.
    장치가 설정되지 않으면 검은 화면/무음 플레이스홀더 트랙을 사용합니다.

    Examples:
        Linux:  MEDIA_VIDEO_DEVICE=/dev/video0, MEDIA_VIDEO_FORMAT=v4l2
                MEDIA_AUDIO_DEVICE=default, MEDIA_AUDIO_FORMAT=pulse
        macOS:  MEDIA_VIDEO_DEVICE=default:none, MEDIA_VIDEO_FORMAT=avfoundation
    """

    VIDEO_DEVICE: Optional[str] = os.getenv("MEDIA_VIDEO_DEVICE")
    VIDEO_FORMAT: Optional[str] = os.getenv("MEDIA_VIDEO_FORMAT")
    AUDIO_DEVICE: Optional[str] = os.getenv("MEDIA_AUDIO_DEVICE")
    AUDIO_FORMAT: Optional[str] = os.getenv("MEDIA_AUDIO_FORMAT")

    @property
    def has_devices(self) -> bool:
        return bool(self.VIDEO_DEVICE or self.AUDIO_DEVICE)


# ============================================================
# 싱글톤 인스턴스
# ============================================================

ice_config = ICEServerConfig()
connection_config = ConnectionConfig()
media_config = MediaConfig()


# ============================================================
# 설정 로드 확인 로그
# ============================================================

logger.info(f"[WebRTC Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
logger.info(f"[WebRTC Config] TURN 서버 설정 완료: {ice_config.has_turn_server}")
if ice_config.TURN_SERVER_URL:
    logger.info(f"[WebRTC Config] TURN URL: {ice_config.TURN_SERVER_URL}")
if ice_config.STUN_SERVER_URL:
    logger.info(f"[WebRTC Config] STUN URL: {ice_config.STUN_SERVER_URL}")
else:
    logger.info(f"[WebRTC Config] STUN URL: 기본 Google STUN 사용")
logger.info(f"[WebRTC Config] 협상 타임아웃: {connection_config.NEGOTIATION_TIMEOUT}초")
logger.info(f"[WebRTC Config] 미디어 장치 설정: {media_config.has_devices}")
