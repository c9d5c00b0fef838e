"""로컬 미디어(카메라/마이크) 관리 모듈.

aiortc.contrib.media.MediaPlayer로 장치를 열고, 실패하면 플레이스홀더 트랙으로
대체합니다. 미디어 접근 실패는 입장을 막지 않습니다.
"""

import logging
from typing import Optional

from aiortc import AudioStreamTrack, MediaStreamTrack
from aiortc.contrib.media import MediaPlayer

from ..shared.errors import MediaAccessError
from .config import MediaConfig, media_config
from .tracks import BlackVideoTrack, ToggleableTrack

logger = logging.getLogger(__name__)


class LocalMedia:
    """로컬 오디오/비디오 트랙 묶음.

    Attributes:
        audio (Optional[ToggleableTrack]): 마이크 트랙 (open 이후)
        video (Optional[ToggleableTrack]): 카메라 트랙 (open 이후)
        placeholder (bool): 플레이스홀더 트랙 사용 여부
    """

    def __init__(self, config: MediaConfig = media_config):
        self.config = config
        self.audio: Optional[ToggleableTrack] = None
        self.video: Optional[ToggleableTrack] = None
        self.placeholder = False
        self._players = []

    def _open_player(self, device: str, format: Optional[str]) -> MediaPlayer:
        player = MediaPlayer(device, format=format)
        self._players.append(player)
        return player

    def open(self) -> Optional[MediaAccessError]:
        """장치를 열어 로컬 트랙을 준비합니다.

        Returns:
            Optional[MediaAccessError]: 장치 접근에 실패해 플레이스홀더로
                대체한 경우 그 오류. 정상 또는 장치 미설정이면 None
        """
        audio_source: Optional[MediaStreamTrack] = None
        video_source: Optional[MediaStreamTrack] = None
        error: Optional[MediaAccessError] = None

        try:
            if self.config.VIDEO_DEVICE:
                video_source = self._open_player(self.config.VIDEO_DEVICE, self.config.VIDEO_FORMAT).video
                if video_source is None:
                    raise MediaAccessError(f"No video stream on {self.config.VIDEO_DEVICE}")
            if self.config.AUDIO_DEVICE:
                audio_source = self._open_player(self.config.AUDIO_DEVICE, self.config.AUDIO_FORMAT).audio
                if audio_source is None:
                    raise MediaAccessError(f"No audio stream on {self.config.AUDIO_DEVICE}")
        except MediaAccessError as e:
            error = e
        except Exception as e:
            error = MediaAccessError(f"Failed to access camera/microphone: {e}")

        if error is not None:
            logger.warning(f"[WebRTC] 미디어 장치 접근 실패, 플레이스홀더 사용: {error.message}")
            self._stop_players()
            audio_source = video_source = None

        if video_source is None:
            video_source = BlackVideoTrack()
            self.placeholder = True
        if audio_source is None:
            # aiortc AudioStreamTrack emits silence
            audio_source = AudioStreamTrack()
            self.placeholder = True

        self.video = ToggleableTrack(video_source)
        self.audio = ToggleableTrack(audio_source)
        logger.info(f"[WebRTC] 로컬 미디어 준비 완료 (플레이스홀더: {self.placeholder})")
        return error

    def track(self, kind: str) -> Optional[ToggleableTrack]:
        if kind == "audio":
            return self.audio
        if kind == "video":
            return self.video
        raise ValueError(f"unknown track kind: {kind}")

    def tracks(self):
        return [t for t in (self.audio, self.video) if t is not None]

    def _stop_players(self) -> None:
        for player in self._players:
            for track in (player.audio, player.video):
                if track is not None:
                    track.stop()
        self._players.clear()

    def close(self) -> None:
        """모든 로컬 트랙을 중지하고 장치를 해제합니다."""
        for track in self.tracks():
            track.stop()
        self._stop_players()
        self.audio = None
        self.video = None
        logger.info("[WebRTC] 로컬 미디어 해제")
