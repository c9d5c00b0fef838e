"""로컬 미디어 트랙 모듈.

카메라/마이크 트랙을 감싸 음소거(enabled 플래그)를 지원하는 트랙과,
장치가 없을 때 사용하는 플레이스홀더 트랙을 제공합니다.
"""

import logging

from aiortc import MediaStreamTrack, VideoStreamTrack
from av import AudioFrame, VideoFrame

from .config import connection_config

logger = logging.getLogger(__name__)

# yuv420p black
_BLACK_YUV = (16, 128, 128)


def black_video_frame(width: int, height: int) -> VideoFrame:
    frame = VideoFrame(width=width, height=height, format="yuv420p")
    for plane, value in zip(frame.planes, _BLACK_YUV):
        plane.update(bytes([value]) * plane.buffer_size)
    return frame


def silent_audio_frame(samples: int, sample_rate: int, layout: str = "mono", format: str = "s16") -> AudioFrame:
    frame = AudioFrame(format=format, layout=layout, samples=samples)
    for plane in frame.planes:
        plane.update(bytes(plane.buffer_size))
    frame.sample_rate = sample_rate
    return frame


class BlackVideoTrack(VideoStreamTrack):
    """검은 화면을 내보내는 플레이스홀더 비디오 트랙.

    카메라에 접근할 수 없을 때 사용됩니다. 프레임 타이밍은
    VideoStreamTrack.next_timestamp()를 따릅니다.
    """

    def __init__(self, width: int = connection_config.VIDEO_WIDTH, height: int = connection_config.VIDEO_HEIGHT):
        super().__init__()
        self.width = width
        self.height = height

    async def recv(self):
        pts, time_base = await self.next_timestamp()
        frame = black_video_frame(self.width, self.height)
        frame.pts = pts
        frame.time_base = time_base
        return frame


class ToggleableTrack(MediaStreamTrack):
    """음소거/화면 끄기를 지원하는 로컬 트랙 래퍼.

    enabled가 False이면 원본 트랙의 프레임을 계속 소비하면서(타이밍 유지)
    같은 pts의 검은 화면/무음 프레임을 대신 내보냅니다. 트랙 자체가 바뀌지
    않으므로 재협상이 필요 없습니다.

    Attributes:
        kind (str): 원본 트랙 종류 ("audio" / "video")
        track (MediaStreamTrack): 원본 트랙
        enabled (bool): 프레임 전달 여부

    Examples:
        >>> video = ToggleableTrack(player.video)
        >>> pc.addTrack(video)
        >>> video.enabled = False  # 상대방에게 검은 화면 전송
    """

    def __init__(self, track: MediaStreamTrack):
        super().__init__()
        self.kind = track.kind
        self.track = track
        self.enabled = True

    async def recv(self):
        frame = await self.track.recv()
        if self.enabled:
            return frame

        if self.kind == "video":
            blank = black_video_frame(frame.width, frame.height)
        else:
            blank = silent_audio_frame(frame.samples, frame.sample_rate, layout=frame.layout.name, format=frame.format.name)
        blank.pts = frame.pts
        blank.time_base = frame.time_base
        return blank

    def stop(self):
        super().stop()
        self.track.stop()
        logger.debug(f"[WebRTC] 로컬 {self.kind} 트랙 중지")
