"""회의 시스템 공통 예외 정의.

룸 레지스트리(서버)와 피어 세션 매니저(클라이언트)가 공유하는 예외 계층입니다.
모든 예외는 MeetingError를 상속하며, HTTP 응답 및 WebSocket error 메시지로
변환할 수 있도록 status_code와 code 속성을 가집니다.

Hierarchy:
    MeetingError
    ├── InvalidMeetingCodeError   (400)
    ├── RoomNotFoundError         (404)
    ├── RoomEndedError            (400)
    ├── RoomFullError             (409)
    ├── NotHostError              (403)
    ├── MediaAccessError          (피어 단위, 비치명적)
    └── PeerError
        ├── UnknownPeerError
        ├── GlareError
        ├── NegotiationTimeoutError
        └── TransportFailure
"""

from typing import Optional


class MeetingError(Exception):
    """회의 관련 예외의 기본 클래스.

    Attributes:
        status_code (int): HTTP 응답 코드
        code (str): 클라이언트에 전달되는 에러 식별자
        message (str): 사용자에게 보여줄 메시지
    """

    status_code: int = 400
    code: str = "meeting-error"
    default_message: str = "Meeting error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """WebSocket error 메시지 페이로드로 변환합니다."""
        return {"code": self.code, "message": self.message}


class InvalidMeetingCodeError(MeetingError):
    status_code = 400
    code = "invalid-code"
    default_message = "Invalid meeting code"


class RoomNotFoundError(MeetingError):
    status_code = 404
    code = "meeting-not-found"
    default_message = "Meeting not found"


class RoomEndedError(MeetingError):
    status_code = 400
    code = "meeting-ended"
    default_message = "Meeting has ended"


class RoomFullError(MeetingError):
    status_code = 409
    code = "meeting-full"
    default_message = "Meeting is full"


class NotHostError(MeetingError):
    status_code = 403
    code = "not-host"
    default_message = "Only the host can end the meeting"


class MediaAccessError(MeetingError):
    """카메라/마이크 접근 실패. 플레이스홀더 스트림으로 대체됩니다."""

    code = "media-access"
    default_message = "Failed to access camera/microphone"


class PeerError(MeetingError):
    """특정 원격 피어에 한정된 예외.

    한 피어의 오류가 로컬 세션이나 다른 피어 연결에 영향을 주지 않도록
    항상 peer_id와 함께 전달됩니다.
    """

    code = "peer-error"
    default_message = "Peer connection error"

    def __init__(self, peer_id: str, message: Optional[str] = None):
        self.peer_id = peer_id
        super().__init__(message or f"{self.default_message}: {peer_id}")


class UnknownPeerError(PeerError):
    code = "unknown-peer"
    default_message = "No peer connection for"


class GlareError(PeerError):
    code = "glare"
    default_message = "Offer rejected for already negotiating peer"


class NegotiationTimeoutError(PeerError):
    code = "negotiation-timeout"
    default_message = "Connection failed for"


class TransportFailure(PeerError):
    code = "transport-failure"
    default_message = "Transport failed for"
