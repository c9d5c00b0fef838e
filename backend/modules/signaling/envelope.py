"""시그널링 메시지 정의.

WebSocket으로 오가는 모든 메시지는 {"type": <event>, "data": {...}} 형식입니다.
WebRTC 시그널(offer/answer/ICE candidate)은 SignalingEnvelope로 표현되며,
kind는 닫힌 열거형(SignalKind)이라 처리되지 않는 종류가 생기지 않습니다.

Wire format (webrtc-signal):
    {
        "type": "webrtc-signal",
        "data": {
            "to": "<recipient id>",
            "from": "<sender id>",
            "signal": {"type": "offer", "sdp": "..."}
        }
    }
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Event(str, Enum):
    """WebSocket 메시지 타입."""

    # client -> server
    JOIN_MEETING = "join-meeting"
    LEAVE_MEETING = "leave-meeting"
    SCREEN_SHARE = "screen-share"

    # server -> client
    CONNECTED = "connected"
    EXISTING_PARTICIPANTS = "existing-participants"
    USER_JOINED = "user-joined"
    USER_LEFT = "user-left"
    SCREEN_SHARE_STATUS = "screen-share-status"
    MEETING_ENDED = "meeting-ended"
    ERROR = "error"

    # both directions
    WEBRTC_SIGNAL = "webrtc-signal"


class SignalKind(str, Enum):
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"


class EnvelopeError(ValueError):
    """잘못된 형식의 시그널 메시지."""


def make_message(event: Event, data: Optional[Dict[str, Any]] = None) -> dict:
    """WebSocket 메시지 딕셔너리를 생성합니다."""
    return {"type": event.value, "data": data if data is not None else {}}


@dataclass(frozen=True)
class SignalingEnvelope:
    """릴레이가 해석 없이 전달하는 WebRTC 시그널.

    Attributes:
        to (str): 수신자 연결 ID
        from_ (str): 발신자 연결 ID (릴레이가 서버에서 덮어씀)
        kind (SignalKind): offer / answer / ice-candidate
        payload (dict): kind별 내용 ({"sdp": ...} 또는 {"candidate": {...}})
    """
    to: str
    from_: str
    kind: SignalKind
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def sdp(self) -> Optional[str]:
        return self.payload.get("sdp")

    @property
    def candidate(self) -> Optional[Dict[str, Any]]:
        return self.payload.get("candidate")

    def to_signal(self) -> Dict[str, Any]:
        return {"type": self.kind.value, **self.payload}

    def to_message(self) -> dict:
        """webrtc-signal WebSocket 메시지로 변환합니다."""
        return make_message(Event.WEBRTC_SIGNAL, {
            "to": self.to,
            "from": self.from_,
            "signal": self.to_signal(),
        })

    @classmethod
    def from_data(cls, data: Any, sender_id: Optional[str] = None) -> "SignalingEnvelope":
        """webrtc-signal 메시지의 data 부분을 파싱합니다.

        Args:
            data: {"to", "from"?, "signal": {"type", ...}} 딕셔너리
            sender_id: 지정하면 data의 from 대신 사용 (서버 측 발신자 스탬프)

        Raises:
            EnvelopeError: 필수 필드 누락 또는 알 수 없는 signal type
        """
        if not isinstance(data, dict):
            raise EnvelopeError("signal data must be an object")

        signal = data.get("signal")
        if not isinstance(signal, dict):
            raise EnvelopeError("signal is required")

        try:
            kind = SignalKind(signal.get("type"))
        except ValueError:
            raise EnvelopeError(f"unknown signal type: {signal.get('type')}")

        to = data.get("to")
        from_ = sender_id if sender_id is not None else data.get("from")
        if not to or not isinstance(to, str):
            raise EnvelopeError("signal recipient 'to' is required")
        if not from_ or not isinstance(from_, str):
            raise EnvelopeError("signal sender 'from' is required")

        payload = {k: v for k, v in signal.items() if k != "type"}
        if kind in (SignalKind.OFFER, SignalKind.ANSWER) and not isinstance(payload.get("sdp"), str):
            raise EnvelopeError(f"{kind.value} requires sdp")
        if kind is SignalKind.ICE_CANDIDATE and payload.get("candidate") is None:
            raise EnvelopeError("ice-candidate requires candidate")

        return cls(to=to, from_=from_, kind=kind, payload=payload)
