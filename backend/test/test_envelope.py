"""SignalingEnvelope 파싱 테스트.

사용법:
    cd backend
    uv run pytest test/test_envelope.py
"""

import pytest

from modules.signaling import EnvelopeError, Event, SignalKind, SignalingEnvelope, make_message


def test_offer_from_data():
    envelope = SignalingEnvelope.from_data({
        "to": "peer-b",
        "from": "peer-a",
        "signal": {"type": "offer", "sdp": "v=0..."},
    })

    assert envelope.kind is SignalKind.OFFER
    assert envelope.to == "peer-b"
    assert envelope.from_ == "peer-a"
    assert envelope.sdp == "v=0..."
    assert envelope.candidate is None


def test_sender_id_overrides_claimed_sender():
    envelope = SignalingEnvelope.from_data(
        {"to": "peer-b", "from": "spoofed", "signal": {"type": "answer", "sdp": "v=0"}},
        sender_id="peer-a",
    )
    assert envelope.from_ == "peer-a"


def test_candidate_payload_is_kept_as_is():
    candidate = {"candidate": "candidate:1 1 udp 1 10.0.0.1 9 typ host", "sdpMid": "0", "sdpMLineIndex": 0}
    envelope = SignalingEnvelope.from_data(
        {"to": "peer-b", "signal": {"type": "ice-candidate", "candidate": candidate}},
        sender_id="peer-a",
    )

    assert envelope.candidate == candidate
    assert envelope.to_message() == {
        "type": "webrtc-signal",
        "data": {
            "to": "peer-b",
            "from": "peer-a",
            "signal": {"type": "ice-candidate", "candidate": candidate},
        },
    }


@pytest.mark.parametrize("data", [
    None,
    "offer",
    {"to": "b", "from": "a"},
    {"to": "b", "from": "a", "signal": "offer"},
    {"to": "b", "from": "a", "signal": {"type": "renegotiate", "sdp": "x"}},
    {"from": "a", "signal": {"type": "offer", "sdp": "x"}},
    {"to": "b", "signal": {"type": "offer", "sdp": "x"}},
    {"to": "b", "from": "a", "signal": {"type": "offer"}},
    {"to": "b", "from": "a", "signal": {"type": "ice-candidate"}},
])
def test_malformed_signals_are_rejected(data):
    with pytest.raises(EnvelopeError):
        SignalingEnvelope.from_data(data)


def test_make_message():
    assert make_message(Event.CONNECTED, {"id": "x"}) == {"type": "connected", "data": {"id": "x"}}
    assert make_message(Event.LEAVE_MEETING) == {"type": "leave-meeting", "data": {}}
