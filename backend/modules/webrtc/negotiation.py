"""offer/answer/ICE 협상 모듈.

원격 피어 하나(PeerSession)에 대한 SDP 교환과 ICE candidate 처리를 담당합니다.
메시지 전송은 주입된 send_signal 코루틴을 통해 시그널링 서버로 나갑니다.

Glare 회피 규칙:
    - 먼저 입장해 있던 멤버(user-joined를 받은 쪽)만 offer를 보냄
    - 새로 입장한 멤버는 offer를 보내지 않고 기다림
    - offerer 역할 연결이나 이미 협상된 연결로 온 offer는 거부 (GlareError)

ICE candidate:
    - 로컬 candidate는 생기는 즉시 전송 (상태와 무관)
    - remote description 설정 전에 도착한 원격 candidate는 버퍼링했다가
      설정 직후 적용 (버리지 않음)
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from aiortc import RTCIceCandidate, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp, candidate_to_sdp

from ..shared.errors import GlareError, PeerError
from ..signaling.envelope import SignalKind
from .session import NegotiationRole, PeerSession, PeerState

logger = logging.getLogger(__name__)

SendSignal = Callable[[str, SignalKind, Dict[str, Any]], Awaitable[None]]


def candidate_to_dict(candidate: RTCIceCandidate) -> dict:
    """aiortc RTCIceCandidate를 브라우저 RTCIceCandidateInit 형식으로 변환합니다."""
    return {
        "candidate": "candidate:" + candidate_to_sdp(candidate),
        "sdpMid": candidate.sdpMid,
        "sdpMLineIndex": candidate.sdpMLineIndex,
    }


def candidate_from_dict(data: Dict[str, Any]) -> Optional[RTCIceCandidate]:
    """RTCIceCandidateInit 딕셔너리를 aiortc RTCIceCandidate로 변환합니다.

    Args:
        data: {"candidate": "candidate:...", "sdpMid": ..., "sdpMLineIndex": ...}

    Returns:
        Optional[RTCIceCandidate]: 빈 candidate(end-of-candidates)면 None
    """
    candidate_str = data.get("candidate") or ""
    if candidate_str.startswith("candidate:"):
        candidate_str = candidate_str[10:]
    if not candidate_str:
        return None

    ice_candidate = candidate_from_sdp(candidate_str)
    ice_candidate.sdpMid = data.get("sdpMid")
    ice_candidate.sdpMLineIndex = data.get("sdpMLineIndex")
    return ice_candidate


class Negotiator:
    """PeerSession 단위 SDP/ICE 협상기.

    Attributes:
        send_signal (SendSignal): (수신자 ID, 시그널 종류, 페이로드) 전송 코루틴

    Examples:
        >>> negotiator = Negotiator(send_signal)
        >>> await negotiator.start_offer(session, [(camera, relay.subscribe(camera))])
        >>> # 원격 answer 수신 시
        >>> await negotiator.accept_answer(session, sdp)
    """

    def __init__(self, send_signal: SendSignal):
        self.send_signal = send_signal

    async def start_offer(self, session: PeerSession, tracks: Iterable[Any]) -> None:
        """(원본, relay 구독) 트랙 쌍을 추가하고 offer를 만들어 전송합니다 (NEW -> OFFER_SENT)."""
        if session.role is not NegotiationRole.OFFERER or session.state is not PeerState.NEW:
            raise GlareError(session.remote_id, f"Cannot offer to {session.remote_id} in state {session.state.value}")

        pc = session.pc
        session.attach_tracks(tracks)
        offer = await pc.createOffer()
        await pc.setLocalDescription(offer)
        if session.is_closed:
            return

        session.transition(PeerState.OFFER_SENT)
        await self.send_signal(session.remote_id, SignalKind.OFFER, {"sdp": pc.localDescription.sdp})
        logger.info(f"[WebRTC] 피어 {session.remote_id[:8]}에 offer 전송")

    async def accept_offer(self, session: PeerSession, sdp: str, tracks: Iterable[Any]) -> None:
        """원격 offer를 적용하고 answer를 전송합니다 (NEW -> ANSWERING -> CONNECTED).

        Raises:
            GlareError: 로컬이 offerer이거나 이미 협상 중/완료된 연결인 경우
        """
        if session.role is NegotiationRole.OFFERER or session.state is not PeerState.NEW:
            raise GlareError(session.remote_id)

        pc = session.pc
        session.transition(PeerState.ANSWERING)
        await pc.setRemoteDescription(RTCSessionDescription(sdp=sdp, type="offer"))
        await self.flush_candidates(session)

        session.attach_tracks(tracks)
        answer = await pc.createAnswer()
        await pc.setLocalDescription(answer)
        if session.is_closed:
            return

        await self.send_signal(session.remote_id, SignalKind.ANSWER, {"sdp": pc.localDescription.sdp})
        session.transition(PeerState.CONNECTED)
        logger.info(f"[WebRTC] 피어 {session.remote_id[:8]}에 answer 전송")

    async def accept_answer(self, session: PeerSession, sdp: str) -> None:
        """원격 answer를 적용합니다 (OFFER_SENT -> CONNECTED)."""
        if session.state is not PeerState.OFFER_SENT:
            raise PeerError(session.remote_id, f"Unexpected answer from {session.remote_id} in state {session.state.value}")

        await session.pc.setRemoteDescription(RTCSessionDescription(sdp=sdp, type="answer"))
        await self.flush_candidates(session)
        if session.is_closed:
            return

        session.transition(PeerState.CONNECTED)
        logger.info(f"[WebRTC] 피어 {session.remote_id[:8]} answer 적용, 협상 완료")

    async def add_remote_candidate(self, session: PeerSession, candidate: Dict[str, Any]) -> bool:
        """원격 ICE candidate를 적용하거나 버퍼링합니다.

        Returns:
            bool: 즉시 적용했으면 True, 버퍼링했으면 False
        """
        if not session.has_remote_description:
            session.pending_candidates.append(candidate)
            logger.debug(f"[WebRTC] 피어 {session.remote_id[:8]} ICE candidate 버퍼링 "
                         f"({len(session.pending_candidates)}개 대기)")
            return False

        ice_candidate = candidate_from_dict(candidate)
        if ice_candidate is not None:
            await session.pc.addIceCandidate(ice_candidate)
        return True

    async def flush_candidates(self, session: PeerSession) -> int:
        """버퍼링된 원격 candidate를 순서대로 적용합니다."""
        pending, session.pending_candidates = session.pending_candidates, []
        applied = 0
        for candidate in pending:
            try:
                ice_candidate = candidate_from_dict(candidate)
                if ice_candidate is not None:
                    await session.pc.addIceCandidate(ice_candidate)
                    applied += 1
            except Exception as e:
                logger.error(f"[WebRTC] 피어 {session.remote_id[:8]} 버퍼 ICE candidate 적용 실패: {e}")
        if pending:
            logger.info(f"[WebRTC] 피어 {session.remote_id[:8]} 버퍼 ICE candidate {applied}/{len(pending)}개 적용")
        return applied

    async def send_local_candidate(self, session: PeerSession, candidate: Optional[RTCIceCandidate]) -> None:
        if candidate is None or session.is_closed:
            return
        await self.send_signal(session.remote_id, SignalKind.ICE_CANDIDATE, {"candidate": candidate_to_dict(candidate)})
