"""시그널링 릴레이 모듈.

연결 ID별로 등록된 채널로 시그널 메시지를 전달합니다. 릴레이는 메시지 내용을
해석하지 않고, 저장하지도 않습니다. 동시에 룸 레지스트리의 리스너로서
입장/퇴장/종료 이벤트를 룸 참가자들에게 팬아웃합니다.

Delivery:
    - 같은 수신자에게 보내는 메시지는 보낸 순서대로 도착 (채널별 전송 락)
    - 다른 수신자 간 순서는 보장하지 않음
    - 등록되지 않은 수신자로 가는 시그널은 조용히 버려짐 (발신자에게 알리지 않음)
    - 한 수신자의 전송 실패는 다른 수신자 전송을 막지 않음
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ..meeting.models import Member, Room
from ..meeting.registry import RegistryListener, RoomRegistry
from .channel import MessageChannel
from .envelope import Event, SignalingEnvelope, make_message

logger = logging.getLogger(__name__)


class SignalingRelay(RegistryListener):
    """연결 ID → 채널 매핑을 가지고 메시지를 라우팅하는 클래스.

    Attributes:
        registry (RoomRegistry): 룸 멤버십 조회용 레지스트리
        connections (Dict[str, MessageChannel]): 연결 ID → 채널 매핑

    Examples:
        >>> registry = RoomRegistry()
        >>> relay = SignalingRelay(registry)
        >>> registry.add_listener(relay)
        >>> relay.register("conn-1", channel)
        >>> await relay.route(envelope)
    """

    def __init__(self, registry: RoomRegistry):
        self.registry = registry

        # connection_id -> MessageChannel
        self.connections: Dict[str, MessageChannel] = {}

    def register(self, connection_id: str, channel: MessageChannel) -> None:
        self.connections[connection_id] = channel
        logger.info(f"[Signaling] 연결 등록: {connection_id[:8]} (총 {len(self.connections)}개)")

    def unregister(self, connection_id: str) -> Optional[MessageChannel]:
        channel = self.connections.pop(connection_id, None)
        if channel is not None:
            logger.info(f"[Signaling] 연결 해제: {connection_id[:8]} (총 {len(self.connections)}개)")
        return channel

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self.connections

    @property
    def connection_count(self) -> int:
        return len(self.connections)

    async def send_to(self, connection_id: str, message: dict) -> bool:
        """특정 연결로 메시지를 전송합니다.

        Returns:
            bool: 전송 성공 여부. 미등록 연결이거나 전송 실패 시 False
        """
        channel = self.connections.get(connection_id)
        if channel is None:
            return False
        try:
            await channel.send(message)
            return True
        except Exception as e:
            logger.error(f"[Signaling] 연결 {connection_id[:8]}로 전송 중 오류: {e}")
            return False

    async def route(self, envelope: SignalingEnvelope) -> bool:
        """시그널을 수신자 연결로 전달합니다.

        수신자가 등록되어 있지 않으면 메시지를 버리고 False를 반환합니다.
        발신자에게는 알리지 않습니다.
        """
        delivered = await self.send_to(envelope.to, envelope.to_message())
        if delivered:
            logger.debug(f"[Signaling] {envelope.kind.value} 전달: {envelope.from_[:8]} -> {envelope.to[:8]}")
        else:
            logger.debug(f"[Signaling] {envelope.kind.value} 버려짐 (수신자 없음): {envelope.from_[:8]} -> {envelope.to[:8]}")
        return delivered

    async def send_to_members(self, members: Iterable[Member], message: dict, exclude: Optional[List[str]] = None) -> List[str]:
        """멤버 목록에 메시지를 전송합니다.

        Returns:
            List[str]: 전송에 성공한 연결 ID 목록
        """
        exclude = exclude or []
        delivered = []
        for member in members:
            if member.member_id in exclude:
                continue
            if await self.send_to(member.member_id, message):
                delivered.append(member.member_id)
        return delivered

    async def broadcast_to_room(self, room_code: str, event: Event, data: dict, exclude: Optional[List[str]] = None) -> List[str]:
        """룸의 모든 활성 멤버에게 이벤트를 전송합니다.

        Args:
            room_code: 미팅 코드
            event: 이벤트 타입
            data: 이벤트 데이터
            exclude: 제외할 연결 ID 목록

        Returns:
            List[str]: 전송에 성공한 연결 ID 목록
        """
        members = self.registry.get_active_members(room_code)
        return await self.send_to_members(members, make_message(event, data), exclude)

    async def close_all(self) -> None:
        """등록된 모든 채널을 닫습니다 (서버 종료 시)."""
        for connection_id, channel in list(self.connections.items()):
            try:
                await channel.close()
            except Exception as e:
                logger.error(f"[Signaling] 연결 {connection_id[:8]} 종료 중 오류: {e}")
        self.connections.clear()

    # ------------------------------------------------------------------
    # RegistryListener
    # ------------------------------------------------------------------

    async def on_member_joined(self, room: Room, member: Member, existing_members: List[Member]) -> None:
        # new member learns the roster before anyone can offer to it
        await self.send_to(member.member_id, make_message(Event.EXISTING_PARTICIPANTS, {
            "code": room.code,
            "participants": [m.to_event() for m in existing_members],
        }))
        await self.send_to_members(existing_members, make_message(Event.USER_JOINED, {
            **member.to_event(),
            "timestamp": member.joined_at.isoformat(),
        }))

    async def on_member_left(self, room: Room, member: Member, remaining_members: List[Member]) -> None:
        await self.send_to_members(remaining_members, make_message(Event.USER_LEFT, {
            "id": member.member_id,
            "name": member.display_name,
            "timestamp": (member.left_at or datetime.now(timezone.utc)).isoformat(),
        }))

    async def on_room_ended(self, room: Room, ended_members: List[Member], ended_by: str) -> None:
        ended_at = room.ended_at or datetime.now(timezone.utc)
        await self.send_to_members(ended_members, make_message(Event.MEETING_ENDED, {
            "code": room.code,
            "endedBy": ended_by,
            "endedAt": ended_at.isoformat(),
        }))
