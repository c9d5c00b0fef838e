"""룸 레지스트리 모듈.

이 모듈은 미팅 룸과 참가자(멤버) 상태를 관리합니다. 서버 프로세스 전체에서
하나의 레지스트리가 "누가 이미 입장해 있는지"에 답하고, 입장/퇴장 알림을
리스너(시그널링 릴레이)에게 전달합니다.

주요 기능:
    - 룸 생성 (고유 미팅 코드 발급)
    - 참가자 입장/퇴장, 비정상 연결 종료 처리 (멱등)
    - 호스트의 미팅 종료
    - 활성 참가자 스냅샷 조회

Architecture:
    - store: RoomStore - 코드 → Room (주입 가능)
    - member_rooms: Dict[str, str] - 멤버 ID → 룸 코드 (빠른 조회용)
    - 룸별 asyncio.Lock: 같은 룸에 대한 변경은 절대 교차 실행되지 않음

Concurrency:
    - join/leave/end_room은 룸 단위 임계 구역에서 실행됨
    - 리스너 알림도 임계 구역 안에서 실행되어, 수신자별 알림 순서가
      레지스트리 변경 순서와 일치함
    - 리스너 예외는 로그만 남기고 레지스트리 상태에는 영향을 주지 않음

Examples:
    >>> registry = RoomRegistry()
    >>> room = await registry.create_room("user-1", "Host")
    >>> result = await registry.join(room.code, "conn-1", "Host", MemberRole.HOST, user_id="user-1")
    >>> result.existing_members
    []
"""
import asyncio
import logging
import secrets
from dataclasses import replace
from typing import Dict, List, Optional

from ..shared.errors import (
    InvalidMeetingCodeError,
    MeetingError,
    NotHostError,
    RoomEndedError,
    RoomFullError,
    RoomNotFoundError,
)
from .codes import format_code, generate_meeting_code, normalize_code
from .config import MeetingSettings, meeting_settings
from .models import JoinResult, Member, MemberRole, Room, RoomSettings, utcnow
from .store import InMemoryRoomStore, RoomStore

logger = logging.getLogger(__name__)

MAX_CODE_ATTEMPTS = 10


class RegistryListener:
    """레지스트리 이벤트 리스너 기본 클래스.

    모든 콜백은 룸 임계 구역 안에서 호출됩니다. 구현체는 블로킹 작업 없이
    빠르게 반환해야 합니다.
    """

    async def on_member_joined(self, room: Room, member: Member, existing_members: List[Member]) -> None:
        pass

    async def on_member_left(self, room: Room, member: Member, remaining_members: List[Member]) -> None:
        pass

    async def on_room_ended(self, room: Room, ended_members: List[Member], ended_by: str) -> None:
        pass


class RoomRegistry:
    """미팅 룸과 멤버십을 관리하는 핵심 클래스.

    Attributes:
        store (RoomStore): 룸 저장소
        settings (MeetingSettings): 룸 설정
        member_rooms (Dict[str, str]): 활성 멤버 ID → 룸 코드 역 매핑

    Thread Safety:
        - asyncio 단일 이벤트 루프에서 동작
        - 룸 단위 asyncio.Lock으로 await 지점 사이의 교차 변경을 차단
    """

    def __init__(self, store: Optional[RoomStore] = None, settings: Optional[MeetingSettings] = None):
        """RoomRegistry 초기화.

        Args:
            store: 룸 저장소 (기본값: InMemoryRoomStore)
            settings: 룸 설정 (기본값: 전역 meeting_settings)
        """
        self.store: RoomStore = store or InMemoryRoomStore()
        self.settings: MeetingSettings = settings or meeting_settings

        # member_id -> room code (for quick lookup)
        self.member_rooms: Dict[str, str] = {}

        self._room_locks: Dict[str, asyncio.Lock] = {}
        self._create_lock = asyncio.Lock()
        self._listeners: List[RegistryListener] = []

    def add_listener(self, listener: RegistryListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: RegistryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _lock_for(self, code: str) -> asyncio.Lock:
        lock = self._room_locks.get(code)
        if lock is None:
            lock = asyncio.Lock()
            self._room_locks[code] = lock
        return lock

    def _new_room(self, code: str, host_id: Optional[str], host_name: Optional[str]) -> Room:
        return Room(
            code=code,
            meeting_id=secrets.token_hex(16),
            host_id=host_id,
            host_name=host_name,
            settings=RoomSettings(
                max_participants=self.settings.MAX_PARTICIPANTS,
                allow_screen_share=self.settings.ALLOW_SCREEN_SHARE,
            ),
        )

    async def _notify(self, event: str, *args) -> None:
        for listener in list(self._listeners):
            try:
                await getattr(listener, event)(*args)
            except Exception as e:
                logger.error(f"레지스트리 리스너 {event} 처리 중 오류: {e}", exc_info=True)

    async def create_room(self, host_id: str, host_name: str) -> Room:
        """새로운 미팅 룸을 생성합니다.

        고유한 미팅 코드를 발급하고 호스트 정보를 기록합니다. 참가자는 아직
        없으며, 호스트도 join()으로 별도 입장해야 합니다.

        Args:
            host_id: 호스트의 영속 사용자 ID
            host_name: 호스트 표시 이름

        Returns:
            Room: 생성된 룸

        Raises:
            MeetingError: 고유 코드 생성에 실패한 경우
        """
        async with self._create_lock:
            for _ in range(MAX_CODE_ATTEMPTS):
                code = generate_meeting_code(self.settings.CODE_LENGTH)
                if code not in self.store:
                    break
            else:
                raise MeetingError("Failed to generate unique meeting code")

            room = self._new_room(code, host_id, host_name)
            self.store.add(room)

        logger.info(f"Room '{format_code(code)}' created by '{host_name}' ({host_id})")
        return room

    def get_room(self, raw_code: str) -> Room:
        """미팅 코드로 룸을 조회합니다.

        Raises:
            InvalidMeetingCodeError: 코드 형식이 잘못된 경우
            RoomNotFoundError: 룸이 존재하지 않는 경우
        """
        code = normalize_code(raw_code, self.settings.CODE_LENGTH)
        room = self.store.get(code)
        if room is None:
            raise RoomNotFoundError()
        return room

    async def _get_or_create(
        self,
        code: str,
        member_id: str,
        display_name: str,
        role: MemberRole,
        user_id: Optional[str],
        create_if_missing: bool,
    ) -> Room:
        async with self._create_lock:
            room = self.store.get(code)
            if room is not None:
                return room
            if not create_if_missing:
                raise RoomNotFoundError()

            if role is MemberRole.HOST:
                room = self._new_room(code, user_id or member_id, display_name)
            else:
                room = self._new_room(code, None, None)
            self.store.add(room)
            logger.info(f"Room '{format_code(code)}' created on first join")
            return room

    async def join(
        self,
        raw_code: str,
        member_id: str,
        display_name: str,
        role: MemberRole = MemberRole.PARTICIPANT,
        user_id: Optional[str] = None,
        create_if_missing: bool = True,
    ) -> JoinResult:
        """멤버를 룸에 입장시킵니다.

        룸 임계 구역 안에서 활성 멤버 목록(새 멤버 제외)을 계산하고 새 참가
        기록을 추가한 뒤, 리스너에게 입장을 알립니다. 다른 룸에 활성 상태인
        멤버는 먼저 그 룸에서 퇴장 처리됩니다.

        Args:
            raw_code: 미팅 코드 (하이픈/소문자 허용)
            member_id: 연결 식별자
            display_name: 표시 이름
            role: 호스트/참가자 역할
            user_id: 영속 사용자 ID (호스트 재활성화 판별용)
            create_if_missing: 룸이 없으면 생성할지 여부

        Returns:
            JoinResult: 룸, 참가 기록, 기존 활성 멤버 스냅샷

        Raises:
            InvalidMeetingCodeError: 코드 형식 오류
            RoomNotFoundError: 룸이 없고 create_if_missing=False
            RoomEndedError: 비활성 룸 (원래 호스트의 재입장은 예외)
            RoomFullError: 최대 참가 인원 초과

        Note:
            - 이미 같은 룸에 활성 상태인 멤버가 다시 join하면 새 기록을
              만들지 않고 알림도 보내지 않음 (is_new=False)
            - 퇴장 후 재입장은 새 참가 기록을 추가하고 이전 기록의 left_at은 유지
        """
        code = normalize_code(raw_code, self.settings.CODE_LENGTH)

        previous_code = self.member_rooms.get(member_id)
        if previous_code and previous_code != code:
            logger.info(f"Member {member_id} moving from room '{format_code(previous_code)}'")
            await self.leave(previous_code, member_id)

        room = await self._get_or_create(code, member_id, display_name, role, user_id, create_if_missing)

        async with self._lock_for(code):
            current = room.find_active(member_id)
            if current is not None:
                others = [replace(m) for m in room.active_members() if m.member_id != member_id]
                return JoinResult(room=room, member=current, existing_members=others, is_new=False)

            if not room.active:
                if role is MemberRole.HOST and room.is_original_host(member_id, user_id):
                    room.active = True
                    room.ended_at = None
                    logger.info(f"Room '{format_code(code)}' re-activated by host '{display_name}'")
                else:
                    raise RoomEndedError()

            existing_members = room.active_members()
            if len(existing_members) >= room.settings.max_participants:
                raise RoomFullError()

            member = Member(
                member_id=member_id,
                display_name=display_name,
                role=role,
                user_id=user_id,
            )
            room.members.append(member)
            self.member_rooms[member_id] = code

            logger.info(f"Member '{display_name}' ({member_id}) joined room '{format_code(code)}'. "
                        f"Room has {len(existing_members) + 1} members")

            snapshot = [replace(m) for m in existing_members]
            await self._notify("on_member_joined", room, member, snapshot)
            return JoinResult(room=room, member=member, existing_members=snapshot)

    async def leave(self, raw_code: str, member_id: str) -> Optional[Member]:
        """멤버를 룸에서 퇴장 처리합니다.

        참가 기록은 삭제하지 않고 left_at을 기록합니다. 남은 활성 멤버가 없고,
        룸에 명시적 호스트가 없거나 퇴장하는 멤버가 호스트이면 룸을 비활성화합니다.

        Args:
            raw_code: 미팅 코드
            member_id: 퇴장할 멤버의 연결 식별자

        Returns:
            Optional[Member]: 퇴장 처리된 참가 기록. 활성 상태가 아니었으면 None

        Raises:
            RoomNotFoundError: 룸이 존재하지 않는 경우
        """
        room = self.get_room(raw_code)
        code = room.code

        async with self._lock_for(code):
            member = room.find_active(member_id)
            if member is None:
                return None

            member.left_at = utcnow()
            if self.member_rooms.get(member_id) == code:
                del self.member_rooms[member_id]

            remaining = room.active_members()
            if not remaining and (not room.has_explicit_host or member.is_host):
                room.active = False
                room.ended_at = member.left_at
                logger.info(f"Room '{format_code(code)}' inactive (empty)")
            else:
                logger.info(f"Member '{member.display_name}' ({member_id}) left room '{format_code(code)}'. "
                            f"Room has {len(remaining)} members")

            await self._notify("on_member_left", room, replace(member), [replace(m) for m in remaining])
            return member

    async def handle_disconnect(self, connection_id: str) -> Optional[Member]:
        """연결 종료 시 해당 연결의 룸에서 퇴장 처리합니다.

        명시적으로 이미 퇴장한 연결이면 아무 알림도 보내지 않습니다 (멱등).

        Args:
            connection_id: 종료된 연결 식별자

        Returns:
            Optional[Member]: 퇴장 처리된 참가 기록. 이미 퇴장했으면 None
        """
        code = self.member_rooms.get(connection_id)
        if code is None:
            return None
        try:
            return await self.leave(code, connection_id)
        except (RoomNotFoundError, InvalidMeetingCodeError):
            self.member_rooms.pop(connection_id, None)
            return None

    async def end_room(self, raw_code: str, user_id: str) -> Room:
        """호스트가 미팅을 종료합니다.

        모든 활성 멤버를 퇴장 처리하고 룸을 비활성화한 뒤 리스너에게 알립니다.

        Raises:
            RoomNotFoundError: 룸이 존재하지 않는 경우
            NotHostError: 요청자가 호스트가 아닌 경우
        """
        room = self.get_room(raw_code)

        async with self._lock_for(room.code):
            if room.host_id is None or room.host_id != user_id:
                raise NotHostError()
            if not room.active:
                return room

            now = utcnow()
            ended_members = room.active_members()
            for member in ended_members:
                member.left_at = now
                if self.member_rooms.get(member.member_id) == room.code:
                    del self.member_rooms[member.member_id]
            room.active = False
            room.ended_at = now

            logger.info(f"Room '{format_code(room.code)}' ended by host {user_id}, "
                        f"{len(ended_members)} members removed")
            await self._notify("on_room_ended", room, [replace(m) for m in ended_members], user_id)
            return room

    def get_active_members(self, raw_code: str) -> List[Member]:
        """룸의 활성 멤버 스냅샷을 반환합니다.

        UI 표시(참가자 수, 목록)용입니다. 룸이 없거나 코드가 잘못되면 빈 리스트.
        """
        try:
            code = normalize_code(raw_code, self.settings.CODE_LENGTH)
        except InvalidMeetingCodeError:
            return []
        room = self.store.get(code)
        if room is None:
            return []
        return [replace(m) for m in room.active_members()]

    def get_member_room(self, member_id: str) -> Optional[str]:
        """멤버가 활성 상태로 속한 룸 코드를 반환합니다."""
        return self.member_rooms.get(member_id)

    def get_room_list(self) -> List[dict]:
        """모든 룸의 요약 정보를 반환합니다."""
        return [
            {
                "code": room.code,
                "formatted_code": format_code(room.code),
                "active": room.active,
                "participant_count": room.participant_count,
                "members": [m.to_event() for m in room.active_members()],
            }
            for room in self.store.all()
        ]

    def stats(self) -> dict:
        rooms = self.store.all()
        active_rooms = [room for room in rooms if room.active]
        return {
            "meetings": len(rooms),
            "activeMeetings": len(active_rooms),
            "activeParticipants": sum(room.participant_count for room in active_rooms),
        }
