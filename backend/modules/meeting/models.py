"""룸 레지스트리 데이터 클래스.

Classes:
    MemberRole: 참가자 역할 (host / participant)
    Member: 룸 참가 기록 (입장/퇴장 시각 포함)
    RoomSettings: 룸 설정
    Room: 미팅 룸 상태와 참가 이력
    JoinResult: join() 결과
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemberRole(str, Enum):
    HOST = "host"
    PARTICIPANT = "participant"


@dataclass
class Member:
    """룸에 참가한 멤버(연결 단위)를 나타내는 데이터 클래스.

    멤버는 영속적인 사용자 계정이 아니라 하나의 연결 식별자로 구분됩니다.
    퇴장 시 삭제되지 않고 left_at이 기록되어 참가 이력이 보존됩니다.

    Attributes:
        member_id (str): 연결 식별자 (WebSocket 연결 ID 등)
        display_name (str): 표시 이름
        role (MemberRole): 호스트/참가자 역할
        user_id (Optional[str]): 영속 사용자 ID (호스트 재활성화 판별용)
        joined_at (datetime): 입장 시각 (UTC)
        left_at (Optional[datetime]): 퇴장 시각. 활성 상태면 None
    """
    member_id: str
    display_name: str
    role: MemberRole = MemberRole.PARTICIPANT
    user_id: Optional[str] = None
    joined_at: datetime = field(default_factory=utcnow)
    left_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    @property
    def is_host(self) -> bool:
        return self.role is MemberRole.HOST

    def to_event(self) -> dict:
        """signaling 이벤트 형식 ({id, name, isHost})으로 변환합니다."""
        return {"id": self.member_id, "name": self.display_name, "isHost": self.is_host}


@dataclass(frozen=True)
class RoomSettings:
    max_participants: int = 50
    allow_screen_share: bool = True


@dataclass
class Room:
    """미팅 룸.

    룸은 프로세스가 살아있는 동안 물리적으로 삭제되지 않습니다. 마지막
    참가자가 나가면 active가 False가 되어 과거 조회가 가능하도록 남습니다.

    Attributes:
        code (str): 정규화된 미팅 코드
        meeting_id (str): 내부 미팅 ID
        host_id (Optional[str]): 호스트 사용자 ID. None이면 명시적 호스트 없음
        host_name (Optional[str]): 호스트 표시 이름
        created_at (datetime): 생성 시각
        active (bool): 활성 여부
        ended_at (Optional[datetime]): 종료 시각
        members (List[Member]): 입장 순서대로 정렬된 참가 이력
        settings (RoomSettings): 룸 설정
    """
    code: str
    meeting_id: str
    host_id: Optional[str] = None
    host_name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    active: bool = True
    ended_at: Optional[datetime] = None
    members: List[Member] = field(default_factory=list)
    settings: RoomSettings = field(default_factory=RoomSettings)

    @property
    def has_explicit_host(self) -> bool:
        return self.host_id is not None

    def active_members(self) -> List[Member]:
        return [m for m in self.members if m.is_active]

    def find_active(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.member_id == member_id and member.is_active:
                return member
        return None

    def is_original_host(self, member_id: str, user_id: Optional[str]) -> bool:
        if self.host_id is None:
            return False
        return self.host_id in (member_id, user_id)

    @property
    def participant_count(self) -> int:
        return len(self.active_members())


@dataclass(frozen=True)
class JoinResult:
    """join() 결과.

    Attributes:
        room (Room): 입장한 룸
        member (Member): 새 (또는 기존) 활성 참가 기록
        existing_members (List[Member]): 새 멤버를 제외한 활성 멤버 스냅샷
        is_new (bool): 새 참가 기록이 생성되었는지 여부
    """
    room: Room
    member: Member
    existing_members: List[Member]
    is_new: bool = True
