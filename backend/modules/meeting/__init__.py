"""미팅 룸 모듈.

Classes:
    RoomRegistry: 룸 멤버십 관리 및 입장/퇴장 알림
    RegistryListener: 레지스트리 이벤트 리스너 기본 클래스
    RoomStore / InMemoryRoomStore: 주입 가능한 룸 저장소
    Room, Member, MemberRole, RoomSettings, JoinResult: 데이터 클래스

Functions:
    generate_meeting_code, normalize_code, format_code: 미팅 코드 유틸리티
"""

from .codes import generate_meeting_code, normalize_code, format_code, is_valid_code
from .config import MeetingSettings, get_meeting_settings, meeting_settings
from .models import Member, MemberRole, Room, RoomSettings, JoinResult
from .registry import RoomRegistry, RegistryListener
from .store import RoomStore, InMemoryRoomStore

__all__ = [
    "generate_meeting_code",
    "normalize_code",
    "format_code",
    "is_valid_code",
    "MeetingSettings",
    "get_meeting_settings",
    "meeting_settings",
    "Member",
    "MemberRole",
    "Room",
    "RoomSettings",
    "JoinResult",
    "RoomRegistry",
    "RegistryListener",
    "RoomStore",
    "InMemoryRoomStore",
]
