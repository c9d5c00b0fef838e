"""룸 저장소 인터페이스.

레지스트리는 저장소를 주입받아 사용합니다. 서버 프로세스 수명 이상의
영속 저장은 지원하지 않으므로 기본 구현은 메모리 저장소입니다.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from .models import Room


class RoomStore(ABC):
    """룸 저장소 추상 클래스."""

    @abstractmethod
    def get(self, code: str) -> Optional[Room]:
        ...

    @abstractmethod
    def add(self, room: Room) -> None:
        ...

    @abstractmethod
    def all(self) -> List[Room]:
        ...

    def __contains__(self, code: str) -> bool:
        return self.get(code) is not None


class InMemoryRoomStore(RoomStore):
    """프로세스 메모리 기반 룸 저장소."""

    def __init__(self):
        # code -> Room
        self._rooms: Dict[str, Room] = {}

    def get(self, code: str) -> Optional[Room]:
        return self._rooms.get(code)

    def add(self, room: Room) -> None:
        if room.code in self._rooms:
            raise KeyError(f"Room '{room.code}' already exists")
        self._rooms[room.code] = room

    def all(self) -> List[Room]:
        return list(self._rooms.values())
