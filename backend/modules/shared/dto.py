"""Lightweight shared DTOs for HTTP and signaling payloads.

Only wire-level data models live here. Registry and peer session state stay
in their own packages as dataclasses.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase 필드명으로 직렬화되는 기본 모델."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoomSettingsDTO(CamelModel):
    max_participants: int = 50
    allow_screen_share: bool = True


class MemberDTO(CamelModel):
    """활성 참가자 정보 (signaling 이벤트의 id/name/isHost 형식)."""

    id: str
    name: str
    is_host: bool = False
    joined_at: Optional[datetime] = None


class MeetingDTO(CamelModel):
    meeting_id: str
    code: str
    formatted_code: str
    host_id: Optional[str] = None
    host_name: Optional[str] = None
    created_at: datetime
    active: bool
    ended_at: Optional[datetime] = None
    participant_count: int = 0
    settings: RoomSettingsDTO = Field(default_factory=RoomSettingsDTO)


class CreateMeetingRequest(CamelModel):
    user_id: str = Field(min_length=1)
    user_name: str = Field(min_length=1)


class JoinMeetingRequest(CamelModel):
    member_id: str = Field(min_length=1)
    user_name: str = Field(min_length=1)
    user_id: Optional[str] = None
    is_host: bool = False


class LeaveMeetingRequest(CamelModel):
    member_id: str = Field(min_length=1)


class EndMeetingRequest(CamelModel):
    user_id: str = Field(min_length=1)


class MeetingResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    meeting: MeetingDTO


class JoinMeetingResponse(CamelModel):
    success: bool = True
    message: str = "Joined meeting successfully"
    meeting: MeetingDTO
    existing_members: List[MemberDTO] = Field(default_factory=list)


class AckResponse(CamelModel):
    success: bool = True
    message: str


class ParticipantsResponse(CamelModel):
    success: bool = True
    code: str
    participant_count: int
    participants: List[MemberDTO]
