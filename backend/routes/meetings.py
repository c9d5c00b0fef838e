"""미팅 REST API 라우터.

미팅 생성/조회, 참가자 목록, REST 기반 입장/퇴장, 호스트의 미팅 종료를
제공합니다. 레지스트리 예외(MeetingError)는 app.py의 예외 핸들러가
{success: false, message, error} 응답으로 변환합니다.

Note:
    WebSocket 클라이언트는 GET으로 미팅을 확인한 뒤 join-meeting 메시지로
    입장합니다. REST join/leave는 시그널링 연결이 없는 클라이언트용입니다.
"""

import logging

from fastapi import APIRouter, Depends

from modules.meeting import Member, MemberRole, Room, RoomRegistry, format_code
from modules.shared import (
    AckResponse,
    CreateMeetingRequest,
    EndMeetingRequest,
    JoinMeetingRequest,
    JoinMeetingResponse,
    LeaveMeetingRequest,
    MeetingDTO,
    MeetingResponse,
    MemberDTO,
    ParticipantsResponse,
    RoomSettingsDTO,
)
from .deps import get_room_registry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings", tags=["meetings"])


def to_meeting_dto(room: Room) -> MeetingDTO:
    return MeetingDTO(
        meeting_id=room.meeting_id,
        code=room.code,
        formatted_code=format_code(room.code),
        host_id=room.host_id,
        host_name=room.host_name,
        created_at=room.created_at,
        active=room.active,
        ended_at=room.ended_at,
        participant_count=room.participant_count,
        settings=RoomSettingsDTO(
            max_participants=room.settings.max_participants,
            allow_screen_share=room.settings.allow_screen_share,
        ),
    )


def to_member_dto(member: Member) -> MemberDTO:
    return MemberDTO(
        id=member.member_id,
        name=member.display_name,
        is_host=member.is_host,
        joined_at=member.joined_at,
    )


@router.post("", status_code=201, response_model=MeetingResponse)
async def create_meeting(request: CreateMeetingRequest, registry: RoomRegistry = Depends(get_room_registry)):
    """새 미팅을 생성합니다.

    Returns:
        MeetingResponse: 생성된 미팅 정보 (code, formattedCode 포함)
    """
    room = await registry.create_room(request.user_id, request.user_name)
    return MeetingResponse(message="Meeting created successfully", meeting=to_meeting_dto(room))


@router.get("/{code}", response_model=MeetingResponse)
async def get_meeting(code: str, registry: RoomRegistry = Depends(get_room_registry)):
    """미팅 정보를 조회합니다. 코드는 하이픈/대소문자를 구분하지 않습니다."""
    room = registry.get_room(code)
    return MeetingResponse(meeting=to_meeting_dto(room))


@router.get("/{code}/participants", response_model=ParticipantsResponse)
async def get_participants(code: str, registry: RoomRegistry = Depends(get_room_registry)):
    room = registry.get_room(code)
    members = registry.get_active_members(room.code)
    return ParticipantsResponse(
        code=room.code,
        participant_count=len(members),
        participants=[to_member_dto(m) for m in members],
    )


@router.post("/{code}/join", response_model=JoinMeetingResponse)
async def join_meeting(code: str, request: JoinMeetingRequest, registry: RoomRegistry = Depends(get_room_registry)):
    """REST로 미팅에 입장합니다.

    Raises:
        RoomNotFoundError (404), RoomEndedError (400), RoomFullError (409)
    """
    role = MemberRole.HOST if request.is_host else MemberRole.PARTICIPANT
    result = await registry.join(
        code,
        request.member_id,
        request.user_name,
        role,
        user_id=request.user_id,
        create_if_missing=False,
    )
    return JoinMeetingResponse(
        meeting=to_meeting_dto(result.room),
        existing_members=[to_member_dto(m) for m in result.existing_members],
    )


@router.post("/{code}/leave", response_model=AckResponse)
async def leave_meeting(code: str, request: LeaveMeetingRequest, registry: RoomRegistry = Depends(get_room_registry)):
    member = await registry.leave(code, request.member_id)
    if member is None:
        return AckResponse(message="Not in meeting")
    return AckResponse(message="Left meeting successfully")


@router.post("/{code}/end", response_model=AckResponse)
async def end_meeting(code: str, request: EndMeetingRequest, registry: RoomRegistry = Depends(get_room_registry)):
    """호스트가 미팅을 종료합니다. 참가자들에게 meeting-ended가 전송됩니다.

    Raises:
        NotHostError (403): 요청자가 호스트가 아닌 경우
    """
    await registry.end_room(code, request.user_id)
    logger.info(f"미팅 '{format_code(registry.get_room(code).code)}' 종료 (요청자: {request.user_id})")
    return AckResponse(message="Meeting ended successfully")
