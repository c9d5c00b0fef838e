"""Shared DTOs and exceptions used across services.

Only lightweight, common definitions should live here. Do not place
service-specific logic or heavy dependencies (e.g., aiortc) in this package.
"""

from .dto import (
    CamelModel,
    RoomSettingsDTO,
    MemberDTO,
    MeetingDTO,
    CreateMeetingRequest,
    JoinMeetingRequest,
    LeaveMeetingRequest,
    EndMeetingRequest,
    MeetingResponse,
    JoinMeetingResponse,
    AckResponse,
    ParticipantsResponse,
)
from .errors import (
    MeetingError,
    InvalidMeetingCodeError,
    RoomNotFoundError,
    RoomEndedError,
    RoomFullError,
    NotHostError,
    MediaAccessError,
    PeerError,
    UnknownPeerError,
    GlareError,
    NegotiationTimeoutError,
    TransportFailure,
)

__all__ = [
    # DTOs
    "CamelModel",
    "RoomSettingsDTO",
    "MemberDTO",
    "MeetingDTO",
    "CreateMeetingRequest",
    "JoinMeetingRequest",
    "LeaveMeetingRequest",
    "EndMeetingRequest",
    "MeetingResponse",
    "JoinMeetingResponse",
    "AckResponse",
    "ParticipantsResponse",
    # Errors
    "MeetingError",
    "InvalidMeetingCodeError",
    "RoomNotFoundError",
    "RoomEndedError",
    "RoomFullError",
    "NotHostError",
    "MediaAccessError",
    "PeerError",
    "UnknownPeerError",
    "GlareError",
    "NegotiationTimeoutError",
    "TransportFailure",
]
