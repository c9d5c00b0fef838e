"""회의(룸) 모듈 설정.

미팅 코드 형식, 참가 인원 제한, 룸 자동 생성 정책 등 룸 레지스트리 설정.
"""

import logging
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# .env 파일 로드
_env_path = Path(__file__).parent.parent.parent / "config" / ".env"
load_dotenv(_env_path)


class MeetingSettings(BaseSettings):
    """룸 레지스트리 설정 클래스.

    환경 변수를 Python 객체로 매핑하고 유효성을 검증합니다.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # 미팅 코드 설정
    CODE_LENGTH: int = Field(
        default=9,
        description="미팅 코드 길이 (3자리 단위로 하이픈 표시)",
        validation_alias="MEETING_CODE_LENGTH",
    )

    CODE_GROUP_SIZE: int = Field(
        default=3,
        description="표시용 코드 그룹 크기",
        validation_alias="MEETING_CODE_GROUP_SIZE",
    )

    # 참가 인원 설정
    MAX_PARTICIPANTS: int = Field(
        default=50,
        description="룸당 최대 활성 참가자 수",
        validation_alias="MEETING_MAX_PARTICIPANTS",
    )

    ALLOW_SCREEN_SHARE: bool = Field(
        default=True,
        description="화면 공유 허용 여부",
        validation_alias="MEETING_ALLOW_SCREEN_SHARE",
    )

    # 호스트가 WebSocket으로 처음 입장할 때 룸 자동 생성
    AUTO_CREATE_ON_HOST_JOIN: bool = Field(
        default=True,
        description="존재하지 않는 코드로 호스트가 입장하면 룸 생성",
        validation_alias="MEETING_AUTO_CREATE_ON_HOST_JOIN",
    )

    @field_validator("CODE_LENGTH")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        """미팅 코드 길이 유효성 검증"""
        if v < 4 or v > 32:
            raise ValueError("MEETING_CODE_LENGTH는 4~32 사이여야 합니다.")
        return v

    @field_validator("MAX_PARTICIPANTS")
    @classmethod
    def validate_max_participants(cls, v: int) -> int:
        """최대 참가자 수 유효성 검증"""
        if v < 2:
            raise ValueError("MEETING_MAX_PARTICIPANTS는 2 이상이어야 합니다.")
        return v


@lru_cache()
def get_meeting_settings() -> MeetingSettings:
    """설정 싱글톤 인스턴스 반환.

    Returns:
        MeetingSettings: 설정 객체
    """
    return MeetingSettings()


# 전역 settings 객체
meeting_settings = get_meeting_settings()

logger.info(f"[Meeting Config] .env 경로: {_env_path} (존재: {_env_path.exists()})")
logger.info(f"[Meeting Config] 코드 길이: {meeting_settings.CODE_LENGTH}, 최대 참가자: {meeting_settings.MAX_PARTICIPANTS}")
