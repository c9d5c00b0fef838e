"""미팅 코드 생성 및 정규화.

미팅 코드는 [A-Z0-9] 9자리 문자열이며, 화면에는 3자리씩 하이픈으로 묶어
표시합니다 (예: ABC-123-XYZ). 비교는 하이픈/공백 제거 후 대소문자 구분 없이
수행합니다.

Examples:
    >>> normalize_code("abc-123-xyz")
    'ABC123XYZ'
    >>> format_code("ABC123XYZ")
    'ABC-123-XYZ'
"""

import re
import secrets
import string
from typing import Optional

from ..shared.errors import InvalidMeetingCodeError
from .config import meeting_settings

CODE_ALPHABET = string.ascii_uppercase + string.digits

_SEPARATORS = re.compile(r"[\s\-]+")


def generate_meeting_code(length: Optional[int] = None) -> str:
    """새로운 미팅 코드를 생성합니다.

    Args:
        length: 코드 길이 (기본값: 설정의 CODE_LENGTH)

    Returns:
        str: 정규화된 미팅 코드 (하이픈 없음)
    """
    length = length or meeting_settings.CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(raw: Optional[str], length: Optional[int] = None) -> str:
    """사용자 입력 코드를 비교 가능한 형태로 정규화합니다.

    Args:
        raw: 사용자가 입력한 코드 (하이픈/공백/소문자 허용)
        length: 기대 코드 길이 (기본값: 설정의 CODE_LENGTH)

    Returns:
        str: 대문자, 구분자 없는 코드

    Raises:
        InvalidMeetingCodeError: 길이 또는 문자 구성이 올바르지 않은 경우
    """
    if not raw or not isinstance(raw, str):
        raise InvalidMeetingCodeError("Meeting code is required")

    length = length or meeting_settings.CODE_LENGTH
    code = _SEPARATORS.sub("", raw).upper()

    if len(code) != length or any(ch not in CODE_ALPHABET for ch in code):
        raise InvalidMeetingCodeError(f"Invalid meeting code: {raw}")
    return code


def format_code(code: str, group_size: Optional[int] = None) -> str:
    """정규화된 코드를 표시용으로 그룹핑합니다."""
    group_size = group_size or meeting_settings.CODE_GROUP_SIZE
    return "-".join(code[i:i + group_size] for i in range(0, len(code), group_size))


def is_valid_code(raw: Optional[str]) -> bool:
    try:
        normalize_code(raw)
    except InvalidMeetingCodeError:
        return False
    return True
