"""FastAPI WebRTC Signaling Server for Video Meetings.

이 모듈은 WebRTC 기반의 다자간 화상 회의 시스템을 위한 시그널링 서버를
제공합니다. FastAPI와 WebSocket을 사용하여 참가자 간 peer-to-peer(mesh)
연결 수립을 중계합니다.

주요 기능:
    - 미팅 코드 기반 룸 관리 (생성, 입장, 퇴장, 호스트 종료)
    - WebRTC offer/answer/ICE candidate 중계 (내용 해석 없음)
    - 실시간 참가자 입/퇴장 알림
    - CORS 설정을 통한 크로스 오리진 요청 지원

Architecture:
    - Mesh: 미디어는 참가자 간 직접 전송, 서버는 시그널링만 담당
    - RoomRegistry: 룸 및 참가자 상태 관리
    - SignalingRelay: 연결 ID → 채널 라우팅, 레지스트리 이벤트 팬아웃
    - SignalingHub: WebSocket 메시지 처리
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Load 환경변수 from config/.env
load_dotenv(Path(__file__).parent / "config" / ".env")

from modules.meeting import RoomRegistry, get_meeting_settings
from modules.shared import MeetingError
from modules.signaling import SignalingHub, SignalingRelay
from modules.webrtc.config import ice_config
from routes import (
    health_router, meetings_router, signaling_router,
    init_dependencies, get_signaling_relay,
)


# 로그 설정
os.makedirs("logs", exist_ok=True)
log_filename = f"logs/server_{datetime.now().strftime('%Y%m%d')}.log"

# 환경별 로그 레벨 설정 (환경변수로 제어)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ENV = os.getenv("ENV", "development")

# 로그 보관 기간 (일) - 기본 60일 (2개월)
LOG_RETENTION_DAYS = int(os.getenv("LOG_RETENTION_DAYS", "60"))

SERVICE_NAME = "WebRTC Meeting Signaling Server"


def cleanup_old_logs(log_dir: str = "logs", retention_days: int = LOG_RETENTION_DAYS) -> int:
    """오래된 로그 파일을 삭제합니다.

    Args:
        log_dir: 로그 디렉토리 경로
        retention_days: 보관 기간 (일)

    Returns:
        삭제된 파일 수
    """
    import glob
    from datetime import timedelta

    if not os.path.exists(log_dir):
        return 0

    cutoff_date = datetime.now() - timedelta(days=retention_days)
    deleted_count = 0

    for log_file in glob.glob(os.path.join(log_dir, "server_*.log")):
        try:
            date_str = os.path.basename(log_file).replace("server_", "").replace(".log", "")
            file_date = datetime.strptime(date_str, "%Y%m%d")

            if file_date < cutoff_date:
                os.remove(log_file)
                deleted_count += 1
        except (ValueError, OSError):
            continue

    return deleted_count


logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(),  # 콘솔 출력
        logging.FileHandler(log_filename, encoding="utf-8"),  # 파일 저장
    ]
)
logger = logging.getLogger(__name__)
logger.info(f"로깅 초기화 완료: level={LOG_LEVEL}, env={ENV}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI 앱의 생명주기를 관리하는 컨텍스트 매니저.

    서버 시작 시 오래된 로그를 정리하고, 종료 시 모든 시그널링 연결을
    닫습니다.

    Args:
        app (FastAPI): FastAPI 애플리케이션 인스턴스

    Yields:
        None: 앱이 실행되는 동안 제어를 반환
    """
    logger.info("WebRTC 시그널링 서버 시작 중...")

    # 오래된 로그 파일 정리 (2개월 이상)
    deleted_logs = cleanup_old_logs()
    if deleted_logs > 0:
        logger.info(f"오래된 로그 파일 {deleted_logs}개 정리 완료 ({LOG_RETENTION_DAYS}일 이상)")

    settings = get_meeting_settings()
    logger.info(f"미팅 설정: 코드 길이={settings.CODE_LENGTH}, 최대 참가자={settings.MAX_PARTICIPANTS}")

    yield

    # 서버 종료
    logger.info("서버 종료 중...")
    await get_signaling_relay().close_all()
    logger.info("모든 시그널링 연결 종료됨")


async def meeting_error_handler(request: Request, exc: MeetingError) -> JSONResponse:
    """MeetingError를 {success: false, message, error} 응답으로 변환합니다."""
    logger.info(f"요청 실패 {request.method} {request.url.path}: {exc.code} ({exc.message})")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "error": exc.code},
    )


def create_app(registry: Optional[RoomRegistry] = None) -> FastAPI:
    """FastAPI 앱을 생성합니다.

    레지스트리, 릴레이, 허브를 만들고 릴레이를 레지스트리 리스너로 등록한 뒤
    라우터 의존성으로 설정합니다.

    Args:
        registry: 사용할 룸 레지스트리 (기본값: 새 인메모리 레지스트리)

    Returns:
        FastAPI: 설정이 끝난 앱
    """
    registry = registry or RoomRegistry()
    relay = SignalingRelay(registry)
    registry.add_listener(relay)
    hub = SignalingHub(registry, relay)
    init_dependencies(registry, relay, hub)

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)

    # CORS - 개발 환경에서는 모든 로컬 네트워크 허용
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^http://(localhost|127\.0\.0\.1|192\.168\.\d{1,3}\.\d{1,3}|172\.\d{1,3}\.\d{1,3}\.\d{1,3}):\d+$|^https://.*\.ngrok(-free)?\.(app|dev|io)$|^https://.*\.trycloudflare\.com$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MeetingError, meeting_error_handler)

    # 라우터 등록
    app.include_router(health_router)
    app.include_router(meetings_router)
    app.include_router(signaling_router)

    @app.get("/")
    async def root():
        """서버 상태 확인 엔드포인트 (Health check).

        Returns:
            dict: 서버 상태 정보
                - status (str): 서버 상태
                - service (str): 서비스 이름
                - timestamp (str): 현재 시각 (ISO 8601)
        """
        return {"status": "ok", "service": SERVICE_NAME, "timestamp": datetime.now().isoformat()}

    @app.get("/api/turn-credentials")
    async def get_turn_credentials():
        """ICE 서버 설정(STUN + 선택적 TURN)을 Frontend에 제공합니다.

        TURN credentials는 Backend 환경 변수에서만 관리되어 Frontend 코드에
        직접 노출되지 않습니다.

        Environment Variables:
            TURN_SERVER_URL, TURN_USERNAME, TURN_CREDENTIAL: TURN 서버
            STUN_SERVER_URL: STUN 서버 (선택)

        Examples:
            [
                {"urls": "stun:stun.l.google.com:19302"},
                {"urls": "turn:turn.example.com:3478", "username": "user", "credential": "pass"}
            ]
        """
        ice_servers = ice_config.as_dicts()
        if ice_config.has_turn_server:
            logger.info("ICE 서버 제공: STUN + TURN")
        else:
            logger.info("ICE 서버 제공: STUN만 (TURN 미설정)")
        return ice_servers

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
