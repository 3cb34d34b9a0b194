# main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from mindship.api import deps
from mindship.api.endpoints import health
from mindship.api.endpoints.desktop import heartbeat, live, sessions
from mindship.api.endpoints.ops import interventions, monitor
from mindship.core.config import settings
from mindship.core.exceptions import DriftError, PublishError
from mindship.db.mongo import connect_to_mongo, close_mongo_connection
from mindship.services import scheduler

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

IS_PRODUCTION = settings.ENVIRONMENT == "production"


async def run_scheduled_sweep():
    report = await deps.get_monitor(deps.get_dispatcher()).sweep()
    if report.interventions_triggered or report.failures:
        logger.info("Scheduled sweep: %s", report.message)


# [수명 주기 관리] DB 연결 및 해제, 내부 스케줄러
@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_mongo()
    if settings.ENABLE_INTERNAL_SCHEDULER:
        scheduler.schedule_drift_sweep(run_scheduled_sweep, settings.MONITOR_INTERVAL_SECONDS)
        scheduler.start_scheduler()
    yield
    scheduler.shutdown_scheduler()
    await close_mongo_connection()


app = FastAPI(title="Mindship Drift Backend", lifespan=lifespan)

# CORS: 프론트엔드 접근 허용
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DriftError)
async def drift_error_handler(request: Request, exc: DriftError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.error, "message": exc.message},
    )


# 라이브 채널에 구독자가 있었지만 아무에게도 전달하지 못한 경우
@app.exception_handler(PublishError)
async def publish_error_handler(request: Request, exc: PublishError):
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": "publish_failed", "message": str(exc)},
    )


@app.get("/")
async def read_root():
    return {"message": "Backend is running!"}


app.include_router(health.router)

# 클라이언트(항해 UI) API
app.include_router(sessions.router, prefix="/api/v1/sessions", tags=["sessions"])
app.include_router(heartbeat.router, prefix="/api/v1/heartbeat", tags=["heartbeat"])
app.include_router(live.router, prefix="/ws", tags=["live"])

# 운영 API (cron 트리거, 테스트 개입)
app.include_router(monitor.router, prefix="/api/v1/monitor", tags=["monitor"])
app.include_router(interventions.router, prefix="/api/v1/interventions", tags=["interventions"])
