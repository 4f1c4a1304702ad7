"""
FastAPI app entrypoint.

Nudge engine backend: daily periodic nudges via APScheduler, trigger endpoints for an
external cron and the event-approval pathway, notification read-state API.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from apscheduler.schedulers.background import BackgroundScheduler
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from app.api.routes import notifications, nudges
from app.config import settings
from app.core.constants import NUDGE_PERIODIC_JOB_ID
from app.scheduler.nudge_job import run_periodic_nudges_job

if settings.openai_api_key:
    os.environ["OPENAI_API_KEY"] = settings.openai_api_key

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_scheduler = BackgroundScheduler(timezone="UTC")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.nudge_scheduler_enabled:
        _scheduler.add_job(
            run_periodic_nudges_job,
            "cron",
            hour=settings.nudge_cron_hour,
            minute=settings.nudge_cron_minute,
            id=NUDGE_PERIODIC_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        _scheduler.start()
        logger.info(
            "Nudge scheduler started: daily at %02d:%02d UTC",
            settings.nudge_cron_hour,
            settings.nudge_cron_minute,
        )
    else:
        logger.info("Nudge scheduler disabled (NUDGE_SCHEDULER_ENABLED=false); use POST /nudges/process")
    app.state.scheduler = _scheduler
    yield
    if _scheduler.running:
        _scheduler.shutdown(wait=False)


app = FastAPI(title="Nudge Engine", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for production frontend
_cors_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(nudges.router, tags=["nudges"])
app.include_router(notifications.router, tags=["notifications"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Nudge Engine API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
