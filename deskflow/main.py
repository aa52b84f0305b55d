import asyncio
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deskflow.config import settings
from deskflow.database import SessionLocal, init_db
from deskflow.engine import get_engine
from deskflow.logging_config import get_logger, setup_logging
from deskflow.routers import message, scheduler
from deskflow.services.reminder_service import run_sweeps

setup_logging(settings.log_level)

app = FastAPI(
    title="Deskflow API",
    description="Conversational workflows for IT tickets, room reservations, HR and projects",
    version="0.1.0",
)

cors_env = os.environ.get("CORS_ALLOW_ORIGINS", "*")
cors_origins = [origin.strip() for origin in cors_env.split(",") if origin.strip()] or ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(message.router)
app.include_router(scheduler.router)

scheduler_logger = get_logger("scheduler")
_scheduler_task: asyncio.Task | None = None


def _is_scheduler_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.scheduler_enabled


async def _scheduler_loop() -> None:
    while True:
        try:
            await asyncio.sleep(max(settings.scheduler_interval_seconds, 1.0))
            engine = get_engine()
            db = SessionLocal()
            try:
                results = await asyncio.to_thread(
                    run_sweeps, db, engine.sessions, engine.transport, settings.session_ttl_minutes
                )
            finally:
                db.close()
            if any(results.values()):
                scheduler_logger.info("Scheduler tick processed", extra={"context": results})
        except asyncio.CancelledError:
            break
        except Exception as exc:
            scheduler_logger.error("Scheduler loop failed", extra={"context": {"error": str(exc)}})


@app.on_event("startup")
async def startup() -> None:
    global _scheduler_task
    init_db()
    if not _is_scheduler_enabled():
        return
    if _scheduler_task is None or _scheduler_task.done():
        _scheduler_task = asyncio.create_task(_scheduler_loop())
        scheduler_logger.info("Scheduler started")


@app.on_event("shutdown")
async def stop_scheduler() -> None:
    global _scheduler_task
    if _scheduler_task is None:
        return
    _scheduler_task.cancel()
    try:
        await _scheduler_task
    except asyncio.CancelledError:
        pass
    _scheduler_task = None


@app.get("/health")
async def health():
    return {"status": "ok"}
