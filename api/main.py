"""FastAPI application entrypoint for the medication reminder engine."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes.friend_reminders import router as friend_reminders_router
from api.routes.medications import router as medications_router
from core.settings import get_settings
from scheduler.service import reminder_service

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    if settings.reminder_clock_enabled:
        reminder_service.clock.start()
    else:
        logger.info("Reminder clock disabled by configuration")
    try:
        yield
    finally:
        await reminder_service.clock.stop()


app = FastAPI(
    title="Medication Reminder Engine",
    version="0.1.0",
    description=(
        "Decides when medication reminders are due, tracks each reminder until it "
        "is taken, skipped or snoozed, and relays reminders between friends."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)

app.include_router(medications_router)
app.include_router(friend_reminders_router)


@app.get("/health")
def healthcheck() -> dict[str, str]:
    """Simple readiness probe used by deployment tooling."""

    return {"status": "ok", "push": "enabled" if settings.push_enabled else "disabled"}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
