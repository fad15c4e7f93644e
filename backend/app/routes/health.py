"""Health check endpoint."""

import time

from fastapi import APIRouter

from app.core.langfuse_client import tracing_enabled
from app.core.llm import get_generation_client

router = APIRouter(tags=["System"])

_start_time = time.monotonic()


@router.get("/api/health")
async def health():
    client = await get_generation_client()
    return {
        "status": "ok",
        "service": "resume-pipeline",
        "version": "1.0.0",
        "uptime_seconds": round(time.monotonic() - _start_time),
        "openai_configured": client.available,
        "tracing_enabled": tracing_enabled(),
    }
