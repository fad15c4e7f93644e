"""Resume endpoints — PDF text extraction, analysis runs, cover letter, export."""

import asyncio
import json
import time

from fastapi import APIRouter, File, Request, UploadFile
from fastapi.responses import PlainTextResponse, StreamingResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.constants import RATE_LIMIT_PER_MINUTE
from app.core.errors import PipelineError, ValidationFailed
from app.core.langfuse_client import flush, observe
from app.core.llm import get_generation_client
from app.core.logger import logger
from app.models import (
    AnalyzeRequest,
    AnalyzeResponse,
    CoverLetterRequest,
    ExtractResponse,
    PipelineResult,
)
from app.services.export import export_artifact
from app.services.parsers import parse_change_records
from app.services.pipeline import ResumePipeline, StepCallback

router = APIRouter(prefix="/api", tags=["Resume"])
limiter = Limiter(key_func=get_remote_address)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sse_event(event: str, data: dict) -> str:
    """Format a single SSE event string."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _new_pipeline(on_step: StepCallback | None = None) -> ResumePipeline:
    client = await get_generation_client()
    return ResumePipeline(client, on_step=on_step)


def _build_response(pipeline: ResumePipeline, result: PipelineResult, start: float) -> AnalyzeResponse:
    return AnalyzeResponse(
        result=result.to_wire(),
        change_records=parse_change_records(result.specific_changes),
        failures={kind.value: cause for kind, cause in pipeline.failures.items()},
        processing_time_ms=int((time.time() - start) * 1000),
    )


def _check_run_inputs(payload: AnalyzeRequest) -> None:
    """Cheap guards run before any SSE stream is opened."""
    if not payload.resume_text.strip():
        raise ValidationFailed("resumeText is required")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/extract-text", response_model=ExtractResponse)
async def extract_resume_text(resume_file: UploadFile = File(...)):
    """PDF upload in -> normalized plain text out. The file is not stored."""
    start = time.time()
    raw_bytes = await resume_file.read()

    pipeline = await _new_pipeline()
    document = await pipeline.extract(raw_bytes, resume_file.content_type, resume_file.filename)

    return ExtractResponse(
        text=document.text,
        filename=resume_file.filename or "",
        size_bytes=len(raw_bytes),
        page_count=document.page_count,
        processing_time_ms=int((time.time() - start) * 1000),
    )


@router.post("/analyze-resume", response_model=AnalyzeResponse)
@limiter.limit(f"{RATE_LIMIT_PER_MINUTE}/minute")
@observe(name="analyze-resume", capture_input=False)
async def analyze_resume(request: Request, payload: AnalyzeRequest):
    """Full run: analysis, plus resume / changes / cover letter when a JD is given."""
    start = time.time()
    _check_run_inputs(payload)
    logger.info(
        f"Analyzing resume ({len(payload.resume_text)} chars) "
        f"with job description ({len(payload.job_description)} chars)"
    )

    pipeline = await _new_pipeline()
    try:
        result = await pipeline.run_full_analysis(payload.resume_text, payload.job_description)
    finally:
        flush()
    return _build_response(pipeline, result, start)


@router.post("/analyze-resume-stream")
@limiter.limit(f"{RATE_LIMIT_PER_MINUTE}/minute")
@observe(name="analyze-resume-stream", capture_input=False)
async def analyze_resume_stream(request: Request, payload: AnalyzeRequest):
    """SSE streaming endpoint: same input, one progress event per task."""
    _check_run_inputs(payload)
    client = await get_generation_client()
    client.ensure_available()
    logger.info(f"[stream] Analyzing resume ({len(payload.resume_text)} chars)")

    async def event_generator():
        queue: asyncio.Queue[str | None] = asyncio.Queue()

        async def on_step(index: int, label: str) -> None:
            await queue.put(_sse_event("progress", {"step": index, "label": label}))

        async def run_pipeline() -> None:
            start = time.time()
            pipeline = ResumePipeline(client, on_step=on_step)
            try:
                result = await pipeline.run_full_analysis(payload.resume_text, payload.job_description)
                response = _build_response(pipeline, result, start)
                await queue.put(_sse_event("complete", response.model_dump()))
            except PipelineError as e:
                await queue.put(_sse_event("error", {"detail": e.detail, "step": e.step}))
            except Exception as e:
                logger.error(f"Unexpected pipeline error: {e}", exc_info=True)
                await queue.put(_sse_event("error", {"detail": "Internal server error", "step": -1}))
            finally:
                flush()
                await queue.put(None)  # sentinel — stop the generator

        task = asyncio.create_task(run_pipeline())

        try:
            while True:
                if await request.is_disconnected():
                    task.cancel()
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                if event is None:
                    break
                yield event
        finally:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/cover-letter", response_model=AnalyzeResponse)
@limiter.limit(f"{RATE_LIMIT_PER_MINUTE}/minute")
@observe(name="cover-letter", capture_input=False)
async def generate_cover_letter(request: Request, payload: CoverLetterRequest):
    """Regenerate only the cover letter, keeping everything else in previousResult."""
    start = time.time()
    pipeline = await _new_pipeline()
    try:
        result = await pipeline.run_cover_letter_only(
            payload.resume_text,
            payload.job_description,
            payload.previous_result,
        )
    finally:
        flush()
    return _build_response(pipeline, result, start)


@router.post("/export/{artifact}", response_class=PlainTextResponse)
async def export_result(artifact: str, result: PipelineResult):
    """Download customizedResume or coverLetter as a .txt attachment."""
    filename, text = export_artifact(result, artifact)
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
