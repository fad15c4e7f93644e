"""Resume pipeline orchestrator.

Runs the generation tasks strictly one after another:

    analysis -> customizedResume -> specificChanges -> coverLetter

``analysis`` always runs; the other three only when the job description is
non-blank. A GenerationFailed in any task is contained at that task:

- analysis: the default strengths/improvements/tailoring are used
- customizedResume / specificChanges: the field is left out
- coverLetter: the field holds a readable failure message instead

so later tasks still run and the call itself returns a result. The only
errors a run raises are ValidationFailed (missing input) and
ServiceUnavailable (no API key), both before any task starts.

One ResumePipeline serves one invocation. Results are immutable, so two
invocations racing on the same UI state never interfere here: whichever
result the caller stores last wins, and a cover-letter merge returns a new
result without touching the one it was given.
"""

import time
from collections.abc import Awaitable, Callable
from enum import Enum

from app.core.constants import COVER_LETTER_FAILURE_TEMPLATE, PIPELINE_STEP_LABELS
from app.core.errors import GenerationFailed, PipelineError, ServiceUnavailable, ValidationFailed
from app.core.langfuse_client import observe
from app.core.llm import GenerationClient
from app.core.logger import logger
from app.core.prompts import (
    build_analysis_prompt,
    build_cover_letter_prompt,
    build_customization_prompt,
    build_specific_changes_prompt,
    prompt_temperature,
)
from app.models import AnalysisFields, ExtractedDocument, PipelineResult, TaskKind
from app.services.parsers import parse_analysis, parse_free_text
from app.services.pdf_extractor import extract_text

StepCallback = Callable[[int, str], Awaitable[None]]


class PipelineState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    AWAITING_INPUT = "awaiting_input"
    RUNNING_ANALYSIS = "running_analysis"
    RUNNING_CUSTOMIZATION = "running_customization"
    RUNNING_CHANGES = "running_changes"
    RUNNING_COVER_LETTER = "running_cover_letter"
    DONE = "done"
    FAILED = "failed"


_TASK_STATES = {
    TaskKind.ANALYSIS: PipelineState.RUNNING_ANALYSIS,
    TaskKind.CUSTOMIZED_RESUME: PipelineState.RUNNING_CUSTOMIZATION,
    TaskKind.SPECIFIC_CHANGES: PipelineState.RUNNING_CHANGES,
    TaskKind.COVER_LETTER: PipelineState.RUNNING_COVER_LETTER,
}

_TASK_ORDER = list(_TASK_STATES)


def merge_cover_letter(previous: PipelineResult | None, cover_letter: str | None) -> PipelineResult:
    """Return a copy of ``previous`` with only the cover letter replaced.

    Without a previous result the default analysis is used as the base. A
    cover letter of None (model produced nothing) keeps the previous one.
    The copy is deep: no list is shared with ``previous``.
    """
    base = previous or PipelineResult.from_analysis(AnalysisFields.defaults())
    if cover_letter is None:
        return base.model_copy(deep=True)
    return base.model_copy(update={"cover_letter": cover_letter}, deep=True)


class ResumePipeline:
    """State machine for one extraction / generation invocation."""

    def __init__(self, client: GenerationClient, on_step: StepCallback | None = None):
        self.client = client
        self.on_step = on_step
        self.state = PipelineState.IDLE
        self.failed_stage: PipelineState | None = None
        self.resume_text: str | None = None
        self.failures: dict[TaskKind, str] = {}

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def extract(
        self,
        data: bytes,
        content_type: str | None,
        filename: str | None = None,
    ) -> ExtractedDocument:
        """Extract resume text from a PDF. On failure the previous text is dropped."""
        self.state = PipelineState.EXTRACTING
        try:
            document = await extract_text(data, content_type, filename)
        except PipelineError:
            self.resume_text = None
            self._fail(PipelineState.EXTRACTING)
            raise

        self.resume_text = document.text
        self.state = PipelineState.AWAITING_INPUT
        return document

    async def run_full_analysis(self, resume_text: str | None, job_description: str = "") -> PipelineResult:
        """Run analysis, then (with a job description) the three dependent tasks.

        Args:
            resume_text: Extracted resume text; None falls back to the text
                from ``extract``.
            job_description: May be empty, in which case only analysis runs.
        """
        resume_text = self._require_resume(resume_text)
        job_description = (job_description or "").strip()
        self._start(PipelineState.RUNNING_ANALYSIS)
        start = time.time()

        try:
            analysis = await self._run_analysis(resume_text, job_description)
            optional: dict[str, str | None] = {}
            if job_description:
                optional["customized_resume"] = await self._run_customization(resume_text, job_description)
                optional["specific_changes"] = await self._run_specific_changes(resume_text, job_description)
                optional["cover_letter"] = await self._run_cover_letter(resume_text, job_description)
            else:
                logger.info("No job description — skipping customization, changes and cover letter")
        except Exception:
            self._fail(self.state)
            raise

        result = PipelineResult.from_analysis(analysis, **optional)
        self.state = PipelineState.DONE
        elapsed_ms = int((time.time() - start) * 1000)
        logger.info(
            f"Full analysis complete in {elapsed_ms}ms: "
            f"produced={sorted(result.to_wire())}, failed={[k.value for k in self.failures]}"
        )
        return result

    async def run_cover_letter_only(
        self,
        resume_text: str | None,
        job_description: str,
        previous: PipelineResult | None = None,
    ) -> PipelineResult:
        """Regenerate just the cover letter and merge it into ``previous``."""
        resume_text = self._require_resume(resume_text)
        job_description = (job_description or "").strip()
        if not job_description:
            raise ValidationFailed("Please provide a job description to generate a cover letter.")
        self._start(PipelineState.RUNNING_COVER_LETTER)

        try:
            cover_letter = await self._run_cover_letter(resume_text, job_description)
        except Exception:
            self._fail(self.state)
            raise

        self.state = PipelineState.DONE
        return merge_cover_letter(previous, cover_letter)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @observe(name="resume-analysis", capture_input=False)
    async def _run_analysis(self, resume_text: str, job_description: str) -> AnalysisFields:
        prompt = build_analysis_prompt(resume_text, job_description)
        try:
            raw = await self._generate(TaskKind.ANALYSIS, prompt)
        except GenerationFailed as e:
            self._record_failure(TaskKind.ANALYSIS, e)
            logger.warning("Falling back to default analysis")
            return AnalysisFields.defaults()
        return parse_analysis(raw)

    @observe(name="resume-customization", capture_input=False)
    async def _run_customization(self, resume_text: str, job_description: str) -> str | None:
        prompt = build_customization_prompt(resume_text, job_description)
        return await self._run_optional(TaskKind.CUSTOMIZED_RESUME, prompt)

    @observe(name="resume-specific-changes", capture_input=False)
    async def _run_specific_changes(self, resume_text: str, job_description: str) -> str | None:
        prompt = build_specific_changes_prompt(resume_text, job_description)
        return await self._run_optional(TaskKind.SPECIFIC_CHANGES, prompt)

    @observe(name="resume-cover-letter", capture_input=False)
    async def _run_cover_letter(self, resume_text: str, job_description: str) -> str | None:
        prompt = build_cover_letter_prompt(resume_text, job_description)
        try:
            raw = await self._generate(TaskKind.COVER_LETTER, prompt)
        except GenerationFailed as e:
            self._record_failure(TaskKind.COVER_LETTER, e)
            # Shown to the user in place of the letter
            return COVER_LETTER_FAILURE_TEMPLATE.format(cause=e.detail)

        cover_letter = parse_free_text(raw)
        if cover_letter is None:
            logger.warning("Cover letter response was empty")
        return cover_letter

    async def _run_optional(self, kind: TaskKind, prompt: str) -> str | None:
        try:
            raw = await self._generate(kind, prompt)
        except GenerationFailed as e:
            self._record_failure(kind, e)
            return None

        text = parse_free_text(raw)
        if text is None:
            logger.warning(f"{kind.value}: model returned an empty response")
        return text

    async def _generate(self, kind: TaskKind, prompt: str) -> str:
        self.state = _TASK_STATES[kind]
        step = _TASK_ORDER.index(kind)
        if self.on_step:
            await self.on_step(step, PIPELINE_STEP_LABELS[step])

        logger.info(f"Running {kind.value} ({len(prompt)} prompt chars)")
        raw = await self.client.generate(prompt, prompt_temperature(kind.value), name=kind.value)
        logger.info(f"{kind.value} completed ({len(raw)} chars)")
        return raw

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _require_resume(self, resume_text: str | None) -> str:
        text = resume_text if resume_text is not None else self.resume_text
        if not text or not text.strip():
            raise ValidationFailed("Please upload your resume PDF first.")
        return text

    def _start(self, first_state: PipelineState) -> None:
        self.failures = {}
        self.failed_stage = None
        try:
            self.client.ensure_available()
        except ServiceUnavailable:
            self._fail(first_state)
            raise
        self.state = first_state

    def _fail(self, stage: PipelineState) -> None:
        self.failed_stage = stage
        self.state = PipelineState.FAILED

    def _record_failure(self, kind: TaskKind, error: GenerationFailed) -> None:
        self.failures[kind] = error.detail
        logger.error(f"{kind.value} failed, continuing: {error.detail}")
