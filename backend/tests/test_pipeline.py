"""Tests for the pipeline orchestrator.

The generation client is a deterministic stub (conftest.make_stub_client):
these cover sequencing, gating on the job description, failure isolation and
the cover-letter merge.
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from app.core.constants import DEFAULT_IMPROVEMENTS, DEFAULT_STRENGTHS, DEFAULT_TAILORING
from app.core.errors import (
    DocumentTooLarge,
    ExtractionFailed,
    GenerationFailed,
    ServiceUnavailable,
    ValidationFailed,
)
from app.models import AnalysisFields, PipelineResult, TaskKind
from app.services.pipeline import PipelineState, ResumePipeline, merge_cover_letter
from tests.conftest import SAMPLE_COVER_LETTER, SAMPLE_JD, SAMPLE_RESUME, make_stub_client


def _called_tasks(client) -> list[str]:
    return [call.kwargs["name"] for call in client.generate.call_args_list]


@pytest.mark.asyncio
class TestFullAnalysis:

    async def test_without_job_description_only_analysis_runs(self, stub_client):
        pipeline = ResumePipeline(stub_client)
        result = await pipeline.run_full_analysis(SAMPLE_RESUME, "")

        assert _called_tasks(stub_client) == ["analysis"]
        assert result.customized_resume is None
        assert result.specific_changes is None
        assert result.cover_letter is None
        assert result.strengths == ["Clear impact statements"]
        assert pipeline.state == PipelineState.DONE

    async def test_whitespace_job_description_counts_as_empty(self, stub_client):
        pipeline = ResumePipeline(stub_client)
        await pipeline.run_full_analysis(SAMPLE_RESUME, "  \n ")
        assert _called_tasks(stub_client) == ["analysis"]

    async def test_with_job_description_runs_all_four_in_order(self, stub_client):
        pipeline = ResumePipeline(stub_client)
        result = await pipeline.run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)

        assert _called_tasks(stub_client) == [
            "analysis", "customizedResume", "specificChanges", "coverLetter",
        ]
        assert result.tailoring == ["Mention FastAPI", "Mention PostgreSQL"]
        assert result.customized_resume == "Jane Doe\nBackend Engineer who ships FastAPI services."
        assert result.specific_changes.startswith("SECTION: Professional Summary")
        assert result.cover_letter == SAMPLE_COVER_LETTER
        assert pipeline.failures == {}

    async def test_cover_letter_uses_higher_temperature(self, stub_client):
        await ResumePipeline(stub_client).run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)
        temperatures = {
            call.kwargs["name"]: call.args[1] for call in stub_client.generate.call_args_list
        }
        assert temperatures == {
            "analysis": 0.7, "customizedResume": 0.7, "specificChanges": 0.7, "coverLetter": 0.8,
        }

    async def test_customization_failure_is_isolated(self):
        client = make_stub_client({"customizedResume": GenerationFailed("rate limited")})
        pipeline = ResumePipeline(client)
        result = await pipeline.run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)

        assert result.customized_resume is None
        assert result.specific_changes is not None
        assert result.cover_letter == SAMPLE_COVER_LETTER
        assert pipeline.failures == {TaskKind.CUSTOMIZED_RESUME: "rate limited"}
        assert pipeline.state == PipelineState.DONE

    async def test_specific_changes_failure_leaves_field_absent(self):
        client = make_stub_client({"specificChanges": GenerationFailed("timeout")})
        result = await ResumePipeline(client).run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)
        assert result.specific_changes is None
        assert result.customized_resume is not None
        assert result.cover_letter == SAMPLE_COVER_LETTER

    async def test_cover_letter_failure_becomes_readable_message(self):
        client = make_stub_client({"coverLetter": GenerationFailed("server overloaded")})
        pipeline = ResumePipeline(client)
        result = await pipeline.run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)

        assert result.cover_letter == "Cover letter generation failed: server overloaded. Please try again."
        assert TaskKind.COVER_LETTER in pipeline.failures

    async def test_analysis_failure_uses_defaults_and_continues(self):
        client = make_stub_client({"analysis": GenerationFailed("bad gateway")})
        result = await ResumePipeline(client).run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)

        assert result.strengths == DEFAULT_STRENGTHS
        assert result.improvements == DEFAULT_IMPROVEMENTS
        assert result.tailoring == DEFAULT_TAILORING
        assert len(_called_tasks(client)) == 4
        assert result.cover_letter == SAMPLE_COVER_LETTER

    async def test_unparseable_analysis_uses_defaults(self):
        client = make_stub_client({"analysis": "I'm sorry, I can't help with that."})
        result = await ResumePipeline(client).run_full_analysis(SAMPLE_RESUME, "")
        assert result.strengths == DEFAULT_STRENGTHS

    async def test_blank_optional_output_is_omitted(self):
        client = make_stub_client({"customizedResume": "   ", "coverLetter": ""})
        pipeline = ResumePipeline(client)
        result = await pipeline.run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)

        assert result.customized_resume is None
        assert result.cover_letter is None
        assert "customizedResume" not in result.to_wire()
        assert pipeline.failures == {}

    async def test_every_task_failing_still_returns_result(self):
        error = GenerationFailed("down")
        client = make_stub_client({
            "analysis": error, "customizedResume": error,
            "specificChanges": error, "coverLetter": error,
        })
        result = await ResumePipeline(client).run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)
        assert result.strengths == DEFAULT_STRENGTHS
        assert result.cover_letter.startswith("Cover letter generation failed: down")

    async def test_identical_inputs_give_identical_results(self):
        first = await ResumePipeline(make_stub_client()).run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)
        second = await ResumePipeline(make_stub_client()).run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)
        assert first == second

    async def test_blank_resume_is_rejected_before_any_call(self, stub_client):
        with pytest.raises(ValidationFailed):
            await ResumePipeline(stub_client).run_full_analysis("   ", SAMPLE_JD)
        stub_client.generate.assert_not_called()

    async def test_missing_credential_fails_fast(self):
        client = make_stub_client(available=False)
        pipeline = ResumePipeline(client)
        with pytest.raises(ServiceUnavailable):
            await pipeline.run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)

        client.generate.assert_not_called()
        assert pipeline.state == PipelineState.FAILED
        assert pipeline.failed_stage == PipelineState.RUNNING_ANALYSIS

    async def test_progress_callback_once_per_task(self, stub_client):
        steps = []

        async def on_step(index, label):
            steps.append((index, label))

        await ResumePipeline(stub_client, on_step=on_step).run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)
        assert [index for index, _ in steps] == [0, 1, 2, 3]
        assert steps[3][1] == "Writing cover letter..."

    async def test_state_tracks_running_task(self):
        seen = []
        client = make_stub_client()
        pipeline = ResumePipeline(client)

        async def on_step(index, label):
            seen.append(pipeline.state)

        pipeline.on_step = on_step
        await pipeline.run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)
        assert seen == [
            PipelineState.RUNNING_ANALYSIS,
            PipelineState.RUNNING_CUSTOMIZATION,
            PipelineState.RUNNING_CHANGES,
            PipelineState.RUNNING_COVER_LETTER,
        ]

    async def test_unexpected_error_marks_failed_stage(self):
        client = make_stub_client({"specificChanges": RuntimeError("bug")})
        pipeline = ResumePipeline(client)
        with pytest.raises(RuntimeError):
            await pipeline.run_full_analysis(SAMPLE_RESUME, SAMPLE_JD)
        assert pipeline.state == PipelineState.FAILED
        assert pipeline.failed_stage == PipelineState.RUNNING_CHANGES


@pytest.mark.asyncio
class TestCoverLetterOnly:

    @pytest.fixture()
    def previous(self):
        return PipelineResult(
            strengths=["s"], improvements=["i"], tailoring=["t"],
            customized_resume="Old resume", specific_changes="SECTION: x",
            cover_letter="Old letter",
        )

    async def test_empty_job_description_fails_without_network_call(self, stub_client):
        with pytest.raises(ValidationFailed):
            await ResumePipeline(stub_client).run_cover_letter_only(SAMPLE_RESUME, "")
        stub_client.generate.assert_not_called()

    async def test_missing_resume_fails_without_network_call(self, stub_client):
        with pytest.raises(ValidationFailed):
            await ResumePipeline(stub_client).run_cover_letter_only("", SAMPLE_JD)
        stub_client.generate.assert_not_called()

    async def test_only_cover_letter_runs(self, stub_client, previous):
        result = await ResumePipeline(stub_client).run_cover_letter_only(SAMPLE_RESUME, SAMPLE_JD, previous)
        assert _called_tasks(stub_client) == ["coverLetter"]
        assert result.cover_letter == SAMPLE_COVER_LETTER

    async def test_other_fields_preserved(self, stub_client, previous):
        result = await ResumePipeline(stub_client).run_cover_letter_only(SAMPLE_RESUME, SAMPLE_JD, previous)
        assert result.strengths == ["s"]
        assert result.customized_resume == "Old resume"
        assert result.specific_changes == "SECTION: x"

    async def test_previous_result_not_modified(self, stub_client, previous):
        await ResumePipeline(stub_client).run_cover_letter_only(SAMPLE_RESUME, SAMPLE_JD, previous)
        assert previous.cover_letter == "Old letter"

    async def test_without_previous_result_defaults_are_used(self, stub_client):
        result = await ResumePipeline(stub_client).run_cover_letter_only(SAMPLE_RESUME, SAMPLE_JD)
        assert result.strengths == DEFAULT_STRENGTHS
        assert result.cover_letter == SAMPLE_COVER_LETTER

    async def test_failure_message_replaces_letter(self, previous):
        client = make_stub_client({"coverLetter": GenerationFailed("quota exceeded")})
        result = await ResumePipeline(client).run_cover_letter_only(SAMPLE_RESUME, SAMPLE_JD, previous)
        assert result.cover_letter.startswith("Cover letter generation failed: quota exceeded")
        assert result.customized_resume == "Old resume"


@pytest.mark.asyncio
class TestConcurrentInvocations:
    """Invocations share nothing; the caller keeps whichever result it stores last."""

    async def test_racing_runs_return_independent_results(self, previous_result):
        client = make_stub_client()
        full, letter_only = await asyncio.gather(
            ResumePipeline(client).run_full_analysis(SAMPLE_RESUME, SAMPLE_JD),
            ResumePipeline(client).run_cover_letter_only(SAMPLE_RESUME, SAMPLE_JD, previous_result),
        )
        assert full.customized_resume is not None
        assert letter_only.customized_resume == "Kept"
        assert previous_result.cover_letter is None

    @pytest.fixture()
    def previous_result(self):
        return PipelineResult(strengths=[], improvements=[], tailoring=[], customized_resume="Kept")


class TestMergeCoverLetter:

    def test_returns_new_object(self):
        base = PipelineResult.from_analysis(AnalysisFields.defaults())
        merged = merge_cover_letter(base, "Letter")
        assert merged is not base
        assert merged.cover_letter == "Letter"
        assert base.cover_letter is None

    def test_none_keeps_previous_letter(self):
        base = PipelineResult.from_analysis(AnalysisFields.defaults(), cover_letter="Keep me")
        assert merge_cover_letter(base, None).cover_letter == "Keep me"

    @pytest.mark.parametrize("cover_letter", ["Letter", None])
    def test_lists_not_shared_with_previous(self, cover_letter):
        base = PipelineResult(strengths=["a"], improvements=["b"], tailoring=["c"])
        merged = merge_cover_letter(base, cover_letter)
        merged.strengths.append("mutated")
        merged.tailoring.clear()
        assert base.strengths == ["a"]
        assert base.tailoring == ["c"]

    def test_results_are_frozen(self):
        result = PipelineResult.from_analysis(AnalysisFields.defaults())
        with pytest.raises(Exception):
            result.cover_letter = "mutated"


@pytest.mark.asyncio
class TestExtract:

    async def test_success_moves_to_awaiting_input(self, stub_client, resume_pdf):
        pipeline = ResumePipeline(stub_client)
        document = await pipeline.extract(resume_pdf, "application/pdf", "resume.pdf")

        assert pipeline.state == PipelineState.AWAITING_INPUT
        assert pipeline.resume_text == document.text

    async def test_extracted_text_used_when_none_passed(self, stub_client, resume_pdf):
        pipeline = ResumePipeline(stub_client)
        await pipeline.extract(resume_pdf, "application/pdf", "resume.pdf")
        await pipeline.run_full_analysis(None, "")

        prompt = stub_client.generate.call_args.args[0]
        assert "Jane Doe Backend Engineer" in prompt

    async def test_failure_clears_previous_text(self, stub_client, resume_pdf):
        pipeline = ResumePipeline(stub_client)
        await pipeline.extract(resume_pdf, "application/pdf", "resume.pdf")

        with pytest.raises(ExtractionFailed):
            await pipeline.extract(b"not a pdf", "application/pdf", "broken.pdf")

        assert pipeline.resume_text is None
        assert pipeline.state == PipelineState.FAILED
        assert pipeline.failed_stage == PipelineState.EXTRACTING

    async def test_validation_failure_also_clears_text(self, stub_client, resume_pdf):
        pipeline = ResumePipeline(stub_client)
        await pipeline.extract(resume_pdf, "application/pdf", "resume.pdf")

        with pytest.raises(DocumentTooLarge):
            await pipeline.extract(b"0" * (5 * 1024 * 1024 + 1), "application/pdf", "huge.pdf")
        assert pipeline.resume_text is None
