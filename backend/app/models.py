"""Pydantic models for the resume pipeline and its API.

Wire names are camelCase (what the UI sends and renders); Python code uses
the snake_case attribute names.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import DEFAULT_IMPROVEMENTS, DEFAULT_STRENGTHS, DEFAULT_TAILORING


class TaskKind(str, Enum):
    """The four generation tasks, in execution order."""
    ANALYSIS = "analysis"
    CUSTOMIZED_RESUME = "customizedResume"
    SPECIFIC_CHANGES = "specificChanges"
    COVER_LETTER = "coverLetter"


class ExtractedDocument(BaseModel):
    """Output of the PDF text extractor."""
    text: str
    page_count: int


class AnalysisFields(BaseModel):
    """Parsed output of the analysis task."""
    strengths: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
    tailoring: list[str] = Field(default_factory=list)

    @classmethod
    def defaults(cls) -> "AnalysisFields":
        return cls(
            strengths=list(DEFAULT_STRENGTHS),
            improvements=list(DEFAULT_IMPROVEMENTS),
            tailoring=list(DEFAULT_TAILORING),
        )


class PipelineResult(BaseModel):
    """Everything one pipeline invocation produced. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    strengths: list[str]
    improvements: list[str]
    tailoring: list[str]
    customized_resume: str | None = Field(default=None, alias="customizedResume")
    specific_changes: str | None = Field(default=None, alias="specificChanges")
    cover_letter: str | None = Field(default=None, alias="coverLetter")

    @classmethod
    def from_analysis(cls, analysis: AnalysisFields, **optional: str | None) -> "PipelineResult":
        return cls(
            strengths=analysis.strengths,
            improvements=analysis.improvements,
            tailoring=analysis.tailoring,
            **optional,
        )

    def to_wire(self) -> dict:
        """camelCase JSON dict with absent optional fields left out."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ChangeRecord(BaseModel):
    """One SECTION / CURRENT / CHANGE TO edit from the specific-changes text."""
    section: str = ""
    current: str = ""
    change_to: str = ""


class AnalyzeRequest(BaseModel):
    """Input for a full analysis run."""

    model_config = ConfigDict(populate_by_name=True)

    resume_text: str = Field(..., alias="resumeText", description="Text extracted from the resume PDF")
    job_description: str = Field(default="", alias="jobDescription", description="Job description (optional)")


class CoverLetterRequest(AnalyzeRequest):
    """Input for regenerating only the cover letter."""
    previous_result: PipelineResult | None = Field(
        default=None,
        alias="previousResult",
        description="Result of an earlier run; all its other fields are kept",
    )


class ExtractResponse(BaseModel):
    text: str
    filename: str
    size_bytes: int
    page_count: int
    processing_time_ms: int


class AnalyzeResponse(BaseModel):
    """Full response to the UI."""
    result: dict = Field(..., description="PipelineResult in camelCase wire form")
    change_records: list[ChangeRecord] = Field(default_factory=list)
    failures: dict[str, str] = Field(
        default_factory=dict,
        description="Task name -> cause, for tasks whose failure was contained",
    )
    processing_time_ms: int
