"""Error taxonomy for the resume pipeline.

Every error carries the HTTP status the API maps it to, so routes can let
them propagate to the global handler in app.main.
"""


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    status_code = 500

    def __init__(self, detail: str, step: int = -1):
        self.detail = detail
        self.step = step
        super().__init__(detail)


class InvalidDocument(PipelineError):
    """Upload is not a PDF (by content type or filename)."""

    status_code = 400


class DocumentTooLarge(PipelineError):
    status_code = 413


class ExtractionFailed(PipelineError):
    """PDF could not be decoded, or a page failed to yield text."""

    status_code = 422

    def __init__(self, cause: Exception | str):
        self.cause = cause
        super().__init__(f"Failed to extract text from the PDF: {cause}")


class ServiceUnavailable(PipelineError):
    """No generation credential is configured."""

    status_code = 503


class GenerationFailed(PipelineError):
    """Transport or service error during a single generation call."""

    status_code = 502

    def __init__(self, cause: Exception | str, step: int = -1):
        self.cause = cause
        super().__init__(str(cause), step=step)


class MalformedResponse(PipelineError):
    """Model output did not contain a parseable JSON object.

    Contained by the analysis parser; never reaches the API.
    """

    status_code = 502


class ValidationFailed(PipelineError):
    status_code = 400


class ArtifactMissing(PipelineError):
    status_code = 404
