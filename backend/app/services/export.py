"""Plain-text export of the generated resume and cover letter."""

from app.core.constants import COVER_LETTER_FILENAME, CUSTOMIZED_RESUME_FILENAME
from app.core.errors import ArtifactMissing, ValidationFailed
from app.models import PipelineResult, TaskKind

EXPORTABLE = {
    TaskKind.CUSTOMIZED_RESUME.value: ("customized_resume", CUSTOMIZED_RESUME_FILENAME),
    TaskKind.COVER_LETTER.value: ("cover_letter", COVER_LETTER_FILENAME),
}


def export_artifact(result: PipelineResult, artifact: str) -> tuple[str, str]:
    """Return (filename, text) for a downloadable artifact of ``result``."""
    if artifact not in EXPORTABLE:
        raise ValidationFailed(
            f"Unknown artifact '{artifact}' — expected one of: {', '.join(EXPORTABLE)}"
        )

    field, filename = EXPORTABLE[artifact]
    text = getattr(result, field)
    if not text:
        raise ArtifactMissing(f"No {artifact} in this result to export")
    return filename, text
