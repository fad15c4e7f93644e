"""Shared fixtures for resume-pipeline backend tests."""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.errors import ServiceUnavailable
from app.main import app
from app.routes import resume as resume_route


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Disable slowapi rate limiting for all tests."""
    app.state.limiter.enabled = False
    resume_route.limiter.enabled = False
    yield
    app.state.limiter.enabled = True
    resume_route.limiter.enabled = True


# ---------------------------------------------------------------------------
# Sample inputs
# ---------------------------------------------------------------------------

SAMPLE_RESUME = (
    "Jane Doe\n"
    "Backend Engineer | jane@example.com | +1 555 0100 | linkedin.com/in/janedoe\n"
    "Professional Summary\n"
    "Engineer with 4 years of experience building APIs in Python.\n"
    "Experience\n"
    "Software Engineer, Acme Corp: built Django services handling 2M requests a day.\n"
    "Education\n"
    "BSc Computer Science, State University"
)

SAMPLE_JD = (
    "We are looking for a Senior Backend Engineer with experience in Python, "
    "FastAPI, PostgreSQL and Docker. You will build scalable microservices."
)

ANALYSIS_JSON = (
    '{"strengths": ["Clear impact statements"], '
    '"improvements": ["Add metrics to the summary"], '
    '"tailoring": ["Mention FastAPI", "Mention PostgreSQL"]}'
)

SAMPLE_CHANGES = (
    "SECTION: Professional Summary\n"
    "CURRENT: Engineer with 4 years of experience building APIs in Python.\n"
    "CHANGE TO: Backend engineer with 4 years of experience building FastAPI services.\n"
    "\n"
    "SECTION: Skills Section\n"
    "CURRENT: Python, Django\n"
    "CHANGE TO: Python, Django, FastAPI, PostgreSQL, Docker\n"
)

SAMPLE_COVER_LETTER = (
    "Jane Doe\nBackend Engineer\n\n------------------------------\n\nCOVER LETTER\n\n"
    "Date: March 3, 2026\n\nDear Hiring Manager,\n\nI am excited to apply.\n\nSincerely,\n\nJane Doe"
)

STUB_OUTPUTS = {
    "analysis": "Sure! Here is the analysis:\n" + ANALYSIS_JSON + "\nHope this helps.",
    "customizedResume": "  Jane Doe\nBackend Engineer who ships FastAPI services.  \n",
    "specificChanges": SAMPLE_CHANGES,
    "coverLetter": SAMPLE_COVER_LETTER,
}


def make_stub_client(overrides: dict | None = None, available: bool = True) -> MagicMock:
    """A deterministic stand-in for GenerationClient.

    ``overrides`` maps a task name to the text it returns, or to an
    exception instance it raises.
    """
    outputs = {**STUB_OUTPUTS, **(overrides or {})}
    client = MagicMock()
    client.available = available

    def ensure_available():
        if not available:
            raise ServiceUnavailable("OpenAI API key not configured")

    async def generate(prompt, temperature, name=None):
        ensure_available()
        output = outputs[name]
        if isinstance(output, Exception):
            raise output
        return output

    client.ensure_available = MagicMock(side_effect=ensure_available)
    client.generate = AsyncMock(side_effect=generate)
    return client


@pytest.fixture()
def stub_client():
    return make_stub_client()


# ---------------------------------------------------------------------------
# In-memory PDFs
# ---------------------------------------------------------------------------


def build_pdf(pages: list[list[str]]) -> bytes:
    """Build a minimal PDF; each inner list holds one page's text runs.

    Every run is written in its own BT/ET block on its own line. Runs must
    not contain parentheses or backslashes.
    """
    return build_pdf_from_content([
        "".join(f"BT /F1 12 Tf 72 {700 - 20 * i} Td ({run}) Tj ET\n" for i, run in enumerate(runs))
        for runs in pages
    ])


def build_pdf_from_content(contents: list[str]) -> bytes:
    """Build a minimal PDF with one raw content stream per page (font /F1 = Helvetica)."""
    page_ids = [4 + 2 * i for i in range(len(contents))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(contents)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_id, content in zip(page_ids, contents):
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_id + 1} 0 R >>"
            ).encode()
        )
        stream = content.encode("latin-1")
        objects.append(b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"endstream")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"

    xref_at = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref_at)
    return bytes(out)


@pytest.fixture()
def resume_pdf() -> bytes:
    """Two-page resume PDF."""
    return build_pdf([
        ["Jane Doe", "Backend Engineer", "jane@example.com"],
        ["Experience", "Acme Corp"],
    ])
