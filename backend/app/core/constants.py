"""Centralized constants — no magic numbers in service code."""

# Upload limits
MAX_UPLOAD_SIZE = 5 * 1024 * 1024  # 5 MiB
PDF_CONTENT_TYPE = "application/pdf"
PDF_SUFFIX = ".pdf"

# LLM
DEFAULT_LLM_MODEL = "gpt-4o-mini"
ANALYSIS_TEMPERATURE = 0.7
COVER_LETTER_TEMPERATURE = 0.8

# Rate limiting
RATE_LIMIT_PER_MINUTE = 10

# Export filenames
CUSTOMIZED_RESUME_FILENAME = "customized-resume.txt"
COVER_LETTER_FILENAME = "cover-letter.txt"

# Fallback analysis, used whenever the model's JSON can't be obtained or parsed
DEFAULT_STRENGTHS = [
    "Solid technical foundation communicated clearly.",
    "Highlights relevant experience and impact-driven bullet points.",
]
DEFAULT_IMPROVEMENTS = [
    "Quantify achievements (e.g., impact, metrics) wherever possible.",
    "Add a short summary that aligns with the target role's keywords.",
]
DEFAULT_TAILORING = [
    "Mirror key phrases from the job description in the skills section.",
    "Mention recent projects that demonstrate the required tools or domains.",
]

COVER_LETTER_FAILURE_TEMPLATE = "Cover letter generation failed: {cause}. Please try again."

# Pipeline step labels (used by SSE progress events), one per generation task
PIPELINE_STEP_LABELS = [
    "Analyzing resume...",
    "Customizing resume...",
    "Finding specific changes...",
    "Writing cover letter...",
]
