"""Prompt templates and builders for the four generation tasks.

Each template is sent as a single user turn; the builders only interpolate
the resume text and job description, nothing is escaped.
"""

from app.core.constants import ANALYSIS_TEMPERATURE, COVER_LETTER_TEMPERATURE

PROMPT_TEMPLATES = {
    # ─── Analysis (strengths / improvements / tailoring) ──────────────
    "analysis": {
        "user": (
            "You are a resume coach. Given the resume text and optional job description,\n"
            "return STRICT JSON with keys: strengths, improvements, tailoring (arrays of strings).\n"
            "No prose. Example:\n"
            "{{\n"
            '  "strengths": ["..."],\n'
            '  "improvements": ["..."],\n'
            '  "tailoring": ["..."]\n'
            "}}\n\n"
            "Resume:\n"
            "{resume_text}\n\n"
            "Job description (optional):\n"
            "{job_description}"
        ),
        "config": {"temperature": ANALYSIS_TEMPERATURE},
    },

    # ─── Customized resume ────────────────────────────────────────────
    "customizedResume": {
        "user": (
            "You are a professional resume writer. Customize the following resume to match the job description provided.\n"
            "Rewrite the resume to highlight relevant skills, experiences, and achievements that align with the job requirements.\n\n"
            "IMPORTANT STYLE GUIDELINES:\n"
            "- Write in natural, human language that flows smoothly when read aloud\n"
            "- Use conversational yet professional tone - avoid robotic or overly formal language\n"
            "- Make descriptions sound authentic and engaging, as if a person is speaking about their experience\n"
            "- Use active voice and clear, concise sentences\n"
            "- Ensure the text reads naturally when spoken out loud\n"
            "- Keep the same format and structure, but tailor the content, keywords, and emphasis to match the job description\n\n"
            "Original Resume:\n"
            "{resume_text}\n\n"
            "Job Description:\n"
            "{job_description}\n\n"
            "Return ONLY the customized resume text. Do not include any explanations or additional text."
        ),
        "config": {"temperature": ANALYSIS_TEMPERATURE},
    },

    # ─── Specific changes (SECTION / CURRENT / CHANGE TO records) ─────
    "specificChanges": {
        "user": (
            "You are a resume editor. Analyze the resume and job description, then provide a clear, "
            "formatted list of specific places in the resume that need to be changed.\n\n"
            "IMPORTANT GUIDELINES:\n"
            "- DO NOT suggest changes to Education sections. Education information (degrees, institutions, dates) "
            "should remain as-is unless there are critical factual errors.\n"
            "- Only suggest changes that are directly relevant to matching the job description requirements.\n"
            "- Focus on: Professional Summary, Work Experience descriptions, Skills sections, and relevant achievements.\n"
            "- Do not suggest adding dates or years to education entries if they are not already present.\n\n"
            "For each change, specify:\n"
            '1. The section/section name (e.g., "Professional Summary", '
            '"Work Experience - Software Engineer at Company X", "Skills Section")\n'
            "2. What currently exists (the current text or description)\n"
            "3. What it should be changed to (the suggested change)\n\n"
            "Format your response as clear, readable text with sections. Use this format:\n\n"
            "SECTION: [Section Name]\n"
            "CURRENT: [What currently exists]\n"
            "CHANGE TO: [What it should be changed to]\n\n"
            "[Repeat for each change, separated by a blank line]\n\n"
            "Original Resume:\n"
            "{resume_text}\n\n"
            "Job Description:\n"
            "{job_description}\n\n"
            "Return ONLY the list of specific changes in the format above. Be specific about locations and "
            "exact text changes. Remember: DO NOT suggest changes to Education sections."
        ),
        "config": {"temperature": ANALYSIS_TEMPERATURE},
    },

    # ─── Cover letter ─────────────────────────────────────────────────
    "coverLetter": {
        "user": (
            "You are a professional cover letter writer. Write a compelling, personalized cover letter "
            "based on the resume and job description provided.\n\n"
            "EXACT FORMATTING STRUCTURE (follow this order exactly):\n\n"
            "1. HEADER SECTION (centered):\n"
            "   - Candidate's full name (centered, bold/large)\n"
            "   - Job title/position (centered, below name, smaller font)\n"
            "   - Blank line\n\n"
            "2. CONTACT INFORMATION (two columns):\n"
            "   - Left side: Phone number, Email address (each on separate line)\n"
            "   - Right side: LinkedIn profile URL (if available in resume)\n"
            "   - Blank line\n\n"
            "3. DIVIDER LINE:\n"
            "   - Horizontal line using dashes or equal signs (at least 30 characters)\n"
            "   - Blank line\n\n"
            "4. TITLE:\n"
            '   - "COVER LETTER" (centered, uppercase)\n'
            "   - Blank line\n\n"
            "5. DATE:\n"
            '   - "Date: [Current Date]" (left-aligned, use format: Month Day, Year, e.g., "Date: November 7, 2025")\n'
            "   - Blank line\n\n"
            "6. SALUTATION:\n"
            '   - "Dear Hiring Manager," (left-aligned)\n'
            "   - Blank line\n\n"
            "7. BODY (4-5 paragraphs):\n"
            "   - Each paragraph should be left-aligned\n"
            "   - Separate paragraphs with blank lines\n"
            "   - First paragraph: Express excitement and introduce yourself\n"
            "   - Middle paragraphs: Highlight relevant experience, skills, and achievements from resume\n"
            "   - Last paragraph: Show enthusiasm for the role and company\n\n"
            "8. CLOSING:\n"
            '   - "Sincerely," (left-aligned)\n'
            "   - Blank line\n"
            "   - Candidate's full name (left-aligned, below Sincerely)\n\n"
            "CONTENT GUIDELINES:\n"
            "- Extract candidate's name, job title, phone, email, and LinkedIn from the resume\n"
            "- Use actual information from the resume - do not use placeholders\n"
            "- Address how the candidate's skills and experience align with the job requirements\n"
            "- Highlight specific achievements and experiences from the resume that are relevant to the job\n"
            "- Show enthusiasm for the position and company\n"
            "- Use a professional but engaging tone\n"
            "- Write 4-5 well-structured paragraphs\n\n"
            "Resume:\n"
            "{resume_text}\n\n"
            "Job Description:\n"
            "{job_description}\n\n"
            "Return ONLY the formatted cover letter text following the exact structure above. "
            "Use proper line breaks and spacing. Do not include any explanations or additional text."
        ),
        "config": {"temperature": COVER_LETTER_TEMPERATURE},
    },
}


def _render(task: str, resume_text: str, job_description: str) -> str:
    template = PROMPT_TEMPLATES[task]["user"]
    return template.format(resume_text=resume_text, job_description=job_description).strip()


def _require_job_description(job_description: str) -> None:
    if not job_description.strip():
        raise ValueError("job description is required for this prompt")


def prompt_temperature(task: str) -> float:
    return PROMPT_TEMPLATES[task]["config"]["temperature"]


def build_analysis_prompt(resume_text: str, job_description: str = "") -> str:
    """Strict-JSON analysis prompt; the job description may be empty."""
    return _render("analysis", resume_text, job_description)


def build_customization_prompt(resume_text: str, job_description: str) -> str:
    _require_job_description(job_description)
    return _render("customizedResume", resume_text, job_description)


def build_specific_changes_prompt(resume_text: str, job_description: str) -> str:
    _require_job_description(job_description)
    return _render("specificChanges", resume_text, job_description)


def build_cover_letter_prompt(resume_text: str, job_description: str) -> str:
    _require_job_description(job_description)
    return _render("coverLetter", resume_text, job_description)
