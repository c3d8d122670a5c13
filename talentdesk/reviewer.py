"""Score an application against its job using Groq (or a keyword-overlap fallback)."""
from __future__ import annotations

import json
import os
import re
from typing import Any

from talentdesk.errors import AnalysisFailed
from talentdesk.log import get_logger
from talentdesk.models import AIReview, Application, Job
from talentdesk.retry import retry
from talentdesk.structurer import structure_resume

log = get_logger(__name__)

_REVIEW_PROMPT = """\
You are an experienced technical recruiter. Compare the candidate's resume
(and cover letter, if any) with the job below.

Return ONLY valid JSON with these exact keys:

{{
  "match_score": 0,
  "matching_keywords": ["keyword present in both job and resume"],
  "missing_keywords": ["job requirement not evidenced in the resume"],
  "usp": ["what makes this candidate stand out"],
  "analysis": "3-5 sentence assessment of fit",
  "recommendation": "one line: shortlist, consider, or reject, with the reason"
}}

Rules:
- "match_score" is an integer from 0 to 100.
- Keywords must be short (1-3 words) and taken from the job text.
- Judge only on the evidence in the resume and cover letter.

Job title: {jobTitle}
Job description:
{jobDescription}

Requirements:
{requirements}

Candidate: {candidateName}

Resume:
{resume}

Cover letter:
{coverLetter}
"""

# Known skill vocabulary for the offline review.
_COMMON_SKILLS = [
    "python", "java", "javascript", "typescript", "react", "node", "angular",
    "vue", "sql", "nosql", "mongodb", "postgresql", "mysql", "redis",
    "docker", "kubernetes", "aws", "gcp", "azure", "terraform", "ansible",
    "jenkins", "git", "linux", "ci/cd", "rest", "graphql", "microservices",
    "agile", "scrum", "jira", "excel", "power bi", "tableau", "sap",
    "salesforce", "recruitment", "onboarding", "payroll", "compliance",
    "machine learning", "deep learning", "nlp", "data science", "pandas",
    "tensorflow", "pytorch", "spark", "hadoop", "kafka", "elasticsearch",
    "figma", "ui/ux", "go", "rust", "c++", "c#", "swift", "kotlin",
    "communication", "leadership", "project management", "stakeholder management",
]

# Requirement items longer than this many words are sentences, not keywords.
_MAX_KEYWORD_WORDS = 4


def build_review_request(job: Job, application: Application, max_chars: int = 6000) -> dict[str, str]:
    """Request body for the hosted review; the resume is capped at *max_chars*."""
    return {
        "jobTitle": job.title,
        "jobDescription": job.description,
        "requirements": job.requirements,
        "candidateName": application.candidate_name or "Candidate",
        "resume": application.resume_text[:max_chars],
        "coverLetter": (application.cover_letter or "")[:2000],
    }


@retry(max_attempts=2, base_delay=2.0, retryable=(Exception,))
def _llm_review(
    request: dict[str, str], api_key: str, model: str, base_url: str, max_tokens: int = 900
) -> dict[str, Any]:
    from openai import OpenAI

    client = OpenAI(api_key=api_key, base_url=base_url)
    resp = client.chat.completions.create(
        model=model,
        messages=[{"role": "user", "content": _REVIEW_PROMPT.format(**request)}],
        max_tokens=max_tokens,
        temperature=0.2,
    )
    raw = (resp.choices[0].message.content or "").strip()
    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start == -1 or end == 0:
        raise ValueError("LLM did not return valid JSON")
    return json.loads(raw[start:end])


def review_application(
    job: Job,
    application: Application,
    *,
    api_key: str | None = None,
    settings: dict[str, Any] | None = None,
) -> AIReview:
    """Produce an AIReview for *application*.

    Uses the hosted model when an API key is available; otherwise falls back
    to the offline keyword-overlap review. Raises AnalysisFailed when the
    hosted call fails.
    """
    cfg = (settings or {}).get("inference", {})
    api_key = api_key or os.environ.get("GROQ_API_KEY", "").strip()
    if not api_key:
        log.debug("No GROQ_API_KEY — using keyword-overlap review for %s", application.id)
        return keyword_review(job, application)

    model = cfg.get("model", "llama-3.3-70b-versatile")
    request = build_review_request(job, application, cfg.get("max_resume_chars", 6000))
    log.info("Reviewing application %s with LLM (%s)", application.id, model)
    try:
        data = _llm_review(
            request,
            api_key,
            model,
            cfg.get("base_url", "https://api.groq.com/openai/v1"),
            cfg.get("max_tokens", 900),
        )
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        review = AIReview.from_dict(data)
    except Exception as exc:
        raise AnalysisFailed(f"AI review failed: {exc}") from exc
    log.info("Review complete for %s — score=%.0f", application.id, review.match_score)
    return review


# ── Offline fallback ────────────────────────────────────────────────────


def _normalize(s: str) -> str:
    return (s or "").lower().strip()


def _contains(text: str, term: str) -> bool:
    return re.search(rf"(?<![\w+#]){re.escape(term)}(?![\w+#])", text) is not None


def job_keywords(job: Job) -> list[str]:
    """Requirement items plus known skills mentioned anywhere in the job text."""
    keywords: list[str] = []
    for item in re.split(r"[,;\n•]", job.requirements or ""):
        item = _normalize(item).strip("-*. ")
        if item and len(item.split()) <= _MAX_KEYWORD_WORDS:
            keywords.append(item)
    full = _normalize(f"{job.title} {job.description} {job.requirements}")
    keywords.extend(s for s in _COMMON_SKILLS if _contains(full, s))
    return list(dict.fromkeys(keywords))


def keyword_review(job: Job, application: Application) -> AIReview:
    keywords = job_keywords(job)
    resume = _normalize(f"{application.resume_text} {application.cover_letter or ''}")
    matching = [k for k in keywords if _contains(resume, k)]
    missing = [k for k in keywords if k not in matching]
    score = round(100 * len(matching) / len(keywords)) if keywords else 0

    skills = structure_resume(application.resume_text).skills
    usp = [s for s in skills if _normalize(s) not in keywords][:5]

    if score >= 75:
        recommendation = "Shortlist: covers most of the stated requirements."
    elif score >= 50:
        recommendation = "Consider: partial match, review manually."
    else:
        recommendation = "Reject unless other factors apply: few requirements evidenced."
    analysis = (
        f"Matched {len(matching)} of {len(keywords)} job keywords."
        + (f" Missing: {', '.join(missing[:5])}." if missing else "")
    )
    return AIReview(
        match_score=score,
        matching_keywords=matching,
        missing_keywords=missing,
        usp=usp,
        analysis=analysis,
        recommendation=recommendation,
    )
