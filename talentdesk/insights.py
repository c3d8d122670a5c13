"""Streamed resume insights from a local language-model server.

The server answers ``POST /api/generate`` with newline-delimited JSON objects,
each carrying the next ``response`` text fragment. ``stream_insights`` exposes
that as an async generator of fragments; ``collect_insights`` folds them into a
growing buffer and reports every intermediate state to the caller. A consumer
that goes away simply stops iterating, which closes the connection.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable

import httpx

from talentdesk.errors import AnalysisFailed
from talentdesk.log import get_logger
from talentdesk.models import Job

log = get_logger(__name__)

_INSIGHT_PROMPT = """\
You are reviewing a candidate's resume for a recruiter.

1. Identify any gaps in the education timeline between two consecutive
   education entries, and any gaps between two consecutive work experience
   entries, including short ones. When months are not given, compare years only.
2. Analyse the overall tone of the resume: clarity, professionalism, alignment
   with industry standards, enthusiasm, confidence and authenticity.
{job_context}
Answer with a JSON object of this shape, then nothing else:
{{"educationgap": "yes|no", "educationgapcomments": "", "experiencegap": "yes|no",
"experiencegapcomments": "", "resumetone": ""}}

Resume:
{resume_text}
"""


def build_insight_prompt(resume_text: str, job: Job | None = None, max_chars: int = 3000) -> str:
    job_context = ""
    if job is not None:
        job_context = (
            f"3. Keep in mind the candidate applied for: {job.title}.\n"
            f"   Requirements: {(job.requirements or '')[:800]}\n"
        )
    return _INSIGHT_PROMPT.format(job_context=job_context, resume_text=resume_text[:max_chars])


def parse_fragment(line: str) -> str | None:
    """Text payload of one NDJSON line, or None if the line is unusable."""
    try:
        data: Any = json.loads(line)
    except json.JSONDecodeError as exc:
        log.warning("Skipping malformed stream fragment (%s): %.80r", exc, line)
        return None
    if not isinstance(data, dict) or not isinstance(data.get("response"), str):
        log.warning("Skipping stream fragment without text: %.80r", line)
        return None
    return data["response"]


async def stream_insights(
    resume_text: str,
    *,
    job: Job | None = None,
    base_url: str = "http://localhost:11434",
    model: str = "llama3.2:latest",
    max_chars: int = 3000,
    timeout: float = 120,
    client: httpx.AsyncClient | None = None,
) -> AsyncIterator[str]:
    """Yield text fragments in arrival order.

    Raises AnalysisFailed on a non-success status or a transport error, which
    may happen after some fragments were already yielded.
    """
    payload = {
        "model": model,
        "prompt": build_insight_prompt(resume_text, job, max_chars),
        "stream": True,
    }
    url = f"{base_url.rstrip('/')}/api/generate"
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=timeout)
    log.info("Requesting streamed insights from %s (%s)", url, model)
    try:
        async with client.stream("POST", url, json=payload) as resp:
            if not resp.is_success:
                raise AnalysisFailed(f"HTTP error! status: {resp.status_code}")
            async for line in resp.aiter_lines():
                if not line.strip():
                    continue
                fragment = parse_fragment(line)
                if fragment:
                    yield fragment
    except httpx.HTTPError as exc:
        raise AnalysisFailed(f"Insight stream failed: {exc}") from exc
    finally:
        if owns_client:
            await client.aclose()


@dataclass
class InsightBuffer:
    text: str = ""
    fragments: int = 0

    def append(self, fragment: str) -> None:
        self.text += fragment
        self.fragments += 1


async def collect_insights(
    fragments: AsyncIterator[str],
    on_update: Callable[[str], None] | None = None,
) -> InsightBuffer:
    """Fold *fragments* into a buffer, reporting the growing text after each one.

    On failure the AnalysisFailed re-raised here carries the text accumulated
    so far in ``partial``.
    """
    buffer = InsightBuffer()
    try:
        async for fragment in fragments:
            buffer.append(fragment)
            if on_update is not None:
                on_update(buffer.text)
    except AnalysisFailed as exc:
        log.warning("Insight stream stopped after %d fragments: %s", buffer.fragments, exc.reason)
        raise AnalysisFailed(exc.reason, partial=buffer.text) from exc
    log.info("Insight stream complete — %d fragments, %d chars", buffer.fragments, len(buffer.text))
    return buffer
