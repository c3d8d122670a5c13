"""Markdown review report for one job, plus the HTML snippets the UI renders."""
from __future__ import annotations

import html
from datetime import datetime, timezone
from pathlib import Path

from talentdesk.config import REPORTS_DIR
from talentdesk.log import get_logger
from talentdesk.models import Application, Job, ReviewOutcome

log = get_logger(__name__)

_FAIL_REASONS: dict[str, str] = {
    "connection": "AI endpoint unreachable — check INFERENCE_BASE_URL",
    "timed out": "AI endpoint timed out",
    "401": "AI endpoint rejected the API key — check GROQ_API_KEY",
    "rate limit": "AI endpoint rate limited — retry later",
    "valid json": "Model reply was not valid JSON",
}


def _short_reason(reason: str) -> str:
    low = reason.lower()
    for key, msg in _FAIL_REASONS.items():
        if key in low:
            return msg
    return reason[:80] + ("…" if len(reason) > 80 else "")


def _candidate(app: Application) -> str:
    return app.candidate_name or app.candidate_email or app.candidate_id or app.id


def build_review_report(
    job: Job,
    applications: list[Application],
    outcomes: list[ReviewOutcome] | None = None,
) -> str:
    """Markdown summary of the applications for *job*, best match first."""
    results = {o.application_id: o for o in outcomes or []}
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    lines: list[str] = [f"# Review Report — {job.title} — {date}", ""]

    failed = [o for o in results.values() if not o.ok]
    lines.append(
        f"**{len(applications)}** applications | **{len(results) - len(failed)}** reviewed"
        f" | **{len(failed)}** failed"
    )
    lines.append("")

    ranked = sorted(applications, key=lambda a: -(a.score if a.score is not None else -1))
    if ranked:
        lines.append("| # | Candidate | Score | Status | Recommendation |")
        lines.append("|--:|-----------|------:|--------|----------------|")
        for i, app in enumerate(ranked, 1):
            outcome = results.get(app.id)
            review = outcome.review if outcome and outcome.review else app.ai_review
            score = f"{app.score:.0f}%" if app.score is not None else "—"
            if outcome and not outcome.ok:
                note = f"_Failed: {_short_reason(outcome.error or '')}_"
            else:
                note = review.recommendation[:60] if review else ""
            lines.append(f"| {i} | {_candidate(app)[:30]} | {score} | {app.status} | {note} |")
        lines.append("")

    detailed = [a for a in ranked if (results.get(a.id) and results[a.id].review) or a.ai_review]
    if detailed:
        lines.append("## Details")
        lines.append("")
        for app in detailed:
            outcome = results.get(app.id)
            review = outcome.review if outcome and outcome.review else app.ai_review
            lines.append(f"### {_candidate(app)} — {review.match_score:.0f}%")
            if review.matching_keywords:
                lines.append(f"- **Matching:** {', '.join(review.matching_keywords[:8])}")
            if review.missing_keywords:
                lines.append(f"- **Missing:** {', '.join(review.missing_keywords[:8])}")
            if review.usp:
                lines.append(f"- **Stands out:** {', '.join(review.usp[:4])}")
            if review.analysis:
                lines.append(f"- **Analysis:** {review.analysis}")
            lines.append("")

    log.info("Built review report for %s: %d applications, %d failed", job.title, len(applications), len(failed))
    return "\n".join(lines)


def write_review_report(content: str, job: Job) -> Path:
    REPORTS_DIR.mkdir(parents=True, exist_ok=True)
    date = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in job.id)[:40]
    path = REPORTS_DIR / f"review_{safe}_{date}.md"
    path.write_text(content, encoding="utf-8")
    log.info("Report written → %s", path)
    return path


def skill_chips_html(skills: list[str]) -> str:
    """Inline chips for the insights page; resume text is escaped before it reaches the browser."""
    return "".join(f'<span class="skill-chip">{html.escape(skill)}</span>' for skill in skills)
