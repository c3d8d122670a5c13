"""
Application review workflow.

Candidate side: extract → submit (one application per job).
Recruiter side: open (fetch → structure) → analyze / stream insights →
select or reject. "Review all" fans hosted reviews out over a thread pool and
reports each application's outcome separately.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable

from talentdesk import insights
from talentdesk.errors import (
    AnalysisFailed,
    DuplicateApplication,
    InvalidTransition,
    PersistenceFailed,
)
from talentdesk.extractor import extract_text
from talentdesk.log import get_logger
from talentdesk.models import (
    JOB_OPEN,
    PENDING,
    REJECTED,
    REVIEWING,
    SELECTED,
    TERMINAL_STATUSES,
    AIReview,
    Application,
    Job,
    ReviewOutcome,
    Session,
    StructuredResume,
)
from talentdesk.repository import Repository
from talentdesk.reviewer import review_application
from talentdesk.structurer import structure_resume

log = get_logger(__name__)

_TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({REVIEWING, SELECTED, REJECTED}),
    REVIEWING: frozenset({REVIEWING, SELECTED, REJECTED}),
    SELECTED: frozenset(),
    REJECTED: frozenset(),
}

_ACTIONS: dict[str, str] = {"select": SELECTED, "reject": REJECTED}


def transition(current: str, target: str) -> str:
    """Validate a status change and return the new status."""
    if target not in _TRANSITIONS.get(current, frozenset()):
        raise InvalidTransition(f"Cannot move application from {current!r} to {target!r}")
    return target


def available_actions(application: Application) -> list[str]:
    """Recruiter decisions still open for *application* (none once decided)."""
    if application.status in TERMINAL_STATUSES:
        return []
    return list(_ACTIONS)


@dataclass
class ApplicationView:
    """Everything the insights screen shows for one application."""

    application: Application
    job: Job
    structured: StructuredResume | None = None
    insights: str = ""
    insight_error: str | None = None

    @property
    def parsed(self) -> bool:
        return self.structured is not None

    @property
    def analyzed(self) -> bool:
        return bool(self.insights) or self.application.ai_review is not None


Reviewer = Callable[[Job, Application], AIReview]


class ReviewService:
    def __init__(
        self,
        repository: Repository,
        session: Session,
        *,
        settings: dict[str, Any] | None = None,
        reviewer: Reviewer | None = None,
    ) -> None:
        self.repository = repository
        self.session = session
        self.settings = settings or {}
        review_cfg = self.settings.get("review", {})
        self.max_workers = max(1, int(review_cfg.get("max_workers", 4)))
        self.persist_parsed = bool(review_cfg.get("persist_parsed", False))
        self.reviewer: Reviewer = reviewer or (
            lambda job, app: review_application(job, app, settings=self.settings)
        )

    # ── Candidate side ───────────────────────────────────────────────────

    def submit_application(
        self,
        job_id: str,
        resume_text: str,
        *,
        cover_letter: str | None = None,
        candidate_name: str = "",
        candidate_email: str = "",
    ) -> Application:
        if not resume_text or not resume_text.strip():
            raise ValueError("Please upload your resume")
        job = self.repository.get_job(self.session, job_id)
        if job.status != JOB_OPEN:
            raise PersistenceFailed(f"Job {job.title!r} is no longer accepting applications")

        candidate_id = self.session.user_id
        if self.repository.find_application(self.session, job_id, candidate_id):
            raise DuplicateApplication("You have already applied for this job")

        application = self.repository.insert_application(
            self.session,
            Application(
                id="",
                job_id=job_id,
                candidate_id=candidate_id,
                resume_text=resume_text,
                cover_letter=cover_letter or None,
                status=PENDING,
                candidate_name=candidate_name,
                candidate_email=candidate_email,
            ),
        )
        log.info("Application %s submitted for %s", application.id, job.title)
        return application

    def submit_upload(
        self,
        job_id: str,
        data: bytes,
        media_type: str,
        filename: str = "",
        **kwargs: Any,
    ) -> Application:
        resume_text = extract_text(data, media_type, filename)
        return self.submit_application(job_id, resume_text, **kwargs)

    def my_applications(self) -> list[tuple[Application, Job | None]]:
        """The signed-in candidate's applications with their jobs (None if the job is gone)."""
        applications = self.repository.list_candidate_applications(self.session)
        jobs = {job.id: job for job in self.repository.list_jobs(self.session)}
        return [(app, jobs.get(app.job_id)) for app in applications]

    # ── Recruiter side ───────────────────────────────────────────────────

    def open_application(self, application_id: str) -> ApplicationView:
        application = self.repository.get_application(self.session, application_id)
        job = self.repository.get_job(self.session, application.job_id)
        view = ApplicationView(application=application, job=job)
        if application.resume_text:
            view.structured = structure_resume(application.resume_text)
            if self.persist_parsed:
                self.repository.save_parsed_resume(
                    self.session, application.id, view.structured, application.score
                )
        return view

    async def stream_insights(
        self,
        view: ApplicationView,
        on_update: Callable[[str], None] | None = None,
        **stream_kwargs: Any,
    ) -> ApplicationView:
        """Stream the local-model insight into *view*, keeping partial text on failure."""
        cfg = self.settings.get("insights", {})
        options = {
            "base_url": cfg.get("base_url", "http://localhost:11434"),
            "model": cfg.get("model", "llama3.2:latest"),
            "max_chars": cfg.get("max_resume_chars", 3000),
            "timeout": cfg.get("timeout", 120),
        }
        options.update(stream_kwargs)

        def _update(text: str) -> None:
            view.insights = text
            if on_update is not None:
                on_update(text)

        view.insight_error = None
        fragments = insights.stream_insights(view.application.resume_text, job=view.job, **options)
        try:
            buffer = await insights.collect_insights(fragments, _update)
        except AnalysisFailed as exc:
            view.insights = exc.partial
            view.insight_error = exc.reason
            return view
        view.insights = buffer.text
        return view

    def analyze(self, application_id: str) -> AIReview:
        """Hosted review for one application, persisted onto it."""
        application = self.repository.get_application(self.session, application_id)
        job = self.repository.get_job(self.session, application.job_id)
        return self._analyze(job, application)

    def _analyze(self, job: Job, application: Application) -> AIReview:
        review = self.reviewer(job, application)
        fields: dict[str, Any] = {"ai_review": review, "match_score": review.match_score}
        # A decision may have landed while the hosted call was running.
        current = self.repository.get_application(self.session, application.id).status
        if current not in TERMINAL_STATUSES:
            fields["status"] = transition(current, REVIEWING)
        self.repository.update_application(self.session, application.id, **fields)
        return review

    def _review_one(self, job: Job, application: Application) -> ReviewOutcome:
        try:
            review = self._analyze(job, application)
            log.info("[%s] reviewed — score=%.0f", application.id, review.match_score)
            return ReviewOutcome(application_id=application.id, review=review)
        except Exception as exc:
            log.error("[%s] review FAILED: %s", application.id, exc)
            return ReviewOutcome(application_id=application.id, error=str(exc))

    def review_all(self, job_id: str) -> list[ReviewOutcome]:
        """Review every application for *job_id* concurrently.

        Outcomes are returned in the job's application order regardless of
        completion order; a failed review never blocks the others.
        """
        job = self.repository.get_job(self.session, job_id)
        applications = self.repository.list_applications(self.session, job_id)
        if not applications:
            log.info("No applications to review for %s", job.title)
            return []

        log.info("Reviewing %d application(s) for %s in parallel...", len(applications), job.title)
        outcomes: dict[str, ReviewOutcome] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(applications))) as pool:
            futures = {pool.submit(self._review_one, job, app): app.id for app in applications}
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()

        failed = sum(1 for o in outcomes.values() if not o.ok)
        log.info("Review complete — %d reviewed, %d failed", len(outcomes) - failed, failed)
        return [outcomes[app.id] for app in applications]

    def decide(self, application_id: str, decision: str) -> Application:
        """Apply a recruiter decision ("select"/"reject" or the status itself)."""
        target = _ACTIONS.get(decision, decision)
        if target not in TERMINAL_STATUSES:
            raise InvalidTransition(f"{decision!r} is not a recruiter decision")
        application = self.repository.get_application(self.session, application_id)
        application.status = transition(application.status, target)
        self.repository.update_application(self.session, application_id, status=application.status)
        log.info("Candidate %s %s", application.candidate_name or application.id, target)
        return application
