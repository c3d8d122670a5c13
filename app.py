"""Streamlit UI for TalentDesk: apply, review applications, read insights."""
from __future__ import annotations

import asyncio

import streamlit as st

from talentdesk.config import DEMO_DATA_PATH, get_env, load_settings
from talentdesk.errors import DuplicateApplication, TalentDeskError
from talentdesk.log import get_logger
from talentdesk.models import JOB_OPEN, Application, ReviewOutcome
from talentdesk.report import skill_chips_html
from talentdesk.repository import Repository, get_repository, get_session
from talentdesk.review import ApplicationView, ReviewService, available_actions

log = get_logger(__name__)

# ── Constants ────────────────────────────────────────────────────────────

UPLOAD_TYPES: list[str] = ["txt", "doc", "docx", "pdf"]

_STATUS_BADGES: dict[str, str] = {
    "pending": "⏳ pending",
    "reviewing": "🔎 reviewing",
    "selected": "✅ selected",
    "rejected": "❌ rejected",
}

_CSS = """
<style>
[data-testid="stMetric"] {
    background: rgba(255,255,255,0.6);
    padding: 0.75rem 1rem;
    border-radius: 12px;
    border: 1px solid rgba(0,0,0,0.06);
}
.skill-chip {
    display: inline-block; margin: 0 0.35rem 0.35rem 0;
    padding: 0.15rem 0.55rem; border-radius: 6px;
    background: #f1f3f5; font-size: 0.8rem; color: #333;
}
</style>
"""

# ── Helpers ──────────────────────────────────────────────────────────────


@st.cache_resource
def _settings() -> dict:
    return load_settings()


@st.cache_resource
def _repository() -> Repository:
    return get_repository(_settings(), DEMO_DATA_PATH)


def _service(user_id: str | None = None) -> ReviewService:
    session = get_session(get_env)
    if user_id:
        session.user_id = user_id
    return ReviewService(_repository(), session, settings=_settings())


def _badge(status: str) -> str:
    return _STATUS_BADGES.get(status, status)


def _score(app: Application) -> str:
    return f"{app.score:.0f}%" if app.score is not None else "—"


def _pick_job(service: ReviewService, *, open_only: bool = False, key: str = "job"):
    jobs = service.repository.list_jobs(service.session, JOB_OPEN if open_only else None)
    if not jobs:
        st.info("No jobs posted yet.")
        return None
    return st.selectbox("Job", jobs, format_func=lambda j: j.title, key=key)


# ── Page: Apply ──────────────────────────────────────────────────────────


def _render_my_applications(service: ReviewService) -> None:
    try:
        mine = service.my_applications()
    except TalentDeskError as exc:
        st.error(f"Could not load your applications: {exc}")
        return
    with st.expander(f"My Applications ({len(mine)})", expanded=bool(mine)):
        if not mine:
            st.caption("You haven't applied to any jobs yet.")
            return
        for app, job in mine:
            title = job.title if job else f"Job {app.job_id}"
            st.markdown(f"**{title}** · {_badge(app.status)}")


def page_apply() -> None:
    st.header("Apply for a Job")

    candidate_id = st.text_input("Candidate ID", value=get_env("BACKEND_USER_ID") or "cand-demo")
    service = _service(candidate_id)
    _render_my_applications(service)
    job = _pick_job(service, open_only=True, key="apply_job")
    if job is None:
        return

    with st.expander("Job details", expanded=False):
        st.markdown(job.description)
        if job.requirements:
            st.markdown("**Requirements**")
            st.text(job.requirements)

    with st.form("apply"):
        name = st.text_input("Full name")
        email = st.text_input("Email")
        uploaded = st.file_uploader("Resume", type=UPLOAD_TYPES)
        cover = st.text_area("Cover letter (optional)", height=150)
        submitted = st.form_submit_button("Submit Application", type="primary")

    if not submitted:
        return
    if uploaded is None:
        st.error("Please upload your resume")
        return
    try:
        app = service.submit_upload(
            job.id,
            uploaded.getvalue(),
            uploaded.type or "",
            uploaded.name,
            cover_letter=cover,
            candidate_name=name,
            candidate_email=email,
        )
    except DuplicateApplication as exc:
        st.warning(str(exc))
        return
    except (TalentDeskError, ValueError) as exc:
        st.error(f"Error processing resume: {exc}")
        return
    st.success(f"Application submitted successfully! Reference: `{app.id}`")


# ── Page: Applications ───────────────────────────────────────────────────


def _render_outcomes(outcomes: list[ReviewOutcome]) -> None:
    for o in outcomes:
        if o.ok:
            st.toast(f"Analysis complete for {o.application_id}")
        else:
            st.error(f"Failed to analyze {o.application_id}: {o.error}")


def page_applications() -> None:
    st.header("Applications")

    service = _service()
    job = _pick_job(service, key="review_job")
    if job is None:
        return

    applications = service.repository.list_applications(service.session, job.id)
    c1, c2, c3 = st.columns(3)
    c1.metric("Applications", len(applications))
    c2.metric("Analyzed", sum(1 for a in applications if a.score is not None))
    c3.metric("Decided", sum(1 for a in applications if a.is_terminal))

    if st.button(
        "Review All Applications",
        type="primary",
        disabled=not applications,
        use_container_width=True,
    ):
        with st.status("Analyzing all applications…", expanded=True) as sw:
            outcomes = service.review_all(job.id)
            failed = sum(1 for o in outcomes if not o.ok)
            sw.update(
                label=f"Reviewed {len(outcomes) - failed}/{len(outcomes)} applications",
                state="error" if failed else "complete",
            )
        st.session_state["outcomes"] = outcomes
        applications = service.repository.list_applications(service.session, job.id)

    _render_outcomes(st.session_state.pop("outcomes", []))

    if not applications:
        st.info("No applications yet. Check back later for new applications.")
        return

    import pandas as pd

    df = pd.DataFrame(
        [
            {
                "id": a.id,
                "candidate": a.candidate_name or a.candidate_id,
                "email": a.candidate_email,
                "score": a.score,
                "status": _badge(a.status),
            }
            for a in applications
        ]
    )
    st.dataframe(
        df,
        use_container_width=True,
        column_config={
            "score": st.column_config.ProgressColumn("Match Score", min_value=0, max_value=100, format="%.0f%%"),
        },
        hide_index=True,
    )

    st.divider()
    chosen = st.selectbox(
        "Application",
        applications,
        format_func=lambda a: f"{a.candidate_name or a.candidate_id} ({_badge(a.status)}, {_score(a)})",
    )
    c1, c2 = st.columns(2)
    if c1.button("View Analysis", use_container_width=True):
        with st.spinner(f"Analyzing {chosen.candidate_name or chosen.id}'s application…"):
            try:
                review = service.analyze(chosen.id)
            except TalentDeskError as exc:
                st.error(f"Failed to analyze application: {exc}")
                return
        st.subheader(f"Match score: {review.match_score:.0f}%")
        st.markdown(f"**Matching keywords:** {', '.join(review.matching_keywords) or '—'}")
        st.markdown(f"**Missing keywords:** {', '.join(review.missing_keywords) or '—'}")
        st.markdown(f"**Stands out:** {', '.join(review.usp) or '—'}")
        st.markdown(review.analysis)
        st.info(review.recommendation)
    if c2.button("Open Insights", use_container_width=True):
        st.session_state["insights_id"] = chosen.id
        st.switch_page(_INSIGHTS_PAGE)


# ── Page: Insights ───────────────────────────────────────────────────────


def _render_resume(view: ApplicationView) -> None:
    s = view.structured
    st.subheader(f"Resume — {view.application.candidate_name or view.application.candidate_id}")
    if s is None:
        st.caption("No resume available")
        return
    if s.summary:
        st.markdown("**Summary**")
        st.write(s.summary)
    if s.skills:
        st.markdown("**Skills**")
        st.markdown(
            skill_chips_html(s.skills),
            unsafe_allow_html=True,
        )
    for title, entries in (
        ("Experience", s.experience),
        ("Education", s.education),
        ("Certifications", s.certifications),
    ):
        if entries:
            st.markdown(f"**{title}**")
            for entry in entries:
                st.text(entry)
    if s.contact:
        st.markdown("**Contact**")
        st.write(s.contact)
    if s.raw_text:
        st.markdown("**Resume**")
        st.text(s.raw_text)
    if view.application.cover_letter:
        st.markdown("**Cover Letter**")
        st.text(view.application.cover_letter)


def _render_decision(service: ReviewService, view: ApplicationView) -> None:
    actions = available_actions(view.application)
    if not actions:
        st.info(f"Decision recorded: {_badge(view.application.status)}")
        return
    cols = st.columns(len(actions))
    for col, action in zip(cols, actions):
        label = "Accept Candidate" if action == "select" else "Reject Candidate"
        if col.button(label, key=f"decide_{action}", use_container_width=True):
            try:
                app = service.decide(view.application.id, action)
            except TalentDeskError as exc:
                st.error(str(exc))
                return
            st.success(f"Candidate {app.status}!")
            st.session_state.pop("insights_view", None)
            st.rerun()


def page_insights() -> None:
    st.header("Candidate Insights")

    service = _service()
    app_id = st.text_input("Application ID", value=st.session_state.get("insights_id", ""))
    if not app_id:
        st.info("Pick an application on the **Applications** page.")
        return

    cached: ApplicationView | None = st.session_state.get("insights_view")
    if cached is None or cached.application.id != app_id:
        try:
            cached = service.open_application(app_id)
        except TalentDeskError as exc:
            st.error(f"Application not found: {exc}")
            return
        st.session_state["insights_view"] = cached
    view = cached

    left, right = st.columns(2)
    with left:
        _render_resume(view)
    with right:
        st.subheader("AI-Powered Resume Analysis")
        placeholder = st.empty()
        if view.insights:
            placeholder.markdown(view.insights)
        else:
            placeholder.caption("No analysis available")
        if st.button("Generate Insights", type="primary", use_container_width=True):
            placeholder.caption("Generating insights…")
            asyncio.run(service.stream_insights(view, on_update=placeholder.markdown))
        if view.insight_error:
            st.error(f"Analysis failed: {view.insight_error}")

    if view.analyzed:
        st.divider()
        _render_decision(service, view)


# ── Main ─────────────────────────────────────────────────────────────────


def _inject_css() -> None:
    st.markdown(_CSS, unsafe_allow_html=True)


def _sidebar_status() -> None:
    with st.sidebar:
        st.divider()
        settings = _settings()
        st.markdown("**Status**")
        st.markdown(("✅" if get_env("GROQ_API_KEY") else "⬜") + "  Groq API key")
        st.markdown(("✅" if settings["backend"]["url"] else "⬜") + "  Backend configured")
        st.caption(f"Insights model: `{settings['insights']['model']}`")


def _wrap_apply():
    _inject_css()
    _sidebar_status()
    page_apply()


def _wrap_applications():
    _inject_css()
    _sidebar_status()
    page_applications()


def _wrap_insights():
    _inject_css()
    _sidebar_status()
    page_insights()


_INSIGHTS_PAGE = st.Page(_wrap_insights, title="Insights", icon="🧠", url_path="insights")

pages = [
    st.Page(_wrap_applications, title="Applications", icon="📋", url_path="applications", default=True),
    _INSIGHTS_PAGE,
    st.Page(_wrap_apply, title="Apply", icon="📝", url_path="apply"),
]

nav = st.navigation(pages)
nav.run()
