"""Row access to the hosted backend tables (jobs, applications, profiles, parsed_resumes).

Every operation takes an explicit Session; nothing here keeps an implicit
logged-in client. ``RestRepository`` talks to a PostgREST-style HTTP API,
``InMemoryRepository`` keeps rows in process (tests, demo mode).
"""
from __future__ import annotations

import copy
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import requests
import yaml

from talentdesk.errors import DuplicateApplication, PersistenceFailed, RecordNotFound
from talentdesk.log import get_logger
from talentdesk.models import AIReview, Application, Job, Session, StructuredResume
from talentdesk.retry import retry

log = get_logger(__name__)

JOBS = "jobs"
APPLICATIONS = "applications"
PROFILES = "profiles"
PARSED_RESUMES = "parsed_resumes"
TABLES: tuple[str, ...] = (JOBS, APPLICATIONS, PROFILES, PARSED_RESUMES)


def job_from_row(row: dict[str, Any]) -> Job:
    return Job(
        id=str(row["id"]),
        title=row.get("title", ""),
        description=row.get("description", ""),
        requirements=row.get("requirements") or "",
        status=row.get("status", "open"),
        created_at=row.get("created_at"),
    )


def application_from_row(row: dict[str, Any]) -> Application:
    # Older rows used resume/coverletter column names.
    review = row.get("ai_review")
    score = row.get("match_score")
    return Application(
        id=str(row["id"]),
        job_id=str(row["job_id"]),
        candidate_id=str(row.get("candidate_id", "")),
        resume_text=row.get("resume_text") or row.get("resume") or "",
        cover_letter=row.get("cover_letter") or row.get("coverletter"),
        status=row.get("status", "pending"),
        match_score=float(score) if score is not None else None,
        ai_review=AIReview.from_dict(review) if isinstance(review, dict) else None,
        candidate_name=row.get("candidate_name") or "",
        candidate_email=row.get("candidate_email") or "",
    )


def application_to_row(application: Application) -> dict[str, Any]:
    row: dict[str, Any] = {
        "job_id": application.job_id,
        "candidate_id": application.candidate_id,
        "resume_text": application.resume_text,
        "cover_letter": application.cover_letter,
        "status": application.status,
        "candidate_name": application.candidate_name,
        "candidate_email": application.candidate_email,
    }
    if application.id:
        row["id"] = application.id
    if application.match_score is not None:
        row["match_score"] = application.match_score
    if application.ai_review is not None:
        row["ai_review"] = application.ai_review.to_dict()
    return row


class Repository(ABC):
    """Typed operations on top of select-by-filter / insert / update-by-id."""

    @abstractmethod
    def select(self, session: Session, table: str, **filters: Any) -> list[dict[str, Any]]:
        pass

    @abstractmethod
    def insert(self, session: Session, table: str, row: dict[str, Any]) -> dict[str, Any]:
        pass

    @abstractmethod
    def update(self, session: Session, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        pass

    def _one(self, session: Session, table: str, **filters: Any) -> dict[str, Any]:
        rows = self.select(session, table, **filters)
        if not rows:
            raise RecordNotFound(f"No {table} row matching {filters}")
        return rows[0]

    def get_job(self, session: Session, job_id: str) -> Job:
        return job_from_row(self._one(session, JOBS, id=job_id))

    def list_jobs(self, session: Session, status: str | None = None) -> list[Job]:
        filters = {"status": status} if status else {}
        rows = self.select(session, JOBS, **filters)
        rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return [job_from_row(r) for r in rows]

    def get_application(self, session: Session, application_id: str) -> Application:
        return application_from_row(self._one(session, APPLICATIONS, id=application_id))

    def list_applications(self, session: Session, job_id: str) -> list[Application]:
        return [application_from_row(r) for r in self.select(session, APPLICATIONS, job_id=job_id)]

    def list_candidate_applications(self, session: Session) -> list[Application]:
        """Applications submitted by the session's user, newest first."""
        rows = self.select(session, APPLICATIONS, candidate_id=session.user_id)
        rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return [application_from_row(r) for r in rows]

    def find_application(self, session: Session, job_id: str, candidate_id: str) -> Application | None:
        rows = self.select(session, APPLICATIONS, job_id=job_id, candidate_id=candidate_id)
        return application_from_row(rows[0]) if rows else None

    def insert_application(self, session: Session, application: Application) -> Application:
        row = self.insert(session, APPLICATIONS, application_to_row(application))
        return application_from_row(row)

    def update_application(self, session: Session, application_id: str, **fields: Any) -> None:
        if isinstance(fields.get("ai_review"), AIReview):
            fields["ai_review"] = fields["ai_review"].to_dict()
        self.update(session, APPLICATIONS, application_id, fields)

    def get_profile(self, session: Session, user_id: str) -> dict[str, Any] | None:
        rows = self.select(session, PROFILES, id=user_id)
        return rows[0] if rows else None

    def save_parsed_resume(
        self,
        session: Session,
        application_id: str,
        parsed: StructuredResume,
        match_score: float | None = None,
    ) -> None:
        row = {"application_id": application_id, "parsed_data": parsed.to_dict()}
        if match_score is not None:
            row["match_score"] = match_score
        existing = self.select(session, PARSED_RESUMES, application_id=application_id)
        if existing:
            self.update(session, PARSED_RESUMES, str(existing[0]["id"]), row)
        else:
            self.insert(session, PARSED_RESUMES, row)


# ── HTTP backend ─────────────────────────────────────────────────────────


def _is_client_error(exc: BaseException) -> bool:
    response = getattr(exc, "response", None)
    return response is not None and 400 <= response.status_code < 500


def _raise_persistence(exc: requests.RequestException, table: str) -> None:
    response = getattr(exc, "response", None)
    detail = ""
    if response is not None:
        try:
            body = response.json()
            detail = body.get("message", "") if isinstance(body, dict) else ""
        except ValueError:
            detail = response.text[:200]
        if response.status_code == 409 and table == APPLICATIONS:
            if "foreign key" in detail:
                raise PersistenceFailed(
                    "Unable to submit application. Please ensure you are logged in as a candidate."
                ) from exc
            raise DuplicateApplication("You have already applied for this job") from exc
        if response.status_code in (401, 403):
            raise PersistenceFailed(f"Not authorised to access {table}: {detail}") from exc
    raise PersistenceFailed(f"Backend request on {table} failed: {detail or exc}") from exc


class RestRepository(Repository):
    def __init__(self, base_url: str, anon_key: str, timeout: float = 15) -> None:
        if not base_url:
            raise ValueError("Backend URL is required")
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout

    def _headers(self, session: Session, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {session.access_token}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @retry(max_attempts=3, base_delay=1.0, retryable=(requests.RequestException,), giveup=_is_client_error)
    def _request(
        self,
        method: str,
        table: str,
        session: Session,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        prefer = "return=representation" if method in ("POST", "PATCH") else None
        r = requests.request(
            method,
            f"{self.base_url}/rest/v1/{table}",
            headers=self._headers(session, prefer),
            params=params,
            json=body,
            timeout=self.timeout,
        )
        r.raise_for_status()
        return r.json() if r.content else None

    def _call(self, method: str, table: str, session: Session, **kwargs: Any) -> Any:
        try:
            return self._request(method, table, session, **kwargs)
        except requests.RequestException as exc:
            _raise_persistence(exc, table)

    def select(self, session: Session, table: str, **filters: Any) -> list[dict[str, Any]]:
        params = {"select": "*"}
        params.update({k: f"eq.{v}" for k, v in filters.items()})
        return self._call("GET", table, session, params=params) or []

    def insert(self, session: Session, table: str, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._call("POST", table, session, body=row) or []
        log.debug("Inserted into %s", table)
        return rows[0] if rows else row

    def update(self, session: Session, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        rows = self._call("PATCH", table, session, params={"id": f"eq.{row_id}"}, body=fields) or []
        if not rows:
            raise RecordNotFound(f"No {table} row with id {row_id}")
        log.debug("Updated %s %s → %s", table, row_id, sorted(fields))
        return rows[0]


# ── In-process backend ───────────────────────────────────────────────────


class InMemoryRepository(Repository):
    """Thread-safe row store; ignores session tokens."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self._lock = threading.Lock()
        self._tables: dict[str, list[dict[str, Any]]] = {t: [] for t in TABLES}
        for table, rows in (tables or {}).items():
            for row in rows:
                self._store(table, dict(row))

    @classmethod
    def from_yaml(cls, path: Path) -> "InMemoryRepository":
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        repo = cls(data)
        log.info("Loaded demo data from %s", path.name)
        return repo

    def _store(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        row.setdefault("id", uuid.uuid4().hex)
        row["id"] = str(row["id"])
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        self._tables.setdefault(table, []).append(row)
        return row

    def select(self, session: Session, table: str, **filters: Any) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._tables.get(table, [])
            return [
                copy.deepcopy(r)
                for r in rows
                if all(str(r.get(k)) == str(v) for k, v in filters.items())
            ]

    def insert(self, session: Session, table: str, row: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._store(table, copy.deepcopy(row)))

    def update(self, session: Session, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        with self._lock:
            for row in self._tables.get(table, []):
                if row["id"] == str(row_id):
                    row.update(copy.deepcopy(fields))
                    return copy.deepcopy(row)
        raise RecordNotFound(f"No {table} row with id {row_id}")


def get_repository(settings: dict[str, Any], demo_data: Path | None = None) -> Repository:
    """HTTP backend when one is configured, otherwise the demo data in memory."""
    backend = settings.get("backend", {})
    if backend.get("url"):
        log.info("Using backend at %s", backend["url"])
        return RestRepository(backend["url"], backend.get("anon_key", ""), backend.get("timeout", 15))
    if demo_data is not None and demo_data.exists():
        log.info("No backend URL configured — using demo data")
        return InMemoryRepository.from_yaml(demo_data)
    log.info("No backend URL configured — starting with an empty in-memory store")
    return InMemoryRepository()


def get_session(env_getter, default_user: str = "recruiter-1") -> Session:
    return Session(
        access_token=env_getter("BACKEND_ACCESS_TOKEN") or env_getter("BACKEND_ANON_KEY"),
        user_id=env_getter("BACKEND_USER_ID") or default_user,
    )
