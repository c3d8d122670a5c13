import os

# Keep test runs from writing log files into the repo.
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest

from talentdesk.models import Session
from talentdesk.repository import InMemoryRepository

RESUME_ASHA = """Asha Rao
asha.rao@example.com | +1 415 555 0134
Summary: Backend engineer who likes reliable systems.
Skills: Python, PostgreSQL, Docker, Redis
Experience:
2021 - present Senior Engineer at Loop Payments
2018 - 2021 Engineer at Northwind Traders
Education:
2014 - 2018 B.Sc. Computer Science, State University
"""


@pytest.fixture
def session():
    return Session(access_token="token-123", user_id="recruiter-1")


@pytest.fixture
def repo():
    return InMemoryRepository(
        {
            "jobs": [
                {
                    "id": "job-1",
                    "title": "Backend Engineer",
                    "description": "Build services.",
                    "requirements": "Python\nDocker\nKubernetes",
                    "status": "open",
                },
                {
                    "id": "job-closed",
                    "title": "Old Role",
                    "description": "Filled.",
                    "requirements": "",
                    "status": "closed",
                },
            ],
            "applications": [
                {
                    "id": "app-1",
                    "job_id": "job-1",
                    "candidate_id": "cand-1",
                    "candidate_name": "Asha Rao",
                    "resume_text": RESUME_ASHA,
                    "status": "pending",
                },
                {
                    "id": "app-2",
                    "job_id": "job-1",
                    "candidate_id": "cand-2",
                    "candidate_name": "Ben Ortiz",
                    "resume_text": "Skills: Go, Linux",
                    "status": "pending",
                },
                {
                    "id": "app-3",
                    "job_id": "job-1",
                    "candidate_id": "cand-3",
                    "candidate_name": "Chen Wu",
                    "resume_text": "Skills: Python, Kubernetes",
                    "status": "reviewing",
                },
            ],
        }
    )
