#!/usr/bin/env python3
"""Review every application for a job and write a Markdown report.

Usage: python run_review.py <job_id> [--no-report]
"""
from __future__ import annotations

import sys

from talentdesk.config import DEMO_DATA_PATH, get_env, load_settings
from talentdesk.errors import TalentDeskError
from talentdesk.log import get_logger, log_file
from talentdesk.report import build_review_report, write_review_report
from talentdesk.repository import get_repository, get_session
from talentdesk.review import ReviewService

log = get_logger(__name__)


def main(argv: list[str]) -> int:
    args = [a for a in argv if not a.startswith("--")]
    if not args:
        print(__doc__)
        return 2
    job_id = args[0]

    settings = load_settings()
    repository = get_repository(settings, DEMO_DATA_PATH)
    service = ReviewService(repository, get_session(get_env), settings=settings)

    try:
        job = repository.get_job(service.session, job_id)
        outcomes = service.review_all(job_id)
        applications = repository.list_applications(service.session, job_id)
    except TalentDeskError as exc:
        log.error("Review failed: %s", exc)
        return 1

    failed = [o for o in outcomes if not o.ok]
    log.info("Review complete.")
    log.info("  Applications: %d", len(outcomes))
    log.info("  Reviewed: %d", len(outcomes) - len(failed))
    for outcome in failed:
        log.warning("  Failed: %s (%s)", outcome.application_id, outcome.error)

    if "--no-report" not in argv:
        path = write_review_report(build_review_report(job, applications, outcomes), job)
        log.info("  Report: %s", path)
    if log_file():
        log.info("  Log: %s", log_file())
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
