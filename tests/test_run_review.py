"""Tests for the batch review CLI."""
import pytest

import run_review
from talentdesk import report


@pytest.fixture
def offline(monkeypatch, tmp_path):
    for key in ("GROQ_API_KEY", "BACKEND_URL"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(report, "REPORTS_DIR", tmp_path)
    return tmp_path


def test_reviews_demo_job_and_writes_report(offline):
    assert run_review.main(["job-backend"]) == 0
    (written,) = offline.glob("review_job-backend_*.md")
    assert "Review Report" in written.read_text(encoding="utf-8")


def test_no_report_flag(offline):
    assert run_review.main(["job-backend", "--no-report"]) == 0
    assert list(offline.iterdir()) == []


def test_unknown_job(offline):
    assert run_review.main(["no-such-job", "--no-report"]) == 1


def test_usage_without_arguments(capsys):
    assert run_review.main([]) == 2
    assert "Usage" in capsys.readouterr().out
