"""Error taxonomy for resume ingestion, analysis and persistence."""
from __future__ import annotations


class TalentDeskError(Exception):
    """Base class; every failure here is recoverable by retrying the action."""


class ExtractionFailed(TalentDeskError):
    """No text could be recovered from an uploaded resume."""


class StructureDegraded(TalentDeskError):
    """Heuristic structuring fell back to raw text."""


class AnalysisFailed(TalentDeskError):
    """AI endpoint unreachable, returned an error status or an unusable reply.

    *partial* holds whatever streamed output was accumulated before the
    failure so callers can keep showing it.
    """

    def __init__(self, reason: str, partial: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.partial = partial


class PersistenceFailed(TalentDeskError):
    """Backend rejected a read or write."""


class DuplicateApplication(PersistenceFailed):
    """Candidate already applied to this job."""


class RecordNotFound(PersistenceFailed):
    """Requested row does not exist (or is not visible to the session)."""


class InvalidTransition(TalentDeskError):
    """Application status change not allowed from its current status."""
