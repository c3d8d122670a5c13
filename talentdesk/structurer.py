"""Heuristic resume structuring.

The resume text is run through an ordered list of independent passes. Each
pass looks for one section heading and captures the text up to the next line
that starts with one of its boundary headings (or the end of the text). Passes
never see each other's output, so a heading that appears inside another
section's body (say "Technical Skills" in an experience bullet) can pull text
into the wrong section. That is a known limitation of the layout guess.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable

from talentdesk.errors import StructureDegraded
from talentdesk.log import get_logger
from talentdesk.models import StructuredResume

log = get_logger(__name__)

# Entries shorter than this (after trimming) are layout noise.
MIN_ENTRY_LEN = 10

_MONTHS = "Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec"
_ENTRY_SPLIT_RE = re.compile(rf"\n\s*(?=\d{{4}}|{_MONTHS})", re.IGNORECASE)
_LIST_SPLIT_RE = re.compile(r"[,|\n•·▪◦●‣]")
_LINE_SPLIT_RE = re.compile(r"[|\n•·▪◦●‣]")

_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+\.[\w.-]+")
_PHONE_RE = re.compile(r"\+?\d[\d \-().]{7,15}\d")
_LINKEDIN_RE = re.compile(r"(?:https?://)?(?:www\.)?linkedin\.com/in/[\w\-%]+/?", re.IGNORECASE)
_GITHUB_RE = re.compile(r"(?:https?://)?(?:www\.)?github\.com/[\w\-]+", re.IGNORECASE)


def _section_re(headings: tuple[str, ...], boundaries: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile(
        rf"(?:{'|'.join(headings)})[:\s]*(.*?)(?=\n\s*(?:{'|'.join(boundaries)})|\s*\Z)",
        re.IGNORECASE | re.DOTALL,
    )


@dataclass(frozen=True)
class SectionMatch:
    text: str
    span: tuple[int, int]


@dataclass(frozen=True)
class SectionPass:
    """One boundary-detection pass: heading alternatives and where the body stops."""

    name: str
    headings: tuple[str, ...]
    boundaries: tuple[str, ...]

    @property
    def pattern(self) -> re.Pattern[str]:
        return _section_re(self.headings, self.boundaries)

    def find(self, text: str) -> SectionMatch | None:
        m = self.pattern.search(text)
        if not m or not m.group(1):
            return None
        return SectionMatch(text=m.group(1), span=m.span())


SUMMARY = SectionPass(
    "summary",
    ("Summary", "Profile", "About", "Objective"),
    ("Skills", "Experience", "Education", "Work", "Employment", "Certifications", "Contact"),
)
SKILLS = SectionPass(
    "skills",
    ("Skills", "Expertise", "Competencies", "Technical Skills"),
    ("Experience", "Education", "Work", "Employment", "Certifications", "Contact"),
)
EXPERIENCE = SectionPass(
    "experience",
    ("Experience", "Work Experience", "Employment"),
    ("Education", "Skills", "Certifications", "Contact"),
)
EDUCATION = SectionPass(
    "education",
    ("Education", "Academic Background", "Qualifications"),
    ("Experience", "Skills", "Certifications", "Contact"),
)
CERTIFICATIONS = SectionPass(
    "certifications",
    ("Certifications", "Certificates", "Licenses"),
    ("Experience", "Education", "Skills", "Contact"),
)


def split_list(body: str, splitter: re.Pattern[str] = _LIST_SPLIT_RE) -> list[str]:
    """Trimmed, non-empty tokens in their original order."""
    return [token.strip() for token in splitter.split(body) if token.strip()]


def split_entries(body: str) -> list[str]:
    """Split at lines starting with a year or month; drop short fragments."""
    entries = (entry.strip() for entry in _ENTRY_SPLIT_RE.split(body))
    return [entry for entry in entries if len(entry) > MIN_ENTRY_LEN]


def extract_contact(text: str) -> dict[str, str]:
    contact: dict[str, str] = {}
    email = _EMAIL_RE.search(text)
    if email:
        contact["email"] = email.group(0)
    for m in _PHONE_RE.finditer(text):
        digits = sum(ch.isdigit() for ch in m.group(0))
        if 9 <= digits <= 15:
            contact["phone"] = m.group(0).strip()
            break
    for key, pattern in (("linkedin", _LINKEDIN_RE), ("github", _GITHUB_RE)):
        m = pattern.search(text)
        if m:
            contact[key] = m.group(0)
    return contact


# (pass, how the captured body becomes the section value)
_PIPELINE: tuple[tuple[SectionPass, Callable[[str], object]], ...] = (
    (SUMMARY, str.strip),
    (SKILLS, split_list),
    (EXPERIENCE, split_entries),
    (EDUCATION, split_entries),
    (CERTIFICATIONS, lambda body: split_list(body, _LINE_SPLIT_RE)),
)


def locate_sections(text: str) -> dict[str, SectionMatch]:
    """Run every pass over *text*; a pass that fails is logged and skipped."""
    found: dict[str, SectionMatch] = {}
    for section, _ in _PIPELINE:
        try:
            match = section.find(text)
        except Exception as exc:
            log.warning("Section pass %r failed: %s", section.name, exc)
            continue
        if match is not None:
            found[section.name] = match
    return found


def structure_resume(text: str, *, strict: bool = False) -> StructuredResume:
    """Best-effort split of *text* into summary, skills, experience, education.

    Never raises unless *strict*: on an unexpected error the result is an
    all-empty structure carrying the original text in ``raw_text``.
    """
    try:
        normalized = text.replace("\r\n", "\n").replace("\r", "\n")
        sections = locate_sections(normalized)
        result = StructuredResume()
        for section, convert in _PIPELINE:
            match = sections.get(section.name)
            if match is None:
                continue
            try:
                setattr(result, section.name, convert(match.text))
            except Exception as exc:
                log.warning("Could not structure %s section: %s", section.name, exc)
        try:
            result.contact = extract_contact(normalized)
        except Exception as exc:
            log.warning("Could not extract contact details: %s", exc)
        log.debug(
            "Structured resume: skills=%d experience=%d education=%d",
            len(result.skills), len(result.experience), len(result.education),
        )
        return result
    except Exception as exc:
        if strict:
            raise StructureDegraded(f"Resume structuring failed: {exc}") from exc
        log.warning("Resume structuring failed (%s), falling back to raw text", exc)
        return StructuredResume(raw_text=text if isinstance(text, str) else str(text))
