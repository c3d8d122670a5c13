"""Tests for heuristic resume structuring."""
import pytest

from talentdesk import structurer
from talentdesk.errors import StructureDegraded
from talentdesk.structurer import extract_contact, locate_sections, split_entries, structure_resume

SCENARIO = "Skills: Go, Rust, C++\nExperience:\n2020 Engineer at Foo"


class TestSections:
    def test_skills_and_experience_from_plain_upload(self):
        result = structure_resume(SCENARIO)
        assert result.skills == ["Go", "Rust", "C++"]
        assert result.experience == ["2020 Engineer at Foo"]
        assert result.summary == ""
        assert result.education == []
        assert not result.degraded

    def test_text_without_headings_gives_empty_sections(self):
        result = structure_resume("John Smith\nBuilt things in Java for ten years.")
        assert result.summary == ""
        assert result.skills == []
        assert result.experience == []
        assert result.education == []
        assert result.certifications == []
        assert not result.degraded

    def test_summary_stops_at_next_heading(self):
        result = structure_resume("Summary: Backend engineer.\nSkills: Python")
        assert result.summary == "Backend engineer."
        assert result.skills == ["Python"]

    @pytest.mark.parametrize(
        "line, expected",
        [
            ("Skills: Python, SQL", ["Python", "SQL"]),
            ("Skills: Python | SQL | Airflow", ["Python", "SQL", "Airflow"]),
            ("Skills:\n• Python\n• SQL", ["Python", "SQL"]),
            ("Technical Skills: Python,, SQL ,", ["Python", "SQL"]),
        ],
    )
    def test_skill_separators(self, line, expected):
        assert structure_resume(line).skills == expected

    def test_entries_split_on_years_and_months(self):
        text = (
            "Experience:\n"
            "Jan 2020 - Dec 2021 Engineer at Foo\n"
            "Mar 2018 Analyst at Bar Inc\n"
            "Education:\n"
            "2014 - 2018 B.Sc. Computer Science\n"
            "2018 - 2019 M.Sc. Data Science"
        )
        result = structure_resume(text)
        assert result.experience == ["Jan 2020 - Dec 2021 Engineer at Foo", "Mar 2018 Analyst at Bar Inc"]
        assert result.education == ["2014 - 2018 B.Sc. Computer Science", "2018 - 2019 M.Sc. Data Science"]

    def test_short_entries_are_dropped(self):
        """Entries of ten characters or fewer are layout noise."""
        text = "Experience:\n2019 Dev\n2020 Engineer at Foo Corp\nMar 2021 X"
        assert structure_resume(text).experience == ["2020 Engineer at Foo Corp"]

    def test_split_entries_drops_exactly_ten_characters(self):
        assert split_entries("2021 Devs!") == []
        assert split_entries("2021 Devs!!") == ["2021 Devs!!"]

    def test_certifications_split_per_line(self):
        text = "Certifications:\nAWS Solutions Architect | CKA\nSkills: Go"
        result = structure_resume(text)
        assert result.certifications == ["AWS Solutions Architect", "CKA"]
        assert result.skills == ["Go"]

    def test_windows_line_endings(self):
        result = structure_resume("Skills: Go\r\nExperience:\r\n2020 Engineer at Foo")
        assert result.skills == ["Go"]
        assert result.experience == ["2020 Engineer at Foo"]

    def test_heading_inside_body_is_picked_up_by_other_section(self):
        """Passes are independent, so an inline heading leaks into its own section."""
        text = "Experience:\n2020 Engineer, used Technical Skills: Python daily"
        result = structure_resume(text)
        assert result.experience == ["2020 Engineer, used Technical Skills: Python daily"]
        assert result.skills == ["Python daily"]


class TestLocateSections:
    def test_spans_cover_heading_and_body(self):
        found = locate_sections(SCENARIO)
        assert found["skills"].text == "Go, Rust, C++"
        assert found["skills"].span == (0, SCENARIO.index("\nExperience"))
        assert found["experience"].span == (SCENARIO.index("Experience"), len(SCENARIO))
        assert "summary" not in found

    def test_input_is_not_modified(self):
        text = SCENARIO
        locate_sections(text)
        assert text == "Skills: Go, Rust, C++\nExperience:\n2020 Engineer at Foo"


class TestContact:
    def test_contact_details(self):
        text = (
            "Asha Rao\nasha.rao@example.com | +1 415 555 0134\n"
            "linkedin.com/in/asha-rao\ngithub.com/asharao\n"
        )
        assert extract_contact(text) == {
            "email": "asha.rao@example.com",
            "phone": "+1 415 555 0134",
            "linkedin": "linkedin.com/in/asha-rao",
            "github": "github.com/asharao",
        }

    def test_year_ranges_are_not_phone_numbers(self):
        assert "phone" not in extract_contact("2018 - 2021 Engineer at Foo")


class TestDegradation:
    def test_failing_converter_only_empties_its_section(self, monkeypatch):
        def boom(body):
            raise RuntimeError("boom")

        pipeline = tuple(
            (section, boom if section is structurer.SKILLS else convert)
            for section, convert in structurer._PIPELINE
        )
        monkeypatch.setattr(structurer, "_PIPELINE", pipeline)

        result = structure_resume(SCENARIO)
        assert result.skills == []
        assert result.experience == ["2020 Engineer at Foo"]
        assert not result.degraded

    def test_unexpected_failure_falls_back_to_raw_text(self, monkeypatch):
        def broken(text):
            raise RuntimeError("regex engine on fire")

        monkeypatch.setattr(structurer, "locate_sections", broken)
        result = structure_resume(SCENARIO)
        assert result.degraded
        assert result.raw_text == SCENARIO
        assert result.skills == []
        assert result.experience == []

    def test_strict_mode_raises(self, monkeypatch):
        def broken(text):
            raise RuntimeError("regex engine on fire")

        monkeypatch.setattr(structurer, "locate_sections", broken)
        with pytest.raises(StructureDegraded):
            structure_resume(SCENARIO, strict=True)
