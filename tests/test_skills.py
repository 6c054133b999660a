"""Tests for devlica/skills.py."""

from __future__ import annotations

from devlica.skills import (
    NO_COLLABORATION_DATA,
    NO_REVIEW_VOICE_DATA,
    NO_TESTING_DATA,
    render_code_reviewer,
    render_coding_style,
    render_developer_profile,
    write_skills,
)
from tests.conftest import make_persona


class TestRender:
    def test_coding_style_frontmatter_and_sections(self):
        text = render_coding_style(make_persona())
        assert text.startswith("---\nname: alice-coding-style\ndescription: ")
        assert "## Style rules\n\nReturn early.\n" in text
        assert "## Testing\n\nTable-driven tests.\n" in text

    def test_empty_fields_fall_back(self):
        persona = make_persona(
            code_style_rules="",
            testing_philosophy="  ",
            review_voice="",
            collaboration_style="",
            developer_interests="",
        )
        style = render_coding_style(persona)
        assert "raw code style analysis" in style
        assert NO_TESTING_DATA in style

        reviewer = render_code_reviewer(persona)
        assert NO_REVIEW_VOICE_DATA in reviewer
        assert NO_COLLABORATION_DATA in reviewer

        profile = render_developer_profile(persona)
        assert "raw identity analysis" in profile

    def test_reviewer_uses_synthesis(self):
        text = render_code_reviewer(make_persona(review_voice="Asks questions instead of commanding."))
        assert "## Voice\n\nAsks questions instead of commanding.\n" in text
        assert "name: alice-code-reviewer" in text


class TestWriteSkills:
    def test_writes_three_documents(self, tmp_path):
        paths = write_skills(make_persona(), tmp_path / "out")
        assert [p.relative_to(tmp_path / "out").as_posix() for p in paths] == [
            "alice-coding-style/SKILL.md",
            "alice-code-reviewer/SKILL.md",
            "alice-developer-profile/SKILL.md",
        ]
        for path in paths:
            assert path.read_text(encoding="utf-8").startswith("---\nname: alice-")

    def test_overwrites_existing(self, tmp_path):
        write_skills(make_persona(review_voice="old"), tmp_path)
        paths = write_skills(make_persona(review_voice="new"), tmp_path)
        reviewer = paths[1].read_text(encoding="utf-8")
        assert "new" in reviewer
        assert "\nold\n" not in reviewer
