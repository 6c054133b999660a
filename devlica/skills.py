"""Render a Persona into agent skill documents.

Three skills are written, each as <output>/<name>/SKILL.md:

- <user>-coding-style: write code the way the developer does
- <user>-code-reviewer: review code the way the developer does
- <user>-developer-profile: background on interests and collaboration
"""

from __future__ import annotations

import logging
from pathlib import Path

from devlica.synthesis.persona import Persona

logger = logging.getLogger(__name__)

NO_TESTING_DATA = "No specific testing data was identified."
NO_PROJECT_DATA = "No specific project pattern data was identified."
NO_REVIEW_VOICE_DATA = "No specific review voice data was identified."
NO_COLLABORATION_DATA = "No specific collaboration data was identified."

_CODING_STYLE_TEMPLATE = """\
---
name: {username}-coding-style
description: Write code in the style of GitHub user {username}. Use when writing or refactoring code that should match {username}'s conventions.
---

# Coding like {username}

## Philosophy

{philosophy}

## Style rules

{code_style}

## Testing

{testing}

## Project patterns

{project_patterns}

## Distinctive traits

{traits}
"""

_CODE_REVIEWER_TEMPLATE = """\
---
name: {username}-code-reviewer
description: Review code the way GitHub user {username} does. Use when reviewing a diff or pull request in {username}'s voice.
---

# Reviewing like {username}

## Priorities

{review_priorities}

## Voice

{review_voice}

## Communication

{communication}

## Collaboration

{collaboration}
"""

_DEVELOPER_PROFILE_TEMPLATE = """\
---
name: {username}-developer-profile
description: Background on GitHub user {username}'s interests, projects and collaboration habits.
---

# {username}

## Interests

{interests}

## Project patterns

{project_patterns}

## Collaboration

{collaboration}

## Distinctive traits

{traits}
"""


def _or(value: str, fallback: str) -> str:
    return value if value.strip() else fallback


def render_coding_style(persona: Persona) -> str:
    s = persona.synthesis
    return _CODING_STYLE_TEMPLATE.format(
        username=persona.username,
        philosophy=_or(s.coding_philosophy, "See style rules below."),
        code_style=_or(s.code_style_rules, persona.code_style),
        testing=_or(s.testing_philosophy, NO_TESTING_DATA),
        project_patterns=_or(s.project_patterns, NO_PROJECT_DATA),
        traits=_or(s.distinctive_traits, "See style rules above."),
    )


def render_code_reviewer(persona: Persona) -> str:
    s = persona.synthesis
    return _CODE_REVIEWER_TEMPLATE.format(
        username=persona.username,
        review_priorities=_or(s.review_priorities, persona.review_style),
        review_voice=_or(s.review_voice, NO_REVIEW_VOICE_DATA),
        communication=_or(s.communication_patterns, persona.communication),
        collaboration=_or(s.collaboration_style, NO_COLLABORATION_DATA),
    )


def render_developer_profile(persona: Persona) -> str:
    s = persona.synthesis
    return _DEVELOPER_PROFILE_TEMPLATE.format(
        username=persona.username,
        interests=_or(s.developer_interests, persona.developer_identity),
        project_patterns=_or(s.project_patterns, NO_PROJECT_DATA),
        collaboration=_or(s.collaboration_style, NO_COLLABORATION_DATA),
        traits=_or(s.distinctive_traits, "See interests above."),
    )


def write_skills(persona: Persona, output_dir: str | Path) -> list[Path]:
    """Write the three skill documents and return their paths."""
    rendered = [
        (f"{persona.username}-coding-style", render_coding_style(persona)),
        (f"{persona.username}-code-reviewer", render_code_reviewer(persona)),
        (f"{persona.username}-developer-profile", render_developer_profile(persona)),
    ]
    paths = []
    for name, content in rendered:
        skill_dir = Path(output_dir) / name
        skill_dir.mkdir(parents=True, exist_ok=True)
        path = skill_dir / "SKILL.md"
        path.write_text(content, encoding="utf-8")
        logger.info("wrote skill %s", path)
        paths.append(path)
    return paths
