"""Persona schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

SYNTHESIS_FIELDS = (
    "coding_philosophy",
    "code_style_rules",
    "review_priorities",
    "review_voice",
    "communication_patterns",
    "testing_philosophy",
    "distinctive_traits",
    "developer_interests",
    "project_patterns",
    "collaboration_style",
)


class SynthesisResult(BaseModel):
    """The ten structured persona fields produced by synthesis or refinement.

    Models sometimes answer with a list of bullet strings instead of one
    string; those are joined with newlines.
    """

    model_config = {"frozen": True, "extra": "ignore"}

    coding_philosophy: str = ""
    code_style_rules: str = ""
    review_priorities: str = ""
    review_voice: str = ""
    communication_patterns: str = ""
    testing_philosophy: str = ""
    distinctive_traits: str = ""
    developer_interests: str = ""
    project_patterns: str = ""
    collaboration_style: str = ""

    @field_validator(*SYNTHESIS_FIELDS, mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, list):
            return "\n".join(str(item) for item in value)
        if isinstance(value, (int, float, bool)):
            return str(value)
        return value


class Persona(BaseModel):
    """Everything the analyzer learned about one developer.

    Immutable: the benchmark loop swaps in a refined synthesis with
    with_synthesis(), which returns a new Persona.
    """

    model_config = {"frozen": True}

    username: str
    code_style: str = ""
    review_style: str = ""
    communication: str = ""
    developer_identity: str = ""
    synthesis: SynthesisResult = Field(default_factory=SynthesisResult)

    def with_synthesis(self, synthesis: SynthesisResult) -> Persona:
        return self.model_copy(update={"synthesis": synthesis})
