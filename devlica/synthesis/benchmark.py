"""Persona benchmark: imitate held-out reviews, grade them, refine, repeat.

A few real review comments are withheld from the crawl before analysis
(split_reviews). Each iteration asks the LLM to write those reviews as the
persona, has the LLM grade each imitation against the original, and, when the
mean score misses the target, asks for a refined persona for the next round.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

from devlica.core.llm import LLMProvider
from devlica.ingestion.models import CrawlResult
from devlica.synthesis import prompts
from devlica.synthesis.parsing import parse_comparison_result, parse_synthesis
from devlica.synthesis.persona import Persona

logger = logging.getLogger(__name__)

MAX_HELD_OUT = 3
MAX_ITERATIONS = 5
TARGET_SCORE = 80.0


class BenchmarkError(Exception):
    """A backend call or parse failed during the benchmark; no partial result."""

    def __init__(self, iteration: int, message: str) -> None:
        self.iteration = iteration
        super().__init__(f"benchmark iteration {iteration}: {message}")


class HeldOutReview(BaseModel):
    model_config = {"frozen": True}

    repo_full_name: str
    body: str
    path: str = ""
    diff_hunk: str


class ReviewPair(BaseModel):
    model_config = {"frozen": True}

    original: str
    generated: str
    path: str = ""
    score: float


class IterationResult(BaseModel):
    model_config = {"frozen": True}

    iteration: int
    score: float
    feedback: str
    pairs: tuple[ReviewPair, ...] = ()


class BenchmarkResult(BaseModel):
    final_score: float = 0.0
    iterations: int = 0
    history: list[IterationResult] = Field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.final_score < 0


def split_reviews(data: CrawlResult, max_count: int = MAX_HELD_OUT) -> list[HeldOutReview]:
    """Remove up to max_count review comments with a diff hunk from data.

    Repos and comments are walked in order, so the same crawl always yields
    the same held-out set. data is modified in place.
    """
    held_out: list[HeldOutReview] = []
    for repo in data.repos:
        kept = []
        for rc in repo.review_comments:
            if len(held_out) < max_count and rc.diff_hunk:
                held_out.append(
                    HeldOutReview(
                        repo_full_name=repo.full_name,
                        body=rc.body,
                        path=rc.path,
                        diff_hunk=rc.diff_hunk,
                    )
                )
            else:
                kept.append(rc)
        repo.review_comments = kept
    return held_out


def format_persona_context(persona: Persona) -> str:
    s = persona.synthesis
    sections = [
        ("CODING PHILOSOPHY", s.coding_philosophy),
        ("CODE STYLE RULES", s.code_style_rules),
        ("REVIEW PRIORITIES", s.review_priorities),
        ("REVIEW VOICE", s.review_voice),
        ("COMMUNICATION PATTERNS", s.communication_patterns),
        ("TESTING PHILOSOPHY", s.testing_philosophy),
        ("DISTINCTIVE TRAITS", s.distinctive_traits),
        ("DEVELOPER INTERESTS", s.developer_interests),
        ("PROJECT PATTERNS", s.project_patterns),
        ("COLLABORATION STYLE", s.collaboration_style),
    ]
    return "\n\n".join(f"{title}:\n{text}" for title, text in sections) + "\n"


def format_pairs(pairs: tuple[ReviewPair, ...]) -> str:
    parts = []
    for i, pair in enumerate(pairs, start=1):
        parts.append(
            f"--- Review Pair {i} (file: {pair.path}, score: {pair.score:.0f}) ---\n"
            f"ORIGINAL:\n{pair.original}\n\nGENERATED:\n{pair.generated}\n\n"
        )
    return "".join(parts)


class Benchmarker:
    """Drives the generate -> grade -> refine loop against one provider."""

    def __init__(
        self,
        provider: LLMProvider,
        max_iterations: int = MAX_ITERATIONS,
        target_score: float = TARGET_SCORE,
    ) -> None:
        self.provider = provider
        self.max_iterations = max_iterations
        self.target_score = target_score

    async def run(
        self, persona: Persona, held_out: list[HeldOutReview]
    ) -> tuple[BenchmarkResult, Persona]:
        """Run up to max_iterations rounds; return the result and the final persona.

        With no held-out reviews the benchmark is skipped: final_score is -1
        and the persona is returned untouched. Any LLM or parse failure raises
        BenchmarkError.
        """
        if not held_out:
            logger.warning("no held-out reviews available, skipping benchmark")
            return BenchmarkResult(final_score=-1), persona

        result = BenchmarkResult()
        current = persona

        for iteration in range(1, self.max_iterations + 1):
            logger.info("benchmark iteration %d/%d", iteration, self.max_iterations)
            try:
                iter_result = await self._run_iteration(current, held_out, iteration)
            except Exception as e:
                raise BenchmarkError(iteration, str(e)) from e

            result.history.append(iter_result)
            result.final_score = iter_result.score
            result.iterations = iteration
            logger.info("benchmark iteration %d scored %.1f", iteration, iter_result.score)

            if iter_result.score >= self.target_score:
                logger.info("benchmark target %.1f reached", self.target_score)
                break

            if iteration < self.max_iterations:
                logger.info("refining persona after iteration %d", iteration)
                try:
                    current = await self._refine(current, iter_result)
                except Exception as e:
                    raise BenchmarkError(iteration, f"refining persona: {e}") from e

        return result, current

    async def _run_iteration(
        self, persona: Persona, held_out: list[HeldOutReview], iteration: int
    ) -> IterationResult:
        context = format_persona_context(persona)
        pairs: list[ReviewPair] = []
        feedback: list[str] = []

        for sample in held_out:
            generated = await self.provider.complete(
                prompts.DRY_RUN_SYSTEM_PROMPT,
                prompts.DRY_RUN_PROMPT.format(
                    username=persona.username,
                    persona=context,
                    path=sample.path,
                    diff_hunk=sample.diff_hunk,
                ),
            )
            raw = await self.provider.complete(
                prompts.COMPARE_SYSTEM_PROMPT,
                prompts.COMPARE_PROMPT.format(
                    path=sample.path,
                    diff_hunk=sample.diff_hunk,
                    original=sample.body,
                    generated=generated,
                ),
            )
            comparison = parse_comparison_result(raw)
            pairs.append(
                ReviewPair(
                    original=sample.body,
                    generated=generated,
                    path=sample.path,
                    score=comparison.score,
                )
            )
            feedback.append(comparison.feedback)

        return IterationResult(
            iteration=iteration,
            score=sum(p.score for p in pairs) / len(pairs),
            feedback="\n---\n".join(feedback),
            pairs=tuple(pairs),
        )

    async def _refine(self, persona: Persona, iter_result: IterationResult) -> Persona:
        fields = persona.synthesis.model_dump()
        raw = await self.provider.complete(
            prompts.REFINE_SYSTEM_PROMPT,
            prompts.REFINE_PROMPT.format(
                username=persona.username,
                score=iter_result.score,
                feedback=iter_result.feedback,
                pairs=format_pairs(iter_result.pairs),
                **fields,
            ),
        )
        return persona.with_synthesis(parse_synthesis(raw))
