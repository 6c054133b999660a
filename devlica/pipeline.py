"""Pipeline orchestration: crawl, hold out reviews, analyze, benchmark, write skills.

Stages emit PipelineEvent progress updates to an optional async callback so
the CLI (or any other front end) can render progress.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from devlica.core.config import Settings
from devlica.core.llm import LLMProvider, create_provider, setup_langfuse
from devlica.ingestion.crawler import Crawler
from devlica.ingestion.models import CrawlResult
from devlica.skills import write_skills
from devlica.synthesis.analyzer import Analyzer
from devlica.synthesis.benchmark import BenchmarkResult, Benchmarker, split_reviews
from devlica.synthesis.persona import Persona

logger = logging.getLogger(__name__)


class PipelineEvent(BaseModel):
    stage: str
    status: str  # "started", "completed", "skipped", "failed"
    message: str
    progress: float  # 0.0 - 1.0


class PipelineResult(BaseModel):
    username: str
    persona: Persona
    benchmark: BenchmarkResult
    skill_paths: list[Path] = Field(default_factory=list)
    totals: dict[str, int] = Field(default_factory=dict)


ProgressCallback = Callable[[PipelineEvent], Coroutine[Any, Any, None]]


async def _noop_callback(event: PipelineEvent) -> None:
    pass


def crawl_totals(data: CrawlResult) -> dict[str, int]:
    return {
        "repos": len(data.repos),
        "commits": data.total_commits(),
        "reviews": data.total_reviews(),
        "issues": data.total_issues(),
        "starred": data.total_starred(),
        "gists": data.total_gists(),
        "releases": data.total_releases(),
        "external_prs": data.total_external_prs(),
    }


async def run_pipeline(
    settings: Settings,
    username: str,
    on_progress: ProgressCallback | None = None,
    *,
    crawler: Crawler | None = None,
    provider: LLMProvider | None = None,
) -> PipelineResult:
    """Run the full persona pipeline for username.

    Stages:
    1. CRAWL: fetch the user's GitHub activity
    2. SPLIT: hold out review comments for the benchmark
    3. ANALYZE: build the persona
    4. BENCHMARK: imitate held-out reviews and refine the persona
    5. WRITE: render skill documents into settings.output_dir

    Errors are reported as a "failed" event and re-raised.
    """
    emit = on_progress or _noop_callback
    settings.validate_for_run(username)
    setup_langfuse(settings)

    crawler = crawler or Crawler(settings.github_token, settings.max_repos)
    provider = provider or create_provider(settings)

    try:
        # ── Stage 1: CRAWL ───────────────────────────────────────────────
        await emit(PipelineEvent(
            stage="crawl", status="started",
            message=f"Crawling GitHub activity for {username}...",
            progress=0.0,
        ))
        data = await crawler.crawl(username)
        totals = crawl_totals(data)
        await emit(PipelineEvent(
            stage="crawl", status="completed",
            message=(
                f"Crawled {totals['repos']} repos, {totals['commits']} commits, "
                f"{totals['reviews']} reviews"
            ),
            progress=0.3,
        ))

        # ── Stage 2: SPLIT ───────────────────────────────────────────────
        held_out = split_reviews(data, settings.benchmark_held_out)
        logger.info("held out %d review comments for benchmarking", len(held_out))

        # ── Stage 3: ANALYZE ─────────────────────────────────────────────
        await emit(PipelineEvent(
            stage="analyze", status="started",
            message=f"Analyzing persona with {provider.name}/{provider.model}...",
            progress=0.35,
        ))
        persona = await Analyzer(provider).analyze(username, data)
        await emit(PipelineEvent(
            stage="analyze", status="completed",
            message="Persona synthesized",
            progress=0.6,
        ))

        # ── Stage 4: BENCHMARK ───────────────────────────────────────────
        benchmarker = Benchmarker(
            provider,
            max_iterations=settings.benchmark_max_iterations,
            target_score=settings.benchmark_target_score,
        )
        if held_out:
            await emit(PipelineEvent(
                stage="benchmark", status="started",
                message=f"Benchmarking persona against {len(held_out)} held-out reviews...",
                progress=0.65,
            ))
        benchmark, persona = await benchmarker.run(persona, held_out)
        if benchmark.skipped:
            await emit(PipelineEvent(
                stage="benchmark", status="skipped",
                message="No review comments with diff context to benchmark against",
                progress=0.85,
            ))
        else:
            await emit(PipelineEvent(
                stage="benchmark", status="completed",
                message=(
                    f"Final score {benchmark.final_score:.1f} after "
                    f"{benchmark.iterations} iteration(s)"
                ),
                progress=0.85,
            ))

        # ── Stage 5: WRITE ───────────────────────────────────────────────
        paths = write_skills(persona, settings.output_dir)
        await emit(PipelineEvent(
            stage="write", status="completed",
            message=f"Wrote {len(paths)} skills to {settings.output_dir}",
            progress=1.0,
        ))

    except Exception as e:
        logger.exception("Pipeline failed for %s: %s", username, e)
        await emit(PipelineEvent(
            stage="error", status="failed",
            message=f"Pipeline failed: {e}", progress=0.0,
        ))
        raise

    return PipelineResult(
        username=username,
        persona=persona,
        benchmark=benchmark,
        skill_paths=paths,
        totals=totals,
    )
