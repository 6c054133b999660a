"""Shared fixtures for devlica tests."""

from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Callable
from typing import Any

import httpx

from devlica.ingestion.github import GitHubClient
from devlica.ingestion.models import (
    Comment,
    CrawlResult,
    RepoData,
    ReviewComment,
    UserProfile,
)
from devlica.synthesis import prompts
from devlica.synthesis.persona import Persona, SynthesisResult

API = "https://api.github.com"


# ── GitHub API fakes ─────────────────────────────────────────────────


def make_repo_payload(
    name: str = "proj",
    owner: str = "alice",
    language: str | None = "Python",
    fork: bool = False,
    stars: int = 0,
    created_at: str = "2020-01-01T00:00:00Z",
    pushed_at: str = "2024-01-01T00:00:00Z",
) -> dict[str, Any]:
    """Factory helper for a repository object as returned by the REST API."""
    return {
        "name": name,
        "full_name": f"{owner}/{name}",
        "owner": {"login": owner},
        "language": language,
        "fork": fork,
        "stargazers_count": stars,
        "forks_count": 0,
        "topics": [],
        "license": {"spdx_id": "MIT"},
        "default_branch": "main",
        "created_at": created_at,
        "updated_at": pushed_at,
        "pushed_at": pushed_at,
    }


def contents_payload(text: str) -> dict[str, Any]:
    return {"encoding": "base64", "content": base64.b64encode(text.encode()).decode()}


def make_github_transport(
    routes: dict[str, Any], calls: list[httpx.Request] | None = None
) -> httpx.MockTransport:
    """MockTransport keyed by URL path.

    A route value may be an httpx.Response, a callable taking the request, or
    any JSON-serializable payload (served with status 200). Unknown paths 404.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if isinstance(route, httpx.Response):
            return route
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    return httpx.MockTransport(handler)


def run_with_github(routes: dict[str, Any], fn: Callable, calls: list | None = None):
    """Run fn(gh) against a GitHubClient backed by make_github_transport(routes)."""

    async def go():
        async with GitHubClient("test-token", transport=make_github_transport(routes, calls)) as gh:
            return await fn(gh)

    return asyncio.run(go())


# ── Crawl records ────────────────────────────────────────────────────


def make_review(
    body: str = "nit: rename this",
    path: str = "main.py",
    diff_hunk: str = "@@ -1,3 +1,3 @@\n-x = 1\n+y = 1",
    repo: str = "alice/proj",
) -> ReviewComment:
    """Factory helper for creating ReviewComment instances."""
    return ReviewComment(repo=repo, body=body, path=path, diff_hunk=diff_hunk)


def make_repo(
    full_name: str = "alice/proj",
    review_comments: list[ReviewComment] | None = None,
    pr_comments: list[Comment] | None = None,
    **kwargs: Any,
) -> RepoData:
    """Factory helper for creating RepoData instances."""
    return RepoData(
        name=full_name.split("/", 1)[1],
        full_name=full_name,
        review_comments=review_comments or [],
        pr_comments=pr_comments or [],
        **kwargs,
    )


def make_crawl(repos: list[RepoData] | None = None, login: str = "alice") -> CrawlResult:
    return CrawlResult(user=UserProfile(login=login), repos=repos or [])


# ── Persona ──────────────────────────────────────────────────────────


def make_synthesis(**overrides: str) -> SynthesisResult:
    fields = {
        "coding_philosophy": "Small functions, explicit errors.",
        "code_style_rules": "Return early.",
        "review_priorities": "Correctness first.",
        "review_voice": "Terse and direct.",
        "communication_patterns": "Bulleted PR descriptions.",
        "testing_philosophy": "Table-driven tests.",
        "distinctive_traits": "Loves nits about naming.",
        "developer_interests": "Compilers.",
        "project_patterns": "Makefile plus GitHub Actions.",
        "collaboration_style": "Files detailed bug reports.",
    }
    fields.update(overrides)
    return SynthesisResult(**fields)


def make_persona(username: str = "alice", **synthesis_overrides: str) -> Persona:
    return Persona(
        username=username,
        code_style="raw code style analysis",
        review_style="raw review style analysis",
        communication="raw communication analysis",
        developer_identity="raw identity analysis",
        synthesis=make_synthesis(**synthesis_overrides),
    )


def synthesis_json(**overrides: str) -> str:
    return json.dumps(make_synthesis(**overrides).model_dump())


# ── LLM fake ─────────────────────────────────────────────────────────


class FakeProvider:
    """Stands in for LLMProvider; respond(system, prompt) returns text or an exception."""

    name = "fake"
    model = "fake-model"

    def __init__(self, respond: Callable[[str, str], str | Exception]) -> None:
        self.respond = respond
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system: str, prompt: str, options=None) -> str:
        self.calls.append((system, prompt))
        result = self.respond(system, prompt)
        if isinstance(result, Exception):
            raise result
        return result

    def calls_with(self, system: str) -> list[str]:
        return [prompt for s, prompt in self.calls if s == system]


def benchmark_responder(
    scores: list[float] | Callable[[int], float],
    generated: str = "generated review",
    refine: Callable[[int], str] | None = None,
) -> Callable[[str, str], str]:
    """Responder for the benchmark loop.

    scores gives the grader score per compare call (list, cycled by index) or
    a function of the compare call index. refine maps the refine call index
    to the raw refinement output.
    """
    counters = {"compare": 0, "refine": 0}

    def respond(system: str, prompt: str) -> str:
        if system == prompts.DRY_RUN_SYSTEM_PROMPT:
            return generated
        if system == prompts.COMPARE_SYSTEM_PROMPT:
            i = counters["compare"]
            counters["compare"] += 1
            score = scores(i) if callable(scores) else scores[i % len(scores)]
            return json.dumps({"score": score, "feedback": f"feedback {i}"})
        if system == prompts.REFINE_SYSTEM_PROMPT:
            i = counters["refine"]
            counters["refine"] += 1
            if refine is not None:
                return refine(i)
            return synthesis_json(review_voice=f"refined voice {i + 1}")
        raise AssertionError(f"unexpected system prompt: {system[:40]}")

    return respond
