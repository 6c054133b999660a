"""Turn a crawl into a Persona.

Evidence text is built per dimension from the CrawlResult, four analyses
run concurrently (code style, review style, communication, identity) and a
final synthesis call condenses them into SynthesisResult fields.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter

from devlica.core.llm import LLMProvider
from devlica.core.text import truncate
from devlica.ingestion.models import CrawlResult
from devlica.synthesis import prompts
from devlica.synthesis.parsing import parse_synthesis
from devlica.synthesis.persona import Persona

logger = logging.getLogger(__name__)

MAX_CHUNK_BYTES = 30000
CHUNK_TRUNCATED = "\n... (data truncated to fit context window)"

STARRED_LISTED = 50
EVENTS_LISTED = 30


def truncate_chunk(text: str) -> str:
    return truncate(text, MAX_CHUNK_BYTES, CHUNK_TRUNCATED)


def interleave(buckets: list[list[str]]) -> str:
    """Round-robin one item from each bucket so no single repo fills the context."""
    out: list[str] = []
    depth = max((len(b) for b in buckets), default=0)
    for i in range(depth):
        for bucket in buckets:
            if i < len(bucket):
                out.append(bucket[i])
    return "".join(out)


def _date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else "unknown date"


def _counts(counter: Counter) -> list[tuple[str, int]]:
    return sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))


# ── evidence builders ────────────────────────────────────────────────


def build_code_samples_text(data: CrawlResult) -> str:
    buckets = []
    for repo in data.repos:
        items = [
            f"=== {repo.full_name}/{s.path} ===\n{s.content}\n\n" for s in repo.code_samples
        ]
        if items:
            buckets.append(items)
    return interleave(buckets)


def build_commit_diffs_text(data: CrawlResult) -> str:
    buckets = []
    for repo in data.repos:
        items = []
        for commit in repo.commits:
            if not commit.patch:
                continue
            stats = ""
            if commit.additions or commit.deletions:
                stats = f" (+{commit.additions}/-{commit.deletions}, {commit.files_changed} files)"
            items.append(
                f"=== {repo.full_name} - {commit.sha[:8]}{stats} ===\n"
                f"Message: {commit.message}\n{commit.patch}\n\n"
            )
        if items:
            buckets.append(items)
    return interleave(buckets)


def build_review_comments_text(data: CrawlResult) -> str:
    """Line-level review comments, or PR conversation comments for repos without any."""
    buckets = []
    for repo in data.repos:
        items = [
            f"=== {repo.full_name} (file: {rc.path}) ===\n{rc.body}\n\n"
            for rc in repo.review_comments
        ]
        if not items:
            items = [
                f"=== {repo.full_name} (PR comment) ===\n{c.body}\n\n" for c in repo.pr_comments
            ]
        if items:
            buckets.append(items)
    return interleave(buckets)


def build_pr_descriptions_text(data: CrawlResult) -> str:
    buckets = []
    for repo in data.repos:
        items = [
            f"=== {repo.full_name} #{pr.number}: {pr.title} ===\n{pr.body}\n\n"
            for pr in repo.prs
            if pr.body
        ]
        if items:
            buckets.append(items)
    external = [
        f"=== {pr.repo} #{pr.number}: {pr.title} ===\n{pr.body}\n\n"
        for pr in data.external_prs
        if pr.body
    ]
    if external:
        buckets.append(external)
    return interleave(buckets)


def build_issue_comments_text(data: CrawlResult) -> str:
    by_repo: dict[str, list[str]] = {}
    for c in data.issue_comments:
        by_repo.setdefault(c.repo, []).append(f"=== {c.repo} ===\n{c.body}\n\n")
    return interleave(list(by_repo.values()))


def build_authored_issues_text(data: CrawlResult) -> str:
    parts = []
    for issue in data.authored_issues:
        labels = f" [{', '.join(issue.labels)}]" if issue.labels else ""
        parts.append(
            f"=== {issue.repo} #{issue.number}: {issue.title} ({issue.state}){labels} ===\n"
            f"{issue.body}\n\n"
        )
    return "".join(parts)


def build_releases_text(data: CrawlResult) -> str:
    return "".join(
        f"=== {rel.repo} {rel.tag_name}: {rel.name} ===\n{rel.body}\n\n"
        for rel in data.releases
        if rel.body
    )


def build_profile_text(data: CrawlResult) -> str:
    u = data.user
    lines = [f"Login: {u.login}"]
    for label, value in (
        ("Name", u.name),
        ("Bio", u.bio),
        ("Company", u.company),
        ("Location", u.location),
        ("Blog", u.blog),
        ("Email", u.email),
    ):
        if value:
            lines.append(f"{label}: {value}")
    if u.twitter_username:
        lines.append(f"Twitter: @{u.twitter_username}")
    lines.append(f"Followers: {u.followers}, Following: {u.following}")
    lines.append(f"Public repos: {u.public_repos}")
    if u.created_at:
        lines.append(f"Account created: {_date(u.created_at)}")
    text = "\n".join(lines) + "\n"
    if u.profile_readme:
        text += f"\nProfile README:\n{u.profile_readme}\n"

    languages: Counter = Counter()
    licenses: Counter = Counter()
    for repo in data.repos:
        if not repo.is_owner:
            continue
        if repo.language:
            languages[repo.language] += 1
        if repo.license:
            licenses[repo.license] += 1
    if languages:
        text += "\nLanguage distribution across owned repos:\n"
        text += "".join(f"  {lang}: {n} repos\n" for lang, n in _counts(languages))
    if licenses:
        text += "\nLicense preferences:\n"
        text += "".join(f"  {lic}: {n} repos\n" for lic, n in _counts(licenses))
    return text


def build_starred_text(data: CrawlResult) -> str:
    if not data.starred_repos:
        return ""
    text = ""
    languages = Counter(r.language for r in data.starred_repos if r.language)
    if languages:
        text += "Languages of starred repos:\n"
        text += "".join(f"  {lang}: {n}\n" for lang, n in _counts(languages))
        text += "\n"
    for r in data.starred_repos[:STARRED_LISTED]:
        desc = truncate(r.description, 100)
        topics = f" [{', '.join(r.topics)}]" if r.topics else ""
        text += f"- {r.full_name} ({r.language}, {r.stars} stars){topics}: {desc}\n"
    if len(data.starred_repos) > STARRED_LISTED:
        text += f"... and {len(data.starred_repos) - STARRED_LISTED} more starred repos\n"
    return text


def build_gists_text(data: CrawlResult) -> str:
    lines = []
    for g in data.gists:
        files = ", ".join(f"{f.name} ({f.language})" if f.language else f.name for f in g.files)
        visibility = "public" if g.public else "private"
        lines.append(f"- [{visibility}] {_date(g.created_at)}: {g.description} | files: {files}\n")
    return "".join(lines)


def build_orgs_text(data: CrawlResult) -> str:
    if not data.orgs:
        return "No public organization memberships."
    return "Member of: " + ", ".join(data.orgs)


def build_external_prs_text(data: CrawlResult) -> str:
    lines = []
    for pr in data.external_prs:
        stats = ""
        if pr.additions or pr.deletions:
            stats = f" (+{pr.additions}/-{pr.deletions}, {pr.changed_files} files)"
        lines.append(f"- {pr.repo} #{pr.number}: {pr.title} [{pr.state}]{stats}\n")
    return "".join(lines)


def build_events_text(data: CrawlResult) -> str:
    if not data.events:
        return ""
    types = Counter(e.type for e in data.events)
    text = f"Recent activity summary ({len(data.events)} events):\n"
    text += "".join(f"  {t}: {n}\n" for t, n in _counts(types))
    text += "\nRecent events:\n"
    text += "".join(f"  {_date(e.created_at)}: {e.summary}\n" for e in data.events[:EVENTS_LISTED])
    return text


# ── analyzer ─────────────────────────────────────────────────────────


class Analyzer:
    """Runs the four persona analyses and the synthesis step."""

    def __init__(self, provider: LLMProvider) -> None:
        self.provider = provider

    async def _analyze(self, name: str, prompt: str) -> str:
        logger.info("analyzing %s", name)
        return await self.provider.complete(prompts.ANALYST_SYSTEM_PROMPT, prompt)

    async def _insufficient(self, name: str) -> str:
        logger.warning("no data for %s analysis, skipping", name)
        return f"Insufficient data for {name} analysis."

    async def analyze(self, username: str, data: CrawlResult) -> Persona:
        """Build a Persona for username. LLM and parse errors propagate."""
        code_samples = build_code_samples_text(data)
        commit_diffs = build_commit_diffs_text(data)
        review_comments = build_review_comments_text(data)
        pr_descriptions = build_pr_descriptions_text(data)
        issue_comments = build_issue_comments_text(data)
        authored_issues = build_authored_issues_text(data)
        release_notes = build_releases_text(data)
        profile = build_profile_text(data)
        starred = build_starred_text(data)
        gists = build_gists_text(data)
        orgs = build_orgs_text(data)
        external_prs = build_external_prs_text(data)
        events = build_events_text(data)

        if code_samples or commit_diffs:
            code_style = self._analyze(
                "code style",
                prompts.CODE_STYLE_PROMPT.format(
                    username=username,
                    code_samples=truncate_chunk(code_samples),
                    commit_diffs=truncate_chunk(commit_diffs),
                ),
            )
        else:
            code_style = self._insufficient("code style")

        if review_comments:
            review_style = self._analyze(
                "review style",
                prompts.REVIEW_STYLE_PROMPT.format(
                    username=username, review_comments=truncate_chunk(review_comments)
                ),
            )
        else:
            review_style = self._insufficient("review style")

        if pr_descriptions or issue_comments or authored_issues or release_notes:
            communication = self._analyze(
                "communication",
                prompts.COMMUNICATION_PROMPT.format(
                    username=username,
                    pr_descriptions=truncate_chunk(pr_descriptions),
                    issue_comments=truncate_chunk(issue_comments),
                    authored_issues=truncate_chunk(authored_issues),
                    release_notes=truncate_chunk(release_notes),
                ),
            )
        else:
            communication = self._insufficient("communication")

        # The profile text always has at least the login line.
        if profile or starred or gists or external_prs:
            identity = self._analyze(
                "developer identity",
                prompts.DEVELOPER_IDENTITY_PROMPT.format(
                    username=username,
                    profile=truncate_chunk(profile),
                    starred=truncate_chunk(starred),
                    gists=truncate_chunk(gists),
                    orgs=truncate_chunk(orgs),
                    external_prs=truncate_chunk(external_prs),
                    events=truncate_chunk(events),
                ),
            )
        else:
            identity = self._insufficient("developer identity")

        code_style, review_style, communication, identity = await asyncio.gather(
            code_style, review_style, communication, identity
        )

        logger.info("synthesizing persona for %s", username)
        raw = await self.provider.complete(
            prompts.ANALYST_SYSTEM_PROMPT,
            prompts.SYNTHESIS_PROMPT.format(
                username=username,
                code_style=truncate_chunk(code_style),
                review_style=truncate_chunk(review_style),
                communication=truncate_chunk(communication),
                developer_identity=truncate_chunk(identity),
            ),
        )
        return Persona(
            username=username,
            code_style=code_style,
            review_style=review_style,
            communication=communication,
            developer_identity=identity,
            synthesis=parse_synthesis(raw),
        )
