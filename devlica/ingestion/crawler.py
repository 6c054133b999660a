"""Concurrent crawl of one GitHub user's public activity.

The crawl runs in two fan-out phases around a shared CrawlResult:

* phase A deep-crawls the selected repositories, at most CRAWL_CONCURRENCY
  at a time;
* phase B fetches the user-level sources (issue comments, stars, gists,
  orgs, events, issues, external PRs), one task each, all at once.

Individual tasks never abort their siblings. Only the profile and the
repository listing are fatal.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any

import httpx

from devlica.ingestion import fetchers
from devlica.ingestion.github import GitHubClient
from devlica.ingestion.models import CrawlResult, RepoData
from devlica.ingestion.selection import select_diverse_repos

logger = logging.getLogger(__name__)

CRAWL_CONCURRENCY = 5


class CrawlError(Exception):
    """A prerequisite fetch failed and the crawl cannot produce a result."""


async def crawl_repo(gh: GitHubClient, username: str, repo: dict[str, Any]) -> RepoData:
    """Metadata plus commits, PRs, reviews, code samples and releases."""
    record = fetchers.repo_metadata(repo, username)
    owner, name = record.full_name.split("/", 1)

    record.languages = await fetchers.fetch_languages(gh, owner, name)
    record.commits = await fetchers.fetch_commits(gh, owner, name, username)
    record.prs = await fetchers.fetch_prs(gh, owner, name, username)
    record.review_comments = await fetchers.fetch_review_comments(gh, owner, name, username)
    if not record.review_comments:
        record.pr_comments = await fetchers.fetch_pr_conversation_comments(
            gh, owner, name, username
        )
    record.code_samples = await fetchers.fetch_code_samples(gh, owner, name)
    record.releases = await fetchers.fetch_releases(gh, owner, name, username)

    logger.debug(
        "crawled %s: %d commits, %d PRs, %d review comments",
        record.full_name,
        len(record.commits),
        len(record.prs),
        len(record.review_comments),
    )
    return record


class Crawler:
    """Entry point for crawling a user. One instance can crawl many users."""

    def __init__(
        self,
        token: str,
        max_repos: int = 10,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.max_repos = max_repos
        self._transport = transport

    async def crawl(self, username: str) -> CrawlResult:
        """Fetch everything we collect about username.

        Raises CrawlError if the profile or repository list cannot be fetched.
        asyncio.CancelledError propagates unchanged.
        """
        async with GitHubClient(self.token, transport=self._transport) as gh:
            return await self._crawl(gh, username)

    async def _crawl(self, gh: GitHubClient, username: str) -> CrawlResult:
        result = CrawlResult()
        lock = asyncio.Lock()

        logger.info("crawling profile for %s", username)
        try:
            result.user = await fetchers.fetch_profile(gh, username)
        except httpx.HTTPError as e:
            raise CrawlError(f"fetching profile for {username}: {e}") from e

        try:
            result.user.profile_readme = await fetchers.fetch_profile_readme(gh, username)
        except httpx.HTTPError as e:
            logger.debug("no profile README for %s: %s", username, e)

        try:
            repos = await fetchers.fetch_repos(gh, username)
        except httpx.HTTPError as e:
            raise CrawlError(f"listing repos for {username}: {e}") from e

        selected = select_diverse_repos(repos, self.max_repos, username)
        logger.info(
            "deep-crawling %d of %d repos for %s", len(selected), len(repos), username
        )
        await self._deep_crawl(gh, username, selected, result, lock)

        deep_names = {r.get("full_name") for r in selected}
        for repo in repos:
            if repo.get("full_name") not in deep_names:
                result.repos.append(fetchers.repo_metadata(repo, username))

        crawled = {r.full_name for r in result.repos}
        try:
            external = await fetchers.fetch_external_reviews(gh, username, crawled)
        except httpx.HTTPError as e:
            logger.warning("could not search external reviews for %s: %s", username, e)
        else:
            for record in external:
                logger.debug(
                    "external reviews in %s: %d review comments, %d PR comments",
                    record.full_name,
                    len(record.review_comments),
                    len(record.pr_comments),
                )
            result.repos.extend(external)

        await self._crawl_user_sources(gh, username, result, lock)

        logger.info(
            "crawl complete for %s: %d repos, %d commits, %d reviews, %d issues, "
            "%d starred, %d gists, %d events",
            username,
            len(result.repos),
            result.total_commits(),
            result.total_reviews(),
            result.total_issues(),
            result.total_starred(),
            result.total_gists(),
            len(result.events),
        )
        return result

    async def _deep_crawl(
        self,
        gh: GitHubClient,
        username: str,
        repos: list[dict[str, Any]],
        result: CrawlResult,
        lock: asyncio.Lock,
    ) -> None:
        semaphore = asyncio.Semaphore(CRAWL_CONCURRENCY)

        async def crawl_one(repo: dict[str, Any]) -> None:
            async with semaphore:
                try:
                    record = await crawl_repo(gh, username, repo)
                except Exception as e:
                    logger.warning(
                        "deep crawl failed for %s, keeping metadata only: %s",
                        repo.get("full_name"),
                        e,
                    )
                    record = fetchers.repo_metadata(repo, username)
            async with lock:
                result.repos.append(record)

        await asyncio.gather(*(crawl_one(repo) for repo in repos))

    async def _crawl_user_sources(
        self,
        gh: GitHubClient,
        username: str,
        result: CrawlResult,
        lock: asyncio.Lock,
    ) -> None:
        async def collect(field: str, fetch: Awaitable[list]) -> None:
            try:
                value = await fetch
            except Exception as e:
                logger.warning("could not fetch %s for %s: %s", field, username, e)
                return
            async with lock:
                setattr(result, field, value)

        await asyncio.gather(
            collect("issue_comments", fetchers.fetch_issue_comments(gh, username)),
            collect("starred_repos", fetchers.fetch_starred_repos(gh, username)),
            collect("gists", fetchers.fetch_gists(gh, username)),
            collect("orgs", fetchers.fetch_orgs(gh, username)),
            collect("events", fetchers.fetch_events(gh, username)),
            collect("authored_issues", fetchers.fetch_authored_issues(gh, username)),
            collect("external_prs", fetchers.fetch_external_prs(gh, username)),
        )
