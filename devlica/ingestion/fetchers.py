"""Per-resource GitHub fetchers.

Each fetcher issues one kind of query, walks its pages up to a fixed cap and
converts the JSON into ingestion.models records. Author filtering is done
client-side with a case-insensitive login match.

Profile, README and repository listing raise httpx errors to the caller since
the crawl cannot continue without them. Everything else is best effort: a
failure is logged and whatever was collected so far is returned.
"""

from __future__ import annotations

import base64
import datetime
import logging
import posixpath
from typing import Any
from urllib.parse import urlparse

import httpx

from devlica.core.text import truncate
from devlica.ingestion.github import GitHubClient
from devlica.ingestion.models import (
    CodeSample,
    CommitData,
    Comment,
    EventData,
    GistData,
    GistFile,
    IssueData,
    PullRequestData,
    ReleaseData,
    RepoData,
    ReviewComment,
    StarredRepo,
    UserProfile,
)
from devlica.ingestion.selection import spread_indices

logger = logging.getLogger(__name__)

MAX_COMMITS_PER_REPO = 50
MAX_PATCHES_PER_REPO = 20
MAX_PRS_PER_REPO = 30
MAX_REVIEWS_PER_PR = 50
MAX_CODE_SAMPLES = 5
MAX_WORKFLOW_SAMPLES = 3
MAX_FILE_SIZE_BYTES = 32 * 1024
MAX_PATCH_LEN = 4096
MAX_ISSUE_COMMENTS = 500
MAX_SEARCH_RESULTS = 200
MAX_STARRED_REPOS = 500
MAX_GISTS = 100
MAX_EVENTS = 300
MAX_EXTERNAL_REVIEW_PRS = 30

# Byte budgets for free-text fields
REVIEW_BODY_LEN = 1000
DIFF_HUNK_LEN = 2000
BODY_LEN = 2000
DESCRIPTION_LEN = 500
README_LEN = 4000

PATCH_TRUNCATED = "\n... (truncated)\n"

_INTERESTING_FILES = {
    "main.go", "main.py", "main.rs", "main.ts", "main.js",
    "app.go", "app.py", "app.rs", "app.ts", "app.js",
    "makefile", "dockerfile", "justfile",
}
_SOURCE_EXTENSIONS = {".go", ".py", ".rs", ".ts", ".js", ".java", ".rb", ".c", ".cpp", ".h"}

_EVENT_VERBS = {
    "PushEvent": "pushed to",
    "CreateEvent": "created in",
    "DeleteEvent": "deleted in",
    "ForkEvent": "forked",
    "IssuesEvent": "issue activity in",
    "IssueCommentEvent": "commented on issue in",
    "PullRequestEvent": "PR activity in",
    "PullRequestReviewEvent": "reviewed PR in",
    "PullRequestReviewCommentEvent": "review comment in",
    "WatchEvent": "starred",
    "ReleaseEvent": "release in",
}


# ── helpers ──────────────────────────────────────────────────────────


def parse_time(value: str | None) -> datetime.datetime | None:
    """Parse a GitHub ISO-8601 timestamp ("2024-01-02T03:04:05Z")."""
    if not value:
        return None
    try:
        return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _login(obj: dict | None) -> str:
    return (obj or {}).get("login") or ""


def same_login(a: str, b: str) -> bool:
    return a.casefold() == b.casefold()


def _labels(item: dict) -> list[str]:
    return [label.get("name", "") for label in item.get("labels") or []]


def owner_repo_from_url(url: str) -> tuple[str, str]:
    """Split an API or HTML repository URL into (owner, repo).

    Raises ValueError when the path has fewer than two segments.
    """
    parts = [p for p in urlparse(url).path.split("/") if p]
    if len(parts) < 2:
        raise ValueError(f"cannot parse owner/repo from URL: {url}")
    return parts[-2], parts[-1]


def event_summary(event: dict) -> str:
    """One-line human summary of a public event."""
    event_type = event.get("type") or ""
    repo = (event.get("repo") or {}).get("name") or ""
    verb = _EVENT_VERBS.get(event_type)
    if verb is None:
        return event_type
    return f"{verb} {repo}"


def extract_patch(files: list[dict]) -> str:
    """Join per-file patches of one commit, capping each file and the total."""
    parts: list[str] = []
    size = 0
    for f in files:
        patch = f.get("patch") or ""
        if not patch:
            continue
        chunk = f"--- {f.get('filename', '')} ---\n"
        if len(patch.encode("utf-8")) > MAX_PATCH_LEN:
            chunk += truncate(patch, MAX_PATCH_LEN, PATCH_TRUNCATED)
        else:
            chunk += patch + "\n"
        parts.append(chunk)
        size += len(chunk.encode("utf-8"))
        if size > MAX_PATCH_LEN * 3:
            break
    return "".join(parts)


def is_workflow_file(path: str) -> bool:
    return path.startswith(".github/workflows/") and path.endswith((".yml", ".yaml"))


def is_interesting_file(path: str) -> bool:
    return posixpath.basename(path).lower() in _INTERESTING_FILES


def is_source_file(path: str) -> bool:
    return posixpath.splitext(path)[1].lower() in _SOURCE_EXTENSIONS


def _decode_content(payload: dict) -> str:
    content = payload.get("content") or ""
    if payload.get("encoding") == "base64":
        try:
            return base64.b64decode(content).decode("utf-8", errors="replace")
        except ValueError as e:
            # binascii.Error subclasses ValueError
            logger.debug("undecodable content for %s: %s", payload.get("path") or "file", e)
            return ""
    return content


def repo_metadata(repo: dict[str, Any], username: str) -> RepoData:
    """Metadata-only record for a repository from the listing payload."""
    return RepoData(
        name=repo.get("name") or "",
        full_name=repo.get("full_name") or "",
        description=repo.get("description") or "",
        language=repo.get("language") or "",
        stars=repo.get("stargazers_count") or 0,
        forks=repo.get("forks_count") or 0,
        topics=list(repo.get("topics") or []),
        is_owner=same_login(_login(repo.get("owner")), username),
        is_fork=bool(repo.get("fork")),
        archived=bool(repo.get("archived")),
        license=(repo.get("license") or {}).get("spdx_id") or "",
        default_branch=repo.get("default_branch") or "",
        open_issues=repo.get("open_issues_count") or 0,
        created_at=parse_time(repo.get("created_at")),
        updated_at=parse_time(repo.get("updated_at")),
    )


def _pr_from_payload(repo: str, pr: dict) -> PullRequestData:
    return PullRequestData(
        repo=repo,
        number=pr.get("number") or 0,
        title=pr.get("title") or "",
        body=truncate(pr.get("body") or "", BODY_LEN),
        state=pr.get("state") or "",
        labels=_labels(pr),
        date=parse_time(pr.get("created_at")),
        merged_at=parse_time(pr.get("merged_at")),
        closed_at=parse_time(pr.get("closed_at")),
        additions=pr.get("additions") or 0,
        deletions=pr.get("deletions") or 0,
        changed_files=pr.get("changed_files") or 0,
    )


def _review_comment(repo: str, c: dict) -> ReviewComment:
    return ReviewComment(
        repo=repo,
        body=truncate(c.get("body") or "", REVIEW_BODY_LEN),
        path=c.get("path") or "",
        diff_hunk=truncate(c.get("diff_hunk") or "", DIFF_HUNK_LEN),
        date=parse_time(c.get("created_at")),
    )


def _comment(repo: str, c: dict) -> Comment:
    return Comment(
        repo=repo,
        body=truncate(c.get("body") or "", REVIEW_BODY_LEN),
        url=c.get("html_url") or "",
        date=parse_time(c.get("created_at")),
    )


# ── required sources ─────────────────────────────────────────────────


async def fetch_profile(gh: GitHubClient, username: str) -> UserProfile:
    data = await gh.get(f"/users/{username}")
    return UserProfile(
        login=data.get("login") or username,
        name=data.get("name") or "",
        bio=data.get("bio") or "",
        company=data.get("company") or "",
        location=data.get("location") or "",
        blog=data.get("blog") or "",
        email=data.get("email") or "",
        twitter_username=data.get("twitter_username") or "",
        hireable=bool(data.get("hireable")),
        followers=data.get("followers") or 0,
        following=data.get("following") or 0,
        public_repos=data.get("public_repos") or 0,
        created_at=parse_time(data.get("created_at")),
    )


async def fetch_profile_readme(gh: GitHubClient, username: str) -> str:
    """The README of the user's <login>/<login> profile repository."""
    data = await gh.get(f"/repos/{username}/{username}/readme")
    return truncate(_decode_content(data), README_LEN)


async def fetch_repos(gh: GitHubClient, username: str) -> list[dict[str, Any]]:
    """Every repository the user can be associated with, most recently pushed first."""
    repos: list[dict[str, Any]] = []
    async for page in gh.pages(
        f"/users/{username}/repos",
        params={"sort": "pushed", "direction": "desc", "type": "all"},
    ):
        repos.extend(page)
    repos.sort(key=lambda r: r.get("pushed_at") or "", reverse=True)
    return repos


# ── per-repository sources ───────────────────────────────────────────


async def fetch_languages(gh: GitHubClient, owner: str, repo: str) -> dict[str, int]:
    try:
        data = await gh.get(f"/repos/{owner}/{repo}/languages")
    except httpx.HTTPError as e:
        logger.debug("no languages for %s/%s: %s", owner, repo, e)
        return {}
    return data if isinstance(data, dict) else {}


async def fetch_commits(
    gh: GitHubClient, owner: str, repo: str, author: str
) -> list[CommitData]:
    """The author's latest commits; an even spread of them get their diff attached."""
    try:
        raw = await gh.get(
            f"/repos/{owner}/{repo}/commits",
            params={"author": author, "per_page": MAX_COMMITS_PER_REPO},
        )
    except httpx.HTTPError as e:
        logger.debug("no commits for %s/%s: %s", owner, repo, e)
        return []

    commits = []
    for c in raw[:MAX_COMMITS_PER_REPO]:
        info = c.get("commit") or {}
        commits.append(
            CommitData(
                sha=c.get("sha") or "",
                message=info.get("message") or "",
                date=parse_time((info.get("author") or {}).get("date")),
            )
        )

    for i in spread_indices(len(commits), MAX_PATCHES_PER_REPO):
        commit = commits[i]
        try:
            detail = await gh.get(f"/repos/{owner}/{repo}/commits/{commit.sha}")
        except httpx.HTTPError as e:
            logger.debug("no detail for commit %s in %s/%s: %s", commit.sha[:7], owner, repo, e)
            continue
        files = detail.get("files") or []
        stats = detail.get("stats") or {}
        commit.patch = extract_patch(files)
        commit.additions = stats.get("additions") or 0
        commit.deletions = stats.get("deletions") or 0
        commit.files_changed = len(files)
    return commits


async def fetch_prs(
    gh: GitHubClient, owner: str, repo: str, author: str
) -> list[PullRequestData]:
    """The author's PRs among the repo's 30 most recently updated."""
    full_name = f"{owner}/{repo}"
    try:
        raw = await gh.get(
            f"/repos/{full_name}/pulls",
            params={
                "state": "all",
                "sort": "updated",
                "direction": "desc",
                "per_page": MAX_PRS_PER_REPO,
            },
        )
    except httpx.HTTPError as e:
        logger.debug("no PRs for %s: %s", full_name, e)
        return []
    return [
        _pr_from_payload(full_name, pr)
        for pr in raw
        if same_login(_login(pr.get("user")), author)
    ]


async def fetch_review_comments(
    gh: GitHubClient, owner: str, repo: str, author: str
) -> list[ReviewComment]:
    full_name = f"{owner}/{repo}"
    try:
        raw = await gh.get(
            f"/repos/{full_name}/pulls/comments",
            params={"sort": "created", "direction": "desc", "per_page": 100},
        )
    except httpx.HTTPError as e:
        logger.debug("no review comments for %s: %s", full_name, e)
        return []

    comments = []
    for c in raw:
        if not same_login(_login(c.get("user")), author):
            continue
        comments.append(_review_comment(full_name, c))
        if len(comments) >= MAX_REVIEWS_PER_PR:
            break
    return comments


async def fetch_pr_conversation_comments(
    gh: GitHubClient, owner: str, repo: str, author: str
) -> list[Comment]:
    """The author's comments on conversations of PRs opened by other people."""
    full_name = f"{owner}/{repo}"
    try:
        prs = await gh.get(
            f"/repos/{full_name}/pulls",
            params={
                "state": "all",
                "sort": "updated",
                "direction": "desc",
                "per_page": MAX_PRS_PER_REPO,
            },
        )
    except httpx.HTTPError as e:
        logger.debug("no PRs for conversation comments in %s: %s", full_name, e)
        return []

    comments: list[Comment] = []
    for pr in prs:
        if same_login(_login(pr.get("user")), author):
            continue
        try:
            raw = await gh.get(
                f"/repos/{full_name}/issues/{pr.get('number')}/comments",
                params={"per_page": 30},
            )
        except httpx.HTTPError as e:
            logger.debug("no comments on %s#%s: %s", full_name, pr.get("number"), e)
            continue
        for c in raw:
            if same_login(_login(c.get("user")), author):
                comments.append(_comment(full_name, c))
                if len(comments) >= MAX_REVIEWS_PER_PR:
                    return comments
    return comments


async def fetch_code_samples(gh: GitHubClient, owner: str, repo: str) -> list[CodeSample]:
    """CI workflows first, then entry points and other source files."""
    full_name = f"{owner}/{repo}"
    try:
        tree = await gh.get(f"/repos/{full_name}/git/trees/HEAD", params={"recursive": "1"})
    except httpx.HTTPError as e:
        logger.debug("no tree for %s: %s", full_name, e)
        return []

    blobs = [
        entry
        for entry in tree.get("tree") or []
        if entry.get("type") == "blob" and (entry.get("size") or 0) <= MAX_FILE_SIZE_BYTES
    ]
    workflows = [e["path"] for e in blobs if is_workflow_file(e.get("path", ""))]
    interesting = [e["path"] for e in blobs if is_interesting_file(e.get("path", ""))]
    sources = [
        e["path"]
        for e in blobs
        if is_source_file(e.get("path", "")) and not is_interesting_file(e.get("path", ""))
    ]
    candidates = workflows[:MAX_WORKFLOW_SAMPLES] + interesting + sources
    limit = MAX_CODE_SAMPLES + MAX_WORKFLOW_SAMPLES

    samples: list[CodeSample] = []
    for path in candidates:
        if len(samples) >= limit:
            break
        try:
            payload = await gh.get(f"/repos/{full_name}/contents/{path}")
        except httpx.HTTPError as e:
            logger.debug("could not read %s in %s: %s", path, full_name, e)
            continue
        if not isinstance(payload, dict):
            continue
        content = _decode_content(payload)
        if content:
            samples.append(CodeSample(path=path, content=content))
    return samples


async def fetch_releases(
    gh: GitHubClient, owner: str, repo: str, author: str
) -> list[ReleaseData]:
    full_name = f"{owner}/{repo}"
    try:
        raw = await gh.get(f"/repos/{full_name}/releases", params={"per_page": 30})
    except httpx.HTTPError as e:
        logger.debug("no releases for %s: %s", full_name, e)
        return []
    return [
        ReleaseData(
            repo=full_name,
            tag_name=r.get("tag_name") or "",
            name=r.get("name") or "",
            body=truncate(r.get("body") or "", BODY_LEN),
            created_at=parse_time(r.get("created_at")),
        )
        for r in raw
        if same_login(_login(r.get("author")), author)
    ]


# ── user-level sources ───────────────────────────────────────────────


async def fetch_external_reviews(
    gh: GitHubClient, username: str, crawled: set[str]
) -> list[RepoData]:
    """Review activity on PRs in repositories outside the user's own.

    Repos already present in crawled are skipped. Raises httpx errors from
    the search itself; failures on individual PRs are skipped.
    """
    data = await gh.get(
        "/search/issues",
        params={
            "q": f"commenter:{username} is:pr -user:{username}",
            "sort": "updated",
            "order": "desc",
            "per_page": MAX_EXTERNAL_REVIEW_PRS,
        },
    )

    by_repo: dict[str, list[dict]] = {}
    for item in data.get("items") or []:
        try:
            owner, repo = owner_repo_from_url(item.get("repository_url") or "")
        except ValueError:
            continue
        full_name = f"{owner}/{repo}"
        if full_name in crawled:
            continue
        by_repo.setdefault(full_name, []).append(item)

    results: list[RepoData] = []
    for full_name, items in by_repo.items():
        record = RepoData(name=full_name.split("/", 1)[1], full_name=full_name)
        for item in items:
            number = item.get("number")
            try:
                review_raw = await gh.get(
                    f"/repos/{full_name}/pulls/{number}/comments", params={"per_page": 50}
                )
            except httpx.HTTPError as e:
                logger.debug("no review comments on %s#%s: %s", full_name, number, e)
                review_raw = []
            for c in review_raw:
                if len(record.review_comments) >= MAX_REVIEWS_PER_PR:
                    break
                if same_login(_login(c.get("user")), username):
                    record.review_comments.append(_review_comment(full_name, c))

            try:
                issue_raw = await gh.get(
                    f"/repos/{full_name}/issues/{number}/comments", params={"per_page": 30}
                )
            except httpx.HTTPError as e:
                logger.debug("no comments on %s#%s: %s", full_name, number, e)
                issue_raw = []
            for c in issue_raw:
                if len(record.pr_comments) >= MAX_REVIEWS_PER_PR:
                    break
                if same_login(_login(c.get("user")), username):
                    record.pr_comments.append(_comment(full_name, c))

        if record.review_comments or record.pr_comments:
            results.append(record)
    return results


async def fetch_issue_comments(gh: GitHubClient, username: str) -> list[Comment]:
    """The user's comments on issues and PRs found via search."""
    comments: list[Comment] = []
    scanned = 0
    try:
        async for page in gh.pages(
            "/search/issues",
            params={"q": f"commenter:{username}", "sort": "updated", "order": "desc"},
            items_key="items",
        ):
            for item in page:
                if scanned >= MAX_SEARCH_RESULTS:
                    return comments
                scanned += 1
                try:
                    owner, repo = owner_repo_from_url(item.get("repository_url") or "")
                except ValueError:
                    continue
                full_name = f"{owner}/{repo}"
                try:
                    raw = await gh.get(
                        f"/repos/{full_name}/issues/{item.get('number')}/comments",
                        params={"per_page": 100},
                    )
                except httpx.HTTPError as e:
                    logger.debug("no comments on %s#%s: %s", full_name, item.get("number"), e)
                    continue
                for c in raw:
                    if same_login(_login(c.get("user")), username):
                        comments.append(_comment(full_name, c))
                        if len(comments) >= MAX_ISSUE_COMMENTS:
                            return comments
    except httpx.HTTPError as e:
        logger.warning("could not search issue comments for %s: %s", username, e)
    return comments


async def fetch_starred_repos(gh: GitHubClient, username: str) -> list[StarredRepo]:
    starred: list[StarredRepo] = []
    try:
        async for page in gh.pages(
            f"/users/{username}/starred", params={"sort": "created", "direction": "desc"}
        ):
            for r in page:
                starred.append(
                    StarredRepo(
                        name=r.get("name") or "",
                        full_name=r.get("full_name") or "",
                        description=truncate(r.get("description") or "", DESCRIPTION_LEN),
                        language=r.get("language") or "",
                        topics=list(r.get("topics") or []),
                        stars=r.get("stargazers_count") or 0,
                    )
                )
                if len(starred) >= MAX_STARRED_REPOS:
                    return starred
    except httpx.HTTPError as e:
        logger.warning("could not fetch starred repos for %s: %s", username, e)
    return starred


async def fetch_gists(gh: GitHubClient, username: str) -> list[GistData]:
    gists: list[GistData] = []
    try:
        async for page in gh.pages(f"/users/{username}/gists"):
            for g in page:
                files = [
                    GistFile(name=name, language=(f or {}).get("language") or "")
                    for name, f in (g.get("files") or {}).items()
                ]
                gists.append(
                    GistData(
                        id=g.get("id") or "",
                        description=truncate(g.get("description") or "", DESCRIPTION_LEN),
                        files=files,
                        public=bool(g.get("public", True)),
                        created_at=parse_time(g.get("created_at")),
                        updated_at=parse_time(g.get("updated_at")),
                    )
                )
                if len(gists) >= MAX_GISTS:
                    return gists
    except httpx.HTTPError as e:
        logger.warning("could not fetch gists for %s: %s", username, e)
    return gists


async def fetch_orgs(gh: GitHubClient, username: str) -> list[str]:
    try:
        raw = await gh.get(f"/users/{username}/orgs", params={"per_page": 100})
    except httpx.HTTPError as e:
        logger.warning("could not fetch orgs for %s: %s", username, e)
        return []
    return [o.get("login") or "" for o in raw if o.get("login")]


async def fetch_events(gh: GitHubClient, username: str) -> list[EventData]:
    """Most recent public events, newest first as the API returns them."""
    events: list[EventData] = []
    try:
        async for page in gh.pages(f"/users/{username}/events/public"):
            for e in page:
                events.append(
                    EventData(
                        type=e.get("type") or "",
                        repo=(e.get("repo") or {}).get("name") or "",
                        created_at=parse_time(e.get("created_at")),
                        summary=event_summary(e),
                    )
                )
                if len(events) >= MAX_EVENTS:
                    return events
    except httpx.HTTPError as e:
        logger.warning("could not fetch events for %s: %s", username, e)
    return events


async def fetch_authored_issues(gh: GitHubClient, username: str) -> list[IssueData]:
    issues: list[IssueData] = []
    try:
        async for page in gh.pages(
            "/search/issues",
            params={"q": f"author:{username} is:issue", "sort": "created", "order": "desc"},
            items_key="items",
        ):
            for item in page:
                try:
                    owner, repo = owner_repo_from_url(item.get("repository_url") or "")
                except ValueError:
                    continue
                issues.append(
                    IssueData(
                        repo=f"{owner}/{repo}",
                        number=item.get("number") or 0,
                        title=item.get("title") or "",
                        body=truncate(item.get("body") or "", BODY_LEN),
                        state=item.get("state") or "",
                        labels=_labels(item),
                        created_at=parse_time(item.get("created_at")),
                    )
                )
                if len(issues) >= MAX_SEARCH_RESULTS:
                    return issues
    except httpx.HTTPError as e:
        logger.warning("could not search authored issues for %s: %s", username, e)
    return issues


async def fetch_external_prs(gh: GitHubClient, username: str) -> list[PullRequestData]:
    """PRs the user opened on repositories they do not own, with size stats."""
    prs: list[PullRequestData] = []
    try:
        async for page in gh.pages(
            "/search/issues",
            params={
                "q": f"author:{username} is:pr -user:{username}",
                "sort": "created",
                "order": "desc",
            },
            items_key="items",
        ):
            for item in page:
                try:
                    owner, repo = owner_repo_from_url(item.get("repository_url") or "")
                except ValueError:
                    continue
                full_name = f"{owner}/{repo}"
                pr = _pr_from_payload(full_name, item)
                if item.get("pull_request"):
                    try:
                        detail = await gh.get(f"/repos/{full_name}/pulls/{pr.number}")
                    except httpx.HTTPError as e:
                        logger.debug("no detail for %s#%d: %s", full_name, pr.number, e)
                    else:
                        pr.additions = detail.get("additions") or 0
                        pr.deletions = detail.get("deletions") or 0
                        pr.changed_files = detail.get("changed_files") or 0
                        pr.merged_at = parse_time(detail.get("merged_at"))
                prs.append(pr)
                if len(prs) >= MAX_SEARCH_RESULTS:
                    return prs
    except httpx.HTTPError as e:
        logger.warning("could not search external PRs for %s: %s", username, e)
    return prs
