"""Records produced by a crawl.

CrawlResult is the aggregate: created empty, filled by the concurrent fetch
tasks in ingestion.crawler, then treated as read-only (except for the
held-out split in synthesis.benchmark).
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field


@dataclass
class UserProfile:
    login: str = ""
    name: str = ""
    bio: str = ""
    company: str = ""
    location: str = ""
    blog: str = ""
    email: str = ""
    twitter_username: str = ""
    hireable: bool = False
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    created_at: datetime.datetime | None = None
    profile_readme: str = ""


@dataclass
class CommitData:
    """A commit. patch and the change stats are only set for sampled commits."""

    sha: str
    message: str
    date: datetime.datetime | None = None
    patch: str = ""
    additions: int = 0
    deletions: int = 0
    files_changed: int = 0


@dataclass
class PullRequestData:
    repo: str
    number: int
    title: str = ""
    body: str = ""
    state: str = ""
    labels: list[str] = field(default_factory=list)
    date: datetime.datetime | None = None
    merged_at: datetime.datetime | None = None
    closed_at: datetime.datetime | None = None
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0


@dataclass
class ReviewComment:
    """A line-level PR review comment with the diff hunk it was left on."""

    repo: str
    body: str
    path: str = ""
    diff_hunk: str = ""
    date: datetime.datetime | None = None


@dataclass
class Comment:
    """An issue or PR conversation comment."""

    repo: str
    body: str
    url: str = ""
    date: datetime.datetime | None = None


@dataclass
class CodeSample:
    path: str
    content: str


@dataclass
class ReleaseData:
    repo: str
    tag_name: str
    name: str = ""
    body: str = ""
    created_at: datetime.datetime | None = None


@dataclass
class RepoData:
    """A repository: metadata always, nested data only when deep-crawled."""

    name: str
    full_name: str
    description: str = ""
    language: str = ""
    languages: dict[str, int] = field(default_factory=dict)
    stars: int = 0
    forks: int = 0
    topics: list[str] = field(default_factory=list)
    is_owner: bool = False
    is_fork: bool = False
    archived: bool = False
    license: str = ""
    default_branch: str = ""
    open_issues: int = 0
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None
    commits: list[CommitData] = field(default_factory=list)
    prs: list[PullRequestData] = field(default_factory=list)
    review_comments: list[ReviewComment] = field(default_factory=list)
    pr_comments: list[Comment] = field(default_factory=list)
    code_samples: list[CodeSample] = field(default_factory=list)
    releases: list[ReleaseData] = field(default_factory=list)


@dataclass
class StarredRepo:
    name: str
    full_name: str
    description: str = ""
    language: str = ""
    topics: list[str] = field(default_factory=list)
    stars: int = 0


@dataclass
class GistFile:
    name: str
    language: str = ""


@dataclass
class GistData:
    id: str
    description: str = ""
    files: list[GistFile] = field(default_factory=list)
    public: bool = True
    created_at: datetime.datetime | None = None
    updated_at: datetime.datetime | None = None


@dataclass
class IssueData:
    repo: str
    number: int
    title: str = ""
    body: str = ""
    state: str = ""
    labels: list[str] = field(default_factory=list)
    created_at: datetime.datetime | None = None


@dataclass
class EventData:
    type: str
    repo: str = ""
    created_at: datetime.datetime | None = None
    summary: str = ""


@dataclass
class CrawlResult:
    """Container for all crawled GitHub data for a user."""

    user: UserProfile = field(default_factory=UserProfile)
    repos: list[RepoData] = field(default_factory=list)
    issue_comments: list[Comment] = field(default_factory=list)
    starred_repos: list[StarredRepo] = field(default_factory=list)
    gists: list[GistData] = field(default_factory=list)
    orgs: list[str] = field(default_factory=list)
    authored_issues: list[IssueData] = field(default_factory=list)
    external_prs: list[PullRequestData] = field(default_factory=list)
    events: list[EventData] = field(default_factory=list)

    @property
    def releases(self) -> list[ReleaseData]:
        return [rel for repo in self.repos for rel in repo.releases]

    def total_commits(self) -> int:
        return sum(len(repo.commits) for repo in self.repos)

    def total_reviews(self) -> int:
        """Review comments across repos, counting PR conversation comments
        for repos that have no line-level review comments."""
        n = 0
        for repo in self.repos:
            if repo.review_comments:
                n += len(repo.review_comments)
            else:
                n += len(repo.pr_comments)
        return n

    def total_issues(self) -> int:
        return len(self.authored_issues)

    def total_starred(self) -> int:
        return len(self.starred_repos)

    def total_gists(self) -> int:
        return len(self.gists)

    def total_releases(self) -> int:
        return len(self.releases)

    def total_external_prs(self) -> int:
        return len(self.external_prs)
