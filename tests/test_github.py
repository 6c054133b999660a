"""Tests for devlica/ingestion/github.py and devlica/ingestion/fetchers.py."""

from __future__ import annotations

import httpx
import pytest

from devlica.ingestion import fetchers
from devlica.ingestion.fetchers import (
    MAX_PATCH_LEN,
    PATCH_TRUNCATED,
    event_summary,
    extract_patch,
    owner_repo_from_url,
)
from tests.conftest import API, contents_payload, make_repo_payload, run_with_github


def _paged(pages: list, key: str | None = None):
    """Route serving pages[n-1] for ?page=n, with Link headers between pages."""

    def route(request: httpx.Request) -> httpx.Response:
        page = int(request.url.params.get("page", "1"))
        body = pages[page - 1]
        if isinstance(body, httpx.Response):
            return body
        headers = {}
        if page < len(pages):
            headers["Link"] = f'<{API}{request.url.path}?page={page + 1}>; rel="next"'
        payload = {key: body, "total_count": 999} if key else body
        return httpx.Response(200, json=payload, headers=headers)

    return route


# ── GitHubClient ─────────────────────────────────────────────────────


class TestGitHubClient:
    def test_sends_auth_and_accept_headers(self):
        calls = []
        run_with_github({"/users/alice": {"login": "alice"}}, lambda gh: gh.get("/users/alice"), calls)
        assert calls[0].headers["Authorization"] == "Bearer test-token"
        assert calls[0].headers["Accept"] == "application/vnd.github+json"

    def test_get_raises_on_error_status(self):
        with pytest.raises(httpx.HTTPStatusError):
            run_with_github({}, lambda gh: gh.get("/users/nobody"))

    def test_pages_follow_link_header(self):
        routes = {"/users/alice/repos": _paged([[{"n": 1}, {"n": 2}], [{"n": 3}]])}

        async def collect(gh):
            return [page async for page in gh.pages("/users/alice/repos")]

        calls = []
        assert run_with_github(routes, collect, calls) == [[{"n": 1}, {"n": 2}], [{"n": 3}]]
        assert calls[0].url.params["per_page"] == "100"
        assert calls[1].url.params["page"] == "2"

    def test_pages_items_key_for_search(self):
        routes = {"/search/issues": _paged([[{"id": 1}], [{"id": 2}]], key="items")}

        async def collect(gh):
            return [page async for page in gh.pages("/search/issues", items_key="items")]

        assert run_with_github(routes, collect) == [[{"id": 1}], [{"id": 2}]]

    def test_pages_max_pages(self):
        routes = {"/x": _paged([[1], [2], [3]])}

        async def collect(gh):
            return [page async for page in gh.pages("/x", max_pages=2)]

        assert run_with_github(routes, collect) == [[1], [2]]


# ── helpers ──────────────────────────────────────────────────────────


class TestHelpers:
    def test_owner_repo_from_api_url(self):
        assert owner_repo_from_url(f"{API}/repos/octo/hello") == ("octo", "hello")

    def test_owner_repo_from_html_url(self):
        assert owner_repo_from_url("https://github.com/octo/hello/") == ("octo", "hello")

    def test_owner_repo_too_short(self):
        with pytest.raises(ValueError):
            owner_repo_from_url("https://github.com/octo")

    def test_event_summary(self):
        event = {"type": "PushEvent", "repo": {"name": "octo/hello"}}
        assert event_summary(event) == "pushed to octo/hello"
        assert event_summary({"type": "WatchEvent", "repo": {"name": "a/b"}}) == "starred a/b"

    def test_event_summary_unknown_type(self):
        assert event_summary({"type": "GollumEvent", "repo": {"name": "a/b"}}) == "GollumEvent"

    def test_extract_patch_small_files(self):
        files = [
            {"filename": "a.py", "patch": "+x"},
            {"filename": "bin.png"},
            {"filename": "b.py", "patch": "-y"},
        ]
        assert extract_patch(files) == "--- a.py ---\n+x\n--- b.py ---\n-y\n"

    def test_extract_patch_truncates_each_file(self):
        out = extract_patch([{"filename": "big.py", "patch": "x" * 5000}])
        assert out == "--- big.py ---\n" + "x" * MAX_PATCH_LEN + PATCH_TRUNCATED

    def test_extract_patch_stops_at_aggregate_cap(self):
        files = [{"filename": f"f{i}.py", "patch": "x" * 5000} for i in range(6)]
        out = extract_patch(files)
        assert out.count(" ---\n") == 3
        assert "f3.py" not in out

    def test_file_classifiers(self):
        assert fetchers.is_workflow_file(".github/workflows/ci.yml")
        assert not fetchers.is_workflow_file(".github/ci.yml")
        assert fetchers.is_interesting_file("cmd/tool/main.go")
        assert fetchers.is_interesting_file("Dockerfile")
        assert fetchers.is_source_file("pkg/util.rs")
        assert not fetchers.is_source_file("README.md")


# ── required sources ─────────────────────────────────────────────────


class TestRequiredSources:
    def test_fetch_profile(self):
        routes = {
            "/users/alice": {
                "login": "alice",
                "name": "Alice",
                "bio": None,
                "followers": 12,
                "created_at": "2015-03-04T05:06:07Z",
            }
        }
        profile = run_with_github(routes, lambda gh: fetchers.fetch_profile(gh, "alice"))
        assert profile.name == "Alice"
        assert profile.bio == ""
        assert profile.followers == 12
        assert profile.created_at.year == 2015

    def test_fetch_profile_readme(self):
        routes = {"/repos/alice/alice/readme": contents_payload("# Hi, I'm Alice")}
        readme = run_with_github(routes, lambda gh: fetchers.fetch_profile_readme(gh, "alice"))
        assert readme == "# Hi, I'm Alice"

    def test_fetch_profile_readme_bad_base64(self):
        routes = {"/repos/alice/alice/readme": {"encoding": "base64", "content": "abc"}}
        readme = run_with_github(routes, lambda gh: fetchers.fetch_profile_readme(gh, "alice"))
        assert readme == ""

    def test_fetch_repos_all_pages_sorted_by_push(self):
        page1 = [
            make_repo_payload(name="old", pushed_at="2020-01-01T00:00:00Z"),
            make_repo_payload(name="new", pushed_at="2024-06-01T00:00:00Z"),
        ]
        page2 = [make_repo_payload(name="mid", pushed_at="2022-01-01T00:00:00Z")]
        routes = {"/users/alice/repos": _paged([page1, page2])}
        calls = []
        repos = run_with_github(routes, lambda gh: fetchers.fetch_repos(gh, "alice"), calls)
        assert [r["name"] for r in repos] == ["new", "mid", "old"]
        assert calls[0].url.params["type"] == "all"

    def test_fetch_repos_error_propagates(self):
        routes = {"/users/alice/repos": httpx.Response(500)}
        with pytest.raises(httpx.HTTPStatusError):
            run_with_github(routes, lambda gh: fetchers.fetch_repos(gh, "alice"))


# ── per-repository sources ───────────────────────────────────────────


class TestRepoSources:
    def test_fetch_commits_samples_patches(self):
        commits = [
            {"sha": f"sha{i:02d}", "commit": {"message": f"m{i}", "author": {"date": "2024-01-01T00:00:00Z"}}}
            for i in range(30)
        ]
        routes = {"/repos/alice/proj/commits": commits}
        for c in commits:
            routes[f"/repos/alice/proj/commits/{c['sha']}"] = {
                "files": [{"filename": "a.py", "patch": "+1"}],
                "stats": {"additions": 1, "deletions": 0},
            }
        calls = []
        result = run_with_github(
            routes, lambda gh: fetchers.fetch_commits(gh, "alice", "proj", "alice"), calls
        )
        assert len(result) == 30
        with_patch = [c for c in result if c.patch]
        assert len(with_patch) == fetchers.MAX_PATCHES_PER_REPO
        assert result[0].patch and result[-1].patch
        assert result[0].files_changed == 1
        assert calls[0].url.params["author"] == "alice"

    def test_fetch_commits_missing_repo_is_empty(self):
        assert run_with_github({}, lambda gh: fetchers.fetch_commits(gh, "a", "b", "a")) == []

    def test_fetch_prs_filters_author_case_insensitively(self):
        routes = {
            "/repos/alice/proj/pulls": [
                {"number": 1, "title": "mine", "user": {"login": "Alice"}, "labels": [{"name": "bug"}]},
                {"number": 2, "title": "theirs", "user": {"login": "bob"}},
            ]
        }
        prs = run_with_github(routes, lambda gh: fetchers.fetch_prs(gh, "alice", "proj", "alice"))
        assert [p.number for p in prs] == [1]
        assert prs[0].labels == ["bug"]
        assert prs[0].repo == "alice/proj"

    def test_fetch_review_comments_truncates(self):
        routes = {
            "/repos/alice/proj/pulls/comments": [
                {
                    "user": {"login": "alice"},
                    "body": "b" * 3000,
                    "path": "x.py",
                    "diff_hunk": "h" * 5000,
                },
                {"user": {"login": "bob"}, "body": "not mine", "diff_hunk": "@@"},
            ]
        }
        comments = run_with_github(
            routes, lambda gh: fetchers.fetch_review_comments(gh, "alice", "proj", "alice")
        )
        assert len(comments) == 1
        assert comments[0].body == "b" * fetchers.REVIEW_BODY_LEN + "..."
        assert comments[0].diff_hunk == "h" * fetchers.DIFF_HUNK_LEN + "..."

    def test_pr_conversation_comments_skip_own_prs(self):
        routes = {
            "/repos/alice/proj/pulls": [
                {"number": 1, "user": {"login": "alice"}},
                {"number": 2, "user": {"login": "bob"}},
            ],
            "/repos/alice/proj/issues/2/comments": [
                {"user": {"login": "alice"}, "body": "LGTM once CI passes"},
                {"user": {"login": "bob"}, "body": "thanks"},
            ],
        }
        calls = []
        comments = run_with_github(
            routes,
            lambda gh: fetchers.fetch_pr_conversation_comments(gh, "alice", "proj", "alice"),
            calls,
        )
        assert [c.body for c in comments] == ["LGTM once CI passes"]
        assert not any(r.url.path.endswith("/issues/1/comments") for r in calls)

    def test_fetch_code_samples_prefers_workflows(self):
        tree = {
            "tree": [
                {"path": "README.md", "type": "blob", "size": 10},
                {"path": "pkg/util.go", "type": "blob", "size": 10},
                {"path": "main.py", "type": "blob", "size": 10},
                {"path": "huge.py", "type": "blob", "size": 10 * 1024 * 1024},
                {"path": ".github/workflows/ci.yml", "type": "blob", "size": 10},
                {"path": "pkg", "type": "tree"},
            ]
        }
        routes = {
            "/repos/alice/proj/git/trees/HEAD": tree,
            "/repos/alice/proj/contents/.github/workflows/ci.yml": contents_payload("on: push"),
            "/repos/alice/proj/contents/main.py": contents_payload("print('hi')"),
            "/repos/alice/proj/contents/pkg/util.go": contents_payload("package pkg"),
        }
        samples = run_with_github(
            routes, lambda gh: fetchers.fetch_code_samples(gh, "alice", "proj")
        )
        assert [s.path for s in samples] == [".github/workflows/ci.yml", "main.py", "pkg/util.go"]
        assert samples[1].content == "print('hi')"

    def test_fetch_releases_by_author(self):
        routes = {
            "/repos/alice/proj/releases": [
                {"tag_name": "v1.0", "name": "First", "body": "notes", "author": {"login": "alice"}},
                {"tag_name": "v0.9", "author": {"login": "bot"}},
            ]
        }
        releases = run_with_github(
            routes, lambda gh: fetchers.fetch_releases(gh, "alice", "proj", "alice")
        )
        assert [r.tag_name for r in releases] == ["v1.0"]


# ── user-level sources ───────────────────────────────────────────────


class TestUserSources:
    def test_starred_keeps_partial_result_on_error(self):
        page1 = [{"name": "a", "full_name": "x/a", "language": "Go", "stargazers_count": 3}]
        routes = {"/users/alice/starred": _paged([page1, httpx.Response(500)])}
        starred = run_with_github(routes, lambda gh: fetchers.fetch_starred_repos(gh, "alice"))
        assert [s.full_name for s in starred] == ["x/a"]

    def test_gists(self):
        routes = {
            "/users/alice/gists": [
                {
                    "id": "g1",
                    "description": "snippet",
                    "public": True,
                    "files": {"a.py": {"language": "Python"}, "notes": {"language": None}},
                }
            ]
        }
        gists = run_with_github(routes, lambda gh: fetchers.fetch_gists(gh, "alice"))
        assert gists[0].id == "g1"
        assert [(f.name, f.language) for f in gists[0].files] == [("a.py", "Python"), ("notes", "")]

    def test_orgs_error_is_empty(self):
        assert run_with_github({}, lambda gh: fetchers.fetch_orgs(gh, "alice")) == []

    def test_events_capped(self):
        events = [{"type": "PushEvent", "repo": {"name": "a/b"}} for _ in range(100)]
        routes = {"/users/alice/events/public": _paged([events] * 4)}
        result = run_with_github(routes, lambda gh: fetchers.fetch_events(gh, "alice"))
        assert len(result) == fetchers.MAX_EVENTS
        assert result[0].summary == "pushed to a/b"

    def test_authored_issues(self):
        items = [
            {
                "repository_url": f"{API}/repos/octo/hello",
                "number": 4,
                "title": "Crash on empty input",
                "state": "open",
                "labels": [{"name": "bug"}],
            }
        ]
        routes = {"/search/issues": _paged([items], key="items")}
        calls = []
        issues = run_with_github(routes, lambda gh: fetchers.fetch_authored_issues(gh, "alice"), calls)
        assert issues[0].repo == "octo/hello"
        assert issues[0].labels == ["bug"]
        assert calls[0].url.params["q"] == "author:alice is:issue"

    def test_external_prs_fetch_stats(self):
        items = [
            {
                "repository_url": f"{API}/repos/octo/hello",
                "number": 9,
                "title": "Fix typo",
                "state": "closed",
                "pull_request": {"url": f"{API}/repos/octo/hello/pulls/9"},
            }
        ]
        routes = {
            "/search/issues": _paged([items], key="items"),
            "/repos/octo/hello/pulls/9": {"additions": 3, "deletions": 1, "changed_files": 1},
        }
        prs = run_with_github(routes, lambda gh: fetchers.fetch_external_prs(gh, "alice"))
        assert prs[0].repo == "octo/hello"
        assert (prs[0].additions, prs[0].deletions, prs[0].changed_files) == (3, 1, 1)

    def test_issue_comments_filtered_by_user(self):
        items = [{"repository_url": f"{API}/repos/octo/hello", "number": 5}]
        routes = {
            "/search/issues": _paged([items], key="items"),
            "/repos/octo/hello/issues/5/comments": [
                {"user": {"login": "ALICE"}, "body": "repro attached"},
                {"user": {"login": "bob"}, "body": "thanks"},
            ],
        }
        comments = run_with_github(routes, lambda gh: fetchers.fetch_issue_comments(gh, "alice"))
        assert [(c.repo, c.body) for c in comments] == [("octo/hello", "repro attached")]

    def test_external_reviews_skip_crawled_repos(self):
        search = {
            "items": [
                {"repository_url": f"{API}/repos/alice/proj", "number": 1},
                {"repository_url": f"{API}/repos/octo/hello", "number": 7},
                {"repository_url": f"{API}/repos/octo/quiet", "number": 2},
            ]
        }
        routes = {
            "/search/issues": search,
            "/repos/octo/hello/pulls/7/comments": [
                {"user": {"login": "alice"}, "body": "nit", "path": "a.go", "diff_hunk": "@@"}
            ],
            "/repos/octo/hello/issues/7/comments": [{"user": {"login": "alice"}, "body": "ping"}],
            "/repos/octo/quiet/pulls/2/comments": [{"user": {"login": "bob"}, "body": "x"}],
        }
        calls = []
        repos = run_with_github(
            routes,
            lambda gh: fetchers.fetch_external_reviews(gh, "alice", {"alice/proj"}),
            calls,
        )
        assert [r.full_name for r in repos] == ["octo/hello"]
        assert [c.body for c in repos[0].review_comments] == ["nit"]
        assert [c.body for c in repos[0].pr_comments] == ["ping"]
        assert not any("/repos/alice/proj/" in r.url.path for r in calls)
