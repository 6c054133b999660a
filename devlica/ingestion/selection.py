"""Choosing what to crawl deeply.

select_diverse_repos picks the repositories that get the expensive per-repo
crawl; spread_indices picks which commits of a repository get their diff
fetched. Both prefer coverage over recency.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


def spread_indices(total: int, count: int) -> list[int]:
    """Return count evenly spaced indices into a list of length total.

    Index i is floor(i * (total - 1) / (count - 1)), so the first and last
    index are always included when count >= 2.
    """
    if total <= 0 or count <= 0:
        return []
    if count >= total:
        return list(range(total))
    if count == 1:
        return [0]
    return [i * (total - 1) // (count - 1) for i in range(count)]


def _is_owned_source(repo: dict[str, Any], username: str) -> bool:
    owner = (repo.get("owner") or {}).get("login") or ""
    return owner.lower() == username.lower() and not repo.get("fork")


def select_diverse_repos(
    repos: list[dict[str, Any]], max_repos: int, username: str
) -> list[dict[str, Any]]:
    """Pick up to max_repos repositories spread across languages and time.

    1. Round-robin over the languages of owned, non-fork repos until half the
       budget is used.
    2. Fill from the remaining owned, non-fork repos ordered by creation
       date, sampled at even intervals so old and new work both appear.
    3. Fill from forks and repos owned by someone else, most starred first.

    The result keeps the order of the input list.
    """
    if len(repos) <= max_repos:
        return list(repos)

    selected: set[int] = set()

    buckets: dict[str, list[int]] = {}
    for i, repo in enumerate(repos):
        if _is_owned_source(repo, username):
            buckets.setdefault(repo.get("language") or "_none", []).append(i)

    lang_budget = max(max_repos // 2, 1)
    depth = 0
    while len(selected) < lang_budget:
        picked = False
        for indices in buckets.values():
            if depth < len(indices) and len(selected) < lang_budget:
                selected.add(indices[depth])
                picked = True
        if not picked:
            break
        depth += 1

    remaining = max_repos - len(selected)
    if remaining > 0:
        by_age = sorted(
            (i for i, r in enumerate(repos) if i not in selected and _is_owned_source(r, username)),
            key=lambda i: repos[i].get("created_at") or "",
        )
        step = max(len(by_age) // remaining, 1)
        for pos in range(0, len(by_age), step):
            if len(selected) >= max_repos:
                break
            selected.add(by_age[pos])

    remaining = max_repos - len(selected)
    if remaining > 0:
        others = sorted(
            (i for i, r in enumerate(repos) if i not in selected and not _is_owned_source(r, username)),
            key=lambda i: repos[i].get("stargazers_count") or 0,
            reverse=True,
        )
        selected.update(others[:remaining])

    logger.debug(
        "selected %d of %d repos across %d languages",
        len(selected),
        len(repos),
        len(buckets),
    )
    return [repos[i] for i in sorted(selected)]
