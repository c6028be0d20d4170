# SPDX-License-Identifier: Apache-2.0

"""
Collect a user's GitHub issues and pull requests.

Everything the user is involved in is found through the issue search API
(``involves:<user>``), which returns issues and pull requests alike and caps
every query at 1000 results. To get past the cap we sort by ``updated``
ascending and, once ten pages have been read, restart the query from the
most recent ``updated_at`` seen so far.

Per-item details come from the timeline API, which covers comments, close
events and transfers in a single listing.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Dict, Iterator, List, Optional, Tuple

import requests

from contributions import Changelist, ChangelistStatus, Issue, in_scope, parse_timestamp
from corpus import QueryCache, cached_call

API_ROOT = "https://api.github.com"
PER_PAGE = 100
# The search API never returns more than 1000 results for one query.
MAX_SEARCH_PAGES = 10
REQUEST_TIMEOUT_SECONDS = 30

# Issues and changes in these organizations are reported from Gerrit, except
# for the listed repositories, which take contributions as pull requests.
EXCLUDED_ORGS = frozenset({"golang"})
INCLUDED_REPOS = frozenset({"golang/vscode-go"})

_DEFAULT_ACCEPT = "application/vnd.github.v3+json"
_TIMELINE_ACCEPT = "application/vnd.github.mockingbird-preview+json"


def github_headers(accept: str = _DEFAULT_ACCEPT) -> Dict[str, str]:
    token = os.environ.get("GITHUB_TOKEN")
    if not token:
        raise SystemExit("GITHUB_TOKEN environment variable is not configured")
    return {
        "Authorization": f"token {token}",
        "Accept": accept,
    }


def _get_json(url: str, params: Optional[dict] = None, session=None, accept: str = _DEFAULT_ACCEPT):
    http = session or requests
    response = http.get(url, params=params, headers=github_headers(accept), timeout=REQUEST_TIMEOUT_SECONDS)
    response.raise_for_status()
    return response.json()


def format_timestamp(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def search_issues(query: str, page: int, session=None, cache: Optional[QueryCache] = None) -> dict:
    params = {
        "q": query,
        "sort": "updated",
        "order": "asc",
        "per_page": PER_PAGE,
        "page": page,
    }
    return cached_call(cache, "search", params, lambda: _get_json(f"{API_ROOT}/search/issues", params, session))


def fetch_timeline_events(owner: str, repo: str, number: int, session=None,
                          cache: Optional[QueryCache] = None) -> List[dict]:
    def fetch():
        url = f"{API_ROOT}/repos/{owner}/{repo}/issues/{number}/timeline"
        events = []
        page = 1
        while True:
            data = _get_json(url, {"per_page": PER_PAGE, "page": page}, session, accept=_TIMELINE_ACCEPT)
            if not data:
                break
            events.extend(data)
            if len(data) < PER_PAGE:
                break
            page += 1
        return events

    return cached_call(cache, "timeline", {"owner": owner, "repo": repo, "number": number}, fetch)


def is_merged(owner: str, repo: str, number: int, session=None) -> bool:
    http = session or requests
    url = f"{API_ROOT}/repos/{owner}/{repo}/pulls/{number}/merge"
    response = http.get(url, headers=github_headers(), timeout=REQUEST_TIMEOUT_SECONDS)
    if response.status_code == 204:
        return True
    if response.status_code == 404:
        return False
    response.raise_for_status()
    return False


def split_repository_url(repository_url: str) -> Tuple[str, str]:
    trimmed = repository_url
    prefix = f"{API_ROOT}/repos/"
    if trimmed.startswith(prefix):
        trimmed = trimmed[len(prefix):]
    owner, _, repo = trimmed.partition("/")
    return owner, repo


def is_excluded(owner: str, repo: str) -> bool:
    return owner in EXCLUDED_ORGS and f"{owner}/{repo}" not in INCLUDED_REPOS


def _login(obj: Optional[dict]) -> str:
    return (obj or {}).get("login", "")


def search_all(qualifiers: str, start: datetime, end: datetime, session=None,
               cache: Optional[QueryCache] = None) -> Iterator[dict]:
    """Yield every search result for qualifiers updated between start and end, once each."""
    seen = set()
    last = start
    while True:
        query = f"{qualifiers} updated:{format_timestamp(last)}..{format_timestamp(end)}"
        most_recent = last
        current = 0
        for page in range(1, MAX_SEARCH_PAGES + 1):
            logging.info(f"Searching '{query}', page {page}...")
            result = search_issues(query, page, session=session, cache=cache)
            items = result.get("items") or []
            for item in items:
                url = item["html_url"]
                if url in seen:
                    continue
                seen.add(url)
                updated_at = parse_timestamp(item.get("updated_at"))
                if updated_at is not None and updated_at > most_recent:
                    most_recent = updated_at
                yield item
            current += len(items)
            if not items or current >= result.get("total_count", 0):
                return
        if most_recent <= last:
            logging.warning(f"Search window for '{qualifiers}' did not advance past {last}; stopping.")
            return
        last = most_recent


def summarize_timeline(events: List[dict], username: str, start: datetime, end: datetime) -> dict:
    """Count the user's comments in range and find who closed the issue and whether it moved."""
    comments = 0
    closed_by = ""
    closed_by_user_at = None
    transferred = False
    for event in events:
        kind = event.get("event")
        actor = _login(event.get("actor")) or _login(event.get("user"))
        created_at = parse_timestamp(event.get("created_at"))
        if kind == "commented":
            if actor == username and in_scope(created_at, start, end):
                comments += 1
        elif kind == "closed":
            closed_by = actor
            if actor == username and in_scope(created_at, start, end):
                closed_by_user_at = created_at
        elif kind == "reopened":
            closed_by = ""
        elif kind == "transferred":
            transferred = True
    return {
        "comments": comments,
        "closed_by": closed_by,
        "closed_by_user_at": closed_by_user_at,
        "transferred": transferred,
    }


def item_to_issue(item: dict, owner: str, repo: str) -> Issue:
    milestone = item.get("milestone") or {}
    return Issue(
        number=item["number"],
        link=item["html_url"],
        repo=f"{owner}/{repo}",
        title=item.get("title", ""),
        opened_by=_login(item.get("user")),
        date_opened=parse_timestamp(item.get("created_at")),
        date_closed=parse_timestamp(item.get("closed_at")),
        labels=[label.get("name", "") for label in item.get("labels") or []],
        milestone=milestone.get("title", ""),
    )


def _pull_request_merged(item: dict, owner: str, repo: str, session=None) -> bool:
    pull_request = item.get("pull_request") or {}
    if "merged_at" in pull_request:
        return bool(pull_request["merged_at"])
    return is_merged(owner, repo, item["number"], session=session)


def issues_and_prs(username: str, start: datetime, end: datetime, session=None,
                   cache: Optional[QueryCache] = None) -> Tuple[List[Changelist], List[Changelist], List[Issue]]:
    """Return (authored PRs, reviewed PRs, issues) the user was involved in between start and end."""
    authored: Dict[str, Changelist] = {}
    reviewed: Dict[str, Changelist] = {}
    issues: Dict[str, Issue] = {}

    for item in search_all(f"involves:{username}", start, end, session=session, cache=cache):
        owner, repo = split_repository_url(item.get("repository_url", ""))
        if is_excluded(owner, repo):
            continue
        link = item["html_url"]
        opened_by = _login(item.get("user"))
        closed = bool(item.get("closed_at")) or item.get("state") == "closed"

        if "pull_request" in item:
            status = ChangelistStatus.UNKNOWN
            if closed:
                # Closed without merging; this also drops PRs mirrored from
                # Gerrit, which are closed rather than merged on GitHub.
                if not _pull_request_merged(item, owner, repo, session=session):
                    continue
                status = ChangelistStatus.MERGED
            cl = Changelist(
                number=item["number"],
                link=link,
                subject=item.get("title", ""),
                author=opened_by,
                repo=f"{owner}/{repo}",
                status=status,
                merged_at=parse_timestamp(item.get("closed_at")) if status is ChangelistStatus.MERGED else None,
            )
            if opened_by == username:
                authored[link] = cl
            else:
                reviewed[link] = cl
            continue

        issue = item_to_issue(item, owner, repo)
        if not in_scope(issue.date_opened, start, end):
            issue.opened_by = ""
        events = fetch_timeline_events(owner, repo, item["number"], session=session, cache=cache)
        summary = summarize_timeline(events, username, start, end)
        issue.comments = summary["comments"]
        if summary["closed_by_user_at"]:
            issue.closed_by = username
        elif summary["closed_by"] != username:
            issue.closed_by = summary["closed_by"]
        issue.transferred = summary["transferred"]
        issues[link] = issue

    logging.info(f"Found {len(authored)} authored PR(s), {len(reviewed)} reviewed PR(s) "
                 f"and {len(issues)} issue(s) for {username}.")
    return (
        sorted(authored.values(), key=lambda c: c.link),
        sorted(reviewed.values(), key=lambda c: c.link),
        sorted(issues.values(), key=lambda i: i.link),
    )


def project_issues(username: str, owner: str, repo: str, start: datetime, end: datetime,
                   session=None, cache: Optional[QueryCache] = None) -> List[Issue]:
    """Return issues in owner/repo the user opened, closed or commented on between start and end.

    With an empty username every issue updated in the range is returned, which is
    what the trend chart wants.
    """
    qualifiers = f"repo:{owner}/{repo} is:issue"
    if username:
        qualifiers += f" involves:{username}"

    issues = []
    for item in search_all(qualifiers, start, end, session=session, cache=cache):
        if "pull_request" in item:
            continue
        issue = item_to_issue(item, owner, repo)
        events = fetch_timeline_events(owner, repo, item["number"], session=session, cache=cache)
        summary = summarize_timeline(events, username, start, end)
        issue.transferred = summary["transferred"]
        if not username:
            issue.closed_by = summary["closed_by"]
            issues.append(issue)
            continue

        opened = issue.opened_by == username and in_scope(issue.date_opened, start, end)
        closed = summary["closed_by_user_at"] is not None
        if not (opened or closed or summary["comments"]):
            continue
        issue.opened_by = username if opened else ""
        issue.closed_by = username if closed else ""
        issue.comments = summary["comments"]
        issues.append(issue)

    issues.sort(key=lambda i: (i.date_opened or start, i.link))
    logging.info(f"Found {len(issues)} {owner}/{repo} issue(s).")
    return issues


def was_transferred(owner: str, repo: str, number: int, session=None,
                    cache: Optional[QueryCache] = None) -> bool:
    events = fetch_timeline_events(owner, repo, number, session=session, cache=cache)
    return any(event.get("event") == "transferred" for event in events)
