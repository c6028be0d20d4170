# SPDX-License-Identifier: Apache-2.0

"""
Collect the changelists a user authored or reviewed on a Gerrit server.

Gerrit identifies people by numeric account ID, and on googlesource hosts
review messages are frequently attributed to an anonymized "Gerrit User
<id>" rather than an email address. Reviews are therefore matched against
the account IDs learned from the user's own changes, with the email as a
fallback. A user who has never authored a change cannot have their reviews
matched, which is reported as an error.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime, timezone
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple
from urllib.parse import quote

from pygerrit2 import GerritRestAPI
from requests.auth import HTTPBasicAuth

from contributions import Changelist, ChangelistStatus, Issue, in_scope, parse_timestamp
from corpus import QueryCache, cached_call

DEFAULT_GERRIT_URL = "https://go-review.googlesource.com"
PAGE_SIZE = 100
QUERY_OPTIONS = ["DETAILED_ACCOUNTS", "CURRENT_REVISION", "CURRENT_COMMIT", "CURRENT_FILES", "MESSAGES"]

# Bot accounts that own changes imported from GitHub pull requests.
GOBOT_ID = 5976
GERRITBOT_ID = 12446
BOT_IDS = frozenset({GOBOT_ID, GERRITBOT_ID})

# Bare "#123" references in commit messages point at this repository.
DEFAULT_ISSUE_REPO = "golang/go"
ISSUE_REF_RE = re.compile(r"^(?:Fixes|Updates|For)\s+((?:[\w.-]+/[\w.-]+)?#\d+(?:,\s*(?:[\w.-]+/[\w.-]+)?#\d+)*)",
                          re.MULTILINE | re.IGNORECASE)
_SINGLE_REF_RE = re.compile(r"(?:([\w.-]+/[\w.-]+))?#(\d+)")
_GERRIT_USER_RE = re.compile(r"^Gerrit User (\d+)$")

COMMIT_MSG_FILE = "/COMMIT_MSG"


class NoAuthoredChangelistsError(RuntimeError):
    """The user has never authored a change, so their reviewer ID cannot be matched."""


class OwnerKey(NamedTuple):
    project: str
    branch: str
    status: str


def make_rest(url: str = DEFAULT_GERRIT_URL) -> GerritRestAPI:
    """Return a REST client, authenticated if GERRIT_USERNAME/GERRIT_PASSWORD are set."""
    username = os.environ.get("GERRIT_USERNAME")
    password = os.environ.get("GERRIT_PASSWORD")
    if username and password:
        return GerritRestAPI(url=url, auth=HTTPBasicAuth(username, password))
    return GerritRestAPI(url=url)


def gerrit_host(rest) -> str:
    """Return the server root of a REST client, without the authenticated "/a/" prefix."""
    url = getattr(rest, "url", DEFAULT_GERRIT_URL).rstrip("/")
    if url.endswith("/a"):
        url = url[:-2]
    return url


def format_gerrit_time(dt: datetime) -> str:
    # Gerrit reads a zone-less timestamp as UTC.
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def query_changes(rest, query: str, cache: Optional[QueryCache] = None) -> List[dict]:
    """Run a change query, following the _more_changes/S= pagination convention."""
    options = "&".join(f"o={o}" for o in QUERY_OPTIONS)

    def fetch():
        changes = []
        offset = 0
        while True:
            endpoint = f"/changes/?q={quote(query, safe=':')}&n={PAGE_SIZE}&S={offset}&{options}"
            logging.info(f"Querying Gerrit for '{query}' (offset {offset})...")
            chunk = rest.get(endpoint)
            if not chunk:
                break
            changes.extend(chunk)
            if not chunk[-1].get("_more_changes", False):
                break
            offset += len(chunk)
        return changes

    return cached_call(cache, "gerrit", {"host": gerrit_host(rest), "query": query}, fetch)


def person_to_id(name: Optional[str]) -> int:
    """Return the account ID of a name of the form 'Gerrit User 1234', or -1."""
    if not name:
        return -1
    match = _GERRIT_USER_RE.match(name)
    if not match:
        return -1
    return int(match.group(1))


def account_id(account: Optional[dict]) -> int:
    if not account:
        return -1
    if "_account_id" in account:
        return int(account["_account_id"])
    return person_to_id(account.get("name"))


def owner_email(change: dict) -> str:
    return (change.get("owner") or {}).get("email", "")


def owner_key(change: dict) -> OwnerKey:
    return OwnerKey(change.get("project", ""), change.get("branch", ""), change.get("status", "").lower())


def _current_revision(change: dict) -> dict:
    revisions = change.get("revisions") or {}
    current = change.get("current_revision")
    if current and current in revisions:
        return revisions[current]
    if revisions:
        return next(iter(revisions.values()))
    return {}


def commit_message(change: dict) -> str:
    return (_current_revision(change).get("commit") or {}).get("message", "")


def commit_time(change: dict) -> Optional[datetime]:
    committer = (_current_revision(change).get("commit") or {}).get("committer") or {}
    return parse_timestamp(committer.get("date")) or parse_timestamp(change.get("updated"))


def footer(message: str, key: str) -> str:
    """Return the value of the last 'Key: value' footer line, or ''."""
    value = ""
    for line in message.splitlines():
        if line.startswith(key):
            value = line[len(key):].strip()
    return value


def is_abandoned(change: dict) -> bool:
    return change.get("status", "").lower() == "abandoned"


def change_link(host: str, project: str, number: int) -> str:
    return f"{host}/c/{project}/+/{number}"


def owner_ids(changes: Iterable[dict], emailset: Set[str], host: str = DEFAULT_GERRIT_URL) -> Dict[OwnerKey, int]:
    """Map (project, branch, status) to the account ID the user owns changes under."""
    ids: Dict[OwnerKey, int] = {}
    for change in changes:
        if owner_email(change) not in emailset:
            continue
        owner_id = account_id(change.get("owner"))
        # Changes imported from pull requests are owned by a bot.
        if owner_id in BOT_IDS:
            continue
        if is_abandoned(change):
            continue
        key = owner_key(change)
        if key not in ids:
            ids[key] = owner_id
        elif ids[key] != owner_id:
            # Cherry-picks carry the ID of whoever picked them.
            if footer(commit_message(change), "Reviewed-on:"):
                continue
            logging.warning(
                f"Conflicting owner IDs (have {ids[key]}, got {owner_id}) caused by "
                f"{change_link(host, key.project, change.get('_number', 0))} with key {key}. Ignoring that CL."
            )
    if not ids:
        raise NoAuthoredChangelistsError(
            "unable to collect review data, user has never authored a CL, so the reviewer ID cannot be matched"
        )
    return ids


def associated_issues(message: str, default_repo: str = DEFAULT_ISSUE_REPO) -> List[Issue]:
    issues = []
    seen = set()
    for match in ISSUE_REF_RE.finditer(message):
        for repo, number in _SINGLE_REF_RE.findall(match.group(1)):
            repo = repo or default_repo
            key = (repo, int(number))
            if key in seen:
                continue
            seen.add(key)
            issues.append(Issue(
                number=int(number),
                repo=repo,
                link=f"https://github.com/{repo}/issues/{number}",
            ))
    return issues


def gerrit_to_changelist(change: dict, host: str = DEFAULT_GERRIT_URL) -> Changelist:
    status = ChangelistStatus.from_gerrit(change.get("status"))
    message = commit_message(change)
    files = sorted(f for f in (_current_revision(change).get("files") or {}) if f != COMMIT_MSG_FILE)
    return Changelist(
        number=int(change.get("_number", 0)),
        link=change_link(host, change.get("project", ""), change.get("_number", 0)),
        subject=change.get("subject", ""),
        message=message,
        comments=[m.get("message", "") for m in change.get("messages") or []],
        branch=change.get("branch", ""),
        author=owner_email(change),
        repo=change.get("project", ""),
        status=status,
        merged_at=parse_timestamp(change.get("submitted")) if status is ChangelistStatus.MERGED else None,
        associated_issues=associated_issues(message),
        affected_files=files,
    )


def _reviewed_by(change: dict, ids: Set[int], emailset: Set[str], start: datetime, end: datetime) -> bool:
    for msg in change.get("messages") or []:
        if not in_scope(parse_timestamp(msg.get("date")), start, end):
            continue
        author = msg.get("author")
        if not author:
            continue
        if account_id(author) in ids or person_to_id(author.get("name")) in ids:
            return True
        # Some accounts are only ever recorded by email.
        if author.get("email") in emailset:
            return True
    return False


def authored_changes(rest, emails: List[str], cache: Optional[QueryCache] = None) -> List[dict]:
    """Return every change owned by one of the emails, over the whole history."""
    changes = {}
    for email in emails:
        for change in query_changes(rest, f"owner:{email}", cache=cache):
            changes[change["id"]] = change
    return list(changes.values())


def candidate_reviewed_changes(rest, emails: List[str], start: datetime,
                               cache: Optional[QueryCache] = None) -> List[dict]:
    changes = {}
    for email in emails:
        for operator in ("reviewer", "commentby"):
            query = f'{operator}:{email} -owner:{email} after:"{format_gerrit_time(start)}"'
            for change in query_changes(rest, query, cache=cache):
                changes[change["id"]] = change
    return list(changes.values())


def changelists(rest, emails: List[str], start: datetime, end: datetime,
                cache: Optional[QueryCache] = None) -> Tuple[List[Changelist], List[Changelist]]:
    """Return (authored, reviewed) changelists for the given emails between start and end."""
    host = gerrit_host(rest)
    emailset = {e.strip() for e in emails if e.strip()}

    # Owner IDs are learned from all of the user's changes, so a window
    # with only reviews in it still resolves them.
    own = authored_changes(rest, sorted(emailset), cache=cache)
    ids_by_key = owner_ids(own, emailset, host)
    ids = set(ids_by_key.values())

    authored: Dict[str, Changelist] = {}
    for change in own:
        if owner_email(change) not in emailset or is_abandoned(change):
            continue
        if not in_scope(commit_time(change), start, end):
            continue
        if ids_by_key.get(owner_key(change)) != account_id(change.get("owner")):
            continue
        cl = gerrit_to_changelist(change, host)
        authored[cl.link] = cl

    reviewed: Dict[str, Changelist] = {}
    for change in candidate_reviewed_changes(rest, sorted(emailset), start, cache=cache):
        # The owner of a change cannot be its reviewer.
        if owner_email(change) in emailset or account_id(change.get("owner")) in ids:
            continue
        # Pull requests imported as changes are reported from GitHub.
        if account_id(change.get("owner")) in BOT_IDS:
            continue
        if is_abandoned(change):
            continue
        if not _reviewed_by(change, ids, emailset, start, end):
            continue
        cl = gerrit_to_changelist(change, host)
        reviewed[cl.link] = cl

    logging.info(f"Found {len(authored)} authored and {len(reviewed)} reviewed CL(s) on {host}.")
    return (
        sorted(authored.values(), key=lambda c: c.link),
        sorted(reviewed.values(), key=lambda c: c.link),
    )
