#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
"""Print a Markdown summary of one week of contributions.

The week runs from Monday 00:00 to the following Monday 00:00 in the chosen
timezone. Without ``--week-of``, a run on Monday through Wednesday reports
on the previous week and a run on Thursday through Sunday reports on the
current one::

    python snippets.py --username octocat --email octocat@example.com
"""
from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

import pytz

import fetch_gerrit_activity
import fetch_github_activity
from contributions import Changelist, Issue
from corpus import QueryCache

SEPARATOR = "----------------------------------------------"
# Runs early in the week are assumed to be about the week that just ended.
_PREVIOUS_WEEK_WEEKDAYS = (0, 1, 2)  # Monday, Tuesday, Wednesday


def infer_time_range(now: datetime, week_of: Optional[str] = None) -> Tuple[datetime, datetime]:
    """Return the (Monday, next Monday) pair bounding the week to report on."""
    if week_of:
        day = datetime.strptime(week_of, "%Y-%m-%d").date()
    else:
        day = now.date()
        if day.weekday() in _PREVIOUS_WEEK_WEEKDAYS:
            day -= timedelta(days=day.weekday() + 1)
    monday = day - timedelta(days=day.weekday())
    start = datetime(monday.year, monday.month, monday.day)
    end = start + timedelta(days=7)
    tz = now.tzinfo
    if tz is None:
        return start, end
    if hasattr(tz, "localize"):
        # pytz zones need localize() to pick the right DST offset.
        return tz.localize(start), tz.localize(end)
    return start.replace(tzinfo=tz), end.replace(tzinfo=tz)


def split_merged(cls: Sequence[Changelist]) -> Tuple[List[Changelist], List[Changelist]]:
    merged = [cl for cl in cls if cl.merged()]
    in_progress = [cl for cl in cls if not cl.merged()]
    return merged, in_progress


def _cl_line(cl: Changelist) -> str:
    return f"* [CL {cl.number}]({cl.link}): {cl.subject}"


def _pr_line(pr: Changelist) -> str:
    return f"* [{pr.repo}#{pr.number}]({pr.link}): {pr.subject}"


def _section(lines: List[str], heading: str, items: Sequence[Changelist], fmt) -> None:
    if not items:
        return
    if len(lines) > 1:
        lines.append("")
    lines.append(f"## {heading}")
    lines.append("")
    lines.extend(fmt(item) for item in items)


def render_snippets(gerrit: Optional[Tuple[List[Changelist], List[Changelist], List[Issue]]] = None,
                    github: Optional[Tuple[List[Changelist], List[Changelist], List[Issue]]] = None,
                    project_name: str = "golang/go") -> str:
    """Render (authored, reviewed, issues) tuples for each source as Markdown."""
    lines = [SEPARATOR]
    if gerrit is not None:
        authored, reviewed, issues = gerrit
        merged, in_progress = split_merged(authored)
        _section(lines, "CLs Merged", merged, _cl_line)
        _section(lines, "CLs In Progress", in_progress, _cl_line)
        _section(lines, "CLs Reviewed", reviewed, _cl_line)
        if issues:
            lines.extend(["", f"### Commented on {len(issues)} {project_name} issues"])
    if github is not None:
        authored, reviewed, issues = github
        merged, in_progress = split_merged(authored)
        _section(lines, "PRs Merged", merged, _pr_line)
        _section(lines, "PRs In Progress", in_progress, _pr_line)
        _section(lines, "PRs Reviewed", reviewed, _pr_line)
        if issues:
            lines.extend(["", f"### Commented on {len(issues)} GitHub issues"])
    return "\n".join(lines) + "\n"


def main() -> None:
    parser = argparse.ArgumentParser(description="Summarize one week of contributions as Markdown.")
    parser.add_argument("--username", default="", help="GitHub username")
    parser.add_argument("--email", default="", help="Gerrit email or emails, comma-separated")
    parser.add_argument("--week-of", default=None, help="Any date (YYYY-MM-DD) in the week to report on")
    parser.add_argument("--timezone", default="UTC", help="Timezone that defines the week boundaries")
    parser.add_argument("--gerrit", action=argparse.BooleanOptionalAction, default=True,
                        help="Collect data on Gerrit changelists and project issues")
    parser.add_argument("--github", action=argparse.BooleanOptionalAction, default=True,
                        help="Collect data on GitHub issues and pull requests")
    parser.add_argument("--gerrit-url", default=fetch_gerrit_activity.DEFAULT_GERRIT_URL)
    parser.add_argument("--project-repo", default="golang/go",
                        help="GitHub repository whose issues are reported alongside Gerrit")
    parser.add_argument("--no-cache", action="store_true", help="Always fetch fresh data")
    args = parser.parse_args()

    if args.github and not args.username:
        raise SystemExit("Please provide a GitHub username.")
    if args.gerrit and not args.email:
        raise SystemExit("Please provide your Gerrit email.")
    emails = [e for e in args.email.split(",") if e]

    try:
        tz = pytz.timezone(args.timezone)
    except pytz.UnknownTimeZoneError:
        raise SystemExit(f"Unknown timezone: {args.timezone}")
    start, end = infer_time_range(datetime.now(tz), args.week_of)
    logging.info("Generating snippets for the week from %s to %s",
                 start.strftime("%m-%d-%Y"), end.strftime("%m-%d-%Y"))

    cache = None if args.no_cache else QueryCache()
    gerrit = github = None
    if args.gerrit:
        rest = fetch_gerrit_activity.make_rest(args.gerrit_url)
        authored, reviewed = fetch_gerrit_activity.changelists(rest, emails, start, end, cache=cache)
        owner, _, repo = args.project_repo.partition("/")
        issues = []
        if args.username:
            issues = fetch_github_activity.project_issues(args.username, owner, repo, start, end, cache=cache)
        gerrit = (authored, reviewed, issues)
    if args.github:
        github = fetch_github_activity.issues_and_prs(args.username, start, end, cache=cache)

    if cache is not None:
        cache.log_stats()
    print(render_snippets(gerrit, github, project_name=args.project_repo))


if __name__ == "__main__":
    main()
