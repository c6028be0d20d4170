#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0

"""Plot how many issues of a project were open on each day.

Feature requests (issues carrying the ``FeatureRequest`` label) are drawn
separately from everything else. Issues transferred to another repository
are left out. Each ``--repos`` entry is ``owner/repo`` or
``owner/repo:label``; the latter only counts issues with that label::

    python plot_issue_activity.py --since 2023-01-01 \\
        --repos golang/vscode-go,golang/go:gopls
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

import matplotlib.pyplot as plt
import pandas as pd

import fetch_github_activity
from contributions import Issue
from corpus import QueryCache

FEATURE_REQUEST_LABEL = "FeatureRequest"
DEFAULT_REPOS = "golang/vscode-go,golang/go:gopls"


def is_feature_request(issue: Issue) -> bool:
    return FEATURE_REQUEST_LABEL in issue.labels


def parse_repo_spec(entry: str) -> Tuple[str, str, Optional[str]]:
    """Split 'owner/repo[:label]' into its parts."""
    repo_part, _, label = entry.strip().partition(":")
    owner, _, repo = repo_part.partition("/")
    if not owner or not repo:
        raise ValueError(f"Expected owner/repo[:label], got {entry!r}")
    return owner, repo, label or None


def average_time_to_close(issues: Sequence[Issue]) -> Optional[timedelta]:
    durations = [i.date_closed - i.date_opened for i in issues if i.closed() and i.date_opened]
    if not durations:
        return None
    return sum(durations, timedelta()) / len(durations)


def count_open_issues_by_day(issues: Sequence[Issue], start: datetime, end: datetime) -> pd.DataFrame:
    """Return per-day counts of open feature requests and other issues, start and end inclusive.

    An issue counts as open on the days strictly between the day it was opened
    and the day it was closed. Issues that are still open count through the
    last day.
    """
    days = pd.date_range(start.date(), end.date(), freq="D")
    counts = pd.DataFrame(0, index=days, columns=["Feature requests", "Other issues"])
    for issue in issues:
        if issue.transferred or issue.date_opened is None:
            continue
        opened = pd.Timestamp(issue.date_opened.date())
        closed = pd.Timestamp(issue.date_closed.date()) if issue.date_closed else days[-1] + pd.Timedelta(days=1)
        column = "Feature requests" if is_feature_request(issue) else "Other issues"
        counts.loc[(counts.index > opened) & (counts.index < closed), column] += 1
    return counts


def plot_counts(counts: pd.DataFrame, title: str, filename: str) -> None:
    plt.figure(figsize=(10, 6))
    for column in counts.columns:
        plt.plot(counts.index, counts[column], label=column)
    plt.xlabel("Time")
    plt.ylabel("Issues")
    plt.title(title)
    plt.legend(loc="upper left")
    plt.savefig(filename)
    plt.close()
    logging.info(f"Plot saved as {filename}")


def issues_to_graph(filename: str, issues: List[Issue], start: datetime, end: datetime) -> pd.DataFrame:
    kept = [i for i in issues if not i.transferred]
    average = average_time_to_close(kept)
    if average is not None:
        logging.info(f"Average time to close an issue is {average}.")
    counts = count_open_issues_by_day(kept, start, end)
    plot_counts(counts, filename, filename)
    return counts


def main() -> None:
    parser = argparse.ArgumentParser(description="Plot open issue counts per day.")
    parser.add_argument("--since", default="", help="Date (YYYY-MM-DD) from which to collect data")
    parser.add_argument("--repos", default=DEFAULT_REPOS,
                        help="Comma-separated owner/repo[:label] entries to plot")
    parser.add_argument("--no-cache", action="store_true", help="Always fetch fresh data")
    args = parser.parse_args()

    if args.since:
        start = datetime.strptime(args.since, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    else:
        start = datetime(1900, 1, 1, tzinfo=timezone.utc)
    end = datetime.now(timezone.utc)
    cache = None if args.no_cache else QueryCache()

    for entry in args.repos.split(","):
        if not entry.strip():
            continue
        try:
            owner, repo, label = parse_repo_spec(entry)
        except ValueError as e:
            raise SystemExit(str(e))
        issues = fetch_github_activity.project_issues("", owner, repo, start, end, cache=cache)
        if label:
            issues = [i for i in issues if label in i.labels]
        filename = f"{label or repo}.png"
        issues_to_graph(filename, issues, start, end)

    if cache is not None:
        cache.log_stats()


if __name__ == "__main__":
    main()
