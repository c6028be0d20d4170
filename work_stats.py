#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0
"""Report a person's issues, pull requests and code reviews as CSV and Excel tables.

Two sources are consulted:

* a Gerrit server (``--gerrit``), for changelists the user authored or
  reviewed, together with the issues of the project's GitHub repository
  (``--project-repo``);
* GitHub (``--github``), for issues and pull requests anywhere else.

Every table is written as ``<title>.csv`` into ``--output-dir`` (a fresh
temporary directory by default). With ``--sheets new`` the tables are also
written to a new workbook in the output directory; with ``--sheets
path/to/book.xlsx`` they are added to an existing one. Workbooks are local
.xlsx files; no online spreadsheet service is involved::

    GITHUB_TOKEN=... python work_stats.py --username octocat \\
        --email octocat@example.com --since 2024-01-01 --sheets new
"""
from __future__ import annotations

import argparse
import logging
import os
import tempfile
from datetime import datetime, timezone
from typing import Dict, List

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

import cells
import fetch_gerrit_activity
import fetch_github_activity
import write_reports
from corpus import QueryCache

# Without --since, results reflect all history.
ALL_HISTORY_START = datetime(1900, 1, 1, tzinfo=timezone.utc)


def parse_since(since: str) -> datetime:
    if not since:
        return ALL_HISTORY_START
    try:
        return datetime.strptime(since, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        raise SystemExit(f"Invalid --since date (expected YYYY-MM-DD): {since}")


def report_name(username: str, email: str) -> str:
    if username:
        return username
    return email.split(",")[0].split("@")[0]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect contribution statistics from Gerrit and GitHub.")
    parser.add_argument("--username", default="", help="GitHub username")
    parser.add_argument("--email", default="", help="Gerrit email or emails, comma-separated")
    parser.add_argument("--since", default="", help="Date (YYYY-MM-DD) from which to collect data")
    parser.add_argument("--gerrit", action=argparse.BooleanOptionalAction, default=True,
                        help="Collect data on Gerrit changelists and project issues")
    parser.add_argument("--github", action=argparse.BooleanOptionalAction, default=True,
                        help="Collect data on GitHub issues and pull requests")
    parser.add_argument("--gerrit-url", default=fetch_gerrit_activity.DEFAULT_GERRIT_URL,
                        help="Root URL of the Gerrit server")
    parser.add_argument("--project-repo", default="golang/go",
                        help="GitHub repository whose issues are reported alongside Gerrit")
    parser.add_argument("--output-dir", default=None,
                        help="Directory for CSV output (default: a new temporary directory)")
    parser.add_argument("--sheets", default="",
                        help='Also write a local Excel (.xlsx) workbook rather than an online spreadsheet: '
                             '"" for none, "new" to create one in the output directory, or the path of an '
                             'existing .xlsx to add sheets to')
    parser.add_argument("--no-cache", action="store_true", help="Always fetch fresh data")
    return parser


def collect_gerrit_tables(args, emails: List[str], start: datetime, end: datetime, cache) -> Dict[str, List[cells.Row]]:
    owner, _, repo = args.project_repo.partition("/")
    prefix = owner or "project"
    tables: Dict[str, List[cells.Row]] = {}
    if args.username:
        issues = fetch_github_activity.project_issues(args.username, owner, repo, start, end, cache=cache)
        tables[f"{prefix}-issues"] = cells.issues_to_rows(args.username, issues)
    rest = fetch_gerrit_activity.make_rest(args.gerrit_url)
    authored, reviewed = fetch_gerrit_activity.changelists(rest, emails, start, end, cache=cache)
    tables[f"{prefix}-authored"] = cells.authored_changelists_to_rows(authored)
    tables[f"{prefix}-reviewed"] = cells.reviewed_changelists_to_rows(reviewed)
    return tables


def collect_github_tables(args, start: datetime, end: datetime, cache) -> Dict[str, List[cells.Row]]:
    authored, reviewed, issues = fetch_github_activity.issues_and_prs(args.username, start, end, cache=cache)
    return {
        "github-issues": cells.issues_to_rows(args.username, issues),
        "github-prs-authored": cells.authored_changelists_to_rows(authored),
        "github-prs-reviewed": cells.reviewed_changelists_to_rows(reviewed),
    }


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)

    # Username and email are required for the sources that use them.
    if args.github and not args.username:
        raise SystemExit("Please provide a GitHub username.")
    if args.gerrit and not args.email:
        raise SystemExit("Please provide your Gerrit email.")
    emails = [e.strip() for e in args.email.split(",") if e.strip()]

    start = parse_since(args.since)
    end = datetime.now(timezone.utc)

    if args.sheets not in ("", "new") and not os.path.exists(args.sheets):
        raise SystemExit(f"Workbook not found: {args.sheets}")

    output_dir = args.output_dir or tempfile.mkdtemp(prefix="work-stats")
    cache = None if args.no_cache else QueryCache()

    tables: Dict[str, List[cells.Row]] = {}
    if args.gerrit:
        tables.update(collect_gerrit_tables(args, emails, start, end, cache))
    if args.github:
        tables.update(collect_github_tables(args, start, end, cache))

    write_reports.write_csv(output_dir, tables)
    if cache is not None:
        cache.log_stats()

    if not args.sheets:
        return
    if args.sheets == "new":
        title = write_reports.workbook_title(report_name(args.username, args.email), start)
        path = write_reports.write_workbook(os.path.join(output_dir, f"{title}.xlsx"), tables)
    else:
        path = write_reports.write_workbook(args.sheets, tables, append=True)
    logging.info(f"Wrote data to workbook: {path}")


if __name__ == "__main__":
    main()
