# SPDX-License-Identifier: Apache-2.0

import logging
import os
from datetime import datetime, timezone

import openpyxl
import pytest

import fetch_gerrit_activity
import fetch_github_activity
import work_stats
from contributions import Changelist, ChangelistStatus, Issue
from corpus import QueryCache


def test_parse_since():
    assert work_stats.parse_since("2024-02-03") == datetime(2024, 2, 3, tzinfo=timezone.utc)
    assert work_stats.parse_since("") == work_stats.ALL_HISTORY_START
    with pytest.raises(SystemExit):
        work_stats.parse_since("02/03/2024")


def test_report_name():
    assert work_stats.report_name("alice", "alice@example.com") == "alice"
    assert work_stats.report_name("", "alice@example.com,a@corp.com") == "alice"


def test_username_required_for_github():
    with pytest.raises(SystemExit, match="GitHub username"):
        work_stats.main(["--no-gerrit"])


def test_email_required_for_gerrit():
    with pytest.raises(SystemExit, match="Gerrit email"):
        work_stats.main(["--no-github"])


def test_main_writes_csv_and_workbook(tmp_path, monkeypatch):
    def fake_issues_and_prs(username, start, end, session=None, cache=None):
        assert username == "alice"
        assert start == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert cache is None
        authored = [Changelist(number=1, link="https://github.com/octo/widgets/pull/1", repo="octo/widgets",
                               author="alice", subject="Add widget", status=ChangelistStatus.MERGED)]
        issues = [Issue(number=2, link="https://github.com/octo/widgets/issues/2", repo="octo/widgets",
                        title="Broken", opened_by="alice", comments=3)]
        return authored, [], issues

    monkeypatch.setattr(fetch_github_activity, "issues_and_prs", fake_issues_and_prs)

    work_stats.main([
        "--username", "alice", "--no-gerrit", "--since", "2024-01-01",
        "--output-dir", str(tmp_path), "--sheets", "new", "--no-cache",
    ])

    assert sorted(os.listdir(tmp_path)) == [
        "alice (as of 01-01-2024).xlsx",
        "github-issues.csv",
        "github-prs-authored.csv",
    ]
    workbook = openpyxl.load_workbook(tmp_path / "alice (as of 01-01-2024).xlsx")
    assert workbook.sheetnames == ["github-issues", "github-prs-authored"]


def test_main_collects_gerrit_tables(tmp_path, monkeypatch):
    def fake_project_issues(username, owner, repo, start, end, session=None, cache=None):
        assert (owner, repo) == ("golang", "go")
        return [Issue(number=5, link="https://github.com/golang/go/issues/5", repo="golang/go",
                      title="cmd/go: crash", closed_by="alice")]

    def fake_changelists(rest, emails, start, end, cache=None):
        assert emails == ["alice@example.com", "alice@corp.com"]
        reviewed = [Changelist(number=9, link="https://go-review.googlesource.com/c/tools/+/9", repo="tools",
                               author="bob@example.com", subject="gopls: tidy")]
        return [], reviewed

    monkeypatch.setattr(fetch_github_activity, "project_issues", fake_project_issues)
    monkeypatch.setattr(fetch_gerrit_activity, "make_rest", lambda url: object())
    monkeypatch.setattr(fetch_gerrit_activity, "changelists", fake_changelists)

    work_stats.main([
        "--username", "alice", "--email", "alice@example.com, alice@corp.com", "--no-github",
        "--output-dir", str(tmp_path), "--no-cache",
    ])

    assert sorted(os.listdir(tmp_path)) == ["golang-issues.csv", "golang-reviewed.csv"]


def test_main_reports_cache_use(tmp_path, monkeypatch, caplog):
    cache_dir = tmp_path / "cache"
    monkeypatch.setattr(work_stats, "QueryCache", lambda: QueryCache(str(cache_dir)))
    monkeypatch.setattr(fetch_github_activity, "issues_and_prs", lambda *args, **kwargs: ([], [], []))

    with caplog.at_level(logging.INFO):
        work_stats.main(["--username", "alice", "--no-gerrit", "--output-dir", str(tmp_path / "out")])

    assert "0 hit(s), 0 miss(es)" in caplog.text


def test_sheets_help_names_local_workbook():
    help_text = " ".join(work_stats.build_parser().format_help().split())
    assert "local Excel (.xlsx) workbook" in help_text
