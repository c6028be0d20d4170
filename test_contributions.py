# SPDX-License-Identifier: Apache-2.0

from datetime import datetime, timezone

from contributions import (
    Changelist,
    ChangelistStatus,
    Issue,
    extract_category,
    in_scope,
    parse_timestamp,
    truncate,
)


def test_category_from_most_popular_directory():
    cl = Changelist(
        repo="tools",
        number=353890,
        affected_files=[
            "internal/lsp/cache/parse.go",
            "internal/lsp/semantic.go",
            "internal/lsp/source/completion/package.go",
            "internal/lsp/source/extract.go",
            "internal/lsp/source/format.go",
            "internal/lsp/source/format_test.go.go",
        ],
    )
    # "internal" and "internal/lsp" are both touched six times; the longer one wins.
    assert cl.category() == "internal/lsp"


def test_category_prefers_subject_prefix():
    cl = Changelist(subject="gopls: fix hover", affected_files=["internal/lsp/hover.go"])
    assert cl.category() == "gopls"


def test_category_empty_for_top_level_files():
    cl = Changelist(subject="Update the README", affected_files=["README.md", "go.mod"])
    assert cl.category() == ""


def test_extract_category():
    assert extract_category("internal/lsp: fix hover") == "internal/lsp"
    assert extract_category("Fix the thing: now") == ""
    assert extract_category("no colon here") == ""


def test_issue_category_and_flags():
    issue = Issue(title="x/tools/gopls: crash on startup", opened_by="alice", closed_by="bob")
    assert issue.category() == "x/tools/gopls"
    assert issue.opened_by_user("alice")
    assert not issue.closed_by_user("alice")
    assert issue.closed_by_user("bob")
    assert not issue.closed()


def test_status_from_gerrit():
    assert ChangelistStatus.from_gerrit("MERGED") is ChangelistStatus.MERGED
    assert ChangelistStatus.from_gerrit("new") is ChangelistStatus.NEW
    assert ChangelistStatus.from_gerrit("weird") is ChangelistStatus.UNKNOWN
    assert ChangelistStatus.from_gerrit(None) is ChangelistStatus.UNKNOWN
    assert str(ChangelistStatus.ABANDONED) == "abandoned"


def test_parse_timestamp_formats():
    assert parse_timestamp("2023-01-01T12:00:00Z") == datetime(2023, 1, 1, 12, tzinfo=timezone.utc)
    assert parse_timestamp("2021-10-05 18:04:12.123456789") == datetime(
        2021, 10, 5, 18, 4, 12, 123456, tzinfo=timezone.utc)
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None


def test_in_scope_is_strict():
    start = datetime(2023, 1, 1, tzinfo=timezone.utc)
    end = datetime(2023, 2, 1, tzinfo=timezone.utc)
    assert in_scope(datetime(2023, 1, 15, tzinfo=timezone.utc), start, end)
    assert not in_scope(start, start, end)
    assert not in_scope(end, start, end)
    assert not in_scope(None, start, end)


def test_truncate():
    assert truncate("a" * 100) == "a" * 80
    assert truncate("short") == "short"
