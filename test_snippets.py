# SPDX-License-Identifier: Apache-2.0

import datetime

import pytest
import pytz

from contributions import Changelist, ChangelistStatus, Issue
from snippets import infer_time_range, render_snippets

PT = pytz.timezone("America/Los_Angeles")


@pytest.mark.parametrize("today, week_of, start, end", [
    ("2020-04-13", None, "2020-04-06", "2020-04-13"),  # Monday
    ("2020-04-14", None, "2020-04-06", "2020-04-13"),  # Tuesday
    ("2020-04-15", None, "2020-04-06", "2020-04-13"),  # Wednesday
    ("2020-04-16", None, "2020-04-13", "2020-04-20"),  # Thursday
    ("2020-04-17", None, "2020-04-13", "2020-04-20"),  # Friday
    ("2020-04-18", None, "2020-04-13", "2020-04-20"),  # Saturday
    ("2020-04-19", None, "2020-04-13", "2020-04-20"),  # Sunday
    ("2020-04-14", "2020-04-16", "2020-04-13", "2020-04-20"),  # Tuesday, asking for the current week
])
def test_infer_time_range(today, week_of, start, end):
    now = datetime.datetime.strptime(today, "%Y-%m-%d")
    got_start, got_end = infer_time_range(now, week_of)
    assert got_start == datetime.datetime.strptime(start, "%Y-%m-%d")
    assert got_end == datetime.datetime.strptime(end, "%Y-%m-%d")


def test_infer_time_range_keeps_midnight_across_dst():
    # Thursday before daylight saving time started on 2020-03-08.
    now = PT.localize(datetime.datetime(2020, 3, 5, 10, 0, 0))
    start, end = infer_time_range(now)
    assert start == PT.localize(datetime.datetime(2020, 3, 2))
    assert end == PT.localize(datetime.datetime(2020, 3, 9))
    assert start.utcoffset() == datetime.timedelta(hours=-8)
    assert end.utcoffset() == datetime.timedelta(hours=-7)


def test_render_snippets():
    merged = Changelist(number=1, link="https://go-review.googlesource.com/c/tools/+/1",
                        subject="gopls: fix hover", status=ChangelistStatus.MERGED)
    pending = Changelist(number=2, link="https://go-review.googlesource.com/c/tools/+/2",
                         subject="gopls: add hints", status=ChangelistStatus.NEW)
    pr = Changelist(number=7, repo="octo/widgets", link="https://github.com/octo/widgets/pull/7",
                    subject="Add widget")

    text = render_snippets(
        gerrit=([merged, pending], [], [Issue(number=3)]),
        github=([], [pr], []),
    )

    assert text == "\n".join([
        "----------------------------------------------",
        "## CLs Merged",
        "",
        "* [CL 1](https://go-review.googlesource.com/c/tools/+/1): gopls: fix hover",
        "",
        "## CLs In Progress",
        "",
        "* [CL 2](https://go-review.googlesource.com/c/tools/+/2): gopls: add hints",
        "",
        "### Commented on 1 golang/go issues",
        "",
        "## PRs Reviewed",
        "",
        "* [octo/widgets#7](https://github.com/octo/widgets/pull/7): Add widget",
    ]) + "\n"


def test_render_snippets_without_activity():
    assert render_snippets(gerrit=([], [], []), github=None) == "----------------------------------------------\n"
