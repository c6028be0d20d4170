# SPDX-License-Identifier: Apache-2.0

"""
Common representation of issues and changelists, independent of the tracker
or review system they were fetched from.

A changelist (CL) is a Gerrit code-review unit or a GitHub pull request. Both
kinds, and both kinds of issue, are reduced to the types below so the table
formatter in `cells.py` only has to deal with one shape.
"""

from __future__ import annotations

import enum
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


MAX_DESCRIPTION_LENGTH = 80


class ChangelistStatus(enum.Enum):
    ABANDONED = "abandoned"
    DRAFT = "draft"
    NEW = "new"
    MERGED = "merged"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_gerrit(cls, status: Optional[str]) -> "ChangelistStatus":
        try:
            return cls((status or "").lower())
        except ValueError:
            return cls.UNKNOWN


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitHub ('...Z') or Gerrit ('YYYY-MM-DD hh:mm:ss.nnnnnnnnn') timestamp as UTC."""
    if not value:
        return None
    text = value.strip().replace("Z", "+00:00")
    if " " in text and "T" not in text:
        # Gerrit reports nanoseconds; datetime only keeps microseconds.
        date_part, _, time_part = text.partition(" ")
        if "." in time_part:
            whole, _, fraction = time_part.partition(".")
            time_part = f"{whole}.{fraction[:6]}"
        text = f"{date_part}T{time_part}"
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def in_scope(t: Optional[datetime], start: datetime, end: datetime) -> bool:
    """Strictly between start and end."""
    if t is None:
        return False
    return start < t < end


def truncate(text: str) -> str:
    if len(text) > MAX_DESCRIPTION_LENGTH:
        return text[:MAX_DESCRIPTION_LENGTH]
    return text


def extract_category(description: str) -> str:
    """Return the 'pkg' of a 'pkg: do something' style title, or ''."""
    split = description.split(":")
    if len(split) > 1 and " " not in split[0]:
        return split[0]
    return ""


def popular_directory(filenames: List[str]) -> str:
    """Return the most frequently touched ancestor directory, preferring longer paths on ties."""
    directories: dict[str, int] = {}
    for filename in filenames:
        directory = posixpath.dirname(filename)
        while directory and directory != posixpath.dirname(directory):
            directories[directory] = directories.get(directory, 0) + 1
            directory = posixpath.dirname(directory)

    popular_dir = ""
    popular_count = 0
    for directory in sorted(directories):
        count = directories[directory]
        if count < popular_count:
            continue
        if count > popular_count or len(directory) > len(popular_dir):
            popular_count = count
            popular_dir = directory
    return popular_dir


@dataclass
class Issue:
    number: int = 0
    link: str = ""
    repo: str = ""
    title: str = ""
    opened_by: str = ""
    closed_by: str = ""
    date_opened: Optional[datetime] = None
    date_closed: Optional[datetime] = None
    comments: int = 0
    labels: List[str] = field(default_factory=list)
    transferred: bool = False
    milestone: str = ""

    def category(self) -> str:
        return extract_category(self.title)

    def opened_by_user(self, username: str) -> bool:
        return self.opened_by == username

    def closed_by_user(self, username: str) -> bool:
        return bool(self.closed_by) and self.closed_by == username

    def closed(self) -> bool:
        return self.date_closed is not None


@dataclass
class Changelist:
    number: int = 0
    link: str = ""
    subject: str = ""
    message: str = ""
    comments: List[str] = field(default_factory=list)
    branch: str = ""
    author: str = ""
    repo: str = ""
    status: ChangelistStatus = ChangelistStatus.UNKNOWN
    merged_at: Optional[datetime] = None
    associated_issues: List[Issue] = field(default_factory=list)
    affected_files: List[str] = field(default_factory=list)

    def category(self) -> str:
        category = extract_category(self.subject)
        if category:
            return category
        # No category in the subject line, fall back to the files touched.
        return popular_directory(self.affected_files)

    def merged(self) -> bool:
        return self.status is ChangelistStatus.MERGED
