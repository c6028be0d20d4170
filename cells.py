# SPDX-License-Identifier: Apache-2.0

"""Turn grouped issues and changelists into ordered table rows.

Every table starts with a bold header row and ends with a ``Total`` row.
In between, items are grouped by repository and then by category (issues,
authored CLs) or by author (reviewed CLs). Group totals are emitted as rows
whose first cell is ``""`` (category/author) or ``"Subtotal"`` (repository),
so a plain CSV dump still reads naturally. The ``color``/``bold`` hints are
only used by the workbook writer.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from contributions import Changelist, Issue, truncate

RGB = Tuple[int, int, int]

PALE_YELLOW: RGB = (255, 255, 237)
SUBSUBTOTAL_GRAY: RGB = (247, 247, 247)
SUBTOTAL_GRAY: RGB = (240, 240, 240)
TOTAL_GRAY: RGB = (232, 232, 232)

_TOTAL_STYLES = {
    "total": TOTAL_GRAY,
    "subtotal": SUBTOTAL_GRAY,
    "": SUBSUBTOTAL_GRAY,
}


@dataclass
class Cell:
    text: str
    hyperlink: str = ""


@dataclass
class Row:
    cells: List[Cell] = field(default_factory=list)
    color: Optional[RGB] = None
    bold: bool = False

    def texts(self) -> List[str]:
        return [cell.text for cell in self.cells]


def header_row(*titles: str) -> Row:
    return Row(cells=[Cell(t) for t in titles], bold=True)


def total_row(*values: str) -> Row:
    """Build a bold, shaded row; the first value must be 'Total', 'Subtotal' or ''."""
    if not values:
        raise ValueError("empty cells added to sheet")
    kind = values[0].lower()
    if kind not in _TOTAL_STYLES:
        raise ValueError(f"unexpected row type: {values[0]!r}")
    return Row(cells=[Cell(str(v)) for v in values], color=_TOTAL_STYLES[kind], bold=True)


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _group_by_repo(items) -> Dict[str, list]:
    repos: Dict[str, list] = defaultdict(list)
    for item in items:
        repos[item.repo].append(item)
    return dict(sorted(repos.items()))


class _IssueTotal:
    def __init__(self, issues: int = 0):
        self.issues = issues
        self.comments = 0
        self.opened = 0
        self.closed = 0

    def add(self, other: "_IssueTotal") -> None:
        self.issues += other.issues
        self.comments += other.comments
        self.opened += other.opened
        self.closed += other.closed

    def as_cells(self) -> List[str]:
        return [str(self.opened), str(self.closed), str(self.comments), str(self.issues)]


def issues_to_rows(username: str, issues: Sequence[Issue]) -> List[Row]:
    if not issues:
        return []
    repos = _group_by_repo(issues)

    rows = [header_row("Issue Number", "Description", "Opened", "Closed",
                       "Number of Comments", "Total Issues")]
    grand_total = _IssueTotal()
    for repo, repo_issues in repos.items():
        categories: Dict[str, List[Issue]] = defaultdict(list)
        for issue in repo_issues:
            categories[issue.category()].append(issue)
        sorted_categories = sorted(categories)

        repo_total = _IssueTotal()
        for category in sorted_categories:
            category_issues = sorted(categories[category], key=lambda i: i.link)
            category_total = _IssueTotal(issues=len(category_issues))
            for issue in category_issues:
                opened = issue.opened_by_user(username)
                closed = issue.closed_by_user(username)
                if opened:
                    category_total.opened += 1
                if closed:
                    category_total.closed += 1
                category_total.comments += issue.comments
                rows.append(Row(cells=[
                    Cell(issue.link, hyperlink=issue.link),
                    Cell(truncate(issue.title)),
                    Cell(_format_bool(opened)),
                    Cell(_format_bool(closed)),
                    Cell(str(issue.comments)),
                ]))
            if len(sorted_categories) > 1:
                rows.append(total_row("", category, *category_total.as_cells()))
            repo_total.add(category_total)
        # Only add the subtotal if there are multiple repos.
        if len(repos) > 1:
            rows.append(total_row("Subtotal", repo, *repo_total.as_cells()))
        grand_total.add(repo_total)
    rows.append(total_row("Total", "", *grand_total.as_cells()))
    return rows


def _category_label(branch: str, description: str) -> str:
    if not branch:
        return description
    return f"{branch}: {description}"


def _changelist_row(cl: Changelist, color: Optional[RGB] = None) -> Row:
    return Row(cells=[
        Cell(cl.link, hyperlink=cl.link),
        Cell(truncate(cl.subject)),
        Cell(""),
    ], color=color)


def authored_changelists_to_rows(cls: Sequence[Changelist]) -> List[Row]:
    if not cls:
        return []
    repos = _group_by_repo(cls)

    rows = [header_row("CL", "Description")]
    for repo, repo_cls in repos.items():
        categories: Dict[Tuple[str, str], List[Changelist]] = defaultdict(list)
        for cl in repo_cls:
            categories[(cl.branch, cl.category())].append(cl)
        sorted_categories = sorted(categories)
        for branch, description in sorted_categories:
            category_cls = sorted(categories[(branch, description)], key=lambda c: c.link)
            for cl in category_cls:
                rows.append(_changelist_row(cl, None if cl.merged() else PALE_YELLOW))
            # Category subtotals are only meaningful when there is more than one.
            if len(sorted_categories) > 1:
                rows.append(total_row("", _category_label(branch, description), str(len(category_cls))))
        rows.append(total_row("Subtotal", repo, str(len(repo_cls))))
    rows.append(total_row("Total", "", str(len(cls))))
    return rows


def reviewed_changelists_to_rows(cls: Sequence[Changelist]) -> List[Row]:
    if not cls:
        return []
    repos = _group_by_repo(cls)

    rows = [header_row("CL", "Description")]
    for repo, repo_cls in repos.items():
        authors: Dict[str, List[Changelist]] = defaultdict(list)
        for cl in repo_cls:
            authors[cl.author].append(cl)
        for author in sorted(authors):
            author_cls = sorted(authors[author], key=lambda c: c.link)
            rows.extend(_changelist_row(cl) for cl in author_cls)
            rows.append(total_row("", author, str(len(author_cls))))
        if len(repos) > 1:
            rows.append(total_row("Subtotal", repo, str(len(repo_cls))))
    rows.append(total_row("Total", "", str(len(cls))))
    return rows
