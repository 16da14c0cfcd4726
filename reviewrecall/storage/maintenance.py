"""Read / delete helpers over the comment store used by the CLI."""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional

from reviewrecall.storage.comment_repository import CommentFilters, CommentRecord, CommentStore
from reviewrecall.utils.logging import get_logger

_log = get_logger("storage")

_STATS_SCAN_LIMIT = 10000


def comments_by_repository(
    store: CommentStore,
    project_path: str,
    repository: str,
    limit: int = 100,
    offset: int = 0,
    author: Optional[str] = None,
    comment_type: Optional[str] = None,
) -> List[CommentRecord]:
    filters = CommentFilters(
        project_path=project_path,
        repository=repository,
        author=author,
        comment_type=comment_type,
    )
    return store.scan(filters, limit=limit, offset=offset)


def has_comments(store: CommentStore, project_path: str, repository: str) -> bool:
    return store.count(CommentFilters(project_path=project_path, repository=repository)) > 0


def clear_comments(store: CommentStore, project_path: str, repository: str) -> int:
    """
    Delete every stored comment for a repository within one project.

    Returns the number of comments removed.
    """
    filters = CommentFilters(project_path=project_path, repository=repository)
    before = store.count(filters)
    store.delete(filters)
    _log.info("Cleared %d PR comments for repository %s", before, repository)
    return before


def comment_stats(
    store: CommentStore,
    project_path: str,
    repository: Optional[str] = None,
) -> Dict:
    """
    Aggregate counts over stored comments.

    Returns a dict with per-type / category / severity / author / repository
    counts, the number of distinct PRs and the ISO date range covered.
    """
    filters = CommentFilters(project_path=project_path, repository=repository)

    records: List[CommentRecord] = []
    if store.count(filters) > 0:
        records = store.scan(filters, limit=_STATS_SCAN_LIMIT)

    comment_types: Counter = Counter()
    categories: Counter = Counter()
    severities: Counter = Counter()
    authors: Counter = Counter()
    repositories: Counter = Counter()
    prs = set()
    dates = []

    for record in records:
        comment_types[record.comment_type or "unknown"] += 1
        categories[record.issue_category or "general"] += 1
        severities[record.severity or "minor"] += 1
        authors[record.author or "unknown"] += 1
        repositories[record.repository or "unknown"] += 1
        if record.pr_number:
            prs.add(record.pr_number)
        if record.created_at is not None:
            dates.append(record.created_at)

    return {
        "total_comments": len(records),
        "total_prs": len(prs),
        "unique_authors": len(authors),
        "comment_types": dict(comment_types),
        "issue_categories": dict(categories),
        "severity_levels": dict(severities),
        "authors": dict(authors),
        "repositories": dict(repositories),
        "date_range": {
            "earliest": min(dates).date().isoformat() if dates else None,
            "latest": max(dates).date().isoformat() if dates else None,
        },
    }
