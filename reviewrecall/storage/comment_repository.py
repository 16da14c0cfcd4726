"""PostgreSQL + pgvector access layer for historical PR review comments."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import psycopg
from psycopg import sql
from psycopg.rows import dict_row

from reviewrecall.config.settings import get_settings
from reviewrecall.errors import DimensionMismatch, StorageUnavailable, StrategyQueryFailed
from reviewrecall.utils.logging import get_logger

_log = get_logger("storage")


COMMENT_EMBEDDING = "comment_embedding"
CODE_EMBEDDING = "code_embedding"
COMBINED_EMBEDDING = "combined_embedding"

EMBEDDING_COLUMNS = (COMMENT_EMBEDDING, CODE_EMBEDDING, COMBINED_EMBEDDING)

_SCALAR_COLUMNS = (
    "id",
    "pr_number",
    "repository",
    "project_path",
    "comment_type",
    "comment_text",
    "file_path",
    "line_number",
    "line_range_start",
    "line_range_end",
    "original_code",
    "suggested_code",
    "author",
    "created_at",
    "updated_at",
    "issue_category",
    "severity",
    "pattern_tags",
)


# ============================================================
# Data Models
# ============================================================


@dataclass(frozen=True)
class CommentRecord:
    id: str
    comment_text: str
    project_path: str
    pr_number: int = 0
    repository: str = ""
    comment_type: str = "issue"
    comment_embedding: Optional[Tuple[float, ...]] = None
    code_embedding: Optional[Tuple[float, ...]] = None
    combined_embedding: Optional[Tuple[float, ...]] = None
    file_path: Optional[str] = None
    line_number: Optional[int] = None
    line_range_start: Optional[int] = None
    line_range_end: Optional[int] = None
    original_code: Optional[str] = None
    suggested_code: Optional[str] = None
    author: str = "unknown"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    issue_category: str = "general"
    severity: str = "minor"
    pattern_tags: Tuple[str, ...] = ()

    @property
    def has_code(self) -> bool:
        return bool(self.original_code or self.suggested_code)


@dataclass(frozen=True)
class CommentFilters:
    """
    Equality / substring predicates applied to every storage query.

    project_path is the isolation key and is always applied.
    file_path matches as a substring.
    """
    project_path: str
    repository: Optional[str] = None
    author: Optional[str] = None
    comment_type: Optional[str] = None
    issue_category: Optional[str] = None
    severity: Optional[str] = None
    file_path: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.project_path:
            raise ValueError("project_path is required on every comment query")

    def matches(self, record: CommentRecord) -> bool:
        """In-memory evaluation of the same predicates the SQL applies."""
        if record.project_path != self.project_path:
            return False
        for field in ("repository", "author", "comment_type", "issue_category", "severity"):
            wanted = getattr(self, field)
            if wanted is not None and getattr(record, field) != wanted:
                return False
        if self.file_path is not None:
            if not record.file_path or self.file_path not in record.file_path:
                return False
        return True


@dataclass(frozen=True)
class SearchHit:
    record: CommentRecord
    distance: float

    @property
    def similarity(self) -> float:
        return 1.0 - self.distance


class CommentStore(Protocol):
    """The storage-table operations the retrieval pipeline relies on."""

    def search(
        self,
        column: str,
        query_embedding: Sequence[float],
        limit: int,
        filters: CommentFilters,
    ) -> List[SearchHit]:
        ...

    def scan(self, filters: CommentFilters, limit: int = 100, offset: int = 0) -> List[CommentRecord]:
        ...

    def count(self, filters: CommentFilters) -> int:
        ...

    def delete(self, filters: CommentFilters) -> int:
        ...


# ============================================================
# Row decoding
# ============================================================


def decode_vector(
    value: Any,
    dimensions: int,
    field: str = "embedding",
) -> Optional[Tuple[float, ...]]:
    """
    Convert a stored vector (pgvector text form, list or array) to a tuple.

    Raises:
        DimensionMismatch: if the vector does not have `dimensions` entries.
    """
    if value is None:
        return None

    if isinstance(value, str):
        # pgvector text output: "[0.1,0.2,...]"
        value = json.loads(value)

    vector = tuple(float(v) for v in value)
    if not vector:
        return None
    if len(vector) != dimensions:
        raise DimensionMismatch(dimensions, len(vector), field)
    return vector


def _decode_tags(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return ()
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(t) for t in value)


def _decode_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def record_from_row(row: Mapping[str, Any], dimensions: int) -> CommentRecord:
    """
    Build a CommentRecord from a result row.

    Raises:
        DimensionMismatch: when any present embedding has the wrong length.
    """
    record_id = str(row["id"])
    return CommentRecord(
        id=record_id,
        pr_number=int(row.get("pr_number") or 0),
        repository=row.get("repository") or "",
        project_path=row.get("project_path") or "",
        comment_type=row.get("comment_type") or "issue",
        comment_text=row.get("comment_text") or "",
        comment_embedding=decode_vector(row.get(COMMENT_EMBEDDING), dimensions, f"{record_id}.{COMMENT_EMBEDDING}"),
        code_embedding=decode_vector(row.get(CODE_EMBEDDING), dimensions, f"{record_id}.{CODE_EMBEDDING}"),
        combined_embedding=decode_vector(row.get(COMBINED_EMBEDDING), dimensions, f"{record_id}.{COMBINED_EMBEDDING}"),
        file_path=row.get("file_path"),
        line_number=row.get("line_number"),
        line_range_start=row.get("line_range_start"),
        line_range_end=row.get("line_range_end"),
        original_code=row.get("original_code"),
        suggested_code=row.get("suggested_code"),
        author=row.get("author") or "unknown",
        created_at=_decode_timestamp(row.get("created_at")),
        updated_at=_decode_timestamp(row.get("updated_at")),
        issue_category=row.get("issue_category") or "general",
        severity=row.get("severity") or "minor",
        pattern_tags=_decode_tags(row.get("pattern_tags")),
    )


# ============================================================
# Repository
# ============================================================


class CommentRepository:
    """
    PostgreSQL + pgvector persistence layer for review comments.

    Responsibilities:
    - Cosine-distance search against a named embedding column
    - Filtered scan with limit / offset
    - Filtered count and delete

    Distances follow pgvector's `<=>` convention (0 = identical);
    callers convert with `similarity = 1 - distance`.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        table: Optional[str] = None,
        dimensions: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        db_url = database_url or settings.database_url
        if not db_url:
            raise ValueError("DATABASE_URL must be set.")

        self.table = table or settings.comments_table
        self.dimensions = dimensions if dimensions is not None else settings.embedding_dimensions

        try:
            self._conn = psycopg.connect(db_url, row_factory=dict_row, autocommit=True)
        except psycopg.Error as e:
            raise StorageUnavailable(f"Cannot connect to comment store: {e}") from e

    # ---------------------------------------------------------
    # Context manager support
    # ---------------------------------------------------------

    def __enter__(self) -> "CommentRepository":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ---------------------------------------------------------
    # Search
    # ---------------------------------------------------------

    def search(
        self,
        column: str,
        query_embedding: Sequence[float],
        limit: int,
        filters: CommentFilters,
    ) -> List[SearchHit]:
        """
        Nearest comments by cosine distance on `column`.

        Rows whose embeddings have the wrong dimensionality are skipped.
        """
        if column not in EMBEDDING_COLUMNS:
            raise ValueError(f"Unknown embedding column: {column}")
        if len(query_embedding) != self.dimensions:
            raise DimensionMismatch(self.dimensions, len(query_embedding), "query")

        where, params = self._where(filters)
        col = sql.Identifier(column)

        query = sql.SQL(
            """
            with q as (
                select %s::vector as v
            )
            select {columns}, (c.{col} <=> q.v) as distance
            from {table} c, q
            where c.{col} is not null and {where}
            order by c.{col} <=> q.v
            limit %s
            """
        ).format(
            columns=self._select_columns(),
            col=col,
            table=sql.Identifier(self.table),
            where=where,
        )

        rows = self._fetch(query, [list(query_embedding), *params, limit], StrategyQueryFailed)

        hits: List[SearchHit] = []
        for row in rows:
            try:
                record = record_from_row(row, self.dimensions)
            except DimensionMismatch as e:
                _log.warning("Skipping comment row: %s", e)
                continue
            hits.append(SearchHit(record=record, distance=float(row["distance"])))
        return hits

    # ---------------------------------------------------------
    # Scan / count / delete
    # ---------------------------------------------------------

    def scan(self, filters: CommentFilters, limit: int = 100, offset: int = 0) -> List[CommentRecord]:
        where, params = self._where(filters)
        query = sql.SQL(
            """
            select {columns}
            from {table} c
            where {where}
            order by c.created_at desc nulls last, c.id
            limit %s offset %s
            """
        ).format(
            columns=self._select_columns(),
            table=sql.Identifier(self.table),
            where=where,
        )

        rows = self._fetch(query, [*params, limit, offset], StorageUnavailable)

        records: List[CommentRecord] = []
        for row in rows:
            try:
                records.append(record_from_row(row, self.dimensions))
            except DimensionMismatch as e:
                _log.warning("Skipping comment row: %s", e)
        return records

    def count(self, filters: CommentFilters) -> int:
        where, params = self._where(filters)
        query = sql.SQL("select count(*) as c from {table} c where {where}").format(
            table=sql.Identifier(self.table),
            where=where,
        )
        rows = self._fetch(query, params, StorageUnavailable)
        return int(rows[0]["c"]) if rows else 0

    def delete(self, filters: CommentFilters) -> int:
        """
        Delete comments matching filters.

        Returns number of rows deleted.
        """
        where, params = self._where(filters)
        query = sql.SQL("delete from {table} c where {where}").format(
            table=sql.Identifier(self.table),
            where=where,
        )
        try:
            with self._conn.transaction():
                with self._conn.cursor() as cur:
                    cur.execute(query, params)
                    return cur.rowcount or 0
        except psycopg.OperationalError as e:
            raise StorageUnavailable(str(e)) from e

    def close(self) -> None:
        try:
            self._conn.close()
        except psycopg.Error:
            _log.debug("Error while closing comment store connection", exc_info=True)

    # ---------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------

    def _fetch(
        self,
        query: sql.Composable,
        params: Sequence[Any],
        error_type: type,
    ) -> List[Dict[str, Any]]:
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, params)
                return cur.fetchall()
        except psycopg.OperationalError as e:
            raise StorageUnavailable(str(e)) from e
        except psycopg.Error as e:
            raise error_type(str(e)) from e

    @staticmethod
    def _select_columns() -> sql.Composable:
        return sql.SQL(", ").join(
            sql.SQL("c.{}").format(sql.Identifier(name))
            for name in (*_SCALAR_COLUMNS, *EMBEDDING_COLUMNS)
        )

    @staticmethod
    def _where(filters: CommentFilters) -> Tuple[sql.Composable, List[Any]]:
        clauses: List[sql.Composable] = [sql.SQL("c.project_path = %s")]
        params: List[Any] = [filters.project_path]

        for field in ("repository", "author", "comment_type", "issue_category", "severity"):
            value = getattr(filters, field)
            if value is not None:
                clauses.append(sql.SQL("c.{} = %s").format(sql.Identifier(field)))
                params.append(value)

        if filters.file_path is not None:
            clauses.append(sql.SQL("strpos(c.file_path, %s) > 0"))
            params.append(filters.file_path)

        return sql.SQL(" and ").join(clauses), params
