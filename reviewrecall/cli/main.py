# reviewrecall/cli/main.py
from __future__ import annotations

import json
import os
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

app = typer.Typer(
    name="reviewrecall",
    add_completion=False,
    no_args_is_help=True,
    help="ReviewRecall: surface historical PR review comments relevant to the code under review.",
)


# -----------------------------
# Shared helpers
# -----------------------------
def _eprint(msg: str) -> None:
    typer.echo(msg, err=True)


def _require_env(var_name: str) -> str:
    val = os.getenv(var_name)
    if not val:
        raise typer.BadParameter(
            f"Missing required environment variable: {var_name}. "
            f"Set it (or create a .env and load it in your shell)."
        )
    return val


def _path_exists(p: Path) -> Path:
    if not p.exists():
        raise typer.BadParameter(f"Path does not exist: {p}")
    return p


def _to_json(obj: Any) -> str:
    def default(o: Any) -> Any:
        if hasattr(o, "__dict__"):
            return o.__dict__
        return str(o)

    return json.dumps(obj, indent=2, default=default)


def _setup_logging(debug: bool, json_out: bool = False) -> None:
    from reviewrecall.config.settings import get_settings
    from reviewrecall.utils.logging import configure_logging

    if not (debug or get_settings().debug):
        return
    # Keep stdout parseable under --json.
    configure_logging(debug=True, stream=sys.stderr if json_out else None)


@dataclass(frozen=True)
class CLICommentHit:
    rank: int
    id: str
    author: str
    file_path: Optional[str]
    line_number: Optional[int]
    search_type: str
    score: float
    comment: str


# -----------------------------
# Commands
# -----------------------------
@app.command("migrate")
def cmd_migrate(
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (do not suppress tracebacks).",
    ),
) -> None:
    """
    Create the pgvector extension, the comments table and its indexes.
    """
    _require_env("DATABASE_URL")

    try:
        from reviewrecall.storage.migrations import run_migrations

        run_migrations()
        typer.echo("OK: schema is up to date.")
    except Exception as e:
        if debug:
            raise
        _eprint(f"Migration failed: {e}")
        raise typer.Exit(code=1)


@app.command("search")
def cmd_search(
    file: Path = typer.Argument(..., help="File under review."),
    project: Path = typer.Option(
        Path.cwd(),
        "--project",
        help="Project root the stored comments belong to.",
    ),
    query: Optional[str] = typer.Option(
        None,
        "--query",
        help="Query text. Defaults to the file content.",
    ),
    repository: Optional[str] = typer.Option(None, "--repository", help="Restrict to one repository."),
    author: Optional[str] = typer.Option(None, "--author", help="Only comments by this author."),
    comment_type: Optional[str] = typer.Option(None, "--type", help="Only this comment kind (e.g. review, issue)."),
    issue_category: Optional[str] = typer.Option(None, "--category", help="Only this issue category."),
    severity: Optional[str] = typer.Option(None, "--severity", help="Only this severity."),
    path_filter: Optional[str] = typer.Option(
        None,
        "--path",
        help="Only comments whose file path contains this text.",
    ),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Number of comments to return."),
    strategy: Optional[str] = typer.Option(
        None,
        "--strategy",
        help="Reranking pipeline: 'chunk' or 'context'.",
    ),
    threshold: Optional[float] = typer.Option(
        None,
        "--threshold",
        min=0.0,
        max=1.0,
        help="Minimum similarity (1 - cosine distance).",
    ),
    json_out: bool = typer.Option(False, "--json", help="Emit machine-readable JSON."),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (do not suppress tracebacks).",
    ),
) -> None:
    """
    Find historical review comments relevant to FILE.
    """
    _require_env("DATABASE_URL")
    _require_env("OPENAI_API_KEY")

    file = _path_exists(file).resolve()
    if strategy is not None and strategy not in ("chunk", "context"):
        raise typer.BadParameter("--strategy must be 'chunk' or 'context'.")

    _setup_logging(debug, json_out)

    try:
        from reviewrecall.retrieval.search_service import find_similar_comments

        code = file.read_text(encoding="utf-8", errors="replace")
        query_text = query if query and query.strip() else code

        t0 = time.time()
        results = find_similar_comments(
            query=query_text,
            project_path=str(project.resolve()),
            target_code=code,
            target_file_path=str(file),
            limit=limit,
            threshold=threshold,
            strategy=strategy,
            repository=repository,
            author=author,
            comment_type=comment_type,
            issue_category=issue_category,
            severity=severity,
            file_path=path_filter,
        )
        elapsed = time.time() - t0

        hits: List[CLICommentHit] = [
            CLICommentHit(
                rank=i,
                id=str(r["id"]),
                author=str(r.get("author") or "unknown"),
                file_path=r.get("file_path"),
                line_number=r.get("line_number"),
                search_type=str(r["search_type"]),
                score=float(r["final_score"]),
                comment=str(r.get("comment_text") or ""),
            )
            for i, r in enumerate(results, start=1)
        ]

        if json_out:
            typer.echo(
                _to_json(
                    {
                        "file": str(file),
                        "elapsed_sec": elapsed,
                        "results": results,
                    }
                )
            )
            return

        typer.echo(f"File: {file}")
        typer.echo(f"{len(hits)} comments | {elapsed:.2f}s")
        typer.echo()

        if not hits:
            typer.echo("No relevant review comments.")
            return

        for h in hits:
            where = h.file_path or "(no file)"
            if h.line_number:
                where = f"{where}:{h.line_number}"
            typer.echo(f"{h.rank}. {where}  by {h.author}  [{h.search_type}]  score={h.score:.4f}")
            typer.echo("-" * 70)
            comment = h.comment.strip("\n")
            if len(comment) > 800:
                comment = comment[:800].rstrip() + "\n..."
            typer.echo(comment)
            typer.echo()

    except Exception as e:
        if debug:
            raise
        _eprint(f"Search failed: {e}")
        raise typer.Exit(code=1)


@app.command("stats")
def cmd_stats(
    project: Path = typer.Option(Path.cwd(), "--project", help="Project root."),
    repository: Optional[str] = typer.Option(None, "--repository", help="Restrict to one repository."),
    json_out: bool = typer.Option(False, "--json", help="Emit machine-readable JSON."),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (do not suppress tracebacks).",
    ),
) -> None:
    """
    Summarize the stored review comments.
    """
    _require_env("DATABASE_URL")
    _setup_logging(debug, json_out)

    try:
        from reviewrecall.storage.comment_repository import CommentRepository
        from reviewrecall.storage.maintenance import comment_stats

        with CommentRepository() as repo:
            stats: Dict[str, Any] = comment_stats(repo, str(project.resolve()), repository)

        if json_out:
            typer.echo(_to_json(stats))
            return

        typer.echo(f"Comments: {stats['total_comments']}")
        typer.echo(f"PRs: {stats['total_prs']}")
        typer.echo(f"Authors: {stats['unique_authors']}")
        date_range = stats["date_range"]
        if date_range["earliest"]:
            typer.echo(f"Date range: {date_range['earliest']} .. {date_range['latest']}")
        for title, key in (
            ("Comment types", "comment_types"),
            ("Categories", "issue_categories"),
            ("Severity", "severity_levels"),
            ("Repositories", "repositories"),
        ):
            counts = stats[key]
            if counts:
                rendered = ", ".join(f"{k}={v}" for k, v in sorted(counts.items()))
                typer.echo(f"{title}: {rendered}")

    except Exception as e:
        if debug:
            raise
        _eprint(f"Stats failed: {e}")
        raise typer.Exit(code=1)


@app.command("list")
def cmd_list(
    repository: str = typer.Option(..., "--repository", help="Repository to list comments for."),
    project: Path = typer.Option(Path.cwd(), "--project", help="Project root."),
    author: Optional[str] = typer.Option(None, "--author", help="Only comments by this author."),
    comment_type: Optional[str] = typer.Option(None, "--type", help="Only this comment kind."),
    limit: int = typer.Option(20, "--limit", min=1, help="Page size."),
    offset: int = typer.Option(0, "--offset", min=0, help="Number of comments to skip."),
    json_out: bool = typer.Option(False, "--json", help="Emit machine-readable JSON."),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (do not suppress tracebacks).",
    ),
) -> None:
    """
    Page through the stored comments of one repository, newest first.
    """
    _require_env("DATABASE_URL")
    _setup_logging(debug, json_out)

    try:
        from reviewrecall.storage.comment_repository import CommentRepository
        from reviewrecall.storage.maintenance import comments_by_repository

        with CommentRepository() as repo:
            records = comments_by_repository(
                repo,
                str(project.resolve()),
                repository,
                limit=limit,
                offset=offset,
                author=author,
                comment_type=comment_type,
            )

        if json_out:
            rows = [
                {
                    "id": r.id,
                    "pr_number": r.pr_number,
                    "author": r.author,
                    "comment_type": r.comment_type,
                    "file_path": r.file_path,
                    "line_number": r.line_number,
                    "created_at": r.created_at.isoformat() if r.created_at else None,
                    "comment_text": r.comment_text,
                }
                for r in records
            ]
            typer.echo(_to_json({"repository": repository, "offset": offset, "comments": rows}))
            return

        if not records:
            typer.echo(f"No stored comments for {repository}.")
            return

        for r in records:
            where = r.file_path or "(no file)"
            if r.line_number:
                where = f"{where}:{r.line_number}"
            first_line = r.comment_text.strip().splitlines()[0] if r.comment_text.strip() else ""
            typer.echo(f"#{r.pr_number}  {where}  by {r.author}  [{r.comment_type}]  {first_line[:100]}")

    except Exception as e:
        if debug:
            raise
        _eprint(f"List failed: {e}")
        raise typer.Exit(code=1)


@app.command("clear")
def cmd_clear(
    repository: str = typer.Option(..., "--repository", help="Repository whose comments are deleted."),
    project: Path = typer.Option(Path.cwd(), "--project", help="Project root."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm deletion."),
    json_out: bool = typer.Option(False, "--json", help="Emit machine-readable JSON."),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (do not suppress tracebacks).",
    ),
) -> None:
    """
    Delete every stored comment for one repository (destructive).
    """
    _require_env("DATABASE_URL")

    if not yes:
        _eprint("Refusing to delete without confirmation. Re-run with --yes.")
        raise typer.Exit(code=2)

    _setup_logging(debug, json_out)

    try:
        from reviewrecall.storage.comment_repository import CommentRepository
        from reviewrecall.storage.maintenance import clear_comments, has_comments

        project_path = str(project.resolve())
        with CommentRepository() as repo:
            if has_comments(repo, project_path, repository):
                deleted = clear_comments(repo, project_path, repository)
            else:
                deleted = 0

        if json_out:
            typer.echo(_to_json({"repository": repository, "deleted": deleted}))
        else:
            typer.echo(f"OK: deleted {deleted} comments for {repository}.")
    except Exception as e:
        if debug:
            raise
        _eprint(f"Clear failed: {e}")
        raise typer.Exit(code=1)


@app.command("reset")
def cmd_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Confirm destructive reset."),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug mode (do not suppress tracebacks).",
    ),
) -> None:
    """
    Drop and recreate the comments table (destructive).
    """
    _require_env("DATABASE_URL")

    if not yes:
        _eprint("Refusing to reset without confirmation. Re-run with --yes.")
        raise typer.Exit(code=2)

    try:
        from reviewrecall.storage.migrations import reset_db

        reset_db()
        typer.echo("OK: database reset (all comments deleted).")
    except Exception as e:
        if debug:
            raise
        _eprint(f"Reset failed: {e}")
        raise typer.Exit(code=1)


def main() -> None:
    """
    Console entrypoint for `reviewrecall`.
    """
    try:
        app()
    except KeyboardInterrupt:
        _eprint("Interrupted.")
        raise typer.Exit(code=130)


if __name__ == "__main__":
    main()
