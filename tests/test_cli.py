# tests/test_cli.py

from __future__ import annotations

import json

from typer.testing import CliRunner

from conftest import InMemoryCommentStore, make_record
from reviewrecall.cli.main import app
from reviewrecall.retrieval import search_service
from reviewrecall.storage import comment_repository

runner = CliRunner()


def _env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/reviews")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")


class _RepositoryStub(InMemoryCommentStore):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return None


def test_search_prints_ranked_comments(monkeypatch, tmp_path):
    _env(monkeypatch)
    target = tmp_path / "handler.py"
    target.write_text("def handle(payload):\n    save(payload)\n")
    seen = {}

    def fake_find(**kwargs):
        seen.update(kwargs)
        return [
            {
                "id": "c1",
                "author": "dana",
                "file_path": "src/api.py",
                "line_number": 12,
                "search_type": "chunk_code",
                "final_score": 2.13,
                "comment_text": "Validate the payload before saving.",
            }
        ]

    monkeypatch.setattr(search_service, "find_similar_comments", fake_find)

    result = runner.invoke(app, ["search", str(target), "--project", str(tmp_path), "--strategy", "context"])

    assert result.exit_code == 0, result.output
    assert "1. src/api.py:12  by dana  [chunk_code]  score=2.1300" in result.output
    assert "Validate the payload before saving." in result.output
    assert seen["strategy"] == "context"
    assert seen["query"] == target.read_text()


def test_search_json_output(monkeypatch, tmp_path):
    _env(monkeypatch)
    target = tmp_path / "handler.py"
    target.write_text("x = 1\n")
    monkeypatch.setattr(search_service, "find_similar_comments", lambda **kwargs: [])

    result = runner.invoke(app, ["search", str(target), "--json", "--query", "naming"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["results"] == []


def test_search_rejects_unknown_strategy(monkeypatch, tmp_path):
    _env(monkeypatch)
    target = tmp_path / "handler.py"
    target.write_text("x = 1\n")

    result = runner.invoke(app, ["search", str(target), "--strategy", "fastest"])

    assert result.exit_code != 0


def test_search_requires_database_url(monkeypatch, tmp_path):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    target = tmp_path / "handler.py"
    target.write_text("x = 1\n")

    result = runner.invoke(app, ["search", str(target)])

    assert result.exit_code != 0


def test_stats_json(monkeypatch, tmp_path):
    _env(monkeypatch)
    project = str(tmp_path.resolve())
    store = _RepositoryStub(
        [
            make_record("a", project_path=project, repository="acme/api", pr_number=1),
            make_record("b", project_path=project, repository="acme/api", pr_number=2),
        ]
    )
    monkeypatch.setattr(comment_repository, "CommentRepository", lambda: store)

    result = runner.invoke(app, ["stats", "--project", project, "--json"])

    assert result.exit_code == 0, result.output
    stats = json.loads(result.output)
    assert stats["total_comments"] == 2
    assert stats["total_prs"] == 2


def test_clear_requires_confirmation(monkeypatch):
    _env(monkeypatch)

    result = runner.invoke(app, ["clear", "--repository", "acme/api"])

    assert result.exit_code == 2


def test_clear_deletes_repository_comments(monkeypatch, tmp_path):
    _env(monkeypatch)
    project = str(tmp_path.resolve())
    store = _RepositoryStub(
        [
            make_record("a", project_path=project, repository="acme/api"),
            make_record("b", project_path=project, repository="acme/web"),
        ]
    )
    monkeypatch.setattr(comment_repository, "CommentRepository", lambda: store)

    result = runner.invoke(app, ["clear", "--repository", "acme/api", "--project", project, "--yes"])

    assert result.exit_code == 0, result.output
    assert "deleted 1 comments" in result.output
    assert [r.id for r in store.records] == ["b"]


def test_search_forwards_filters(monkeypatch, tmp_path):
    _env(monkeypatch)
    target = tmp_path / "handler.py"
    target.write_text("x = 1\n")
    seen = {}

    def fake_find(**kwargs):
        seen.update(kwargs)
        return []

    monkeypatch.setattr(search_service, "find_similar_comments", fake_find)

    result = runner.invoke(
        app,
        [
            "search",
            str(target),
            "--author",
            "dana",
            "--type",
            "review",
            "--category",
            "performance",
            "--severity",
            "major",
            "--path",
            "api/",
        ],
    )

    assert result.exit_code == 0, result.output
    assert seen["author"] == "dana"
    assert seen["comment_type"] == "review"
    assert seen["issue_category"] == "performance"
    assert seen["severity"] == "major"
    assert seen["file_path"] == "api/"


def test_list_pages_repository_comments(monkeypatch, tmp_path):
    _env(monkeypatch)
    project = str(tmp_path.resolve())
    store = _RepositoryStub(
        [
            make_record("a", project_path=project, repository="acme/api", author="dana"),
            make_record("b", project_path=project, repository="acme/api", author="lee"),
            make_record("c", project_path=project, repository="acme/api", author="dana"),
            make_record("d", project_path=project, repository="acme/web", author="dana"),
        ]
    )
    monkeypatch.setattr(comment_repository, "CommentRepository", lambda: store)

    result = runner.invoke(
        app,
        ["list", "--repository", "acme/api", "--project", project, "--author", "dana", "--offset", "1", "--json"],
    )

    assert result.exit_code == 0, result.output
    assert [c["id"] for c in json.loads(result.output)["comments"]] == ["c"]


def test_clear_with_nothing_stored_deletes_nothing(monkeypatch, tmp_path):
    _env(monkeypatch)
    project = str(tmp_path.resolve())
    store = _RepositoryStub([make_record("b", project_path=project, repository="acme/web")])
    monkeypatch.setattr(comment_repository, "CommentRepository", lambda: store)

    result = runner.invoke(app, ["clear", "--repository", "acme/api", "--project", project, "--yes"])

    assert result.exit_code == 0, result.output
    assert "deleted 0 comments" in result.output
    assert [r.id for r in store.records] == ["b"]
