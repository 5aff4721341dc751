"""Shared pytest fixtures and test helpers for crecto tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from crecto import Repo
from crecto.plugins import PluginManager, hookimpl
from tests.schemas import ALL_MODELS, Post, User


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def repo(tmp_path: Path) -> Iterator[Repo]:
    """Repo on a fresh SQLite file with every test schema's table created."""
    r = Repo(url=f"sqlite:///{tmp_path / 'test.db'}")
    r.create_tables(*ALL_MODELS)
    try:
        yield r
    finally:
        r.close()


class RecordingPlugin:
    """Plugin that records every hook call as ``(hook_name, kwargs)``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @hookimpl
    def post_insert(self, model: str, table: str, record_id: Any, values: dict[str, Any]) -> None:
        self.calls.append(("post_insert", {"model": model, "record_id": record_id}))

    @hookimpl
    def post_update(
        self, model: str, table: str, record_id: Any, fields_changed: list[str]
    ) -> None:
        self.calls.append(
            ("post_update", {"model": model, "record_id": record_id, "fields": fields_changed})
        )

    @hookimpl
    def post_delete(self, model: str, table: str, record_id: Any) -> None:
        self.calls.append(("post_delete", {"model": model, "record_id": record_id}))

    @hookimpl
    def post_bulk(self, model: str, table: str, operation: str, rows_affected: int) -> None:
        self.calls.append(
            ("post_bulk", {"model": model, "operation": operation, "rows": rows_affected})
        )

    @hookimpl
    def post_transaction(self, operations: int, ok: bool) -> None:
        self.calls.append(("post_transaction", {"operations": operations, "ok": ok}))

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def recorder() -> RecordingPlugin:
    return RecordingPlugin()


@pytest.fixture
def plugin_repo(tmp_path: Path, recorder: RecordingPlugin) -> Iterator[Repo]:
    """Like ``repo`` but with :class:`RecordingPlugin` registered."""
    pm = PluginManager()
    pm.register_plugin(recorder, name="recorder")
    r = Repo(url=f"sqlite:///{tmp_path / 'hooks.db'}", plugin_manager=pm)
    r.create_tables(*ALL_MODELS)
    try:
        yield r
    finally:
        r.close()


@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """CWD set to a temp project with a SQLite ``crecto.toml``.

    The project ships ``crecto_test_app.py`` defining a ``Widget`` schema
    and lists it under ``[cli] models``.
    """
    (tmp_path / "crecto.toml").write_text(
        '[database]\ndatabase = "app.db"\n\n[cli]\nmodels = ["crecto_test_app"]\n',
        encoding="utf-8",
    )
    (tmp_path / "crecto_test_app.py").write_text(
        "from crecto import Field, Model\n\n\n"
        "class Widget(Model):\n"
        '    name = Field("string")\n'
        '    size = Field("integer", default=1)\n',
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("CRECTO_CONFIG", raising=False)
    return tmp_path


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def insert_user(repo: Repo, name: str = "alice", **values: Any) -> User:
    """Insert a User via the repo, asserting success."""
    changeset = repo.insert(User(name=name, **values))
    assert changeset.valid, changeset.errors
    return changeset.instance


def insert_post(repo: Repo, user: User, title: str = "hello", **values: Any) -> Post:
    """Insert a Post owned by *user*, asserting success."""
    changeset = repo.insert(Post(title=title, user_id=user.id, **values))
    assert changeset.valid, changeset.errors
    return changeset.instance
