"""Tests for per-statement query logging."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from crecto import Repo
from crecto.config.logging import configure_logging
from crecto.infrastructure.database.query_log import _render_params, _short
from tests.schemas import User


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    logging.getLogger().handlers.clear()
    logging.getLogger("crecto.query").setLevel(logging.NOTSET)
    logging.getLogger("crecto").setLevel(logging.NOTSET)
    structlog.reset_defaults()


def _repo(tmp_path: Path) -> Repo:
    repo = Repo(url=f"sqlite:///{tmp_path / 'log.db'}", log_queries=True)
    repo.create_tables(User)
    return repo


class TestQueryLogging:
    def test_statements_logged_when_enabled(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        configure_logging(log_queries=True, log_json=True)
        with _repo(tmp_path) as repo:
            capsys.readouterr()
            repo.raw_query("SELECT name FROM users WHERE name = ?", "alice")

        lines = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line]
        queries = [line for line in lines if line["event"] == "query"]
        assert queries
        entry = queries[-1]
        assert entry["sql"] == "SELECT name FROM users WHERE name = ?"
        assert entry["params"] == ["alice"]
        assert entry["elapsed_ms"] >= 0
        assert entry["logger"] == "crecto.query"

    def test_silent_when_disabled(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        configure_logging(log_queries=False)
        with _repo(tmp_path) as repo:
            repo.raw_query("SELECT 1")
        assert "query" not in capsys.readouterr().err

    def test_failed_statement_logged(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        configure_logging(log_queries=True, log_json=True)
        with _repo(tmp_path) as repo, pytest.raises(Exception, match="no such table"):
            repo.raw_query("SELECT * FROM missing_table")

        lines = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line]
        failed = [line for line in lines if line["event"] == "query.failed"]
        assert failed
        assert "missing_table" in failed[-1]["sql"]


class TestParamRendering:
    def test_long_strings_are_truncated(self) -> None:
        assert _short("x" * 300).endswith("...")
        assert len(_short("x" * 300)) == 203

    def test_bytes_are_summarized(self) -> None:
        assert _short(b"abcd") == "<4 bytes>"

    def test_nested_parameters(self) -> None:
        assert _render_params({"a": 1, "b": b"xy"}) == {"a": 1, "b": "<2 bytes>"}
        assert _render_params([(1, 2), (3, 4)]) == [[1, 2], [3, 4]]
        assert _render_params(None) is None
