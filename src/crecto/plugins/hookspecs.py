"""Pluggy hook specifications for repo write lifecycle events.

Hooks fire after the surrounding database transaction commits, so a
plugin never observes a write that is later rolled back.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("crecto")
hookimpl = pluggy.HookimplMarker("crecto")


class CrectoHookSpec:
    """Hook specifications for the crecto plugin system."""

    @hookspec
    def post_insert(
        self,
        model: str,
        table: str,
        record_id: Any,
        values: dict[str, Any],
    ) -> None:
        """Called after a row is inserted."""

    @hookspec
    def post_update(
        self,
        model: str,
        table: str,
        record_id: Any,
        fields_changed: list[str],
    ) -> None:
        """Called after a row is updated."""

    @hookspec
    def post_delete(
        self,
        model: str,
        table: str,
        record_id: Any,
    ) -> None:
        """Called after a row is deleted."""

    @hookspec
    def post_bulk(
        self,
        model: str,
        table: str,
        operation: str,
        rows_affected: int,
    ) -> None:
        """Called after ``update_all`` / ``delete_all``."""

    @hookspec
    def post_transaction(
        self,
        operations: int,
        ok: bool,
    ) -> None:
        """Called after a Multi transaction finishes (committed or rolled back)."""
