"""Tests for Repo reads, writes, raw SQL and bulk operations."""

from __future__ import annotations

from pathlib import Path

import pytest

from crecto import (
    Field,
    InvalidChangesetError,
    InvalidOptionError,
    Model,
    NoResultsError,
    Query,
    Repo,
)
from crecto.config.models import DatabaseConfig
from crecto.plugins import PluginManager, hookimpl
from tests.conftest import RecordingPlugin, insert_post, insert_user
from tests.schemas import Comment, Post, Profile, Project, Role, User, UserProject


class Ticket(Model):
    code = Field("string", primary_key=True)
    title = Field("string")


class TestConstruction:
    def test_in_memory_database_is_shared_across_checkouts(self) -> None:
        with Repo() as repo:
            repo.create_tables(User)
            insert_user(repo, "mem")
            assert repo.get_by(User, name="mem") is not None

    def test_url_overrides_config(self, tmp_path: Path) -> None:
        url = f"sqlite:///{tmp_path / 'x.db'}"
        with Repo(DatabaseConfig(database="ignored.db"), url=url) as repo:
            assert repo.config.uri == url
            assert repo.adapter.name == "sqlite"

    def test_server_version(self, repo: Repo) -> None:
        assert repo.server_version().count(".") >= 1

    def test_foreign_keys_pragma_enabled(self, repo: Repo) -> None:
        assert repo.raw_scalar("PRAGMA foreign_keys") == 1


class TestInsert:
    def test_assigns_primary_key_and_timestamps(self, repo: Repo) -> None:
        user = insert_user(repo, email="a@example.com")
        assert user.id is not None
        assert user.persisted
        assert user.created_at is not None
        assert user.updated_at is not None
        assert user.pending_changes() == {}

    def test_round_trips_field_types(self, repo: Repo) -> None:
        user = insert_user(
            repo, tags=["a", "b"], settings={"k": 1}, role=Role.ADMIN, active=False, age=30
        )
        fetched = repo.get(User, user.id)
        assert fetched is not None
        assert fetched.tags == ["a", "b"]
        assert fetched.settings == {"k": 1}
        assert fetched.role is Role.ADMIN
        assert fetched.active is False
        assert fetched.age == 30

    def test_invalid_changeset_is_not_written(self, repo: Repo) -> None:
        changeset = repo.insert(User())
        assert not changeset.valid
        assert repo.aggregate(User, "count", "id") == 0

    def test_unique_field_already_taken(self, repo: Repo) -> None:
        insert_user(repo, email="a@example.com")
        duplicate = User(name="b", email="a@example.com")
        changeset = repo.insert(duplicate)
        assert changeset.errors == [{"field": "email", "message": "has already been taken"}]
        assert not duplicate.persisted
        assert repo.aggregate(User, "count", "id") == 1

    def test_integrity_error_becomes_changeset_error(self, repo: Repo) -> None:
        comment = Comment(post_id=1)
        changeset = repo.insert(comment)
        assert [e["field"] for e in changeset.errors] == ["insert_error"]
        assert "NOT NULL" in changeset.errors[0]["message"]
        assert comment.id is None
        assert not comment.persisted

    def test_explicit_string_primary_key(self, repo: Repo) -> None:
        repo.create_tables(Ticket)
        repo.insert_or_raise(Ticket(code="T-1", title="first"))
        found = repo.get_or_raise(Ticket, "T-1")
        assert found.title == "first"

    def test_insert_or_raise(self, repo: Repo) -> None:
        user = repo.insert_or_raise(User(name="x"))
        assert user.id is not None
        with pytest.raises(InvalidChangesetError, match="name is required"):
            repo.insert_or_raise(User())


class TestUpdate:
    def test_writes_only_changed_fields(self, repo: Repo) -> None:
        user = insert_user(repo, age=20)
        user.age = 21
        changeset = repo.update(user)
        assert changeset.valid
        assert changeset.changed_fields == ["age"]
        assert repo.get_or_raise(User, user.id).age == 21
        assert user.pending_changes() == {}

    def test_invalid_update_leaves_row_untouched(self, repo: Repo) -> None:
        user = insert_user(repo, "keep")
        user.name = ""
        assert not repo.update(user).valid
        assert repo.get_or_raise(User, user.id).name == "keep"

    def test_unique_check_ignores_own_row(self, repo: Repo) -> None:
        user = insert_user(repo, email="a@example.com")
        user.email = "a@example.com"
        user.age = 5
        assert repo.update(user).valid

    def test_unique_check_against_other_rows(self, repo: Repo) -> None:
        insert_user(repo, "a", email="a@example.com")
        other = insert_user(repo, "b", email="b@example.com")
        other.email = "a@example.com"
        assert repo.update(other).errors_for("email") == ["has already been taken"]

    def test_without_primary_key(self, repo: Repo) -> None:
        changeset = repo.update(User(name="x"))
        assert changeset.errors == [
            {"field": "update_error", "message": "cannot update a record without a primary key"}
        ]

    def test_missing_row(self, repo: Repo) -> None:
        user = insert_user(repo)
        repo.delete(user)
        user.age = 3
        changeset = repo.update(user)
        assert changeset.errors == [
            {"field": "update_error", "message": f"no User with id={user.id!r}"}
        ]

    def test_update_or_raise(self, repo: Repo) -> None:
        user = insert_user(repo)
        user.name = None
        with pytest.raises(InvalidChangesetError):
            repo.update_or_raise(user)


class TestDelete:
    def test_removes_row_and_clears_snapshot(self, repo: Repo) -> None:
        user = insert_user(repo)
        assert repo.delete(user).valid
        assert repo.get(User, user.id) is None
        assert not user.persisted

    def test_applies_dependent_rules(self, repo: Repo) -> None:
        user = insert_user(repo)
        post = insert_post(repo, user)
        comment = repo.insert_or_raise(Comment(body="hi", post_id=post.id))
        repo.insert_or_raise(Profile(bio="x", user_id=user.id))
        project = repo.insert_or_raise(Project(name="p"))
        repo.insert_or_raise(UserProject(user_id=user.id, project_id=project.id))

        repo.delete_or_raise(user)

        assert repo.all(Post) == []
        assert repo.all(Profile) == []
        assert repo.all(UserProject) == []
        assert repo.get_or_raise(Project, project.id).name == "p"
        orphan = repo.get_or_raise(Comment, comment.id)
        assert orphan.post_id is None

    def test_delete_does_not_run_validations(self, repo: Repo) -> None:
        user = insert_user(repo)
        user.name = ""
        assert repo.delete(user).valid

    def test_without_primary_key(self, repo: Repo) -> None:
        changeset = repo.delete(User(name="x"))
        assert changeset.errors_for("delete_error") == [
            "cannot delete a record without a primary key"
        ]

    def test_already_deleted(self, repo: Repo) -> None:
        user = insert_user(repo)
        repo.delete(user)
        with pytest.raises(InvalidChangesetError, match="no User with id="):
            repo.delete_or_raise(user)

    def test_deleted_instance_never_touches_a_newer_row(self, repo: Repo) -> None:
        insert_user(repo, "keep")
        ghost = insert_user(repo, "ghost")
        repo.delete(ghost)
        fresh = insert_user(repo, "fresh")

        assert ghost.deleted
        assert fresh.id != ghost.id
        assert repo.delete(ghost).errors_for("delete_error") == [f"no User with id={ghost.id!r}"]
        ghost.name = "revived"
        assert repo.update(ghost).errors_for("update_error") == [f"no User with id={ghost.id!r}"]
        assert [u.name for u in repo.all(User, Query().order_by("id"))] == ["keep", "fresh"]


class TestReads:
    @pytest.fixture
    def people(self, repo: Repo) -> list[User]:
        return [
            insert_user(repo, "alice", age=30),
            insert_user(repo, "bob", age=17),
            insert_user(repo, "carol"),
        ]

    def test_all_with_order(self, repo: Repo, people: list[User]) -> None:
        names = [u.name for u in repo.all(User, Query().order_by("-name"))]
        assert names == ["carol", "bob", "alice"]

    def test_loaded_instances_are_snapshotted(self, repo: Repo, people: list[User]) -> None:
        loaded = repo.all(User)
        assert all(u.persisted and u.pending_changes() == {} for u in loaded)

    def test_none_matches_null(self, repo: Repo, people: list[User]) -> None:
        assert [u.name for u in repo.all(User, Query().where(age=None))] == ["carol"]

    def test_in_list_and_empty_list(self, repo: Repo, people: list[User]) -> None:
        query = Query().where(name=["alice", "bob"]).order_by("name")
        assert [u.name for u in repo.all(User, query)] == ["alice", "bob"]
        assert repo.all(User, Query().where(name=[])) == []

    def test_or_where(self, repo: Repo, people: list[User]) -> None:
        query = Query().or_where(name="alice").or_where(age=17).order_by("name")
        assert [u.name for u in repo.all(User, query)] == ["alice", "bob"]

    def test_fragment(self, repo: Repo, people: list[User]) -> None:
        query = Query().where("age >= ?", [18])
        assert [u.name for u in repo.all(User, query)] == ["alice"]

    def test_limit_and_offset(self, repo: Repo, people: list[User]) -> None:
        query = Query().order_by("name").limit(1).offset(1)
        assert [u.name for u in repo.all(User, query)] == ["bob"]

    def test_select_subset(self, repo: Repo, people: list[User]) -> None:
        users = repo.all(User, Query().select("name").order_by("name"))
        assert [u.name for u in users] == ["alice", "bob", "carol"]
        assert users[0].age is None

    def test_join_association(self, repo: Repo, people: list[User]) -> None:
        insert_post(repo, people[1], "x")
        insert_post(repo, people[1], "x")
        query = Query().join("posts").where("posts.title", "x").distinct()
        assert [u.name for u in repo.all(User, query)] == ["bob"]

    def test_get_by(self, repo: Repo, people: list[User]) -> None:
        found = repo.get_by(User, name="bob")
        assert found is not None
        assert found.age == 17
        assert repo.get_by(User, name="nobody") is None

    def test_or_raise_variants(self, repo: Repo, people: list[User]) -> None:
        with pytest.raises(NoResultsError):
            repo.get_or_raise(User, 999)
        with pytest.raises(NoResultsError, match="nobody"):
            repo.get_by_or_raise(User, name="nobody")
        assert repo.get_by_or_raise(User, name="alice").age == 30

    def test_aggregate(self, repo: Repo, people: list[User]) -> None:
        assert repo.aggregate(User, "count", "id") == 3
        assert repo.aggregate(User, "sum", "age") == 47
        assert repo.aggregate(User, "max", "age", Query().where(name="bob")) == 17
        assert repo.aggregate(User, "count", "id", Query().limit(1)) == 3

    def test_unsupported_aggregate(self, repo: Repo) -> None:
        with pytest.raises(InvalidOptionError, match="Unsupported aggregate"):
            repo.aggregate(User, "median", "age")

    def test_unknown_column(self, repo: Repo) -> None:
        with pytest.raises(InvalidOptionError, match="no column"):
            repo.all(User, Query().where(shoe_size=1))


class TestRawSql:
    def test_raw_query_returns_dicts(self, repo: Repo) -> None:
        insert_user(repo, "alice", age=30)
        insert_user(repo, "bob", age=10)
        rows = repo.raw_query("SELECT name, age FROM users WHERE age > ? ORDER BY name", 18)
        assert rows == [{"name": "alice", "age": 30}]

    def test_raw_scalar_and_exec(self, repo: Repo) -> None:
        insert_user(repo, "alice")
        assert repo.raw_exec("UPDATE users SET age = ? WHERE name = ?", 7, "alice") == 1
        assert repo.raw_scalar("SELECT age FROM users WHERE name = ?", "alice") == 7

    def test_list_params_expand(self, repo: Repo) -> None:
        a = insert_user(repo, "a")
        insert_user(repo, "b")
        c = insert_user(repo, "c")
        rows = repo.raw_query("SELECT name FROM users WHERE id IN ? ORDER BY id", [a.id, c.id])
        assert [r["name"] for r in rows] == ["a", "c"]

    def test_query_hydrates_schema(self, repo: Repo) -> None:
        insert_user(repo, "alice", role=Role.ADMIN)
        users = repo.query(User, "SELECT * FROM users WHERE name = ?", ["alice"])
        assert len(users) == 1
        assert users[0].role is Role.ADMIN
        assert users[0].persisted

    def test_placeholder_mismatch(self, repo: Repo) -> None:
        with pytest.raises(InvalidOptionError, match="placeholder"):
            repo.raw_query("SELECT * FROM users WHERE id = ?")


class TestBulk:
    def test_update_all(self, repo: Repo) -> None:
        insert_user(repo, "a", age=1)
        insert_user(repo, "b", age=1)
        insert_user(repo, "c", age=2)
        count = repo.update_all(User, Query().where(age=1), {"role": Role.ADMIN})
        assert count == 2
        admins = repo.all(User, Query().where(role=Role.ADMIN).order_by("name"))
        assert [u.name for u in admins] == ["a", "b"]

    def test_update_all_unknown_field(self, repo: Repo) -> None:
        with pytest.raises(InvalidOptionError, match="no field"):
            repo.update_all(User, None, {"shoe_size": 9})

    def test_delete_all_with_query(self, repo: Repo) -> None:
        insert_user(repo, "a", age=1)
        insert_user(repo, "b", age=2)
        assert repo.delete_all(User, Query().where(age=1)) == 1
        assert [u.name for u in repo.all(User)] == ["b"]

    def test_delete_all_cascades_to_dependents(self, repo: Repo) -> None:
        user = insert_user(repo)
        insert_post(repo, user)
        insert_post(repo, user, "second")
        assert repo.delete_all(User) == 1
        assert repo.aggregate(Post, "count", "id") == 0

    def test_delete_all_through_join(self, repo: Repo) -> None:
        alice = insert_user(repo, "alice")
        bob = insert_user(repo, "bob")
        insert_post(repo, alice, "a1")
        insert_post(repo, alice, "a2")
        insert_post(repo, bob, "b1")
        query = Query().join("user").where("users.name", "alice")
        assert repo.delete_all(Post, query) == 2
        assert [p.title for p in repo.all(Post)] == ["b1"]


class _ExplodingPlugin:
    @hookimpl
    def post_insert(self, model: str, table: str, record_id: object, values: dict) -> None:
        raise RuntimeError("plugin bug")


class TestHooks:
    def test_insert_update_delete_events(
        self, plugin_repo: Repo, recorder: RecordingPlugin
    ) -> None:
        user = insert_user(plugin_repo)
        user.age = 9
        plugin_repo.update(user)
        plugin_repo.delete(user)
        assert recorder.names() == ["post_insert", "post_update", "post_delete"]
        assert recorder.calls[0][1] == {"model": "User", "record_id": user.id}
        assert recorder.calls[1][1]["fields"] == ["age"]

    def test_failed_write_dispatches_nothing(
        self, plugin_repo: Repo, recorder: RecordingPlugin
    ) -> None:
        plugin_repo.insert(User())
        plugin_repo.insert(Comment(post_id=1))
        assert recorder.calls == []

    def test_bulk_event(self, plugin_repo: Repo, recorder: RecordingPlugin) -> None:
        plugin_repo.raw_exec("INSERT INTO users (name) VALUES (?)", "raw")
        plugin_repo.update_all(User, None, {"age": 1})
        assert recorder.calls == [
            ("post_bulk", {"model": "User", "operation": "update_all", "rows": 1})
        ]

    def test_plugin_failure_does_not_fail_the_write(self, tmp_path: Path) -> None:
        pm = PluginManager()
        pm.register_plugin(_ExplodingPlugin())
        with Repo(url=f"sqlite:///{tmp_path / 'boom.db'}", plugin_manager=pm) as repo:
            repo.create_tables(User)
            assert repo.insert(User(name="still saved")).valid
            assert repo.get_by(User, name="still saved") is not None
