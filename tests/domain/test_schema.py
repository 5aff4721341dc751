"""Tests for schema declaration, registry and change tracking."""

from __future__ import annotations

import pytest

from crecto import AssociationNotLoadedError, Field, InvalidAssociationError, Model
from crecto.domain.schema import default_table_name, get_model, snake_case
from crecto.domain.types import FieldType
from tests.schemas import Comment, Post, Profile, Project, Role, User, UserProject


class _Stamped(Model):
    __abstract__ = True

    note = Field("text")


class StampedEntry(_Stamped):
    title = Field("string")


class Sku(Model):
    code = Field("string", primary_key=True)
    price = Field("float")


class TestNaming:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [("User", "user"), ("UserProject", "user_project"), ("HTTPRequest", "http_request")],
    )
    def test_snake_case(self, name: str, expected: str) -> None:
        assert snake_case(name) == expected

    @pytest.mark.parametrize(
        ("name", "expected"),
        [("Post", "posts"), ("Category", "categories"), ("Box", "boxes"), ("Day", "days")],
    )
    def test_default_table_name(self, name: str, expected: str) -> None:
        assert default_table_name(name) == expected

    def test_declared_and_default_table_names(self) -> None:
        assert User.__tablename__ == "users"
        assert Profile.__tablename__ == "profiles"
        assert UserProject.__tablename__ == "user_projects"


class TestSchemaDeclaration:
    def test_implicit_primary_key_comes_first(self) -> None:
        assert User.primary_key_field() == "id"
        assert next(iter(User.fields())) == "id"
        assert User.fields()["id"].type is FieldType.INTEGER

    def test_explicit_primary_key(self) -> None:
        assert Sku.primary_key_field() == "code"
        assert "id" not in Sku.fields()
        assert not Sku.fields()["code"].autoincrement

    def test_belongs_to_adds_foreign_key_field(self) -> None:
        assert "user_id" in Post.fields()
        assert Post.fields()["user_id"].index
        assert "post_id" in Comment.fields()

    def test_timestamps_added_unless_disabled(self) -> None:
        assert {"created_at", "updated_at"} <= set(User.fields())
        assert "created_at" not in UserProject.fields()

    def test_virtual_fields_are_not_persisted(self) -> None:
        assert "nickname" in User.fields()
        assert "nickname" not in User.persisted_fields()

    def test_more_than_one_primary_key_is_rejected(self) -> None:
        with pytest.raises(TypeError, match="more than one primary key"):

            class _TwoKeys(Model):
                a = Field("integer", primary_key=True)
                b = Field("integer", primary_key=True)

    def test_abstract_base_fields_are_inherited(self) -> None:
        assert {"note", "title"} <= set(StampedEntry.fields())
        with pytest.raises(TypeError, match="abstract"):
            _Stamped()

    def test_association_metadata(self) -> None:
        assert User.association("posts").foreign_key == "user_id"
        assert User.association("profile").many is False
        assert Project.association("users").through == "user_projects"
        with pytest.raises(InvalidAssociationError):
            User.association("nope")

    def test_registry_lookup(self) -> None:
        assert get_model("User") is User
        with pytest.raises(InvalidAssociationError):
            get_model("DoesNotExist")

    def test_unique_fields(self) -> None:
        assert User.unique_fields() == ["email"]
        assert User.unique_message("email") == "has already been taken"


class TestInstances:
    def test_defaults_are_applied_and_not_shared(self) -> None:
        a, b = User(name="a"), User(name="b")
        assert a.active is True
        assert a.role is Role.MEMBER
        a.tags.append("x")
        assert b.tags == []

    def test_unknown_field_is_rejected(self) -> None:
        with pytest.raises(TypeError, match="unknown field"):
            User(nmae="typo")

    def test_unloaded_association_raises(self) -> None:
        user = User(name="a")
        with pytest.raises(AssociationNotLoadedError):
            _ = user.posts

    def test_assigned_association_is_readable(self) -> None:
        post = Post(title="t")
        user = User(name="a", posts=[post])
        assert user.posts == [post]
        assert user.loaded_associations() == ["posts"]

    def test_cast_respects_whitelist_and_keeps_bad_values(self) -> None:
        user = User.cast({"name": "a", "age": "7", "bogus": 1, "email": "a@x"}, ["name", "age"])
        assert user.name == "a"
        assert user.age == 7
        assert user.email is None
        assert User.cast({"age": "old"}).age == "old"

    def test_apply_updates_in_place(self) -> None:
        user = User.from_row({"id": 1, "name": "a", "age": 3})
        user.apply({"age": "4", "name": "b"}, whitelist=["age"])
        assert user.age == 4
        assert user.name == "a"
        assert user.pending_changes() == {"age": 4}

    def test_from_row_snapshots(self) -> None:
        user = User.from_row({"id": 5, "name": "a", "role": "admin", "tags": '["x"]'})
        assert user.persisted
        assert user.role is Role.ADMIN
        assert user.tags == ["x"]
        assert user.pending_changes() == {}
        user.name = "b"
        assert user.pending_changes() == {"name": "b"}

    def test_new_instance_changes_are_non_null_fields(self) -> None:
        sku = Sku(code="A1")
        assert not sku.persisted
        assert sku.pending_changes() == {"code": "A1"}

    def test_to_query_dict_converts_enums_and_skips_virtual(self) -> None:
        user = User(name="a", role=Role.ADMIN, nickname="al")
        stored = user.to_query_dict()
        assert stored["role"] == "admin"
        assert "nickname" not in stored
        assert user.to_dict()["nickname"] == "al"
