"""Tests for the immutable query builder."""

from __future__ import annotations

import pytest

from crecto import Query
from crecto.domain.query import Condition, Fragment, Group, Join, OrderBy, Preload


class TestWhere:
    def test_builder_is_immutable(self) -> None:
        base = Query()
        narrowed = base.where(name="a")
        assert base.wheres == ()
        assert narrowed.wheres == (Condition("name", "a"),)

    def test_field_value_form(self) -> None:
        assert Query().where("age", 3).wheres == (Condition("age", 3),)

    def test_fragment_form(self) -> None:
        query = Query().where("age > ? AND age < ?", [18, 65])
        assert query.wheres == (Fragment("age > ? AND age < ?", (18, 65)),)

    def test_fragment_without_params(self) -> None:
        assert Query().where("deleted_at IS NULL").wheres == (Fragment("deleted_at IS NULL"),)

    def test_fragment_placeholder_mismatch(self) -> None:
        with pytest.raises(ValueError, match="placeholder"):
            Query().where("a = ? AND b = ?", [1])

    def test_invalid_arguments(self) -> None:
        with pytest.raises(TypeError):
            Query().where(1, 2)

    def test_where_and_or_where_grouping(self) -> None:
        query = Query().where(a=1).where(b=2).or_where(c=3).or_where(d=4)
        assert query.where_clause() == Group(
            "and",
            (
                Condition("a", 1),
                Condition("b", 2),
                Group("or", (Condition("c", 3), Condition("d", 4))),
            ),
        )

    def test_single_clause_is_not_wrapped(self) -> None:
        assert Query().where(a=1).where_clause() == Condition("a", 1)
        assert Query().where_clause() is None

    def test_or_combinator(self) -> None:
        query = Query.or_(Query().where(a=1), Query().where(b=2), Query())
        assert query.wheres == (Group("or", (Condition("a", 1), Condition("b", 2))),)

    def test_and_combinator_of_nothing(self) -> None:
        assert Query.and_(Query(), Query()) == Query()


class TestOtherClauses:
    @pytest.mark.parametrize(
        ("clause", "expected"),
        [
            ("name", OrderBy(field="name")),
            ("-name", OrderBy(field="name", descending=True)),
            ("name DESC", OrderBy(field="name", descending=True)),
            ("posts.title asc", OrderBy(field="posts.title")),
            ("LENGTH(name)", OrderBy(raw="LENGTH(name)")),
        ],
    )
    def test_order_by_parsing(self, clause: str, expected: OrderBy) -> None:
        assert Query().order_by(clause).order_bys == (expected,)

    def test_limit_and_offset_reject_negatives(self) -> None:
        with pytest.raises(ValueError):
            Query().limit(-1)
        with pytest.raises(ValueError):
            Query().offset(-5)
        assert Query().limit(0).limit_value == 0

    def test_join_association_or_raw(self) -> None:
        query = Query().join("posts").join("LEFT JOIN tags ON tags.post_id = posts.id")
        assert query.joins == (
            Join(association="posts"),
            Join(raw="LEFT JOIN tags ON tags.post_id = posts.id"),
        )

    def test_preload_with_scope(self) -> None:
        scope = Query().where(score=1)
        assert Query().preload("posts", scope).preloads == (Preload("posts", scope),)

    def test_distinct_and_select(self) -> None:
        query = Query().select("name").distinct("name")
        assert query.selects == ("name",)
        assert query.is_distinct
        assert query.distinct_fields == ("name",)

    def test_without_paging_and_preloads(self) -> None:
        query = Query().preload("posts").order_by("name").limit(1).offset(2).where(a=1)
        stripped = query.without_paging().without_preloads()
        assert stripped == Query().where(a=1)
