"""Tests for field type casting and type checks."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from crecto.domain.types import CastError, FieldType, cast_value, is_instance_of
from tests.schemas import Role


class TestCastValue:
    def test_none_passes_through(self) -> None:
        for field_type in FieldType:
            assert cast_value(field_type, None, enum=Role) is None

    def test_string(self) -> None:
        assert cast_value(FieldType.STRING, 12) == "12"
        assert cast_value(FieldType.TEXT, Role.ADMIN) == "admin"
        with pytest.raises(CastError):
            cast_value(FieldType.STRING, {"a": 1})

    def test_integer(self) -> None:
        assert cast_value(FieldType.INTEGER, " 42 ") == 42
        assert cast_value(FieldType.BIGINT, 3.0) == 3
        with pytest.raises(CastError):
            cast_value(FieldType.INTEGER, 3.5)
        with pytest.raises(CastError):
            cast_value(FieldType.INTEGER, "forty")

    def test_integer_rejects_bool(self) -> None:
        with pytest.raises(CastError):
            cast_value(FieldType.INTEGER, True)

    def test_float(self) -> None:
        assert cast_value(FieldType.FLOAT, "2.5") == 2.5
        assert cast_value(FieldType.FLOAT, 2) == 2.0
        with pytest.raises(CastError):
            cast_value(FieldType.FLOAT, "x")

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("YES", True), ("1", True), ("off", False), ("f", False), (0, False)],
    )
    def test_boolean(self, raw: object, expected: bool) -> None:
        assert cast_value(FieldType.BOOLEAN, raw) is expected

    def test_boolean_rejects_unknown_strings(self) -> None:
        with pytest.raises(CastError):
            cast_value(FieldType.BOOLEAN, "maybe")

    def test_datetime_iso_with_z_suffix(self) -> None:
        value = cast_value(FieldType.DATETIME, "2024-01-02T03:04:05Z")
        assert value == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)

    def test_datetime_from_date(self) -> None:
        assert cast_value(FieldType.DATETIME, date(2024, 5, 6)) == datetime(
            2024, 5, 6, tzinfo=UTC
        )

    def test_json_and_array(self) -> None:
        assert cast_value(FieldType.JSON, '{"a": 1}') == {"a": 1}
        assert cast_value(FieldType.ARRAY, '["a", "b"]') == ["a", "b"]
        assert cast_value(FieldType.ARRAY, ("x",)) == ["x"]
        with pytest.raises(CastError):
            cast_value(FieldType.ARRAY, '{"not": "a list"}')

    def test_enum_by_value_and_name(self) -> None:
        assert cast_value(FieldType.ENUM, "admin", enum=Role) is Role.ADMIN
        assert cast_value(FieldType.ENUM, "MEMBER", enum=Role) is Role.MEMBER
        with pytest.raises(CastError):
            cast_value(FieldType.ENUM, "owner", enum=Role)


class TestIsInstanceOf:
    def test_bool_is_not_an_integer(self) -> None:
        assert not is_instance_of(FieldType.INTEGER, True)
        assert is_instance_of(FieldType.INTEGER, 1)

    def test_int_counts_as_float(self) -> None:
        assert is_instance_of(FieldType.FLOAT, 1)
        assert not is_instance_of(FieldType.FLOAT, "1.0")

    def test_enum_requires_member(self) -> None:
        assert is_instance_of(FieldType.ENUM, Role.ADMIN, enum=Role)
        assert not is_instance_of(FieldType.ENUM, "admin", enum=Role)

    def test_none_is_always_accepted(self) -> None:
        assert is_instance_of(FieldType.DATETIME, None)
