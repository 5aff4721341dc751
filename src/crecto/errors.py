"""Exception hierarchy for crecto.

Non-raising repo operations report problems on the returned Changeset;
the ``*_or_raise`` variants and live transactions raise these instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from crecto.domain.changeset import Changeset


class CrectoError(Exception):
    """Base class for all crecto errors."""


class NoResultsError(CrectoError):
    """A lookup that must return a row found none."""

    def __init__(self, model: type[Any], criteria: dict[str, Any]) -> None:
        self.model = model
        self.criteria = criteria
        super().__init__(f"No {model.__name__} found for {criteria!r}")


class InvalidChangesetError(CrectoError):
    """A write was attempted with a changeset that has errors."""

    def __init__(self, changeset: Changeset[Any]) -> None:
        self.changeset = changeset
        rendered = ", ".join(f"{e['field']} {e['message']}" for e in changeset.errors)
        super().__init__(f"Invalid changeset for {type(changeset.instance).__name__}: {rendered}")


class AssociationNotLoadedError(CrectoError):
    """An association was read before being preloaded or assigned."""

    def __init__(self, model: type[Any], name: str) -> None:
        self.model = model
        self.name = name
        super().__init__(
            f"Association {name!r} on {model.__name__} is not loaded; "
            "preload it or use Repo.get_association()"
        )


class InvalidAssociationError(CrectoError):
    """An association name or definition could not be resolved."""


class InvalidAdapterError(CrectoError):
    """The configured adapter name is not supported."""


class InvalidOptionError(CrectoError):
    """An operation received an option it does not support."""
