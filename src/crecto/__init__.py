"""crecto — a repository-pattern database wrapper and query builder.

Schemas declare fields and associations, changesets validate writes, an
immutable :class:`Query` describes reads, and the :class:`Repo` runs it
all against SQLite, PostgreSQL or MySQL through SQLAlchemy Core.
"""

from crecto.domain.associations import BelongsTo, Dependent, HasMany, HasOne
from crecto.domain.changeset import Changeset
from crecto.domain.fields import Field
from crecto.domain.multi import Multi
from crecto.domain.query import Query
from crecto.domain.schema import Model
from crecto.domain.types import CastError, FieldType
from crecto.domain.validations import (
    Custom,
    Exclusion,
    Format,
    Inclusion,
    Length,
    Required,
    Unique,
    unique_constraint,
    validate,
    validate_exclusion,
    validate_format,
    validate_inclusion,
    validate_length,
    validate_required,
)
from crecto.errors import (
    AssociationNotLoadedError,
    CrectoError,
    InvalidAdapterError,
    InvalidAssociationError,
    InvalidChangesetError,
    InvalidOptionError,
    NoResultsError,
)
from crecto.infrastructure.repo import LiveTransaction, Repo

__version__ = "0.1.0"

__all__ = [
    "AssociationNotLoadedError",
    "BelongsTo",
    "CastError",
    "Changeset",
    "CrectoError",
    "Custom",
    "Dependent",
    "Exclusion",
    "Field",
    "FieldType",
    "Format",
    "HasMany",
    "HasOne",
    "Inclusion",
    "InvalidAdapterError",
    "InvalidAssociationError",
    "InvalidChangesetError",
    "InvalidOptionError",
    "Length",
    "LiveTransaction",
    "Model",
    "Multi",
    "NoResultsError",
    "Query",
    "Repo",
    "Required",
    "Unique",
    "__version__",
    "unique_constraint",
    "validate",
    "validate_exclusion",
    "validate_format",
    "validate_inclusion",
    "validate_length",
    "validate_required",
]
