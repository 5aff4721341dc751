"""Locate schemas for the CLI: import modules, resolve ``MODULE:Model``."""

from __future__ import annotations

import importlib
import sys
from typing import TYPE_CHECKING

from crecto.domain.schema import Model, registered_models
from crecto.errors import InvalidOptionError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path


def _ensure_importable(search_path: Path | None) -> None:
    if search_path is not None and str(search_path) not in sys.path:
        sys.path.insert(0, str(search_path))


def import_models(modules: Sequence[str], *, search_path: Path | None = None) -> list[type[Model]]:
    """Import *modules* and return the schemas they define, in definition order.

    *search_path* (normally the project root) is made importable first so
    project-local modules resolve without installing the project.
    """
    _ensure_importable(search_path)
    for module in modules:
        importlib.import_module(module)
    wanted = set(modules)
    return [model for model in registered_models() if model.__module__ in wanted]


def resolve_model(target: str, *, search_path: Path | None = None) -> type[Model]:
    """``"app.models:User"`` -> the ``User`` schema class.

    Raises:
        InvalidOptionError: If *target* is malformed or names no schema.
        ImportError: If the module cannot be imported.
    """
    module_name, sep, class_name = target.partition(":")
    if not sep or not module_name or not class_name:
        msg = f"Expected MODULE:Model, got {target!r}"
        raise InvalidOptionError(msg)
    _ensure_importable(search_path)
    module = importlib.import_module(module_name)
    model = getattr(module, class_name, None)
    if not (isinstance(model, type) and issubclass(model, Model)):
        msg = f"{class_name!r} in {module_name!r} is not a schema"
        raise InvalidOptionError(msg)
    return model
