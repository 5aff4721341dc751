"""Batched association loading.

One ``IN`` query per association level, regardless of how many owners
are being loaded. Dotted paths (``"posts.comments"``) walk nested levels;
an optional scoping query applies to the last level of the path.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Sequence
from typing import TYPE_CHECKING, Any

from crecto.domain.associations import Association, BelongsTo, HasMany
from crecto.domain.query import Preload, Query

if TYPE_CHECKING:
    from sqlalchemy import Connection

    from crecto.domain.schema import Model
    from crecto.infrastructure.database.compiler import QueryCompiler

# Keeps IN lists under every backend's bound-parameter ceiling.
CHUNK_SIZE = 500


def chunked(values: Sequence[Any], size: int = CHUNK_SIZE) -> Iterator[list[Any]]:
    for start in range(0, len(values), size):
        yield list(values[start : start + size])


def _unique(values: Iterable[Any]) -> list[Any]:
    seen: dict[Any, None] = {}
    for value in values:
        if value is not None:
            seen.setdefault(value, None)
    return list(seen)


class Preloader:
    """Loads associations onto already-fetched instances."""

    def __init__(self, conn: Connection, compiler: QueryCompiler) -> None:
        self._conn = conn
        self._compiler = compiler

    def run(self, instances: Sequence[Model], preloads: Iterable[str | Preload]) -> None:
        for item in preloads:
            preload = item if isinstance(item, Preload) else Preload(item)
            self.load(instances, preload.path, preload.query)

    def load(self, instances: Sequence[Model], path: str, query: Query | None = None) -> None:
        if not instances:
            return
        head, _, rest = path.partition(".")
        assoc = type(instances[0]).association(head)

        if rest and all(head in inst._loaded for inst in instances):
            children = self._flatten(instances, head)
        else:
            children = self._load_level(instances, assoc, None if rest else query)
        if rest and children:
            self.load(children, rest, query)

    # ------------------------------------------------------------------

    def _load_level(
        self, owners: Sequence[Model], assoc: Association, query: Query | None
    ) -> list[Model]:
        if isinstance(assoc, BelongsTo):
            return self._load_belongs_to(owners, assoc, query)
        assert isinstance(assoc, HasMany)
        if assoc.through:
            return self._load_through(owners, assoc, query)
        return self._load_has_many(owners, assoc, query)

    def _fetch(
        self, model: type[Model], field: str, keys: Sequence[Any], query: Query | None
    ) -> list[Model]:
        if not keys:
            return []
        base = (query or Query()).without_preloads()
        if not base.order_bys:
            base = base.order_by(model.primary_key_field())
        found: list[Model] = []
        for chunk in chunked(keys):
            stmt = self._compiler.select(model, base.where(**{field: chunk}))
            rows = self._conn.execute(stmt).mappings().all()
            found.extend(model.from_row(row) for row in rows)
        if query is not None and query.preloads:
            self.run(found, query.preloads)
        return found

    def _load_belongs_to(
        self, owners: Sequence[Model], assoc: BelongsTo, query: Query | None
    ) -> list[Model]:
        target = assoc.target
        keys = _unique(owner._values.get(assoc.foreign_key) for owner in owners)
        parents = self._fetch(target, target.primary_key_field(), keys, query)
        by_pk = {parent.primary_key_value: parent for parent in parents}
        for owner in owners:
            owner._loaded[assoc.name] = by_pk.get(owner._values.get(assoc.foreign_key))
        return parents

    def _load_has_many(
        self, owners: Sequence[Model], assoc: HasMany, query: Query | None
    ) -> list[Model]:
        keys = _unique(owner.primary_key_value for owner in owners)
        children = self._fetch(assoc.target, assoc.foreign_key, keys, query)
        grouped: dict[Any, list[Model]] = defaultdict(list)
        for child in children:
            grouped[child._values.get(assoc.foreign_key)].append(child)
        for owner in owners:
            matches = grouped.get(owner.primary_key_value, [])
            if assoc.many:
                owner._loaded[assoc.name] = list(matches)
            else:
                owner._loaded[assoc.name] = matches[0] if matches else None
        return children

    def _load_through(
        self, owners: Sequence[Model], assoc: HasMany, query: Query | None
    ) -> list[Model]:
        via = assoc.through_association()
        hop = assoc.through_target_association()
        keys = _unique(owner.primary_key_value for owner in owners)
        links = self._fetch(via.target, via.foreign_key, keys, None)

        target = assoc.target
        target_keys = _unique(link._values.get(hop.foreign_key) for link in links)
        targets = self._fetch(target, target.primary_key_field(), target_keys, query)
        by_pk = {t.primary_key_value: t for t in targets}

        links_by_owner: dict[Any, list[Model]] = defaultdict(list)
        for link in links:
            links_by_owner[link._values.get(via.foreign_key)].append(link)
        for owner in owners:
            reached = _unique(
                link._values.get(hop.foreign_key)
                for link in links_by_owner.get(owner.primary_key_value, [])
            )
            owner._loaded[assoc.name] = [by_pk[key] for key in reached if key in by_pk]
        return targets

    @staticmethod
    def _flatten(instances: Sequence[Model], name: str) -> list[Model]:
        children: list[Model] = []
        for inst in instances:
            loaded = inst._loaded.get(name)
            if isinstance(loaded, list):
                children.extend(loaded)
            elif loaded is not None:
                children.append(loaded)
        return children
