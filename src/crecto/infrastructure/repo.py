"""Repo — the single entry point for reading and writing schemas.

The Repo owns the engine, the adapter and the query compiler. Every public
operation checks out a connection (through the Tenacity retry policy),
does its work, and returns it to the pool:

- **Reads** run on a plain connection and hydrate snapshotted instances.
- **Writes** run inside ``conn.begin()``; an ``IntegrityError`` rolls the
  transaction back and becomes a changeset error instead of an exception.
- **Transactions** (:meth:`Repo.transaction` for a :class:`Multi`,
  :meth:`Repo.live_transaction` for interactive use) share one
  connection across many operations and roll back as a unit.

Plugin hooks are queued while a transaction runs and only dispatched after
it commits.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from crecto.config.models import DatabaseConfig
from crecto.domain.associations import Dependent, HasMany
from crecto.domain.query import Preload, Query
from crecto.errors import CrectoError, InvalidChangesetError, InvalidOptionError, NoResultsError
from crecto.infrastructure.database import (
    QueryCompiler,
    attach_query_logger,
    create_connect_retry_policy,
    create_db_engine,
    create_tables,
    drop_tables,
    resolve_adapter,
    table_for,
)
from crecto.infrastructure.database.compiler import bind_placeholders
from crecto.infrastructure.preload import Preloader, chunked

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping, Sequence
    from contextlib import AbstractContextManager

    from sqlalchemy import Connection
    from sqlalchemy.engine import Engine

    from crecto.config.settings import CrectoSettings
    from crecto.domain.changeset import Changeset
    from crecto.domain.multi import Multi, Operation
    from crecto.domain.schema import Model
    from crecto.infrastructure.adapters.base import Adapter
    from crecto.plugins.manager import PluginManager

logger = logging.getLogger(__name__)

M = TypeVar("M", bound="Model")

_Event = tuple[str, dict[str, Any]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _db_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def _hydrate(instance: Model, row: Mapping[str, Any]) -> None:
    """Copy stored values from *row* onto *instance* and snapshot it."""
    for name, fld in type(instance).persisted_fields().items():
        if name in row:
            instance._values[name] = fld.from_db(row[name])
    instance.take_snapshot()


def _stored_primary_key(instance: Model) -> Any:
    """Primary key the row is stored under, even if the instance changed it."""
    pk_name = type(instance).primary_key_field()
    if instance._snapshot is not None and instance._snapshot.get(pk_name) is not None:
        return instance._snapshot[pk_name]
    return instance.primary_key_value


def _has_dependents(model: type[Model]) -> bool:
    return any(
        isinstance(assoc, HasMany) and assoc.dependent is not None
        for assoc in model.associations().values()
    )


# ---------------------------------------------------------------------------
# Instance backups for rollback
# ---------------------------------------------------------------------------


@dataclass
class _InstanceBackup:
    """State of an instance before a write, restored if the write rolls back."""

    instance: Model
    values: dict[str, Any]
    snapshot: dict[str, Any] | None
    deleted: bool

    @classmethod
    def of(cls, instance: Model) -> _InstanceBackup:
        return cls(
            instance,
            dict(instance._values),
            copy.deepcopy(instance._snapshot),
            instance.deleted,
        )

    def restore(self) -> None:
        self.instance._values = self.values
        self.instance._snapshot = self.snapshot
        self.instance._deleted = self.deleted


class _RollbackSignal(Exception):
    """Aborts a Multi after an operation reported errors on its changeset."""


# ---------------------------------------------------------------------------
# _Session: operations bound to one connection
# ---------------------------------------------------------------------------


class _Session:
    """Reads and writes executed on a single connection.

    Write methods take an already-validated changeset, add any errors found
    against the database (uniqueness, missing rows) to it, and leave
    transaction control to the caller.
    """

    def __init__(self, repo: Repo, conn: Connection) -> None:
        self.repo = repo
        self.conn = conn
        self.events: list[_Event] = []
        self.backups: list[_InstanceBackup] = []

    @property
    def compiler(self) -> QueryCompiler:
        return self.repo.compiler

    def restore_instances(self) -> None:
        for backup in reversed(self.backups):
            backup.restore()
        self.backups.clear()

    # --- Reads --------------------------------------------------------

    def all(
        self,
        model: type[M],
        query: Query | None = None,
        preload: Iterable[str | Preload] = (),
    ) -> list[M]:
        query = query or Query()
        rows = self.conn.execute(self.compiler.select(model, query)).mappings().all()
        instances = [model.from_row(row) for row in rows]
        self.preload(instances, *query.preloads, *preload)
        return instances

    def get(
        self,
        model: type[M],
        pk: Any,
        query: Query | None = None,
        preload: Iterable[str | Preload] = (),
    ) -> M | None:
        query = (query or Query()).where(**{model.primary_key_field(): pk}).limit(1)
        found = self.all(model, query, preload)
        return found[0] if found else None

    def get_by(
        self,
        model: type[M],
        criteria: dict[str, Any],
        preload: Iterable[str | Preload] = (),
    ) -> M | None:
        found = self.all(model, Query().where(**criteria).limit(1), preload)
        return found[0] if found else None

    def aggregate(self, model: type[Model], op: str, field_name: str, query: Query | None) -> Any:
        query = (query or Query()).without_preloads().without_paging()
        stmt = self.compiler.aggregate(model, op, field_name, query)
        return self.conn.execute(stmt).scalar()

    def preload(self, instances: Sequence[Model], *preloads: str | Preload) -> None:
        if instances and preloads:
            Preloader(self.conn, self.compiler).run(instances, preloads)

    def get_association(self, instance: Model, name: str, query: Query | None) -> Any:
        self.preload([instance], Preload(name, query))
        return instance._loaded[name.partition(".")[0]]

    def query(self, model: type[M], sql: str, params: Sequence[Any]) -> list[M]:
        rows = self.conn.execute(bind_placeholders(sql, params)).mappings().all()
        return [model.from_row(row) for row in rows]

    def raw_query(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        rows = self.conn.execute(bind_placeholders(sql, params)).mappings().all()
        return [dict(row) for row in rows]

    def raw_exec(self, sql: str, params: Sequence[Any]) -> int:
        return self.conn.execute(bind_placeholders(sql, params)).rowcount

    def raw_scalar(self, sql: str, params: Sequence[Any]) -> Any:
        return self.conn.execute(bind_placeholders(sql, params)).scalar()

    # --- Writes -------------------------------------------------------

    def write(self, changeset: Changeset[Any]) -> None:
        if changeset.action == "insert":
            self.insert(changeset)
        elif changeset.action == "update":
            self.update(changeset)
        elif changeset.action == "delete":
            self.delete(changeset)
        else:
            msg = f"Cannot write a changeset with action {changeset.action!r}"
            raise InvalidOptionError(msg)

    def insert(self, changeset: Changeset[Any]) -> None:
        instance = changeset.instance
        model = type(instance)
        self._check_unique(changeset)
        if not changeset.valid:
            return

        values = instance.to_query_dict()
        pk_name = model.primary_key_field()
        if values.get(pk_name) is None:
            values.pop(pk_name, None)
        now = _utcnow()
        for stamp in (model.created_at_field, model.updated_at_field):
            if stamp:
                values[stamp] = now

        table = table_for(model)
        self.backups.append(_InstanceBackup.of(instance))
        row = self.repo.adapter.insert_row(self.conn, table, values)
        _hydrate(instance, row)
        logger.debug("Inserted %s %s=%r", model.__name__, pk_name, instance.primary_key_value)
        self.events.append(
            (
                "post_insert",
                {
                    "model": model.__name__,
                    "table": table.name,
                    "record_id": instance.primary_key_value,
                    "values": dict(row),
                },
            )
        )

    def update(self, changeset: Changeset[Any]) -> None:
        instance = changeset.instance
        model = type(instance)
        pk_name = model.primary_key_field()
        stored_pk = _stored_primary_key(instance)
        if stored_pk is None:
            changeset.add_error("update_error", "cannot update a record without a primary key")
            return
        if instance.deleted:
            changeset.add_error("update_error", f"no {model.__name__} with {pk_name}={stored_pk!r}")
            return
        self._check_unique(changeset)
        if not changeset.valid:
            return

        persisted = model.persisted_fields()
        values = {
            name: persisted[name].to_db(instance._values.get(name))
            for name in changeset.changed_fields
            if name in persisted
        }
        if model.updated_at_field:
            values[model.updated_at_field] = _utcnow()
        if not values:
            return

        table = table_for(model)
        pk_column = table.c[pk_name]
        self.backups.append(_InstanceBackup.of(instance))
        result = self.conn.execute(update(table).where(pk_column == stored_pk).values(**values))
        if result.rowcount == 0:
            changeset.add_error("update_error", f"no {model.__name__} with {pk_name}={stored_pk!r}")
            return
        stmt = select(table).where(pk_column == instance.primary_key_value)
        _hydrate(instance, self.conn.execute(stmt).mappings().one())
        logger.debug("Updated %s %s=%r", model.__name__, pk_name, instance.primary_key_value)
        self.events.append(
            (
                "post_update",
                {
                    "model": model.__name__,
                    "table": table.name,
                    "record_id": instance.primary_key_value,
                    "fields_changed": changeset.changed_fields,
                },
            )
        )

    def delete(self, changeset: Changeset[Any]) -> None:
        instance = changeset.instance
        model = type(instance)
        pk_name = model.primary_key_field()
        pk = _stored_primary_key(instance)
        if pk is None:
            changeset.add_error("delete_error", "cannot delete a record without a primary key")
            return
        if instance.deleted:
            changeset.add_error("delete_error", f"no {model.__name__} with {pk_name}={pk!r}")
            return

        table = table_for(model)
        pk_column = table.c[pk_name]
        if self.conn.execute(select(pk_column).where(pk_column == pk)).first() is None:
            changeset.add_error("delete_error", f"no {model.__name__} with {pk_name}={pk!r}")
            return

        self.backups.append(_InstanceBackup.of(instance))
        self._delete_dependents(model, [pk], {(model.__name__, pk)})
        self.conn.execute(delete(table).where(pk_column == pk))
        instance.mark_deleted()
        logger.debug("Deleted %s %s=%r", model.__name__, pk_name, pk)
        self.events.append(
            ("post_delete", {"model": model.__name__, "table": table.name, "record_id": pk})
        )

    def update_all(self, model: type[Model], query: Query | None, values: Mapping[str, Any]) -> int:
        stmt = self.compiler.update_all(model, query or Query(), values)
        count = self.conn.execute(stmt).rowcount
        self._bulk_event(model, "update_all", count)
        return count

    def delete_all(self, model: type[Model], query: Query | None) -> int:
        count = self._delete_matching(model, query or Query(), set())
        self._bulk_event(model, "delete_all", count)
        return count

    def apply(self, op: Operation) -> None:
        """Run one Multi operation."""
        if op.changeset is not None:
            self.write(op.changeset)
        elif op.kind == "update_all":
            assert op.model is not None
            op.rows_affected = self.update_all(op.model, op.query, op.values)
        elif op.kind == "delete_all":
            assert op.model is not None
            op.rows_affected = self.delete_all(op.model, op.query)
        else:
            msg = f"Unknown operation {op.kind!r}"
            raise InvalidOptionError(msg)

    # ------------------------------------------------------------------

    def _check_unique(self, changeset: Changeset[Any]) -> None:
        instance = changeset.instance
        model = type(instance)
        pk_name = model.primary_key_field()
        stored_pk = _stored_primary_key(instance) if instance.persisted else None
        changed = set(changeset.changed_fields)
        for name in model.unique_fields():
            value = instance._values.get(name)
            if value is None or (instance.persisted and name not in changed):
                continue
            query = Query().where(name, value).limit(1)
            if stored_pk is not None:
                query = query.where(f"{pk_name} <> ?", [stored_pk])
            if self.conn.execute(self.compiler.select_primary_keys(model, query)).first():
                changeset.add_error(name, model.unique_message(name))

    def _delete_dependents(
        self, model: type[Model], pks: Sequence[Any], visited: set[tuple[str, Any]]
    ) -> None:
        for assoc in model.associations().values():
            if not isinstance(assoc, HasMany) or assoc.dependent is None:
                continue
            if assoc.through:
                via = assoc.through_association()
                target, fk = via.target, via.foreign_key
            else:
                target, fk = assoc.target, assoc.foreign_key
            for chunk in chunked(list(pks)):
                query = Query().where(**{fk: chunk})
                if assoc.dependent is Dependent.DESTROY:
                    self._delete_matching(target, query, visited)
                else:
                    self.conn.execute(self.compiler.update_all(target, query, {fk: None}))

    def _delete_matching(
        self, model: type[Model], query: Query, visited: set[tuple[str, Any]]
    ) -> int:
        query = query.without_preloads().without_paging()
        if not _has_dependents(model):
            return self.conn.execute(self.compiler.delete_all(model, query)).rowcount

        rows = self.conn.execute(self.compiler.select_primary_keys(model, query)).all()
        pks = [row.pk for row in rows if (model.__name__, row.pk) not in visited]
        if not pks:
            return 0
        visited.update((model.__name__, pk) for pk in pks)
        self._delete_dependents(model, pks, visited)

        table = table_for(model)
        pk_column = table.c[model.primary_key_field()]
        deleted = 0
        for chunk in chunked(pks):
            deleted += self.conn.execute(delete(table).where(pk_column.in_(chunk))).rowcount
        return deleted

    def _bulk_event(self, model: type[Model], operation: str, count: int) -> None:
        self.events.append(
            (
                "post_bulk",
                {
                    "model": model.__name__,
                    "table": model.__tablename__,
                    "operation": operation,
                    "rows_affected": count,
                },
            )
        )


# ---------------------------------------------------------------------------
# Shared read API
# ---------------------------------------------------------------------------


class _Operations:
    """Read and bulk-write API shared by :class:`Repo` and :class:`LiveTransaction`."""

    def _reader(self) -> AbstractContextManager[_Session]:
        raise NotImplementedError

    def _writer(self) -> AbstractContextManager[_Session]:
        raise NotImplementedError

    def all(
        self,
        model: type[M],
        query: Query | None = None,
        preload: Iterable[str | Preload] = (),
    ) -> list[M]:
        """Every row matching *query*, with *preload* associations loaded."""
        with self._reader() as session:
            return session.all(model, query, preload)

    def get(
        self,
        model: type[M],
        pk: Any,
        query: Query | None = None,
        preload: Iterable[str | Preload] = (),
    ) -> M | None:
        """The row with primary key *pk*, or None."""
        with self._reader() as session:
            return session.get(model, pk, query, preload)

    def get_or_raise(
        self,
        model: type[M],
        pk: Any,
        query: Query | None = None,
        preload: Iterable[str | Preload] = (),
    ) -> M:
        found = self.get(model, pk, query, preload)
        if found is None:
            raise NoResultsError(model, {model.primary_key_field(): pk})
        return found

    def get_by(
        self, model: type[M], *, preload: Iterable[str | Preload] = (), **criteria: Any
    ) -> M | None:
        """The first row whose fields equal *criteria*, or None."""
        with self._reader() as session:
            return session.get_by(model, criteria, preload)

    def get_by_or_raise(
        self, model: type[M], *, preload: Iterable[str | Preload] = (), **criteria: Any
    ) -> M:
        found = self.get_by(model, preload=preload, **criteria)
        if found is None:
            raise NoResultsError(model, criteria)
        return found

    def aggregate(
        self, model: type[Model], op: str, field_name: str, query: Query | None = None
    ) -> Any:
        """``avg``/``count``/``max``/``min``/``sum`` of *field_name* over *query*."""
        with self._reader() as session:
            return session.aggregate(model, op, field_name, query)

    def preload(self, instances: Sequence[M], *preloads: str | Preload) -> Sequence[M]:
        """Load associations onto *instances* in place and return them."""
        with self._reader() as session:
            session.preload(instances, *preloads)
        return instances

    def get_association(self, instance: Model, name: str, query: Query | None = None) -> Any:
        """Load association *name* for *instance* (cached on it) and return it."""
        with self._reader() as session:
            return session.get_association(instance, name, query)

    def query(self, model: type[M], sql: str, params: Sequence[Any] = ()) -> list[M]:
        """Hydrate *model* instances from a raw SELECT with ``?`` placeholders."""
        with self._reader() as session:
            return session.query(model, sql, params)

    def raw_query(self, sql: str, *params: Any) -> list[dict[str, Any]]:
        with self._reader() as session:
            return session.raw_query(sql, params)

    def raw_scalar(self, sql: str, *params: Any) -> Any:
        with self._reader() as session:
            return session.raw_scalar(sql, params)

    def raw_exec(self, sql: str, *params: Any) -> int:
        """Execute a raw statement and return the affected row count."""
        with self._writer() as session:
            return session.raw_exec(sql, params)

    def update_all(
        self, model: type[Model], query: Query | None, values: Mapping[str, Any]
    ) -> int:
        """Set *values* on every row matching *query*; returns the row count."""
        with self._writer() as session:
            return session.update_all(model, query, values)

    def delete_all(self, model: type[Model], query: Query | None = None) -> int:
        """Delete every row matching *query*, honoring dependents."""
        with self._writer() as session:
            return session.delete_all(model, query)


# ---------------------------------------------------------------------------
# LiveTransaction, yielded by Repo.live_transaction()
# ---------------------------------------------------------------------------


@dataclass
class LiveTransaction(_Operations):
    """An open transaction with the Repo's read/write API.

    Writes raise :class:`InvalidChangesetError` instead of returning an
    invalid changeset, so the surrounding ``with`` block rolls back.
    """

    conn: Connection
    _session: _Session = field(repr=False)

    @contextmanager
    def _reader(self) -> Iterator[_Session]:
        yield self._session

    _writer = _reader

    def insert(self, instance: M) -> Changeset[M]:
        return self._write(instance.changeset(action="insert"))

    def update(self, instance: M) -> Changeset[M]:
        return self._write(instance.changeset(action="update"))

    def delete(self, instance: M) -> Changeset[M]:
        return self._write(instance.changeset(action="delete", validate=False))

    def _write(self, changeset: Changeset[M]) -> Changeset[M]:
        if changeset.valid:
            self._session.write(changeset)
        if not changeset.valid:
            raise InvalidChangesetError(changeset)
        return changeset


# ---------------------------------------------------------------------------
# Repo
# ---------------------------------------------------------------------------


class Repo(_Operations):
    """Repository over one database.

    Construct it from a :class:`DatabaseConfig`, a URL, or resolved
    settings::

        repo = Repo(url="sqlite:///app.db")
        repo = Repo.from_settings(CrectoSettings.load())
    """

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        *,
        url: str | None = None,
        plugin_manager: PluginManager | None = None,
        log_queries: bool = False,
    ) -> None:
        config = config or DatabaseConfig()
        if url is not None:
            config = config.model_copy(update={"uri": url})
        self._config = config
        self._adapter = resolve_adapter(config)
        self._engine = create_db_engine(config, self._adapter)
        if log_queries:
            attach_query_logger(self._engine)
        self._compiler = QueryCompiler(self._adapter)
        self._plugins = plugin_manager
        self._retry = create_connect_retry_policy(config.retry_attempts, config.retry_delay)

    @classmethod
    def from_settings(
        cls, settings: CrectoSettings, *, plugin_manager: PluginManager | None = None
    ) -> Repo:
        return cls(
            settings.resolved_database(),
            plugin_manager=plugin_manager,
            log_queries=settings.logging.log_queries,
        )

    def __enter__(self) -> Repo:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def adapter(self) -> Adapter:
        return self._adapter

    @property
    def engine(self) -> Engine:
        """The underlying SQLAlchemy engine (for direct access when needed)."""
        return self._engine

    @property
    def compiler(self) -> QueryCompiler:
        return self._compiler

    @property
    def plugin_manager(self) -> PluginManager | None:
        return self._plugins

    def close(self) -> None:
        """Dispose of the connection pool."""
        self._engine.dispose()

    # --- Schema management --------------------------------------------

    def create_tables(self, *models: type[Model]) -> list[str]:
        return create_tables(self._engine, models)

    def drop_tables(self, *models: type[Model]) -> list[str]:
        return drop_tables(self._engine, models)

    def server_version(self) -> str:
        with self._connect() as conn:
            return self._adapter.server_version(conn)

    # --- Writes -------------------------------------------------------

    def insert(self, instance: M) -> Changeset[M]:
        """Insert *instance*; errors are reported on the returned changeset."""
        return self._write(instance.changeset(action="insert"))

    def update(self, instance: M) -> Changeset[M]:
        """Write the changed fields of *instance* (plus ``updated_at``)."""
        return self._write(instance.changeset(action="update"))

    def delete(self, instance: M) -> Changeset[M]:
        """Delete *instance*, applying its associations' ``dependent`` rules."""
        return self._write(instance.changeset(action="delete", validate=False))

    def insert_or_raise(self, instance: M) -> M:
        return self._raise_if_invalid(self.insert(instance))

    def update_or_raise(self, instance: M) -> M:
        return self._raise_if_invalid(self.update(instance))

    def delete_or_raise(self, instance: M) -> M:
        return self._raise_if_invalid(self.delete(instance))

    # --- Transactions -------------------------------------------------

    def transaction(self, multi: Multi) -> Multi:
        """Run every operation of *multi* in one database transaction.

        Changesets are validated up front; if any is invalid nothing touches
        the database. Otherwise the first failing operation rolls back the
        whole batch. Either way, failures are reported on ``multi.errors``.
        """
        multi.errors.clear()
        for op in multi.operations:
            if op.instance is None:
                continue
            op.changeset = op.instance.changeset(action=op.kind, validate=op.kind != "delete")
            for error in op.changeset.errors:
                multi.add_error(op, error["field"], error["message"])

        if multi.valid:
            current: Operation | None = None
            try:
                with self._transaction() as session:
                    for op in multi.operations:
                        current = op
                        session.apply(op)
                        if op.changeset is not None and not op.changeset.valid:
                            raise _RollbackSignal
            except _RollbackSignal:
                assert current is not None and current.changeset is not None
                for error in current.changeset.errors:
                    multi.add_error(current, error["field"], error["message"])
            except (SQLAlchemyError, CrectoError) as exc:
                if current is None:
                    raise
                logger.info("Transaction rolled back at %s: %s", current.kind, exc)
                message = _db_message(exc) if isinstance(exc, SQLAlchemyError) else str(exc)
                multi.add_error(current, f"{current.kind}_error", message)

        self._dispatch([("post_transaction", {"operations": len(multi), "ok": multi.valid})])
        return multi

    @contextmanager
    def live_transaction(self) -> Iterator[LiveTransaction]:
        """Interactive transaction; any exception rolls every write back.

        Usage::

            with repo.live_transaction() as tx:
                tx.insert(user)
                tx.update_all(Post, Query().where(user_id=user.id), {"draft": False})
        """
        with self._transaction() as session:
            yield LiveTransaction(conn=session.conn, _session=session)

    # ------------------------------------------------------------------

    def _connect(self) -> Connection:
        """Check out a connection, retrying transient ``OperationalError``."""
        return self._retry.copy()(self._engine.connect)

    @contextmanager
    def _reader(self) -> Iterator[_Session]:
        with self._connect() as conn:
            yield _Session(self, conn)

    def _writer(self) -> AbstractContextManager[_Session]:
        return self._transaction()

    @contextmanager
    def _transaction(self) -> Iterator[_Session]:
        with self._connect() as conn:
            session = _Session(self, conn)
            try:
                with conn.begin():
                    yield session
            except BaseException:
                session.restore_instances()
                raise
        self._dispatch(session.events)

    def _write(self, changeset: Changeset[M]) -> Changeset[M]:
        if not changeset.valid:
            return changeset
        try:
            with self._transaction() as session:
                session.write(changeset)
        except IntegrityError as exc:
            model_name = type(changeset.instance).__name__
            logger.info("%s of %s failed: %s", changeset.action, model_name, exc)
            changeset.add_error(f"{changeset.action}_error", _db_message(exc))
        return changeset

    @staticmethod
    def _raise_if_invalid(changeset: Changeset[M]) -> M:
        if not changeset.valid:
            raise InvalidChangesetError(changeset)
        return changeset.instance

    def _dispatch(self, events: list[_Event]) -> None:
        if self._plugins is None:
            return
        for hook_name, payload in events:
            self._plugins.dispatch(hook_name, **payload)
