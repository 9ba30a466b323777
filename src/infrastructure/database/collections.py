# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Collection-style access to SQLAlchemy models.

The services are written against a small document-store surface
(find_one, find, insert_one, update_one, delete_one, delete_many) so the
reciprocity logic reads the same whatever backs it. Filters are a dict of
column name to value:

- scalar column, scalar value: equality (None matches NULL)
- scalar column, list/tuple/set value: IN
- JSON list column, scalar value: list membership (JSONB @> on
  PostgreSQL, an EXISTS over json_each elsewhere)

Every filter is evaluated by the database. The optional ``where``
predicate runs on loaded records and only narrows what the filter found.

Single-record atomicity comes from the version column: every update is
``UPDATE ... WHERE id = :id AND version = :seen`` and a lost race re-reads
the record and tries again. Each write commits on its own; nothing here
spans two records.

Example:
    classes = Collection(session, Class)
    await classes.update_one({"id": class_id}, add_to_set={"guardian_ids": [sub]})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar

from sqlalchemy import JSON, delete, func, select, type_coerce, update
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ConflictError
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.models.base import Base

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

Predicate = Callable[[Any], bool]


class DuplicateKeyError(ConflictError):
    """Raised when a write violates a unique constraint."""

    pass


class VersionConflictError(ConflictError):
    """Raised when a conditional update keeps losing to concurrent writers."""

    pass


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of update_one.

    Attributes:
        matched: Number of records that matched the filter (0 or 1).
        modified: Number of records actually changed (0 or 1).
        upserted_id: Identifier of the inserted record on upsert.
    """

    matched: int
    modified: int
    upserted_id: str | None = None


class Collection(Generic[ModelT]):
    """Document-store style operations over one ORM model.

    Attributes:
        db: Async database session.
        model: ORM model class.
        max_retries: Attempts for a conditional update before giving up.
    """

    def __init__(
        self,
        db: AsyncSession,
        model: type[ModelT],
        max_retries: int = 5,
    ) -> None:
        """Initialize the collection.

        Args:
            db: Async database session.
            model: ORM model class backing the collection.
            max_retries: Attempts for a conditional update.
        """
        self.db = db
        self.model = model
        self.max_retries = max_retries
        self._columns = model.__table__.c
        self._versioned = "version" in self._columns

    # =========================================================================
    # Reads
    # =========================================================================

    async def find(
        self,
        filter: dict[str, Any] | None = None,
        *,
        where: Predicate | None = None,
        order_by: Iterable[Any] = (),
    ) -> list[ModelT]:
        """Find all records matching the filter.

        Args:
            filter: Column filter (see module docstring).
            where: Extra predicate evaluated on each loaded record.
            order_by: SQLAlchemy ordering clauses.

        Returns:
            Matching records, freshly loaded from the database.
        """
        conditions = self._conditions(filter or {})

        query = select(self.model).execution_options(populate_existing=True)
        if conditions:
            query = query.where(*conditions)
        order = list(order_by)
        if order:
            query = query.order_by(*order)

        try:
            result = await self.db.execute(query)
        except (OperationalError, DBAPIError) as e:
            raise DatabaseError(f"Failed to read {self.model.__tablename__}", e) from e

        records = list(result.scalars().all())
        if where is None:
            return records
        return [r for r in records if where(r)]

    async def find_one(
        self,
        filter: dict[str, Any] | None = None,
        *,
        where: Predicate | None = None,
    ) -> ModelT | None:
        """Find the first record matching the filter.

        Returns:
            The record, or None if nothing matches.
        """
        records = await self.find(filter, where=where)
        return records[0] if records else None

    async def count(self, filter: dict[str, Any] | None = None) -> int:
        """Count records matching the filter."""
        query = select(func.count()).select_from(self.model)
        conditions = self._conditions(filter or {})
        if conditions:
            query = query.where(*conditions)

        try:
            result = await self.db.execute(query)
        except (OperationalError, DBAPIError) as e:
            raise DatabaseError(f"Failed to count {self.model.__tablename__}", e) from e
        return int(result.scalar_one())

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert_one(self, values: dict[str, Any]) -> ModelT:
        """Insert a record.

        Args:
            values: Column values.

        Returns:
            The inserted record.

        Raises:
            DuplicateKeyError: If a unique constraint is violated.
        """
        record = self.model(**values)
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateKeyError(
                f"Duplicate key in {self.model.__tablename__}",
                {"values": {k: v for k, v in values.items() if not isinstance(v, bytes)}},
            ) from e
        except (OperationalError, DBAPIError) as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to insert into {self.model.__tablename__}", e) from e
        return record

    async def update_one(
        self,
        filter: dict[str, Any],
        *,
        values: dict[str, Any] | None = None,
        add_to_set: dict[str, Iterable[str]] | None = None,
        pull: dict[str, Iterable[str]] | None = None,
        where: Predicate | None = None,
        upsert: bool = False,
    ) -> UpdateResult:
        """Conditionally update one record.

        The record is read, the patch applied in memory and the write
        matched on the version that was read. A lost race re-reads and
        re-applies, so add_to_set and pull stay idempotent under retry.

        Args:
            filter: Column filter selecting the record.
            values: Columns to overwrite.
            add_to_set: JSON list columns to extend without duplicates.
            pull: JSON list columns to remove identifiers from.
            where: Extra predicate the record must satisfy.
            upsert: Insert from the filter and patch when nothing matches.

        Returns:
            UpdateResult describing what happened.

        Raises:
            VersionConflictError: If every attempt lost a version race.
            DuplicateKeyError: If the write violates a unique constraint.
        """
        for attempt in range(1, self.max_retries + 1):
            record = await self.find_one(filter, where=where)

            if record is None:
                if not upsert:
                    return UpdateResult(matched=0, modified=0)
                try:
                    inserted = await self.insert_one(
                        self._upsert_values(filter, values, add_to_set)
                    )
                except DuplicateKeyError:
                    logger.debug(
                        "Upsert into %s raced with another insert (attempt %d)",
                        self.model.__tablename__,
                        attempt,
                    )
                    continue
                return UpdateResult(matched=0, modified=1, upserted_id=inserted.id)

            changes = self._apply_patch(record, values, add_to_set, pull)
            if not changes:
                return UpdateResult(matched=1, modified=0)

            if await self._write_if_unchanged(record, changes):
                return UpdateResult(matched=1, modified=1)

            logger.debug(
                "Version race on %s %s (attempt %d)",
                self.model.__tablename__,
                record.id,
                attempt,
            )

        logger.warning(
            "Gave up updating %s after %d attempts",
            self.model.__tablename__,
            self.max_retries,
        )
        raise VersionConflictError(
            f"Concurrent modification of {self.model.__tablename__}",
            {"filter": filter},
        )

    async def delete_one(
        self,
        filter: dict[str, Any],
        *,
        where: Predicate | None = None,
    ) -> int:
        """Delete one record if it still matches when the delete runs.

        The delete is matched on the version that was read, so a record
        that changed in between (for example a student that gained a class)
        is re-checked against the predicate instead of being removed.

        Returns:
            Number of deleted records (0 or 1).
        """
        for _ in range(self.max_retries):
            record = await self.find_one(filter, where=where)
            if record is None:
                return 0

            stmt = delete(self.model).where(self.model.id == record.id)
            if self._versioned:
                stmt = stmt.where(self.model.version == record.version)

            if await self._execute_write(stmt) == 1:
                return 1

        raise VersionConflictError(
            f"Concurrent modification of {self.model.__tablename__}",
            {"filter": filter},
        )

    async def delete_many(
        self,
        filter: dict[str, Any],
        *,
        where: Predicate | None = None,
    ) -> int:
        """Delete every record matching the filter.

        Returns:
            Number of deleted records.
        """
        records = await self.find(filter, where=where)
        if not records:
            return 0

        stmt = delete(self.model).where(self.model.id.in_([r.id for r in records]))
        return await self._execute_write(stmt)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _is_list_column(self, name: str) -> bool:
        """Check whether a column holds a JSON list of identifiers."""
        return isinstance(self._columns[name].type, JSON)

    def _conditions(self, filter: dict[str, Any]) -> list[Any]:
        """Translate a filter into SQL conditions."""
        conditions: list[Any] = []

        for name, value in filter.items():
            if name not in self._columns:
                raise KeyError(f"Unknown column {name!r} on {self.model.__tablename__}")
            column = self._columns[name]

            if self._is_list_column(name):
                conditions.append(self._contains(column, value))
            elif value is None:
                conditions.append(column.is_(None))
            elif isinstance(value, (list, tuple, set, frozenset)):
                conditions.append(column.in_(list(value)))
            else:
                conditions.append(column == value)

        return conditions

    def _contains(self, column: Any, value: str) -> Any:
        """Membership of one identifier in a JSON list column."""
        if self._dialect_name() == "postgresql":
            return type_coerce(column, postgresql.JSONB).contains([value])
        items = func.json_each(column).table_valued("value")
        return select(items.c.value).where(items.c.value == value).exists()

    def _dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    def _apply_patch(
        self,
        record: Any,
        values: dict[str, Any] | None,
        add_to_set: dict[str, Iterable[str]] | None,
        pull: dict[str, Iterable[str]] | None,
    ) -> dict[str, Any]:
        """Compute the column changes a patch makes to a record."""
        changes: dict[str, Any] = {}

        for name, value in (values or {}).items():
            if getattr(record, name) != value:
                changes[name] = value

        for name, items in (add_to_set or {}).items():
            current = list(changes.get(name, getattr(record, name) or []))
            for item in items:
                if item not in current:
                    current.append(item)
            if current != (getattr(record, name) or []):
                changes[name] = current

        for name, items in (pull or {}).items():
            removed = set(items)
            current = list(changes.get(name, getattr(record, name) or []))
            kept = [item for item in current if item not in removed]
            if kept != (getattr(record, name) or []):
                changes[name] = kept

        return changes

    def _upsert_values(
        self,
        filter: dict[str, Any],
        values: dict[str, Any] | None,
        add_to_set: dict[str, Iterable[str]] | None,
    ) -> dict[str, Any]:
        """Build the column values for an upsert insert."""
        inserted = {
            name: value
            for name, value in filter.items()
            if not self._is_list_column(name) and not isinstance(value, (list, tuple, set, frozenset))
        }
        inserted.update(values or {})
        for name, items in (add_to_set or {}).items():
            inserted[name] = list(dict.fromkeys(items))
        return inserted

    async def _write_if_unchanged(self, record: Any, changes: dict[str, Any]) -> bool:
        """Write changes only if the record still has the version we read."""
        stmt = update(self.model).where(self.model.id == record.id)
        if self._versioned:
            stmt = stmt.where(self.model.version == record.version)
            changes = {**changes, "version": record.version + 1}
        stmt = stmt.values(**changes)
        return await self._execute_write(stmt) == 1

    async def _execute_write(self, stmt: Any) -> int:
        """Execute and commit a write, returning the affected row count.

        Loaded objects are not synchronized; reads use populate_existing
        and always see the committed row.
        """
        stmt = stmt.execution_options(synchronize_session=False)
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise DuplicateKeyError(f"Duplicate key in {self.model.__tablename__}") from e
        except (OperationalError, DBAPIError) as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to write {self.model.__tablename__}", e) from e
        return result.rowcount
