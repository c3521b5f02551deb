"""Repository for the subscription mirror.

This module handles all database interactions for mirror records, providing a clean
interface between the engine and the storage table. Logical field names are translated to
storage columns through the sync configuration.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from sqlalchemy import MetaData, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subscription_mirror.core.datetime_utils import ensure_utc
from subscription_mirror.core.exceptions import StoreError, UserNotFound
from subscription_mirror.core.logging import logger
from subscription_mirror.core.sync_config import SyncConfig
from subscription_mirror.db.session import get_db_context
from subscription_mirror.models import build_subscription_table
from subscription_mirror.schemas.subscription_record import (
    SubscriptionRecord,
    SubscriptionRecordUpdate,
    SubscriptionStatus,
)

_DATETIME_FIELDS = {
    "trial_start",
    "trial_end",
    "current_period_start",
    "current_period_end",
    "canceled_at",
}


class MirrorRepository(ABC):
    """Lookup, insert and update of mirror records by identity."""

    @abstractmethod
    async def find_by_identity(self, identity: str) -> Optional[SubscriptionRecord]:
        """Return the record for an identity, None if there is none."""

    @abstractmethod
    async def update_by_identity(
        self, identity: str, update: SubscriptionRecordUpdate
    ) -> SubscriptionRecord:
        """Write the explicitly set fields of `update` and return the updated record.

        Raises:
            UserNotFound: If there is no record and auto-create is disabled.
            StoreError: If the store fails.
        """

    @abstractmethod
    async def insert(
        self, identity: str, update: Optional[SubscriptionRecordUpdate] = None
    ) -> SubscriptionRecord:
        """Create a record for an identity."""


class SqlAlchemyMirrorRepository(MirrorRepository):
    """Mirror repository backed by a SQLAlchemy async engine."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: SyncConfig,
        metadata: Optional[MetaData] = None,
    ):
        """Initialize the repository and build the mirror table from the configuration."""
        self.session_factory = session_factory
        self.config = config
        self.metadata = metadata if metadata is not None else MetaData()
        self.table = build_subscription_table(self.metadata, config)
        self._columns = config.mirrored_columns()
        self._identity_column = self.table.c[self._columns["identity"]]

    # Mapping between logical fields and columns

    def _to_columns(self, changes: Mapping[str, Any]) -> dict[str, Any]:
        """Translate logical field values to column values.

        Fields that are not mirrored by this configuration are dropped.
        """
        values = {}
        for field, value in changes.items():
            column = self._columns.get(field)
            if column is None:
                continue
            if isinstance(value, SubscriptionStatus):
                value = value.value
            values[column] = value
        return values

    def _to_record(self, row: Mapping[str, Any]) -> SubscriptionRecord:
        data: dict[str, Any] = {}
        for field, column in self._columns.items():
            value = row[column]
            if field in _DATETIME_FIELDS:
                value = ensure_utc(value)
            elif field == "status":
                value = _status_or_none(value)
            data[field] = value
        return SubscriptionRecord(**data)

    async def _select(self, db: AsyncSession, identity: str) -> Optional[SubscriptionRecord]:
        query = select(self.table).where(self._identity_column == identity)
        result = await db.execute(query)
        row = result.mappings().first()
        return self._to_record(row) if row else None

    # Repository operations

    async def find_by_identity(self, identity: str) -> Optional[SubscriptionRecord]:
        """Get a mirror record by identity."""
        try:
            async with get_db_context(self.session_factory) as db:
                return await self._select(db, identity)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

    async def update_by_identity(
        self, identity: str, update: SubscriptionRecordUpdate
    ) -> SubscriptionRecord:
        """Update a mirror record, creating it first when auto-create is enabled."""
        values = self._to_columns(update.changes())

        try:
            async with get_db_context(self.session_factory) as db:
                if values:
                    result = await db.execute(
                        self.table.update()
                        .where(self._identity_column == identity)
                        .values(values)
                    )
                    found = result.rowcount > 0
                else:
                    found = await self._select(db, identity) is not None

                if not found:
                    if not self.config.auto_create_on_miss:
                        await db.rollback()
                        raise UserNotFound(
                            f"User with email {identity} not found in {self.config.table}"
                        )
                    logger.info(f"Creating mirror record for {identity} on update miss")
                    await db.execute(
                        insert(self.table).values({self._identity_column.name: identity, **values})
                    )

                await db.commit()
                record = await self._select(db, identity)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

        return record

    async def insert(
        self, identity: str, update: Optional[SubscriptionRecordUpdate] = None
    ) -> SubscriptionRecord:
        """Insert a mirror record."""
        values = self._to_columns(update.changes()) if update else {}

        try:
            async with get_db_context(self.session_factory) as db:
                await db.execute(
                    insert(self.table).values({self._identity_column.name: identity, **values})
                )
                await db.commit()
                record = await self._select(db, identity)
        except SQLAlchemyError as e:
            raise StoreError(str(e)) from e

        return record


def _status_or_none(value: Optional[str]) -> Optional[SubscriptionStatus]:
    """Stored statuses outside the closed set read as unknown, which reconciliation repairs."""
    if value is None:
        return None
    try:
        return SubscriptionStatus(value)
    except ValueError:
        logger.warning(f"Unrecognized status '{value}' on mirror record")
        return None
