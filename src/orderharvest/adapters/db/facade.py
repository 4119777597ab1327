from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import threading

import loguru
from loguru import logger
from sqlalchemy import Engine, create_engine, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from orderharvest.adapters.db.models import Base, LineItemDB
from orderharvest.adapters.ozon.entities import LineItem


class ItemStoreError(Exception):
    """Base error for item store failures."""


class StoreResetError(ItemStoreError):
    """The store could not be wiped."""


class ItemStoreLogger:
    """Handles all logging for ItemStore with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def connected(self, url: str) -> None:
        self._logger.bind(url=url).debug("Item store connected: {}", url)

    def skipped_order_number(self, owner_id: str, order_number: str) -> None:
        self._logger.bind(owner_id=owner_id, order_number=order_number).debug(
            "Ignoring non-numeric order number {!r} for owner {}",
            order_number,
            owner_id,
        )

    def reset_complete(self, url: str) -> None:
        self._logger.bind(url=url).info("Item store wiped: {}", url)

    def reset_blocked(self, url: str, error: Exception) -> None:
        self._logger.bind(url=url).warning("Item store reset blocked: {}", error)


class ItemStore:
    """Durable storage of line items keyed by (owner, order, sku).

    The engine is created on first use and shared by every call on this
    instance. Initialization is guarded by a lock so concurrent first callers
    converge on a single engine. :meth:`reset` drops all data and discards the
    engine; the next call reconnects and recreates the schema.
    """

    def __init__(self, url: str) -> None:
        """Initialize the store.

        Args:
            url: Database URL (e.g., "sqlite:///orderharvest.db")
        """
        self._url = url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None
        self._lock = threading.Lock()
        self._logger = ItemStoreLogger()

    def _ensure_session_factory(self) -> sessionmaker[Session]:
        factory = self._session_factory
        if factory is not None:
            return factory

        with self._lock:
            if self._session_factory is None:
                engine = create_engine(self._url, echo=False)
                Base.metadata.create_all(engine)
                self._engine = engine
                self._session_factory = sessionmaker(bind=engine, class_=Session)
                self._logger.connected(self._url)
            return self._session_factory

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager for database sessions."""
        session = self._ensure_session_factory()()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def put(self, item: LineItem) -> None:
        """Insert the item, or overwrite the record with the same key."""
        with self.session() as session:  # type: Session
            session.merge(LineItemDB.from_entity(item))

    def max_order_number(self, owner_id: int | str) -> int:
        """Return the highest stored order number for the owner, or 0.

        Order numbers that do not parse as integers are ignored.
        """
        owner_key = str(owner_id)
        highest = 0
        with self.session() as session:  # type: Session
            order_numbers = session.scalars(
                select(LineItemDB.order_number)
                .where(LineItemDB.owner_id == owner_key)
                .distinct()
            ).all()

        for raw in order_numbers:
            try:
                value = int(raw)
            except (TypeError, ValueError):
                self._logger.skipped_order_number(owner_key, raw)
                continue
            highest = max(highest, value)
        return highest

    def list_by_owner(self, owner_id: int | str) -> list[LineItem]:
        """Return every stored item for the owner."""
        with self.session() as session:  # type: Session
            rows = session.scalars(
                select(LineItemDB).where(LineItemDB.owner_id == str(owner_id))
            ).all()
            return [row.to_entity() for row in rows]

    def count(self) -> int:
        """Return the number of stored items across all owners."""
        with self.session() as session:  # type: Session
            return session.scalar(select(func.count()).select_from(LineItemDB)) or 0

    def reset(self) -> None:
        """Delete all stored data for all owners.

        Any open engine is disposed first; sessions obtained before the reset
        must not be reused.

        Raises:
            StoreResetError: The tables could not be dropped, e.g. because
                another connection holds a lock on the database
        """
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None

            engine = create_engine(self._url, echo=False)
            try:
                Base.metadata.drop_all(engine)
            except SQLAlchemyError as e:
                self._logger.reset_blocked(self._url, e)
                raise StoreResetError(f"Could not reset item store: {e}") from e
            finally:
                engine.dispose()

        self._logger.reset_complete(self._url)
