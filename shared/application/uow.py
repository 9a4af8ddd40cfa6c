"""
Unit of Work Pattern

Owns one database transaction. Domain events collected during the unit
are published only after the transaction commits; a rolled back unit
discards them. Store failures that are worth retrying surface as
TransientStoreError.
"""

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import List
import logging

from django.db import DEFAULT_DB_ALIAS, DatabaseError, IntegrityError, InterfaceError, connections, transaction

from shared.domain.base import DomainEvent
from shared.domain.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
TRANSIENT_PGCODES = {'55P03', '40P01', '40001'}
EXCLUSION_VIOLATION_PGCODE = '23P01'
# SQLITE_BUSY, SQLITE_LOCKED (primary codes)
TRANSIENT_SQLITE_CODES = {5, 6}


def _driver_error(exc: BaseException):
    return getattr(exc, '__cause__', None) or getattr(exc, 'orig', None)


def _pgcode(exc: BaseException):
    cause = _driver_error(exc)
    return getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)


def _sqlite_code(exc: BaseException):
    code = getattr(_driver_error(exc), 'sqlite_errorcode', None)
    return code & 0xFF if isinstance(code, int) else None


def is_transient_store_error(exc: BaseException) -> bool:
    """Lock timeouts, deadlocks, serialization failures and dropped connections."""
    if isinstance(exc, InterfaceError):
        return True
    if not isinstance(exc, DatabaseError) or isinstance(exc, IntegrityError):
        return False
    if _pgcode(exc) in TRANSIENT_PGCODES or _sqlite_code(exc) in TRANSIENT_SQLITE_CODES:
        return True
    message = str(exc).lower()
    return (
        'database is locked' in message
        or 'database table is locked' in message
        or 'deadlock detected' in message
        or 'lock timeout' in message
    )


def is_exclusion_violation(exc: BaseException) -> bool:
    """True for an IntegrityError raised by a PostgreSQL exclusion constraint."""
    if not isinstance(exc, IntegrityError):
        return False
    return _pgcode(exc) == EXCLUSION_VIOLATION_PGCODE or 'exclusion constraint' in str(exc).lower()


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work pattern"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Commit the transaction"""

    @abstractmethod
    def rollback(self):
        """Rollback the transaction"""

    @abstractmethod
    def add_event(self, event: DomainEvent):
        """Queue an event for publication after commit"""


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Django implementation of Unit of Work

    Usage:
        with DjangoUnitOfWork(using="default", lock_timeout=timedelta(seconds=5)) as uow:
            room = uow.lock(Room.objects.filter(pk=room_id))
            ...
            uow.add_event(ReservationHeld(...))
        # Events are published after commit

    ``lock_timeout`` bounds how long any row lock taken inside the unit
    may be waited for. On PostgreSQL it is applied with ``SET LOCAL``;
    other backends rely on their connection level timeout.
    """

    def __init__(self, using: str = DEFAULT_DB_ALIAS, bus=None, lock_timeout: timedelta | None = None):
        self.using = using
        self._bus = bus
        self._lock_timeout = lock_timeout
        self._events: List[DomainEvent] = []
        self._transaction = None

    @property
    def connection(self):
        return connections[self.using]

    def __enter__(self):
        """Start database transaction"""
        self._transaction = transaction.atomic(using=self.using)
        self._transaction.__enter__()
        try:
            self._apply_lock_timeout()
        except DatabaseError as exc:
            self._transaction.__exit__(type(exc), exc, exc.__traceback__)
            if is_transient_store_error(exc):
                raise TransientStoreError(str(exc)) from exc
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Complete or rollback transaction"""
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        try:
            self._transaction.__exit__(exc_type, exc_val, exc_tb)
        except DatabaseError as exc:
            # Failure while committing
            self._events.clear()
            if is_transient_store_error(exc):
                raise TransientStoreError(str(exc)) from exc
            raise
        if exc_val is not None and is_transient_store_error(exc_val):
            raise TransientStoreError(str(exc_val)) from exc_val
        return False

    def _apply_lock_timeout(self):
        if self._lock_timeout is None or self.connection.vendor != 'postgresql':
            return
        millis = int(self._lock_timeout.total_seconds() * 1000)
        with self.connection.cursor() as cursor:
            cursor.execute(f"SET LOCAL lock_timeout = '{millis}ms'")

    def lock(self, queryset):
        """
        Return the queryset with ``SELECT ... FOR UPDATE`` applied.

        Backends without row locks (SQLite) serialise writers on the
        database file instead, so the plain queryset is returned there.
        """
        if not self.connection.features.has_select_for_update:
            return queryset.using(self.using)
        return queryset.using(self.using).select_for_update()

    def commit(self):
        """
        Schedule publication of collected events

        Events are published using Django's transaction.on_commit()
        so they are only sent after the database commit succeeds.
        """
        logger.debug(f"Committing transaction with {len(self._events)} events")

        events = self._events.copy()
        self._events.clear()

        if events:
            transaction.on_commit(lambda: self._publish_events(events), using=self.using)

    def rollback(self):
        """Discard collected events"""
        if self._events:
            logger.warning(f"Rolling back transaction, discarding {len(self._events)} events")
        self._events.clear()

    def add_event(self, event: DomainEvent):
        self._events.append(event)

    def _publish_events(self, events: List[DomainEvent]):
        """
        Publish collected events to message bus

        Called after successful transaction commit.
        """
        bus = self._bus
        if bus is None:
            from shared.application.message_bus import message_bus as bus

        logger.info(f"Publishing {len(events)} domain events after commit")
        bus.publish_events(events)
