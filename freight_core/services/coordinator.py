"""
Coordinator: one store transaction per operation.

Every multi-entity operation runs through Coordinator.run():

1. Open a session and begin a transaction
2. Set the per-transaction lock and statement timeouts
3. Call the operation with the session
4. Commit, then publish the notifications the operation queued

Failures roll the whole transaction back. Transient store
conflicts (serialization failures, deadlocks, lock timeouts) are
retried a bounded number of times; anything else propagates.
"""

import logging
import random
import time
from typing import Callable, Protocol, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from freight_core.config import Settings, get_settings
from freight_core.exceptions import ConflictError, FreightCoreError
from freight_core.services import outbox

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
TRANSIENT_PGCODES = {"40001", "40P01", "55P03", "57014"}


class Notifier(Protocol):
    def publish(self, event: str, payload: dict) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes each event to the log."""

    def publish(self, event: str, payload: dict) -> None:
        logger.info("Notification", extra={"event": event, **payload})


def is_transient(exc: OperationalError) -> bool:
    """True if the store failure is worth retrying."""
    pgcode = getattr(exc.orig, "pgcode", None)
    if pgcode in TRANSIENT_PGCODES:
        return True
    return "database is locked" in str(exc.orig).lower()


class Coordinator:

    def __init__(
        self,
        session_factory: sessionmaker,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.notifier = notifier or LoggingNotifier()
        self.settings = settings or get_settings()

    def _set_timeouts(self, db: Session) -> None:
        if db.get_bind().dialect.name != "postgresql":
            # SQLite waits on its busy timeout instead
            return
        timeout = int(self.settings.TRANSACTION_TIMEOUT_MS)
        db.execute(text(f"SET LOCAL lock_timeout = {timeout}"))
        db.execute(text(f"SET LOCAL statement_timeout = {timeout}"))

    def _backoff(self, attempt: int) -> float:
        base = self.settings.RETRY_BASE_DELAY_MS / 1000
        delay = base * (2 ** (attempt - 1))
        return delay + random.uniform(0, delay)

    def _publish(self, events: list[tuple[str, dict]]) -> None:
        for event, payload in events:
            try:
                self.notifier.publish(event, payload)
            except Exception:
                # Delivery is best effort; the write is already committed
                logger.exception(
                    "Notification failed", extra={"event": event}
                )

    def run(self, operation: Callable[[Session], T]) -> T:
        """
        Run operation(session) in one transaction and return its result.

        Raises the operation's FreightCoreError unchanged, or
        ConflictError when the store keeps rejecting the write.
        """
        attempts = max(1, self.settings.MAX_TRANSACTION_ATTEMPTS)

        for attempt in range(1, attempts + 1):
            db = self.session_factory()
            try:
                self._set_timeouts(db)
                result = operation(db)
                db.commit()
                events = outbox.drain(db)
            except FreightCoreError:
                db.rollback()
                outbox.discard(db)
                raise
            except IntegrityError as e:
                db.rollback()
                outbox.discard(db)
                logger.warning(
                    "Transaction rejected by constraint",
                    extra={"error": str(e.orig)},
                )
                raise ConflictError(
                    "The write conflicts with existing data"
                ) from e
            except OperationalError as e:
                db.rollback()
                outbox.discard(db)
                if not is_transient(e):
                    raise
                if attempt == attempts:
                    logger.warning(
                        "Transaction retries exhausted",
                        extra={"attempts": attempts},
                    )
                    raise ConflictError(
                        f"Transaction failed after {attempts} attempts "
                        f"due to concurrent updates"
                    ) from e
                delay = self._backoff(attempt)
                logger.info(
                    "Retrying transaction",
                    extra={"attempt": attempt, "delay_s": round(delay, 3)},
                )
                time.sleep(delay)
                continue
            except Exception:
                db.rollback()
                outbox.discard(db)
                raise
            finally:
                db.close()

            self._publish(events)
            return result

        # Unreachable: the loop returns or raises
        raise ConflictError("Transaction was not attempted")
