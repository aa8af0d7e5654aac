"""
Per-session notification outbox.

Services record what happened with enqueue(); the coordinator
drains the outbox only after the transaction commits, so a
rolled-back operation never announces anything.
"""

from sqlalchemy.orm import Session

_OUTBOX_KEY = "outbox"


def enqueue(db: Session, event: str, payload: dict) -> None:
    db.info.setdefault(_OUTBOX_KEY, []).append((event, payload))


def drain(db: Session) -> list[tuple[str, dict]]:
    return db.info.pop(_OUTBOX_KEY, [])


def discard(db: Session) -> None:
    db.info.pop(_OUTBOX_KEY, None)
