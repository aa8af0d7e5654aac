"""
Request-scoped dependencies shared by the routers.
"""

from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from freight_core.api.errors import http_error
from freight_core.config import get_settings
from freight_core.exceptions import PermissionDeniedError
from freight_core.models.base import SessionLocal
from freight_core.services.actor import Actor
from freight_core.services.coordinator import Coordinator


@lru_cache()
def get_coordinator() -> Coordinator:
    return Coordinator(SessionLocal)


def get_actor(
    x_user_id: str = Header(min_length=1),
    x_org_ids: str = Header(default=""),
    x_user_phone: str | None = Header(default=None),
) -> Actor:
    """
    Build the Actor from headers set by the upstream gateway.

    The gateway has already authenticated the user; the core
    trusts these values as given.
    """
    try:
        org_ids = frozenset(
            int(part) for part in x_org_ids.split(",") if part.strip()
        )
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail="X-Org-Ids must be a comma separated list of integers",
        )
    return Actor(user_id=x_user_id, org_ids=org_ids, phone=x_user_phone)


def get_operator(actor: Actor = Depends(get_actor)) -> Actor:
    """Admit only the user ids listed in LEDGER_OPERATOR_USER_IDS."""
    if actor.user_id not in get_settings().LEDGER_OPERATOR_USER_IDS:
        raise http_error(
            PermissionDeniedError(
                f"User {actor.user_id} is not a ledger operator"
            )
        )
    return actor
