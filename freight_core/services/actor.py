"""
The acting identity of a request.

The identity collaborator has already verified who the user is
and which organizations they belong to; the core takes those
facts as given. An Actor is passed into every service call.
Nothing in the core looks up "the current user" on its own.
"""

from dataclasses import dataclass, field, replace

from freight_core.exceptions import PermissionDeniedError


@dataclass(frozen=True)
class Actor:
    user_id: str
    org_ids: frozenset[int] = field(default_factory=frozenset)
    phone: str | None = None
    # Postings the core makes on its own, such as the driver
    # payment liability at trip creation, skip membership checks.
    system: bool = False

    def is_member(self, org_id: int | None) -> bool:
        return self.system or (org_id is not None and org_id in self.org_ids)

    def require_member(self, *org_ids: int | None) -> None:
        """Raise unless the actor belongs to at least one of org_ids."""
        if not any(self.is_member(org_id) for org_id in org_ids):
            raise PermissionDeniedError(
                f"User {self.user_id} is not a member of "
                f"organization {' or '.join(str(o) for o in org_ids if o is not None)}"
            )

    def as_system(self) -> "Actor":
        """Same user, elevated for a posting the core initiates."""
        return replace(self, system=True)
