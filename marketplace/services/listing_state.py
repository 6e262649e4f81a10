from __future__ import annotations

from marketplace.core.errors import Forbidden
from marketplace.services.auth import Actor

ACTIVE = "active"


def is_active_status(status: str) -> bool:
    return status == ACTIVE


def can_view_status(*, actor: Actor | None, status: str, owner_id: str | None) -> bool:
    """
    Active listings are public. Any other status is visible only to an admin, or
    to the owner when the query is scoped to that owner's listings.
    """
    if is_active_status(status):
        return True
    if actor is None:
        return False
    if actor.is_admin:
        return True
    return owner_id is not None and owner_id == actor.user_id


def enforce_status_access(*, actor: Actor | None, status: str, owner_id: str | None) -> None:
    if not can_view_status(actor=actor, status=status, owner_id=owner_id):
        raise Forbidden("Only the owner or an admin can list non-active listings")
