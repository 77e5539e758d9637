"""
Permission predicates.

Everything here is a pure function of the request's session user and, where
relevant, the resource being touched. Two rules compose every decision:

* listings: the resource owner OR the moderator may mutate them;
* accounts: only the account holder may change or delete their own account.
  The moderator gets no override here, and the moderator's own account
  cannot be deleted through the API.
"""

from typing import Optional

from app.core.exceptions import AuthorizationError
from app.models.user import UserRole
from app.schemas.user import SessionUser


def is_authenticated(user: Optional[SessionUser]) -> bool:
    return user is not None


def is_owner(user: Optional[SessionUser]) -> bool:
    return user is not None and user.role == UserRole.OWNER


def is_resource_owner_or_moderator(acting_user_id, is_moderator: bool, resource) -> bool:
    if is_moderator:
        return True
    return acting_user_id is not None and str(acting_user_id) == str(resource.owner_id)


def can_manage_account(user: Optional[SessionUser], target_user_id) -> bool:
    return user is not None and user.id == str(target_user_id)


def can_delete_account(user: Optional[SessionUser], target_user_id) -> bool:
    return can_manage_account(user, target_user_id) and not user.is_moderator


def ensure_can_mutate(acting_user_id, is_moderator: bool, resource) -> None:
    if not is_resource_owner_or_moderator(acting_user_id, is_moderator, resource):
        raise AuthorizationError("You do not have permission to change this property.")
