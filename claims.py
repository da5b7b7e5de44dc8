"""Role claims manager: read and write the `role` custom claim."""
import logging
from typing import Optional

from errors import BadRequestError
from identity import IdentityProvider
from schemas import UserIdentity

logger = logging.getLogger(__name__)


def set_user_role(identity: IdentityProvider, uid: str, role: str) -> UserIdentity:
    identity.set_role(uid, role)
    user = identity.get_user(uid)
    logger.info("Role of %s set to %s", uid, role)
    return user


def get_user_role(identity: IdentityProvider, uid: Optional[str] = None,
                  email: Optional[str] = None) -> UserIdentity:
    if uid:
        return identity.get_user(uid)
    if email:
        return identity.get_user_by_email(email)
    raise BadRequestError("uid or email required")
