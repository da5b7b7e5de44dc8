"""
Expert and family accounts.

Creating an account is three sequential calls: create the identity, set the
role claim, write the profile document keyed by the identity uid.
"""
import logging

from database import create_document, now
from errors import ConflictError, NotFoundError
from identity import IdentityProvider
from schemas import (
    Expert, ExpertCreate, ExpertProfileUpdate, Family, FamilyCreate, FamilyProfileUpdate, UserIdentity,
)

logger = logging.getLogger(__name__)


def create_expert(db, identity: IdentityProvider, payload: ExpertCreate) -> str:
    email = payload.email.lower()
    if db["experts"].find_one({"email": email}):
        raise ConflictError("Expert with this email already exists")
    user = identity.create_user(email, payload.password)
    identity.set_role(user.uid, "expert")
    expert = Expert(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email,
        birth_date=payload.birth_date,
        start_date=payload.start_date,
    )
    create_document(db, "experts", expert, doc_id=user.uid)
    logger.info("Expert %s created (%s)", user.uid, email)
    return user.uid


def create_family(db, identity: IdentityProvider, payload: FamilyCreate) -> str:
    email = payload.email.lower()
    if db["families"].find_one({"email": email}):
        raise ConflictError("Family with this email already exists")
    user = identity.create_user(email, payload.password)
    identity.set_role(user.uid, "family")
    family = Family(
        family_name=payload.family_name,
        email=email,
        phone=payload.phone,
        photo_url=payload.photo_url,
        address=payload.address,
        parents=payload.parents,
        children=payload.children,
        notes=payload.notes,
    )
    create_document(db, "families", family, doc_id=user.uid)
    logger.info("Family %s created (%s)", user.uid, email)
    return user.uid


def update_expert_profile(db, uid: str, payload: ExpertProfileUpdate) -> None:
    fields = payload.model_dump(by_alias=True, exclude={"user_id"})
    fields["updatedAt"] = now()
    res = db["experts"].update_one({"_id": uid}, {"$set": fields})
    if res.matched_count == 0:
        raise NotFoundError("Expert not found")
    logger.info("Expert %s profile updated", uid)


def update_family_profile(db, uid: str, payload: FamilyProfileUpdate) -> None:
    fields = {
        "emergencyContact": payload.emergency_contact.model_dump(by_alias=True),
        "updatedAt": now(),
    }
    res = db["families"].update_one({"_id": uid}, {"$set": fields})
    if res.matched_count == 0:
        raise NotFoundError("Family not found")
    logger.info("Family %s profile updated", uid)


def bootstrap_admin(identity: IdentityProvider, email: str, password: str) -> UserIdentity:
    """Create the first administrator, or promote an existing account."""
    try:
        user = identity.get_user_by_email(email)
    except NotFoundError:
        user = identity.create_user(email, password)
    identity.set_role(user.uid, "admin")
    logger.info("Administrator %s ready", email)
    return identity.get_user(user.uid)
