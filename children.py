"""
Children and the child <-> expert cross reference.

A child lists at most one expert in `expertIds`; the expert lists the child in
its `children` array; the owning family embeds a snapshot of the child. The
three writes are sequential and unguarded, `reconcile.py` repairs drift.
"""
import logging
from typing import Any, Dict

from database import create_document, now, to_obj_id
from errors import NotFoundError
from schemas import Child, ChildCreate, ChildSnapshot, ChildUpdate

logger = logging.getLogger(__name__)


def _require(db, collection: str, doc_id: str, label: str) -> dict:
    doc = db[collection].find_one({"_id": doc_id})
    if not doc:
        raise NotFoundError(f"{label} not found")
    return doc


def create_child(db, payload: ChildCreate) -> str:
    _require(db, "families", payload.family_id, "Family")
    if payload.expert_id:
        _require(db, "experts", payload.expert_id, "Expert")

    child = Child(
        **payload.model_dump(exclude={"expert_id"}),
        expert_ids=[payload.expert_id] if payload.expert_id else [],
    )
    child_id = create_document(db, "children", child)

    snapshot = ChildSnapshot(id=child_id, full_name=child.name, birth_date=child.birth_date)
    db["families"].update_one(
        {"_id": payload.family_id},
        {"$push": {"children": snapshot.model_dump(by_alias=True)}},
    )
    if payload.expert_id:
        db["experts"].update_one({"_id": payload.expert_id}, {"$addToSet": {"children": child_id}})

    logger.info("Child %s created for family %s", child_id, payload.family_id)
    return child_id


def update_child(db, payload: ChildUpdate) -> Dict[str, Any]:
    """Apply field changes and move the child to `payload.expert_id`.

    Previous experts are taken from the stored child as well as from the
    caller's `oldExpertId`, so a stale caller value cannot leave the child
    listed under an expert it no longer belongs to.
    """
    _id = to_obj_id(payload.child_id)
    child = db["children"].find_one({"_id": _id})
    if not child:
        raise NotFoundError("Child not found")
    new_expert = payload.expert_id or None
    if new_expert:
        _require(db, "experts", new_expert, "Expert")

    fields = payload.model_dump(by_alias=True, exclude_none=True,
                                exclude={"child_id", "expert_id", "old_expert_id"})
    fields["expertIds"] = [new_expert] if new_expert else []
    fields["updatedAt"] = now()
    db["children"].update_one({"_id": _id}, {"$set": fields})

    if new_expert:
        db["experts"].update_one({"_id": new_expert}, {"$addToSet": {"children": payload.child_id}})

    previous = set(child.get("expertIds") or [])
    if payload.old_expert_id:
        previous.add(payload.old_expert_id)
    removed = sorted(previous - {new_expert})
    for old_expert in removed:
        db["experts"].update_one({"_id": old_expert}, {"$pull": {"children": payload.child_id}})

    snapshot_fields = {}
    if payload.name is not None:
        snapshot_fields["children.$.fullName"] = payload.name
    if payload.birth_date is not None:
        snapshot_fields["children.$.birthDate"] = payload.birth_date
    if snapshot_fields:
        db["families"].update_one(
            {"_id": child["familyId"], "children.id": payload.child_id},
            {"$set": snapshot_fields},
        )

    logger.info("Child %s updated, experts %s (removed from %s)", payload.child_id, fields["expertIds"], removed)
    return {"childId": payload.child_id, "expertIds": fields["expertIds"], "removedFrom": removed}
