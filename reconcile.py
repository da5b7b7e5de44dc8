"""
Repair one-sided references left behind by interrupted writes.

Assignments and child links are written as independent calls, so a crash or
two interleaved requests can leave only one half on disk. `reconcile` scans
experts, families and children and writes whichever half is missing:

* expert lists family, family lacks the expert -> write the family side
* family lists expert, expert lacks the family -> write the expert side
* child lists expert, expert lacks the child   -> add the child to the expert
* expert lists child, child does not list it   -> pull the child from the expert
"""
import logging
from typing import Dict

from assignments import write_expert_side, write_family_side
from database import now

logger = logging.getLogger(__name__)


def reconcile(db) -> Dict[str, int]:
    counts = {
        "familySidesWritten": 0,
        "expertSidesWritten": 0,
        "expertChildrenAdded": 0,
        "expertChildrenRemoved": 0,
    }
    experts = {e["_id"]: e for e in db["experts"].find()}
    families = {f["_id"]: f for f in db["families"].find()}

    for expert_id, expert in experts.items():
        for family_id, snap in (expert.get("families") or {}).items():
            family = families.get(family_id)
            if family is None:
                logger.warning("Expert %s references missing family %s", expert_id, family_id)
                continue
            if expert_id not in (family.get("assignedExperts") or {}):
                write_expert_side(db, expert, family, snap.get("assignedAt") or now(), snap.get("status", "active"))
                counts["familySidesWritten"] += 1
                logger.info("Restored family %s -> expert %s", family_id, expert_id)

    for family_id, family in families.items():
        for expert_id, snap in (family.get("assignedExperts") or {}).items():
            expert = experts.get(expert_id)
            if expert is None:
                logger.warning("Family %s references missing expert %s", family_id, expert_id)
                continue
            if family_id not in (expert.get("families") or {}):
                write_family_side(db, expert, family, snap.get("assignedAt") or now(), snap.get("status", "active"))
                counts["expertSidesWritten"] += 1
                logger.info("Restored expert %s -> family %s", expert_id, family_id)

    child_experts = {}
    for child in db["children"].find():
        child_id = str(child["_id"])
        child_experts[child_id] = set(child.get("expertIds") or [])
        for expert_id in child_experts[child_id]:
            expert = experts.get(expert_id)
            if expert is not None and child_id not in (expert.get("children") or []):
                db["experts"].update_one({"_id": expert_id}, {"$addToSet": {"children": child_id}})
                counts["expertChildrenAdded"] += 1

    for expert_id, expert in experts.items():
        for child_id in expert.get("children") or []:
            if expert_id not in child_experts.get(child_id, set()):
                db["experts"].update_one({"_id": expert_id}, {"$pull": {"children": child_id}})
                counts["expertChildrenRemoved"] += 1

    logger.info("Reconcile finished: %s", counts)
    return counts
