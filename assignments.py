"""
Expert <-> family assignments.

An assignment is mirrored: `experts/E.families.F` holds a copy of the family
and `families/F.assignedExperts.E` holds a copy of the expert. The two halves
are separate writes with no transaction; a failure between them leaves a
one-sided reference that `reconcile.py` repairs.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from database import now
from errors import NotFoundError

logger = logging.getLogger(__name__)

# an entity's own status stays on its document; `status` in a snapshot is the assignment's
FAMILY_SNAPSHOT_EXCLUDE = {"_id", "assignedExperts", "meetings", "status"}
EXPERT_SNAPSHOT_EXCLUDE = {"_id", "families", "status"}


def _snapshot(doc: dict, exclude: set, assigned_at: datetime, status: str) -> dict:
    snap = {k: v for k, v in doc.items() if k not in exclude}
    snap["assignedAt"] = assigned_at
    snap["status"] = status
    return snap


def family_snapshot(family: dict, assigned_at: datetime, status: str = "active") -> dict:
    return _snapshot(family, FAMILY_SNAPSHOT_EXCLUDE, assigned_at, status)


def expert_snapshot(expert: dict, assigned_at: datetime, status: str = "active") -> dict:
    return _snapshot(expert, EXPERT_SNAPSHOT_EXCLUDE, assigned_at, status)


def write_family_side(db, expert: dict, family: dict, assigned_at: datetime, status: str = "active") -> None:
    db["experts"].update_one(
        {"_id": expert["_id"]},
        {"$set": {f"families.{family['_id']}": family_snapshot(family, assigned_at, status)}},
    )


def write_expert_side(db, expert: dict, family: dict, assigned_at: datetime, status: str = "active") -> None:
    db["families"].update_one(
        {"_id": family["_id"]},
        {"$set": {f"assignedExperts.{expert['_id']}": expert_snapshot(expert, assigned_at, status)}},
    )


def assign_pair(db, expert: dict, family: dict, assigned_at: Optional[datetime] = None) -> None:
    assigned_at = assigned_at or now()
    write_family_side(db, expert, family, assigned_at)
    write_expert_side(db, expert, family, assigned_at)
    logger.info("Assigned expert %s to family %s", expert["_id"], family["_id"])


def split_emails(raw: str) -> List[str]:
    emails, seen = [], set()
    for part in raw.split(","):
        email = part.strip()
        if email and email.lower() not in seen:
            seen.add(email.lower())
            emails.append(email)
    return emails


def find_expert_by_email(db, email: str) -> dict:
    matches = list(db["experts"].find({"email": email.strip().lower()}).limit(2))
    if not matches:
        raise NotFoundError("Expert not found")
    if len(matches) > 1:
        raise NotFoundError("Expert email is ambiguous")
    return matches[0]


def assign_families(db, expert_email: str, family_emails: str) -> Dict[str, Any]:
    """Assign every family in the comma separated list to one expert.

    Unknown family emails are skipped; families found before a failure stay
    assigned.
    """
    expert = find_expert_by_email(db, expert_email)
    assigned, skipped = [], []
    for email in split_emails(family_emails):
        family = db["families"].find_one({"email": email.lower()})
        if not family:
            logger.warning("No family with email %s, skipping", email)
            skipped.append(email)
            continue
        assign_pair(db, expert, family)
        assigned.append(family["_id"])
    return {"expertId": expert["_id"], "assigned": assigned, "skipped": skipped}
