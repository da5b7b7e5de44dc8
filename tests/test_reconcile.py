from bson.objectid import ObjectId

import assignments
import children
from database import now
from reconcile import reconcile
from schemas import ChildCreate


def test_consistent_state_needs_no_repairs(db, make_expert, make_family):
    make_expert()
    make_family()
    assignments.assign_families(db, "expert@example.com", "family@example.com")

    counts = reconcile(db)
    assert set(counts.values()) == {0}


def test_missing_family_side_is_restored(db, make_expert, make_family):
    expert_id = make_expert()
    family_id = make_family()
    expert = db["experts"].find_one({"_id": expert_id})
    family = db["families"].find_one({"_id": family_id})
    # the first write landed, the second did not
    assignments.write_family_side(db, expert, family, now())

    counts = reconcile(db)

    assert counts["familySidesWritten"] == 1
    mirrored = db["families"].find_one({"_id": family_id})["assignedExperts"]
    assert list(mirrored) == [expert_id]
    assert mirrored[expert_id]["email"] == "expert@example.com"
    assert reconcile(db)["familySidesWritten"] == 0


def test_missing_expert_side_is_restored(db, make_expert, make_family):
    expert_id = make_expert()
    family_id = make_family()
    expert = db["experts"].find_one({"_id": expert_id})
    family = db["families"].find_one({"_id": family_id})
    assignments.write_expert_side(db, expert, family, now())

    counts = reconcile(db)

    assert counts["expertSidesWritten"] == 1
    assert list(db["experts"].find_one({"_id": expert_id})["families"]) == [family_id]


def test_child_links_are_repaired(db, make_expert, make_family):
    a = make_expert("a@example.com")
    b = make_expert("b@example.com")
    family_id = make_family()
    child_id = children.create_child(db, ChildCreate(name="Can", family_id=family_id, expert_id=a))
    # child moved to b in the child document only
    db["children"].update_one({"_id": ObjectId(child_id)}, {"$set": {"expertIds": [b]}})

    counts = reconcile(db)

    assert counts["expertChildrenAdded"] == 1
    assert counts["expertChildrenRemoved"] == 1
    assert db["experts"].find_one({"_id": a})["children"] == []
    assert db["experts"].find_one({"_id": b})["children"] == [child_id]


def test_reconcile_api(client, admin_headers, db, make_expert, make_family):
    expert_id = make_expert()
    family_id = make_family()
    expert = db["experts"].find_one({"_id": expert_id})
    family = db["families"].find_one({"_id": family_id})
    assignments.write_family_side(db, expert, family, now())

    res = client.post("/admin/reconcile", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["repairs"]["familySidesWritten"] == 1
