import pytest

import children
from errors import NotFoundError
from schemas import ChildCreate, ChildUpdate


@pytest.fixture
def setup(db, make_expert, make_family):
    a = make_expert("a@example.com", "Ali")
    b = make_expert("b@example.com", "Banu")
    family_id = make_family()
    child_id = children.create_child(db, ChildCreate(name="Can", birth_date="2018-04-01", family_id=family_id,
                                                     expert_id=a))
    return {"a": a, "b": b, "family": family_id, "child": child_id}


def expert_children(db, expert_id):
    return db["experts"].find_one({"_id": expert_id})["children"]


def test_create_child_links_family_and_expert(db, setup):
    child = db["children"].find_one()
    assert str(child["_id"]) == setup["child"]
    assert child["expertIds"] == [setup["a"]]
    assert child["familyId"] == setup["family"]
    assert child["schoolType"] == "devlet"
    assert expert_children(db, setup["a"]) == [setup["child"]]

    embedded = db["families"].find_one({"_id": setup["family"]})["children"]
    assert [c["id"] for c in embedded] == [setup["child"]]
    assert embedded[0]["fullName"] == "Can"


def test_create_child_requires_existing_family(db):
    with pytest.raises(NotFoundError):
        children.create_child(db, ChildCreate(name="Can", family_id="missing"))
    assert db["children"].count_documents({}) == 0


def test_moving_child_between_experts(db, setup):
    result = children.update_child(db, ChildUpdate(child_id=setup["child"], expert_id=setup["b"],
                                                   old_expert_id=setup["a"]))

    assert result["expertIds"] == [setup["b"]]
    assert result["removedFrom"] == [setup["a"]]
    assert expert_children(db, setup["a"]) == []
    assert expert_children(db, setup["b"]) == [setup["child"]]
    assert db["children"].find_one()["expertIds"] == [setup["b"]]


def test_stale_old_expert_id_does_not_desynchronise(db, setup):
    children.update_child(db, ChildUpdate(child_id=setup["child"], expert_id=setup["b"],
                                          old_expert_id="someone-else"))

    assert expert_children(db, setup["a"]) == []
    assert expert_children(db, setup["b"]) == [setup["child"]]


def test_keeping_same_expert_leaves_link_alone(db, setup):
    result = children.update_child(db, ChildUpdate(child_id=setup["child"], expert_id=setup["a"],
                                                   old_expert_id=setup["a"], school_name="Okul"))

    assert result["removedFrom"] == []
    assert expert_children(db, setup["a"]) == [setup["child"]]
    assert db["children"].find_one()["schoolName"] == "Okul"


def test_clearing_expert(db, setup):
    children.update_child(db, ChildUpdate(child_id=setup["child"]))

    assert db["children"].find_one()["expertIds"] == []
    assert expert_children(db, setup["a"]) == []


def test_rename_refreshes_family_snapshot(db, setup):
    children.update_child(db, ChildUpdate(child_id=setup["child"], expert_id=setup["a"], name="Cem"))

    embedded = db["families"].find_one({"_id": setup["family"]})["children"]
    assert embedded[0]["fullName"] == "Cem"
    assert db["children"].find_one()["name"] == "Cem"


def test_unknown_new_expert_is_rejected(db, setup):
    with pytest.raises(NotFoundError):
        children.update_child(db, ChildUpdate(child_id=setup["child"], expert_id="missing"))
    assert expert_children(db, setup["a"]) == [setup["child"]]


def test_children_api(client, admin_headers, db, make_expert, make_family):
    a = make_expert("a@example.com")
    b = make_expert("b@example.com")
    family_id = make_family()

    res = client.post("/create-child", json={"name": "Can", "familyId": family_id, "expertId": a},
                      headers=admin_headers)
    assert res.status_code == 200
    child_id = res.json()["childId"]

    res = client.post("/children", json={"name": "Ece", "familyId": family_id}, headers=admin_headers)
    assert res.status_code == 200

    assert client.post("/create-child", json={"name": "X"}, headers=admin_headers).status_code == 422

    res = client.post("/update-child", json={"childId": child_id, "expertId": b, "oldExpertId": a},
                      headers=admin_headers)
    assert res.status_code == 200

    res = client.get("/expert-children", params={"expertId": b}, headers=admin_headers)
    assert [c["id"] for c in res.json()] == [child_id]
    assert client.get("/expert-children", params={"expertId": a}, headers=admin_headers).json() == []
    assert len(client.get("/children", headers=admin_headers).json()) == 2

    res = client.post("/update-child", json={"childId": "not-an-id"}, headers=admin_headers)
    assert res.status_code == 400
