import assignments

from conftest import PASSWORD, bearer


def test_root(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "message" in res.json()


def test_login_sets_cookies_and_returns_role(client, identity, admin_headers):
    res = client.post("/auth/login", json={"email": "admin@example.com", "password": PASSWORD})
    assert res.status_code == 200
    assert res.json()["role"] == "admin"
    assert res.cookies.get("auth_token") == res.json()["token"]
    assert res.cookies.get("user_role") == "admin"

    assert client.get("/auth/me").json()["role"] == "admin"


def test_login_with_bad_password(client, admin_headers):
    res = client.post("/auth/login", json={"email": "admin@example.com", "password": "wrong-one"})
    assert res.status_code == 401
    assert res.json()["detail"] == "Invalid credentials"


def test_logout_ends_session(client, admin_headers):
    assert client.get("/auth/me", headers=admin_headers).status_code == 200
    client.post("/auth/logout", headers=admin_headers)
    assert client.get("/auth/me", headers=admin_headers).status_code == 401


def test_unauthenticated_requests_are_rejected(client):
    assert client.get("/experts").status_code == 401
    assert client.get("/experts", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_role_cookie_is_not_trusted(client, identity, make_family):
    make_family()
    headers = bearer(identity, "family@example.com")
    headers["Cookie"] = "user_role=admin"
    assert client.get("/all-reports", headers=headers).status_code == 403


def test_create_expert_and_family(client, admin_headers, db, identity):
    res = client.post("/create-expert", json={
        "firstName": "Ayse", "lastName": "Demir", "email": "Ayse@Example.com", "password": PASSWORD,
        "startDate": "2024-01-15",
    }, headers=admin_headers)
    assert res.status_code == 200
    expert_uid = res.json()["uid"]

    expert = db["experts"].find_one({"_id": expert_uid})
    assert expert["email"] == "ayse@example.com"
    assert expert["families"] == {}
    assert "password" not in expert
    assert "role" not in expert
    assert identity.get_user(expert_uid).role == "expert"

    res = client.post("/create-family", json={
        "familyName": "Yilmaz", "email": "family@example.com", "password": PASSWORD,
        "address": {"fullAddress": "Main St 1", "city": "Ankara"},
        "parents": {"mother": {"name": "Elif", "phone": "555"}},
        "children": [{"fullName": "Can", "birthDate": "2018-04-01", "gender": "male"}],
    }, headers=admin_headers)
    assert res.status_code == 200
    family = db["families"].find_one({"_id": res.json()["uid"]})
    assert family["address"]["city"] == "Ankara"
    assert family["parents"]["mother"]["name"] == "Elif"
    assert family["children"][0]["fullName"] == "Can"
    assert family["children"][0]["id"]
    assert family["assignedExperts"] == {}
    assert family["meetings"] == []
    assert identity.get_user(res.json()["uid"]).role == "family"

    res = client.post("/create-expert", json={
        "firstName": "A", "lastName": "B", "email": "ayse@example.com", "password": PASSWORD,
    }, headers=admin_headers)
    assert res.status_code == 409


def test_directory_listings(client, admin_headers, make_expert, make_family):
    make_expert()
    make_family()
    experts = client.get("/experts", headers=admin_headers).json()
    families = client.get("/families", headers=admin_headers).json()
    assert [e["email"] for e in experts] == ["expert@example.com"]
    assert [f["familyName"] for f in families] == ["Yilmaz"]
    assert "_id" not in experts[0]


def test_expert_sees_assigned_families_only(client, db, identity, make_expert, make_family):
    expert_id = make_expert()
    family_id = make_family()
    other_id = make_family("other@example.com", "Other")
    assignments.assign_families(db, "expert@example.com", "family@example.com")
    headers = bearer(identity, "expert@example.com")

    listed = client.get(f"/experts/{expert_id}/families", headers=headers).json()
    assert [f["id"] for f in listed] == [family_id]

    assert client.get(f"/families/{family_id}", headers=headers).status_code == 200
    assert client.get(f"/families/{other_id}", headers=headers).status_code == 403
    assert client.get("/families", headers=headers).status_code == 403


def test_profile_updates(client, db, identity, make_expert, make_family, admin_headers):
    expert_id = make_expert()
    family_id = make_family()

    res = client.post("/update-expert-profile", json={
        "isCAP": True, "capUniversity": "ODTU", "city": "Izmir",
        "educations": [{"name": "Play therapy", "institution": "X", "date": "2023"}],
    }, headers=bearer(identity, "expert@example.com"))
    assert res.status_code == 200
    expert = db["experts"].find_one({"_id": expert_id})
    assert expert["isCAP"] is True
    assert expert["capUniversity"] == "ODTU"
    assert expert["educations"][0]["name"] == "Play therapy"
    assert expert["firstName"] == "Ayse"

    res = client.post("/update-family-profile", json={
        "emergencyContact": {"firstName": "Mert", "phone": "555"},
    }, headers=bearer(identity, "family@example.com"))
    assert res.status_code == 200
    assert db["families"].find_one({"_id": family_id})["emergencyContact"]["firstName"] == "Mert"

    res = client.post("/update-expert-profile", json={"userId": "someone-else"},
                      headers=bearer(identity, "expert@example.com"))
    assert res.status_code == 403

    res = client.post("/update-expert-profile", json={"userId": expert_id, "city": "Bursa"}, headers=admin_headers)
    assert res.status_code == 200
    assert db["experts"].find_one({"_id": expert_id})["city"] == "Bursa"


def test_profile_update_for_unknown_account_creates_nothing(client, db, admin_headers, make_family):
    family_id = make_family()

    res = client.post("/update-expert-profile", json={"userId": family_id, "city": "Bursa"}, headers=admin_headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Expert not found"
    assert db["experts"].find_one({"_id": family_id}) is None

    res = client.post("/update-family-profile", json={"userId": "ghost-uid"}, headers=admin_headers)
    assert res.status_code == 404
    assert res.json()["detail"] == "Family not found"
    assert db["families"].find_one({"_id": "ghost-uid"}) is None
    assert [f["id"] for f in client.get("/families", headers=admin_headers).json()] == [family_id]
