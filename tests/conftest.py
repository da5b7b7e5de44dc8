import mongomock
import pytest
from fastapi.testclient import TestClient

import main
import accounts
from database import get_db
from identity import LocalIdentityProvider
from media import LocalMediaStore, get_media_store
from schemas import ExpertCreate, FamilyCreate

PASSWORD = "secret-pass"


@pytest.fixture
def db():
    return mongomock.MongoClient()["family_guidance_test"]


@pytest.fixture
def identity(db):
    return LocalIdentityProvider(db)


@pytest.fixture
def media_store(tmp_path):
    return LocalMediaStore(str(tmp_path / "media"))


@pytest.fixture
def client(db, media_store):
    main.app.dependency_overrides[get_db] = lambda: db
    main.app.dependency_overrides[get_media_store] = lambda: media_store
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


def bearer(identity, email, password=PASSWORD):
    return {"Authorization": f"Bearer {identity.sign_in(email, password)}"}


@pytest.fixture
def admin_headers(identity):
    user = identity.create_user("admin@example.com", PASSWORD)
    identity.set_role(user.uid, "admin")
    return bearer(identity, "admin@example.com")


@pytest.fixture
def make_expert(db, identity):
    def _factory(email="expert@example.com", first_name="Ayse", last_name="Demir"):
        payload = ExpertCreate(first_name=first_name, last_name=last_name, email=email, password=PASSWORD)
        return accounts.create_expert(db, identity, payload)

    return _factory


@pytest.fixture
def make_family(db, identity):
    def _factory(email="family@example.com", family_name="Yilmaz"):
        payload = FamilyCreate(family_name=family_name, email=email, password=PASSWORD)
        return accounts.create_family(db, identity, payload)

    return _factory
