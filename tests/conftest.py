import os
import pathlib
import sys

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.pop("QMS_HEALTH_WEIGHTS", None)

import pytest
from fastapi.testclient import TestClient

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from qms_records.database import Base, SessionLocal, engine
from qms_records.main import app
from qms_records.models import BusinessArea, User
from qms_records.models_rbac import AreaMember
from qms_records.scope import Caller


@pytest.fixture(autouse=True)
def _reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def register(client):
    """Register a user through /auth and return its Authorization header."""

    def _register(email: str, business_area: str | None = None, password: str = "Test@123") -> dict:
        body = {"email": email, "password": password, "full_name": email.split("@")[0]}
        if business_area:
            body["business_area"] = business_area
        resp = client.post("/auth/register", json=body)
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _register


@pytest.fixture()
def grant(client):
    def _grant(owner_headers: dict, business_area: str, email: str, role: str = "editor"):
        resp = client.post(
            f"/auth/business-areas/{business_area}/members",
            json={"email": email, "role": role},
            headers=owner_headers,
        )
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _grant


@pytest.fixture()
def make_caller(db):
    """Seed a user with memberships directly and return the resolved Caller."""

    def _make(email: str, areas: list[str]) -> Caller:
        user = User(email=email, full_name=email, password_hash="x")
        db.add(user)
        db.flush()
        for name in areas:
            if db.query(BusinessArea).filter(BusinessArea.name == name).first() is None:
                db.add(BusinessArea(name=name))
                db.flush()
            db.add(AreaMember(business_area=name, user_id=user.id, role="owner"))
        db.commit()
        return Caller(user_id=user.id, business_areas=sorted(areas))

    return _make
