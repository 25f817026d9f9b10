import pytest
from werkzeug.security import generate_password_hash

from app.recon import create_app
from app.recon.db import session_scope
from app.recon.models import Base, Dealership, Permission, Role, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CACHE_DIR", str(tmp_path / "cache"))

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        d = Dealership(name="Test Motors")
        p = Permission(key="admin.view", name="Admin: view shell")
        r = Role(key="admin", name="Administrator")
        r.permissions.append(p)
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True, dealership=d)
        u.roles.append(r)
        s.add_all([d, p, r, u])

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_login_and_admin_access(client):
    # Anonymous should be rejected
    r = client.get("/admin/")
    assert r.status_code in (401, 403)

    r = client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    assert r.status_code == 200
    assert r.json["user"]["initials"] == "admin"

    r = client.get("/admin/")
    assert r.status_code == 200
    assert r.json["db_connected"] is True
    assert r.json["dealership"]["name"] == "Test Motors"


def test_bad_password_rejected(client):
    r = client.post("/auth/login", json={"email": "admin@example.com", "password": "nope"})
    assert r.status_code == 401
    assert client.get("/admin/").status_code == 401


def test_missing_permission_is_forbidden(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.get("/admin/vehicles")
    assert r.status_code == 403
    assert r.json["missing_permission"] == "vehicles.view"


def test_mutations_require_csrf_token(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.post("/admin/inspection-settings/reset", json={"confirm": True})
    assert r.status_code == 400
    assert "CSRF" in r.json["error"]


def test_audit_log_records_login(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"})
    r = client.get("/admin/audit?action=auth.login")
    assert r.status_code == 200
    assert any(ev["action"] == "auth.login" for ev in r.json)
