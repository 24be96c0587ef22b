from __future__ import annotations

import bcrypt

from farmflow.apps.accounts import models as account_models
from farmflow.apps.accounts import modules as account_modules
from farmflow.apps.accounts import services as account_services
from farmflow.apps.audit import models as audit_models


def test_login_returns_token_and_me_reports_modules(client, make_user, tenant):
    make_user(tenant, "field.user", password="Harvest#2024")

    response = client.post("/auth/login", json={"username": "field.user", "password": "Harvest#2024"})

    assert response.status_code == 200
    token = response.json()
    assert token["token_type"] == "bearer"
    assert token["role"] == "user"
    assert token["tenant_id"] == tenant.id
    assert token["expires_in"] > 0

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token['access_token']}"})
    assert me.status_code == 200
    body = me.json()
    assert body["username"] == "field.user"
    assert body["role_label"] == "Estate User"
    assert body["last_login_at"] is not None
    assert "inventory" in body["enabled_modules"]
    assert "curing" not in body["enabled_modules"]


def test_login_rejects_bad_password(client, make_user, tenant):
    make_user(tenant, "field.user", password="right")

    response = client.post("/auth/login", json={"username": "field.user", "password": "wrong"})

    assert response.status_code == 401


def test_login_rejects_inactive_user_and_inactive_estate(client, db_session, make_tenant, make_user):
    estate = make_tenant("Closed Estate", is_active=False)
    make_user(estate, "closed.user", password="pw")
    owner = make_user(estate, "closed.owner", role="owner", password="pw")

    blocked = client.post("/auth/login", json={"username": "closed.user", "password": "pw"})
    assert blocked.status_code == 401
    assert blocked.json()["detail"] == "This estate account is not active."

    assert client.post("/auth/login", json={"username": "closed.owner", "password": "pw"}).status_code == 200

    owner.is_active = False
    db_session.commit()
    disabled = client.post("/auth/login", json={"username": "closed.owner", "password": "pw"})
    assert disabled.status_code == 401


def test_login_upgrades_legacy_bcrypt_hash(client, db_session, tenant):
    user = account_models.User(
        tenant_id=tenant.id,
        username="migrated.user",
        hashed_password=bcrypt.hashpw(b"legacy-pw", bcrypt.gensalt(rounds=4)).decode("utf-8"),
    )
    db_session.add(user)
    db_session.commit()

    response = client.post("/auth/login", json={"username": "migrated.user", "password": "legacy-pw"})

    assert response.status_code == 200
    assert user.hashed_password.startswith("$argon2")


def test_enabled_modules_narrowed_per_user(db_session, make_user, admin_user, tenant):
    estate_user = make_user(tenant, "field.user")
    db_session.add(account_models.UserModule(user_id=estate_user.id, module="rainfall", enabled=False))
    db_session.commit()

    assert "rainfall" not in account_services.get_enabled_modules(db_session, estate_user)
    assert "rainfall" in account_services.get_enabled_modules(db_session, admin_user)


def test_tenant_modules_get_and_put(client, db_session, admin_user, make_user, tenant, auth_headers):
    admin_headers = auth_headers(admin_user)

    states = client.get("/tenant-modules", headers=admin_headers).json()
    assert {state["id"]: state["enabled"] for state in states}["curing"] is False

    response = client.put(
        "/tenant-modules",
        json={"modules": [{"id": "curing", "enabled": True}, {"id": "teleport", "enabled": True}]},
        headers=admin_headers,
    )
    assert response.status_code == 200
    updated = {state["id"]: state["enabled"] for state in response.json()}
    assert updated["curing"] is True
    assert "teleport" not in updated

    rows = db_session.query(account_models.TenantModule).filter_by(tenant_id=tenant.id).all()
    assert [(row.module, row.enabled) for row in rows] == [("curing", True)]

    entry = db_session.query(audit_models.AuditLog).filter_by(entity_type="tenant_modules").one()
    assert entry.action == "upsert"

    user_headers = auth_headers(make_user(tenant, "field.user"))
    denied = client.put("/tenant-modules", json={"modules": []}, headers=user_headers)
    assert denied.status_code == 403


def test_user_modules_read_defaults_then_store_and_reset(client, db_session, admin_user, make_user, tenant, auth_headers):
    admin_headers = auth_headers(admin_user)
    estate_user = make_user(tenant, "field.user")

    initial = client.get(f"/user-modules/{estate_user.id}", headers=admin_headers)
    assert initial.status_code == 200
    assert initial.json()["source"] == "default"

    stored = client.put(
        f"/user-modules/{estate_user.id}",
        json={"modules": [{"id": "inventory", "enabled": True}, {"id": "curing", "enabled": True}]},
        headers=admin_headers,
    )
    assert stored.status_code == 200
    body = stored.json()
    assert body["source"] == "user"
    enabled = {state["id"] for state in body["modules"] if state["enabled"]}
    # curing is off for the estate, so the request cannot switch it on.
    assert enabled == {"inventory"}

    rows = db_session.query(account_models.UserModule).filter_by(user_id=estate_user.id).all()
    assert len(rows) == len(account_modules.MODULE_IDS)
    assert account_services.get_enabled_modules(db_session, estate_user) == ["inventory"]

    entry = db_session.query(audit_models.AuditLog).filter_by(entity_type="user_modules", action="update").one()
    assert entry.entity_id == estate_user.id

    reset = client.delete(f"/user-modules/{estate_user.id}", headers=admin_headers)
    assert reset.status_code == 200
    assert reset.json()["deleted"] == len(rows)
    assert client.get(f"/user-modules/{estate_user.id}", headers=admin_headers).json()["source"] == "default"
    assert db_session.query(audit_models.AuditLog).filter_by(entity_type="user_modules", action="delete").count() == 1


def test_user_modules_scoped_to_admins_own_estate(client, make_tenant, make_user, admin_user, tenant, auth_headers):
    other_estate = make_tenant("Other Estate")
    outsider = make_user(other_estate, "other.user")
    owner = make_user(other_estate, "platform.owner", role="owner")
    admin_headers = auth_headers(admin_user)

    assert client.get(f"/user-modules/{outsider.id}", headers=admin_headers).status_code == 403
    assert client.get("/user-modules/no-such-user", headers=admin_headers).status_code == 404
    assert client.get(f"/user-modules/{outsider.id}", headers=auth_headers(owner)).status_code == 200

    user_headers = auth_headers(make_user(tenant, "field.user"))
    assert client.get(f"/user-modules/{admin_user.id}", headers=user_headers).status_code == 403
