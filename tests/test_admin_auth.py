from app.admin_auth import (
    ALL_CAPABILITIES,
    ROLES_MANAGE,
    SUPERVISION_READ,
    SUPERVISION_WRITE,
    capabilities_for,
    seed_admin_roles,
)
from app.auth import Identity
from app.models import AdminRole


def role(email, name):
    return AdminRole(email=email, role=name)


# ============================================================================
# CAPABILITIES
# ============================================================================


def test_capabilities_are_union_of_assigned_roles():
    identity = Identity(user_id="u1", email="doc@practice.test")
    rows = [role("doc@practice.test", "viewer"), role("DOC@practice.test", "admin"), role("x@y.z", "super_admin")]

    capabilities = capabilities_for(identity, rows)

    assert SUPERVISION_WRITE in capabilities
    assert ROLES_MANAGE not in capabilities


def test_super_admin_has_every_capability():
    identity = Identity(user_id="u1", email="owner@practice.test")
    assert capabilities_for(identity, [role("owner@practice.test", "super_admin")]) == ALL_CAPABILITIES


def test_viewer_is_read_only():
    capabilities = capabilities_for(
        Identity(user_id="u1", email="v@practice.test"), [role("v@practice.test", "viewer")]
    )
    assert SUPERVISION_READ in capabilities
    assert not any(cap.endswith(":write") or cap.endswith(":manage") for cap in capabilities)


def test_no_email_or_unknown_role_grants_nothing():
    assert capabilities_for(Identity(user_id="u1"), [role("a@b.c", "super_admin")]) == frozenset()
    assert capabilities_for(Identity(user_id="u1", email="a@b.c"), [role("a@b.c", "janitor")]) == frozenset()


def test_seed_admin_roles_only_adds_missing_emails(db):
    db.add(role("existing@practice.test", "viewer"))
    db.commit()

    added = seed_admin_roles(db, ["Existing@practice.test", " new@practice.test ", ""])

    assert added == 1
    assert {(r.email, r.role) for r in db.query(AdminRole).all()} == {
        ("existing@practice.test", "viewer"),
        ("new@practice.test", "super_admin"),
    }
    assert seed_admin_roles(db, ["new@practice.test"]) == 0


# ============================================================================
# ENDPOINTS
# ============================================================================


def test_me_reports_capabilities(client, admin_headers):
    response = client.get("/admin/me", headers=admin_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["email"] == "admin@practice.test"
    assert body["user_id"] == "admin-1"
    assert "supervision:write" in body["capabilities"]
    assert "roles:manage" not in body["capabilities"]


def test_me_for_non_admin_has_no_capabilities(client, headers_for):
    response = client.get("/admin/me", headers=headers_for("Patient@Example.com"))

    assert response.status_code == 200
    assert response.json() == {"user_id": "user-1", "email": "patient@example.com", "capabilities": []}


def test_expired_token_is_rejected(client, admin_roles, token_for):
    token = token_for("admin-1", "admin@practice.test", expires_in=-60)

    response = client.get("/admin/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


def test_token_for_other_audience_is_rejected(client, token_for):
    token = token_for("admin-1", "admin@practice.test", aud="service_role")

    response = client.get("/admin/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_token_without_subject_is_rejected(client, token_for):
    token = token_for("", "admin@practice.test")

    assert client.get("/admin/me", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_malformed_token_is_rejected(client):
    response = client.get("/admin/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_roles_can_be_managed_by_super_admin_only(client, super_admin_headers, admin_headers):
    assert client.get("/admin/roles", headers=admin_headers).status_code == 200
    assert (
        client.post("/admin/roles", json={"email": "new@practice.test", "role": "viewer"}, headers=admin_headers).status_code
        == 403
    )

    created = client.post(
        "/admin/roles", json={"email": "New@Practice.test", "role": "viewer"}, headers=super_admin_headers
    )
    assert created.status_code == 201
    assert created.json()["email"] == "new@practice.test"
    assert created.json()["created_by"] == "owner@practice.test"

    duplicate = client.post(
        "/admin/roles", json={"email": "new@practice.test", "role": "viewer"}, headers=super_admin_headers
    )
    assert duplicate.status_code == 409

    deleted = client.delete(f"/admin/roles/{created.json()['id']}", headers=super_admin_headers)
    assert deleted.status_code == 200
    assert client.delete(f"/admin/roles/{created.json()['id']}", headers=super_admin_headers).status_code == 404


def test_revoking_a_role_takes_effect_on_next_request(client, db, admin_headers):
    assert client.get("/admin/supervision-relationships", headers=admin_headers).status_code == 200

    db.query(AdminRole).filter(AdminRole.email == "admin@practice.test").delete()
    db.commit()

    assert client.get("/admin/supervision-relationships", headers=admin_headers).status_code == 403


def test_invalid_role_name_is_rejected(client, super_admin_headers):
    response = client.post("/admin/roles", json={"email": "a@practice.test", "role": "root"}, headers=super_admin_headers)
    assert response.status_code == 422
