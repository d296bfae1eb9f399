"""Integration tests for user and role administration."""
import pytest

pytestmark = pytest.mark.asyncio

USERS = "/api/cms/users"
ROLES = "/api/cms/roles"


async def _role_id(client, headers, name: str) -> str:
    roles = (await client.get(ROLES, headers=headers)).json()["items"]
    return next(r["id"] for r in roles if r["name"] == name)


def _new_user(**overrides):
    body = {"username": "newbie", "email": "newbie@example.com", "password": "Passw0rdTest"}
    body.update(overrides)
    return body


# ─── Users ────────────────────────────────────────────────────────────────────

async def test_create_user_defaults_to_editor(client, admin_headers, login):
    resp = await client.post(USERS, json=_new_user(), headers=admin_headers)
    assert resp.status_code == 201
    user_id = resp.json()["id"]

    user = (await client.get(f"{USERS}/{user_id}", headers=admin_headers)).json()
    assert user["role"] == "editor"
    assert user["role_id"] == await _role_id(client, admin_headers, "editor")
    assert "password_hash" not in user

    await login("newbie")


async def test_create_user_enforces_password_policy(client, admin_headers):
    resp = await client.post(USERS, json=_new_user(password="short"), headers=admin_headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "AUTH_004"


async def test_duplicate_username_and_email_conflict(client, admin_headers):
    await client.post(USERS, json=_new_user(), headers=admin_headers)

    resp = await client.post(USERS, json=_new_user(email="other@example.com"), headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "USR_002"

    resp = await client.post(
        USERS, json=_new_user(username="other", email="NEWBIE@example.com"), headers=admin_headers
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "USR_003"


async def test_only_super_admin_assigns_super_admin(client, admin_headers, headers_for):
    super_role = await _role_id(client, admin_headers, "super_admin")
    headers = await headers_for("admin")

    resp = await client.post(USERS, json=_new_user(role_id=super_role), headers=headers)
    assert resp.status_code == 403

    resp = await client.post(USERS, json=_new_user(role_id=super_role), headers=admin_headers)
    assert resp.status_code == 201


async def test_admin_cannot_modify_super_admin_accounts(client, admin_headers, headers_for, login):
    me = (await client.get("/api/cms/auth/me", headers=admin_headers)).json()
    editor_role = await _role_id(client, admin_headers, "editor")
    headers = await headers_for("admin")

    for body in ({"password": "Hijacked123"}, {"active": False}, {"role_id": editor_role}):
        resp = await client.patch(f"{USERS}/{me['id']}", json=body, headers=headers)
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "AUTH_003"

    # Still intact.
    headers = await login("superadmin", "SuperAdmin2024")
    profile = (await client.get("/api/cms/auth/me", headers=headers)).json()
    assert profile["role"] == "super_admin"


async def test_admin_can_modify_other_accounts(client, admin_headers, headers_for):
    user_id = (await client.post(USERS, json=_new_user(), headers=admin_headers)).json()["id"]
    headers = await headers_for("admin")
    resp = await client.patch(f"{USERS}/{user_id}", json={"active": False}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["active"] is False


async def test_unknown_role_id_is_rejected(client, admin_headers):
    resp = await client.post(USERS, json=_new_user(role_id="missing"), headers=admin_headers)
    assert resp.status_code == 422


async def test_list_users(client, admin_headers):
    await client.post(USERS, json=_new_user(), headers=admin_headers)
    body = (await client.get(USERS, headers=admin_headers)).json()
    assert body["total"] == 2
    assert {u["username"] for u in body["items"]} == {"superadmin", "newbie"}


async def test_update_user_changes_role(client, admin_headers):
    user_id = (await client.post(USERS, json=_new_user(), headers=admin_headers)).json()["id"]
    viewer_id = await _role_id(client, admin_headers, "viewer")

    resp = await client.patch(
        f"{USERS}/{user_id}", json={"role_id": viewer_id, "name": "New Person"}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["role"] == "viewer"
    assert resp.json()["name"] == "New Person"


async def test_cannot_deactivate_or_delete_self(client, admin_headers):
    me = (await client.get("/api/cms/auth/me", headers=admin_headers)).json()

    resp = await client.patch(f"{USERS}/{me['id']}", json={"active": False}, headers=admin_headers)
    assert resp.status_code == 422

    resp = await client.delete(f"{USERS}/{me['id']}", headers=admin_headers)
    assert resp.status_code == 422


async def test_delete_user(client, admin_headers):
    user_id = (await client.post(USERS, json=_new_user(), headers=admin_headers)).json()["id"]
    assert (await client.delete(f"{USERS}/{user_id}", headers=admin_headers)).status_code == 200
    resp = await client.get(f"{USERS}/{user_id}", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "USR_001"


async def test_editor_cannot_manage_users(client, headers_for):
    headers = await headers_for("editor")
    assert (await client.get(USERS, headers=headers)).status_code == 403


# ─── Roles ────────────────────────────────────────────────────────────────────

async def test_builtin_roles_are_seeded(client, admin_headers):
    body = (await client.get(ROLES, headers=admin_headers)).json()
    assert body["total"] == 5
    assert {r["name"] for r in body["items"]} == {
        "super_admin",
        "admin",
        "editor",
        "author",
        "viewer",
    }
    assert all(r["is_system"] for r in body["items"])


async def test_create_update_delete_custom_role(client, admin_headers):
    resp = await client.post(
        ROLES,
        json={"name": "reviewer", "display_name": "Reviewer", "permissions": {"media": ["read"]}},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    role = resp.json()
    assert role["is_system"] is False
    assert role["permissions"]["media"] == ["read"]

    resp = await client.put(
        f"{ROLES}/{role['id']}",
        json={"name": "senior_reviewer", "permissions": {"media": ["read", "update"]}},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["name"] == "senior_reviewer"
    assert resp.json()["permissions"]["media"] == ["read", "update"]

    assert (await client.delete(f"{ROLES}/{role['id']}", headers=admin_headers)).status_code == 200


async def test_deleting_role_detaches_its_users(client, admin_headers):
    role_id = (
        await client.post(ROLES, json={"name": "temp", "display_name": "Temp"}, headers=admin_headers)
    ).json()["id"]
    user_id = (
        await client.post(USERS, json=_new_user(role_id=role_id), headers=admin_headers)
    ).json()["id"]

    await client.delete(f"{ROLES}/{role_id}", headers=admin_headers)
    user = (await client.get(f"{USERS}/{user_id}", headers=admin_headers)).json()
    assert user["role_id"] is None


async def test_duplicate_role_name_conflicts(client, admin_headers):
    resp = await client.post(ROLES, json={"name": "editor", "display_name": "Dup"}, headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "ROL_002"


async def test_system_roles_are_protected(client, admin_headers):
    editor_id = await _role_id(client, admin_headers, "editor")

    resp = await client.put(f"{ROLES}/{editor_id}", json={"name": "writer"}, headers=admin_headers)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "ROL_003"

    resp = await client.delete(f"{ROLES}/{editor_id}", headers=admin_headers)
    assert resp.status_code == 403

    resp = await client.put(
        f"{ROLES}/{editor_id}", json={"display_name": "Content editor"}, headers=admin_headers
    )
    assert resp.status_code == 200
    assert resp.json()["display_name"] == "Content editor"


async def test_admin_cannot_create_roles(client, headers_for):
    headers = await headers_for("admin")
    resp = await client.post(ROLES, json={"name": "x_role", "display_name": "X"}, headers=headers)
    assert resp.status_code == 403
