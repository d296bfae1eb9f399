"""Unit tests for role-based permission checks."""
import pytest

from cms.core.errors import ForbiddenError
from cms.db.models.user import Role, User
from cms.services.auth.permissions import (
    DEFAULT_ROLES,
    ensure_can_modify,
    has_permission,
    role_permissions,
)


def _builtin(name: str) -> Role:
    definition = DEFAULT_ROLES[name]
    return Role(
        name=name,
        display_name=definition.display_name,
        permissions=definition.permissions.model_dump(mode="json"),
        is_system=True,
    )


@pytest.mark.parametrize(
    ("role_name", "category", "action", "expected"),
    [
        ("admin", "collections", "delete", True),
        ("admin", "users", "delete", False),
        ("admin", "roles", "create", False),
        ("editor", "collections", "publish", True),
        ("editor", "collections", "delete", False),
        ("editor", "singletons", "publish", False),
        ("editor", "users", "read", False),
        ("author", "collections", "create", True),
        ("author", "collections", "publish", False),
        ("author", "media", "update", False),
        ("viewer", "collections", "read", True),
        ("viewer", "collections", "create", False),
        ("viewer", "settings", "read", False),
    ],
)
def test_builtin_role_matrix(role_name, category, action, expected):
    assert has_permission(_builtin(role_name), category, action, "posts") is expected


def test_super_admin_bypasses_checks():
    role = Role(name="super_admin", display_name="Super", permissions={})
    assert has_permission(role, "settings", "update") is True


def test_no_role_means_no_access():
    assert has_permission(None, "collections", "read", "posts") is False


def test_scoped_grant_applies_to_named_resource_only():
    role = Role(
        name="blogger",
        display_name="Blogger",
        permissions={"collections": {"posts": ["create", "read"]}},
    )
    assert has_permission(role, "collections", "create", "posts") is True
    assert has_permission(role, "collections", "create", "pages") is False


def test_wildcard_grant_combines_with_named_grant():
    role = Role(
        name="mixed",
        display_name="Mixed",
        permissions={"collections": {"*": ["read"], "posts": ["update"]}},
    )
    assert has_permission(role, "collections", "read", "posts") is True
    assert has_permission(role, "collections", "update", "posts") is True
    assert has_permission(role, "collections", "update", "pages") is False


def test_manage_implies_every_action():
    role = Role(name="media_admin", display_name="Media", permissions={"media": ["manage"]})
    for action in ("create", "read", "update", "delete"):
        assert has_permission(role, "media", action) is True


def test_malformed_permissions_grant_nothing():
    role = Role(name="broken", display_name="Broken", permissions={"media": "everything"})
    assert role_permissions(role).media == []
    assert has_permission(role, "media", "read") is False


def test_author_may_only_modify_own_content():
    author = _builtin("author")
    user = User(id="author-1", username="writer", password_hash="x")
    ensure_can_modify(author, user, created_by="author-1")
    with pytest.raises(ForbiddenError):
        ensure_can_modify(author, user, created_by="someone-else")


def test_editor_may_modify_anyones_content():
    user = User(id="editor-1", username="editor", password_hash="x")
    ensure_can_modify(_builtin("editor"), user, created_by="someone-else")
