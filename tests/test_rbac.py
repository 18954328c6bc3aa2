from dependencies.rbac import has_permission, require_permission, RESOURCES_FOR_ROLES
import pytest


@pytest.mark.parametrize("role, resource, permission, allowed", [
    ("farmer", "products", "write", True),
    ("buyer", "products", "write", False),
    ("farmer", "orders/dispatch", "write", True),
    ("buyer", "orders/dispatch", "write", False),
    ("buyer", "transactions", "delete", True),
    ("farmer", "transactions", "write", False),
])
def test_role_permissions(role, resource, permission, allowed):
    assert has_permission(role, resource, permission) is allowed


def test_unlisted_resources_are_denied():
    # no fallback from a sub-resource to its parent
    assert has_permission("farmer", "orders/refunds", "read") is False
    assert has_permission("admin", "products", "read") is False


def test_every_checked_resource_is_declared():
    for permissions in RESOURCES_FOR_ROLES.values():
        assert set(permissions) == set(RESOURCES_FOR_ROLES["farmer"])


def test_resource_and_permission_are_required():
    with pytest.raises(TypeError):
        require_permission("products")
