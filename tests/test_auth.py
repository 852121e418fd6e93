"""Tests for principal resolution from proxy headers."""
import pytest

from fortigate_manager.auth import AccessDenied, AuthenticationRequired, Principal, resolve_principal
from fortigate_manager.config.settings import AccessPolicy, Settings


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def policy():
    return AccessPolicy(
        authorized_emails=["alice@example.edu", "bob@example.edu"],
        admin_emails=["alice@example.edu"],
    )


class TestResolvePrincipal:
    """Tests for resolve_principal."""

    def test_admin(self, settings, policy):
        headers = {"X-Auth-Request-Email": "Alice@Example.edu", "X-Auth-Request-User": "Alice Admin"}
        principal = resolve_principal(headers, settings, policy)
        assert principal == Principal(email="alice@example.edu", name="Alice Admin", is_admin=True)
        assert principal.to_dict() == {"email": "alice@example.edu", "name": "Alice Admin", "isAdmin": True}

    def test_name_defaults_to_local_part(self, settings, policy):
        principal = resolve_principal({"X-Auth-Request-Email": "bob@example.edu"}, settings, policy)
        assert principal.name == "bob"
        assert not principal.is_admin

    def test_missing_email(self, settings, policy):
        with pytest.raises(AuthenticationRequired) as exc_info:
            resolve_principal({}, settings, policy)
        assert exc_info.value.status_code == 401

    def test_blank_email(self, settings, policy):
        with pytest.raises(AuthenticationRequired):
            resolve_principal({"X-Auth-Request-Email": "  "}, settings, policy)

    def test_unauthorized(self, settings, policy):
        with pytest.raises(AccessDenied) as exc_info:
            resolve_principal({"X-Auth-Request-Email": "mallory@example.edu"}, settings, policy)
        assert exc_info.value.status_code == 403
        assert "mallory@example.edu" in str(exc_info.value)

    def test_custom_header(self, policy):
        settings = Settings(email_header="X-Forwarded-Email")
        principal = resolve_principal({"X-Forwarded-Email": "bob@example.edu"}, settings, policy)
        assert principal.email == "bob@example.edu"
