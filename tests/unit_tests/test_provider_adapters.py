"""Tests for turning vendor API payloads into directory accounts and grants."""

from shadowit.constants.enums import UserType
from shadowit.integrations.providers.google_workspace.adapters import (
    adapt_google_token,
    adapt_google_tokens,
    adapt_google_user,
    adapt_google_users,
)
from shadowit.integrations.providers.microsoft_entra.adapters import (
    adapt_app_role_assignment,
    adapt_delegated_grant,
    adapt_microsoft_user,
    adapt_service_principal,
)
from shadowit.integrations.providers.microsoft_entra.constants import (
    MICROSOFT_DEFAULT_APP_ROLE_ID,
)


class TestGoogleAdapters:
    """Tests for Google Directory API payloads."""

    def test_user(self):
        account = adapt_google_user(
            {
                "id": "g1",
                "primaryEmail": "Alice@Acme.com",
                "name": {"givenName": "Alice", "familyName": "Smith"},
                "isAdmin": True,
                "orgUnitPath": "/Engineering/Platform",
            }
        )

        assert account.email == "alice@acme.com"
        assert account.display_name == "Alice Smith"
        assert account.role == "Admin"
        assert account.department == "Platform"
        assert account.is_active_member

    def test_suspended_and_archived_user(self):
        account = adapt_google_user(
            {"id": "g2", "primaryEmail": "bob@acme.com", "suspended": True, "archived": True}
        )

        assert account.suspended
        assert account.archived
        assert not account.account_enabled
        assert not account.is_active_member

    def test_users_without_email_are_dropped(self):
        accounts = adapt_google_users([{"id": "g1"}, {"id": "g2", "primaryEmail": "b@acme.com"}])

        assert [a.provider_id for a in accounts] == ["g2"]

    def test_token(self):
        user = adapt_google_user({"id": "g1", "primaryEmail": "alice@acme.com"})
        grant = adapt_google_token(
            {
                "clientId": "c1",
                "displayText": "Slack",
                "scopes": ["email", 7],
                "nativeApp": True,
            },
            user,
        )

        assert grant.client_id == "c1"
        assert grant.display_name == "Slack"
        assert grant.subject_email == "alice@acme.com"
        assert grant.scopes == ["email"]
        assert grant.native_app

    def test_tokens_without_client_id_are_dropped(self):
        user = adapt_google_user({"id": "g1", "primaryEmail": "alice@acme.com"})

        assert adapt_google_tokens([{"displayText": "Orphan"}], user) == []


class TestMicrosoftAdapters:
    """Tests for Microsoft Graph payloads."""

    def test_guest_user(self):
        account = adapt_microsoft_user(
            {
                "id": "m1",
                "userPrincipalName": "Guest_partner.com#EXT#@contoso.onmicrosoft.com",
                "userType": "Guest",
            }
        )

        assert account.user_type == UserType.GUEST
        assert account.email == "guest_partner.com#ext#@contoso.onmicrosoft.com"
        # accountEnabled omitted by Graph
        assert account.account_enabled

    def test_disabled_user(self):
        account = adapt_microsoft_user(
            {"id": "m2", "mail": "bob@contoso.com", "accountEnabled": False}
        )

        assert not account.account_enabled
        assert not account.is_active_member

    def test_delegated_grant_uses_service_principal(self):
        user = adapt_microsoft_user({"id": "m1", "mail": "alice@contoso.com"})
        principal = adapt_service_principal(
            {"id": "sp1", "appId": "app-1", "displayName": "Zoom"}
        )

        grant = adapt_delegated_grant(
            {"clientId": "sp1", "scope": "User.Read", "consentType": "AllPrincipals"},
            principal,
            user,
        )

        assert grant.client_id == "app-1"
        assert grant.display_name == "Zoom"
        assert grant.is_admin_consent

    def test_app_role_assignment_roles(self):
        user = adapt_microsoft_user({"id": "m1", "mail": "alice@contoso.com"})
        principal = adapt_service_principal(
            {
                "id": "sp1",
                "appId": "app-1",
                "displayName": "Miro",
                "appRoles": [{"id": "role-1", "value": "Editor"}],
            }
        )

        named = adapt_app_role_assignment({"appRoleId": "role-1"}, principal, user)
        default = adapt_app_role_assignment(
            {"appRoleId": MICROSOFT_DEFAULT_APP_ROLE_ID}, principal, user
        )

        assert named.role_name == "Editor"
        assert named.display_name == "Miro"
        assert default.role_name == "Default Access"
