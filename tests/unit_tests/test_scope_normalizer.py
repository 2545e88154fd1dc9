"""Tests for reducing vendor grant shapes to canonical scope sets."""

from shadowit.constants.enums import UNKNOWN_SCOPE
from shadowit.integrations.core.types import (
    GoogleTokenGrant,
    MicrosoftAppRoleAssignment,
    MicrosoftDelegatedGrant,
)
from shadowit.integrations.providers.google_workspace.constants import (
    GOOGLE_ADMIN_DIRECTORY_SCOPES,
)
from shadowit.integrations.providers.microsoft_entra.constants import (
    MICROSOFT_DEFAULT_APP_ROLE_ID,
)
from shadowit.services.scope_normalizer import normalize

SUBJECT = {"client_id": "client-1", "subject_user_id": "u1", "subject_email": "a@acme.com"}


class TestGoogleTokens:
    """Tests for Google token normalization."""

    def test_scope_list_and_string_converge(self):
        """The same permissions reported as a list or a string give one set."""
        as_list = GoogleTokenGrant(display_name="App", scopes=["a", "b"], **SUBJECT)
        as_string = GoogleTokenGrant(display_name="App", scope="a b", **SUBJECT)

        assert normalize(as_list) == normalize(as_string) == frozenset({"a", "b"})

    def test_scope_data_and_permissions(self):
        grant = GoogleTokenGrant(
            display_name="App",
            scope_data=[{"scope": "x"}, {"value": "y"}, {"other": "z"}],
            permissions=["p", {"scope": "q"}, 42],
            **SUBJECT,
        )

        assert normalize(grant) == frozenset({"x", "y", "p", "q"})

    def test_free_text_only_counts_with_url(self):
        grant = GoogleTokenGrant(
            display_name="App",
            extra_scope_fields={
                "scopeString": "https://www.googleapis.com/auth/drive openid",
                "description": "reads your files",
            },
            **SUBJECT,
        )

        assert normalize(grant) == frozenset(
            {"https://www.googleapis.com/auth/drive", "openid"}
        )

    def test_empty_grant_gets_placeholder(self):
        grant = GoogleTokenGrant(display_name="App", **SUBJECT)

        assert normalize(grant) == frozenset({UNKNOWN_SCOPE})

    def test_google_admin_tool_is_enriched(self):
        partial = "https://www.googleapis.com/auth/admin.directory.user"
        grant = GoogleTokenGrant(display_name="Google Admin", scopes=[partial], **SUBJECT)

        scopes = normalize(grant)

        assert partial in scopes
        assert set(GOOGLE_ADMIN_DIRECTORY_SCOPES) <= scopes

    def test_other_apps_are_not_enriched(self):
        partial = "https://www.googleapis.com/auth/admin.directory.user"
        grant = GoogleTokenGrant(display_name="Okta", scopes=[partial], **SUBJECT)

        assert normalize(grant) == frozenset({partial})


class TestMicrosoftGrants:
    """Tests for Microsoft delegated grants and app role assignments."""

    def test_delegated_scope_string(self):
        grant = MicrosoftDelegatedGrant(
            display_name="Zoom", scope=" User.Read  offline_access ", **SUBJECT
        )

        assert normalize(grant) == frozenset({"User.Read", "offline_access"})

    def test_converges_with_google_shape(self):
        google = GoogleTokenGrant(display_name="App", scope="a b", **SUBJECT)
        microsoft = MicrosoftDelegatedGrant(display_name="App", scopes=["a", "b"], **SUBJECT)

        assert normalize(google) == normalize(microsoft)

    def test_default_app_role(self):
        grant = MicrosoftAppRoleAssignment(
            display_name="Miro", app_role_id=MICROSOFT_DEFAULT_APP_ROLE_ID, **SUBJECT
        )

        assert normalize(grant) == frozenset({"AppRole: Default Access"})

    def test_named_app_role(self):
        grant = MicrosoftAppRoleAssignment(
            display_name="Miro", app_role_id="role-1", role_name="Editor", **SUBJECT
        )

        assert normalize(grant) == frozenset({"AppRole: Editor"})

