from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from shadowit.constants.enums import UserType


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


@dataclass
class AuthContext:
    access_token: str
    token_type: str = "Bearer"
    expires_at: datetime | None = None

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


@dataclass
class RequestDefinition:
    method: HttpMethod
    url: str
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None


@dataclass
class ApiResponse:
    status_code: int
    data: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_unauthorized(self) -> bool:
        return self.status_code == 401

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    token_type: str = "Bearer"
    scope: str | None = None


@dataclass
class DirectoryAccount:
    """A user as reported by the vendor directory, before persistence."""

    provider_id: str
    email: str
    display_name: str | None = None
    role: str | None = None
    department: str | None = None
    user_type: UserType = UserType.MEMBER
    account_enabled: bool = True
    is_admin: bool = False
    suspended: bool = False
    archived: bool = False
    raw_data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_active_member(self) -> bool:
        return (
            self.user_type == UserType.MEMBER
            and self.account_enabled
            and not self.suspended
            and not self.archived
        )


# RawGrant variants. Each carries the subject user and the application
# display name; the permission fields differ per vendor shape.


@dataclass(kw_only=True)
class GrantSubject:
    client_id: str
    display_name: str | None
    subject_user_id: str
    subject_email: str | None = None


@dataclass(kw_only=True)
class GoogleTokenGrant(GrantSubject):
    scopes: list[str] = field(default_factory=list)
    scope: str | None = None
    scope_data: list[dict[str, Any]] = field(default_factory=list)
    permissions: list[Any] = field(default_factory=list)
    # scope_string / oauth_scopes / accessScopes style free-text fields
    extra_scope_fields: dict[str, str] = field(default_factory=dict)
    native_app: bool = False
    anonymous: bool = False


@dataclass(kw_only=True)
class MicrosoftDelegatedGrant(GrantSubject):
    scope: str | None = None
    scopes: list[str] = field(default_factory=list)
    consent_type: str = "Principal"

    @property
    def is_admin_consent(self) -> bool:
        return self.consent_type == "AllPrincipals"


@dataclass(kw_only=True)
class MicrosoftAppRoleAssignment(GrantSubject):
    app_role_id: str
    role_name: str | None = None


RawGrant = GoogleTokenGrant | MicrosoftDelegatedGrant | MicrosoftAppRoleAssignment
