from dataclasses import dataclass, field
from typing import Any

from shadowit.constants.enums import UserType
from shadowit.integrations.core.types import (
    DirectoryAccount,
    MicrosoftAppRoleAssignment,
    MicrosoftDelegatedGrant,
)
from shadowit.integrations.providers.microsoft_entra.constants import (
    MICROSOFT_DEFAULT_APP_ROLE_ID,
    MICROSOFT_DEFAULT_APP_ROLE_NAME,
)


@dataclass
class ServicePrincipal:
    id: str
    app_id: str | None
    display_name: str | None
    app_roles: dict[str, str] = field(default_factory=dict)


def adapt_service_principal(raw: dict[str, Any]) -> ServicePrincipal:
    roles = {}
    for role in raw.get("appRoles") or []:
        role_id = role.get("id")
        if role_id:
            roles[role_id] = role.get("value") or role.get("displayName") or role_id
    return ServicePrincipal(
        id=raw.get("id", ""),
        app_id=raw.get("appId"),
        display_name=raw.get("displayName"),
        app_roles=roles,
    )


def adapt_microsoft_user(raw_user: dict[str, Any]) -> DirectoryAccount:
    email = (raw_user.get("mail") or raw_user.get("userPrincipalName") or "").lower()
    user_type = (
        UserType.GUEST if raw_user.get("userType") == "Guest" else UserType.MEMBER
    )
    enabled = raw_user.get("accountEnabled")
    return DirectoryAccount(
        provider_id=raw_user.get("id", ""),
        email=email,
        display_name=raw_user.get("displayName") or email,
        role=raw_user.get("jobTitle") or "User",
        department=raw_user.get("department"),
        user_type=user_type,
        # Graph omits accountEnabled unless selected; absent means enabled
        account_enabled=enabled is not False,
        raw_data=raw_user,
    )


def adapt_microsoft_users(raw_users: list[dict[str, Any]]) -> list[DirectoryAccount]:
    return [adapt_microsoft_user(u) for u in raw_users if u.get("id")]


def adapt_delegated_grant(
    raw_grant: dict[str, Any],
    principal: ServicePrincipal | None,
    user: DirectoryAccount,
) -> MicrosoftDelegatedGrant:
    client_id = raw_grant.get("clientId", "")
    return MicrosoftDelegatedGrant(
        client_id=principal.app_id if principal and principal.app_id else client_id,
        display_name=principal.display_name if principal else None,
        subject_user_id=user.provider_id,
        subject_email=user.email,
        scope=raw_grant.get("scope"),
        consent_type=raw_grant.get("consentType") or "Principal",
    )


def adapt_app_role_assignment(
    raw_assignment: dict[str, Any],
    principal: ServicePrincipal | None,
    user: DirectoryAccount,
) -> MicrosoftAppRoleAssignment:
    role_id = raw_assignment.get("appRoleId") or MICROSOFT_DEFAULT_APP_ROLE_ID
    if role_id == MICROSOFT_DEFAULT_APP_ROLE_ID:
        role_name = MICROSOFT_DEFAULT_APP_ROLE_NAME
    else:
        role_name = principal.app_roles.get(role_id) if principal else None
    client_id = raw_assignment.get("resourceId", "")
    return MicrosoftAppRoleAssignment(
        client_id=principal.app_id if principal and principal.app_id else client_id,
        display_name=raw_assignment.get("resourceDisplayName")
        or (principal.display_name if principal else None),
        subject_user_id=user.provider_id,
        subject_email=user.email,
        app_role_id=role_id,
        role_name=role_name,
    )
