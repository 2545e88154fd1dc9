from typing import Any

from shadowit.constants.enums import UserType
from shadowit.integrations.core.types import DirectoryAccount, GoogleTokenGrant
from shadowit.integrations.providers.google_workspace.constants import (
    GOOGLE_FREE_TEXT_SCOPE_FIELDS,
)


def _display_name(raw_user: dict[str, Any]) -> str:
    name = raw_user.get("name") or {}
    if name.get("fullName"):
        return name["fullName"]
    parts = [name.get("givenName"), name.get("familyName")]
    joined = " ".join(p for p in parts if p)
    return joined or raw_user.get("primaryEmail", "")


def _department(org_unit_path: str | None) -> str | None:
    if not org_unit_path:
        return None
    segment = org_unit_path.rstrip("/").split("/")[-1]
    return segment or None


def adapt_google_user(raw_user: dict[str, Any]) -> DirectoryAccount:
    suspended = bool(raw_user.get("suspended", False))
    is_admin = bool(raw_user.get("isAdmin", False))
    return DirectoryAccount(
        provider_id=raw_user.get("id", ""),
        email=raw_user.get("primaryEmail", "").lower(),
        display_name=_display_name(raw_user),
        role="Admin" if is_admin else "User",
        department=_department(raw_user.get("orgUnitPath")),
        user_type=UserType.MEMBER,
        account_enabled=not suspended,
        is_admin=is_admin,
        suspended=suspended,
        archived=bool(raw_user.get("archived", False)),
        raw_data=raw_user,
    )


def adapt_google_users(raw_users: list[dict[str, Any]]) -> list[DirectoryAccount]:
    return [adapt_google_user(u) for u in raw_users if u.get("primaryEmail")]


def adapt_google_token(
    raw_token: dict[str, Any], user: DirectoryAccount
) -> GoogleTokenGrant:
    scope = raw_token.get("scope")
    extra = {
        key: raw_token[key]
        for key in GOOGLE_FREE_TEXT_SCOPE_FIELDS
        if isinstance(raw_token.get(key), str)
    }
    return GoogleTokenGrant(
        client_id=raw_token.get("clientId", ""),
        display_name=raw_token.get("displayText"),
        subject_user_id=user.provider_id,
        subject_email=user.email,
        scopes=[s for s in raw_token.get("scopes") or [] if isinstance(s, str)],
        scope=scope if isinstance(scope, str) else None,
        scope_data=[d for d in raw_token.get("scopeData") or [] if isinstance(d, dict)],
        permissions=list(raw_token.get("permissions") or []),
        extra_scope_fields=extra,
        native_app=bool(raw_token.get("nativeApp", False)),
        anonymous=bool(raw_token.get("anonymous", False)),
    )


def adapt_google_tokens(
    raw_tokens: list[dict[str, Any]], user: DirectoryAccount
) -> list[GoogleTokenGrant]:
    return [adapt_google_token(t, user) for t in raw_tokens if t.get("clientId")]
