"""Canonical permission sets from vendor grant shapes.

Every ``RawGrant`` variant is reduced to a ``frozenset[str]`` of scope
strings. An empty result becomes ``{UNKNOWN_SCOPE}`` so the edge is still
recorded.
"""

import re
from collections.abc import Iterable
from typing import Any

from shadowit.constants.enums import UNKNOWN_SCOPE
from shadowit.integrations.core.types import (
    GoogleTokenGrant,
    MicrosoftAppRoleAssignment,
    MicrosoftDelegatedGrant,
    RawGrant,
)
from shadowit.integrations.providers.google_workspace.constants import (
    GOOGLE_ADMIN_DIRECTORY_SCOPES,
)
from shadowit.integrations.providers.microsoft_entra.constants import (
    MICROSOFT_DEFAULT_APP_ROLE_ID,
    MICROSOFT_DEFAULT_APP_ROLE_NAME,
)

_GOOGLE_ADMIN_TOOL_PATTERN = re.compile(r"admin|google|workspace", re.IGNORECASE)


def normalize(grant: RawGrant) -> frozenset[str]:
    match grant:
        case GoogleTokenGrant():
            scopes = _google_scopes(grant)
        case MicrosoftDelegatedGrant():
            scopes = _split(grant.scope) | _clean(grant.scopes)
        case MicrosoftAppRoleAssignment():
            scopes = {_app_role_scope(grant)}
        case _:
            raise TypeError(f"Unsupported grant type: {type(grant).__name__}")

    if not scopes:
        return frozenset({UNKNOWN_SCOPE})
    return frozenset(scopes)


def _google_scopes(grant: GoogleTokenGrant) -> set[str]:
    scopes = _clean(grant.scopes) | _split(grant.scope)

    for item in grant.scope_data:
        scopes |= _from_object(item)

    for permission in grant.permissions:
        if isinstance(permission, str):
            scopes |= _clean([permission])
        elif isinstance(permission, dict):
            scopes |= _from_object(permission)

    # free-text fields are only trusted when they look like scope URLs
    for value in grant.extra_scope_fields.values():
        if "://" in value:
            scopes |= _split(value)

    if (
        grant.display_name
        and _GOOGLE_ADMIN_TOOL_PATTERN.search(grant.display_name)
        and any("admin.directory" in s for s in scopes)
    ):
        scopes.update(GOOGLE_ADMIN_DIRECTORY_SCOPES)

    return scopes


def _app_role_scope(grant: MicrosoftAppRoleAssignment) -> str:
    if grant.app_role_id == MICROSOFT_DEFAULT_APP_ROLE_ID:
        return f"AppRole: {MICROSOFT_DEFAULT_APP_ROLE_NAME}"
    return f"AppRole: {grant.role_name or grant.app_role_id}"


def _from_object(item: dict[str, Any]) -> set[str]:
    value = item.get("scope") or item.get("value")
    return _clean([value]) if isinstance(value, str) else set()


def _split(value: str | None) -> set[str]:
    if not value:
        return set()
    return set(value.split())


def _clean(values: Iterable[Any]) -> set[str]:
    return {v.strip() for v in values if isinstance(v, str) and v.strip()}
