MICROSOFT_ENTRA_PROVIDER_SLUG = "microsoft"

MICROSOFT_GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"
MICROSOFT_OAUTH_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
MICROSOFT_REFRESH_SCOPE = "https://graph.microsoft.com/.default offline_access"

MICROSOFT_USERS_ENDPOINT = f"{MICROSOFT_GRAPH_API_BASE}/users"
MICROSOFT_SERVICE_PRINCIPALS_ENDPOINT = f"{MICROSOFT_GRAPH_API_BASE}/servicePrincipals"
MICROSOFT_SERVICE_PRINCIPAL_ENDPOINT = (
    f"{MICROSOFT_GRAPH_API_BASE}/servicePrincipals/{{sp_id}}"
)
MICROSOFT_PERMISSION_GRANTS_ENDPOINT = f"{MICROSOFT_GRAPH_API_BASE}/oauth2PermissionGrants"
MICROSOFT_USER_APP_ROLE_ASSIGNMENTS_ENDPOINT = (
    f"{MICROSOFT_GRAPH_API_BASE}/users/{{user_id}}/appRoleAssignments"
)
MICROSOFT_USER_PERMISSION_GRANTS_ENDPOINT = (
    f"{MICROSOFT_GRAPH_API_BASE}/users/{{user_id}}/oauth2PermissionGrants"
)

MICROSOFT_USER_SELECT = (
    "id,mail,displayName,userPrincipalName,userType,accountEnabled,jobTitle,department"
)
MICROSOFT_SERVICE_PRINCIPAL_SELECT = (
    "id,appId,displayName,appRoles,oauth2PermissionScopes,servicePrincipalType"
)

MICROSOFT_PAGE_SIZE = 999

# appRoleId Graph reports when an app is assigned without a specific role
MICROSOFT_DEFAULT_APP_ROLE_ID = "00000000-0000-0000-0000-000000000000"
MICROSOFT_DEFAULT_APP_ROLE_NAME = "Default Access"

# Refresh failures that mean the grant is gone and the user must sign in again
MICROSOFT_REAUTH_ERROR_MARKERS = ("invalid_grant", "AADSTS70008", "interaction_required")
