GOOGLE_WORKSPACE_PROVIDER_SLUG = "google"

GOOGLE_DIRECTORY_API_BASE = "https://admin.googleapis.com/admin/directory/v1"
GOOGLE_OAUTH_TOKEN_URL = "https://oauth2.googleapis.com/token"

GOOGLE_USERS_ENDPOINT = f"{GOOGLE_DIRECTORY_API_BASE}/users"
GOOGLE_USER_TOKENS_ENDPOINT = f"{GOOGLE_DIRECTORY_API_BASE}/users/{{user_key}}/tokens"
GOOGLE_USER_TOKEN_ENDPOINT = (
    f"{GOOGLE_DIRECTORY_API_BASE}/users/{{user_key}}/tokens/{{client_id}}"
)

GOOGLE_USERS_PAGE_SIZE = 500
GOOGLE_TOKENS_PAGE_SIZE = 100

GOOGLE_WORKSPACE_ADMIN_SCOPES = [
    "https://www.googleapis.com/auth/admin.directory.user.readonly",
    "https://www.googleapis.com/auth/admin.directory.domain.readonly",
    "https://www.googleapis.com/auth/admin.directory.user.security",
]

# Added to tokens of Google's own admin tooling that report only part of
# the admin.directory family
GOOGLE_ADMIN_DIRECTORY_SCOPES = (
    "https://www.googleapis.com/auth/admin.directory.device.chromeos",
    "https://www.googleapis.com/auth/admin.directory.device.mobile",
    "https://www.googleapis.com/auth/admin.directory.group",
    "https://www.googleapis.com/auth/admin.directory.group.member",
    "https://www.googleapis.com/auth/admin.directory.orgunit",
    "https://www.googleapis.com/auth/admin.directory.resource.calendar",
    "https://www.googleapis.com/auth/admin.directory.rolemanagement",
    "https://www.googleapis.com/auth/admin.directory.user",
    "https://www.googleapis.com/auth/admin.directory.user.alias",
    "https://www.googleapis.com/auth/admin.directory.user.security",
)

GOOGLE_FREE_TEXT_SCOPE_FIELDS = ("scope_string", "oauth_scopes", "accessScopes")
