from collections.abc import Iterable

from shadowit.constants.enums import RiskLevel

HIGH_RISK_PATTERNS: tuple[str, ...] = (
    # Microsoft Graph
    "ReadWrite.All",
    "Write.All",
    ".ReadWrite",
    ".Write",
    "FullControl",
    "AccessAsUser.All",
    "Mail.Send",
    "User.Export",
    "User.Invite",
    "User.ManageIdentities",
    "User.EnableDisableAccount",
    "DelegatedPermissionGrant.ReadWrite",
    # Google
    "https://mail.google.com/",
    "admin",
    "gmail",
    "drive",
    "cloud-platform",
)

MEDIUM_RISK_PATTERNS: tuple[str, ...] = (
    "Read.All",
    ".Read",
    "AuditLog.Read",
    "Reports.Read",
    "calendar",
    "contacts",
    "spreadsheets",
    "documents",
)


def classify_permission(scope: str) -> RiskLevel:
    if any(pattern in scope for pattern in HIGH_RISK_PATTERNS):
        return RiskLevel.HIGH
    if any(pattern in scope for pattern in MEDIUM_RISK_PATTERNS):
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify(scopes: Iterable[str]) -> RiskLevel:
    """Highest per-scope level; independent of iteration order."""
    levels = {classify_permission(scope) for scope in scopes}
    if RiskLevel.HIGH in levels:
        return RiskLevel.HIGH
    if RiskLevel.MEDIUM in levels:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW
