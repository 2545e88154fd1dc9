from dataclasses import dataclass, field

from shadowit.constants.enums import UNKNOWN_APP_NAME, UNKNOWN_SCOPE
from shadowit.core.exceptions import CapacityExceededError
from shadowit.core.settings import settings
from shadowit.integrations.core.types import RawGrant


def application_name(grant: RawGrant) -> str:
    """Name a grant is grouped under; grants without a display name share one bucket."""
    return (grant.display_name or "").strip() or UNKNOWN_APP_NAME


@dataclass
class CapacityLimits:
    max_tokens: int
    max_applications: int
    max_relations: int
    max_users: int

    @classmethod
    def from_settings(cls) -> "CapacityLimits":
        return cls(
            max_tokens=settings.max_tokens_in_memory,
            max_applications=settings.max_applications,
            max_relations=settings.max_relations,
            max_users=settings.max_users_in_memory,
        )


@dataclass
class ApplicationGroup:
    name: str
    client_ids: set[str] = field(default_factory=set)
    scopes: set[str] = field(default_factory=set)
    user_emails: set[str] = field(default_factory=set)

    @property
    def provider_app_id(self) -> str | None:
        return ",".join(sorted(self.client_ids)) or None


@dataclass
class RelationRecord:
    app_name: str
    user_id: str
    user_email: str
    scopes: set[str] = field(default_factory=set)


class SyncAccumulator:
    """Per-run state built while grants stream in. One instance per sync job."""

    def __init__(self, limits: CapacityLimits):
        self._limits = limits
        self.user_count = 0
        self.token_count = 0
        self.skipped_grants = 0
        self.applications: dict[str, ApplicationGroup] = {}
        self.relations: dict[tuple[str, str], RelationRecord] = {}

    def add_users(self, count: int) -> None:
        self.user_count += count
        self._check("users", self.user_count, self._limits.max_users)

    def add_grant(self, grant: RawGrant, scopes: frozenset[str]) -> None:
        self.token_count += 1
        self._check("tokens", self.token_count, self._limits.max_tokens)

        email = (grant.subject_email or "").lower()
        if not email:
            self.skipped_grants += 1
            return

        name = application_name(grant)
        group = self.applications.get(name)
        if group is None:
            group = ApplicationGroup(name=name)
            self.applications[name] = group
            self._check(
                "applications", len(self.applications), self._limits.max_applications
            )
        if grant.client_id:
            group.client_ids.add(grant.client_id)
        group.scopes |= scopes
        group.user_emails.add(email)

        key = (name, email)
        relation = self.relations.get(key)
        if relation is None:
            relation = RelationRecord(
                app_name=name, user_id=grant.subject_user_id, user_email=email
            )
            self.relations[key] = relation
            self._check("relations", len(self.relations), self._limits.max_relations)
        relation.scopes |= scopes

        # a real scope observed later supersedes the placeholder
        if len(relation.scopes) > 1:
            relation.scopes.discard(UNKNOWN_SCOPE)
        if len(group.scopes) > 1:
            group.scopes.discard(UNKNOWN_SCOPE)

    @staticmethod
    def _check(resource: str, count: int, limit: int) -> None:
        if count > limit:
            raise CapacityExceededError(resource, count, limit)
