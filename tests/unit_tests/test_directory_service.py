from shadowit.constants.enums import AuthProvider
from shadowit.services.directory_service import UserIndex
from shadowit.services.sync_accumulator import SyncAccumulator
from tests.fakes import FakeDirectoryProvider
from tests.fixtures.provider_fixtures import account


class TestPersistAccounts:
    async def test_duplicate_emails_collapse_to_one_row(
        self, directory_service, google_org, store
    ):
        accounts = [
            account("g-1", "Alice@Acme.com"),
            account("g-2", "alice@acme.com", role="Admin"),
            account("g-3", "bob@acme.com"),
            account("g-4", ""),
        ]

        result = await directory_service.persist_accounts(google_org.id, accounts)

        assert result.processed == 2
        emails = sorted(u.email for u in store.users.values())
        assert emails == ["alice@acme.com", "bob@acme.com"]
        # last one wins
        alice = next(u for u in store.users.values() if u.email == "alice@acme.com")
        assert alice.provider_user_id == "g-2"


class TestFetchAccounts:
    async def test_counts_users_against_capacity(self, directory_service, google_accounts, limits):
        provider = FakeDirectoryProvider(AuthProvider.GOOGLE, google_accounts)
        accumulator = SyncAccumulator(limits)

        accounts = await directory_service.fetch_accounts(
            provider, auth_context=None, accumulator=accumulator
        )

        assert len(accounts) == len(google_accounts)
        assert accumulator.user_count == len(google_accounts)


class TestEnsureUser:
    """Grant subjects are matched by vendor id first, then by email."""

    async def test_existing_user_by_email(self, directory_service, google_org, store):
        await directory_service.persist_accounts(google_org.id, [account("g-1", "alice@acme.com")])
        index = await directory_service.load_index(google_org.id)

        user = await directory_service.ensure_user(google_org.id, index, None, "ALICE@acme.com")

        assert user.provider_user_id == "g-1"
        assert len(store.users) == 1

    async def test_unknown_subject_is_created(self, directory_service, google_org, store):
        index = await directory_service.load_index(google_org.id)

        user = await directory_service.ensure_user(google_org.id, index, None, "Carol@Acme.com")

        assert user.email == "carol@acme.com"
        assert user.provider_user_id == "carol@acme.com"
        assert user.name == "carol"
        assert len(index) == 1
        # second lookup hits the index
        again = await directory_service.ensure_user(google_org.id, index, None, "carol@acme.com")
        assert again.id == user.id
        assert len(store.users) == 1


class TestUserIndex:
    def test_lookup_without_keys(self):
        assert UserIndex().find(None, None) is None
