"""
Register pytest plugins, fixtures, and hooks to be used during test execution.

All fixtures are organized in the fixtures/ directory. The services under test
run against the in-memory repositories in ``tests.fakes``; no database or
vendor API is contacted.
"""

pytest_plugins = [
    # In-memory repositories and the services built on them
    "tests.fixtures.store_fixtures",
    # Directory snapshots, grants and fake vendor providers
    "tests.fixtures.provider_fixtures",
    # FastAPI application and authenticated clients
    "tests.fixtures.app_fixtures",
]
