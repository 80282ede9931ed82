from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from tourcore.entitlements import EntitlementStore
from tourcore.storage import InMemoryStorage


def test_grant_is_idempotent() -> None:
    store = EntitlementStore(InMemoryStorage())

    token, created = store.grant("tourist-1", "tour-1")
    again, created_again = store.grant("tourist-1", "tour-1")

    assert created is True
    assert created_again is False
    assert again == token
    assert store.is_entitled("tourist-1", "tour-1")
    assert store.get_token("tourist-1", "tour-1") == token


def test_entitlements_are_scoped_per_tourist() -> None:
    store = EntitlementStore(InMemoryStorage())
    store.grant("tourist-1", "tour-1")
    store.grant("tourist-1", "tour-2")

    assert store.list_owned("tourist-1") == {"tour-1", "tour-2"}
    assert store.list_owned("tourist-2") == set()
    assert not store.is_entitled("tourist-2", "tour-1")


def test_owner_override_grants_access_without_purchase() -> None:
    store = EntitlementStore(InMemoryStorage())

    assert not store.can_access("guide-1", "tour-1")
    assert store.can_access("guide-1", "tour-1", owner_override=True)

    store.grant("tourist-1", "tour-1")
    assert store.can_access("tourist-1", "tour-1")


def test_concurrent_grants_issue_a_single_token() -> None:
    store = EntitlementStore(InMemoryStorage())

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: store.grant("tourist-1", "tour-1"), range(32)))

    assert len({token.token for token, _ in results}) == 1
    assert sum(1 for _, created in results if created) == 1
