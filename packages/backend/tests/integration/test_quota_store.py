import pytest
from moto import mock_aws

from clarifier.models.errors import QuotaExceededException, QuotaStoreError
from clarifier.models.subscription import SubscriptionTier
from clarifier.services.quota_store import DynamoQuotaStore
from tests.fixtures.ddb import create_profiles_table, seed_profile


@mock_aws
def test_create_and_get_profile_with_moto():
    """Test profile creation using moto mock"""
    table = create_profiles_table()
    store = DynamoQuotaStore(table.name)

    assert store.get_profile("test_user") is None

    created = store.create_profile("test_user")
    assert created.tier == SubscriptionTier.FREE
    assert created.usage_count == 0

    fetched = store.get_profile("test_user")
    assert fetched is not None
    assert fetched.user_id == "test_user"
    assert fetched.usage_count == 0


@mock_aws
def test_create_profile_never_resets_counter():
    table = create_profiles_table()
    store = DynamoQuotaStore(table.name)
    seed_profile(table, "test_user", tier="pro", usage_count=4)

    profile = store.create_profile("test_user")

    assert profile.usage_count == 4
    assert profile.tier == SubscriptionTier.PRO
    assert table.get_item(Key={"user_id": "test_user"})["Item"]["usage_count"] == 4


@mock_aws
def test_stored_legacy_tier_is_normalized():
    table = create_profiles_table()
    seed_profile(table, "legacy_user", tier="premium", usage_count=2)
    seed_profile(table, "odd_user", tier="diamond")

    store = DynamoQuotaStore(table.name)
    assert store.get_profile("legacy_user").tier == SubscriptionTier.PRO
    assert store.get_profile("odd_user").tier == SubscriptionTier.FREE


@mock_aws
def test_atomic_increment():
    table = create_profiles_table()
    store = DynamoQuotaStore(table.name)
    store.create_profile("test_user")

    first = store.atomic_increment("test_user", "usage_count", ceiling=10)
    second = store.atomic_increment("test_user", "usage_count")

    assert first.usage_count == 1
    assert second.usage_count == 2
    assert isinstance(second.usage_count, int)
    assert store.get_profile("test_user").usage_count == 2


@mock_aws
def test_atomic_increment_stops_at_ceiling():
    table = create_profiles_table()
    seed_profile(table, "test_user", usage_count=9)
    store = DynamoQuotaStore(table.name)

    assert store.atomic_increment("test_user", "usage_count", ceiling=10).usage_count == 10

    with pytest.raises(QuotaExceededException) as exc_info:
        store.atomic_increment("test_user", "usage_count", ceiling=10)
    assert exc_info.value.quota_info["limit"] == 10
    assert store.get_profile("test_user").usage_count == 10


@mock_aws
def test_atomic_increment_requires_profile():
    table = create_profiles_table()
    store = DynamoQuotaStore(table.name)

    with pytest.raises(QuotaStoreError):
        store.atomic_increment("ghost", "usage_count")
    assert store.get_profile("ghost") is None


@mock_aws
def test_atomic_increment_with_ceiling_requires_profile():
    table = create_profiles_table()
    store = DynamoQuotaStore(table.name)

    with pytest.raises(QuotaStoreError):
        store.atomic_increment("ghost", "usage_count", ceiling=10)
    assert store.get_profile("ghost") is None


@mock_aws
def test_atomic_increment_rejects_other_fields():
    table = create_profiles_table()
    store = DynamoQuotaStore(table.name)

    with pytest.raises(ValueError):
        store.atomic_increment("test_user", "tier")


@mock_aws
def test_missing_table_is_store_error():
    store = DynamoQuotaStore("does-not-exist")

    with pytest.raises(QuotaStoreError):
        store.get_profile("test_user")
    with pytest.raises(QuotaStoreError):
        store.atomic_increment("test_user", "usage_count", ceiling=10)
