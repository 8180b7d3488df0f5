import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import ValidationError as PydanticValidationError

from clarifier.models.errors import QuotaExceededException, QuotaStoreError
from clarifier.models.subscription import SubscriptionTier, UsageProfile
from clarifier.services.aws import get_ddb_table

logger = Logger()

# Counters that may be incremented through the storage boundary
COUNTER_FIELDS = frozenset({"usage_count"})


class QuotaStore(Protocol):
    """Storage boundary for usage profiles."""

    def get_profile(self, user_id: str) -> Optional[UsageProfile]:
        ...

    def create_profile(self, user_id: str, tier: SubscriptionTier = SubscriptionTier.FREE) -> UsageProfile:
        ...

    def atomic_increment(self, user_id: str, field: str, ceiling: Optional[int] = None) -> UsageProfile:
        ...


def _check_counter_field(field: str) -> None:
    if field not in COUNTER_FIELDS:
        raise ValueError(f"{field} is not an incrementable counter")


def _profile_from_item(item: Dict[str, Any]) -> UsageProfile:
    try:
        return UsageProfile(
            user_id=item["user_id"],
            tier=item.get("tier", SubscriptionTier.FREE.value),
            usage_count=int(item.get("usage_count", 0)),
            created_at=item.get("created_at") or datetime.now(timezone.utc),
            updated_at=item.get("updated_at") or datetime.now(timezone.utc),
        )
    except (KeyError, TypeError, ValueError, PydanticValidationError) as exc:
        raise QuotaStoreError(f"Malformed usage profile: {exc}") from exc


class DynamoQuotaStore:
    """Usage profiles in DynamoDB, keyed by user_id"""

    def __init__(self, table_name: str):
        """
        Initialize quota store

        Args:
            table_name: DynamoDB table name for usage profiles
        """
        self.table_name = table_name

    @property
    def table(self) -> Any:
        return get_ddb_table(self.table_name)

    def get_profile(self, user_id: str) -> Optional[UsageProfile]:
        """
        Get usage profile by user_id

        Args:
            user_id: Unique user identifier

        Returns:
            UsageProfile or None if not found

        Raises:
            QuotaStoreError: If the table cannot be read or the item is malformed
        """
        try:
            response = self.table.get_item(Key={"user_id": user_id}, ConsistentRead=True)
        except ClientError as e:
            raise QuotaStoreError(
                f"DynamoDB error reading profile {user_id}: {e.response['Error']['Message']}"
            ) from e
        except BotoCoreError as e:
            raise QuotaStoreError(f"AWS connection error: {str(e)}") from e

        item = response.get("Item")
        if not item:
            return None
        return _profile_from_item(item)

    def create_profile(self, user_id: str, tier: SubscriptionTier = SubscriptionTier.FREE) -> UsageProfile:
        """
        Create a usage profile with a zero counter.

        Creation is conditional, so a profile created concurrently is kept
        and returned instead of being reset.
        """
        profile = UsageProfile(user_id=user_id, tier=tier)
        item = {
            "user_id": profile.user_id,
            "tier": profile.tier.value,
            "usage_count": profile.usage_count,
            "created_at": profile.created_at.isoformat(),
            "updated_at": profile.updated_at.isoformat(),
        }
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(user_id)",  # Never reset a counter
            )
            logger.info(f"Created usage profile for user {user_id}")
            return profile
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                existing = self.get_profile(user_id)
                if existing is None:
                    raise QuotaStoreError(f"Profile for {user_id} vanished during creation") from e
                return existing
            raise QuotaStoreError(
                f"DynamoDB error creating profile {user_id}: {e.response['Error']['Message']}"
            ) from e
        except BotoCoreError as e:
            raise QuotaStoreError(f"AWS connection error: {str(e)}") from e

    def atomic_increment(self, user_id: str, field: str, ceiling: Optional[int] = None) -> UsageProfile:
        """
        Increment a counter in a single conditional UpdateItem.

        Args:
            user_id: Unique user identifier
            field: Counter attribute to increment
            ceiling: When set, the increment only applies while the counter is below it

        Returns:
            UsageProfile: The profile after the increment

        Raises:
            QuotaExceededException: If the counter already reached the ceiling
            QuotaStoreError: If the profile is missing or DynamoDB fails
        """
        _check_counter_field(field)
        condition = "attribute_exists(user_id)"
        values: Dict[str, Any] = {
            ":inc": 1,
            ":timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if ceiling is not None:
            condition += " AND #counter < :ceiling"
            values[":ceiling"] = ceiling

        try:
            response = self.table.update_item(
                Key={"user_id": user_id},
                UpdateExpression="ADD #counter :inc SET updated_at = :timestamp",
                ConditionExpression=condition,
                ExpressionAttributeNames={"#counter": field},
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                # The condition fails for a missing profile and for a full counter alike
                if ceiling is None or self.get_profile(user_id) is None:
                    raise QuotaStoreError(f"No usage profile for user {user_id}") from e
                raise QuotaExceededException(
                    f"Session limit reached ({ceiling})",
                    quota_info={"user_id": user_id, "limit": ceiling},
                ) from e
            raise QuotaStoreError(
                f"DynamoDB error incrementing {field} for {user_id}: {e.response['Error']['Message']}"
            ) from e
        except BotoCoreError as e:
            raise QuotaStoreError(f"AWS connection error: {str(e)}") from e

        logger.info(f"Incremented {field} for user {user_id}")
        return _profile_from_item(response["Attributes"])


class InMemoryQuotaStore:
    """Process-local quota store; a lock makes the increment atomic."""

    def __init__(self):
        self._profiles: Dict[str, UsageProfile] = {}
        self._lock = threading.Lock()

    def put_profile(self, profile: UsageProfile) -> UsageProfile:
        with self._lock:
            self._profiles[profile.user_id] = profile
        return profile

    def get_profile(self, user_id: str) -> Optional[UsageProfile]:
        with self._lock:
            profile = self._profiles.get(user_id)
            return profile.model_copy() if profile else None

    def create_profile(self, user_id: str, tier: SubscriptionTier = SubscriptionTier.FREE) -> UsageProfile:
        with self._lock:
            if user_id not in self._profiles:
                self._profiles[user_id] = UsageProfile(user_id=user_id, tier=tier)
            return self._profiles[user_id].model_copy()

    def atomic_increment(self, user_id: str, field: str, ceiling: Optional[int] = None) -> UsageProfile:
        _check_counter_field(field)
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                raise QuotaStoreError(f"No usage profile for user {user_id}")
            current = getattr(profile, field)
            if ceiling is not None and current >= ceiling:
                raise QuotaExceededException(
                    f"Session limit reached ({ceiling})",
                    quota_info={"user_id": user_id, "limit": ceiling},
                )
            updated = profile.model_copy(
                update={field: current + 1, "updated_at": datetime.now(timezone.utc)}
            )
            self._profiles[user_id] = updated
            return updated.model_copy()
