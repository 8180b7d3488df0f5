"""
Rate limiter gating session creation on the user's lifetime quota.
"""

from aws_lambda_powertools import Logger

from clarifier.models.errors import QuotaExceededException, QuotaStoreError
from clarifier.models.subscription import (
    DEFAULT_QUOTA_POLICY,
    QuotaPolicy,
    RateLimitDecision,
    UsageProfile,
)
from clarifier.services.quota_store import QuotaStore

logger = Logger()


class RateLimiter:
    """Applies the tier policy to usage profiles held by a QuotaStore."""

    def __init__(self, store: QuotaStore, policy: QuotaPolicy = DEFAULT_QUOTA_POLICY):
        self.store = store
        self.policy = policy

    def _get_or_create_profile(self, user_id: str) -> UsageProfile:
        profile = self.store.get_profile(user_id)
        if profile is None:
            logger.info(f"No usage profile for user {user_id}, creating free profile")
            profile = self.store.create_profile(user_id)
        return profile

    def check(self, user_id: str) -> RateLimitDecision:
        """
        Compute the current allow/deny decision for a user.

        Any failure reading the profile yields a denial with limit 0; an
        ambiguous quota state never grants access.

        Args:
            user_id: Unique user identifier

        Returns:
            RateLimitDecision: Freshly computed decision
        """
        if not user_id:
            logger.warning("Rate limit check without a user_id, denying")
            return RateLimitDecision.denied()
        try:
            profile = self._get_or_create_profile(user_id)
            decision = RateLimitDecision.from_profile(profile, self.policy)
        except Exception as e:
            logger.error(f"Error checking rate limit for {user_id}: {e}")
            return RateLimitDecision.denied()

        logger.debug(
            f"Rate limit for {user_id}: allowed={decision.allowed} "
            f"remaining={decision.remaining} limit={decision.limit} tier={decision.tier.value}"
        )
        return decision

    def consume(self, user_id: str) -> UsageProfile:
        """
        Record one session against the user's quota.

        The increment is conditional on the counter being below the tier
        limit and happens in a single storage operation.

        Returns:
            UsageProfile: The profile after the increment

        Raises:
            QuotaExceededException: If the limit was already reached
            QuotaStoreError: If storage fails
        """
        if not user_id:
            raise QuotaStoreError("Cannot consume quota without a user_id")
        profile = self._get_or_create_profile(user_id)
        limit = self.policy.limit_for(profile.tier)
        try:
            updated = self.store.atomic_increment(user_id, "usage_count", ceiling=limit)
        except QuotaExceededException as e:
            e.quota_info.update({"user_id": user_id, "limit": limit, "tier": profile.tier.value})
            raise
        logger.info(f"User {user_id} usage now {updated.usage_count}/{limit}")
        return updated
