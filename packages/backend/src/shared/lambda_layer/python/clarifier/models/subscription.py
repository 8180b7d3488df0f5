from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field, field_validator

from clarifier.constants.subscription_tiers import (
    FREE_SESSION_LIMIT,
    LEGACY_TIER_ALIASES,
    PRO_SESSION_LIMIT,
)


class SubscriptionTier(str, Enum):
    """Subscription tier enumeration"""
    FREE = "free"
    PRO = "pro"

    @classmethod
    def normalize(cls, value: Any) -> "SubscriptionTier":
        """
        Resolve a stored tier value to a known tier.

        Legacy aliases are mapped to their current name; anything unknown or
        malformed resolves to FREE, the most restrictive tier.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return cls.FREE
        name = value.strip().lower()
        name = LEGACY_TIER_ALIASES.get(name, name)
        try:
            return cls(name)
        except ValueError:
            return cls.FREE


class QuotaPolicy(BaseModel):
    """Static tier -> lifetime session limit mapping"""
    limits: Dict[SubscriptionTier, int] = Field(
        default_factory=lambda: {
            SubscriptionTier.FREE: FREE_SESSION_LIMIT,
            SubscriptionTier.PRO: PRO_SESSION_LIMIT,
        }
    )

    @field_validator("limits")
    @classmethod
    def limits_are_non_negative(cls, v: Dict[SubscriptionTier, int]) -> Dict[SubscriptionTier, int]:
        for tier, limit in v.items():
            if limit < 0:
                raise ValueError(f"Session limit for {tier.value} must be non-negative")
        if SubscriptionTier.FREE not in v:
            raise ValueError("A free tier limit is required")
        return v

    def limit_for(self, tier: Any) -> int:
        """Session limit for a tier, falling back to the free policy."""
        normalized = SubscriptionTier.normalize(tier)
        return self.limits.get(normalized, self.limits[SubscriptionTier.FREE])


DEFAULT_QUOTA_POLICY = QuotaPolicy()


class UsageProfile(BaseModel):
    """Per-user usage counter and billing-controlled tier"""
    user_id: str = Field(min_length=1)
    tier: SubscriptionTier = Field(default=SubscriptionTier.FREE)
    usage_count: int = Field(default=0, ge=0, description="Sessions created so far")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("tier", mode="before")
    @classmethod
    def normalize_tier(cls, v: Any) -> SubscriptionTier:
        return SubscriptionTier.normalize(v)


class RateLimitDecision(BaseModel):
    """Derived allow/deny decision, recomputed on every check"""
    allowed: bool
    remaining: int = Field(ge=0)
    limit: int = Field(ge=0)
    tier: SubscriptionTier

    @classmethod
    def from_profile(cls, profile: UsageProfile, policy: QuotaPolicy = DEFAULT_QUOTA_POLICY) -> "RateLimitDecision":
        limit = policy.limit_for(profile.tier)
        return cls(
            allowed=profile.usage_count < limit,
            remaining=max(0, limit - profile.usage_count),
            limit=limit,
            tier=profile.tier,
        )

    @classmethod
    def denied(cls, limit: int = 0, tier: SubscriptionTier = SubscriptionTier.FREE) -> "RateLimitDecision":
        """Denial with nothing remaining; limit=0 is the fail-closed decision."""
        return cls(allowed=False, remaining=0, limit=limit, tier=tier)
