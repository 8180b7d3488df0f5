"""
Centralized subscription tier configuration constants.

Session quotas are lifetime-cumulative per tier: there is no billing cycle
and no time-based reset.
"""

# Free Tier Configuration
FREE_SESSION_LIMIT = 10

# Pro Tier Configuration
PRO_SESSION_LIMIT = 999999  # Effectively unlimited

# Tier names still found on older profiles
LEGACY_TIER_ALIASES = {
    "premium": "pro",
}

# Quota never resets, so a retry is not meaningful before a day has passed
RETRY_AFTER_SECONDS = 86400

# Assistant questions required before a brief can be generated
MIN_QUESTIONS_BEFORE_GENERATION = 3
