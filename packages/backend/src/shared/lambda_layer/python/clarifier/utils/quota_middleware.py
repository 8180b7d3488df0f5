"""
Rate-limit response helpers for API endpoints.

Quota is lifetime-cumulative, so Retry-After carries a fixed 24h hint rather
than the end of a window.
"""

import json
from typing import Any, Dict

from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import Response, content_types

from clarifier.constants.subscription_tiers import RETRY_AFTER_SECONDS
from clarifier.models.subscription import RateLimitDecision

logger = Logger()


def rate_limit_headers(decision: RateLimitDecision) -> Dict[str, str]:
    """Header-shaped summary of a rate limit decision."""
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Tier": decision.tier.value,
    }


def quota_message(decision: RateLimitDecision) -> str:
    if decision.limit <= 0:
        return f"Session creation is unavailable on the {decision.tier.value} tier right now, try again later"
    return f"You have used all {decision.limit} sessions on the {decision.tier.value} tier"


def rate_limited_response(decision: RateLimitDecision, user_id: str) -> Response:
    """
    429 response for a denied session creation.

    Args:
        decision: The denying decision
        user_id: Caller, for logging only

    Returns:
        Response: JSON body with quota_info and rate limit headers
    """
    logger.warning(f"Quota exceeded for user {user_id}: {decision.remaining}/{decision.limit} remaining")
    headers = rate_limit_headers(decision)
    headers["Retry-After"] = str(RETRY_AFTER_SECONDS)
    body: Dict[str, Any] = {
        "error": "Quota exceeded",
        "message": quota_message(decision),
        "quota_info": decision.model_dump(mode="json"),
        "upgrade_url": "/subscribe" if decision.tier.value == "free" else None,
    }
    return Response(
        status_code=429,  # Too Many Requests
        content_type=content_types.APPLICATION_JSON,
        body=json.dumps(body),
        headers=headers,
    )
