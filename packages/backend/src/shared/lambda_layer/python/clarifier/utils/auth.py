"""
Authentication utilities for extracting user information from API Gateway events.
"""
from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger

logger = Logger()


def get_claims(event: Dict[str, Any]) -> Dict[str, Any]:
    """Cognito claims placed by API Gateway in requestContext.authorizer.claims."""
    request_context = event.get("requestContext") or {}
    authorizer = request_context.get("authorizer") or {}
    return authorizer.get("claims") or {}


def extract_user_id_from_event(event: Dict[str, Any]) -> Optional[str]:
    """
    Extract user_id from API Gateway event context (Cognito JWT).

    The request body is never consulted; only the authorizer's verified
    claims identify the caller.

    Args:
        event: API Gateway event dictionary

    Returns:
        User ID (sub claim) from the JWT token, or None if not found
    """
    try:
        user_id = get_claims(event).get("sub")
    except AttributeError as e:
        logger.error(f"Error extracting user_id from event: {e}")
        return None

    if not user_id:
        logger.warning("No user_id found in JWT claims")
        return None
    return user_id


def extract_user_id_from_trigger(event: Dict[str, Any]) -> str:
    """User id from a Cognito trigger event (userAttributes.sub)."""
    try:
        return event["request"]["userAttributes"]["sub"]
    except KeyError as e:
        raise ValueError(f"Invalid Cognito event structure: missing {e}") from e
