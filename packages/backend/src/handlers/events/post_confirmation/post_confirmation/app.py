from typing import Any, Dict

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from clarifier.models.errors import QuotaStoreError
from clarifier.models.subscription import SubscriptionTier
from clarifier.services.config import get_profiles_table_name
from clarifier.services.quota_store import DynamoQuotaStore, QuotaStore
from clarifier.utils.auth import extract_user_id_from_trigger

# Initialize the logger
logger = Logger()


def provision_usage_profile(user_id: str, store: QuotaStore) -> bool:
    """Create the free usage profile for a new user; an existing profile is kept."""
    try:
        profile = store.create_profile(user_id, SubscriptionTier.FREE)
    except QuotaStoreError as e:
        logger.error(f"Error provisioning usage profile for {user_id}: {e}")
        return False
    logger.info(f"Usage profile ready for {user_id}: tier={profile.tier.value} usage={profile.usage_count}")
    return True


@logger.inject_lambda_context
def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Cognito Post-Confirmation Lambda handler.

    Provisions the user's usage profile when they complete registration.
    A missing profile is also created lazily on the first rate limit check,
    so a failure here is logged and registration still completes.

    Input: Cognito Post-Confirmation trigger event
    Output: Same event (required by Cognito)
    """
    logger.info("Post-confirmation Lambda triggered", extra={
        "event_source": event.get("triggerSource", "unknown"),
        "user_pool_id": event.get("userPoolId", "unknown")
    })

    try:
        user_id = extract_user_id_from_trigger(event)
    except ValueError as e:
        logger.error(f"Post-confirmation failed but allowing registration to proceed: {e}")
        return event

    if not provision_usage_profile(user_id, DynamoQuotaStore(get_profiles_table_name())):
        logger.warning(f"Usage profile for {user_id} will be created on first use")

    # Cognito requires the original event back
    return event
