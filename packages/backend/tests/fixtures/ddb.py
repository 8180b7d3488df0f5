from typing import Any, Dict

import boto3
from mypy_boto3_dynamodb.service_resource import Table  # type: ignore

from clarifier.services.aws import get_region_name


def get_profiles_table_name() -> str:
    """
    Retrieve the name of the DynamoDB table used for storing usage profiles.

    Returns:
        str: The name of the DynamoDB table.
    """
    return "test-profiles-table"


def get_sessions_table_name() -> str:
    """
    Retrieve the name of the DynamoDB table used for storing sessions.

    Returns:
        str: The name of the DynamoDB table.
    """
    return "test-sessions-table"


def create_profiles_table() -> Table:
    """Create a mock DynamoDB table for usage profiles."""
    dynamodb_resource = boto3.resource("dynamodb", region_name=get_region_name())
    table = dynamodb_resource.create_table(
        TableName=get_profiles_table_name(),
        KeySchema=[{"AttributeName": "user_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "user_id", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    # Wait for table to be created
    table.wait_until_exists()

    return table


def create_sessions_table() -> Table:
    """Create a mock DynamoDB table for sessions keyed by session_id."""
    dynamodb_resource = boto3.resource("dynamodb", region_name=get_region_name())
    table = dynamodb_resource.create_table(
        TableName=get_sessions_table_name(),
        KeySchema=[{"AttributeName": "session_id", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "session_id", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    # Wait for table to be created
    table.wait_until_exists()

    return table


def seed_profile(table: Table, user_id: str, tier: Any = "free", usage_count: int = 0) -> Dict[str, Any]:
    """Write a raw usage profile item, bypassing the quota store."""
    item = {
        "user_id": user_id,
        "tier": tier,
        "usage_count": usage_count,
        "created_at": "2025-01-01T00:00:00+00:00",
        "updated_at": "2025-01-01T00:00:00+00:00",
    }
    table.put_item(Item=item)
    return item
