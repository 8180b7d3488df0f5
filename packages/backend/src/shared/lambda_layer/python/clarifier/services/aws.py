import os
from functools import cache
from typing import Any, Optional

import boto3
from boto3.resources.base import ServiceResource
from botocore.config import Config


def get_region_name() -> Optional[str]:
    """
    Get the AWS region name from environment variable.
    Uses AWS_REGION if set, otherwise lets boto3 use its default region resolution.

    Returns:
        str: The AWS region name or None to let boto3 handle region resolution.
    """
    return os.getenv("AWS_REGION")


def _session_kwargs() -> dict:
    region = get_region_name()
    return {"region_name": region} if region else {}


@cache
def get_dynamodb_resource() -> ServiceResource:
    """
    Get a DynamoDB resource instance.

    Returns:
        boto3.resources.base.ServiceResource: The DynamoDB resource.
    """
    return boto3.resource("dynamodb", **_session_kwargs())


def get_ddb_table(table_name: str) -> Any:
    return get_dynamodb_resource().Table(table_name)


def get_ssm_client() -> Any:
    return boto3.client("ssm", **_session_kwargs())


def get_bedrock_runtime_client(timeout_seconds: float, max_attempts: int) -> Any:
    """
    Build a Bedrock Runtime client whose botocore config owns timeouts and retries.

    Args:
        timeout_seconds: Read timeout for a single invocation
        max_attempts: Total attempts including the first call

    Returns:
        A boto3 bedrock-runtime client.
    """
    config = Config(
        connect_timeout=min(timeout_seconds, 10),
        read_timeout=timeout_seconds,
        retries={"max_attempts": max_attempts, "mode": "standard"},
    )
    return boto3.client("bedrock-runtime", config=config, **_session_kwargs())


def has_aws_credentials() -> bool:
    """Whether boto3 can resolve credentials for the model client."""
    return boto3.Session().get_credentials() is not None
