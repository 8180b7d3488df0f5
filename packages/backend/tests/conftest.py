from dataclasses import dataclass

import pytest

from clarifier.services import config
from clarifier.services.aws import get_dynamodb_resource


@pytest.fixture(autouse=True)
def aws_environment(monkeypatch):
    """Fake credentials and a fixed region so nothing reaches real AWS."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_REGION", "us-east-1")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    get_dynamodb_resource.cache_clear()
    config.parameter_cache.clear()
    yield
    get_dynamodb_resource.cache_clear()
    config.parameter_cache.clear()


@pytest.fixture
def lambda_context():
    @dataclass
    class LambdaContext:
        function_name: str = "test"
        memory_limit_in_mb: int = 128
        invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:test"
        aws_request_id: str = "52fdfc07-2182-154f-163f-5f0f9a621d72"

    return LambdaContext()
