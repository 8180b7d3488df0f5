from moto import mock_aws

from post_confirmation import app as post_confirmation_app
from tests.fixtures.ddb import create_profiles_table, seed_profile


def cognito_event(sub="new-user-sub"):
    return {
        "version": "1",
        "triggerSource": "PostConfirmation_ConfirmSignUp",
        "region": "us-east-1",
        "userPoolId": "us-east-1_test",
        "userName": "user@example.com",
        "request": {"userAttributes": {"sub": sub, "email": "user@example.com"}},
        "response": {},
    }


@mock_aws
def test_post_confirmation_creates_free_profile(monkeypatch, lambda_context):
    table = create_profiles_table()
    monkeypatch.setenv("PROFILES_TABLE_NAME", table.name)
    event = cognito_event()

    result = post_confirmation_app.handler(event, lambda_context)

    assert result == event
    item = table.get_item(Key={"user_id": "new-user-sub"})["Item"]
    assert item["tier"] == "free"
    assert item["usage_count"] == 0


@mock_aws
def test_post_confirmation_keeps_existing_profile(monkeypatch, lambda_context):
    table = create_profiles_table()
    monkeypatch.setenv("PROFILES_TABLE_NAME", table.name)
    seed_profile(table, "new-user-sub", tier="pro", usage_count=4)

    post_confirmation_app.handler(cognito_event(), lambda_context)

    item = table.get_item(Key={"user_id": "new-user-sub"})["Item"]
    assert item["tier"] == "pro"
    assert item["usage_count"] == 4


@mock_aws
def test_post_confirmation_never_blocks_registration(monkeypatch, lambda_context):
    monkeypatch.setenv("PROFILES_TABLE_NAME", "missing-table")
    event = cognito_event()
    assert post_confirmation_app.handler(event, lambda_context) == event

    malformed = {"triggerSource": "PostConfirmation_ConfirmSignUp", "request": {}}
    assert post_confirmation_app.handler(malformed, lambda_context) == malformed
