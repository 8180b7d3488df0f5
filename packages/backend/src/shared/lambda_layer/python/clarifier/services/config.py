"""
Runtime configuration for the brief-synthesis pipeline.

Table names come from environment variables; synthesis settings come from
SSM Parameter Store with defaults for anything missing.
"""

import os
from typing import Dict, Optional

from aws_lambda_powertools import Logger
from pydantic import BaseModel, Field

from clarifier.services.aws import get_ssm_client

logger = Logger()

DEFAULT_PARAMETER_PREFIX = "/clarifier/synthesis/"
DEFAULT_BEDROCK_MODEL_ID = "anthropic.claude-3-haiku-20240307-v1:0"

# Cache for parameters
parameter_cache: Dict[str, str] = {}


class SynthesisConfig(BaseModel):
    """Settings for the brief synthesis model call"""
    bedrock_model_id: str = Field(default=DEFAULT_BEDROCK_MODEL_ID, min_length=1)
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    max_tokens: int = Field(default=1024, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=3, ge=1, le=10)
    enabled: bool = Field(default=True)


def get_profiles_table_name() -> str:
    return os.environ.get("PROFILES_TABLE_NAME", "clarifier-profiles-dev")


def get_sessions_table_name() -> str:
    return os.environ.get("SESSIONS_TABLE_NAME", "clarifier-sessions-dev")


def get_parameter_prefix() -> str:
    return os.environ.get("PARAMETER_PREFIX", DEFAULT_PARAMETER_PREFIX)


def get_parameter(parameter_name: str, default_value: Optional[str] = None) -> Optional[str]:
    """Get parameter from Parameter Store with caching"""
    if parameter_name in parameter_cache:
        return parameter_cache[parameter_name]

    try:
        response = get_ssm_client().get_parameter(Name=parameter_name)
        value = response["Parameter"]["Value"]
        parameter_cache[parameter_name] = value
        return value
    except Exception as e:
        logger.warning(f"Failed to get parameter {parameter_name}: {e}")
        return default_value


def get_synthesis_config() -> SynthesisConfig:
    """
    Build the synthesis configuration from Parameter Store.

    Parameters that are missing or unreadable keep their model defaults.
    Values that fail validation are a deployment error and raise.

    Returns:
        SynthesisConfig: Validated settings.
    """
    prefix = get_parameter_prefix()
    values = {}
    for field_name in ("bedrock_model_id", "temperature", "max_tokens", "timeout_seconds", "max_attempts"):
        value = get_parameter(f"{prefix}{field_name}")
        if value is not None:
            values[field_name] = value

    enabled = get_parameter(f"{prefix}enabled")
    if enabled is not None:
        values["enabled"] = enabled.strip().lower() == "true"

    return SynthesisConfig(**values)
