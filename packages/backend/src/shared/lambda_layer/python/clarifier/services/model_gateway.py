"""
Model gateway: a single opaque prompt -> text call to Amazon Bedrock.

Retries and timeouts live in the botocore client config, not in callers.
"""

import json
from typing import Any, Dict, Optional, Protocol

from aws_lambda_powertools import Logger
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from clarifier.models.errors import SynthesisError, SynthesisErrorCode
from clarifier.services.aws import get_bedrock_runtime_client
from clarifier.services.config import SynthesisConfig
from clarifier.services.prompt_builder import SYSTEM_PROMPT

logger = Logger()


class ModelGateway(Protocol):
    def invoke(self, prompt: str) -> str:
        ...


def model_family(model_id: str) -> str:
    """Bedrock request/response format used by a model id."""
    lowered = model_id.lower()
    if "nova" in lowered:
        return "nova"
    if "titan" in lowered:
        return "titan"
    return "claude"


class BedrockModelGateway:
    def __init__(self, config: SynthesisConfig, client: Optional[Any] = None):
        self.config = config
        self.model_id = config.bedrock_model_id
        self.family = model_family(self.model_id)
        self.client = client or get_bedrock_runtime_client(
            config.timeout_seconds, config.max_attempts
        )

    def build_body(self, prompt: str) -> Dict[str, Any]:
        if self.family == "nova":
            return {
                "system": [{"text": SYSTEM_PROMPT}],
                "messages": [{"role": "user", "content": [{"text": prompt}]}],
                "inferenceConfig": {
                    "maxTokens": self.config.max_tokens,
                    "temperature": self.config.temperature,
                },
            }
        if self.family == "titan":
            # Titan has no system slot
            return {
                "inputText": f"{SYSTEM_PROMPT}\n\n{prompt}",
                "textGenerationConfig": {
                    "maxTokenCount": self.config.max_tokens,
                    "temperature": self.config.temperature,
                },
            }
        return {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": self.config.max_tokens,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature,
        }

    def extract_text(self, result: Dict[str, Any]) -> str:
        if self.family == "nova":
            return result["output"]["message"]["content"][0]["text"]
        if self.family == "titan":
            return result["results"][0]["outputText"]
        return result["content"][0]["text"]

    def invoke(self, prompt: str) -> str:
        """
        Send the prompt to the configured model and return its text.

        Raises:
            SynthesisError: MODEL_TIMEOUT, MODEL_INVOCATION_FAILED,
                MALFORMED_RESPONSE or EMPTY_RESPONSE
        """
        body = self.build_body(prompt)
        try:
            response = self.client.invoke_model(modelId=self.model_id, body=json.dumps(body))
        except (ReadTimeoutError, ConnectTimeoutError) as e:
            raise SynthesisError(
                f"Model {self.model_id} timed out", SynthesisErrorCode.MODEL_TIMEOUT, e
            ) from e
        except ClientError as e:
            error = e.response.get("Error", {})
            logger.error(f"Bedrock rejected invocation: {error.get('Code')} {error.get('Message')}")
            raise SynthesisError(
                f"Model invocation failed: {error.get('Code', 'Unknown')}",
                SynthesisErrorCode.MODEL_INVOCATION_FAILED,
                e,
            ) from e
        except BotoCoreError as e:
            logger.error(f"Error calling Bedrock: {e}")
            raise SynthesisError(
                "Model invocation failed", SynthesisErrorCode.MODEL_INVOCATION_FAILED, e
            ) from e

        try:
            result = json.loads(response["body"].read())
            text = self.extract_text(result)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Unexpected Bedrock response format from {self.model_id}: {e}")
            raise SynthesisError(
                "Model returned a malformed response", SynthesisErrorCode.MALFORMED_RESPONSE, e
            ) from e

        if not isinstance(text, str) or not text.strip():
            raise SynthesisError("Model returned an empty response", SynthesisErrorCode.EMPTY_RESPONSE)
        return text.strip()


def create_bedrock_gateway(config: SynthesisConfig) -> ModelGateway:
    return BedrockModelGateway(config)
