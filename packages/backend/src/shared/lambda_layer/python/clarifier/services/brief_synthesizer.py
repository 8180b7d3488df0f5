"""
Brief synthesis: validate -> build prompt -> invoke model -> brief + metadata.
"""

import time
from typing import Any, Callable, Optional

from aws_lambda_powertools import Logger

from clarifier.models.errors import SynthesisError, SynthesisErrorCode
from clarifier.models.session import SynthesisResult
from clarifier.services import conversation_validator, prompt_builder
from clarifier.services.aws import has_aws_credentials
from clarifier.services.config import SynthesisConfig
from clarifier.services.model_gateway import ModelGateway, create_bedrock_gateway

logger = Logger()


def count_words(text: str) -> int:
    return len(text.split())


class BriefSynthesizer:
    """
    Turns a conversation into a structured brief.

    The model gateway is only constructed after configuration has been
    checked, so a missing credential surfaces as a SynthesisError before
    any client or network call exists.
    """

    def __init__(
        self,
        config: Optional[SynthesisConfig] = None,
        gateway_factory: Callable[[SynthesisConfig], ModelGateway] = create_bedrock_gateway,
        credentials_provider: Callable[[], bool] = has_aws_credentials,
    ):
        self.config = config or SynthesisConfig()
        self.gateway_factory = gateway_factory
        self.credentials_provider = credentials_provider

    def _create_gateway(self) -> ModelGateway:
        if not self.config.enabled:
            raise SynthesisError("Brief synthesis is disabled", SynthesisErrorCode.SYNTHESIS_DISABLED)
        if not self.credentials_provider():
            raise SynthesisError(
                "AWS credentials for the model client are not configured",
                SynthesisErrorCode.MISSING_CREDENTIALS,
            )
        return self.gateway_factory(self.config)

    def synthesize_with_metadata(self, domain: Any, history: Any) -> SynthesisResult:
        """
        Synthesize a brief and report how long the model call took.

        Args:
            domain: Domain tag
            history: Ordered conversation turns

        Returns:
            SynthesisResult: brief, duration_ms and word_count

        Raises:
            ValidationError: If the domain or history is malformed
            SynthesisError: If configuration is missing or the model call fails
        """
        conversation = conversation_validator.validate(domain, history)
        prompt = prompt_builder.build(conversation.domain, conversation.history)
        logger.info(
            f"Starting synthesis for {conversation.domain.value} domain "
            f"with {len(conversation.history)} turns"
        )

        gateway = self._create_gateway()

        start = time.perf_counter()
        try:
            text = gateway.invoke(prompt)
        except SynthesisError:
            raise
        except Exception as e:
            logger.error(f"Unexpected model gateway failure: {e}")
            raise SynthesisError(
                "Model invocation failed", SynthesisErrorCode.MODEL_INVOCATION_FAILED, e
            ) from e
        duration_ms = int((time.perf_counter() - start) * 1000)

        brief = (text or "").strip()
        if not brief:
            raise SynthesisError("Model returned an empty response", SynthesisErrorCode.EMPTY_RESPONSE)

        word_count = count_words(brief)
        logger.info(f"Synthesis completed in {duration_ms}ms, {word_count} words")
        return SynthesisResult(brief=brief, duration_ms=duration_ms, word_count=word_count)

    def synthesize(self, domain: Any, history: Any) -> str:
        return self.synthesize_with_metadata(domain, history).brief
