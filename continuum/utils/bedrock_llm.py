"""
Amazon Bedrock LLM client wrapper with retry logic and error handling.
"""

import random
import time
from typing import Any, Dict, List, Optional, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockLLMConfig
from .logging_config import get_logger

logger = get_logger(__name__)

# Throttling and transient service errors are worth another attempt; validation errors are not
_RETRYABLE_ERROR_CODES = {
    'ThrottlingException',
    'ServiceUnavailableException',
    'InternalServerException',
    'ModelNotReadyException',
    'ModelTimeoutException',
}


class BedrockLLMError(Exception):
    """Custom exception for Bedrock LLM errors."""
    pass


class BedrockLLM:
    """Amazon Bedrock LLM client with retry logic and error handling."""

    def __init__(self, config: BedrockLLMConfig):
        """
        Initialize Bedrock LLM client.

        Args:
            config: BedrockLLMConfig instance with connection parameters
        """
        self.config = config
        self.model_id = config.model_id

        # Every call is bounded by the configured timeout
        self.bedrock_runtime = boto3.client(
            'bedrock-runtime',
            region_name=config.region,
            config=BotoConfig(
                connect_timeout=config.timeout,
                read_timeout=config.timeout,
                retries={'max_attempts': 0}  # We handle retries manually
            ))

        logger.info(f'Initialized Bedrock LLM client with model: {self.model_id}')

    def generate_response(self,
                          messages: List[Dict[str, Any]],
                          system_prompt: str,
                          max_tokens: Optional[int] = None,
                          temperature: Optional[float] = None,
                          stop_sequences: Optional[List[str]] = None) -> Tuple[str, Optional[Dict[str, Any]]]:
        """
        Generate a completion with the Converse API.

        Args:
            messages: List of message dictionaries in Bedrock format
            system_prompt: System prompt for the conversation
            max_tokens: Maximum tokens to generate (uses config default if None)
            temperature: Temperature for generation (uses config default if None)
            stop_sequences: Stop sequences for generation

        Returns:
            Tuple of (response_text, usage)

        Raises:
            BedrockLLMError: If all retry attempts fail
        """
        inf_params = {
            'maxTokens': max_tokens if max_tokens is not None else self.config.max_tokens,
            'temperature': temperature if temperature is not None else self.config.temperature,
            'stopSequences': stop_sequences or [],
        }

        for attempt in range(self.config.retry_attempts):
            try:
                logger.debug(f'Bedrock LLM request attempt {attempt + 1}/{self.config.retry_attempts}')

                response = self.bedrock_runtime.converse(modelId=self.model_id,
                                                         messages=messages,
                                                         system=[{'text': system_prompt}],
                                                         inferenceConfig=inf_params)

                blocks = response.get('output', {}).get('message', {}).get('content', [])
                msg = ''.join(block.get('text', '') for block in blocks)

                logger.debug(f'Bedrock LLM response generated successfully (length: {len(msg)})')
                return msg, response.get('usage')

            except ClientError as e:
                code = e.response.get('Error', {}).get('Code', '')
                if code not in _RETRYABLE_ERROR_CODES:
                    raise BedrockLLMError(f'Bedrock LLM request rejected ({code}): {e}')
                self._wait_before_retry(attempt, e)

            except BotoCoreError as e:
                # Covers connect/read timeouts
                self._wait_before_retry(attempt, e)

        raise BedrockLLMError(f'Bedrock LLM failed after {self.config.retry_attempts} attempts')

    def _wait_before_retry(self, attempt: int, error: Exception) -> None:
        logger.warning(f'Bedrock LLM attempt {attempt + 1}/{self.config.retry_attempts} failed: {error}')

        if attempt >= self.config.retry_attempts - 1:
            raise BedrockLLMError(f'Bedrock LLM failed after {self.config.retry_attempts} attempts: {error}')

        # Exponential backoff with jitter
        delay = self.config.retry_delay * (2**attempt) + random.uniform(0, 1)
        time.sleep(delay)

    def health_check(self) -> bool:
        """
        Perform a health check on the Bedrock LLM service.

        Returns:
            True if service is healthy, False otherwise
        """
        try:
            test_messages = [{'role': 'user', 'content': [{'text': 'Hi'}]}]
            response, _ = self.generate_response(messages=test_messages,
                                                 system_prompt="You are a helpful assistant. Respond with just 'OK'.",
                                                 max_tokens=10,
                                                 temperature=0.0)
            return len(response.strip()) > 0

        except BedrockLLMError as e:
            logger.error(f'Bedrock LLM health check failed: {e}')
            return False
