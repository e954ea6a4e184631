"""Concrete implementation of the AIModel interface using the Groq API.

Hides the specifics of the Groq client library and translates requests/
responses between the domain model and the Groq API format.
"""

import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional

from groq import Groq as GroqSDKClient
from groq import APIError, APIResponseValidationError, AuthenticationError, RateLimitError

from clinicscraper.domain.interfaces.ai_model import AIModel
from clinicscraper.domain.models.ai import ChatMessage, StructuredAIResponse
from clinicscraper.domain.models.common import TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_S = 60.0


class GroqClient(AIModel):
    """Groq implementation of the AIModel interface."""

    DEFAULT_MODEL = "llama-3.3-70b-versatile"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
    ):
        """Initializes the Groq client.

        Args:
            api_key: Groq API key. Reads from GROQ_API_KEY env var if None.
            model: The Groq model to use.
            timeout_s: Network timeout for a single request.
        """
        effective_api_key = api_key or os.getenv("GROQ_API_KEY")
        if not effective_api_key:
            raise ValueError("Groq API key not provided and not found in environment variables.")

        # SDK-level retries are disabled; ApiRetryService owns the retry budget
        self.client = GroqSDKClient(api_key=effective_api_key, timeout=timeout_s, max_retries=0)
        self.model = model or self.DEFAULT_MODEL
        logger.info(f"GroqClient initialized for model: {self.model}")

    def _parse_groq_response(self, response: Any) -> StructuredAIResponse:
        """Parses the response object from Groq API call."""
        try:
            choices = response.choices or []
            content = (choices[0].message.content if choices else None) or ""

            token_usage = None
            if response.usage:
                token_usage = TokenUsage(
                    prompt_tokens=response.usage.prompt_tokens,
                    completion_tokens=response.usage.completion_tokens,
                    total_tokens=response.usage.total_tokens,
                )

            return StructuredAIResponse(
                content=content,
                token_usage=token_usage,
                model_name=response.model,
            )
        except (AttributeError, IndexError, KeyError, TypeError) as e:
            logger.error(f"Failed to parse Groq response structure: {e}", exc_info=True)
            logger.debug(f"Raw Groq response object: {response}")
            raise ValueError(f"Invalid response structure from Groq: {e}") from e

    async def send_messages(
        self,
        messages: List[ChatMessage],
        response_format: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
    ) -> StructuredAIResponse:
        """Sends messages to the configured Groq model asynchronously."""
        logger.debug(f"Sending {len(messages)} messages to Groq model: {self.model}")
        request: Dict[str, Any] = {"messages": messages, "model": self.model}
        if response_format is not None:
            request["response_format"] = response_format
        if temperature is not None:
            request["temperature"] = temperature

        start_time = time.perf_counter()
        try:
            # Use asyncio.to_thread as the Groq SDK client used here is synchronous
            chat_completion = await asyncio.to_thread(self.client.chat.completions.create, **request)
        except AuthenticationError as e:
            logger.error(f"Groq Authentication Error: {e}")
            raise
        except RateLimitError as e:
            logger.debug(f"Groq Rate Limit Error encountered: {e}")
            raise
        except APIResponseValidationError as e:
            logger.error(f"Groq response validation error: {e}")
            raise
        except APIError as e:
            # Includes server errors (5xx) and connection errors
            logger.debug(f"Groq API Error encountered (Status: {getattr(e, 'status_code', 'N/A')}): {e}")
            raise

        latency_ms = (time.perf_counter() - start_time) * 1000
        structured_response = self._parse_groq_response(chat_completion)
        structured_response.latency_ms = latency_ms

        logger.debug(f"Received response from Groq in {latency_ms:.2f}ms. Usage: {structured_response.token_usage}")
        return structured_response
