"""Interface for AI Language Models (LLMs).

Defines the contract for sending messages to an AI provider
(e.g., Groq Llama).
"""

import abc
from typing import Any, Dict, List, Optional

from ..models.ai import ChatMessage, StructuredAIResponse


class AIModel(abc.ABC):
    """Abstract Base Class for AI language model interactions."""

    @abc.abstractmethod
    async def send_messages(
        self,
        messages: List[ChatMessage],
        response_format: Optional[Dict[str, Any]] = None,
        temperature: Optional[float] = None,
    ) -> StructuredAIResponse:
        """Sends a list of messages to the AI model asynchronously.

        Args:
            messages: A list of ChatMessage objects representing the conversation.
            response_format: Optional provider response format,
                e.g. ``{"type": "json_object"}``.
            temperature: Optional sampling temperature.

        Returns:
            A StructuredAIResponse containing the AI's reply and metadata.

        Raises:
            Exception: If the API call fails. Provider errors are propagated
                unchanged so the retry executor can inspect their status.
        """
        pass
