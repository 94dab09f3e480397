"""
Groq LLM adapter.

Wraps the async Groq client to implement the LLMClient protocol. The API key
is resolved from the CredentialManager on every call so refreshed or
rotated credentials take effect immediately.
"""

import time
from typing import List, Dict, Any, Optional

from groq import APIError, AsyncGroq
from loguru import logger

from auth.manager import CredentialManager
from core.constants import MODEL_DEFAULT, MAX_OUTPUT_TOKENS
from core.context import Completion, TokenUsage
from core.errors import ThinkerError


class GroqAdapter:
    """
    Adapter for the Groq chat completions API.

    Args:
        credentials: Source of the API key / bearer token
        model: Model identifier
        base_url: Optional API base URL override
    """

    def __init__(
        self,
        credentials: CredentialManager,
        model: str = MODEL_DEFAULT,
        base_url: Optional[str] = None,
    ):
        self.credentials = credentials
        self.model = model
        self.base_url = base_url

    async def _client(self) -> AsyncGroq:
        token = await self.credentials.access_token()
        return AsyncGroq(api_key=token, base_url=self.base_url)

    async def complete(
        self,
        messages: List[Dict[str, str]],
        response_format: Optional[Dict[str, str]] = None,
        temperature: float = 0.0,
        max_tokens: int = MAX_OUTPUT_TOKENS,
        **kwargs: Any,
    ) -> Completion:
        """
        Send messages to Groq and get a response.

        Args:
            messages: List of message dicts with 'role' and 'content' keys
            response_format: Optional format specification (e.g., {"type": "json_object"})
            temperature: Sampling temperature (0.0 for deterministic)
            max_tokens: Maximum tokens in response
            **kwargs: Additional Groq-specific options

        Returns:
            Completion with the response text and token usage
        """
        client = await self._client()
        start = time.time()

        completion_kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            **kwargs
        }

        if response_format:
            completion_kwargs["response_format"] = response_format

        try:
            async with client:
                completion = await client.chat.completions.create(**completion_kwargs)
        except APIError as e:
            raise ThinkerError(f"Groq API error: {e}") from e

        latency = (time.time() - start) * 1000
        response_text = completion.choices[0].message.content or ""
        if not response_text:
            raise ThinkerError("Groq API returned an empty response")

        logger.debug(f"LLM response ({latency:.0f}ms): {response_text[:100]}...")

        usage = None
        if completion.usage is not None:
            usage = TokenUsage(
                input_tokens=completion.usage.prompt_tokens or 0,
                output_tokens=completion.usage.completion_tokens or 0,
            )
        return Completion(text=response_text, usage=usage)

    async def list_models(self) -> List[str]:
        """Model identifiers available to the current credential, sorted."""
        client = await self._client()
        try:
            async with client:
                page = await client.models.list()
        except APIError as e:
            raise ThinkerError(f"Groq models API error: {e}") from e
        return sorted(model.id for model in page.data)
