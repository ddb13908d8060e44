"""Completion service port and its Anthropic streaming adapter."""

from collections.abc import AsyncIterator
from typing import Protocol

from insight_assistant.core.exceptions import CompletionServiceFailure
from insight_assistant.core.logging import get_logger

logger = get_logger(__name__)


class CompletionService(Protocol):
    """Streams generated text for a system prompt and message list."""

    def stream_text(self, system: str, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        ...


class AnthropicCompletionService:
    """Streams text deltas from the Anthropic Messages API.

    Closing the iterator exits the underlying stream context, which closes
    the provider connection and stops generation.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def stream_text(self, system: str, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        # Import here to avoid loading if API key not set
        from anthropic import AsyncAnthropic

        client = AsyncAnthropic(api_key=self.api_key)
        total_input = 0
        total_output = 0

        try:
            async with client.messages.stream(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=messages,
            ) as stream:
                async for event in stream:
                    if getattr(event, "type", None) != "content_block_delta":
                        continue
                    text = getattr(event.delta, "text", None)
                    if text:
                        yield text

                final_message = await stream.get_final_message()
                if hasattr(final_message, "usage"):
                    total_input = getattr(final_message.usage, "input_tokens", 0)
                    total_output = getattr(final_message.usage, "output_tokens", 0)

        except CompletionServiceFailure:
            raise
        except Exception as e:
            raise CompletionServiceFailure(f"Completion stream failed: {e}") from e

        logger.info(
            f"Completion usage: model={self.model}, input={total_input}, output={total_output}"
        )
