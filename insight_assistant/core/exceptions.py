"""Error taxonomy for retrieval, classification, card generation and streaming."""


class InsightAssistantError(Exception):
    """Base class for service errors."""


class ClassificationFailure(InsightAssistantError):
    """The LLM classifier errored, timed out or returned invalid output.

    Always recovered by the next classifier in the chain.
    """


class RetrievalUnavailable(InsightAssistantError):
    """The semantic index or its embedding backend cannot serve a search."""


class CardGenerationFailure(InsightAssistantError):
    """Card generation failed; callers degrade to an empty card list."""


class CompletionServiceFailure(InsightAssistantError):
    """The completion service failed to start or broke off mid-stream."""
