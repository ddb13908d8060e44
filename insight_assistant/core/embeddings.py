"""OpenAI embeddings generation with validation."""

import asyncio

from openai import OpenAI

from insight_assistant.core.config import get_settings
from insight_assistant.core.logging import get_logger

logger = get_logger(__name__)

# OpenAI accepts up to 2048 inputs per request
MAX_BATCH_SIZE = 2048


def _get_client() -> OpenAI:
    """Get OpenAI client instance."""
    settings = get_settings()
    return OpenAI(api_key=settings.OPENAI_API_KEY)


def embed_texts(texts: list[str]) -> list[list[float]]:
    """
    Generate embeddings for a list of texts using OpenAI.

    Args:
        texts: List of text strings to embed

    Returns:
        List of embedding vectors, in input order

    Raises:
        ValueError: If embedding dimension doesn't match expected EMBEDDING_DIM
        Exception: If OpenAI API call fails
    """
    if not texts:
        return []

    settings = get_settings()
    client = _get_client()

    embeddings: list[list[float]] = []
    try:
        for start in range(0, len(texts), MAX_BATCH_SIZE):
            batch = texts[start : start + MAX_BATCH_SIZE]
            response = client.embeddings.create(
                model=settings.EMBEDDING_MODEL,
                input=batch,
            )

            for i, embedding_obj in enumerate(response.data):
                embedding = embedding_obj.embedding
                if len(embedding) != settings.EMBEDDING_DIM:
                    raise ValueError(
                        f"Embedding dimension mismatch for text {start + i}: "
                        f"expected {settings.EMBEDDING_DIM}, got {len(embedding)}"
                    )
                embeddings.append(embedding)

    except Exception as e:
        logger.error(f"Failed to generate embeddings: {e}")
        raise

    logger.debug(f"Generated {len(embeddings)} embeddings using {settings.EMBEDDING_MODEL}")
    return embeddings


async def embed_texts_async(texts: list[str]) -> list[list[float]]:
    """Async wrapper around embed_texts using thread pool."""
    return await asyncio.to_thread(embed_texts, texts)
