"""Semantic index: nearest-neighbour search over corpus documents.

The retrieval engine only depends on the ``SemanticIndex`` protocol. The
bundled implementation keeps the corpus embeddings in a numpy matrix and
ranks by cosine similarity; ties keep corpus order.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from insight_assistant.core.embeddings import embed_texts_async
from insight_assistant.core.exceptions import RetrievalUnavailable
from insight_assistant.core.logging import get_logger
from insight_assistant.core.schemas_insights import ActionDocument, InsightDocument

logger = get_logger(__name__)

Embedder = Callable[[list[str]], Awaitable[list[list[float]]]]
ScoredDocument = tuple[InsightDocument | ActionDocument, float]


class SemanticIndex(Protocol):
    """Returns the k most similar documents for a query, best first."""

    async def search(self, query: str, k: int) -> list[ScoredDocument]:
        ...


class EmbeddingIndex:
    """In-memory cosine-similarity index over precomputed document embeddings."""

    def __init__(
        self,
        documents: Sequence[InsightDocument | ActionDocument],
        matrix: np.ndarray,
        embed: Embedder = embed_texts_async,
    ):
        if len(documents) != matrix.shape[0]:
            raise ValueError(
                f"Index has {len(documents)} documents but {matrix.shape[0]} embeddings"
            )
        self._documents = tuple(documents)
        self._matrix = matrix
        self._embed = embed

    @classmethod
    async def build(
        cls,
        documents: Sequence[InsightDocument | ActionDocument],
        embed: Embedder = embed_texts_async,
    ) -> "EmbeddingIndex":
        """
        Embed every document and return a searchable index.

        Raises:
            RetrievalUnavailable: If the embedding backend fails
        """
        try:
            vectors = await embed([doc.page_content for doc in documents])
        except Exception as e:
            logger.error(f"Index build failed: {e}", exc_info=True)
            raise RetrievalUnavailable("Failed to embed corpus documents") from e

        matrix = np.array(vectors, dtype=np.float32).reshape(len(documents), -1)
        logger.info(f"Semantic index built over {len(documents)} documents")
        return cls(documents, matrix, embed)

    def __len__(self) -> int:
        return len(self._documents)

    async def search(self, query: str, k: int) -> list[ScoredDocument]:
        """
        Rank documents by cosine similarity to the query.

        Raises:
            RetrievalUnavailable: If the query cannot be embedded
        """
        if k <= 0 or not self._documents:
            return []

        try:
            vectors = await self._embed([query])
        except Exception as e:
            logger.error(f"Query embedding failed: {e}", exc_info=True)
            raise RetrievalUnavailable("Failed to embed search query") from e

        query_vector = np.array(vectors[0], dtype=np.float32).reshape(1, -1)
        scores = cosine_similarity(query_vector, self._matrix)[0]
        order = np.argsort(-scores, kind="stable")[:k]
        return [(self._documents[i], float(scores[i])) for i in order]
