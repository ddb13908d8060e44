"""Direct (non-streaming) search over the insight corpus."""

from fastapi import APIRouter, Depends, HTTPException

from insight_assistant.api.deps import get_retrieval_engine
from insight_assistant.core.exceptions import RetrievalUnavailable
from insight_assistant.core.logging import get_logger
from insight_assistant.core.retrieval import RetrievalEngine
from insight_assistant.core.schemas_chat import SearchRequest, SearchResponse
from insight_assistant.core.schemas_insights import (
    RetrievalFilters,
    RetrievalQuery,
    RetrievalStrategy,
)

logger = get_logger(__name__)

router = APIRouter()


def _to_retrieval_query(request: SearchRequest) -> RetrievalQuery:
    filters = RetrievalFilters(
        min_value=request.min_value,
        max_effort=request.max_effort,
        min_ratio=request.min_ratio,
    )
    if request.search_type == RetrievalStrategy.COMPANY:
        filters = filters.model_copy(update={"company": request.query.strip()})
    return RetrievalQuery(
        text=request.query.strip(),
        strategy=request.search_type,
        k=request.k,
        include_scores=request.include_scores,
        filters=filters,
    )


@router.post("/search", response_model=SearchResponse, response_model_by_alias=True)
async def search_insights(
    request: SearchRequest,
    engine: RetrievalEngine = Depends(get_retrieval_engine),
) -> SearchResponse:
    """
    Search insights and actions with an explicit strategy.

    Args:
        request: Query text, strategy name and optional filters

    Returns:
        Matching documents, optional similarity scores and the effective criteria

    Raises:
        HTTPException 400: Missing query for a strategy that needs one, or unknown impact level
        HTTPException 503: Semantic index unavailable
    """
    if request.requires_query and not request.query.strip():
        raise HTTPException(status_code=400, detail="Query is required for this search type")

    try:
        result = await engine.retrieve(_to_retrieval_query(request))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except RetrievalUnavailable as e:
        logger.error(f"Search failed, index unavailable: {e}")
        raise HTTPException(status_code=503, detail="Search backend unavailable") from e
    except Exception as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error") from e

    logger.info(
        f"Search {request.search_type.value} for '{request.query[:60]}' returned {len(result.documents)} results"
    )

    return SearchResponse(
        results=list(result.documents),
        scores=list(result.scores) if result.scores is not None else None,
        search_type=request.search_type,
        query=request.query,
        metadata=result.criteria,
    )
