"""
Similarity search over feedback content.

Qdrant stores one point per feedback item; FastEmbed (via qdrant-client's
Document inference) embeds the text on both index and query, so callers only
ever deal with raw text.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from qdrant_client import QdrantClient, models

from feedback_radar.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchResult:
    id: str  # Opaque point id; callers parse feedback ids out of it
    score: float  # Ranking only, scale is backend-specific
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"id": self.id, "score": self.score, "metadata": self.metadata}


class SimilaritySearch(ABC):
    """
    Ranked-neighbour lookup over feedback content.

    Implementations must never raise: indexing failures are logged and
    swallowed, query failures return an empty list.
    """

    @abstractmethod
    async def index_feedback(
        self, feedback_id: int, content: str, metadata: Optional[dict] = None
    ) -> None:
        pass

    @abstractmethod
    async def find_similar_feedback(self, query: str, limit: int = 5) -> List[SearchResult]:
        pass


class QdrantSearchService(SimilaritySearch):
    """Qdrant-backed similarity search using local FastEmbed embeddings."""

    def __init__(
        self,
        client: Optional[QdrantClient] = None,
        collection_name: Optional[str] = None,
        embedding_model: Optional[str] = None,
    ):
        self._client = client
        self.collection_name = collection_name or settings.qdrant_collection
        self.embedding_model = embedding_model or settings.embedding_model
        self._collection_ready = False

    @property
    def client(self) -> QdrantClient:
        if self._client is None:
            self._client = QdrantClient(
                url=settings.qdrant_url,
                api_key=settings.qdrant_api_key or None,
                timeout=settings.qdrant_timeout,
            )
        return self._client

    def _ensure_collection(self) -> None:
        if self._collection_ready:
            return
        if not self.client.collection_exists(self.collection_name):
            self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(
                    size=self.client.get_embedding_size(self.embedding_model),
                    distance=models.Distance.COSINE,
                ),
            )
            logger.info("Created Qdrant collection %s", self.collection_name)
        self._collection_ready = True

    async def index_feedback(
        self, feedback_id: int, content: str, metadata: Optional[dict] = None
    ) -> None:
        """Upsert one feedback item. Failures are logged, never raised."""
        try:
            self._ensure_collection()
            self.client.upsert(
                collection_name=self.collection_name,
                points=[
                    models.PointStruct(
                        id=feedback_id,
                        vector=models.Document(text=content, model=self.embedding_model),
                        payload={"content": content, **(metadata or {})},
                    )
                ],
            )
        except Exception as e:
            logger.error("Indexing error for feedback %s: %s", feedback_id, e)

    async def find_similar_feedback(self, query: str, limit: int = 5) -> List[SearchResult]:
        """
        Find feedback items similar to the query text.

        Args:
            query: Text to search with (usually another item's content)
            limit: Maximum number of neighbours (topK)

        Returns:
            Results in rank order, or [] if the search backend fails
        """
        try:
            self._ensure_collection()
            response = self.client.query_points(
                collection_name=self.collection_name,
                query=models.Document(text=query, model=self.embedding_model),
                limit=limit,
                with_payload=True,
            )
        except Exception as e:
            logger.error("Search error: %s", e)
            return []

        return [
            SearchResult(
                id=str(point.id),
                score=point.score or 0.0,
                metadata=point.payload or {},
            )
            for point in response.points
        ]


_search_service: Optional[SimilaritySearch] = None


def get_search_service() -> SimilaritySearch:
    """Process-wide search service (FastAPI dependency and worker helper)."""
    global _search_service
    if _search_service is None:
        _search_service = QdrantSearchService()
    return _search_service
