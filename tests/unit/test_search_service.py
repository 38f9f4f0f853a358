"""
Unit tests for QdrantSearchService with a mocked Qdrant client.

Tests collection bootstrap, point upserts, result mapping and the
never-raise contract on backend failures.
"""
from unittest.mock import MagicMock

import pytest
from qdrant_client import models

from feedback_radar.services.search_service import QdrantSearchService, SearchResult


@pytest.fixture
def qdrant_client():
    client = MagicMock()
    client.collection_exists.return_value = True
    return client


@pytest.fixture
def search(qdrant_client):
    return QdrantSearchService(
        client=qdrant_client,
        collection_name="feedback_test",
        embedding_model="BAAI/bge-small-en-v1.5",
    )


class TestCollection:
    @pytest.mark.asyncio
    async def test_creates_missing_collection_once(self, search, qdrant_client):
        qdrant_client.collection_exists.return_value = False
        qdrant_client.get_embedding_size.return_value = 384
        qdrant_client.query_points.return_value = MagicMock(points=[])

        await search.find_similar_feedback("a")
        await search.find_similar_feedback("b")

        qdrant_client.create_collection.assert_called_once()
        vectors_config = qdrant_client.create_collection.call_args.kwargs["vectors_config"]
        assert vectors_config.size == 384
        assert vectors_config.distance == models.Distance.COSINE


class TestIndexFeedback:
    @pytest.mark.asyncio
    async def test_upserts_point_with_payload(self, search, qdrant_client):
        await search.index_feedback(12, "Checkout fails", {"source": "github"})

        points = qdrant_client.upsert.call_args.kwargs["points"]
        assert len(points) == 1
        assert points[0].id == 12
        assert points[0].payload == {"content": "Checkout fails", "source": "github"}
        assert qdrant_client.upsert.call_args.kwargs["collection_name"] == "feedback_test"

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, search, qdrant_client):
        qdrant_client.upsert.side_effect = ConnectionError("qdrant down")

        # Must not raise
        await search.index_feedback(12, "Checkout fails")


class TestFindSimilar:
    @pytest.mark.asyncio
    async def test_maps_points_in_rank_order(self, search, qdrant_client):
        qdrant_client.query_points.return_value = MagicMock(
            points=[
                MagicMock(id=7, score=0.93, payload={"content": "x"}),
                MagicMock(id=3, score=0.81, payload=None),
            ]
        )

        results = await search.find_similar_feedback("Checkout fails", limit=2)

        assert results == [
            SearchResult(id="7", score=0.93, metadata={"content": "x"}),
            SearchResult(id="3", score=0.81, metadata={}),
        ]
        assert qdrant_client.query_points.call_args.kwargs["limit"] == 2

    @pytest.mark.asyncio
    async def test_failure_returns_empty(self, search, qdrant_client):
        qdrant_client.query_points.side_effect = ConnectionError("qdrant down")

        assert await search.find_similar_feedback("Checkout fails") == []
