"""Test fixtures for Feedback Radar."""

from tests.fixtures.mocks import MockJudgmentService, MockSearchService

__all__ = [
    "MockJudgmentService",
    "MockSearchService",
]
