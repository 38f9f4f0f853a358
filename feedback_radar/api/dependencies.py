"""FastAPI dependencies for the AI and search collaborators."""
from feedback_radar.services.ai_base import JudgmentService
from feedback_radar.services.search_service import SimilaritySearch
from feedback_radar.services import search_service


def get_judgment_service() -> JudgmentService:
    from feedback_radar.services.ai_service import ClaudeService

    return ClaudeService()


def get_search_service() -> SimilaritySearch:
    return search_service.get_search_service()
