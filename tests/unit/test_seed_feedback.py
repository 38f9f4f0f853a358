"""
Unit tests for development data seeding.

Tests sample insertion and indexing, skip-when-populated, and the
week-to-date edition backfill.
"""
import json
from datetime import date

import pytest
from sqlalchemy.orm import Session

from feedback_radar.models import DailyEdition, Feedback
from feedback_radar.seed_feedback import (
    SAMPLE_FEEDBACK,
    backfill_week_editions,
    seed_feedback,
    week_to_date,
)
from feedback_radar.services.feedback_store import FeedbackStore
from tests.factories import create_feedback


@pytest.fixture
def store(db: Session) -> FeedbackStore:
    return FeedbackStore(db)


class TestSeedFeedback:
    @pytest.mark.asyncio
    async def test_inserts_and_indexes_samples(self, db, store, mock_search):
        created = await seed_feedback(store, mock_search)

        assert len(created) == len(SAMPLE_FEEDBACK)
        assert db.query(Feedback).count() == len(SAMPLE_FEEDBACK)
        first = created[0]
        assert mock_search.indexed[first.id] == {
            "content": first.content,
            "source": first.source,
            "timestamp": first.timestamp,
        }

    @pytest.mark.asyncio
    async def test_later_samples_are_newer(self, store, mock_search):
        created = await seed_feedback(store, mock_search)

        timestamps = [f.timestamp for f in created]
        assert timestamps == sorted(timestamps)
        assert len(set(timestamps)) == len(timestamps)

    @pytest.mark.asyncio
    async def test_metadata_stored_as_json(self, store, mock_search):
        created = await seed_feedback(store, mock_search)

        assert json.loads(created[0].metadata_json) == SAMPLE_FEEDBACK[0]["metadata"]

    @pytest.mark.asyncio
    async def test_skips_when_feedback_exists(self, db, store, mock_search):
        create_feedback(db)

        created = await seed_feedback(store, mock_search)

        assert created == []
        assert db.query(Feedback).count() == 1
        assert mock_search.call_count("index_feedback") == 0


class TestWeekToDate:
    def test_monday_is_single_day(self):
        assert week_to_date(date(2026, 10, 19)) == ["2026-10-19"]

    def test_midweek(self):
        assert week_to_date(date(2026, 10, 21)) == ["2026-10-19", "2026-10-20", "2026-10-21"]

    def test_sunday_covers_whole_week(self):
        dates = week_to_date(date(2026, 10, 25))

        assert len(dates) == 7
        assert dates[0] == "2026-10-19"
        assert dates[-1] == "2026-10-25"


class TestBackfillWeekEditions:
    @pytest.mark.asyncio
    async def test_stores_one_edition_per_day(self, db, store, mock_judgment):
        dates = await backfill_week_editions(store, mock_judgment, today=date(2026, 10, 21))

        assert dates == ["2026-10-19", "2026-10-20", "2026-10-21"]
        stored = {row.edition_date for row in db.query(DailyEdition).all()}
        assert stored == set(dates)
        assert mock_judgment.call_count("generate_newsroom_edition") == 1

    @pytest.mark.asyncio
    async def test_replaces_existing_edition(self, db, store, mock_judgment):
        store.upsert_daily_edition("2026-10-19", json.dumps({"old": True}))

        await backfill_week_editions(store, mock_judgment, today=date(2026, 10, 19))

        row = db.query(DailyEdition).one()
        assert json.loads(row.content)["topStory"]["headline"] == "Checkout crashes in production"
