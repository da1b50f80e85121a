"""Tests for the dashboard read models."""

import pytest

from burn_tracker.services.burn_report import BurnReportService, display_date

from conftest import START_DATE


@pytest.fixture
async def synced_db(sync_service, session_maker):
    await sync_service.sync()
    async with session_maker() as session:
        yield session


def test_display_date():
    assert display_date("2025-12-29") == "Dec 29"
    assert display_date("2026-01-05") == "Jan 5"


class TestDailySeries:

    @pytest.mark.asyncio
    async def test_series_mirrors_rollups(self, synced_db):
        points = await BurnReportService(synced_db, START_DATE).get_daily_series(
            today="2026-01-05"
        )

        assert [p.date for p in points] == ["2025-12-29", "2025-12-30"]
        assert [p.cumulative_uni for p in points] == [15.0, 18.0]
        assert points[-1].usd_value == points[-1].cumulative_usd_value == 72.0
        assert not any(p.is_live for p in points)

    @pytest.mark.asyncio
    async def test_last_point_live_when_today(self, synced_db):
        points = await BurnReportService(synced_db, START_DATE).get_daily_series(
            today="2025-12-30"
        )
        assert [p.is_live for p in points] == [False, True]

    @pytest.mark.asyncio
    async def test_series_respects_start_date(self, synced_db):
        points = await BurnReportService(synced_db, "2025-12-30").get_daily_series(
            today="2026-01-05"
        )
        assert [p.date for p in points] == ["2025-12-30"]


class TestSummary:

    @pytest.mark.asyncio
    async def test_summary_values(self, synced_db):
        summary = await BurnReportService(synced_db, START_DATE).get_summary(
            current_price=5.0, today="2025-12-30"
        )

        assert summary.total_uni_burned == 18.0
        assert summary.current_usd_value == 90.0
        # stored at ingestion price 4.0
        assert summary.historical_usd_value == 72.0
        assert summary.today_burns == 3.0
        assert summary.current_uni_price == 5.0
        assert summary.last_updated == "2026-01-05T12:00:00.000000Z"

    @pytest.mark.asyncio
    async def test_summary_without_price(self, synced_db):
        summary = await BurnReportService(synced_db, START_DATE).get_summary(
            current_price=None, today="2026-01-05"
        )

        assert summary.current_usd_value is None
        assert summary.today_burns == 0.0
        assert summary.to_dict()["total_uni_burned"] == 18.0
