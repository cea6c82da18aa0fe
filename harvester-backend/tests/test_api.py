"""Tests for the admin API routes."""

import time

import pytest
from fastapi.testclient import TestClient

from apps.harvester.ingestion import SchedulerState
from apps.harvester.scheduler import HarvestScheduler
from services.api.app import create_app


@pytest.fixture
def harvester(make_scheduler) -> HarvestScheduler:
    return HarvestScheduler(make_scheduler([101, 102, 103], batch_size=2), publish_events=False)


@pytest.fixture
def api(harvester):
    with TestClient(create_app(harvester, enable_cron=False)) as test_client:
        yield test_client


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class TestRecords:
    """Tests for record routes."""

    def test_list_empty(self, api) -> None:
        response = api.get("/api/news-data")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == []
        assert body["pagination"] == {"page": 1, "limit": 50, "total": 0, "totalPages": 0}

    def test_list_sorted_desc_with_camel_case_fields(self, api, store) -> None:
        for news_id in (1, 3, 2):
            store.upsert(news_id, {"v": news_id}, None)

        body = api.get("/api/news-data", params={"page": 1, "limit": 2}).json()

        assert [item["id"] for item in body["data"]] == [3, 2]
        assert body["data"][0]["versionData"] == {"v": 3}
        assert body["data"][0]["fullData"] is None
        assert "fetchedAt" in body["data"][0]
        assert "updatedAt" in body["data"][0]
        assert body["pagination"]["totalPages"] == 2

    @pytest.mark.parametrize(
        "params,expected",
        [
            ({"page": 0}, (1, 50)),
            ({"page": "abc", "limit": "x"}, (1, 50)),
            ({"page": 2, "limit": -5}, (2, 50)),
            ({"limit": 1000}, (1, 500)),
        ],
    )
    def test_list_falls_back_to_default_paging(self, api, params, expected) -> None:
        response = api.get("/api/news-data", params=params)

        assert response.status_code == 200
        pagination = response.json()["pagination"]
        assert (pagination["page"], pagination["limit"]) == expected

    def test_invalid_id_uses_error_envelope(self, api) -> None:
        response = api.get("/api/news-data/abc")

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"].startswith("news_id:")

    def test_get_one(self, api, store) -> None:
        store.upsert(101, {"v": 1}, {"f": 1})

        response = api.get("/api/news-data/101")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == 101

    def test_get_missing_is_404(self, api) -> None:
        response = api.get("/api/news-data/999")

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "News data not found"}

    def test_delete(self, api, store) -> None:
        store.upsert(101, None, None)

        response = api.delete("/api/news-data/101")

        assert response.status_code == 200
        assert response.json()["message"] == "Deleted news data with ID: 101"
        assert store.find_by_id(101) is None

    def test_delete_missing_is_404(self, api) -> None:
        assert api.delete("/api/news-data/101").status_code == 404

    def test_stats(self, api, store) -> None:
        store.upsert(1, {"v": 1}, {"f": 1})
        store.upsert(2, {"v": 2}, None)

        body = api.get("/api/news-data/stats/count").json()

        assert body["stats"] == {"total": 2, "withVersionData": 2, "withFullData": 1}


class TestScraper:
    """Tests for scheduler routes."""

    def test_status(self, api, store) -> None:
        store.upsert(1, None, None)

        body = api.get("/api/news-data/scraper/status").json()

        assert body["status"] == {
            "totalIds": 3,
            "currentIndex": 0,
            "isProcessing": False,
            "progress": "0.00%",
            "storedInDatabase": 1,
        }

    def test_trigger_queues_batch(self, api, harvester, store) -> None:
        response = api.post("/api/news-data/scraper/trigger")

        assert response.status_code == 202
        assert response.json()["queued"] is True
        assert wait_for(lambda: harvester.worker.completed == 1)
        assert store.count_all() == 2

        status = api.get("/api/news-data/scraper/status").json()["status"]
        assert status["currentIndex"] == 2
        assert status["progress"] == "66.67%"

    def test_reset(self, api, harvester) -> None:
        api.post("/api/news-data/scraper/trigger")
        assert wait_for(lambda: harvester.worker.completed == 1)

        response = api.post("/api/news-data/scraper/reset")

        assert response.status_code == 200
        assert response.json()["message"] == "Scraper reset to beginning"
        assert harvester.ingestion.current_index == 0

    def test_reset_conflict_while_running(self, api, harvester) -> None:
        harvester.ingestion._state = SchedulerState.RUNNING
        try:
            response = api.post("/api/news-data/scraper/reset")
        finally:
            harvester.ingestion._state = SchedulerState.IDLE

        assert response.status_code == 409
        assert response.json()["success"] is False


class TestService:
    """Tests for health and index routes."""

    def test_health(self, api) -> None:
        body = api.get("/health").json()

        assert body["status"] == "ok"
        assert "timestamp" in body
        assert body["scraper"]["totalIds"] == 3
        assert body["scraper"]["isProcessing"] is False

    def test_index_lists_endpoints(self, api) -> None:
        body = api.get("/").json()

        assert body["name"] == "Playliner Data Scraper API"
        assert "POST /api/news-data/scraper/trigger" in body["endpoints"]
