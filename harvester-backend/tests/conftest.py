"""Shared fixtures for harvester tests."""

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

import orjson
import pytest

from apps.harvester.id_source import IdSource
from apps.harvester.ingestion import IngestionScheduler
from utils.db import RecordStore


class FakeClient:
    """In-memory stand-in for PlaylinerClient.

    Payloads default to a small dict per id and kind. Map an id to None to
    simulate an absent payload, or to an exception instance to have the call raise.
    """

    def __init__(
        self,
        versions: Optional[dict[int, Any]] = None,
        fulls: Optional[dict[int, Any]] = None,
    ) -> None:
        self.versions = versions or {}
        self.fulls = fulls or {}
        self.calls: list[tuple[str, int]] = []

    @staticmethod
    def _resolve(table: dict[int, Any], kind: str, news_id: int) -> Any:
        value = table.get(news_id, {"newsId": news_id, "kind": kind})
        if isinstance(value, Exception):
            raise value
        return value

    async def fetch_version(self, news_id: int) -> Any:
        self.calls.append(("version", news_id))
        return self._resolve(self.versions, "version", news_id)

    async def fetch_full(self, news_id: int) -> Any:
        self.calls.append(("full", news_id))
        return self._resolve(self.fulls, "full", news_id)

    def fetched_ids(self) -> list[int]:
        return [news_id for kind, news_id in self.calls if kind == "version"]


class BlockingClient(FakeClient):
    """FakeClient whose version lookup waits until released."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_version(self, news_id: int) -> Any:
        self.entered.set()
        await self.release.wait()
        return await super().fetch_version(news_id)


class RecordingSleep:
    """Pacing stub that records requested pauses instead of sleeping."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def write_ids(path: Path, ids: list[Any], success: bool = True) -> Path:
    path.write_bytes(orjson.dumps({"success": success, "data": [{"id": i, "title": f"news {i}"} for i in ids]}))
    return path


@pytest.fixture
def ids_file(tmp_path: Path) -> Callable[..., Path]:
    """Write an id snapshot and return its path."""

    def _write(ids: list[Any], success: bool = True) -> Path:
        return write_ids(tmp_path / "data.json", ids, success=success)

    return _write


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    record_store = RecordStore(str(tmp_path / "db" / "test.db"))
    record_store.init_schema()
    return record_store


@pytest.fixture
def client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_scheduler(
    tmp_path: Path,
    store: RecordStore,
    client: FakeClient,
    sleep: RecordingSleep,
) -> Callable[..., IngestionScheduler]:
    """Build an IngestionScheduler over the given ids with test doubles."""

    def _make(ids: Optional[list[Any]] = None, **kwargs: Any) -> IngestionScheduler:
        path = tmp_path / "data.json"
        if ids is not None:
            write_ids(path, ids)

        options = {
            "batch_size": 10,
            "delay_ms": 500,
            "max_item_attempts": 0,
            "checkpoint_enabled": True,
        }
        options.update(kwargs)

        scheduler = IngestionScheduler(
            id_source=IdSource(str(path), dedupe=options.pop("dedupe", False)),
            client=options.pop("client", client),
            store=options.pop("store", store),
            sleep=sleep,
            **options,
        )
        scheduler.load_ids()
        return scheduler

    return _make
