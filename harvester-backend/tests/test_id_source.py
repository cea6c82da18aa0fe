"""Tests for the id snapshot loader."""

import logging

import orjson

from apps.harvester.id_source import IdSource


def test_loads_ids_in_file_order(ids_file) -> None:
    path = ids_file([103, 101, 102])

    assert IdSource(str(path)).load() == [103, 101, 102]


def test_keeps_duplicates_by_default(ids_file) -> None:
    path = ids_file([1, 2, 1, 3, 2])

    assert IdSource(str(path), dedupe=False).load() == [1, 2, 1, 3, 2]


def test_dedupe_keeps_first_occurrence(ids_file) -> None:
    path = ids_file([1, 2, 1, 3, 2])

    assert IdSource(str(path), dedupe=True).load() == [1, 2, 3]


def test_missing_file_returns_empty(tmp_path, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        ids = IdSource(str(tmp_path / "missing.json")).load()

    assert ids == []
    assert "Failed to read id snapshot" in caplog.text


def test_malformed_json_returns_empty(tmp_path) -> None:
    path = tmp_path / "data.json"
    path.write_text("{not json", encoding="utf-8")

    assert IdSource(str(path)).load() == []


def test_unsuccessful_snapshot_returns_empty(ids_file) -> None:
    path = ids_file([1, 2], success=False)

    assert IdSource(str(path)).load() == []


def test_data_must_be_a_list(tmp_path) -> None:
    path = tmp_path / "data.json"
    path.write_bytes(orjson.dumps({"success": True, "data": {"id": 1}}))

    assert IdSource(str(path)).load() == []


def test_skips_entries_without_integer_id(tmp_path, caplog) -> None:
    path = tmp_path / "data.json"
    path.write_bytes(
        orjson.dumps(
            {
                "success": True,
                "data": [{"id": 1}, {"title": "no id"}, {"id": "2"}, {"id": True}, "junk", {"id": 3}],
            }
        )
    )

    with caplog.at_level(logging.WARNING):
        ids = IdSource(str(path)).load()

    assert ids == [1, 3]
    assert "Skipped entries without an integer id" in caplog.text
