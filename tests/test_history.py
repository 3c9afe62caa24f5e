"""Tests for the persistent search history."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from soap_workbench.history import HISTORY_ENV_VAR, SearchHistoryEntry, SearchHistoryStore


@pytest.fixture
def store(tmp_path):
    return SearchHistoryStore(tmp_path / "nested" / "history.json")


@pytest.mark.asyncio
async def test_empty_store(store):
    assert await store.get_all() == []
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_save_persists_normalized_entry(store):
    saved = await store.save(
        SearchHistoryEntry(
            primary_source="  https://example.com/a?wsdl ",
            additional_sources=["https://example.com/b.xsd", " HTTPS://EXAMPLE.COM/B.XSD", ""],
            execution_endpoint=" https://example.com/a ",
        )
    )

    assert saved.primary_source == "https://example.com/a?wsdl"
    assert saved.additional_sources == ["https://example.com/b.xsd"]
    assert saved.execution_endpoint == "https://example.com/a"

    data = json.loads(store.path.read_text(encoding="utf-8"))
    assert len(data) == 1
    assert data[0]["id"] == saved.id
    assert "display_name" not in data[0]

    loaded = await store.get(saved.id)
    assert loaded.primary_source == saved.primary_source
    assert loaded.saved_at == saved.saved_at


@pytest.mark.asyncio
async def test_equal_search_is_refreshed_not_duplicated(store):
    first = await store.save(
        SearchHistoryEntry(
            primary_source="https://example.com/a?wsdl",
            additional_sources=["https://example.com/b.xsd", "https://example.com/c.xsd"],
        )
    )
    second = await store.save(
        SearchHistoryEntry(
            primary_source="HTTPS://EXAMPLE.COM/A?WSDL ",
            additional_sources=["https://example.com/c.xsd", "https://example.com/B.xsd"],
        )
    )

    entries = await store.get_all()
    assert len(entries) == 1
    assert second.id == first.id
    assert entries[0].primary_source == "HTTPS://EXAMPLE.COM/A?WSDL"


@pytest.mark.asyncio
async def test_follow_imports_distinguishes_searches(store):
    await store.save(SearchHistoryEntry(primary_source="https://example.com/a?wsdl"))
    await store.save(
        SearchHistoryEntry(primary_source="https://example.com/a?wsdl", follow_imports=False)
    )

    assert len(await store.get_all()) == 2


@pytest.mark.asyncio
async def test_entries_are_listed_most_recent_first(store):
    older = SearchHistoryEntry(
        primary_source="https://example.com/old?wsdl",
        saved_at=datetime.now(timezone.utc) - timedelta(days=1),
    )
    store._write([older])

    await store.save(SearchHistoryEntry(primary_source="https://example.com/new?wsdl"))

    assert [entry.primary_source for entry in await store.get_all()] == [
        "https://example.com/new?wsdl",
        "https://example.com/old?wsdl",
    ]


def test_display_name():
    assert SearchHistoryEntry(primary_source="https://example.com/a").display_name == "https://example.com/a"
    assert SearchHistoryEntry(primary_source="  ").display_name == "(Unnamed search)"
    assert SearchHistoryEntry().to_dict()["display_name"] == "(Unnamed search)"


def test_entry_round_trips_through_dict():
    entry = SearchHistoryEntry(
        primary_source="https://example.com/a",
        additional_sources=["https://example.com/b"],
        follow_imports=False,
    )

    restored = SearchHistoryEntry.from_dict(entry.to_dict())

    assert restored.id == entry.id
    assert restored == entry
    assert restored.saved_at == entry.saved_at


def test_store_path_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv(HISTORY_ENV_VAR, str(tmp_path / "custom.json"))
    assert SearchHistoryStore.from_env().path == tmp_path / "custom.json"
