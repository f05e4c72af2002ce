import json

import pytest

from libs.core.exceptions import InvalidFormatError
from libs.core.models import PROTECTED_FOLDERS
from libs.storage import MemoryBackend
from libs.store import Topic
from libs.store.database import STORAGE_KEY


def test_export_contains_document_and_export_fields(db, clock) -> None:
    db.add_prompt("question", folder="work")
    exported = json.loads(db.export_data())

    assert exported["exportVersion"] == "2.0"
    assert exported["exportedAt"] == clock.now
    assert exported["records"][0]["question"] == "question"
    assert "createdAt" in exported["records"][0]
    assert exported["folders"] == [*PROTECTED_FOLDERS, "work"]


def test_round_trip_into_fresh_store(db, make_db) -> None:
    db.add_sample_data()
    db.add_prompt("extra question", folder="work")
    original = db.data

    other = make_db(backend=MemoryBackend())
    result = other.import_data(db.export_data())

    assert result.success
    assert result.imported == result.total == 4
    imported = other.data
    assert imported.records == original.records
    assert imported.folders == original.folders
    assert imported.categories == original.categories
    assert imported.settings == original.settings


def test_replace_import_forces_save_and_publishes(db, backend) -> None:
    seen = []
    db.subscribe(Topic.DATA_IMPORTED, seen.append)
    db.add_prompt("to be replaced")

    db.import_data({"records": [{"id": "x", "question": "Q", "answer": "A", "category": "general"}]})

    assert [r.id for r in db.data.records] == ["x"]
    assert [r["id"] for r in backend.get(STORAGE_KEY)["records"]] == ["x"]
    assert not db.is_dirty
    assert len(seen) == 1


def test_merge_import_is_idempotent(db) -> None:
    db.add_prompt("kept question")
    payload = json.dumps(
        {
            "records": [
                {"id": "m1", "question": "Q1", "answer": "A1", "category": "general", "folder": "inbox"},
                {"id": "m2", "question": "Q2", "answer": "A2", "category": "general"},
            ],
            "folders": ["inbox", "later"],
        }
    )

    first = db.import_data(payload, merge=True)
    second = db.import_data(payload, merge=True)

    assert (first.imported, first.total) == (2, 3)
    assert (second.imported, second.total) == (0, 3)
    assert db.data.folders == [*PROTECTED_FOLDERS, "inbox", "later"]


def test_merge_skips_existing_ids(db) -> None:
    record = db.add_prompt("original")
    payload = {"records": [{"id": record.id, "question": "clash", "answer": "A", "category": "general"}]}
    assert db.import_data(payload, merge=True).imported == 0
    assert db.get_prompt(record.id).question == "original"


def test_import_legacy_key(db) -> None:
    result = db.import_data({"qas": [{"id": "old", "question": "Q", "answer": "A", "category": "general"}]})
    assert result.imported == 1


def test_invalid_json_is_rejected(db) -> None:
    record = db.add_prompt("question")
    with pytest.raises(InvalidFormatError) as info:
        db.import_data("{not json")
    assert info.value.errors[0].startswith("Invalid JSON")
    assert [r.id for r in db.data.records] == [record.id]
    assert db.error_log.get_errors()[0]["context"] == "importData"


def test_structurally_invalid_payload_is_rejected(db) -> None:
    db.add_prompt("question")
    with pytest.raises(InvalidFormatError) as info:
        db.import_data({"records": [{"id": "", "question": "Q", "answer": "A", "category": "c"}]})
    assert info.value.errors == ["Record 0: missing id"]
    assert str(info.value).startswith("Invalid data format:")
    assert len(db.data.records) == 1


def test_type_errors_in_records_are_rejected(db) -> None:
    payload = {"records": [{"id": "a", "question": "Q", "answer": "A", "category": "c", "views": "many"}]}
    with pytest.raises(InvalidFormatError):
        db.import_data(payload)
    assert db.data.records == []


def test_undecodable_bytes_are_rejected(db) -> None:
    with pytest.raises(InvalidFormatError) as info:
        db.import_data(b'{"records": [], "x": "\xff\xfe"}')
    assert info.value.errors[0].startswith("Invalid JSON")
    assert db.error_log.get_errors()[0]["context"] == "importData"
