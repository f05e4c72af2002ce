from pathlib import Path

import pytest

from libs.core.settings import Settings
from libs.storage import FileBackend, MemoryBackend, SQLBackend, create_backend


@pytest.fixture(params=["memory", "file", "sql"])
def any_backend(request, tmp_path: Path):
    if request.param == "memory":
        yield MemoryBackend()
    elif request.param == "file":
        yield FileBackend(tmp_path / "store")
    else:
        backend = SQLBackend(f"sqlite:///{tmp_path / 'kv.db'}")
        yield backend
        backend.dispose()


def test_set_get_remove(any_backend) -> None:
    assert any_backend.get("missing", "fallback") == "fallback"
    assert any_backend.set("data", {"records": [1, 2], "name": "ü"}) is True
    assert any_backend.get("data") == {"records": [1, 2], "name": "ü"}
    assert any_backend.set("data", {"records": []}) is True
    assert any_backend.get("data") == {"records": []}
    assert any_backend.remove("data") is True
    assert any_backend.get("data") is None


def test_size_counts_utf8_bytes(any_backend) -> None:
    assert any_backend.size() == 0
    any_backend.set("a", "ü")
    # '"ü"' is four bytes in UTF-8
    assert any_backend.size() == 4


def test_clear_only_touches_prefix(tmp_path: Path) -> None:
    ours = FileBackend(tmp_path, prefix="qa_")
    theirs = FileBackend(tmp_path, prefix="other_")
    ours.set("data", 1)
    theirs.set("data", 2)

    assert ours.clear() is True
    assert ours.get("data") is None
    assert theirs.get("data") == 2


def test_corrupt_file_degrades_to_default(tmp_path: Path) -> None:
    backend = FileBackend(tmp_path, prefix="p_")
    (tmp_path / "p_data.json").write_text("{broken", encoding="utf-8")
    assert backend.get("data", {}) == {}


def test_unserializable_value_returns_false() -> None:
    backend = MemoryBackend()
    assert backend.set("data", object()) is False
    assert backend.items == {}


def test_create_backend_from_settings(tmp_path: Path) -> None:
    memory = create_backend(Settings(storage_backend="memory", storage_prefix="x_"))
    assert isinstance(memory, MemoryBackend)
    assert memory.prefix == "x_"

    files = create_backend(Settings(storage_backend="file", storage_dir=tmp_path))
    assert isinstance(files, FileBackend)
    assert files.directory == tmp_path

    sql = create_backend(Settings(storage_backend="sql", storage_uri="sqlite://"))
    assert isinstance(sql, SQLBackend)
    sql.dispose()
