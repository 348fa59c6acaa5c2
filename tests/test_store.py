import threading
from unittest.mock import patch

import pytest

from k3sjoin.store import (MemoryStore, FileStore, PublishedArtifact,
                           ArtifactNotFound, StoreError, NODE_TOKEN,
                           KUBECONFIG)


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore("test")
    return FileStore(str(tmp_path / "store"))


def test_put_get(store):
    store.put(NODE_TOKEN, b"abc123")
    assert store.get(NODE_TOKEN) == b"abc123"
    # get is not destructive
    assert store.get(NODE_TOKEN) == b"abc123"


def test_put_replaces(store):
    store.put(NODE_TOKEN, b"old")
    store.put(NODE_TOKEN, b"new")
    assert store.get(NODE_TOKEN) == b"new"
    assert store.names() == [NODE_TOKEN]


def test_get_missing(store):
    with pytest.raises(ArtifactNotFound):
        store.get(NODE_TOKEN)
    assert not store.exists(NODE_TOKEN)


def test_delete_missing_is_noop(store):
    store.delete(NODE_TOKEN)
    assert store.names() == []


def test_delete_all(store):
    store.put(NODE_TOKEN, b"abc123")
    store.put(KUBECONFIG, b"apiVersion: v1")

    assert sorted(store.delete_all()) == [KUBECONFIG, NODE_TOKEN]
    assert store.names() == []
    assert store.delete_all() == []


def test_artifact_not_found_message():
    assert str(ArtifactNotFound("node-token")) == \
        "artifact 'node-token' not found"


def test_published_artifact():
    artifact = PublishedArtifact(NODE_TOKEN, b"abc123")
    assert artifact.created is not None
    with pytest.raises(TypeError):
        PublishedArtifact(NODE_TOKEN, "abc123")


def test_memory_store_registry():
    first = MemoryStore.open("registry-test")
    first.put(NODE_TOKEN, b"abc123")
    assert MemoryStore.open("registry-test") is first
    MemoryStore.forget("registry-test")
    assert MemoryStore.open("registry-test") is not first
    MemoryStore.forget("registry-test")


def test_memory_store_artifact_timestamp():
    store = MemoryStore()
    store.put(NODE_TOKEN, b"abc123")
    artifact = store.artifact(NODE_TOKEN)
    assert artifact.name == NODE_TOKEN
    assert artifact.content == b"abc123"


def test_memory_store_concurrent_readers():
    store = MemoryStore()
    store.put(NODE_TOKEN, b"abc123")
    seen = []

    def read():
        for _ in range(100):
            seen.append(store.get(NODE_TOKEN))

    threads = [threading.Thread(target=read) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert seen == [b"abc123"] * 400


def test_file_store_no_temp_leftovers(tmp_path):
    store = FileStore(str(tmp_path))
    store.put(NODE_TOKEN, b"abc123")
    assert [p.name for p in tmp_path.iterdir()] == [NODE_TOKEN]


def test_file_store_failed_replace_leaves_no_temp_file(tmp_path):
    store = FileStore(str(tmp_path))
    # a non-empty directory can't be replaced by a file
    (tmp_path / NODE_TOKEN).mkdir()
    (tmp_path / NODE_TOKEN / "keep").write_bytes(b"x")

    with pytest.raises(StoreError):
        store.put(NODE_TOKEN, b"abc123")

    assert [p.name for p in tmp_path.iterdir()] == [NODE_TOKEN]


def test_file_store_failed_write_leaves_no_temp_file(tmp_path):
    store = FileStore(str(tmp_path))
    with patch("k3sjoin.store.os.replace",
               side_effect=OSError("disk full")):
        with pytest.raises(StoreError) as exc:
            store.put(KUBECONFIG, b"apiVersion: v1")

    assert "disk full" in str(exc.value)
    assert list(tmp_path.iterdir()) == []


def test_file_store_invalid_names(tmp_path):
    store = FileStore(str(tmp_path))
    for name in ["", "../escape", ".hidden"]:
        with pytest.raises(StoreError):
            store.put(name, b"x")


def test_file_store_missing_directory(tmp_path):
    assert FileStore(str(tmp_path / "nowhere")).names() == []


class FlakyStore(MemoryStore):
    """fails to delete some names"""

    def __init__(self, broken):
        super().__init__("flaky")
        self.broken = broken

    def delete(self, name):
        if name in self.broken:
            raise StoreError("permission denied")
        super().delete(name)


def test_delete_all_sweeps_everything():
    store = FlakyStore(broken={KUBECONFIG})
    store.put(NODE_TOKEN, b"abc123")
    store.put(KUBECONFIG, b"apiVersion: v1")
    store.put("ready", b"now")

    with pytest.raises(StoreError) as exc:
        store.delete_all()

    assert list(exc.value.failed) == [KUBECONFIG]
    assert store.names() == [KUBECONFIG]
