from repo_chat.config import StoreConfig
from repo_chat.retrieval.repo_store import InMemoryRepoStore
from repo_chat.types import FileChunk


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _chunks(path: str) -> list[FileChunk]:
    return [FileChunk(file_path=path, chunk_index=0, language="python", content="x = 1\n")]


def test_save_and_read_back() -> None:
    store = InMemoryRepoStore(clock=FakeClock())
    store.save("r1", "demo", _chunks("a.py"), None)

    assert store.get_chunks("r1") == _chunks("a.py")
    assert store.get_summary("r1") is None
    assert store.has_repo("r1")
    assert store.get_chunks("never-saved") is None
    assert len(store) == 1


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    store = InMemoryRepoStore(StoreConfig(ttl_seconds=3600), clock=clock)
    store.save("r1", "demo", _chunks("a.py"), None)

    clock.now += 3600
    assert store.get_chunks("r1") is not None

    clock.now += 1
    assert store.get_chunks("r1") is None
    assert len(store) == 0


def test_capacity_evicts_oldest_first() -> None:
    clock = FakeClock()
    store = InMemoryRepoStore(StoreConfig(max_entries=3), clock=clock)
    for index in range(5):
        clock.now += 1
        store.save(f"r{index}", "demo", _chunks("a.py"), None)

    assert len(store) == 3
    assert not store.has_repo("r0")
    assert not store.has_repo("r1")
    assert store.has_repo("r4")


def test_overwrite_does_not_evict_neighbours() -> None:
    clock = FakeClock()
    store = InMemoryRepoStore(StoreConfig(max_entries=2), clock=clock)
    store.save("r1", "one", _chunks("a.py"), None)
    clock.now += 1
    store.save("r2", "two", _chunks("b.py"), None)
    clock.now += 1
    store.save("r2", "two", _chunks("c.py"), None)

    assert store.has_repo("r1")
    assert store.get_chunks("r2") == _chunks("c.py")


def test_explicit_evict_reports_expired_ids() -> None:
    clock = FakeClock()
    store = InMemoryRepoStore(StoreConfig(ttl_seconds=10), clock=clock)
    store.save("old", "demo", _chunks("a.py"), None)
    clock.now += 5
    store.save("new", "demo", _chunks("b.py"), None)
    clock.now += 6

    assert store.evict() == ["old"]
    assert store.has_repo("new")


def test_full_store_makes_room_before_insert() -> None:
    clock = FakeClock()
    store = InMemoryRepoStore(StoreConfig(max_entries=2), clock=clock)
    store.save("r1", "one", _chunks("a.py"), None)
    clock.now += 1
    store.save("r2", "two", _chunks("b.py"), None)
    assert len(store) == 2

    clock.now += 1
    store.save("r3", "three", _chunks("c.py"), None)

    # Never above the cap, even transiently after the insert.
    assert len(store) == 2
    assert not store.has_repo("r1")
    assert store.has_repo("r2")
    assert store.has_repo("r3")
