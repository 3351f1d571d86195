"""
Unit tests for cachedfs.cached.AsyncCachedFileSystem.

The async wrapper shares its cache rules with CachedFileSystem; these tests
check the same guarantees through coroutines, plus interleaving of tasks.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from cachedfs.cached import AsyncCachedFileSystem
from cachedfs.memory import AsyncMemoryFileSystem


@pytest.fixture
def async_spy(async_memory_backend):
    return MagicMock(wraps=async_memory_backend)


@pytest.fixture
def async_fs(async_spy, timer):
    return AsyncCachedFileSystem(async_spy, timer=timer)


@pytest.mark.asyncio
async def test_read_is_cached(async_fs, async_spy, async_memory_backend):
    await async_memory_backend.write_file("test.txt", "content")

    assert await async_fs.read_file("test.txt") == "content"
    assert await async_fs.read_file("test.txt") == "content"

    assert async_spy.read_file.call_count == 1


@pytest.mark.asyncio
async def test_write_through(async_fs, async_spy):
    await async_fs.write_file("dir/test.txt", "written")

    assert await async_fs.read_file("dir/test.txt") == "written"
    async_spy.read_file.assert_not_called()


@pytest.mark.asyncio
async def test_negative_existence_then_write(async_fs, async_spy):
    assert await async_fs.exists("missing.txt") is False
    assert await async_fs.exists("missing.txt") is False
    assert async_spy.exists.call_count == 1

    await async_fs.write_file("missing.txt", "x")

    assert await async_fs.exists("missing.txt") is True
    assert async_spy.exists.call_count == 1


@pytest.mark.asyncio
async def test_ttl_expiry(async_spy, async_memory_backend, timer):
    fs = AsyncCachedFileSystem(async_spy, ttl_ms=500, timer=timer)
    await async_memory_backend.write_file("t.txt", "v")

    await fs.read_file("t.txt")
    timer.advance(0.499)
    await fs.read_file("t.txt")
    assert async_spy.read_file.call_count == 1

    timer.advance(0.002)
    await fs.read_file("t.txt")
    assert async_spy.read_file.call_count == 2


@pytest.mark.asyncio
async def test_delete_records_absence(async_fs, async_spy):
    await async_fs.write_file("gone.txt", "bye")
    await async_fs.delete_file("gone.txt")

    assert await async_fs.exists("gone.txt") is False
    async_spy.exists.assert_not_called()
    with pytest.raises(FileNotFoundError):
        await async_fs.read_file("gone.txt")


@pytest.mark.asyncio
async def test_backend_failure_propagates_and_cache_untouched(async_fs, async_spy):
    await async_fs.write_file("keep.txt", "original")

    async def failing_write(path, data):
        raise OSError("quota exceeded")

    async_spy.write_file.side_effect = failing_write

    with pytest.raises(OSError, match="quota exceeded"):
        await async_fs.write_file("keep.txt", "lost")

    assert await async_fs.read_file("keep.txt") == "original"


@pytest.mark.asyncio
async def test_listing_cache_and_invalidation(async_fs, async_spy):
    await async_fs.write_file("dir/a", "a")
    assert await async_fs.list_dir("dir") == ["a"]
    assert await async_fs.list_dir("dir") == ["a"]
    assert async_spy.list_dir.call_count == 1

    await async_fs.write_file("dir/b", "b")

    assert await async_fs.list_dir("dir") == ["a", "b"]


@pytest.mark.asyncio
async def test_delete_dir_and_manual_invalidation(async_fs, async_memory_backend):
    for path in ("dir/a", "dir/b", "dir/sub/c", "other/d"):
        await async_fs.write_file(path, path)

    async_fs.invalidate_directory("dir")
    keys = async_fs.get_cache_statistics().content.keys
    assert set(keys) == {"other/d"}

    await async_fs.delete_dir("other")
    assert async_fs.get_cache_statistics().content.size == 0
    assert await async_memory_backend.exists("other/d") is False


@pytest.mark.asyncio
async def test_ensure_dir_and_clear_cache(async_fs):
    assert await async_fs.exists("made") is False
    await async_fs.ensure_dir("made")
    assert await async_fs.exists("made") is True

    async_fs.clear_cache()
    stats = async_fs.get_cache_statistics()
    assert stats.content.size == stats.existence.size == stats.directory.size == 0


@pytest.mark.asyncio
async def test_stat_chmod_and_clear_delegate(async_fs, async_spy):
    await async_fs.write_file("box/f.txt", "12345")

    stats = await async_fs.stat("box/f.txt")
    await async_fs.chmod("box/f.txt", 0o600)
    await async_fs.clear("box")

    assert stats.size == 5
    async_spy.chmod.assert_called_once_with("box/f.txt", 0o600)
    assert await async_fs.list_dir("box") == []


@pytest.mark.asyncio
async def test_concurrent_tasks_share_cache(async_fs, async_spy, async_memory_backend):
    await async_memory_backend.write_file("shared.txt", "data")
    await async_fs.read_file("shared.txt")

    results = await asyncio.gather(*(async_fs.read_file("shared.txt") for _ in range(10)))

    assert results == ["data"] * 10
    assert async_spy.read_file.call_count == 1


@pytest.mark.asyncio
async def test_lru_scenario(async_spy, async_memory_backend):
    fs = AsyncCachedFileSystem(async_spy, max_size=3)
    for name in ("a", "b", "c", "d"):
        await async_memory_backend.write_file(name, name)

    for name in ("a", "b", "c", "a", "d"):
        await fs.read_file(name)

    assert set(fs.get_cache_statistics().content.keys) == {"c", "a", "d"}


class GatedMemoryFileSystem(AsyncMemoryFileSystem):
    """Answers reads from the store, then waits until released before returning."""

    def __init__(self):
        super().__init__()
        self.fetched = asyncio.Event()
        self.release = asyncio.Event()

    async def _gate(self, result):
        self.fetched.set()
        await self.release.wait()
        return result

    async def exists(self, path: str) -> bool:
        return await self._gate(self.store.exists(path))

    async def read_file(self, path: str) -> str:
        return await self._gate(self.store.read_file(path))

    async def list_dir(self, path: str) -> list[str]:
        return await self._gate(self.store.list_dir(path))


@pytest.fixture
def gated_backend():
    return GatedMemoryFileSystem()


class TestInterleavedReadThrough:
    @pytest.mark.asyncio
    async def test_write_during_pending_read_wins(self, gated_backend):
        gated_backend.store.write_file("f", "old")
        fs = AsyncCachedFileSystem(gated_backend)

        reader = asyncio.create_task(fs.read_file("f"))
        await gated_backend.fetched.wait()
        await fs.write_file("f", "new")
        gated_backend.release.set()

        assert await reader == "old"
        assert await fs.read_file("f") == "new"
        assert gated_backend.store.read_file("f") == "new"

    @pytest.mark.asyncio
    async def test_delete_during_pending_exists_wins(self, gated_backend):
        gated_backend.store.write_file("f", "x")
        fs = AsyncCachedFileSystem(gated_backend)

        checker = asyncio.create_task(fs.exists("f"))
        await gated_backend.fetched.wait()
        await fs.delete_file("f")
        gated_backend.release.set()

        assert await checker is True
        assert await fs.exists("f") is False

    @pytest.mark.asyncio
    async def test_write_during_pending_listing_is_not_cached(self, gated_backend):
        gated_backend.store.write_file("d/a", "a")
        fs = AsyncCachedFileSystem(gated_backend)

        lister = asyncio.create_task(fs.list_dir("d"))
        await gated_backend.fetched.wait()
        await fs.write_file("d/b", "b")
        gated_backend.release.set()

        assert await lister == ["a"]
        assert fs.get_cache_statistics().directory.size == 0
        assert await fs.list_dir("d") == ["a", "b"]

    @pytest.mark.asyncio
    async def test_invalidate_during_pending_read_is_not_cached(self, gated_backend):
        gated_backend.store.write_file("f", "v1")
        fs = AsyncCachedFileSystem(gated_backend)

        reader = asyncio.create_task(fs.read_file("f"))
        await gated_backend.fetched.wait()
        fs.invalidate_file("f")
        gated_backend.release.set()
        await reader

        assert fs.get_cache_statistics().content.size == 0

    @pytest.mark.asyncio
    async def test_undisturbed_read_is_cached(self, gated_backend):
        gated_backend.store.write_file("f", "v")
        gated_backend.release.set()
        fs = AsyncCachedFileSystem(gated_backend)

        await fs.read_file("f")

        assert fs.get_cache_statistics().content.keys == ("f",)
