import asyncio

from aitools_auth.auth.cache.memory import MemoryTokenCache
from aitools_auth.auth.primitives.locks import ReadWriteLock


class TestMemoryTokenCache:
    def setup_method(self):
        self.now = 1000.0
        self.cache = MemoryTokenCache(buffer_seconds=60, clock=lambda: self.now)

    async def test_empty_cache_returns_none(self):
        assert await self.cache.get() is None

    async def test_returns_token_outside_buffer(self):
        # Arrange
        await self.cache.set("token", expires_in_secs=120)

        # Act
        self.now += 59

        # Assert
        assert await self.cache.get() == "token"

    async def test_token_inside_buffer_is_not_returned(self):
        # Arrange
        await self.cache.set("token", expires_in_secs=120)

        # Act - now + buffer == expires_at
        self.now += 60

        # Assert
        assert await self.cache.get() is None

    async def test_short_lived_token_is_never_returned(self):
        await self.cache.set("token", expires_in_secs=30)

        assert await self.cache.get() is None

    async def test_set_replaces_previous_token(self):
        await self.cache.set("old", expires_in_secs=3600)
        await self.cache.set("new", expires_in_secs=3600)

        assert await self.cache.get() == "new"

    async def test_clear(self):
        await self.cache.set("token", expires_in_secs=3600)

        await self.cache.clear()

        assert await self.cache.get() is None


class TestReadWriteLock:
    async def test_readers_share_the_lock(self):
        # Arrange
        lock = ReadWriteLock()
        both_inside = asyncio.Event()
        inside = 0

        async def reader():
            nonlocal inside
            async with lock.read():
                inside += 1
                if inside == 2:
                    both_inside.set()
                await asyncio.wait_for(both_inside.wait(), timeout=1)

        # Act & Assert - would time out if readers excluded each other
        await asyncio.gather(reader(), reader())

    async def test_writer_waits_for_readers(self):
        # Arrange
        lock = ReadWriteLock()
        events: list[str] = []
        release_reader = asyncio.Event()
        reader_inside = asyncio.Event()

        async def reader():
            async with lock.read():
                reader_inside.set()
                await release_reader.wait()
                events.append("reader done")

        async def writer():
            await reader_inside.wait()
            async with lock.write():
                events.append("writer")

        # Act
        tasks = [asyncio.create_task(reader()), asyncio.create_task(writer())]
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        release_reader.set()
        await asyncio.gather(*tasks)

        # Assert
        assert events == ["reader done", "writer"]

    async def test_cancelled_writer_does_not_block_readers(self):
        # Arrange
        lock = ReadWriteLock()
        reader_inside = asyncio.Event()
        release_reader = asyncio.Event()

        async def long_reader():
            async with lock.read():
                reader_inside.set()
                await release_reader.wait()

        async def writer():
            async with lock.write():
                pass

        reader_task = asyncio.create_task(long_reader())
        await reader_inside.wait()
        writer_task = asyncio.create_task(writer())
        await asyncio.sleep(0)

        # Act
        writer_task.cancel()
        await asyncio.gather(writer_task, return_exceptions=True)

        # Assert - a new reader gets in while the first still holds the lock
        async with lock.read():
            pass
        release_reader.set()
        await reader_task
