from __future__ import annotations

import asyncio

import pytest

from app.locks import ReadWriteLock


@pytest.mark.anyio("asyncio")
async def test_readers_share_the_lock():
    lock = ReadWriteLock()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def reader() -> None:
        async with lock.shared():
            if lock.readers == 2:
                inside.set()
            await release.wait()

    tasks = [asyncio.create_task(reader()) for _ in range(2)]
    await asyncio.wait_for(inside.wait(), timeout=1)
    assert lock.readers == 2
    release.set()
    await asyncio.gather(*tasks)
    assert lock.readers == 0


@pytest.mark.anyio("asyncio")
async def test_writer_waits_for_readers_and_blocks_new_ones():
    lock = ReadWriteLock()
    events: list[str] = []
    release_reader = asyncio.Event()

    async def first_reader() -> None:
        async with lock.shared():
            events.append("reader-1")
            await release_reader.wait()

    async def writer() -> None:
        async with lock.exclusive():
            events.append("writer")

    async def late_reader() -> None:
        async with lock.shared():
            events.append("reader-2")

    reader_task = asyncio.create_task(first_reader())
    await asyncio.sleep(0)
    writer_task = asyncio.create_task(writer())
    await asyncio.sleep(0)
    late_task = asyncio.create_task(late_reader())
    await asyncio.sleep(0.01)

    assert events == ["reader-1"]
    release_reader.set()
    await asyncio.gather(reader_task, writer_task, late_task)
    assert events == ["reader-1", "writer", "reader-2"]


@pytest.mark.anyio("asyncio")
async def test_cancelled_writer_does_not_strand_readers():
    lock = ReadWriteLock()
    release_reader = asyncio.Event()

    async def holder() -> None:
        async with lock.shared():
            await release_reader.wait()

    async def writer() -> None:
        async with lock.exclusive():
            pass

    holder_task = asyncio.create_task(holder())
    await asyncio.sleep(0)
    writer_task = asyncio.create_task(writer())
    await asyncio.sleep(0)
    writer_task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await writer_task

    async def reader() -> bool:
        async with lock.shared():
            return True

    assert await asyncio.wait_for(reader(), timeout=1) is True
    release_reader.set()
    await holder_task
