"""Tests for the per-key reader/writer lock."""

from __future__ import annotations

import asyncio

import pytest

from quotagate.limiter.locks import ReaderWriterLock, StripedRWLock


@pytest.mark.asyncio
async def test_readers_share_the_lock() -> None:
    lock = ReaderWriterLock()
    inside = 0
    peak = 0

    async def reader() -> None:
        nonlocal inside, peak
        async with lock.read():
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0.01)
            inside -= 1

    await asyncio.gather(*(reader() for _ in range(5)))
    assert peak == 5
    assert lock.locked is False


@pytest.mark.asyncio
async def test_writers_are_exclusive() -> None:
    lock = ReaderWriterLock()
    inside = 0
    peak = 0

    async def writer() -> None:
        nonlocal inside, peak
        async with lock.write():
            inside += 1
            peak = max(peak, inside)
            await asyncio.sleep(0)
            inside -= 1

    await asyncio.gather(*(writer() for _ in range(5)))
    assert peak == 1


@pytest.mark.asyncio
async def test_writer_waits_for_readers() -> None:
    lock = ReaderWriterLock()
    order: list[str] = []
    release_reader = asyncio.Event()

    async def reader() -> None:
        async with lock.read():
            order.append("read-start")
            await release_reader.wait()
            order.append("read-end")

    async def writer() -> None:
        async with lock.write():
            order.append("write")

    reader_task = asyncio.create_task(reader())
    await asyncio.sleep(0)
    writer_task = asyncio.create_task(writer())
    await asyncio.sleep(0)
    assert order == ["read-start"]

    release_reader.set()
    await asyncio.gather(reader_task, writer_task)
    assert order == ["read-start", "read-end", "write"]


@pytest.mark.asyncio
async def test_queued_writer_holds_back_new_readers() -> None:
    lock = ReaderWriterLock()
    order: list[str] = []
    release_first = asyncio.Event()

    async def first_reader() -> None:
        async with lock.read():
            await release_first.wait()
            order.append("reader-1")

    async def writer() -> None:
        async with lock.write():
            order.append("writer")

    async def late_reader() -> None:
        async with lock.read():
            order.append("reader-2")

    tasks = [asyncio.create_task(first_reader())]
    await asyncio.sleep(0)
    tasks.append(asyncio.create_task(writer()))
    await asyncio.sleep(0)
    tasks.append(asyncio.create_task(late_reader()))
    await asyncio.sleep(0)

    release_first.set()
    await asyncio.gather(*tasks)
    assert order == ["reader-1", "writer", "reader-2"]


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_block_others() -> None:
    lock = ReaderWriterLock()
    release = asyncio.Event()

    async def holder() -> None:
        async with lock.write():
            await release.wait()

    async def waiter() -> None:
        async with lock.write():
            pass

    held = asyncio.create_task(holder())
    await asyncio.sleep(0)
    cancelled = asyncio.create_task(waiter())
    await asyncio.sleep(0)
    cancelled.cancel()
    with pytest.raises(asyncio.CancelledError):
        await cancelled

    release.set()
    await held
    await asyncio.wait_for(waiter(), timeout=1)
    assert lock.locked is False


@pytest.mark.asyncio
async def test_lock_released_on_exception() -> None:
    lock = ReaderWriterLock()
    with pytest.raises(RuntimeError):
        async with lock.write():
            raise RuntimeError("boom")
    assert lock.locked is False


def test_striped_lock_maps_key_to_same_stripe() -> None:
    table = StripedRWLock(stripes=8)
    assert table.for_key("rate_limit_abc_1") is table.for_key("rate_limit_abc_1")


def test_striped_lock_requires_a_stripe() -> None:
    with pytest.raises(ValueError):
        StripedRWLock(stripes=0)
