"""Tests for the per-key async lock."""

import asyncio

import pytest

from zapchat.infra.concurrency import KeyedLock


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_exclusive(self):
        locks = KeyedLock()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("c1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_different_keys_interleave(self):
        locks = KeyedLock()
        inside = asyncio.Event()

        async def first() -> None:
            async with locks.hold("c1"):
                await inside.wait()

        async def second() -> None:
            async with locks.hold("c2"):
                inside.set()

        await asyncio.wait_for(asyncio.gather(first(), second()), timeout=1)

    @pytest.mark.asyncio
    async def test_released_on_error_and_cleaned_up(self):
        locks = KeyedLock()

        with pytest.raises(ValueError):
            async with locks.hold("c1"):
                raise ValueError("boom")

        assert len(locks) == 0
        async with locks.hold("c1"):
            assert len(locks) == 1
