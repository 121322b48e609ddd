"""Tests for KeyedLocks."""

from __future__ import annotations

import asyncio

import pytest

from amplifier_pkgenv.locks import KeyedLocks


class TestKeyedLocks:
    @pytest.mark.asyncio
    async def test_same_key_serializes(self):
        locks = KeyedLocks()
        order: list[str] = []

        async def work(tag: str) -> None:
            async with locks.hold("k"):
                order.append(f"{tag}-in")
                await asyncio.sleep(0.01)
                order.append(f"{tag}-out")

        await asyncio.gather(work("a"), work("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_different_keys_are_independent(self):
        locks = KeyedLocks()
        async with locks.hold("a"):
            async with locks.hold("b"):
                assert locks.locked("a")
                assert locks.locked("b")

    @pytest.mark.asyncio
    async def test_idle_locks_are_discarded(self):
        locks = KeyedLocks()
        async with locks.hold("a"):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.locked("a")
