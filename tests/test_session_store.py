"""Tests for the async session store."""

import asyncio

import pytest

from mira.src.database.session_store import Message, SessionStore


class TestHistoryBounds:
    """Capacity, ordering and windowing."""

    @pytest.mark.asyncio
    async def test_eviction_after_overflow(self) -> None:
        store = SessionStore(max_history=10)
        for i in range(15):
            await store.add_message("s1", "user", f"message {i}")

        messages = await store.recent("s1", 100)
        assert len(messages) == 10
        assert [m.content for m in messages] == [f"message {i}" for i in range(5, 15)]

    @pytest.mark.asyncio
    async def test_recent_returns_last_n_in_order(self) -> None:
        store = SessionStore(max_history=10)
        for i in range(4):
            await store.append("s1", Message(role="user" if i % 2 == 0 else "assistant", content=str(i)))

        assert [m.content for m in await store.recent("s1", 2)] == ["2", "3"]

    @pytest.mark.asyncio
    async def test_recent_non_positive(self) -> None:
        store = SessionStore()
        await store.add_message("s1", "user", "hi")

        assert await store.recent("s1", 0) == []
        assert await store.recent("s1", -3) == []

    @pytest.mark.asyncio
    async def test_unknown_session_is_created(self) -> None:
        store = SessionStore()

        assert await store.recent("new", 2) == []
        assert store.session_count() == 1

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self) -> None:
        store = SessionStore()
        await store.add_message("a", "user", "from a")
        await store.add_message("b", "user", "from b")

        assert [m.content for m in await store.recent("a", 5)] == ["from a"]
        assert [m.content for m in await store.recent("b", 5)] == ["from b"]

    def test_invalid_capacity(self) -> None:
        with pytest.raises(ValueError):
            SessionStore(max_history=0)


class TestLifecycle:
    """Clear, listing and idle eviction."""

    @pytest.mark.asyncio
    async def test_clear(self) -> None:
        store = SessionStore()
        await store.add_message("s1", "user", "hi")

        assert await store.clear("s1") is True
        assert await store.clear("s1") is False
        assert store.session_count() == 0

    @pytest.mark.asyncio
    async def test_history_of_unknown_session_does_not_create_it(self) -> None:
        store = SessionStore()
        assert await store.history("ghost") == []
        assert store.session_count() == 0

    @pytest.mark.asyncio
    async def test_list_sessions(self) -> None:
        store = SessionStore()
        await store.add_message("a", "user", "1")
        await store.add_message("b", "user", "2")
        await store.add_message("b", "assistant", "3")

        listed = {entry["session_id"]: entry["messages"] for entry in store.list_sessions()}
        assert listed == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_idle_session_evicted_on_append(self) -> None:
        store = SessionStore(ttl_seconds=10, sweep_interval=0)
        await store.add_message("idle", "user", "old")
        store._sessions["idle"].last_active -= 100

        await store.add_message("active", "user", "new")

        assert [entry["session_id"] for entry in store.list_sessions()] == ["active"]

    @pytest.mark.asyncio
    async def test_ttl_zero_disables_eviction(self) -> None:
        store = SessionStore(ttl_seconds=0, sweep_interval=0)
        await store.add_message("idle", "user", "old")
        store._sessions["idle"].last_active -= 10_000

        await store.add_message("active", "user", "new")
        assert store.session_count() == 2


@pytest.mark.asyncio
async def test_concurrent_appends_to_one_session() -> None:
    store = SessionStore(max_history=10)
    await asyncio.gather(*(store.add_message("shared", "user", str(i)) for i in range(25)))

    messages = await store.recent("shared", 100)
    assert len(messages) == 10
    assert len({m.content for m in messages}) == 10


@pytest.mark.asyncio
async def test_append_waiting_on_clear_lands_in_fresh_session() -> None:
    store = SessionStore()
    await store.add_message("s", "user", "a")
    session = store._sessions["s"]

    await session.lock.acquire()
    clearing = asyncio.create_task(store.clear("s"))
    appending = asyncio.create_task(store.add_message("s", "user", "b"))
    await asyncio.sleep(0)
    session.lock.release()
    await asyncio.gather(clearing, appending)

    assert [m.content for m in await store.history("s")] == ["b"]


@pytest.mark.asyncio
async def test_reading_history_keeps_session_alive() -> None:
    store = SessionStore(ttl_seconds=10, sweep_interval=0)
    await store.add_message("idle", "user", "old")
    store._sessions["idle"].last_active -= 100

    assert [m.content for m in await store.recent("idle", 2)] == ["old"]
    await store.add_message("other", "user", "new")

    assert store.session_count() == 2
