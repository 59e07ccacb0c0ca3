import asyncio
import threading

import pytest

from guild_keeper.common.entity_name import EntityList
from guild_keeper.errors import ConfigLoadError
from guild_keeper.state.entry import Disposable
from guild_keeper.state.manager import MODERATORS_CONSUMER, GuildStateCache

MINUTE = 60.0


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class Token:
    """Config token with a fixed hash, as in the 42/77 scenarios."""

    def __init__(self, h: int) -> None:
        self.h = h

    def __hash__(self) -> int:
        return self.h


class Resource(Disposable):
    def __init__(self, label: str) -> None:
        self.label = label
        self.disposed = 0

    def dispose(self) -> None:
        self.disposed += 1


class CountingFactory:
    def __init__(self) -> None:
        self.calls: list = []

    async def __call__(self, token):
        self.calls.append(token)
        return Resource(f"build-{len(self.calls)}")


def _cache(clock=None, ttl=15 * MINUTE):
    return GuildStateCache(ttl, clock=clock or FakeClock())


def test_unchanged_token_builds_once():
    cache = _cache()
    factory = CountingFactory()

    async def scenario():
        first = await cache.get_or_create(1, "modA", Token(42), factory)
        second = await cache.get_or_create(1, "modA", Token(42), factory)
        return first, second

    first, second = asyncio.run(scenario())

    assert first is second
    assert len(factory.calls) == 1
    assert cache.get(1, "modA") is first


def test_ttl_expiry_triggers_rebuild_and_disposes_old():
    clock = FakeClock()
    cache = _cache(clock)
    factory = CountingFactory()

    async def scenario():
        old = await cache.get_or_create(1, "modA", Token(42), factory)
        clock.now = 14 * MINUTE
        same = await cache.get_or_create(1, "modA", Token(42), factory)
        clock.now = 30 * MINUTE
        new = await cache.get_or_create(1, "modA", Token(42), factory)
        return old, same, new

    old, same, new = asyncio.run(scenario())

    assert same is old
    assert new is not old
    assert old.disposed == 1
    assert new.disposed == 0
    assert len(factory.calls) == 2


def test_sixteen_minutes_without_checks_is_stale():
    clock = FakeClock()
    cache = _cache(clock)
    factory = CountingFactory()

    async def scenario():
        await cache.get_or_create(1, "modA", Token(42), factory)
        clock.now = 16 * MINUTE
        await cache.get_or_create(1, "modA", Token(42), factory)

    asyncio.run(scenario())

    assert len(factory.calls) == 2


def test_config_change_rebuilds_within_ttl():
    clock = FakeClock()
    cache = _cache(clock)
    factory = CountingFactory()
    t1, t2 = Token(42), Token(77)

    async def scenario():
        old = await cache.get_or_create(1, "modA", t1, factory)
        clock.now = 1 * MINUTE
        new = await cache.get_or_create(1, "modA", t2, factory)
        return old, new

    old, new = asyncio.run(scenario())

    assert new is not old
    assert factory.calls == [t1, t2]
    assert old.disposed == 1


def test_dict_tokens_detect_content_changes():
    cache = _cache()
    factory = CountingFactory()

    async def scenario():
        await cache.get_or_create(1, "modA", {"a": 1, "b": [1, 2]}, factory)
        await cache.get_or_create(1, "modA", {"b": [1, 2], "a": 1}, factory)
        await cache.get_or_create(1, "modA", {"a": 2, "b": [1, 2]}, factory)

    asyncio.run(scenario())

    assert len(factory.calls) == 2


def test_failed_rebuild_keeps_previous_state():
    cache = _cache()
    good = CountingFactory()

    async def bad_factory(token):
        raise ConfigLoadError("Moderators must be an array")

    async def scenario():
        old = await cache.get_or_create(1, "modA", Token(42), good)
        with pytest.raises(ConfigLoadError):
            await cache.get_or_create(1, "modA", Token(77), bad_factory)
        again = await cache.get_or_create(1, "modA", Token(42), good)
        return old, again

    old, again = asyncio.run(scenario())

    assert cache.get(1, "modA") is old
    assert again is old
    assert old.disposed == 0
    assert len(good.calls) == 1


def test_rejected_config_change_still_renews_ttl():
    clock = FakeClock()
    cache = _cache(clock)
    good = CountingFactory()

    async def bad_factory(token):
        raise ConfigLoadError("Moderators must be an array")

    async def scenario():
        old = await cache.get_or_create(1, "modA", Token(42), good)
        clock.now = 10 * MINUTE
        with pytest.raises(ConfigLoadError):
            await cache.get_or_create(1, "modA", Token(77), bad_factory)
        # 24 minutes after the build, 14 after the rejected check.
        clock.now = 24 * MINUTE
        again = await cache.get_or_create(1, "modA", Token(42), good)
        return old, again

    old, again = asyncio.run(scenario())

    assert again is old
    assert len(good.calls) == 1


def test_unexpected_factory_error_is_wrapped():
    cache = _cache()

    def broken(token):
        raise KeyError("missing")

    with pytest.raises(ConfigLoadError) as excinfo:
        asyncio.run(cache.get_or_create(1, "modA", Token(1), broken))

    assert isinstance(excinfo.value.__cause__, KeyError)
    assert cache.get(1, "modA") is None


def test_synchronous_factory_supported():
    cache = _cache()

    result = asyncio.run(cache.get_or_create(1, "modA", Token(1), lambda token: ["built", token.h]))

    assert result == ["built", 1]


def test_disposal_happens_after_new_entry_installed():
    clock = FakeClock()
    cache = _cache(clock)
    seen_during_dispose = []

    class Watched(Disposable):
        def dispose(self) -> None:
            seen_during_dispose.append(cache.get(1, "modA"))

    async def scenario():
        old = await cache.get_or_create(1, "modA", Token(1), lambda t: Watched())
        new = await cache.get_or_create(1, "modA", Token(2), lambda t: "replacement")
        return old, new

    old, new = asyncio.run(scenario())

    assert seen_during_dispose == ["replacement"]


def test_rebuild_returning_same_object_is_not_disposed():
    cache = _cache()
    shared = Resource("shared")

    async def scenario():
        await cache.get_or_create(1, "modA", Token(1), lambda t: shared)
        await cache.get_or_create(1, "modA", Token(2), lambda t: shared)

    asyncio.run(scenario())

    assert shared.disposed == 0


def test_dispose_failure_does_not_reach_caller():
    cache = _cache()

    class Exploding(Disposable):
        def dispose(self) -> None:
            raise RuntimeError("boom")

    async def scenario():
        await cache.get_or_create(1, "modA", Token(1), lambda t: Exploding())
        return await cache.get_or_create(1, "modA", Token(2), lambda t: "next")

    assert asyncio.run(scenario()) == "next"


def test_concurrent_requests_for_same_key_build_once():
    cache = _cache()
    calls = 0

    async def slow_factory(token):
        nonlocal calls
        calls += 1
        await asyncio.sleep(0.01)
        return Resource(f"build-{calls}")

    async def scenario():
        return await asyncio.gather(
            *(cache.get_or_create(1, "modA", Token(42), slow_factory) for _ in range(5))
        )

    results = asyncio.run(scenario())

    assert calls == 1
    assert all(r is results[0] for r in results)
    assert results[0].disposed == 0


def test_concurrent_changed_tokens_never_dispose_installed_entry():
    cache = _cache()
    built: list[Resource] = []

    async def slow_factory(token):
        await asyncio.sleep(0.01)
        res = Resource(f"h{token.h}")
        built.append(res)
        return res

    async def scenario():
        await asyncio.gather(
            *(cache.get_or_create(1, "modA", Token(h), slow_factory) for h in (1, 2, 3))
        )

    asyncio.run(scenario())

    installed = cache.get(1, "modA")
    assert installed.disposed == 0
    assert [r.disposed for r in built if r is not installed] == [1, 1]


def test_hung_factory_blocks_only_its_own_key():
    cache = _cache()

    async def scenario():
        never = asyncio.Event()

        async def hung(token):
            await never.wait()

        stuck = asyncio.create_task(cache.get_or_create(1, "modA", Token(1), hung))
        await asyncio.sleep(0)
        other = await asyncio.wait_for(
            cache.get_or_create(1, "modB", Token(1), lambda t: "b"), timeout=1
        )
        stuck.cancel()
        with pytest.raises(asyncio.CancelledError):
            await stuck
        return other

    assert asyncio.run(scenario()) == "b"
    assert cache.get(1, "modA") is None


def test_cancelled_rebuild_leaves_previous_entry():
    cache = _cache()

    async def scenario():
        old = await cache.get_or_create(1, "modA", Token(1), lambda t: Resource("old"))
        started = asyncio.Event()

        async def slow(token):
            started.set()
            await asyncio.sleep(10)
            return Resource("never")

        task = asyncio.create_task(cache.get_or_create(1, "modA", Token(2), slow))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        # The key lock was released; a later rebuild proceeds normally.
        new = await cache.get_or_create(1, "modA", Token(3), lambda t: Resource("new"))
        return old, new

    old, new = asyncio.run(scenario())

    assert old.disposed == 1
    assert new.label == "new"
    assert cache.get(1, "modA") is new


def test_remove_guild_disposes_each_entry_once():
    cache = _cache()
    factory = CountingFactory()

    async def scenario():
        a = await cache.get_or_create(1, "modA", Token(1), factory)
        b = await cache.get_or_create(1, "modB", Token(1), factory)
        keep = await cache.get_or_create(2, "modA", Token(1), factory)
        removed = await cache.remove_guild(1)
        again = await cache.remove_guild(1)
        return a, b, keep, removed, again

    a, b, keep, removed, again = asyncio.run(scenario())

    assert (removed, again) == (2, 0)
    assert (a.disposed, b.disposed, keep.disposed) == (1, 1, 0)
    assert cache.get(1, "modA") is None
    assert cache.get(2, "modA") is keep
    assert cache.guild_ids() == [2]


def test_close_disposes_everything_and_refuses_new_work():
    cache = _cache()
    factory = CountingFactory()

    async def build():
        return [
            await cache.get_or_create(g, "modA", Token(1), factory) for g in (1, 2)
        ]

    built = asyncio.run(build())
    cache.close()

    assert [r.disposed for r in built] == [1, 1]
    assert cache.get(1, "modA") is None
    with pytest.raises(RuntimeError):
        asyncio.run(cache.get_or_create(1, "modA", Token(1), factory))


def test_close_during_build_disposes_the_new_object():
    cache = _cache()
    built: list[Resource] = []

    async def scenario():
        async def closing_factory(token):
            cache.close()
            res = Resource("late")
            built.append(res)
            return res

        with pytest.raises(RuntimeError):
            await cache.get_or_create(1, "modA", Token(1), closing_factory)

    asyncio.run(scenario())

    assert built[0].disposed == 1
    assert cache.get(1, "modA") is None


def test_get_moderators_reads_through_cached_state():
    cache = _cache()

    assert cache.get_moderators(1).is_empty()

    mods = EntityList(["@10", "&Mods"])
    asyncio.run(cache.get_or_create(1, MODERATORS_CONSUMER, ["@10", "&Mods"], lambda t: mods))

    assert cache.get_moderators(1) is mods
    assert cache.get_moderators(2).is_empty()


class _CloseAfterInstall:
    """Storage lock that lets another thread close the cache right after the install."""

    def __init__(self, cache):
        self._inner = threading.Lock()
        self._cache = cache
        self.armed = False

    def __enter__(self):
        self._inner.acquire()

    def __exit__(self, *exc):
        self._inner.release()
        if self.armed:
            self.armed = False
            self._cache.close()


def test_close_right_after_install_disposes_once():
    cache = _cache()
    lock = _CloseAfterInstall(cache)
    cache._storage_lock = lock
    built: list[Resource] = []

    def factory(token):
        lock.armed = True
        res = Resource("installed")
        built.append(res)
        return res

    assert asyncio.run(cache.get_or_create(1, "modA", Token(1), factory)) is built[0]
    assert built[0].disposed == 1
