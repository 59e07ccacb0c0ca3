from guild_keeper.state.entry import Disposable, StateEntry, token_hash

TTL = 15 * 60


def _entry(config_hash=42, last_checked=0.0):
    return StateEntry(1, "modA", object(), config_hash, last_checked)


def test_fresh_entry_with_same_hash_is_not_stale():
    entry = _entry()

    assert entry.is_stale(42, 14 * 60, TTL) is False


def test_entry_is_stale_after_ttl():
    entry = _entry()

    assert entry.is_stale(42, 16 * 60, TTL) is True


def test_hash_change_is_stale_within_ttl():
    entry = _entry()

    assert entry.is_stale(77, 60, TTL) is True


def test_passing_check_renews_last_checked():
    entry = _entry()

    assert entry.is_stale(42, 14 * 60, TTL) is False
    assert entry.last_checked == 14 * 60
    # 28 minutes after creation but only 14 after the last check.
    assert entry.is_stale(42, 28 * 60, TTL) is False


def test_check_within_ttl_renews_even_on_hash_change():
    entry = _entry()

    assert entry.is_stale(77, 10 * 60, TTL) is True
    assert entry.last_checked == 10 * 60
    # 24 minutes after creation but only 14 after the last check.
    assert entry.is_stale(42, 24 * 60, TTL) is False


def test_expired_check_does_not_renew():
    entry = _entry()

    assert entry.is_stale(42, 16 * 60, TTL) is True
    assert entry.last_checked == 0.0


def test_token_hash_is_order_insensitive_for_dicts():
    a = {"Moderators": ["@1", "&Mods"], "limit": 3}
    b = {"limit": 3, "Moderators": ["@1", "&Mods"]}

    assert token_hash(a) == token_hash(b)
    assert token_hash(a) != token_hash({"limit": 4, "Moderators": ["@1", "&Mods"]})


def test_token_hash_uses_builtin_hash_for_hashables():
    class Token:
        def __init__(self, h):
            self.h = h

        def __hash__(self):
            return self.h

    assert token_hash(Token(42)) == 42
    assert token_hash("abc") == hash("abc")


def test_dispose_only_for_disposable_data():
    class Resource(Disposable):
        def __init__(self):
            self.disposed = 0

        def dispose(self):
            self.disposed += 1

    class LooksDisposable:
        def __init__(self):
            self.disposed = 0

        def dispose(self):
            self.disposed += 1

    res = Resource()
    StateEntry(1, "m", res, 0, 0.0).dispose()
    duck = LooksDisposable()
    StateEntry(1, "m", duck, 0, 0.0).dispose()

    assert res.disposed == 1
    assert duck.disposed == 0
