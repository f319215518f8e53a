from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from ipaddress import ip_address

from ipgate.allow_list import AllowList
from ipgate.gatekeeper import Gatekeeper

ADDR = ip_address("1.2.3.4")


def test_authorize_then_lookup(store):
    entry = store.authorize(ADDR, {"X-User": "a"})
    assert entry.expires_at == datetime(2024, 1, 2, 3, 0, tzinfo=UTC)
    assert store.lookup(ADDR) == {"X-User": "a"}


def test_lookup_unknown_address(store):
    assert store.lookup(ip_address("5.6.7.8")) is None


def test_lookup_at_expiry_denies_and_evicts(store, clock):
    entry = store.authorize(ADDR, {"X-User": "a"})
    assert store.lookup(ADDR, now=entry.expires_at - timedelta(microseconds=1)) == {"X-User": "a"}
    assert store.lookup(ADDR, now=entry.expires_at) is None
    assert ADDR not in store


def test_lookup_after_expiry_uses_clock(store, clock):
    store.authorize(ADDR, {})
    clock.advance(hours=17)
    assert store.lookup(ADDR) is None


def test_reauthorization_replaces_headers_and_expiry(store, clock):
    store.authorize(ADDR, {"X-User": "a", "X-Group": "admins"})
    clock.advance(days=1)
    entry = store.authorize(ADDR, {"X-User": "b"})
    assert store.lookup(ADDR) == {"X-User": "b"}
    assert entry.expires_at == datetime(2024, 1, 3, 3, 0, tzinfo=UTC)
    assert len(store) == 1


def test_lookup_returns_a_copy(store):
    store.authorize(ADDR, {"X-User": "a"})
    store.lookup(ADDR)["X-User"] = "mallory"
    assert store.lookup(ADDR) == {"X-User": "a"}


def test_sweep_removes_only_expired(store, clock):
    store.authorize(ip_address("10.0.0.1"), {})
    clock.advance(days=1)
    store.authorize(ip_address("10.0.0.2"), {})
    sweep_at = datetime(2024, 1, 2, 3, 0, tzinfo=UTC)

    assert store.sweep(now=sweep_at) == 1
    assert ip_address("10.0.0.1") not in store
    assert ip_address("10.0.0.2") in store
    assert store.lookup(ip_address("10.0.0.2"), now=sweep_at) == {}


def test_sweep_on_empty_store(store):
    assert store.sweep() == 0


def test_concurrent_reauthorization_never_mixes(store):
    first = {"X-User": "a", "X-Group": "a"}
    second = {"X-User": "b", "X-Group": "b"}

    def write(i):
        store.authorize(ADDR, first if i % 2 else second)

    def read(_):
        headers = store.lookup(ADDR)
        return headers is None or headers in (first, second)

    with ThreadPoolExecutor(max_workers=8) as pool:
        writers = pool.map(write, range(500))
        readers = list(pool.map(read, range(500)))
        list(writers)

    assert all(readers)
    assert store.lookup(ADDR) in (first, second)


def test_gatekeeper_check_and_authorize(store):
    keeper = Gatekeeper(store, AllowList(), ["Remote-User"])
    assert not keeper.check(ADDR).authorized

    keeper.authorize(ADDR, {"remote-user": "alice", "X-Other": "ignored"})
    result = keeper.check(ADDR)
    assert result.authorized
    assert result.headers == {"Remote-User": "alice"}


def test_gatekeeper_second_authorize_wins(store):
    keeper = Gatekeeper(store, AllowList(), ["X-User"])
    keeper.authorize(ADDR, {"X-User": "a"})
    keeper.authorize(ADDR, {"X-User": "b"})
    assert keeper.check(ADDR).headers == {"X-User": "b"}


def test_allow_list_takes_precedence(store):
    keeper = Gatekeeper(store, AllowList(["1.2.3.4", "::1"]), ["X-User"])
    result = keeper.check(ADDR)
    assert result.authorized
    assert result.headers == {}
    assert ADDR not in store

    keeper.authorize(ADDR, {"X-User": "a"})
    assert keeper.check(ADDR).headers == {}
    assert keeper.check(ip_address("0::1")).authorized


def test_malformed_address_is_denied(store):
    keeper = Gatekeeper(store, AllowList(), [])
    assert not keeper.check(None).authorized
